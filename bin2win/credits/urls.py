from django.urls import path
from .views import transaction_list, transaction_detail, credit_summary, credit_adjust, ledger

urlpatterns = [
    path('credits/transactions/', transaction_list, name='credit-transaction-list'),
    path('credits/transactions/<int:pk>/', transaction_detail, name='credit-transaction-detail'),
    path('credits/summary/', credit_summary, name='credit-summary'),
    path('credits/ledger/', ledger, name='credit-ledger'),
    path('credits/users/<int:user_id>/adjust/', credit_adjust, name='credit-adjust'),
]
