from django.urls import path
from .views import (
    waste_type_list_create, waste_type_detail, waste_calculate, waste_submit,
    submission_list, submission_detail, submission_process, submission_approve, submission_reject,
    scan_user, waste_collect, collection_list, waste_stats
)

urlpatterns = [
    path('waste/types/', waste_type_list_create, name='waste-type-list-create'),
    path('waste/types/<int:pk>/', waste_type_detail, name='waste-type-detail'),
    path('waste/calculate/', waste_calculate, name='waste-calculate'),
    path('waste/submit/', waste_submit, name='waste-submit'),
    path('waste/submissions/', submission_list, name='submission-list'),
    path('waste/submissions/<int:pk>/', submission_detail, name='submission-detail'),
    path('waste/submissions/<int:pk>/process/', submission_process, name='submission-process'),
    path('waste/submissions/<int:pk>/approve/', submission_approve, name='submission-approve'),
    path('waste/submissions/<int:pk>/reject/', submission_reject, name='submission-reject'),
    path('waste/scan-user/', scan_user, name='waste-scan-user'),
    path('waste/collect/', waste_collect, name='waste-collect'),
    path('waste/collections/', collection_list, name='waste-collections'),
    path('waste/stats/', waste_stats, name='waste-stats'),
]
