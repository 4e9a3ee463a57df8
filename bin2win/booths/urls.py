from django.urls import path
from .views import (
    booth_list_create, booth_detail, booth_nearby, booth_validate_qr,
    booth_statistics, booth_qr_card, booth_operators
)

urlpatterns = [
    path('booths/', booth_list_create, name='booth-list-create'),
    path('booths/nearby/', booth_nearby, name='booth-nearby'),
    path('booths/validate-qr/', booth_validate_qr, name='booth-validate-qr'),
    path('booths/<int:pk>/', booth_detail, name='booth-detail'),
    path('booths/<int:pk>/statistics/', booth_statistics, name='booth-statistics'),
    path('booths/<int:pk>/qr-card/', booth_qr_card, name='booth-qr-card'),
    path('booths/<int:pk>/operators/', booth_operators, name='booth-operators'),
]
