from django.urls import path
from .views import (
    CustomTokenObtainPairView, AdminTokenObtainPairView, CustomTokenRefreshView,
    register, otp_send, otp_verify, logout, user_me, user_qr, user_qr_regenerate,
    user_list_create, user_detail, user_status,
    setting_list_create, setting_detail,
    audit_log_list, audit_log_detail,
    global_search
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/admin/login/', AdminTokenObtainPairView.as_view(), name='admin-token-obtain-pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/send-otp/', otp_send, name='otp-send'),
    path('auth/verify-otp/', otp_verify, name='otp-verify'),
    path('auth/logout/', logout, name='logout'),
    path('auth/me/', user_me, name='user-me'),

    # Current user
    path('users/me/', user_me, name='user-me-profile'),
    path('users/me/qr/', user_qr, name='user-qr'),
    path('users/me/qr/regenerate/', user_qr_regenerate, name='user-qr-regenerate'),

    # User endpoints (admin)
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/status/', user_status, name='user-status'),

    # Setting endpoints
    path('settings/', setting_list_create, name='setting-list-create'),
    path('settings/<int:pk>/', setting_detail, name='setting-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    # Global search endpoint
    path('search/', global_search, name='global-search'),
]
