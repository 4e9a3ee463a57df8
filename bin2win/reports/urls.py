from django.urls import path
from . import views

urlpatterns = [
    path('leaderboard/', views.leaderboard, name='leaderboard'),
    path('dashboard/', views.dashboard, name='dashboard'),
    path('users/me/statistics/', views.user_statistics, name='user-statistics'),
    path('admin/dashboard/', views.admin_dashboard, name='admin-dashboard'),
    path('admin/analytics/', views.admin_analytics, name='admin-analytics'),
    path('admin/export/', views.admin_export, name='admin-export'),
]
