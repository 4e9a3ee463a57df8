from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Setting, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'green_credits', 'rank', 'is_active', 'is_staff', 'date_joined']
    list_filter = ['is_active', 'is_staff', 'is_superuser', 'rank', 'preferred_language', 'date_joined']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'phone', 'qr_code', 'backup_code']
    ordering = ['username']
    readonly_fields = ['green_credits', 'total_waste_kg', 'total_submissions', 'total_points_earned',
                       'total_points_redeemed', 'rank', 'qr_code', 'backup_code', 'last_active']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Additional Info', {'fields': ('phone', 'address', 'preferred_language')}),
        ('Green Credits', {'fields': ('green_credits', 'rank', 'total_waste_kg', 'total_submissions',
                                      'total_points_earned', 'total_points_redeemed')}),
        ('QR', {'fields': ('qr_code', 'backup_code', 'last_active')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Additional Info', {'fields': ('phone',)}),
    )


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'updated_at']
    search_fields = ['key', 'description']
    ordering = ['key']
    readonly_fields = ['updated_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'model_name', 'object_id', 'object_reference', 'ip_address', 'created_at']
    list_filter = ['action', 'model_name', 'created_at']
    search_fields = ['user__username', 'model_name', 'object_id', 'object_reference']
    ordering = ['-created_at']
    readonly_fields = ['user', 'action', 'model_name', 'object_id', 'changes', 'ip_address', 'created_at']
