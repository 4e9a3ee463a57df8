from django.contrib import admin
from .models import WasteType, WasteSubmission


@admin.register(WasteType)
class WasteTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'points_per_kg', 'co2_factor', 'is_active', 'updated_at']
    list_filter = ['is_active']
    list_editable = ['points_per_kg', 'is_active']
    search_fields = ['name', 'code']
    ordering = ['name']


@admin.register(WasteSubmission)
class WasteSubmissionAdmin(admin.ModelAdmin):
    list_display = ['submission_number', 'user', 'booth', 'waste_type', 'quantity_kg', 'points_earned', 'status', 'method', 'created_at']
    list_filter = ['status', 'method', 'waste_type', 'booth', 'created_at']
    search_fields = ['submission_number', 'user__username', 'booth__name', 'booth__code']
    raw_id_fields = ['user', 'booth', 'collected_by', 'verified_by']
    readonly_fields = ['submission_number', 'points_earned', 'status', 'verified_by', 'verified_at', 'created_at', 'updated_at']
    ordering = ['-created_at']
