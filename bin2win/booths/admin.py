from django.contrib import admin
from .models import CollectionBooth


@admin.register(CollectionBooth)
class CollectionBoothAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'area', 'pincode', 'is_active', 'kg_today', 'submissions_today', 'total_collected_kg']
    list_filter = ['is_active', 'area', 'is_open_24_hours']
    search_fields = ['name', 'code', 'area', 'pincode', 'address', 'qr_code', 'backup_code']
    filter_horizontal = ['operators']
    readonly_fields = ['qr_code', 'backup_code', 'kg_today', 'submissions_today', 'last_reset_date',
                       'total_collected_kg', 'total_submissions', 'last_collection_at', 'created_at', 'updated_at']
    ordering = ['name']
