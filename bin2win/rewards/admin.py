from django.contrib import admin
from .models import Reward, Redemption


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'points_required', 'discount_percentage', 'stock_available', 'stock_reserved', 'stock_total', 'is_active', 'is_featured', 'popularity_score']
    list_filter = ['category', 'is_active', 'is_featured', 'redemption_method', 'minimum_rank']
    list_editable = ['is_active', 'is_featured']
    search_fields = ['name', 'description', 'sponsor_name']
    readonly_fields = ['stock_reserved', 'total_redeemed', 'total_views', 'average_rating', 'total_ratings', 'popularity_score', 'created_at', 'updated_at']
    filter_horizontal = ['wishlisted_by']
    ordering = ['points_required', 'name']


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'user', 'reward', 'quantity', 'points_spent', 'status', 'voucher_code', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'user__username', 'reward__name', 'voucher_code', 'tracking_number']
    raw_id_fields = ['user', 'reward']
    readonly_fields = ['order_number', 'unit_points', 'points_spent', 'status', 'processed_at', 'shipped_at', 'delivered_at', 'cancelled_at', 'created_at', 'updated_at']
    ordering = ['-created_at']
