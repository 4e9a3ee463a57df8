from django.contrib import admin
from .models import CreditTransaction


@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = ['reference_number', 'user', 'transaction_type', 'points', 'balance_before', 'balance_after', 'status', 'source', 'created_at']
    list_filter = ['transaction_type', 'status', 'source', 'created_at']
    search_fields = ['reference_number', 'user__username', 'description']
    raw_id_fields = ['user', 'submission', 'redemption', 'created_by']
    ordering = ['-created_at']

    # Ledger rows are written by the credits service only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
