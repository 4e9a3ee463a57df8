from rest_framework import serializers

from bin2win.core.formatting import format_relative_time
from bin2win.core.serializers import UserSummarySerializer
from .models import CreditTransaction


class CreditTransactionSerializer(serializers.ModelSerializer):
    transaction_type_display = serializers.CharField(source='get_transaction_type_display', read_only=True)
    submission_number = serializers.CharField(source='submission.submission_number', read_only=True, default=None)
    order_number = serializers.CharField(source='redemption.order_number', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    created_ago = serializers.SerializerMethodField()

    class Meta:
        model = CreditTransaction
        fields = ['id', 'reference_number', 'transaction_type', 'transaction_type_display', 'points',
                  'balance_before', 'balance_after', 'status', 'description', 'source',
                  'submission', 'submission_number', 'redemption', 'order_number',
                  'created_by_username', 'metadata', 'created_at', 'created_ago']
        read_only_fields = fields

    def get_created_ago(self, obj):
        return format_relative_time(obj.created_at)


class LedgerEntrySerializer(CreditTransactionSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta(CreditTransactionSerializer.Meta):
        fields = CreditTransactionSerializer.Meta.fields + ['user']
        read_only_fields = fields


class CreditAdjustmentSerializer(serializers.Serializer):
    ADJUSTMENT_TYPES = [
        ('bonus', 'Bonus'),
        ('penalty', 'Penalty'),
        ('adjustment', 'Adjustment'),
    ]

    transaction_type = serializers.ChoiceField(choices=ADJUSTMENT_TYPES)
    points = serializers.IntegerField(min_value=-100000, max_value=100000)
    reason = serializers.CharField(max_length=255)

    def validate_points(self, value):
        if value == 0:
            raise serializers.ValidationError('Points must not be zero.')
        return value
