from rest_framework import serializers

from bin2win.core.formatting import format_relative_time
from bin2win.core.rules import MAX_QUANTITY_KG, MIN_QUANTITY_KG
from .models import WasteType, WasteSubmission


class WasteTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = WasteType
        fields = ['id', 'code', 'name', 'description', 'points_per_kg', 'co2_factor', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class WasteSubmissionSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    booth_name = serializers.CharField(source='booth.name', read_only=True)
    booth_code = serializers.CharField(source='booth.code', read_only=True)
    waste_type_code = serializers.CharField(source='waste_type.code', read_only=True)
    waste_type_name = serializers.CharField(source='waste_type.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    collected_by_username = serializers.CharField(source='collected_by.username', read_only=True, default=None)
    verified_by_username = serializers.CharField(source='verified_by.username', read_only=True, default=None)
    co2_saved = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    created_ago = serializers.SerializerMethodField()

    class Meta:
        model = WasteSubmission
        fields = ['id', 'submission_number', 'user', 'username', 'booth', 'booth_name', 'booth_code',
                  'waste_type', 'waste_type_code', 'waste_type_name', 'quantity_kg', 'points_earned',
                  'co2_saved', 'status', 'status_display', 'method', 'collected_by', 'collected_by_username',
                  'verified_by', 'verified_by_username', 'verified_at', 'quality_score', 'notes',
                  'rejection_reason', 'created_at', 'created_ago', 'updated_at']
        read_only_fields = fields

    def get_created_ago(self, obj):
        return format_relative_time(obj.created_at)


class WasteCalculateSerializer(serializers.Serializer):
    waste_type = serializers.CharField(max_length=20)
    quantity = serializers.DecimalField(max_digits=7, decimal_places=2,
                                        min_value=MIN_QUANTITY_KG, max_value=MAX_QUANTITY_KG)

    def validate_waste_type(self, value):
        return value.strip().lower()


class WasteSubmitSerializer(WasteCalculateSerializer):
    """`booth` is a booth ID, booth code, QR value or backup code"""
    booth = serializers.CharField(max_length=60)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    method = serializers.ChoiceField(choices=[('qr_scan', 'QR Scan'), ('manual', 'Manual')], default='manual')


class WasteCollectSerializer(WasteCalculateSerializer):
    """`user` is a user ID, QR value or backup code"""
    user = serializers.CharField(max_length=60)
    booth = serializers.CharField(max_length=60)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    quality_score = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=5)


class SubmissionApproveSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    quality_score = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=5)


class SubmissionRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True)


class ScanUserSerializer(serializers.Serializer):
    qr_code = serializers.CharField(max_length=60)
