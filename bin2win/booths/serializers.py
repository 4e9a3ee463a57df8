from rest_framework import serializers
from django.contrib.auth import get_user_model

from bin2win.core.rules import WASTE_TYPE_CHOICES
from .models import CollectionBooth, WEEKDAYS

User = get_user_model()

WASTE_TYPE_CODES = [code for code, _ in WASTE_TYPE_CHOICES]


class CollectionBoothSerializer(serializers.ModelSerializer):
    current_status = serializers.SerializerMethodField()
    capacity_utilization = serializers.SerializerMethodField()
    operators = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = CollectionBooth
        fields = ['id', 'name', 'code', 'qr_code', 'backup_code', 'latitude', 'longitude', 'address',
                  'landmark', 'area', 'pincode', 'is_active', 'max_kg_per_day', 'max_submissions_per_day',
                  'kg_today', 'submissions_today', 'last_reset_date', 'opening_time', 'closing_time',
                  'is_open_24_hours', 'closed_days', 'accepted_waste_types', 'contact_name', 'contact_phone',
                  'contact_email', 'operators', 'total_collected_kg', 'total_submissions', 'last_collection_at',
                  'current_status', 'capacity_utilization', 'created_at', 'updated_at']
        read_only_fields = ['qr_code', 'backup_code', 'kg_today', 'submissions_today', 'last_reset_date',
                            'total_collected_kg', 'total_submissions', 'last_collection_at',
                            'created_at', 'updated_at']

    def get_current_status(self, obj):
        return obj.current_status()

    def get_capacity_utilization(self, obj):
        return obj.capacity_utilization()

    def validate_code(self, value):
        value = value.strip().upper()
        queryset = CollectionBooth.objects.filter(code=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A booth with this code already exists.')
        return value

    def validate_closed_days(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Expected a list of weekday names.')
        days = [str(day).strip().lower() for day in value]
        invalid = [day for day in days if day not in WEEKDAYS]
        if invalid:
            raise serializers.ValidationError(f"Invalid weekday(s): {', '.join(invalid)}")
        return days

    def validate_accepted_waste_types(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Expected a list of waste type codes.')
        codes = [str(code).strip().lower() for code in value]
        invalid = [code for code in codes if code not in WASTE_TYPE_CODES]
        if invalid:
            raise serializers.ValidationError(f"Invalid waste type(s): {', '.join(invalid)}")
        return codes


class NearbyBoothSerializer(CollectionBoothSerializer):
    distance_km = serializers.FloatField(read_only=True)

    class Meta(CollectionBoothSerializer.Meta):
        fields = CollectionBoothSerializer.Meta.fields + ['distance_km']


class BoothSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = CollectionBooth
        fields = ['id', 'name', 'code', 'area']


class BoothOperatorAssignSerializer(serializers.Serializer):
    add = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), many=True, required=False)
    remove = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), many=True, required=False)

    def validate(self, attrs):
        if not attrs.get('add') and not attrs.get('remove'):
            raise serializers.ValidationError('Provide users to add or remove.')
        return attrs
