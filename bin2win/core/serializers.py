from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .formatting import format_number
from .models import User, Setting, AuditLog
from .otp import normalize_phone
from .rules import rank_info_as_dict


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'address',
                  'is_active', 'is_staff', 'is_superuser', 'green_credits', 'total_waste_kg',
                  'total_submissions', 'total_points_earned', 'total_points_redeemed', 'rank',
                  'preferred_language', 'last_active', 'created_at', 'updated_at']
        read_only_fields = ['green_credits', 'total_waste_kg', 'total_submissions',
                            'total_points_earned', 'total_points_redeemed', 'rank',
                            'last_active', 'created_at', 'updated_at']


class UserProfileSerializer(serializers.ModelSerializer):
    """What a user sees and edits about themselves"""
    rank_info = serializers.SerializerMethodField()
    green_credits_display = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'address',
                  'preferred_language', 'green_credits', 'green_credits_display', 'total_waste_kg',
                  'total_submissions', 'total_points_earned', 'total_points_redeemed', 'rank',
                  'rank_info', 'qr_code', 'backup_code', 'last_active', 'created_at']
        read_only_fields = ['username', 'green_credits', 'total_waste_kg', 'total_submissions',
                            'total_points_earned', 'total_points_redeemed', 'rank', 'qr_code',
                            'backup_code', 'last_active', 'created_at']

    def get_rank_info(self, obj):
        return rank_info_as_dict(obj.green_credits)

    def get_green_credits_display(self, obj):
        return format_number(obj.green_credits)


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user payload for scans, leaderboards and nested objects"""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'green_credits', 'rank', 'total_submissions', 'total_waste_kg']


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name',
                  'phone', 'preferred_language']

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class OTPRequestSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=25)

    def validate_phone(self, value):
        phone = normalize_phone(value)
        if phone is None:
            raise serializers.ValidationError('Please provide a valid phone number.')
        return phone


class OTPVerifySerializer(OTPRequestSerializer):
    otp = serializers.CharField(max_length=10)
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)


class UserStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
