from rest_framework import serializers

from .models import Reward, Redemption


class RewardSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    effective_points = serializers.IntegerField(read_only=True)
    stock_status = serializers.CharField(read_only=True)
    availability_status = serializers.SerializerMethodField()
    can_redeem = serializers.SerializerMethodField()
    is_wishlisted = serializers.SerializerMethodField()

    class Meta:
        model = Reward
        fields = ['id', 'name', 'description', 'category', 'category_display', 'subcategory', 'image', 'tags',
                  'points_required', 'effective_points', 'original_value', 'discount_percentage',
                  'stock_total', 'stock_available', 'stock_reserved', 'stock_status', 'is_active',
                  'is_featured', 'sponsor_name', 'redemption_method', 'redemption_instructions',
                  'validity_days', 'minimum_rank', 'minimum_submissions', 'available_from', 'available_until',
                  'availability_status', 'total_redeemed', 'total_views', 'average_rating', 'total_ratings',
                  'popularity_score', 'can_redeem', 'is_wishlisted', 'created_at', 'updated_at']
        read_only_fields = ['stock_reserved', 'total_redeemed', 'total_views', 'average_rating', 'total_ratings',
                            'popularity_score', 'created_at', 'updated_at']

    def _request_user(self):
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        return user if user is not None and user.is_authenticated else None

    def get_availability_status(self, obj):
        return obj.availability_status()

    def get_can_redeem(self, obj):
        user = self._request_user()
        if user is None:
            return None
        errors = obj.redeem_errors(user)
        return {'can_redeem': not errors, 'errors': errors}

    def get_is_wishlisted(self, obj):
        user = self._request_user()
        if user is None:
            return False
        return obj.wishlisted_by.filter(pk=user.pk).exists()

    def validate_tags(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Expected a list of tags.')
        return [str(tag).strip().lower() for tag in value if str(tag).strip()]

    def validate(self, attrs):
        instance = self.instance
        stock_total = attrs.get('stock_total', instance.stock_total if instance else 0)
        reserved = instance.stock_reserved if instance else 0
        # New rewards start with everything available
        if instance is None and 'stock_available' not in attrs:
            attrs['stock_available'] = stock_total
        stock_available = attrs.get('stock_available', instance.stock_available if instance else stock_total)
        if stock_available + reserved > stock_total:
            raise serializers.ValidationError(
                {'stock_available': 'Available + reserved stock cannot exceed total stock.'}
            )
        available_from = attrs.get('available_from', instance.available_from if instance else None)
        available_until = attrs.get('available_until', instance.available_until if instance else None)
        if available_from and available_until and available_from > available_until:
            raise serializers.ValidationError({'available_until': 'End of availability must be after the start.'})
        return attrs


class RewardSummarySerializer(serializers.ModelSerializer):
    effective_points = serializers.IntegerField(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Reward
        fields = ['id', 'name', 'category', 'image', 'points_required', 'effective_points', 'stock_status',
                  'is_featured', 'popularity_score']


class RedemptionSerializer(serializers.ModelSerializer):
    reward_name = serializers.CharField(source='reward.name', read_only=True)
    reward_category = serializers.CharField(source='reward.category', read_only=True)
    redemption_method = serializers.CharField(source='reward.redemption_method', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = Redemption
        fields = ['id', 'order_number', 'user', 'username', 'reward', 'reward_name', 'reward_category',
                  'redemption_method', 'quantity', 'unit_points', 'points_spent', 'status', 'status_display',
                  'voucher_code', 'delivery_address', 'tracking_number', 'notes', 'cancel_reason', 'rating',
                  'expires_at', 'is_expired', 'processed_at', 'shipped_at', 'delivered_at', 'cancelled_at',
                  'created_at', 'updated_at']
        read_only_fields = fields


class RedeemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1, max_value=10, default=1)
    delivery_address = serializers.CharField(required=False, allow_blank=True, default='')


class RedemptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Redemption.STATUS_CHOICES)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class RedemptionCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class RedemptionRateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)