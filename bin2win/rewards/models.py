from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from bin2win.core.exceptions import InvalidStatusTransition
from bin2win.core.rules import RANK_CHOICES, rank_index


class Reward(models.Model):
    """Catalog item participants can exchange green credits for"""
    CATEGORY_CHOICES = [
        ('prasad', 'Prasad & Religious Items'),
        ('flowers', 'Flowers'),
        ('coconut', 'Coconut'),
        ('merchandise', 'Merchandise'),
        ('voucher', 'Vouchers & Coupons'),
        ('experience', 'Experiences & Services'),
        ('donation', 'Donation'),
    ]
    REDEMPTION_METHOD_CHOICES = [
        ('physical_pickup', 'Physical Pickup'),
        ('digital_delivery', 'Digital Delivery'),
        ('voucher_code', 'Voucher Code'),
        ('experience_booking', 'Experience Booking'),
    ]
    # Delivered as soon as they are redeemed
    INSTANT_METHODS = ('digital_delivery', 'voucher_code')

    name = models.CharField(max_length=100)
    description = models.TextField(max_length=500)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    subcategory = models.CharField(max_length=50, blank=True)
    image = models.URLField(blank=True)
    tags = models.JSONField(default=list, blank=True)
    points_required = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    original_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                         validators=[MinValueValidator(0)])
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0,
                                              validators=[MinValueValidator(0), MaxValueValidator(100)])
    stock_total = models.PositiveIntegerField(default=0)
    stock_available = models.PositiveIntegerField(default=0)
    stock_reserved = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    sponsor_name = models.CharField(max_length=100, blank=True)
    redemption_method = models.CharField(max_length=20, choices=REDEMPTION_METHOD_CHOICES, default='physical_pickup')
    redemption_instructions = models.CharField(max_length=300, blank=True)
    validity_days = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])
    minimum_rank = models.CharField(max_length=20, choices=RANK_CHOICES, default='Bronze')
    minimum_submissions = models.PositiveIntegerField(default=0)
    available_from = models.DateTimeField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)

    total_redeemed = models.PositiveIntegerField(default=0)
    total_views = models.PositiveIntegerField(default=0)
    average_rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    total_ratings = models.PositiveIntegerField(default=0)
    popularity_score = models.DecimalField(max_digits=5, decimal_places=4, default=0)
    wishlisted_by = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='wishlist')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.points_required} pts)"

    class Meta:
        db_table = 'rewards'
        ordering = ['points_required', 'name']
        indexes = [
            models.Index(fields=['category', 'is_active'], name='rewards_category_idx'),
            models.Index(fields=['points_required', 'is_active'], name='rewards_points_idx'),
            models.Index(fields=['-popularity_score'], name='rewards_popularity_idx'),
        ]

    def clean(self):
        if self.stock_available + self.stock_reserved > self.stock_total:
            raise ValidationError('Available + reserved stock cannot exceed total stock.')
        if self.available_from and self.available_until and self.available_from > self.available_until:
            raise ValidationError({'available_until': 'End of availability must be after the start.'})

    @property
    def effective_points(self):
        """Points per unit after the discount, rounded half up"""
        discount = Decimal(self.discount_percentage or 0)
        if discount <= 0:
            return self.points_required
        points = Decimal(self.points_required) * (1 - discount / 100)
        return int(points.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @property
    def stock_status(self):
        if self.stock_available == 0:
            return 'out_of_stock'
        if self.stock_available <= self.stock_total * 0.1:
            return 'low_stock'
        if self.stock_available <= self.stock_total * 0.3:
            return 'medium_stock'
        return 'in_stock'

    def availability_status(self, now=None):
        if not self.is_active:
            return 'inactive'
        now = now or timezone.now()
        if self.available_from and now < self.available_from:
            return 'not_yet_available'
        if self.available_until and now > self.available_until:
            return 'expired'
        return 'available'

    def redeem_errors(self, user, quantity=1, now=None):
        """Every reason `user` cannot redeem `quantity` units right now; empty when they can"""
        errors = []
        if not self.is_active:
            errors.append('Reward is currently inactive')
        else:
            availability = self.availability_status(now)
            if availability != 'available':
                errors.append(f"Reward is {availability.replace('_', ' ')}")
        if self.stock_available == 0:
            errors.append('Reward is out of stock')
        elif self.stock_available < quantity:
            errors.append(f'Insufficient stock. Only {self.stock_available} items available.')
        required = self.effective_points * quantity
        if user.green_credits < required:
            errors.append(f'Insufficient green credits. Required: {required}, Available: {user.green_credits}')
        if rank_index(user.rank) < rank_index(self.minimum_rank):
            errors.append(f'Minimum rank required: {self.minimum_rank}')
        if user.total_submissions < self.minimum_submissions:
            errors.append(f'Minimum {self.minimum_submissions} waste submissions required')
        return errors

    # Stock moves. Callers hold a row lock and save.

    def reserve_stock(self, quantity=1):
        if self.stock_available < quantity:
            raise ValidationError('Insufficient stock available')
        self.stock_available -= quantity
        self.stock_reserved += quantity

    def confirm_redemption(self, quantity=1):
        if self.stock_reserved < quantity:
            raise ValidationError('Insufficient reserved stock')
        self.stock_reserved -= quantity
        self.total_redeemed += quantity
        self.update_popularity_score()

    def cancel_reservation(self, quantity=1):
        if self.stock_reserved < quantity:
            raise ValidationError('Cannot cancel more than reserved')
        self.stock_reserved -= quantity
        self.stock_available += quantity

    def update_popularity_score(self):
        """0.3 x views (capped at 1000) + 0.5 x redemptions (capped at 100) + 0.2 x rating / 5"""
        views = min(Decimal(self.total_views) / 1000, Decimal('1'))
        redemptions = min(Decimal(self.total_redeemed) / 100, Decimal('1'))
        rating = Decimal(self.average_rating or 0) / 5
        score = views * Decimal('0.3') + redemptions * Decimal('0.5') + rating * Decimal('0.2')
        self.popularity_score = score.quantize(Decimal('0.0001'), rounding=ROUND_HALF_UP)

    def add_rating(self, rating):
        if rating < 1 or rating > 5:
            raise ValidationError('Rating must be between 1 and 5')
        total = Decimal(self.average_rating) * self.total_ratings + rating
        self.total_ratings += 1
        self.average_rating = (total / self.total_ratings).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        self.update_popularity_score()


class Redemption(models.Model):
    """An order for a reward, paid for with green credits"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]
    ALLOWED_TRANSITIONS = {
        'pending': {'processing', 'cancelled'},
        'processing': {'shipped', 'delivered', 'cancelled'},
        'shipped': {'delivered'},
        'delivered': set(),
        'cancelled': set(),
    }

    order_number = models.CharField(max_length=50, unique=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='redemptions')
    reward = models.ForeignKey(Reward, on_delete=models.PROTECT, related_name='redemptions')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_points = models.PositiveIntegerField()
    points_spent = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    voucher_code = models.CharField(max_length=20, blank=True)
    delivery_address = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)
    rating = models.PositiveSmallIntegerField(null=True, blank=True,
                                              validators=[MinValueValidator(1), MaxValueValidator(5)])
    expires_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order_number} - {self.reward_id} x{self.quantity}"

    class Meta:
        db_table = 'redemptions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='redemptions_user_idx'),
            models.Index(fields=['status'], name='redemptions_status_idx'),
        ]

    def can_transition_to(self, target):
        return target in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, target, now=None):
        """Move to `target` and stamp the matching timestamp"""
        if not self.can_transition_to(target):
            raise InvalidStatusTransition(self.status, target)
        now = now or timezone.now()
        self.status = target
        stamp = {
            'processing': 'processed_at',
            'shipped': 'shipped_at',
            'delivered': 'delivered_at',
            'cancelled': 'cancelled_at',
        }[target]
        setattr(self, stamp, now)

    @property
    def is_final(self):
        return not self.ALLOWED_TRANSITIONS.get(self.status)

    @property
    def is_expired(self):
        return bool(self.expires_at and self.status != 'delivered' and timezone.now() > self.expires_at)
