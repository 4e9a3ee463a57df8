from django.contrib.auth.models import AbstractUser
from django.db import models

from .qr import generate_backup_code, generate_user_qr_code, unique_code
from .rules import RANK_CHOICES, get_rank


class User(AbstractUser):
    """Participant or staff account with green credit balance and lifetime stats"""
    LANGUAGE_CHOICES = [
        ('en', 'English'),
        ('hi', 'Hindi'),
        ('mr', 'Marathi'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    green_credits = models.PositiveIntegerField(default=0)
    total_waste_kg = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_submissions = models.PositiveIntegerField(default=0)
    total_points_earned = models.PositiveIntegerField(default=0)
    total_points_redeemed = models.PositiveIntegerField(default=0)
    rank = models.CharField(max_length=20, choices=RANK_CHOICES, default='Bronze')
    qr_code = models.CharField(max_length=40, unique=True, blank=True, null=True)
    backup_code = models.CharField(max_length=8, unique=True, blank=True, null=True)
    preferred_language = models.CharField(max_length=2, choices=LANGUAGE_CHOICES, default='en')
    last_active = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['-green_credits'], name='users_credits_idx'),
            models.Index(fields=['rank'], name='users_rank_idx'),
        ]

    def save(self, *args, **kwargs):
        self.rank = get_rank(self.green_credits).name
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'green_credits' in update_fields and 'rank' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['rank']
        if not self.backup_code:
            self.backup_code = unique_code(User, 'backup_code', generate_backup_code)
        super().save(*args, **kwargs)
        # The QR hash includes the primary key, so it is issued after the first insert
        if not self.qr_code:
            self.qr_code = unique_code(User, 'qr_code', generate_user_qr_code, self.pk, self.username)
            super().save(update_fields=['qr_code'])

    def regenerate_qr_code(self):
        self.qr_code = unique_code(User, 'qr_code', generate_user_qr_code, self.pk, self.username)
        self.backup_code = unique_code(User, 'backup_code', generate_backup_code)
        self.save(update_fields=['qr_code', 'backup_code', 'updated_at'])

    @property
    def display_name(self):
        return self.get_full_name() or self.username


def find_user(identifier, active_only=True):
    """Look a user up by QR value, backup code or numeric ID. Returns None when unknown."""
    value = str(identifier or '').strip()
    if not value:
        return None
    queryset = User.objects.all()
    if active_only:
        queryset = queryset.filter(is_active=True)
    lookup = models.Q(qr_code=value) | models.Q(backup_code=value.upper())
    if value.isdigit():
        lookup |= models.Q(pk=int(value))
    return queryset.filter(lookup).first()


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


def get_setting(key, default=None, cast=str):
    """
    Read a Setting value by key.

    `cast=bool` understands 'true'/'false', 'yes'/'no', '1'/'0'. A missing key
    or a value that cannot be cast returns `default`.
    """
    try:
        raw = Setting.objects.values_list('value', flat=True).get(key=key)
    except Setting.DoesNotExist:
        return default
    if cast is bool:
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    try:
        return cast(raw)
    except (TypeError, ValueError):
        return default


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('login', 'Login'),
        ('user_status', 'User Status Changed'),
        ('qr_regenerate', 'QR Code Regenerated'),
        ('waste_submit', 'Waste Submitted'),
        ('waste_collect', 'Waste Collected'),
        ('waste_approve', 'Waste Approved'),
        ('waste_reject', 'Waste Rejected'),
        ('user_scan', 'User QR Scanned'),
        ('credit_adjust', 'Credit Adjustment'),
        ('reward_redeem', 'Reward Redeemed'),
        ('redemption_status', 'Redemption Status Changed'),
        ('redemption_cancel', 'Redemption Cancelled'),
        ('operator_assign', 'Booth Operator Assigned'),
        ('export', 'Data Export'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., username, reward name)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., submission number, order number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_reference_idx'),
        ]
