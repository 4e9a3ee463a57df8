from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class CreditTransaction(models.Model):
    """
    One row per change to a user's green credit balance.

    `points` is signed: earn, bonus and refund add credits, redeem and penalty
    take them away, adjustment can go either way. `balance_before` and
    `balance_after` record the balance around the change, so the ledger for a
    user can be replayed to verify the stored balance.
    """
    TYPE_CHOICES = [
        ('earn', 'Earn'),
        ('redeem', 'Redeem'),
        ('bonus', 'Bonus'),
        ('penalty', 'Penalty'),
        ('refund', 'Refund'),
        ('adjustment', 'Adjustment'),
    ]
    STATUS_CHOICES = [
        ('completed', 'Completed'),
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('cancelled', 'Cancelled'),
        ('failed', 'Failed'),
    ]
    SOURCE_CHOICES = [
        ('waste_submission', 'Waste Submission'),
        ('booth_collection', 'Booth Collection'),
        ('reward_redemption', 'Reward Redemption'),
        ('admin_adjustment', 'Admin Adjustment'),
        ('system', 'System'),
    ]
    POSITIVE_TYPES = ('earn', 'bonus', 'refund')
    NEGATIVE_TYPES = ('redeem', 'penalty')

    reference_number = models.CharField(max_length=50, unique=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='credit_transactions')
    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    points = models.IntegerField()
    balance_before = models.PositiveIntegerField()
    balance_after = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    description = models.CharField(max_length=255, blank=True)
    source = models.CharField(max_length=30, choices=SOURCE_CHOICES, default='system')
    submission = models.ForeignKey('waste.WasteSubmission', on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='credit_transactions')
    redemption = models.ForeignKey('rewards.Redemption', on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='credit_transactions')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_credit_transactions')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.reference_number} {self.transaction_type} {self.points:+d}"

    class Meta:
        db_table = 'credit_transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='credit_txn_user_idx'),
            models.Index(fields=['transaction_type'], name='credit_txn_type_idx'),
            models.Index(fields=['status'], name='credit_txn_status_idx'),
        ]

    def clean(self):
        if self.points == 0:
            raise ValidationError({'points': 'Points must not be zero.'})
        if self.transaction_type in self.POSITIVE_TYPES and self.points < 0:
            raise ValidationError({'points': f'{self.get_transaction_type_display()} transactions must add credits.'})
        if self.transaction_type in self.NEGATIVE_TYPES and self.points > 0:
            raise ValidationError({'points': f'{self.get_transaction_type_display()} transactions must deduct credits.'})
        if self.balance_after != self.balance_before + self.points:
            raise ValidationError({'balance_after': 'Balance after must equal balance before plus points.'})
