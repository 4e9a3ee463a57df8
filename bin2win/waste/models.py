from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from bin2win.core.exceptions import InvalidStatusTransition
from bin2win.core.rules import MAX_QUANTITY_KG, MIN_QUANTITY_KG, WASTE_TYPE_CHOICES


class WasteType(models.Model):
    """Per-kg point rate and CO2 factor for a waste category; admins tune the rates"""
    code = models.CharField(max_length=20, unique=True, choices=WASTE_TYPE_CHOICES)
    name = models.CharField(max_length=50)
    description = models.TextField(blank=True)
    points_per_kg = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(0)])
    co2_factor = models.DecimalField(max_digits=6, decimal_places=2, default=0, validators=[MinValueValidator(0)],
                                     help_text="kg of CO2 saved per kg collected")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'waste_types'
        ordering = ['name']


class WasteSubmission(models.Model):
    """A weighed drop-off of one waste type at a booth"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]
    METHOD_CHOICES = [
        ('qr_scan', 'QR Scan'),
        ('manual', 'Manual'),
        ('booth_operator', 'Booth Operator'),
    ]
    ALLOWED_TRANSITIONS = {
        'pending': {'processing', 'approved', 'rejected'},
        'processing': {'approved', 'rejected'},
        'approved': set(),
        'rejected': set(),
    }

    submission_number = models.CharField(max_length=50, unique=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='waste_submissions')
    booth = models.ForeignKey('booths.CollectionBooth', on_delete=models.PROTECT, related_name='submissions')
    waste_type = models.ForeignKey(WasteType, on_delete=models.PROTECT, related_name='submissions')
    quantity_kg = models.DecimalField(max_digits=7, decimal_places=2,
                                      validators=[MinValueValidator(MIN_QUANTITY_KG), MaxValueValidator(MAX_QUANTITY_KG)])
    points_earned = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='manual')
    collected_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='collected_submissions')
    verified_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='verified_submissions')
    verified_at = models.DateTimeField(null=True, blank=True)
    quality_score = models.PositiveSmallIntegerField(null=True, blank=True,
                                                     validators=[MinValueValidator(1), MaxValueValidator(5)])
    notes = models.TextField(blank=True)
    rejection_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.submission_number} - {self.quantity_kg} kg"

    class Meta:
        db_table = 'waste_submissions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='submissions_user_idx'),
            models.Index(fields=['booth', '-created_at'], name='submissions_booth_idx'),
            models.Index(fields=['status'], name='submissions_status_idx'),
        ]

    def can_transition_to(self, target):
        return target in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, target):
        if not self.can_transition_to(target):
            raise InvalidStatusTransition(self.status, target)
        self.status = target

    @property
    def is_final(self):
        return not self.ALLOWED_TRANSITIONS.get(self.status)

    @property
    def co2_saved(self):
        return (Decimal(self.waste_type.co2_factor) * Decimal(self.quantity_kg)).quantize(Decimal('0.01'))
