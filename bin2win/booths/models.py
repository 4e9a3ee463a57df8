import datetime
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from bin2win.core.qr import generate_backup_code, generate_booth_qr_code, unique_code
from .geo import haversine_km

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


class CollectionBooth(models.Model):
    """Physical collection point where waste is weighed and logged"""
    STATUS_INACTIVE = 'inactive'
    STATUS_CLOSED_TODAY = 'closed_today'
    STATUS_CLOSED = 'closed'
    STATUS_FULL = 'full'
    STATUS_OPEN = 'open'

    name = models.CharField(max_length=100)
    code = models.CharField(max_length=20, unique=True)
    qr_code = models.CharField(max_length=40, unique=True, blank=True, null=True)
    backup_code = models.CharField(max_length=8, unique=True, blank=True, null=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6,
                                   validators=[MinValueValidator(-90), MaxValueValidator(90)])
    longitude = models.DecimalField(max_digits=9, decimal_places=6,
                                    validators=[MinValueValidator(-180), MaxValueValidator(180)])
    address = models.TextField()
    landmark = models.CharField(max_length=200, blank=True)
    area = models.CharField(max_length=100)
    pincode = models.CharField(max_length=6, validators=[RegexValidator(r'^\d{6}$', 'Pincode must be 6 digits')])
    is_active = models.BooleanField(default=True)

    max_kg_per_day = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('500.00'),
                                         validators=[MinValueValidator(50)])
    max_submissions_per_day = models.PositiveIntegerField(default=200, validators=[MinValueValidator(10)])
    kg_today = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    submissions_today = models.PositiveIntegerField(default=0)
    last_reset_date = models.DateField(default=timezone.localdate)

    opening_time = models.TimeField(default=datetime.time(6, 0))
    closing_time = models.TimeField(default=datetime.time(20, 0))
    is_open_24_hours = models.BooleanField(default=False)
    closed_days = models.JSONField(default=list, blank=True, help_text="Lower-case weekday names, e.g. ['sunday']")
    accepted_waste_types = models.JSONField(default=list, blank=True, help_text="Waste type codes; empty accepts every type")

    contact_name = models.CharField(max_length=50, blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(blank=True)
    operators = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='assigned_booths')

    total_collected_kg = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_submissions = models.PositiveIntegerField(default=0)
    last_collection_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})"

    class Meta:
        db_table = 'collection_booths'
        ordering = ['name']
        indexes = [
            models.Index(fields=['latitude', 'longitude'], name='booths_location_idx'),
            models.Index(fields=['is_active'], name='booths_active_idx'),
            models.Index(fields=['area'], name='booths_area_idx'),
        ]

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        if not self.qr_code:
            self.qr_code = unique_code(CollectionBooth, 'qr_code', generate_booth_qr_code, self.code, self.name)
        if not self.backup_code:
            self.backup_code = unique_code(CollectionBooth, 'backup_code', generate_backup_code)
        super().save(*args, **kwargs)

    # ---- daily load ----

    def reset_daily_load_if_needed(self, today=None):
        """Zero today's counters when the stored date is stale. Returns True when reset."""
        today = today or timezone.localdate()
        if self.last_reset_date != today:
            self.kg_today = Decimal('0')
            self.submissions_today = 0
            self.last_reset_date = today
            return True
        return False

    def _load_for(self, today):
        if self.last_reset_date != today:
            return Decimal('0'), 0
        return Decimal(self.kg_today), self.submissions_today

    # ---- status ----

    def is_within_hours(self, moment):
        if self.is_open_24_hours:
            return True
        current = moment.time().replace(second=0, microsecond=0)
        if self.opening_time <= self.closing_time:
            return self.opening_time <= current <= self.closing_time
        # Overnight window, e.g. 20:00-06:00
        return current >= self.opening_time or current <= self.closing_time

    def current_status(self, now=None):
        """inactive, closed_today, closed, full or open at `now` (local time)"""
        now = timezone.localtime(now or timezone.now())
        if not self.is_active:
            return self.STATUS_INACTIVE
        if WEEKDAYS[now.weekday()] in [day.lower() for day in (self.closed_days or [])]:
            return self.STATUS_CLOSED_TODAY
        if not self.is_within_hours(now):
            return self.STATUS_CLOSED
        kg_today, submissions_today = self._load_for(now.date())
        if kg_today >= self.max_kg_per_day or submissions_today >= self.max_submissions_per_day:
            return self.STATUS_FULL
        return self.STATUS_OPEN

    def accepts_waste_type(self, waste_type_code):
        accepted = self.accepted_waste_types or []
        return not accepted or waste_type_code in accepted

    def can_accept_waste(self, quantity, waste_type_code=None, now=None):
        """
        Check whether a drop-off fits.

        Returns (can_accept, reason).
        """
        now = timezone.localtime(now or timezone.now())
        status = self.current_status(now)
        if status == self.STATUS_INACTIVE:
            return False, 'Booth is inactive'
        if status in (self.STATUS_CLOSED, self.STATUS_CLOSED_TODAY):
            return False, 'Booth is currently closed'
        if status == self.STATUS_FULL:
            return False, 'Booth has reached daily capacity'
        if waste_type_code and not self.accepts_waste_type(waste_type_code):
            return False, f"Booth does not accept {waste_type_code} waste"
        kg_today, submissions_today = self._load_for(now.date())
        if kg_today + Decimal(str(quantity)) > self.max_kg_per_day:
            return False, 'Adding this quantity would exceed daily capacity'
        if submissions_today + 1 > self.max_submissions_per_day:
            return False, 'Booth has reached its daily submission limit'
        return True, 'Booth can accept waste'

    def record_submission(self, quantity, now=None):
        """Add a drop-off to today's load and lifetime statistics. Caller saves."""
        now = now or timezone.now()
        self.reset_daily_load_if_needed(timezone.localtime(now).date())
        quantity = Decimal(str(quantity))
        self.kg_today += quantity
        self.submissions_today += 1
        self.total_collected_kg += quantity
        self.total_submissions += 1
        self.last_collection_at = now

    def capacity_utilization(self, now=None):
        kg_today, submissions_today = self._load_for(timezone.localtime(now or timezone.now()).date())
        return {
            'weight': round(float(kg_today) / float(self.max_kg_per_day) * 100, 1) if self.max_kg_per_day else 0.0,
            'submissions': round(submissions_today / self.max_submissions_per_day * 100, 1) if self.max_submissions_per_day else 0.0,
        }

    def distance_to(self, lat, lng):
        return haversine_km(self.latitude, self.longitude, lat, lng)


def find_booth(identifier, active_only=True):
    """Look a booth up by QR value, backup code or booth code. Returns None when unknown."""
    value = str(identifier or '').strip()
    if not value:
        return None
    queryset = CollectionBooth.objects.all()
    if active_only:
        queryset = queryset.filter(is_active=True)
    return queryset.filter(
        models.Q(qr_code=value) | models.Q(backup_code=value.upper()) | models.Q(code=value.upper())
    ).first()
