# Generated manually
import datetime
from decimal import Decimal

import django.core.validators
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CollectionBooth',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('code', models.CharField(max_length=20, unique=True)),
                ('qr_code', models.CharField(blank=True, max_length=40, null=True, unique=True)),
                ('backup_code', models.CharField(blank=True, max_length=8, null=True, unique=True)),
                ('latitude', models.DecimalField(decimal_places=6, max_digits=9, validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)])),
                ('longitude', models.DecimalField(decimal_places=6, max_digits=9, validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)])),
                ('address', models.TextField()),
                ('landmark', models.CharField(blank=True, max_length=200)),
                ('area', models.CharField(max_length=100)),
                ('pincode', models.CharField(max_length=6, validators=[django.core.validators.RegexValidator('^\\d{6}$', 'Pincode must be 6 digits')])),
                ('is_active', models.BooleanField(default=True)),
                ('max_kg_per_day', models.DecimalField(decimal_places=2, default=Decimal('500.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(50)])),
                ('max_submissions_per_day', models.PositiveIntegerField(default=200, validators=[django.core.validators.MinValueValidator(10)])),
                ('kg_today', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('submissions_today', models.PositiveIntegerField(default=0)),
                ('last_reset_date', models.DateField(default=django.utils.timezone.localdate)),
                ('opening_time', models.TimeField(default=datetime.time(6, 0))),
                ('closing_time', models.TimeField(default=datetime.time(20, 0))),
                ('is_open_24_hours', models.BooleanField(default=False)),
                ('closed_days', models.JSONField(blank=True, default=list, help_text="Lower-case weekday names, e.g. ['sunday']")),
                ('accepted_waste_types', models.JSONField(blank=True, default=list, help_text='Waste type codes; empty accepts every type')),
                ('contact_name', models.CharField(blank=True, max_length=50)),
                ('contact_phone', models.CharField(blank=True, max_length=20)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('total_collected_kg', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('total_submissions', models.PositiveIntegerField(default=0)),
                ('last_collection_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('operators', models.ManyToManyField(blank=True, related_name='assigned_booths', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'collection_booths',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['latitude', 'longitude'], name='booths_location_idx'),
                    models.Index(fields=['is_active'], name='booths_active_idx'),
                    models.Index(fields=['area'], name='booths_area_idx'),
                ],
            },
        ),
    ]
