# Generated manually
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Reward',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(max_length=500)),
                ('category', models.CharField(choices=[('prasad', 'Prasad & Religious Items'), ('flowers', 'Flowers'), ('coconut', 'Coconut'), ('merchandise', 'Merchandise'), ('voucher', 'Vouchers & Coupons'), ('experience', 'Experiences & Services'), ('donation', 'Donation')], max_length=20)),
                ('subcategory', models.CharField(blank=True, max_length=50)),
                ('image', models.URLField(blank=True)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('points_required', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('original_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('discount_percentage', models.DecimalField(decimal_places=2, default=0, max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('stock_total', models.PositiveIntegerField(default=0)),
                ('stock_available', models.PositiveIntegerField(default=0)),
                ('stock_reserved', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('is_featured', models.BooleanField(default=False)),
                ('sponsor_name', models.CharField(blank=True, max_length=100)),
                ('redemption_method', models.CharField(choices=[('physical_pickup', 'Physical Pickup'), ('digital_delivery', 'Digital Delivery'), ('voucher_code', 'Voucher Code'), ('experience_booking', 'Experience Booking')], default='physical_pickup', max_length=20)),
                ('redemption_instructions', models.CharField(blank=True, max_length=300)),
                ('validity_days', models.PositiveIntegerField(default=30, validators=[django.core.validators.MinValueValidator(1)])),
                ('minimum_rank', models.CharField(choices=[('Bronze', 'Bronze'), ('Silver', 'Silver'), ('Gold', 'Gold'), ('Platinum', 'Platinum'), ('Diamond', 'Diamond')], default='Bronze', max_length=20)),
                ('minimum_submissions', models.PositiveIntegerField(default=0)),
                ('available_from', models.DateTimeField(blank=True, null=True)),
                ('available_until', models.DateTimeField(blank=True, null=True)),
                ('total_redeemed', models.PositiveIntegerField(default=0)),
                ('total_views', models.PositiveIntegerField(default=0)),
                ('average_rating', models.DecimalField(decimal_places=2, default=0, max_digits=3)),
                ('total_ratings', models.PositiveIntegerField(default=0)),
                ('popularity_score', models.DecimalField(decimal_places=4, default=0, max_digits=5)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('wishlisted_by', models.ManyToManyField(blank=True, related_name='wishlist', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'rewards',
                'ordering': ['points_required', 'name'],
                'indexes': [
                    models.Index(fields=['category', 'is_active'], name='rewards_category_idx'),
                    models.Index(fields=['points_required', 'is_active'], name='rewards_points_idx'),
                    models.Index(fields=['-popularity_score'], name='rewards_popularity_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Redemption',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(max_length=50, unique=True)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('unit_points', models.PositiveIntegerField()),
                ('points_spent', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('shipped', 'Shipped'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('voucher_code', models.CharField(blank=True, max_length=20)),
                ('delivery_address', models.TextField(blank=True)),
                ('tracking_number', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('cancel_reason', models.CharField(blank=True, max_length=255)),
                ('rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('shipped_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('reward', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='redemptions', to='rewards.reward')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='redemptions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'redemptions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', '-created_at'], name='redemptions_user_idx'),
                    models.Index(fields=['status'], name='redemptions_status_idx'),
                ],
            },
        ),
    ]
