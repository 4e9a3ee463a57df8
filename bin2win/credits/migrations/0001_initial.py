# Generated manually
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('waste', '0001_initial'),
        ('rewards', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='CreditTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(max_length=50, unique=True)),
                ('transaction_type', models.CharField(choices=[('earn', 'Earn'), ('redeem', 'Redeem'), ('bonus', 'Bonus'), ('penalty', 'Penalty'), ('refund', 'Refund'), ('adjustment', 'Adjustment')], max_length=20)),
                ('points', models.IntegerField()),
                ('balance_before', models.PositiveIntegerField()),
                ('balance_after', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('pending', 'Pending'), ('processing', 'Processing'), ('cancelled', 'Cancelled'), ('failed', 'Failed')], default='completed', max_length=20)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('source', models.CharField(choices=[('waste_submission', 'Waste Submission'), ('booth_collection', 'Booth Collection'), ('reward_redemption', 'Reward Redemption'), ('admin_adjustment', 'Admin Adjustment'), ('system', 'System')], default='system', max_length=30)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_credit_transactions', to=settings.AUTH_USER_MODEL)),
                ('redemption', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='credit_transactions', to='rewards.redemption')),
                ('submission', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='credit_transactions', to='waste.wastesubmission')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='credit_transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'credit_transactions',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['user', '-created_at'], name='credit_txn_user_idx'),
                    models.Index(fields=['transaction_type'], name='credit_txn_type_idx'),
                    models.Index(fields=['status'], name='credit_txn_status_idx'),
                ],
            },
        ),
    ]
