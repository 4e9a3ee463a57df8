"""
Management command to load demo booths and rewards for the Simhastha grounds
"""
from datetime import time
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from bin2win.booths.models import CollectionBooth
from bin2win.core.cache_signals import invalidate_leaderboard_cache, suspend_cache_signals
from bin2win.core.model_cache import invalidate_booth_cache, invalidate_waste_rates_cache
from bin2win.rewards.models import Reward


class Command(BaseCommand):
    help = "Adds demo collection booths and rewards around the Ujjain ghats"

    BOOTHS = [
        {
            'code': 'RAMGHAT01', 'name': 'Ramghat Main Booth', 'area': 'Ramghat',
            'latitude': '23.182400', 'longitude': '75.768300', 'landmark': 'Near Ramghat steps',
            'is_open_24_hours': True,
        },
        {
            'code': 'MAHAKAL01', 'name': 'Mahakal Temple Gate', 'area': 'Mahakal',
            'latitude': '23.182800', 'longitude': '75.768200', 'landmark': 'Gate 4, Mahakal Lok',
            'opening_time': time(5, 0), 'closing_time': time(22, 0),
        },
        {
            'code': 'DATTA01', 'name': 'Datta Akhada Booth', 'area': 'Datta Akhada',
            'latitude': '23.190300', 'longitude': '75.764900', 'landmark': 'Akhada parking',
            'accepted_waste_types': ['plastic', 'paper', 'metal', 'glass'],
        },
        {
            'code': 'KALBHAIRAV', 'name': 'Kal Bhairav Booth', 'area': 'Bhairavgarh',
            'latitude': '23.205900', 'longitude': '75.769400', 'landmark': 'Temple road',
            'closed_days': ['tuesday'],
        },
        {
            'code': 'NANAKHEDA', 'name': 'Nanakheda Bus Stand', 'area': 'Nanakheda',
            'latitude': '23.155100', 'longitude': '75.789800', 'landmark': 'Bus stand exit',
            'opening_time': time(20, 0), 'closing_time': time(6, 0),
        },
    ]

    REWARDS = [
        {
            'name': 'Mahakal Prasad Box', 'category': 'prasad', 'points_required': 100,
            'stock_total': 500, 'is_featured': True, 'redemption_method': 'physical_pickup',
            'description': 'Laddu prasad from the Mahakaleshwar temple kitchen.',
        },
        {
            'name': 'Marigold Garland', 'category': 'flowers', 'points_required': 50,
            'stock_total': 1000, 'redemption_method': 'physical_pickup',
            'description': 'Fresh marigold garland for darshan.',
        },
        {
            'name': 'Pooja Coconut', 'category': 'coconut', 'points_required': 40,
            'stock_total': 800, 'redemption_method': 'physical_pickup',
            'description': 'Coconut for offering at the ghats.',
        },
        {
            'name': 'Clean & Green Cotton Bag', 'category': 'merchandise', 'points_required': 250,
            'stock_total': 300, 'original_value': Decimal('120.00'), 'redemption_method': 'physical_pickup',
            'description': 'Reusable cotton bag with the Simhastha Clean & Green print.',
        },
        {
            'name': 'Bus Pass Voucher', 'category': 'voucher', 'points_required': 600,
            'stock_total': 200, 'minimum_rank': 'Silver', 'redemption_method': 'voucher_code',
            'validity_days': 15, 'sponsor_name': 'Ujjain City Transport',
            'description': 'One day of free city bus travel.',
        },
        {
            'name': 'Shipra Aarti VIP Pass', 'category': 'experience', 'points_required': 2500,
            'stock_total': 25, 'minimum_rank': 'Gold', 'minimum_submissions': 10,
            'is_featured': True, 'redemption_method': 'experience_booking',
            'description': 'Reserved seating for the evening aarti at Ramghat.',
        },
        {
            'name': 'Plant a Tree', 'category': 'donation', 'points_required': 150,
            'stock_total': 10000, 'redemption_method': 'digital_delivery',
            'description': 'A sapling planted along the Shipra in your name.',
        },
    ]

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Remove demo booths and rewards that have no history before adding',
        )

    def handle(self, *args, **options):
        booth_count = 0
        reward_count = 0

        with suspend_cache_signals(), transaction.atomic():
            if options['clear']:
                booth_codes = [booth['code'] for booth in self.BOOTHS]
                deleted, _ = CollectionBooth.objects.filter(
                    code__in=booth_codes, submissions__isnull=True
                ).delete()
                reward_names = [reward['name'] for reward in self.REWARDS]
                deleted_rewards, _ = Reward.objects.filter(
                    name__in=reward_names, redemptions__isnull=True
                ).delete()
                self.stdout.write(self.style.WARNING(f'Removed {deleted} booth rows and {deleted_rewards} reward rows'))

            for data in self.BOOTHS:
                fields = dict(data)
                code = fields.pop('code')
                fields['latitude'] = Decimal(fields['latitude'])
                fields['longitude'] = Decimal(fields['longitude'])
                fields.setdefault('address', f"{fields['name']}, {fields['area']}, Ujjain")
                fields.setdefault('pincode', '456001')
                booth, created = CollectionBooth.objects.get_or_create(code=code, defaults=fields)
                if created:
                    booth_count += 1
                    self.stdout.write(self.style.SUCCESS(f'✓ Added booth: {booth}'))
                else:
                    self.stdout.write(f'  Booth already exists: {booth}')

            for data in self.REWARDS:
                fields = dict(data)
                name = fields.pop('name')
                fields['stock_available'] = fields['stock_total']
                reward, created = Reward.objects.get_or_create(name=name, defaults=fields)
                if created:
                    reward_count += 1
                    self.stdout.write(self.style.SUCCESS(f'✓ Added reward: {reward.name}'))
                else:
                    self.stdout.write(f'  Reward already exists: {reward.name}')

        # Signals were suspended above
        for booth in CollectionBooth.objects.filter(code__in=[booth['code'] for booth in self.BOOTHS]):
            invalidate_booth_cache(booth.pk)
        invalidate_waste_rates_cache()
        invalidate_leaderboard_cache()

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {booth_count} booths and {reward_count} rewards added'
        ))
