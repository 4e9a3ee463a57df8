"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from bin2win.booths.models import CollectionBooth
from bin2win.core.permissions import ADMIN_GROUP, BOOTH_OPERATOR_GROUP
from bin2win.rewards.models import Reward
from bin2win.waste.models import WasteSubmission, WasteType
from bin2win.core.utils import generate_reference
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False,
                    green_credits=0, **extra):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser,
            green_credits=green_credits,
            **extra
        )
        return user

    @staticmethod
    def create_admin(username=None):
        """Create a user in the Admin group"""
        user = TestDataFactory.create_user(username=username, is_staff=True)
        group, _ = Group.objects.get_or_create(name=ADMIN_GROUP)
        user.groups.add(group)
        return user

    @staticmethod
    def create_operator(booth=None, username=None):
        """Create a BoothOperator, assigned to `booth` when given"""
        user = TestDataFactory.create_user(username=username)
        group, _ = Group.objects.get_or_create(name=BOOTH_OPERATOR_GROUP)
        user.groups.add(group)
        if booth is not None:
            booth.operators.add(user)
        return user

    @staticmethod
    def create_booth(name=None, code=None, latitude='23.182400', longitude='75.768300', **extra):
        """Create a test booth, open around the clock so tests do not depend on the time of day"""
        if not name:
            name = f'Booth_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'BT{TestDataFactory.random_string(6).upper()}'
        fields = {
            'address': f'Test Address {name}',
            'area': 'Ramghat',
            'pincode': '456001',
            'is_open_24_hours': True,
        }
        fields.update(extra)
        return CollectionBooth.objects.create(
            name=name,
            code=code,
            latitude=Decimal(latitude),
            longitude=Decimal(longitude),
            **fields
        )

    @staticmethod
    def get_waste_type(code='plastic'):
        """Seeded waste type by code"""
        return WasteType.objects.get(code=code)

    @staticmethod
    def create_submission(user, booth=None, waste_type='plastic', quantity='2.00', points=20, status='pending'):
        """Create a submission row directly, without touching booth load or credits"""
        if booth is None:
            booth = TestDataFactory.create_booth()
        return WasteSubmission.objects.create(
            submission_number=generate_reference('WS', WasteSubmission, 'submission_number'),
            user=user,
            booth=booth,
            waste_type=TestDataFactory.get_waste_type(waste_type),
            quantity_kg=Decimal(quantity),
            points_earned=points,
            status=status,
        )

    @staticmethod
    def create_reward(name=None, points_required=100, stock=10, category='prasad', **extra):
        """Create a test reward with all stock available"""
        if not name:
            name = f'Reward_{TestDataFactory.random_string(6)}'
        return Reward.objects.create(
            name=name,
            description=f'Test reward {name}',
            category=category,
            points_required=points_required,
            stock_total=stock,
            stock_available=stock,
            **extra
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


class CacheClearingTestCase(TestCase):
    """TestCase that starts every test with an empty cache"""

    def setUp(self):
        super().setUp()
        cache.clear()
