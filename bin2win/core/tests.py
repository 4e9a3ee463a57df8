"""
Test suite for the core module
Tests: credit rules, ranks, formatting, QR codes, users, auth, settings, management commands
"""
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import Group
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from bin2win.booths.models import CollectionBooth
from bin2win.core.exceptions import InvalidWasteInput
from bin2win.core.formatting import format_date, format_number, format_relative_time
from bin2win.core.models import AuditLog, Setting, User, find_user, get_setting
from bin2win.core.otp import OTP_MAX_ATTEMPTS, OTP_TTL_SECONDS, otp_cache_key
from bin2win.core.permissions import ADMIN_GROUP, BOOTH_OPERATOR_GROUP, can_operate_booth, is_admin_user
from bin2win.core.qr import (
    BOOTH_QR_PREFIX, USER_QR_PREFIX, generate_booth_qr_code, generate_user_qr_code,
    parse_qr_code, validate_backup_code, validate_qr_code_format,
)
from bin2win.core.rules import (
    calculate_points_breakdown, calculate_waste_points, co2_saved, get_bonus_multiplier,
    get_rank, get_user_rank_info, rank_index,
)
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase
from bin2win.credits.services import record_transaction
from bin2win.rewards.models import Reward

STRONG_PASSWORD = 'Gr33n-Ujjain-2026'


class PointsRuleTests(TestCase):
    """Test points calculation and bulk bonus tiers"""

    def test_no_bonus_up_to_two_kg(self):
        self.assertEqual(calculate_waste_points('plastic', 2), 20)
        self.assertEqual(get_bonus_multiplier('2'), Decimal('1'))

    def test_ten_percent_bonus_above_two_kg(self):
        # 15 * 3 * 1.1 = 49.5, rounded half up
        self.assertEqual(calculate_waste_points('metal', 3), 50)

    def test_twenty_percent_bonus_above_five_kg(self):
        self.assertEqual(calculate_waste_points('plastic', 6), 72)
        self.assertEqual(get_bonus_multiplier(5), Decimal('1.1'))
        self.assertEqual(get_bonus_multiplier('5.01'), Decimal('1.2'))

    def test_breakdown(self):
        breakdown = calculate_points_breakdown('Paper', '2.5')
        self.assertEqual(breakdown['waste_type'], 'paper')
        self.assertEqual(breakdown['rate'], Decimal('8'))
        self.assertEqual(breakdown['base_points'], Decimal('20.0'))
        self.assertEqual(breakdown['multiplier'], Decimal('1.1'))
        self.assertEqual(breakdown['points'], 22)

    def test_waste_type_is_case_insensitive(self):
        self.assertEqual(calculate_waste_points(' Plastic ', 1), 10)

    def test_custom_rates(self):
        self.assertEqual(calculate_waste_points('plastic', 1, rates={'plastic': 30}), 30)

    def test_invalid_input(self):
        for waste_type, quantity in [('plastic', 0), ('plastic', -1), ('plastic', 'abc'),
                                     ('plastic', 'nan'), ('plastic', None), ('styrofoam', 1)]:
            with self.assertRaises(InvalidWasteInput):
                calculate_waste_points(waste_type, quantity)

    def test_quantity_above_limit(self):
        for quantity in ['1000.01', '1e30', 10 ** 40]:
            with self.assertRaises(InvalidWasteInput):
                calculate_waste_points('plastic', quantity)
        self.assertEqual(calculate_waste_points('plastic', 1000), 12000)

    def test_co2_saved_large_total(self):
        self.assertEqual(co2_saved('plastic', '1e30'), Decimal('2.5e30'))

    def test_co2_saved(self):
        self.assertEqual(co2_saved('plastic', 2), Decimal('5.00'))
        self.assertEqual(co2_saved('organic', '0.3'), Decimal('0.15'))


class RankRuleTests(TestCase):
    """Test rank thresholds and progress"""

    def test_thresholds(self):
        self.assertEqual(get_rank(0).name, 'Bronze')
        self.assertEqual(get_rank(499).name, 'Bronze')
        self.assertEqual(get_rank(500).name, 'Silver')
        self.assertEqual(get_rank(2000).name, 'Gold')
        self.assertEqual(get_rank(5000).name, 'Platinum')
        self.assertEqual(get_rank(25000).name, 'Diamond')

    def test_progress_toward_next_rank(self):
        info = get_user_rank_info(250)
        self.assertEqual(info.current.name, 'Bronze')
        self.assertEqual(info.next.name, 'Silver')
        self.assertEqual(info.progress, 50.0)
        self.assertEqual(info.points_needed, 250)

    def test_top_rank_has_no_next(self):
        info = get_user_rank_info(10000)
        self.assertEqual(info.current.name, 'Diamond')
        self.assertIsNone(info.next)
        self.assertEqual(info.progress, 100.0)
        self.assertEqual(info.points_needed, 0)

    def test_progress_inside_gold(self):
        info = get_user_rank_info(2500)
        self.assertEqual(info.current.name, 'Gold')
        self.assertEqual(info.next.name, 'Platinum')
        self.assertGreater(info.progress, 0)
        self.assertLess(info.progress, 100)
        self.assertEqual(info.points_needed, 2500)

    def test_no_progress_at_zero(self):
        info = get_user_rank_info(0)
        self.assertEqual(info.current.name, 'Bronze')
        self.assertEqual(info.progress, 0)
        self.assertEqual(info.points_needed, 500)

    def test_rank_never_drops_as_credits_grow(self):
        previous = rank_index(get_rank(0).name)
        for credits in range(0, 12001, 25):
            current = rank_index(get_rank(credits).name)
            self.assertGreaterEqual(current, previous, f'rank dropped at {credits} credits')
            previous = current

    def test_rank_index(self):
        self.assertLess(rank_index('bronze'), rank_index('Gold'))
        with self.assertRaises(ValueError):
            rank_index('Mythril')


class FormattingTests(TestCase):
    """Test Indian number grouping and date strings"""

    def test_format_number(self):
        self.assertEqual(format_number(0), '0')
        self.assertEqual(format_number(2500), '2,500')
        self.assertEqual(format_number(1234567.891), '12,34,567.891')
        self.assertEqual(format_number('100000'), '1,00,000')
        self.assertEqual(format_number(-1500.5), '-1,500.5')
        self.assertEqual(format_number(Decimal('12.3456')), '12.346')

    def test_format_number_rejects_non_numbers(self):
        for value in [None, 'abc', True, float('inf')]:
            with self.assertRaises(ValueError):
                format_number(value)

    def test_format_number_large_values(self):
        expected = '10,' + '00,' * 13 + '000'
        self.assertEqual(format_number(10 ** 30), expected)
        self.assertEqual(format_number(1e30), expected)
        self.assertEqual(format_number('-1e30'), '-' + expected)
        self.assertEqual(format_number('123456789012345678901234567890.5'),
                         '1,23,45,67,89,01,23,45,67,89,01,23,45,67,890.5')

    def test_formatting_is_idempotent(self):
        moment = datetime(2026, 9, 5, 18, 45)
        for value in [0, 2500, 1234567.891, '-1500.5', Decimal('12.3456'), 10 ** 30]:
            self.assertEqual(format_number(value), format_number(value))
        for value in [moment, moment.date(), '2026-03-14']:
            self.assertEqual(format_date(value), format_date(value))
        self.assertEqual(format_date(moment, include_time=False), format_date(moment, include_time=False))

    def test_format_date(self):
        self.assertEqual(format_date(date(2026, 9, 5)), '5 Sept 2026')
        self.assertEqual(format_date(datetime(2026, 10, 19, 14, 30)), '19 Oct 2026, 02:30 pm')
        self.assertEqual(format_date(datetime(2026, 1, 1, 0, 5)), '1 Jan 2026, 12:05 am')
        self.assertEqual(format_date(datetime(2026, 1, 1, 0, 5), include_time=False), '1 Jan 2026')
        self.assertEqual(format_date('2026-03-14'), '14 Mar 2026')
        with self.assertRaises(ValueError):
            format_date('not a date')

    def test_format_relative_time(self):
        now = timezone.now()
        self.assertEqual(format_relative_time(now - timedelta(seconds=30), now=now), 'Just now')
        self.assertEqual(format_relative_time(now - timedelta(minutes=1), now=now), '1 minute ago')
        self.assertEqual(format_relative_time(now - timedelta(minutes=5), now=now), '5 minutes ago')
        self.assertEqual(format_relative_time(now - timedelta(hours=3), now=now), '3 hours ago')
        self.assertEqual(format_relative_time(now - timedelta(days=2), now=now), '2 days ago')
        old = now - timedelta(days=10)
        self.assertEqual(format_relative_time(old, now=now), format_date(old, include_time=False))


class QRCodeTests(TestCase):
    """Test QR value generation and parsing"""

    def test_user_qr_code_format(self):
        code = generate_user_qr_code(1, 'ramesh')
        self.assertTrue(code.startswith(USER_QR_PREFIX))
        self.assertEqual(len(code), len(USER_QR_PREFIX) + 16)
        self.assertTrue(validate_qr_code_format(code, 'user'))
        self.assertFalse(validate_qr_code_format(code, 'booth'))

    def test_codes_are_unique(self):
        self.assertNotEqual(generate_user_qr_code(1, 'ramesh'), generate_user_qr_code(1, 'ramesh'))

    def test_parse_qr_code(self):
        parsed = parse_qr_code(generate_booth_qr_code('RAMGHAT01', 'Ramghat'))
        self.assertEqual(parsed['type'], 'booth')
        self.assertTrue(parsed['is_valid'])
        self.assertEqual(len(parsed['code']), 16)

        self.assertEqual(parse_qr_code('hello')['type'], 'unknown')
        self.assertFalse(parse_qr_code(f'{BOOTH_QR_PREFIX}xyz')['is_valid'])
        self.assertFalse(parse_qr_code(None)['is_valid'])

    def test_backup_code(self):
        self.assertTrue(validate_backup_code('abcd1234'))
        self.assertFalse(validate_backup_code('ABC'))
        self.assertFalse(validate_backup_code('ABCD-123'))


class UserModelTests(TestCase):
    """Test User model behaviour"""

    def test_codes_issued_on_create(self):
        user = TestDataFactory.create_user()
        self.assertTrue(validate_qr_code_format(user.qr_code, 'user'))
        self.assertTrue(validate_backup_code(user.backup_code))

    def test_rank_follows_credits(self):
        user = TestDataFactory.create_user(green_credits=600)
        self.assertEqual(user.rank, 'Silver')
        user.green_credits = 2100
        user.save(update_fields=['green_credits'])
        user.refresh_from_db()
        self.assertEqual(user.rank, 'Gold')

    def test_regenerate_qr_code(self):
        user = TestDataFactory.create_user()
        old_qr, old_backup = user.qr_code, user.backup_code
        user.regenerate_qr_code()
        user.refresh_from_db()
        self.assertNotEqual(user.qr_code, old_qr)
        self.assertNotEqual(user.backup_code, old_backup)

    def test_find_user(self):
        user = TestDataFactory.create_user()
        self.assertEqual(find_user(user.qr_code), user)
        self.assertEqual(find_user(user.backup_code.lower()), user)
        self.assertEqual(find_user(str(user.pk)), user)
        self.assertIsNone(find_user('SIMHASTHA_USER_0000000000000000'))
        self.assertIsNone(find_user(''))

        user.is_active = False
        user.save()
        self.assertIsNone(find_user(user.qr_code))
        self.assertEqual(find_user(user.qr_code, active_only=False), user)

    def test_get_setting(self):
        self.assertTrue(get_setting('allow_new_registrations', cast=bool))
        self.assertEqual(get_setting('leaderboard_size', cast=int), 10)
        self.assertEqual(get_setting('missing_key', default='x'), 'x')
        Setting.objects.create(key='broken_int', value='ten')
        self.assertEqual(get_setting('broken_int', default=5, cast=int), 5)


class PermissionTests(TestCase):
    """Test role helpers"""

    def test_roles(self):
        booth = TestDataFactory.create_booth()
        other_booth = TestDataFactory.create_booth()
        admin = TestDataFactory.create_admin()
        operator = TestDataFactory.create_operator(booth=booth)
        user = TestDataFactory.create_user()

        self.assertTrue(is_admin_user(admin))
        self.assertFalse(is_admin_user(operator))
        self.assertTrue(can_operate_booth(admin, other_booth))
        self.assertTrue(can_operate_booth(operator, booth))
        self.assertFalse(can_operate_booth(operator, other_booth))
        self.assertFalse(can_operate_booth(user, booth))

    def test_staff_without_groups_is_admin(self):
        staff = TestDataFactory.create_user(is_staff=True)
        self.assertTrue(is_admin_user(staff))


class AuthAPITests(CacheClearingTestCase):
    """Test registration, login, refresh and logout"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def test_register(self):
        data = {
            'username': 'pilgrim1',
            'email': 'pilgrim1@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'first_name': 'Asha',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['green_credits'], 0)
        self.assertEqual(response.data['user']['rank'], 'Bronze')
        self.assertTrue(response.data['user']['qr_code'].startswith(USER_QR_PREFIX))

    def test_register_password_mismatch(self):
        data = {
            'username': 'pilgrim2',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD + 'x',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@example.com')
        data = {
            'username': 'pilgrim3',
            'email': 'Taken@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_register_closed(self):
        Setting.objects.filter(key='allow_new_registrations').update(value='false')
        data = {'username': 'pilgrim4', 'password': STRONG_PASSWORD, 'password_confirm': STRONG_PASSWORD}
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_login(self):
        user = TestDataFactory.create_user(password=STRONG_PASSWORD)
        response = self.client.post('/api/v1/auth/login/', {
            'username': user.username, 'password': STRONG_PASSWORD
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['username'], user.username)
        self.assertEqual(response.data['user']['groups'], [])

    def test_login_wrong_password(self):
        user = TestDataFactory.create_user(password=STRONG_PASSWORD)
        response = self.client.post('/api/v1/auth/login/', {
            'username': user.username, 'password': 'wrong'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_login_refuses_participants(self):
        user = TestDataFactory.create_user(password=STRONG_PASSWORD)
        response = self.client.post('/api/v1/auth/admin/login/', {
            'username': user.username, 'password': STRONG_PASSWORD
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_login(self):
        admin = TestDataFactory.create_admin()
        admin.set_password(STRONG_PASSWORD)
        admin.save()
        response = self.client.post('/api/v1/auth/admin/login/', {
            'username': admin.username, 'password': STRONG_PASSWORD
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['user']['is_admin'])

    def test_refresh(self):
        user = TestDataFactory.create_user()
        refresh = RefreshToken.for_user(user)
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_logout_blacklists_refresh_token(self):
        user = TestDataFactory.create_user()
        refresh = str(RefreshToken.for_user(user))
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/auth/logout/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/v1/auth/logout/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_requires_token(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/auth/logout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class OTPLoginAPITests(CacheClearingTestCase):
    """Test phone number login with one-time passwords"""

    PHONE = '+919876543210'

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def request_otp(self, phone=None):
        response = self.client.post('/api/v1/auth/send-otp/', {'phone': phone or self.PHONE}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return cache.get(otp_cache_key(response.data['phone']))['code']

    def verify(self, code, **extra):
        data = {'phone': self.PHONE, 'otp': code}
        data.update(extra)
        return self.client.post('/api/v1/auth/verify-otp/', data, format='json')

    def test_send_otp(self):
        response = self.client.post('/api/v1/auth/send-otp/', {'phone': '+91 98765-43210'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], self.PHONE)
        self.assertEqual(response.data['expires_in'], OTP_TTL_SECONDS)
        self.assertNotIn('otp', response.data)
        stored = cache.get(otp_cache_key(self.PHONE))
        self.assertEqual(len(stored['code']), 6)
        self.assertEqual(stored['attempts'], 0)

    def test_send_otp_invalid_phone(self):
        for phone in ['', 'abc', '0123456', '+1234567890123456']:
            response = self.client.post('/api/v1/auth/send-otp/', {'phone': phone}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('phone', response.data)

    def test_first_login_registers_user(self):
        code = self.request_otp()
        response = self.verify(code, name='Asha Verma')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_new_user'])
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

        user = User.objects.get(phone=self.PHONE)
        self.assertEqual(user.first_name, 'Asha')
        self.assertEqual(user.last_name, 'Verma')
        self.assertFalse(user.has_usable_password())
        self.assertTrue(user.qr_code.startswith(USER_QR_PREFIX))
        self.assertIsNone(cache.get(otp_cache_key(self.PHONE)))

    def test_first_login_requires_name(self):
        code = self.request_otp()
        response = self.verify(code, name='A')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        self.assertFalse(User.objects.filter(phone=self.PHONE).exists())

    def test_first_login_when_registrations_closed(self):
        Setting.objects.filter(key='allow_new_registrations').update(value='false')
        code = self.request_otp()
        response = self.verify(code, name='Asha Verma')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_existing_user_login(self):
        user = TestDataFactory.create_user(phone=self.PHONE)
        code = self.request_otp()
        response = self.verify(code)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_new_user'])
        self.assertEqual(response.data['user']['id'], user.id)
        self.assertEqual(User.objects.filter(phone=self.PHONE).count(), 1)

    def test_code_is_single_use(self):
        TestDataFactory.create_user(phone=self.PHONE)
        code = self.request_otp()
        self.assertEqual(self.verify(code).status_code, status.HTTP_200_OK)
        response = self.verify(code)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'otp_invalid')

    def test_expired_code(self):
        TestDataFactory.create_user(phone=self.PHONE)
        code = self.request_otp()
        key = otp_cache_key(self.PHONE)
        stored = cache.get(key)
        stored['expires_at'] = time.time() - 1
        cache.set(key, stored, OTP_TTL_SECONDS)

        response = self.verify(code)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('expired', response.data['error'])
        self.assertIsNone(cache.get(key))

    def test_attempt_limit(self):
        TestDataFactory.create_user(phone=self.PHONE)
        code = self.request_otp()
        wrong = '000000' if code != '000000' else '111111'

        for remaining in range(OTP_MAX_ATTEMPTS - 1, -1, -1):
            response = self.verify(wrong)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn(f'{remaining} attempts remaining', response.data['error'])

        response = self.verify(code)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Maximum OTP attempts', response.data['error'])
        self.assertIsNone(cache.get(otp_cache_key(self.PHONE)))

    def test_disabled_user_refused(self):
        TestDataFactory.create_user(phone=self.PHONE, is_active=False)
        code = self.request_otp()
        response = self.verify(code)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class CurrentUserAPITests(CacheClearingTestCase):
    """Test /users/me endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(green_credits=750)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/users/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_get_profile(self):
        response = self.client.get('/api/v1/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['green_credits'], 750)
        self.assertEqual(response.data['green_credits_display'], '750')
        self.assertEqual(response.data['rank'], 'Silver')
        self.assertEqual(response.data['rank_info']['next']['name'], 'Gold')
        self.assertFalse(response.data['is_admin'])
        self.assertEqual(response.data['assigned_booths'], [])

    def test_update_profile_ignores_credit_fields(self):
        response = self.client.patch('/api/v1/users/me/', {
            'first_name': 'Ravi', 'green_credits': 99999
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, 'Ravi')
        self.assertEqual(self.user.green_credits, 750)

    def test_deactivate_own_account(self):
        response = self.client.delete('/api/v1/users/me/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)

    def test_qr_card(self):
        response = self.client.get('/api/v1/users/me/qr/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['qr_code'], self.user.qr_code)
        self.assertTrue(response.data['card'].startswith('data:image/png;base64,'))

    def test_regenerate_qr(self):
        old_code = self.user.qr_code
        response = self.client.post('/api/v1/users/me/qr/regenerate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotEqual(response.data['qr_code'], old_code)
        self.assertTrue(AuditLog.objects.filter(action='qr_regenerate', object_id=str(self.user.id)).exists())


class UserAdminAPITests(CacheClearingTestCase):
    """Test admin user management"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_participant_cannot_list_users(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_and_search_users(self):
        TestDataFactory.create_user(username='sadhu_one')
        TestDataFactory.create_user(username='pilgrim_two')
        response = self.client.get('/api/v1/users/?search=sadhu')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['username'], 'sadhu_one')

    def test_filter_by_rank(self):
        TestDataFactory.create_user(green_credits=2500)
        response = self.client.get('/api/v1/users/?rank=gold')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_deactivate_user(self):
        user = TestDataFactory.create_user()
        response = self.client.post(f'/api/v1/users/{user.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertFalse(user.is_active)
        self.assertTrue(AuditLog.objects.filter(action='user_status', object_id=str(user.id)).exists())

    def test_cannot_deactivate_self(self):
        response = self.client.post(f'/api/v1/users/{self.admin.id}/status/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        user = TestDataFactory.create_user()
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='delete', object_id=str(user.id)).exists())

    def test_delete_user_with_history(self):
        user = TestDataFactory.create_user()
        record_transaction(user, 'bonus', 10)
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=user.pk).exists())

    def test_audit_log_invalid_date(self):
        response = self.client.get('/api/v1/audit-logs/?date_from=19-10-2026')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_settings(self):
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        keys = [row['key'] for row in response.data]
        self.assertIn('allow_new_registrations', keys)
        self.assertIn('leaderboard_size', keys)

        setting = Setting.objects.get(key='leaderboard_size')
        response = self.client.patch(f'/api/v1/settings/{setting.id}/', {'value': '25'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_setting('leaderboard_size', cast=int), 25)

    def test_audit_logs_visible_to_admin(self):
        user = TestDataFactory.create_user()
        self.client.post(f'/api/v1/users/{user.id}/status/', {'is_active': False}, format='json')
        response = self.client.get('/api/v1/audit-logs/?action=user_status')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertGreaterEqual(response.data['count'], 1)

    def test_global_search(self):
        booth = TestDataFactory.create_booth(name='Ramghat Search Booth')
        TestDataFactory.create_reward(name='Ramghat Prasad')
        response = self.client.get('/api/v1/search/?q=Ramghat')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['booths'][0]['id'], booth.id)
        self.assertEqual(len(response.data['rewards']), 1)

    def test_global_search_hides_rewards_from_operators(self):
        operator = TestDataFactory.create_operator()
        TestDataFactory.create_reward(name='Ramghat Prasad')
        self.client.authenticate_user(operator)
        response = self.client.get('/api/v1/search/?q=Ramghat')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rewards'], [])


class ManagementCommandTests(TestCase):
    """Test core management commands"""

    def test_create_user_groups(self):
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        self.assertTrue(Group.objects.filter(name=ADMIN_GROUP).exists())
        operator_group = Group.objects.get(name=BOOTH_OPERATOR_GROUP)
        codenames = set(operator_group.permissions.values_list('codename', flat=True))
        self.assertIn('change_wastesubmission', codenames)
        self.assertNotIn('delete_reward', codenames)

    def test_create_admin(self):
        call_command('create_admin', username='chief', password=STRONG_PASSWORD, stdout=StringIO())
        admin = User.objects.get(username='chief')
        self.assertTrue(admin.is_staff)
        self.assertTrue(is_admin_user(admin))
        self.assertTrue(admin.check_password(STRONG_PASSWORD))

    def test_create_operator(self):
        booth = TestDataFactory.create_booth(code='GHAT7')
        call_command('create_admin', username='ghatstaff', password=STRONG_PASSWORD,
                     operator_booth=['ghat7'], stdout=StringIO())
        operator = User.objects.get(username='ghatstaff')
        self.assertFalse(is_admin_user(operator))
        self.assertTrue(can_operate_booth(operator, booth))

    def test_seed_demo_data_is_idempotent(self):
        call_command('seed_demo_data', stdout=StringIO())
        call_command('seed_demo_data', stdout=StringIO())
        self.assertEqual(CollectionBooth.objects.filter(code='RAMGHAT01').count(), 1)
        self.assertEqual(CollectionBooth.objects.count(), 5)
        self.assertEqual(Reward.objects.count(), 7)
        reward = Reward.objects.get(name='Bus Pass Voucher')
        self.assertEqual(reward.stock_available, reward.stock_total)
