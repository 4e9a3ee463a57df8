"""
Test suite for the booths module
Tests: opening hours, daily capacity, lookups, nearby search, QR validation, statistics, operators
"""
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from bin2win.booths.geo import bounding_box, haversine_km, longitude_ranges
from bin2win.booths.models import CollectionBooth, find_booth
from bin2win.core.models import AuditLog
from bin2win.core.permissions import can_operate_booth, is_booth_operator
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase


def local_moment(year, month, day, hour, minute=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute))


class GeoTests(TestCase):
    """Test distance helpers"""

    def test_haversine(self):
        self.assertEqual(haversine_km(23.1824, 75.7683, 23.1824, 75.7683), 0)
        # Ramghat to Nanakheda is roughly 4 km
        distance = haversine_km(23.1824, 75.7683, 23.1551, 75.7898)
        self.assertGreater(distance, 3)
        self.assertLess(distance, 5)

    def test_bounding_box_encloses_point(self):
        min_lat, max_lat, lng_ranges = bounding_box(23.1824, 75.7683, 10)
        self.assertEqual(len(lng_ranges), 1)
        min_lng, max_lng = lng_ranges[0]
        self.assertLess(min_lat, 23.1824)
        self.assertGreater(max_lat, 23.1824)
        self.assertLess(min_lng, 75.7683)
        self.assertGreater(max_lng, 75.7683)

    def test_bounding_box_wraps_antimeridian(self):
        _, _, lng_ranges = bounding_box(0, 179.99, 10)
        self.assertEqual(len(lng_ranges), 2)
        (east_min, east_max), (west_min, west_max) = lng_ranges
        self.assertLess(east_min, 179.99)
        self.assertEqual(east_max, 180.0)
        self.assertEqual(west_min, -180.0)
        self.assertGreater(west_max, -180.0)
        self.assertLess(west_max, -179.8)

    def test_longitude_ranges(self):
        self.assertEqual(longitude_ranges(10, 20), [(10, 20)])
        self.assertEqual(longitude_ranges(-185, -175), [(175, 180.0), (-180.0, -175)])
        self.assertEqual(longitude_ranges(170, 190), [(170, 180.0), (-180.0, 10)])
        self.assertEqual(longitude_ranges(-10, 350), [(-180.0, 180.0)])


class BoothModelTests(TestCase):
    """Test CollectionBooth status and capacity rules"""

    def setUp(self):
        # 19 Oct 2026 is a Monday
        self.monday_noon = local_moment(2026, 10, 19, 12)

    def test_codes_issued_on_create(self):
        booth = TestDataFactory.create_booth(code='ghat1')
        self.assertEqual(booth.code, 'GHAT1')
        self.assertTrue(booth.qr_code.startswith('SIMHASTHA_BOOTH_'))
        self.assertEqual(len(booth.backup_code), 8)

    def test_regular_hours(self):
        booth = TestDataFactory.create_booth(is_open_24_hours=False,
                                             opening_time=time(6, 0), closing_time=time(20, 0))
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_OPEN)
        self.assertEqual(booth.current_status(local_moment(2026, 10, 19, 21)), CollectionBooth.STATUS_CLOSED)
        self.assertEqual(booth.current_status(local_moment(2026, 10, 19, 5, 59)), CollectionBooth.STATUS_CLOSED)

    def test_overnight_hours(self):
        booth = TestDataFactory.create_booth(is_open_24_hours=False,
                                             opening_time=time(20, 0), closing_time=time(6, 0))
        self.assertEqual(booth.current_status(local_moment(2026, 10, 19, 23)), CollectionBooth.STATUS_OPEN)
        self.assertEqual(booth.current_status(local_moment(2026, 10, 19, 3)), CollectionBooth.STATUS_OPEN)
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_CLOSED)

    def test_closed_day(self):
        booth = TestDataFactory.create_booth(closed_days=['Monday'])
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_CLOSED_TODAY)
        can_accept, reason = booth.can_accept_waste(1, now=self.monday_noon)
        self.assertFalse(can_accept)
        self.assertEqual(reason, 'Booth is currently closed')

    def test_inactive(self):
        booth = TestDataFactory.create_booth(is_active=False)
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_INACTIVE)
        self.assertEqual(booth.can_accept_waste(1, now=self.monday_noon), (False, 'Booth is inactive'))

    def test_full_booth(self):
        booth = TestDataFactory.create_booth(max_kg_per_day=Decimal('50'), kg_today=Decimal('50'),
                                             last_reset_date=self.monday_noon.date())
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_FULL)
        # A new day starts with an empty booth
        tuesday = self.monday_noon + timedelta(days=1)
        self.assertEqual(booth.current_status(tuesday), CollectionBooth.STATUS_OPEN)

    def test_quantity_over_remaining_capacity(self):
        booth = TestDataFactory.create_booth(max_kg_per_day=Decimal('50'), kg_today=Decimal('49'),
                                             last_reset_date=self.monday_noon.date())
        can_accept, reason = booth.can_accept_waste(Decimal('2'), now=self.monday_noon)
        self.assertFalse(can_accept)
        self.assertIn('exceed', reason)
        self.assertTrue(booth.can_accept_waste(Decimal('1'), now=self.monday_noon)[0])

    def test_submission_limit(self):
        booth = TestDataFactory.create_booth(max_submissions_per_day=10, submissions_today=10,
                                             last_reset_date=self.monday_noon.date())
        self.assertEqual(booth.current_status(self.monday_noon), CollectionBooth.STATUS_FULL)

    def test_accepted_waste_types(self):
        booth = TestDataFactory.create_booth(accepted_waste_types=['plastic', 'paper'])
        self.assertTrue(booth.can_accept_waste(1, 'plastic', now=self.monday_noon)[0])
        can_accept, reason = booth.can_accept_waste(1, 'metal', now=self.monday_noon)
        self.assertFalse(can_accept)
        self.assertIn('metal', reason)

    def test_record_submission_resets_stale_counters(self):
        yesterday = self.monday_noon.date() - timedelta(days=1)
        booth = TestDataFactory.create_booth(kg_today=Decimal('30'), submissions_today=4, last_reset_date=yesterday)
        booth.record_submission(Decimal('2.5'), now=self.monday_noon)
        self.assertEqual(booth.kg_today, Decimal('2.5'))
        self.assertEqual(booth.submissions_today, 1)
        self.assertEqual(booth.last_reset_date, self.monday_noon.date())
        self.assertEqual(booth.total_collected_kg, Decimal('2.5'))
        self.assertEqual(booth.total_submissions, 1)

    def test_capacity_utilization(self):
        booth = TestDataFactory.create_booth(max_kg_per_day=Decimal('200'), kg_today=Decimal('50'),
                                             max_submissions_per_day=100, submissions_today=10,
                                             last_reset_date=self.monday_noon.date())
        self.assertEqual(booth.capacity_utilization(self.monday_noon), {'weight': 25.0, 'submissions': 10.0})

    def test_find_booth(self):
        booth = TestDataFactory.create_booth(code='GHAT2')
        self.assertEqual(find_booth('ghat2'), booth)
        self.assertEqual(find_booth(booth.qr_code), booth)
        self.assertEqual(find_booth(booth.backup_code.lower()), booth)
        self.assertIsNone(find_booth('NOPE'))
        booth.is_active = False
        booth.save()
        self.assertIsNone(find_booth('GHAT2'))
        self.assertEqual(find_booth('GHAT2', active_only=False), booth)


class BoothAPITests(CacheClearingTestCase):
    """Test public booth endpoints and admin management"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.ramghat = TestDataFactory.create_booth(name='Ramghat', code='RAMGHAT01')
        self.far_booth = TestDataFactory.create_booth(name='Far Booth', latitude='23.250000', longitude='75.800000')
        self.closed = TestDataFactory.create_booth(name='Old Booth', is_active=False)

    def test_public_list_hides_inactive(self):
        response = self.client.get('/api/v1/booths/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [booth['name'] for booth in response.data]
        self.assertIn('Ramghat', names)
        self.assertNotIn('Old Booth', names)
        self.assertEqual(response.data[0]['current_status'], 'open')

    def test_admin_list_includes_inactive(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/booths/')
        self.assertEqual(len(response.data), 3)

    def test_search(self):
        response = self.client.get('/api/v1/booths/?search=ramghat01')
        self.assertEqual([booth['id'] for booth in response.data], [self.ramghat.id])

    def test_filter_by_waste_type(self):
        TestDataFactory.create_booth(name='Paper Only', accepted_waste_types=['paper'])
        response = self.client.get('/api/v1/booths/?waste_type=metal')
        names = [booth['name'] for booth in response.data]
        self.assertNotIn('Paper Only', names)
        self.assertIn('Ramghat', names)

    def test_create_booth(self):
        self.client.authenticate_user(self.admin)
        data = {
            'name': 'Mahakal Gate',
            'code': 'mahakal01',
            'latitude': '23.182800',
            'longitude': '75.768200',
            'address': 'Gate 4',
            'area': 'Mahakal',
            'pincode': '456006',
            'closed_days': ['Sunday'],
        }
        response = self.client.post('/api/v1/booths/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'MAHAKAL01')
        self.assertEqual(response.data['closed_days'], ['sunday'])
        self.assertTrue(AuditLog.objects.filter(model_name='CollectionBooth', action='create').exists())

    def test_create_booth_validation(self):
        self.client.authenticate_user(self.admin)
        data = {
            'name': 'Bad Booth',
            'code': 'RAMGHAT01',
            'latitude': '123.0',
            'longitude': '75.0',
            'address': 'x',
            'area': 'x',
            'pincode': '45',
            'accepted_waste_types': ['styrofoam'],
        }
        response = self.client.post('/api/v1/booths/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        for field in ('code', 'latitude', 'pincode', 'accepted_waste_types'):
            self.assertIn(field, response.data)

    def test_participant_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/booths/', {'name': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_and_update(self):
        response = self.client.get(f'/api/v1/booths/{self.ramghat.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['code'], 'RAMGHAT01')

        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/booths/{self.ramghat.id}/', {'landmark': 'Near steps'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        # The save signal dropped the cached copy
        response = self.client.get(f'/api/v1/booths/{self.ramghat.id}/')
        self.assertEqual(response.data['landmark'], 'Near steps')

    def test_delete_booth_without_history(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/booths/{self.far_booth.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(CollectionBooth.objects.filter(pk=self.far_booth.id).exists())

    def test_delete_booth_with_history_deactivates(self):
        TestDataFactory.create_submission(TestDataFactory.create_user(), booth=self.ramghat)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/booths/{self.ramghat.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.ramghat.refresh_from_db()
        self.assertFalse(self.ramghat.is_active)

    def test_nearby(self):
        response = self.client.get('/api/v1/booths/nearby/?lat=23.1825&lng=75.7684&radius=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.ramghat.id)
        self.assertLess(response.data['results'][0]['distance_km'], 1)

    def test_nearby_sorted_by_distance(self):
        response = self.client.get('/api/v1/booths/nearby/?lat=23.1825&lng=75.7684&radius=50')
        ids = [booth['id'] for booth in response.data['results']]
        self.assertEqual(ids, [self.ramghat.id, self.far_booth.id])

    def test_nearby_across_antimeridian(self):
        fiji = TestDataFactory.create_booth(latitude='-17.000000', longitude='179.990000')
        response = self.client.get('/api/v1/booths/nearby/?lat=-17&lng=-179.99&radius=10')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([booth['id'] for booth in response.data['results']], [fiji.id])
        self.assertLess(response.data['results'][0]['distance_km'], 3)

    def test_nearby_validation(self):
        for query in ['', '?lat=23', '?lat=abc&lng=75', '?lat=95&lng=75', '?lat=23&lng=75&radius=500',
                      '?lat=23&lng=75&radius=0']:
            response = self.client.get(f'/api/v1/booths/nearby/{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)


class BoothQRAPITests(CacheClearingTestCase):
    """Test booth QR validation and posters"""

    def setUp(self):
        super().setUp()
        self.booth = TestDataFactory.create_booth()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_validate_qr(self):
        response = self.client.post('/api/v1/booths/validate-qr/', {'qr_code': self.booth.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertTrue(response.data['can_accept'])
        self.assertEqual(response.data['booth']['id'], self.booth.id)

    def test_validate_backup_code(self):
        response = self.client.post('/api/v1/booths/validate-qr/', {'backup_code': self.booth.backup_code},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_validate_rejects_user_qr(self):
        user = TestDataFactory.create_user()
        response = self.client.post('/api/v1/booths/validate-qr/', {'qr_code': user.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_validate_unknown_and_inactive(self):
        response = self.client.post('/api/v1/booths/validate-qr/',
                                    {'qr_code': 'SIMHASTHA_BOOTH_0123456789ABCDEF'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.booth.is_active = False
        self.booth.save()
        response = self.client.post('/api/v1/booths/validate-qr/', {'qr_code': self.booth.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_validate_requires_value(self):
        response = self.client.post('/api/v1/booths/validate-qr/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_qr_card_requires_operator(self):
        response = self.client.get(f'/api/v1/booths/{self.booth.id}/qr-card/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        operator = TestDataFactory.create_operator(booth=self.booth)
        self.client.authenticate_user(operator)
        response = self.client.get(f'/api/v1/booths/{self.booth.id}/qr-card/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['card'].startswith('data:image/png;base64,'))


class BoothOperatorAPITests(CacheClearingTestCase):
    """Test booth statistics and operator assignment"""

    def setUp(self):
        super().setUp()
        self.booth = TestDataFactory.create_booth()
        self.operator = TestDataFactory.create_operator(booth=self.booth)
        self.client = AuthenticatedAPIClient()

    def test_statistics(self):
        user = TestDataFactory.create_user()
        TestDataFactory.create_submission(user, booth=self.booth, quantity='2.00', points=20, status='approved')
        TestDataFactory.create_submission(user, booth=self.booth, waste_type='metal', quantity='3.00', points=50,
                                          status='approved')
        TestDataFactory.create_submission(user, booth=self.booth, status='pending')

        self.client.authenticate_user(self.operator)
        response = self.client.get(f'/api/v1/booths/{self.booth.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_kg'], Decimal('5.00'))
        self.assertEqual(response.data['total_points'], 70)
        self.assertEqual(response.data['total_submissions'], 2)
        self.assertEqual(response.data['unique_users'], 1)
        self.assertEqual(response.data['pending_submissions'], 1)
        self.assertEqual(response.data['by_waste_type'][0]['waste_type'], 'metal')

    def test_statistics_other_booth_forbidden(self):
        other_booth = TestDataFactory.create_booth()
        self.client.authenticate_user(self.operator)
        response = self.client.get(f'/api/v1/booths/{other_booth.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_statistics_participant_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/booths/{self.booth.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_statistics_bad_date(self):
        self.client.authenticate_user(self.operator)
        response = self.client.get(f'/api/v1/booths/{self.booth.id}/statistics/?date_from=19-10-2026')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assign_operators(self):
        admin = TestDataFactory.create_admin()
        volunteer = TestDataFactory.create_user()
        self.client.authenticate_user(admin)
        response = self.client.post(f'/api/v1/booths/{self.booth.id}/operators/', {
            'add': [volunteer.id], 'remove': [self.operator.id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['operators'], [volunteer.id])
        self.assertTrue(is_booth_operator(volunteer))
        self.assertTrue(can_operate_booth(volunteer, self.booth))
        self.assertFalse(can_operate_booth(self.operator, self.booth))

    def test_assign_operators_requires_users(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post(f'/api/v1/booths/{self.booth.id}/operators/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
