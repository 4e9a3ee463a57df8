"""
Test suite for the reports module
Tests: leaderboards, participant dashboard and statistics, admin dashboard, analytics, CSV exports
"""
import csv
import io
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone
from rest_framework import status

from bin2win.core.models import AuditLog
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase
from bin2win.credits.models import CreditTransaction
from bin2win.credits.services import record_transaction
from bin2win.rewards.services import redeem_reward


class LeaderboardAPITests(CacheClearingTestCase):
    """Test leaderboard periods, ties and the caller's own position"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.asha = TestDataFactory.create_user(username='asha')
        self.bhavesh = TestDataFactory.create_user(username='bhavesh')
        self.chetna = TestDataFactory.create_user(username='chetna')
        self.deepak = TestDataFactory.create_user(username='deepak')
        record_transaction(self.asha, 'earn', 900)
        record_transaction(self.bhavesh, 'earn', 900)
        record_transaction(self.chetna, 'earn', 300)
        record_transaction(self.chetna, 'penalty', 100)
        record_transaction(self.deepak, 'earn', 400)
        # Deepak earned everything two months ago
        CreditTransaction.objects.filter(user=self.deepak).update(created_at=timezone.now() - timedelta(days=60))

        # Staff, operators and inactive accounts never rank
        record_transaction(TestDataFactory.create_admin(), 'bonus', 5000)
        record_transaction(TestDataFactory.create_operator(), 'bonus', 5000)
        record_transaction(TestDataFactory.create_user(is_active=False), 'bonus', 5000)

    def _usernames(self, response):
        return [entry['username'] for entry in response.data['results']]

    def test_all_time(self):
        response = self.client.get('/api/v1/leaderboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], 'all')
        self.assertEqual(response.data['limit'], 10)
        self.assertEqual(self._usernames(response), ['asha', 'bhavesh', 'deepak', 'chetna'])
        self.assertEqual([entry['position'] for entry in response.data['results']], [1, 1, 3, 4])
        self.assertEqual(response.data['results'][3]['score'], 200)
        self.assertEqual(response.data['results'][0]['rank'], 'Silver')
        self.assertIsNone(response.data['me'])

    def test_week_counts_only_recent_earnings(self):
        response = self.client.get('/api/v1/leaderboard/?period=week')
        self.assertEqual(self._usernames(response), ['asha', 'bhavesh', 'chetna'])
        # Penalties do not reduce period scores
        self.assertEqual(response.data['results'][2]['score'], 300)

    def test_month(self):
        response = self.client.get('/api/v1/leaderboard/?period=month')
        self.assertNotIn('deepak', self._usernames(response))

    def test_limit(self):
        response = self.client.get('/api/v1/leaderboard/?limit=2')
        self.assertEqual(len(response.data['results']), 2)
        response = self.client.get('/api/v1/leaderboard/?limit=many')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_period(self):
        response = self.client.get('/api/v1/leaderboard/?period=year')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_my_position(self):
        self.client.authenticate_user(self.chetna)
        response = self.client.get('/api/v1/leaderboard/')
        self.assertEqual(response.data['me'], {'position': 4, 'score': 200})
        response = self.client.get('/api/v1/leaderboard/?period=week')
        self.assertEqual(response.data['me'], {'position': 3, 'score': 300})

    def test_tied_position(self):
        self.client.authenticate_user(self.bhavesh)
        response = self.client.get('/api/v1/leaderboard/')
        self.assertEqual(response.data['me']['position'], 1)


class ParticipantReportAPITests(CacheClearingTestCase):
    """Test the participant dashboard and personal statistics"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        record_transaction(self.user, 'earn', 1500)
        self.booth = TestDataFactory.create_booth()
        TestDataFactory.create_submission(self.user, booth=self.booth, waste_type='plastic', quantity='2.00',
                                          points=20, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, waste_type='metal', quantity='3.00',
                                          points=50, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, waste_type='organic', quantity='1.00',
                                          points=5, status='pending')
        self.cheap = TestDataFactory.create_reward(points_required=100)
        self.mid = TestDataFactory.create_reward(points_required=500)
        TestDataFactory.create_reward(points_required=2000)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_dashboard(self):
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['green_credits'], 1500)
        self.assertEqual(response.data['user']['green_credits_display'], '1,500')
        self.assertEqual(response.data['user']['rank'], 'Silver')
        self.assertEqual(response.data['user']['rank_info']['next']['name'], 'Gold')

        stats = response.data['stats']
        self.assertEqual(stats['pending_submissions'], 1)
        self.assertEqual(stats['pending_points'], 5)
        self.assertEqual(stats['co2_saved_kg'], Decimal('14.00'))
        self.assertEqual(stats['redemptions'], 0)

        self.assertEqual(len(response.data['recent_submissions']), 3)
        self.assertEqual(len(response.data['recent_transactions']), 1)
        self.assertEqual(response.data['recent_submissions'][0]['created_ago'], 'Just now')
        self.assertEqual(response.data['recent_transactions'][0]['created_ago'], 'Just now')
        self.assertEqual([row['id'] for row in response.data['affordable_rewards']], [self.mid.id, self.cheap.id])

    def test_dashboard_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_statistics(self):
        response = self.client.get('/api/v1/users/me/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_type = response.data['by_waste_type']
        self.assertEqual([row['waste_type'] for row in by_type], ['metal', 'plastic'])
        self.assertEqual(by_type[0]['co2_saved_kg'], Decimal('9.00'))
        self.assertEqual(by_type[1]['total_points'], 20)
        self.assertEqual(response.data['total_co2_saved_kg'], Decimal('14.00'))
        self.assertEqual(response.data['favourite_waste_type'], 'metal')
        self.assertEqual(response.data['status_breakdown'], {'approved': 2, 'pending': 1})

        trend = response.data['monthly_trend']
        self.assertEqual(len(trend), 1)
        self.assertEqual(trend[0]['month'], timezone.localtime().strftime('%Y-%m'))
        self.assertEqual(trend[0]['submissions'], 2)

    def test_statistics_without_submissions(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/users/me/statistics/')
        self.assertEqual(response.data['by_waste_type'], [])
        self.assertIsNone(response.data['favourite_waste_type'])
        self.assertEqual(response.data['total_co2_saved_kg'], Decimal('0'))


class AdminReportAPITests(CacheClearingTestCase):
    """Test the admin dashboard, analytics and exports"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user(username='ravi')
        self.other = TestDataFactory.create_user(username='meena')
        record_transaction(self.user, 'earn', 600)
        self.booth = TestDataFactory.create_booth(name='Ramghat', code='RAMGHAT01')
        TestDataFactory.create_booth(is_active=False)
        TestDataFactory.create_submission(self.user, booth=self.booth, quantity='2.00', points=20, status='approved')
        TestDataFactory.create_submission(self.other, booth=self.booth, quantity='1.00', points=10)
        self.reward = TestDataFactory.create_reward(points_required=100)
        TestDataFactory.create_reward(stock=0)
        self.redemption = redeem_reward(self.user, self.reward)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_dashboard_is_admin_only(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard(self):
        response = self.client.get('/api/v1/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['users']['total'], 2)
        self.assertEqual(response.data['users']['by_rank']['Silver'], 1)
        self.assertEqual(response.data['users']['by_rank']['Bronze'], 1)

        waste = response.data['waste']
        self.assertEqual(waste['total_kg'], Decimal('2.00'))
        self.assertEqual(waste['total_points_awarded'], 20)
        self.assertEqual(waste['approved_submissions'], 1)
        self.assertEqual(waste['pending_submissions'], 1)
        self.assertEqual(response.data['today']['submissions'], 1)

        self.assertEqual(response.data['credits'], {'in_circulation': 500, 'redeemed': 100})
        self.assertEqual(response.data['rewards'], {'active': 2, 'out_of_stock': 1, 'open_orders': 1})
        self.assertEqual(response.data['booths'], {'open': 1, 'inactive': 1})
        self.assertEqual(len(response.data['recent_pending']), 1)

    def test_analytics(self):
        response = self.client.get('/api/v1/admin/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_type = response.data['waste']['by_type']
        self.assertEqual(len(by_type), 1)
        self.assertEqual(by_type[0]['waste_type__code'], 'plastic')
        self.assertEqual(by_type[0]['total_kg'], Decimal('2.00'))

        top_booths = response.data['booths']['top_by_kg']
        self.assertEqual([booth['code'] for booth in top_booths], ['RAMGHAT01'])
        self.assertEqual(top_booths[0]['submissions'], 1)

        categories = response.data['rewards']['by_category']
        self.assertEqual(categories[0]['reward__category'], 'prasad')
        self.assertEqual(categories[0]['points'], 100)
        self.assertEqual(response.data['rewards']['top_rewards'][0]['reward_id'], self.reward.id)

    def test_analytics_date_range(self):
        today = timezone.localdate()
        response = self.client.get(f'/api/v1/admin/analytics/?date_from={today - timedelta(days=10)}'
                                   f'&date_to={today - timedelta(days=5)}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['waste']['by_type'], [])
        self.assertEqual(response.data['booths']['top_by_kg'], [])

        response = self.client.get('/api/v1/admin/analytics/?date_from=2026-10-20&date_to=2026-10-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/admin/analytics/?date_from=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def _csv_rows(self, response):
        return list(csv.reader(io.StringIO(response.content.decode('utf-8'))))

    def test_export_users(self):
        response = self.client.get('/api/v1/admin/export/?type=users')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('bin2win-users-', response['Content-Disposition'])
        rows = self._csv_rows(response)
        self.assertEqual(rows[0][:3], ['id', 'username', 'email'])
        self.assertEqual(len(rows), 4)

        log = AuditLog.objects.get(action='export')
        self.assertEqual(log.changes['rows'], 3)

    def test_export_transactions(self):
        response = self.client.get('/api/v1/admin/export/?type=transactions')
        rows = self._csv_rows(response)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[1][2], 'redeem')
        self.assertEqual(rows[1][3], '-100')

    def test_export_submissions_with_date_range(self):
        response = self.client.get('/api/v1/admin/export/?type=submissions&date_from=2020-01-01&date_to=2020-01-31')
        self.assertEqual(len(self._csv_rows(response)), 1)

    def test_export_validation(self):
        response = self.client.get('/api/v1/admin/export/?type=booths')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/admin/export/?type=users')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
