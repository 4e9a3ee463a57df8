"""
Test suite for the credits module
Tests: ledger writes, sign conventions, balances, summaries, admin adjustments, balance repair
"""
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from rest_framework import status

from bin2win.core.exceptions import Bin2WinError, InsufficientCredits
from bin2win.core.models import AuditLog
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase
from bin2win.credits.models import CreditTransaction
from bin2win.credits.services import record_transaction, signed_points

User = get_user_model()


class RecordTransactionTests(CacheClearingTestCase):
    """Test the single path that changes balances"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()

    def test_sign_convention(self):
        self.assertEqual(signed_points('earn', -10), 10)
        self.assertEqual(signed_points('refund', 10), 10)
        self.assertEqual(signed_points('redeem', 10), -10)
        self.assertEqual(signed_points('penalty', -10), -10)
        self.assertEqual(signed_points('adjustment', -10), -10)
        with self.assertRaises(Bin2WinError):
            signed_points('earn', 0)
        with self.assertRaises(Bin2WinError):
            signed_points('gift', 10)
        with self.assertRaises(Bin2WinError):
            signed_points('earn', 'ten')

    def test_earn(self):
        entry = record_transaction(self.user, 'earn', 120, description='Plastic drop-off')
        self.assertEqual(entry.points, 120)
        self.assertEqual(entry.balance_before, 0)
        self.assertEqual(entry.balance_after, 120)
        self.assertEqual(entry.status, 'completed')
        self.assertTrue(entry.reference_number.startswith('TXN-'))
        # The caller's instance is kept in step
        self.assertEqual(self.user.green_credits, 120)
        self.assertEqual(self.user.total_points_earned, 120)

    def test_balance_chain(self):
        record_transaction(self.user, 'earn', 100)
        record_transaction(self.user, 'bonus', 50)
        entry = record_transaction(self.user, 'redeem', 30)
        self.assertEqual(entry.points, -30)
        self.assertEqual(entry.balance_before, 150)
        self.assertEqual(entry.balance_after, 120)

        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 120)
        self.assertEqual(self.user.total_points_earned, 150)
        self.assertEqual(self.user.total_points_redeemed, 30)

    def test_insufficient_credits(self):
        record_transaction(self.user, 'earn', 20)
        with self.assertRaises(InsufficientCredits):
            record_transaction(self.user, 'redeem', 50)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 20)
        self.assertEqual(CreditTransaction.objects.filter(user=self.user).count(), 1)

    def test_rank_promotion(self):
        record_transaction(self.user, 'earn', 499)
        self.assertEqual(self.user.rank, 'Bronze')
        record_transaction(self.user, 'earn', 1)
        self.assertEqual(self.user.rank, 'Silver')
        self.user.refresh_from_db()
        self.assertEqual(self.user.rank, 'Silver')

    def test_penalty_can_demote(self):
        record_transaction(self.user, 'earn', 600)
        record_transaction(self.user, 'penalty', 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 400)
        self.assertEqual(self.user.rank, 'Bronze')
        # Penalties are not counted as redemptions
        self.assertEqual(self.user.total_points_redeemed, 0)

    def test_model_clean(self):
        entry = CreditTransaction(user=self.user, transaction_type='redeem', points=10,
                                  balance_before=0, balance_after=10)
        with self.assertRaises(ValidationError):
            entry.clean()
        entry = CreditTransaction(user=self.user, transaction_type='earn', points=10,
                                  balance_before=0, balance_after=5)
        with self.assertRaises(ValidationError):
            entry.clean()


class CreditAPITests(CacheClearingTestCase):
    """Test the participant credit endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        record_transaction(self.user, 'earn', 300, source='waste_submission')
        record_transaction(self.user, 'bonus', 50)
        record_transaction(self.user, 'redeem', 100, source='reward_redemption')
        record_transaction(self.other, 'earn', 10)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_transaction_list(self):
        response = self.client.get('/api/v1/credits/transactions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['results'][0]['transaction_type'], 'redeem')

    def test_transaction_list_ignores_user_param(self):
        response = self.client.get(f'/api/v1/credits/transactions/?user={self.other.id}')
        self.assertEqual(response.data['count'], 3)

    def test_transaction_list_filters(self):
        response = self.client.get('/api/v1/credits/transactions/?type=earn')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/credits/transactions/?source=reward_redemption')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/credits/transactions/?type=gift')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_transaction_detail(self):
        entry = CreditTransaction.objects.filter(user=self.user).first()
        response = self.client.get(f'/api/v1/credits/transactions/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reference_number'], entry.reference_number)

        other_entry = CreditTransaction.objects.get(user=self.other)
        response = self.client.get(f'/api/v1/credits/transactions/{other_entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get(f'/api/v1/credits/transactions/{other_entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.other.id)

    def test_summary(self):
        response = self.client.get('/api/v1/credits/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], '30d')
        self.assertEqual(response.data['current_balance'], 250)
        self.assertEqual(response.data['total_earned'], 350)
        self.assertEqual(response.data['total_spent'], 100)
        self.assertEqual(response.data['net_change'], 250)
        self.assertEqual(response.data['transaction_count'], 3)
        self.assertEqual(response.data['by_type']['redeem'], {'points': -100, 'count': 1})
        self.assertEqual(response.data['lifetime']['total_points_redeemed'], 100)
        self.assertEqual(response.data['rank_info']['current']['name'], 'Bronze')

    def test_summary_invalid_period(self):
        response = self.client.get('/api/v1/credits/summary/?period=2w')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_ledger_is_admin_only(self):
        response = self.client.get('/api/v1/credits/ledger/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get(f'/api/v1/credits/ledger/?user={self.other.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)


class CreditAdjustmentAPITests(CacheClearingTestCase):
    """Test admin bonuses, penalties and corrections"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _adjust(self, transaction_type, points, reason='Volunteer drive'):
        return self.client.post(f'/api/v1/credits/users/{self.user.id}/adjust/', {
            'transaction_type': transaction_type, 'points': points, 'reason': reason,
        }, format='json')

    def test_bonus(self):
        response = self._adjust('bonus', 600)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['green_credits'], 600)
        self.assertEqual(response.data['rank'], 'Silver')
        self.assertEqual(response.data['transaction']['source'], 'admin_adjustment')

        log = AuditLog.objects.get(action='credit_adjust')
        self.assertEqual(log.changes['balance_after'], 600)
        self.assertEqual(log.object_reference, response.data['transaction']['reference_number'])

    def test_penalty_below_zero(self):
        self._adjust('bonus', 50)
        response = self._adjust('penalty', 100, reason='Contaminated waste')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'insufficient_credits')
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 50)

    def test_negative_adjustment(self):
        self._adjust('bonus', 50)
        response = self._adjust('adjustment', -20, reason='Double counted drop-off')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['transaction']['points'], -20)
        self.assertEqual(response.data['green_credits'], 30)

    def test_validation(self):
        self.assertEqual(self._adjust('bonus', 0).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._adjust('earn', 10).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._adjust('bonus', 10, reason='').status_code, status.HTTP_400_BAD_REQUEST)

    def test_participant_cannot_adjust(self):
        self.client.authenticate_user(self.user)
        self.assertEqual(self._adjust('bonus', 100).status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_user(self):
        response = self.client.post('/api/v1/credits/users/999999/adjust/', {
            'transaction_type': 'bonus', 'points': 10, 'reason': 'x',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class RepairCreditBalancesTests(CacheClearingTestCase):
    """Test the repair_credit_balances management command"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        record_transaction(self.user, 'earn', 700)
        record_transaction(self.user, 'redeem', 100)
        # Simulate a balance edited outside the ledger
        User.objects.filter(pk=self.user.pk).update(green_credits=5, total_points_earned=0)

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('repair_credit_balances', '--dry-run', stdout=out)
        self.assertIn('green_credits: 5 -> 600', out.getvalue())
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 5)

    def test_repair(self):
        call_command('repair_credit_balances', stdout=StringIO())
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 600)
        self.assertEqual(self.user.total_points_earned, 700)
        self.assertEqual(self.user.total_points_redeemed, 100)
        self.assertEqual(self.user.rank, 'Silver')

    def test_single_user(self):
        other = TestDataFactory.create_user()
        record_transaction(other, 'earn', 10)
        User.objects.filter(pk=other.pk).update(green_credits=0)

        call_command('repair_credit_balances', '--user', str(self.user.pk), stdout=StringIO())
        other.refresh_from_db()
        self.assertEqual(other.green_credits, 0)

    def test_reports_broken_chain(self):
        entry = CreditTransaction.objects.filter(user=self.user, transaction_type='redeem').get()
        CreditTransaction.objects.filter(pk=entry.pk).update(balance_before=650)
        out = StringIO()
        call_command('repair_credit_balances', '--dry-run', stdout=out)
        self.assertIn('1 ledger rows out of sequence', out.getvalue())
