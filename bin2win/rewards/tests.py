"""
Test suite for the rewards module
Tests: eligibility, stock moves, redemption lifecycle, refunds, ratings, wishlist, catalog endpoints
"""
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from bin2win.core.exceptions import InvalidStatusTransition, RewardNotRedeemable
from bin2win.core.models import AuditLog
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase
from bin2win.credits.models import CreditTransaction
from bin2win.credits.services import record_transaction
from bin2win.rewards.models import Redemption, Reward
from bin2win.rewards.services import (
    cancel_redemption, rate_redemption, redeem_reward, update_redemption_status,
)


class RewardModelTests(TestCase):
    """Test Reward pricing, stock and popularity rules"""

    def test_effective_points(self):
        self.assertEqual(TestDataFactory.create_reward(points_required=100).effective_points, 100)
        self.assertEqual(TestDataFactory.create_reward(points_required=100,
                                                       discount_percentage=Decimal('15')).effective_points, 85)
        self.assertEqual(TestDataFactory.create_reward(points_required=100,
                                                       discount_percentage=Decimal('12.5')).effective_points, 88)

    def test_stock_status(self):
        reward = TestDataFactory.create_reward(stock=10)
        for available, expected in [(0, 'out_of_stock'), (1, 'low_stock'), (3, 'medium_stock'), (5, 'in_stock')]:
            reward.stock_available = available
            self.assertEqual(reward.stock_status, expected)

    def test_availability_window(self):
        now = timezone.now()
        reward = TestDataFactory.create_reward(available_from=now + timedelta(days=1))
        self.assertEqual(reward.availability_status(now), 'not_yet_available')
        reward.available_from = None
        reward.available_until = now - timedelta(days=1)
        self.assertEqual(reward.availability_status(now), 'expired')
        reward.available_until = None
        self.assertEqual(reward.availability_status(now), 'available')
        reward.is_active = False
        self.assertEqual(reward.availability_status(now), 'inactive')

    def test_stock_moves(self):
        reward = TestDataFactory.create_reward(stock=5)
        reward.reserve_stock(2)
        self.assertEqual((reward.stock_available, reward.stock_reserved), (3, 2))
        reward.confirm_redemption(1)
        self.assertEqual((reward.stock_reserved, reward.total_redeemed), (1, 1))
        reward.cancel_reservation(1)
        self.assertEqual((reward.stock_available, reward.stock_reserved), (4, 0))
        with self.assertRaises(ValidationError):
            reward.reserve_stock(5)
        with self.assertRaises(ValidationError):
            reward.cancel_reservation(1)

    def test_clean_checks_stock(self):
        reward = TestDataFactory.create_reward(stock=5)
        reward.stock_reserved = 1
        with self.assertRaises(ValidationError):
            reward.clean()

    def test_popularity_score(self):
        reward = TestDataFactory.create_reward(total_views=500, total_redeemed=50, average_rating=Decimal('4'))
        reward.update_popularity_score()
        self.assertEqual(reward.popularity_score, Decimal('0.5600'))

    def test_add_rating(self):
        reward = TestDataFactory.create_reward()
        reward.add_rating(5)
        reward.add_rating(4)
        self.assertEqual(reward.total_ratings, 2)
        self.assertEqual(reward.average_rating, Decimal('4.50'))
        with self.assertRaises(ValidationError):
            reward.add_rating(6)

    def test_redeem_errors(self):
        user = TestDataFactory.create_user(green_credits=50)
        reward = TestDataFactory.create_reward(points_required=100, stock=0, minimum_rank='Gold',
                                               minimum_submissions=3)
        errors = reward.redeem_errors(user)
        self.assertEqual(len(errors), 4)
        self.assertIn('Reward is out of stock', errors)
        self.assertIn('Insufficient green credits. Required: 100, Available: 50', errors)
        self.assertIn('Minimum rank required: Gold', errors)

    def test_redemption_transitions(self):
        user = TestDataFactory.create_user()
        reward = TestDataFactory.create_reward()
        redemption = Redemption.objects.create(order_number='ORD-TEST-1', user=user, reward=reward,
                                               unit_points=100, points_spent=100)
        redemption.transition_to('processing')
        self.assertIsNotNone(redemption.processed_at)
        redemption.transition_to('shipped')
        self.assertIsNotNone(redemption.shipped_at)
        with self.assertRaises(InvalidStatusTransition):
            redemption.transition_to('cancelled')
        redemption.transition_to('delivered')
        self.assertTrue(redemption.is_final)


class RedemptionServiceTests(CacheClearingTestCase):
    """Test the redemption workflow below the API"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        record_transaction(self.user, 'earn', 500)
        self.admin = TestDataFactory.create_admin()
        self.reward = TestDataFactory.create_reward(points_required=100, stock=10)

    def test_redeem(self):
        redemption = redeem_reward(self.user, self.reward, quantity=2)
        self.assertEqual(redemption.status, 'pending')
        self.assertEqual(redemption.unit_points, 100)
        self.assertEqual(redemption.points_spent, 200)
        self.assertTrue(redemption.order_number.startswith('ORD-'))
        self.assertIsNotNone(redemption.expires_at)

        self.reward.refresh_from_db()
        self.assertEqual(self.reward.stock_available, 8)
        self.assertEqual(self.reward.stock_reserved, 2)

        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 300)
        self.assertEqual(self.user.total_points_redeemed, 200)
        entry = CreditTransaction.objects.get(redemption=redemption)
        self.assertEqual(entry.points, -200)
        self.assertEqual(entry.source, 'reward_redemption')

    def test_redeem_uses_discounted_price(self):
        reward = TestDataFactory.create_reward(points_required=200, discount_percentage=Decimal('25'))
        redemption = redeem_reward(self.user, reward)
        self.assertEqual(redemption.points_spent, 150)

    def test_redeem_collects_every_error(self):
        reward = TestDataFactory.create_reward(points_required=1000, minimum_rank='Platinum')
        with self.assertRaises(RewardNotRedeemable) as ctx:
            redeem_reward(self.user, reward)
        self.assertEqual(len(ctx.exception.errors), 2)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 500)
        self.assertFalse(Redemption.objects.exists())

    def test_redeem_quantity_bounds(self):
        for quantity in (0, 11):
            with self.assertRaises(RewardNotRedeemable):
                redeem_reward(self.user, self.reward, quantity=quantity)

    def test_redeem_outside_window(self):
        reward = TestDataFactory.create_reward(available_until=timezone.now() - timedelta(hours=1))
        with self.assertRaises(RewardNotRedeemable) as ctx:
            redeem_reward(self.user, reward)
        self.assertIn('Reward is expired', ctx.exception.errors)

    def test_instant_voucher_is_delivered(self):
        reward = TestDataFactory.create_reward(redemption_method='voucher_code', stock=5)
        redemption = redeem_reward(self.user, reward)
        self.assertEqual(redemption.status, 'delivered')
        self.assertTrue(redemption.voucher_code.startswith('B2W'))
        self.assertIsNotNone(redemption.delivered_at)
        reward.refresh_from_db()
        self.assertEqual(reward.stock_available, 4)
        self.assertEqual(reward.stock_reserved, 0)
        self.assertEqual(reward.total_redeemed, 1)

    def test_fulfilment(self):
        redemption = redeem_reward(self.user, self.reward)
        update_redemption_status(redemption, 'processing', changed_by=self.admin)
        redemption = update_redemption_status(redemption, 'shipped', changed_by=self.admin,
                                              tracking_number='SPEED123')
        self.assertEqual(redemption.tracking_number, 'SPEED123')
        redemption = update_redemption_status(redemption, 'delivered', changed_by=self.admin)
        self.assertEqual(redemption.status, 'delivered')

        self.reward.refresh_from_db()
        self.assertEqual(self.reward.stock_reserved, 0)
        self.assertEqual(self.reward.stock_available, 9)
        self.assertEqual(self.reward.total_redeemed, 1)

    def test_invalid_transition(self):
        redemption = redeem_reward(self.user, self.reward)
        with self.assertRaises(InvalidStatusTransition):
            update_redemption_status(redemption, 'shipped')

    def test_admin_cancel_refunds(self):
        redemption = redeem_reward(self.user, self.reward)
        update_redemption_status(redemption, 'processing', changed_by=self.admin)
        redemption = update_redemption_status(redemption, 'cancelled', changed_by=self.admin, reason='Out of prasad')
        self.assertEqual(redemption.cancel_reason, 'Out of prasad')
        self.assertIsNotNone(redemption.cancelled_at)

        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 500)
        self.assertEqual(self.user.total_points_redeemed, 0)
        self.reward.refresh_from_db()
        self.assertEqual(self.reward.stock_available, 10)
        self.assertEqual(self.reward.stock_reserved, 0)
        refund = CreditTransaction.objects.get(redemption=redemption, transaction_type='refund')
        self.assertEqual(refund.points, 100)
        self.assertEqual(refund.created_by, self.admin)

    def test_owner_cancel(self):
        redemption = redeem_reward(self.user, self.reward)
        redemption = cancel_redemption(redemption, self.user)
        self.assertEqual(redemption.status, 'cancelled')
        self.assertEqual(redemption.cancel_reason, 'Cancelled by user')

    def test_owner_cancel_only_while_pending(self):
        redemption = redeem_reward(self.user, self.reward)
        update_redemption_status(redemption, 'processing', changed_by=self.admin)
        redemption.refresh_from_db()
        with self.assertRaises(RewardNotRedeemable):
            cancel_redemption(redemption, self.user)

    def test_rating(self):
        redemption = redeem_reward(self.user, self.reward)
        with self.assertRaises(RewardNotRedeemable):
            rate_redemption(redemption, 5)

        update_redemption_status(redemption, 'processing')
        update_redemption_status(redemption, 'delivered')
        redemption = rate_redemption(redemption, 4)
        self.assertEqual(redemption.rating, 4)
        self.reward.refresh_from_db()
        self.assertEqual(self.reward.average_rating, Decimal('4.00'))
        self.assertEqual(self.reward.total_ratings, 1)

        with self.assertRaises(RewardNotRedeemable):
            rate_redemption(redemption, 5)


class RewardCatalogAPITests(CacheClearingTestCase):
    """Test catalog browsing and admin management"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.prasad = TestDataFactory.create_reward(name='Mahakal Prasad', points_required=100, is_featured=True)
        self.coconut = TestDataFactory.create_reward(name='Pooja Coconut', points_required=40, category='coconut')
        self.hidden = TestDataFactory.create_reward(name='Retired Bag', is_active=False)

    def test_public_list(self):
        response = self.client.get('/api/v1/rewards/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['name'], 'Pooja Coconut')
        self.assertIsNone(response.data['results'][0]['can_redeem'])

    def test_list_shows_eligibility(self):
        user = TestDataFactory.create_user()
        record_transaction(user, 'earn', 50)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/rewards/')
        by_name = {row['name']: row for row in response.data['results']}
        self.assertTrue(by_name['Pooja Coconut']['can_redeem']['can_redeem'])
        self.assertFalse(by_name['Mahakal Prasad']['can_redeem']['can_redeem'])

    def test_filters(self):
        response = self.client.get('/api/v1/rewards/?category=coconut')
        self.assertEqual([row['id'] for row in response.data['results']], [self.coconut.id])
        response = self.client.get('/api/v1/rewards/?max_points=50')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/rewards/?search=mahakal')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/rewards/?ordering=-points')
        self.assertEqual(response.data['results'][0]['id'], self.prasad.id)
        response = self.client.get('/api/v1/rewards/?ordering=cheapest')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_counts_views(self):
        response = self.client.get(f'/api/v1/rewards/{self.prasad.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.prasad.refresh_from_db()
        self.assertEqual(self.prasad.total_views, 1)
        self.assertGreater(self.prasad.popularity_score, 0)

    def test_inactive_detail_hidden(self):
        response = self.client.get(f'/api/v1/rewards/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_categories(self):
        response = self.client.get('/api/v1/rewards/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        counts = {row['category']: row['count'] for row in response.data}
        self.assertEqual(counts['prasad'], 1)
        self.assertEqual(counts['coconut'], 1)
        self.assertEqual(counts['voucher'], 0)

    def test_featured_and_popular(self):
        response = self.client.get('/api/v1/rewards/featured/')
        self.assertEqual([row['id'] for row in response.data], [self.prasad.id])
        Reward.objects.filter(pk=self.coconut.pk).update(popularity_score=Decimal('0.9'))
        response = self.client.get('/api/v1/rewards/popular/?limit=1')
        self.assertEqual([row['id'] for row in response.data], [self.coconut.id])

    def test_admin_create(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/rewards/', {
            'name': 'Marigold Garland',
            'description': 'Fresh garland',
            'category': 'flowers',
            'points_required': 50,
            'stock_total': 100,
            'tags': ['Puja', ' Flowers '],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock_available'], 100)
        self.assertEqual(response.data['tags'], ['puja', 'flowers'])

    def test_admin_create_validation(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/rewards/', {
            'name': 'Broken', 'description': 'x', 'category': 'flowers', 'points_required': 50,
            'stock_total': 5, 'stock_available': 9,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('stock_available', response.data)

    def test_participant_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/rewards/', {'name': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete(self):
        admin = TestDataFactory.create_admin()
        user = TestDataFactory.create_user()
        record_transaction(user, 'earn', 500)
        redemption = redeem_reward(user, self.prasad)

        self.client.authenticate_user(admin)
        response = self.client.delete(f'/api/v1/rewards/{self.prasad.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        update_redemption_status(redemption, 'cancelled', changed_by=admin)
        response = self.client.delete(f'/api/v1/rewards/{self.prasad.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.prasad.refresh_from_db()
        self.assertFalse(self.prasad.is_active)

        response = self.client.delete(f'/api/v1/rewards/{self.coconut.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class RedemptionAPITests(CacheClearingTestCase):
    """Test redeeming, order tracking, cancellation, rating and wishlist endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        record_transaction(self.user, 'earn', 300)
        self.admin = TestDataFactory.create_admin()
        self.reward = TestDataFactory.create_reward(name='Mahakal Prasad', points_required=100, stock=3)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _redeem(self, reward=None, quantity=1):
        reward = reward or self.reward
        return self.client.post(f'/api/v1/rewards/{reward.id}/redeem/', {'quantity': quantity}, format='json')

    def test_redeem(self):
        response = self._redeem(quantity=2)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['redemption']['points_spent'], 200)
        self.assertEqual(response.data['redemption']['status'], 'pending')
        self.assertEqual(response.data['remaining_credits'], 100)
        self.assertTrue(AuditLog.objects.filter(action='reward_redeem').exists())

    def test_redeem_not_eligible(self):
        response = self._redeem(quantity=4)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'reward_not_redeemable')
        self.assertIn('Insufficient stock. Only 3 items available.', response.data['errors'])
        self.assertIn('Insufficient green credits. Required: 400, Available: 300', response.data['errors'])

    def test_redeem_quantity_validation(self):
        response = self._redeem(quantity=11)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

    def test_redeem_requires_authentication(self):
        self.client.logout()
        self.assertEqual(self._redeem().status_code, status.HTTP_401_UNAUTHORIZED)

    def test_order_list_and_detail(self):
        order_id = self._redeem().data['redemption']['id']
        other = TestDataFactory.create_user()
        record_transaction(other, 'earn', 100)
        other_order = redeem_reward(other, self.reward)

        response = self.client.get('/api/v1/redemptions/?include_summary=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['summary'], {'total_orders': 1, 'total_points': 100})

        response = self.client.get(f'/api/v1/redemptions/{order_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(f'/api/v1/redemptions/{other_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/redemptions/?user={other.id}')
        self.assertEqual(response.data['count'], 1)

    def test_status_updates(self):
        order_id = self._redeem().data['redemption']['id']
        response = self.client.post(f'/api/v1/redemptions/{order_id}/status/', {'status': 'processing'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/redemptions/{order_id}/status/', {'status': 'processing'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'processing')

        response = self.client.post(f'/api/v1/redemptions/{order_id}/status/', {'status': 'pending'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(f'/api/v1/redemptions/{order_id}/status/', {'status': 'delivered'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='redemption_status').count() >= 2)

    def test_cancel(self):
        order_id = self._redeem().data['redemption']['id']
        response = self.client.post(f'/api/v1/redemptions/{order_id}/cancel/', {'reason': 'Changed my mind'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['redemption']['status'], 'cancelled')
        self.assertEqual(response.data['green_credits'], 300)

        response = self.client.post(f'/api/v1/redemptions/{order_id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_cancel_other_users_order(self):
        other = TestDataFactory.create_user()
        record_transaction(other, 'earn', 100)
        other_order = redeem_reward(other, self.reward)
        response = self.client.post(f'/api/v1/redemptions/{other_order.id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_rate(self):
        voucher = TestDataFactory.create_reward(name='Bus Pass', points_required=50,
                                                redemption_method='voucher_code')
        order_id = self._redeem(reward=voucher).data['redemption']['id']
        response = self.client.post(f'/api/v1/redemptions/{order_id}/rate/', {'rating': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rating'], 5)

        response = self.client.post(f'/api/v1/redemptions/{order_id}/rate/', {'rating': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/redemptions/{order_id}/rate/', {'rating': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_wishlist(self):
        response = self.client.post(f'/api/v1/rewards/{self.reward.id}/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f'/api/v1/rewards/{self.reward.id}/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/rewards/wishlist/')
        self.assertEqual([row['id'] for row in response.data], [self.reward.id])
        response = self.client.get(f'/api/v1/rewards/{self.reward.id}/')
        self.assertTrue(response.data['is_wishlisted'])

        response = self.client.delete(f'/api/v1/rewards/{self.reward.id}/wishlist/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get('/api/v1/rewards/wishlist/')
        self.assertEqual(response.data, [])
