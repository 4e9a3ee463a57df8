"""
Redemption workflow: redeem, status changes, cancellation and ratings.

Stock and credits move together: every path locks the reward row and goes
through record_transaction for the credits, inside one database transaction.
"""
import logging
import secrets
import string
from datetime import timedelta

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from bin2win.core.exceptions import Bin2WinError, RewardNotRedeemable
from bin2win.core.utils import generate_reference
from bin2win.credits.services import record_transaction
from .models import Redemption, Reward

logger = logging.getLogger('bin2win.rewards')

VOUCHER_ALPHABET = string.ascii_uppercase + string.digits
MAX_REDEEM_QUANTITY = 10


def generate_voucher_code(prefix='B2W', length=10):
    code = ''.join(secrets.choice(VOUCHER_ALPHABET) for _ in range(length))
    return f"{prefix}{code}"


def redeem_reward(user, reward, quantity=1, delivery_address='', now=None):
    """
    Exchange credits for `quantity` units of `reward`.

    Raises:
        RewardNotRedeemable: with every failed eligibility check in `errors`
        InsufficientCredits: the balance changed under us
    """
    if quantity < 1 or quantity > MAX_REDEEM_QUANTITY:
        raise RewardNotRedeemable(f'Quantity must be between 1 and {MAX_REDEEM_QUANTITY}.')

    now = now or timezone.now()
    with transaction.atomic():
        reward = Reward.objects.select_for_update().get(pk=reward.pk)
        errors = reward.redeem_errors(user, quantity, now=now)
        if errors:
            raise RewardNotRedeemable('You cannot redeem this reward.', errors=errors)

        unit_points = reward.effective_points
        reward.reserve_stock(quantity)
        reward.save(update_fields=['stock_available', 'stock_reserved', 'updated_at'])

        redemption = Redemption.objects.create(
            order_number=generate_reference('ORD', Redemption, 'order_number'),
            user=user,
            reward=reward,
            quantity=quantity,
            unit_points=unit_points,
            points_spent=unit_points * quantity,
            delivery_address=delivery_address or user.address or '',
            expires_at=now + timedelta(days=reward.validity_days),
        )
        record_transaction(
            user,
            'redeem',
            redemption.points_spent,
            description=f"Redeemed {quantity}x {reward.name}",
            source='reward_redemption',
            redemption=redemption,
            metadata={
                'reward': reward.name,
                'quantity': quantity,
                'unit_points': unit_points,
                'order_number': redemption.order_number,
            },
        )

        if reward.redemption_method in Reward.INSTANT_METHODS:
            redemption.voucher_code = generate_voucher_code()
            redemption.transition_to('processing', now)
            redemption.transition_to('delivered', now)
            redemption.save()
            reward.confirm_redemption(quantity)
            reward.save(update_fields=['stock_reserved', 'total_redeemed', 'popularity_score', 'updated_at'])

    logger.info(f"{redemption.order_number}: {user.username} redeemed {quantity}x {reward.name} "
                f"for {redemption.points_spent} points")
    return redemption


def _release(redemption, reason, cancelled_by=None):
    """Return reserved stock and refund the credits of a cancelled order"""
    reward = Reward.objects.select_for_update().get(pk=redemption.reward_id)
    reward.cancel_reservation(redemption.quantity)
    reward.save(update_fields=['stock_available', 'stock_reserved', 'updated_at'])
    redemption.cancel_reason = (reason or '')[:255]
    record_transaction(
        redemption.user,
        'refund',
        redemption.points_spent,
        description=f"Refund for cancelled order {redemption.order_number}",
        source='reward_redemption',
        redemption=redemption,
        created_by=cancelled_by,
        metadata={'order_number': redemption.order_number, 'reason': reason or ''},
    )


def update_redemption_status(redemption, target, changed_by=None, tracking_number=None, notes=None, reason=None):
    """
    Move an order along its lifecycle.

    Delivered confirms the reserved stock; cancelled releases it and refunds.

    Raises:
        InvalidStatusTransition: `target` is not reachable from the current status
    """
    now = timezone.now()
    with transaction.atomic():
        redemption = Redemption.objects.select_for_update().select_related('user', 'reward').get(pk=redemption.pk)
        previous = redemption.status
        redemption.transition_to(target, now)
        if tracking_number:
            redemption.tracking_number = tracking_number
        if notes:
            redemption.notes = notes

        if target == 'delivered':
            reward = Reward.objects.select_for_update().get(pk=redemption.reward_id)
            reward.confirm_redemption(redemption.quantity)
            reward.save(update_fields=['stock_reserved', 'total_redeemed', 'popularity_score', 'updated_at'])
        elif target == 'cancelled':
            _release(redemption, reason, cancelled_by=changed_by)
        redemption.save()

    logger.info(f"{redemption.order_number}: {previous} -> {target}"
                f"{f' by {changed_by.username}' if changed_by else ''}")
    return redemption


def cancel_redemption(redemption, user, reason=''):
    """Owner cancellation, allowed while the order is still pending"""
    if redemption.user_id != user.id:
        raise Bin2WinError('You can only cancel your own orders.')
    if redemption.status != 'pending':
        raise RewardNotRedeemable('Only pending orders can be cancelled.')
    return update_redemption_status(redemption, 'cancelled', changed_by=user, reason=reason or 'Cancelled by user')


def rate_redemption(redemption, rating):
    """One rating per delivered order, folded into the reward's average"""
    with transaction.atomic():
        redemption = Redemption.objects.select_for_update().get(pk=redemption.pk)
        if redemption.status != 'delivered':
            raise RewardNotRedeemable('Only delivered orders can be rated.')
        if redemption.rating is not None:
            raise RewardNotRedeemable('This order has already been rated.')
        reward = Reward.objects.select_for_update().get(pk=redemption.reward_id)
        reward.add_rating(rating)
        reward.save(update_fields=['average_rating', 'total_ratings', 'popularity_score', 'updated_at'])
        redemption.rating = rating
        redemption.save(update_fields=['rating', 'updated_at'])
    return redemption


def record_view(reward):
    Reward.objects.filter(pk=reward.pk).update(total_views=F('total_views') + 1)
    reward.refresh_from_db(fields=['total_views', 'total_redeemed', 'average_rating'])
    reward.update_popularity_score()
    Reward.objects.filter(pk=reward.pk).update(popularity_score=reward.popularity_score)
