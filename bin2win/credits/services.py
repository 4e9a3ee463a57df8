"""
The only code path that changes a user's green credit balance.

record_transaction() locks the user row, applies the change, keeps the
lifetime counters and rank in step, and writes the ledger row, all inside
one database transaction.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from bin2win.core.exceptions import Bin2WinError, InsufficientCredits
from bin2win.core.utils import generate_reference
from .models import CreditTransaction

logger = logging.getLogger('bin2win.credits')

User = get_user_model()


def signed_points(transaction_type, points):
    """
    Apply the sign convention for a transaction type.

    earn/bonus/refund are always positive and redeem/penalty always negative,
    whatever sign the caller passed. Adjustments keep the caller's sign.
    """
    try:
        points = int(points)
    except (TypeError, ValueError):
        raise Bin2WinError(f'Points must be a whole number, got {points!r}.')
    if points == 0:
        raise Bin2WinError('Points must not be zero.')
    if transaction_type in CreditTransaction.POSITIVE_TYPES:
        return abs(points)
    if transaction_type in CreditTransaction.NEGATIVE_TYPES:
        return -abs(points)
    if transaction_type == 'adjustment':
        return points
    raise Bin2WinError(f"Unknown transaction type '{transaction_type}'.")


def record_transaction(user, transaction_type, points, description='', source='system',
                       submission=None, redemption=None, created_by=None, metadata=None):
    """
    Change `user`'s balance by `points` and write the ledger row.

    Raises:
        InsufficientCredits: the balance would go below zero
    """
    points = signed_points(transaction_type, points)

    with transaction.atomic():
        locked = User.objects.select_for_update().get(pk=user.pk)
        balance_before = locked.green_credits
        balance_after = balance_before + points
        if balance_after < 0:
            raise InsufficientCredits(
                f'Insufficient credits: balance is {balance_before}, {abs(points)} required.'
            )

        locked.green_credits = balance_after
        update_fields = ['green_credits', 'updated_at']
        if transaction_type in ('earn', 'bonus'):
            locked.total_points_earned += points
            update_fields.append('total_points_earned')
        elif transaction_type == 'redeem':
            locked.total_points_redeemed += abs(points)
            update_fields.append('total_points_redeemed')
        elif transaction_type == 'refund' and redemption is not None:
            locked.total_points_redeemed = max(0, locked.total_points_redeemed - points)
            update_fields.append('total_points_redeemed')
        locked.save(update_fields=update_fields)

        credit_transaction = CreditTransaction.objects.create(
            reference_number=generate_reference('TXN', CreditTransaction, 'reference_number'),
            user=locked,
            transaction_type=transaction_type,
            points=points,
            balance_before=balance_before,
            balance_after=balance_after,
            status='completed',
            description=description[:255],
            source=source,
            submission=submission,
            redemption=redemption,
            created_by=created_by,
            metadata=metadata or {},
        )

    # Keep the caller's instance in step with the row we just wrote
    user.green_credits = locked.green_credits
    user.rank = locked.rank
    user.total_points_earned = locked.total_points_earned
    user.total_points_redeemed = locked.total_points_redeemed

    logger.info(
        f"{credit_transaction.reference_number}: {transaction_type} {points:+d} for {locked.username} "
        f"({balance_before} -> {balance_after})"
    )
    return credit_transaction
