"""
Submission workflow: drop-off, operator collection, approval and rejection.

Credits only ever reach a user through bin2win.credits.services.record_transaction.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from bin2win.booths.models import CollectionBooth
from bin2win.core.exceptions import BoothUnavailable, InvalidWasteInput
from bin2win.core.model_cache import get_points_rates
from bin2win.core.permissions import can_operate_booth
from bin2win.core.rules import MAX_QUANTITY_KG, MIN_QUANTITY_KG, calculate_points_breakdown
from bin2win.core.utils import generate_reference
from bin2win.credits.services import record_transaction
from .models import WasteSubmission, WasteType

logger = logging.getLogger('bin2win.waste')

User = get_user_model()


def get_waste_type(code):
    """Active WasteType for `code`, case-insensitive"""
    waste_type = WasteType.objects.filter(code=str(code or '').strip().lower(), is_active=True).first()
    if waste_type is None:
        raise InvalidWasteInput(f"Unknown waste type '{code}'.")
    return waste_type


def quote_submission(waste_type_code, quantity):
    """Points breakdown for a drop-off using the configured rates, with the kg bounds enforced"""
    breakdown = calculate_points_breakdown(waste_type_code, quantity, get_points_rates())
    if breakdown['quantity'] < MIN_QUANTITY_KG or breakdown['quantity'] > MAX_QUANTITY_KG:
        raise InvalidWasteInput(f'Quantity must be between {MIN_QUANTITY_KG} and {MAX_QUANTITY_KG} kg.')
    return breakdown


def _lock_booth(booth, now):
    locked = CollectionBooth.objects.select_for_update().get(pk=booth.pk)
    locked.reset_daily_load_if_needed(timezone.localtime(now).date())
    return locked


def _create_submission(user, booth, waste_type_code, quantity, notes, method, status, collected_by, now):
    waste_type = get_waste_type(waste_type_code)
    breakdown = quote_submission(waste_type.code, quantity)

    locked_booth = _lock_booth(booth, now)
    can_accept, reason = locked_booth.can_accept_waste(breakdown['quantity'], waste_type.code, now=now)
    if not can_accept:
        raise BoothUnavailable(reason)

    submission = WasteSubmission.objects.create(
        submission_number=generate_reference('WS', WasteSubmission, 'submission_number'),
        user=user,
        booth=locked_booth,
        waste_type=waste_type,
        quantity_kg=breakdown['quantity'],
        points_earned=breakdown['points'],
        status=status,
        method=method,
        collected_by=collected_by,
        notes=notes or '',
    )
    locked_booth.record_submission(breakdown['quantity'], now)
    locked_booth.save(update_fields=['kg_today', 'submissions_today', 'last_reset_date', 'total_collected_kg',
                                     'total_submissions', 'last_collection_at', 'updated_at'])
    return submission


def _credit_submission(submission, source, description, created_by=None):
    """Pay out an approved submission and add it to the user's lifetime statistics"""
    credit_transaction = None
    if submission.points_earned > 0:
        credit_transaction = record_transaction(
            submission.user,
            'earn',
            submission.points_earned,
            description=description,
            source=source,
            submission=submission,
            created_by=created_by,
            metadata={
                'waste_type': submission.waste_type.code,
                'quantity_kg': str(submission.quantity_kg),
                'booth': submission.booth.code,
            },
        )
    User.objects.filter(pk=submission.user_id).update(
        total_waste_kg=F('total_waste_kg') + submission.quantity_kg,
        total_submissions=F('total_submissions') + 1,
    )
    submission.user.refresh_from_db(fields=['total_waste_kg', 'total_submissions'])
    return credit_transaction


def submit_waste(user, booth, waste_type_code, quantity, notes='', method='manual', now=None):
    """
    Log a drop-off by the user themselves. The submission stays pending until
    an admin or booth operator approves it.

    Raises:
        InvalidWasteInput: unknown waste type or quantity out of bounds
        BoothUnavailable: booth closed, full or not accepting this waste type
    """
    now = now or timezone.now()
    with transaction.atomic():
        submission = _create_submission(user, booth, waste_type_code, quantity, notes, method,
                                        'pending', None, now)
    logger.info(f"{submission.submission_number}: {user.username} submitted {submission.quantity_kg} kg "
                f"{submission.waste_type.code} at {booth.code} ({submission.points_earned} points pending)")
    return submission


def collect_waste(operator, user, booth, waste_type_code, quantity, notes='', quality_score=None, now=None):
    """
    Record waste weighed by a booth operator on the user's behalf.

    The submission is approved on the spot and the credits are paid out in
    the same database transaction.

    Returns:
        (submission, credit_transaction)
    """
    if not can_operate_booth(operator, booth):
        raise BoothUnavailable('You are not assigned to this booth.')
    if not user.is_active:
        raise InvalidWasteInput('User account is inactive.')

    now = now or timezone.now()
    with transaction.atomic():
        submission = _create_submission(user, booth, waste_type_code, quantity, notes, 'booth_operator',
                                        'approved', operator, now)
        submission.verified_by = operator
        submission.verified_at = now
        submission.quality_score = quality_score
        submission.save(update_fields=['verified_by', 'verified_at', 'quality_score', 'updated_at'])
        credit_transaction = _credit_submission(
            submission,
            'booth_collection',
            f"Green credits for {submission.quantity_kg} kg {submission.waste_type.name} collected at {booth.name}",
            created_by=operator,
        )
    logger.info(f"{submission.submission_number}: {operator.username} collected {submission.quantity_kg} kg "
                f"from {user.username} at {booth.code}, {submission.points_earned} points")
    return submission, credit_transaction


def approve_submission(submission, verified_by, notes=None, quality_score=None):
    """
    Approve a pending or processing submission and credit the user.

    Returns:
        (submission, credit_transaction)

    Raises:
        InvalidStatusTransition: the submission is already approved or rejected
    """
    with transaction.atomic():
        submission = WasteSubmission.objects.select_for_update().select_related(
            'user', 'booth', 'waste_type'
        ).get(pk=submission.pk)
        submission.transition_to('approved')
        submission.verified_by = verified_by
        submission.verified_at = timezone.now()
        if notes:
            submission.notes = notes
        if quality_score is not None:
            submission.quality_score = quality_score
        submission.save()
        credit_transaction = _credit_submission(
            submission,
            'waste_submission',
            f"Green credits for {submission.quantity_kg} kg {submission.waste_type.name} "
            f"({submission.submission_number})",
            created_by=verified_by,
        )
    logger.info(f"{submission.submission_number} approved by {verified_by.username}: "
                f"{submission.points_earned} points to {submission.user.username}")
    return submission, credit_transaction


def reject_submission(submission, verified_by, reason, notes=None):
    """Reject a pending or processing submission. No credits are paid."""
    reason = (reason or '').strip()
    if not reason:
        raise InvalidWasteInput('Rejection reason is required.')

    with transaction.atomic():
        submission = WasteSubmission.objects.select_for_update().select_related(
            'user', 'booth', 'waste_type'
        ).get(pk=submission.pk)
        submission.transition_to('rejected')
        submission.points_earned = 0
        submission.rejection_reason = reason[:255]
        submission.verified_by = verified_by
        submission.verified_at = timezone.now()
        if notes:
            submission.notes = notes
        submission.save()
    logger.info(f"{submission.submission_number} rejected by {verified_by.username}: {reason}")
    return submission


def mark_processing(submission, reviewer=None):
    with transaction.atomic():
        submission = WasteSubmission.objects.select_for_update().get(pk=submission.pk)
        submission.transition_to('processing')
        update_fields = ['status', 'updated_at']
        if reviewer is not None:
            submission.verified_by = reviewer
            update_fields.append('verified_by')
        submission.save(update_fields=update_fields)
    return submission
