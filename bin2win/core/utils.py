"""Shared helpers: audit logging, reference numbers, pagination, date ranges"""
import logging
import uuid
from datetime import datetime, timedelta

from django.core.paginator import Paginator
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from .models import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, waste_approve, reward_redeem, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., username, reward name)
        object_reference: Reference identifier (e.g., submission number, order number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def generate_reference(prefix, model, field):
    """PREFIX-YYYYMMDD-XXXXXXXX, unique within `model.field`"""
    reference = f"{prefix}-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    while model._default_manager.filter(**{field: reference}).exists():
        reference = f"{prefix}-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    return reference


def paginate(request, queryset, serializer_class, context=None):
    """
    Page a queryset with ?page= and ?limit= and serialize the page.

    Response shape: results, count, next, previous, page, page_size, total_pages.
    """
    try:
        page = max(1, int(request.query_params.get('page', 1)))
        limit = int(request.query_params.get('limit', DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError):
        raise ValidationError({'error': 'page and limit must be integers'})
    limit = min(max(1, limit), MAX_PAGE_SIZE)

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    context = context or {}
    context.setdefault('request', request)
    serializer = serializer_class(page_obj.object_list, many=True, context=context)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    })


def parse_date_param(value, name='date'):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError({name: 'Invalid date format. Use YYYY-MM-DD.'})


def parse_date_range(request, default_days=30):
    """
    Read ?date_from=&date_to= (YYYY-MM-DD), defaulting to the last `default_days` days.
    """
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)

    if not date_from:
        date_from = (timezone.now() - timedelta(days=default_days)).date()
    else:
        date_from = parse_date_param(date_from, 'date_from')

    if not date_to:
        date_to = timezone.now().date()
    else:
        date_to = parse_date_param(date_to, 'date_to')

    if date_from > date_to:
        raise ValidationError({'date_from': 'date_from must not be after date_to.'})
    return date_from, date_to
