"""
Display helpers for numbers and dates, Indian English conventions.

These produce the same strings the web client shows so that exports and API
payloads can carry ready-to-print values.
"""
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .rules import round_half_up

MONTH_ABBREVIATIONS = [
    'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
    'Jul', 'Aug', 'Sept', 'Oct', 'Nov', 'Dec',
]


def _group_indian(digits: str) -> str:
    # 12,34,56,789: last three digits, then pairs
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups + [tail])


def format_number(num) -> str:
    """
    Format a number with Indian digit grouping.

    At most three fraction digits are kept (rounded half up) and trailing
    zeros are dropped: 1234567.891 -> "12,34,567.891", 2500 -> "2,500".
    """
    if num is None or isinstance(num, bool):
        raise ValueError(f'Cannot format {num!r} as a number')
    try:
        value = Decimal(str(num))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Cannot format {num!r} as a number')
    if not value.is_finite():
        raise ValueError(f'Cannot format {num!r} as a number')

    try:
        value = round_half_up(value, Decimal('0.001'))
    except InvalidOperation:
        raise ValueError(f'Cannot format {num!r} as a number')
    integer, _, fraction = f'{value.copy_abs():f}'.partition('.')
    fraction = fraction.rstrip('0')
    result = _group_indian(integer)
    if fraction:
        result = f'{result}.{fraction}'
    if value < 0:
        result = f'-{result}'
    return result


def _to_datetime(value):
    if isinstance(value, str):
        # parse_datetime also accepts bare dates, so try the date form first
        parsed_date = parse_date(value)
        if parsed_date is not None:
            return datetime.combine(parsed_date, time.min), False
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f'Invalid date: {value!r}')
        value = parsed
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value, True
    if isinstance(value, date):
        return datetime.combine(value, time.min), False
    raise ValueError(f'Invalid date: {value!r}')


def format_date(value, include_time=True) -> str:
    """
    "19 Oct 2026, 02:30 pm" style dates.

    Plain dates (or date-only strings) never get a time part.
    """
    moment, has_time = _to_datetime(value)
    text = f'{moment.day} {MONTH_ABBREVIATIONS[moment.month - 1]} {moment.year}'
    if include_time and has_time:
        hour = moment.hour % 12 or 12
        suffix = 'am' if moment.hour < 12 else 'pm'
        text = f'{text}, {hour:02d}:{moment.minute:02d} {suffix}'
    return text


def _plural(count, unit):
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_relative_time(value, now=None) -> str:
    """Relative age such as "Just now" or "5 minutes ago", the plain date after a week."""
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f'Invalid date: {value!r}')
        value = parsed
    if isinstance(value, datetime) and timezone.is_naive(value):
        value = timezone.make_aware(value)
    now = now or timezone.now()

    seconds = int((now - value).total_seconds())
    if seconds < 60:
        return 'Just now'
    if seconds < 3600:
        return _plural(seconds // 60, 'minute')
    if seconds < 86400:
        return _plural(seconds // 3600, 'hour')
    if seconds < 604800:
        return _plural(seconds // 86400, 'day')
    return format_date(value, include_time=False)
