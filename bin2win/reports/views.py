import csv
import logging
from datetime import timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import TruncDate, TruncMonth
from django.http import HttpResponse
from django.utils import timezone

from bin2win.booths.models import CollectionBooth
from bin2win.core.formatting import format_date, format_number
from bin2win.core.models import get_setting
from bin2win.core.model_cache import LEADERBOARD_CACHE_TTL, get_co2_factors, get_leaderboard_cache_key
from bin2win.core.permissions import APPLICATION_GROUPS, IsAdmin
from bin2win.core.rules import RANKS, co2_saved, rank_info_as_dict
from bin2win.core.utils import create_audit_log, parse_date_range
from bin2win.credits.models import CreditTransaction
from bin2win.credits.serializers import CreditTransactionSerializer
from bin2win.rewards.models import Redemption, Reward
from bin2win.rewards.serializers import RewardSummarySerializer
from bin2win.waste.models import WasteSubmission
from bin2win.waste.serializers import WasteSubmissionSerializer

logger = logging.getLogger('bin2win.reports')

User = get_user_model()

LEADERBOARD_PERIODS = ('all', 'week', 'month')
MAX_LEADERBOARD_SIZE = 100
EARNING_TYPES = ('earn', 'bonus')


def _participants():
    """Active accounts that take part in rankings; staff and operators are left out"""
    return User.objects.filter(is_active=True, is_staff=False, is_superuser=False).exclude(
        groups__name__in=APPLICATION_GROUPS
    )


def _period_start(period, now=None):
    now = timezone.localtime(now or timezone.now())
    if period == 'week':
        start = now - timedelta(days=now.weekday())
        return start.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == 'month':
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def _period_scores(period):
    """Participants annotated with `score`, best first"""
    if period == 'all':
        return _participants().annotate(score=F('green_credits')).order_by('-green_credits', 'id')
    return _participants().annotate(
        score=Sum(
            'credit_transactions__points',
            filter=Q(
                credit_transactions__transaction_type__in=EARNING_TYPES,
                credit_transactions__status='completed',
                credit_transactions__created_at__gte=_period_start(period),
            ),
        )
    ).filter(score__gt=0).order_by('-score', 'id')


def build_leaderboard(period, limit):
    key = get_leaderboard_cache_key(period, limit)
    cached = cache.get(key)
    if cached is not None:
        return cached

    entries = []
    position = 0
    previous_score = None
    for index, user in enumerate(_period_scores(period)[:limit], start=1):
        # Equal scores share a position
        if user.score != previous_score:
            position = index
            previous_score = user.score
        entries.append({
            'position': position,
            'user_id': user.id,
            'username': user.username,
            'name': user.display_name,
            'rank': user.rank,
            'score': user.score or 0,
            'green_credits': user.green_credits,
            'total_waste_kg': user.total_waste_kg,
        })
    cache.set(key, entries, LEADERBOARD_CACHE_TTL)
    return entries


def _my_position(user, period):
    if period == 'all':
        score = user.green_credits
    else:
        score = CreditTransaction.objects.filter(
            user=user, transaction_type__in=EARNING_TYPES, status='completed',
            created_at__gte=_period_start(period),
        ).aggregate(total=Sum('points'))['total'] or 0
    ahead = _period_scores(period).filter(score__gt=score).count()
    return {'position': ahead + 1, 'score': score}


@api_view(['GET'])
@permission_classes([AllowAny])
def leaderboard(request):
    """Top participants by credits (all) or by points earned this week/month"""
    period = request.query_params.get('period', 'all')
    if period not in LEADERBOARD_PERIODS:
        return Response({'error': f"period must be one of: {', '.join(LEADERBOARD_PERIODS)}"},
                        status=status.HTTP_400_BAD_REQUEST)
    default_size = get_setting('leaderboard_size', 10, int)
    try:
        limit = int(request.query_params.get('limit', default_size))
    except (TypeError, ValueError):
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    limit = min(max(1, limit), MAX_LEADERBOARD_SIZE)

    data = {
        'period': period,
        'limit': limit,
        'results': build_leaderboard(period, limit),
        'me': None,
    }
    if request.user and request.user.is_authenticated:
        data['me'] = _my_position(request.user, period)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Everything the participant home screen shows"""
    user = request.user
    recent_submissions = WasteSubmission.objects.filter(user=user).select_related(
        'booth', 'waste_type'
    ).order_by('-created_at')[:5]
    recent_transactions = CreditTransaction.objects.filter(user=user).select_related(
        'submission', 'redemption'
    ).order_by('-created_at', '-id')[:5]
    affordable_rewards = Reward.objects.filter(
        is_active=True, stock_available__gt=0, points_required__lte=user.green_credits
    ).order_by('-points_required')[:6]

    approved = WasteSubmission.objects.filter(user=user, status='approved')
    pending = WasteSubmission.objects.filter(user=user, status__in=['pending', 'processing']).aggregate(
        count=Count('id'), points=Sum('points_earned')
    )
    factors = get_co2_factors()
    co2_total = sum(
        (co2_saved(code, quantity, factors)
         for code, quantity in approved.values_list('waste_type__code', 'quantity_kg') if code in factors),
        Decimal('0'),
    )

    return Response({
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.display_name,
            'green_credits': user.green_credits,
            'green_credits_display': format_number(user.green_credits),
            'rank': user.rank,
            'rank_info': rank_info_as_dict(user.green_credits),
            'member_since': format_date(user.date_joined, include_time=False),
        },
        'stats': {
            'total_submissions': user.total_submissions,
            'total_waste_kg': user.total_waste_kg,
            'total_points_earned': user.total_points_earned,
            'total_points_redeemed': user.total_points_redeemed,
            'pending_submissions': pending['count'] or 0,
            'pending_points': pending['points'] or 0,
            'co2_saved_kg': co2_total,
            'redemptions': Redemption.objects.filter(user=user).exclude(status='cancelled').count(),
        },
        'recent_submissions': WasteSubmissionSerializer(recent_submissions, many=True).data,
        'recent_transactions': CreditTransactionSerializer(recent_transactions, many=True).data,
        'affordable_rewards': RewardSummarySerializer(affordable_rewards, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_statistics(request):
    """Per waste type totals, six-month trend and CO2 impact for the current user"""
    user = request.user
    approved = WasteSubmission.objects.filter(user=user, status='approved')
    factors = get_co2_factors()

    by_type = []
    for row in approved.values('waste_type__code', 'waste_type__name').annotate(
        submissions=Count('id'), total_kg=Sum('quantity_kg'), total_points=Sum('points_earned')
    ).order_by('-total_kg'):
        code = row['waste_type__code']
        by_type.append({
            'waste_type': code,
            'name': row['waste_type__name'],
            'submissions': row['submissions'],
            'total_kg': row['total_kg'],
            'total_points': row['total_points'],
            'co2_saved_kg': co2_saved(code, row['total_kg'], factors) if code in factors else Decimal('0'),
        })

    six_months_ago = (timezone.localtime() - timedelta(days=183)).replace(day=1, hour=0, minute=0, second=0,
                                                                          microsecond=0)
    monthly = approved.filter(created_at__gte=six_months_ago).annotate(
        month=TruncMonth('created_at')
    ).values('month').annotate(
        submissions=Count('id'), total_kg=Sum('quantity_kg'), total_points=Sum('points_earned')
    ).order_by('month')

    favourite = by_type[0]['waste_type'] if by_type else None
    return Response({
        'by_waste_type': by_type,
        'monthly_trend': [
            {
                'month': row['month'].strftime('%Y-%m'),
                'submissions': row['submissions'],
                'total_kg': row['total_kg'],
                'total_points': row['total_points'],
            }
            for row in monthly
        ],
        'total_co2_saved_kg': sum((entry['co2_saved_kg'] for entry in by_type), Decimal('0')),
        'favourite_waste_type': favourite,
        'rank_info': rank_info_as_dict(user.green_credits),
        'status_breakdown': dict(
            WasteSubmission.objects.filter(user=user).values_list('status').annotate(count=Count('id'))
        ),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_dashboard(request):
    """System-wide totals for the admin panel"""
    now = timezone.now()
    today = timezone.localdate()
    approved = WasteSubmission.objects.filter(status='approved')
    totals = approved.aggregate(total_kg=Sum('quantity_kg'), total_points=Sum('points_earned'), count=Count('id'))
    today_totals = approved.filter(created_at__date=today).aggregate(
        total_kg=Sum('quantity_kg'), total_points=Sum('points_earned'), count=Count('id')
    )

    booth_status = {}
    for booth in CollectionBooth.objects.all():
        booth_state = booth.current_status(now)
        booth_status[booth_state] = booth_status.get(booth_state, 0) + 1

    pending = WasteSubmission.objects.filter(status__in=['pending', 'processing']).select_related(
        'user', 'booth', 'waste_type'
    ).order_by('created_at')

    participants = _participants()
    return Response({
        'users': {
            'total': participants.count(),
            'new_today': participants.filter(date_joined__date=today).count(),
            'active_this_week': participants.filter(last_active__gte=now - timedelta(days=7)).count(),
            'by_rank': {rank.name: participants.filter(rank=rank.name).count() for rank in RANKS},
        },
        'waste': {
            'total_kg': totals['total_kg'] or Decimal('0'),
            'total_points_awarded': totals['total_points'] or 0,
            'approved_submissions': totals['count'] or 0,
            'pending_submissions': pending.count(),
        },
        'today': {
            'total_kg': today_totals['total_kg'] or Decimal('0'),
            'total_points_awarded': today_totals['total_points'] or 0,
            'submissions': today_totals['count'] or 0,
        },
        'credits': {
            'in_circulation': participants.aggregate(total=Sum('green_credits'))['total'] or 0,
            'redeemed': abs(CreditTransaction.objects.filter(transaction_type='redeem', status='completed').aggregate(
                total=Sum('points'))['total'] or 0),
        },
        'rewards': {
            'active': Reward.objects.filter(is_active=True).count(),
            'out_of_stock': Reward.objects.filter(is_active=True, stock_available=0).count(),
            'open_orders': Redemption.objects.filter(status__in=['pending', 'processing', 'shipped']).count(),
        },
        'booths': booth_status,
        'recent_pending': WasteSubmissionSerializer(pending[:10], many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_analytics(request):
    """Waste, user, booth and reward trends over ?date_from=&date_to= (default last 30 days)"""
    date_from, date_to = parse_date_range(request)
    in_range = Q(created_at__date__gte=date_from, created_at__date__lte=date_to)

    approved = WasteSubmission.objects.filter(in_range, status='approved')
    waste_by_type = approved.values('waste_type__code', 'waste_type__name').annotate(
        submissions=Count('id'), total_kg=Sum('quantity_kg'), total_points=Sum('points_earned')
    ).order_by('-total_kg')
    waste_daily = approved.annotate(date=TruncDate('created_at')).values('date').annotate(
        submissions=Count('id'), total_kg=Sum('quantity_kg')
    ).order_by('date')

    participants = _participants()
    new_users = participants.filter(
        date_joined__date__gte=date_from, date_joined__date__lte=date_to
    ).annotate(date=TruncDate('date_joined')).values('date').annotate(count=Count('id')).order_by('date')

    top_booths = CollectionBooth.objects.annotate(
        period_kg=Sum('submissions__quantity_kg', filter=Q(
            submissions__status='approved',
            submissions__created_at__date__gte=date_from,
            submissions__created_at__date__lte=date_to,
        )),
        period_submissions=Count('submissions', filter=Q(
            submissions__status='approved',
            submissions__created_at__date__gte=date_from,
            submissions__created_at__date__lte=date_to,
        )),
    ).filter(period_kg__gt=0).order_by('-period_kg')[:10]
    days = (date_to - date_from).days + 1

    redemptions = Redemption.objects.filter(in_range).exclude(status='cancelled')
    by_category = redemptions.values('reward__category').annotate(
        orders=Count('id'), quantity=Sum('quantity'), points=Sum('points_spent')
    ).order_by('-points')
    top_rewards = redemptions.values('reward_id', 'reward__name').annotate(
        orders=Count('id'), quantity=Sum('quantity'), points=Sum('points_spent')
    ).order_by('-quantity')[:10]

    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'waste': {
            'by_type': list(waste_by_type),
            'daily': [
                {'date': row['date'].isoformat(), 'submissions': row['submissions'], 'total_kg': row['total_kg']}
                for row in waste_daily
            ],
        },
        'users': {
            'new_per_day': [{'date': row['date'].isoformat(), 'count': row['count']} for row in new_users],
            'by_rank': {rank.name: participants.filter(rank=rank.name).count() for rank in RANKS},
        },
        'booths': {
            'top_by_kg': [
                {
                    'id': booth.id,
                    'name': booth.name,
                    'code': booth.code,
                    'total_kg': booth.period_kg,
                    'submissions': booth.period_submissions,
                    'average_daily_utilization': round(
                        float(booth.period_kg) / days / float(booth.max_kg_per_day) * 100, 1
                    ) if booth.max_kg_per_day else 0.0,
                }
                for booth in top_booths
            ],
        },
        'rewards': {
            'by_category': list(by_category),
            'top_rewards': list(top_rewards),
        },
    })


EXPORTS = {
    'submissions': (
        ['submission_number', 'username', 'booth', 'waste_type', 'quantity_kg', 'points_earned', 'status',
         'method', 'created_at'],
        lambda: WasteSubmission.objects.select_related('user', 'booth', 'waste_type').order_by('-created_at'),
        lambda s: [s.submission_number, s.user.username, s.booth.code, s.waste_type.code, s.quantity_kg,
                   s.points_earned, s.status, s.method, s.created_at.isoformat()],
    ),
    'users': (
        ['id', 'username', 'email', 'phone', 'green_credits', 'rank', 'total_waste_kg', 'total_submissions',
         'total_points_earned', 'total_points_redeemed', 'is_active', 'date_joined'],
        lambda: User.objects.order_by('id'),
        lambda u: [u.id, u.username, u.email, u.phone or '', u.green_credits, u.rank, u.total_waste_kg,
                   u.total_submissions, u.total_points_earned, u.total_points_redeemed, u.is_active,
                   u.date_joined.isoformat()],
    ),
    'transactions': (
        ['reference_number', 'username', 'transaction_type', 'points', 'balance_before', 'balance_after',
         'status', 'source', 'description', 'created_at'],
        lambda: CreditTransaction.objects.select_related('user').order_by('-created_at', '-id'),
        lambda t: [t.reference_number, t.user.username, t.transaction_type, t.points, t.balance_before,
                   t.balance_after, t.status, t.source, t.description, t.created_at.isoformat()],
    ),
}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdmin])
def admin_export(request):
    """CSV download of ?type=submissions|users|transactions, optionally limited to a date range"""
    export_type = request.query_params.get('type', 'submissions')
    if export_type not in EXPORTS:
        return Response({'error': f"type must be one of: {', '.join(EXPORTS)}"},
                        status=status.HTTP_400_BAD_REQUEST)

    header, queryset_factory, row_for = EXPORTS[export_type]
    queryset = queryset_factory()
    if request.query_params.get('date_from') or request.query_params.get('date_to'):
        date_from, date_to = parse_date_range(request)
        date_field = 'date_joined' if export_type == 'users' else 'created_at'
        queryset = queryset.filter(**{f'{date_field}__date__gte': date_from, f'{date_field}__date__lte': date_to})

    filename = f"bin2win-{export_type}-{timezone.localdate().isoformat()}.csv"
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(header)
    count = 0
    for obj in queryset.iterator():
        writer.writerow(row_for(obj))
        count += 1

    create_audit_log(request=request, action='export', model_name=export_type, object_id=export_type,
                     object_name=filename, changes={'rows': count})
    logger.info(f"{request.user.username} exported {count} {export_type}")
    return response
