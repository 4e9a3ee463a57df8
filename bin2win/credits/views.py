import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from bin2win.core.formatting import format_number
from bin2win.core.permissions import IsAdmin, is_admin_user
from bin2win.core.rules import rank_info_as_dict
from bin2win.core.utils import create_audit_log, paginate
from .filters import CreditTransactionFilter
from .models import CreditTransaction
from .serializers import CreditAdjustmentSerializer, CreditTransactionSerializer, LedgerEntrySerializer
from .services import record_transaction

logger = logging.getLogger('bin2win.credits')

User = get_user_model()

SUMMARY_PERIODS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
    'all': None,
}


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_list(request):
    """The current user's credit history, newest first"""
    queryset = CreditTransaction.objects.filter(user=request.user).select_related(
        'submission', 'redemption', 'created_by'
    )
    params = request.query_params.copy()
    params.pop('user', None)
    filterset = CreditTransactionFilter(params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return paginate(request, filterset.qs, CreditTransactionSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_detail(request, pk):
    credit_transaction = get_object_or_404(
        CreditTransaction.objects.select_related('user', 'submission', 'redemption', 'created_by'), pk=pk
    )
    if credit_transaction.user_id != request.user.id and not is_admin_user(request.user):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(LedgerEntrySerializer(credit_transaction).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def credit_summary(request):
    """Earned, spent and per-type totals over ?period=7d|30d|90d|1y|all (default 30d)"""
    period = request.query_params.get('period', '30d')
    if period not in SUMMARY_PERIODS:
        return Response({'error': f"period must be one of: {', '.join(SUMMARY_PERIODS)}"},
                        status=status.HTTP_400_BAD_REQUEST)

    user = request.user
    queryset = CreditTransaction.objects.filter(user=user, status='completed')
    days = SUMMARY_PERIODS[period]
    if days:
        queryset = queryset.filter(created_at__gte=timezone.now() - timedelta(days=days))

    totals = queryset.aggregate(
        earned=Sum('points', filter=Q(points__gt=0)),
        spent=Sum('points', filter=Q(points__lt=0)),
        count=Count('id'),
    )
    by_type = {
        row['transaction_type']: {'points': row['points'], 'count': row['count']}
        for row in queryset.values('transaction_type').annotate(points=Sum('points'), count=Count('id'))
    }
    earned = totals['earned'] or 0
    spent = abs(totals['spent'] or 0)
    return Response({
        'period': period,
        'current_balance': user.green_credits,
        'current_balance_display': format_number(user.green_credits),
        'rank_info': rank_info_as_dict(user.green_credits),
        'total_earned': earned,
        'total_spent': spent,
        'net_change': earned - spent,
        'transaction_count': totals['count'] or 0,
        'by_type': by_type,
        'lifetime': {
            'total_points_earned': user.total_points_earned,
            'total_points_redeemed': user.total_points_redeemed,
        },
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def credit_adjust(request, user_id):
    """Grant a bonus, apply a penalty or correct a balance (Admin only)"""
    user = get_object_or_404(User, pk=user_id)
    serializer = CreditAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    credit_transaction = record_transaction(
        user,
        data['transaction_type'],
        data['points'],
        description=data['reason'],
        source='admin_adjustment',
        created_by=request.user,
        metadata={'reason': data['reason']},
    )
    create_audit_log(
        request=request,
        action='credit_adjust',
        model_name='User',
        object_id=user.id,
        object_name=user.username,
        object_reference=credit_transaction.reference_number,
        changes={
            'transaction_type': data['transaction_type'],
            'points': credit_transaction.points,
            'balance_before': credit_transaction.balance_before,
            'balance_after': credit_transaction.balance_after,
            'reason': data['reason'],
        },
    )
    logger.info(f"{request.user.username} adjusted credits for {user.username}: {credit_transaction.points:+d}")
    return Response({
        'transaction': CreditTransactionSerializer(credit_transaction).data,
        'green_credits': user.green_credits,
        'rank': user.rank,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdmin])
def ledger(request):
    """Every credit transaction, filterable by user, type, status, source and dates (Admin only)"""
    queryset = CreditTransaction.objects.select_related('user', 'submission', 'redemption', 'created_by')
    filterset = CreditTransactionFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return paginate(request, filterset.qs, LedgerEntrySerializer)
