import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404

from bin2win.core.permissions import IsAdmin, RedeemRateThrottle, is_admin_user
from bin2win.core.utils import create_audit_log, paginate
from .filters import RedemptionFilter, RewardFilter
from .models import Redemption, Reward
from .serializers import (
    RedeemSerializer, RedemptionCancelSerializer, RedemptionRateSerializer, RedemptionSerializer,
    RedemptionStatusSerializer, RewardSerializer, RewardSummarySerializer,
)
from .services import cancel_redemption, rate_redemption, record_view, redeem_reward, update_redemption_status

logger = logging.getLogger('bin2win.rewards')

DEFAULT_POPULAR_LIMIT = 10
DEFAULT_FEATURED_LIMIT = 6


def _limit_param(request, default, maximum=50):
    try:
        return min(max(1, int(request.query_params.get('limit', default))), maximum)
    except (TypeError, ValueError):
        return default


# Reward catalog
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def reward_list_create(request):
    """Browse the reward catalog (public) or add a reward (Admin only)"""
    if request.method == 'GET':
        queryset = Reward.objects.all().order_by('points_required', 'name')
        if not is_admin_user(request.user):
            queryset = queryset.filter(is_active=True)
        filterset = RewardFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, filterset.qs, RewardSerializer)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can create rewards'}, status=status.HTTP_403_FORBIDDEN)
    serializer = RewardSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    reward = serializer.save()
    logger.info(f"Reward created: {reward.name} by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='Reward', object_id=reward.id,
                     object_name=reward.name, changes={'points_required': reward.points_required,
                                                       'stock_total': reward.stock_total})
    return Response(RewardSerializer(reward, context={'request': request}).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
def reward_detail(request, pk):
    """Retrieve a reward (counts a view), or update/delete it (Admin only)"""
    reward = get_object_or_404(Reward, pk=pk)

    if request.method == 'GET':
        if not reward.is_active and not is_admin_user(request.user):
            return Response({'error': 'Reward not found'}, status=status.HTTP_404_NOT_FOUND)
        record_view(reward)
        return Response(RewardSerializer(reward, context={'request': request}).data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can modify rewards'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ['PUT', 'PATCH']:
        serializer = RewardSerializer(reward, data=request.data, partial=request.method == 'PATCH',
                                      context={'request': request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        reward = serializer.save()
        create_audit_log(request=request, action='update', model_name='Reward', object_id=reward.id,
                         object_name=reward.name, changes=dict(request.data))
        return Response(RewardSerializer(reward, context={'request': request}).data)

    # Orders keep their reward, so a reward that has been redeemed is only deactivated
    open_orders = reward.redemptions.filter(status__in=['pending', 'processing', 'shipped']).count()
    if open_orders:
        return Response({'error': f'Cannot delete reward with {open_orders} open redemptions.'},
                        status=status.HTTP_400_BAD_REQUEST)
    if reward.redemptions.exists():
        reward.is_active = False
        reward.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='update', model_name='Reward', object_id=reward.id,
                         object_name=reward.name, changes={'is_active': False, 'reason': 'deactivated instead of delete'})
        return Response({'message': 'Reward deactivated', 'id': reward.id})

    create_audit_log(request=request, action='delete', model_name='Reward', object_id=reward.id,
                     object_name=reward.name)
    reward.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([AllowAny])
def reward_categories(request):
    """Categories with the number of active rewards in each"""
    counts = dict(
        Reward.objects.filter(is_active=True).values_list('category').annotate(count=Count('id'))
    )
    return Response([
        {'category': code, 'name': name, 'count': counts.get(code, 0)}
        for code, name in Reward.CATEGORY_CHOICES
    ])


@api_view(['GET'])
@permission_classes([AllowAny])
def reward_popular(request):
    limit = _limit_param(request, DEFAULT_POPULAR_LIMIT)
    rewards = Reward.objects.filter(is_active=True, stock_available__gt=0).order_by('-popularity_score', 'id')[:limit]
    return Response(RewardSerializer(rewards, many=True, context={'request': request}).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def reward_featured(request):
    limit = _limit_param(request, DEFAULT_FEATURED_LIMIT)
    rewards = Reward.objects.filter(
        is_active=True, is_featured=True, stock_available__gt=0
    ).order_by('-popularity_score', 'id')[:limit]
    return Response(RewardSerializer(rewards, many=True, context={'request': request}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([RedeemRateThrottle])
def reward_redeem(request, pk):
    """Spend credits on a reward. Eligibility failures come back as a list of reasons."""
    reward = get_object_or_404(Reward, pk=pk)
    serializer = RedeemSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    redemption = redeem_reward(
        request.user, reward,
        quantity=serializer.validated_data['quantity'],
        delivery_address=serializer.validated_data.get('delivery_address', ''),
    )
    create_audit_log(request=request, action='reward_redeem', model_name='Redemption', object_id=redemption.id,
                     object_name=reward.name, object_reference=redemption.order_number,
                     changes={'quantity': redemption.quantity, 'points_spent': redemption.points_spent})
    return Response({
        'redemption': RedemptionSerializer(redemption).data,
        'remaining_credits': request.user.green_credits,
        'rank': request.user.rank,
    }, status=status.HTTP_201_CREATED)


# Wishlist
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wishlist(request):
    rewards = request.user.wishlist.filter(is_active=True).order_by('points_required', 'name')
    return Response(RewardSummarySerializer(rewards, many=True).data)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_item(request, pk):
    reward = get_object_or_404(Reward, pk=pk, is_active=True)
    if request.method == 'POST':
        if reward.wishlisted_by.filter(pk=request.user.pk).exists():
            return Response({'error': 'Reward already in wishlist'}, status=status.HTTP_400_BAD_REQUEST)
        reward.wishlisted_by.add(request.user)
        return Response({'message': 'Reward added to wishlist'}, status=status.HTTP_201_CREATED)

    reward.wishlisted_by.remove(request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Redemptions (orders)
def _redemption_queryset_for(user):
    queryset = Redemption.objects.select_related('user', 'reward')
    if is_admin_user(user):
        return queryset
    return queryset.filter(user=user)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def redemption_list(request):
    """Own orders; admins see every order. Filters: status, reward, user, date_from, date_to, search."""
    params = request.query_params
    if not is_admin_user(request.user):
        params = params.copy()
        params.pop('user', None)
    filterset = RedemptionFilter(params, queryset=_redemption_queryset_for(request.user))
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    response = paginate(request, filterset.qs.order_by('-created_at'), RedemptionSerializer)
    if request.query_params.get('include_summary') == 'true':
        summary = filterset.qs.exclude(status='cancelled').aggregate(
            total_orders=Count('id'), total_points=Sum('points_spent')
        )
        response.data['summary'] = {
            'total_orders': summary['total_orders'] or 0,
            'total_points': summary['total_points'] or 0,
        }
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def redemption_detail(request, pk):
    redemption = get_object_or_404(_redemption_queryset_for(request.user), pk=pk)
    return Response(RedemptionSerializer(redemption).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def redemption_status(request, pk):
    """Move an order to its next status (Admin only)"""
    redemption = get_object_or_404(Redemption, pk=pk)
    serializer = RedemptionStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    previous = redemption.status
    redemption = update_redemption_status(
        redemption, data['status'], changed_by=request.user,
        tracking_number=data.get('tracking_number'), notes=data.get('notes'), reason=data.get('reason'),
    )
    create_audit_log(request=request, action='redemption_status', model_name='Redemption', object_id=redemption.id,
                     object_name=redemption.reward.name, object_reference=redemption.order_number,
                     changes={'status': {'old': previous, 'new': redemption.status}})
    return Response(RedemptionSerializer(redemption).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def redemption_cancel(request, pk):
    """Cancel one of your own pending orders; stock is released and credits refunded"""
    redemption = get_object_or_404(Redemption.objects.select_related('reward'), pk=pk, user=request.user)
    serializer = RedemptionCancelSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    redemption = cancel_redemption(redemption, request.user, reason=serializer.validated_data.get('reason', ''))
    create_audit_log(request=request, action='redemption_cancel', model_name='Redemption', object_id=redemption.id,
                     object_name=redemption.reward.name, object_reference=redemption.order_number,
                     changes={'refunded_points': redemption.points_spent, 'reason': redemption.cancel_reason})
    request.user.refresh_from_db()
    return Response({
        'redemption': RedemptionSerializer(redemption).data,
        'green_credits': request.user.green_credits,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def redemption_rate(request, pk):
    redemption = get_object_or_404(Redemption, pk=pk, user=request.user)
    serializer = RedemptionRateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    redemption = rate_redemption(redemption, serializer.validated_data['rating'])
    return Response(RedemptionSerializer(redemption).data)
