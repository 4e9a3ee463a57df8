import logging
from decimal import Decimal, InvalidOperation

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.shortcuts import get_object_or_404
from django.db import IntegrityError
from django.db.models import Count, Q, Sum
from django.utils import timezone

from bin2win.core.model_cache import cache_booth_data, get_cached_booth
from bin2win.core.permissions import IsAdmin, IsAdminOrBoothOperator, can_operate_booth, is_admin_user
from bin2win.core.qr import parse_qr_code
from bin2win.core.qr_card import generate_qr_card
from bin2win.core.utils import create_audit_log, parse_date_range
from .filters import CollectionBoothFilter
from .geo import bounding_box
from .models import CollectionBooth, find_booth
from .serializers import BoothOperatorAssignSerializer, CollectionBoothSerializer, NearbyBoothSerializer

logger = logging.getLogger('bin2win.booths')

DEFAULT_NEARBY_RADIUS_KM = 10
MAX_NEARBY_RADIUS_KM = 100


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def booth_list_create(request):
    """List booths (public) or create a new booth (Admin only)"""
    if request.method == 'GET':
        queryset = CollectionBooth.objects.prefetch_related('operators').order_by('name')
        if not request.query_params.get('active') and not is_admin_user(request.user):
            queryset = queryset.filter(is_active=True)
        queryset = CollectionBoothFilter(request.query_params, queryset=queryset).qs
        serializer = CollectionBoothSerializer(queryset, many=True)
        return Response(serializer.data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can create booths'}, status=status.HTTP_403_FORBIDDEN)

    serializer = CollectionBoothSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        booth = serializer.save()
    except IntegrityError as e:
        logger.error(f"IntegrityError creating booth: {str(e)}")
        return Response({'error': 'A booth with this code already exists.'}, status=status.HTTP_400_BAD_REQUEST)
    logger.info(f"Booth created: {booth.name} ({booth.code}) by {request.user.username}")
    create_audit_log(request=request, action='create', model_name='CollectionBooth', object_id=booth.id,
                     object_name=booth.name, object_reference=booth.code)
    return Response(CollectionBoothSerializer(booth).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
def booth_detail(request, pk):
    """Retrieve a booth (public, cached), update or delete it (Admin only)"""
    if request.method == 'GET':
        cached_data = get_cached_booth(pk)
        if cached_data:
            return Response(cached_data)
        booth = get_object_or_404(CollectionBooth, pk=pk)
        data = CollectionBoothSerializer(booth).data
        cache_booth_data(booth.pk, data)
        return Response(data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can modify booths'}, status=status.HTTP_403_FORBIDDEN)

    booth = get_object_or_404(CollectionBooth, pk=pk)
    if request.method in ('PUT', 'PATCH'):
        serializer = CollectionBoothSerializer(booth, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='CollectionBooth', object_id=booth.id,
                         object_name=booth.name, object_reference=booth.code, changes=request.data)
        return Response(serializer.data)

    # Booths with history are deactivated so submissions keep their booth
    if booth.submissions.exists():
        booth.is_active = False
        booth.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='update', model_name='CollectionBooth', object_id=booth.id,
                         object_name=booth.name, object_reference=booth.code, changes={'is_active': False})
        return Response({'message': 'Booth has submissions and was deactivated instead of deleted.',
                         'booth': CollectionBoothSerializer(booth).data})
    create_audit_log(request=request, action='delete', model_name='CollectionBooth', object_id=booth.id,
                     object_name=booth.name, object_reference=booth.code)
    booth.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([AllowAny])
def booth_nearby(request):
    """Active booths within ?radius= km (default 10) of ?lat=&lng=, nearest first"""
    try:
        lat = Decimal(request.query_params['lat'])
        lng = Decimal(request.query_params['lng'])
        radius = Decimal(request.query_params.get('radius', DEFAULT_NEARBY_RADIUS_KM))
    except KeyError:
        return Response({'error': 'lat and lng are required'}, status=status.HTTP_400_BAD_REQUEST)
    except (InvalidOperation, ValueError):
        return Response({'error': 'lat, lng and radius must be numbers'}, status=status.HTTP_400_BAD_REQUEST)

    if not all(value.is_finite() for value in (lat, lng, radius)):
        return Response({'error': 'lat, lng and radius must be numbers'}, status=status.HTTP_400_BAD_REQUEST)
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        return Response({'error': 'Coordinates out of range'}, status=status.HTTP_400_BAD_REQUEST)
    if radius <= 0 or radius > MAX_NEARBY_RADIUS_KM:
        return Response({'error': f'radius must be between 0 and {MAX_NEARBY_RADIUS_KM} km'},
                        status=status.HTTP_400_BAD_REQUEST)

    min_lat, max_lat, lng_ranges = bounding_box(lat, lng, radius)
    in_lng = Q()
    for min_lng, max_lng in lng_ranges:
        in_lng |= Q(longitude__gte=min_lng, longitude__lte=max_lng)
    candidates = CollectionBooth.objects.filter(
        in_lng,
        is_active=True,
        latitude__gte=min_lat, latitude__lte=max_lat,
    ).prefetch_related('operators')

    booths = []
    for booth in candidates:
        booth.distance_km = booth.distance_to(lat, lng)
        if booth.distance_km <= radius:
            booths.append(booth)
    booths.sort(key=lambda booth: booth.distance_km)

    logger.debug(f"Nearby search ({lat}, {lng}, {radius} km): {len(booths)} booths")
    return Response({
        'count': len(booths),
        'radius_km': float(radius),
        'results': NearbyBoothSerializer(booths, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booth_validate_qr(request):
    """Resolve a scanned booth QR value (or backup code) to an active booth"""
    qr_value = (request.data.get('qr_code') or '').strip()
    backup_code = (request.data.get('backup_code') or '').strip()
    if not qr_value and not backup_code:
        return Response({'error': 'qr_code or backup_code is required'}, status=status.HTTP_400_BAD_REQUEST)

    if qr_value:
        parsed = parse_qr_code(qr_value)
        if parsed['type'] != 'booth' or not parsed['is_valid']:
            return Response({'error': 'Invalid booth QR code'}, status=status.HTTP_400_BAD_REQUEST)

    booth = find_booth(qr_value or backup_code, active_only=False)
    if booth is None:
        return Response({'error': 'Booth not found'}, status=status.HTTP_404_NOT_FOUND)
    if not booth.is_active:
        return Response({'error': 'Booth is inactive'}, status=status.HTTP_400_BAD_REQUEST)

    can_accept, reason = booth.can_accept_waste(0)
    return Response({
        'valid': True,
        'booth': CollectionBoothSerializer(booth).data,
        'can_accept': can_accept,
        'reason': reason,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def booth_statistics(request, pk):
    """Collection totals for a booth over ?date_from=&date_to=, plus today's load"""
    booth = get_object_or_404(CollectionBooth, pk=pk)
    if not can_operate_booth(request.user, booth):
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)

    date_from, date_to = parse_date_range(request)
    submissions = booth.submissions.filter(
        status='approved',
        created_at__date__gte=date_from,
        created_at__date__lte=date_to,
    )
    totals = submissions.aggregate(
        total_kg=Sum('quantity_kg'),
        total_points=Sum('points_earned'),
        total_submissions=Count('id'),
        unique_users=Count('user', distinct=True),
    )
    by_type = submissions.values('waste_type__code', 'waste_type__name').annotate(
        total_kg=Sum('quantity_kg'),
        submissions=Count('id'),
    ).order_by('-total_kg')

    return Response({
        'booth': {'id': booth.id, 'name': booth.name, 'code': booth.code},
        'date_from': date_from,
        'date_to': date_to,
        'total_kg': totals['total_kg'] or Decimal('0'),
        'total_points': totals['total_points'] or 0,
        'total_submissions': totals['total_submissions'] or 0,
        'unique_users': totals['unique_users'] or 0,
        'by_waste_type': [
            {
                'waste_type': row['waste_type__code'],
                'name': row['waste_type__name'],
                'total_kg': row['total_kg'],
                'submissions': row['submissions'],
            }
            for row in by_type
        ],
        'pending_submissions': booth.submissions.filter(status__in=['pending', 'processing']).count(),
        'today': {
            'current_status': booth.current_status(),
            'capacity_utilization': booth.capacity_utilization(),
            'kg_today': booth.kg_today if booth.last_reset_date == timezone.localdate() else Decimal('0'),
            'submissions_today': booth.submissions_today if booth.last_reset_date == timezone.localdate() else 0,
        },
        'lifetime': {
            'total_collected_kg': booth.total_collected_kg,
            'total_submissions': booth.total_submissions,
            'last_collection_at': booth.last_collection_at,
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def booth_qr_card(request, pk):
    """Printable QR poster for a booth"""
    booth = get_object_or_404(CollectionBooth, pk=pk)
    if not can_operate_booth(request.user, booth):
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)
    return Response({
        'qr_code': booth.qr_code,
        'backup_code': booth.backup_code,
        'card': generate_qr_card(
            title=booth.name,
            qr_value=booth.qr_code,
            subtitle=f'{booth.area} - {booth.code}',
            backup_code=booth.backup_code,
        ),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def booth_operators(request, pk):
    """Assign or remove booth operators; users added are put in the BoothOperator group"""
    from django.contrib.auth.models import Group
    from bin2win.core.permissions import BOOTH_OPERATOR_GROUP

    booth = get_object_or_404(CollectionBooth, pk=pk)
    serializer = BoothOperatorAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    added = serializer.validated_data.get('add', [])
    removed = serializer.validated_data.get('remove', [])
    if added:
        group, _ = Group.objects.get_or_create(name=BOOTH_OPERATOR_GROUP)
        for user in added:
            user.groups.add(group)
        booth.operators.add(*added)
    if removed:
        booth.operators.remove(*removed)

    create_audit_log(request=request, action='operator_assign', model_name='CollectionBooth', object_id=booth.id,
                     object_name=booth.name, object_reference=booth.code,
                     changes={'added': [user.username for user in added], 'removed': [user.username for user in removed]})
    booth.save(update_fields=['updated_at'])
    return Response(CollectionBoothSerializer(booth).data)
