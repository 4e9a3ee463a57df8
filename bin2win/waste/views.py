import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Avg, Count, Q, Sum
from django.shortcuts import get_object_or_404

from bin2win.booths.models import CollectionBooth, find_booth
from bin2win.booths.serializers import BoothSummarySerializer
from bin2win.core.models import find_user
from bin2win.core.model_cache import get_co2_factors
from bin2win.core.permissions import IsAdmin, IsAdminOrBoothOperator, can_operate_booth, is_admin_user, is_booth_operator
from bin2win.core.rules import co2_saved
from bin2win.core.serializers import UserSummarySerializer
from bin2win.core.utils import create_audit_log, paginate, parse_date_range
from bin2win.credits.serializers import CreditTransactionSerializer
from .filters import WasteSubmissionFilter
from .models import WasteSubmission, WasteType
from .serializers import (
    ScanUserSerializer, SubmissionApproveSerializer, SubmissionRejectSerializer, WasteCalculateSerializer,
    WasteCollectSerializer, WasteSubmissionSerializer, WasteSubmitSerializer, WasteTypeSerializer,
)
from .services import (
    approve_submission, collect_waste, mark_processing, quote_submission, reject_submission, submit_waste,
)

logger = logging.getLogger('bin2win.waste')

STATS_GROUPS = {
    'type': ('waste_type__code', 'waste_type__name'),
    'booth': ('booth_id', 'booth__name'),
    'status': ('status',),
}


def _resolve_booth(identifier):
    value = str(identifier or '').strip()
    if value.isdigit():
        return CollectionBooth.objects.filter(pk=int(value), is_active=True).first()
    return find_booth(value)


def _submission_queryset_for(user):
    """Admins see every submission, operators their booths' and their own, users only their own"""
    queryset = WasteSubmission.objects.select_related('user', 'booth', 'waste_type', 'collected_by', 'verified_by')
    if is_admin_user(user):
        return queryset
    if is_booth_operator(user):
        return queryset.filter(Q(booth__operators=user) | Q(user=user)).distinct()
    return queryset.filter(user=user)


# Waste type views
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def waste_type_list_create(request):
    """Active waste types with their point rates (public), or add a type (Admin only)"""
    if request.method == 'GET':
        queryset = WasteType.objects.all().order_by('name')
        if not is_admin_user(request.user):
            queryset = queryset.filter(is_active=True)
        return Response(WasteTypeSerializer(queryset, many=True).data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can create waste types'}, status=status.HTTP_403_FORBIDDEN)
    serializer = WasteTypeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    waste_type = serializer.save()
    create_audit_log(request=request, action='create', model_name='WasteType', object_id=waste_type.id,
                     object_name=waste_type.name, changes=serializer.data)
    return Response(WasteTypeSerializer(waste_type).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsAdmin])
def waste_type_detail(request, pk):
    """Retrieve or change a waste type's rate (Admin only)"""
    waste_type = get_object_or_404(WasteType, pk=pk)
    if request.method == 'GET':
        return Response(WasteTypeSerializer(waste_type).data)

    before = {'points_per_kg': str(waste_type.points_per_kg), 'co2_factor': str(waste_type.co2_factor),
              'is_active': waste_type.is_active}
    serializer = WasteTypeSerializer(waste_type, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    waste_type = serializer.save()
    after = {'points_per_kg': str(waste_type.points_per_kg), 'co2_factor': str(waste_type.co2_factor),
             'is_active': waste_type.is_active}
    changes = {key: {'old': before[key], 'new': after[key]} for key in before if before[key] != after[key]}
    logger.info(f"Waste type {waste_type.code} updated by {request.user.username}: {changes}")
    create_audit_log(request=request, action='update', model_name='WasteType', object_id=waste_type.id,
                     object_name=waste_type.name, changes=changes)
    return Response(WasteTypeSerializer(waste_type).data)


@api_view(['POST'])
@permission_classes([AllowAny])
def waste_calculate(request):
    """Preview the points and CO2 saving for a drop-off"""
    serializer = WasteCalculateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    breakdown = quote_submission(serializer.validated_data['waste_type'], serializer.validated_data['quantity'])
    return Response({
        'waste_type': breakdown['waste_type'],
        'quantity': breakdown['quantity'],
        'rate': breakdown['rate'],
        'base_points': breakdown['base_points'],
        'multiplier': breakdown['multiplier'],
        'points': breakdown['points'],
        'co2_saved': co2_saved(breakdown['waste_type'], breakdown['quantity'], get_co2_factors()),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def waste_submit(request):
    """Log a drop-off at a booth; it is credited once approved"""
    serializer = WasteSubmitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    booth = _resolve_booth(data['booth'])
    if booth is None:
        return Response({'error': 'Booth not found'}, status=status.HTTP_404_NOT_FOUND)

    submission = submit_waste(request.user, booth, data['waste_type'], data['quantity'],
                              notes=data.get('notes', ''), method=data['method'])
    create_audit_log(request=request, action='waste_submit', model_name='WasteSubmission', object_id=submission.id,
                     object_name=request.user.username, object_reference=submission.submission_number,
                     changes={'booth': booth.code, 'waste_type': submission.waste_type.code,
                              'quantity_kg': str(submission.quantity_kg), 'points': submission.points_earned})
    return Response(WasteSubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def submission_list(request):
    filterset = WasteSubmissionFilter(request.query_params, queryset=_submission_queryset_for(request.user))
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return paginate(request, filterset.qs.order_by('-created_at'), WasteSubmissionSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def submission_detail(request, pk):
    submission = get_object_or_404(_submission_queryset_for(request.user), pk=pk)
    data = WasteSubmissionSerializer(submission).data
    data['credit_transactions'] = CreditTransactionSerializer(submission.credit_transactions.all(), many=True).data
    return Response(data)


def _get_reviewable_submission(request, pk):
    submission = get_object_or_404(WasteSubmission.objects.select_related('booth'), pk=pk)
    if not can_operate_booth(request.user, submission.booth):
        return None
    return submission


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def submission_process(request, pk):
    """Mark a pending submission as being checked"""
    submission = _get_reviewable_submission(request, pk)
    if submission is None:
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)
    submission = mark_processing(submission, reviewer=request.user)
    return Response(WasteSubmissionSerializer(submission).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def submission_approve(request, pk):
    """Approve a submission and credit the user"""
    submission = _get_reviewable_submission(request, pk)
    if submission is None:
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)
    serializer = SubmissionApproveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    submission, credit_transaction = approve_submission(
        submission, request.user,
        notes=serializer.validated_data.get('notes'),
        quality_score=serializer.validated_data.get('quality_score'),
    )
    create_audit_log(request=request, action='waste_approve', model_name='WasteSubmission', object_id=submission.id,
                     object_name=submission.user.username, object_reference=submission.submission_number,
                     changes={'status': 'approved', 'points': submission.points_earned})
    return Response({
        'submission': WasteSubmissionSerializer(submission).data,
        'transaction': CreditTransactionSerializer(credit_transaction).data if credit_transaction else None,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def submission_reject(request, pk):
    submission = _get_reviewable_submission(request, pk)
    if submission is None:
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)
    serializer = SubmissionRejectSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    submission = reject_submission(submission, request.user, serializer.validated_data['reason'],
                                   notes=serializer.validated_data.get('notes'))
    create_audit_log(request=request, action='waste_reject', model_name='WasteSubmission', object_id=submission.id,
                     object_name=submission.user.username, object_reference=submission.submission_number,
                     changes={'status': 'rejected', 'reason': submission.rejection_reason})
    return Response(WasteSubmissionSerializer(submission).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def scan_user(request):
    """Identify a participant from their QR code or backup code"""
    serializer = ScanUserSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user = find_user(serializer.validated_data['qr_code'])
    if user is None:
        return Response({'error': 'Invalid user QR code or user not found'}, status=status.HTTP_404_NOT_FOUND)

    if is_admin_user(request.user):
        booths = CollectionBooth.objects.filter(is_active=True)
    else:
        booths = request.user.assigned_booths.filter(is_active=True)
    booths = booths.order_by('name')
    if not booths.exists():
        return Response({'error': 'You have no assigned booths'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='user_scan', model_name='User', object_id=user.id,
                     object_name=user.username)
    return Response({
        'user': UserSummarySerializer(user).data,
        'booths': BoothSummarySerializer(booths, many=True).data,
        'operator': {'id': request.user.id, 'username': request.user.username},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def waste_collect(request):
    """Record weighed waste for a participant and credit them straight away"""
    serializer = WasteCollectSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    user = find_user(data['user'])
    if user is None:
        return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
    booth = _resolve_booth(data['booth'])
    if booth is None:
        return Response({'error': 'Booth not found'}, status=status.HTTP_404_NOT_FOUND)
    if not can_operate_booth(request.user, booth):
        return Response({'error': 'You are not assigned to this booth'}, status=status.HTTP_403_FORBIDDEN)

    submission, credit_transaction = collect_waste(
        request.user, user, booth, data['waste_type'], data['quantity'],
        notes=data.get('notes', ''), quality_score=data.get('quality_score'),
    )
    create_audit_log(request=request, action='waste_collect', model_name='WasteSubmission', object_id=submission.id,
                     object_name=user.username, object_reference=submission.submission_number,
                     changes={'booth': booth.code, 'waste_type': submission.waste_type.code,
                              'quantity_kg': str(submission.quantity_kg), 'points': submission.points_earned})
    user.refresh_from_db()
    return Response({
        'submission': WasteSubmissionSerializer(submission).data,
        'transaction': CreditTransactionSerializer(credit_transaction).data if credit_transaction else None,
        'user': UserSummarySerializer(user).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def collection_list(request):
    """Operator collections at the caller's booths, optionally one ?booth=, with a summary"""
    queryset = WasteSubmission.objects.select_related('user', 'booth', 'waste_type', 'collected_by', 'verified_by').filter(
        method='booth_operator'
    )
    if not is_admin_user(request.user):
        queryset = queryset.filter(booth__operators=request.user)

    booth_id = request.query_params.get('booth')
    if booth_id:
        booth = get_object_or_404(CollectionBooth, pk=booth_id) if booth_id.isdigit() else None
        if booth is None or not can_operate_booth(request.user, booth):
            return Response({'error': 'Access denied to this booth'}, status=status.HTTP_403_FORBIDDEN)
        queryset = queryset.filter(booth=booth)

    if request.query_params.get('date_from') or request.query_params.get('date_to'):
        date_from, date_to = parse_date_range(request)
        queryset = queryset.filter(created_at__date__gte=date_from, created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    response = paginate(request, queryset, WasteSubmissionSerializer)
    summary = queryset.aggregate(total_collections=Count('id'), total_kg=Sum('quantity_kg'),
                                 total_points=Sum('points_earned'))
    response.data['summary'] = {
        'total_collections': summary['total_collections'] or 0,
        'total_kg': summary['total_kg'] or Decimal('0'),
        'total_points': summary['total_points'] or 0,
    }
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def waste_stats(request):
    """Approved totals grouped by ?group_by=type|booth|status over an optional date range"""
    group_by = request.query_params.get('group_by', 'type')
    if group_by not in STATS_GROUPS:
        return Response({'error': f"group_by must be one of: {', '.join(STATS_GROUPS)}"},
                        status=status.HTTP_400_BAD_REQUEST)

    queryset = WasteSubmission.objects.all()
    if group_by != 'status':
        queryset = queryset.filter(status='approved')
    if request.query_params.get('date_from') or request.query_params.get('date_to'):
        date_from, date_to = parse_date_range(request)
        queryset = queryset.filter(created_at__date__gte=date_from, created_at__date__lte=date_to)
    if request.query_params.get('mine') == 'true':
        queryset = queryset.filter(user=request.user)

    fields = STATS_GROUPS[group_by]
    rows = queryset.values(*fields).annotate(
        submissions=Count('id'),
        total_kg=Sum('quantity_kg'),
        total_points=Sum('points_earned'),
        average_kg=Avg('quantity_kg'),
    ).order_by('-total_kg')

    stats = []
    for row in rows:
        entry = {
            'key': row[fields[0]],
            'submissions': row['submissions'],
            'total_kg': row['total_kg'] or Decimal('0'),
            'total_points': row['total_points'] or 0,
            'average_kg': round(row['average_kg'] or 0, 2),
        }
        if len(fields) > 1:
            entry['name'] = row[fields[1]]
        stats.append(entry)

    return Response({
        'group_by': group_by,
        'stats': stats,
        'totals': {
            'submissions': sum(entry['submissions'] for entry in stats),
            'total_kg': sum((entry['total_kg'] for entry in stats), Decimal('0')),
            'total_points': sum(entry['total_points'] for entry in stats),
        },
    })
