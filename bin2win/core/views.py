import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError, Q
from django.utils import timezone

from .models import Setting, AuditLog, get_setting
from .otp import send_otp, verify_otp
from .permissions import (
    IsAdmin, IsAdminOrBoothOperator, AuthRateThrottle,
    get_group_names, is_admin_user, is_booth_operator, is_staff_member,
)
from .qr_card import generate_qr_card
from .serializers import (
    UserSerializer, UserCreateSerializer, UserProfileSerializer, UserStatusSerializer,
    OTPRequestSerializer, OTPVerifySerializer, SettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log, paginate, parse_date_param

logger = logging.getLogger('bin2win.core')

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        # Ensure user is active
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        User.objects.filter(pk=self.user.pk).update(last_active=timezone.now())
        data['user'] = UserProfileSerializer(self.user).data
        data['user']['groups'] = get_group_names(self.user)
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['groups'] = list(user.groups.values_list('name', flat=True))
        token['rank'] = user.rank
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [AuthRateThrottle]


class AdminTokenObtainPairSerializer(CustomTokenObtainPairSerializer):
    """Login for the admin panel: Admin group, booth operators and staff only"""
    def validate(self, attrs):
        data = super().validate(attrs)
        if not is_staff_member(self.user):
            logger.warning(f"Admin panel login refused for {self.user.username}")
            raise PermissionDenied('Admin or booth operator access required.')
        data['user']['is_admin'] = is_admin_user(self.user)
        data['user']['is_booth_operator'] = is_booth_operator(self.user)
        return data


class AdminTokenObtainPairView(TokenObtainPairView):
    serializer_class = AdminTokenObtainPairSerializer
    throttle_classes = [AuthRateThrottle]


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def register(request):
    """User registration endpoint"""
    if not get_setting('allow_new_registrations', default=True, cast=bool):
        return Response({'error': 'New registrations are currently closed.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f"New user registered: {user.username} (ID: {user.id})")
        return Response({
            'user': UserProfileSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _username_for_phone(phone):
    base = f"user{phone.lstrip('+')}"
    username, suffix = base, 1
    while User.objects.filter(username=username).exists():
        suffix += 1
        username = f'{base}_{suffix}'
    return username


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def otp_send(request):
    """Send a one-time login code to a phone number"""
    serializer = OTPRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    phone = serializer.validated_data['phone']
    expires_in = send_otp(phone)
    return Response({'phone': phone, 'message': 'OTP sent successfully', 'expires_in': expires_in})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AuthRateThrottle])
def otp_verify(request):
    """
    Log in with a phone number and OTP.

    Unknown numbers are registered on the spot, which needs a `name` of at
    least two characters. Returns 201 for a new account and 200 otherwise.
    """
    serializer = OTPVerifySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    phone = serializer.validated_data['phone']
    name = serializer.validated_data.get('name', '').strip()

    user = User.objects.filter(phone=phone).order_by('id').first()
    if user is None:
        if not get_setting('allow_new_registrations', default=True, cast=bool):
            return Response({'error': 'New registrations are currently closed.'}, status=status.HTTP_403_FORBIDDEN)
        if len(name) < 2:
            return Response({'name': ['Name is required for new users and must be at least 2 characters long.']},
                            status=status.HTTP_400_BAD_REQUEST)
    elif not user.is_active:
        return Response({'error': 'User account is disabled.'}, status=status.HTTP_401_UNAUTHORIZED)

    verify_otp(phone, serializer.validated_data['otp'])

    is_new_user = user is None
    if is_new_user:
        first_name, _, last_name = name.partition(' ')
        user = User(username=_username_for_phone(phone), phone=phone,
                    first_name=first_name[:150], last_name=last_name.strip()[:150], is_active=True)
        user.set_unusable_password()
        user.save()
        logger.info(f"New user registered by OTP: {user.username} (ID: {user.id})")
    User.objects.filter(pk=user.pk).update(last_active=timezone.now())
    user.refresh_from_db()

    token = CustomTokenObtainPairSerializer.get_token(user)
    return Response({
        'user': UserProfileSerializer(user).data,
        'access': str(token.access_token),
        'refresh': str(token),
        'is_new_user': is_new_user,
    }, status=status.HTTP_201_CREATED if is_new_user else status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Blacklist the given refresh token"""
    refresh = request.data.get('refresh')
    if not refresh:
        return Response({'error': 'refresh token is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        RefreshToken(refresh).blacklist()
    except TokenError:
        return Response({'error': 'Token is invalid or expired.'}, status=status.HTTP_400_BAD_REQUEST)
    return Response({'message': 'Logged out successfully.'})


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user with groups and permissions; DELETE deactivates the account"""
    user = request.user

    if request.method == 'PATCH':
        serializer = UserProfileSerializer(user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
    elif request.method == 'DELETE':
        user.is_active = False
        user.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='user_status', model_name='User', object_id=user.id,
                         object_name=user.username, changes={'is_active': False, 'reason': 'self-deactivated'})
        return Response(status=status.HTTP_204_NO_CONTENT)

    user_data = UserProfileSerializer(user).data
    user_data['groups'] = get_group_names(user)
    user_data['is_admin'] = is_admin_user(user)
    user_data['is_booth_operator'] = is_booth_operator(user)
    user_data['assigned_booths'] = [
        {'id': booth.id, 'name': booth.name, 'code': booth.code}
        for booth in user.assigned_booths.filter(is_active=True).order_by('name')
    ]
    return Response(user_data)


def _qr_payload(user):
    return {
        'qr_code': user.qr_code,
        'backup_code': user.backup_code,
        'card': generate_qr_card(
            title=user.display_name,
            qr_value=user.qr_code,
            subtitle=f'@{user.username}',
            backup_code=user.backup_code,
        ),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_qr(request):
    """The current user's QR code, backup code and printable card"""
    return Response(_qr_payload(request.user))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def user_qr_regenerate(request):
    """Issue a new QR code and backup code; the old ones stop working"""
    user = request.user
    old_code = user.qr_code
    user.regenerate_qr_code()
    create_audit_log(request=request, action='qr_regenerate', model_name='User', object_id=user.id,
                     object_name=user.username, changes={'old_qr_code': old_code, 'new_qr_code': user.qr_code})
    return Response(_qr_payload(user))


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        queryset = User.objects.all().order_by('-created_at')
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(username__icontains=search) |
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(phone__icontains=search)
            )
        rank = request.query_params.get('rank', None)
        if rank:
            queryset = queryset.filter(rank__iexact=rank)
        is_active = request.query_params.get('is_active', None)
        if is_active in ('true', 'false'):
            queryset = queryset.filter(is_active=is_active == 'true')
        return paginate(request, queryset, UserSerializer)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(request=request, action='create', model_name='User', object_id=user.id,
                             object_name=user.username)
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdmin])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='User', object_id=user.id,
                             object_name=user.username, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account.'}, status=status.HTTP_400_BAD_REQUEST)
        user_id, username = user.id, user.username
        try:
            user.delete()
        except ProtectedError:
            return Response({'error': 'User has submissions, credits or orders. Deactivate the account instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='User', object_id=user_id,
                         object_name=username)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def user_status(request, pk):
    """Activate or deactivate a user"""
    user = get_object_or_404(User, pk=pk)
    serializer = UserStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if user.pk == request.user.pk and not serializer.validated_data['is_active']:
        return Response({'error': 'You cannot deactivate your own account.'}, status=status.HTTP_400_BAD_REQUEST)

    user.is_active = serializer.validated_data['is_active']
    user.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(request=request, action='user_status', model_name='User', object_id=user.id,
                     object_name=user.username, changes=serializer.validated_data)
    logger.info(f"User {user.username} {'activated' if user.is_active else 'deactivated'} by {request.user.username}")
    return Response(UserSerializer(user).data)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdmin])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Setting', object_id=setting.id,
                             object_name=setting.key, changes={'value': setting.value})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering; non-admins only see their own entries"""
    queryset = AuditLog.objects.select_related('user')

    if not is_admin_user(request.user):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=parse_date_param(date_from, 'date_from'))
    if date_to:
        queryset = queryset.filter(created_at__date__lte=parse_date_param(date_to, 'date_to'))

    queryset = queryset.order_by('-created_at')
    return paginate(request, queryset, AuditLogSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_admin_user(request.user) and audit_log.user_id != request.user.id:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrBoothOperator])
def global_search(request):
    """Search users, booths, rewards, submissions and redemptions"""
    query = request.query_params.get('q', '').strip()

    results = {
        'users': [],
        'booths': [],
        'rewards': [],
        'submissions': [],
        'redemptions': [],
    }
    if not query:
        return Response(results)

    from bin2win.booths.models import CollectionBooth
    from bin2win.booths.serializers import CollectionBoothSerializer
    from bin2win.rewards.models import Reward, Redemption
    from bin2win.rewards.serializers import RewardSerializer, RedemptionSerializer
    from bin2win.waste.models import WasteSubmission
    from bin2win.waste.serializers import WasteSubmissionSerializer
    from .serializers import UserSummarySerializer

    users = User.objects.filter(
        Q(username__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query) |
        Q(first_name__icontains=query) |
        Q(last_name__icontains=query) |
        Q(qr_code__iexact=query) |
        Q(backup_code__iexact=query)
    )[:20]
    results['users'] = UserSummarySerializer(users, many=True).data

    booths = CollectionBooth.objects.filter(
        Q(name__icontains=query) |
        Q(code__icontains=query) |
        Q(area__icontains=query) |
        Q(pincode__icontains=query)
    )[:20]
    results['booths'] = CollectionBoothSerializer(booths, many=True).data

    submissions = WasteSubmission.objects.select_related('user', 'booth', 'waste_type').filter(
        Q(submission_number__icontains=query) |
        Q(user__username__icontains=query)
    )[:20]
    results['submissions'] = WasteSubmissionSerializer(submissions, many=True).data

    if is_admin_user(request.user):
        rewards = Reward.objects.filter(
            Q(name__icontains=query) |
            Q(sponsor_name__icontains=query)
        )[:20]
        results['rewards'] = RewardSerializer(rewards, many=True).data

        redemptions = Redemption.objects.select_related('user', 'reward').filter(
            Q(order_number__icontains=query) |
            Q(voucher_code__iexact=query) |
            Q(tracking_number__icontains=query)
        )[:20]
        results['redemptions'] = RedemptionSerializer(redemptions, many=True).data

    return Response(results)
