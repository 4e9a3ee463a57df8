"""
Role checks.

Roles are Django groups: 'Admin' for platform administrators and
'BoothOperator' for staff who weigh and log waste at a booth. Superusers and
staff without an application group fall back to admin access.
"""
from rest_framework.permissions import BasePermission
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle

ADMIN_GROUP = 'Admin'
BOOTH_OPERATOR_GROUP = 'BoothOperator'
APPLICATION_GROUPS = [ADMIN_GROUP, BOOTH_OPERATOR_GROUP]


def get_group_names(user):
    if not user or not user.is_authenticated:
        return []
    return list(user.groups.values_list('name', flat=True))


def is_admin_user(user):
    """
    Check if user is an admin user.
    Returns True if:
    - User is in 'Admin' group, OR
    - User is superuser/staff and not in any application group (fallback)
    """
    user_group_names = get_group_names(user)
    if ADMIN_GROUP in user_group_names:
        return True
    has_application_group = any(name in APPLICATION_GROUPS for name in user_group_names)
    if not has_application_group and (user.is_superuser or user.is_staff):
        return True
    return False


def is_booth_operator(user):
    return BOOTH_OPERATOR_GROUP in get_group_names(user)


def is_staff_member(user):
    """Admins and booth operators, the people allowed into the admin panel"""
    return is_admin_user(user) or is_booth_operator(user)


def can_operate_booth(user, booth):
    """Admins operate every booth; operators only the booths they are assigned to"""
    if is_admin_user(user):
        return True
    if not is_booth_operator(user):
        return False
    return booth.operators.filter(pk=user.pk).exists()


class IsAdmin(BasePermission):
    message = 'Only Admin users can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and is_admin_user(request.user))


class IsAdminOrBoothOperator(BasePermission):
    message = 'Only Admin users or booth operators can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and is_staff_member(request.user))


class AuthRateThrottle(AnonRateThrottle):
    """Login and registration attempts, keyed by client IP"""
    scope = 'auth'


class RedeemRateThrottle(UserRateThrottle):
    scope = 'redeem'
