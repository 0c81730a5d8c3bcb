"""
Role-Based Access Control (RBAC) permission classes.

Используйте эти классы вместо голого IsAuthenticated для защиты endpoints:

    from accounts.permissions import IsFPOrAbove, IsAdmin

    class MyView(APIView):
        permission_classes = [IsAuthenticated, IsFPOrAbove]

Доступные классы:
- IsMember: только роль member
- IsFPOrAbove: fp, manager, admin
- IsManagerOrAdmin: manager, admin
- IsAdmin: только администраторы (role='admin' или superuser)
- IsCronOrAdmin: планировщик (Bearer CRON_SECRET) или админ вручную
"""
import logging

from rest_framework.permissions import BasePermission

from .authentication import CRON_AUTH
from .roles import ROLE_MEMBER, ROLE_FP, ROLE_MANAGER, ROLE_ADMIN, role_at_least

logger = logging.getLogger(__name__)


def _is_admin(user):
    return user.role == ROLE_ADMIN or user.is_superuser


class IsMember(BasePermission):
    """Доступ только для обычных участников (role='member')"""
    message = 'UGS会員のみ利用できます'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.role == ROLE_MEMBER


class IsFPOrAbove(BasePermission):
    """FPエイド и выше"""
    message = 'FPエイド以上のみ利用できます'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return role_at_least(request.user.role, ROLE_FP) or request.user.is_superuser


class IsManagerOrAdmin(BasePermission):
    message = 'マネージャー以上のみ利用できます'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return role_at_least(request.user.role, ROLE_MANAGER) or request.user.is_superuser


class IsAdmin(BasePermission):
    """Доступ только для администраторов (role='admin')"""
    message = '管理者権限が必要です'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return _is_admin(request.user)


class IsCronOrAdmin(BasePermission):
    """
    Cron-эндпоинты: GET от планировщика (см. CronSecretAuthentication),
    POST - ручной запуск администратором.
    """
    message = 'Unauthorized'

    def has_permission(self, request, view):
        if request.auth == CRON_AUTH:
            return True
        if request.method != 'POST':
            return False
        user = request.user
        return bool(user and user.is_authenticated and _is_admin(user))
