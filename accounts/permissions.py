"""
Role-based DRF permissions.
"""
from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import User


class RolePermission(BasePermission):
    """Grant access to authenticated users holding one of ``allowed_roles``."""
    allowed_roles = ()

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.has_role(*self.allowed_roles):
            return True
        self.message = (
            f"You do not have permission to perform this action. "
            f"Required roles: {', '.join(self.allowed_roles)}. Your role: {user.role}"
        )
        return False


class IsAdminOrManager(RolePermission):
    allowed_roles = (User.Role.ADMIN, User.Role.MANAGER)


class DeleteRequiresAdminOrManager(IsAdminOrManager):
    """Any authenticated user may read and write; only admin/manager may delete."""

    def has_permission(self, request, view):
        if request.method != 'DELETE':
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)


class IsAdminOrReadOnly(RolePermission):
    allowed_roles = (User.Role.ADMIN,)

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)
