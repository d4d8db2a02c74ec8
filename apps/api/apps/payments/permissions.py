"""
Payment ledger permissions.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles


class PaymentPermission(permissions.BasePermission):
    """
    Permission for payment endpoints.

    - Admin: Full access
    - Reception: Full access (records payments at check-in)
    - Doctor: NO ACCESS (doctors see their income through reports)
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)
        return bool(user_roles & {RoleChoices.ADMIN, RoleChoices.RECEPTION})
