"""
Role permissions for the clinic API.

Roles are read from UserRole. Ownership (a doctor acting on their own
attention/record) is enforced by the services, not here.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


def get_user_roles(user):
    return set(user.user_roles.values_list('role__name', flat=True))


class HasClinicRole(permissions.BasePermission):
    """Base permission: allow users holding any role in allowed_roles."""
    allowed_roles = frozenset()

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return bool(get_user_roles(request.user) & self.allowed_roles)


class IsAdmin(HasClinicRole):
    """Only Admin role users."""
    allowed_roles = frozenset({RoleChoices.ADMIN})


class IsDoctorOrAdmin(HasClinicRole):
    """
    Clinical actions (call, consultation records, re-consultation).

    - Admin: allowed (impersonates the owning doctor)
    - Doctor: allowed
    - Reception: NO ACCESS
    """
    allowed_roles = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR})


class IsFrontDeskOrAdmin(HasClinicRole):
    """
    Front-desk actions (check-in, payment ledger).

    - Admin: full access
    - Reception: full access
    - Doctor: NO ACCESS
    """
    allowed_roles = frozenset({RoleChoices.ADMIN, RoleChoices.RECEPTION})


class IsClinicStaff(HasClinicRole):
    """Any clinic role (queue listings, cancellation, reports)."""
    allowed_roles = frozenset({RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.RECEPTION})

