"""
Clinical permissions for API endpoints.

BUSINESS RULE: Reception cannot read consultation records (clinical content).
Ownership (doctor acting on their own attention/record) is checked by the
services, which receive an explicit ActingUser.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles

CLINIC_ROLES = {RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.RECEPTION}


class PatientPermission(permissions.BasePermission):
    """
    Permission for Patient endpoints based on role.

    - Admin: Full access (read, write, delete)
    - Doctor: Read only
    - Reception: Read, create, update (no delete)
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)

        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & CLINIC_ROLES)

        if request.method in ['POST', 'PATCH', 'PUT']:
            return bool(user_roles & {RoleChoices.ADMIN, RoleChoices.RECEPTION})

        if request.method == 'DELETE':
            # Hard delete cascades to attentions, records and payments
            return RoleChoices.ADMIN in user_roles

        return False


class AttentionPermission(permissions.BasePermission):
    """
    Permission for the attention queue endpoints.

    - GET: any clinic role
    - POST (enqueue): Admin, Reception
    - DELETE (cancel): any clinic role; the service decides by status and owner
    - call / reconsultation actions declare IsDoctorOrAdmin
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)

        if request.method in permissions.SAFE_METHODS or request.method == 'DELETE':
            return bool(user_roles & CLINIC_ROLES)

        if request.method == 'POST':
            return bool(user_roles & {RoleChoices.ADMIN, RoleChoices.RECEPTION})

        return False


class ConsultationRecordPermission(permissions.BasePermission):
    """
    Permission for consultation records.

    - Admin: Full access (impersonates the author on writes)
    - Doctor: Read, create, update (own records, enforced by the service)
    - Reception: NO ACCESS (business rule)
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        user_roles = get_user_roles(request.user)

        if request.method == 'DELETE':
            return False

        return bool(user_roles & {RoleChoices.ADMIN, RoleChoices.DOCTOR})
