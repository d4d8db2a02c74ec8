"""
Explicit acting-user context passed into every core operation.

Services never read request.user; the API layer resolves the
authenticated user into an ActingUser once and hands it down.
"""
from dataclasses import dataclass
from typing import Optional

from apps.authz.models import Doctor, RoleChoices
from apps.core.exceptions import Forbidden
from apps.core.observability.correlation import bind_user_context

# Highest privilege first; a user holding several roles acts as the first match.
ROLE_PRECEDENCE = (RoleChoices.ADMIN, RoleChoices.DOCTOR, RoleChoices.RECEPTION)


@dataclass(frozen=True)
class ActingUser:
    user_id: object
    role: str
    doctor_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == RoleChoices.ADMIN

    @property
    def is_doctor(self) -> bool:
        return self.role == RoleChoices.DOCTOR

    @property
    def is_reception(self) -> bool:
        return self.role == RoleChoices.RECEPTION


def resolve_acting_user(user) -> ActingUser:
    """
    Build the ActingUser for an authenticated Django user.

    Raises:
        Forbidden: the user holds none of the clinic roles
    """
    roles = set(user.user_roles.values_list('role__name', flat=True))
    bind_user_context(user.id, roles)

    role = next((r for r in ROLE_PRECEDENCE if r in roles), None)
    if role is None:
        raise Forbidden('User has no clinic role assigned')

    doctor_id = (
        Doctor.objects
        .filter(user=user, is_active=True)
        .values_list('id', flat=True)
        .first()
    )
    return ActingUser(user_id=user.id, role=str(role), doctor_id=doctor_id)
