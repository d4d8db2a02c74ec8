"""
Domain error taxonomy shared by the clinical, payments and reports apps.

Errors subclass Django's ValidationError like the other service-layer
errors so model/service code can raise them uniformly; the API exception
handler maps each kind to its HTTP status.
"""
from django.core.exceptions import ValidationError


class ClinicError(ValidationError):
    """Base class for user-visible domain errors."""
    status_code = 400
    default_code = 'error'

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)


class NotFound(ClinicError):
    """Referenced patient/doctor/attention/record/payment does not exist."""
    status_code = 404
    default_code = 'not_found'


class Conflict(ClinicError):
    """Attention state machine violation."""
    status_code = 409
    default_code = 'conflict'


class Forbidden(ClinicError):
    """Actor does not own the attention or record being mutated."""
    status_code = 403
    default_code = 'forbidden'


class EditWindowExpired(ClinicError):
    """
    Consultation record is past its edit window.

    Distinct from Conflict: the caller must open a new attention
    (re-consultation) instead of retrying the edit.
    """
    status_code = 409
    default_code = 'edit_window_expired'


class Validation(ClinicError):
    """Malformed input (negative amount, missing required fields)."""
    status_code = 400
    default_code = 'validation_error'
