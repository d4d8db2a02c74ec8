"""
DRF exception handler.

Domain errors become {'error': ..., 'code': ...} responses with their own
status; persistence failures are logged with correlation context and
answered with a generic 500.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.exceptions import ClinicError
from apps.core.observability import metrics, get_sanitized_logger

logger = get_sanitized_logger(__name__)


def _message(exc):
    if hasattr(exc, 'message'):
        if exc.params:
            return exc.message % exc.params
        return exc.message
    return '; '.join(exc.messages)


def api_exception_handler(exc, context):
    view = context.get('view')
    location = view.__class__.__name__ if view else 'unknown'

    if isinstance(exc, ClinicError):
        return Response(
            {'error': _message(exc), 'code': exc.code},
            status=exc.status_code
        )

    if isinstance(exc, DjangoValidationError):
        return Response(
            {'error': _message(exc), 'code': 'validation_error'},
            status=status.HTTP_400_BAD_REQUEST
        )

    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DatabaseError):
        metrics.exceptions_total.labels(
            exception_type=exc.__class__.__name__,
            location=location
        ).inc()
        logger.error(
            'Persistence failure',
            exc_info=exc,
            extra={
                'event': 'persistence_error',
                'exception_type': exc.__class__.__name__,
                'location': location,
            }
        )
        return Response(
            {'error': 'Internal error, please retry the operation', 'code': 'internal_error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return None
