"""
Request correlation middleware.

Every request gets an X-Request-ID (taken from the caller or generated)
that is echoed on the response and attached to each log line written
while the request is served, together with the acting user and roles.
"""
import logging
import time
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

from .metrics import metrics

_request_context = local()

_CONTEXT_FIELDS = ('request_id', 'trace_id', 'user_id', 'user_roles')

logger = logging.getLogger(__name__)


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def get_trace_id():
    return getattr(_request_context, 'trace_id', None)


def get_user_id():
    return getattr(_request_context, 'user_id', None)


def get_user_roles():
    return getattr(_request_context, 'user_roles', [])


def bind_user_context(user_id, roles):
    """
    Attach the authenticated user to the log context.

    JWT authentication runs inside DRF views, after this middleware has
    already seen an anonymous user, so the acting-user resolver calls this.
    """
    _request_context.user_id = str(user_id) if user_id else None
    _request_context.user_roles = sorted(str(role) for role in roles)


def clear_request_context():
    for field in _CONTEXT_FIELDS:
        if hasattr(_request_context, field):
            delattr(_request_context, field)


def _elapsed_ms(request):
    started = getattr(request, 'start_time', None)
    if started is None:
        return None
    return round((time.monotonic() - started) * 1000, 2)


def _request_summary(request, event):
    return {
        'event': event,
        'path': request.path,
        'method': request.method,
        'duration_ms': _elapsed_ms(request),
        'request_id': getattr(request, 'request_id', None),
        'user_id': get_user_id(),
        'user_roles': get_user_roles(),
    }


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Binds X-Request-ID / X-Trace-ID and the user to the thread's log context.

    The context is cleared once the response leaves, so a worker thread
    never carries one request's ids into the next.
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'

    def process_request(self, request):
        request.request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.trace_id = request.META.get(self.TRACE_ID_HEADER)
        request.start_time = time.monotonic()

        _request_context.request_id = request.request_id
        _request_context.trace_id = request.trace_id

        # Session-authenticated users (admin site) are known here; API users
        # are bound later by bind_user_context.
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            bind_user_context(user.id, user.user_roles.values_list('role__name', flat=True))
        else:
            bind_user_context(None, [])

    def process_response(self, request, response):
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response['X-Request-ID'] = request_id
        if getattr(request, 'trace_id', None):
            response['X-Trace-ID'] = request.trace_id

        summary = _request_summary(request, 'http_request_completed')
        summary['status_code'] = response.status_code
        logger.info('%s %s -> %s', request.method, request.path, response.status_code, extra=summary)

        clear_request_context()
        return response

    def process_exception(self, request, exception):
        """
        Count and log an exception that escaped the view.

        Domain errors never get here; the DRF exception handler answers
        them. Returning None lets Django render the 500.
        """
        exception_type = exception.__class__.__name__
        metrics.exceptions_total.labels(exception_type=exception_type, location='middleware').inc()

        summary = _request_summary(request, 'http_request_exception')
        summary['exception_type'] = exception_type
        logger.error('Unhandled %s on %s %s', exception_type, request.method, request.path,
                     exc_info=exception, extra=summary)
        return None
