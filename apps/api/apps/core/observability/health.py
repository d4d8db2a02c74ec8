"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
from django.http import JsonResponse
from django.views import View
from django.db import DatabaseError, connection
from django.conf import settings

from .logging import get_sanitized_logger

logger = get_sanitized_logger(__name__)


class HealthzView(View):
    """
    Liveness endpoint.

    Returns 200 OK if the process is serving; no dependency checks.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness endpoint.

    Ready when the database answers and the admin/doctor/reception roles
    exist (role gating depends on them).
    """

    def get(self, request):
        database_ok = self._check_database()
        checks = {
            'database': database_ok,
            'roles': database_ok and self._check_roles(),
        }

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
            return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'database',
                    'error': str(e)
                }
            )
            return False

    def _check_roles(self):
        from apps.authz.models import Role, RoleChoices

        present = set(Role.objects.values_list('name', flat=True))
        missing = set(RoleChoices.values) - present
        if missing:
            logger.warning(
                'Role bootstrap incomplete',
                extra={
                    'event': 'health_check_failed',
                    'check': 'roles',
                    'missing_roles': sorted(missing),
                }
            )
        return not missing
