"""
Tests for observability layer.

Validates that metrics, logs, and events are emitted correctly
without logging PHI/PII.
"""
import json
import logging

import pytest
from django.contrib.auth.models import AnonymousUser
from django.http import HttpResponse
from django.test import RequestFactory
from unittest.mock import Mock, patch, MagicMock

from apps.core.observability.correlation import (
    RequestCorrelationMiddleware,
    bind_user_context,
    clear_request_context,
    get_request_id,
    get_user_id,
)
from apps.core.observability.logging import (
    SanitizedJSONFormatter,
    sanitize_dict,
)
from apps.core.observability.metrics import metrics
from apps.core.observability.events import (
    log_attention_cancelled,
    log_attention_transition,
    log_domain_event,
    log_record_edit_blocked,
)


@pytest.mark.django_db
class TestRequestCorrelation:
    """Test request correlation middleware."""

    def teardown_method(self):
        clear_request_context()

    def test_generates_request_id_if_missing(self):
        """Middleware generates request ID if not in headers."""
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={}, path='/api/test', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id
        assert get_request_id() == request.request_id

    def test_propagates_existing_request_id(self):
        """Middleware uses existing request ID from headers."""
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(
            META={'HTTP_X_REQUEST_ID': 'test-request-123'},
            path='/api/test',
            method='GET'
        )
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id == 'test-request-123'

    def test_adds_request_id_to_response_headers(self):
        """Middleware adds X-Request-ID to response and clears context."""
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = RequestFactory().get('/api/test')
        request.user = AnonymousUser()
        middleware.process_request(request)
        request.request_id = 'test-123'
        response = HttpResponse()

        middleware.process_response(request, response)

        assert response['X-Request-ID'] == 'test-123'
        assert get_request_id() is None

    def test_unhandled_exception_counted(self):
        middleware = RequestCorrelationMiddleware(lambda r: HttpResponse())
        request = RequestFactory().post('/api/v1/clinical/check-in/')
        request.user = AnonymousUser()
        middleware.process_request(request)

        with patch('apps.core.observability.correlation.metrics') as mock_metrics:
            assert middleware.process_exception(request, RuntimeError('boom')) is None

        mock_metrics.exceptions_total.labels.assert_called_once_with(
            exception_type='RuntimeError', location='middleware'
        )
        mock_metrics.exceptions_total.labels.return_value.inc.assert_called_once()

    def test_bind_user_context(self):
        bind_user_context(42, ['reception', 'admin'])
        assert get_user_id() == '42'

    def test_response_header_over_http(self, reception_client):
        response = reception_client.get('/api/v1/reports/statistics/', HTTP_X_REQUEST_ID='req-77')
        assert response['X-Request-ID'] == 'req-77'


@pytest.mark.django_db
class TestSanitization:
    """Test PHI/PII sanitization."""

    def test_sanitize_dict_redacts_patient_identity(self):
        data = {
            'patient_id': '123',
            'first_name': 'Juan',
            'last_name': 'Perez',
            'national_id': '30111222',
            'phone': '555-1234',
            'status': 'waiting',
        }

        sanitized = sanitize_dict(data)

        assert sanitized['patient_id'] == '123'
        assert sanitized['status'] == 'waiting'
        for field in ('first_name', 'last_name', 'national_id', 'phone'):
            assert sanitized[field] == '[REDACTED]'

    def test_sanitize_dict_redacts_record_content(self):
        data = {
            'record': {
                'id': 7,
                'content': 'Chest pain',
                'diagnosis': 'Angina',
                'temperature': '37.5',
            },
            'changed_fields': ['content'],
        }

        sanitized = sanitize_dict(data)

        assert sanitized['record']['id'] == 7
        assert sanitized['record']['content'] == '[REDACTED]'
        assert sanitized['record']['diagnosis'] == '[REDACTED]'
        assert sanitized['record']['temperature'] == '[REDACTED]'
        assert sanitized['changed_fields'] == ['content']

    def test_allowed_fields_not_redacted(self):
        data = {
            'attention_id': '10',
            'payment_id': '11',
            'doctor_id': '3',
            'method': 'cash',
            'amount': '100.00',
        }
        assert sanitize_dict(data) == data

    def test_json_formatter_redacts_extra_fields(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1, 'Patient upserted', None, None)
        record.national_id = '30111222'
        record.patient_id = '5'
        record.metadata = {'first_name': 'Juan', 'attention_id': '9'}

        output = json.loads(SanitizedJSONFormatter().format(record))

        assert output['message'] == 'Patient upserted'
        assert output['national_id'] == '[REDACTED]'
        assert output['patient_id'] == '5'
        assert output['metadata'] == {'first_name': '[REDACTED]', 'attention_id': '9'}


class TestMetricsRegistry:
    """All metrics used by the services are defined."""

    @pytest.mark.parametrize('name', [
        'exceptions_total',
        'attention_transitions_total',
        'attention_cancellations_total',
        'consultation_records_created_total',
        'consultation_record_edits_total',
        'payments_recorded_total',
        'payments_cleanup_deleted_total',
        'reconciliation_matches_total',
        'report_build_duration_seconds',
    ])
    def test_metric_exists(self, name):
        assert hasattr(metrics, name)


@pytest.mark.django_db
class TestDomainEvents:
    """Test domain event logging."""

    @patch('apps.core.observability.events.logger')
    def test_log_domain_event_structure(self, mock_logger):
        log_domain_event(
            'payment_recorded',
            entity_type='Payment',
            entity_id='12',
            result='success',
            method='cash',
        )

        mock_logger.info.assert_called_once()
        extra = mock_logger.info.call_args[1]['extra']
        assert extra['event'] == 'payment_recorded'
        assert extra['entity_type'] == 'Payment'
        assert extra['entity_id'] == '12'
        assert extra['method'] == 'cash'

    @patch('apps.core.observability.events.logger')
    def test_extra_fields_sanitized(self, mock_logger):
        log_domain_event('patient_upserted', entity_type='Patient', entity_id='1', national_id='30111222')

        extra = mock_logger.info.call_args[1]['extra']
        assert extra['national_id'] == '[REDACTED]'

    @patch('apps.core.observability.events.logger')
    def test_conflict_logged_as_warning(self, mock_logger):
        attention = Mock(id=5, doctor_id=2)

        log_attention_transition(attention, 'finished', 'in_consultation', result='conflict')

        mock_logger.warning.assert_called_once()
        extra = mock_logger.warning.call_args[1]['extra']
        assert extra['event'] == 'attention_transition'
        assert extra['attention_id'] == '5'
        assert extra['from_status'] == 'finished'
        assert extra['to_status'] == 'in_consultation'

    @patch('apps.core.observability.events.logger')
    def test_cancellation_lists_payments(self, mock_logger):
        attention = Mock(id=5, patient_id=8, status='waiting')

        log_attention_cancelled(attention, [3, 4])

        extra = mock_logger.info.call_args[1]['extra']
        assert extra['deleted_payment_ids'] == ['3', '4']
        assert extra['patient_id'] == '8'

    @patch('apps.core.observability.events.logger')
    def test_edit_blocked_has_no_content(self, mock_logger):
        record = Mock(id=9, attention_id=5, content='Chest pain')

        log_record_edit_blocked(record, 25.456, 'window_expired')

        extra = mock_logger.warning.call_args[1]['extra']
        assert extra['event'] == 'consultation_record_edit_blocked'
        assert extra['block_reason'] == 'window_expired'
        assert extra['elapsed_hours'] == 25.46
        assert 'content' not in extra


@pytest.mark.django_db
class TestHealthChecks:
    """Test health check endpoints."""

    def test_healthz_returns_200(self, client):
        response = client.get('/healthz')

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert 'version' in data

    def test_readyz_requires_roles(self, client):
        response = client.get('/readyz')

        assert response.status_code == 503
        assert response.json()['checks'] == {'database': True, 'roles': False}

    def test_readyz_ready(self, client):
        from apps.authz.models import Role, RoleChoices
        for name in RoleChoices.values:
            Role.objects.get_or_create(name=name)

        response = client.get('/readyz')

        assert response.status_code == 200
        assert response.json()['status'] == 'ready'

    @patch('apps.core.observability.health.connection')
    def test_readyz_fails_on_db_error(self, mock_connection, client):
        from django.db import DatabaseError
        mock_connection.cursor.side_effect = DatabaseError('DB connection failed')

        response = client.get('/readyz')

        assert response.status_code == 503
        data = response.json()
        assert data['status'] == 'not_ready'
        assert data['checks']['database'] is False


class TestTracing:
    """Test tracing span creation."""

    def test_trace_span_without_sdk(self):
        from apps.core.observability.tracing import trace_span

        with trace_span('call_attention', attributes={'attention_id': 1}):
            pass

    @patch('apps.core.observability.tracing.tracer')
    def test_trace_span_sets_attributes_and_error(self, mock_tracer):
        from apps.core.observability.tracing import trace_span

        mock_span = MagicMock()
        mock_tracer.start_as_current_span.return_value.__enter__.return_value = mock_span

        with pytest.raises(ValueError):
            with trace_span('build_report', attributes={'period': 'month'}):
                raise ValueError('boom')

        mock_tracer.start_as_current_span.assert_called_once()
        mock_span.set_attribute.assert_any_call('period', 'month')
        mock_span.set_attribute.assert_any_call('error.type', 'ValueError')


@pytest.mark.django_db
class TestTestSettings:

    def test_suite_runs_on_in_memory_sqlite(self):
        from django.db import connection

        assert connection.vendor == 'sqlite'
        assert connection.settings_dict['ENGINE'] == 'django.db.backends.sqlite3'
