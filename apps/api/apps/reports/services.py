"""
Revenue reports by day, month and year.

One core operation, build_report(window, scope), serves every role. The
role to scope translation happens once in resolve_report_scope:
- admin / reception: every payment, with a per-doctor breakdown
- doctor: only payments attributed to that doctor, no breakdown
"""
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from django.db.models import Q

from apps.authz.models import Doctor
from apps.clinical.models import Attention
from apps.core.observability import metrics, get_sanitized_logger
from apps.core.observability.tracing import trace_span
from apps.payments.models import Payment
from apps.reports.aggregation import DoctorInfo, ReportSummary, group_by_doctor, summarize
from apps.reports.periods import (
    PERIOD_DAY,
    PERIOD_MONTH,
    PERIOD_YEAR,
    ReportWindow,
    clinic_timezone,
    day_window,
    local_date,
    month_window,
    year_window,
)
from apps.reports.reconciliation import ATTRIBUTION_MATCHED, ATTRIBUTION_NONE, attribute_payments
from apps.reports.snapshots import attention_snapshots, configured_match_window, payment_snapshots

logger = get_sanitized_logger(__name__)


@dataclass(frozen=True)
class ReportScope:
    """
    doctor_id None with restricted=False means every doctor.

    restricted=True with doctor_id None is a doctor account without an
    active doctor profile: it sees nothing.
    """
    doctor_id: Optional[int] = None
    include_breakdown: bool = False
    restricted: bool = False


def resolve_report_scope(actor) -> ReportScope:
    if actor.is_doctor:
        return ReportScope(doctor_id=actor.doctor_id, include_breakdown=False, restricted=True)
    return ReportScope(doctor_id=None, include_breakdown=True)


def _bucket_key(period):
    """Sub-period key for the per-doctor breakdown (clinic local time)."""
    if period == PERIOD_MONTH:
        return lambda moment: moment.astimezone(clinic_timezone()).strftime('%Y-%m-%d')
    if period == PERIOD_YEAR:
        return lambda moment: moment.astimezone(clinic_timezone()).strftime('%Y-%m')
    return None


def _window_filter(prefix, window: ReportWindow) -> Q:
    return Q(**{f'{prefix}__gte': window.start, f'{prefix}__lt': window.end})


def build_report(window: ReportWindow, scope: ReportScope) -> ReportSummary:
    """
    Attribute and aggregate the payments of one period.

    Doctor scope: the doctor's attentions in the window are matched against
    the unsettled payments of their patients, and only payments attributed
    to the doctor (matched or through a consultation record) are kept.
    """
    started = time.time()

    with trace_span('build_report', attributes={'period': window.period, 'scoped': scope.restricted}):
        if scope.restricted and scope.doctor_id is None:
            attributed = []
        elif scope.restricted:
            attentions = Attention.objects.filter(
                _window_filter('entered_at', window),
                doctor_id=scope.doctor_id,
            )
            patient_ids = attentions.values('patient_id')
            payments = Payment.objects.filter(_window_filter('paid_at', window)).filter(
                Q(consultation_record__isnull=True, patient_id__in=patient_ids) |
                Q(consultation_record__doctor_id=scope.doctor_id)
            )
            attributed = [
                item for item in attribute_payments(
                    attention_snapshots(attentions),
                    payment_snapshots(payments),
                    configured_match_window(),
                )
                if item.doctor_id == scope.doctor_id
            ]
        else:
            attributed = attribute_payments(
                attention_snapshots(Attention.objects.filter(_window_filter('entered_at', window))),
                payment_snapshots(Payment.objects.filter(_window_filter('paid_at', window))),
                configured_match_window(),
            )

        by_doctor = None
        if scope.include_breakdown:
            doctor_ids = {item.doctor_id for item in attributed if item.doctor_id is not None}
            doctors = {
                doctor.id: DoctorInfo(id=doctor.id, display_name=doctor.display_name, specialty=doctor.specialty)
                for doctor in Doctor.objects.filter(pk__in=doctor_ids)
            }
            by_doctor = group_by_doctor(attributed, doctors, _bucket_key(window.period))

        summary = ReportSummary(
            period=window.period,
            start=window.start,
            end=window.end,
            year=window.year,
            month=window.month,
            day=window.day,
            doctor_id=scope.doctor_id,
            totals=summarize(attributed),
            payments=attributed,
            by_doctor=by_doctor,
        )

    matched = sum(1 for item in attributed if item.attribution == ATTRIBUTION_MATCHED)
    unmatched = sum(1 for item in attributed if item.attribution == ATTRIBUTION_NONE)
    if matched:
        metrics.reconciliation_matches_total.labels(result='matched').inc(matched)
    if unmatched:
        metrics.reconciliation_matches_total.labels(result='unmatched').inc(unmatched)
    metrics.report_build_duration_seconds.labels(period=window.period).observe(time.time() - started)

    logger.info(
        'Report built',
        extra={
            'event': 'report_built',
            'period': window.period,
            'doctor_id': scope.doctor_id,
            'payments': len(attributed),
            'matched': matched,
            'unmatched': unmatched,
        }
    )
    return summary


def get_daily_report(actor, now: Optional[datetime] = None) -> ReportSummary:
    return build_report(day_window(local_date(now)), resolve_report_scope(actor))


def get_monthly_report(year: int, month: int, actor) -> ReportSummary:
    return build_report(month_window(year, month), resolve_report_scope(actor))


def get_yearly_report(year: int, actor) -> ReportSummary:
    return build_report(year_window(year), resolve_report_scope(actor))


def get_statistics(actor, now: Optional[datetime] = None):
    """Dashboard totals for today, this month and this year."""
    today = local_date(now)
    scope = replace(resolve_report_scope(actor), include_breakdown=False)
    return {
        PERIOD_DAY: build_report(day_window(today), scope).totals,
        PERIOD_MONTH: build_report(month_window(today.year, today.month), scope).totals,
        PERIOD_YEAR: build_report(year_window(today.year), scope).totals,
    }
