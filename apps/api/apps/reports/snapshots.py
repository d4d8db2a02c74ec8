"""
Database reads feeding the reconciliation engine.

Querysets are flattened into frozen snapshots so matching runs on plain
values.
"""
from datetime import timedelta
from typing import List

from django.conf import settings

from apps.reports.reconciliation import AttentionSnapshot, PaymentSnapshot


def configured_match_window() -> timedelta:
    return timedelta(minutes=settings.PAYMENT_MATCH_WINDOW_MINUTES)


def attention_snapshots(queryset) -> List[AttentionSnapshot]:
    """Attention rows in storage order."""
    rows = queryset.order_by('id').values_list('id', 'patient_id', 'doctor_id', 'entered_at')
    return [
        AttentionSnapshot(id=pk, patient_id=patient_id, doctor_id=doctor_id, entered_at=entered_at)
        for pk, patient_id, doctor_id, entered_at in rows
    ]


def payment_snapshots(queryset) -> List[PaymentSnapshot]:
    rows = queryset.order_by('paid_at', 'id').values_list(
        'id',
        'patient_id',
        'amount',
        'method',
        'paid_at',
        'consultation_record_id',
        'consultation_record__doctor_id',
    )
    return [
        PaymentSnapshot(
            id=pk,
            patient_id=patient_id,
            amount=amount,
            method=method,
            paid_at=paid_at,
            consultation_record_id=record_id,
            record_doctor_id=record_doctor_id,
        )
        for pk, patient_id, amount, method, paid_at, record_id, record_doctor_id in rows
    ]
