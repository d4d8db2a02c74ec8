"""
Payment ledger service layer.

- Amounts are non-negative; a zero amount is always INSURANCE
- A payment linked to a consultation record is settled
- Unsettled payments get a doctor from the reconciliation engine
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from apps.authz.models import Doctor
from apps.clinical.models import (
    Attention,
    AuditActionChoices,
    ConsultationRecord,
    Patient,
    log_clinical_audit,
)
from apps.core.exceptions import NotFound, Validation
from apps.core.observability import metrics, log_domain_event, get_sanitized_logger
from apps.payments.models import Payment, PaymentMethodChoices
from apps.reports.periods import day_window
from apps.reports.reconciliation import attribute_payments
from apps.reports.snapshots import attention_snapshots, configured_match_window, payment_snapshots

logger = get_sanitized_logger(__name__)

UPDATABLE_FIELDS = ('amount', 'method', 'receipt_number', 'notes', 'consultation_record_id', 'paid_at')

# Newest payments returned by a search
SEARCH_LIMIT = 100


def normalize_amount_and_method(amount, method):
    """
    Validate amount/method and apply the insurance rule.

    Returns:
        (Decimal amount, method)

    Raises:
        Validation: amount missing, not a number or negative; unknown method
    """
    if amount is None:
        raise Validation('Amount is required')
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        raise Validation(f'Invalid amount: {amount}')
    if not amount.is_finite():
        raise Validation(f'Invalid amount: {amount}')
    if amount < 0:
        raise Validation('Amount cannot be negative')

    if amount == 0:
        # Covered by the health insurer regardless of what the caller sent
        return amount, PaymentMethodChoices.INSURANCE

    if method not in PaymentMethodChoices.values:
        raise Validation(
            f"Invalid payment method: {method}. Options: {', '.join(PaymentMethodChoices.values)}"
        )
    return amount, method


def _resolve_record(consultation_record_id, patient_id):
    if consultation_record_id is None:
        return None
    try:
        record = ConsultationRecord.objects.get(pk=consultation_record_id)
    except ConsultationRecord.DoesNotExist:
        raise NotFound(f'Consultation record {consultation_record_id} not found')
    if record.patient_id != patient_id:
        raise Validation('Consultation record belongs to a different patient')
    return record


@transaction.atomic
def record_payment(
    patient_id,
    amount,
    method,
    receipt_number: Optional[str] = None,
    notes: Optional[str] = None,
    consultation_record_id: Optional[int] = None,
    paid_at=None,
    actor=None,
) -> Payment:
    """
    Record money received from a patient.

    Raises:
        Validation: negative amount or unknown method
        NotFound: patient or consultation record does not exist
    """
    amount, method = normalize_amount_and_method(amount, method)

    if not Patient.objects.filter(pk=patient_id).exists():
        raise NotFound(f'Patient {patient_id} not found')
    record = _resolve_record(consultation_record_id, patient_id)

    payment = Payment.objects.create(
        patient_id=patient_id,
        amount=amount,
        method=method,
        receipt_number=receipt_number or None,
        notes=notes or None,
        consultation_record=record,
        paid_at=paid_at or timezone.now(),
    )

    log_clinical_audit(actor, payment, AuditActionChoices.CREATE, after={
        'amount': payment.amount,
        'method': payment.method,
        'consultation_record_id': payment.consultation_record_id,
    })
    metrics.payments_recorded_total.labels(
        method=payment.method,
        settled=str(payment.is_settled).lower()
    ).inc()
    log_domain_event(
        'payment_recorded',
        entity_type='Payment',
        entity_id=str(payment.id),
        entity_ids={'patient_id': str(patient_id)},
        method=payment.method,
        amount=str(payment.amount),
        settled=payment.is_settled,
    )
    return payment


@transaction.atomic
def update_payment(payment_id, changes: Dict[str, Any], actor=None) -> Payment:
    """
    Update a payment. The zero-amount insurance rule is re-applied.

    Raises:
        NotFound: payment or consultation record does not exist
        Validation: unknown field, negative amount, unknown method
    """
    try:
        payment = Payment.objects.select_for_update().get(pk=payment_id)
    except Payment.DoesNotExist:
        raise NotFound(f'Payment {payment_id} not found')

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise Validation(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    amount, method = normalize_amount_and_method(
        changes.get('amount', payment.amount),
        changes.get('method', payment.method),
    )
    new_values = dict(changes, amount=amount, method=method)
    if 'consultation_record_id' in changes:
        _resolve_record(changes['consultation_record_id'], payment.patient_id)

    before = {}
    after = {}
    for field, value in new_values.items():
        current = getattr(payment, field)
        if current != value:
            before[field] = current
            after[field] = value
            setattr(payment, field, value)

    if after:
        payment.save(update_fields=list(after) + ['updated_at'])
        log_clinical_audit(
            actor, payment, AuditActionChoices.UPDATE,
            before=before, after=after, changed_fields=sorted(after)
        )
        log_domain_event(
            'payment_updated',
            entity_type='Payment',
            entity_id=str(payment.id),
            changed_fields=sorted(after),
        )
    return payment


@transaction.atomic
def delete_payment(payment_id, actor=None) -> None:
    try:
        payment = Payment.objects.select_for_update().get(pk=payment_id)
    except Payment.DoesNotExist:
        raise NotFound(f'Payment {payment_id} not found')

    log_clinical_audit(actor, payment, AuditActionChoices.DELETE, before={
        'amount': payment.amount,
        'method': payment.method,
        'paid_at': payment.paid_at,
    })
    pk = payment.pk
    payment.delete()
    log_domain_event('payment_deleted', entity_type='Payment', entity_id=str(pk))


def _attributed_history(payment_ids) -> List[Dict[str, Any]]:
    """
    Payments newest first, each with the doctor it is attributed to.

    Matching runs over the full history of every patient involved, so a
    filtered listing attributes each payment exactly as the reports do.
    """
    selected = set(payment_ids)
    patient_ids = set(
        Payment.objects.filter(pk__in=selected).values_list('patient_id', flat=True)
    )
    payments = Payment.objects.filter(patient_id__in=patient_ids)
    attributed = attribute_payments(
        attention_snapshots(Attention.objects.filter(patient_id__in=patient_ids)),
        payment_snapshots(payments),
        configured_match_window(),
    )
    attributed = [item for item in attributed if item.payment.id in selected]
    doctors = Doctor.objects.in_bulk({item.doctor_id for item in attributed if item.doctor_id})
    by_id = Payment.objects.in_bulk(selected)

    history = []
    for item in reversed(attributed):
        doctor = doctors.get(item.doctor_id)
        history.append({
            'payment': by_id[item.payment.id],
            'attribution': item.attribution,
            'attention_id': item.attention_id,
            'doctor_id': item.doctor_id,
            'doctor_name': doctor.display_name if doctor else None,
            'specialty': doctor.specialty if doctor else None,
        })
    return history


def search_payments(
    patient_id=None,
    consultation_record_id=None,
    method=None,
    date_from=None,
    date_to=None,
    limit: Optional[int] = SEARCH_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Filtered payment listing, newest first, with the attributed doctor.

    Args:
        patient_id: only this patient's payments
        consultation_record_id: only payments settled by this record
        method: one of PaymentMethodChoices
        date_from / date_to: inclusive clinic-local days
        limit: newest N payments (None for all)

    Raises:
        NotFound: unknown patient or consultation record
    """
    payments = Payment.objects.all()
    if patient_id is not None:
        if not Patient.objects.filter(pk=patient_id).exists():
            raise NotFound(f'Patient {patient_id} not found')
        payments = payments.filter(patient_id=patient_id)
    if consultation_record_id is not None:
        if not ConsultationRecord.objects.filter(pk=consultation_record_id).exists():
            raise NotFound(f'Consultation record {consultation_record_id} not found')
        payments = payments.filter(consultation_record_id=consultation_record_id)
    if method:
        payments = payments.filter(method=method)
    if date_from:
        payments = payments.filter(paid_at__gte=day_window(date_from).start)
    if date_to:
        payments = payments.filter(paid_at__lt=day_window(date_to).end)

    payment_ids = payments.order_by('-paid_at', '-id').values_list('id', flat=True)
    if limit is not None:
        payment_ids = payment_ids[:limit]
    return _attributed_history(list(payment_ids))


def list_patient_payments(patient_id) -> List[Dict[str, Any]]:
    """
    Patient payment history, newest first, with the attributed doctor.

    Settled payments show the record's doctor; unsettled ones the doctor of
    the attention the reconciliation engine pairs them with.
    """
    return search_payments(patient_id=patient_id, limit=None)
