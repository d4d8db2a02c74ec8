"""
Clinical service layer - attention queue and consultation records.

Attention lifecycle: waiting -> in_consultation -> finished
- Status changes are compare-and-swap updates inside transaction.atomic
  on a row locked with select_for_update
- A consultation record and the finalization of its attention commit together
- Cancelling an attention removes the unsettled payments the reconciliation
  engine attributes to it, in the same transaction

Every operation receives an explicit ActingUser; doctors act only on their
own attentions and records, administrators act as the owning doctor.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Exists, OuterRef, Subquery
from django.utils import timezone

from apps.authz.models import Doctor
from apps.clinical.models import (
    Attention,
    AttentionStatusChoices,
    AuditActionChoices,
    ConsultationRecord,
    Patient,
    log_clinical_audit,
)
from apps.core.exceptions import Conflict, EditWindowExpired, Forbidden, NotFound, Validation
from apps.core.observability import metrics, log_domain_event, get_sanitized_logger
from apps.core.observability.events import (
    log_attention_cancelled,
    log_attention_transition,
    log_record_edit_blocked,
)
from apps.core.observability.tracing import trace_span
from apps.payments.models import Payment
from apps.payments.services import record_payment
from apps.reports.periods import day_window, local_date
from apps.reports.reconciliation import payments_claimed_by
from apps.reports.snapshots import attention_snapshots, configured_match_window, payment_snapshots

logger = get_sanitized_logger(__name__)

PATIENT_FIELDS = (
    'first_name',
    'last_name',
    'birth_date',
    'phone',
    'email',
    'address',
    'insurer',
    'insurer_member_number',
)

# Newest records returned by a search
RECORD_SEARCH_LIMIT = 100


def record_edit_window() -> timedelta:
    return timedelta(hours=settings.CONSULTATION_RECORD_EDIT_WINDOW_HOURS)


# ============================================================================
# Lookups
# ============================================================================

def get_patient(patient_id) -> Patient:
    try:
        return Patient.objects.get(pk=patient_id)
    except Patient.DoesNotExist:
        raise NotFound(f'Patient {patient_id} not found')


def get_doctor(doctor_id) -> Doctor:
    try:
        return Doctor.objects.get(pk=doctor_id, is_active=True)
    except Doctor.DoesNotExist:
        raise NotFound(f'Doctor {doctor_id} not found')


def get_attention(attention_id) -> Attention:
    try:
        return Attention.objects.select_related('patient', 'doctor').get(pk=attention_id)
    except Attention.DoesNotExist:
        raise NotFound(f'Attention {attention_id} not found')


def _lock_attention(attention_id) -> Attention:
    try:
        return Attention.objects.select_for_update().get(pk=attention_id)
    except Attention.DoesNotExist:
        raise NotFound(f'Attention {attention_id} not found')


def _acting_doctor_id(actor, owner_doctor_id):
    """
    Doctor on whose behalf the actor mutates an attention or record.

    Administrators impersonate the owner; doctors must be the owner.

    Raises:
        Forbidden: actor is another doctor or holds no clinical role
    """
    if actor.is_admin:
        return owner_doctor_id
    if actor.is_doctor and actor.doctor_id is not None and actor.doctor_id == owner_doctor_id:
        return actor.doctor_id
    raise Forbidden('Only the attending doctor can perform this action')


# ============================================================================
# Patients
# ============================================================================

@transaction.atomic
def upsert_patient(data: Dict[str, Any], update_existing: bool = True, actor=None) -> Patient:
    """
    Find a patient by national id, creating it when missing.

    Existing patients get the non-empty fields of data when update_existing.

    Raises:
        Validation: national_id missing, or names missing for a new patient
    """
    national_id = (data.get('national_id') or '').strip()
    if not national_id:
        raise Validation('national_id is required')

    patient = Patient.objects.select_for_update().filter(national_id=national_id).first()
    values = {field: data[field] for field in PATIENT_FIELDS if data.get(field) not in (None, '')}

    if patient is None:
        if not values.get('first_name') or not values.get('last_name'):
            raise Validation('first_name and last_name are required for a new patient')
        patient = Patient.objects.create(national_id=national_id, **values)
        log_clinical_audit(actor, patient, AuditActionChoices.CREATE)
        return patient

    if update_existing:
        changed = [field for field, value in values.items() if getattr(patient, field) != value]
        if changed:
            for field in changed:
                setattr(patient, field, values[field])
            patient.save(update_fields=changed + ['updated_at'])
            log_clinical_audit(actor, patient, AuditActionChoices.UPDATE, changed_fields=changed)
    return patient


@transaction.atomic
def delete_patient(patient_id, actor=None) -> None:
    """
    Hard delete: attentions, consultation records and payments go with it.

    Users, by contrast, are only deactivated (see User.deactivate).
    """
    patient = get_patient(patient_id)
    log_clinical_audit(
        actor, patient, AuditActionChoices.DELETE,
        attentions=patient.attentions.count(),
        payments=patient.payments.count(),
    )
    patient.delete()
    log_domain_event('patient_deleted', entity_type='Patient', entity_id=str(patient_id))


# ============================================================================
# Attention queue
# ============================================================================

@transaction.atomic
def enqueue_attention(
    patient_id,
    doctor_id,
    *,
    is_priority: bool = False,
    notes: Optional[str] = None,
    actor=None,
) -> Attention:
    """
    Put a patient in a doctor's waiting queue.

    Raises:
        NotFound: patient or (active) doctor does not exist
    """
    patient = get_patient(patient_id)
    doctor = get_doctor(doctor_id)

    attention = Attention.objects.create(
        patient=patient,
        doctor=doctor,
        status=AttentionStatusChoices.WAITING,
        is_priority=bool(is_priority),
        entered_at=timezone.now(),
        notes=notes or None,
    )

    log_clinical_audit(actor, attention, AuditActionChoices.CREATE, status=attention.status)
    metrics.attention_transitions_total.labels(
        from_status='none', to_status=attention.status, result='success'
    ).inc()
    log_attention_transition(attention, None, attention.status, is_priority=attention.is_priority)
    return attention


@transaction.atomic
def start_reconsultation(patient_id, doctor_id, actor, notes: Optional[str] = None) -> Attention:
    """
    Open an attention directly in consultation.

    Used when the previous record is past its edit window and the doctor
    has to write a new one. A doctor can only open it for themselves.

    Raises:
        NotFound: patient or doctor does not exist
        Forbidden: actor is another doctor or not a clinician
    """
    if doctor_id is None and actor.is_doctor:
        doctor_id = actor.doctor_id
    doctor_id = _acting_doctor_id(actor, doctor_id)

    patient = get_patient(patient_id)
    doctor = get_doctor(doctor_id)
    now = timezone.now()

    attention = Attention.objects.create(
        patient=patient,
        doctor=doctor,
        status=AttentionStatusChoices.IN_CONSULTATION,
        entered_at=now,
        started_at=now,
        notes=notes or None,
    )

    log_clinical_audit(actor, attention, AuditActionChoices.CREATE, status=attention.status)
    metrics.attention_transitions_total.labels(
        from_status='none', to_status=attention.status, result='success'
    ).inc()
    log_attention_transition(attention, None, attention.status, reconsultation=True)
    return attention


def list_waiting(doctor_id=None):
    """
    Waiting attentions, oldest entry first.

    is_priority is returned for display only; it does not reorder the queue.
    """
    queryset = Attention.objects.select_related('patient', 'doctor').filter(
        status=AttentionStatusChoices.WAITING
    )
    if doctor_id is not None:
        queryset = queryset.filter(doctor_id=doctor_id)
    return queryset.order_by('entered_at', 'id')


def list_in_consultation(doctor_id):
    """A doctor's attentions in consultation, annotated with has_record and record_id."""
    records = ConsultationRecord.objects.filter(attention=OuterRef('pk'))
    return (
        Attention.objects.select_related('patient', 'doctor')
        .filter(doctor_id=doctor_id, status=AttentionStatusChoices.IN_CONSULTATION)
        .annotate(
            has_record=Exists(records),
            record_id=Subquery(records.values('id')[:1]),
        )
        .order_by('started_at', 'id')
    )


def _transition(attention: Attention, to_status, **fields) -> bool:
    """
    Compare-and-swap status change.

    Only moves listed in Attention._ALLOWED_TRANSITIONS are attempted, and
    the row is updated only while it still holds the status read earlier.
    Returns False when the move is not allowed or another writer got there
    first.
    """
    from_status = attention.status
    if not Attention.can_transition(from_status, to_status):
        return False
    updated = Attention.objects.filter(pk=attention.pk, status=from_status).update(
        status=to_status, **fields
    )
    if not updated:
        return False
    attention.status = to_status
    for name, value in fields.items():
        setattr(attention, name, value)
    return True


def call_attention(attention_id, actor) -> Attention:
    """
    Move a waiting attention into consultation (waiting -> in_consultation).

    Raises:
        NotFound: attention does not exist
        Forbidden: actor is not the attention's doctor (admins impersonate)
        Conflict: attention is not waiting
    """
    with trace_span('call_attention', attributes={'attention_id': str(attention_id)}):
        with transaction.atomic():
            attention = _lock_attention(attention_id)
            _acting_doctor_id(actor, attention.doctor_id)

            from_status = attention.status
            if not _transition(attention, AttentionStatusChoices.IN_CONSULTATION, started_at=timezone.now()):
                metrics.attention_transitions_total.labels(
                    from_status=from_status,
                    to_status=AttentionStatusChoices.IN_CONSULTATION,
                    result='conflict'
                ).inc()
                log_attention_transition(
                    attention, from_status, AttentionStatusChoices.IN_CONSULTATION, result='conflict'
                )
                raise Conflict(
                    f'Attention {attention.pk} is {from_status}; only waiting attentions can be called'
                )

            attention.refresh_from_db()
            log_clinical_audit(
                actor, attention, AuditActionChoices.UPDATE,
                before={'status': from_status},
                after={'status': attention.status, 'started_at': attention.started_at},
                changed_fields=['status', 'started_at'],
            )

        metrics.attention_transitions_total.labels(
            from_status=from_status, to_status=attention.status, result='success'
        ).inc()
        log_attention_transition(attention, from_status, attention.status)
        return attention


def _finalize_attention(attention: Attention) -> None:
    """
    in_consultation -> finished. Only reached from create_record, inside
    its transaction.
    """
    if not _transition(attention, AttentionStatusChoices.FINISHED):
        raise Conflict(f'Attention {attention.pk} is no longer in consultation')


def cancel_attention(attention_id, actor) -> List[int]:
    """
    Remove an attention from the queue.

    Reception can remove waiting attentions; the attending doctor (or an
    admin) can also remove one in consultation. Unsettled payments the
    reconciliation engine attributes to this attention are deleted with it.

    Returns:
        ids of the deleted payments

    Raises:
        NotFound: attention does not exist
        Conflict: attention is finished
        Forbidden: reception on a non-waiting attention, or another doctor
    """
    with trace_span('cancel_attention', attributes={'attention_id': str(attention_id)}):
        with transaction.atomic():
            attention = _lock_attention(attention_id)

            if attention.status == AttentionStatusChoices.FINISHED:
                metrics.attention_cancellations_total.labels(
                    status=attention.status, result='conflict'
                ).inc()
                raise Conflict(f'Attention {attention.pk} is finished and cannot be removed')

            if actor.is_reception:
                if attention.status != AttentionStatusChoices.WAITING:
                    raise Forbidden('Reception can only remove waiting attentions')
            else:
                _acting_doctor_id(actor, attention.doctor_id)

            # Matching runs over the whole patient history so the greedy pass
            # hands out payments exactly as the reports do
            unsettled = Payment.objects.select_for_update(of=('self',)).filter(
                patient_id=attention.patient_id,
                consultation_record__isnull=True,
            )
            claimed = payments_claimed_by(
                attention.pk,
                attention_snapshots(Attention.objects.filter(patient_id=attention.patient_id)),
                payment_snapshots(unsettled),
                configured_match_window(),
            )

            log_clinical_audit(
                actor, attention, AuditActionChoices.DELETE,
                before={'status': attention.status, 'doctor_id': attention.doctor_id},
                deleted_payment_ids=claimed,
            )
            Payment.objects.filter(pk__in=claimed).delete()
            attention_pk = attention.pk
            attention.delete()
            attention.pk = attention_pk

        metrics.attention_cancellations_total.labels(status=attention.status, result='success').inc()
        if claimed:
            metrics.payments_cleanup_deleted_total.inc(len(claimed))
        log_attention_cancelled(attention, claimed)
        return claimed


# ============================================================================
# Check-in (front desk)
# ============================================================================

@dataclass
class CheckInResult:
    patient: Patient
    attention: Attention
    payment: Optional[Payment]


@transaction.atomic
def check_in_patient(
    patient_data: Dict[str, Any],
    doctor_id,
    payment_data: Optional[Dict[str, Any]] = None,
    *,
    is_priority: bool = False,
    notes: Optional[str] = None,
    update_patient: bool = True,
    actor=None,
) -> CheckInResult:
    """
    Front-desk check-in: upsert the patient, record the payment, enqueue.

    All or nothing: an unknown doctor or an invalid payment leaves no patient
    change, payment or attention behind.
    """
    patient = upsert_patient(patient_data, update_existing=update_patient, actor=actor)

    payment = None
    if payment_data is not None:
        payment = record_payment(
            patient.id,
            payment_data.get('amount'),
            payment_data.get('method'),
            receipt_number=payment_data.get('receipt_number'),
            notes=payment_data.get('notes'),
            actor=actor,
        )

    attention = enqueue_attention(
        patient.id,
        doctor_id,
        is_priority=is_priority,
        notes=notes,
        actor=actor,
    )
    return CheckInResult(patient=patient, attention=attention, payment=payment)


# ============================================================================
# Consultation records
# ============================================================================

def _record_values(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(data) - set(ConsultationRecord.EDITABLE_FIELDS)
    if unknown:
        raise Validation(f"Unknown record fields: {', '.join(sorted(unknown))}")
    values = dict(data)
    if 'content' in values:
        values['content'] = (values['content'] or '').strip()
        if not values['content']:
            raise Validation('content is required')
    return values


def create_record(attention_id, data: Dict[str, Any], actor) -> ConsultationRecord:
    """
    Write the consultation record of an attention and finish it.

    Raises:
        Validation: content missing/blank, unknown fields
        NotFound: attention does not exist
        Forbidden: actor is not the attention's doctor (admins impersonate)
        Conflict: attention not in consultation, or it already has a record
    """
    values = _record_values(data)
    if not values.get('content'):
        raise Validation('content is required')

    with trace_span('create_consultation_record', attributes={'attention_id': str(attention_id)}):
        with transaction.atomic():
            attention = _lock_attention(attention_id)
            _acting_doctor_id(actor, attention.doctor_id)

            if not Attention.can_transition(attention.status, AttentionStatusChoices.FINISHED):
                metrics.consultation_records_created_total.labels(result='conflict').inc()
                raise Conflict(
                    f'Attention {attention.pk} is {attention.status}; '
                    f'records can only be written during the consultation'
                )
            if ConsultationRecord.objects.filter(attention_id=attention.pk).exists():
                metrics.consultation_records_created_total.labels(result='conflict').inc()
                raise Conflict(f'Attention {attention.pk} already has a consultation record')

            record = ConsultationRecord.objects.create(
                attention=attention,
                patient_id=attention.patient_id,
                doctor_id=attention.doctor_id,
                **values
            )
            _finalize_attention(attention)

            log_clinical_audit(actor, record, AuditActionChoices.CREATE, attention_id=attention.pk)
            log_clinical_audit(
                actor, attention, AuditActionChoices.UPDATE,
                before={'status': AttentionStatusChoices.IN_CONSULTATION},
                after={'status': attention.status},
                changed_fields=['status'],
            )

        metrics.consultation_records_created_total.labels(result='success').inc()
        metrics.attention_transitions_total.labels(
            from_status=AttentionStatusChoices.IN_CONSULTATION,
            to_status=AttentionStatusChoices.FINISHED,
            result='success'
        ).inc()
        log_attention_transition(
            attention, AttentionStatusChoices.IN_CONSULTATION, attention.status, record_id=str(record.pk)
        )
        return record


def update_record(record_id, changes: Dict[str, Any], actor, now=None) -> ConsultationRecord:
    """
    Edit a consultation record within its edit window.

    The window is inclusive: an edit exactly CONSULTATION_RECORD_EDIT_WINDOW_HOURS
    after creation is accepted, one second later is not.

    Raises:
        NotFound: record does not exist
        Forbidden: actor is not the author (admins impersonate the author)
        EditWindowExpired: the window has passed; open a re-consultation instead
        Validation: blank content, unknown fields
    """
    now = now or timezone.now()

    with transaction.atomic():
        try:
            record = ConsultationRecord.objects.select_for_update().get(pk=record_id)
        except ConsultationRecord.DoesNotExist:
            raise NotFound(f'Consultation record {record_id} not found')

        try:
            _acting_doctor_id(actor, record.doctor_id)
        except Forbidden:
            metrics.consultation_record_edits_total.labels(result='forbidden').inc()
            log_record_edit_blocked(record, (now - record.created_at).total_seconds() / 3600, 'not_author')
            raise

        elapsed = now - record.created_at
        window = record_edit_window()
        if elapsed > window:
            metrics.consultation_record_edits_total.labels(result='window_expired').inc()
            log_record_edit_blocked(record, elapsed.total_seconds() / 3600, 'window_expired')
            raise EditWindowExpired(
                f'Consultation record {record.pk} can no longer be edited '
                f'({settings.CONSULTATION_RECORD_EDIT_WINDOW_HOURS}h window). '
                f'Start a new consultation and write a new record instead.'
            )

        values = _record_values(changes)
        changed = [field for field, value in values.items() if getattr(record, field) != value]
        if changed:
            for field in changed:
                setattr(record, field, values[field])
            record.save(update_fields=changed + ['updated_at'])
            log_clinical_audit(actor, record, AuditActionChoices.UPDATE, changed_fields=changed)

    metrics.consultation_record_edits_total.labels(result='success').inc()
    log_domain_event(
        'consultation_record_updated',
        entity_type='ConsultationRecord',
        entity_id=str(record.pk),
        entity_ids={'attention_id': str(record.attention_id)},
        changed_fields=changed,
    )
    return record


def list_patient_records(patient_id):
    """Clinical history of a patient, newest first."""
    get_patient(patient_id)
    return (
        ConsultationRecord.objects.select_related('doctor', 'attention')
        .filter(patient_id=patient_id)
        .order_by('-created_at', '-id')
    )


def search_records(
    patient_id=None,
    national_id=None,
    last_name=None,
    doctor_id=None,
    specialty=None,
    date_from=None,
    date_to=None,
    limit: Optional[int] = RECORD_SEARCH_LIMIT,
):
    """
    Consultation records matching every given filter, newest first.

    national_id matches exactly, last_name and specialty are
    case-insensitive substrings; dates are inclusive clinic-local days
    on the record's creation time.
    """
    records = ConsultationRecord.objects.select_related('doctor', 'attention', 'patient')

    if patient_id is not None:
        records = records.filter(patient_id=patient_id)
    if national_id:
        records = records.filter(patient__national_id=national_id.strip())
    if last_name:
        records = records.filter(patient__last_name__icontains=last_name.strip())
    if doctor_id is not None:
        records = records.filter(doctor_id=doctor_id)
    if specialty:
        records = records.filter(
            doctor__specialty__icontains=specialty.strip(),
            doctor__is_active=True,
        )
    if date_from:
        records = records.filter(created_at__gte=day_window(date_from).start)
    if date_to:
        records = records.filter(created_at__lt=day_window(date_to).end)

    records = records.order_by('-created_at', '-id')
    if limit is not None:
        records = records[:limit]
    return records


def list_doctor_records_today(doctor_id, now=None):
    """Records a doctor wrote today (clinic local day)."""
    window = day_window(local_date(now))
    return (
        ConsultationRecord.objects.select_related('patient')
        .filter(doctor_id=doctor_id, created_at__gte=window.start, created_at__lt=window.end)
        .order_by('created_at', 'id')
    )
