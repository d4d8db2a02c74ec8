"""
Clinical models: patient, attention, consultation_record, clinical_audit_log
"""
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.conf import settings
from django.utils import timezone


# ============================================================================
# Enums
# ============================================================================

class AttentionStatusChoices(models.TextChoices):
    """
    Attention status with allowed transitions:
    - waiting -> in_consultation
    - in_consultation -> finished
    - finished is terminal
    """
    WAITING = 'waiting', 'Waiting'
    IN_CONSULTATION = 'in_consultation', 'In Consultation'
    FINISHED = 'finished', 'Finished'


class AuditActionChoices(models.TextChoices):
    """Clinical audit log action types"""
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'


class AuditEntityTypeChoices(models.TextChoices):
    """Clinical entity types for audit logging"""
    PATIENT = 'Patient', 'Patient'
    ATTENTION = 'Attention', 'Attention'
    CONSULTATION_RECORD = 'ConsultationRecord', 'Consultation Record'
    PAYMENT = 'Payment', 'Payment'


# ============================================================================
# Patients
# ============================================================================

class Patient(models.Model):
    """
    Patient registry entry, identified by national id.

    Patients are hard-deleted: removing one cascades to its attentions,
    consultation records and payments.
    """
    national_id = models.CharField(max_length=20, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    birth_date = models.DateField(blank=True, null=True)
    phone = models.CharField(max_length=50, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    address = models.CharField(max_length=255, blank=True, null=True)

    # Health insurer (obra social) coverage
    insurer = models.CharField(max_length=100, blank=True, null=True)
    insurer_member_number = models.CharField(max_length=50, blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        indexes = [
            models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
        ]

    def __str__(self):
        return f"{self.last_name}, {self.first_name}"


# ============================================================================
# Attention queue
# ============================================================================

class Attention(models.Model):
    """
    One queue entry: a patient's visit to one doctor.

    BUSINESS RULES:
    - Exactly one doctor per attention
    - Status only moves forward (see _ALLOWED_TRANSITIONS)
    - At most one consultation record per attention
    - is_priority is a flag for the waiting-room display; it is not a sort key
    """
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.CASCADE,
        related_name='attentions'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        related_name='attentions'
    )
    status = models.CharField(
        max_length=20,
        choices=AttentionStatusChoices.choices,
        default=AttentionStatusChoices.WAITING
    )
    is_priority = models.BooleanField(default=False)
    entered_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'attention'
        verbose_name = 'Attention'
        verbose_name_plural = 'Attentions'
        indexes = [
            models.Index(fields=['doctor', 'status'], name='idx_attention_doctor_status'),
            models.Index(fields=['patient', 'entered_at'], name='idx_attention_patient_entry'),
            models.Index(fields=['entered_at'], name='idx_attention_entered_at'),
        ]

    _ALLOWED_TRANSITIONS = {
        AttentionStatusChoices.WAITING: [AttentionStatusChoices.IN_CONSULTATION],
        AttentionStatusChoices.IN_CONSULTATION: [AttentionStatusChoices.FINISHED],
        AttentionStatusChoices.FINISHED: [],  # Terminal state
    }

    def __str__(self):
        return f"Attention #{self.pk} - {self.patient} ({self.status})"

    @classmethod
    def can_transition(cls, from_status, to_status):
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, [])


# ============================================================================
# Consultation records
# ============================================================================

class ConsultationRecord(models.Model):
    """
    Clinical note of a finished attention.

    BUSINESS RULE: editable only by its author and only while
    now - created_at <= CONSULTATION_RECORD_EDIT_WINDOW_HOURS. After that
    the doctor opens a re-consultation attention and writes a new record.
    """
    attention = models.OneToOneField(
        'Attention',
        on_delete=models.CASCADE,
        related_name='consultation_record'
    )
    patient = models.ForeignKey(
        'Patient',
        on_delete=models.CASCADE,
        related_name='consultation_records'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        related_name='consultation_records'
    )
    content = models.TextField()

    # Structured sections
    reason = models.TextField(blank=True, null=True)
    symptoms = models.TextField(blank=True, null=True)
    diagnosis = models.TextField(blank=True, null=True)
    treatment = models.TextField(blank=True, null=True)
    observations = models.TextField(blank=True, null=True)

    # Vitals
    blood_pressure = models.CharField(max_length=20, blank=True, null=True)
    temperature = models.DecimalField(max_digits=4, decimal_places=1, blank=True, null=True)
    weight = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    height = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)

    next_visit_at = models.DateField(blank=True, null=True)

    # Edit window anchor; not auto_now_add so imports can keep the original time
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    EDITABLE_FIELDS = (
        'content',
        'reason',
        'symptoms',
        'diagnosis',
        'treatment',
        'observations',
        'blood_pressure',
        'temperature',
        'weight',
        'height',
        'next_visit_at',
    )

    class Meta:
        db_table = 'consultation_record'
        verbose_name = 'Consultation Record'
        verbose_name_plural = 'Consultation Records'
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='idx_record_patient_created'),
            models.Index(fields=['doctor', 'created_at'], name='idx_record_doctor_created'),
        ]

    def __str__(self):
        return f"Record #{self.pk} for attention #{self.attention_id}"


# ============================================================================
# Audit
# ============================================================================

class ClinicalAuditLog(models.Model):
    """
    Lightweight audit trail for queue, record and payment changes.

    Tracks who changed what and when without locking.
    """
    created_at = models.DateTimeField(auto_now_add=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='clinical_audit_logs',
        help_text='User who performed the action (null for system actions)'
    )

    action = models.CharField(
        max_length=10,
        choices=AuditActionChoices.choices
    )

    entity_type = models.CharField(
        max_length=50,
        choices=AuditEntityTypeChoices.choices
    )

    entity_id = models.CharField(max_length=64)

    # Plain id so the trail survives a patient hard delete
    patient_id_snapshot = models.BigIntegerField(blank=True, null=True)

    metadata = models.JSONField(
        default=dict,
        encoder=DjangoJSONEncoder,
        help_text='Changed fields, before/after snapshots'
    )

    class Meta:
        db_table = 'clinical_audit_log'
        verbose_name = 'Clinical Audit Log'
        verbose_name_plural = 'Clinical Audit Logs'
        indexes = [
            models.Index(fields=['created_at'], name='idx_audit_created_at'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
            models.Index(fields=['patient_id_snapshot'], name='idx_audit_patient'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        actor = self.actor_user_id or 'system'
        return f"{self.action} on {self.entity_type}[{self.entity_id}] by {actor}"


def log_clinical_audit(
    actor,
    instance,
    action,
    before=None,
    after=None,
    changed_fields=None,
    **extra
):
    """
    Create a clinical audit log entry.

    Call before deleting an instance: Django clears pk on delete().

    Args:
        actor: ActingUser or None for system actions
        instance: Attention, ConsultationRecord, Payment or Patient
        action: 'create'|'update'|'delete'
        before: Dict of field values before change (for updates)
        after: Dict of field values after change (for updates)
        changed_fields: List of field names that changed
        **extra: Additional metadata
    """
    patient_id = instance.pk if isinstance(instance, Patient) else getattr(instance, 'patient_id', None)

    metadata = dict(extra)
    if changed_fields:
        metadata['changed_fields'] = changed_fields
    if before:
        metadata['before'] = before
    if after:
        metadata['after'] = after

    return ClinicalAuditLog.objects.create(
        actor_user_id=actor.user_id if actor else None,
        action=action,
        entity_type=instance.__class__.__name__,
        entity_id=str(instance.pk),
        patient_id_snapshot=patient_id,
        metadata=metadata,
    )
