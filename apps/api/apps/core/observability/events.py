"""
Domain events logging helpers.

Provides structured event logging for business operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'attention_transition', 'payment_recorded')
        entity_type: Type of entity (e.g., 'Attention', 'Payment')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, blocked, etc.)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'payment_recorded',
            entity_type='Payment',
            entity_id=str(payment.id),
            entity_ids={'patient_id': str(payment.patient_id)},
            method=payment.method,
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    # Log at appropriate level based on result
    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_attention_transition(attention, from_status, to_status, result='success', **extra):
    """Log attention status transition event."""
    log_domain_event(
        'attention_transition',
        entity_type='Attention',
        entity_id=str(attention.id),
        entity_ids={
            'attention_id': str(attention.id),
            'doctor_id': str(attention.doctor_id),
        },
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_attention_cancelled(attention, deleted_payment_ids, **extra):
    """Log queue removal together with the payments cleaned up."""
    log_domain_event(
        'attention_cancelled',
        entity_type='Attention',
        entity_id=str(attention.id),
        entity_ids={
            'attention_id': str(attention.id),
            'patient_id': str(attention.patient_id),
        },
        status=attention.status,
        deleted_payment_ids=[str(pk) for pk in deleted_payment_ids],
        **extra
    )


def log_record_edit_blocked(record, elapsed_hours, reason):
    """Log a rejected consultation record edit."""
    log_domain_event(
        'consultation_record_edit_blocked',
        entity_type='ConsultationRecord',
        entity_id=str(record.id),
        entity_ids={
            'record_id': str(record.id),
            'attention_id': str(record.attention_id),
        },
        result='blocked',
        block_reason=reason,
        elapsed_hours=round(elapsed_hours, 2),
    )
