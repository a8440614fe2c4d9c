"""
Domain events logging helpers.

Provides structured event logging for scheduling, session, cycle and
inventory operations.
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
        event_name: Name of the event (e.g., 'appointment_transition', 'cycle_rollover')
        entity_type: Type of entity (e.g., 'Appointment', 'DialysisSession')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, blocked, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'appointment_created',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'patient_id': str(patient.id), 'center_id': str(center.id)},
            result='success',
            appointment_date=str(appointment.appointment_date)
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

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'rejected']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_appointment_transition(appointment, from_status, to_status, **extra):
    """Log appointment status transition event."""
    log_domain_event(
        'appointment_transition',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={
            'appointment_id': str(appointment.id),
            'patient_id': str(appointment.patient_id),
        },
        from_status=int(from_status),
        to_status=int(to_status),
        **extra
    )


def log_capacity_rejected(center, slot_date, start_time, end_time, reason):
    """Log a booking refused for capacity or duplication."""
    log_domain_event(
        'appointment_booking_rejected',
        entity_type='Center',
        entity_id=str(center.id),
        entity_ids={'center_id': str(center.id)},
        result='blocked',
        reason=reason,
        slot_date=str(slot_date),
        start_time=str(start_time),
        end_time=str(end_time),
    )


def log_session_transition(session, from_status, to_status, **extra):
    """Log dialysis session status transition event."""
    log_domain_event(
        'dialysis_session_transition',
        entity_type='DialysisSession',
        entity_id=str(session.id),
        entity_ids={
            'session_id': str(session.id),
            'appointment_id': str(session.appointment_id),
        },
        session_code=session.session_code,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_cycle_rollover(patient, cycle, outcome, trigger):
    """Log closing of a treatment cycle."""
    log_domain_event(
        'treatment_cycle_closed',
        entity_type='TreatmentCycle',
        entity_id=str(cycle.id),
        entity_ids={'patient_id': str(patient.id)},
        cycle_number=cycle.cycle_number,
        completed_sessions=cycle.completed_sessions,
        planned_sessions=cycle.planned_sessions,
        outcome=outcome,
        trigger=trigger,
    )


def log_item_exhausted(individual_item):
    """Log an individual item reaching its maximum usage count."""
    log_domain_event(
        'individual_item_exhausted',
        entity_type='IndividualItem',
        entity_id=str(individual_item.id),
        entity_ids={'stock_id': str(individual_item.stock_id)},
        result='warning',
        item_code=individual_item.individual_item_code,
        usage_count=individual_item.current_usage_count,
        max_usage_count=individual_item.max_usage_count,
    )
