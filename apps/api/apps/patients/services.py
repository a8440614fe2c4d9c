"""
Treatment cycle services.

A treatment cycle is a fixed 42-day window in which a patient is planned
to receive 18 dialysis sessions.

BUSINESS RULES:
1. The first completed appointment opens cycle 1 on the appointment date
2. A completion after the open cycle's end date closes that cycle first
   (Completed if >= 18 sessions, Incomplete otherwise) and opens the next
   one on the appointment date
3. The session count of a cycle is the number of Completed appointments
   dated inside [cycle_start, cycle_end]
4. A daily sweep closes cycles whose end date has passed even when the
   patient had no further appointment; the new cycle starts on the sweep date
"""
from datetime import timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone

from apps.core.observability import metrics, trace_span, get_sanitized_logger
from apps.core.observability.events import log_cycle_rollover
from apps.scheduling.models import AppointmentStatus, Appointment

from .models import Patient, TreatmentCycle, TreatmentCycleStatus

logger = get_sanitized_logger(__name__)

CYCLE_LENGTH_DAYS = 42
PLANNED_SESSIONS_PER_CYCLE = 18


def _active_cycle(patient: Patient) -> Optional[TreatmentCycle]:
    return TreatmentCycle.objects.filter(
        patient=patient,
        cycle_status=TreatmentCycleStatus.ACTIVE
    ).first()


def start_new_cycle(patient: Patient, start_date) -> TreatmentCycle:
    """
    Open a new cycle for the patient starting on start_date.

    Writes the open-cycle fields on the patient and inserts the Active
    history row numbered patient.current_cycle_number.
    """
    patient.current_cycle_start_date = start_date
    patient.current_cycle_end_date = start_date + timedelta(days=CYCLE_LENGTH_DAYS)
    patient.current_cycle_session_count = 0
    patient.save(update_fields=[
        'current_cycle_start_date',
        'current_cycle_end_date',
        'current_cycle_session_count',
        'updated_at',
    ])

    cycle = TreatmentCycle.objects.create(
        patient=patient,
        cycle_number=patient.current_cycle_number,
        cycle_start_date=patient.current_cycle_start_date,
        cycle_end_date=patient.current_cycle_end_date,
        planned_sessions=PLANNED_SESSIONS_PER_CYCLE,
        completed_sessions=0,
        cycle_status=TreatmentCycleStatus.ACTIVE,
        first_appointment_date=start_date,
    )

    metrics.cycles_started_total.inc()
    logger.info(
        'Treatment cycle started',
        extra={
            'event': 'treatment_cycle_started',
            'patient_id': str(patient.id),
            'cycle_number': cycle.cycle_number,
            'cycle_start_date': str(cycle.cycle_start_date),
            'cycle_end_date': str(cycle.cycle_end_date),
        }
    )
    return cycle


def update_cycle_session_count(patient: Patient, last_appointment_date=None) -> int:
    """
    Recount completed sessions of the open cycle and mirror the count onto
    the patient and the Active history row.

    Also refreshes patient.dialysis_cycles (all-time completed sessions).

    Returns:
        Session count of the open cycle (0 when no cycle is open)
    """
    completed = Appointment.objects.filter(
        patient=patient,
        status=AppointmentStatus.COMPLETED
    )
    patient.dialysis_cycles = completed.count()

    count = 0
    if patient.has_open_cycle:
        count = completed.filter(
            appointment_date__gte=patient.current_cycle_start_date,
            appointment_date__lte=patient.current_cycle_end_date,
        ).count()
    patient.current_cycle_session_count = count
    patient.save(update_fields=['dialysis_cycles', 'current_cycle_session_count', 'updated_at'])

    cycle = _active_cycle(patient)
    if cycle:
        cycle.completed_sessions = count
        if last_appointment_date:
            cycle.last_appointment_date = last_appointment_date
        cycle.save(update_fields=['completed_sessions', 'last_appointment_date', 'updated_at'])

    return count


def close_current_cycle(patient: Patient, trigger: str, today=None) -> Optional[TreatmentCycle]:
    """
    Close the open cycle as Completed or Incomplete and advance the
    patient's cycle number.

    Returns:
        The closed history row, or None if there was no Active row
    """
    today = today or timezone.localdate()

    # Count is final at close time
    update_cycle_session_count(patient)

    cycle = _active_cycle(patient)
    outcome = None
    if cycle:
        if cycle.completed_sessions >= cycle.planned_sessions:
            outcome = TreatmentCycleStatus.COMPLETED
        else:
            outcome = TreatmentCycleStatus.INCOMPLETE
        cycle.cycle_status = outcome
        cycle.completed_date = today
        cycle.save(update_fields=['cycle_status', 'completed_date', 'updated_at'])
    else:
        logger.warning(
            'Open cycle on patient has no Active history row',
            extra={'event': 'treatment_cycle_missing_history', 'patient_id': str(patient.id)}
        )

    patient.current_cycle_number += 1
    if outcome == TreatmentCycleStatus.COMPLETED:
        patient.total_completed_cycles += 1
    patient.current_cycle_start_date = None
    patient.current_cycle_end_date = None
    patient.current_cycle_session_count = 0
    patient.save(update_fields=[
        'current_cycle_number',
        'total_completed_cycles',
        'current_cycle_start_date',
        'current_cycle_end_date',
        'current_cycle_session_count',
        'updated_at',
    ])

    if cycle:
        metrics.cycle_rollovers_total.labels(outcome=outcome).inc()
        log_cycle_rollover(patient, cycle, outcome=str(outcome), trigger=trigger)
    return cycle


def complete_cycle_and_start_new(patient: Patient, new_start_date, trigger='appointment', today=None):
    """
    Close the open cycle and immediately open the next one on new_start_date.

    Returns:
        (closed_cycle, new_cycle)
    """
    closed = close_current_cycle(patient, trigger=trigger, today=today)
    opened = start_new_cycle(patient, new_start_date)
    return closed, opened


@transaction.atomic
def update_patient_dialysis_cycles(patient: Patient, appointment_date, today=None) -> Patient:
    """
    Advance the patient's cycle state after an appointment reached Completed.

    Called by the scheduler inside the same transaction as the status change.

    Args:
        patient: Patient instance (refreshed in place)
        appointment_date: Date of the completed appointment
        today: Reference date for the expiry check (defaults to local today)
    """
    today = today or timezone.localdate()

    # Serialize concurrent completions for the same patient
    Patient.objects.select_for_update().filter(pk=patient.pk).first()
    patient.refresh_from_db()

    if not patient.has_open_cycle:
        start_new_cycle(patient, appointment_date)
    elif today > patient.current_cycle_end_date:
        complete_cycle_and_start_new(patient, appointment_date, trigger='appointment', today=today)

    update_cycle_session_count(patient, last_appointment_date=appointment_date)
    return patient


def get_current_cycle_info(patient: Patient, today=None) -> dict:
    """Summary of the open cycle for display."""
    today = today or timezone.localdate()

    info = {
        'patient_id': patient.id,
        'cycle_number': patient.current_cycle_number,
        'has_active_cycle': patient.has_open_cycle,
        'cycle_start_date': patient.current_cycle_start_date,
        'cycle_end_date': patient.current_cycle_end_date,
        'session_count': patient.current_cycle_session_count,
        'planned_sessions': PLANNED_SESSIONS_PER_CYCLE,
        'sessions_remaining': max(0, PLANNED_SESSIONS_PER_CYCLE - patient.current_cycle_session_count),
        'days_remaining': None,
        'is_expired': False,
        'total_completed_cycles': patient.total_completed_cycles,
        'dialysis_cycles': patient.dialysis_cycles,
    }
    if patient.has_open_cycle:
        info['days_remaining'] = max(0, (patient.current_cycle_end_date - today).days)
        info['is_expired'] = today > patient.current_cycle_end_date
    return info


def get_cycle_history(patient: Patient):
    """All history rows for the patient, newest first."""
    return TreatmentCycle.objects.filter(patient=patient).order_by('-cycle_number')


def get_active_cycles_for_expiry_check(today=None):
    """Patients whose open cycle ended before today and is still Active."""
    today = today or timezone.localdate()
    return Patient.objects.filter(
        current_cycle_end_date__lt=today,
        treatment_cycles__cycle_status=TreatmentCycleStatus.ACTIVE,
    ).distinct().order_by('id')


def process_expired_cycles(today=None) -> int:
    """
    Close every expired cycle and open the next one on today's date.

    Each patient is processed in its own transaction, so one failure does
    not roll back patients already processed. Idempotent per day: a second
    run finds no expired cycle.

    Returns:
        Number of patients processed
    """
    today = today or timezone.localdate()
    processed = 0

    with trace_span('process_expired_cycles', attributes={'today': str(today)}):
        candidates = list(get_active_cycles_for_expiry_check(today).values_list('id', flat=True))
        for patient_id in candidates:
            with transaction.atomic():
                patient = Patient.objects.select_for_update().get(pk=patient_id)
                # Re-check under lock; a concurrent completion may have rolled it already
                if not patient.has_open_cycle or patient.current_cycle_end_date >= today:
                    continue
                complete_cycle_and_start_new(patient, today, trigger='expiry_sweep', today=today)
                update_cycle_session_count(patient)
            processed += 1

    logger.info(
        'Expired treatment cycles processed',
        extra={'event': 'treatment_cycle_sweep', 'processed': processed, 'today': str(today)}
    )
    return processed
