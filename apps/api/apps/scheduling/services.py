"""
Scheduling services - booking, rescheduling and status changes.

BUSINESS RULES:
1. A patient holds at most one live appointment per date
   (appointments that are Cancelled or Terminated do not count)
2. A booking is accepted only while overlapping live slots < active machines
3. Overlap is the three-way test against the requested window [start, end):
   - stored start inside [start, end)
   - stored end inside (start, end]
   - stored slot covers the whole window
4. Check-and-reserve is serialized per center by locking the Center row
5. Entering Completed advances the patient's treatment cycle in the same transaction
"""
from django.db import transaction
from django.db.models import Q

from apps.assets.services import cancel_assignments_for_appointment, get_active_machine_count
from apps.core.exceptions import ConflictError, StateError, ValidationError, get_or_not_found
from apps.core.models import Center
from apps.core.observability import metrics, trace_span, log_domain_event
from apps.core.observability.events import log_appointment_transition, log_capacity_rejected
from apps.patients.services import update_patient_dialysis_cycles

from .models import Appointment, AppointmentStatus, CAPACITY_RELEASING_STATUSES, Slot


def _overlap_q(start_time, end_time):
    return (
        Q(start_time__gte=start_time, start_time__lt=end_time) |
        Q(end_time__gt=start_time, end_time__lte=end_time) |
        Q(start_time__lte=start_time, end_time__gte=end_time)
    )


def _validate_window(start_time, end_time):
    if start_time >= end_time:
        raise ValidationError('end_time must be after start_time')


def _record_transition(appointment, from_status, to_status):
    metrics.appointment_transitions_total.labels(
        from_status=AppointmentStatus(from_status).name.lower(),
        to_status=AppointmentStatus(to_status).name.lower()
    ).inc()
    log_appointment_transition(appointment, from_status, to_status)


def get_booked_slots_count(center, slot_date, start_time, end_time, exclude_appointment=None) -> int:
    """Live slots of the center/date overlapping [start_time, end_time)."""
    qs = Slot.objects.filter(
        center=center,
        slot_date=slot_date,
        is_active=True,
    ).exclude(
        appointment__status__in=CAPACITY_RELEASING_STATUSES
    ).filter(_overlap_q(start_time, end_time))

    if exclude_appointment is not None:
        qs = qs.exclude(appointment=exclude_appointment)
    return qs.count()


def get_booked_slots(center, slot_date):
    """Live slots of a center for one date (capacity calendar)."""
    return Slot.objects.filter(
        center=center,
        slot_date=slot_date,
        is_active=True,
    ).exclude(
        appointment__status__in=CAPACITY_RELEASING_STATUSES
    ).select_related('appointment', 'appointment__patient').order_by('start_time', 'id')


@metrics.track_duration(metrics.slot_capacity_check_duration_seconds)
def is_slot_available(center, slot_date, start_time, end_time, exclude_appointment=None) -> bool:
    """
    True iff the center still has a free machine for the window.

    A center with no active dialysis machine is never available.
    """
    machine_count = get_active_machine_count(center)
    if machine_count == 0:
        return False
    booked = get_booked_slots_count(center, slot_date, start_time, end_time, exclude_appointment)
    return booked < machine_count


def create_appointment(patient, center, company, appointment_date, start_time, end_time, actor=None, notes=''):
    """
    Book an appointment and reserve its slot.

    Raises:
        ValidationError: Invalid window or center/company mismatch
        ConflictError: Duplicate booking for the date, or no capacity
    """
    _validate_window(start_time, end_time)
    if center.company_id != company.id:
        raise ValidationError('Center does not belong to company')

    with trace_span('create_appointment', attributes={
        'center_id': center.id,
        'appointment_date': str(appointment_date),
    }):
        with transaction.atomic():
            # Check-and-reserve: concurrent bookings for this center wait here
            Center.objects.select_for_update().get(pk=center.pk)

            duplicate = Appointment.objects.filter(
                patient=patient,
                appointment_date=appointment_date,
            ).exclude(status__in=CAPACITY_RELEASING_STATUSES).exists()
            if duplicate:
                metrics.appointments_booked_total.labels(result='duplicate').inc()
                log_capacity_rejected(center, appointment_date, start_time, end_time, reason='duplicate')
                raise ConflictError('Patient already has an appointment on this date')

            if not is_slot_available(center, appointment_date, start_time, end_time):
                metrics.appointments_booked_total.labels(result='no_capacity').inc()
                log_capacity_rejected(center, appointment_date, start_time, end_time, reason='no_capacity')
                raise ConflictError('No machine available for the selected time slot')

            appointment = Appointment.objects.create(
                company=company,
                center=center,
                patient=patient,
                appointment_date=appointment_date,
                status=AppointmentStatus.SCHEDULED,
                reschedule_revision=0,
                notes=notes or '',
                created_by=actor,
                updated_by=actor,
            )
            Slot.objects.create(
                appointment=appointment,
                center=center,
                slot_date=appointment_date,
                start_time=start_time,
                end_time=end_time,
            )

    metrics.appointments_booked_total.labels(result='success').inc()
    log_domain_event(
        'appointment_created',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={'patient_id': str(patient.id), 'center_id': str(center.id)},
        appointment_date=str(appointment_date),
    )
    return appointment


def reschedule_appointment(appointment_id, new_date, new_start_time, new_end_time, reason='', actor=None):
    """
    Move a Scheduled appointment to a new date/window.

    Capacity is not re-checked for the new window.

    Raises:
        NotFoundError: Unknown appointment
        StateError: Appointment is not Scheduled
    """
    _validate_window(new_start_time, new_end_time)

    with transaction.atomic():
        appointment = get_or_not_found(
            Appointment.objects.select_for_update(), 'Appointment', pk=appointment_id
        )
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise StateError(
                f'Only scheduled appointments can be rescheduled (status: {appointment.get_status_display()})'
            )

        appointment.transition_status(AppointmentStatus.RESCHEDULED)
        _record_transition(appointment, AppointmentStatus.SCHEDULED, AppointmentStatus.RESCHEDULED)
        appointment.transition_status(AppointmentStatus.SCHEDULED)
        _record_transition(appointment, AppointmentStatus.RESCHEDULED, AppointmentStatus.SCHEDULED)

        appointment.reschedule_revision += 1
        appointment.is_rescheduled = True
        appointment.reschedule_reason = reason or ''
        appointment.appointment_date = new_date
        appointment.updated_by = actor
        appointment.save()

        appointment.slots.filter(is_active=True).update(is_active=False)
        Slot.objects.create(
            appointment=appointment,
            center_id=appointment.center_id,
            slot_date=new_date,
            start_time=new_start_time,
            end_time=new_end_time,
        )

    return appointment


def _release_appointment(appointment, actor=None):
    appointment.slots.filter(is_active=True).update(is_active=False)
    cancel_assignments_for_appointment(appointment, actor)


def cancel_appointment(appointment_id, actor=None):
    """
    Cancel an appointment and release its slots.

    Cancelling an already Cancelled appointment is a no-op.

    Raises:
        NotFoundError: Unknown appointment
        StateError: Appointment is In Progress or already finished
    """
    with transaction.atomic():
        appointment = get_or_not_found(
            Appointment.objects.select_for_update(), 'Appointment', pk=appointment_id
        )
        if appointment.status == AppointmentStatus.CANCELLED:
            return appointment

        old_status = appointment.transition_status(AppointmentStatus.CANCELLED)
        appointment.updated_by = actor
        appointment.save(update_fields=['status', 'updated_by', 'updated_at'])
        _release_appointment(appointment, actor)
        _record_transition(appointment, old_status, AppointmentStatus.CANCELLED)

    return appointment


def update_status(appointment_id, new_status, actor=None):
    """
    Apply a status transition.

    Entering Completed advances the patient's treatment cycle; entering
    Cancelled releases slots, as cancel_appointment does.

    Raises:
        NotFoundError: Unknown appointment
        ValidationError: Unknown status code
        StateError: Transition not allowed
    """
    try:
        new_status = AppointmentStatus(int(new_status))
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid appointment status: {new_status}')

    with transaction.atomic():
        appointment = get_or_not_found(
            Appointment.objects.select_for_update().select_related('patient'),
            'Appointment',
            pk=appointment_id
        )
        old_status = appointment.transition_status(new_status)
        appointment.updated_by = actor
        appointment.save(update_fields=['status', 'updated_by', 'updated_at'])

        if new_status == AppointmentStatus.CANCELLED:
            _release_appointment(appointment, actor)
        elif new_status == AppointmentStatus.COMPLETED:
            update_patient_dialysis_cycles(appointment.patient, appointment.appointment_date)

        _record_transition(appointment, old_status, new_status)

    return appointment


def delete_appointment_permanently(appointment_id):
    """
    Physically remove an appointment and its slots (admin only).

    Bypasses the state machine. Appointments that already have a dialysis
    session or recorded inventory usage are kept.

    Raises:
        NotFoundError: Unknown appointment
        StateError: A dialysis session or usage record references the appointment
    """
    with transaction.atomic():
        appointment = get_or_not_found(
            Appointment.objects.select_for_update(), 'Appointment', pk=appointment_id
        )
        if Appointment.objects.filter(pk=appointment.pk, dialysis_session__isnull=False).exists():
            raise StateError('Appointment has a dialysis session and cannot be deleted')
        if appointment.inventory_usage.exists():
            raise StateError('Appointment has recorded inventory usage and cannot be deleted')

        appointment_pk = appointment.pk
        patient_id = appointment.patient_id
        appointment.slots.all().delete()
        appointment.delete()

    log_domain_event(
        'appointment_deleted',
        entity_type='Appointment',
        entity_id=str(appointment_pk),
        entity_ids={'patient_id': str(patient_id)},
        result='warning',
    )
