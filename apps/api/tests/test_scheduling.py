"""
Appointment scheduler and slot capacity tests.

Test coverage:
1. Capacity boundary: booked == machines -> unavailable, machines - 1 -> available
2. Two-machine overlap scenario
3. Adjacent windows do not overlap
4. Duplicate booking per patient/date
5. Reschedule, cancel, status transitions
6. Permanent delete
7. Booking rolls back completely on a storage failure
"""
from datetime import date, time
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from apps.core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from apps.core.models import Company
from apps.dialysis.services import create_session
from apps.scheduling.models import Appointment, AppointmentStatus, Slot
from apps.scheduling.services import (
    cancel_appointment,
    create_appointment,
    delete_appointment_permanently,
    get_booked_slots,
    get_booked_slots_count,
    is_slot_available,
    reschedule_appointment,
    update_status,
)

DAY = date(2024, 5, 6)


@pytest.fixture
def book(center, company):
    """Factory: book(patient, '09:00', '10:00')."""
    def _book(patient, start, end, day=DAY):
        return create_appointment(
            patient=patient,
            center=center,
            company=company,
            appointment_date=day,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
        )
    return _book


# ============================================================================
# Capacity
# ============================================================================

@pytest.mark.django_db
class TestSlotCapacity:

    def test_no_machines_means_never_available(self, center):
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False

    def test_boundary_machines_minus_one_is_available(self, center, make_machine, make_patient, book):
        make_machine('DM-01-0001')
        make_machine('DM-01-0002')
        book(make_patient('P-A'), '09:00', '10:00')

        assert get_booked_slots_count(center, DAY, time(9, 0), time(10, 0)) == 1
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is True

    def test_boundary_booked_equals_machines_is_unavailable(self, center, make_machine, make_patient, book):
        make_machine('DM-01-0001')
        make_machine('DM-01-0002')
        book(make_patient('P-A'), '09:00', '10:00')
        book(make_patient('P-B'), '09:00', '10:00')

        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False
        with pytest.raises(ConflictError):
            book(make_patient('P-C'), '09:00', '10:00')

    def test_two_machine_overlap_scenario(self, center, make_machine, make_patient, book):
        make_machine('DM-01-0001')
        make_machine('DM-01-0002')

        book(make_patient('P-A'), '09:00', '10:00')
        book(make_patient('P-B'), '09:30', '10:30')

        with pytest.raises(ConflictError, match='No machine available'):
            book(make_patient('P-C'), '09:15', '09:45')

        assert Appointment.objects.count() == 2

    def test_adjacent_windows_do_not_overlap(self, center, machine, make_patient, book):
        book(make_patient('P-A'), '09:00', '10:00')
        book(make_patient('P-B'), '10:00', '11:00')

        assert get_booked_slots_count(center, DAY, time(10, 0), time(11, 0)) == 1

    def test_requested_window_inside_stored_slot_overlaps(self, center, machine, make_patient, book):
        book(make_patient('P-A'), '08:00', '12:00')

        assert get_booked_slots_count(center, DAY, time(9, 0), time(10, 0)) == 1
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False

    def test_other_dates_do_not_count(self, center, machine, make_patient, book):
        book(make_patient('P-A'), '09:00', '10:00')

        assert is_slot_available(center, date(2024, 5, 7), time(9, 0), time(10, 0)) is True

    def test_inactive_machine_does_not_count(self, center, make_machine):
        retired = make_machine('DM-01-0001')
        retired.is_active = False
        retired.save()

        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False

    def test_excluded_appointment_does_not_count(self, center, machine, patient, book):
        appointment = book(patient, '09:00', '10:00')

        assert get_booked_slots_count(center, DAY, time(9, 0), time(10, 0), exclude_appointment=appointment) == 0
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0), exclude_appointment=appointment) is True

    def test_booked_slots_calendar(self, center, make_machine, make_patient, book):
        make_machine('DM-01-0001')
        make_machine('DM-01-0002')
        book(make_patient('P-A'), '11:00', '12:00')
        book(make_patient('P-B'), '09:00', '10:00')

        slots = list(get_booked_slots(center, DAY))
        assert [slot.start_time for slot in slots] == [time(9, 0), time(11, 0)]


# ============================================================================
# Booking
# ============================================================================

@pytest.mark.django_db
class TestCreateAppointment:

    def test_creates_scheduled_appointment_with_one_slot(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.reschedule_revision == 0
        assert appointment.slots.filter(is_active=True).count() == 1
        assert appointment.active_slot.start_time == time(9, 0)

    def test_duplicate_booking_same_date_rejected(self, patient, make_machine, book):
        make_machine('DM-01-0001')
        make_machine('DM-01-0002')
        book(patient, '09:00', '10:00')

        with pytest.raises(ConflictError, match='already has an appointment'):
            book(patient, '14:00', '15:00')

    def test_cancelled_appointment_does_not_block_rebooking(self, patient, machine, book):
        first = book(patient, '09:00', '10:00')
        cancel_appointment(first.id)

        second = book(patient, '09:00', '10:00')
        assert second.status == AppointmentStatus.SCHEDULED

    def test_invalid_window_rejected(self, patient, machine, book):
        with pytest.raises(ValidationError):
            book(patient, '10:00', '09:00')

    def test_center_company_mismatch_rejected(self, patient, center, machine):
        other = Company.objects.create(company_code='OTHER', company_name='Other Co')
        with pytest.raises(ValidationError):
            create_appointment(patient, center, other, DAY, time(9, 0), time(10, 0))

    def test_storage_failure_rolls_back_appointment(self, patient, machine, book):
        with patch('apps.scheduling.services.Slot.objects.create', side_effect=DatabaseError('disk full')):
            with pytest.raises(DatabaseError):
                book(patient, '09:00', '10:00')

        assert Appointment.objects.count() == 0
        assert Slot.objects.count() == 0


# ============================================================================
# Reschedule / cancel / transitions
# ============================================================================

@pytest.mark.django_db
class TestAppointmentLifecycle:

    def test_reschedule_moves_slot_and_bumps_revision(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')

        updated = reschedule_appointment(
            appointment.id, date(2024, 5, 8), time(14, 0), time(15, 0), reason='Patient request'
        )

        assert updated.status == AppointmentStatus.SCHEDULED
        assert updated.reschedule_revision == 1
        assert updated.is_rescheduled is True
        assert updated.appointment_date == date(2024, 5, 8)
        assert Slot.objects.filter(appointment=appointment, is_active=True).count() == 1
        assert Slot.objects.filter(appointment=appointment, is_active=False).count() == 1
        assert updated.active_slot.slot_date == date(2024, 5, 8)

    def test_reschedule_requires_scheduled(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        cancel_appointment(appointment.id)

        with pytest.raises(StateError):
            reschedule_appointment(appointment.id, date(2024, 5, 8), time(9, 0), time(10, 0))

    def test_reschedule_does_not_recheck_capacity(self, center, patient, make_patient, machine, book):
        book(patient, '09:00', '10:00')
        other = book(make_patient('P-002'), '14:00', '15:00')
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False

        moved = reschedule_appointment(other.id, DAY, time(9, 0), time(10, 0))

        assert moved.status == AppointmentStatus.SCHEDULED
        assert get_booked_slots_count(center, DAY, time(9, 0), time(10, 0)) == 2

    def test_reschedule_unknown_appointment(self, db):
        with pytest.raises(NotFoundError):
            reschedule_appointment(999999, DAY, time(9, 0), time(10, 0))

    def test_cancel_releases_slot_and_capacity(self, center, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is False

        cancelled = cancel_appointment(appointment.id)

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert appointment.slots.filter(is_active=True).count() == 0
        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is True

    def test_cancel_twice_is_noop(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        cancel_appointment(appointment.id)

        again = cancel_appointment(appointment.id)
        assert again.status == AppointmentStatus.CANCELLED

    def test_cancel_unknown_appointment(self, db):
        with pytest.raises(NotFoundError):
            cancel_appointment(999999)

    def test_cannot_cancel_in_progress(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        update_status(appointment.id, AppointmentStatus.IN_PROGRESS)

        with pytest.raises(StateError):
            cancel_appointment(appointment.id)

    def test_scheduled_cannot_jump_to_completed(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')

        with pytest.raises(StateError):
            update_status(appointment.id, AppointmentStatus.COMPLETED)

    def test_completed_is_terminal(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        update_status(appointment.id, AppointmentStatus.IN_PROGRESS)
        update_status(appointment.id, AppointmentStatus.COMPLETED)

        with pytest.raises(StateError):
            update_status(appointment.id, AppointmentStatus.TERMINATED)

    def test_unknown_status_code_rejected(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')

        with pytest.raises(ValidationError):
            update_status(appointment.id, 4)

    def test_completion_advances_treatment_cycle(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        update_status(appointment.id, AppointmentStatus.IN_PROGRESS)
        update_status(appointment.id, AppointmentStatus.COMPLETED)

        patient.refresh_from_db()
        assert patient.current_cycle_start_date == DAY
        assert patient.current_cycle_session_count == 1
        assert patient.dialysis_cycles == 1

    def test_terminated_releases_capacity(self, center, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        update_status(appointment.id, AppointmentStatus.IN_PROGRESS)
        update_status(appointment.id, AppointmentStatus.TERMINATED)

        assert is_slot_available(center, DAY, time(9, 0), time(10, 0)) is True

    def test_cancel_via_status_update_releases_slots(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')
        update_status(appointment.id, AppointmentStatus.CANCELLED)

        assert appointment.slots.filter(is_active=True).count() == 0


@pytest.mark.django_db
class TestPermanentDelete:

    def test_removes_appointment_and_slots(self, patient, machine, book):
        appointment = book(patient, '09:00', '10:00')

        delete_appointment_permanently(appointment.id)

        assert not Appointment.objects.filter(id=appointment.id).exists()
        assert Slot.objects.count() == 0

    def test_refused_when_session_exists(self, appointment):
        create_session(appointment, appointment.patient, appointment.center, appointment.appointment_date)

        with pytest.raises(StateError):
            delete_appointment_permanently(appointment.id)
        assert Appointment.objects.filter(id=appointment.id).exists()
