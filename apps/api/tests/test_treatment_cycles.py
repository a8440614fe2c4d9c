"""
Treatment cycle tracker tests.

A cycle is 42 days with 18 planned sessions. Cycles roll over either on
the first completion after the end date or in the daily sweep.
"""
from datetime import date, timedelta

import pytest

from apps.patients.models import TreatmentCycle, TreatmentCycleStatus
from apps.patients.services import (
    CYCLE_LENGTH_DAYS,
    PLANNED_SESSIONS_PER_CYCLE,
    get_current_cycle_info,
    get_cycle_history,
    process_expired_cycles,
    update_patient_dialysis_cycles,
)
from apps.patients.tasks import process_expired_cycles_task
from apps.scheduling.models import Appointment, AppointmentStatus

START = date(2024, 1, 1)


@pytest.fixture
def complete_on(patient, center, company):
    """Record a Completed appointment and advance the cycle as the scheduler does."""
    def _complete(day, today=None):
        Appointment.objects.create(
            company=company,
            center=center,
            patient=patient,
            appointment_date=day,
            status=AppointmentStatus.COMPLETED,
        )
        update_patient_dialysis_cycles(patient, day, today=today or day)
        patient.refresh_from_db()
        return patient
    return _complete


@pytest.mark.django_db
class TestCycleStart:

    def test_constants(self):
        assert CYCLE_LENGTH_DAYS == 42
        assert PLANNED_SESSIONS_PER_CYCLE == 18

    def test_first_completion_opens_cycle(self, patient, complete_on):
        complete_on(START)

        assert patient.current_cycle_number == 1
        assert patient.current_cycle_start_date == START
        assert patient.current_cycle_end_date == date(2024, 2, 12)
        assert patient.current_cycle_session_count == 1

        cycle = TreatmentCycle.objects.get(patient=patient)
        assert cycle.cycle_status == TreatmentCycleStatus.ACTIVE
        assert cycle.completed_sessions == 1
        assert cycle.planned_sessions == 18

    def test_completions_inside_window_are_counted(self, patient, complete_on):
        complete_on(START)
        complete_on(date(2024, 1, 3))
        complete_on(date(2024, 2, 12), today=date(2024, 2, 12))

        assert patient.current_cycle_number == 1
        assert patient.current_cycle_session_count == 3
        assert patient.dialysis_cycles == 3


@pytest.mark.django_db
class TestCycleRollover:

    def test_completion_after_end_date_rolls_over_first(self, patient, complete_on):
        complete_on(START)

        complete_on(date(2024, 2, 13))

        assert patient.current_cycle_number == 2
        assert patient.current_cycle_start_date == date(2024, 2, 13)
        assert patient.current_cycle_end_date == date(2024, 3, 26)
        assert patient.current_cycle_session_count == 1
        assert patient.total_completed_cycles == 0

        closed = TreatmentCycle.objects.get(patient=patient, cycle_number=1)
        assert closed.cycle_status == TreatmentCycleStatus.INCOMPLETE
        assert closed.completed_sessions == 1
        assert closed.completed_date == date(2024, 2, 13)

        opened = TreatmentCycle.objects.get(patient=patient, cycle_number=2)
        assert opened.cycle_status == TreatmentCycleStatus.ACTIVE

    def test_full_cycle_closes_as_completed(self, patient, complete_on):
        for offset in range(PLANNED_SESSIONS_PER_CYCLE):
            complete_on(START + timedelta(days=offset * 2))
        assert patient.current_cycle_session_count == 18

        complete_on(date(2024, 2, 20))

        closed = TreatmentCycle.objects.get(patient=patient, cycle_number=1)
        assert closed.cycle_status == TreatmentCycleStatus.COMPLETED
        assert patient.total_completed_cycles == 1

    def test_only_one_active_cycle(self, patient, complete_on):
        complete_on(START)
        complete_on(date(2024, 2, 13))
        complete_on(date(2024, 4, 1))

        assert TreatmentCycle.objects.filter(
            patient=patient, cycle_status=TreatmentCycleStatus.ACTIVE
        ).count() == 1
        assert [cycle.cycle_number for cycle in get_cycle_history(patient)] == [3, 2, 1]


@pytest.mark.django_db
class TestExpirySweep:

    def test_sweep_closes_expired_cycle_and_starts_new_one_today(self, patient, complete_on):
        complete_on(START)
        sweep_day = date(2024, 2, 20)

        processed = process_expired_cycles(today=sweep_day)

        assert processed == 1
        patient.refresh_from_db()
        assert patient.current_cycle_number == 2
        assert patient.current_cycle_start_date == sweep_day
        assert patient.current_cycle_session_count == 0
        closed = TreatmentCycle.objects.get(patient=patient, cycle_number=1)
        assert closed.cycle_status == TreatmentCycleStatus.INCOMPLETE

    def test_sweep_is_idempotent_per_day(self, patient, complete_on):
        complete_on(START)
        sweep_day = date(2024, 2, 20)

        assert process_expired_cycles(today=sweep_day) == 1
        assert process_expired_cycles(today=sweep_day) == 0

        assert TreatmentCycle.objects.filter(patient=patient).count() == 2

    def test_sweep_ignores_cycle_ending_today(self, patient, complete_on):
        complete_on(START)

        assert process_expired_cycles(today=date(2024, 2, 12)) == 0

    def test_sweep_ignores_patients_without_cycle(self, patient):
        assert process_expired_cycles(today=date(2024, 2, 20)) == 0

    def test_celery_task_runs_sweep(self, patient, complete_on):
        complete_on(START)

        # Cycle from 2024 has long expired relative to the real date
        assert process_expired_cycles_task.apply().get() == 1


@pytest.mark.django_db
class TestCycleInfo:

    def test_info_for_open_cycle(self, patient, complete_on):
        complete_on(START)

        info = get_current_cycle_info(patient, today=date(2024, 2, 2))

        assert info['has_active_cycle'] is True
        assert info['session_count'] == 1
        assert info['sessions_remaining'] == 17
        assert info['days_remaining'] == 10
        assert info['is_expired'] is False

    def test_info_without_cycle(self, patient):
        info = get_current_cycle_info(patient)

        assert info['has_active_cycle'] is False
        assert info['days_remaining'] is None
        assert info['sessions_remaining'] == 18
