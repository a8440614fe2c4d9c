"""
Dialysis session engine tests.

Test coverage:
1. Session creation drives the appointment to In Progress
2. Lifecycle transitions and their side effects on appointment/assignment
3. Complications and notes (abnormal flagging, mandatory notes)
4. Append-only timeline
5. Live queries (active sessions, machine availability)
"""
from datetime import time

import pytest

from apps.assets.models import AssetAssignmentStatus
from apps.core.exceptions import ConflictError, StateError, ValidationError
from apps.dialysis.models import DialysisSessionStatus, SessionTimeline, TimelineEventType
from apps.dialysis.services import (
    add_note,
    are_all_mandatory_notes_recorded,
    assign_machine,
    complete_session,
    create_session,
    get_active_sessions,
    get_latest_notes,
    get_machine_availability,
    get_missing_mandatory_notes,
    get_session_timeline,
    get_unresolved_complications,
    report_complication,
    resolve_complication,
    start_session,
    terminate_session,
)
from apps.scheduling.models import AppointmentStatus


@pytest.fixture
def session(appointment, nurse_user):
    return create_session(
        appointment,
        appointment.patient,
        appointment.center,
        appointment.appointment_date,
        scheduled_start_time=time(9, 0),
        actor=nurse_user,
    )


@pytest.fixture
def running_session(session, machine, nurse_user):
    assign_machine(session, machine, actor=nurse_user)
    return start_session(session, actor=nurse_user)


def _event_types(session):
    return [row.event_type for row in get_session_timeline(session)]


# ============================================================================
# Lifecycle
# ============================================================================

@pytest.mark.django_db
class TestSessionLifecycle:

    def test_create_moves_appointment_in_progress(self, session, appointment):
        appointment.refresh_from_db()

        assert session.status == DialysisSessionStatus.NOT_STARTED
        assert session.session_code == 'SES-NDC-20240304-001'
        assert appointment.status == AppointmentStatus.IN_PROGRESS
        assert _event_types(session) == [TimelineEventType.SESSION_CREATED]

    def test_second_session_for_appointment_rejected(self, session, appointment):
        with pytest.raises(ConflictError):
            create_session(appointment, appointment.patient, appointment.center, appointment.appointment_date)

    def test_patient_must_match_appointment(self, appointment, make_patient):
        with pytest.raises(ValidationError):
            create_session(appointment, make_patient('P-999'), appointment.center, appointment.appointment_date)

    def test_assign_machine_reserves_window(self, session, machine):
        session = assign_machine(session, machine)

        assignment = session.asset_assignment
        assert session.asset == machine
        assert assignment.status == AssetAssignmentStatus.ACTIVE
        assert assignment.window_start.time() == time(9, 0)
        assert _event_types(session)[-1] == TimelineEventType.MACHINE_ASSIGNED

    def test_start_then_complete(self, running_session, appointment, patient):
        assert running_session.status == DialysisSessionStatus.IN_PROGRESS
        assert running_session.actual_start_time is not None

        done = complete_session(running_session, post_session_notes='Stable')

        assert done.status == DialysisSessionStatus.COMPLETED
        assert done.actual_end_time is not None
        assert done.session_duration is not None
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatus.COMPLETED
        done.asset_assignment.refresh_from_db()
        assert done.asset_assignment.status == AssetAssignmentStatus.COMPLETED
        patient.refresh_from_db()
        assert patient.current_cycle_session_count == 1
        assert _event_types(done) == [
            TimelineEventType.SESSION_CREATED,
            TimelineEventType.MACHINE_ASSIGNED,
            TimelineEventType.SESSION_STARTED,
            TimelineEventType.SESSION_COMPLETED,
        ]

    def test_complete_requires_in_progress(self, session):
        with pytest.raises(StateError):
            complete_session(session)

    def test_start_twice_rejected(self, running_session):
        with pytest.raises(StateError):
            start_session(running_session)

    def test_terminate_requires_reason(self, running_session):
        with pytest.raises(ValidationError):
            terminate_session(running_session, '  ')

    def test_terminate_running_session(self, running_session, appointment):
        done = terminate_session(running_session, 'Severe hypotension')

        assert done.status == DialysisSessionStatus.TERMINATED
        assert done.termination_reason == 'Severe hypotension'
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatus.TERMINATED
        last = list(get_session_timeline(done))[-1]
        assert last.event_description == 'Session terminated: Severe hypotension'

    def test_terminate_before_start(self, session):
        done = terminate_session(session, 'Patient unwell')

        assert done.status == DialysisSessionStatus.TERMINATED
        assert done.session_duration is None

    def test_terminal_states_are_final(self, running_session):
        complete_session(running_session)

        with pytest.raises(StateError):
            terminate_session(running_session, 'late')
        with pytest.raises(StateError):
            start_session(running_session)


# ============================================================================
# Complications
# ============================================================================

@pytest.mark.django_db
class TestComplications:

    def test_report_keeps_session_running(self, running_session):
        complication = report_complication(running_session, 'Cramps', severity='mild')

        running_session.refresh_from_db()
        assert running_session.status == DialysisSessionStatus.IN_PROGRESS
        assert complication.is_resolved is False
        last = list(get_session_timeline(running_session))[-1]
        assert last.event_type == TimelineEventType.COMPLICATION_REPORTED
        assert last.event_description == 'Complication (mild): Cramps'

    def test_resolve_once(self, running_session):
        complication = report_complication(running_session, 'Hypotension', action_taken='Saline bolus')

        resolved = resolve_complication(complication, 'BP recovered')

        assert resolved.is_resolved is True
        assert resolved.action_taken == 'Saline bolus\nResolved: BP recovered'
        assert list(get_unresolved_complications(running_session)) == []
        with pytest.raises(StateError):
            resolve_complication(complication)

    def test_type_required(self, running_session):
        with pytest.raises(ValidationError):
            report_complication(running_session, '')


# ============================================================================
# Notes
# ============================================================================

@pytest.mark.django_db
class TestSessionNotes:

    def test_in_range_reading(self, running_session, bp_note_type):
        note = add_note(running_session, bp_note_type, '120')

        assert note.is_abnormal is False
        assert note.alert_generated is False
        last = list(get_session_timeline(running_session))[-1]
        assert last.event_description == 'Systolic BP: 120 mmHg'

    def test_out_of_range_reading_is_abnormal(self, running_session, bp_note_type):
        note = add_note(running_session, bp_note_type, '200')

        assert note.is_abnormal is True
        assert note.alert_generated is True
        last = list(get_session_timeline(running_session))[-1]
        assert last.event_description.startswith('ABNORMAL')

    def test_boundary_value_is_normal(self, running_session, bp_note_type):
        assert add_note(running_session, bp_note_type, '180').is_abnormal is False
        assert add_note(running_session, bp_note_type, '90').is_abnormal is False

    def test_non_numeric_value_rejected(self, running_session, bp_note_type):
        with pytest.raises(ValidationError):
            add_note(running_session, bp_note_type, 'high')

    def test_free_text_note_accepted(self, running_session, remark_note_type):
        note = add_note(running_session, remark_note_type, 'Patient comfortable')

        assert note.is_abnormal is False

    def test_mandatory_notes_gate(self, running_session, bp_note_type, weight_note_type, remark_note_type):
        assert [t.code for t in get_missing_mandatory_notes(running_session)] == ['SBP', 'PRE_WT']
        assert are_all_mandatory_notes_recorded(running_session) is False

        add_note(running_session, bp_note_type, '130')
        add_note(running_session, weight_note_type, '72.5')

        assert are_all_mandatory_notes_recorded(running_session) is True

    def test_latest_notes_one_per_type(self, running_session, bp_note_type, weight_note_type):
        add_note(running_session, weight_note_type, '72.5')
        add_note(running_session, bp_note_type, '130')
        add_note(running_session, bp_note_type, '110')

        latest = get_latest_notes(running_session)

        assert [(n.note_type.code, n.note_value) for n in latest] == [('SBP', '110'), ('PRE_WT', '72.5')]


# ============================================================================
# Timeline & queries
# ============================================================================

@pytest.mark.django_db
class TestTimelineAndQueries:

    def test_timeline_rows_cannot_change(self, session):
        row = SessionTimeline.objects.get(session=session)
        row.event_description = 'edited'

        with pytest.raises(StateError):
            row.save()
        with pytest.raises(StateError):
            row.delete()
        assert SessionTimeline.objects.get(pk=row.pk).event_description == 'Dialysis session created'

    def test_active_sessions(self, running_session, center):
        active = get_active_sessions(center)

        assert len(active) == 1
        assert active[0][0] == running_session
        assert active[0][1] >= 0

    def test_not_started_session_is_not_active(self, session, center):
        assert get_active_sessions(center) == []

    def test_machine_availability(self, running_session, center, machine, make_machine):
        idle = make_machine('DM-01-0002')

        rows = get_machine_availability(center)

        assert [(row['asset'], row['status']) for row in rows] == [(machine, 'In Use'), (idle, 'Available')]
        assert rows[0]['current_session'] == running_session
        assert rows[1]['current_session'] is None
