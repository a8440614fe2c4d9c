"""
Dialysis session engine.

Lifecycle: Not Started -> In Progress -> Completed | Terminated
(Not Started -> Terminated aborts a session that never ran).

Every step runs in one transaction and appends exactly one timeline row.
Session transitions drive the linked records:
- create: appointment -> In Progress
- complete: appointment -> Completed (advances the treatment cycle),
  asset assignment -> Completed
- terminate: appointment -> Terminated, asset assignment -> Completed
"""
import re
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.assets.models import Asset, AssetAssignmentStatus
from apps.assets.services import create_assignment, update_assignment_status
from apps.core.exceptions import ConflictError, StateError, ValidationError, get_or_not_found
from apps.core.models import Center
from apps.core.observability import metrics, trace_span, log_domain_event
from apps.core.observability.events import log_session_transition
from apps.scheduling.models import AppointmentStatus
from apps.scheduling import services as scheduling_services

from .models import (
    DialysisSession,
    DialysisSessionStatus,
    SessionComplication,
    SessionNote,
    SessionNoteType,
    SessionTimeline,
    TimelineEventType,
)


# ============================================================================
# Helpers
# ============================================================================

def _lock_session(session) -> DialysisSession:
    return get_or_not_found(
        DialysisSession.objects.select_for_update(), 'Session', pk=session.pk
    )


def _record_transition(session, from_status, to_status):
    metrics.dialysis_session_transitions_total.labels(
        from_status=from_status or 'none',
        to_status=to_status
    ).inc()
    log_session_transition(session, from_status, to_status)


def _elapsed_minutes(start, end) -> int:
    return max(0, int((end - start).total_seconds() // 60))


def log_timeline_event(session, event_type, description, actor=None) -> SessionTimeline:
    """Append one row to the session's timeline."""
    return SessionTimeline.objects.create(
        session=session,
        event_type=event_type,
        event_description=description,
        event_time=timezone.now(),
        performed_by=actor,
    )


def generate_session_code(center, session_date) -> str:
    """
    Next code for the center/date: SES-{INITIALS}-{YYYYMMDD}-{NNN}.

    Callers hold the Center row lock so two sessions never draw the same number.
    """
    prefix = f'SES-{center.initials}-{session_date:%Y%m%d}-'
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')

    highest = 0
    for code in DialysisSession.objects.filter(session_code__startswith=prefix).values_list('session_code', flat=True):
        match = pattern.match(code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f'{prefix}{highest + 1:03d}'


# ============================================================================
# Lifecycle
# ============================================================================

def create_session(appointment, patient, center, session_date, scheduled_start_time=None,
                   dialysis_type=None, pre_session_notes='', actor=None) -> DialysisSession:
    """
    Open a session for a Scheduled appointment.

    Raises:
        ConflictError: The appointment already has a session
        ValidationError: Patient or center do not match the appointment
        StateError: The appointment cannot move to In Progress
    """
    if appointment.patient_id != patient.id:
        raise ValidationError('Patient does not match the appointment')
    if appointment.center_id != center.id:
        raise ValidationError('Center does not match the appointment')

    with trace_span('create_session', attributes={'appointment_id': appointment.id, 'center_id': center.id}):
        with transaction.atomic():
            Center.objects.select_for_update().get(pk=center.pk)

            if DialysisSession.objects.filter(appointment_id=appointment.pk).exists():
                raise ConflictError('A dialysis session already exists for this appointment')

            fields = {
                'session_code': generate_session_code(center, session_date),
                'appointment': appointment,
                'patient': patient,
                'center': center,
                'session_date': session_date,
                'scheduled_start_time': scheduled_start_time,
                'pre_session_notes': pre_session_notes or '',
                'created_by': actor,
            }
            if dialysis_type:
                fields['dialysis_type'] = dialysis_type
            session = DialysisSession.objects.create(**fields)

            scheduling_services.update_status(appointment.pk, AppointmentStatus.IN_PROGRESS, actor)
            log_timeline_event(session, TimelineEventType.SESSION_CREATED, 'Dialysis session created', actor)

    _record_transition(session, None, DialysisSessionStatus.NOT_STARTED)
    return session


def assign_machine(session, asset, actor=None, assignment=None, duration_minutes=None) -> DialysisSession:
    """
    Attach a machine to the session.

    Without an explicit assignment, one is reserved through the allocator
    starting at the scheduled start time (or now).

    Raises:
        StateError: Session already finished
        ValidationError: Asset/assignment belong elsewhere
        ConflictError: Machine busy in the window
    """
    duration_minutes = duration_minutes or settings.DIALYSIS_DEFAULT_SESSION_MINUTES

    with transaction.atomic():
        session = _lock_session(session)
        if session.is_terminal:
            raise StateError(f'Session {session.session_code} is {session.get_status_display()}')
        if asset.center_id != session.center_id:
            raise ValidationError('Machine belongs to a different center')

        if assignment is None:
            assigned_time = session.scheduled_start_time or timezone.localtime().time().replace(second=0, microsecond=0)
            assignment = create_assignment(
                asset=asset,
                appointment=session.appointment,
                assigned_date=session.session_date,
                assigned_time=assigned_time,
                duration_minutes=duration_minutes,
                notes=f'Session {session.session_code}',
                actor=actor,
            )
        elif assignment.asset_id != asset.id or assignment.appointment_id != session.appointment_id:
            raise ValidationError('Assignment does not match the machine and appointment')

        # Re-assigning releases the previous reservation
        previous = session.asset_assignment
        if previous and previous.pk != assignment.pk and previous.status == AssetAssignmentStatus.ACTIVE:
            update_assignment_status(previous, AssetAssignmentStatus.CANCELLED, actor)

        session.asset = asset
        session.asset_assignment = assignment
        session.save(update_fields=['asset', 'asset_assignment', 'updated_at'])

        log_timeline_event(
            session, TimelineEventType.MACHINE_ASSIGNED,
            f'Dialysis machine {asset.asset_code} assigned', actor
        )

    return session


def start_session(session, actor=None) -> DialysisSession:
    """
    Raises:
        StateError: Session is not Not Started
    """
    with trace_span('start_session', attributes={'session_id': session.pk}):
        with transaction.atomic():
            session = _lock_session(session)
            old_status = session.transition_status(DialysisSessionStatus.IN_PROGRESS)
            session.actual_start_time = timezone.now()
            session.started_by = actor
            session.save(update_fields=['status', 'actual_start_time', 'started_by', 'updated_at'])
            log_timeline_event(session, TimelineEventType.SESSION_STARTED, 'Dialysis session started', actor)

    _record_transition(session, old_status, session.status)
    return session


def _finish_session(session, new_status, appointment_status, actor):
    old_status = session.transition_status(new_status)
    now = timezone.now()
    session.actual_end_time = now
    if session.actual_start_time:
        session.session_duration = _elapsed_minutes(session.actual_start_time, now)
    session.completed_by = actor

    scheduling_services.update_status(session.appointment_id, appointment_status, actor)

    if session.asset_assignment_id:
        assignment = session.asset_assignment
        if assignment.status == AssetAssignmentStatus.ACTIVE:
            update_assignment_status(assignment, AssetAssignmentStatus.COMPLETED, actor)
    return old_status


def complete_session(session, post_session_notes='', actor=None) -> DialysisSession:
    """
    Finish an In Progress session.

    Mandatory-note gating is the caller's job (see are_all_mandatory_notes_recorded).

    Raises:
        StateError: Session is not In Progress
    """
    with trace_span('complete_session', attributes={'session_id': session.pk}):
        with transaction.atomic():
            session = _lock_session(session)
            old_status = _finish_session(
                session, DialysisSessionStatus.COMPLETED, AppointmentStatus.COMPLETED, actor
            )
            session.post_session_notes = post_session_notes or ''
            session.save()
            log_timeline_event(
                session, TimelineEventType.SESSION_COMPLETED,
                'Dialysis session completed successfully', actor
            )

    if session.session_duration is not None:
        metrics.dialysis_session_duration_minutes.labels(outcome='completed').observe(session.session_duration)
    _record_transition(session, old_status, session.status)
    return session


def terminate_session(session, reason, actor=None) -> DialysisSession:
    """
    Abort a session (before or during the run).

    Raises:
        ValidationError: Missing reason
        StateError: Session already finished
    """
    if not reason or not reason.strip():
        raise ValidationError('A termination reason is required')

    with trace_span('terminate_session', attributes={'session_id': session.pk}):
        with transaction.atomic():
            session = _lock_session(session)
            old_status = _finish_session(
                session, DialysisSessionStatus.TERMINATED, AppointmentStatus.TERMINATED, actor
            )
            session.termination_reason = reason
            session.save()
            log_timeline_event(
                session, TimelineEventType.SESSION_TERMINATED,
                f'Session terminated: {reason}', actor
            )

    if session.session_duration is not None:
        metrics.dialysis_session_duration_minutes.labels(outcome='terminated').observe(session.session_duration)
    _record_transition(session, old_status, session.status)
    return session


# ============================================================================
# Complications
# ============================================================================

def report_complication(session, complication_type, severity=None, description='',
                        action_taken='', actor=None) -> SessionComplication:
    """Record a complication; the session status is unchanged."""
    if not complication_type:
        raise ValidationError('complication_type is required')

    with transaction.atomic():
        session = _lock_session(session)
        complication = SessionComplication.objects.create(
            session=session,
            complication_type=complication_type,
            severity=severity or '',
            occurred_at=timezone.now(),
            description=description or '',
            action_taken=action_taken or '',
            reported_by=actor,
        )
        label = f'Complication ({severity}): {complication_type}' if severity else f'Complication: {complication_type}'
        log_timeline_event(session, TimelineEventType.COMPLICATION_REPORTED, label, actor)

    metrics.session_complications_total.labels(severity=severity or 'unspecified').inc()
    log_domain_event(
        'session_complication_reported',
        entity_type='SessionComplication',
        entity_id=str(complication.id),
        entity_ids={'session_id': str(session.id)},
        result='warning',
        complication_type=complication_type,
        severity=severity or 'unspecified',
    )
    return complication


def resolve_complication(complication, resolution_notes='') -> SessionComplication:
    """
    Raises:
        StateError: Already resolved
    """
    with transaction.atomic():
        complication = get_or_not_found(
            SessionComplication.objects.select_for_update(), 'Complication', pk=complication.pk
        )
        if complication.resolved_at is not None:
            raise StateError('Complication is already resolved')

        complication.resolved_at = timezone.now()
        if resolution_notes:
            prefix = f'{complication.action_taken}\n' if complication.action_taken else ''
            complication.action_taken = f'{prefix}Resolved: {resolution_notes}'
        complication.save(update_fields=['resolved_at', 'action_taken'])

    return complication


def get_unresolved_complications(session):
    return SessionComplication.objects.filter(
        session=session, resolved_at__isnull=True
    ).order_by('-occurred_at')


# ============================================================================
# Notes
# ============================================================================

def _is_out_of_range(note_type, value: Decimal) -> bool:
    if note_type.min_value is not None and value < note_type.min_value:
        return True
    if note_type.max_value is not None and value > note_type.max_value:
        return True
    return False


def add_note(session, note_type, raw_value, actor=None, notes=None) -> SessionNote:
    """
    Record a reading.

    Numeric types must parse as a number; values outside min/max are
    flagged abnormal and raise an alert flag.

    Raises:
        ValidationError: Empty value or non-numeric value for a numeric type
    """
    value = '' if raw_value is None else str(raw_value).strip()
    if not value:
        raise ValidationError(f'A value is required for {note_type.name}')

    is_abnormal = False
    if note_type.is_numeric:
        try:
            numeric = Decimal(value)
        except InvalidOperation:
            raise ValidationError(f'{note_type.name} expects a numeric value, got "{value}"')
        if not numeric.is_finite():
            raise ValidationError(f'{note_type.name} expects a numeric value, got "{value}"')
        is_abnormal = _is_out_of_range(note_type, numeric)

    with transaction.atomic():
        session = _lock_session(session)
        note = SessionNote.objects.create(
            session=session,
            note_type=note_type,
            note_value=value,
            note_time=timezone.now(),
            is_abnormal=is_abnormal,
            alert_generated=is_abnormal,
            notes=notes or '',
            recorded_by=actor,
        )

        display_value = f'{value} {note_type.unit}' if note_type.unit else value
        description = f'{note_type.name}: {display_value}'
        if is_abnormal:
            description = f'ABNORMAL {description}'
        log_timeline_event(session, TimelineEventType.NOTE_ADDED, description, actor)

    if is_abnormal:
        metrics.session_notes_abnormal_total.inc()
        log_domain_event(
            'session_note_abnormal',
            entity_type='SessionNote',
            entity_id=str(note.id),
            entity_ids={'session_id': str(session.id), 'note_type_id': str(note_type.id)},
            result='warning',
            note_type_code=note_type.code,
        )
    return note


def get_missing_mandatory_notes(session):
    """Active mandatory note types with no reading on the session yet."""
    recorded = SessionNote.objects.filter(session=session).values('note_type_id')
    return SessionNoteType.objects.filter(
        is_mandatory=True,
        is_active=True,
    ).exclude(id__in=recorded).order_by('display_order', 'name')


def are_all_mandatory_notes_recorded(session) -> bool:
    return not get_missing_mandatory_notes(session).exists()


def get_latest_notes(session):
    """Most recent reading per note type, in note type display order."""
    latest = {}
    for note in SessionNote.objects.filter(session=session).select_related('note_type').order_by('note_time', 'id'):
        latest[note.note_type_id] = note
    return sorted(
        latest.values(),
        key=lambda note: (note.note_type.display_order, note.note_type.name)
    )


# ============================================================================
# Queries
# ============================================================================

def get_active_sessions(center=None):
    """
    In Progress sessions with elapsed minutes.

    Returns:
        List of (session, elapsed_minutes)
    """
    sessions = DialysisSession.objects.filter(
        status=DialysisSessionStatus.IN_PROGRESS
    ).select_related('patient', 'asset').order_by('actual_start_time')
    if center is not None:
        sessions = sessions.filter(center=center)

    now = timezone.now()
    return [
        (session, _elapsed_minutes(session.actual_start_time, now) if session.actual_start_time else 0)
        for session in sessions
    ]


def get_session_timeline(session):
    return SessionTimeline.objects.filter(session=session).order_by('event_time', 'id')


def get_machine_availability(center):
    """
    Every active dialysis machine of the center with its live status.

    A machine is 'In Use' while an In Progress session runs on it.

    Returns:
        List of dicts: asset, status, current_session
    """
    running = {
        session.asset_id: session
        for session in DialysisSession.objects.filter(
            center=center,
            status=DialysisSessionStatus.IN_PROGRESS,
            asset__isnull=False,
        ).select_related('patient')
    }

    machines = Asset.objects.filter(
        center=center,
        is_active=True,
        asset_type__is_dialysis_machine=True,
    ).order_by('asset_code')

    return [
        {
            'asset': machine,
            'status': 'In Use' if machine.id in running else 'Available',
            'current_session': running.get(machine.id),
        }
        for machine in machines
    ]
