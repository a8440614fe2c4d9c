"""
Dialysis session models.

- DialysisSession: one treatment run for one appointment
- SessionTimeline: append-only audit trail of everything that happened
- SessionComplication: adverse events reported during the run
- SessionNoteType / SessionNote: configurable vital-sign readings
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import StateError


class DialysisSessionStatus(models.TextChoices):
    NOT_STARTED = 'not_started', _('Not Started')
    IN_PROGRESS = 'in_progress', _('In Progress')
    COMPLETED = 'completed', _('Completed')
    TERMINATED = 'terminated', _('Terminated')


class DialysisType(models.TextChoices):
    HEMODIALYSIS = 'hemodialysis', _('Hemodialysis')
    HEMODIAFILTRATION = 'hemodiafiltration', _('Hemodiafiltration')
    HEMOFILTRATION = 'hemofiltration', _('Hemofiltration')
    SLED = 'sled', _('Sustained Low-Efficiency Dialysis')


class DialysisSession(models.Model):
    """
    One dialysis run.

    INVARIANT: exactly one session per appointment.
    BUSINESS RULE: every status change appends one SessionTimeline row
    in the same transaction.
    """
    session_code = models.CharField(max_length=40, unique=True)
    appointment = models.OneToOneField(
        'scheduling.Appointment',
        on_delete=models.PROTECT,
        related_name='dialysis_session'
    )
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='dialysis_sessions'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='dialysis_sessions'
    )
    asset = models.ForeignKey(
        'assets.Asset',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='dialysis_sessions'
    )
    asset_assignment = models.ForeignKey(
        'assets.AssetAssignment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='dialysis_sessions'
    )
    status = models.CharField(
        max_length=20,
        choices=DialysisSessionStatus.choices,
        default=DialysisSessionStatus.NOT_STARTED
    )
    session_date = models.DateField()
    scheduled_start_time = models.TimeField(null=True, blank=True)
    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)
    session_duration = models.PositiveIntegerField(null=True, blank=True, help_text=_('Minutes'))
    dialysis_type = models.CharField(
        max_length=30,
        choices=DialysisType.choices,
        default=DialysisType.HEMODIALYSIS
    )
    pre_session_notes = models.TextField(blank=True, default='')
    post_session_notes = models.TextField(blank=True, default='')
    termination_reason = models.TextField(blank=True, default='')

    started_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'dialysis_session'
        ordering = ['-session_date', '-id']
        verbose_name = _('Dialysis Session')
        verbose_name_plural = _('Dialysis Sessions')
        indexes = [
            models.Index(fields=['center', 'status'], name='idx_session_center_status'),
            models.Index(fields=['patient', 'session_date'], name='idx_session_patient_date'),
            models.Index(fields=['asset', 'status'], name='idx_session_asset_status'),
        ]

    # BUSINESS RULE: Allowed status transitions
    _ALLOWED_TRANSITIONS = {
        DialysisSessionStatus.NOT_STARTED: [DialysisSessionStatus.IN_PROGRESS, DialysisSessionStatus.TERMINATED],
        DialysisSessionStatus.IN_PROGRESS: [DialysisSessionStatus.COMPLETED, DialysisSessionStatus.TERMINATED],
        DialysisSessionStatus.COMPLETED: [],   # Terminal state
        DialysisSessionStatus.TERMINATED: [],  # Terminal state
    }

    def __str__(self):
        return f"{self.session_code} ({self.get_status_display()})"

    @property
    def is_terminal(self):
        return not self._ALLOWED_TRANSITIONS.get(self.status)

    def transition_status(self, new_status):
        """
        Returns:
            The previous status

        Raises:
            StateError: If the transition is not allowed
        """
        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            current = DialysisSessionStatus(self.status).label
            raise StateError(
                f'Session {self.session_code} is {current} and cannot move to '
                f'{DialysisSessionStatus(new_status).label}'
            )
        old_status = self.status
        self.status = new_status
        return old_status


class TimelineEventType(models.TextChoices):
    SESSION_CREATED = 'SessionCreated', _('Session Created')
    MACHINE_ASSIGNED = 'MachineAssigned', _('Machine Assigned')
    INVENTORY_ADDED = 'InventoryAdded', _('Inventory Added')
    INVENTORY_REMOVED = 'InventoryRemoved', _('Inventory Removed')
    SESSION_STARTED = 'SessionStarted', _('Session Started')
    NOTE_ADDED = 'NoteAdded', _('Note Added')
    COMPLICATION_REPORTED = 'ComplicationReported', _('Complication Reported')
    SESSION_COMPLETED = 'SessionCompleted', _('Session Completed')
    SESSION_TERMINATED = 'SessionTerminated', _('Session Terminated')


class SessionTimeline(models.Model):
    """
    Append-only audit row.

    INVARIANT: a saved row is never updated or deleted.
    """
    session = models.ForeignKey(
        DialysisSession,
        on_delete=models.PROTECT,
        related_name='timeline'
    )
    event_type = models.CharField(max_length=40, choices=TimelineEventType.choices)
    event_description = models.TextField()
    event_time = models.DateTimeField()
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta:
        db_table = 'session_timeline'
        ordering = ['event_time', 'id']
        verbose_name = _('Session Timeline Event')
        verbose_name_plural = _('Session Timeline')
        indexes = [
            models.Index(fields=['session', 'event_time'], name='idx_timeline_session_time'),
        ]

    def __str__(self):
        return f"{self.event_type} @ {self.event_time}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise StateError('Timeline entries are append-only')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StateError('Timeline entries are append-only')


class ComplicationSeverity(models.TextChoices):
    MILD = 'mild', _('Mild')
    MODERATE = 'moderate', _('Moderate')
    SEVERE = 'severe', _('Severe')


class SessionComplication(models.Model):
    session = models.ForeignKey(
        DialysisSession,
        on_delete=models.CASCADE,
        related_name='complications'
    )
    complication_type = models.CharField(max_length=100)  # Hypotension, Cramps, Nausea, Bleeding...
    severity = models.CharField(max_length=20, choices=ComplicationSeverity.choices, blank=True, default='')
    occurred_at = models.DateTimeField()
    description = models.TextField(blank=True, default='')
    action_taken = models.TextField(blank=True, default='')
    resolved_at = models.DateTimeField(null=True, blank=True)
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'session_complication'
        ordering = ['-occurred_at']
        verbose_name = _('Session Complication')
        verbose_name_plural = _('Session Complications')
        indexes = [
            models.Index(fields=['session', 'resolved_at'], name='idx_complication_open'),
        ]

    def __str__(self):
        return f"{self.complication_type} ({self.severity or 'unspecified'})"

    @property
    def is_resolved(self):
        return self.resolved_at is not None


class NoteCategory(models.TextChoices):
    VITAL_SIGNS = 'vital_signs', _('Vital Signs')
    LAB_RESULTS = 'lab_results', _('Lab Results')
    TREATMENT = 'treatment', _('Treatment')
    OBSERVATIONS = 'observations', _('Observations')
    OTHER = 'other', _('Other')


class SessionNoteType(models.Model):
    """
    Master list of readings recorded during a session
    (blood pressure, weight, pulse, ...).

    Numeric types may carry min/max bounds; values outside them are
    flagged abnormal. Mandatory types must be recorded before completion.
    """
    name = models.CharField(max_length=100)
    code = models.CharField(max_length=30, unique=True)
    unit = models.CharField(max_length=20, blank=True, default='')
    is_mandatory = models.BooleanField(default=False)
    is_numeric = models.BooleanField(default=False)
    min_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    max_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    category = models.CharField(max_length=20, choices=NoteCategory.choices, default=NoteCategory.OTHER)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'session_note_type'
        ordering = ['display_order', 'name']
        verbose_name = _('Session Note Type')
        verbose_name_plural = _('Session Note Types')

    def __str__(self):
        return f"{self.name} ({self.unit})" if self.unit else self.name


class SessionNote(models.Model):
    session = models.ForeignKey(
        DialysisSession,
        on_delete=models.CASCADE,
        related_name='notes'
    )
    note_type = models.ForeignKey(
        SessionNoteType,
        on_delete=models.PROTECT,
        related_name='notes'
    )
    note_value = models.CharField(max_length=255)
    note_time = models.DateTimeField()
    is_abnormal = models.BooleanField(default=False)
    alert_generated = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default='')
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'session_note'
        ordering = ['note_time', 'id']
        verbose_name = _('Session Note')
        verbose_name_plural = _('Session Notes')
        indexes = [
            models.Index(fields=['session', 'note_type'], name='idx_note_session_type'),
        ]

    def __str__(self):
        return f"{self.note_type.code}={self.note_value}"
