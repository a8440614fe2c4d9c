"""
Scheduling models: appointment, slot.

An appointment books one patient into a center for a date. The time
window lives on Slot rows: rescheduling deactivates the old slot and
inserts a new one, so an appointment may own several slots but at most
one active slot.
"""
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import StateError


class AppointmentStatus(models.IntegerChoices):
    """
    Appointment status codes.

    Integer values are stable and shared with reporting; 4 is not used.
    """
    SCHEDULED = 1, _('Scheduled')
    IN_PROGRESS = 2, _('In Progress')
    COMPLETED = 3, _('Completed')
    CANCELLED = 5, _('Cancelled')
    TERMINATED = 6, _('Terminated')
    RESCHEDULED = 7, _('Rescheduled')


# Appointments in these statuses neither hold capacity nor block a new booking
CAPACITY_RELEASING_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.TERMINATED)


class Appointment(models.Model):
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    appointment_date = models.DateField()
    status = models.PositiveSmallIntegerField(
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.SCHEDULED
    )
    reschedule_revision = models.PositiveIntegerField(default=0)
    is_rescheduled = models.BooleanField(default=False)
    reschedule_reason = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        ordering = ['-appointment_date', '-id']
        indexes = [
            models.Index(fields=['patient', 'appointment_date'], name='idx_appt_patient_date'),
            models.Index(fields=['center', 'appointment_date'], name='idx_appt_center_date'),
            models.Index(fields=['status'], name='idx_appt_status'),
        ]

    # BUSINESS RULE: Allowed status transitions
    # Rescheduled is transient: reschedule applies Scheduled -> Rescheduled -> Scheduled
    # in one operation.
    _ALLOWED_TRANSITIONS = {
        AppointmentStatus.SCHEDULED: [
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        ],
        AppointmentStatus.RESCHEDULED: [AppointmentStatus.SCHEDULED],
        AppointmentStatus.IN_PROGRESS: [
            AppointmentStatus.COMPLETED,
            AppointmentStatus.TERMINATED,
        ],
        AppointmentStatus.COMPLETED: [],   # Terminal state
        AppointmentStatus.CANCELLED: [],   # Terminal state
        AppointmentStatus.TERMINATED: [],  # Terminal state
    }

    def __str__(self):
        return f"Appointment {self.appointment_date} - {self.patient_id} ({self.get_status_display()})"

    @property
    def active_slot(self):
        return self.slots.filter(is_active=True).order_by('-created_at', '-id').first()

    def can_transition_to(self, new_status):
        return new_status in self._ALLOWED_TRANSITIONS.get(self.status, [])

    def transition_status(self, new_status):
        """
        Move to new_status if the transition table allows it.

        Does not save; callers persist inside their own transaction.

        Returns:
            The previous status

        Raises:
            StateError: If the current status is terminal or the pair is not allowed
        """
        new_status = AppointmentStatus(new_status)
        current = AppointmentStatus(self.status)
        allowed = self._ALLOWED_TRANSITIONS.get(current, [])
        if not allowed:
            raise StateError(f'Appointment is {current.label} and cannot change status')
        if new_status not in allowed:
            raise StateError(
                f'Transition not allowed: {current.label} -> {new_status.label}'
            )
        self.status = new_status
        return current


class Slot(models.Model):
    """
    Booked time window of an appointment at a center.

    INVARIANT: for a center/date/window, active slots whose appointment is
    not Cancelled or Terminated never exceed the center's active machine count.
    """
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.CASCADE,
        related_name='slots'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='slots'
    )
    slot_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'slot'
        verbose_name = 'Slot'
        verbose_name_plural = 'Slots'
        ordering = ['slot_date', 'start_time']
        indexes = [
            models.Index(fields=['center', 'slot_date', 'is_active'], name='idx_slot_center_date'),
            models.Index(fields=['appointment', 'is_active'], name='idx_slot_appointment'),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(end_time__gt=models.F('start_time')),
                name='chk_slot_end_after_start'
            ),
        ]

    def __str__(self):
        return f"{self.slot_date} {self.start_time}-{self.end_time}"
