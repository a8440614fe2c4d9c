"""
Patient models - demographic data and treatment cycle state.

A patient is always inside (at most) one open 42-day treatment cycle.
The open cycle is mirrored in two places:
- the current_cycle_* fields on Patient (fast reads for booking screens)
- the single Active TreatmentCycle history row

Both are written together by apps.patients.services.
"""
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class Patient(models.Model):
    """
    Patient registered at a dialysis center.
    """
    GENDER_CHOICES = [
        ('M', _('Male')),
        ('F', _('Female')),
        ('O', _('Other')),
        ('U', _('Prefer not to say')),
    ]

    company = models.ForeignKey(
        'core.Company',
        on_delete=models.PROTECT,
        related_name='patients'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='patients'
    )

    # Demographics
    patient_code = models.CharField(_('Patient Code'), max_length=30, unique=True)
    patient_name = models.CharField(_('Patient Name'), max_length=255)
    date_of_birth = models.DateField(_('Date of Birth'), null=True, blank=True)
    gender = models.CharField(_('Gender'), max_length=1, choices=GENDER_CHOICES, default='U')
    mobile_no = models.CharField(_('Mobile No'), max_length=20, blank=True)
    address = models.TextField(_('Address'), blank=True)

    # Treatment cycle state (owned by apps.patients.services)
    current_cycle_number = models.PositiveIntegerField(_('Current Cycle Number'), default=1)
    current_cycle_start_date = models.DateField(_('Current Cycle Start'), null=True, blank=True)
    current_cycle_end_date = models.DateField(_('Current Cycle End'), null=True, blank=True)
    current_cycle_session_count = models.PositiveIntegerField(_('Sessions In Current Cycle'), default=0)
    total_completed_cycles = models.PositiveIntegerField(_('Completed Cycles'), default=0)
    dialysis_cycles = models.PositiveIntegerField(
        _('Completed Sessions'),
        default=0,
        help_text=_('All-time count of completed dialysis appointments')
    )

    # Metadata
    is_active = models.BooleanField(_('Active'), default=True)
    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'patients'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['patient_name'], name='idx_patient_name'),
            models.Index(fields=['mobile_no'], name='idx_patient_mobile'),
            models.Index(fields=['center', 'is_active'], name='idx_patient_center_active'),
            models.Index(fields=['current_cycle_end_date'], name='idx_patient_cycle_end'),
        ]
        verbose_name = _('Patient')
        verbose_name_plural = _('Patients')

    def __str__(self):
        return f"{self.patient_code} - {self.patient_name}"

    @property
    def has_open_cycle(self):
        return self.current_cycle_start_date is not None and self.current_cycle_end_date is not None

    @property
    def age(self):
        """Calculate age from date of birth."""
        if not self.date_of_birth:
            return None
        from datetime import date
        today = date.today()
        return today.year - self.date_of_birth.year - (
            (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day)
        )


class TreatmentCycleStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    COMPLETED = 'completed', _('Completed')
    INCOMPLETE = 'incomplete', _('Incomplete')


class TreatmentCycle(models.Model):
    """
    History row for one treatment cycle of a patient.

    INVARIANT: at most one Active row per patient (conditional unique constraint).
    Closed rows are Completed when completed_sessions >= planned_sessions,
    Incomplete otherwise.
    """
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name='treatment_cycles'
    )
    cycle_number = models.PositiveIntegerField()
    cycle_start_date = models.DateField()
    cycle_end_date = models.DateField()
    planned_sessions = models.PositiveIntegerField(default=18)
    completed_sessions = models.PositiveIntegerField(default=0)
    cycle_status = models.CharField(
        max_length=20,
        choices=TreatmentCycleStatus.choices,
        default=TreatmentCycleStatus.ACTIVE
    )
    first_appointment_date = models.DateField(null=True, blank=True)
    last_appointment_date = models.DateField(null=True, blank=True)
    completed_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'treatment_cycle'
        ordering = ['patient', '-cycle_number']
        verbose_name = _('Treatment Cycle')
        verbose_name_plural = _('Treatment Cycles')
        indexes = [
            models.Index(fields=['patient', 'cycle_status'], name='idx_cycle_patient_status'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['patient', 'cycle_number'],
                name='uniq_cycle_number_per_patient'
            ),
            models.UniqueConstraint(
                fields=['patient'],
                condition=Q(cycle_status='active'),
                name='uniq_active_cycle_per_patient'
            ),
        ]

    def __str__(self):
        return f"{self.patient.patient_code} cycle {self.cycle_number} ({self.cycle_status})"
