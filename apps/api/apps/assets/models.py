"""
Asset models: asset types, assets (dialysis machines and other equipment),
the assignment of an asset to an appointment for a time window, and the
asset maintenance log.
"""
from datetime import datetime, timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import StateError


class AssetType(models.Model):
    """
    Asset category.

    Only assets whose type is flagged is_dialysis_machine count toward
    a center's booking capacity.
    """
    type_code = models.CharField(_('Type Code'), max_length=20, unique=True)
    type_name = models.CharField(_('Type Name'), max_length=100)
    is_dialysis_machine = models.BooleanField(_('Dialysis Machine'), default=False)
    requires_maintenance = models.BooleanField(_('Requires Maintenance'), default=False)
    maintenance_interval_days = models.PositiveIntegerField(_('Maintenance Interval (days)'), default=0)
    is_active = models.BooleanField(_('Active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'asset_type'
        ordering = ['type_name']
        verbose_name = _('Asset Type')
        verbose_name_plural = _('Asset Types')

    def __str__(self):
        return f"{self.type_name} ({self.type_code})"


class Asset(models.Model):
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.PROTECT,
        related_name='assets'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='assets'
    )
    asset_type = models.ForeignKey(
        AssetType,
        on_delete=models.PROTECT,
        related_name='assets'
    )
    asset_code = models.CharField(_('Asset Code'), max_length=40, unique=True)
    asset_name = models.CharField(_('Asset Name'), max_length=255)
    serial_number = models.CharField(_('Serial Number'), max_length=100, blank=True, default='')
    purchase_date = models.DateField(_('Purchase Date'), null=True, blank=True)
    last_maintenance_date = models.DateField(_('Last Maintenance'), null=True, blank=True)
    next_maintenance_date = models.DateField(_('Next Maintenance'), null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    is_active = models.BooleanField(_('Active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Maintenance within this many days counts as due
    MAINTENANCE_DUE_DAYS = 7

    class Meta:
        db_table = 'asset'
        ordering = ['asset_code']
        verbose_name = _('Asset')
        verbose_name_plural = _('Assets')
        indexes = [
            models.Index(fields=['center', 'is_active'], name='idx_asset_center_active'),
            models.Index(fields=['asset_type'], name='idx_asset_type'),
        ]

    def __str__(self):
        return f"{self.asset_code} - {self.asset_name}"

    @property
    def days_until_maintenance(self):
        if self.next_maintenance_date is None:
            return None
        return (self.next_maintenance_date - timezone.localdate()).days

    @property
    def maintenance_due(self):
        days = self.days_until_maintenance
        return days is not None and days <= self.MAINTENANCE_DUE_DAYS


class AssetAssignmentStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')


class AssetAssignment(models.Model):
    """
    Binding of one asset to one appointment for
    [assigned_date assigned_time, + session_duration minutes).

    INVARIANT: two Active assignments of the same asset never overlap.
    """
    asset = models.ForeignKey(
        Asset,
        on_delete=models.PROTECT,
        related_name='assignments'
    )
    appointment = models.ForeignKey(
        'scheduling.Appointment',
        on_delete=models.CASCADE,
        related_name='asset_assignments'
    )
    assigned_date = models.DateField()
    assigned_time = models.TimeField()
    session_duration = models.PositiveIntegerField(help_text=_('Minutes'))
    status = models.CharField(
        max_length=20,
        choices=AssetAssignmentStatus.choices,
        default=AssetAssignmentStatus.ACTIVE
    )
    notes = models.TextField(blank=True, default='')
    assigned_by = models.ForeignKey(
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
        db_table = 'asset_assignment'
        ordering = ['-assigned_date', '-assigned_time']
        verbose_name = _('Asset Assignment')
        verbose_name_plural = _('Asset Assignments')
        indexes = [
            models.Index(fields=['asset', 'assigned_date', 'status'], name='idx_assign_asset_date'),
            models.Index(fields=['appointment'], name='idx_assign_appointment'),
        ]

    # BUSINESS RULE: Active is the only non-terminal state
    _ALLOWED_TRANSITIONS = {
        AssetAssignmentStatus.ACTIVE: [AssetAssignmentStatus.COMPLETED, AssetAssignmentStatus.CANCELLED],
        AssetAssignmentStatus.COMPLETED: [],
        AssetAssignmentStatus.CANCELLED: [],
    }

    def __str__(self):
        return f"{self.asset.asset_code} @ {self.assigned_date} {self.assigned_time} ({self.status})"

    @property
    def window_start(self):
        return datetime.combine(self.assigned_date, self.assigned_time)

    @property
    def window_end(self):
        return self.window_start + timedelta(minutes=self.session_duration)

    def transition_status(self, new_status):
        """
        Raises:
            StateError: If the assignment is no longer Active or the target is unknown
        """
        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            raise StateError(
                f'Assignment cannot move from {self.status} to {new_status}'
            )
        old_status = self.status
        self.status = new_status
        return old_status


class MaintenanceType(models.TextChoices):
    PREVENTIVE = 'preventive', _('Preventive')
    CORRECTIVE = 'corrective', _('Corrective')
    CALIBRATION = 'calibration', _('Calibration')


class AssetMaintenance(models.Model):
    """
    One completed maintenance visit. Recording it stamps the asset's
    last/next maintenance dates.
    """
    asset = models.ForeignKey(
        Asset,
        on_delete=models.PROTECT,
        related_name='maintenance_records'
    )
    maintenance_date = models.DateField()
    maintenance_type = models.CharField(max_length=20, choices=MaintenanceType.choices)
    description = models.TextField(blank=True, default='')
    technician_name = models.CharField(max_length=255, blank=True, default='')
    cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    next_maintenance_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, default='completed', editable=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'asset_maintenance'
        ordering = ['-maintenance_date', '-id']
        verbose_name = _('Asset Maintenance')
        verbose_name_plural = _('Asset Maintenance')
        indexes = [
            models.Index(fields=['asset', 'maintenance_date'], name='idx_maint_asset_date'),
        ]

    def __str__(self):
        return f"{self.asset.asset_code} {self.maintenance_type} on {self.maintenance_date}"
