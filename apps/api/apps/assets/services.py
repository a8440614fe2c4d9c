"""
Asset assignment allocator.

BUSINESS RULES:
1. A center's booking capacity is its count of active dialysis machines
2. An asset is available for a window when none of its Active assignments
   on that date overlaps it (same three-way test as slot capacity)
3. Assignment is check-and-reserve under a lock on the Asset row
4. Only Active assignments change status; Cancelled frees the window at once
5. Recording maintenance stamps the asset's last/next maintenance dates;
   next defaults to the date plus the type's interval when the type requires it
"""
import re
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import ConflictError, ValidationError, get_or_not_found
from apps.core.observability import metrics, log_domain_event

from .models import Asset, AssetAssignment, AssetAssignmentStatus, AssetMaintenance, MaintenanceType


def get_active_machine_count(center) -> int:
    """Number of active dialysis machines at the center."""
    return Asset.objects.filter(
        center=center,
        is_active=True,
        asset_type__is_dialysis_machine=True,
    ).count()


def _windows_overlap(start, end, stored_start, stored_end) -> bool:
    return (
        (start <= stored_start < end) or
        (start < stored_end <= end) or
        (stored_start <= start and stored_end >= end)
    )


def _has_overlap(asset, start, end, exclude_assignment=None) -> bool:
    # Windows may run past midnight, so the previous day's assignments are checked too
    candidates = AssetAssignment.objects.filter(
        asset=asset,
        status=AssetAssignmentStatus.ACTIVE,
        assigned_date__gte=start.date() - timedelta(days=1),
        assigned_date__lte=end.date(),
    )
    if exclude_assignment is not None:
        candidates = candidates.exclude(pk=exclude_assignment.pk)

    return any(
        _windows_overlap(start, end, assignment.window_start, assignment.window_end)
        for assignment in candidates
    )


def is_asset_available(asset, assigned_date, start_time, end_time, exclude_assignment=None) -> bool:
    """
    True iff no Active assignment of the asset overlaps [start_time, end_time) on the date.

    An end_time earlier than start_time is read as the next day (overnight window).
    """
    if end_time == start_time:
        raise ValidationError('end_time must differ from start_time')
    start = datetime.combine(assigned_date, start_time)
    end = datetime.combine(assigned_date, end_time)
    if end < start:
        end += timedelta(days=1)
    return not _has_overlap(asset, start, end, exclude_assignment)


def get_available_assets(center, asset_type, assigned_date, start_time, end_time):
    """
    Active assets of the center free for the window.

    asset_type=None means any dialysis machine.
    """
    assets = Asset.objects.filter(center=center, is_active=True).select_related('asset_type')
    if asset_type is None:
        assets = assets.filter(asset_type__is_dialysis_machine=True)
    else:
        assets = assets.filter(asset_type=asset_type)

    return [
        asset for asset in assets.order_by('asset_code')
        if is_asset_available(asset, assigned_date, start_time, end_time)
    ]


def generate_asset_code(asset_type, center) -> str:
    """
    Next free code in the form {TYPECODE}-{center_id:02d}-{NNNN}.
    """
    prefix = f'{asset_type.type_code.upper()}-{center.id:02d}-'
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')

    highest = 0
    for code in Asset.objects.filter(asset_code__startswith=prefix).values_list('asset_code', flat=True):
        match = pattern.match(code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f'{prefix}{highest + 1:04d}'


def create_assignment(asset, appointment, assigned_date, assigned_time, duration_minutes, notes='', actor=None):
    """
    Reserve the asset for [assigned_time, assigned_time + duration_minutes).

    Raises:
        ValidationError: Non-positive duration or inactive asset
        ConflictError: The window overlaps an Active assignment of the asset
    """
    if not duration_minutes or duration_minutes <= 0:
        raise ValidationError('duration_minutes must be positive')

    start = datetime.combine(assigned_date, assigned_time)
    end = start + timedelta(minutes=duration_minutes)

    with transaction.atomic():
        # Check-and-reserve: concurrent assignments of this asset wait here
        locked = Asset.objects.select_for_update().get(pk=asset.pk)
        if not locked.is_active:
            raise ValidationError(f'Asset {locked.asset_code} is not active')

        if _has_overlap(locked, start, end):
            metrics.asset_assignments_total.labels(result='overlap').inc()
            log_domain_event(
                'asset_assignment_rejected',
                entity_type='Asset',
                entity_id=str(locked.id),
                entity_ids={'appointment_id': str(appointment.id)},
                result='blocked',
                assigned_date=str(assigned_date),
                assigned_time=str(assigned_time),
                duration_minutes=duration_minutes,
            )
            raise ConflictError(f'Asset {locked.asset_code} is already assigned in this time window')

        assignment = AssetAssignment.objects.create(
            asset=locked,
            appointment=appointment,
            assigned_date=assigned_date,
            assigned_time=assigned_time,
            session_duration=duration_minutes,
            notes=notes or '',
            assigned_by=actor,
            updated_by=actor,
        )

    metrics.asset_assignments_total.labels(result='success').inc()
    log_domain_event(
        'asset_assigned',
        entity_type='AssetAssignment',
        entity_id=str(assignment.id),
        entity_ids={'asset_id': str(asset.id), 'appointment_id': str(appointment.id)},
    )
    return assignment


def update_assignment_status(assignment, new_status, actor=None):
    """
    Move an Active assignment to Completed or Cancelled.

    Raises:
        NotFoundError: Assignment was deleted
        StateError: Assignment is not Active, or the target is not allowed
    """
    with transaction.atomic():
        locked = get_or_not_found(
            AssetAssignment.objects.select_for_update(), 'Assignment', pk=assignment.pk
        )
        old_status = locked.transition_status(new_status)
        locked.updated_by = actor
        locked.save(update_fields=['status', 'updated_by', 'updated_at'])

    assignment.status = locked.status
    log_domain_event(
        'asset_assignment_transition',
        entity_type='AssetAssignment',
        entity_id=str(locked.id),
        entity_ids={'asset_id': str(locked.asset_id)},
        from_status=str(old_status),
        to_status=str(new_status),
    )
    return locked


def cancel_assignment(assignment, actor=None):
    return update_assignment_status(assignment, AssetAssignmentStatus.CANCELLED, actor)


def cancel_assignments_for_appointment(appointment, actor=None) -> int:
    """Cancel every Active assignment of an appointment that is being released."""
    active = AssetAssignment.objects.filter(
        appointment=appointment,
        status=AssetAssignmentStatus.ACTIVE,
    ).order_by('id')
    cancelled = 0
    for assignment in active:
        cancel_assignment(assignment, actor)
        cancelled += 1
    return cancelled


# =============================================================================
# Maintenance log
# =============================================================================

def default_next_maintenance_date(asset_type, from_date):
    """from_date + the type's interval, or None when the type is not maintained."""
    if not asset_type.requires_maintenance or not asset_type.maintenance_interval_days:
        return None
    return from_date + timedelta(days=asset_type.maintenance_interval_days)


def record_maintenance(asset, maintenance_date, maintenance_type, description='',
                       technician_name='', cost=None, next_maintenance_date=None, actor=None):
    """
    Log a completed maintenance visit and stamp the asset's schedule.

    Raises:
        ValidationError: Unknown type, negative cost, or next date not after the visit
    """
    if maintenance_type not in MaintenanceType.values:
        raise ValidationError(f'Unknown maintenance type: {maintenance_type}')
    if cost is not None and cost < 0:
        raise ValidationError('cost must not be negative')

    with transaction.atomic():
        locked = Asset.objects.select_for_update().select_related('asset_type').get(pk=asset.pk)
        if next_maintenance_date is None:
            next_maintenance_date = default_next_maintenance_date(locked.asset_type, maintenance_date)
        if next_maintenance_date is not None and next_maintenance_date <= maintenance_date:
            raise ValidationError('next_maintenance_date must be after maintenance_date')

        record = AssetMaintenance.objects.create(
            asset=locked,
            maintenance_date=maintenance_date,
            maintenance_type=maintenance_type,
            description=description or '',
            technician_name=technician_name or '',
            cost=cost,
            next_maintenance_date=next_maintenance_date,
            created_by=actor,
        )
        locked.last_maintenance_date = maintenance_date
        locked.next_maintenance_date = next_maintenance_date
        locked.save(update_fields=['last_maintenance_date', 'next_maintenance_date', 'updated_at'])

    asset.last_maintenance_date = maintenance_date
    asset.next_maintenance_date = next_maintenance_date
    log_domain_event(
        'asset_maintenance_recorded',
        entity_type='AssetMaintenance',
        entity_id=str(record.id),
        entity_ids={'asset_id': str(locked.id)},
        maintenance_type=maintenance_type,
        next_maintenance_date=str(next_maintenance_date) if next_maintenance_date else None,
    )
    return record


def get_assets_due_for_maintenance(center=None, within_days=Asset.MAINTENANCE_DUE_DAYS, today=None):
    """Active assets whose next maintenance falls within within_days (overdue included), soonest first."""
    today = today or timezone.localdate()
    queryset = Asset.objects.filter(
        is_active=True,
        next_maintenance_date__isnull=False,
        next_maintenance_date__lte=today + timedelta(days=within_days),
    ).select_related('asset_type', 'center')
    if center is not None:
        queryset = queryset.filter(center=center)
    return queryset.order_by('next_maintenance_date', 'asset_code')
