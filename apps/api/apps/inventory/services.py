"""
Inventory consumption services.

BUSINESS RULES:
1. Bulk stock is deducted with a guarded conditional update; a deduction
   that would take available_quantity below zero fails, it is never clamped
2. An individual unit's usage count only goes up; reaching the maximum
   makes it Exhausted and unavailable
3. Exhausted units leave service only through the discard workflow
4. Inventory is attached to or removed from a session only before it starts
5. One row per item per session
6. The appointment usage ledger consumes the same way but is append-only
"""
from datetime import date

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.core.exceptions import ConflictError, StateError, ValidationError, get_or_not_found
from apps.core.observability import metrics, trace_span, log_domain_event, get_sanitized_logger
from apps.core.observability.events import log_item_exhausted
from apps.dialysis.models import DialysisSession, DialysisSessionStatus, TimelineEventType
from apps.dialysis.services import log_timeline_event
from apps.scheduling.models import Appointment, AppointmentStatus

from .models import (
    DiscardRequest,
    DiscardRequestStatus,
    IndividualItem,
    IndividualItemStatus,
    InventoryItem,
    InventoryStock,
    InventoryUsage,
    SessionInventory,
)

logger = get_sanitized_logger(__name__)


# =============================================================================
# Stock
# =============================================================================

def _individual_item_code(item, sequence: int) -> str:
    return f'{item.item_code.upper()}-{sequence:03d}'


@transaction.atomic
def add_stock(item, center, company, quantity, batch_number='', manufacture_date=None,
              expiry_date=None, purchase_date=None, purchase_cost=None, actor=None) -> InventoryStock:
    """
    Receive a batch of an item at a center.

    For individually tracked items one IndividualItem per unit is created,
    numbered after the highest existing unit of the item.

    Raises:
        ValidationError: Non-positive quantity, inactive item or center/company mismatch
    """
    if not quantity or quantity <= 0:
        raise ValidationError('quantity must be positive')
    if not item.is_active:
        raise ValidationError(f'Item {item.item_code} is not active')
    if center.company_id != company.id:
        raise ValidationError('Center does not belong to company')

    stock = InventoryStock.objects.create(
        item=item,
        center=center,
        company=company,
        batch_number=batch_number or '',
        manufacture_date=manufacture_date,
        expiry_date=expiry_date,
        purchase_date=purchase_date,
        purchase_cost=purchase_cost,
        quantity=quantity,
        available_quantity=quantity,
        created_by=actor,
    )

    if item.is_individual_qty_tracking:
        # Unit numbering is serialized per item
        InventoryItem.objects.select_for_update().get(pk=item.pk)
        existing = IndividualItem.objects.filter(item=item).count()
        IndividualItem.objects.bulk_create([
            IndividualItem(
                stock=stock,
                item=item,
                center=center,
                individual_item_code=_individual_item_code(item, existing + offset),
                max_usage_count=item.maximum_usage_count,
            )
            for offset in range(1, quantity + 1)
        ])

    log_domain_event(
        'inventory_stock_added',
        entity_type='InventoryStock',
        entity_id=str(stock.id),
        entity_ids={'item_id': str(item.id), 'center_id': str(center.id)},
        quantity=quantity,
        individual=item.is_individual_qty_tracking,
    )
    return stock


def deduct_available_quantity(stock, quantity) -> InventoryStock:
    """
    Take quantity out of a bulk batch.

    Raises:
        ValidationError: Non-positive quantity
        ConflictError: Batch holds less than quantity
    """
    if not quantity or quantity <= 0:
        raise ValidationError('quantity must be positive')

    updated = InventoryStock.objects.filter(
        pk=stock.pk,
        available_quantity__gte=quantity,
    ).update(available_quantity=F('available_quantity') - quantity, updated_at=timezone.now())

    if updated == 0:
        metrics.stock_deduction_rejected_total.inc()
        stock.refresh_from_db(fields=['available_quantity'])
        raise ConflictError(
            f'Insufficient stock in batch {stock.batch_number or stock.pk}. '
            f'Available: {stock.available_quantity}, needed: {quantity}'
        )

    stock.refresh_from_db(fields=['available_quantity', 'updated_at'])
    return stock


def restore_available_quantity(stock, quantity) -> InventoryStock:
    """Put quantity back into a bulk batch (session inventory removed)."""
    InventoryStock.objects.filter(pk=stock.pk).update(
        available_quantity=F('available_quantity') + quantity,
        updated_at=timezone.now(),
    )
    stock.refresh_from_db(fields=['available_quantity', 'updated_at'])
    return stock


# =============================================================================
# Individual items
# =============================================================================

def _lock_individual_item(individual_item) -> IndividualItem:
    return get_or_not_found(
        IndividualItem.objects.select_for_update(), 'Individual item', pk=individual_item.pk
    )


@transaction.atomic
def increment_usage_count(individual_item) -> IndividualItem:
    """
    Record one more use of an individual unit.

    The unit becomes Exhausted (unavailable) once the count reaches its
    maximum, otherwise In Use.

    Raises:
        StateError: Unit already exhausted, or in the discard workflow
    """
    locked = _lock_individual_item(individual_item)
    if locked.status in (IndividualItemStatus.DISCARD_REQUESTED, IndividualItemStatus.DISCARDED):
        raise StateError(f'Item {locked.individual_item_code} is {locked.get_status_display()}')
    if locked.is_exhausted:
        raise StateError(
            f'Item {locked.individual_item_code} reached its maximum usage count ({locked.max_usage_count})'
        )

    now = timezone.now()
    locked.current_usage_count += 1
    if locked.first_used_date is None:
        locked.first_used_date = now
    locked.last_used_date = now

    if locked.is_exhausted:
        locked.transition_status(IndividualItemStatus.EXHAUSTED)
    else:
        locked.transition_status(IndividualItemStatus.IN_USE)
    locked.save()

    if locked.status == IndividualItemStatus.EXHAUSTED:
        metrics.individual_items_exhausted_total.inc()
        log_item_exhausted(locked)
    return locked


@transaction.atomic
def update_individual_item_status(individual_item, new_status) -> IndividualItem:
    """
    Raises:
        StateError: Transition not allowed
    """
    locked = _lock_individual_item(individual_item)
    old_status = locked.transition_status(new_status)
    locked.save(update_fields=['status', 'is_available', 'updated_at'])

    log_domain_event(
        'individual_item_transition',
        entity_type='IndividualItem',
        entity_id=str(locked.id),
        from_status=str(old_status),
        to_status=str(new_status),
    )
    return locked


def get_available_items_for_session(item, center, today=None):
    """
    Usable units of an item at a center.

    Only Available/In Use units of active, unexpired batches. Partially
    used units come first (highest usage count first), then earliest expiry.
    """
    today = today or timezone.localdate()
    units = IndividualItem.objects.filter(
        item=item,
        center=center,
        is_available=True,
        status__in=[IndividualItemStatus.AVAILABLE, IndividualItemStatus.IN_USE],
        stock__is_active=True,
    ).exclude(
        stock__expiry_date__lt=today
    ).select_related('stock')

    return sorted(
        units,
        key=lambda unit: (
            unit.current_usage_count == 0,
            -unit.current_usage_count,
            unit.stock.expiry_date or date.max,
            unit.id,
        )
    )


# =============================================================================
# Discard workflow
# =============================================================================

@transaction.atomic
def create_discard_request(individual_item, discard_type, reason, actor=None) -> DiscardRequest:
    """
    Open a discard request and take the unit out of service.

    Raises:
        ValidationError: Missing reason
        StateError: Unit is already in the discard workflow or discarded
    """
    if not reason or not reason.strip():
        raise ValidationError('reason is required')

    locked = _lock_individual_item(individual_item)
    if locked.status not in (
        IndividualItemStatus.AVAILABLE,
        IndividualItemStatus.IN_USE,
        IndividualItemStatus.EXHAUSTED,
    ):
        raise StateError(
            f'Item {locked.individual_item_code} is {locked.get_status_display()} and cannot be discarded'
        )

    request = DiscardRequest.objects.create(
        individual_item=locked,
        discard_type=discard_type,
        reason=reason.strip(),
        current_usage_count=locked.current_usage_count,
        minimum_usage_count=locked.item.minimum_usage_count,
        previous_status=locked.status,
        requested_by=actor,
    )
    locked.transition_status(IndividualItemStatus.DISCARD_REQUESTED)
    locked.save(update_fields=['status', 'is_available', 'updated_at'])

    metrics.discard_requests_total.labels(result='requested').inc()
    log_domain_event(
        'discard_requested',
        entity_type='DiscardRequest',
        entity_id=str(request.id),
        entity_ids={'individual_item_id': str(locked.id)},
        discard_type=str(discard_type),
        usage_count=locked.current_usage_count,
    )
    return request


def process_discard_request(request, approve, comments='', reviewer=None) -> DiscardRequest:
    """
    Approve or reject a Pending discard request.

    Approve: unit becomes Discarded.
    Reject: unit returns to Available, or to Exhausted if its count is
    already at the maximum.

    Raises:
        StateError: Request already reviewed
    """
    with trace_span('process_discard_request', attributes={
        'request_id': request.pk,
        'approve': bool(approve),
    }):
        with transaction.atomic():
            locked = get_or_not_found(
                DiscardRequest.objects.select_for_update(), 'Discard request', pk=request.pk
            )
            if locked.status != DiscardRequestStatus.PENDING:
                raise StateError(f'Discard request is already {locked.get_status_display()}')

            unit = _lock_individual_item(locked.individual_item)
            now = timezone.now()
            if approve:
                unit.transition_status(IndividualItemStatus.DISCARDED)
                unit.discarded_date = now
                unit.discard_reason = locked.reason
                locked.status = DiscardRequestStatus.APPROVED
            else:
                if unit.is_exhausted:
                    unit.transition_status(IndividualItemStatus.EXHAUSTED)
                else:
                    unit.transition_status(IndividualItemStatus.AVAILABLE)
                locked.status = DiscardRequestStatus.REJECTED
            unit.save()

            locked.reviewed_by = reviewer
            locked.reviewed_date = now
            locked.review_comments = comments or ''
            locked.save(update_fields=['status', 'reviewed_by', 'reviewed_date', 'review_comments'])

    result = 'approved' if approve else 'rejected'
    metrics.discard_requests_total.labels(result=result).inc()
    log_domain_event(
        f'discard_{result}',
        entity_type='DiscardRequest',
        entity_id=str(locked.id),
        entity_ids={'individual_item_id': str(unit.id)},
        item_status=str(unit.status),
    )
    return locked


# =============================================================================
# Session inventory
# =============================================================================

def _lock_not_started_session(session) -> DialysisSession:
    locked = get_or_not_found(DialysisSession.objects.select_for_update(), 'Session', pk=session.pk)
    if locked.status != DialysisSessionStatus.NOT_STARTED:
        raise StateError(
            f'Inventory can only be changed before the session starts (status: {locked.get_status_display()})'
        )
    return locked


def add_inventory_to_session(session, item, stock, quantity, actor=None, individual_item=None,
                             condition=None, notes=None) -> SessionInventory:
    """
    Attach an item to a session and consume it.

    Individually tracked items consume one use of the given unit; other
    items are deducted from the bulk batch.

    Raises:
        StateError: Session already started, or the unit cannot be used again
        ConflictError: Item already attached to the session, or insufficient stock
        ValidationError: Stock/unit does not match the item
    """
    if stock.item_id != item.id:
        raise ValidationError('Stock batch does not belong to the item')
    if item.is_individual_qty_tracking:
        if individual_item is None:
            raise ValidationError(f'Item {item.item_code} requires an individual unit')
        if individual_item.item_id != item.id or individual_item.stock_id != stock.id:
            raise ValidationError('Individual unit does not belong to the stock batch')
        quantity = 1
    elif not quantity or quantity <= 0:
        raise ValidationError('quantity must be positive')

    with transaction.atomic():
        locked = _lock_not_started_session(session)
        if stock.center_id != locked.center_id:
            raise ValidationError('Stock batch belongs to another center')
        if SessionInventory.objects.filter(session=locked, item=item).exists():
            raise ConflictError(f'Item {item.item_code} is already added to this session')

        usage_number = None
        if item.is_individual_qty_tracking:
            unit = increment_usage_count(individual_item)
            usage_number = unit.current_usage_count
            tracking = 'individual'
        else:
            deduct_available_quantity(stock, quantity)
            tracking = 'bulk'

        row = SessionInventory.objects.create(
            session=locked,
            item=item,
            individual_item=individual_item if item.is_individual_qty_tracking else None,
            stock=stock,
            quantity_used=quantity,
            item_condition=condition or '',
            usage_number=usage_number,
            notes=notes or '',
            selected_by=actor,
        )
        log_timeline_event(
            locked,
            TimelineEventType.INVENTORY_ADDED,
            f'Item added: {item.item_name} (Qty: {quantity})',
            actor=actor,
        )

    metrics.inventory_consumed_total.labels(tracking=tracking).inc()
    return row


def remove_inventory_from_session(session_inventory, actor=None):
    """
    Detach an item from a session that has not started.

    Bulk stock is restored. An individual unit keeps its usage count.

    Raises:
        StateError: Session already started
    """
    with transaction.atomic():
        row = get_or_not_found(
            SessionInventory.objects.select_for_update().select_related('item', 'stock'),
            'Session inventory',
            pk=session_inventory.pk
        )
        locked = _lock_not_started_session(row.session)

        if row.individual_item_id is None:
            restore_available_quantity(row.stock, row.quantity_used)

        item_name = row.item.item_name
        quantity = row.quantity_used
        row.delete()
        log_timeline_event(
            locked,
            TimelineEventType.INVENTORY_REMOVED,
            f'Item removed: {item_name} (Qty: {quantity})',
            actor=actor,
        )

    logger.info(
        'Session inventory removed',
        extra={'event': 'session_inventory_removed', 'session_id': str(locked.id)}
    )


# =============================================================================
# Appointment usage ledger
# =============================================================================

def record_usage(appointment, item, stock, quantity, actor=None, individual_item=None,
                 condition=None, notes=None) -> InventoryUsage:
    """
    Record consumption against an appointment and consume the stock.

    The ledger row and the unit increment / bulk deduction commit together.

    Raises:
        NotFoundError: Appointment was deleted
        StateError: Appointment is cancelled, or the unit cannot be used again
        ConflictError: Insufficient bulk stock
        ValidationError: Non-positive quantity, or stock/unit does not match the item
    """
    if not quantity or quantity <= 0:
        raise ValidationError('Quantity used must be greater than 0')
    if stock.item_id != item.id:
        raise ValidationError('Stock batch does not belong to the item')
    if item.is_individual_qty_tracking:
        if individual_item is None:
            raise ValidationError('Individual item must be selected for this inventory item')
        if individual_item.item_id != item.id or individual_item.stock_id != stock.id:
            raise ValidationError('Individual unit does not belong to the stock batch')
        quantity = 1

    with trace_span('record_inventory_usage', attributes={'appointment_id': appointment.pk, 'item_id': item.id}):
        with transaction.atomic():
            locked = get_or_not_found(
                Appointment.objects.select_for_update(), 'Appointment', pk=appointment.pk
            )
            if locked.status == AppointmentStatus.CANCELLED:
                raise StateError('Cannot record usage for a cancelled appointment')
            if stock.center_id != locked.center_id:
                raise ValidationError('Stock batch belongs to another center')

            if item.is_individual_qty_tracking:
                unit = increment_usage_count(individual_item)
                usage_number = unit.current_usage_count
                tracking = 'individual'
            else:
                deduct_available_quantity(stock, quantity)
                usage_number = 1
                tracking = 'bulk'

            usage = InventoryUsage.objects.create(
                item=item,
                individual_item=individual_item if item.is_individual_qty_tracking else None,
                stock=stock,
                center_id=locked.center_id,
                appointment=locked,
                patient_id=locked.patient_id,
                quantity_used=quantity,
                usage_number=usage_number,
                item_condition=condition or '',
                notes=notes or '',
                used_by=actor,
            )

    metrics.inventory_consumed_total.labels(tracking=tracking).inc()
    log_domain_event(
        'inventory_usage_recorded',
        entity_type='InventoryUsage',
        entity_id=str(usage.id),
        entity_ids={'appointment_id': str(locked.id), 'item_id': str(item.id)},
        tracking=tracking,
        quantity=quantity,
        usage_number=usage_number,
    )
    return usage


def get_usage_by_appointment(appointment):
    """Ledger rows of one appointment, by item name."""
    return InventoryUsage.objects.filter(
        appointment=appointment
    ).select_related('item', 'individual_item').order_by('item__item_name', 'id')


def get_usage(center=None, item=None, appointment=None, patient=None, start_date=None, end_date=None):
    """
    Ledger rows, newest first.

    start_date/end_date are inclusive calendar dates.
    """
    queryset = InventoryUsage.objects.select_related('item', 'individual_item', 'patient')
    if center is not None:
        queryset = queryset.filter(center=center)
    if item is not None:
        queryset = queryset.filter(item=item)
    if appointment is not None:
        queryset = queryset.filter(appointment=appointment)
    if patient is not None:
        queryset = queryset.filter(patient=patient)
    if start_date is not None:
        queryset = queryset.filter(usage_date__date__gte=start_date)
    if end_date is not None:
        queryset = queryset.filter(usage_date__date__lte=end_date)
    return queryset.order_by('-usage_date', '-id')
