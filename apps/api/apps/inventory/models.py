"""
Inventory models.

- InventoryItem: master list of consumables (dialyzers, bloodlines, needles...)
- InventoryStock: one received batch of an item at a center
- IndividualItem: a reusable unit (e.g. a dialyzer) tracked by usage count
- DiscardRequest: review workflow for taking an individual unit out of service
- SessionInventory: what a dialysis session consumed
- InventoryUsage: appointment-level consumption ledger (who used what, for which patient)
"""
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import StateError


class InventoryItem(models.Model):
    """
    Consumable master.

    Items with is_individual_qty_tracking are received as numbered units
    that can be reused up to maximum_usage_count times.
    """
    item_code = models.CharField(_('Item Code'), max_length=30, unique=True)
    item_name = models.CharField(_('Item Name'), max_length=255)
    unit_of_measure = models.CharField(_('Unit of Measure'), max_length=20, default='pcs')
    reorder_level = models.PositiveIntegerField(_('Reorder Level'), default=0)
    is_individual_qty_tracking = models.BooleanField(_('Individually Tracked'), default=False)
    maximum_usage_count = models.PositiveIntegerField(_('Maximum Usage Count'), default=1)
    minimum_usage_count = models.PositiveIntegerField(_('Minimum Usage Count'), default=0)
    is_active = models.BooleanField(_('Active'), default=True)

    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'inventory_item'
        ordering = ['item_name']
        verbose_name = _('Inventory Item')
        verbose_name_plural = _('Inventory Items')

    def __str__(self):
        return f"{self.item_name} ({self.item_code})"


class InventoryStock(models.Model):
    """
    Received batch of an item at a center.

    INVARIANT: 0 <= available_quantity (check constraint + guarded deduction)
    """
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name='stocks',
        verbose_name=_('Item')
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='inventory_stocks'
    )
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.PROTECT,
        related_name='inventory_stocks'
    )
    batch_number = models.CharField(_('Batch Number'), max_length=100, blank=True, default='')
    manufacture_date = models.DateField(_('Manufacture Date'), null=True, blank=True)
    expiry_date = models.DateField(_('Expiry Date'), null=True, blank=True)
    purchase_date = models.DateField(_('Purchase Date'), null=True, blank=True)
    purchase_cost = models.DecimalField(_('Purchase Cost'), max_digits=12, decimal_places=2, null=True, blank=True)
    quantity = models.PositiveIntegerField(_('Quantity Received'))
    available_quantity = models.IntegerField(_('Available Quantity'))
    is_active = models.BooleanField(_('Active'), default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'inventory_stock'
        ordering = ['expiry_date', 'id']
        verbose_name = _('Inventory Stock')
        verbose_name_plural = _('Inventory Stock')
        constraints = [
            models.CheckConstraint(
                check=Q(available_quantity__gte=0),
                name='chk_stock_available_non_negative'
            ),
        ]
        indexes = [
            models.Index(fields=['item', 'center'], name='idx_stock_item_center'),
            models.Index(fields=['expiry_date'], name='idx_stock_expiry'),
        ]

    def __str__(self):
        return f"{self.item.item_code} batch {self.batch_number or '-'} ({self.available_quantity})"

    @property
    def is_expired(self):
        if not self.expiry_date:
            return False
        return self.expiry_date < timezone.localdate()


class IndividualItemStatus(models.TextChoices):
    AVAILABLE = 'available', _('Available')
    IN_USE = 'in_use', _('In Use')
    EXHAUSTED = 'exhausted', _('Exhausted')
    DISCARD_REQUESTED = 'discard_requested', _('Discard Requested')
    DISCARDED = 'discarded', _('Discarded')


UNAVAILABLE_ITEM_STATUSES = (
    IndividualItemStatus.EXHAUSTED,
    IndividualItemStatus.DISCARD_REQUESTED,
    IndividualItemStatus.DISCARDED,
)


class IndividualItem(models.Model):
    """
    One reusable unit of an individually tracked item.

    INVARIANTS:
    - current_usage_count never decreases
    - is_available is False iff status is Exhausted, DiscardRequested or Discarded
    - Discarded is terminal
    """
    stock = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='individual_items'
    )
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name='individual_items'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='individual_items'
    )
    individual_item_code = models.CharField(_('Item Code'), max_length=50, unique=True)
    max_usage_count = models.PositiveIntegerField(_('Maximum Usage Count'))
    current_usage_count = models.PositiveIntegerField(_('Current Usage Count'), default=0)
    status = models.CharField(
        _('Status'),
        max_length=20,
        choices=IndividualItemStatus.choices,
        default=IndividualItemStatus.AVAILABLE
    )
    is_available = models.BooleanField(_('Available'), default=True)
    first_used_date = models.DateTimeField(null=True, blank=True)
    last_used_date = models.DateTimeField(null=True, blank=True)
    discarded_date = models.DateTimeField(null=True, blank=True)
    discard_reason = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(_('Created At'), auto_now_add=True)
    updated_at = models.DateTimeField(_('Updated At'), auto_now=True)

    class Meta:
        db_table = 'individual_item'
        ordering = ['individual_item_code']
        verbose_name = _('Individual Item')
        verbose_name_plural = _('Individual Items')
        indexes = [
            models.Index(fields=['item', 'center', 'status'], name='idx_indiv_item_center_status'),
            models.Index(fields=['stock'], name='idx_indiv_stock'),
        ]

    # BUSINESS RULE: Allowed status transitions
    _ALLOWED_TRANSITIONS = {
        IndividualItemStatus.AVAILABLE: [
            IndividualItemStatus.IN_USE,
            IndividualItemStatus.EXHAUSTED,
            IndividualItemStatus.DISCARD_REQUESTED,
        ],
        IndividualItemStatus.IN_USE: [
            IndividualItemStatus.IN_USE,
            IndividualItemStatus.EXHAUSTED,
            IndividualItemStatus.DISCARD_REQUESTED,
        ],
        IndividualItemStatus.EXHAUSTED: [IndividualItemStatus.DISCARD_REQUESTED],
        IndividualItemStatus.DISCARD_REQUESTED: [
            IndividualItemStatus.DISCARDED,
            IndividualItemStatus.AVAILABLE,   # rejected request
            IndividualItemStatus.EXHAUSTED,   # rejected request, count already at max
        ],
        IndividualItemStatus.DISCARDED: [],  # Terminal state
    }

    def __str__(self):
        return f"{self.individual_item_code} ({self.current_usage_count}/{self.max_usage_count})"

    @property
    def is_exhausted(self):
        return self.current_usage_count >= self.max_usage_count

    def transition_status(self, new_status):
        """
        Move to new_status and keep is_available in step.

        Returns:
            The previous status

        Raises:
            StateError: If the transition is not allowed
        """
        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            raise StateError(
                f'Item {self.individual_item_code} is {IndividualItemStatus(self.status).label} '
                f'and cannot move to {IndividualItemStatus(new_status).label}'
            )
        old_status = self.status
        self.status = new_status
        self.is_available = new_status not in UNAVAILABLE_ITEM_STATUSES
        return old_status


class DiscardType(models.TextChoices):
    EARLY = 'early', _('Early Discard')
    DAMAGED = 'damaged', _('Damaged')
    EXHAUSTED = 'exhausted', _('Usage Exhausted')
    EXPIRED = 'expired', _('Expired')
    OTHER = 'other', _('Other')


class DiscardRequestStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    APPROVED = 'approved', _('Approved')
    REJECTED = 'rejected', _('Rejected')


class DiscardRequest(models.Model):
    """
    Request to take an individual unit out of service.

    Usage counts and the unit's prior status are snapshotted at request time.
    """
    individual_item = models.ForeignKey(
        IndividualItem,
        on_delete=models.PROTECT,
        related_name='discard_requests'
    )
    discard_type = models.CharField(_('Discard Type'), max_length=20, choices=DiscardType.choices)
    reason = models.TextField(_('Reason'))
    current_usage_count = models.PositiveIntegerField()
    minimum_usage_count = models.PositiveIntegerField()
    previous_status = models.CharField(max_length=20, choices=IndividualItemStatus.choices)
    status = models.CharField(
        _('Status'),
        max_length=20,
        choices=DiscardRequestStatus.choices,
        default=DiscardRequestStatus.PENDING
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    requested_date = models.DateTimeField(auto_now_add=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    reviewed_date = models.DateTimeField(null=True, blank=True)
    review_comments = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'discard_request'
        ordering = ['-requested_date']
        verbose_name = _('Discard Request')
        verbose_name_plural = _('Discard Requests')
        indexes = [
            models.Index(fields=['status'], name='idx_discard_status'),
        ]

    def __str__(self):
        return f"Discard {self.individual_item.individual_item_code} ({self.get_status_display()})"


class ItemCondition(models.TextChoices):
    NEW = 'new', _('New')
    GOOD = 'good', _('Good')
    FAIR = 'fair', _('Fair')


class SessionInventory(models.Model):
    """
    Item consumed by a dialysis session.

    INVARIANT: at most one row per (session, item)
    """
    session = models.ForeignKey(
        'dialysis.DialysisSession',
        on_delete=models.CASCADE,
        related_name='inventory_usage'
    )
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name='session_usage'
    )
    individual_item = models.ForeignKey(
        IndividualItem,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='session_usage'
    )
    stock = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='session_usage'
    )
    quantity_used = models.PositiveIntegerField(default=1)
    item_condition = models.CharField(max_length=10, choices=ItemCondition.choices, blank=True, default='')
    usage_number = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    selected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    selected_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'session_inventory'
        ordering = ['selected_at', 'id']
        verbose_name = _('Session Inventory')
        verbose_name_plural = _('Session Inventory')
        constraints = [
            models.UniqueConstraint(fields=['session', 'item'], name='uniq_session_item'),
        ]

    def __str__(self):
        return f"{self.session_id}: {self.item.item_code} x{self.quantity_used}"


class InventoryUsage(models.Model):
    """
    Consumption recorded against an appointment.

    Unlike SessionInventory this is a plain ledger: an item may be recorded
    several times for one appointment, and rows are never removed.
    usage_number is the use of the individual unit this row represents
    (always 1 for bulk items).
    """
    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.PROTECT,
        related_name='usage_records'
    )
    individual_item = models.ForeignKey(
        IndividualItem,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='usage_records'
    )
    stock = models.ForeignKey(
        InventoryStock,
        on_delete=models.PROTECT,
        related_name='usage_records'
    )
    center = models.ForeignKey(
        'core.Center',
        on_delete=models.PROTECT,
        related_name='inventory_usage'
    )
    appointment = models.ForeignKey(
        'scheduling.Appointment',
        on_delete=models.PROTECT,
        related_name='inventory_usage'
    )
    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='inventory_usage'
    )
    usage_date = models.DateTimeField(default=timezone.now)
    quantity_used = models.PositiveIntegerField(default=1)
    usage_number = models.PositiveIntegerField(default=1)
    item_condition = models.CharField(max_length=10, choices=ItemCondition.choices, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    used_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'inventory_usage'
        ordering = ['-usage_date', '-id']
        verbose_name = _('Inventory Usage')
        verbose_name_plural = _('Inventory Usage')
        indexes = [
            models.Index(fields=['appointment'], name='idx_usage_appointment'),
            models.Index(fields=['center', 'usage_date'], name='idx_usage_center_date'),
            models.Index(fields=['patient', 'usage_date'], name='idx_usage_patient_date'),
        ]

    def __str__(self):
        return f"Appointment {self.appointment_id}: {self.item.item_code} x{self.quantity_used}"
