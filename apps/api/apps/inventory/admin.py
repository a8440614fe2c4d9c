"""Inventory admin."""
from django.contrib import admin
from .models import DiscardRequest, IndividualItem, InventoryItem, InventoryStock, InventoryUsage, SessionInventory


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = [
        'item_code', 'item_name', 'unit_of_measure', 'is_individual_qty_tracking',
        'maximum_usage_count', 'reorder_level', 'is_active'
    ]
    list_filter = ['is_individual_qty_tracking', 'is_active']
    search_fields = ['item_code', 'item_name']
    ordering = ['item_name']


@admin.register(InventoryStock)
class InventoryStockAdmin(admin.ModelAdmin):
    list_display = [
        'item', 'center', 'batch_number', 'expiry_date', 'is_expired',
        'quantity', 'available_quantity', 'is_active'
    ]
    list_filter = ['center', 'is_active', 'expiry_date']
    search_fields = ['batch_number', 'item__item_code', 'item__item_name']
    readonly_fields = ['available_quantity', 'created_by', 'created_at', 'updated_at']
    date_hierarchy = 'expiry_date'

    def is_expired(self, obj):
        return obj.is_expired
    is_expired.boolean = True


@admin.register(IndividualItem)
class IndividualItemAdmin(admin.ModelAdmin):
    list_display = [
        'individual_item_code', 'item', 'center', 'current_usage_count',
        'max_usage_count', 'status', 'is_available'
    ]
    list_filter = ['status', 'is_available', 'center']
    search_fields = ['individual_item_code', 'item__item_code']
    # Usage and status only change through the consumption and discard services
    readonly_fields = [
        'current_usage_count', 'status', 'is_available', 'first_used_date',
        'last_used_date', 'discarded_date', 'discard_reason'
    ]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DiscardRequest)
class DiscardRequestAdmin(admin.ModelAdmin):
    list_display = [
        'individual_item', 'discard_type', 'current_usage_count',
        'status', 'requested_by', 'requested_date', 'reviewed_by'
    ]
    list_filter = ['status', 'discard_type']
    search_fields = ['individual_item__individual_item_code', 'reason']
    readonly_fields = [
        'current_usage_count', 'minimum_usage_count', 'previous_status',
        'requested_by', 'requested_date', 'reviewed_by', 'reviewed_date'
    ]
    ordering = ['-requested_date']


@admin.register(SessionInventory)
class SessionInventoryAdmin(admin.ModelAdmin):
    list_display = ['session', 'item', 'individual_item', 'quantity_used', 'usage_number', 'selected_at']
    search_fields = ['session__session_code', 'item__item_code']
    readonly_fields = ['selected_by', 'selected_at']

    def has_add_permission(self, request):
        return False


@admin.register(InventoryUsage)
class InventoryUsageAdmin(admin.ModelAdmin):
    list_display = [
        'appointment', 'item', 'individual_item', 'center',
        'quantity_used', 'usage_number', 'usage_date'
    ]
    list_filter = ['center', 'item']
    search_fields = ['item__item_code', 'individual_item__individual_item_code']
    raw_id_fields = ['appointment', 'patient', 'stock', 'individual_item']
    date_hierarchy = 'usage_date'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
