"""
Inventory serializers.
"""
from rest_framework import serializers

from apps.core.models import Center, Company
from .models import (
    DiscardRequest,
    DiscardType,
    IndividualItem,
    InventoryItem,
    InventoryStock,
    InventoryUsage,
    ItemCondition,
    SessionInventory,
)
from apps.scheduling.models import Appointment


class InventoryItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryItem
        fields = [
            'id', 'item_code', 'item_name', 'unit_of_measure', 'reorder_level',
            'is_individual_qty_tracking', 'maximum_usage_count', 'minimum_usage_count',
            'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        maximum = attrs.get('maximum_usage_count', getattr(self.instance, 'maximum_usage_count', 1))
        minimum = attrs.get('minimum_usage_count', getattr(self.instance, 'minimum_usage_count', 0))
        if maximum < 1:
            raise serializers.ValidationError({'maximum_usage_count': 'Must be at least 1'})
        if minimum > maximum:
            raise serializers.ValidationError({'minimum_usage_count': 'Cannot exceed maximum_usage_count'})
        return attrs


class InventoryStockSerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.item_code', read_only=True)
    item_name = serializers.CharField(source='item.item_name', read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryStock
        fields = [
            'id', 'item', 'item_code', 'item_name', 'center', 'company', 'batch_number',
            'manufacture_date', 'expiry_date', 'purchase_date', 'purchase_cost',
            'quantity', 'available_quantity', 'is_expired', 'is_active',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class AddStockSerializer(serializers.Serializer):
    item = serializers.PrimaryKeyRelatedField(queryset=InventoryItem.objects.filter(is_active=True))
    center = serializers.PrimaryKeyRelatedField(queryset=Center.objects.filter(is_active=True))
    company = serializers.PrimaryKeyRelatedField(queryset=Company.objects.all())
    quantity = serializers.IntegerField(min_value=1)
    batch_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    manufacture_date = serializers.DateField(required=False, allow_null=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    purchase_date = serializers.DateField(required=False, allow_null=True)
    purchase_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    def validate(self, attrs):
        manufactured = attrs.get('manufacture_date')
        expires = attrs.get('expiry_date')
        if manufactured and expires and expires < manufactured:
            raise serializers.ValidationError({'expiry_date': 'Expiry date is before manufacture date'})
        return attrs


class IndividualItemSerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.item_code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    expiry_date = serializers.DateField(source='stock.expiry_date', read_only=True)

    class Meta:
        model = IndividualItem
        fields = [
            'id', 'individual_item_code', 'item', 'item_code', 'stock', 'center',
            'current_usage_count', 'max_usage_count', 'status', 'status_display',
            'is_available', 'expiry_date', 'first_used_date', 'last_used_date',
            'discarded_date', 'discard_reason', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class DiscardRequestSerializer(serializers.ModelSerializer):
    individual_item_code = serializers.CharField(
        source='individual_item.individual_item_code', read_only=True
    )

    class Meta:
        model = DiscardRequest
        fields = [
            'id', 'individual_item', 'individual_item_code', 'discard_type', 'reason',
            'current_usage_count', 'minimum_usage_count', 'previous_status', 'status',
            'requested_by', 'requested_date', 'reviewed_by', 'reviewed_date', 'review_comments'
        ]
        read_only_fields = fields


class CreateDiscardRequestSerializer(serializers.Serializer):
    individual_item = serializers.PrimaryKeyRelatedField(queryset=IndividualItem.objects.all())
    discard_type = serializers.ChoiceField(choices=DiscardType.choices)
    reason = serializers.CharField()


class ProcessDiscardRequestSerializer(serializers.Serializer):
    approve = serializers.BooleanField()
    review_comments = serializers.CharField(required=False, allow_blank=True, default='')


class SessionInventorySerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.item_code', read_only=True)
    item_name = serializers.CharField(source='item.item_name', read_only=True)
    individual_item_code = serializers.CharField(
        source='individual_item.individual_item_code', read_only=True, default=None
    )

    class Meta:
        model = SessionInventory
        fields = [
            'id', 'session', 'item', 'item_code', 'item_name', 'individual_item',
            'individual_item_code', 'stock', 'quantity_used', 'item_condition',
            'usage_number', 'notes', 'selected_by', 'selected_at'
        ]
        read_only_fields = fields


class AddSessionInventorySerializer(serializers.Serializer):
    item = serializers.PrimaryKeyRelatedField(queryset=InventoryItem.objects.filter(is_active=True))
    stock = serializers.PrimaryKeyRelatedField(queryset=InventoryStock.objects.filter(is_active=True))
    individual_item = serializers.PrimaryKeyRelatedField(
        queryset=IndividualItem.objects.all(), required=False, allow_null=True
    )
    quantity_used = serializers.IntegerField(min_value=1, required=False, default=1)
    item_condition = serializers.ChoiceField(choices=ItemCondition.choices, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AvailableForSessionQuerySerializer(serializers.Serializer):
    item = serializers.IntegerField()
    center = serializers.IntegerField()


class InventoryUsageSerializer(serializers.ModelSerializer):
    item_code = serializers.CharField(source='item.item_code', read_only=True)
    item_name = serializers.CharField(source='item.item_name', read_only=True)
    individual_item_code = serializers.CharField(
        source='individual_item.individual_item_code', read_only=True, default=None
    )

    class Meta:
        model = InventoryUsage
        fields = [
            'id', 'appointment', 'patient', 'center', 'item', 'item_code', 'item_name',
            'individual_item', 'individual_item_code', 'stock', 'usage_date',
            'quantity_used', 'usage_number', 'item_condition', 'notes', 'used_by'
        ]
        read_only_fields = fields


class RecordUsageSerializer(AddSessionInventorySerializer):
    appointment = serializers.PrimaryKeyRelatedField(queryset=Appointment.objects.all())


class UsageQuerySerializer(serializers.Serializer):
    center_id = serializers.IntegerField(required=False)
    item_id = serializers.IntegerField(required=False)
    appointment_id = serializers.IntegerField(required=False)
    patient_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
