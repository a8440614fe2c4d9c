"""
Asset serializers.
"""
from rest_framework import serializers

from apps.scheduling.models import Appointment
from .models import Asset, AssetAssignment, AssetAssignmentStatus, AssetMaintenance, AssetType, MaintenanceType


class AssetTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssetType
        fields = [
            'id', 'type_code', 'type_name', 'is_dialysis_machine', 'requires_maintenance',
            'maintenance_interval_days', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class AssetSerializer(serializers.ModelSerializer):
    """
    asset_code is generated when omitted on create.
    """
    asset_code = serializers.CharField(max_length=40, required=False)
    asset_type_name = serializers.CharField(source='asset_type.type_name', read_only=True)
    center_name = serializers.CharField(source='center.center_name', read_only=True)
    days_until_maintenance = serializers.IntegerField(read_only=True)
    maintenance_due = serializers.BooleanField(read_only=True)

    class Meta:
        model = Asset
        fields = [
            'id', 'company', 'center', 'center_name', 'asset_type', 'asset_type_name',
            'asset_code', 'asset_name', 'serial_number', 'purchase_date', 'last_maintenance_date',
            'next_maintenance_date', 'days_until_maintenance', 'maintenance_due', 'notes',
            'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'last_maintenance_date', 'created_at', 'updated_at']

    def validate(self, attrs):
        center = attrs.get('center', getattr(self.instance, 'center', None))
        company = attrs.get('company', getattr(self.instance, 'company', None))
        if center and company and center.company_id != company.id:
            raise serializers.ValidationError({'center': 'Center does not belong to the selected company'})
        return attrs


class AssetAssignmentSerializer(serializers.ModelSerializer):
    asset_code = serializers.CharField(source='asset.asset_code', read_only=True)
    window_end = serializers.DateTimeField(read_only=True)

    class Meta:
        model = AssetAssignment
        fields = [
            'id', 'asset', 'asset_code', 'appointment', 'assigned_date', 'assigned_time',
            'session_duration', 'window_end', 'status', 'notes', 'assigned_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class AssetAssignmentCreateSerializer(serializers.Serializer):
    asset = serializers.PrimaryKeyRelatedField(queryset=Asset.objects.all())
    appointment = serializers.PrimaryKeyRelatedField(queryset=Appointment.objects.all())
    assigned_date = serializers.DateField()
    assigned_time = serializers.TimeField()
    session_duration = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AssignmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        AssetAssignmentStatus.COMPLETED,
        AssetAssignmentStatus.CANCELLED,
    ])


class AvailabilityQuerySerializer(serializers.Serializer):
    center = serializers.IntegerField()
    asset_type = serializers.IntegerField(required=False)
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()

    def validate(self, attrs):
        # end_time before start_time is an overnight window
        if attrs['start_time'] == attrs['end_time']:
            raise serializers.ValidationError({'end_time': 'end_time must differ from start_time'})
        return attrs


class AssetMaintenanceSerializer(serializers.ModelSerializer):
    asset_code = serializers.CharField(source='asset.asset_code', read_only=True)

    class Meta:
        model = AssetMaintenance
        fields = [
            'id', 'asset', 'asset_code', 'maintenance_date', 'maintenance_type', 'description',
            'technician_name', 'cost', 'next_maintenance_date', 'status', 'created_by', 'created_at'
        ]
        read_only_fields = fields


class RecordMaintenanceSerializer(serializers.Serializer):
    """next_maintenance_date defaults from the asset type's interval when omitted."""
    maintenance_date = serializers.DateField()
    maintenance_type = serializers.ChoiceField(choices=MaintenanceType.choices)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    technician_name = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0)
    next_maintenance_date = serializers.DateField(required=False, allow_null=True)


class MaintenanceDueQuerySerializer(serializers.Serializer):
    center = serializers.IntegerField(required=False)
    within_days = serializers.IntegerField(required=False, min_value=0, default=Asset.MAINTENANCE_DUE_DAYS)
