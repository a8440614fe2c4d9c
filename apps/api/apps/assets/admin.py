from django.contrib import admin

from .models import Asset, AssetAssignment, AssetMaintenance, AssetType


@admin.register(AssetType)
class AssetTypeAdmin(admin.ModelAdmin):
    list_display = ['type_code', 'type_name', 'is_dialysis_machine', 'requires_maintenance', 'is_active']
    list_filter = ['is_dialysis_machine', 'requires_maintenance', 'is_active']
    search_fields = ['type_code', 'type_name']


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    list_display = ['asset_code', 'asset_name', 'asset_type', 'center', 'next_maintenance_date', 'is_active']
    list_filter = ['is_active', 'asset_type', 'center']
    search_fields = ['asset_code', 'asset_name', 'serial_number']
    readonly_fields = ['last_maintenance_date', 'created_at', 'updated_at']


@admin.register(AssetAssignment)
class AssetAssignmentAdmin(admin.ModelAdmin):
    list_display = ['asset', 'appointment', 'assigned_date', 'assigned_time', 'session_duration', 'status']
    list_filter = ['status', 'assigned_date']
    search_fields = ['asset__asset_code']
    readonly_fields = ['created_at', 'updated_at']

    def has_delete_permission(self, request, obj=None):
        # Assignments are cancelled, not deleted
        return False


@admin.register(AssetMaintenance)
class AssetMaintenanceAdmin(admin.ModelAdmin):
    list_display = ['asset', 'maintenance_date', 'maintenance_type', 'technician_name', 'next_maintenance_date']
    list_filter = ['maintenance_type', 'maintenance_date']
    search_fields = ['asset__asset_code', 'technician_name']
    readonly_fields = ['status', 'created_by', 'created_at']

    def has_add_permission(self, request):
        # Recorded through the API so the asset schedule is stamped
        return False
