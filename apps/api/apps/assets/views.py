"""
Asset views - machine master data and assignments.
"""
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.permissions import IsAdminOrReadOnly, IsClinicalStaff
from apps.core.exceptions import get_or_not_found
from apps.core.models import Center
from .models import Asset, AssetAssignment, AssetType
from .serializers import (
    AssetAssignmentCreateSerializer,
    AssetAssignmentSerializer,
    AssetMaintenanceSerializer,
    AssetSerializer,
    AssetTypeSerializer,
    AssignmentStatusSerializer,
    AvailabilityQuerySerializer,
    MaintenanceDueQuerySerializer,
    RecordMaintenanceSerializer,
)
from . import services


class AssetTypeViewSet(viewsets.ModelViewSet):
    queryset = AssetType.objects.all()
    serializer_class = AssetTypeSerializer
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['type_code', 'type_name']


class AssetViewSet(viewsets.ModelViewSet):
    """
    ViewSet for assets.

    Extra endpoints:
    - GET /assets/available/?center=&asset_type=&date=&start_time=&end_time=
    - GET /assets/maintenance-due/?center=&within_days=
    - GET/POST /assets/{id}/maintenance/
    """
    queryset = Asset.objects.select_related('asset_type', 'center').all()
    serializer_class = AssetSerializer
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['asset_code', 'asset_name', 'serial_number']

    def get_queryset(self):
        queryset = super().get_queryset()
        center_id = self.request.query_params.get('center_id')
        if center_id:
            queryset = queryset.filter(center_id=center_id)
        return queryset

    def perform_create(self, serializer):
        asset_code = serializer.validated_data.get('asset_code')
        if not asset_code:
            asset_code = services.generate_asset_code(
                serializer.validated_data['asset_type'],
                serializer.validated_data['center']
            )
        next_maintenance_date = serializer.validated_data.get('next_maintenance_date')
        if next_maintenance_date is None:
            next_maintenance_date = services.default_next_maintenance_date(
                serializer.validated_data['asset_type'],
                serializer.validated_data.get('purchase_date') or timezone.localdate()
            )
        serializer.save(asset_code=asset_code, next_maintenance_date=next_maintenance_date)

    def perform_destroy(self, instance):
        """Soft delete."""
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])

    @action(detail=False, methods=['get'], url_path='available')
    def available(self, request):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        center = get_or_not_found(Center.objects, 'Center', pk=params['center'])
        asset_type = None
        if params.get('asset_type'):
            asset_type = get_or_not_found(AssetType.objects, 'Asset type', pk=params['asset_type'])

        assets = services.get_available_assets(
            center, asset_type, params['date'], params['start_time'], params['end_time']
        )
        return Response(AssetSerializer(assets, many=True).data)

    @action(detail=False, methods=['get'], url_path='maintenance-due')
    def maintenance_due(self, request):
        query = MaintenanceDueQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        center = None
        if params.get('center') is not None:
            center = get_or_not_found(Center.objects, 'Center', pk=params['center'])
        assets = services.get_assets_due_for_maintenance(center, within_days=params['within_days'])
        return Response(AssetSerializer(assets, many=True).data)

    @action(detail=True, methods=['get', 'post'], url_path='maintenance')
    def maintenance(self, request, pk=None):
        asset = self.get_object()
        if request.method == 'GET':
            records = asset.maintenance_records.all()
            return Response(AssetMaintenanceSerializer(records, many=True).data)

        serializer = RecordMaintenanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = services.record_maintenance(asset, actor=request.user, **serializer.validated_data)
        return Response(AssetMaintenanceSerializer(record).data, status=status.HTTP_201_CREATED)


class AssetAssignmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Assignments are created through the allocator and only change status.

    - POST /assignments/
    - POST /assignments/{id}/cancel/
    - POST /assignments/{id}/status/  {"status": "completed"|"cancelled"}
    """
    queryset = AssetAssignment.objects.select_related('asset').all()
    serializer_class = AssetAssignmentSerializer
    permission_classes = [IsClinicalStaff]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('asset_id'):
            queryset = queryset.filter(asset_id=params['asset_id'])
        if params.get('date'):
            queryset = queryset.filter(assigned_date=params['date'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    def create(self, request):
        serializer = AssetAssignmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        assignment = services.create_assignment(
            asset=data['asset'],
            appointment=data['appointment'],
            assigned_date=data['assigned_date'],
            assigned_time=data['assigned_time'],
            duration_minutes=data['session_duration'],
            notes=data.get('notes', ''),
            actor=request.user,
        )
        return Response(AssetAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        assignment = services.cancel_assignment(self.get_object(), actor=request.user)
        return Response(AssetAssignmentSerializer(assignment).data)

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        serializer = AssignmentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignment = services.update_assignment_status(
            self.get_object(), serializer.validated_data['status'], actor=request.user
        )
        return Response(AssetAssignmentSerializer(assignment).data)
