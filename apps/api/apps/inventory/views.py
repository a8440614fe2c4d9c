"""
Inventory views - stock receipt, individual units, discards, session usage.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import get_or_not_found
from apps.core.models import Center
from apps.scheduling.models import Appointment
from .models import DiscardRequest, IndividualItem, InventoryItem, InventoryStock, InventoryUsage, SessionInventory
from .permissions import IsInventoryAdmin, IsInventoryStaff
from .serializers import (
    AddStockSerializer,
    AvailableForSessionQuerySerializer,
    CreateDiscardRequestSerializer,
    DiscardRequestSerializer,
    IndividualItemSerializer,
    InventoryItemSerializer,
    InventoryStockSerializer,
    InventoryUsageSerializer,
    ProcessDiscardRequestSerializer,
    RecordUsageSerializer,
    SessionInventorySerializer,
    UsageQuerySerializer,
)
from . import services


class InventoryItemViewSet(viewsets.ModelViewSet):
    """Item master. Clinical staff read; admins write."""

    queryset = InventoryItem.objects.all()
    serializer_class = InventoryItemSerializer
    search_fields = ['item_code', 'item_name']

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [IsInventoryStaff()]
        return [IsInventoryAdmin()]

    def perform_destroy(self, instance):
        """Soft delete."""
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])


class InventoryStockViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Stock batches.

    POST /stock/ receives a batch; individually tracked items get one
    numbered unit per piece.
    """
    queryset = InventoryStock.objects.select_related('item').all()
    serializer_class = InventoryStockSerializer
    permission_classes = [IsInventoryStaff]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('item_id'):
            queryset = queryset.filter(item_id=params['item_id'])
        if params.get('center_id'):
            queryset = queryset.filter(center_id=params['center_id'])
        if params.get('in_stock', 'false').lower() == 'true':
            queryset = queryset.filter(is_active=True, available_quantity__gt=0)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = AddStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        stock = services.add_stock(
            data['item'],
            data['center'],
            data['company'],
            data['quantity'],
            batch_number=data.get('batch_number', ''),
            manufacture_date=data.get('manufacture_date'),
            expiry_date=data.get('expiry_date'),
            purchase_date=data.get('purchase_date'),
            purchase_cost=data.get('purchase_cost'),
            actor=request.user,
        )
        return Response(InventoryStockSerializer(stock).data, status=status.HTTP_201_CREATED)


class IndividualItemViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Individually tracked units.

    - GET /individual-items/available-for-session/?item=&center=
    """
    queryset = IndividualItem.objects.select_related('item', 'stock').all()
    serializer_class = IndividualItemSerializer
    permission_classes = [IsInventoryStaff]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('item_id'):
            queryset = queryset.filter(item_id=params['item_id'])
        if params.get('center_id'):
            queryset = queryset.filter(center_id=params['center_id'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    @action(detail=False, methods=['get'], url_path='available-for-session')
    def available_for_session(self, request):
        query = AvailableForSessionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        item = get_or_not_found(InventoryItem.objects, 'Item', pk=query.validated_data['item'])
        center = get_or_not_found(Center.objects, 'Center', pk=query.validated_data['center'])

        units = services.get_available_items_for_session(item, center)
        return Response(IndividualItemSerializer(units, many=True).data)


class DiscardRequestViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Discard workflow.

    - POST /discard-requests/               open a request (unit leaves service)
    - POST /discard-requests/{id}/process/  {"approve": bool, "review_comments": ""}
    """
    queryset = DiscardRequest.objects.select_related('individual_item').all()
    serializer_class = DiscardRequestSerializer
    permission_classes = [IsInventoryStaff]

    def get_queryset(self):
        queryset = super().get_queryset()
        request_status = self.request.query_params.get('status')
        if request_status:
            queryset = queryset.filter(status=request_status)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = CreateDiscardRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        discard_request = services.create_discard_request(
            data['individual_item'], data['discard_type'], data['reason'], actor=request.user
        )
        return Response(DiscardRequestSerializer(discard_request).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=[IsInventoryAdmin])
    def process(self, request, pk=None):
        serializer = ProcessDiscardRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        discard_request = services.process_discard_request(
            self.get_object(),
            serializer.validated_data['approve'],
            comments=serializer.validated_data.get('review_comments', ''),
            reviewer=request.user,
        )
        return Response(DiscardRequestSerializer(discard_request).data)


class SessionInventoryViewSet(mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Items consumed by sessions. Items are added through
    /dialysis/sessions/{id}/inventory/; DELETE here removes one before start.
    """
    queryset = SessionInventory.objects.select_related('item', 'individual_item').all()
    serializer_class = SessionInventorySerializer
    permission_classes = [IsInventoryStaff]

    def get_queryset(self):
        queryset = super().get_queryset()
        session_id = self.request.query_params.get('session_id')
        if session_id:
            queryset = queryset.filter(session_id=session_id)
        return queryset

    def perform_destroy(self, instance):
        services.remove_inventory_from_session(instance, actor=self.request.user)


class InventoryUsageViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Appointment-level usage ledger. Rows are never edited or removed.

    - GET  /usage/?center_id=&item_id=&appointment_id=&patient_id=&start_date=&end_date=
    - GET  /usage/appointment/{appointment_id}/
    - POST /usage/  records usage and consumes the unit or bulk stock
    """
    queryset = InventoryUsage.objects.all()
    serializer_class = InventoryUsageSerializer
    permission_classes = [IsInventoryStaff]

    def get_queryset(self):
        query = UsageQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        queryset = services.get_usage(
            start_date=params.get('start_date'),
            end_date=params.get('end_date'),
        )
        for field in ('center_id', 'item_id', 'appointment_id', 'patient_id'):
            if field in params:
                queryset = queryset.filter(**{field: params[field]})
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = RecordUsageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        usage = services.record_usage(
            data['appointment'],
            data['item'],
            data['stock'],
            data.get('quantity_used', 1),
            actor=request.user,
            individual_item=data.get('individual_item'),
            condition=data.get('item_condition') or None,
            notes=data.get('notes', ''),
        )
        return Response(InventoryUsageSerializer(usage).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path=r'appointment/(?P<appointment_id>\d+)')
    def by_appointment(self, request, appointment_id=None):
        appointment = get_or_not_found(Appointment.objects, 'Appointment', pk=appointment_id)
        rows = services.get_usage_by_appointment(appointment)
        return Response(InventoryUsageSerializer(rows, many=True).data)
