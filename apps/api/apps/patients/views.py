"""
Patient views.
"""
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.permissions import IsAdmin, IsClinicalStaff
from .models import Patient
from .serializers import (
    CurrentCycleSerializer,
    PatientListSerializer,
    PatientSerializer,
    TreatmentCycleSerializer,
)
from . import services


class PatientViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Patient CRUD operations.

    Extra endpoints:
    - GET  /patients/{id}/current-cycle/
    - GET  /patients/{id}/cycle-history/
    - POST /patients/process-expired-cycles/ (Admin; runs the daily sweep now)

    Delete is soft (sets is_active=False).
    """
    queryset = Patient.objects.select_related('center', 'company').all()
    permission_classes = [IsClinicalStaff]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['patient_code', 'patient_name', 'mobile_no']
    ordering_fields = ['created_at', 'patient_name', 'current_cycle_end_date']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = super().get_queryset()
        center_id = self.request.query_params.get('center_id')
        if center_id:
            queryset = queryset.filter(center_id=center_id)
        if self.request.query_params.get('include_inactive', 'false').lower() != 'true':
            queryset = queryset.filter(is_active=True)
        return queryset

    def get_serializer_class(self):
        """Use lightweight serializer for list view."""
        if self.action == 'list':
            return PatientListSerializer
        return PatientSerializer

    def perform_destroy(self, instance):
        """Soft delete - set is_active to False instead of deleting."""
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])

    @action(detail=True, methods=['get'], url_path='current-cycle')
    def current_cycle(self, request, pk=None):
        patient = self.get_object()
        info = services.get_current_cycle_info(patient)
        return Response(CurrentCycleSerializer(info).data)

    @action(detail=True, methods=['get'], url_path='cycle-history')
    def cycle_history(self, request, pk=None):
        patient = self.get_object()
        cycles = services.get_cycle_history(patient)
        return Response(TreatmentCycleSerializer(cycles, many=True).data)

    @action(
        detail=False,
        methods=['post'],
        url_path='process-expired-cycles',
        permission_classes=[IsAdmin]
    )
    def process_expired_cycles(self, request):
        processed = services.process_expired_cycles()
        return Response({'processed': processed}, status=status.HTTP_200_OK)
