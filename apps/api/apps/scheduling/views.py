"""
Scheduling views - appointment booking API.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.assets.services import get_active_machine_count
from apps.authz.permissions import CanBookAppointments, IsAdmin, IsClinicalStaff
from apps.core.exceptions import get_or_not_found
from apps.core.models import Center
from .models import Appointment
from .serializers import (
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AvailabilityQuerySerializer,
    BookedSlotsQuerySerializer,
    RescheduleSerializer,
    SlotSerializer,
    StatusUpdateSerializer,
)
from . import services


class AppointmentViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for appointments.

    Endpoints:
    - POST /appointments/                      book (capacity checked)
    - POST /appointments/{id}/reschedule/
    - POST /appointments/{id}/cancel/
    - POST /appointments/{id}/status/          clinical staff only
    - DELETE /appointments/{id}/permanent-delete/  Admin only
    - GET  /appointments/availability/?center=&date=&start_time=&end_time=
    - GET  /appointments/booked-slots/?center=&date=

    Query parameters for list:
    - ?center_id=, ?patient_id=, ?date=, ?status=
    """
    queryset = Appointment.objects.select_related('patient').prefetch_related('slots').all()
    serializer_class = AppointmentSerializer
    permission_classes = [CanBookAppointments]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('center_id'):
            queryset = queryset.filter(center_id=params['center_id'])
        if params.get('patient_id'):
            queryset = queryset.filter(patient_id=params['patient_id'])
        if params.get('date'):
            queryset = queryset.filter(appointment_date=params['date'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        center = data['center']
        appointment = services.create_appointment(
            patient=data['patient'],
            center=center,
            company=data.get('company') or center.company,
            appointment_date=data['appointment_date'],
            start_time=data['start_time'],
            end_time=data['end_time'],
            actor=request.user,
            notes=data.get('notes', ''),
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def reschedule(self, request, pk=None):
        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        appointment = services.reschedule_appointment(
            pk,
            data['appointment_date'],
            data['start_time'],
            data['end_time'],
            reason=data.get('reason', ''),
            actor=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        appointment = services.cancel_appointment(pk, actor=request.user)
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'], url_path='status', permission_classes=[IsClinicalStaff])
    def set_status(self, request, pk=None):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment = services.update_status(pk, serializer.validated_data['status'], actor=request.user)
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['delete'], url_path='permanent-delete', permission_classes=[IsAdmin])
    def permanent_delete(self, request, pk=None):
        services.delete_appointment_permanently(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def availability(self, request):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        center = get_or_not_found(Center.objects, 'Center', pk=params['center'])

        return Response({
            'center': center.id,
            'date': params['date'],
            'start_time': params['start_time'],
            'end_time': params['end_time'],
            'machine_count': get_active_machine_count(center),
            'booked': services.get_booked_slots_count(
                center, params['date'], params['start_time'], params['end_time']
            ),
            'available': services.is_slot_available(
                center, params['date'], params['start_time'], params['end_time']
            ),
        })

    @action(detail=False, methods=['get'], url_path='booked-slots')
    def booked_slots(self, request):
        query = BookedSlotsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        center = get_or_not_found(Center.objects, 'Center', pk=query.validated_data['center'])
        slots = services.get_booked_slots(center, query.validated_data['date'])
        return Response(SlotSerializer(slots, many=True).data)
