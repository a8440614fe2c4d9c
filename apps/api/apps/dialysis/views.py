"""
Dialysis session views.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.permissions import IsAdminOrReadOnly, IsClinicalStaff
from apps.core.exceptions import ValidationError, get_or_not_found
from apps.core.models import Center
from apps.inventory import services as inventory_services
from apps.inventory.serializers import AddSessionInventorySerializer, SessionInventorySerializer
from .models import DialysisSession, SessionComplication, SessionNoteType
from .serializers import (
    AddNoteSerializer,
    AssignMachineSerializer,
    CompleteSessionSerializer,
    DialysisSessionSerializer,
    ReportComplicationSerializer,
    ResolveComplicationSerializer,
    SessionComplicationSerializer,
    SessionCreateSerializer,
    SessionNoteSerializer,
    SessionNoteTypeSerializer,
    SessionTimelineSerializer,
    TerminateSessionSerializer,
)
from . import services


class DialysisSessionViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for dialysis sessions.

    Lifecycle:
    - POST /sessions/                          create from an appointment
    - POST /sessions/{id}/assign-machine/
    - POST /sessions/{id}/start/
    - POST /sessions/{id}/complete/            rejected while mandatory notes are missing
    - POST /sessions/{id}/terminate/

    Details:
    - GET  /sessions/{id}/timeline/
    - GET|POST /sessions/{id}/complications/
    - GET|POST /sessions/{id}/notes/           ?latest=true for one reading per type
    - GET|POST /sessions/{id}/inventory/
    - GET  /sessions/active/?center=
    - GET  /sessions/machine-availability/?center=
    """
    queryset = DialysisSession.objects.select_related('patient', 'asset').all()
    serializer_class = DialysisSessionSerializer
    permission_classes = [IsClinicalStaff]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('center_id'):
            queryset = queryset.filter(center_id=params['center_id'])
        if params.get('patient_id'):
            queryset = queryset.filter(patient_id=params['patient_id'])
        if params.get('date'):
            queryset = queryset.filter(session_date=params['date'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = SessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        appointment = data['appointment']
        session = services.create_session(
            appointment=appointment,
            patient=appointment.patient,
            center=appointment.center,
            session_date=data.get('session_date') or appointment.appointment_date,
            scheduled_start_time=data.get('scheduled_start_time'),
            dialysis_type=data.get('dialysis_type'),
            pre_session_notes=data.get('pre_session_notes', ''),
            actor=request.user,
        )
        return Response(DialysisSessionSerializer(session).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='assign-machine')
    def assign_machine(self, request, pk=None):
        serializer = AssignMachineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        session = services.assign_machine(
            self.get_object(),
            data['asset'],
            actor=request.user,
            assignment=data.get('asset_assignment'),
            duration_minutes=data.get('duration_minutes'),
        )
        return Response(DialysisSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        session = services.start_session(self.get_object(), actor=request.user)
        return Response(DialysisSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        serializer = CompleteSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = self.get_object()

        # BUSINESS RULE: all active mandatory readings before completion
        missing = list(services.get_missing_mandatory_notes(session).values_list('name', flat=True))
        if missing:
            raise ValidationError(f'Missing mandatory notes: {", ".join(missing)}')

        session = services.complete_session(
            session,
            post_session_notes=serializer.validated_data.get('post_session_notes', ''),
            actor=request.user,
        )
        return Response(DialysisSessionSerializer(session).data)

    @action(detail=True, methods=['post'])
    def terminate(self, request, pk=None):
        serializer = TerminateSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = services.terminate_session(
            self.get_object(), serializer.validated_data['reason'], actor=request.user
        )
        return Response(DialysisSessionSerializer(session).data)

    @action(detail=True, methods=['get'])
    def timeline(self, request, pk=None):
        events = services.get_session_timeline(self.get_object())
        return Response(SessionTimelineSerializer(events, many=True).data)

    @action(detail=True, methods=['get', 'post'])
    def complications(self, request, pk=None):
        session = self.get_object()
        if request.method == 'GET':
            complications = session.complications.all()
            if request.query_params.get('unresolved', 'false').lower() == 'true':
                complications = services.get_unresolved_complications(session)
            return Response(SessionComplicationSerializer(complications, many=True).data)

        serializer = ReportComplicationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        complication = services.report_complication(
            session,
            data['complication_type'],
            severity=data.get('severity') or None,
            description=data.get('description', ''),
            action_taken=data.get('action_taken', ''),
            actor=request.user,
        )
        return Response(SessionComplicationSerializer(complication).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'])
    def notes(self, request, pk=None):
        session = self.get_object()
        if request.method == 'GET':
            if request.query_params.get('latest', 'false').lower() == 'true':
                notes = services.get_latest_notes(session)
            else:
                notes = session.notes.select_related('note_type').all()
            return Response(SessionNoteSerializer(notes, many=True).data)

        serializer = AddNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        note = services.add_note(
            session, data['note_type'], data['note_value'],
            actor=request.user, notes=data.get('notes', '')
        )
        return Response(SessionNoteSerializer(note).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'])
    def inventory(self, request, pk=None):
        session = self.get_object()
        if request.method == 'GET':
            rows = session.inventory_usage.select_related('item', 'individual_item').all()
            return Response(SessionInventorySerializer(rows, many=True).data)

        serializer = AddSessionInventorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        row = inventory_services.add_inventory_to_session(
            session,
            data['item'],
            data['stock'],
            data.get('quantity_used', 1),
            actor=request.user,
            individual_item=data.get('individual_item'),
            condition=data.get('item_condition') or None,
            notes=data.get('notes', ''),
        )
        return Response(SessionInventorySerializer(row).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def active(self, request):
        center = None
        if request.query_params.get('center'):
            center = get_or_not_found(Center.objects, 'Center', pk=request.query_params['center'])
        data = []
        for session, elapsed in services.get_active_sessions(center):
            row = DialysisSessionSerializer(session).data
            row['elapsed_minutes'] = elapsed
            data.append(row)
        return Response(data)

    @action(detail=False, methods=['get'], url_path='machine-availability')
    def machine_availability(self, request):
        center_id = request.query_params.get('center')
        if not center_id:
            raise ValidationError('center is required')
        center = get_or_not_found(Center.objects, 'Center', pk=center_id)
        return Response([
            {
                'asset_id': entry['asset'].id,
                'asset_code': entry['asset'].asset_code,
                'asset_name': entry['asset'].asset_name,
                'status': entry['status'],
                'session_id': entry['current_session'].id if entry['current_session'] else None,
                'session_code': entry['current_session'].session_code if entry['current_session'] else None,
            }
            for entry in services.get_machine_availability(center)
        ])


class SessionNoteTypeViewSet(viewsets.ModelViewSet):
    queryset = SessionNoteType.objects.all()
    serializer_class = SessionNoteTypeSerializer
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['name', 'code']

    def perform_destroy(self, instance):
        """Soft delete."""
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])


class SessionComplicationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = SessionComplication.objects.all()
    serializer_class = SessionComplicationSerializer
    permission_classes = [IsClinicalStaff]

    @action(detail=True, methods=['post'])
    def resolve(self, request, pk=None):
        serializer = ResolveComplicationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complication = services.resolve_complication(
            self.get_object(), serializer.validated_data.get('resolution_notes', '')
        )
        return Response(SessionComplicationSerializer(complication).data)
