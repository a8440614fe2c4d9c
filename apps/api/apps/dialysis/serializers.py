"""
Dialysis session serializers.
"""
from rest_framework import serializers

from apps.assets.models import Asset, AssetAssignment
from apps.scheduling.models import Appointment
from .models import (
    ComplicationSeverity,
    DialysisSession,
    DialysisType,
    SessionComplication,
    SessionNote,
    SessionNoteType,
    SessionTimeline,
)


class DialysisSessionSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    patient_name = serializers.CharField(source='patient.patient_name', read_only=True)
    asset_code = serializers.CharField(source='asset.asset_code', read_only=True, default=None)

    class Meta:
        model = DialysisSession
        fields = [
            'id', 'session_code', 'appointment', 'patient', 'patient_name', 'center',
            'asset', 'asset_code', 'asset_assignment', 'status', 'status_display',
            'session_date', 'scheduled_start_time', 'actual_start_time', 'actual_end_time',
            'session_duration', 'dialysis_type', 'pre_session_notes', 'post_session_notes',
            'termination_reason', 'started_by', 'completed_by', 'created_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class SessionCreateSerializer(serializers.Serializer):
    appointment = serializers.PrimaryKeyRelatedField(queryset=Appointment.objects.select_related('patient', 'center'))
    session_date = serializers.DateField(required=False)
    scheduled_start_time = serializers.TimeField(required=False, allow_null=True)
    dialysis_type = serializers.ChoiceField(choices=DialysisType.choices, required=False)
    pre_session_notes = serializers.CharField(required=False, allow_blank=True, default='')


class AssignMachineSerializer(serializers.Serializer):
    asset = serializers.PrimaryKeyRelatedField(queryset=Asset.objects.filter(is_active=True))
    asset_assignment = serializers.PrimaryKeyRelatedField(
        queryset=AssetAssignment.objects.all(), required=False, allow_null=True
    )
    duration_minutes = serializers.IntegerField(min_value=1, required=False)


class CompleteSessionSerializer(serializers.Serializer):
    post_session_notes = serializers.CharField(required=False, allow_blank=True, default='')


class TerminateSessionSerializer(serializers.Serializer):
    reason = serializers.CharField()


class SessionTimelineSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionTimeline
        fields = ['id', 'session', 'event_type', 'event_description', 'event_time', 'performed_by']
        read_only_fields = fields


class SessionComplicationSerializer(serializers.ModelSerializer):
    is_resolved = serializers.BooleanField(read_only=True)

    class Meta:
        model = SessionComplication
        fields = [
            'id', 'session', 'complication_type', 'severity', 'occurred_at', 'description',
            'action_taken', 'resolved_at', 'is_resolved', 'reported_by', 'created_at'
        ]
        read_only_fields = fields


class ReportComplicationSerializer(serializers.Serializer):
    complication_type = serializers.CharField(max_length=100)
    severity = serializers.ChoiceField(choices=ComplicationSeverity.choices, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    action_taken = serializers.CharField(required=False, allow_blank=True, default='')


class ResolveComplicationSerializer(serializers.Serializer):
    resolution_notes = serializers.CharField(required=False, allow_blank=True, default='')


class SessionNoteTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionNoteType
        fields = [
            'id', 'name', 'code', 'unit', 'is_mandatory', 'is_numeric', 'min_value', 'max_value',
            'display_order', 'category', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        min_value = attrs.get('min_value', getattr(self.instance, 'min_value', None))
        max_value = attrs.get('max_value', getattr(self.instance, 'max_value', None))
        if min_value is not None and max_value is not None and min_value > max_value:
            raise serializers.ValidationError({'min_value': 'min_value cannot exceed max_value'})
        return attrs


class SessionNoteSerializer(serializers.ModelSerializer):
    note_type_name = serializers.CharField(source='note_type.name', read_only=True)
    unit = serializers.CharField(source='note_type.unit', read_only=True)

    class Meta:
        model = SessionNote
        fields = [
            'id', 'session', 'note_type', 'note_type_name', 'unit', 'note_value', 'note_time',
            'is_abnormal', 'alert_generated', 'notes', 'recorded_by', 'created_at'
        ]
        read_only_fields = fields


class AddNoteSerializer(serializers.Serializer):
    note_type = serializers.PrimaryKeyRelatedField(queryset=SessionNoteType.objects.filter(is_active=True))
    note_value = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
