"""
Scheduling serializers.
"""
from rest_framework import serializers

from apps.core.models import Center, Company
from apps.patients.models import Patient
from .models import Appointment, AppointmentStatus, Slot


class SlotSerializer(serializers.ModelSerializer):
    class Meta:
        model = Slot
        fields = ['id', 'appointment', 'center', 'slot_date', 'start_time', 'end_time', 'is_active', 'created_at']
        read_only_fields = fields


class AppointmentSerializer(serializers.ModelSerializer):
    """Read serializer; writes go through the scheduling services."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    patient_code = serializers.CharField(source='patient.patient_code', read_only=True)
    active_slot = SlotSerializer(read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id', 'company', 'center', 'patient', 'patient_code', 'appointment_date',
            'status', 'status_display', 'active_slot', 'reschedule_revision',
            'is_rescheduled', 'reschedule_reason', 'notes',
            'created_by', 'updated_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class TimeWindowMixin:
    def validate(self, attrs):
        if attrs['start_time'] >= attrs['end_time']:
            raise serializers.ValidationError({'end_time': 'end_time must be after start_time'})
        return attrs


class AppointmentCreateSerializer(TimeWindowMixin, serializers.Serializer):
    patient = serializers.PrimaryKeyRelatedField(queryset=Patient.objects.filter(is_active=True))
    center = serializers.PrimaryKeyRelatedField(queryset=Center.objects.filter(is_active=True))
    company = serializers.PrimaryKeyRelatedField(queryset=Company.objects.all(), required=False)
    appointment_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RescheduleSerializer(TimeWindowMixin, serializers.Serializer):
    appointment_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.choices)


class AvailabilityQuerySerializer(TimeWindowMixin, serializers.Serializer):
    center = serializers.IntegerField()
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()


class BookedSlotsQuerySerializer(serializers.Serializer):
    center = serializers.IntegerField()
    date = serializers.DateField()
