"""
Patient serializers.
"""
from rest_framework import serializers

from .models import Patient, TreatmentCycle

CYCLE_FIELDS = [
    'current_cycle_number',
    'current_cycle_start_date',
    'current_cycle_end_date',
    'current_cycle_session_count',
    'total_completed_cycles',
    'dialysis_cycles',
]


class PatientSerializer(serializers.ModelSerializer):
    """
    Patient serializer with all fields.

    Cycle fields are maintained by the cycle tracker and are read-only here.
    """
    age = serializers.ReadOnlyField()

    class Meta:
        model = Patient
        fields = [
            'id',
            'company',
            'center',
            'patient_code',
            'patient_name',
            'date_of_birth',
            'age',
            'gender',
            'mobile_no',
            'address',
            *CYCLE_FIELDS,
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at', 'age', *CYCLE_FIELDS]

    def validate(self, attrs):
        center = attrs.get('center', getattr(self.instance, 'center', None))
        company = attrs.get('company', getattr(self.instance, 'company', None))
        if center and company and center.company_id != company.id:
            raise serializers.ValidationError({'center': 'Center does not belong to the selected company'})
        return attrs


class PatientListSerializer(serializers.ModelSerializer):
    """
    Lightweight serializer for patient lists.
    """
    center_name = serializers.CharField(source='center.center_name', read_only=True)

    class Meta:
        model = Patient
        fields = [
            'id',
            'patient_code',
            'patient_name',
            'center',
            'center_name',
            'current_cycle_number',
            'current_cycle_session_count',
            'current_cycle_end_date',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields


class TreatmentCycleSerializer(serializers.ModelSerializer):
    class Meta:
        model = TreatmentCycle
        fields = [
            'id',
            'patient',
            'cycle_number',
            'cycle_start_date',
            'cycle_end_date',
            'planned_sessions',
            'completed_sessions',
            'cycle_status',
            'first_appointment_date',
            'last_appointment_date',
            'completed_date',
        ]
        read_only_fields = fields


class CurrentCycleSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    cycle_number = serializers.IntegerField()
    has_active_cycle = serializers.BooleanField()
    cycle_start_date = serializers.DateField(allow_null=True)
    cycle_end_date = serializers.DateField(allow_null=True)
    session_count = serializers.IntegerField()
    planned_sessions = serializers.IntegerField()
    sessions_remaining = serializers.IntegerField()
    days_remaining = serializers.IntegerField(allow_null=True)
    is_expired = serializers.BooleanField()
    total_completed_cycles = serializers.IntegerField()
    dialysis_cycles = serializers.IntegerField()
