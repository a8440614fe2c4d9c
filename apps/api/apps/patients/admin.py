from django.contrib import admin

from .models import Patient, TreatmentCycle


class TreatmentCycleInline(admin.TabularInline):
    model = TreatmentCycle
    extra = 0
    can_delete = False
    readonly_fields = [
        'cycle_number', 'cycle_start_date', 'cycle_end_date', 'planned_sessions',
        'completed_sessions', 'cycle_status', 'last_appointment_date', 'completed_date'
    ]
    fields = readonly_fields


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['patient_code', 'patient_name', 'center', 'current_cycle_number', 'current_cycle_session_count', 'is_active', 'created_at']
    list_filter = ['is_active', 'center', 'gender']
    search_fields = ['patient_code', 'patient_name', 'mobile_no']
    readonly_fields = [
        'current_cycle_number', 'current_cycle_start_date', 'current_cycle_end_date',
        'current_cycle_session_count', 'total_completed_cycles', 'dialysis_cycles',
        'created_at', 'updated_at'
    ]
    inlines = [TreatmentCycleInline]
    fieldsets = [
        ('Personal Information', {
            'fields': ['patient_code', 'patient_name', 'date_of_birth', 'gender']
        }),
        ('Contact', {
            'fields': ['mobile_no', 'address']
        }),
        ('Center', {
            'fields': ['company', 'center']
        }),
        ('Treatment Cycle', {
            'fields': [
                'current_cycle_number', 'current_cycle_start_date', 'current_cycle_end_date',
                'current_cycle_session_count', 'total_completed_cycles', 'dialysis_cycles'
            ]
        }),
        ('Metadata', {
            'fields': ['is_active', 'created_at', 'updated_at']
        }),
    ]


@admin.register(TreatmentCycle)
class TreatmentCycleAdmin(admin.ModelAdmin):
    list_display = ['patient', 'cycle_number', 'cycle_start_date', 'cycle_end_date', 'completed_sessions', 'cycle_status']
    list_filter = ['cycle_status']
    search_fields = ['patient__patient_code', 'patient__patient_name']
    readonly_fields = ['created_at', 'updated_at']
