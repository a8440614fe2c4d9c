from django.contrib import admin

from .models import Appointment, Slot


class SlotInline(admin.TabularInline):
    model = Slot
    extra = 0
    can_delete = False
    readonly_fields = ['slot_date', 'start_time', 'end_time', 'is_active', 'created_at']


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'patient', 'center', 'appointment_date', 'status', 'reschedule_revision', 'created_at']
    list_filter = ['status', 'center', 'is_rescheduled']
    search_fields = ['patient__patient_code', 'patient__patient_name']
    date_hierarchy = 'appointment_date'
    # Status is owned by the scheduling services
    readonly_fields = ['status', 'reschedule_revision', 'is_rescheduled', 'created_by', 'updated_by', 'created_at', 'updated_at']
    inlines = [SlotInline]


@admin.register(Slot)
class SlotAdmin(admin.ModelAdmin):
    list_display = ['appointment', 'center', 'slot_date', 'start_time', 'end_time', 'is_active']
    list_filter = ['is_active', 'center']
    date_hierarchy = 'slot_date'
