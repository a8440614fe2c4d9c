from django.contrib import admin

from .models import DialysisSession, SessionComplication, SessionNote, SessionNoteType, SessionTimeline


class SessionTimelineInline(admin.TabularInline):
    model = SessionTimeline
    extra = 0
    can_delete = False
    fields = ['event_time', 'event_type', 'event_description', 'performed_by']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class SessionNoteInline(admin.TabularInline):
    model = SessionNote
    extra = 0
    fields = ['note_type', 'note_value', 'note_time', 'is_abnormal', 'recorded_by']
    readonly_fields = fields


@admin.register(DialysisSession)
class DialysisSessionAdmin(admin.ModelAdmin):
    list_display = ['session_code', 'patient', 'center', 'asset', 'session_date', 'status']
    list_filter = ['status', 'dialysis_type', 'center', 'session_date']
    search_fields = ['session_code', 'patient__patient_name', 'patient__patient_code']
    readonly_fields = ['session_code', 'status', 'actual_start_time', 'actual_end_time',
                       'session_duration', 'created_at', 'updated_at']
    inlines = [SessionNoteInline, SessionTimelineInline]


@admin.register(SessionTimeline)
class SessionTimelineAdmin(admin.ModelAdmin):
    list_display = ['session', 'event_type', 'event_time', 'performed_by']
    list_filter = ['event_type']
    search_fields = ['session__session_code', 'event_description']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        # Append-only
        return False


@admin.register(SessionComplication)
class SessionComplicationAdmin(admin.ModelAdmin):
    list_display = ['session', 'complication_type', 'severity', 'occurred_at', 'resolved_at']
    list_filter = ['severity']
    search_fields = ['session__session_code', 'complication_type']


@admin.register(SessionNoteType)
class SessionNoteTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'unit', 'category', 'is_mandatory', 'is_numeric', 'display_order', 'is_active']
    list_filter = ['category', 'is_mandatory', 'is_active']
    search_fields = ['name', 'code']
