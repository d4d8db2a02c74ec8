from django.contrib import admin
from .models import Attention, ClinicalAuditLog, ConsultationRecord, Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['national_id', 'last_name', 'first_name', 'insurer', 'phone', 'created_at']
    list_filter = ['insurer']
    search_fields = ['national_id', 'first_name', 'last_name', 'email', 'phone']
    readonly_fields = ['id', 'created_at', 'updated_at']

    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'national_id', 'first_name', 'last_name', 'birth_date')
        }),
        ('Contact', {
            'fields': ('email', 'phone', 'address')
        }),
        ('Insurance', {
            'fields': ('insurer', 'insurer_member_number')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at')
        }),
    )


@admin.register(Attention)
class AttentionAdmin(admin.ModelAdmin):
    list_display = ['id', 'patient', 'doctor', 'status', 'is_priority', 'entered_at', 'started_at']
    list_filter = ['status', 'is_priority', 'doctor']
    search_fields = ['patient__national_id', 'patient__first_name', 'patient__last_name']
    # Status only moves through the queue services
    readonly_fields = ['id', 'status', 'entered_at', 'started_at', 'created_at']
    autocomplete_fields = ['patient']
    date_hierarchy = 'entered_at'


@admin.register(ConsultationRecord)
class ConsultationRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'patient', 'doctor', 'attention', 'created_at', 'updated_at']
    list_filter = ['doctor']
    search_fields = ['patient__national_id', 'patient__last_name']
    readonly_fields = ['id', 'attention', 'patient', 'doctor', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'


@admin.register(ClinicalAuditLog)
class ClinicalAuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'entity_type', 'entity_id', 'actor_user', 'patient_id_snapshot']
    list_filter = ['action', 'entity_type']
    search_fields = ['entity_id']
    readonly_fields = [
        'id', 'created_at', 'actor_user', 'action', 'entity_type',
        'entity_id', 'patient_id_snapshot', 'metadata',
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
