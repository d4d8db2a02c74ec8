from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'patient', 'amount', 'method', 'paid_at', 'consultation_record', 'receipt_number']
    list_filter = ['method']
    search_fields = ['patient__national_id', 'patient__last_name', 'receipt_number']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['patient', 'consultation_record']
    date_hierarchy = 'paid_at'
