"""
Clinical serializers for patients, the attention queue and consultation records.
"""
from rest_framework import serializers

from apps.clinical.models import Attention, ConsultationRecord, Patient


class PatientSerializer(serializers.ModelSerializer):
    """Serializer for Patient CRUD"""

    class Meta:
        model = Patient
        fields = [
            'id',
            'national_id',
            'first_name',
            'last_name',
            'birth_date',
            'phone',
            'email',
            'address',
            'insurer',
            'insurer_member_number',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class PatientSummarySerializer(serializers.ModelSerializer):
    """Nested serializer for queue rows"""

    class Meta:
        model = Patient
        fields = ['id', 'national_id', 'first_name', 'last_name', 'insurer']
        read_only_fields = fields


class PatientInputSerializer(serializers.Serializer):
    """
    Patient block of a check-in.

    Not a ModelSerializer: an existing national_id is a lookup, not a
    uniqueness error.
    """
    national_id = serializers.CharField(max_length=20)
    first_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    birth_date = serializers.DateField(required=False, allow_null=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    insurer = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    insurer_member_number = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True
    )


class AttentionSerializer(serializers.ModelSerializer):
    """Queue row: attention with patient and doctor summary"""
    patient = PatientSummarySerializer(read_only=True)
    doctor_id = serializers.IntegerField(read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True)
    specialty = serializers.CharField(source='doctor.specialty', read_only=True)
    has_record = serializers.SerializerMethodField()
    record_id = serializers.SerializerMethodField()

    class Meta:
        model = Attention
        fields = [
            'id',
            'patient',
            'doctor_id',
            'doctor_name',
            'specialty',
            'status',
            'is_priority',
            'entered_at',
            'started_at',
            'notes',
            'has_record',
            'record_id',
        ]
        read_only_fields = fields

    def get_has_record(self, obj):
        # Only annotated by list_in_consultation
        return getattr(obj, 'has_record', None)

    def get_record_id(self, obj):
        return getattr(obj, 'record_id', None)


class EnqueueAttentionSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    doctor_id = serializers.IntegerField()
    is_priority = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ReconsultationSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField()
    doctor_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CheckInPaymentSerializer(serializers.Serializer):
    # Sign and the zero-amount rule are enforced by the payment service
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    receipt_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CheckInSerializer(serializers.Serializer):
    """Front-desk check-in: patient upsert + optional payment + enqueue"""
    patient = PatientInputSerializer()
    doctor_id = serializers.IntegerField()
    payment = CheckInPaymentSerializer(required=False, allow_null=True)
    is_priority = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    update_patient = serializers.BooleanField(required=False, default=True)


class ConsultationRecordSerializer(serializers.ModelSerializer):
    """Read serializer for consultation records"""
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True)
    specialty = serializers.CharField(source='doctor.specialty', read_only=True)

    class Meta:
        model = ConsultationRecord
        fields = [
            'id',
            'attention_id',
            'patient_id',
            'doctor_id',
            'doctor_name',
            'specialty',
            'content',
            'reason',
            'symptoms',
            'diagnosis',
            'treatment',
            'observations',
            'blood_pressure',
            'temperature',
            'weight',
            'height',
            'next_visit_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ConsultationRecordWriteSerializer(serializers.Serializer):
    """
    Editable record fields.

    Used with partial=True for PATCH so validated_data holds only the
    fields the client sent.
    """
    content = serializers.CharField(allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    symptoms = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    diagnosis = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    treatment = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    observations = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    blood_pressure = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    temperature = serializers.DecimalField(max_digits=4, decimal_places=1, required=False, allow_null=True)
    weight = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    height = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    next_visit_at = serializers.DateField(required=False, allow_null=True)


class ConsultationRecordCreateSerializer(ConsultationRecordWriteSerializer):
    attention_id = serializers.IntegerField()


class ConsultationRecordSearchSerializer(serializers.Serializer):
    """Query parameters of the record list; dates are clinic-local days."""
    patient = serializers.IntegerField(required=False)
    national_id = serializers.CharField(max_length=20, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    doctor = serializers.IntegerField(required=False)
    specialty = serializers.CharField(max_length=100, required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        if 'date_from' in attrs and 'date_to' in attrs and attrs['date_from'] > attrs['date_to']:
            raise serializers.ValidationError('date_from must not be after date_to')
        return attrs
