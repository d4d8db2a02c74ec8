"""
Payment ledger serializers.
"""
from rest_framework import serializers

from apps.payments.models import Payment, PaymentMethodChoices


class PaymentSerializer(serializers.ModelSerializer):
    """Read serializer for a payment"""
    is_settled = serializers.BooleanField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'patient_id',
            'amount',
            'method',
            'receipt_number',
            'notes',
            'consultation_record_id',
            'is_settled',
            'paid_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    @classmethod
    def from_history(cls, history):
        """Render search_payments() rows: payment fields + attribution."""
        rows = []
        for item in history:
            row = cls(item['payment']).data
            row.update({
                'attribution': item['attribution'],
                'attention_id': item['attention_id'],
                'doctor_id': item['doctor_id'],
                'doctor_name': item['doctor_name'],
                'specialty': item['specialty'],
            })
            rows.append(row)
        return rows


class PaymentWriteSerializer(serializers.Serializer):
    """
    Input for recording/updating a payment.

    Negative amounts and unknown methods are rejected by the service so
    the zero-amount insurance rule lives in one place.
    """
    patient_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    receipt_number = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    consultation_record_id = serializers.IntegerField(required=False, allow_null=True)
    paid_at = serializers.DateTimeField(required=False)


class PaymentUpdateSerializer(PaymentWriteSerializer):
    # A payment never moves to another patient
    patient_id = None


class PaymentSearchSerializer(serializers.Serializer):
    """Query parameters of the payment list; dates are clinic-local days."""
    patient = serializers.IntegerField(required=False)
    record = serializers.IntegerField(required=False)
    method = serializers.ChoiceField(choices=PaymentMethodChoices.choices, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        if 'date_from' in attrs and 'date_to' in attrs and attrs['date_from'] > attrs['date_to']:
            raise serializers.ValidationError('date_from must not be after date_to')
        return attrs
