"""
Read-only serializers for report summaries (dataclasses from aggregation).
"""
from rest_framework import serializers


class MethodTotalsSerializer(serializers.Serializer):
    cash = serializers.DecimalField(max_digits=14, decimal_places=2)
    transfer = serializers.DecimalField(max_digits=14, decimal_places=2)
    insurance = serializers.DecimalField(max_digits=14, decimal_places=2)
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class BucketSummarySerializer(serializers.Serializer):
    key = serializers.CharField()
    totals = MethodTotalsSerializer()


class DoctorSummarySerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField()
    doctor_name = serializers.CharField()
    specialty = serializers.CharField()
    totals = MethodTotalsSerializer()
    buckets = BucketSummarySerializer(many=True)


class AttributedPaymentSerializer(serializers.Serializer):
    id = serializers.IntegerField(source='payment.id')
    patient_id = serializers.IntegerField(source='payment.patient_id')
    amount = serializers.DecimalField(source='payment.amount', max_digits=12, decimal_places=2)
    method = serializers.CharField(source='payment.method')
    paid_at = serializers.DateTimeField(source='payment.paid_at')
    consultation_record_id = serializers.IntegerField(source='payment.consultation_record_id', allow_null=True)
    doctor_id = serializers.IntegerField(allow_null=True)
    attention_id = serializers.IntegerField(allow_null=True)
    attribution = serializers.CharField()


class ReportSummarySerializer(serializers.Serializer):
    period = serializers.CharField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    year = serializers.IntegerField()
    month = serializers.IntegerField(allow_null=True)
    day = serializers.IntegerField(allow_null=True)
    doctor_id = serializers.IntegerField(allow_null=True)
    totals = MethodTotalsSerializer()
    payments = AttributedPaymentSerializer(many=True)
    by_doctor = DoctorSummarySerializer(many=True, allow_null=True)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if instance.by_doctor is None:
            # Doctor-scoped reports carry no breakdown at all
            data.pop('by_doctor')
        return data


class StatisticsSerializer(serializers.Serializer):
    day = MethodTotalsSerializer()
    month = MethodTotalsSerializer()
    year = MethodTotalsSerializer()
