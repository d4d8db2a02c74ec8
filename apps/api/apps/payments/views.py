"""
Payment ledger API.

Endpoints:
- POST /api/v1/payments/
- GET /api/v1/payments/?patient=&record=&method=&date_from=&date_to=
  (newest first, with attributed doctor; the latest 100 unless only ?patient is given)
- GET /api/v1/payments/{id}/
- PATCH /api/v1/payments/{id}/
- DELETE /api/v1/payments/{id}/
"""
from rest_framework import mixins, status, viewsets
from rest_framework.response import Response

from apps.authz.acting import resolve_acting_user
from apps.payments import services
from apps.payments.models import Payment
from apps.payments.permissions import PaymentPermission
from apps.payments.serializers import (
    PaymentSearchSerializer,
    PaymentSerializer,
    PaymentUpdateSerializer,
    PaymentWriteSerializer,
)


class PaymentViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    permission_classes = [PaymentPermission]
    serializer_class = PaymentSerializer
    lookup_value_regex = r'\d+'
    queryset = Payment.objects.all()

    def list(self, request):
        query = PaymentSearchSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = query.validated_data

        if 'patient' in filters and len(filters) == 1:
            history = services.list_patient_payments(filters['patient'])
        else:
            history = services.search_payments(
                patient_id=filters.get('patient'),
                consultation_record_id=filters.get('record'),
                method=filters.get('method'),
                date_from=filters.get('date_from'),
                date_to=filters.get('date_to'),
            )
        return Response(PaymentSerializer.from_history(history))

    def create(self, request):
        serializer = PaymentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = services.record_payment(
            data['patient_id'],
            data['amount'],
            data.get('method'),
            receipt_number=data.get('receipt_number'),
            notes=data.get('notes'),
            consultation_record_id=data.get('consultation_record_id'),
            paid_at=data.get('paid_at'),
            actor=resolve_acting_user(request.user),
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = PaymentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        payment = services.update_payment(
            pk,
            dict(serializer.validated_data),
            actor=resolve_acting_user(request.user),
        )
        return Response(PaymentSerializer(payment).data)

    def destroy(self, request, pk=None):
        services.delete_payment(pk, actor=resolve_acting_user(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)
