"""
Clinical viewsets: patients, attention queue, check-in and consultation records.

Views validate input with serializers, resolve the ActingUser and delegate
to apps.clinical.services. Domain errors raised by the services are mapped
to HTTP responses by apps.core.exception_handler.
"""
from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.acting import resolve_acting_user
from apps.authz.permissions import IsDoctorOrAdmin, IsFrontDeskOrAdmin
from apps.clinical import services
from apps.clinical.models import (
    Attention,
    AuditActionChoices,
    ConsultationRecord,
    Patient,
    log_clinical_audit,
)
from apps.clinical.permissions import (
    AttentionPermission,
    ConsultationRecordPermission,
    PatientPermission,
)
from apps.clinical.serializers import (
    AttentionSerializer,
    CheckInSerializer,
    ConsultationRecordCreateSerializer,
    ConsultationRecordSearchSerializer,
    ConsultationRecordSerializer,
    ConsultationRecordWriteSerializer,
    EnqueueAttentionSerializer,
    PatientSerializer,
    ReconsultationSerializer,
)
from apps.core.exceptions import Validation
from apps.core.observability import get_sanitized_logger
from apps.payments.serializers import PaymentSerializer
from apps.payments.services import list_patient_payments

logger = get_sanitized_logger(__name__)


def _int_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise Validation(f'{name} must be an integer')


class PatientViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - POST /api/v1/clinical/patients/
    - GET /api/v1/clinical/patients/?q=&national_id=
    - GET /api/v1/clinical/patients/{id}/
    - PATCH /api/v1/clinical/patients/{id}/
    - DELETE /api/v1/clinical/patients/{id}/ (hard delete, Admin only)
    """
    permission_classes = [PatientPermission]
    serializer_class = PatientSerializer
    lookup_value_regex = r'\d+'
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = Patient.objects.all()

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(first_name__icontains=q) |
                Q(last_name__icontains=q) |
                Q(national_id__icontains=q)
            )

        national_id = self.request.query_params.get('national_id')
        if national_id:
            queryset = queryset.filter(national_id=national_id)

        return queryset.order_by('last_name', 'first_name', 'id')

    def perform_create(self, serializer):
        patient = serializer.save()
        log_clinical_audit(resolve_acting_user(self.request.user), patient, AuditActionChoices.CREATE)

    def perform_update(self, serializer):
        changed = sorted(serializer.validated_data)
        patient = serializer.save()
        log_clinical_audit(
            resolve_acting_user(self.request.user), patient, AuditActionChoices.UPDATE,
            changed_fields=changed
        )

    def destroy(self, request, *args, **kwargs):
        services.delete_patient(kwargs['pk'], actor=resolve_acting_user(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'], url_path='records', permission_classes=[ConsultationRecordPermission])
    def records(self, request, pk=None):
        """GET /api/v1/clinical/patients/{id}/records/ - clinical history, newest first"""
        records = services.list_patient_records(pk)
        return Response(ConsultationRecordSerializer(records, many=True).data)

    @action(detail=True, methods=['get'], url_path='payments', permission_classes=[IsFrontDeskOrAdmin])
    def payments(self, request, pk=None):
        """GET /api/v1/clinical/patients/{id}/payments/ - payments with attributed doctor"""
        return Response(PaymentSerializer.from_history(list_patient_payments(pk)))


class AttentionViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       viewsets.GenericViewSet):
    """
    Attention queue.

    Endpoints:
    - POST /api/v1/clinical/attentions/ (enqueue; Admin, Reception)
    - GET /api/v1/clinical/attentions/?doctor= (waiting, oldest first)
    - GET /api/v1/clinical/attentions/{id}/
    - GET /api/v1/clinical/attentions/in-consultation/?doctor=
    - POST /api/v1/clinical/attentions/{id}/call/
    - POST /api/v1/clinical/attentions/reconsultation/
    - DELETE /api/v1/clinical/attentions/{id}/ (cancel)
    """
    permission_classes = [AttentionPermission]
    serializer_class = AttentionSerializer
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        if self.action == 'retrieve':
            return Attention.objects.select_related('patient', 'doctor')
        return services.list_waiting(doctor_id=_int_param(self.request, 'doctor'))

    def create(self, request, *args, **kwargs):
        serializer = EnqueueAttentionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attention = services.enqueue_attention(
            serializer.validated_data['patient_id'],
            serializer.validated_data['doctor_id'],
            is_priority=serializer.validated_data['is_priority'],
            notes=serializer.validated_data.get('notes'),
            actor=resolve_acting_user(request.user),
        )
        attention = services.get_attention(attention.pk)
        return Response(AttentionSerializer(attention).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        deleted_payments = services.cancel_attention(pk, resolve_acting_user(request.user))
        return Response({'deleted_payment_ids': deleted_payments}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'], url_path='in-consultation', permission_classes=[IsDoctorOrAdmin])
    def in_consultation(self, request):
        """
        GET /api/v1/clinical/attentions/in-consultation/

        Doctors see their own; admins pass ?doctor=.
        """
        actor = resolve_acting_user(request.user)
        doctor_id = _int_param(request, 'doctor')
        if actor.is_doctor or doctor_id is None:
            doctor_id = actor.doctor_id
        if doctor_id is None:
            raise Validation('doctor is required')
        attentions = services.list_in_consultation(doctor_id)
        return Response(AttentionSerializer(attentions, many=True).data)

    @action(detail=True, methods=['post'], url_path='call', permission_classes=[IsDoctorOrAdmin])
    def call(self, request, pk=None):
        """POST /api/v1/clinical/attentions/{id}/call/ - waiting -> in_consultation"""
        services.call_attention(pk, resolve_acting_user(request.user))
        return Response(AttentionSerializer(services.get_attention(pk)).data)

    @action(detail=False, methods=['post'], url_path='reconsultation', permission_classes=[IsDoctorOrAdmin])
    def reconsultation(self, request):
        """POST /api/v1/clinical/attentions/reconsultation/ - open directly in consultation"""
        serializer = ReconsultationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attention = services.start_reconsultation(
            serializer.validated_data['patient_id'],
            serializer.validated_data.get('doctor_id'),
            resolve_acting_user(request.user),
            notes=serializer.validated_data.get('notes'),
        )
        attention = services.get_attention(attention.pk)
        return Response(AttentionSerializer(attention).data, status=status.HTTP_201_CREATED)


class CheckInView(APIView):
    """
    POST /api/v1/clinical/check-in/

    Upsert the patient by national id, record the payment (optional) and
    enqueue the attention in one transaction.
    """
    permission_classes = [IsFrontDeskOrAdmin]

    def post(self, request):
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.check_in_patient(
            dict(data['patient']),
            data['doctor_id'],
            dict(data['payment']) if data.get('payment') else None,
            is_priority=data['is_priority'],
            notes=data.get('notes'),
            update_patient=data['update_patient'],
            actor=resolve_acting_user(request.user),
        )

        return Response({
            'patient': PatientSerializer(result.patient).data,
            'attention': AttentionSerializer(services.get_attention(result.attention.pk)).data,
            'payment': PaymentSerializer(result.payment).data if result.payment else None,
        }, status=status.HTTP_201_CREATED)


class ConsultationRecordViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Consultation records (Admin, Doctor).

    Endpoints:
    - POST /api/v1/clinical/records/ (create + finish the attention)
    - PATCH /api/v1/clinical/records/{id}/ (within the edit window)
    - GET /api/v1/clinical/records/?patient= (history, newest first)
    - GET /api/v1/clinical/records/?national_id=&last_name=&doctor=&specialty=&date_from=&date_to=
      (search, newest first, at most 100)
    - GET /api/v1/clinical/records/{id}/
    - GET /api/v1/clinical/records/today/ (own records written today)
    """
    permission_classes = [ConsultationRecordPermission]
    serializer_class = ConsultationRecordSerializer
    lookup_value_regex = r'\d+'
    queryset = ConsultationRecord.objects.select_related('doctor')

    def list(self, request):
        query = ConsultationRecordSearchSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = query.validated_data

        if 'patient' in filters and len(filters) == 1:
            records = services.list_patient_records(filters['patient'])
        else:
            records = services.search_records(
                patient_id=filters.get('patient'),
                national_id=filters.get('national_id'),
                last_name=filters.get('last_name'),
                doctor_id=filters.get('doctor'),
                specialty=filters.get('specialty'),
                date_from=filters.get('date_from'),
                date_to=filters.get('date_to'),
            )
        return Response(ConsultationRecordSerializer(records, many=True).data)

    def create(self, request):
        serializer = ConsultationRecordCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        attention_id = data.pop('attention_id')

        record = services.create_record(attention_id, data, resolve_acting_user(request.user))
        return Response(ConsultationRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = ConsultationRecordWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        record = services.update_record(pk, dict(serializer.validated_data), resolve_acting_user(request.user))
        return Response(ConsultationRecordSerializer(record).data)

    @action(detail=False, methods=['get'], url_path='today')
    def today(self, request):
        actor = resolve_acting_user(request.user)
        doctor_id = actor.doctor_id if actor.is_doctor else _int_param(request, 'doctor')
        if doctor_id is None:
            raise Validation('doctor is required')
        records = services.list_doctor_records_today(doctor_id)
        return Response(ConsultationRecordSerializer(records, many=True).data)
