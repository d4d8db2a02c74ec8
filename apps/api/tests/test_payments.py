"""
Payment ledger tests.

Tests cover:
1. Zero amount always recorded as insurance
2. Negative amounts and unknown methods rejected
3. Settled payments (linked to a consultation record)
4. Update / delete
5. Patient history with attributed doctor
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.clinical.models import AttentionStatusChoices, ClinicalAuditLog
from apps.core.exceptions import NotFound, Validation
from apps.payments import services
from apps.payments.models import Payment, PaymentMethodChoices
from apps.reports.periods import local_date
from apps.reports.reconciliation import ATTRIBUTION_MATCHED, ATTRIBUTION_NONE, ATTRIBUTION_RECORD


@pytest.mark.django_db
class TestRecordPayment:

    @pytest.mark.parametrize('method', ['cash', 'transfer', 'insurance', None, 'bitcoin'])
    def test_zero_amount_forces_insurance(self, patient, method):
        payment = services.record_payment(patient.id, Decimal('0'), method)
        assert payment.method == PaymentMethodChoices.INSURANCE
        payment.refresh_from_db()
        assert payment.method == PaymentMethodChoices.INSURANCE

    def test_zero_as_string(self, patient):
        payment = services.record_payment(patient.id, '0.00', 'cash')
        assert payment.method == PaymentMethodChoices.INSURANCE

    def test_positive_amount_keeps_method(self, patient):
        payment = services.record_payment(patient.id, Decimal('2500.50'), 'transfer', receipt_number='R-1')
        assert payment.method == PaymentMethodChoices.TRANSFER
        assert payment.amount == Decimal('2500.50')
        assert payment.receipt_number == 'R-1'
        assert not payment.is_settled

    def test_negative_amount_rejected(self, patient):
        with pytest.raises(Validation):
            services.record_payment(patient.id, Decimal('-10'), 'cash')
        assert Payment.objects.count() == 0

    @pytest.mark.parametrize('amount', [None, 'abc', 'NaN', 'Infinity'])
    def test_invalid_amount_rejected(self, patient, amount):
        with pytest.raises(Validation):
            services.record_payment(patient.id, amount, 'cash')

    def test_unknown_method_rejected(self, patient):
        with pytest.raises(Validation):
            services.record_payment(patient.id, Decimal('10'), 'bitcoin')

    def test_unknown_patient(self):
        with pytest.raises(NotFound):
            services.record_payment(999999, Decimal('10'), 'cash')

    def test_settled_payment(self, patient, record_factory):
        record = record_factory()
        payment = services.record_payment(patient.id, Decimal('10'), 'cash', consultation_record_id=record.id)
        assert payment.is_settled
        assert payment.consultation_record_id == record.id

    def test_record_of_other_patient_rejected(self, patient_factory, record_factory):
        record = record_factory()
        with pytest.raises(Validation):
            services.record_payment(patient_factory().id, Decimal('10'), 'cash', consultation_record_id=record.id)

    def test_unknown_record(self, patient):
        with pytest.raises(NotFound):
            services.record_payment(patient.id, Decimal('10'), 'cash', consultation_record_id=999999)

    def test_audited(self, patient, reception_actor):
        payment = services.record_payment(patient.id, Decimal('10'), 'cash', actor=reception_actor)
        log = ClinicalAuditLog.objects.get(entity_type='Payment', entity_id=str(payment.id))
        assert log.actor_user_id == reception_actor.user_id
        assert log.metadata['after']['method'] == 'cash'


@pytest.mark.django_db
class TestDatabaseConstraints:

    def test_zero_cash_rejected_by_database(self, patient):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Payment.objects.create(patient=patient, amount=Decimal('0'), method='cash')

    def test_negative_rejected_by_database(self, patient):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Payment.objects.create(patient=patient, amount=Decimal('-1'), method='cash')


@pytest.mark.django_db
class TestUpdateDeletePayment:

    def test_update_to_zero_forces_insurance(self, payment_factory):
        payment = payment_factory(amount=Decimal('100'), method='cash')
        updated = services.update_payment(payment.id, {'amount': Decimal('0')})
        assert updated.method == PaymentMethodChoices.INSURANCE

    def test_update_method(self, payment_factory):
        payment = payment_factory()
        updated = services.update_payment(payment.id, {'method': 'transfer', 'notes': 'bank ref 123'})
        assert updated.method == 'transfer'
        assert updated.notes == 'bank ref 123'

    def test_update_negative_rejected(self, payment_factory):
        payment = payment_factory()
        with pytest.raises(Validation):
            services.update_payment(payment.id, {'amount': Decimal('-5')})

    def test_update_unknown_field_rejected(self, payment_factory, patient_factory):
        payment = payment_factory()
        with pytest.raises(Validation):
            services.update_payment(payment.id, {'patient_id': patient_factory().id})

    def test_update_unknown_payment(self):
        with pytest.raises(NotFound):
            services.update_payment(999999, {'notes': 'x'})

    def test_link_to_record_settles(self, payment_factory, record_factory):
        payment = payment_factory()
        record = record_factory()
        updated = services.update_payment(payment.id, {'consultation_record_id': record.id})
        assert updated.is_settled

    def test_delete(self, payment_factory):
        payment = payment_factory()
        services.delete_payment(payment.id)
        assert not Payment.objects.filter(pk=payment.id).exists()

    def test_delete_unknown(self):
        with pytest.raises(NotFound):
            services.delete_payment(999999)


@pytest.mark.django_db
class TestPatientPaymentHistory:

    def test_history_attributes_doctors(
        self, patient, doctor, other_doctor, attention_factory, record_factory, payment_factory
    ):
        now = timezone.now()
        attention_factory(entered_at=now - timedelta(days=1))
        record = record_factory(attention=attention_factory(
            doctor=other_doctor, status=AttentionStatusChoices.FINISHED, entered_at=now - timedelta(days=5)
        ))

        matched = payment_factory(paid_at=now - timedelta(days=1, minutes=3))
        settled = payment_factory(paid_at=now - timedelta(days=5), consultation_record=record)
        orphan = payment_factory(paid_at=now - timedelta(days=10))

        history = services.list_patient_payments(patient.id)

        assert [row['payment'].id for row in history] == [matched.id, settled.id, orphan.id]
        by_id = {row['payment'].id: row for row in history}
        assert by_id[matched.id]['attribution'] == ATTRIBUTION_MATCHED
        assert by_id[matched.id]['doctor_name'] == doctor.display_name
        assert by_id[settled.id]['attribution'] == ATTRIBUTION_RECORD
        assert by_id[settled.id]['specialty'] == other_doctor.specialty
        assert by_id[orphan.id]['attribution'] == ATTRIBUTION_NONE
        assert by_id[orphan.id]['doctor_id'] is None

    def test_unknown_patient(self):
        with pytest.raises(NotFound):
            services.list_patient_payments(999999)


@pytest.mark.django_db
class TestPaymentSearch:

    def test_filters_by_day_range(self, payment_factory, patient_factory):
        now = timezone.now()
        today_cash = payment_factory(paid_at=now)
        stranger = payment_factory(patient=patient_factory(), paid_at=now)
        payment_factory(paid_at=now - timedelta(days=10))
        today = local_date(now)

        rows = services.search_payments(date_from=today, date_to=today)

        assert {row['payment'].id for row in rows} == {today_cash.id, stranger.id}
        assert services.search_payments(date_from=today + timedelta(days=1)) == []

    def test_filters_by_method(self, payment_factory):
        payment_factory()
        transfer = payment_factory(method=PaymentMethodChoices.TRANSFER)

        rows = services.search_payments(method=PaymentMethodChoices.TRANSFER)

        assert [row['payment'].id for row in rows] == [transfer.id]

    def test_filters_by_patient(self, payment_factory, patient_factory):
        payment_factory()
        other = patient_factory()
        theirs = payment_factory(patient=other)

        rows = services.search_payments(patient_id=other.id)

        assert [row['payment'].id for row in rows] == [theirs.id]

    def test_payments_of_a_consultation_record(self, payment_factory, record_factory, doctor):
        record = record_factory()
        settled = payment_factory(consultation_record=record)
        payment_factory()

        rows = services.search_payments(consultation_record_id=record.id)

        assert [row['payment'].id for row in rows] == [settled.id]
        assert rows[0]['attribution'] == ATTRIBUTION_RECORD
        assert rows[0]['doctor_id'] == doctor.id

    def test_filter_does_not_change_attribution(self, attention_factory, payment_factory, doctor):
        now = timezone.now()
        attention_factory(entered_at=now - timedelta(days=1))
        transfer = payment_factory(
            paid_at=now - timedelta(days=1, minutes=3), method=PaymentMethodChoices.TRANSFER
        )
        cash = payment_factory(paid_at=now - timedelta(days=1, minutes=1))

        # the attention takes the closer cash payment even when only transfers are listed
        rows = services.search_payments(method=PaymentMethodChoices.TRANSFER)
        assert [row['payment'].id for row in rows] == [transfer.id]
        assert rows[0]['attribution'] == ATTRIBUTION_NONE

        rows = services.search_payments(method=PaymentMethodChoices.CASH)
        assert [row['payment'].id for row in rows] == [cash.id]
        assert rows[0]['attribution'] == ATTRIBUTION_MATCHED
        assert rows[0]['doctor_id'] == doctor.id

    def test_newest_first_with_limit(self, payment_factory):
        now = timezone.now()
        oldest = payment_factory(paid_at=now - timedelta(hours=3))
        middle = payment_factory(paid_at=now - timedelta(hours=2))
        newest = payment_factory(paid_at=now - timedelta(hours=1))

        rows = services.search_payments(limit=2)

        assert [row['payment'].id for row in rows] == [newest.id, middle.id]
        assert oldest.id in [row['payment'].id for row in services.search_payments(limit=None)]

    def test_unknown_record(self):
        with pytest.raises(NotFound):
            services.search_payments(consultation_record_id=999999)
