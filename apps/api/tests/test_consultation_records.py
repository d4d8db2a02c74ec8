"""
Consultation record tests.

BUSINESS RULES:
- A record can only be written while its attention is in consultation
- One record per attention
- Only the author edits it (admins act as the author)
- Edits are accepted up to 24h after creation; strictly later edits raise
  EditWindowExpired and the doctor must open a re-consultation
"""
from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone

from apps.clinical import services
from apps.clinical.models import AttentionStatusChoices, ConsultationRecord
from apps.core.exceptions import Conflict, EditWindowExpired, Forbidden, NotFound, Validation
from apps.reports.periods import local_date


@pytest.fixture
def in_consultation(attention_factory):
    return attention_factory(status=AttentionStatusChoices.IN_CONSULTATION)


# ============================================================================
# Create
# ============================================================================

@pytest.mark.django_db
class TestCreateRecord:

    def test_create_with_structured_sections(self, in_consultation, doctor_actor):
        record = services.create_record(in_consultation.id, {
            'content': 'Chest pain on exertion',
            'diagnosis': 'Stable angina',
            'blood_pressure': '140/90',
        }, doctor_actor)

        assert record.diagnosis == 'Stable angina'
        assert record.blood_pressure == '140/90'
        in_consultation.refresh_from_db()
        assert in_consultation.status == AttentionStatusChoices.FINISHED

    def test_waiting_attention_conflicts(self, attention_factory, doctor_actor):
        attention = attention_factory()
        with pytest.raises(Conflict):
            services.create_record(attention.id, {'content': 'ok'}, doctor_actor)
        assert not ConsultationRecord.objects.exists()

    def test_second_record_conflicts(self, in_consultation, doctor_actor):
        services.create_record(in_consultation.id, {'content': 'ok'}, doctor_actor)
        with pytest.raises(Conflict):
            services.create_record(in_consultation.id, {'content': 'again'}, doctor_actor)
        assert ConsultationRecord.objects.count() == 1

    def test_blank_content_rejected(self, in_consultation, doctor_actor):
        with pytest.raises(Validation):
            services.create_record(in_consultation.id, {'content': '   '}, doctor_actor)
        in_consultation.refresh_from_db()
        assert in_consultation.status == AttentionStatusChoices.IN_CONSULTATION

    def test_missing_content_rejected(self, in_consultation, doctor_actor):
        with pytest.raises(Validation):
            services.create_record(in_consultation.id, {'diagnosis': 'x'}, doctor_actor)

    def test_unknown_field_rejected(self, in_consultation, doctor_actor):
        with pytest.raises(Validation):
            services.create_record(in_consultation.id, {'content': 'ok', 'doctor_id': 5}, doctor_actor)

    def test_other_doctor_forbidden(self, in_consultation, other_doctor_actor):
        with pytest.raises(Forbidden):
            services.create_record(in_consultation.id, {'content': 'ok'}, other_doctor_actor)

    def test_reception_forbidden(self, in_consultation, reception_actor):
        with pytest.raises(Forbidden):
            services.create_record(in_consultation.id, {'content': 'ok'}, reception_actor)

    def test_admin_writes_as_attending_doctor(self, in_consultation, doctor, admin_actor):
        record = services.create_record(in_consultation.id, {'content': 'ok'}, admin_actor)
        assert record.doctor_id == doctor.id

    def test_unknown_attention(self, doctor_actor):
        with pytest.raises(NotFound):
            services.create_record(999999, {'content': 'ok'}, doctor_actor)


# ============================================================================
# Edit window
# ============================================================================

@pytest.mark.django_db
class TestEditWindow:

    def test_edit_within_window(self, record_factory, doctor_actor):
        record = record_factory()
        updated = services.update_record(record.id, {'diagnosis': 'Migraine'}, doctor_actor)
        assert updated.diagnosis == 'Migraine'

    def test_edit_at_exactly_24h_allowed(self, record_factory, doctor_actor):
        created = timezone.now() - timedelta(days=2)
        record = record_factory(created_at=created)

        updated = services.update_record(
            record.id, {'content': 'amended'}, doctor_actor, now=created + timedelta(hours=24)
        )

        assert updated.content == 'amended'

    def test_edit_one_second_after_24h_expired(self, record_factory, doctor_actor):
        created = timezone.now() - timedelta(days=2)
        record = record_factory(created_at=created, content='original')

        with pytest.raises(EditWindowExpired):
            services.update_record(
                record.id, {'content': 'amended'}, doctor_actor,
                now=created + timedelta(hours=24, seconds=1)
            )

        record.refresh_from_db()
        assert record.content == 'original'

    def test_old_record_expired_by_default_clock(self, record_factory, doctor_actor):
        record = record_factory(created_at=timezone.now() - timedelta(hours=25))
        with pytest.raises(EditWindowExpired):
            services.update_record(record.id, {'content': 'amended'}, doctor_actor)

    def test_expired_is_distinct_from_conflict(self):
        assert not issubclass(EditWindowExpired, Conflict)
        assert EditWindowExpired('x').code == 'edit_window_expired'

    @override_settings(CONSULTATION_RECORD_EDIT_WINDOW_HOURS=1)
    def test_window_is_configurable(self, record_factory, doctor_actor):
        record = record_factory(created_at=timezone.now() - timedelta(hours=2))
        with pytest.raises(EditWindowExpired):
            services.update_record(record.id, {'content': 'amended'}, doctor_actor)

    def test_admin_also_bound_by_window(self, record_factory, admin_actor):
        record = record_factory(created_at=timezone.now() - timedelta(hours=30))
        with pytest.raises(EditWindowExpired):
            services.update_record(record.id, {'content': 'amended'}, admin_actor)

    def test_reconsultation_after_expiry(self, record_factory, patient, doctor_actor):
        old = record_factory(created_at=timezone.now() - timedelta(hours=30))
        with pytest.raises(EditWindowExpired):
            services.update_record(old.id, {'content': 'amended'}, doctor_actor)

        attention = services.start_reconsultation(patient.id, None, doctor_actor)
        new = services.create_record(attention.id, {'content': 'amended findings'}, doctor_actor)

        assert new.id != old.id
        assert list(services.list_patient_records(patient.id))[0] == new


# ============================================================================
# Ownership and validation on edit
# ============================================================================

@pytest.mark.django_db
class TestEditRules:

    def test_other_doctor_forbidden(self, record_factory, other_doctor_actor):
        record = record_factory()
        with pytest.raises(Forbidden):
            services.update_record(record.id, {'content': 'hijack'}, other_doctor_actor)

    def test_admin_edits_as_author(self, record_factory, doctor, admin_actor):
        record = record_factory()
        updated = services.update_record(record.id, {'treatment': 'Rest'}, admin_actor)
        assert updated.treatment == 'Rest'
        assert updated.doctor_id == doctor.id

    def test_blank_content_rejected(self, record_factory, doctor_actor):
        record = record_factory()
        with pytest.raises(Validation):
            services.update_record(record.id, {'content': ''}, doctor_actor)

    def test_unknown_record(self, doctor_actor):
        with pytest.raises(NotFound):
            services.update_record(999999, {'content': 'x'}, doctor_actor)

    def test_created_at_cannot_be_edited(self, record_factory, doctor_actor):
        record = record_factory()
        with pytest.raises(Validation):
            services.update_record(record.id, {'created_at': timezone.now()}, doctor_actor)


# ============================================================================
# Listings
# ============================================================================

@pytest.mark.django_db
class TestRecordListings:

    def test_patient_history_newest_first(self, record_factory, attention_factory, patient):
        now = timezone.now()
        older = record_factory(
            attention=attention_factory(status=AttentionStatusChoices.FINISHED),
            created_at=now - timedelta(days=10),
        )
        newer = record_factory(
            attention=attention_factory(status=AttentionStatusChoices.FINISHED),
            created_at=now - timedelta(days=1),
        )
        assert list(services.list_patient_records(patient.id)) == [newer, older]

    def test_patient_history_unknown_patient(self):
        with pytest.raises(NotFound):
            list(services.list_patient_records(999999))

    def test_doctor_records_today(self, record_factory, attention_factory, doctor):
        now = timezone.now()
        today = record_factory(created_at=now)
        record_factory(
            attention=attention_factory(status=AttentionStatusChoices.FINISHED),
            created_at=now - timedelta(days=3),
        )
        assert list(services.list_doctor_records_today(doctor.id, now=now)) == [today]


@pytest.mark.django_db
class TestRecordSearch:

    @pytest.fixture
    def records(self, record_factory, attention_factory, patient_factory, other_doctor):
        now = timezone.now()
        lopez = patient_factory(national_id='27999888', last_name='Lopez')
        return {
            'perez_cardiology': record_factory(created_at=now),
            'lopez_pediatrics': record_factory(
                attention=attention_factory(
                    patient=lopez, doctor=other_doctor, status=AttentionStatusChoices.FINISHED
                ),
                created_at=now - timedelta(days=1),
            ),
            'perez_old': record_factory(
                attention=attention_factory(status=AttentionStatusChoices.FINISHED),
                created_at=now - timedelta(days=30),
            ),
        }

    def test_by_national_id(self, records):
        found = list(services.search_records(national_id=' 27999888 '))
        assert found == [records['lopez_pediatrics']]

    def test_by_last_name_case_insensitive(self, records):
        found = list(services.search_records(last_name='PER'))
        assert found == [records['perez_cardiology'], records['perez_old']]

    def test_by_doctor(self, records, other_doctor):
        assert list(services.search_records(doctor_id=other_doctor.id)) == [records['lopez_pediatrics']]

    def test_by_specialty_substring(self, records):
        found = list(services.search_records(specialty='cardio'))
        assert found == [records['perez_cardiology'], records['perez_old']]

    def test_specialty_of_inactive_doctor_excluded(self, records, other_doctor):
        other_doctor.is_active = False
        other_doctor.save()
        assert list(services.search_records(specialty='pediatrics')) == []

    def test_by_date_range(self, records):
        now = timezone.now()
        found = list(services.search_records(
            date_from=local_date(now - timedelta(days=31)),
            date_to=local_date(now - timedelta(days=2)),
        ))
        assert found == [records['perez_old']]

    def test_filters_combine(self, records, doctor):
        assert list(services.search_records(last_name='lopez', doctor_id=doctor.id)) == []

    def test_no_match(self, records):
        assert list(services.search_records(national_id='11111111')) == []
