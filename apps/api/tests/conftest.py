"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Users and authenticated API clients by role
- Doctor profiles, patients and acting users
- Factories for attentions, records and payments
"""
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.authz.acting import ActingUser
from apps.authz.models import Doctor, Role, RoleChoices, User, UserRole
from apps.clinical.models import Attention, AttentionStatusChoices, ConsultationRecord, Patient
from apps.payments.models import Payment, PaymentMethodChoices


def _create_user(email, role_name, **kwargs):
    user = User.objects.create_user(email=email, password='testpass123', is_active=True, **kwargs)
    role, _ = Role.objects.get_or_create(name=role_name)
    UserRole.objects.create(user=user, role=role)
    return user


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def admin_user(db):
    """Admin user: full access, impersonates doctors."""
    return _create_user('admin@test.com', RoleChoices.ADMIN, is_staff=True, is_superuser=True)


@pytest.fixture
def reception_user(db):
    """Reception user: check-in, queue and payments."""
    return _create_user('reception@test.com', RoleChoices.RECEPTION)


@pytest.fixture
def doctor_user(db):
    return _create_user('doctor@test.com', RoleChoices.DOCTOR)


@pytest.fixture
def other_doctor_user(db):
    return _create_user('other.doctor@test.com', RoleChoices.DOCTOR)


@pytest.fixture
def doctor(db, doctor_user):
    """Active doctor profile for doctor_user."""
    return Doctor.objects.create(
        user=doctor_user,
        display_name='Dr. Gomez',
        specialty='Cardiology',
        is_active=True
    )


@pytest.fixture
def other_doctor(db, other_doctor_user):
    return Doctor.objects.create(
        user=other_doctor_user,
        display_name='Dr. Alvarez',
        specialty='Pediatrics',
        is_active=True
    )


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def reception_client(reception_user):
    return _client_for(reception_user)


@pytest.fixture
def doctor_client(doctor):
    return _client_for(doctor.user)


@pytest.fixture
def other_doctor_client(other_doctor):
    return _client_for(other_doctor.user)


# ============================================================================
# Acting users (service-level tests)
# ============================================================================

@pytest.fixture
def admin_actor(admin_user):
    return ActingUser(user_id=admin_user.id, role=RoleChoices.ADMIN)


@pytest.fixture
def reception_actor(reception_user):
    return ActingUser(user_id=reception_user.id, role=RoleChoices.RECEPTION)


@pytest.fixture
def doctor_actor(doctor):
    return ActingUser(user_id=doctor.user_id, role=RoleChoices.DOCTOR, doctor_id=doctor.id)


@pytest.fixture
def other_doctor_actor(other_doctor):
    return ActingUser(user_id=other_doctor.user_id, role=RoleChoices.DOCTOR, doctor_id=other_doctor.id)


# ============================================================================
# Model instances
# ============================================================================

@pytest.fixture
def patient(db):
    return Patient.objects.create(
        national_id='30111222',
        first_name='Juan',
        last_name='Perez',
        insurer='OSDE',
    )


@pytest.fixture
def patient_factory(db):
    """
    Factory fixture for creating multiple patients.

    Usage:
        p1 = patient_factory(national_id='1')
    """
    counter = {'n': 0}

    def _create_patient(**kwargs):
        counter['n'] += 1
        defaults = {
            'national_id': f'4000000{counter["n"]}',
            'first_name': f'Patient{counter["n"]}',
            'last_name': 'Test',
        }
        defaults.update(kwargs)
        return Patient.objects.create(**defaults)

    return _create_patient


@pytest.fixture
def attention_factory(db, patient, doctor):
    """
    Factory fixture for attentions (defaults: patient, doctor, waiting, now).
    """
    def _create_attention(**kwargs):
        defaults = {
            'patient': patient,
            'doctor': doctor,
            'status': AttentionStatusChoices.WAITING,
            'entered_at': timezone.now(),
        }
        defaults.update(kwargs)
        if defaults['status'] != AttentionStatusChoices.WAITING:
            defaults.setdefault('started_at', defaults['entered_at'])
        return Attention.objects.create(**defaults)

    return _create_attention


@pytest.fixture
def record_factory(db, attention_factory):
    """
    Factory fixture for consultation records on finished attentions.
    """
    def _create_record(attention=None, created_at=None, **kwargs):
        if attention is None:
            attention = attention_factory(status=AttentionStatusChoices.FINISHED)
        return ConsultationRecord.objects.create(
            attention=attention,
            patient=attention.patient,
            doctor=attention.doctor,
            content=kwargs.pop('content', 'Control visit, no findings'),
            created_at=created_at or timezone.now(),
            **kwargs
        )

    return _create_record


@pytest.fixture
def payment_factory(db, patient):
    def _create_payment(**kwargs):
        defaults = {
            'patient': patient,
            'amount': Decimal('100.00'),
            'method': PaymentMethodChoices.CASH,
            'paid_at': timezone.now(),
        }
        defaults.update(kwargs)
        return Payment.objects.create(**defaults)

    return _create_payment
