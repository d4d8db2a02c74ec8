"""
Payment ledger models.
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class PaymentMethodChoices(models.TextChoices):
    """
    How the payment was received.
    
    INSURANCE covers visits paid by the patient's health insurer; a zero
    amount is always recorded as INSURANCE.
    """
    CASH = 'cash', 'Cash'
    TRANSFER = 'transfer', 'Transfer'
    INSURANCE = 'insurance', 'Insurance'


class Payment(models.Model):
    """
    Money received from a patient.
    
    A payment linked to a consultation record is settled: its doctor is the
    record's doctor. Unsettled payments are attributed to a doctor by the
    reconciliation engine at report time.
    """
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.CASCADE,
        related_name='payments'
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    method = models.CharField(
        max_length=20,
        choices=PaymentMethodChoices.choices
    )
    receipt_number = models.CharField(max_length=100, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    consultation_record = models.ForeignKey(
        'clinical.ConsultationRecord',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='payments'
    )
    paid_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'payment'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        indexes = [
            models.Index(fields=['paid_at'], name='idx_payment_paid_at'),
            models.Index(fields=['patient', 'paid_at'], name='idx_payment_patient_paid'),
            models.Index(fields=['consultation_record'], name='idx_payment_record'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name='payment_amount_non_negative',
            ),
            models.CheckConstraint(
                condition=~models.Q(amount=0) | models.Q(method='insurance'),
                name='payment_zero_amount_is_insurance',
            ),
        ]
    
    def __str__(self):
        return f"Payment #{self.pk} {self.amount} ({self.method})"
    
    @property
    def is_settled(self):
        return self.consultation_record_id is not None
