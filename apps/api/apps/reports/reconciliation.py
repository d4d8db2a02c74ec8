"""
Payment-to-attention reconciliation.

Payments are usually recorded at check-in, before any consultation record
(and therefore any doctor link) exists. Reports attribute those unsettled
payments to a doctor by pairing each attention with the closest-in-time
unsettled payment of the same patient.

Rules:
- attentions are processed in storage order (ascending id)
- only unsettled payments of the attention's patient are candidates
- a payment is claimed at most once
- the candidate with the smallest |paid_at - entered_at| wins; on ties the
  earlier payment (paid_at, then id) is kept
- the match is accepted only when that difference is strictly below the
  match window (2 hours by default)
- settled payments (linked to a consultation record) never take part and
  are attributed to the record's doctor

Everything here works on frozen snapshots and has no side effects, so a
report over the same rows always produces the same attribution.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

DEFAULT_MATCH_WINDOW = timedelta(hours=2)

ATTRIBUTION_RECORD = 'record'
ATTRIBUTION_MATCHED = 'matched'
ATTRIBUTION_NONE = 'unattributed'


@dataclass(frozen=True)
class AttentionSnapshot:
    id: int
    patient_id: int
    doctor_id: int
    entered_at: datetime


@dataclass(frozen=True)
class PaymentSnapshot:
    id: int
    patient_id: int
    amount: Decimal
    method: str
    paid_at: datetime
    consultation_record_id: Optional[int] = None
    record_doctor_id: Optional[int] = None

    @property
    def is_settled(self) -> bool:
        return self.consultation_record_id is not None


@dataclass(frozen=True)
class AttributedPayment:
    payment: PaymentSnapshot
    doctor_id: Optional[int]
    attention_id: Optional[int]
    attribution: str


def _payment_order(payment: PaymentSnapshot):
    return (payment.paid_at, payment.id)


def match_payments(
    attentions: Iterable[AttentionSnapshot],
    payments: Iterable[PaymentSnapshot],
    window: timedelta = DEFAULT_MATCH_WINDOW,
) -> Dict[int, int]:
    """
    Greedily pair attentions with unsettled payments.

    Returns:
        {payment_id: attention_id} for every accepted match
    """
    candidates = sorted((p for p in payments if not p.is_settled), key=_payment_order)
    claimed: Dict[int, int] = {}

    for attention in sorted(attentions, key=lambda a: a.id):
        best = None
        best_diff = None
        for payment in candidates:
            if payment.id in claimed or payment.patient_id != attention.patient_id:
                continue
            diff = abs(payment.paid_at - attention.entered_at)
            # strict: ties keep the earlier payment
            if best_diff is None or diff < best_diff:
                best = payment
                best_diff = diff

        if best is not None and best_diff < window:
            claimed[best.id] = attention.id

    return claimed


def attribute_payments(
    attentions: Iterable[AttentionSnapshot],
    payments: Iterable[PaymentSnapshot],
    window: timedelta = DEFAULT_MATCH_WINDOW,
) -> List[AttributedPayment]:
    """
    Resolve the doctor of every payment.

    Settled payments take the doctor of their consultation record, unsettled
    ones the doctor of the attention they were matched to (or none).
    Output is ordered by (paid_at, id).
    """
    attentions = list(attentions)
    payments = sorted(payments, key=_payment_order)
    matches = match_payments(attentions, payments, window)
    doctor_by_attention = {a.id: a.doctor_id for a in attentions}

    attributed = []
    for payment in payments:
        if payment.is_settled:
            attributed.append(AttributedPayment(
                payment=payment,
                doctor_id=payment.record_doctor_id,
                attention_id=None,
                attribution=ATTRIBUTION_RECORD,
            ))
        elif payment.id in matches:
            attention_id = matches[payment.id]
            attributed.append(AttributedPayment(
                payment=payment,
                doctor_id=doctor_by_attention[attention_id],
                attention_id=attention_id,
                attribution=ATTRIBUTION_MATCHED,
            ))
        else:
            attributed.append(AttributedPayment(
                payment=payment,
                doctor_id=None,
                attention_id=None,
                attribution=ATTRIBUTION_NONE,
            ))
    return attributed


def payments_claimed_by(
    attention_id: int,
    attentions: Iterable[AttentionSnapshot],
    payments: Iterable[PaymentSnapshot],
    window: timedelta = DEFAULT_MATCH_WINDOW,
) -> List[int]:
    """Ids of the unsettled payments the matcher hands to one attention."""
    matches = match_payments(attentions, payments, window)
    return sorted(pid for pid, aid in matches.items() if aid == attention_id)
