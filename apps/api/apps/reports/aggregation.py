"""
Roll attributed payments up into report summaries.

Pure functions over AttributedPayment values; the services module feeds
them from the database.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from apps.reports.reconciliation import AttributedPayment

METHOD_CASH = 'cash'
METHOD_TRANSFER = 'transfer'
METHOD_INSURANCE = 'insurance'

ZERO = Decimal('0.00')


@dataclass
class MethodTotals:
    """
    Per-method subtotals.

    total is cash + transfer: insurance-covered visits bring no money in
    at the desk, they are counted but not summed into the total.
    """
    cash: Decimal = ZERO
    transfer: Decimal = ZERO
    insurance: Decimal = ZERO
    count: int = 0

    @property
    def total(self) -> Decimal:
        return self.cash + self.transfer

    def add(self, method: str, amount: Decimal) -> None:
        if method == METHOD_CASH:
            self.cash += amount
        elif method == METHOD_TRANSFER:
            self.transfer += amount
        elif method == METHOD_INSURANCE:
            self.insurance += amount
        self.count += 1


@dataclass
class BucketSummary:
    key: str
    totals: MethodTotals = field(default_factory=MethodTotals)


@dataclass
class DoctorSummary:
    doctor_id: int
    doctor_name: str
    specialty: str
    totals: MethodTotals = field(default_factory=MethodTotals)
    buckets: List[BucketSummary] = field(default_factory=list)


@dataclass
class ReportSummary:
    period: str
    start: datetime
    end: datetime
    year: int
    month: Optional[int]
    day: Optional[int]
    doctor_id: Optional[int]
    totals: MethodTotals
    payments: List[AttributedPayment]
    by_doctor: Optional[List[DoctorSummary]] = None


@dataclass(frozen=True)
class DoctorInfo:
    id: int
    display_name: str
    specialty: str


def summarize(attributed: Iterable[AttributedPayment]) -> MethodTotals:
    totals = MethodTotals()
    for item in attributed:
        totals.add(item.payment.method, item.payment.amount)
    return totals


def group_by_doctor(
    attributed: Iterable[AttributedPayment],
    doctors: Mapping[int, DoctorInfo],
    bucket_key: Optional[Callable[[datetime], str]] = None,
) -> List[DoctorSummary]:
    """
    Per-doctor breakdown, sorted by display name then id.

    Unattributed payments are skipped; they only count in the global totals.
    When bucket_key is given every doctor also carries buckets keyed by
    bucket_key(paid_at), in key order.
    """
    summaries: Dict[int, DoctorSummary] = {}
    buckets: Dict[int, Dict[str, BucketSummary]] = {}

    for item in attributed:
        if item.doctor_id is None:
            continue
        summary = summaries.get(item.doctor_id)
        if summary is None:
            info = doctors.get(item.doctor_id)
            summary = DoctorSummary(
                doctor_id=item.doctor_id,
                doctor_name=info.display_name if info else '',
                specialty=info.specialty if info else '',
            )
            summaries[item.doctor_id] = summary
            buckets[item.doctor_id] = {}
        summary.totals.add(item.payment.method, item.payment.amount)

        if bucket_key is not None:
            key = bucket_key(item.payment.paid_at)
            bucket = buckets[item.doctor_id].setdefault(key, BucketSummary(key=key))
            bucket.totals.add(item.payment.method, item.payment.amount)

    for doctor_id, summary in summaries.items():
        summary.buckets = [buckets[doctor_id][key] for key in sorted(buckets[doctor_id])]

    return sorted(summaries.values(), key=lambda s: (s.doctor_name, s.doctor_id))
