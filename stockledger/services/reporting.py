"""
Read-only projections over ledger rows.

Every function takes already-loaded adjustments and returns plain values; no
function here queries or mutates anything.
"""
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from stockledger.models.adjustment import AdjustmentStatus, AdjustmentType, StockAdjustment


@dataclass
class Totals:
    count: int = 0
    quantity: int = 0
    value: Decimal = field(default_factory=lambda: Decimal("0.00"))

    def add(self, adjustment: StockAdjustment) -> None:
        self.count += 1
        self.quantity += adjustment.total_quantity
        self.value += adjustment.total_value


@dataclass(frozen=True)
class AdjustmentSummary:
    total: int
    total_increase: int
    total_decrease: int
    total_value: Decimal
    pending: int
    approved: int
    rejected: int
    reversed: int
    this_month: int


def filter_adjustments(
    adjustments: Iterable[StockAdjustment],
    *,
    search: str | None = None,
    adjustment_type: AdjustmentType | None = None,
    status: AdjustmentStatus | None = None,
    reason: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[StockAdjustment]:
    term = search.strip().lower() if search else ""
    matched = []
    for adjustment in adjustments:
        if term and not (
            term in adjustment.adjustment_no.lower()
            or term in adjustment.reason.lower()
            or term in adjustment.created_by.lower()
        ):
            continue
        if adjustment_type is not None and adjustment.adjustment_type != adjustment_type:
            continue
        if status is not None and adjustment.status != status:
            continue
        if reason and adjustment.reason != reason:
            continue
        if date_from is not None and adjustment.date < date_from:
            continue
        if date_to is not None and adjustment.date > date_to:
            continue
        matched.append(adjustment)
    return matched


def summarize(adjustments: Iterable[StockAdjustment], today: date | None = None) -> AdjustmentSummary:
    """Headline figures; quantity and value only count approved records."""
    today = today or date.today()
    rows = list(adjustments)
    approved = [a for a in rows if a.status == AdjustmentStatus.APPROVED]
    return AdjustmentSummary(
        total=len(rows),
        total_increase=sum(a.total_quantity for a in approved if a.adjustment_type == AdjustmentType.INCREASE),
        total_decrease=sum(a.total_quantity for a in approved if a.adjustment_type == AdjustmentType.DECREASE),
        total_value=sum((a.total_value for a in approved), Decimal("0.00")),
        pending=sum(1 for a in rows if a.status == AdjustmentStatus.PENDING),
        approved=len(approved),
        rejected=sum(1 for a in rows if a.status == AdjustmentStatus.REJECTED),
        reversed=sum(1 for a in rows if a.status == AdjustmentStatus.REVERSED),
        this_month=sum(1 for a in rows if a.date.year == today.year and a.date.month == today.month),
    )


def totals_by_type(
    adjustments: Iterable[StockAdjustment],
    statuses: set[AdjustmentStatus] | None = None,
) -> dict[AdjustmentType, Totals]:
    totals = {adjustment_type: Totals() for adjustment_type in AdjustmentType}
    for adjustment in adjustments:
        if statuses is not None and adjustment.status not in statuses:
            continue
        totals[adjustment.adjustment_type].add(adjustment)
    return totals


def totals_by_status(adjustments: Iterable[StockAdjustment]) -> dict[AdjustmentStatus, Totals]:
    totals = {status: Totals() for status in AdjustmentStatus}
    for adjustment in adjustments:
        totals[adjustment.status].add(adjustment)
    return totals


def _bucket_start(value: date, granularity: str) -> date:
    if granularity == "month":
        return date(value.year, value.month, 1)
    if granularity == "week":
        return value - timedelta(days=value.weekday())
    return value


def _bucket_label(value: date, granularity: str) -> str:
    if granularity == "month":
        return value.strftime("%Y-%m")
    if granularity == "week":
        iso = value.isocalendar()
        return f"{iso.year}-W{iso.week:02d}"
    return value.strftime("%Y-%m-%d")


def totals_by_period(
    adjustments: Iterable[StockAdjustment],
    granularity: str = "month",
    statuses: set[AdjustmentStatus] | None = None,
) -> list[tuple[date, str, Totals]]:
    buckets: dict[date, Totals] = {}
    for adjustment in adjustments:
        if statuses is not None and adjustment.status not in statuses:
            continue
        start = _bucket_start(adjustment.date, granularity)
        buckets.setdefault(start, Totals()).add(adjustment)
    return [(start, _bucket_label(start, granularity), buckets[start]) for start in sorted(buckets)]


def distinct_reasons(adjustments: Iterable[StockAdjustment]) -> list[str]:
    seen: dict[str, None] = {}
    for adjustment in adjustments:
        seen.setdefault(adjustment.reason, None)
    return list(seen)
