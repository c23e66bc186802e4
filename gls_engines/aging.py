"""
Module: gls_engines.aging
Responsibility:
    Classify outstanding bills into days-overdue buckets and aggregate
    count and amount per bucket, per counterparty and overall.  Used by
    the payables and receivables ageing reports and the dashboards.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Purity: "today" is always passed in.
    - Decimal-only arithmetic for amounts.
    - Counts and amounts are accumulated in the same pass over the same
      items, so they can never disagree.
    - Upper bucket bounds are inclusive: 15 days overdue is "1-15",
      16 days overdue is "16-21".  Anything not yet due (age <= 0) is
      "Current".

Failure modes:
    - ValueError when an age does not fall into any configured bucket
      (only possible with a malformed custom bucket set).

Usage:
    from gls_engines.aging import AgingCalculator, RECEIVABLE_BUCKETS

    calculator = AgingCalculator()
    item = calculator.age_item(
        document_id=bill.id, document_date=bill.invoice_date,
        due_date=bill.due_date, amount=bill.outstanding,
        as_of_date=today, buckets=RECEIVABLE_BUCKETS,
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from gls_engines.tracer import traced_engine
from gls_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    Definition of an ageing bucket.

    Contract:
        Frozen dataclass representing a contiguous, inclusive range of days.
    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    key: str
    label: str
    min_days: int
    max_days: int | None  # None = unbounded (e.g. 90+)

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days

    @property
    def is_unbounded(self) -> bool:
        return self.max_days is None


# Outward bills: customers are chased early and often.
RECEIVABLE_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("current", "Current", 0, 0),
    AgeBucket("1_15", "1-15", 1, 15),
    AgeBucket("16_21", "16-21", 16, 21),
    AgeBucket("22_30", "22-30", 22, 30),
    AgeBucket("30_plus", "30+", 31, None),
)

# Inward bills: vendor credit is managed in monthly windows.
PAYABLE_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("current", "Current", 0, 0),
    AgeBucket("1_30", "1-30", 1, 30),
    AgeBucket("31_60", "31-60", 31, 60),
    AgeBucket("61_90", "61-90", 61, 90),
    AgeBucket("90_plus", "90+", 91, None),
)


@dataclass(frozen=True)
class BucketTotal:
    """Count and outstanding amount of one bucket."""
    count: int = 0
    amount: Decimal = Decimal("0")

    def add(self, amount: Decimal) -> BucketTotal:
        return BucketTotal(count=self.count + 1, amount=self.amount + amount)


@dataclass(frozen=True)
class AgedItem:
    """
    A bill with its age classification.

    Guarantees:
        - ``age_days`` and ``bucket`` are consistent (bucket.contains(age_days),
          or age_days <= 0 mapped to the current bucket).
    """

    document_id: UUID | str
    document_type: str
    document_date: date
    due_date: date
    amount: Decimal
    age_days: int
    bucket: AgeBucket
    counterparty_id: UUID | str | None = None
    counterparty_name: str | None = None
    reference: str | None = None

    @property
    def is_overdue(self) -> bool:
        return self.age_days > 0

    @property
    def days_past_due(self) -> int:
        return max(0, self.age_days)


@dataclass(frozen=True)
class AgingReport:
    """
    Complete ageing snapshot.

    Guarantees:
        - Every bucket of ``buckets`` appears in every total, even when empty.
        - ``total()`` equals the sum over ``bucket_totals()``.
    """

    as_of_date: date
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedItem, ...]
    report_type: str = "payables"

    @property
    def item_count(self) -> int:
        return len(self.items)

    def _empty(self) -> dict[str, BucketTotal]:
        return {b.key: BucketTotal() for b in self.buckets}

    def bucket_totals(self) -> dict[str, BucketTotal]:
        """Count and amount per bucket key, over all items."""
        result = self._empty()
        for item in self.items:
            result[item.bucket.key] = result[item.bucket.key].add(item.amount)
        return result

    def totals_by_counterparty(self) -> dict[UUID | str, dict[str, BucketTotal]]:
        """Count and amount per bucket key, per counterparty."""
        result: dict[UUID | str, dict[str, BucketTotal]] = {}
        for item in self.items:
            if item.counterparty_id is None:
                continue
            per_party = result.setdefault(item.counterparty_id, self._empty())
            per_party[item.bucket.key] = per_party[item.bucket.key].add(item.amount)
        return result

    def total(self) -> BucketTotal:
        total = BucketTotal()
        for item in self.items:
            total = total.add(item.amount)
        return total

    def items_in_bucket(self, bucket_key: str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.bucket.key == bucket_key)

    def items_for_counterparty(self, counterparty_id: UUID | str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.counterparty_id == counterparty_id)

    def overdue_amount(self) -> Decimal:
        return sum((i.amount for i in self.items if i.is_overdue), Decimal("0"))


class AgingCalculator:
    """
    Calculate ageing for dated bills.

    Contract:
        Pure functions -- no I/O, no database access.
    Guarantees:
        - ``classify`` maps every age to exactly one bucket of a well-formed
          bucket sequence; ages <= 0 map to the current bucket.
    """

    DEFAULT_BUCKETS = PAYABLE_BUCKETS

    def calculate_age(self, due_date: date, as_of_date: date) -> int:
        """Days past ``due_date`` (negative when not yet due)."""
        return (as_of_date - due_date).days

    def classify(
        self,
        age_days: int,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgeBucket:
        """
        Classify an age into a bucket.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        if age_days < 0:
            for bucket in buckets:
                if bucket.min_days == 0:
                    return bucket
            return buckets[0]

        for bucket in buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    def age_item(
        self,
        document_id: UUID | str,
        document_date: date,
        due_date: date,
        amount: Decimal,
        as_of_date: date,
        document_type: str = "bill",
        counterparty_id: UUID | str | None = None,
        counterparty_name: str | None = None,
        reference: str | None = None,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgedItem:
        """Create an aged item (calculate_age + classify)."""
        age_days = self.calculate_age(due_date, as_of_date)
        return AgedItem(
            document_id=document_id,
            document_type=document_type,
            document_date=document_date,
            due_date=due_date,
            amount=amount,
            age_days=age_days,
            bucket=self.classify(age_days, buckets),
            counterparty_id=counterparty_id,
            counterparty_name=counterparty_name,
            reference=reference,
        )

    @traced_engine("aging", "1.0", fingerprint_fields=("documents", "as_of_date", "report_type"))
    def generate_report_from_documents(
        self,
        documents: Sequence[dict],
        as_of_date: date,
        buckets: Sequence[AgeBucket] | None = None,
        report_type: str = "payables",
    ) -> AgingReport:
        """
        Build an ageing report from plain bill snapshots.

        Args:
            documents: dicts with ``document_id``, ``document_date``,
                ``due_date``, ``amount`` (outstanding) and optionally
                ``document_type``, ``counterparty_id``,
                ``counterparty_name``, ``reference``.
            as_of_date: Report date ("today").
            buckets: Bucket set; PAYABLE_BUCKETS when omitted.
            report_type: "payables" or "receivables".
        """
        t0 = time.monotonic()
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        aged_items = tuple(
            self.age_item(
                document_id=doc["document_id"],
                document_date=doc["document_date"],
                due_date=doc["due_date"],
                amount=doc["amount"],
                as_of_date=as_of_date,
                document_type=doc.get("document_type", "bill"),
                counterparty_id=doc.get("counterparty_id"),
                counterparty_name=doc.get("counterparty_name"),
                reference=doc.get("reference"),
                buckets=buckets,
            )
            for doc in documents
        )

        logger.info("aging_report_generated", extra={
            "as_of_date": as_of_date.isoformat(),
            "report_type": report_type,
            "item_count": len(aged_items),
            "bucket_count": len(buckets),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })

        return AgingReport(
            as_of_date=as_of_date,
            buckets=tuple(buckets),
            items=aged_items,
            report_type=report_type,
        )
