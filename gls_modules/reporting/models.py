"""
Reporting DTOs (``gls_modules.reporting.models``).

Frozen results of the read-only reports and role dashboards.  Every
count/amount pair is a ``BucketTotal`` so that the two are always taken
from the same set of bills.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from gls_engines.aging import BucketTotal
from gls_engines.proposal_status import ProposalStatus


@dataclass(frozen=True)
class BillSnapshot:
    """An open bill as the reports see it: outstanding amount and due date."""
    bill_id: UUID
    document_number: str
    counterparty_id: UUID
    counterparty_code: str
    counterparty_name: str
    invoice_date: date
    due_date: date
    amount: Decimal
    settled_amount: Decimal
    outstanding: Decimal
    contact: str | None = None


@dataclass(frozen=True)
class AgeingRow:
    """Bucketed outstanding of one counterparty."""
    counterparty_id: UUID
    counterparty_code: str
    counterparty_name: str
    buckets: dict[str, BucketTotal]
    total: BucketTotal


@dataclass(frozen=True)
class AgeingReport:
    """
    Counterparty-wise ageing.

    Guarantees:
        - ``bucket_labels`` lists every bucket key in display order.
        - rows are ordered by total outstanding, largest first.
        - ``totals`` sums the rows bucket by bucket.
    """
    report_type: str
    as_of: date
    bucket_labels: tuple[tuple[str, str], ...]
    rows: tuple[AgeingRow, ...]
    totals: dict[str, BucketTotal]
    grand_total: BucketTotal


@dataclass(frozen=True)
class OutstandingLine:
    """One open bill in an outstanding statement."""
    counterparty_code: str
    counterparty_name: str
    document_number: str
    invoice_date: date
    due_date: date
    amount: Decimal
    settled_amount: Decimal
    outstanding: Decimal
    days_overdue: int
    contact: str | None = None


@dataclass(frozen=True)
class PaymentHistoryLine:
    payment_date: date
    payment_number: str
    vendor_code: str
    vendor_name: str
    bill_number: str
    amount: Decimal
    utr_number: str | None
    bank_name: str


@dataclass(frozen=True)
class PaymentHistory:
    lines: tuple[PaymentHistoryLine, ...]
    payment_count: int
    vendor_count: int
    bill_count: int
    total_amount: Decimal


@dataclass(frozen=True)
class DailySummary:
    """Bills logged and payments made on one day."""
    day: date
    inward: BucketTotal
    outward: BucketTotal
    payments: BucketTotal
    vendors_paid: int


@dataclass(frozen=True)
class CashFlowDay:
    day: date
    expected_inflow: Decimal
    expected_outflow: Decimal

    @property
    def net(self) -> Decimal:
        return self.expected_inflow - self.expected_outflow


@dataclass(frozen=True)
class CashFlowProjection:
    """Open receivables and payables by due date, today through today + days.

    Bills already overdue are not included; they show in the ageing reports.
    """
    start: date
    days: tuple[CashFlowDay, ...]

    @property
    def total_inflow(self) -> Decimal:
        return sum((d.expected_inflow for d in self.days), Decimal("0"))

    @property
    def total_outflow(self) -> Decimal:
        return sum((d.expected_outflow for d in self.days), Decimal("0"))


@dataclass(frozen=True)
class ProposalSummary:
    proposal_id: UUID
    proposal_number: str
    proposal_date: date
    status: ProposalStatus
    total_amount: Decimal
    item_count: int


@dataclass(frozen=True)
class UrgencyTotals:
    """Open payables by urgency.  ``due_this_week`` excludes today."""
    overdue: BucketTotal = field(default_factory=BucketTotal)
    due_today: BucketTotal = field(default_factory=BucketTotal)
    due_this_week: BucketTotal = field(default_factory=BucketTotal)


@dataclass(frozen=True)
class GodownDashboard:
    inward_today: BucketTotal
    outward_today: BucketTotal
    delivered_today: int
    in_transit: int
    inward_week: int
    inward_month: int


@dataclass(frozen=True)
class PurchaseDashboard:
    payables: UrgencyTotals
    carry_forward: BucketTotal
    paid_yesterday: Decimal
    paid_yesterday_vendors: int
    paid_month: Decimal
    my_proposals: tuple[ProposalSummary, ...]


@dataclass(frozen=True)
class AccountsDashboard:
    pending_validation: BucketTotal
    awaiting_owner: BucketTotal
    on_hold: BucketTotal
    paid_today: Decimal
    pending_utr_count: int
    receivables_ageing: dict[str, BucketTotal]
    proposals_to_validate: tuple[ProposalSummary, ...]


@dataclass(frozen=True)
class OwnerDashboard:
    expected_inflow: Decimal
    pending_payables: Decimal
    pending_approval: BucketTotal
    payables: UrgencyTotals
    proposals_to_decide: tuple[ProposalSummary, ...]
    overdue_receivables: tuple[OutstandingLine, ...]
