"""
Proposal Domain Models (``gls_modules.proposals.models``).

Responsibility
--------------
Frozen value objects for payment proposals and their items, the command
objects carrying accounts and owner decisions, and the available-bills
projection used by purchase to build a proposal.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  Status enums live in
``gls_engines.proposal_status`` next to the derivation rules.

Invariants enforced
-------------------
* ``ProposalItem.status`` is a snapshot of the stored composite status,
  which the service only ever writes through ``derive_item_status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from gls_engines.aging import BucketTotal
from gls_engines.proposal_status import (
    AccountsAction,
    AccountsStatus,
    ItemStatus,
    OwnerAction,
    OwnerStatus,
    ProposalStatus,
)


@dataclass(frozen=True)
class ProposalItemInput:
    """One bill purchase wants paid, with the amount and urgency note."""
    bill_id: UUID
    proposed_amount: Decimal
    remarks: str | None = None


@dataclass(frozen=True)
class AccountsDecision:
    """Accounts verdict on one item.  ``action`` is approve, hold or reject."""
    item_id: UUID
    action: AccountsAction | str
    amount: Decimal | None = None
    reason: str | None = None


@dataclass(frozen=True)
class OwnerDecision:
    """Owner verdict on one item.  ``action`` is approve, defer or reject."""
    item_id: UUID
    action: OwnerAction | str
    amount: Decimal | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ProposalItem:
    id: UUID
    proposal_id: UUID
    bill_id: UUID
    line_number: int
    proposed_amount: Decimal
    accounts_status: AccountsStatus
    owner_status: OwnerStatus
    status: ItemStatus
    is_settled: bool = False
    urgency_remarks: str | None = None
    accounts_amount: Decimal | None = None
    accounts_reason: str | None = None
    accounts_by_id: UUID | None = None
    accounts_at: datetime | None = None
    owner_amount: Decimal | None = None
    owner_reason: str | None = None
    owner_by_id: UUID | None = None
    owner_at: datetime | None = None


@dataclass(frozen=True)
class Proposal:
    """A batch request to pay vendor bills, with its items in line order."""
    id: UUID
    proposal_number: str
    proposal_date: date
    payment_date: date
    total_amount: Decimal
    status: ProposalStatus
    created_by_id: UUID
    remarks: str | None = None
    submitted_at: datetime | None = None
    items: tuple[ProposalItem, ...] = field(default_factory=tuple)

    @property
    def approved_items(self) -> tuple[ProposalItem, ...]:
        return tuple(i for i in self.items if i.owner_status is OwnerStatus.APPROVED)


class AvailableBillsFilter(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_WEEK = "due_week"
    CARRY_FORWARD = "carry_forward"


@dataclass(frozen=True)
class AvailableBill:
    """An inward bill that may be put on a new proposal.

    ``age_days`` is negative while the bill is not yet due.
    """
    bill_id: UUID
    bill_number: str
    vendor_id: UUID
    vendor_code: str
    vendor_name: str
    invoice_date: date
    due_date: date
    credit_days: int
    amount: Decimal
    paid_amount: Decimal
    outstanding: Decimal
    age_days: int
    carry_forward_count: int = 0


@dataclass(frozen=True)
class AvailableBillsSummary:
    """Urgency totals over every eligible bill, whatever the filter."""
    overdue: BucketTotal = field(default_factory=BucketTotal)
    due_today: BucketTotal = field(default_factory=BucketTotal)
    due_this_week: BucketTotal = field(default_factory=BucketTotal)


@dataclass(frozen=True)
class AvailableBills:
    bills: tuple[AvailableBill, ...]
    summary: AvailableBillsSummary
    as_of: date
