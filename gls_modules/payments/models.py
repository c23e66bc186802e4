"""
Payment Domain Models (``gls_modules.payments.models``).

Frozen value objects for company bank accounts, payment batches and their
per-bill legs, the UTR entries that settle those legs, and the read-only
projections used for UTR follow-up and the bank export.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PaymentStatus(str, Enum):
    """Must align with ``workflows.PAYMENT_WORKFLOW.states``."""
    PENDING = "pending"
    PROCESSED = "processed"
    CONFIRMED = "confirmed"


class PaymentDetailStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class BankAccount:
    """A company account that funds payment batches."""
    id: UUID
    bank_name: str
    account_number: str
    ifsc_code: str
    bank_type: str
    is_active: bool = True


@dataclass(frozen=True)
class PaymentDetail:
    """One bill leg of a payment.  Confirmed once its UTR is recorded."""
    id: UUID
    payment_id: UUID
    bill_id: UUID
    line_number: int
    amount: Decimal
    status: PaymentDetailStatus
    proposal_item_id: UUID | None = None
    utr_number: str | None = None
    confirmed_at: datetime | None = None


@dataclass(frozen=True)
class Payment:
    """
    A batch of bill payments funded from one bank account.

    Guarantees:
        - ``total_amount`` equals the sum of detail amounts at creation.
        - ``status`` is confirmed iff every detail carries a UTR.
    """
    id: UUID
    payment_number: str
    payment_date: date
    total_amount: Decimal
    bank_account_id: UUID
    status: PaymentStatus
    created_by_id: UUID
    proposal_id: UUID | None = None
    details: tuple[PaymentDetail, ...] = field(default_factory=tuple)

    @property
    def pending_details(self) -> tuple[PaymentDetail, ...]:
        return tuple(d for d in self.details if d.status is PaymentDetailStatus.PENDING)


@dataclass(frozen=True)
class UtrEntry:
    """Bank transfer reference for one payment detail."""
    detail_id: UUID
    utr_number: str


@dataclass(frozen=True)
class PendingUtrPayment:
    """A payment still waiting for at least one UTR."""
    payment_id: UUID
    payment_number: str
    payment_date: date
    total_amount: Decimal
    status: PaymentStatus
    bank_name: str
    pending_count: int
    completed_count: int


@dataclass(frozen=True)
class BankExportRow:
    """One beneficiary line of a bank upload, in vendor name order."""
    beneficiary_name: str
    account_number: str | None
    ifsc_code: str | None
    bill_number: str
    amount: Decimal
    utr_number: str | None
    bank_type: str
