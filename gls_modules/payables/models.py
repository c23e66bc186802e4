"""
Payables Domain Models (``gls_modules.payables.models``).

Responsibility
--------------
Frozen value objects for vendors and inward bills, plus the command
objects that carry partial updates into ``PayablesService``.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.

Invariants enforced
-------------------
* All monetary fields are ``Decimal``.
* ``PayableBill.__post_init__`` rejects ``paid_amount`` outside
  ``0..amount``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from gls_engines.bill_lifecycle import SettlementStatus, outstanding
from gls_modules._helpers import PartialUpdate


class PayableBillStatus(str, Enum):
    """Must align with ``workflows.PAYABLE_BILL_WORKFLOW.states``."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Vendor:
    """A supplier of goods.  Never deleted, only deactivated."""
    id: UUID
    code: str
    name: str
    phone: str | None = None
    mobile: str | None = None
    whatsapp: str | None = None
    email: str | None = None
    gstin: str | None = None
    pan: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    bank_name: str | None = None
    bank_branch: str | None = None
    account_number: str | None = None
    ifsc_code: str | None = None
    account_type: str = "current"
    default_credit_days: int = 30
    is_active: bool = True


@dataclass(frozen=True)
class PayableBill:
    """An inward bill owed to a vendor.

    Contract: frozen snapshot of the stored row.
    Guarantees: ``0 <= paid_amount <= amount``.
    """
    id: UUID
    vendor_id: UUID
    bill_number: str
    invoice_date: date
    receiving_date: date
    amount: Decimal
    paid_amount: Decimal
    credit_days: int
    due_date: date
    checked_by: str
    status: PayableBillStatus
    payment_status: SettlementStatus
    version: int
    created_by_id: UUID
    remarks: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None
    cancel_reason: str | None = None

    def __post_init__(self) -> None:
        if self.paid_amount < 0 or self.paid_amount > self.amount:
            raise ValueError(
                f"paid_amount {self.paid_amount} outside 0..{self.amount}"
            )

    @property
    def outstanding(self) -> Decimal:
        return outstanding(self.amount, self.paid_amount)

    @property
    def is_cancelled(self) -> bool:
        return self.status is PayableBillStatus.CANCELLED


@dataclass(frozen=True)
class PayableBillUpdate(PartialUpdate):
    """Owner edit of an active, unpaid bill.  ``None`` leaves a field as is."""
    bill_number: str | None = None
    invoice_date: date | None = None
    receiving_date: date | None = None
    amount: Decimal | None = None
    credit_days: int | None = None
    checked_by: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class VendorUpdate(PartialUpdate):
    name: str | None = None
    phone: str | None = None
    mobile: str | None = None
    whatsapp: str | None = None
    email: str | None = None
    gstin: str | None = None
    pan: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    bank_name: str | None = None
    bank_branch: str | None = None
    account_number: str | None = None
    ifsc_code: str | None = None
    account_type: str | None = None
    default_credit_days: int | None = None
