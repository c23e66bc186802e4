"""
Receivables Domain Models (``gls_modules.receivables.models``).

Frozen value objects for customers and outward bills, plus the partial
update commands accepted by ``ReceivablesService``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from gls_engines.bill_lifecycle import DeliveryStatus, SettlementStatus, outstanding
from gls_modules._helpers import PartialUpdate


class ReceivableBillStatus(str, Enum):
    """Must align with ``workflows.RECEIVABLE_BILL_WORKFLOW.states``."""
    ACTIVE = "active"
    PAID = "paid"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Customer:
    """A buyer.  Never deleted, only deactivated."""
    id: UUID
    code: str
    name: str
    contact_person: str | None = None
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
    credit_limit: Decimal = Decimal("0")
    default_credit_days: int = 30
    is_active: bool = True


@dataclass(frozen=True)
class ReceivableBill:
    """An outward bill owed by a customer.

    Guarantees: ``0 <= collected_amount <= amount``.
    """
    id: UUID
    customer_id: UUID
    invoice_number: str
    invoice_date: date
    amount: Decimal
    collected_amount: Decimal
    credit_days: int
    due_date: date
    dispatched_by: str
    status: ReceivableBillStatus
    collection_status: SettlementStatus
    delivery_status: DeliveryStatus
    created_by_id: UUID
    delivery_mode: str | None = None
    delivery_person: str | None = None
    courier_name: str | None = None
    tracking_number: str | None = None
    delivered_at: datetime | None = None
    remarks: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None
    cancel_reason: str | None = None

    def __post_init__(self) -> None:
        if self.collected_amount < 0 or self.collected_amount > self.amount:
            raise ValueError(
                f"collected_amount {self.collected_amount} outside 0..{self.amount}"
            )

    @property
    def outstanding(self) -> Decimal:
        return outstanding(self.amount, self.collected_amount)


@dataclass(frozen=True)
class ReceivableBillUpdate(PartialUpdate):
    """Owner edit of an active bill.  ``None`` leaves a field as is."""
    invoice_number: str | None = None
    invoice_date: date | None = None
    amount: Decimal | None = None
    credit_days: int | None = None
    dispatched_by: str | None = None
    delivery_mode: str | None = None
    delivery_person: str | None = None
    courier_name: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class CustomerUpdate(PartialUpdate):
    name: str | None = None
    contact_person: str | None = None
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
    credit_limit: Decimal | None = None
    default_credit_days: int | None = None
