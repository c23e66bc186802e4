"""
Module: gls_engines.bill_lifecycle
Responsibility:
    Pure arithmetic and status rules shared by payable (inward) and
    receivable (outward) bills: due dates, outstanding amounts, days
    overdue, settlement status and the one-time delivery status seed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by the payables,
    receivables, proposals, payments and reporting modules so that every
    derived field is computed by exactly one function.

Invariants enforced:
    - ``0 <= settled <= amount`` is checked by ``can_settle`` before any
      settlement is applied.
    - ``payment_status`` is a pure function of (amount, settled); a stored
      status is only ever a cache of this value.

Failure modes:
    - ValueError from ``due_date`` when credit_days is outside 0..365.

Usage:
    from gls_engines.bill_lifecycle import due_date, payment_status

    due_date(date(2024, 1, 1), 30)                  # date(2024, 1, 31)
    payment_status(Decimal("10000"), Decimal("9500"))  # SettlementStatus.PARTIAL
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

MAX_CREDIT_DAYS = 365


class SettlementStatus(str, Enum):
    """Payment status of a payable bill / collection status of a receivable bill."""
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"


class DeliveryStatus(str, Enum):
    """Physical delivery state of an outward bill.  Independent of collection."""
    PENDING = "pending"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"


# Delivery mode is free text (e.g. "courier", "transport"); only pickup is special.
PICKUP_MODE = "pickup"


def due_date(base_date: date, credit_days: int) -> date:
    """``base_date + credit_days`` days.

    Raises:
        ValueError: if credit_days is not an integer in 0..365.
    """
    if isinstance(credit_days, bool) or not isinstance(credit_days, int):
        raise ValueError(f"credit_days must be an integer, got {credit_days!r}")
    if not 0 <= credit_days <= MAX_CREDIT_DAYS:
        raise ValueError(f"credit_days must be between 0 and {MAX_CREDIT_DAYS}")
    return base_date + timedelta(days=credit_days)


def outstanding(amount: Decimal, settled: Decimal) -> Decimal:
    """Amount still owed: ``amount - settled``."""
    return amount - settled


def days_overdue(due: date, today: date) -> int:
    """Whole days past due; 0 when not yet due."""
    return max(0, (today - due).days)


def payment_status(amount: Decimal, settled: Decimal) -> SettlementStatus:
    """Derive the settlement status.

    ``paid`` once nothing is outstanding, ``open`` while nothing has been
    settled, ``partial`` otherwise.  A zero-amount bill is paid.
    """
    if outstanding(amount, settled) <= 0:
        return SettlementStatus.PAID
    if settled == 0:
        return SettlementStatus.OPEN
    return SettlementStatus.PARTIAL


def can_settle(amount: Decimal, settled: Decimal, increment: Decimal) -> bool:
    """True if adding ``increment`` keeps ``0 <= settled <= amount``."""
    if increment < 0:
        return False
    return settled + increment <= amount


def initial_delivery_status(
    delivery_mode: str | None,
    delivery_person: str | None = None,
    courier_name: str | None = None,
) -> DeliveryStatus:
    """Seed the delivery status of a new outward bill.

    Pickup is delivered on the spot; a named delivery person or courier
    means the goods have left; anything else waits.  Applied once at
    creation, never re-evaluated.
    """
    if delivery_mode and delivery_mode.strip().lower() == PICKUP_MODE:
        return DeliveryStatus.DELIVERED
    if (delivery_person and delivery_person.strip()) or (courier_name and courier_name.strip()):
        return DeliveryStatus.DISPATCHED
    return DeliveryStatus.PENDING
