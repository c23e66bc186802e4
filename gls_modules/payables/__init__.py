"""
Payables Module (``gls_modules.payables``).

Responsibility
--------------
Vendor master and inward (payable) bills: creation by the godown,
owner-only edits and cancellation, and the settlement hook used by the
payments module when a UTR confirms a payment leg.

Architecture position
---------------------
**Modules layer** -- service facade over ``gls_engines.bill_lifecycle``
for every derived field, with persistence through ``orm.py``.

Invariants enforced
-------------------
* ``0 <= paid_amount <= amount`` on every bill.
* ``payment_status`` always equals ``payment_status(amount, paid_amount)``.
* ``due_date`` always equals ``invoice_date + credit_days``.
* Bill edits are compare-and-swap on ``version``.
"""

from gls_modules.payables.models import (
    PayableBill,
    PayableBillStatus,
    PayableBillUpdate,
    Vendor,
    VendorUpdate,
)
from gls_modules.payables.service import PayablesService
from gls_modules.payables.workflows import PAYABLE_BILL_WORKFLOW

__all__ = [
    "PayableBill",
    "PayableBillStatus",
    "PayableBillUpdate",
    "Vendor",
    "VendorUpdate",
    "PayablesService",
    "PAYABLE_BILL_WORKFLOW",
]
