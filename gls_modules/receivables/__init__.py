"""
Receivables Module (``gls_modules.receivables``).

Customer master and outward (receivable) bills: dispatch by the godown,
delivery tracking, collections recorded by accounts, and owner-only
edits and cancellation.  Delivery status is tracked independently of
collection status.
"""

from gls_modules.receivables.models import (
    Customer,
    CustomerUpdate,
    ReceivableBill,
    ReceivableBillStatus,
    ReceivableBillUpdate,
)
from gls_modules.receivables.service import ReceivablesService
from gls_modules.receivables.workflows import DELIVERY_WORKFLOW, RECEIVABLE_BILL_WORKFLOW

__all__ = [
    "Customer",
    "CustomerUpdate",
    "ReceivableBill",
    "ReceivableBillStatus",
    "ReceivableBillUpdate",
    "ReceivablesService",
    "DELIVERY_WORKFLOW",
    "RECEIVABLE_BILL_WORKFLOW",
]
