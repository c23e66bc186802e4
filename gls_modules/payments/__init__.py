"""
Payments Module (``gls_modules.payments``).

Company bank accounts, payment batches generated from approved
proposals, and UTR settlement that marks bills and proposal items paid.
"""

from gls_modules.payments.models import (
    BankAccount,
    BankExportRow,
    Payment,
    PaymentDetail,
    PaymentDetailStatus,
    PaymentStatus,
    PendingUtrPayment,
    UtrEntry,
)
from gls_modules.payments.service import PaymentsService
from gls_modules.payments.workflows import PAYMENT_WORKFLOW

__all__ = [
    "BankAccount",
    "BankExportRow",
    "Payment",
    "PaymentDetail",
    "PaymentDetailStatus",
    "PaymentStatus",
    "PendingUtrPayment",
    "UtrEntry",
    "PaymentsService",
    "PAYMENT_WORKFLOW",
]
