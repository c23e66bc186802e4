"""
Reporting Module (``gls_modules.reporting``).

Read-only reports and role dashboards over bills, proposals and payments.
"""

from gls_modules.reporting.models import (
    AccountsDashboard,
    AgeingReport,
    AgeingRow,
    CashFlowDay,
    CashFlowProjection,
    DailySummary,
    GodownDashboard,
    OutstandingLine,
    OwnerDashboard,
    PaymentHistory,
    PurchaseDashboard,
    UrgencyTotals,
)
from gls_modules.reporting.service import ReportingService

__all__ = [
    "AccountsDashboard",
    "AgeingReport",
    "AgeingRow",
    "CashFlowDay",
    "CashFlowProjection",
    "DailySummary",
    "GodownDashboard",
    "OutstandingLine",
    "OwnerDashboard",
    "PaymentHistory",
    "PurchaseDashboard",
    "UrgencyTotals",
    "ReportingService",
]
