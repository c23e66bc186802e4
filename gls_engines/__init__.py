"""
Module: gls_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: bill lifecycle arithmetic, proposal status
    derivation and ageing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gls_kernel logging/types and sibling engine modules.
    MUST NOT import gls_services or gls_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" is always passed in by the calling service.
    - Decimal-only arithmetic for amounts.
    - Determinism: identical inputs always produce identical outputs.
"""

from gls_engines.aging import (
    PAYABLE_BUCKETS,
    RECEIVABLE_BUCKETS,
    AgeBucket,
    AgedItem,
    AgingCalculator,
    AgingReport,
    BucketTotal,
)
from gls_engines.bill_lifecycle import (
    DeliveryStatus,
    SettlementStatus,
    days_overdue,
    due_date,
    initial_delivery_status,
    outstanding,
    payment_status,
)
from gls_engines.proposal_status import (
    AccountsAction,
    AccountsStatus,
    ItemStatus,
    OwnerAction,
    OwnerStatus,
    ProposalStatus,
    derive_item_status,
    derive_proposal_outcome,
    item_blocks_bill,
)

__all__ = [
    "AgeBucket",
    "AgedItem",
    "AgingCalculator",
    "AgingReport",
    "BucketTotal",
    "PAYABLE_BUCKETS",
    "RECEIVABLE_BUCKETS",
    "DeliveryStatus",
    "SettlementStatus",
    "days_overdue",
    "due_date",
    "initial_delivery_status",
    "outstanding",
    "payment_status",
    "AccountsAction",
    "AccountsStatus",
    "ItemStatus",
    "OwnerAction",
    "OwnerStatus",
    "ProposalStatus",
    "derive_item_status",
    "derive_proposal_outcome",
    "item_blocks_bill",
]
