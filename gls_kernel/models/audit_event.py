"""
Module: gls_kernel.models.audit_event
Responsibility: ORM persistence for the append-only audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit rows are append-only; services never UPDATE or DELETE them.
    - seq is strictly increasing, allocated by SequenceService.

Audit relevance:
    Every state change of a bill, counterparty, proposal item, proposal
    or payment writes exactly one AuditEvent in the same transaction as
    the change.  A repeated identical decision changes nothing and so
    writes nothing.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from gls_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Counterparties
    COUNTERPARTY_CREATED = "counterparty_created"
    COUNTERPARTY_UPDATED = "counterparty_updated"
    COUNTERPARTY_DEACTIVATED = "counterparty_deactivated"

    # Bills
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_CANCELLED = "bill_cancelled"
    BILL_DELIVERY_UPDATED = "bill_delivery_updated"
    BILL_COLLECTION_RECORDED = "bill_collection_recorded"

    # Proposals
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_SUBMITTED = "proposal_submitted"
    PROPOSAL_DELETED = "proposal_deleted"
    PROPOSAL_STATUS_CHANGED = "proposal_status_changed"
    ITEM_ACCOUNTS_DECIDED = "item_accounts_decided"
    ITEM_OWNER_DECIDED = "item_owner_decided"

    # Payments
    BANK_ACCOUNT_CREATED = "bank_account_created"
    PAYMENT_CREATED = "payment_created"
    PAYMENT_DETAIL_SETTLED = "payment_detail_settled"


class AuditEvent(Base):
    """
    One row of the audit log.

    Guarantees:
        - ``seq`` is unique and monotonic.
        - ``payload`` holds JSON-safe values only (ids and amounts as strings).
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_events_entity", "entity_type", "entity_id"),
        Index("idx_audit_events_action", "action"),
        Index("idx_audit_events_occurred_at", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.entity_type}:{self.entity_id} {self.action}>"
