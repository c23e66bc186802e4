"""
Proposal ORM Models (``gls_modules.proposals.orm``).

SQLAlchemy persistence for ``proposals`` and ``proposal_items``.  Items
are exclusively owned by their proposal and deleted with it.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gls_kernel.db.base import TrackedBase


class ProposalModel(TrackedBase):
    """
    ORM model for payment proposals.

    Guarantees:
        - proposal_number is unique (uq_proposals_number).
        - items cascade on delete (draft deletion).
    """

    __tablename__ = "proposals"

    __table_args__ = (
        UniqueConstraint("proposal_number", name="uq_proposals_number"),
        Index("idx_proposals_status", "status"),
        Index("idx_proposals_proposal_date", "proposal_date"),
    )

    proposal_number: Mapped[str] = mapped_column(String(30), nullable=False)
    proposal_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["ProposalItemModel"]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProposalItemModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_engines.proposal_status import ProposalStatus
        from gls_modules.proposals.models import Proposal

        return Proposal(
            id=self.id,
            proposal_number=self.proposal_number,
            proposal_date=self.proposal_date,
            payment_date=self.payment_date,
            total_amount=self.total_amount,
            status=ProposalStatus(self.status),
            created_by_id=self.created_by_id,
            remarks=self.remarks,
            submitted_at=self.submitted_at,
            items=tuple(item.to_dto() for item in self.items),
        )

    def __repr__(self) -> str:
        return f"<ProposalModel {self.proposal_number} {self.status}>"


class ProposalItemModel(TrackedBase):
    """
    ORM model for proposal items.

    ``status`` is the composite status cache; it is written only from
    ``derive_item_status(accounts_status, owner_status, is_settled)``.

    Guarantees:
        - a bill appears at most once per proposal (uq_proposal_items_bill).
        - amounts are non-negative.
    """

    __tablename__ = "proposal_items"

    __table_args__ = (
        UniqueConstraint("proposal_id", "bill_id", name="uq_proposal_items_bill"),
        CheckConstraint("proposed_amount >= 0", name="ck_proposal_items_proposed_amount"),
        Index("idx_proposal_items_bill_id", "bill_id"),
        Index("idx_proposal_items_status", "status"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    bill_id: Mapped[UUID] = mapped_column(ForeignKey("payable_bills.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    proposed_amount: Mapped[Decimal] = mapped_column(nullable=False)
    urgency_remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    accounts_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    accounts_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    accounts_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    accounts_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    accounts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    owner_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    owner_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    owner_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    owner_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="proposed")
    is_settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    proposal: Mapped[ProposalModel] = relationship(back_populates="items")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_engines.proposal_status import AccountsStatus, ItemStatus, OwnerStatus
        from gls_modules.proposals.models import ProposalItem

        return ProposalItem(
            id=self.id,
            proposal_id=self.proposal_id,
            bill_id=self.bill_id,
            line_number=self.line_number,
            proposed_amount=self.proposed_amount,
            accounts_status=AccountsStatus(self.accounts_status),
            owner_status=OwnerStatus(self.owner_status),
            status=ItemStatus(self.status),
            is_settled=self.is_settled,
            urgency_remarks=self.urgency_remarks,
            accounts_amount=self.accounts_amount,
            accounts_reason=self.accounts_reason,
            accounts_by_id=self.accounts_by_id,
            accounts_at=self.accounts_at,
            owner_amount=self.owner_amount,
            owner_reason=self.owner_reason,
            owner_by_id=self.owner_by_id,
            owner_at=self.owner_at,
        )

    def __repr__(self) -> str:
        return f"<ProposalItemModel #{self.line_number} {self.status}>"
