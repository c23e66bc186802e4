"""
Payment ORM Models (``gls_modules.payments.orm``).

SQLAlchemy persistence for ``bank_accounts``, ``payments`` and
``payment_details``.  Details are exclusively owned by their payment.
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


class BankAccountModel(TrackedBase):
    """
    ORM model for company bank accounts.

    Guarantees:
        - account_number is unique (uq_bank_accounts_number).
    """

    __tablename__ = "bank_accounts"

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_bank_accounts_number"),
    )

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(30), nullable=False)
    ifsc_code: Mapped[str] = mapped_column(String(11), nullable=False)
    bank_type: Mapped[str] = mapped_column(String(20), nullable=False, default="icici")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_modules.payments.models import BankAccount

        return BankAccount(
            id=self.id,
            bank_name=self.bank_name,
            account_number=self.account_number,
            ifsc_code=self.ifsc_code,
            bank_type=self.bank_type,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<BankAccountModel {self.bank_name} {self.account_number}>"


class PaymentModel(TrackedBase):
    """
    ORM model for payment batches.

    Guarantees:
        - payment_number is unique (uq_payments_number).
        - total_amount is non-negative.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_number", name="uq_payments_number"),
        CheckConstraint("total_amount >= 0", name="ck_payments_total_amount"),
        Index("idx_payments_status", "status"),
        Index("idx_payments_payment_date", "payment_date"),
    )

    payment_number: Mapped[str] = mapped_column(String(30), nullable=False)
    proposal_id: Mapped[UUID | None] = mapped_column(ForeignKey("proposals.id"), nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    bank_account_id: Mapped[UUID] = mapped_column(ForeignKey("bank_accounts.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    details: Mapped[list["PaymentDetailModel"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentDetailModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_modules.payments.models import Payment, PaymentStatus

        return Payment(
            id=self.id,
            payment_number=self.payment_number,
            payment_date=self.payment_date,
            total_amount=self.total_amount,
            bank_account_id=self.bank_account_id,
            status=PaymentStatus(self.status),
            created_by_id=self.created_by_id,
            proposal_id=self.proposal_id,
            details=tuple(d.to_dto() for d in self.details),
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.payment_number} {self.status}>"


class PaymentDetailModel(TrackedBase):
    """
    ORM model for payment legs.

    Guarantees:
        - amount is non-negative.
        - a confirmed detail carries a UTR (ck_payment_details_utr).
    """

    __tablename__ = "payment_details"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_details_amount"),
        CheckConstraint(
            "status <> 'confirmed' OR utr_number IS NOT NULL",
            name="ck_payment_details_utr",
        ),
        Index("idx_payment_details_payment_id", "payment_id"),
        Index("idx_payment_details_bill_id", "bill_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        ForeignKey("payments.id", ondelete="CASCADE"), nullable=False
    )
    bill_id: Mapped[UUID] = mapped_column(ForeignKey("payable_bills.id"), nullable=False)
    proposal_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("proposal_items.id"), nullable=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    utr_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payment: Mapped[PaymentModel] = relationship(back_populates="details")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_modules.payments.models import PaymentDetail, PaymentDetailStatus

        return PaymentDetail(
            id=self.id,
            payment_id=self.payment_id,
            bill_id=self.bill_id,
            line_number=self.line_number,
            amount=self.amount,
            status=PaymentDetailStatus(self.status),
            proposal_item_id=self.proposal_item_id,
            utr_number=self.utr_number,
            confirmed_at=self.confirmed_at,
        )

    def __repr__(self) -> str:
        return f"<PaymentDetailModel {self.amount} {self.status}>"
