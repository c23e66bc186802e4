"""
Payables ORM Models (``gls_modules.payables.orm``).

Responsibility
--------------
SQLAlchemy persistence for vendors and inward bills.  Maps the frozen
dataclasses in ``models.py`` to the ``vendors`` and ``payable_bills``
tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``gls_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``gls_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
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
from gls_modules._counterparty import CounterpartyColumns


# ---------------------------------------------------------------------------
# 1. VendorModel
# ---------------------------------------------------------------------------


class VendorModel(CounterpartyColumns, TrackedBase):
    """
    ORM model for the vendor master.

    Guarantees:
        - code is unique (uq_vendors_code).
        - account_type defaults to "current".
    """

    __tablename__ = "vendors"

    __table_args__ = (
        UniqueConstraint("code", name="uq_vendors_code"),
        Index("idx_vendors_is_active", "is_active"),
    )

    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    ifsc_code: Mapped[str | None] = mapped_column(String(11), nullable=True)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False, default="current")

    bills: Mapped[list["PayableBillModel"]] = relationship(
        back_populates="vendor",
        lazy="select",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_modules.payables.models import Vendor

        return Vendor(
            id=self.id,
            code=self.code,
            name=self.name,
            phone=self.phone,
            mobile=self.mobile,
            whatsapp=self.whatsapp,
            email=self.email,
            gstin=self.gstin,
            pan=self.pan,
            address=self.address,
            city=self.city,
            state=self.state,
            pincode=self.pincode,
            bank_name=self.bank_name,
            bank_branch=self.bank_branch,
            account_number=self.account_number,
            ifsc_code=self.ifsc_code,
            account_type=self.account_type,
            default_credit_days=self.default_credit_days,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<VendorModel {self.code}: {self.name}>"


# ---------------------------------------------------------------------------
# 2. PayableBillModel
# ---------------------------------------------------------------------------


class PayableBillModel(TrackedBase):
    """
    ORM model for inward bills.

    ``version`` is SQLAlchemy's ``version_id_col``: every UPDATE carries
    ``WHERE version = :loaded`` and bumps it, so a concurrent writer
    surfaces as ``StaleDataError`` (translated to OptimisticLockError).

    Guarantees:
        - 0 <= paid_amount <= amount (ck_payable_bills_paid_range).
        - credit_days in 0..365.
        - status and payment_status stored as string enum values.
    """

    __tablename__ = "payable_bills"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payable_bills_amount"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= amount",
            name="ck_payable_bills_paid_range",
        ),
        CheckConstraint(
            "credit_days >= 0 AND credit_days <= 365",
            name="ck_payable_bills_credit_days",
        ),
        Index("idx_payable_bills_vendor_id", "vendor_id"),
        Index("idx_payable_bills_due_date", "due_date"),
        Index("idx_payable_bills_status", "status", "payment_status"),
    )

    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    receiving_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit_days: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    checked_by: Mapped[str] = mapped_column(String(100), nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    vendor: Mapped[VendorModel] = relationship(back_populates="bills")

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_engines.bill_lifecycle import SettlementStatus
        from gls_modules.payables.models import PayableBill, PayableBillStatus

        return PayableBill(
            id=self.id,
            vendor_id=self.vendor_id,
            bill_number=self.bill_number,
            invoice_date=self.invoice_date,
            receiving_date=self.receiving_date,
            amount=self.amount,
            paid_amount=self.paid_amount,
            credit_days=self.credit_days,
            due_date=self.due_date,
            checked_by=self.checked_by,
            status=PayableBillStatus(self.status),
            payment_status=SettlementStatus(self.payment_status),
            version=self.version,
            created_by_id=self.created_by_id,
            remarks=self.remarks,
            cancelled_at=self.cancelled_at,
            cancelled_by_id=self.cancelled_by_id,
            cancel_reason=self.cancel_reason,
        )

    def __repr__(self) -> str:
        return f"<PayableBillModel {self.bill_number} {self.status}/{self.payment_status}>"
