"""
Receivables ORM Models (``gls_modules.receivables.orm``).

SQLAlchemy persistence for the ``customers`` and ``receivable_bills``
tables.  MUST NOT be imported by ``gls_kernel``.
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


class CustomerModel(CounterpartyColumns, TrackedBase):
    """
    ORM model for the customer master.

    Guarantees:
        - code is unique (uq_customers_code).
        - credit_limit >= 0.
    """

    __tablename__ = "customers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_customers_code"),
        CheckConstraint("credit_limit >= 0", name="ck_customers_credit_limit"),
        Index("idx_customers_is_active", "is_active"),
    )

    contact_person: Mapped[str | None] = mapped_column(String(100), nullable=True)
    credit_limit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    bills: Mapped[list["ReceivableBillModel"]] = relationship(back_populates="customer")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_modules.receivables.models import Customer

        return Customer(
            id=self.id,
            code=self.code,
            name=self.name,
            contact_person=self.contact_person,
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
            credit_limit=self.credit_limit,
            default_credit_days=self.default_credit_days,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<CustomerModel {self.code}: {self.name}>"


class ReceivableBillModel(TrackedBase):
    """
    ORM model for outward bills.

    Guarantees:
        - 0 <= collected_amount <= amount (ck_receivable_bills_collected_range).
        - status, collection_status and delivery_status stored as string
          enum values.
    """

    __tablename__ = "receivable_bills"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_receivable_bills_amount"),
        CheckConstraint(
            "collected_amount >= 0 AND collected_amount <= amount",
            name="ck_receivable_bills_collected_range",
        ),
        CheckConstraint(
            "credit_days >= 0 AND credit_days <= 365",
            name="ck_receivable_bills_credit_days",
        ),
        Index("idx_receivable_bills_customer_id", "customer_id"),
        Index("idx_receivable_bills_due_date", "due_date"),
        Index("idx_receivable_bills_status", "status"),
        Index("idx_receivable_bills_delivery_status", "delivery_status"),
    )

    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    collected_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit_days: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    dispatched_by: Mapped[str] = mapped_column(String(100), nullable=False)
    delivery_mode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    delivery_person: Mapped[str | None] = mapped_column(String(100), nullable=True)
    courier_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    collection_status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    delivery_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    customer: Mapped[CustomerModel] = relationship(back_populates="bills")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from gls_engines.bill_lifecycle import DeliveryStatus, SettlementStatus
        from gls_modules.receivables.models import ReceivableBill, ReceivableBillStatus

        return ReceivableBill(
            id=self.id,
            customer_id=self.customer_id,
            invoice_number=self.invoice_number,
            invoice_date=self.invoice_date,
            amount=self.amount,
            collected_amount=self.collected_amount,
            credit_days=self.credit_days,
            due_date=self.due_date,
            dispatched_by=self.dispatched_by,
            status=ReceivableBillStatus(self.status),
            collection_status=SettlementStatus(self.collection_status),
            delivery_status=DeliveryStatus(self.delivery_status),
            created_by_id=self.created_by_id,
            delivery_mode=self.delivery_mode,
            delivery_person=self.delivery_person,
            courier_name=self.courier_name,
            tracking_number=self.tracking_number,
            delivered_at=self.delivered_at,
            remarks=self.remarks,
            cancelled_at=self.cancelled_at,
            cancelled_by_id=self.cancelled_by_id,
            cancel_reason=self.cancel_reason,
        )

    def __repr__(self) -> str:
        return f"<ReceivableBillModel {self.invoice_number} {self.status}/{self.delivery_status}>"
