"""
Reporting selectors (``gls_modules.reporting.selectors``).

Read-only queries behind the reports and dashboards.  Amounts are summed
in Python from the fetched rows so that each count and its amount come
from the same rows, with exact Decimal arithmetic on every backend.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from gls_engines.aging import BucketTotal
from gls_engines.bill_lifecycle import DeliveryStatus, SettlementStatus, outstanding
from gls_engines.proposal_status import ItemStatus, OwnerStatus, ProposalStatus
from gls_kernel.selectors.base import BaseSelector
from gls_modules.payables.models import PayableBillStatus
from gls_modules.payables.orm import PayableBillModel, VendorModel
from gls_modules.payments.models import PaymentStatus
from gls_modules.payments.orm import BankAccountModel, PaymentDetailModel, PaymentModel
from gls_modules.proposals.orm import ProposalItemModel, ProposalModel
from gls_modules.receivables.models import ReceivableBillStatus
from gls_modules.receivables.orm import CustomerModel, ReceivableBillModel
from gls_modules.reporting.models import BillSnapshot, PaymentHistoryLine, ProposalSummary


def bucket_total(amounts: Iterable[Decimal | None]) -> BucketTotal:
    """Count and sum of ``amounts``; a None amount counts as zero."""
    total = BucketTotal()
    for amount in amounts:
        total = total.add(amount if amount is not None else Decimal("0"))
    return total


class OpenBillSelector(BaseSelector[PayableBillModel]):
    """Bills with something left to pay or collect, ordered by due date."""

    def open_payables(self, vendor_id: UUID | None = None) -> list[BillSnapshot]:
        stmt = (
            select(PayableBillModel, VendorModel.code, VendorModel.name)
            .join(VendorModel, VendorModel.id == PayableBillModel.vendor_id)
            .where(
                PayableBillModel.status == PayableBillStatus.ACTIVE.value,
                PayableBillModel.payment_status != SettlementStatus.PAID.value,
            )
            .order_by(VendorModel.name, PayableBillModel.due_date, PayableBillModel.bill_number)
        )
        if vendor_id is not None:
            stmt = stmt.where(PayableBillModel.vendor_id == vendor_id)
        return [
            BillSnapshot(
                bill_id=bill.id,
                document_number=bill.bill_number,
                counterparty_id=bill.vendor_id,
                counterparty_code=code,
                counterparty_name=name,
                invoice_date=bill.invoice_date,
                due_date=bill.due_date,
                amount=bill.amount,
                settled_amount=bill.paid_amount,
                outstanding=outstanding(bill.amount, bill.paid_amount),
            )
            for bill, code, name in self.session.execute(stmt).all()
        ]

    def open_receivables(self, customer_id: UUID | None = None) -> list[BillSnapshot]:
        stmt = (
            select(ReceivableBillModel, CustomerModel.code, CustomerModel.name, CustomerModel.whatsapp)
            .join(CustomerModel, CustomerModel.id == ReceivableBillModel.customer_id)
            .where(ReceivableBillModel.status == ReceivableBillStatus.ACTIVE.value)
            .order_by(CustomerModel.name, ReceivableBillModel.due_date, ReceivableBillModel.invoice_number)
        )
        if customer_id is not None:
            stmt = stmt.where(ReceivableBillModel.customer_id == customer_id)
        return [
            BillSnapshot(
                bill_id=bill.id,
                document_number=bill.invoice_number,
                counterparty_id=bill.customer_id,
                counterparty_code=code,
                counterparty_name=name,
                invoice_date=bill.invoice_date,
                due_date=bill.due_date,
                amount=bill.amount,
                settled_amount=bill.collected_amount,
                outstanding=outstanding(bill.amount, bill.collected_amount),
                contact=whatsapp,
            )
            for bill, code, name, whatsapp in self.session.execute(stmt).all()
        ]


class ActivitySelector(BaseSelector[PaymentModel]):
    """Bills logged and payments made over date ranges (inclusive)."""

    def payables_received(self, start: date, end: date) -> BucketTotal:
        return bucket_total(
            self.session.scalars(
                select(PayableBillModel.amount).where(
                    PayableBillModel.status == PayableBillStatus.ACTIVE.value,
                    PayableBillModel.receiving_date.between(start, end),
                )
            )
        )

    def receivables_invoiced(self, start: date, end: date) -> BucketTotal:
        return bucket_total(
            self.session.scalars(
                select(ReceivableBillModel.amount).where(
                    ReceivableBillModel.status != ReceivableBillStatus.CANCELLED.value,
                    ReceivableBillModel.invoice_date.between(start, end),
                )
            )
        )

    def deliveries(self, delivery_status: DeliveryStatus, invoice_date: date | None = None) -> int:
        stmt = select(func.count(ReceivableBillModel.id)).where(
            ReceivableBillModel.status != ReceivableBillStatus.CANCELLED.value,
            ReceivableBillModel.delivery_status == delivery_status.value,
        )
        if invoice_date is not None:
            stmt = stmt.where(ReceivableBillModel.invoice_date == invoice_date)
        return int(self.session.scalar(stmt) or 0)

    def payments_made(
        self,
        start: date,
        end: date,
        status: PaymentStatus | None = None,
    ) -> BucketTotal:
        stmt = select(PaymentModel.total_amount).where(PaymentModel.payment_date.between(start, end))
        if status is not None:
            stmt = stmt.where(PaymentModel.status == status.value)
        return bucket_total(self.session.scalars(stmt))

    def vendors_paid(self, start: date, end: date) -> int:
        stmt = (
            select(func.count(func.distinct(PayableBillModel.vendor_id)))
            .select_from(PaymentDetailModel)
            .join(PaymentModel, PaymentModel.id == PaymentDetailModel.payment_id)
            .join(PayableBillModel, PayableBillModel.id == PaymentDetailModel.bill_id)
            .where(PaymentModel.payment_date.between(start, end))
        )
        return int(self.session.scalar(stmt) or 0)

    def payments_in_status(self, status: PaymentStatus) -> int:
        return int(
            self.session.scalar(
                select(func.count(PaymentModel.id)).where(PaymentModel.status == status.value)
            )
            or 0
        )

    def payment_lines(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        vendor_id: UUID | None = None,
    ) -> list[PaymentHistoryLine]:
        stmt = (
            select(
                PaymentModel.payment_date,
                PaymentModel.payment_number,
                VendorModel.code,
                VendorModel.name,
                PayableBillModel.bill_number,
                PaymentDetailModel.amount,
                PaymentDetailModel.utr_number,
                BankAccountModel.bank_name,
            )
            .select_from(PaymentDetailModel)
            .join(PaymentModel, PaymentModel.id == PaymentDetailModel.payment_id)
            .join(PayableBillModel, PayableBillModel.id == PaymentDetailModel.bill_id)
            .join(VendorModel, VendorModel.id == PayableBillModel.vendor_id)
            .join(BankAccountModel, BankAccountModel.id == PaymentModel.bank_account_id)
            .order_by(PaymentModel.payment_date.desc(), VendorModel.name, PaymentDetailModel.line_number)
        )
        if date_from is not None:
            stmt = stmt.where(PaymentModel.payment_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(PaymentModel.payment_date <= date_to)
        if vendor_id is not None:
            stmt = stmt.where(PayableBillModel.vendor_id == vendor_id)
        return [PaymentHistoryLine(*row) for row in self.session.execute(stmt).all()]


class ProposalSelector(BaseSelector[ProposalModel]):
    """Proposal and item totals for the dashboards."""

    def summaries(
        self,
        statuses: Iterable[ProposalStatus] | None = None,
        created_by_id: UUID | None = None,
        limit: int = 5,
        oldest_first: bool = False,
    ) -> list[ProposalSummary]:
        item_count = (
            select(func.count(ProposalItemModel.id))
            .where(ProposalItemModel.proposal_id == ProposalModel.id)
            .correlate(ProposalModel)
            .scalar_subquery()
        )
        stmt = select(ProposalModel, item_count)
        if statuses is not None:
            stmt = stmt.where(ProposalModel.status.in_([s.value for s in statuses]))
        if created_by_id is not None:
            stmt = stmt.where(ProposalModel.created_by_id == created_by_id)
        if oldest_first:
            stmt = stmt.order_by(ProposalModel.proposal_date, ProposalModel.proposal_number)
        else:
            stmt = stmt.order_by(ProposalModel.proposal_date.desc(), ProposalModel.proposal_number.desc())
        return [
            ProposalSummary(
                proposal_id=proposal.id,
                proposal_number=proposal.proposal_number,
                proposal_date=proposal.proposal_date,
                status=ProposalStatus(proposal.status),
                total_amount=proposal.total_amount,
                item_count=int(count or 0),
            )
            for proposal, count in self.session.execute(stmt.limit(limit)).all()
        ]

    def proposal_totals(self, statuses: Iterable[ProposalStatus]) -> BucketTotal:
        return bucket_total(
            self.session.scalars(
                select(ProposalModel.total_amount).where(
                    ProposalModel.status.in_([s.value for s in statuses])
                )
            )
        )

    def item_totals(self, *conditions, amount_column=None) -> BucketTotal:
        """Count and amount of items matching ``conditions``.

        ``amount_column`` defaults to the proposed amount.
        """
        column = amount_column if amount_column is not None else ProposalItemModel.proposed_amount
        return bucket_total(self.session.scalars(select(column).where(*conditions)))

    def carry_forward(self) -> BucketTotal:
        return self.item_totals(ProposalItemModel.status == ItemStatus.CARRY_FORWARD.value)

    def approved_unpaid(self) -> BucketTotal:
        """Owner-approved items not yet settled, at the owner amount."""
        return self.item_totals(
            ProposalItemModel.owner_status == OwnerStatus.APPROVED.value,
            ProposalItemModel.is_settled.is_(False),
            amount_column=ProposalItemModel.owner_amount,
        )
