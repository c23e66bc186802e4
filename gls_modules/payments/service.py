"""
Payments Module Service (``gls_modules.payments.service``).

Responsibility
--------------
Company bank accounts, payment generation from an owner-approved
proposal, UTR settlement of payment legs, and the read projections for
UTR follow-up and the bank upload.

Architecture position
---------------------
**Modules layer** -- ``PaymentsService`` is the only writer of payments
and payment details, and the only caller of
``gls_modules.payables.service.apply_bill_payment``.

Invariants enforced
-------------------
* ``Payment.total_amount`` is computed here as the sum of the owner
  amounts of the approved items; callers never supply it.
* A bill's ``paid_amount`` only grows when a detail is confirmed with a
  UTR, and never past the bill amount.
* Issued legs awaiting a UTR count against the bill when generating a
  new payment.
* A proposal item reaches ``paid`` only through settlement of its detail.
* A UTR round is atomic per payment: the first failing entry rolls back
  the whole round, and the raised error carries ``failed_item_id``.
* Lock order is payment, details, bills, proposal items.

Failure modes
-------------
* ``ProposalAlreadyCompletedError`` -- payment already generated.
* ``ProposalNotApprovedError`` / ``NoApprovedItemsError`` -- nothing to pay.
* ``DanglingReferenceError`` -- bank account missing or inactive.
* ``ValidationError`` -- blank UTR, empty round.
* ``DetailAlreadySettledError`` -- detail already carries a UTR.
* ``OverSettlementError`` / ``BillCancelledError`` -- from the bill hook.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gls_config.schema import WorkflowSettings
from gls_engines.bill_lifecycle import can_settle
from gls_engines.proposal_status import (
    AccountsStatus,
    OwnerStatus,
    ProposalStatus,
    derive_item_status,
)
from gls_kernel.db.engine import transaction_scope
from gls_kernel.db.types import ZERO
from gls_kernel.domain.clock import Clock, SystemClock
from gls_kernel.domain.principal import Principal
from gls_kernel.exceptions import (
    BillCancelledError,
    DanglingReferenceError,
    DetailAlreadySettledError,
    DuplicateCodeError,
    GlsError,
    NoApprovedItemsError,
    NotFoundError,
    OverSettlementError,
    ProposalAlreadyCompletedError,
    ProposalNotApprovedError,
    ValidationError,
)
from gls_kernel.logging_config import get_logger
from gls_kernel.models.audit_event import AuditAction
from gls_kernel.services.auditor_service import AuditorService
from gls_kernel.services.sequence_service import SequenceService
from gls_modules._helpers import (
    DEFAULT_TIMEOUT_SECONDS,
    IFSC_PATTERN,
    FieldValidator,
    load,
    load_for_update,
    operation_context,
    require_transition,
)
from gls_modules.payables.models import PayableBillStatus
from gls_modules.payables.orm import PayableBillModel, VendorModel
from gls_modules.payables.service import apply_bill_payment
from gls_modules.payments.models import (
    BankAccount,
    BankExportRow,
    Payment,
    PaymentDetailStatus,
    PaymentStatus,
    PendingUtrPayment,
    UtrEntry,
)
from gls_modules.payments.orm import BankAccountModel, PaymentDetailModel, PaymentModel
from gls_modules.payments.workflows import PAYMENT_WORKFLOW
from gls_modules.proposals.orm import ProposalItemModel, ProposalModel
from gls_modules.proposals.workflows import PAYABLE_STATES, PROPOSAL_WORKFLOW
from gls_services.rbac_authority import authorize

logger = get_logger("modules.payments.service")


class PaymentsService:
    """
    Payment batch operations.

    Contract
    --------
    * Public methods take the calling ``Principal`` first and return
      frozen DTOs from ``models.py``.
    * Payment numbers come from ``SequenceService`` as
      ``<prefix>-<year>-<NNNNN>``, keyed on the payment date's year.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: WorkflowSettings | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or WorkflowSettings()
        self._timeout = timeout_seconds
        self._auditor = AuditorService(session, self._clock)
        self._sequences = SequenceService(session)

    def _deadline(self, override: float | None) -> float:
        return self._timeout if override is None else override

    # =========================================================================
    # Bank accounts
    # =========================================================================

    def create_bank_account(
        self,
        principal: Principal,
        bank_name: str,
        account_number: str,
        ifsc_code: str,
        bank_type: str | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> BankAccount:
        """
        Register a company bank account.

        Raises:
            ValidationError: malformed fields.
            DuplicateCodeError: account number already registered.
        """
        authorize(principal, "bank_account.create")
        validator = FieldValidator()
        bank_name = validator.text("bank_name", bank_name, 100)
        account_number = validator.text("account_number", account_number, 30)
        ifsc_code = validator.pattern("ifsc_code", ifsc_code, IFSC_PATTERN, 11, required=True, upper=True)
        bank_type = validator.text("bank_type", bank_type, 20, required=False)
        validator.raise_if_invalid()

        with operation_context(principal, "bank_account.create"):
            with transaction_scope(
                self._session, "bank_account.create", self._deadline(timeout_seconds),
            ):
                existing = self._session.execute(
                    select(BankAccountModel.id).where(
                        BankAccountModel.account_number == account_number
                    )
                ).first()
                if existing is not None:
                    raise DuplicateCodeError("bank_account", account_number)

                model = BankAccountModel(
                    bank_name=bank_name,
                    account_number=account_number,
                    ifsc_code=ifsc_code,
                    bank_type=(bank_type or self._settings.default_bank_type).lower(),
                    is_active=True,
                    created_by_id=principal.user_id,
                )
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise DuplicateCodeError("bank_account", account_number) from exc
                self._auditor.record(
                    "bank_account", model.id, AuditAction.BANK_ACCOUNT_CREATED,
                    principal.user_id, {"bank_name": bank_name, "bank_type": model.bank_type},
                )
                dto = model.to_dto()

            logger.info(
                "bank_account_create_committed",
                extra={"bank_account_id": str(dto.id), "bank_type": dto.bank_type},
            )
        return dto

    # =========================================================================
    # Payment generation
    # =========================================================================

    def create_payment_from_proposal(
        self,
        principal: Principal,
        proposal_id: UUID,
        bank_account_id: UUID,
        payment_date: date | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> Payment:
        """
        Turn the owner-approved items of a proposal into one payment.

        One pending detail per approved item, for the item's owner amount.
        The proposal moves to ``completed`` in the same transaction, so a
        second call fails with ``ProposalAlreadyCompletedError``.
        An item whose amount, added to the bill's paid amount and its other
        legs still awaiting a UTR, would exceed the bill amount is rejected
        with ``OverSettlementError``.
        ``payment_date`` defaults to today.
        """
        authorize(principal, "payment.create_from_proposal")
        validator = FieldValidator()
        payment_date = validator.calendar_date("payment_date", payment_date, required=False)
        validator.raise_if_invalid()
        payment_date = payment_date or self._clock.today()

        with operation_context(principal, "payment.create_from_proposal", proposal_id):
            logger.info(
                "payment_create_started",
                extra={"proposal_id": str(proposal_id), "bank_account_id": str(bank_account_id)},
            )
            with transaction_scope(
                self._session, "payment.create_from_proposal", self._deadline(timeout_seconds),
            ):
                proposal = load_for_update(self._session, ProposalModel, proposal_id, "proposal")
                if proposal.status == ProposalStatus.COMPLETED.value:
                    raise ProposalAlreadyCompletedError(proposal_id)
                if proposal.status not in PAYABLE_STATES:
                    raise ProposalNotApprovedError(proposal_id, proposal.status)

                bank = self._session.get(BankAccountModel, bank_account_id)
                if bank is None:
                    raise DanglingReferenceError("bank_account", bank_account_id)
                if not bank.is_active:
                    raise DanglingReferenceError("bank_account", bank_account_id, "inactive")

                items = self._session.execute(
                    select(ProposalItemModel)
                    .where(
                        ProposalItemModel.proposal_id == proposal_id,
                        ProposalItemModel.owner_status == OwnerStatus.APPROVED.value,
                    )
                    .order_by(ProposalItemModel.line_number)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalars().all()
                if not items:
                    raise NoApprovedItemsError(proposal_id)
                transition = require_transition(
                    PROPOSAL_WORKFLOW, "proposal", proposal_id, proposal.status,
                    "generate_payment",
                )

                for item in items:
                    try:
                        bill = load_for_update(
                            self._session, PayableBillModel, item.bill_id, "payable_bill",
                        )
                        if bill.status == PayableBillStatus.CANCELLED.value:
                            raise BillCancelledError(bill.id)
                        committed = bill.paid_amount + self._unconfirmed_leg_total(bill.id)
                        if not can_settle(bill.amount, committed, item.owner_amount):
                            raise OverSettlementError(
                                bill.id, bill.amount, committed, item.owner_amount,
                            )
                    except GlsError as exc:
                        exc.failed_item_id = item.id
                        raise

                number = self._sequences.next_document_number(
                    self._settings.payment_number_prefix, payment_date.year,
                )
                payment = PaymentModel(
                    payment_number=number,
                    proposal_id=proposal_id,
                    payment_date=payment_date,
                    total_amount=sum((item.owner_amount for item in items), ZERO),
                    bank_account_id=bank_account_id,
                    status=PaymentStatus.PENDING.value,
                    created_by_id=principal.user_id,
                )
                for line_number, item in enumerate(items, start=1):
                    payment.details.append(
                        PaymentDetailModel(
                            bill_id=item.bill_id,
                            proposal_item_id=item.id,
                            line_number=line_number,
                            amount=item.owner_amount,
                            status=PaymentDetailStatus.PENDING.value,
                            created_by_id=principal.user_id,
                        )
                    )
                self._session.add(payment)

                previous = proposal.status
                proposal.status = transition.to_state
                proposal.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "proposal", proposal.id, AuditAction.PROPOSAL_STATUS_CHANGED,
                    principal.user_id, {"from": previous, "to": transition.to_state},
                )
                self._auditor.record(
                    "payment", payment.id, AuditAction.PAYMENT_CREATED, principal.user_id,
                    {
                        "payment_number": number,
                        "proposal_id": proposal_id,
                        "total_amount": payment.total_amount,
                        "detail_count": len(items),
                    },
                )
                dto = payment.to_dto()

            logger.info(
                "payment_create_committed",
                extra={
                    "payment_id": str(dto.id),
                    "payment_number": dto.payment_number,
                    "total_amount": str(dto.total_amount),
                    "detail_count": len(dto.details),
                },
            )
        return dto

    def _unconfirmed_leg_total(self, bill_id: UUID) -> Decimal:
        """Sum of issued payment legs for a bill that still await a UTR."""
        total = self._session.execute(
            select(func.coalesce(func.sum(PaymentDetailModel.amount), 0)).where(
                PaymentDetailModel.bill_id == bill_id,
                PaymentDetailModel.status == PaymentDetailStatus.PENDING.value,
            )
        ).scalar_one()
        return Decimal(str(total))

    # =========================================================================
    # UTR settlement
    # =========================================================================

    def update_utr(
        self,
        principal: Principal,
        payment_id: UUID,
        entries: Sequence[UtrEntry | tuple[UUID, str]],
        *,
        timeout_seconds: float | None = None,
    ) -> Payment:
        """
        Record UTRs for several details of one payment, atomically.

        Each confirmed detail adds its amount to the bill's paid_amount and
        marks its proposal item paid.  The payment becomes ``confirmed``
        when no detail is left without a UTR, otherwise ``processed``.

        Raises:
            ValidationError: empty round or blank UTR.
            NotFoundError: detail not on this payment.
            DetailAlreadySettledError: detail already confirmed.
            OverSettlementError / BillCancelledError: from the bill.
        """
        authorize(principal, "payment.update_utr")
        entries = [e if isinstance(e, UtrEntry) else UtrEntry(*e) for e in entries]
        if not entries:
            raise ValidationError({"entries": "at least one UTR entry is required"})
        return self._settle(principal, payment_id, entries, timeout_seconds)

    def record_payment_detail_settlement(
        self,
        principal: Principal,
        detail_id: UUID,
        utr_number: str,
        *,
        timeout_seconds: float | None = None,
    ) -> Payment:
        """Record the UTR of a single payment detail.  See ``update_utr``."""
        authorize(principal, "payment.update_utr")
        detail = load(self._session, PaymentDetailModel, detail_id, "payment_detail")
        return self._settle(
            principal, detail.payment_id, [UtrEntry(detail_id, utr_number)], timeout_seconds,
        )

    def _settle(
        self,
        principal: Principal,
        payment_id: UUID,
        entries: list[UtrEntry],
        timeout_seconds: float | None,
    ) -> Payment:
        with operation_context(principal, "payment.update_utr", payment_id):
            logger.info(
                "payment_settlement_started",
                extra={"payment_id": str(payment_id), "entry_count": len(entries)},
            )
            with transaction_scope(
                self._session, "payment.update_utr", self._deadline(timeout_seconds),
            ):
                payment = load_for_update(self._session, PaymentModel, payment_id, "payment")
                details = {
                    d.id: d
                    for d in self._session.execute(
                        select(PaymentDetailModel)
                        .where(PaymentDetailModel.payment_id == payment_id)
                        .with_for_update()
                        .execution_options(populate_existing=True)
                    ).scalars().all()
                }
                now = self._clock.now()
                settled = ZERO
                for entry in entries:
                    try:
                        settled += self._settle_detail(principal, details, entry, now)
                    except GlsError as exc:
                        exc.failed_item_id = entry.detail_id
                        raise

                remaining = sum(1 for d in details.values() if d.utr_number is None)
                action = "settle_partial" if remaining else "settle_final"
                transition = require_transition(
                    PAYMENT_WORKFLOW, "payment", payment_id, payment.status, action,
                )
                payment.status = transition.to_state
                payment.updated_by_id = principal.user_id
                self._session.flush()
                dto = payment.to_dto()

            logger.info(
                "payment_settlement_committed",
                extra={
                    "payment_id": str(payment_id),
                    "settled_amount": str(settled),
                    "remaining_details": remaining,
                    "status": dto.status.value,
                },
            )
        return dto

    def _settle_detail(
        self,
        principal: Principal,
        details: dict[UUID, PaymentDetailModel],
        entry: UtrEntry,
        now: datetime,
    ) -> Decimal:
        detail = details.get(entry.detail_id)
        if detail is None:
            raise NotFoundError("payment_detail", entry.detail_id)
        validator = FieldValidator()
        utr_number = validator.text("utr_number", entry.utr_number, 50)
        validator.raise_if_invalid()
        if detail.status == PaymentDetailStatus.CONFIRMED.value:
            raise DetailAlreadySettledError(detail.id, detail.utr_number)

        bill = load_for_update(self._session, PayableBillModel, detail.bill_id, "payable_bill")
        apply_bill_payment(bill, detail.amount)

        detail.utr_number = utr_number
        detail.status = PaymentDetailStatus.CONFIRMED.value
        detail.confirmed_at = now
        detail.updated_by_id = principal.user_id

        if detail.proposal_item_id is not None:
            item = load_for_update(
                self._session, ProposalItemModel, detail.proposal_item_id, "proposal_item",
            )
            item.is_settled = True
            item.status = derive_item_status(
                AccountsStatus(item.accounts_status), OwnerStatus(item.owner_status), True,
            ).value
            item.updated_by_id = principal.user_id

        self._session.flush()
        self._auditor.record(
            "payment_detail", detail.id, AuditAction.PAYMENT_DETAIL_SETTLED, principal.user_id,
            {
                "payment_id": detail.payment_id,
                "bill_id": detail.bill_id,
                "amount": detail.amount,
                "utr_number": utr_number,
                "bill_paid_amount": bill.paid_amount,
                "bill_payment_status": bill.payment_status,
            },
        )
        return detail.amount

    # =========================================================================
    # Reads
    # =========================================================================

    def get_payment(self, principal: Principal, payment_id: UUID) -> Payment:
        authorize(principal, "payment.view")
        return load(self._session, PaymentModel, payment_id, "payment").to_dto()

    def list_payments(
        self,
        principal: Principal,
        status: PaymentStatus | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Payment, ...]:
        """Payments newest first, optionally narrowed by status and payment date."""
        authorize(principal, "payment.view")
        stmt = select(PaymentModel)
        if status is not None:
            stmt = stmt.where(PaymentModel.status == PaymentStatus(status).value)
        if date_from is not None:
            stmt = stmt.where(PaymentModel.payment_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(PaymentModel.payment_date <= date_to)
        stmt = (
            stmt.order_by(PaymentModel.payment_date.desc(), PaymentModel.payment_number.desc())
            .limit(limit)
            .offset(offset)
        )
        return tuple(p.to_dto() for p in self._session.execute(stmt).scalars().all())

    def list_pending_utr(self, principal: Principal) -> tuple[PendingUtrPayment, ...]:
        """Pending and processed payments with their UTR progress, newest first."""
        authorize(principal, "payment.view_pending_utr")
        pending = func.sum(case((PaymentDetailModel.utr_number.is_(None), 1), else_=0))
        completed = func.sum(case((PaymentDetailModel.utr_number.is_not(None), 1), else_=0))
        rows = self._session.execute(
            select(PaymentModel, BankAccountModel.bank_name, pending, completed)
            .join(BankAccountModel, BankAccountModel.id == PaymentModel.bank_account_id)
            .join(PaymentDetailModel, PaymentDetailModel.payment_id == PaymentModel.id)
            .where(
                PaymentModel.status.in_(
                    [PaymentStatus.PENDING.value, PaymentStatus.PROCESSED.value]
                )
            )
            .group_by(PaymentModel.id, BankAccountModel.bank_name)
            .order_by(PaymentModel.payment_date.desc(), PaymentModel.payment_number.desc())
        ).all()
        return tuple(
            PendingUtrPayment(
                payment_id=payment.id,
                payment_number=payment.payment_number,
                payment_date=payment.payment_date,
                total_amount=payment.total_amount,
                status=PaymentStatus(payment.status),
                bank_name=bank_name,
                pending_count=int(pending_count or 0),
                completed_count=int(completed_count or 0),
            )
            for payment, bank_name, pending_count, completed_count in rows
        )

    def bank_export_rows(self, principal: Principal, payment_id: UUID) -> tuple[BankExportRow, ...]:
        """
        Beneficiary lines for the bank upload of one payment.

        ``bank_type`` names the upload format of the funding account; the
        file itself is produced outside this service.
        """
        authorize(principal, "payment.export_bank_file")
        payment = load(self._session, PaymentModel, payment_id, "payment")
        bank_type = self._session.execute(
            select(BankAccountModel.bank_type).where(BankAccountModel.id == payment.bank_account_id)
        ).scalar_one_or_none() or self._settings.default_bank_type
        rows = self._session.execute(
            select(
                VendorModel.name,
                VendorModel.account_number,
                VendorModel.ifsc_code,
                PayableBillModel.bill_number,
                PaymentDetailModel.amount,
                PaymentDetailModel.utr_number,
            )
            .join(PayableBillModel, PayableBillModel.id == PaymentDetailModel.bill_id)
            .join(VendorModel, VendorModel.id == PayableBillModel.vendor_id)
            .where(PaymentDetailModel.payment_id == payment_id)
            .order_by(VendorModel.name, PaymentDetailModel.line_number)
        ).all()
        logger.debug(
            "bank_export_rows_built",
            extra={"payment_id": str(payment_id), "row_count": len(rows), "bank_type": bank_type},
        )
        return tuple(
            BankExportRow(
                beneficiary_name=name,
                account_number=account_number,
                ifsc_code=ifsc_code,
                bill_number=bill_number,
                amount=amount,
                utr_number=utr_number,
                bank_type=bank_type,
            )
            for name, account_number, ifsc_code, bill_number, amount, utr_number in rows
        )
