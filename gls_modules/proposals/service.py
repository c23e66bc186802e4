"""
Proposal Module Service (``gls_modules.proposals.service``).

Responsibility
--------------
The proposal workflow: the available-bills query, proposal creation and
submission by purchase, the accounts and owner decision rounds, and
draft deletion.  Payment generation from an approved proposal lives in
``gls_modules.payments.service``.

Architecture position
---------------------
**Modules layer** -- ``ProposalsService`` is the sole public entry point
for proposal writes.  Item status and proposal outcome are computed by
``gls_engines.proposal_status``; allowed proposal transitions are data
in ``workflows.PROPOSAL_WORKFLOW``.

Invariants enforced
-------------------
* A bill is never committed to two open proposals: creation locks each
  bill row and re-checks eligibility inside the transaction.
* The composite item status is written only from ``derive_item_status``.
* Proposal and item rows are locked (``SELECT ... FOR UPDATE``) for the
  whole decision round, so concurrent accounts and owner actions
  serialize instead of losing updates.
* A decision identical to the stored one is a no-op: no write, no audit
  event.
* Decision rounds are atomic.  The first failing decision aborts the
  round, and the raised error carries ``failed_item_id``.

Failure modes
-------------
* ``ValidationError`` -- malformed input, unknown action, amount above
  the bill's outstanding amount.
* ``BillNotEligibleError`` -- bill cancelled, paid, or on another open
  proposal.
* ``InvalidTransitionError`` -- action not allowed in the proposal's
  state.
* ``ProposalAlreadyCompletedError`` -- owner action on a completed
  proposal.
* ``AuthorizationError`` -- wrong role, or not the creator (submit/delete).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gls_config.schema import WorkflowSettings
from gls_engines.aging import BucketTotal
from gls_engines.bill_lifecycle import SettlementStatus, outstanding
from gls_engines.proposal_status import (
    RELEASED_ITEM_STATUSES,
    TERMINAL_PROPOSAL_STATUSES,
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
from gls_kernel.db.engine import transaction_scope
from gls_kernel.db.types import ZERO
from gls_kernel.domain.clock import Clock, SystemClock
from gls_kernel.domain.principal import Principal
from gls_kernel.exceptions import (
    BillNotEligibleError,
    DanglingReferenceError,
    GlsError,
    InvalidTransitionError,
    NotFoundError,
    ProposalAlreadyCompletedError,
    ValidationError,
)
from gls_kernel.logging_config import get_logger
from gls_kernel.models.audit_event import AuditAction
from gls_kernel.services.auditor_service import AuditorService
from gls_kernel.services.sequence_service import SequenceService
from gls_modules._helpers import (
    DEFAULT_TIMEOUT_SECONDS,
    FieldValidator,
    load,
    load_for_update,
    operation_context,
    require_transition,
)
from gls_modules.payables.models import PayableBillStatus
from gls_modules.payables.orm import PayableBillModel, VendorModel
from gls_modules.proposals.models import (
    AccountsDecision,
    AvailableBill,
    AvailableBills,
    AvailableBillsFilter,
    AvailableBillsSummary,
    OwnerDecision,
    Proposal,
    ProposalItemInput,
)
from gls_modules.proposals.orm import ProposalItemModel, ProposalModel
from gls_modules.proposals.workflows import (
    OWNER_DECIDABLE_STATES,
    PROPOSAL_WORKFLOW,
    owner_action_name,
)
from gls_services.rbac_authority import authorize, authorize_owner_or_self

logger = get_logger("modules.proposals.service")

ActionT = TypeVar("ActionT", bound=Enum)


def blocking_item_exists(bill_id_column):
    """Correlated EXISTS: some item on an open proposal still commits the bill.

    SQL form of ``item_blocks_bill``; both read the same status sets.
    """
    return (
        select(ProposalItemModel.id)
        .join(ProposalModel, ProposalModel.id == ProposalItemModel.proposal_id)
        .where(
            ProposalItemModel.bill_id == bill_id_column,
            ProposalModel.status.not_in([s.value for s in TERMINAL_PROPOSAL_STATUSES]),
            ProposalItemModel.status.not_in([s.value for s in RELEASED_ITEM_STATUSES]),
        )
        .exists()
    )


def _parse_action(action_cls: type[ActionT], value: object) -> ActionT:
    try:
        return action_cls(value)
    except ValueError as exc:
        allowed = ", ".join(a.value for a in action_cls)
        raise ValidationError({"action": f"must be one of {allowed}"}) from exc


class ProposalsService:
    """
    Proposal workflow operations.

    Contract
    --------
    * Public methods take the calling ``Principal`` first and return
      frozen DTOs from ``models.py``.
    * Proposal numbers come from ``SequenceService`` as
      ``<prefix>-<year>-<NNNNN>``; the prefix is configurable.
    * ``settings.all_deferred_outcome`` decides the proposal status when
      the owner defers every decided item.
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
    # Available bills
    # =========================================================================

    def list_available_bills(
        self,
        principal: Principal,
        bill_filter: AvailableBillsFilter | str | None = None,
        vendor_id: UUID | None = None,
        as_of: date | None = None,
    ) -> AvailableBills:
        """
        Bills purchase may put on a new proposal, oldest due date first.

        Eligible means active, not fully paid, and not committed by an
        item on an open proposal.  ``bill_filter`` narrows the list:

        * ``overdue`` -- due before today
        * ``due_today`` -- due today
        * ``due_week`` -- due today through today + ``due_soon_days``
        * ``carry_forward`` -- has at least one owner-deferred item

        The summary always covers every eligible bill (after the vendor
        filter); its ``due_this_week`` excludes bills due today.
        """
        authorize(principal, "proposal.view_available_bills")
        if bill_filter is not None:
            try:
                bill_filter = AvailableBillsFilter(bill_filter)
            except ValueError as exc:
                allowed = ", ".join(f.value for f in AvailableBillsFilter)
                raise ValidationError({"filter": f"must be one of {allowed}"}) from exc
        today = as_of or self._clock.today()
        week_end = today + timedelta(days=self._settings.due_soon_days)

        carry_forward_count = (
            select(func.count(ProposalItemModel.id))
            .where(
                ProposalItemModel.bill_id == PayableBillModel.id,
                ProposalItemModel.status == ItemStatus.CARRY_FORWARD.value,
            )
            .correlate(PayableBillModel)
            .scalar_subquery()
        )
        stmt = (
            select(PayableBillModel, VendorModel.code, VendorModel.name, carry_forward_count)
            .join(VendorModel, VendorModel.id == PayableBillModel.vendor_id)
            .where(
                PayableBillModel.status == PayableBillStatus.ACTIVE.value,
                PayableBillModel.payment_status != SettlementStatus.PAID.value,
                ~blocking_item_exists(PayableBillModel.id),
            )
            .order_by(PayableBillModel.due_date, PayableBillModel.bill_number)
        )
        if vendor_id is not None:
            stmt = stmt.where(PayableBillModel.vendor_id == vendor_id)

        eligible = [
            AvailableBill(
                bill_id=bill.id,
                bill_number=bill.bill_number,
                vendor_id=bill.vendor_id,
                vendor_code=vendor_code,
                vendor_name=vendor_name,
                invoice_date=bill.invoice_date,
                due_date=bill.due_date,
                credit_days=bill.credit_days,
                amount=bill.amount,
                paid_amount=bill.paid_amount,
                outstanding=outstanding(bill.amount, bill.paid_amount),
                age_days=(today - bill.due_date).days,
                carry_forward_count=cf_count or 0,
            )
            for bill, vendor_code, vendor_name, cf_count in self._session.execute(stmt).all()
        ]

        overdue = due_today = due_this_week = BucketTotal()
        for bill in eligible:
            if bill.due_date < today:
                overdue = overdue.add(bill.outstanding)
            elif bill.due_date == today:
                due_today = due_today.add(bill.outstanding)
            elif bill.due_date <= week_end:
                due_this_week = due_this_week.add(bill.outstanding)

        if bill_filter is AvailableBillsFilter.OVERDUE:
            selected = [b for b in eligible if b.due_date < today]
        elif bill_filter is AvailableBillsFilter.DUE_TODAY:
            selected = [b for b in eligible if b.due_date == today]
        elif bill_filter is AvailableBillsFilter.DUE_WEEK:
            selected = [b for b in eligible if today <= b.due_date <= week_end]
        elif bill_filter is AvailableBillsFilter.CARRY_FORWARD:
            selected = [b for b in eligible if b.carry_forward_count > 0]
        else:
            selected = eligible

        logger.debug(
            "available_bills_listed",
            extra={
                "filter": bill_filter.value if bill_filter else None,
                "eligible_count": len(eligible),
                "selected_count": len(selected),
            },
        )
        return AvailableBills(
            bills=tuple(selected),
            summary=AvailableBillsSummary(
                overdue=overdue, due_today=due_today, due_this_week=due_this_week,
            ),
            as_of=today,
        )

    def _check_eligible(self, bill: PayableBillModel, exclude_item_id: UUID | None = None) -> None:
        if bill.status == PayableBillStatus.CANCELLED.value:
            raise BillNotEligibleError(bill.id, "bill is cancelled")
        if bill.payment_status == SettlementStatus.PAID.value:
            raise BillNotEligibleError(bill.id, "bill is fully paid")
        rows = self._session.execute(
            select(
                ProposalItemModel.id,
                ProposalModel.proposal_number,
                ProposalModel.status,
                ProposalItemModel.status,
            )
            .join(ProposalItemModel, ProposalItemModel.proposal_id == ProposalModel.id)
            .where(ProposalItemModel.bill_id == bill.id)
        ).all()
        for item_id, number, proposal_status, item_status in rows:
            if item_id == exclude_item_id:
                continue
            if item_blocks_bill(ProposalStatus(proposal_status), ItemStatus(item_status)):
                raise BillNotEligibleError(bill.id, f"bill is on open proposal {number}")

    # =========================================================================
    # Proposal lifecycle
    # =========================================================================

    def create_proposal(
        self,
        principal: Principal,
        payment_date: date,
        items: Sequence[ProposalItemInput],
        remarks: str | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> Proposal:
        """
        Create a draft proposal dated today.

        Preconditions:
            - ``items`` is non-empty and names each bill once.
            - every bill is eligible and ``0 <= proposed_amount <= outstanding``.
        Postconditions:
            - status draft; total_amount = sum of proposed amounts.
            - every item is ``proposed`` with both tracks pending.

        Raises:
            ValidationError / DanglingReferenceError / BillNotEligibleError,
            with ``failed_item_id`` set to the offending bill id.
        """
        authorize(principal, "proposal.create")
        validator = FieldValidator()
        payment_date = validator.calendar_date("payment_date", payment_date)
        remarks = validator.text("remarks", remarks, 500, required=False)
        if not items:
            validator.add("items", "at least one item is required")
        validator.raise_if_invalid()

        parsed: list[tuple[UUID, Decimal, str | None]] = []
        seen: set[UUID] = set()
        for item in items:
            item_validator = FieldValidator()
            amount = item_validator.amount("proposed_amount", item.proposed_amount)
            item_remarks = item_validator.text("remarks", item.remarks, 500, required=False)
            if item.bill_id in seen:
                item_validator.add("bill_id", "appears more than once")
            seen.add(item.bill_id)
            try:
                item_validator.raise_if_invalid()
            except ValidationError as exc:
                exc.failed_item_id = item.bill_id
                raise
            parsed.append((item.bill_id, amount, item_remarks))

        today = self._clock.today()
        with operation_context(principal, "proposal.create"):
            logger.info(
                "proposal_create_started",
                extra={"item_count": len(parsed), "payment_date": payment_date.isoformat()},
            )
            with transaction_scope(
                self._session, "proposal.create", self._deadline(timeout_seconds),
            ):
                for bill_id, amount, _ in parsed:
                    try:
                        bill = self._session.execute(
                            select(PayableBillModel)
                            .where(PayableBillModel.id == bill_id)
                            .with_for_update()
                            .execution_options(populate_existing=True)
                        ).scalar_one_or_none()
                        if bill is None:
                            raise DanglingReferenceError("payable_bill", bill_id)
                        self._check_eligible(bill)
                        bill_outstanding = outstanding(bill.amount, bill.paid_amount)
                        if amount > bill_outstanding:
                            raise ValidationError(
                                {"proposed_amount": f"must not exceed outstanding {bill_outstanding}"}
                            )
                    except GlsError as exc:
                        exc.failed_item_id = bill_id
                        raise

                number = self._sequences.next_document_number(
                    self._settings.proposal_number_prefix, today.year,
                )
                pending_status = derive_item_status(AccountsStatus.PENDING, OwnerStatus.PENDING)
                proposal = ProposalModel(
                    proposal_number=number,
                    proposal_date=today,
                    payment_date=payment_date,
                    total_amount=sum((amount for _, amount, _ in parsed), ZERO),
                    status=ProposalStatus.DRAFT.value,
                    remarks=remarks,
                    created_by_id=principal.user_id,
                )
                for line_number, (bill_id, amount, item_remarks) in enumerate(parsed, start=1):
                    proposal.items.append(
                        ProposalItemModel(
                            bill_id=bill_id,
                            line_number=line_number,
                            proposed_amount=amount,
                            urgency_remarks=item_remarks,
                            accounts_status=AccountsStatus.PENDING.value,
                            owner_status=OwnerStatus.PENDING.value,
                            status=pending_status.value,
                            is_settled=False,
                            created_by_id=principal.user_id,
                        )
                    )
                self._session.add(proposal)
                self._session.flush()
                self._auditor.record(
                    "proposal", proposal.id, AuditAction.PROPOSAL_CREATED, principal.user_id,
                    {
                        "proposal_number": number,
                        "total_amount": proposal.total_amount,
                        "bill_ids": [bill_id for bill_id, _, _ in parsed],
                    },
                )
                dto = proposal.to_dto()

            logger.info(
                "proposal_create_committed",
                extra={
                    "proposal_id": str(dto.id),
                    "proposal_number": dto.proposal_number,
                    "total_amount": str(dto.total_amount),
                },
            )
        return dto

    def submit_proposal(
        self,
        principal: Principal,
        proposal_id: UUID,
        *,
        timeout_seconds: float | None = None,
    ) -> Proposal:
        """Send a draft to accounts.  Only its creator or the owner may submit."""
        authorize(principal, "proposal.submit")
        with operation_context(principal, "proposal.submit", proposal_id):
            with transaction_scope(
                self._session, "proposal.submit", self._deadline(timeout_seconds),
            ):
                proposal = load_for_update(self._session, ProposalModel, proposal_id, "proposal")
                authorize_owner_or_self(principal, "proposal.submit", proposal.created_by_id)
                transition = require_transition(
                    PROPOSAL_WORKFLOW, "proposal", proposal_id, proposal.status, "submit",
                )
                proposal.status = transition.to_state
                proposal.submitted_at = self._clock.now()
                proposal.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "proposal", proposal.id, AuditAction.PROPOSAL_SUBMITTED, principal.user_id,
                    {"proposal_number": proposal.proposal_number},
                )
                dto = proposal.to_dto()

            logger.info(
                "proposal_submit_committed",
                extra={"proposal_id": str(proposal_id), "proposal_number": dto.proposal_number},
            )
        return dto

    def delete_proposal(
        self,
        principal: Principal,
        proposal_id: UUID,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        """Delete a draft and its items.  Only its creator or the owner may delete."""
        authorize(principal, "proposal.delete")
        with operation_context(principal, "proposal.delete", proposal_id):
            with transaction_scope(
                self._session, "proposal.delete", self._deadline(timeout_seconds),
            ):
                proposal = load_for_update(self._session, ProposalModel, proposal_id, "proposal")
                authorize_owner_or_self(principal, "proposal.delete", proposal.created_by_id)
                if proposal.status != ProposalStatus.DRAFT.value:
                    raise InvalidTransitionError("proposal", proposal_id, proposal.status, "delete")
                number = proposal.proposal_number
                self._session.delete(proposal)
                self._session.flush()
                self._auditor.record(
                    "proposal", proposal_id, AuditAction.PROPOSAL_DELETED, principal.user_id,
                    {"proposal_number": number},
                )

            logger.info(
                "proposal_delete_committed",
                extra={"proposal_id": str(proposal_id), "proposal_number": number},
            )

    # =========================================================================
    # Decision rounds
    # =========================================================================

    def accounts_action(
        self,
        principal: Principal,
        proposal_id: UUID,
        decisions: Sequence[AccountsDecision],
        *,
        timeout_seconds: float | None = None,
    ) -> Proposal:
        """
        Apply accounts verdicts to items and move the proposal to under_review.

        ``approve`` defaults the accounts amount to the proposed amount.
        ``reject`` reverts the item to ``proposed``; only the owner can
        terminate an item.

        Raises:
            ValidationError: empty round, unknown action, bad amount.
            NotFoundError: item not on this proposal.
            InvalidTransitionError: proposal not submitted/under_review,
                or item already settled.
        """
        authorize(principal, "proposal.accounts_action")
        if not decisions:
            raise ValidationError({"decisions": "at least one decision is required"})

        with operation_context(principal, "proposal.accounts_action", proposal_id):
            logger.info(
                "proposal_accounts_action_started",
                extra={"proposal_id": str(proposal_id), "decision_count": len(decisions)},
            )
            with transaction_scope(
                self._session, "proposal.accounts_action", self._deadline(timeout_seconds),
            ):
                proposal = load_for_update(self._session, ProposalModel, proposal_id, "proposal")
                transition = require_transition(
                    PROPOSAL_WORKFLOW, "proposal", proposal_id, proposal.status,
                    "accounts_review",
                )
                items = self._lock_items(proposal_id)
                changed = 0
                for decision in decisions:
                    try:
                        if self._apply_accounts_decision(principal, items, decision):
                            changed += 1
                    except GlsError as exc:
                        exc.failed_item_id = decision.item_id
                        raise
                self._change_status(principal, proposal, ProposalStatus(transition.to_state))
                self._session.flush()
                dto = proposal.to_dto()

            logger.info(
                "proposal_accounts_action_committed",
                extra={
                    "proposal_id": str(proposal_id),
                    "changed_items": changed,
                    "status": dto.status.value,
                },
            )
        return dto

    def owner_action(
        self,
        principal: Principal,
        proposal_id: UUID,
        decisions: Sequence[OwnerDecision],
        *,
        timeout_seconds: float | None = None,
    ) -> Proposal:
        """
        Apply owner verdicts and derive the proposal outcome.

        ``approve`` defaults the owner amount to the accounts amount, then
        the proposed amount.  ``defer`` makes the item ``carry_forward``,
        which releases its bill for future proposals.  The outcome is
        derived over every item the owner has decided so far; with nothing
        decided the status is left unchanged.

        Raises:
            ProposalAlreadyCompletedError: payment already generated.
            InvalidTransitionError: proposal draft or rejected, or item
                already settled.
            BillNotEligibleError: reviving a deferred or rejected item whose
                bill has since moved to another open proposal, or closed.
            ValidationError / NotFoundError: as for ``accounts_action``.
        """
        authorize(principal, "proposal.owner_action")
        if not decisions:
            raise ValidationError({"decisions": "at least one decision is required"})

        with operation_context(principal, "proposal.owner_action", proposal_id):
            logger.info(
                "proposal_owner_action_started",
                extra={"proposal_id": str(proposal_id), "decision_count": len(decisions)},
            )
            with transaction_scope(
                self._session, "proposal.owner_action", self._deadline(timeout_seconds),
            ):
                proposal = load_for_update(self._session, ProposalModel, proposal_id, "proposal")
                if proposal.status == ProposalStatus.COMPLETED.value:
                    raise ProposalAlreadyCompletedError(proposal_id)
                if proposal.status not in OWNER_DECIDABLE_STATES:
                    raise InvalidTransitionError(
                        "proposal", proposal_id, proposal.status, "owner_action",
                    )
                items = self._lock_items(proposal_id)
                changed = 0
                for decision in decisions:
                    try:
                        if self._apply_owner_decision(principal, items, decision):
                            changed += 1
                    except GlsError as exc:
                        exc.failed_item_id = decision.item_id
                        raise

                outcome = derive_proposal_outcome(
                    (OwnerStatus(item.owner_status) for item in items.values()),
                    self._settings.all_deferred_outcome,
                )
                if outcome is not None:
                    require_transition(
                        PROPOSAL_WORKFLOW, "proposal", proposal_id, proposal.status,
                        owner_action_name(outcome),
                    )
                    self._change_status(principal, proposal, outcome)
                self._session.flush()
                dto = proposal.to_dto()

            logger.info(
                "proposal_owner_action_committed",
                extra={
                    "proposal_id": str(proposal_id),
                    "changed_items": changed,
                    "status": dto.status.value,
                },
            )
        return dto

    def _lock_items(self, proposal_id: UUID) -> dict[UUID, ProposalItemModel]:
        rows = self._session.execute(
            select(ProposalItemModel)
            .where(ProposalItemModel.proposal_id == proposal_id)
            .order_by(ProposalItemModel.line_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {row.id: row for row in rows}

    def _decision_target(
        self,
        items: dict[UUID, ProposalItemModel],
        item_id: UUID,
        action_name: str,
    ) -> tuple[ProposalItemModel, Decimal]:
        """The item a decision addresses and its bill's outstanding amount."""
        item = items.get(item_id)
        if item is None:
            raise NotFoundError("proposal_item", item_id)
        if item.is_settled:
            raise InvalidTransitionError("proposal_item", item_id, item.status, action_name)
        bill = self._session.get(PayableBillModel, item.bill_id)
        return item, outstanding(bill.amount, bill.paid_amount)

    @staticmethod
    def _validate_decision(
        amount: object,
        reason: object,
        default_amount: Decimal | None,
        bill_outstanding: Decimal,
    ) -> tuple[Decimal | None, str | None]:
        validator = FieldValidator()
        resolved = validator.amount("amount", amount, maximum=bill_outstanding, required=False)
        cleaned_reason = validator.text("reason", reason, 500, required=False)
        if resolved is None and default_amount is not None:
            resolved = default_amount
            if resolved > bill_outstanding:
                validator.add("amount", f"must not exceed outstanding {bill_outstanding}")
        validator.raise_if_invalid()
        return resolved, cleaned_reason

    def _apply_accounts_decision(
        self,
        principal: Principal,
        items: dict[UUID, ProposalItemModel],
        decision: AccountsDecision,
    ) -> bool:
        action = _parse_action(AccountsAction, decision.action)
        item, bill_outstanding = self._decision_target(
            items, decision.item_id, f"accounts_{action.value}",
        )
        amount, reason = self._validate_decision(
            decision.amount,
            decision.reason,
            item.proposed_amount if action is AccountsAction.APPROVE else None,
            bill_outstanding,
        )
        new_status = action.resulting_status
        if (
            item.accounts_status == new_status.value
            and item.accounts_amount == amount
            and item.accounts_reason == reason
        ):
            return False

        item.accounts_status = new_status.value
        item.accounts_amount = amount
        item.accounts_reason = reason
        item.accounts_by_id = principal.user_id
        item.accounts_at = self._clock.now()
        item.status = derive_item_status(
            new_status, OwnerStatus(item.owner_status), item.is_settled,
        ).value
        item.updated_by_id = principal.user_id
        self._auditor.record(
            "proposal_item", item.id, AuditAction.ITEM_ACCOUNTS_DECIDED, principal.user_id,
            {
                "proposal_id": item.proposal_id,
                "action": action,
                "amount": amount,
                "reason": reason,
                "status": item.status,
            },
        )
        return True

    def _apply_owner_decision(
        self,
        principal: Principal,
        items: dict[UUID, ProposalItemModel],
        decision: OwnerDecision,
    ) -> bool:
        action = _parse_action(OwnerAction, decision.action)
        item, bill_outstanding = self._decision_target(
            items, decision.item_id, f"owner_{action.value}",
        )
        default_amount = None
        if action is OwnerAction.APPROVE:
            default_amount = (
                item.accounts_amount if item.accounts_amount is not None else item.proposed_amount
            )
        amount, reason = self._validate_decision(
            decision.amount, decision.reason, default_amount, bill_outstanding,
        )
        new_status = action.resulting_status
        if (
            item.owner_status == new_status.value
            and item.owner_amount == amount
            and item.owner_reason == reason
        ):
            return False

        new_item_status = derive_item_status(
            AccountsStatus(item.accounts_status), new_status, item.is_settled,
        )
        if (
            ItemStatus(item.status) in RELEASED_ITEM_STATUSES
            and new_item_status not in RELEASED_ITEM_STATUSES
        ):
            # A released bill may have been picked up by another proposal since.
            bill = load_for_update(self._session, PayableBillModel, item.bill_id, "payable_bill")
            self._check_eligible(bill, exclude_item_id=item.id)

        item.owner_status = new_status.value
        item.owner_amount = amount
        item.owner_reason = reason
        item.owner_by_id = principal.user_id
        item.owner_at = self._clock.now()
        item.status = new_item_status.value
        item.updated_by_id = principal.user_id
        self._auditor.record(
            "proposal_item", item.id, AuditAction.ITEM_OWNER_DECIDED, principal.user_id,
            {
                "proposal_id": item.proposal_id,
                "action": action,
                "amount": amount,
                "reason": reason,
                "status": item.status,
            },
        )
        return True

    def _change_status(
        self,
        principal: Principal,
        proposal: ProposalModel,
        new_status: ProposalStatus,
    ) -> None:
        if proposal.status == new_status.value:
            return
        previous = proposal.status
        proposal.status = new_status.value
        proposal.updated_by_id = principal.user_id
        self._auditor.record(
            "proposal", proposal.id, AuditAction.PROPOSAL_STATUS_CHANGED, principal.user_id,
            {"from": previous, "to": new_status},
        )
        logger.info(
            "proposal_status_changed",
            extra={"proposal_id": str(proposal.id), "from": previous, "to": new_status.value},
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_proposal(self, principal: Principal, proposal_id: UUID) -> Proposal:
        authorize(principal, "proposal.view")
        return load(self._session, ProposalModel, proposal_id, "proposal").to_dto()

    def list_proposals(
        self,
        principal: Principal,
        status: ProposalStatus | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Proposal, ...]:
        """Proposals newest first, optionally narrowed by status and proposal date."""
        authorize(principal, "proposal.view")
        stmt = select(ProposalModel)
        if status is not None:
            stmt = stmt.where(ProposalModel.status == ProposalStatus(status).value)
        if date_from is not None:
            stmt = stmt.where(ProposalModel.proposal_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(ProposalModel.proposal_date <= date_to)
        stmt = (
            stmt.order_by(ProposalModel.proposal_date.desc(), ProposalModel.proposal_number.desc())
            .limit(limit)
            .offset(offset)
        )
        return tuple(p.to_dto() for p in self._session.execute(stmt).scalars().all())
