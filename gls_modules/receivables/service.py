"""
Receivables Module Service (``gls_modules.receivables.service``).

Responsibility
--------------
Customer master maintenance and the outward-bill lifecycle: dispatch
(godown), delivery tracking (godown), collections (accounts), edits and
cancellation (owner).

Invariants enforced
-------------------
* ``0 <= collected_amount <= amount``; ``collection_status`` always
  equals ``payment_status(amount, collected_amount)``.
* ``status`` becomes ``paid`` exactly when the bill is fully collected.
* ``delivery_status`` is seeded once at creation by
  ``initial_delivery_status`` and afterwards changes only through
  ``update_delivery_status``, which accepts the fixed set of states only.
* Cancellation is refused once anything has been collected.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gls_engines.bill_lifecycle import (
    DeliveryStatus,
    SettlementStatus,
    can_settle,
    due_date,
    initial_delivery_status,
    payment_status,
)
from gls_kernel.db.engine import transaction_scope
from gls_kernel.db.types import ZERO
from gls_kernel.domain.clock import Clock, SystemClock
from gls_kernel.domain.principal import Principal
from gls_kernel.exceptions import (
    BillCancelledError,
    BillHasSettlementsError,
    BillPaidError,
    CounterpartyHasOutstandingBillsError,
    DanglingReferenceError,
    DuplicateCodeError,
    OverSettlementError,
    ValidationError,
)
from gls_kernel.logging_config import get_logger
from gls_kernel.models.audit_event import AuditAction
from gls_kernel.services.auditor_service import AuditorService
from gls_modules._counterparty import (
    CONTACT_FIELDS,
    DEFAULT_CREDIT_DAYS,
    validate_contact_fields,
    validate_identity,
)
from gls_modules._helpers import (
    DEFAULT_TIMEOUT_SECONDS,
    FieldValidator,
    load,
    load_for_update,
    operation_context,
    require_transition,
)
from gls_modules.receivables.models import (
    Customer,
    CustomerUpdate,
    ReceivableBill,
    ReceivableBillStatus,
    ReceivableBillUpdate,
)
from gls_modules.receivables.orm import CustomerModel, ReceivableBillModel
from gls_modules.receivables.workflows import DELIVERY_WORKFLOW, RECEIVABLE_BILL_WORKFLOW
from gls_services.rbac_authority import authorize

logger = get_logger("modules.receivables.service")

CUSTOMER_DETAIL_FIELDS: tuple[str, ...] = CONTACT_FIELDS + ("contact_person",)

_VALID_DELIVERY_STATUSES = frozenset(s.value for s in DeliveryStatus)


def _validate_customer_details(validator: FieldValidator, details: dict[str, Any]) -> dict[str, Any]:
    for name in sorted(set(details) - set(CUSTOMER_DETAIL_FIELDS)):
        validator.add(name, "is not a customer field")
    cleaned = validate_contact_fields(
        validator, {k: v for k, v in details.items() if k in CONTACT_FIELDS},
    )
    if "contact_person" in details:
        cleaned["contact_person"] = validator.text(
            "contact_person", details["contact_person"], 100, required=False,
        )
    return cleaned


class ReceivablesService:
    """
    Customer master and outward-bill operations.

    Contract
    --------
    * Public methods take the calling ``Principal`` first and return
      frozen DTOs from ``models.py``.
    * Each mutating method runs in one transaction with a deadline
      (service default, or the keyword-only ``timeout_seconds``).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._timeout = timeout_seconds
        self._auditor = AuditorService(session, self._clock)

    def _deadline(self, override: float | None) -> float:
        return self._timeout if override is None else override

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(
        self,
        principal: Principal,
        code: str,
        name: str,
        default_credit_days: int = DEFAULT_CREDIT_DAYS,
        credit_limit: Decimal = ZERO,
        *,
        timeout_seconds: float | None = None,
        **details: Any,
    ) -> Customer:
        """
        Register a customer.

        Raises:
            ValidationError: malformed or unknown fields.
            DuplicateCodeError: code already used by another customer.
        """
        authorize(principal, "customer.create")
        validator = FieldValidator()
        code, name, default_credit_days = validate_identity(
            validator, code, name, default_credit_days,
        )
        credit_limit = validator.amount("credit_limit", credit_limit)
        cleaned = _validate_customer_details(validator, details)
        validator.raise_if_invalid()

        with operation_context(principal, "customer.create"):
            with transaction_scope(
                self._session, "customer.create", self._deadline(timeout_seconds),
            ):
                existing = self._session.execute(
                    select(CustomerModel.id).where(CustomerModel.code == code)
                ).first()
                if existing is not None:
                    raise DuplicateCodeError("customer", code)

                model = CustomerModel(
                    code=code,
                    name=name,
                    default_credit_days=default_credit_days,
                    credit_limit=credit_limit,
                    is_active=True,
                    created_by_id=principal.user_id,
                    **{k: v for k, v in cleaned.items() if v is not None},
                )
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise DuplicateCodeError("customer", code) from exc

                self._auditor.record(
                    "customer", model.id, AuditAction.COUNTERPARTY_CREATED,
                    principal.user_id, {"code": code, "name": name},
                )
                dto = model.to_dto()

            logger.info(
                "customer_create_committed",
                extra={"customer_id": str(dto.id), "code": code},
            )
        return dto

    def update_customer(
        self,
        principal: Principal,
        customer_id: UUID,
        update: CustomerUpdate,
        *,
        timeout_seconds: float | None = None,
    ) -> Customer:
        authorize(principal, "customer.update")
        changes = update.changes()
        if not changes:
            raise ValidationError({"update": "no fields to change"})

        validator = FieldValidator()
        cleaned: dict[str, Any] = {}
        if "name" in changes:
            cleaned["name"] = validator.text("name", changes.pop("name"), 200)
        if "default_credit_days" in changes:
            cleaned["default_credit_days"] = validator.days(
                "default_credit_days", changes.pop("default_credit_days"),
            )
        if "credit_limit" in changes:
            cleaned["credit_limit"] = validator.amount("credit_limit", changes.pop("credit_limit"))
        cleaned.update(_validate_customer_details(validator, changes))
        validator.raise_if_invalid()

        with operation_context(principal, "customer.update", customer_id):
            with transaction_scope(
                self._session, "customer.update", self._deadline(timeout_seconds),
            ):
                model = load_for_update(self._session, CustomerModel, customer_id, "customer")
                before = {k: getattr(model, k) for k in cleaned}
                for key, value in cleaned.items():
                    setattr(model, key, value)
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "customer", model.id, AuditAction.COUNTERPARTY_UPDATED,
                    principal.user_id, {"before": before, "after": cleaned},
                )
                dto = model.to_dto()

            logger.info("customer_update_committed", extra={"customer_id": str(customer_id)})
        return dto

    def deactivate_customer(
        self,
        principal: Principal,
        customer_id: UUID,
        *,
        timeout_seconds: float | None = None,
    ) -> Customer:
        """
        Deactivate a customer.  Already inactive customers are returned unchanged.

        Raises:
            CounterpartyHasOutstandingBillsError: an active bill is not fully collected.
        """
        authorize(principal, "customer.deactivate")
        with operation_context(principal, "customer.deactivate", customer_id):
            with transaction_scope(
                self._session, "customer.deactivate", self._deadline(timeout_seconds),
            ):
                model = load_for_update(self._session, CustomerModel, customer_id, "customer")
                if not model.is_active:
                    return model.to_dto()

                open_bills = self._session.execute(
                    select(func.count(ReceivableBillModel.id)).where(
                        ReceivableBillModel.customer_id == customer_id,
                        ReceivableBillModel.status == ReceivableBillStatus.ACTIVE.value,
                    )
                ).scalar_one()
                if open_bills:
                    raise CounterpartyHasOutstandingBillsError("customer", customer_id, open_bills)

                model.is_active = False
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "customer", model.id, AuditAction.COUNTERPARTY_DEACTIVATED,
                    principal.user_id,
                )
                dto = model.to_dto()

            logger.info("customer_deactivate_committed", extra={"customer_id": str(customer_id)})
        return dto

    def get_customer(self, principal: Principal, customer_id: UUID) -> Customer:
        authorize(principal, "customer.view")
        return load(self._session, CustomerModel, customer_id, "customer").to_dto()

    # =========================================================================
    # Outward bills
    # =========================================================================

    def create_receivable_bill(
        self,
        principal: Principal,
        customer_id: UUID,
        invoice_number: str,
        invoice_date: date,
        amount: Decimal,
        credit_days: int,
        dispatched_by: str,
        delivery_mode: str | None = None,
        delivery_person: str | None = None,
        courier_name: str | None = None,
        tracking_number: str | None = None,
        remarks: str | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> ReceivableBill:
        """
        Record an outward bill as dispatched from the godown.

        Postconditions:
            - status active, collection_status open, collected_amount 0.
            - delivery_status seeded from the delivery mode and carrier.

        Raises:
            ValidationError: one entry per offending field.
            DanglingReferenceError: customer missing or inactive.
        """
        authorize(principal, "receivable_bill.create")
        validator = FieldValidator()
        invoice_number = validator.text("invoice_number", invoice_number, 50)
        invoice_date = validator.calendar_date("invoice_date", invoice_date)
        amount = validator.amount("amount", amount)
        credit_days = validator.days("credit_days", credit_days)
        dispatched_by = validator.text("dispatched_by", dispatched_by, 100)
        delivery_mode = validator.text("delivery_mode", delivery_mode, 50, required=False)
        delivery_person = validator.text("delivery_person", delivery_person, 100, required=False)
        courier_name = validator.text("courier_name", courier_name, 100, required=False)
        tracking_number = validator.text("tracking_number", tracking_number, 100, required=False)
        remarks = validator.text("remarks", remarks, 500, required=False)
        validator.raise_if_invalid()

        delivery_status = initial_delivery_status(delivery_mode, delivery_person, courier_name)

        with operation_context(principal, "receivable_bill.create"):
            logger.info(
                "receivable_bill_create_started",
                extra={
                    "customer_id": str(customer_id),
                    "invoice_number": invoice_number,
                    "amount": str(amount),
                },
            )
            with transaction_scope(
                self._session, "receivable_bill.create", self._deadline(timeout_seconds),
            ):
                customer = self._session.get(CustomerModel, customer_id)
                if customer is None:
                    raise DanglingReferenceError("customer", customer_id)
                if not customer.is_active:
                    raise DanglingReferenceError("customer", customer_id, "inactive")

                model = ReceivableBillModel(
                    customer_id=customer_id,
                    invoice_number=invoice_number,
                    invoice_date=invoice_date,
                    amount=amount,
                    collected_amount=ZERO,
                    credit_days=credit_days,
                    due_date=due_date(invoice_date, credit_days),
                    dispatched_by=dispatched_by,
                    delivery_mode=delivery_mode,
                    delivery_person=delivery_person,
                    courier_name=courier_name,
                    tracking_number=tracking_number,
                    delivered_at=(
                        self._clock.now() if delivery_status is DeliveryStatus.DELIVERED else None
                    ),
                    remarks=remarks,
                    status=ReceivableBillStatus.ACTIVE.value,
                    collection_status=payment_status(amount, ZERO).value,
                    delivery_status=delivery_status.value,
                    created_by_id=principal.user_id,
                )
                self._apply_collection_status(model)
                self._session.add(model)
                self._session.flush()
                self._auditor.record(
                    "receivable_bill", model.id, AuditAction.BILL_CREATED, principal.user_id,
                    {
                        "invoice_number": invoice_number,
                        "amount": amount,
                        "delivery_status": delivery_status,
                    },
                )
                dto = model.to_dto()

            logger.info(
                "receivable_bill_create_committed",
                extra={"bill_id": str(dto.id), "delivery_status": dto.delivery_status.value},
            )
        return dto

    def update_receivable_bill(
        self,
        principal: Principal,
        bill_id: UUID,
        update: ReceivableBillUpdate,
        *,
        timeout_seconds: float | None = None,
    ) -> ReceivableBill:
        """
        Owner edit of an active bill.

        Delivery fields are stored as given; the delivery status itself is
        only changed through ``update_delivery_status``.

        Raises:
            ValidationError: empty update, invalid field, or amount below
                what has already been collected.
            BillCancelledError / BillPaidError: bill is closed.
        """
        authorize(principal, "receivable_bill.update")
        changes = update.changes()
        if not changes:
            raise ValidationError({"update": "no fields to change"})

        validator = FieldValidator()
        cleaned: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "invoice_number":
                cleaned[key] = validator.text(key, value, 50)
            elif key == "invoice_date":
                cleaned[key] = validator.calendar_date(key, value)
            elif key == "amount":
                cleaned[key] = validator.amount(key, value)
            elif key == "credit_days":
                cleaned[key] = validator.days(key, value)
            elif key == "dispatched_by":
                cleaned[key] = validator.text(key, value, 100)
            elif key == "delivery_mode":
                cleaned[key] = validator.text(key, value, 50, required=False)
            elif key == "remarks":
                cleaned[key] = validator.text(key, value, 500, required=False)
            else:
                cleaned[key] = validator.text(key, value, 100, required=False)
        validator.raise_if_invalid()

        with operation_context(principal, "receivable_bill.update", bill_id):
            with transaction_scope(
                self._session, "receivable_bill.update", self._deadline(timeout_seconds),
            ):
                model = load_for_update(
                    self._session, ReceivableBillModel, bill_id, "receivable_bill",
                )
                if model.status == ReceivableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                if model.status == ReceivableBillStatus.PAID.value:
                    raise BillPaidError(bill_id)
                require_transition(
                    RECEIVABLE_BILL_WORKFLOW, "receivable_bill", bill_id, model.status, "update",
                )

                new_amount = cleaned.get("amount", model.amount)
                if new_amount < model.collected_amount:
                    raise ValidationError(
                        {"amount": f"must not be below collected amount {model.collected_amount}"}
                    )

                before = {k: getattr(model, k) for k in cleaned}
                for key, value in cleaned.items():
                    setattr(model, key, value)
                if "invoice_date" in cleaned or "credit_days" in cleaned:
                    model.due_date = due_date(model.invoice_date, model.credit_days)
                self._apply_collection_status(model)
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "receivable_bill", model.id, AuditAction.BILL_UPDATED, principal.user_id,
                    {"before": before, "after": cleaned},
                )
                dto = model.to_dto()

            logger.info("receivable_bill_update_committed", extra={"bill_id": str(bill_id)})
        return dto

    def update_delivery_status(
        self,
        principal: Principal,
        bill_id: UUID,
        delivery_status: str,
        tracking_number: str | None = None,
        delivery_person: str | None = None,
        delivered_at: datetime | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> ReceivableBill:
        """
        Move a bill to another delivery state.

        ``delivered`` stamps ``delivered_at`` (now, unless given).
        Unknown values are rejected, never coerced.

        Raises:
            ValidationError: unknown delivery status or oversized field.
            BillCancelledError: bill is cancelled.
        """
        authorize(principal, "receivable_bill.update_delivery")
        validator = FieldValidator()
        raw_status = delivery_status.value if isinstance(delivery_status, DeliveryStatus) else delivery_status
        if raw_status not in _VALID_DELIVERY_STATUSES:
            validator.add(
                "delivery_status",
                f"must be one of {', '.join(sorted(_VALID_DELIVERY_STATUSES))}",
            )
        tracking_number = validator.text("tracking_number", tracking_number, 100, required=False)
        delivery_person = validator.text("delivery_person", delivery_person, 100, required=False)
        validator.raise_if_invalid()
        target = DeliveryStatus(raw_status)

        with operation_context(principal, "receivable_bill.update_delivery", bill_id):
            with transaction_scope(
                self._session, "receivable_bill.update_delivery", self._deadline(timeout_seconds),
            ):
                model = load_for_update(
                    self._session, ReceivableBillModel, bill_id, "receivable_bill",
                )
                if model.status == ReceivableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                require_transition(
                    DELIVERY_WORKFLOW, "receivable_bill", bill_id, model.delivery_status, target.value,
                )

                previous = model.delivery_status
                model.delivery_status = target.value
                if tracking_number is not None:
                    model.tracking_number = tracking_number
                if delivery_person is not None:
                    model.delivery_person = delivery_person
                if target is DeliveryStatus.DELIVERED:
                    model.delivered_at = delivered_at or self._clock.now()
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "receivable_bill", model.id, AuditAction.BILL_DELIVERY_UPDATED,
                    principal.user_id,
                    {"from": previous, "to": target, "tracking_number": tracking_number},
                )
                dto = model.to_dto()

            logger.info(
                "receivable_bill_delivery_committed",
                extra={"bill_id": str(bill_id), "from": previous, "to": target.value},
            )
        return dto

    def record_collection(
        self,
        principal: Principal,
        bill_id: UUID,
        amount: Decimal,
        *,
        timeout_seconds: float | None = None,
    ) -> ReceivableBill:
        """
        Record money received from the customer against a bill.

        Raises:
            ValidationError: amount missing, negative or zero.
            BillCancelledError / BillPaidError: bill is closed.
            OverSettlementError: collected_amount would exceed amount.
        """
        authorize(principal, "receivable_bill.record_collection")
        validator = FieldValidator()
        amount = validator.amount("amount", amount)
        if amount is not None and amount == ZERO:
            validator.add("amount", "must be greater than zero")
        validator.raise_if_invalid()

        with operation_context(principal, "receivable_bill.record_collection", bill_id):
            logger.info(
                "receivable_collection_started",
                extra={"bill_id": str(bill_id), "amount": str(amount)},
            )
            with transaction_scope(
                self._session, "receivable_bill.record_collection",
                self._deadline(timeout_seconds),
            ):
                model = load_for_update(
                    self._session, ReceivableBillModel, bill_id, "receivable_bill",
                )
                if model.status == ReceivableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                if model.status == ReceivableBillStatus.PAID.value:
                    raise BillPaidError(bill_id)
                if not can_settle(model.amount, model.collected_amount, amount):
                    raise OverSettlementError(
                        bill_id, model.amount, model.collected_amount, amount,
                    )

                model.collected_amount = model.collected_amount + amount
                fully_collected = model.collected_amount >= model.amount
                require_transition(
                    RECEIVABLE_BILL_WORKFLOW, "receivable_bill", bill_id, model.status,
                    "collect_in_full" if fully_collected else "collect",
                )
                self._apply_collection_status(model)
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "receivable_bill", model.id, AuditAction.BILL_COLLECTION_RECORDED,
                    principal.user_id,
                    {"amount": amount, "collected_amount": model.collected_amount},
                )
                dto = model.to_dto()

            logger.info(
                "receivable_collection_committed",
                extra={
                    "bill_id": str(bill_id),
                    "collected_amount": str(dto.collected_amount),
                    "collection_status": dto.collection_status.value,
                },
            )
        return dto

    def cancel_receivable_bill(
        self,
        principal: Principal,
        bill_id: UUID,
        reason: str,
        *,
        timeout_seconds: float | None = None,
    ) -> ReceivableBill:
        """
        Cancel a bill nothing has been collected against.

        Raises:
            ValidationError: blank reason.
            BillCancelledError: already cancelled.
            BillHasSettlementsError: collected_amount > 0.
        """
        authorize(principal, "receivable_bill.cancel")
        validator = FieldValidator()
        reason = validator.text("reason", reason, 500)
        validator.raise_if_invalid()

        with operation_context(principal, "receivable_bill.cancel", bill_id):
            with transaction_scope(
                self._session, "receivable_bill.cancel", self._deadline(timeout_seconds),
            ):
                model = load_for_update(
                    self._session, ReceivableBillModel, bill_id, "receivable_bill",
                )
                if model.status == ReceivableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                if model.collected_amount > ZERO:
                    raise BillHasSettlementsError(bill_id, model.collected_amount)
                require_transition(
                    RECEIVABLE_BILL_WORKFLOW, "receivable_bill", bill_id, model.status, "cancel",
                )

                model.status = ReceivableBillStatus.CANCELLED.value
                model.cancelled_at = self._clock.now()
                model.cancelled_by_id = principal.user_id
                model.cancel_reason = reason
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "receivable_bill", model.id, AuditAction.BILL_CANCELLED, principal.user_id,
                    {"reason": reason},
                )
                dto = model.to_dto()

            logger.info("receivable_bill_cancel_committed", extra={"bill_id": str(bill_id)})
        return dto

    def get_receivable_bill(self, principal: Principal, bill_id: UUID) -> ReceivableBill:
        authorize(principal, "receivable_bill.view")
        return load(self._session, ReceivableBillModel, bill_id, "receivable_bill").to_dto()

    @staticmethod
    def _apply_collection_status(model: ReceivableBillModel) -> None:
        status = payment_status(model.amount, model.collected_amount)
        model.collection_status = status.value
        if status is SettlementStatus.PAID:
            model.status = ReceivableBillStatus.PAID.value
