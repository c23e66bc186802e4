"""
Payables Module Service (``gls_modules.payables.service``).

Responsibility
--------------
Vendor master maintenance and the inward-bill lifecycle: create (godown),
edit and cancel (owner).  Every derived field (due date, outstanding,
payment status) comes from ``gls_engines.bill_lifecycle``.

Architecture position
---------------------
**Modules layer** -- ``PayablesService`` is the sole public entry point
for payables writes.  The payments module calls ``apply_bill_payment``
inside its own transaction when a UTR settles a payment detail.

Invariants enforced
-------------------
* Each public method authorizes first, then owns exactly one
  transaction (``transaction_scope``): commit on success, rollback on any
  exception.
* Every state change writes one audit event in the same transaction.
* ``update_payable_bill`` is compare-and-swap on ``version``.

Failure modes
-------------
* ``AuthorizationError`` before any database access.
* ``ValidationError`` listing every offending field.
* ``DanglingReferenceError`` when the vendor is missing or inactive.
* ``BillCancelledError`` / ``BillPaidError`` / ``BillHasSettlementsError``
  on edits and cancellation of closed or settled bills.
* ``OptimisticLockError`` on a stale ``expected_version``.

Usage::

    service = PayablesService(session, clock=clock)
    bill = service.create_payable_bill(
        principal, vendor_id=vendor.id, bill_number="INV-1001",
        invoice_date=date(2024, 1, 1), receiving_date=date(2024, 1, 2),
        amount=Decimal("10000.00"), credit_days=30, checked_by="Ravi",
    )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gls_engines.bill_lifecycle import (
    SettlementStatus,
    can_settle,
    due_date,
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
    OptimisticLockError,
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
    IFSC_PATTERN,
    FieldValidator,
    load,
    load_for_update,
    operation_context,
    require_transition,
)
from gls_modules.payables.models import (
    PayableBill,
    PayableBillStatus,
    PayableBillUpdate,
    Vendor,
    VendorUpdate,
)
from gls_modules.payables.orm import PayableBillModel, VendorModel
from gls_modules.payables.workflows import PAYABLE_BILL_WORKFLOW
from gls_services.rbac_authority import authorize

logger = get_logger("modules.payables.service")

_BANK_FIELDS = ("bank_name", "bank_branch", "account_number", "ifsc_code", "account_type")
VENDOR_DETAIL_FIELDS: tuple[str, ...] = CONTACT_FIELDS + _BANK_FIELDS


def _validate_bank_fields(validator: FieldValidator, values: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for name, value in values.items():
        if name == "ifsc_code":
            cleaned[name] = validator.pattern(name, value, IFSC_PATTERN, 11, upper=True)
        elif name == "account_number":
            cleaned[name] = validator.text(name, value, 30, required=False)
        elif name == "account_type":
            cleaned[name] = validator.text(name, value, 20)
        else:
            cleaned[name] = validator.text(name, value, 100, required=False)
    return cleaned


def _validate_vendor_details(validator: FieldValidator, details: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(details) - set(VENDOR_DETAIL_FIELDS))
    for name in unknown:
        validator.add(name, "is not a vendor field")
    contact = {k: v for k, v in details.items() if k in CONTACT_FIELDS}
    bank = {k: v for k, v in details.items() if k in _BANK_FIELDS}
    return {**validate_contact_fields(validator, contact), **_validate_bank_fields(validator, bank)}


def apply_bill_payment(bill: PayableBillModel, increment: Decimal) -> None:
    """
    Add a settled payment leg to a locked bill row.

    Called by the payments module inside its own transaction.

    Raises:
        BillCancelledError: the bill was cancelled.
        OverSettlementError: paid_amount would exceed amount.
    """
    if bill.status == PayableBillStatus.CANCELLED.value:
        raise BillCancelledError(bill.id)
    if not can_settle(bill.amount, bill.paid_amount, increment):
        raise OverSettlementError(bill.id, bill.amount, bill.paid_amount, increment)
    bill.paid_amount = bill.paid_amount + increment
    bill.payment_status = payment_status(bill.amount, bill.paid_amount).value


class PayablesService:
    """
    Vendor master and inward-bill operations.

    Contract
    --------
    * Public methods take the calling ``Principal`` first and return
      frozen DTOs from ``models.py``.
    * Mutating methods accept a keyword-only ``timeout_seconds`` that
      overrides the service default for that call.

    Non-goals
    ---------
    * Does NOT store scanned bill images.
    * Does NOT enforce bill_number uniqueness per vendor.
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
    # Vendors
    # =========================================================================

    def create_vendor(
        self,
        principal: Principal,
        code: str,
        name: str,
        default_credit_days: int = DEFAULT_CREDIT_DAYS,
        *,
        timeout_seconds: float | None = None,
        **details: Any,
    ) -> Vendor:
        """
        Register a vendor.

        ``details`` holds the optional contact, tax, address and bank
        fields (see ``VENDOR_DETAIL_FIELDS``).

        Raises:
            ValidationError: malformed or unknown fields.
            DuplicateCodeError: code already used by another vendor.
        """
        authorize(principal, "vendor.create")
        validator = FieldValidator()
        code, name, default_credit_days = validate_identity(
            validator, code, name, default_credit_days,
        )
        cleaned = _validate_vendor_details(validator, details)
        validator.raise_if_invalid()

        with operation_context(principal, "vendor.create"):
            logger.info("vendor_create_started", extra={"code": code})
            with transaction_scope(self._session, "vendor.create", self._deadline(timeout_seconds)):
                existing = self._session.execute(
                    select(VendorModel.id).where(VendorModel.code == code)
                ).first()
                if existing is not None:
                    raise DuplicateCodeError("vendor", code)

                model = VendorModel(
                    code=code,
                    name=name,
                    default_credit_days=default_credit_days,
                    is_active=True,
                    created_by_id=principal.user_id,
                    **{k: v for k, v in cleaned.items() if v is not None},
                )
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise DuplicateCodeError("vendor", code) from exc

                self._auditor.record(
                    "vendor", model.id, AuditAction.COUNTERPARTY_CREATED,
                    principal.user_id, {"code": code, "name": name},
                )
                dto = model.to_dto()

            logger.info("vendor_create_committed", extra={"vendor_id": str(dto.id), "code": code})
        return dto

    def update_vendor(
        self,
        principal: Principal,
        vendor_id: UUID,
        update: VendorUpdate,
        *,
        timeout_seconds: float | None = None,
    ) -> Vendor:
        """Change name, contact, bank or credit-day fields of a vendor."""
        authorize(principal, "vendor.update")
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
        cleaned.update(_validate_vendor_details(validator, changes))
        validator.raise_if_invalid()

        with operation_context(principal, "vendor.update", vendor_id):
            with transaction_scope(self._session, "vendor.update", self._deadline(timeout_seconds)):
                model = load_for_update(self._session, VendorModel, vendor_id, "vendor")
                before = {k: getattr(model, k) for k in cleaned}
                for key, value in cleaned.items():
                    setattr(model, key, value)
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "vendor", model.id, AuditAction.COUNTERPARTY_UPDATED,
                    principal.user_id, {"before": before, "after": cleaned},
                )
                dto = model.to_dto()

            logger.info("vendor_update_committed", extra={"vendor_id": str(vendor_id)})
        return dto

    def deactivate_vendor(
        self,
        principal: Principal,
        vendor_id: UUID,
        *,
        timeout_seconds: float | None = None,
    ) -> Vendor:
        """
        Deactivate a vendor.  Already inactive vendors are returned unchanged.

        Raises:
            CounterpartyHasOutstandingBillsError: an active bill is not fully paid.
        """
        authorize(principal, "vendor.deactivate")
        with operation_context(principal, "vendor.deactivate", vendor_id):
            with transaction_scope(
                self._session, "vendor.deactivate", self._deadline(timeout_seconds),
            ):
                model = load_for_update(self._session, VendorModel, vendor_id, "vendor")
                if not model.is_active:
                    return model.to_dto()

                open_bills = self._session.execute(
                    select(func.count(PayableBillModel.id)).where(
                        PayableBillModel.vendor_id == vendor_id,
                        PayableBillModel.status == PayableBillStatus.ACTIVE.value,
                        PayableBillModel.payment_status != SettlementStatus.PAID.value,
                    )
                ).scalar_one()
                if open_bills:
                    raise CounterpartyHasOutstandingBillsError("vendor", vendor_id, open_bills)

                model.is_active = False
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "vendor", model.id, AuditAction.COUNTERPARTY_DEACTIVATED,
                    principal.user_id,
                )
                dto = model.to_dto()

            logger.info("vendor_deactivate_committed", extra={"vendor_id": str(vendor_id)})
        return dto

    def get_vendor(self, principal: Principal, vendor_id: UUID) -> Vendor:
        authorize(principal, "vendor.view")
        return load(self._session, VendorModel, vendor_id, "vendor").to_dto()

    # =========================================================================
    # Inward bills
    # =========================================================================

    def create_payable_bill(
        self,
        principal: Principal,
        vendor_id: UUID,
        bill_number: str,
        invoice_date: date,
        receiving_date: date,
        amount: Decimal,
        credit_days: int,
        checked_by: str,
        remarks: str | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> PayableBill:
        """
        Record an inward bill as received at the godown.

        Preconditions:
            - vendor exists and is active.
        Postconditions:
            - status active, payment_status open, paid_amount 0, version 1.
            - due_date = invoice_date + credit_days.

        Raises:
            ValidationError: one entry per offending field.
            DanglingReferenceError: vendor missing or inactive.
        """
        authorize(principal, "payable_bill.create")
        validator = FieldValidator()
        bill_number = validator.text("bill_number", bill_number, 50)
        invoice_date = validator.calendar_date("invoice_date", invoice_date)
        receiving_date = validator.calendar_date("receiving_date", receiving_date)
        amount = validator.amount("amount", amount)
        credit_days = validator.days("credit_days", credit_days)
        checked_by = validator.text("checked_by", checked_by, 100)
        remarks = validator.text("remarks", remarks, 500, required=False)
        validator.raise_if_invalid()

        with operation_context(principal, "payable_bill.create"):
            logger.info(
                "payable_bill_create_started",
                extra={
                    "vendor_id": str(vendor_id),
                    "bill_number": bill_number,
                    "amount": str(amount),
                },
            )
            with transaction_scope(
                self._session, "payable_bill.create", self._deadline(timeout_seconds),
            ):
                vendor = self._session.get(VendorModel, vendor_id)
                if vendor is None:
                    raise DanglingReferenceError("vendor", vendor_id)
                if not vendor.is_active:
                    raise DanglingReferenceError("vendor", vendor_id, "inactive")

                model = PayableBillModel(
                    vendor_id=vendor_id,
                    bill_number=bill_number,
                    invoice_date=invoice_date,
                    receiving_date=receiving_date,
                    amount=amount,
                    paid_amount=ZERO,
                    credit_days=credit_days,
                    due_date=due_date(invoice_date, credit_days),
                    checked_by=checked_by,
                    remarks=remarks,
                    status=PayableBillStatus.ACTIVE.value,
                    payment_status=payment_status(amount, ZERO).value,
                    created_by_id=principal.user_id,
                )
                self._session.add(model)
                self._session.flush()
                self._auditor.record(
                    "payable_bill", model.id, AuditAction.BILL_CREATED, principal.user_id,
                    {"bill_number": bill_number, "amount": amount, "due_date": model.due_date},
                )
                dto = model.to_dto()

            logger.info(
                "payable_bill_create_committed",
                extra={"bill_id": str(dto.id), "due_date": dto.due_date.isoformat()},
            )
        return dto

    def update_payable_bill(
        self,
        principal: Principal,
        bill_id: UUID,
        update: PayableBillUpdate,
        expected_version: int | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> PayableBill:
        """
        Owner edit of an active, unpaid bill.

        Recomputes due_date when invoice_date or credit_days change and
        payment_status when amount changes.  The version increments on
        every successful edit.

        Raises:
            ValidationError: empty update or invalid field.
            BillCancelledError / BillPaidError: bill is closed.
            OptimisticLockError: ``expected_version`` is stale.
        """
        authorize(principal, "payable_bill.update")
        changes = update.changes()
        if not changes:
            raise ValidationError({"update": "no fields to change"})

        validator = FieldValidator()
        cleaned: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "bill_number":
                cleaned[key] = validator.text(key, value, 50)
            elif key in ("invoice_date", "receiving_date"):
                cleaned[key] = validator.calendar_date(key, value)
            elif key == "amount":
                cleaned[key] = validator.amount(key, value)
            elif key == "credit_days":
                cleaned[key] = validator.days(key, value)
            elif key == "checked_by":
                cleaned[key] = validator.text(key, value, 100)
            elif key == "remarks":
                cleaned[key] = validator.text(key, value, 500, required=False)
        validator.raise_if_invalid()

        with operation_context(principal, "payable_bill.update", bill_id):
            logger.info(
                "payable_bill_update_started",
                extra={"bill_id": str(bill_id), "fields": sorted(cleaned)},
            )
            with transaction_scope(
                self._session, "payable_bill.update", self._deadline(timeout_seconds),
            ):
                model = load_for_update(self._session, PayableBillModel, bill_id, "payable_bill")
                if expected_version is not None and model.version != expected_version:
                    raise OptimisticLockError(
                        "payable_bill", bill_id, expected_version, model.version,
                    )
                if model.status == PayableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                if model.payment_status == SettlementStatus.PAID.value:
                    raise BillPaidError(bill_id)
                require_transition(
                    PAYABLE_BILL_WORKFLOW, "payable_bill", bill_id, model.status, "update",
                )

                new_amount = cleaned.get("amount", model.amount)
                if new_amount < model.paid_amount:
                    raise ValidationError(
                        {"amount": f"must not be below paid amount {model.paid_amount}"}
                    )

                before = {k: getattr(model, k) for k in cleaned}
                for key, value in cleaned.items():
                    setattr(model, key, value)
                if "invoice_date" in cleaned or "credit_days" in cleaned:
                    model.due_date = due_date(model.invoice_date, model.credit_days)
                model.payment_status = payment_status(model.amount, model.paid_amount).value
                model.updated_by_id = principal.user_id
                self._session.flush()

                self._auditor.record(
                    "payable_bill", model.id, AuditAction.BILL_UPDATED, principal.user_id,
                    {"before": before, "after": cleaned, "version": model.version},
                )
                dto = model.to_dto()

            logger.info(
                "payable_bill_update_committed",
                extra={"bill_id": str(bill_id), "version": dto.version},
            )
        return dto

    def cancel_payable_bill(
        self,
        principal: Principal,
        bill_id: UUID,
        reason: str,
        *,
        timeout_seconds: float | None = None,
    ) -> PayableBill:
        """
        Cancel a bill nothing has been paid against.

        Raises:
            ValidationError: blank reason.
            BillCancelledError: already cancelled.
            BillHasSettlementsError: paid_amount > 0.
        """
        authorize(principal, "payable_bill.cancel")
        validator = FieldValidator()
        reason = validator.text("reason", reason, 500)
        validator.raise_if_invalid()

        with operation_context(principal, "payable_bill.cancel", bill_id):
            with transaction_scope(
                self._session, "payable_bill.cancel", self._deadline(timeout_seconds),
            ):
                model = load_for_update(self._session, PayableBillModel, bill_id, "payable_bill")
                if model.status == PayableBillStatus.CANCELLED.value:
                    raise BillCancelledError(bill_id)
                if model.paid_amount > ZERO:
                    raise BillHasSettlementsError(bill_id, model.paid_amount)
                require_transition(
                    PAYABLE_BILL_WORKFLOW, "payable_bill", bill_id, model.status, "cancel",
                )

                model.status = PayableBillStatus.CANCELLED.value
                model.cancelled_at = self._clock.now()
                model.cancelled_by_id = principal.user_id
                model.cancel_reason = reason
                model.updated_by_id = principal.user_id
                self._session.flush()
                self._auditor.record(
                    "payable_bill", model.id, AuditAction.BILL_CANCELLED, principal.user_id,
                    {"reason": reason},
                )
                dto = model.to_dto()

            logger.info("payable_bill_cancel_committed", extra={"bill_id": str(bill_id)})
        return dto

    def get_payable_bill(self, principal: Principal, bill_id: UUID) -> PayableBill:
        authorize(principal, "payable_bill.view")
        return load(self._session, PayableBillModel, bill_id, "payable_bill").to_dto()
