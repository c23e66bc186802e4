"""Tests for customer master and outward bills (gls_modules/receivables)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from gls_engines.bill_lifecycle import DeliveryStatus, SettlementStatus
from gls_kernel.exceptions import (
    AuthorizationError,
    BillCancelledError,
    BillHasSettlementsError,
    BillPaidError,
    CounterpartyHasOutstandingBillsError,
    DanglingReferenceError,
    OverSettlementError,
    ValidationError,
)
from gls_kernel.models.audit_event import AuditAction
from gls_kernel.selectors.audit_selector import AuditSelector
from gls_modules.receivables.models import (
    CustomerUpdate,
    ReceivableBillStatus,
    ReceivableBillUpdate,
)


class TestCustomers:

    def test_create_customer(self, receivables_service, accounts):
        customer = receivables_service.create_customer(
            accounts, code="C100", name="Metro Retail", default_credit_days=21,
            credit_limit=Decimal("250000"), contact_person="Anil", city="Pune",
        )
        assert customer.credit_limit == Decimal("250000")
        assert customer.contact_person == "Anil"
        assert customer.default_credit_days == 21

    def test_invalid_phone(self, make_customer):
        with pytest.raises(ValidationError) as exc_info:
            make_customer(whatsapp="12ab")
        assert "whatsapp" in exc_info.value.field_errors

    def test_negative_credit_limit(self, make_customer):
        with pytest.raises(ValidationError) as exc_info:
            make_customer(credit_limit=Decimal("-5"))
        assert "credit_limit" in exc_info.value.field_errors

    def test_update_customer(self, receivables_service, accounts, make_customer):
        customer = make_customer()
        updated = receivables_service.update_customer(
            accounts, customer.id, CustomerUpdate(credit_limit=Decimal("1000"), city="Nashik"),
        )
        assert updated.credit_limit == Decimal("1000")
        assert updated.city == "Nashik"

    def test_deactivate_blocked_by_open_bill(
        self, receivables_service, owner, make_customer, make_receivable_bill,
    ):
        customer = make_customer()
        make_receivable_bill(customer.id)
        with pytest.raises(CounterpartyHasOutstandingBillsError):
            receivables_service.deactivate_customer(owner, customer.id)

    def test_paid_bills_do_not_block_deactivation(
        self, receivables_service, owner, accounts, make_customer, make_receivable_bill,
    ):
        customer = make_customer()
        bill = make_receivable_bill(customer.id, amount=Decimal("700"))
        receivables_service.record_collection(accounts, bill.id, Decimal("700"))
        assert not receivables_service.deactivate_customer(owner, customer.id).is_active

    def test_purchase_cannot_view(self, receivables_service, purchase, make_customer):
        customer = make_customer()
        with pytest.raises(AuthorizationError):
            receivables_service.get_customer(purchase, customer.id)


class TestCreateReceivableBill:

    def test_defaults(self, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id, invoice_date=date(2024, 2, 20))
        assert bill.due_date == date(2024, 3, 6)
        assert bill.status is ReceivableBillStatus.ACTIVE
        assert bill.collection_status is SettlementStatus.OPEN
        assert bill.delivery_status is DeliveryStatus.PENDING
        assert bill.collected_amount == 0
        assert bill.delivered_at is None

    def test_pickup_is_delivered_at_once(self, make_customer, make_receivable_bill, deterministic_clock):
        bill = make_receivable_bill(make_customer().id, delivery_mode="Pickup")
        assert bill.delivery_status is DeliveryStatus.DELIVERED
        assert bill.delivered_at == deterministic_clock.now()

    def test_courier_is_dispatched(self, make_customer, make_receivable_bill):
        bill = make_receivable_bill(
            make_customer().id, delivery_mode="courier", courier_name="BlueDart",
            tracking_number="BD123",
        )
        assert bill.delivery_status is DeliveryStatus.DISPATCHED
        assert bill.tracking_number == "BD123"

    def test_unknown_customer(self, make_receivable_bill):
        with pytest.raises(DanglingReferenceError):
            make_receivable_bill(uuid4())

    def test_missing_dispatched_by(self, make_customer, make_receivable_bill):
        with pytest.raises(ValidationError) as exc_info:
            make_receivable_bill(make_customer().id, dispatched_by="")
        assert "dispatched_by" in exc_info.value.field_errors


class TestDeliveryStatus:

    def test_in_transit_then_delivered(
        self, receivables_service, godown, make_customer, make_receivable_bill, deterministic_clock,
    ):
        bill = make_receivable_bill(make_customer().id)
        moved = receivables_service.update_delivery_status(
            godown, bill.id, "in_transit", tracking_number="LR-77",
        )
        assert moved.delivery_status is DeliveryStatus.IN_TRANSIT
        assert moved.tracking_number == "LR-77"
        assert moved.delivered_at is None

        deterministic_clock.advance_days(2)
        delivered = receivables_service.update_delivery_status(
            godown, bill.id, DeliveryStatus.DELIVERED,
        )
        assert delivered.delivery_status is DeliveryStatus.DELIVERED
        assert delivered.delivered_at == deterministic_clock.now()

    def test_unknown_status_rejected(self, receivables_service, godown, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id)
        with pytest.raises(ValidationError) as exc_info:
            receivables_service.update_delivery_status(godown, bill.id, "lost")
        assert "delivery_status" in exc_info.value.field_errors

    def test_returned_is_audited(
        self, receivables_service, godown, make_customer, make_receivable_bill, session,
    ):
        bill = make_receivable_bill(make_customer().id)
        receivables_service.update_delivery_status(godown, bill.id, "returned")
        entries = AuditSelector(session).list_events(
            entity_id=bill.id, action=AuditAction.BILL_DELIVERY_UPDATED,
        )
        assert entries[0].payload == {"from": "pending", "to": "returned", "tracking_number": None}

    def test_delivery_does_not_touch_collection(
        self, receivables_service, godown, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id)
        delivered = receivables_service.update_delivery_status(godown, bill.id, "delivered")
        assert delivered.collection_status is SettlementStatus.OPEN
        assert delivered.status is ReceivableBillStatus.ACTIVE

    def test_accounts_cannot_update_delivery(
        self, receivables_service, accounts, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id)
        with pytest.raises(AuthorizationError):
            receivables_service.update_delivery_status(accounts, bill.id, "delivered")


class TestCollections:

    def test_partial_then_full(self, receivables_service, accounts, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id, amount=Decimal("5000.00"))

        partial = receivables_service.record_collection(accounts, bill.id, Decimal("2000"))
        assert partial.collected_amount == Decimal("2000")
        assert partial.collection_status is SettlementStatus.PARTIAL
        assert partial.status is ReceivableBillStatus.ACTIVE
        assert partial.outstanding == Decimal("3000")

        paid = receivables_service.record_collection(accounts, bill.id, "3000.00")
        assert paid.collection_status is SettlementStatus.PAID
        assert paid.status is ReceivableBillStatus.PAID
        assert paid.outstanding == 0

    def test_over_collection(self, receivables_service, accounts, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id, amount=Decimal("100"))
        receivables_service.record_collection(accounts, bill.id, Decimal("60"))
        with pytest.raises(OverSettlementError) as exc_info:
            receivables_service.record_collection(accounts, bill.id, Decimal("40.01"))
        assert exc_info.value.settled_amount == Decimal("60")
        assert receivables_service.get_receivable_bill(accounts, bill.id).collected_amount == Decimal("60")

    def test_paid_bill_refuses_more(self, receivables_service, accounts, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id, amount=Decimal("100"))
        receivables_service.record_collection(accounts, bill.id, Decimal("100"))
        with pytest.raises(BillPaidError):
            receivables_service.record_collection(accounts, bill.id, Decimal("1"))

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), None])
    def test_invalid_amount(self, receivables_service, accounts, make_customer, make_receivable_bill, amount):
        bill = make_receivable_bill(make_customer().id)
        with pytest.raises(ValidationError):
            receivables_service.record_collection(accounts, bill.id, amount)

    def test_godown_cannot_collect(self, receivables_service, godown, make_customer, make_receivable_bill):
        bill = make_receivable_bill(make_customer().id)
        with pytest.raises(AuthorizationError):
            receivables_service.record_collection(godown, bill.id, Decimal("1"))


class TestEditAndCancel:

    def test_update_recomputes_due_date(
        self, receivables_service, owner, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id, invoice_date=date(2024, 3, 1), credit_days=15)
        updated = receivables_service.update_receivable_bill(
            owner, bill.id, ReceivableBillUpdate(credit_days=30),
        )
        assert updated.due_date == date(2024, 3, 31)

    def test_update_amount_can_complete_collection(
        self, receivables_service, owner, accounts, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id, amount=Decimal("1000"))
        receivables_service.record_collection(accounts, bill.id, Decimal("900"))
        updated = receivables_service.update_receivable_bill(
            owner, bill.id, ReceivableBillUpdate(amount=Decimal("900")),
        )
        assert updated.status is ReceivableBillStatus.PAID
        assert updated.collection_status is SettlementStatus.PAID

    def test_cancel_after_collection_refused(
        self, receivables_service, owner, accounts, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id)
        receivables_service.record_collection(accounts, bill.id, Decimal("1"))
        with pytest.raises(BillHasSettlementsError):
            receivables_service.cancel_receivable_bill(owner, bill.id, "returned goods")

    def test_cancelled_bill_is_closed(
        self, receivables_service, owner, accounts, godown, make_customer, make_receivable_bill,
    ):
        bill = make_receivable_bill(make_customer().id)
        cancelled = receivables_service.cancel_receivable_bill(owner, bill.id, "returned goods")
        assert cancelled.status is ReceivableBillStatus.CANCELLED
        with pytest.raises(BillCancelledError):
            receivables_service.record_collection(accounts, bill.id, Decimal("1"))
        with pytest.raises(BillCancelledError):
            receivables_service.update_delivery_status(godown, bill.id, "delivered")
