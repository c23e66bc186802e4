"""Tests for reports and role dashboards (gls_modules/reporting)."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from gls_engines.aging import BucketTotal
from gls_engines.proposal_status import ProposalStatus
from gls_kernel.exceptions import AuthorizationError, ValidationError
from gls_modules.payments.models import UtrEntry


@pytest.fixture
def receivables(make_customer, make_receivable_bill, receivables_service, accounts, owner):
    """Open outward bills of two customers as of 2024-03-01, plus a paid and a cancelled one."""
    alpha = make_customer(name="Alpha Stores")
    beta = make_customer(name="Beta Mart")
    bills = {
        "alpha_current": make_receivable_bill(alpha.id, amount="1000", invoice_date=date(2024, 3, 1)),
        "alpha_1_15": make_receivable_bill(alpha.id, amount="2000", invoice_date=date(2024, 2, 1)),
        "beta_30_plus": make_receivable_bill(beta.id, amount="5000", invoice_date=date(2024, 1, 1)),
        "beta_22_30": make_receivable_bill(beta.id, amount="3000", invoice_date=date(2024, 2, 1), credit_days=0),
    }
    receivables_service.record_collection(accounts, bills["beta_30_plus"].id, Decimal("1500"))
    paid = make_receivable_bill(alpha.id, amount="700")
    receivables_service.record_collection(accounts, paid.id, Decimal("700"))
    cancelled = make_receivable_bill(beta.id, amount="900")
    receivables_service.cancel_receivable_bill(owner, cancelled.id, "wrong customer")
    return {"alpha": alpha, "beta": beta, **bills}


@pytest.fixture
def payables(make_vendor, make_payable_bill):
    """Open inward bills: 91 days overdue, due today, and due in ten days."""
    vendor = make_vendor(name="Shree Traders")
    return {
        "vendor": vendor,
        "overdue": make_payable_bill(vendor.id, amount="4000", invoice_date=date(2023, 11, 1), credit_days=30),
        "today": make_payable_bill(vendor.id, amount="1500", invoice_date=date(2024, 2, 1), credit_days=29),
        "later": make_payable_bill(vendor.id, amount="2500", invoice_date=date(2024, 3, 1), credit_days=10),
    }


@pytest.fixture
def settled_payment(payments_service, accounts, approved_proposal, bank_account):
    payment = payments_service.create_payment_from_proposal(accounts, approved_proposal.id, bank_account.id)
    return payments_service.update_utr(accounts, payment.id, [UtrEntry(payment.details[0].id, "UTR-001")])


class TestReceivablesAgeing:

    def test_buckets(self, reporting_service, accounts, receivables):
        report = reporting_service.receivables_ageing(accounts)
        assert report.as_of == date(2024, 3, 1)
        assert [key for key, _ in report.bucket_labels] == ["current", "1_15", "16_21", "22_30", "30_plus"]
        assert report.totals["current"] == BucketTotal(1, Decimal("1000"))
        assert report.totals["1_15"] == BucketTotal(1, Decimal("2000"))
        assert report.totals["16_21"] == BucketTotal()
        assert report.totals["22_30"] == BucketTotal(1, Decimal("3000"))
        assert report.totals["30_plus"] == BucketTotal(1, Decimal("3500"))
        assert report.grand_total == BucketTotal(4, Decimal("9500"))

    def test_rows_largest_first(self, reporting_service, accounts, receivables):
        report = reporting_service.receivables_ageing(accounts)
        assert [r.counterparty_name for r in report.rows] == ["Beta Mart", "Alpha Stores"]
        beta = report.rows[0]
        assert beta.total == BucketTotal(2, Decimal("6500"))
        assert beta.buckets["30_plus"].amount == Decimal("3500")

    def test_as_of_moves_bills_between_buckets(self, reporting_service, accounts, receivables):
        report = reporting_service.receivables_ageing(accounts, as_of=date(2024, 3, 20))
        assert report.totals["current"] == BucketTotal()
        assert report.totals["1_15"].amount == Decimal("1000")

    def test_purchase_denied(self, reporting_service, purchase):
        with pytest.raises(AuthorizationError):
            reporting_service.receivables_ageing(purchase)


class TestPayablesAgeing:

    def test_buckets(self, reporting_service, purchase, payables):
        report = reporting_service.payables_ageing(purchase)
        assert report.totals["90_plus"] == BucketTotal(1, Decimal("4000"))
        assert report.totals["current"] == BucketTotal(2, Decimal("4000"))
        assert report.grand_total.amount == Decimal("8000")
        assert [r.counterparty_code for r in report.rows] == [payables["vendor"].code]

    def test_partially_paid_bill_ages_at_outstanding(self, reporting_service, owner, settled_payment):
        report = reporting_service.payables_ageing(owner)
        assert report.grand_total == BucketTotal(1, Decimal("500"))

    def test_vendor_outstanding(self, reporting_service, purchase, payables):
        lines = reporting_service.vendor_outstanding(purchase, payables["vendor"].id)
        assert [line.days_overdue for line in lines] == [91, 0, 0]
        assert lines[0].outstanding == Decimal("4000")

    def test_customer_outstanding(self, reporting_service, accounts, receivables):
        lines = reporting_service.customer_outstanding(accounts, receivables["beta"].id)
        assert [line.document_number for line in lines] == [
            receivables["beta_30_plus"].invoice_number, receivables["beta_22_30"].invoice_number,
        ]
        assert lines[0].settled_amount == Decimal("1500")
        assert lines[0].contact == receivables["beta"].whatsapp


class TestActivityReports:

    def test_payment_history(self, reporting_service, purchase, settled_payment):
        history = reporting_service.payment_history(purchase)
        assert history.payment_count == 1
        assert history.vendor_count == 1
        assert history.bill_count == 1
        assert history.total_amount == Decimal("9500")
        [line] = history.lines
        assert line.utr_number == "UTR-001"
        assert line.bank_name == "ICICI Bank"
        assert line.vendor_name == "Shree Traders"

    def test_payment_history_date_range(self, reporting_service, purchase, settled_payment):
        history = reporting_service.payment_history(purchase, date_from=date(2024, 3, 2))
        assert history.lines == ()
        assert history.total_amount == 0

    def test_daily_summary(self, reporting_service, accounts, payables, receivables, settled_payment):
        summary = reporting_service.daily_summary(accounts)
        assert summary.day == date(2024, 3, 1)
        # the approved proposal's bill is also received today
        assert summary.inward == BucketTotal(2, Decimal("12500"))
        assert summary.outward == BucketTotal(2, Decimal("1700"))
        assert summary.payments == BucketTotal(1, Decimal("9500"))
        assert summary.vendors_paid == 1

    def test_audit_log_owner_only(self, reporting_service, owner, accounts, payables):
        entries = reporting_service.audit_log(owner, entity_type="payable_bill")
        assert len(entries) == 3
        assert entries[0].seq > entries[-1].seq
        with pytest.raises(AuthorizationError):
            reporting_service.audit_log(accounts)


class TestCashFlow:

    def test_projection(self, reporting_service, owner, payables, receivables):
        projection = reporting_service.cash_flow(owner, days=15)
        assert len(projection.days) == 16
        assert projection.start == date(2024, 3, 1)
        by_day = {d.day: d for d in projection.days}
        assert by_day[date(2024, 3, 1)].expected_outflow == Decimal("1500")
        assert by_day[date(2024, 3, 11)].expected_outflow == Decimal("2500")
        assert by_day[date(2024, 3, 16)].expected_inflow == Decimal("1000")
        assert by_day[date(2024, 3, 16)].net == Decimal("1000")
        # overdue bills are left to the ageing reports
        assert projection.total_outflow == Decimal("4000")
        assert projection.total_inflow == Decimal("1000")

    def test_zero_days(self, reporting_service, owner):
        projection = reporting_service.cash_flow(owner, days=0)
        assert [d.day for d in projection.days] == [date(2024, 3, 1)]

    @pytest.mark.parametrize("days", [-1, 366, True, "30", 7.5])
    def test_invalid_days(self, reporting_service, owner, days):
        with pytest.raises(ValidationError) as exc_info:
            reporting_service.cash_flow(owner, days=days)
        assert "days" in exc_info.value.field_errors

    def test_owner_only(self, reporting_service, accounts):
        with pytest.raises(AuthorizationError):
            reporting_service.cash_flow(accounts)


class TestDashboards:

    def test_godown(
        self, reporting_service, godown, receivables_service, make_vendor, make_payable_bill,
        make_customer, make_receivable_bill,
    ):
        vendor = make_vendor()
        make_payable_bill(vendor.id, amount="100")
        make_payable_bill(vendor.id, amount="200", invoice_date=date(2024, 2, 27))
        customer = make_customer()
        make_receivable_bill(customer.id, amount="300", delivery_mode="pickup")
        moving = make_receivable_bill(customer.id, amount="400")
        receivables_service.update_delivery_status(godown, moving.id, "in_transit")

        board = reporting_service.godown_dashboard(godown)
        assert board.inward_today == BucketTotal(1, Decimal("100"))
        assert board.outward_today == BucketTotal(2, Decimal("700"))
        assert board.delivered_today == 1
        assert board.in_transit == 1
        assert board.inward_week == 2
        assert board.inward_month == 1

    def test_purchase(
        self, reporting_service, purchase, other_purchase, payables, make_vendor, make_payable_bill,
        propose, decide,
    ):
        vendor = make_vendor()
        mine = propose(make_payable_bill(vendor.id, amount="600"), submit=True)
        decide(mine, owner_actions=["defer"])
        propose(make_payable_bill(vendor.id), principal=other_purchase)

        board = reporting_service.purchase_dashboard(purchase)
        assert board.payables.overdue.amount == Decimal("4000")
        assert board.payables.due_today.amount == Decimal("1500")
        assert board.payables.due_this_week == BucketTotal()
        assert board.carry_forward == BucketTotal(1, Decimal("600"))
        assert [p.proposal_id for p in board.my_proposals] == [mine.id]
        assert board.my_proposals[0].item_count == 1

    def test_purchase_payments(self, reporting_service, purchase, settled_payment, deterministic_clock):
        deterministic_clock.advance_days(1)
        board = reporting_service.purchase_dashboard(purchase)
        assert board.paid_yesterday == Decimal("9500")
        assert board.paid_yesterday_vendors == 1
        assert board.paid_month == Decimal("9500")

    def test_accounts(
        self, reporting_service, accounts, receivables, make_vendor, make_payable_bill, propose, decide,
    ):
        vendor = make_vendor()
        waiting = propose(make_payable_bill(vendor.id, amount="800"), submit=True)
        reviewed = propose(
            make_payable_bill(vendor.id, amount="300"), make_payable_bill(vendor.id, amount="200"),
            submit=True,
        )
        decide(reviewed, ["approve", "hold"])

        board = reporting_service.accounts_dashboard(accounts)
        assert board.pending_validation == BucketTotal(1, Decimal("800"))
        assert board.awaiting_owner == BucketTotal(1, Decimal("300"))
        assert board.on_hold == BucketTotal(1, Decimal("200"))
        assert [p.proposal_id for p in board.proposals_to_validate] == [waiting.id]
        assert board.receivables_ageing["30_plus"].amount == Decimal("3500")
        assert board.pending_utr_count == 0

    def test_accounts_payments(self, reporting_service, payments_service, accounts, approved_proposal, bank_account):
        payment = payments_service.create_payment_from_proposal(accounts, approved_proposal.id, bank_account.id)
        assert reporting_service.accounts_dashboard(accounts).pending_utr_count == 1
        payments_service.update_utr(accounts, payment.id, [UtrEntry(payment.details[0].id, "UTR-1")])
        board = reporting_service.accounts_dashboard(accounts)
        assert board.pending_utr_count == 0
        assert board.paid_today == Decimal("9500")

    def test_owner(self, reporting_service, owner, receivables, approved_proposal, make_vendor, make_payable_bill, propose, decide):
        under_review = decide(
            propose(make_payable_bill(make_vendor().id, amount="1200"), submit=True), ["approve"],
        )
        assert under_review.status is ProposalStatus.UNDER_REVIEW

        board = reporting_service.owner_dashboard(owner)
        # every open receivable is due within the week or already overdue, except alpha_current
        assert board.expected_inflow == Decimal("8500")
        assert board.pending_payables == Decimal("9500")
        assert board.pending_approval == BucketTotal(2, Decimal("10700"))
        assert {p.proposal_id for p in board.proposals_to_decide} == {approved_proposal.id, under_review.id}
        assert [line.document_number for line in board.overdue_receivables] == [
            receivables["beta_30_plus"].invoice_number,
            receivables["beta_22_30"].invoice_number,
            receivables["alpha_1_15"].invoice_number,
        ]

    @pytest.mark.parametrize(
        "role_fixture, method",
        [
            ("purchase", "godown_dashboard"),
            ("godown", "purchase_dashboard"),
            ("purchase", "accounts_dashboard"),
            ("accounts", "owner_dashboard"),
        ],
    )
    def test_dashboards_are_role_gated(self, request, reporting_service, role_fixture, method):
        principal = request.getfixturevalue(role_fixture)
        with pytest.raises(AuthorizationError):
            getattr(reporting_service, method)(principal)
