"""
Reporting Service (``gls_modules.reporting.service``).

Responsibility
--------------
Role-gated, read-only reports: payables and receivables ageing,
outstanding statements, payment history, the daily summary, the
cash-flow projection, the audit log, and one dashboard per role.

Architecture position
---------------------
**Modules layer** -- read side.  Rows come from the selectors in
``selectors.py`` and ``gls_kernel.selectors.audit_selector``; bucketing
is done by ``gls_engines.aging.AgingCalculator``.  Nothing here writes.

Invariants enforced
-------------------
* Cancelled and fully settled bills never appear in ageing or
  outstanding figures.
* Each bucket's count and amount are accumulated in one pass over the
  same bills.
* "Today" comes from the injected clock, so reports are reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from gls_config.schema import WorkflowSettings
from gls_engines.aging import (
    PAYABLE_BUCKETS,
    RECEIVABLE_BUCKETS,
    AgeBucket,
    AgingCalculator,
    BucketTotal,
)
from gls_engines.bill_lifecycle import DeliveryStatus, days_overdue
from gls_engines.proposal_status import AccountsStatus, OwnerStatus, ProposalStatus
from gls_kernel.domain.clock import Clock, SystemClock
from gls_kernel.domain.principal import Principal
from gls_kernel.exceptions import ValidationError
from gls_kernel.logging_config import get_logger
from gls_kernel.models.audit_event import AuditAction
from gls_kernel.selectors.audit_selector import AuditEntry, AuditSelector
from gls_modules.payments.models import PaymentStatus
from gls_modules.proposals.orm import ProposalItemModel
from gls_modules.reporting.models import (
    AccountsDashboard,
    AgeingReport,
    AgeingRow,
    BillSnapshot,
    CashFlowDay,
    CashFlowProjection,
    DailySummary,
    GodownDashboard,
    OutstandingLine,
    OwnerDashboard,
    PaymentHistory,
    PurchaseDashboard,
    UrgencyTotals,
)
from gls_modules.reporting.selectors import (
    ActivitySelector,
    OpenBillSelector,
    ProposalSelector,
)
from gls_services.rbac_authority import authorize

logger = get_logger("modules.reporting.service")

MAX_CASH_FLOW_DAYS = 365

_AWAITING_OWNER = (
    ProposalStatus.UNDER_REVIEW,
    ProposalStatus.APPROVED,
    ProposalStatus.PARTIAL_APPROVED,
)


def _combine(totals: Iterable[BucketTotal]) -> BucketTotal:
    count, amount = 0, Decimal("0")
    for total in totals:
        count += total.count
        amount += total.amount
    return BucketTotal(count=count, amount=amount)


def _outstanding_lines(snapshots: Sequence[BillSnapshot], today: date) -> tuple[OutstandingLine, ...]:
    return tuple(
        OutstandingLine(
            counterparty_code=s.counterparty_code,
            counterparty_name=s.counterparty_name,
            document_number=s.document_number,
            invoice_date=s.invoice_date,
            due_date=s.due_date,
            amount=s.amount,
            settled_amount=s.settled_amount,
            outstanding=s.outstanding,
            days_overdue=days_overdue(s.due_date, today),
            contact=s.contact,
        )
        for s in snapshots
    )


class ReportingService:
    """
    Read-only reports and dashboards.

    Contract
    --------
    * Every method authorizes its ``report.*`` or ``dashboard.*``
      operation before touching the database.
    * ``as_of`` / ``day`` parameters default to the clock's today.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._clock = clock or SystemClock()
        self._settings = settings or WorkflowSettings()
        self._bills = OpenBillSelector(session)
        self._activity = ActivitySelector(session)
        self._proposals = ProposalSelector(session)
        self._audit = AuditSelector(session)
        self._calculator = AgingCalculator()

    # =========================================================================
    # Ageing and outstanding
    # =========================================================================

    def payables_ageing(self, principal: Principal, as_of: date | None = None) -> AgeingReport:
        """Vendor-wise open payables in the Current/1-30/31-60/61-90/90+ buckets."""
        authorize(principal, "report.payables_ageing")
        return self._ageing(
            self._bills.open_payables(), as_of or self._clock.today(), PAYABLE_BUCKETS, "payables",
        )

    def receivables_ageing(self, principal: Principal, as_of: date | None = None) -> AgeingReport:
        """Customer-wise open receivables in the Current/1-15/16-21/22-30/30+ buckets."""
        authorize(principal, "report.receivables_ageing")
        return self._ageing(
            self._bills.open_receivables(), as_of or self._clock.today(),
            RECEIVABLE_BUCKETS, "receivables",
        )

    def _ageing(
        self,
        snapshots: Sequence[BillSnapshot],
        as_of: date,
        buckets: Sequence[AgeBucket],
        report_type: str,
    ) -> AgeingReport:
        report = self._calculator.generate_report_from_documents(
            documents=[
                {
                    "document_id": s.bill_id,
                    "document_date": s.invoice_date,
                    "due_date": s.due_date,
                    "amount": s.outstanding,
                    "counterparty_id": s.counterparty_id,
                    "counterparty_name": s.counterparty_name,
                    "reference": s.document_number,
                }
                for s in snapshots
            ],
            as_of_date=as_of,
            buckets=buckets,
            report_type=report_type,
        )
        parties = {s.counterparty_id: s for s in snapshots}
        rows = [
            AgeingRow(
                counterparty_id=party_id,
                counterparty_code=parties[party_id].counterparty_code,
                counterparty_name=parties[party_id].counterparty_name,
                buckets=party_buckets,
                total=_combine(party_buckets.values()),
            )
            for party_id, party_buckets in report.totals_by_counterparty().items()
        ]
        rows.sort(key=lambda r: (-r.total.amount, r.counterparty_code))
        return AgeingReport(
            report_type=report_type,
            as_of=as_of,
            bucket_labels=tuple((b.key, b.label) for b in report.buckets),
            rows=tuple(rows),
            totals=report.bucket_totals(),
            grand_total=report.total(),
        )

    def vendor_outstanding(
        self,
        principal: Principal,
        vendor_id: UUID | None = None,
        as_of: date | None = None,
    ) -> tuple[OutstandingLine, ...]:
        authorize(principal, "report.vendor_outstanding")
        return _outstanding_lines(self._bills.open_payables(vendor_id), as_of or self._clock.today())

    def customer_outstanding(
        self,
        principal: Principal,
        customer_id: UUID | None = None,
        as_of: date | None = None,
    ) -> tuple[OutstandingLine, ...]:
        authorize(principal, "report.customer_outstanding")
        return _outstanding_lines(
            self._bills.open_receivables(customer_id), as_of or self._clock.today(),
        )

    # =========================================================================
    # Activity
    # =========================================================================

    def payment_history(
        self,
        principal: Principal,
        date_from: date | None = None,
        date_to: date | None = None,
        vendor_id: UUID | None = None,
    ) -> PaymentHistory:
        """Paid bill legs, newest payment first, with distinct counts."""
        authorize(principal, "report.payment_history")
        lines = self._activity.payment_lines(date_from, date_to, vendor_id)
        return PaymentHistory(
            lines=tuple(lines),
            payment_count=len({line.payment_number for line in lines}),
            vendor_count=len({line.vendor_code for line in lines}),
            bill_count=len(lines),
            total_amount=sum((line.amount for line in lines), Decimal("0")),
        )

    def daily_summary(self, principal: Principal, day: date | None = None) -> DailySummary:
        authorize(principal, "report.daily_summary")
        day = day or self._clock.today()
        return DailySummary(
            day=day,
            inward=self._activity.payables_received(day, day),
            outward=self._activity.receivables_invoiced(day, day),
            payments=self._activity.payments_made(day, day),
            vendors_paid=self._activity.vendors_paid(day, day),
        )

    def cash_flow(self, principal: Principal, days: int = 30) -> CashFlowProjection:
        """
        Expected inflow (receivables) and outflow (payables) per due date
        over ``days + 1`` days starting today.

        Raises:
            ValidationError: ``days`` outside 0..365.
        """
        authorize(principal, "report.cash_flow")
        if isinstance(days, bool) or not isinstance(days, int) or not 0 <= days <= MAX_CASH_FLOW_DAYS:
            raise ValidationError({"days": f"must be an integer between 0 and {MAX_CASH_FLOW_DAYS}"})
        today = self._clock.today()
        inflow: dict[date, Decimal] = {}
        for s in self._bills.open_receivables():
            inflow[s.due_date] = inflow.get(s.due_date, Decimal("0")) + s.outstanding
        outflow: dict[date, Decimal] = {}
        for s in self._bills.open_payables():
            outflow[s.due_date] = outflow.get(s.due_date, Decimal("0")) + s.outstanding

        projection = CashFlowProjection(
            start=today,
            days=tuple(
                CashFlowDay(
                    day=d,
                    expected_inflow=inflow.get(d, Decimal("0")),
                    expected_outflow=outflow.get(d, Decimal("0")),
                )
                for d in (today + timedelta(days=offset) for offset in range(days + 1))
            ),
        )
        logger.info(
            "cash_flow_projected",
            extra={
                "days": days,
                "total_inflow": str(projection.total_inflow),
                "total_outflow": str(projection.total_outflow),
            },
        )
        return projection

    def audit_log(
        self,
        principal: Principal,
        entity_type: str | None = None,
        action: AuditAction | str | None = None,
        entity_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEntry]:
        authorize(principal, "report.audit_log")
        return self._audit.list_events(
            entity_type=entity_type, action=action, entity_id=entity_id,
            limit=limit, offset=offset,
        )

    # =========================================================================
    # Dashboards
    # =========================================================================

    def _payables_urgency(self, today: date) -> UrgencyTotals:
        week_end = today + timedelta(days=self._settings.due_soon_days)
        overdue = due_today = due_this_week = BucketTotal()
        for s in self._bills.open_payables():
            if s.due_date < today:
                overdue = overdue.add(s.outstanding)
            elif s.due_date == today:
                due_today = due_today.add(s.outstanding)
            elif s.due_date <= week_end:
                due_this_week = due_this_week.add(s.outstanding)
        return UrgencyTotals(overdue=overdue, due_today=due_today, due_this_week=due_this_week)

    def godown_dashboard(self, principal: Principal) -> GodownDashboard:
        authorize(principal, "dashboard.godown")
        today = self._clock.today()
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)
        return GodownDashboard(
            inward_today=self._activity.payables_received(today, today),
            outward_today=self._activity.receivables_invoiced(today, today),
            delivered_today=self._activity.deliveries(DeliveryStatus.DELIVERED, invoice_date=today),
            in_transit=self._activity.deliveries(DeliveryStatus.IN_TRANSIT),
            inward_week=self._activity.payables_received(week_start, today).count,
            inward_month=self._activity.payables_received(month_start, today).count,
        )

    def purchase_dashboard(self, principal: Principal) -> PurchaseDashboard:
        authorize(principal, "dashboard.purchase")
        today = self._clock.today()
        yesterday = today - timedelta(days=1)
        return PurchaseDashboard(
            payables=self._payables_urgency(today),
            carry_forward=self._proposals.carry_forward(),
            paid_yesterday=self._activity.payments_made(yesterday, yesterday).amount,
            paid_yesterday_vendors=self._activity.vendors_paid(yesterday, yesterday),
            paid_month=self._activity.payments_made(today.replace(day=1), today).amount,
            my_proposals=tuple(self._proposals.summaries(created_by_id=principal.user_id)),
        )

    def accounts_dashboard(self, principal: Principal) -> AccountsDashboard:
        authorize(principal, "dashboard.accounts")
        today = self._clock.today()
        ageing = self._ageing(
            self._bills.open_receivables(), today, RECEIVABLE_BUCKETS, "receivables",
        )
        return AccountsDashboard(
            pending_validation=self._proposals.proposal_totals([ProposalStatus.SUBMITTED]),
            awaiting_owner=self._proposals.item_totals(
                ProposalItemModel.accounts_status == AccountsStatus.APPROVED.value,
                ProposalItemModel.owner_status == OwnerStatus.PENDING.value,
                amount_column=ProposalItemModel.accounts_amount,
            ),
            on_hold=self._proposals.item_totals(
                ProposalItemModel.accounts_status == AccountsStatus.HELD.value,
                ProposalItemModel.owner_status == OwnerStatus.PENDING.value,
            ),
            paid_today=self._activity.payments_made(today, today, PaymentStatus.CONFIRMED).amount,
            pending_utr_count=self._activity.payments_in_status(PaymentStatus.PENDING),
            receivables_ageing=ageing.totals,
            proposals_to_validate=tuple(
                self._proposals.summaries([ProposalStatus.SUBMITTED], oldest_first=True)
            ),
        )

    def owner_dashboard(self, principal: Principal) -> OwnerDashboard:
        authorize(principal, "dashboard.owner")
        today = self._clock.today()
        inflow_horizon = today + timedelta(days=self._settings.due_soon_days)
        receivables = self._bills.open_receivables()
        overdue_receivables = sorted(
            (s for s in receivables if s.due_date < today), key=lambda s: s.due_date,
        )[:10]
        return OwnerDashboard(
            expected_inflow=sum(
                (s.outstanding for s in receivables if s.due_date <= inflow_horizon),
                Decimal("0"),
            ),
            pending_payables=self._proposals.approved_unpaid().amount,
            pending_approval=self._proposals.proposal_totals(_AWAITING_OWNER),
            payables=self._payables_urgency(today),
            proposals_to_decide=tuple(
                self._proposals.summaries(_AWAITING_OWNER, oldest_first=True)
            ),
            overdue_receivables=_outstanding_lines(overdue_receivables, today),
        )
