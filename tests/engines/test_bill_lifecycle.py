"""Tests for bill lifecycle arithmetic (gls_engines/bill_lifecycle.py)."""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from gls_engines.bill_lifecycle import (
    DeliveryStatus,
    SettlementStatus,
    can_settle,
    days_overdue,
    due_date,
    initial_delivery_status,
    outstanding,
    payment_status,
)

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("99999999.99"), places=2)


class TestDueDate:

    def test_adds_credit_days(self):
        assert due_date(date(2024, 1, 1), 30) == date(2024, 1, 31)

    def test_crosses_leap_day(self):
        assert due_date(date(2024, 2, 15), 15) == date(2024, 3, 1)

    def test_zero_credit_days(self):
        assert due_date(date(2024, 3, 1), 0) == date(2024, 3, 1)

    @pytest.mark.parametrize("credit_days", [-1, 366, 1.5, True, "30"])
    def test_rejects_invalid_credit_days(self, credit_days):
        with pytest.raises(ValueError):
            due_date(date(2024, 1, 1), credit_days)


class TestSettlementStatus:

    @pytest.mark.parametrize(
        "amount, settled, expected",
        [
            ("10000", "0", SettlementStatus.OPEN),
            ("10000", "9500", SettlementStatus.PARTIAL),
            ("10000", "10000", SettlementStatus.PAID),
            ("0", "0", SettlementStatus.PAID),
        ],
    )
    def test_payment_status(self, amount, settled, expected):
        assert payment_status(Decimal(amount), Decimal(settled)) is expected

    def test_outstanding(self):
        assert outstanding(Decimal("10000"), Decimal("9500")) == Decimal("500")

    def test_can_settle(self):
        assert can_settle(Decimal("10000"), Decimal("9500"), Decimal("500"))
        assert not can_settle(Decimal("10000"), Decimal("9500"), Decimal("500.01"))
        assert not can_settle(Decimal("10000"), Decimal("0"), Decimal("-1"))

    @given(amount=amounts, settled_fraction=st.integers(min_value=0, max_value=100))
    def test_status_agrees_with_outstanding(self, amount, settled_fraction):
        settled = (amount * settled_fraction / 100).quantize(Decimal("0.01"))
        status = payment_status(amount, settled)
        remaining = outstanding(amount, settled)
        assert (status is SettlementStatus.PAID) == (remaining <= 0)
        if status is SettlementStatus.OPEN:
            assert settled == 0


class TestDaysOverdue:

    def test_not_yet_due(self):
        assert days_overdue(date(2024, 3, 10), date(2024, 3, 1)) == 0

    def test_due_today(self):
        assert days_overdue(date(2024, 3, 1), date(2024, 3, 1)) == 0

    def test_overdue(self):
        assert days_overdue(date(2024, 2, 1), date(2024, 3, 1)) == 29


class TestInitialDeliveryStatus:

    @pytest.mark.parametrize(
        "mode, person, courier, expected",
        [
            ("Pickup", None, None, DeliveryStatus.DELIVERED),
            ("pickup", "Ravi", None, DeliveryStatus.DELIVERED),
            ("transport", "Ravi", None, DeliveryStatus.DISPATCHED),
            ("courier", None, "BlueDart", DeliveryStatus.DISPATCHED),
            ("courier", None, "  ", DeliveryStatus.PENDING),
            (None, None, None, DeliveryStatus.PENDING),
        ],
    )
    def test_seed(self, mode, person, courier, expected):
        assert initial_delivery_status(mode, person, courier) is expected
