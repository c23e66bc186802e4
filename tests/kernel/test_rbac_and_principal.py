"""Tests for role-based authorization, principals and the clock."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from gls_kernel.domain.clock import DeterministicClock
from gls_kernel.domain.principal import Principal, Role
from gls_kernel.exceptions import AuthorizationError
from gls_services.rbac_authority import (
    OPERATION_PERMISSIONS,
    authorize,
    authorize_owner_or_self,
    check_permission,
)


def _principal(role: Role) -> Principal:
    return Principal(uuid4(), role)


class TestPermissionTable:

    def test_owner_may_do_everything(self):
        owner = _principal(Role.OWNER)
        for operation in OPERATION_PERMISSIONS:
            assert check_permission(owner, operation) == (True, "")

    @pytest.mark.parametrize(
        "role, operation",
        [
            (Role.GODOWN, "payable_bill.create"),
            (Role.GODOWN, "receivable_bill.update_delivery"),
            (Role.PURCHASE, "proposal.create"),
            (Role.PURCHASE, "report.payables_ageing"),
            (Role.ACCOUNTS, "proposal.accounts_action"),
            (Role.ACCOUNTS, "payment.update_utr"),
            (Role.ACCOUNTS, "receivable_bill.record_collection"),
        ],
    )
    def test_allowed(self, role, operation):
        authorize(_principal(role), operation)

    @pytest.mark.parametrize(
        "role, operation",
        [
            (Role.GODOWN, "proposal.create"),
            (Role.PURCHASE, "payable_bill.create"),
            (Role.PURCHASE, "proposal.owner_action"),
            (Role.ACCOUNTS, "proposal.owner_action"),
            (Role.ACCOUNTS, "payable_bill.cancel"),
            (Role.PURCHASE, "report.receivables_ageing"),
            (Role.GODOWN, "dashboard.owner"),
            (Role.ACCOUNTS, "report.audit_log"),
        ],
    )
    def test_denied(self, role, operation):
        with pytest.raises(AuthorizationError) as exc_info:
            authorize(_principal(role), operation)
        assert exc_info.value.operation == operation
        assert exc_info.value.role == role.value
        assert exc_info.value.kind == "authorization"

    def test_unknown_operation_denied_even_for_owner(self):
        allowed, reason = check_permission(_principal(Role.OWNER), "proposal.teleport")
        assert not allowed
        assert "unknown operation" in reason

    def test_denial_is_logged(self, captured_logs):
        with pytest.raises(AuthorizationError):
            authorize(_principal(Role.GODOWN), "dashboard.owner")
        denied = [r for r in captured_logs() if r["message"] == "authorization_denied"]
        assert denied and denied[0]["role"] == "godown"


class TestOwnerOrSelf:

    def test_creator_passes(self):
        purchase = _principal(Role.PURCHASE)
        authorize_owner_or_self(purchase, "proposal.submit", purchase.user_id)

    def test_owner_passes(self):
        authorize_owner_or_self(_principal(Role.OWNER), "proposal.delete", uuid4())

    def test_other_user_denied(self):
        with pytest.raises(AuthorizationError, match="creator or the owner"):
            authorize_owner_or_self(_principal(Role.PURCHASE), "proposal.submit", uuid4())


class TestPrincipal:

    def test_role_from_string(self):
        p = Principal(uuid4(), "accounts")
        assert p.role is Role.ACCOUNTS
        assert not p.is_owner

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Principal(uuid4(), "cashier")


class TestDeterministicClock:

    def test_default_time(self):
        assert DeterministicClock().now() == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_set_date_and_advance_days(self):
        clock = DeterministicClock()
        clock.set_date(date(2024, 2, 28))
        clock.advance_days(2)
        assert clock.today() == date(2024, 3, 1)

    def test_now_is_stable(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
