"""
gls_services.rbac_authority -- Role-based authorization at every core entry point.

Responsibility:
    Hold the single declarative table mapping each core operation to the
    roles allowed to perform it, and enforce it.  Every public service
    method calls ``authorize()`` once, before opening its transaction.

Architecture position:
    Services layer.  Imports only kernel domain types and exceptions.
    Module services import this module; it never imports them.

Invariants:
    - The kernel does not authenticate; the caller supplies a Principal.
    - Ownership rules that depend on data (e.g. only the creator may
      submit a draft) are checked by the owning service after loading the
      row, through ``authorize_owner_or_self()``.
    - Unknown operations are denied.
"""

from __future__ import annotations

from uuid import UUID

from gls_kernel.domain.principal import Principal, Role
from gls_kernel.exceptions import AuthorizationError
from gls_kernel.logging_config import get_logger

logger = get_logger("services.rbac")

_G, _P, _A, _O = Role.GODOWN, Role.PURCHASE, Role.ACCOUNTS, Role.OWNER

# operation -> roles allowed to perform it
OPERATION_PERMISSIONS: dict[str, frozenset[Role]] = {
    # Counterparty master
    "vendor.create": frozenset({_A, _O}),
    "vendor.update": frozenset({_A, _O}),
    "vendor.deactivate": frozenset({_O}),
    "vendor.view": frozenset({_G, _P, _A, _O}),
    "customer.create": frozenset({_A, _O}),
    "customer.update": frozenset({_A, _O}),
    "customer.deactivate": frozenset({_O}),
    "customer.view": frozenset({_G, _A, _O}),
    # Inward (payable) bills
    "payable_bill.create": frozenset({_G, _O}),
    "payable_bill.update": frozenset({_O}),
    "payable_bill.cancel": frozenset({_O}),
    "payable_bill.view": frozenset({_G, _P, _A, _O}),
    # Outward (receivable) bills
    "receivable_bill.create": frozenset({_G, _O}),
    "receivable_bill.update": frozenset({_O}),
    "receivable_bill.update_delivery": frozenset({_G, _O}),
    "receivable_bill.cancel": frozenset({_O}),
    "receivable_bill.record_collection": frozenset({_A, _O}),
    "receivable_bill.view": frozenset({_G, _A, _O}),
    # Proposals
    "proposal.view_available_bills": frozenset({_P, _A, _O}),
    "proposal.create": frozenset({_P, _O}),
    "proposal.submit": frozenset({_P, _O}),
    "proposal.delete": frozenset({_P, _O}),
    "proposal.accounts_action": frozenset({_A, _O}),
    "proposal.owner_action": frozenset({_O}),
    "proposal.view": frozenset({_P, _A, _O}),
    # Payments
    "bank_account.create": frozenset({_O}),
    "payment.create_from_proposal": frozenset({_A, _O}),
    "payment.update_utr": frozenset({_A, _O}),
    "payment.view_pending_utr": frozenset({_A, _O}),
    "payment.export_bank_file": frozenset({_A, _O}),
    "payment.view": frozenset({_P, _A, _O}),
    # Reports and dashboards
    "report.payables_ageing": frozenset({_P, _A, _O}),
    "report.receivables_ageing": frozenset({_A, _O}),
    "report.vendor_outstanding": frozenset({_P, _A, _O}),
    "report.customer_outstanding": frozenset({_A, _O}),
    "report.payment_history": frozenset({_P, _A, _O}),
    "report.daily_summary": frozenset({_A, _O}),
    "report.cash_flow": frozenset({_O}),
    "report.audit_log": frozenset({_O}),
    "dashboard.godown": frozenset({_G, _O}),
    "dashboard.purchase": frozenset({_P, _O}),
    "dashboard.accounts": frozenset({_A, _O}),
    "dashboard.owner": frozenset({_O}),
}


def check_permission(principal: Principal, operation: str) -> tuple[bool, str]:
    """Check whether ``principal`` may perform ``operation``.

    Returns:
        (allowed, reason).  reason is empty when allowed.
    """
    allowed_roles = OPERATION_PERMISSIONS.get(operation)
    if allowed_roles is None:
        return (False, f"RBAC: unknown operation '{operation}'")
    if principal.role not in allowed_roles:
        return (False, f"RBAC: role '{principal.role.value}' may not perform '{operation}'")
    return (True, "")


def authorize(principal: Principal, operation: str) -> None:
    """Raise AuthorizationError unless ``principal`` may perform ``operation``."""
    allowed, reason = check_permission(principal, operation)
    if not allowed:
        logger.warning(
            "authorization_denied",
            extra={
                "operation": operation,
                "role": principal.role.value,
                "user_id": str(principal.user_id),
            },
        )
        raise AuthorizationError(operation, principal.role.value, reason)


def authorize_owner_or_self(principal: Principal, operation: str, creator_id: UUID) -> None:
    """Only the record's creator, or the owner, may act on it."""
    if principal.is_owner or principal.user_id == creator_id:
        return
    logger.warning(
        "authorization_denied_not_creator",
        extra={"operation": operation, "user_id": str(principal.user_id)},
    )
    raise AuthorizationError(
        operation,
        principal.role.value,
        f"only the creator or the owner may perform '{operation}'",
    )
