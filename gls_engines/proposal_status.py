"""
Module: gls_engines.proposal_status
Responsibility:
    Pure derivation rules for the proposal workflow:

    * the composite status of a proposal item, computed from its two
      independent approval tracks (accounts, owner) and the settlement flag;
    * the outcome of a proposal after an owner decision round;
    * whether an existing item still commits its bill (eligibility).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The proposals and
    payments services store the derived values as query caches but never
    compute them any other way.

Invariants enforced:
    - The composite item status is never set by a caller.  It always equals
      ``derive_item_status(accounts_status, owner_status, settled)``.
    - ``paid`` is reachable only through the settled flag, which only UTR
      settlement sets.
    - Accounts cannot terminate an item: "reject" reverts it to ``proposed``.
      The owner has the final word.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class ProposalStatus(str, Enum):
    """Proposal workflow states.  Must align with ``PROPOSAL_WORKFLOW.states``."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    PARTIAL_APPROVED = "partial_approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class AccountsStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    HELD = "held"


class OwnerStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DEFERRED = "deferred"
    REJECTED = "rejected"


class ItemStatus(str, Enum):
    """Composite item status: the furthest-progressed track wins."""
    PROPOSED = "proposed"
    ACCOUNTS_APPROVED = "accounts_approved"
    ACCOUNTS_HELD = "accounts_held"
    OWNER_APPROVED = "owner_approved"
    CARRY_FORWARD = "carry_forward"
    OWNER_REJECTED = "owner_rejected"
    PAID = "paid"


class AccountsAction(str, Enum):
    APPROVE = "approve"
    HOLD = "hold"
    REJECT = "reject"

    @property
    def resulting_status(self) -> AccountsStatus:
        return _ACCOUNTS_ACTION_STATUS[self]


class OwnerAction(str, Enum):
    APPROVE = "approve"
    DEFER = "defer"
    REJECT = "reject"

    @property
    def resulting_status(self) -> OwnerStatus:
        return _OWNER_ACTION_STATUS[self]


_ACCOUNTS_ACTION_STATUS: dict[AccountsAction, AccountsStatus] = {
    AccountsAction.APPROVE: AccountsStatus.APPROVED,
    AccountsAction.HOLD: AccountsStatus.HELD,
    AccountsAction.REJECT: AccountsStatus.PENDING,
}

_OWNER_ACTION_STATUS: dict[OwnerAction, OwnerStatus] = {
    OwnerAction.APPROVE: OwnerStatus.APPROVED,
    OwnerAction.DEFER: OwnerStatus.DEFERRED,
    OwnerAction.REJECT: OwnerStatus.REJECTED,
}

_OWNER_ITEM_STATUS: dict[OwnerStatus, ItemStatus] = {
    OwnerStatus.APPROVED: ItemStatus.OWNER_APPROVED,
    OwnerStatus.DEFERRED: ItemStatus.CARRY_FORWARD,
    OwnerStatus.REJECTED: ItemStatus.OWNER_REJECTED,
}

_ACCOUNTS_ITEM_STATUS: dict[AccountsStatus, ItemStatus] = {
    AccountsStatus.PENDING: ItemStatus.PROPOSED,
    AccountsStatus.APPROVED: ItemStatus.ACCOUNTS_APPROVED,
    AccountsStatus.HELD: ItemStatus.ACCOUNTS_HELD,
}

# Proposals in these states no longer commit their bills.
TERMINAL_PROPOSAL_STATUSES = frozenset({ProposalStatus.REJECTED, ProposalStatus.COMPLETED})

# Items in these states no longer commit their bills, whatever the proposal state.
RELEASED_ITEM_STATUSES = frozenset(
    {ItemStatus.OWNER_REJECTED, ItemStatus.PAID, ItemStatus.CARRY_FORWARD}
)


def derive_item_status(
    accounts_status: AccountsStatus,
    owner_status: OwnerStatus,
    settled: bool = False,
) -> ItemStatus:
    """Composite status of a proposal item.

    Settlement beats the owner track, which beats the accounts track.
    """
    if settled:
        return ItemStatus.PAID
    if owner_status is not OwnerStatus.PENDING:
        return _OWNER_ITEM_STATUS[owner_status]
    return _ACCOUNTS_ITEM_STATUS[accounts_status]


def derive_proposal_outcome(
    owner_statuses: Iterable[OwnerStatus],
    all_deferred_outcome: ProposalStatus = ProposalStatus.REJECTED,
) -> ProposalStatus | None:
    """Proposal status after an owner decision round.

    Considers only items the owner has decided.  Returns None when no
    item has been decided yet.

    * some approved, none deferred      -> approved (rejections allowed)
    * some approved, some deferred      -> partial_approved
    * none approved, all deferred       -> ``all_deferred_outcome``
    * none approved otherwise           -> rejected
    """
    decided = [s for s in owner_statuses if s is not OwnerStatus.PENDING]
    if not decided:
        return None
    has_approved = any(s is OwnerStatus.APPROVED for s in decided)
    has_deferred = any(s is OwnerStatus.DEFERRED for s in decided)
    if has_approved:
        return ProposalStatus.PARTIAL_APPROVED if has_deferred else ProposalStatus.APPROVED
    if all(s is OwnerStatus.DEFERRED for s in decided):
        return all_deferred_outcome
    return ProposalStatus.REJECTED


def item_blocks_bill(proposal_status: ProposalStatus, item_status: ItemStatus) -> bool:
    """True while an existing item keeps its bill out of new proposals."""
    if proposal_status in TERMINAL_PROPOSAL_STATUSES:
        return False
    return item_status not in RELEASED_ITEM_STATUSES
