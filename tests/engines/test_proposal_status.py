"""Tests for proposal status derivation (gls_engines/proposal_status.py)."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from gls_engines.proposal_status import (
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

_A, _O = AccountsStatus, OwnerStatus


class TestDeriveItemStatus:

    @pytest.mark.parametrize(
        "accounts, owner, expected",
        [
            (_A.PENDING, _O.PENDING, ItemStatus.PROPOSED),
            (_A.APPROVED, _O.PENDING, ItemStatus.ACCOUNTS_APPROVED),
            (_A.HELD, _O.PENDING, ItemStatus.ACCOUNTS_HELD),
            (_A.PENDING, _O.APPROVED, ItemStatus.OWNER_APPROVED),
            (_A.HELD, _O.APPROVED, ItemStatus.OWNER_APPROVED),
            (_A.APPROVED, _O.DEFERRED, ItemStatus.CARRY_FORWARD),
            (_A.APPROVED, _O.REJECTED, ItemStatus.OWNER_REJECTED),
        ],
    )
    def test_owner_track_wins(self, accounts, owner, expected):
        assert derive_item_status(accounts, owner) is expected

    @given(accounts=st.sampled_from(AccountsStatus), owner=st.sampled_from(OwnerStatus))
    def test_settled_is_always_paid(self, accounts, owner):
        assert derive_item_status(accounts, owner, settled=True) is ItemStatus.PAID

    @given(accounts=st.sampled_from(AccountsStatus), owner=st.sampled_from(OwnerStatus))
    def test_paid_only_when_settled(self, accounts, owner):
        assert derive_item_status(accounts, owner) is not ItemStatus.PAID

    def test_accounts_reject_reverts_to_proposed(self):
        status = AccountsAction.REJECT.resulting_status
        assert status is AccountsStatus.PENDING
        assert derive_item_status(status, OwnerStatus.PENDING) is ItemStatus.PROPOSED

    def test_owner_actions(self):
        assert OwnerAction.DEFER.resulting_status is OwnerStatus.DEFERRED
        assert OwnerAction.APPROVE.resulting_status is OwnerStatus.APPROVED


class TestDeriveProposalOutcome:

    def test_nothing_decided(self):
        assert derive_proposal_outcome([_O.PENDING, _O.PENDING]) is None

    def test_all_approved(self):
        assert derive_proposal_outcome([_O.APPROVED, _O.APPROVED]) is ProposalStatus.APPROVED

    def test_pending_items_are_ignored(self):
        assert derive_proposal_outcome([_O.APPROVED, _O.PENDING]) is ProposalStatus.APPROVED

    def test_approved_with_deferred_is_partial(self):
        assert derive_proposal_outcome([_O.APPROVED, _O.DEFERRED]) is ProposalStatus.PARTIAL_APPROVED
        assert (
            derive_proposal_outcome([_O.APPROVED, _O.REJECTED, _O.DEFERRED])
            is ProposalStatus.PARTIAL_APPROVED
        )

    def test_approved_with_rejected_is_approved(self):
        assert derive_proposal_outcome([_O.APPROVED, _O.REJECTED]) is ProposalStatus.APPROVED

    def test_all_rejected(self):
        assert derive_proposal_outcome([_O.REJECTED]) is ProposalStatus.REJECTED

    def test_rejected_and_deferred(self):
        assert derive_proposal_outcome([_O.REJECTED, _O.DEFERRED]) is ProposalStatus.REJECTED

    def test_all_deferred_uses_configured_outcome(self):
        assert derive_proposal_outcome([_O.DEFERRED]) is ProposalStatus.REJECTED
        assert (
            derive_proposal_outcome([_O.DEFERRED, _O.DEFERRED], ProposalStatus.UNDER_REVIEW)
            is ProposalStatus.UNDER_REVIEW
        )

    @given(st.lists(st.sampled_from(OwnerStatus), min_size=1, max_size=20))
    def test_deferral_alone_splits_an_approval(self, statuses):
        outcome = derive_proposal_outcome(statuses)
        decided = [s for s in statuses if s is not _O.PENDING]
        if not decided:
            assert outcome is None
        elif any(s is _O.APPROVED for s in decided):
            if any(s is _O.DEFERRED for s in decided):
                assert outcome is ProposalStatus.PARTIAL_APPROVED
            else:
                assert outcome is ProposalStatus.APPROVED
        else:
            assert outcome is ProposalStatus.REJECTED


class TestItemBlocksBill:

    @pytest.mark.parametrize("proposal", [ProposalStatus.REJECTED, ProposalStatus.COMPLETED])
    def test_terminal_proposal_releases(self, proposal):
        assert not item_blocks_bill(proposal, ItemStatus.OWNER_APPROVED)

    @pytest.mark.parametrize(
        "item", [ItemStatus.OWNER_REJECTED, ItemStatus.CARRY_FORWARD, ItemStatus.PAID],
    )
    def test_released_item(self, item):
        assert not item_blocks_bill(ProposalStatus.PARTIAL_APPROVED, item)

    @pytest.mark.parametrize(
        "item",
        [
            ItemStatus.PROPOSED,
            ItemStatus.ACCOUNTS_APPROVED,
            ItemStatus.ACCOUNTS_HELD,
            ItemStatus.OWNER_APPROVED,
        ],
    )
    def test_open_item_blocks(self, item):
        assert item_blocks_bill(ProposalStatus.UNDER_REVIEW, item)
        assert item_blocks_bill(ProposalStatus.DRAFT, item)
