"""
Shared fixtures for module tests.

Provides helpers that walk a proposal through its decision rounds so
payment and reporting tests can start from an approved proposal.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares the workflow stage it depends on in its function signature.
"""

from decimal import Decimal

import pytest

from gls_modules.proposals.models import AccountsDecision, OwnerDecision, ProposalItemInput


@pytest.fixture
def propose(proposals_service, purchase, deterministic_clock):
    """Create a draft proposal from ``(bill, amount)`` pairs; amount defaults to outstanding."""

    def _propose(*bills, principal=None, submit=False):
        items = []
        for entry in bills:
            bill, amount = entry if isinstance(entry, tuple) else (entry, None)
            items.append(
                ProposalItemInput(bill.id, bill.outstanding if amount is None else Decimal(amount))
            )
        actor = principal or purchase
        proposal = proposals_service.create_proposal(
            actor, payment_date=deterministic_clock.today(), items=items,
        )
        if submit:
            proposal = proposals_service.submit_proposal(actor, proposal.id)
        return proposal

    return _propose


@pytest.fixture
def decide(proposals_service, accounts, owner):
    """Run an accounts round, then an owner round, with one action per item."""

    def _decide(proposal, accounts_actions=None, owner_actions=None):
        if accounts_actions is not None:
            proposal = proposals_service.accounts_action(
                accounts,
                proposal.id,
                [AccountsDecision(i.id, a) for i, a in zip(proposal.items, accounts_actions)],
            )
        if owner_actions is not None:
            proposal = proposals_service.owner_action(
                owner,
                proposal.id,
                [OwnerDecision(i.id, a) for i, a in zip(proposal.items, owner_actions)],
            )
        return proposal

    return _decide


@pytest.fixture
def approved_proposal(make_vendor, make_payable_bill, propose, decide):
    """One 10000.00 bill proposed at 9500.00, approved by accounts and owner."""
    vendor = make_vendor(name="Shree Traders")
    bill = make_payable_bill(vendor.id)
    proposal = propose((bill, "9500.00"), submit=True)
    return decide(proposal, ["approve"], ["approve"])
