"""
Proposals Module (``gls_modules.proposals``).

Purchase batches eligible vendor bills into payment proposals; accounts
and the owner decide each item on two independent tracks.  The composite
item status and the proposal outcome come from
``gls_engines.proposal_status``.
"""

from gls_modules.proposals.models import (
    AccountsDecision,
    AvailableBill,
    AvailableBills,
    AvailableBillsFilter,
    AvailableBillsSummary,
    OwnerDecision,
    Proposal,
    ProposalItem,
    ProposalItemInput,
)
from gls_modules.proposals.service import ProposalsService
from gls_modules.proposals.workflows import PROPOSAL_WORKFLOW

__all__ = [
    "AccountsDecision",
    "AvailableBill",
    "AvailableBills",
    "AvailableBillsFilter",
    "AvailableBillsSummary",
    "OwnerDecision",
    "Proposal",
    "ProposalItem",
    "ProposalItemInput",
    "ProposalsService",
    "PROPOSAL_WORKFLOW",
]
