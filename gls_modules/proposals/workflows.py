"""
Proposal Workflows (``gls_modules.proposals.workflows``).

Responsibility
--------------
Declares the proposal lifecycle::

    draft -> submitted -> under_review -> approved | partial_approved | rejected
    approved | partial_approved -> completed

The owner's decision round is one action per outcome
(``owner_approved``, ``owner_partial_approved`` ...), because the target
state is computed by ``derive_proposal_outcome`` rather than chosen by
the caller.  ``completed`` is reachable only through payment generation.
"""

from gls_engines.proposal_status import ProposalStatus
from gls_kernel.domain.workflow import Guard, Transition, Workflow
from gls_kernel.logging_config import get_logger

logger = get_logger("modules.proposals.workflows")

_S = ProposalStatus

HAS_OWNER_APPROVED_ITEMS = Guard(
    name="has_owner_approved_items",
    description="At least one item has owner_status approved",
)

ACCOUNTS_REVIEWABLE_STATES: tuple[str, ...] = (_S.SUBMITTED.value, _S.UNDER_REVIEW.value)

OWNER_DECIDABLE_STATES: tuple[str, ...] = (
    _S.SUBMITTED.value,
    _S.UNDER_REVIEW.value,
    _S.APPROVED.value,
    _S.PARTIAL_APPROVED.value,
)

OWNER_OUTCOMES: tuple[str, ...] = (
    _S.APPROVED.value,
    _S.PARTIAL_APPROVED.value,
    _S.REJECTED.value,
    _S.UNDER_REVIEW.value,
)

PAYABLE_STATES: tuple[str, ...] = (_S.APPROVED.value, _S.PARTIAL_APPROVED.value)


def owner_action_name(outcome: ProposalStatus) -> str:
    return f"owner_{outcome.value}"


PROPOSAL_WORKFLOW = Workflow(
    name="proposal",
    description="Payment proposal approval lifecycle",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in ProposalStatus),
    transitions=(
        Transition(_S.DRAFT.value, _S.SUBMITTED.value, action="submit",
                   required_roles=("purchase", "owner")),
        *(
            Transition(src, _S.UNDER_REVIEW.value, action="accounts_review",
                       required_roles=("accounts", "owner"))
            for src in ACCOUNTS_REVIEWABLE_STATES
        ),
        *(
            Transition(src, dst, action=f"owner_{dst}", required_roles=("owner",))
            for src in OWNER_DECIDABLE_STATES
            for dst in OWNER_OUTCOMES
        ),
        *(
            Transition(src, _S.COMPLETED.value, action="generate_payment",
                       guard=HAS_OWNER_APPROVED_ITEMS, required_roles=("accounts", "owner"))
            for src in PAYABLE_STATES
        ),
    ),
    terminal_states=(_S.REJECTED.value, _S.COMPLETED.value),
)

logger.info(
    "proposal_workflow_defined",
    extra={
        "workflow": PROPOSAL_WORKFLOW.name,
        "states": len(PROPOSAL_WORKFLOW.states),
        "transitions": len(PROPOSAL_WORKFLOW.transitions),
    },
)
