"""
Receivables Workflows (``gls_modules.receivables.workflows``).

Two independent state machines: the bill lifecycle (collections drive
``active -> paid``) and the physical delivery lifecycle.
"""

from gls_kernel.domain.workflow import Guard, Transition, Workflow
from gls_kernel.logging_config import get_logger

logger = get_logger("modules.receivables.workflows")

NOTHING_COLLECTED = Guard(
    name="nothing_collected",
    description="collected_amount is zero",
)

FULLY_COLLECTED = Guard(
    name="fully_collected",
    description="collected_amount equals amount",
)

RECEIVABLE_BILL_WORKFLOW = Workflow(
    name="receivable_bill",
    description="Outward bill lifecycle",
    initial_state="active",
    states=("active", "paid", "cancelled"),
    transitions=(
        Transition("active", "active", action="update", required_roles=("owner",)),
        Transition("active", "active", action="collect", required_roles=("accounts", "owner")),
        Transition("active", "paid", action="collect_in_full", guard=FULLY_COLLECTED,
                   required_roles=("accounts", "owner")),
        Transition("active", "cancelled", action="cancel", guard=NOTHING_COLLECTED,
                   required_roles=("owner",)),
    ),
    terminal_states=("paid", "cancelled"),
)

# Any delivery state may be corrected to any other; the set of states is fixed.
_DELIVERY_STATES = ("pending", "dispatched", "in_transit", "delivered", "returned")

DELIVERY_WORKFLOW = Workflow(
    name="delivery",
    description="Physical delivery of an outward bill",
    initial_state="pending",
    states=_DELIVERY_STATES,
    transitions=tuple(
        Transition(src, dst, action=dst, required_roles=("godown", "owner"))
        for src in _DELIVERY_STATES
        for dst in _DELIVERY_STATES
    ),
)

logger.info(
    "receivables_workflows_defined",
    extra={
        "workflows": [RECEIVABLE_BILL_WORKFLOW.name, DELIVERY_WORKFLOW.name],
        "transitions": len(RECEIVABLE_BILL_WORKFLOW.transitions) + len(DELIVERY_WORKFLOW.transitions),
    },
)
