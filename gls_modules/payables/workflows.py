"""
Payables Workflows (``gls_modules.payables.workflows``).

Declares the inward-bill lifecycle.  Settlement progress
(open/partial/paid) is a derived status, not a workflow state, so the
only transitions are the owner's edit and cancel actions.
"""

from gls_kernel.domain.workflow import Guard, Transition, Workflow
from gls_kernel.logging_config import get_logger

logger = get_logger("modules.payables.workflows")

NOTHING_SETTLED = Guard(
    name="nothing_settled",
    description="paid_amount is zero",
)

NOT_FULLY_PAID = Guard(
    name="not_fully_paid",
    description="payment_status is not paid",
)

PAYABLE_BILL_WORKFLOW = Workflow(
    name="payable_bill",
    description="Inward bill lifecycle",
    initial_state="active",
    states=("active", "cancelled"),
    transitions=(
        Transition("active", "active", action="update", guard=NOT_FULLY_PAID,
                   required_roles=("owner",)),
        Transition("active", "cancelled", action="cancel", guard=NOTHING_SETTLED,
                   required_roles=("owner",)),
    ),
    terminal_states=("cancelled",),
)

logger.info(
    "payables_workflow_defined",
    extra={
        "workflow": PAYABLE_BILL_WORKFLOW.name,
        "states": len(PAYABLE_BILL_WORKFLOW.states),
        "transitions": len(PAYABLE_BILL_WORKFLOW.transitions),
    },
)
