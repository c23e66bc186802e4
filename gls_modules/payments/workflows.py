"""
Payment Workflows (``gls_modules.payments.workflows``).

Declares the payment batch lifecycle::

    pending -> processed -> confirmed
    pending ------------->  confirmed

Every UTR round fires ``settle_partial`` while some detail still lacks a
UTR and ``settle_final`` once none does.  Settlement is system-driven, so
the transitions carry no roles.
"""

from gls_kernel.domain.workflow import Guard, Transition, Workflow
from gls_kernel.logging_config import get_logger

logger = get_logger("modules.payments.workflows")

ALL_DETAILS_CONFIRMED = Guard(
    name="all_details_confirmed",
    description="Every payment detail carries a UTR",
)

PAYMENT_WORKFLOW = Workflow(
    name="payment",
    description="Payment batch settlement lifecycle",
    initial_state="pending",
    states=("pending", "processed", "confirmed"),
    transitions=(
        Transition("pending", "processed", action="settle_partial"),
        Transition("processed", "processed", action="settle_partial"),
        Transition("pending", "confirmed", action="settle_final", guard=ALL_DETAILS_CONFIRMED),
        Transition("processed", "confirmed", action="settle_final", guard=ALL_DETAILS_CONFIRMED),
    ),
    terminal_states=("confirmed",),
)

logger.info(
    "payments_workflow_defined",
    extra={
        "workflow": PAYMENT_WORKFLOW.name,
        "states": len(PAYMENT_WORKFLOW.states),
        "transitions": len(PAYMENT_WORKFLOW.transitions),
    },
)
