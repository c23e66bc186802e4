"""Tests for workflow value objects and the declared module workflows."""

import pytest

from gls_engines.proposal_status import ProposalStatus
from gls_kernel.domain.workflow import Transition, Workflow
from gls_modules.payables.workflows import PAYABLE_BILL_WORKFLOW
from gls_modules.payments.workflows import PAYMENT_WORKFLOW
from gls_modules.proposals.workflows import PROPOSAL_WORKFLOW, owner_action_name
from gls_modules.receivables.workflows import DELIVERY_WORKFLOW, RECEIVABLE_BILL_WORKFLOW


class TestWorkflowValidation:

    def test_initial_state_must_be_declared(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(name="w", description="", initial_state="x", states=("a",), transitions=())

    def test_transition_states_must_be_declared(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="w", description="", initial_state="a", states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_state_has_no_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                name="w", description="", initial_state="a", states=("a", "b"),
                transitions=(Transition("b", "a", action="back"),),
                terminal_states=("b",),
            )

    def test_find_transition(self):
        t = PAYABLE_BILL_WORKFLOW.find_transition("active", "cancel")
        assert t is not None
        assert t.to_state == "cancelled"
        assert PAYABLE_BILL_WORKFLOW.find_transition("cancelled", "update") is None


class TestProposalWorkflow:

    def test_states_match_enum(self):
        assert set(PROPOSAL_WORKFLOW.states) == {s.value for s in ProposalStatus}

    def test_submit_only_from_draft(self):
        assert PROPOSAL_WORKFLOW.actions_from("draft") == ("submit",)

    def test_completed_only_through_payment(self):
        into_completed = [t for t in PROPOSAL_WORKFLOW.transitions if t.to_state == "completed"]
        assert {t.action for t in into_completed} == {"generate_payment"}
        assert {t.from_state for t in into_completed} == {"approved", "partial_approved"}

    def test_terminal_states(self):
        assert PROPOSAL_WORKFLOW.is_terminal("rejected")
        assert PROPOSAL_WORKFLOW.is_terminal("completed")
        assert PROPOSAL_WORKFLOW.actions_from("completed") == ()

    def test_owner_outcome_actions(self):
        assert owner_action_name(ProposalStatus.PARTIAL_APPROVED) == "owner_partial_approved"
        t = PROPOSAL_WORKFLOW.find_transition("under_review", "owner_approved")
        assert t.to_state == "approved"
        assert PROPOSAL_WORKFLOW.find_transition("draft", "owner_approved") is None


class TestOtherWorkflows:

    def test_payment_confirmed_is_terminal(self):
        assert PAYMENT_WORKFLOW.is_terminal("confirmed")
        assert PAYMENT_WORKFLOW.find_transition("pending", "settle_partial").to_state == "processed"
        assert PAYMENT_WORKFLOW.find_transition("processed", "settle_final").to_state == "confirmed"

    def test_receivable_paid_only_by_full_collection(self):
        into_paid = [t for t in RECEIVABLE_BILL_WORKFLOW.transitions if t.to_state == "paid"]
        assert [t.action for t in into_paid] == ["collect_in_full"]

    def test_delivery_states_fully_connected(self):
        for src in DELIVERY_WORKFLOW.states:
            for dst in DELIVERY_WORKFLOW.states:
                assert DELIVERY_WORKFLOW.find_transition(src, dst) is not None
