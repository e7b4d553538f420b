"""
Tests for core.lifecycle — transition tables and guards.
"""

import logging

import pytest

from core.errors import Conflict, InvalidState
from core.lifecycle.definitions import (
    INVOICE_LIFECYCLE,
    PAYMENT_EVENT_LIFECYCLE,
    PROPOSAL_LIFECYCLE,
    InvoiceStatus,
    PaymentEventStatus,
    ProposalStatus,
)
from core.lifecycle.machine import LifecycleDefinition


INVOICE_ALLOWED = {
    (InvoiceStatus.DRAFT, InvoiceStatus.APPROVED),
    (InvoiceStatus.APPROVED, InvoiceStatus.SENT),
    (InvoiceStatus.APPROVED, InvoiceStatus.VOID),
    (InvoiceStatus.SENT, InvoiceStatus.PAID),
    (InvoiceStatus.SENT, InvoiceStatus.VOID),
}

PROPOSAL_ALLOWED = {
    (ProposalStatus.DRAFT, ProposalStatus.SENT),
    (ProposalStatus.SENT, ProposalStatus.ACCEPTED),
    (ProposalStatus.SENT, ProposalStatus.DECLINED),
    (ProposalStatus.SENT, ProposalStatus.EXPIRED),
}


class TestInvoiceLifecycle:
    def test_table_is_closed(self):
        for current in INVOICE_LIFECYCLE.states:
            for target in INVOICE_LIFECYCLE.states:
                expected = (current, target) in INVOICE_ALLOWED
                assert INVOICE_LIFECYCLE.can_transition(current, target) is expected

    def test_paid_and_void_are_terminal(self):
        assert INVOICE_LIFECYCLE.is_terminal(InvoiceStatus.PAID)
        assert INVOICE_LIFECYCLE.is_terminal(InvoiceStatus.VOID)
        assert not INVOICE_LIFECYCLE.is_terminal(InvoiceStatus.SENT)

    def test_illegal_transition_raises_invalid_state(self):
        with pytest.raises(InvalidState, match="DRAFT → PAID") as excinfo:
            INVOICE_LIFECYCLE.require_transition(
                InvoiceStatus.DRAFT, InvoiceStatus.PAID, action="pay"
            )
        assert excinfo.value.current_state == InvoiceStatus.DRAFT

    def test_only_draft_is_editable(self):
        INVOICE_LIFECYCLE.require_editable(InvoiceStatus.DRAFT, action="edit")
        with pytest.raises(Conflict, match="APPROVED"):
            INVOICE_LIFECYCLE.require_editable(InvoiceStatus.APPROVED, action="edit")


class TestProposalLifecycle:
    def test_table_is_closed(self):
        for current in PROPOSAL_LIFECYCLE.states:
            for target in PROPOSAL_LIFECYCLE.states:
                expected = (current, target) in PROPOSAL_ALLOWED
                assert PROPOSAL_LIFECYCLE.can_transition(current, target) is expected

    def test_decisions_are_terminal(self):
        for state in (ProposalStatus.ACCEPTED, ProposalStatus.DECLINED, ProposalStatus.EXPIRED):
            assert PROPOSAL_LIFECYCLE.allowed_next_states(state) == frozenset()


class TestPaymentEventLifecycle:
    def test_violation_is_logged_not_raised(self, caplog):
        with caplog.at_level(logging.WARNING, logger="practiceops.lifecycle"):
            PAYMENT_EVENT_LIFECYCLE.require_transition(
                PaymentEventStatus.COMPLETED, PaymentEventStatus.FAILED, action="record"
            )
        assert "Advisory lifecycle violation" in caplog.text

    def test_pending_to_completed_is_allowed(self):
        assert PAYMENT_EVENT_LIFECYCLE.can_transition(
            PaymentEventStatus.PENDING, PaymentEventStatus.COMPLETED
        )


class TestLifecycleDefinition:
    def test_terminal_state_with_exit_is_rejected(self):
        with pytest.raises(ValueError, match="Terminal state"):
            LifecycleDefinition(
                name="Broken",
                initial_state="A",
                terminal_states=frozenset({"B"}),
                transitions={"A": frozenset({"B"}), "B": frozenset({"A"})},
            )

    def test_undeclared_target_is_rejected(self):
        with pytest.raises(ValueError, match="not declared"):
            LifecycleDefinition(
                name="Broken",
                initial_state="A",
                terminal_states=frozenset(),
                transitions={"A": frozenset({"Z"})},
            )
