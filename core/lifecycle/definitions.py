"""
PracticeOps Lifecycle — Entity Transition Tables
==================================================
Invoice, Proposal and PaymentEvent lifecycles.

Invoice:      DRAFT → APPROVED → SENT → PAID
                       APPROVED/SENT → VOID
Proposal:     DRAFT → SENT → ACCEPTED | DECLINED | EXPIRED
PaymentEvent: CREATED → PENDING | CANCELLED
              PENDING → COMPLETED | FAILED | EXPIRED
              (advisory: the ledger is append-mostly)
"""

from __future__ import annotations

from core.lifecycle.machine import LifecycleDefinition


class InvoiceStatus:
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    SENT = "SENT"
    PAID = "PAID"
    VOID = "VOID"


class ProposalStatus:
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class PaymentEventStatus:
    CREATED = "CREATED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


INVOICE_LIFECYCLE = LifecycleDefinition(
    name="Invoice",
    initial_state=InvoiceStatus.DRAFT,
    terminal_states=frozenset({InvoiceStatus.PAID, InvoiceStatus.VOID}),
    transitions={
        InvoiceStatus.DRAFT: frozenset({InvoiceStatus.APPROVED}),
        InvoiceStatus.APPROVED: frozenset({InvoiceStatus.SENT, InvoiceStatus.VOID}),
        InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.VOID}),
        InvoiceStatus.PAID: frozenset(),
        InvoiceStatus.VOID: frozenset(),
    },
    editable_states=frozenset({InvoiceStatus.DRAFT}),
)

PROPOSAL_LIFECYCLE = LifecycleDefinition(
    name="Proposal",
    initial_state=ProposalStatus.DRAFT,
    terminal_states=frozenset({
        ProposalStatus.ACCEPTED,
        ProposalStatus.DECLINED,
        ProposalStatus.EXPIRED,
    }),
    transitions={
        ProposalStatus.DRAFT: frozenset({ProposalStatus.SENT}),
        ProposalStatus.SENT: frozenset({
            ProposalStatus.ACCEPTED,
            ProposalStatus.DECLINED,
            ProposalStatus.EXPIRED,
        }),
        ProposalStatus.ACCEPTED: frozenset(),
        ProposalStatus.DECLINED: frozenset(),
        ProposalStatus.EXPIRED: frozenset(),
    },
    editable_states=frozenset({ProposalStatus.DRAFT}),
)

PAYMENT_EVENT_LIFECYCLE = LifecycleDefinition(
    name="PaymentEvent",
    initial_state=PaymentEventStatus.CREATED,
    terminal_states=frozenset({
        PaymentEventStatus.COMPLETED,
        PaymentEventStatus.FAILED,
        PaymentEventStatus.EXPIRED,
        PaymentEventStatus.CANCELLED,
    }),
    transitions={
        PaymentEventStatus.CREATED: frozenset({
            PaymentEventStatus.PENDING,
            PaymentEventStatus.CANCELLED,
        }),
        PaymentEventStatus.PENDING: frozenset({
            PaymentEventStatus.COMPLETED,
            PaymentEventStatus.FAILED,
            PaymentEventStatus.EXPIRED,
        }),
        PaymentEventStatus.COMPLETED: frozenset(),
        PaymentEventStatus.FAILED: frozenset(),
        PaymentEventStatus.EXPIRED: frozenset(),
        PaymentEventStatus.CANCELLED: frozenset(),
    },
    enforced=False,
)
