"""
PracticeOps Lifecycle — Public API
====================================
"""

from core.lifecycle.definitions import (
    INVOICE_LIFECYCLE,
    PAYMENT_EVENT_LIFECYCLE,
    PROPOSAL_LIFECYCLE,
    InvoiceStatus,
    PaymentEventStatus,
    ProposalStatus,
)
from core.lifecycle.machine import LifecycleDefinition

__all__ = [
    "LifecycleDefinition",
    "INVOICE_LIFECYCLE",
    "PROPOSAL_LIFECYCLE",
    "PAYMENT_EVENT_LIFECYCLE",
    "InvoiceStatus",
    "ProposalStatus",
    "PaymentEventStatus",
]
