"""PracticeOps Payments - audit actions, notification types and outcome codes."""

from __future__ import annotations

from typing import Optional

from engines.invoicing.models import Invoice

PAYMENT_SESSION_CREATED = "payment.session_created"
PAYMENT_COMPLETED = "payment.completed"
PAYMENT_FAILED = "payment.failed"
PAYMENT_EXPIRED = "payment.expired"

NOTIFY_PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
NOTIFY_PAYMENT_FAILED = "PAYMENT_FAILED"
NOTIFY_PAYMENT_LINK_EXPIRED = "PAYMENT_LINK_EXPIRED"

NOTIFY_PAYMENT_MEMBERS = "payment.members.notify"

# Reconciliation outcomes
OUTCOME_APPLIED = "APPLIED"
OUTCOME_DUPLICATE = "DUPLICATE"
OUTCOME_RECORDED_FAILURE = "RECORDED_FAILURE"
OUTCOME_RECORDED_EXPIRY = "RECORDED_EXPIRY"
OUTCOME_DROPPED_UNKNOWN_INVOICE = "DROPPED_UNKNOWN_INVOICE"
OUTCOME_DROPPED_FORGED = "DROPPED_FORGED"
OUTCOME_IGNORED = "IGNORED"


def build_payment_details(
    invoice: Invoice,
    *,
    provider_slug: str,
    session_id: Optional[str],
    payment_reference: Optional[str] = None,
) -> dict:
    return {
        "invoice_number": invoice.number,
        "provider": provider_slug,
        "session_id": session_id,
        "payment_reference": payment_reference,
        "amount": str(invoice.total),
        "currency": invoice.currency,
    }
