"""PracticeOps Invoicing - audit actions and detail builders."""

from __future__ import annotations

from engines.invoicing.models import Invoice

INVOICE_CREATED = "invoice.created"
INVOICE_UPDATED = "invoice.updated"
INVOICE_DELETED = "invoice.deleted"
INVOICE_APPROVED = "invoice.approved"
INVOICE_SENT = "invoice.sent"
INVOICE_PAID = "invoice.paid"
INVOICE_VOIDED = "invoice.voided"

INVOICE_AUDIT_ACTIONS = (
    INVOICE_CREATED,
    INVOICE_UPDATED,
    INVOICE_DELETED,
    INVOICE_APPROVED,
    INVOICE_SENT,
    INVOICE_PAID,
    INVOICE_VOIDED,
)


def build_invoice_details(invoice: Invoice, **extra) -> dict:
    details = {
        "invoice_number": invoice.number,
        "customer_id": str(invoice.customer_id),
        "status": invoice.status,
        "currency": invoice.currency,
        "total": str(invoice.total),
    }
    details.update(extra)
    return details
