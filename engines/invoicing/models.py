"""
PracticeOps Invoicing — Entities
==================================
Invoice and InvoiceLine.

RULES:
- Money is Decimal, rounded half-up to 2 places where computed.
- InvoiceLine.amount is always quantity × unit_price; never set directly.
- subtotal = Σ line amounts, total = subtotal + tax, recomputed on
  every line change.
- Status changes go through INVOICE_LIFECYCLE only.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from core.lifecycle.definitions import INVOICE_LIFECYCLE, InvoiceStatus

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DESTINATION_OPERATING = "OPERATING"
DESTINATION_TRUST = "TRUST"


def round_money(value) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return round_money(Decimal(quantity) * Decimal(unit_price))


# ══════════════════════════════════════════════════════════════
# INVOICE LINE
# ══════════════════════════════════════════════════════════════

@dataclass
class InvoiceLine:
    id: uuid.UUID
    invoice_id: uuid.UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    sort_order: int = 0
    amount: Decimal = field(init=False)

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise ValueError("Line description must be non-empty.")
        self.quantity = Decimal(self.quantity)
        self.unit_price = Decimal(self.unit_price)
        if self.quantity <= 0:
            raise ValueError("Line quantity must be > 0.")
        if self.unit_price < 0:
            raise ValueError("Line unit_price must be >= 0.")
        self.amount = line_amount(self.quantity, self.unit_price)

    def reprice(
        self,
        *,
        quantity: Optional[Decimal] = None,
        unit_price: Optional[Decimal] = None,
    ) -> None:
        new_quantity = Decimal(quantity) if quantity is not None else self.quantity
        new_price = Decimal(unit_price) if unit_price is not None else self.unit_price
        if new_quantity <= 0:
            raise ValueError("Line quantity must be > 0.")
        if new_price < 0:
            raise ValueError("Line unit_price must be >= 0.")
        self.quantity = new_quantity
        self.unit_price = new_price
        self.amount = line_amount(new_quantity, new_price)


# ══════════════════════════════════════════════════════════════
# INVOICE
# ══════════════════════════════════════════════════════════════

@dataclass
class Invoice:
    id: uuid.UUID
    customer_id: uuid.UUID
    currency: str
    status: str = InvoiceStatus.DRAFT
    number: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    payment_session_id: Optional[str] = None
    payment_destination: str = DESTINATION_OPERATING
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    proposal_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None

    def __post_init__(self):
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValueError("currency must be a 3-letter ISO code.")
        if self.status not in INVOICE_LIFECYCLE.states:
            raise ValueError(f"Unknown invoice status '{self.status}'.")
        if self.tax_amount < 0:
            raise ValueError("tax_amount must be >= 0.")

    # ── Editing (DRAFT only) ──────────────────────────────────

    def is_editable(self) -> bool:
        return INVOICE_LIFECYCLE.is_editable(self.status)

    def require_editable(self, action: str) -> None:
        INVOICE_LIFECYCLE.require_editable(self.status, action=action)

    def recalculate_totals(self, lines: Iterable[InvoiceLine]) -> None:
        self.subtotal = round_money(sum((line.amount for line in lines), ZERO))
        self.total = self.subtotal + self.tax_amount

    def set_tax_amount(self, amount: Decimal) -> None:
        self.require_editable("change tax")
        amount = round_money(amount)
        if amount < 0:
            raise ValueError("tax_amount must be >= 0.")
        self.tax_amount = amount
        self.total = self.subtotal + self.tax_amount

    # ── Lifecycle ─────────────────────────────────────────────

    def approve(self, number: str, today: date) -> None:
        INVOICE_LIFECYCLE.require_transition(self.status, InvoiceStatus.APPROVED, action="approve")
        self.number = number
        if self.issue_date is None:
            self.issue_date = today
        self.status = InvoiceStatus.APPROVED

    def mark_sent(self) -> None:
        INVOICE_LIFECYCLE.require_transition(self.status, InvoiceStatus.SENT, action="send")
        self.status = InvoiceStatus.SENT

    def mark_paid(self, payment_reference: Optional[str], paid_at: datetime) -> None:
        INVOICE_LIFECYCLE.require_transition(self.status, InvoiceStatus.PAID, action="record payment for")
        self.payment_reference = payment_reference
        self.paid_at = paid_at
        self.status = InvoiceStatus.PAID

    def void(self) -> None:
        INVOICE_LIFECYCLE.require_transition(self.status, InvoiceStatus.VOID, action="void")
        self.status = InvoiceStatus.VOID
