"""
PracticeOps Invoicing — Billing Entity Factory
================================================
Builds DRAFT invoices with one line from a description/amount pair,
from a proposal's fixed fee, or from a proposal milestone.

Rounding: half-up to 2 places at the point an amount is computed
(quantity × unit price, percentage × base / 100).
Due dates: caller-supplied, else creation date + default_due_days;
milestone invoices use creation date + milestone.relative_due_days.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from core.config.settings import WorkflowSettings
from engines.invoicing.models import Invoice, InvoiceLine, round_money

if TYPE_CHECKING:
    from engines.proposals.models import Proposal, ProposalMilestone

ONE = Decimal("1")
HUNDRED = Decimal("100")


def milestone_amount(base_amount: Decimal, percentage: Decimal) -> Decimal:
    """e.g. 9000.00 × 30 / 100 → 2700.00"""
    return round_money(Decimal(base_amount) * Decimal(percentage) / HUNDRED)


class BillingEntityFactory:
    def __init__(self, settings: WorkflowSettings | None = None):
        self._settings = settings or WorkflowSettings()

    def default_due_date(self, today: date) -> date:
        return today + timedelta(days=self._settings.default_due_days)

    def build_draft(
        self,
        *,
        customer_id: uuid.UUID,
        currency: str,
        description: str,
        amount: Decimal,
        today: date,
        quantity: Decimal = ONE,
        due_date: Optional[date] = None,
        proposal_id: Optional[uuid.UUID] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> tuple[Invoice, InvoiceLine]:
        """One DRAFT invoice carrying one line; totals already computed."""
        invoice = Invoice(
            id=uuid.uuid4(),
            customer_id=customer_id,
            currency=currency,
            due_date=due_date or self.default_due_date(today),
            proposal_id=proposal_id,
            created_by=created_by,
        )
        line = InvoiceLine(
            id=uuid.uuid4(),
            invoice_id=invoice.id,
            description=description,
            quantity=quantity,
            unit_price=amount,
            sort_order=0,
        )
        invoice.recalculate_totals([line])
        return invoice, line

    def build_fixed_fee_invoice(
        self,
        proposal: "Proposal",
        *,
        today: date,
        created_by: Optional[uuid.UUID] = None,
    ) -> tuple[Invoice, InvoiceLine]:
        return self.build_draft(
            customer_id=proposal.customer_id,
            currency=proposal.fixed_fee_currency,
            description=f"Fixed fee: {proposal.title}",
            amount=round_money(proposal.fixed_fee_amount),
            today=today,
            proposal_id=proposal.id,
            created_by=created_by,
        )

    def build_milestone_invoice(
        self,
        proposal: "Proposal",
        milestone: "ProposalMilestone",
        *,
        today: date,
        created_by: Optional[uuid.UUID] = None,
    ) -> tuple[Invoice, InvoiceLine]:
        return self.build_draft(
            customer_id=proposal.customer_id,
            currency=proposal.fixed_fee_currency,
            description=milestone.description,
            amount=milestone_amount(proposal.fixed_fee_amount, milestone.percentage),
            today=today,
            due_date=today + timedelta(days=milestone.relative_due_days),
            proposal_id=proposal.id,
            created_by=created_by,
        )
