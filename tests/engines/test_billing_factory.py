"""
Tests for engines.invoicing — money rounding and draft invoice builders.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from core.config.settings import WorkflowSettings
from core.errors import Conflict, InvalidState
from core.lifecycle.definitions import InvoiceStatus
from engines.invoicing.factory import BillingEntityFactory, milestone_amount
from engines.invoicing.models import Invoice, InvoiceLine, line_amount, round_money
from engines.proposals.models import FeeModel, Proposal, ProposalMilestone


TODAY = date(2026, 2, 21)


def _fixed_proposal(amount: str = "9000.00") -> Proposal:
    return Proposal(
        id=uuid.uuid4(),
        number="PROP-0007",
        title="Practice website rebuild",
        customer_id=uuid.uuid4(),
        fee_model=FeeModel.FIXED,
        fixed_fee_amount=Decimal(amount),
    )


class TestMoney:
    def test_round_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_line_amount_rounds_product(self):
        assert line_amount(Decimal("3"), Decimal("33.335")) == Decimal("100.01")

    def test_milestone_amounts(self):
        base = Decimal("9000.00")
        assert milestone_amount(base, Decimal("50")) == Decimal("4500.00")
        assert milestone_amount(base, Decimal("30")) == Decimal("2700.00")
        assert milestone_amount(base, Decimal("20")) == Decimal("1800.00")

    def test_milestone_amount_half_up(self):
        assert milestone_amount(Decimal("100.01"), Decimal("50")) == Decimal("50.01")


class TestInvoiceEntity:
    def test_line_amount_is_derived(self):
        line = InvoiceLine(
            id=uuid.uuid4(), invoice_id=uuid.uuid4(), description="Audit",
            quantity=Decimal("2"), unit_price=Decimal("150"),
        )
        assert line.amount == Decimal("300.00")
        line.reprice(quantity=Decimal("3"))
        assert line.amount == Decimal("450.00")

    def test_line_rejects_zero_quantity(self):
        with pytest.raises(ValueError, match="quantity"):
            InvoiceLine(
                id=uuid.uuid4(), invoice_id=uuid.uuid4(), description="Audit",
                quantity=Decimal("0"), unit_price=Decimal("1"),
            )

    def test_totals_include_tax(self):
        invoice = Invoice(id=uuid.uuid4(), customer_id=uuid.uuid4(), currency="USD")
        line = InvoiceLine(
            id=uuid.uuid4(), invoice_id=invoice.id, description="Audit",
            quantity=Decimal("1"), unit_price=Decimal("100"),
        )
        invoice.recalculate_totals([line])
        invoice.set_tax_amount(Decimal("8.255"))
        assert invoice.subtotal == Decimal("100.00")
        assert invoice.tax_amount == Decimal("8.26")
        assert invoice.total == Decimal("108.26")

    def test_approved_invoice_is_not_editable(self):
        invoice = Invoice(id=uuid.uuid4(), customer_id=uuid.uuid4(), currency="USD")
        invoice.approve("INV-0001", TODAY)
        assert invoice.issue_date == TODAY
        with pytest.raises(Conflict):
            invoice.set_tax_amount(Decimal("1"))

    def test_cannot_pay_a_draft(self):
        invoice = Invoice(id=uuid.uuid4(), customer_id=uuid.uuid4(), currency="USD")
        with pytest.raises(InvalidState):
            invoice.mark_paid("ref", None)
        assert invoice.status == InvoiceStatus.DRAFT


class TestBillingEntityFactory:
    def test_fixed_fee_invoice(self):
        proposal = _fixed_proposal()
        invoice, line = BillingEntityFactory().build_fixed_fee_invoice(
            proposal, today=TODAY, created_by=None
        )
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.number is None
        assert invoice.proposal_id == proposal.id
        assert invoice.customer_id == proposal.customer_id
        assert invoice.total == Decimal("9000.00")
        assert invoice.due_date == TODAY + timedelta(days=30)
        assert line.description == "Fixed fee: Practice website rebuild"
        assert line.invoice_id == invoice.id

    def test_due_days_follow_settings(self):
        factory = BillingEntityFactory(WorkflowSettings(default_due_days=14))
        assert factory.default_due_date(TODAY) == TODAY + timedelta(days=14)

    def test_milestone_invoice(self):
        proposal = _fixed_proposal()
        milestone = ProposalMilestone(
            id=uuid.uuid4(), proposal_id=proposal.id, description="Discovery",
            percentage=Decimal("30"), relative_due_days=45,
        )
        invoice, line = BillingEntityFactory().build_milestone_invoice(
            proposal, milestone, today=TODAY
        )
        assert invoice.total == Decimal("2700.00")
        assert invoice.due_date == TODAY + timedelta(days=45)
        assert line.description == "Discovery"
