"""
PracticeOps Invoicing — Invoice Service
=========================================
Draft editing, approval with number assignment, sending, manual
payment and voiding. Every operation runs in one unit of work and
writes one audit entry.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from core.audit.log import AuditLog
from core.config.settings import WorkflowSettings
from core.context.tenant_context import TenantContext
from core.errors import Conflict, InvalidState, NotFound
from core.lifecycle.definitions import INVOICE_LIFECYCLE, InvoiceStatus, PaymentEventStatus
from core.persistence.gateway import PersistenceGateway, load_or_raise
from core.sequences.allocator import SequenceAllocator
from core.sequences.policy import KIND_INVOICE
from core.time.clock import Clock, get_default_clock
from core.transactions.unit_of_work import Transaction, UnitOfWork
from engines.invoicing.events import (
    INVOICE_APPROVED,
    INVOICE_CREATED,
    INVOICE_DELETED,
    INVOICE_PAID,
    INVOICE_SENT,
    INVOICE_UPDATED,
    INVOICE_VOIDED,
    build_invoice_details,
)
from engines.invoicing.factory import BillingEntityFactory
from engines.invoicing.models import Invoice, InvoiceLine
from engines.invoicing.policies import invoice_must_have_lines_policy
from engines.payments.models import PROVIDER_MANUAL, PaymentEvent
from integration.collaborators import CustomerDirectory, PaymentGateway

logger = logging.getLogger("practiceops.invoicing")

_UNSET = object()


@dataclass(frozen=True)
class LineInput:
    description: str
    quantity: Decimal
    unit_price: Decimal


class InvoiceService:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        allocator: SequenceAllocator,
        audit_log: AuditLog,
        customers: CustomerDirectory | None = None,
        payment_gateway: PaymentGateway | None = None,
        factory: BillingEntityFactory | None = None,
        clock: Clock | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._allocator = allocator
        self._audit = audit_log
        self._customers = customers
        self._payment_gateway = payment_gateway
        self._settings = settings or WorkflowSettings()
        self._factory = factory or BillingEntityFactory(self._settings)
        self._clock = clock or get_default_clock()

    # ── Queries ───────────────────────────────────────────────

    def get(self, ctx: TenantContext, invoice_id: uuid.UUID) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            return load_or_raise(self._gateway, tx, Invoice, invoice_id)

    def lines_of(self, ctx: TenantContext, invoice_id: uuid.UUID) -> List[InvoiceLine]:
        with self._uow.atomic(ctx) as tx:
            return self._lines(tx, invoice_id)

    def _lines(self, tx: Transaction, invoice_id: uuid.UUID) -> List[InvoiceLine]:
        lines = self._gateway.find(tx, InvoiceLine, invoice_id=invoice_id)
        return sorted(lines, key=lambda line: line.sort_order)

    def _audit_invoice(self, tx: Transaction, action: str, invoice: Invoice, **extra) -> None:
        self._audit.record(
            tx,
            action=action,
            entity_type="Invoice",
            entity_id=invoice.id,
            details=build_invoice_details(invoice, **extra),
        )

    # ── Drafts ────────────────────────────────────────────────

    def create_draft(
        self,
        ctx: TenantContext,
        *,
        customer_id: uuid.UUID,
        currency: Optional[str] = None,
        due_date: Optional[date] = None,
        lines: Iterable[LineInput] = (),
    ) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            if self._customers is not None and self._customers.get_customer(tx, customer_id) is None:
                raise NotFound("Customer", customer_id)

            today = self._clock.now_utc().date()
            invoice = Invoice(
                id=uuid.uuid4(),
                customer_id=customer_id,
                currency=currency or self._settings.default_currency,
                due_date=due_date or self._factory.default_due_date(today),
                created_by=ctx.actor_id,
            )
            built = [
                InvoiceLine(
                    id=uuid.uuid4(),
                    invoice_id=invoice.id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    sort_order=index,
                )
                for index, item in enumerate(lines)
            ]
            for line in built:
                self._gateway.save(tx, line)
            invoice.recalculate_totals(built)
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_CREATED, invoice)
            return invoice

    def add_line(
        self,
        ctx: TenantContext,
        invoice_id: uuid.UUID,
        *,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
    ) -> InvoiceLine:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            invoice.require_editable("add a line")
            existing = self._lines(tx, invoice_id)
            line = InvoiceLine(
                id=uuid.uuid4(),
                invoice_id=invoice_id,
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                sort_order=len(existing),
            )
            self._gateway.save(tx, line)
            invoice.recalculate_totals(existing + [line])
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_UPDATED, invoice, line_added=str(line.id))
            return line

    def update_line(
        self,
        ctx: TenantContext,
        invoice_id: uuid.UUID,
        line_id: uuid.UUID,
        *,
        description: Optional[str] = None,
        quantity: Optional[Decimal] = None,
        unit_price: Optional[Decimal] = None,
    ) -> InvoiceLine:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            invoice.require_editable("edit a line")
            lines = self._lines(tx, invoice_id)
            line = next((item for item in lines if item.id == line_id), None)
            if line is None:
                raise NotFound("InvoiceLine", line_id)
            if description is not None:
                if not description.strip():
                    raise ValueError("Line description must be non-empty.")
                line.description = description
            line.reprice(quantity=quantity, unit_price=unit_price)
            self._gateway.save(tx, line)
            invoice.recalculate_totals(lines)
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_UPDATED, invoice, line_updated=str(line.id))
            return line

    def update_draft(
        self,
        ctx: TenantContext,
        invoice_id: uuid.UUID,
        *,
        due_date=_UNSET,
        notes=_UNSET,
        tax_amount=_UNSET,
    ) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            invoice.require_editable("edit")
            if due_date is not _UNSET:
                invoice.due_date = due_date
            if notes is not _UNSET:
                invoice.notes = notes
            if tax_amount is not _UNSET:
                invoice.set_tax_amount(tax_amount)
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_UPDATED, invoice)
            return invoice

    def delete_draft(self, ctx: TenantContext, invoice_id: uuid.UUID) -> None:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise Conflict(
                    f"Only draft invoices can be deleted; invoice {invoice_id} is {invoice.status}."
                )
            for line in self._lines(tx, invoice_id):
                self._gateway.delete(tx, line)
            self._gateway.delete(tx, invoice)
            self._audit_invoice(tx, INVOICE_DELETED, invoice)

    # ── Lifecycle ─────────────────────────────────────────────

    def approve(self, ctx: TenantContext, invoice_id: uuid.UUID) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            INVOICE_LIFECYCLE.require_transition(
                invoice.status, InvoiceStatus.APPROVED, action="approve"
            )
            rejection = invoice_must_have_lines_policy(self._lines(tx, invoice_id))
            if rejection is not None:
                raise InvalidState("approve", invoice.status, rejection.message)
            number = self._allocator.allocate(tx, KIND_INVOICE)
            invoice.approve(number, self._clock.now_utc().date())
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_APPROVED, invoice)
            logger.info(f"Invoice {invoice.number} approved (tenant: {ctx.tenant_schema})")
            return invoice

    def send(self, ctx: TenantContext, invoice_id: uuid.UUID) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            invoice.mark_sent()
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_SENT, invoice)
            return invoice

    def record_payment(
        self,
        ctx: TenantContext,
        invoice_id: uuid.UUID,
        *,
        payment_reference: Optional[str] = None,
    ) -> Invoice:
        """Manual payment: closes any open checkout session first."""
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            if invoice.status != InvoiceStatus.SENT:
                raise Conflict(
                    f"Only sent invoices can be paid; invoice {invoice.number} is {invoice.status}."
                )

            if invoice.payment_session_id is not None:
                if self._payment_gateway is not None:
                    self._payment_gateway.expire_session(ctx, invoice.payment_session_id)
                invoice.payment_session_id = None

            now = self._clock.now_utc()
            invoice.mark_paid(payment_reference, now)
            self._gateway.save(tx, invoice)
            self._gateway.save(tx, PaymentEvent(
                id=uuid.uuid4(),
                invoice_id=invoice.id,
                provider_slug=PROVIDER_MANUAL,
                status=PaymentEventStatus.COMPLETED,
                amount=invoice.total,
                currency=invoice.currency,
                payment_reference=payment_reference,
                payment_destination=invoice.payment_destination,
                created_at=now,
            ))
            self._audit_invoice(tx, INVOICE_PAID, invoice, payment_reference=payment_reference)
            return invoice

    def void(self, ctx: TenantContext, invoice_id: uuid.UUID) -> Invoice:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            invoice.void()
            self._gateway.save(tx, invoice)
            self._audit_invoice(tx, INVOICE_VOIDED, invoice)
            return invoice
