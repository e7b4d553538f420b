"""
PracticeOps Payments — Payment Links and Reconciliation
=========================================================
PaymentLinkService opens a checkout session for a SENT invoice and
records the CREATED PaymentEvent that callbacks are matched against.

PaymentReconciliationEngine applies verified provider callbacks:
1. Resolve the invoice from callback metadata. Unknown → log, drop.
2. Anti-forgery: a PaymentEvent with the callback's session id must
   exist for the invoice. Otherwise log, drop.
3. A PAID invoice takes no further callbacks: COMPLETED is a
   duplicate, anything else is ignored.
4. The session must still be open: no COMPLETED, FAILED, EXPIRED or
   CANCELLED event recorded for it. Otherwise log, drop.
5. By status:
   COMPLETED — SENT → PAID, append a COMPLETED event, audit.
   FAILED    — append FAILED event, audit, notify admins/owners after
               commit. Invoice stays SENT.
   EXPIRED   — append EXPIRED event, notify the invoice creator after
               commit. Invoice unchanged.
6. Anything else is logged and ignored.

Callbacks never raise to the caller for unknown, forged, duplicate or
unrecognised input.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from core.audit.log import AuditLog
from core.context.tenant_context import ROLE_ADMIN, ROLE_OWNER, TenantContext
from core.errors import Conflict
from core.lifecycle.definitions import (
    PAYMENT_EVENT_LIFECYCLE,
    InvoiceStatus,
    PaymentEventStatus,
)
from core.persistence.gateway import PersistenceGateway, load_or_raise
from core.time.clock import Clock, get_default_clock
from core.transactions.unit_of_work import Transaction, UnitOfWork
from engines.invoicing.events import INVOICE_PAID, build_invoice_details
from engines.invoicing.models import Invoice
from engines.payments.events import (
    NOTIFY_PAYMENT_FAILED,
    NOTIFY_PAYMENT_LINK_EXPIRED,
    NOTIFY_PAYMENT_MEMBERS,
    NOTIFY_PAYMENT_RECEIVED,
    OUTCOME_APPLIED,
    OUTCOME_DROPPED_FORGED,
    OUTCOME_DROPPED_UNKNOWN_INVOICE,
    OUTCOME_DUPLICATE,
    OUTCOME_IGNORED,
    OUTCOME_RECORDED_EXPIRY,
    OUTCOME_RECORDED_FAILURE,
    PAYMENT_COMPLETED,
    PAYMENT_EXPIRED,
    PAYMENT_FAILED,
    PAYMENT_SESSION_CREATED,
    build_payment_details,
)
from engines.payments.models import CLOSED_SESSION_STATUSES, PaymentEvent, WebhookResult
from integration.collaborators import (
    CheckoutSession,
    MemberDirectory,
    NotificationSender,
    PaymentGateway,
)

logger = logging.getLogger("practiceops.payments")


# ══════════════════════════════════════════════════════════════
# PAYMENT LINKS
# ══════════════════════════════════════════════════════════════

class PaymentLinkService:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        payment_gateway: PaymentGateway,
        audit_log: AuditLog,
        clock: Clock | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._payment_gateway = payment_gateway
        self._audit = audit_log
        self._clock = clock or get_default_clock()

    def create_session(self, ctx: TenantContext, invoice_id: uuid.UUID) -> CheckoutSession:
        with self._uow.atomic(ctx) as tx:
            invoice = load_or_raise(self._gateway, tx, Invoice, invoice_id)
            if invoice.status != InvoiceStatus.SENT:
                raise Conflict(
                    f"Payment links are only available for sent invoices; "
                    f"invoice {invoice.number} is {invoice.status}."
                )
            if invoice.payment_session_id is not None:
                self._payment_gateway.expire_session(ctx, invoice.payment_session_id)
                self._cancel_session(tx, invoice, invoice.payment_session_id)

            session = self._payment_gateway.create_session(
                ctx,
                invoice_id=invoice.id,
                amount=invoice.total,
                currency=invoice.currency,
                description=f"Invoice {invoice.number}",
            )
            invoice.payment_session_id = session.session_id
            self._gateway.save(tx, invoice)
            self._gateway.save(tx, PaymentEvent(
                id=uuid.uuid4(),
                invoice_id=invoice.id,
                provider_slug=self._payment_gateway.provider_slug,
                status=PaymentEventStatus.CREATED,
                amount=invoice.total,
                currency=invoice.currency,
                session_id=session.session_id,
                payment_destination=invoice.payment_destination,
                created_at=self._clock.now_utc(),
            ))
            self._audit.record(
                tx,
                action=PAYMENT_SESSION_CREATED,
                entity_type="Invoice",
                entity_id=invoice.id,
                details=build_payment_details(
                    invoice,
                    provider_slug=self._payment_gateway.provider_slug,
                    session_id=session.session_id,
                ),
            )
            return session

    def _cancel_session(self, tx: Transaction, invoice: Invoice, session_id: str) -> None:
        events = self._gateway.find(tx, PaymentEvent, invoice_id=invoice.id, session_id=session_id)
        if not _session_is_open(events):
            return
        opened = next(event for event in events if event.is_open_session)
        self._gateway.save(tx, PaymentEvent(
            id=uuid.uuid4(),
            invoice_id=invoice.id,
            provider_slug=opened.provider_slug,
            status=PaymentEventStatus.CANCELLED,
            amount=opened.amount,
            currency=opened.currency,
            session_id=opened.session_id,
            payment_destination=opened.payment_destination,
            created_at=self._clock.now_utc(),
        ))


# ══════════════════════════════════════════════════════════════
# RECONCILIATION
# ══════════════════════════════════════════════════════════════

def _session_is_open(events: Iterable[PaymentEvent]) -> bool:
    """True while no terminal event has closed the session."""
    events = list(events)
    if any(event.status in CLOSED_SESSION_STATUSES for event in events):
        return False
    return any(event.is_open_session for event in events)


@dataclass(frozen=True)
class ReconciliationOutcome:
    """What the engine did with one callback. Never surfaced upstream."""

    outcome: str
    invoice_id: Optional[uuid.UUID] = None
    payment_event_id: Optional[uuid.UUID] = None


class PaymentReconciliationEngine:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        audit_log: AuditLog,
        notifications: NotificationSender | None = None,
        members: MemberDirectory | None = None,
        clock: Clock | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._audit = audit_log
        self._notifications = notifications
        self._members = members
        self._clock = clock or get_default_clock()

    def reconcile(
        self,
        ctx: TenantContext,
        result: WebhookResult,
        provider_slug: str,
    ) -> ReconciliationOutcome:
        ctx = ctx.as_system()
        invoice_id = result.invoice_id()
        if invoice_id is None:
            logger.warning(
                f"Dropping {provider_slug} callback without a usable invoice id "
                f"(tenant: {ctx.tenant_schema})"
            )
            return ReconciliationOutcome(OUTCOME_DROPPED_UNKNOWN_INVOICE)

        with self._uow.atomic(ctx) as tx:
            invoice = self._gateway.get(tx, Invoice, invoice_id)
            if invoice is None:
                logger.warning(
                    f"Dropping {provider_slug} callback for unknown invoice {invoice_id} "
                    f"(tenant: {ctx.tenant_schema})"
                )
                return ReconciliationOutcome(OUTCOME_DROPPED_UNKNOWN_INVOICE, invoice_id)

            events = self._session_events(tx, invoice, result.session_id)
            if not events:
                logger.warning(
                    f"Dropping {provider_slug} callback for invoice {invoice_id}: "
                    f"no payment session matches '{result.session_id}' "
                    f"(tenant: {ctx.tenant_schema})"
                )
                return ReconciliationOutcome(OUTCOME_DROPPED_FORGED, invoice_id)

            if invoice.status == InvoiceStatus.PAID:
                if result.status == PaymentEventStatus.COMPLETED:
                    logger.info(
                        f"Duplicate COMPLETED callback for paid invoice {invoice.number}; ignoring"
                    )
                    return ReconciliationOutcome(OUTCOME_DUPLICATE, invoice_id)
                logger.info(
                    f"Ignoring {result.status} callback for paid invoice {invoice.number}"
                )
                return ReconciliationOutcome(OUTCOME_IGNORED, invoice_id)

            if not _session_is_open(events):
                logger.warning(
                    f"Dropping {provider_slug} callback for invoice {invoice_id}: "
                    f"payment session '{result.session_id}' is already closed "
                    f"(tenant: {ctx.tenant_schema})"
                )
                return ReconciliationOutcome(OUTCOME_DROPPED_FORGED, invoice_id)

            if result.status == PaymentEventStatus.COMPLETED:
                return self._handle_completed(tx, invoice, result, provider_slug)
            if result.status == PaymentEventStatus.FAILED:
                return self._handle_failed(tx, invoice, result, provider_slug)
            if result.status == PaymentEventStatus.EXPIRED:
                return self._handle_expired(tx, invoice, result, provider_slug)

            logger.warning(
                f"Ignoring {provider_slug} callback with unhandled status "
                f"'{result.status}' for invoice {invoice_id}"
            )
            return ReconciliationOutcome(OUTCOME_IGNORED, invoice_id)

    def _session_events(
        self, tx: Transaction, invoice: Invoice, session_id: Optional[str]
    ) -> List[PaymentEvent]:
        if not session_id:
            return []
        return self._gateway.find(tx, PaymentEvent, invoice_id=invoice.id, session_id=session_id)

    def _append_event(
        self,
        tx: Transaction,
        invoice: Invoice,
        status: str,
        result: WebhookResult,
        provider_slug: str,
    ) -> PaymentEvent:
        # Providers report no PENDING step: the open session stands for it.
        PAYMENT_EVENT_LIFECYCLE.require_transition(
            PaymentEventStatus.PENDING, status, action=f"record {status.lower()} payment"
        )
        event = PaymentEvent(
            id=uuid.uuid4(),
            invoice_id=invoice.id,
            provider_slug=provider_slug,
            status=status,
            amount=invoice.total,
            currency=invoice.currency,
            session_id=result.session_id,
            payment_reference=result.payment_reference,
            payment_destination=invoice.payment_destination,
            created_at=self._clock.now_utc(),
        )
        self._gateway.save(tx, event)
        return event

    def _handle_completed(
        self,
        tx: Transaction,
        invoice: Invoice,
        result: WebhookResult,
        provider_slug: str,
    ) -> ReconciliationOutcome:
        if invoice.status != InvoiceStatus.SENT:
            logger.warning(
                f"COMPLETED callback for invoice {invoice.number} in {invoice.status}; ignoring"
            )
            return ReconciliationOutcome(OUTCOME_IGNORED, invoice.id)

        invoice.mark_paid(result.payment_reference, self._clock.now_utc())
        self._gateway.save(tx, invoice)
        event = self._append_event(
            tx, invoice, PaymentEventStatus.COMPLETED, result, provider_slug
        )
        details = build_payment_details(
            invoice,
            provider_slug=provider_slug,
            session_id=result.session_id,
            payment_reference=result.payment_reference,
        )
        self._audit.record(
            tx, action=PAYMENT_COMPLETED, entity_type="Invoice",
            entity_id=invoice.id, details=details,
        )
        self._audit.record(
            tx, action=INVOICE_PAID, entity_type="Invoice",
            entity_id=invoice.id, details=build_invoice_details(invoice),
        )
        self._queue_notification(
            tx,
            recipients=[invoice.created_by] if invoice.created_by else [],
            notification_type=NOTIFY_PAYMENT_RECEIVED,
            title=f"Payment received for invoice {invoice.number}",
            body=f"{invoice.currency} {invoice.total} paid via {provider_slug}.",
            invoice_id=invoice.id,
        )
        logger.info(f"Invoice {invoice.number} paid via {provider_slug}")
        return ReconciliationOutcome(OUTCOME_APPLIED, invoice.id, event.id)

    def _handle_failed(
        self,
        tx: Transaction,
        invoice: Invoice,
        result: WebhookResult,
        provider_slug: str,
    ) -> ReconciliationOutcome:
        event = self._append_event(
            tx, invoice, PaymentEventStatus.FAILED, result, provider_slug
        )
        self._audit.record(
            tx,
            action=PAYMENT_FAILED,
            entity_type="Invoice",
            entity_id=invoice.id,
            details=build_payment_details(
                invoice, provider_slug=provider_slug, session_id=result.session_id
            ),
        )
        recipients: List[uuid.UUID] = []
        if self._members is not None:
            recipients = self._members.member_ids_with_roles(tx.tenant, (ROLE_OWNER, ROLE_ADMIN))
        self._queue_notification(
            tx,
            recipients=recipients,
            notification_type=NOTIFY_PAYMENT_FAILED,
            title=f"Payment failed for invoice {invoice.number}",
            body=f"A {provider_slug} payment attempt for invoice {invoice.number} failed.",
            invoice_id=invoice.id,
        )
        return ReconciliationOutcome(OUTCOME_RECORDED_FAILURE, invoice.id, event.id)

    def _handle_expired(
        self,
        tx: Transaction,
        invoice: Invoice,
        result: WebhookResult,
        provider_slug: str,
    ) -> ReconciliationOutcome:
        event = self._append_event(
            tx, invoice, PaymentEventStatus.EXPIRED, result, provider_slug
        )
        self._audit.record(
            tx,
            action=PAYMENT_EXPIRED,
            entity_type="Invoice",
            entity_id=invoice.id,
            details=build_payment_details(
                invoice, provider_slug=provider_slug, session_id=result.session_id
            ),
        )
        self._queue_notification(
            tx,
            recipients=[invoice.created_by] if invoice.created_by else [],
            notification_type=NOTIFY_PAYMENT_LINK_EXPIRED,
            title=f"Payment link expired for invoice {invoice.number}",
            body="The checkout session expired before payment. A new link can be generated.",
            invoice_id=invoice.id,
        )
        return ReconciliationOutcome(OUTCOME_RECORDED_EXPIRY, invoice.id, event.id)

    def _queue_notification(
        self,
        tx: Transaction,
        *,
        recipients: Iterable[uuid.UUID],
        notification_type: str,
        title: str,
        body: str,
        invoice_id: uuid.UUID,
    ) -> None:
        recipients = list(recipients)
        if self._notifications is None or not recipients:
            return
        sender = self._notifications

        def _notify(ctx: TenantContext) -> None:
            for recipient_id in recipients:
                sender.send(
                    ctx,
                    recipient_id=recipient_id,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    entity_type="Invoice",
                    entity_id=invoice_id,
                )

        tx.on_commit(_notify, name=NOTIFY_PAYMENT_MEMBERS)
