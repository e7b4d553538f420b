"""
PracticeOps Proposals — Acceptance Orchestrator
=================================================
Turns an accepted proposal into a running engagement in ONE unit
of work:

1. Proposal SENT → ACCEPTED, audited
2. Customer PROSPECT → ONBOARDING (no-op otherwise). Must precede
   step 3: projects cannot be created for PROSPECT customers.
3. Project created (from template when referenced), title copied
4. Proposal team transferred onto the project in sort order; a
   member already present counts as assigned
5. FIXED fee only: one invoice for the full fee, or one per
   milestone with the milestone back-linked to its invoice

Any failure rolls every step back and queues an orchestration-failed
notification to the proposal's creator. Accepting an already
ACCEPTED proposal returns the prior outcome unchanged.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple

from core.audit.log import AuditLog
from core.context.tenant_context import TenantContext
from core.errors import Mismatch, NotFound
from core.lifecycle.definitions import PROPOSAL_LIFECYCLE, ProposalStatus
from core.persistence.gateway import PersistenceGateway, load_or_raise
from core.time.clock import Clock, get_default_clock
from core.transactions.deferred import ON_COMMIT, ON_ROLLBACK, DeferredAction
from core.transactions.unit_of_work import Transaction, UnitOfWork
from engines.invoicing.events import INVOICE_CREATED, build_invoice_details
from engines.invoicing.factory import BillingEntityFactory
from engines.invoicing.models import Invoice, InvoiceLine
from engines.proposals.events import (
    NOTIFY_ORCHESTRATION_FAILED,
    NOTIFY_PROPOSAL_ACCEPTED,
    PROPOSAL_ACCEPTED,
    build_accepted_notification,
    build_orchestration_failed_notification,
    build_proposal_details,
)
from engines.proposals.models import (
    FeeModel,
    Proposal,
    ProposalMilestone,
    ProposalTeamMember,
)
from engines.proposals.services.side_effects import ProposalSideEffects
from integration.collaborators import (
    CustomerDirectory,
    CustomerLifecycle,
    MemberAlreadyAssigned,
    ProjectService,
)

logger = logging.getLogger("practiceops.proposals")

ALREADY_ACCEPTED_MESSAGE = "This proposal has already been accepted."


@dataclass(frozen=True)
class OrchestrationResult:
    """Outcome of one accept call. Not persisted."""

    proposal_id: uuid.UUID
    project_id: Optional[uuid.UUID]
    assigned_member_ids: Tuple[uuid.UUID, ...]
    created_invoice_ids: Tuple[uuid.UUID, ...]
    accepted_at: datetime
    already_accepted: bool = False
    pending_side_effects: Tuple[DeferredAction, ...] = ()

    @property
    def message(self) -> Optional[str]:
        return ALREADY_ACCEPTED_MESSAGE if self.already_accepted else None


class ProposalAcceptanceOrchestrator:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        audit_log: AuditLog,
        customers: CustomerDirectory,
        projects: ProjectService,
        side_effects: ProposalSideEffects | None = None,
        factory: BillingEntityFactory | None = None,
        clock: Clock | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._audit = audit_log
        self._customers = customers
        self._projects = projects
        self._side_effects = side_effects or ProposalSideEffects()
        self._factory = factory or BillingEntityFactory()
        self._clock = clock or get_default_clock()

    def accept(
        self,
        ctx: TenantContext,
        proposal_id: uuid.UUID,
        portal_contact_id: uuid.UUID,
    ) -> OrchestrationResult:
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            if proposal.portal_contact_id is None or proposal.portal_contact_id != portal_contact_id:
                raise Mismatch(
                    f"Portal contact {portal_contact_id} is not the recipient of "
                    f"proposal {proposal.number}."
                )
            if proposal.status == ProposalStatus.ACCEPTED:
                logger.info(
                    f"Proposal {proposal.number} already accepted; "
                    f"returning prior outcome (tenant: {ctx.tenant_schema})"
                )
                return self._prior_outcome(tx, proposal)

            PROPOSAL_LIFECYCLE.require_transition(
                proposal.status, ProposalStatus.ACCEPTED, action="accept"
            )
            try:
                result = self._orchestrate(tx, proposal)
            except Exception as exc:
                logger.error(
                    f"Acceptance of proposal {proposal.number} failed and will roll back "
                    f"(tenant: {ctx.tenant_schema}): {exc}",
                    exc_info=True,
                )
                title, body = build_orchestration_failed_notification(proposal, str(exc))
                self._side_effects.queue_creator_notification(
                    tx, proposal,
                    notification_type=NOTIFY_ORCHESTRATION_FAILED,
                    title=title,
                    body=body,
                    outcome=ON_ROLLBACK,
                )
                raise
        return result

    # ── Steps ─────────────────────────────────────────────────

    def _orchestrate(self, tx: Transaction, proposal: Proposal) -> OrchestrationResult:
        now = self._clock.now_utc()
        today = now.date()

        # 1. proposal
        proposal.mark_accepted(now)
        self._gateway.save(tx, proposal)
        self._audit.record(
            tx,
            action=PROPOSAL_ACCEPTED,
            entity_type="Proposal",
            entity_id=proposal.id,
            details=build_proposal_details(proposal),
        )
        logger.info(f"Proposal {proposal.number} accepted (tenant: {tx.tenant.tenant_schema})")

        # 2. customer lifecycle
        customer = self._customers.get_customer(tx, proposal.customer_id)
        if customer is None:
            raise NotFound("Customer", proposal.customer_id)
        if customer.lifecycle_status == CustomerLifecycle.PROSPECT:
            self._customers.transition_lifecycle(
                tx, proposal.customer_id, CustomerLifecycle.ONBOARDING
            )

        # 3. project
        project_id = self._projects.create_project(
            tx,
            name=proposal.title,
            customer_id=proposal.customer_id,
            template_id=proposal.project_template_id,
            created_by=proposal.created_by,
        )
        proposal.created_project_id = project_id
        self._gateway.save(tx, proposal)

        # 4. team
        assigned = self._transfer_team(tx, proposal, project_id)

        # 5. billing
        invoice_ids = self._create_billing(tx, proposal, today)

        self._side_effects.queue_sync(tx, proposal)
        title, body = build_accepted_notification(proposal)
        self._side_effects.queue_creator_notification(
            tx, proposal,
            notification_type=NOTIFY_PROPOSAL_ACCEPTED,
            title=title,
            body=body,
        )

        return OrchestrationResult(
            proposal_id=proposal.id,
            project_id=project_id,
            assigned_member_ids=tuple(assigned),
            created_invoice_ids=tuple(invoice_ids),
            accepted_at=now,
            pending_side_effects=tx.pending_actions(ON_COMMIT),
        )

    def _team(self, tx: Transaction, proposal_id: uuid.UUID) -> List[ProposalTeamMember]:
        rows = self._gateway.find(tx, ProposalTeamMember, proposal_id=proposal_id)
        return sorted(rows, key=lambda m: m.sort_order)

    def _milestones(self, tx: Transaction, proposal_id: uuid.UUID) -> List[ProposalMilestone]:
        rows = self._gateway.find(tx, ProposalMilestone, proposal_id=proposal_id)
        return sorted(rows, key=lambda m: m.sort_order)

    def _transfer_team(
        self, tx: Transaction, proposal: Proposal, project_id: uuid.UUID
    ) -> List[uuid.UUID]:
        assigned = []
        for member in self._team(tx, proposal.id):
            try:
                self._projects.add_member(tx, project_id, member.member_id)
            except MemberAlreadyAssigned:
                logger.debug(
                    f"Member {member.member_id} already on project {project_id}; keeping"
                )
            assigned.append(member.member_id)
        return assigned

    def _create_billing(self, tx: Transaction, proposal: Proposal, today: date) -> List[uuid.UUID]:
        if proposal.fee_model != FeeModel.FIXED:
            return []

        milestones = self._milestones(tx, proposal.id)
        created = []
        if not milestones:
            invoice, line = self._factory.build_fixed_fee_invoice(
                proposal, today=today, created_by=proposal.created_by
            )
            self._save_invoice(tx, invoice, line)
            created.append(invoice.id)
            return created

        for milestone in milestones:
            invoice, line = self._factory.build_milestone_invoice(
                proposal, milestone, today=today, created_by=proposal.created_by
            )
            self._save_invoice(tx, invoice, line)
            milestone.invoice_id = invoice.id
            self._gateway.save(tx, milestone)
            created.append(invoice.id)
        return created

    def _save_invoice(self, tx: Transaction, invoice: Invoice, line: InvoiceLine) -> None:
        self._gateway.save(tx, line)
        self._gateway.save(tx, invoice)
        self._audit.record(
            tx,
            action=INVOICE_CREATED,
            entity_type="Invoice",
            entity_id=invoice.id,
            details=build_invoice_details(invoice),
        )

    # ── Idempotent re-accept ──────────────────────────────────

    def _prior_outcome(self, tx: Transaction, proposal: Proposal) -> OrchestrationResult:
        milestones = self._milestones(tx, proposal.id)
        if milestones:
            invoice_ids = [m.invoice_id for m in milestones if m.invoice_id is not None]
        else:
            invoice_ids = [
                inv.id for inv in self._gateway.find(tx, Invoice, proposal_id=proposal.id)
            ]
        return OrchestrationResult(
            proposal_id=proposal.id,
            project_id=proposal.created_project_id,
            assigned_member_ids=tuple(m.member_id for m in self._team(tx, proposal.id)),
            created_invoice_ids=tuple(invoice_ids),
            accepted_at=proposal.accepted_at,
            already_accepted=True,
        )
