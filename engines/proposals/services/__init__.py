"""
PracticeOps Proposals — Proposal Service
==========================================
Draft authoring, milestone and team replacement, sending and
declining. Acceptance lives in ProposalAcceptanceOrchestrator;
the expiry sweep in ProposalExpiryProcessor.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from core.audit.log import AuditLog
from core.config.settings import WorkflowSettings
from core.context.tenant_context import TenantContext
from core.errors import InvalidState, Mismatch, NotFound
from core.lifecycle.definitions import PROPOSAL_LIFECYCLE, ProposalStatus
from core.persistence.gateway import PersistenceGateway, load_or_raise
from core.policy.rejection import RejectionReason
from core.sequences.allocator import SequenceAllocator
from core.sequences.policy import KIND_PROPOSAL
from core.time.clock import Clock, get_default_clock
from core.transactions.unit_of_work import Transaction, UnitOfWork
from engines.proposals.events import (
    NOTIFY_PROPOSAL_DECLINED,
    PROPOSAL_CREATED,
    PROPOSAL_DECLINED,
    PROPOSAL_MILESTONES_REPLACED,
    PROPOSAL_SENT,
    PROPOSAL_TEAM_REPLACED,
    PROPOSAL_UPDATED,
    build_declined_notification,
    build_proposal_details,
)
from engines.proposals.models import (
    FeeModel,
    Proposal,
    ProposalMilestone,
    ProposalTeamMember,
)
from engines.proposals.policies import (
    fee_configuration_must_be_valid_policy,
    milestone_entries_must_be_valid_policy,
    milestone_percentages_must_sum_to_hundred_policy,
    milestones_require_fixed_fee_policy,
    proposal_content_must_be_present_policy,
    team_members_must_be_unique_policy,
)
from engines.proposals.services.acceptance import (
    OrchestrationResult,
    ProposalAcceptanceOrchestrator,
)
from engines.proposals.services.expiry import ProposalExpiryProcessor
from engines.proposals.services.side_effects import ProposalSideEffects
from integration.collaborators import CustomerDirectory

logger = logging.getLogger("practiceops.proposals")


@dataclass(frozen=True)
class MilestoneInput:
    description: str
    percentage: Decimal
    relative_due_days: int = 0


@dataclass(frozen=True)
class TeamMemberInput:
    member_id: uuid.UUID
    role: Optional[str] = None


def _raise_invalid(action: str, proposal_status: str, rejection: RejectionReason | None) -> None:
    if rejection is not None:
        raise InvalidState(action, proposal_status, rejection.message)


class ProposalService:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        allocator: SequenceAllocator,
        audit_log: AuditLog,
        customers: CustomerDirectory,
        side_effects: ProposalSideEffects | None = None,
        clock: Clock | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._allocator = allocator
        self._audit = audit_log
        self._customers = customers
        self._side_effects = side_effects or ProposalSideEffects()
        self._clock = clock or get_default_clock()
        self._settings = settings or WorkflowSettings()

    # ── Queries ───────────────────────────────────────────────

    def get(self, ctx: TenantContext, proposal_id: uuid.UUID) -> Proposal:
        with self._uow.atomic(ctx) as tx:
            return load_or_raise(self._gateway, tx, Proposal, proposal_id)

    def milestones_of(self, ctx: TenantContext, proposal_id: uuid.UUID) -> List[ProposalMilestone]:
        with self._uow.atomic(ctx) as tx:
            return self._milestones(tx, proposal_id)

    def team_of(self, ctx: TenantContext, proposal_id: uuid.UUID) -> List[ProposalTeamMember]:
        with self._uow.atomic(ctx) as tx:
            return self._team(tx, proposal_id)

    def _milestones(self, tx: Transaction, proposal_id: uuid.UUID) -> List[ProposalMilestone]:
        rows = self._gateway.find(tx, ProposalMilestone, proposal_id=proposal_id)
        return sorted(rows, key=lambda m: m.sort_order)

    def _team(self, tx: Transaction, proposal_id: uuid.UUID) -> List[ProposalTeamMember]:
        rows = self._gateway.find(tx, ProposalTeamMember, proposal_id=proposal_id)
        return sorted(rows, key=lambda m: m.sort_order)

    def _audit_proposal(self, tx: Transaction, action: str, proposal: Proposal, **extra) -> None:
        self._audit.record(
            tx,
            action=action,
            entity_type="Proposal",
            entity_id=proposal.id,
            details=build_proposal_details(proposal, **extra),
        )

    # ── Authoring ─────────────────────────────────────────────

    def create(
        self,
        ctx: TenantContext,
        *,
        title: str,
        customer_id: uuid.UUID,
        fee_model: str,
        fixed_fee_amount: Optional[Decimal] = None,
        fixed_fee_currency: Optional[str] = None,
        hourly_rate_note: Optional[str] = None,
        retainer_amount: Optional[Decimal] = None,
        retainer_currency: Optional[str] = None,
        retainer_hours_included: Optional[Decimal] = None,
        content: Optional[Dict[str, Any]] = None,
        project_template_id: Optional[uuid.UUID] = None,
        expires_at: Optional[datetime] = None,
    ) -> Proposal:
        with self._uow.atomic(ctx) as tx:
            if self._customers.get_customer(tx, customer_id) is None:
                raise NotFound("Customer", customer_id)
            _raise_invalid("create proposal", "NEW", fee_configuration_must_be_valid_policy(
                fee_model,
                fixed_fee_amount=fixed_fee_amount,
                retainer_amount=retainer_amount,
            ))

            currency = self._settings.default_currency
            proposal = Proposal(
                id=uuid.uuid4(),
                number=self._allocator.allocate(tx, KIND_PROPOSAL),
                title=title,
                customer_id=customer_id,
                fee_model=fee_model,
                fixed_fee_amount=fixed_fee_amount,
                fixed_fee_currency=fixed_fee_currency or currency,
                hourly_rate_note=hourly_rate_note,
                retainer_amount=retainer_amount,
                retainer_currency=retainer_currency or currency,
                retainer_hours_included=retainer_hours_included,
                content=dict(content or {}),
                project_template_id=project_template_id,
                expires_at=expires_at,
                created_by=ctx.actor_id,
                created_at=self._clock.now_utc(),
            )
            self._gateway.save(tx, proposal)
            self._audit_proposal(tx, PROPOSAL_CREATED, proposal)
            logger.info(f"Proposal {proposal.number} created (tenant: {ctx.tenant_schema})")
            return proposal

    def update(self, ctx: TenantContext, proposal_id: uuid.UUID, **changes: Any) -> Proposal:
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            proposal.apply_changes(changes)
            _raise_invalid("edit proposal", proposal.status, fee_configuration_must_be_valid_policy(
                proposal.fee_model,
                fixed_fee_amount=proposal.fixed_fee_amount,
                retainer_amount=proposal.retainer_amount,
            ))
            self._gateway.save(tx, proposal)
            self._audit_proposal(tx, PROPOSAL_UPDATED, proposal, fields=sorted(changes))
            return proposal

    def replace_milestones(
        self,
        ctx: TenantContext,
        proposal_id: uuid.UUID,
        milestones: Iterable[MilestoneInput],
    ) -> List[ProposalMilestone]:
        entries = list(milestones)
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            proposal.require_editable("replace milestones")
            _raise_invalid("replace milestones", proposal.status,
                           milestones_require_fixed_fee_policy(proposal.fee_model))
            _raise_invalid("replace milestones", proposal.status,
                           milestone_entries_must_be_valid_policy(
                               (m.description, m.percentage) for m in entries))
            _raise_invalid("replace milestones", proposal.status,
                           milestone_percentages_must_sum_to_hundred_policy(
                               m.percentage for m in entries))

            for existing in self._milestones(tx, proposal_id):
                self._gateway.delete(tx, existing)
            created = []
            for index, entry in enumerate(entries):
                milestone = ProposalMilestone(
                    id=uuid.uuid4(),
                    proposal_id=proposal_id,
                    description=entry.description.strip(),
                    percentage=Decimal(entry.percentage),
                    relative_due_days=entry.relative_due_days,
                    sort_order=index,
                )
                self._gateway.save(tx, milestone)
                created.append(milestone)
            self._audit_proposal(tx, PROPOSAL_MILESTONES_REPLACED, proposal, milestone_count=len(created))
            return created

    def replace_team(
        self,
        ctx: TenantContext,
        proposal_id: uuid.UUID,
        members: Iterable[TeamMemberInput],
    ) -> List[ProposalTeamMember]:
        entries = list(members)
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            proposal.require_editable("replace team")
            rejection = team_members_must_be_unique_policy([m.member_id for m in entries])
            if rejection is not None:
                raise ValueError(rejection.message)

            for existing in self._team(tx, proposal_id):
                self._gateway.delete(tx, existing)
            created = []
            for index, entry in enumerate(entries):
                member = ProposalTeamMember(
                    id=uuid.uuid4(),
                    proposal_id=proposal_id,
                    member_id=entry.member_id,
                    role=entry.role,
                    sort_order=index,
                )
                self._gateway.save(tx, member)
                created.append(member)
            self._audit_proposal(tx, PROPOSAL_TEAM_REPLACED, proposal, member_count=len(created))
            return created

    # ── Lifecycle ─────────────────────────────────────────────

    def send(
        self,
        ctx: TenantContext,
        proposal_id: uuid.UUID,
        *,
        portal_contact_id: uuid.UUID,
        expires_at: Optional[datetime] = None,
    ) -> Proposal:
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            PROPOSAL_LIFECYCLE.require_transition(
                proposal.status, ProposalStatus.SENT, action="send"
            )
            _raise_invalid("send", proposal.status,
                           proposal_content_must_be_present_policy(proposal.content))
            _raise_invalid("send", proposal.status, fee_configuration_must_be_valid_policy(
                proposal.fee_model,
                fixed_fee_amount=proposal.fixed_fee_amount,
                retainer_amount=proposal.retainer_amount,
            ))
            if proposal.fee_model == FeeModel.FIXED:
                _raise_invalid("send", proposal.status,
                               milestone_percentages_must_sum_to_hundred_policy(
                                   m.percentage for m in self._milestones(tx, proposal_id)))
            if not self._customers.contact_belongs_to(tx, portal_contact_id, proposal.customer_id):
                raise Mismatch(
                    f"Portal contact {portal_contact_id} does not belong to "
                    f"customer {proposal.customer_id}."
                )

            proposal.mark_sent(portal_contact_id, self._clock.now_utc(), expires_at)
            self._gateway.save(tx, proposal)
            self._audit_proposal(tx, PROPOSAL_SENT, proposal,
                                 portal_contact_id=str(portal_contact_id))
            self._side_effects.queue_sync(tx, proposal)
            logger.info(f"Proposal {proposal.number} sent (tenant: {ctx.tenant_schema})")
            return proposal

    def decline(
        self,
        ctx: TenantContext,
        proposal_id: uuid.UUID,
        *,
        portal_contact_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Proposal:
        with self._uow.atomic(ctx) as tx:
            proposal = load_or_raise(self._gateway, tx, Proposal, proposal_id)
            if proposal.portal_contact_id != portal_contact_id:
                raise Mismatch(
                    f"Portal contact {portal_contact_id} is not the recipient of "
                    f"proposal {proposal.number}."
                )
            proposal.mark_declined(self._clock.now_utc(), reason.strip() if reason else None)
            self._gateway.save(tx, proposal)
            self._audit_proposal(tx, PROPOSAL_DECLINED, proposal, reason=proposal.decline_reason)
            self._side_effects.queue_sync(tx, proposal)
            title, body = build_declined_notification(proposal)
            self._side_effects.queue_creator_notification(
                tx, proposal,
                notification_type=NOTIFY_PROPOSAL_DECLINED,
                title=title,
                body=body,
            )
            logger.info(f"Proposal {proposal.number} declined (tenant: {ctx.tenant_schema})")
            return proposal


__all__ = [
    "MilestoneInput",
    "TeamMemberInput",
    "ProposalService",
    "ProposalSideEffects",
    "ProposalAcceptanceOrchestrator",
    "OrchestrationResult",
    "ProposalExpiryProcessor",
]
