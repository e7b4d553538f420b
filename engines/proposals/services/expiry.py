"""
PracticeOps Proposals — Expiry Processor
==========================================
Scheduled sweep: SENT proposals whose expires_at has passed become
EXPIRED.

- One tenant at a time, each in its own unit of work.
- A failing tenant is logged and skipped. Other tenants still run.
- Read-model sync and creator notification happen after commit.
"""

from __future__ import annotations

import logging
from typing import Dict

from core.audit.log import AuditLog
from core.lifecycle.definitions import ProposalStatus
from core.persistence.gateway import PersistenceGateway
from core.time.clock import Clock, get_default_clock
from core.transactions.unit_of_work import UnitOfWork
from engines.proposals.events import (
    NOTIFY_PROPOSAL_EXPIRED,
    PROPOSAL_EXPIRED,
    build_expired_notification,
    build_proposal_details,
)
from engines.proposals.models import Proposal
from engines.proposals.services.side_effects import ProposalSideEffects
from integration.collaborators import TenantDirectory

logger = logging.getLogger("practiceops.proposals")


class ProposalExpiryProcessor:
    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        unit_of_work: UnitOfWork,
        tenants: TenantDirectory,
        audit_log: AuditLog,
        side_effects: ProposalSideEffects | None = None,
        clock: Clock | None = None,
    ):
        self._gateway = gateway
        self._uow = unit_of_work
        self._tenants = tenants
        self._audit = audit_log
        self._side_effects = side_effects or ProposalSideEffects()
        self._clock = clock or get_default_clock()

    def process_expired(self) -> dict:
        """
        Returns:
            {
                'expired': {tenant_schema: int},
                'failed': {tenant_schema: str}
            }
        """
        report: Dict[str, dict] = {"expired": {}, "failed": {}}
        now = self._clock.now_utc()

        for ctx in self._tenants.active_tenants():
            try:
                with self._uow.atomic(ctx) as tx:
                    due = [
                        p for p in self._gateway.find(tx, Proposal, status=ProposalStatus.SENT)
                        if p.is_past_expiry(now)
                    ]
                    for proposal in due:
                        proposal.mark_expired(now)
                        self._gateway.save(tx, proposal)
                        self._audit.record(
                            tx,
                            action=PROPOSAL_EXPIRED,
                            entity_type="Proposal",
                            entity_id=proposal.id,
                            details=build_proposal_details(proposal),
                        )
                        self._side_effects.queue_sync(tx, proposal)
                        title, body = build_expired_notification(proposal)
                        self._side_effects.queue_creator_notification(
                            tx, proposal,
                            notification_type=NOTIFY_PROPOSAL_EXPIRED,
                            title=title,
                            body=body,
                        )
                report["expired"][ctx.tenant_schema] = len(due)
                if due:
                    logger.info(
                        f"Expired {len(due)} proposal(s) (tenant: {ctx.tenant_schema})"
                    )
            except Exception as exc:
                report["failed"][ctx.tenant_schema] = str(exc)
                logger.error(
                    f"Proposal expiry failed for tenant {ctx.tenant_schema}: {exc}",
                    exc_info=True,
                )
        return report
