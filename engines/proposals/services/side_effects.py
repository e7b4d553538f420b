"""
PracticeOps Proposals — Deferred Side-Effects
===============================================
Queues read-model syncs and creator notifications on the active
transaction. Snapshots are taken at queue time; the dispatcher runs
them once the transaction outcome is known.
"""

from __future__ import annotations

from typing import Optional

from core.transactions.deferred import ON_COMMIT, ON_ROLLBACK, DeferredAction
from core.transactions.unit_of_work import Transaction
from engines.proposals.events import (
    NOTIFY_PROPOSAL_CREATOR,
    SYNC_PROPOSAL_READ_MODEL,
    build_proposal_snapshot,
)
from engines.proposals.models import Proposal
from integration.collaborators import NotificationSender, ReadModelSync


class ProposalSideEffects:
    def __init__(
        self,
        *,
        read_model_sync: ReadModelSync | None = None,
        notifications: NotificationSender | None = None,
    ):
        self._sync = read_model_sync
        self._notifications = notifications

    def queue_sync(self, tx: Transaction, proposal: Proposal) -> Optional[DeferredAction]:
        if self._sync is None:
            return None
        sync = self._sync
        snapshot = build_proposal_snapshot(proposal)
        return tx.on_commit(
            lambda ctx: sync.push_proposal(ctx, snapshot),
            name=SYNC_PROPOSAL_READ_MODEL,
        )

    def queue_creator_notification(
        self,
        tx: Transaction,
        proposal: Proposal,
        *,
        notification_type: str,
        title: str,
        body: str,
        outcome: str = ON_COMMIT,
    ) -> Optional[DeferredAction]:
        if self._notifications is None or proposal.created_by is None:
            return None
        sender = self._notifications
        recipient_id = proposal.created_by
        proposal_id = proposal.id

        def _notify(ctx) -> None:
            sender.send(
                ctx,
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                body=body,
                entity_type="Proposal",
                entity_id=proposal_id,
            )

        if outcome == ON_ROLLBACK:
            return tx.on_rollback(_notify, name=NOTIFY_PROPOSAL_CREATOR)
        return tx.on_commit(_notify, name=NOTIFY_PROPOSAL_CREATOR)
