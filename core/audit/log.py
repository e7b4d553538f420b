"""
PracticeOps Core Audit — Audit Trail
======================================
Append-only record of workflow actions (proposal.accepted,
invoice.approved, payment.completed, ...).

Audit entries are written inside the acting transaction: a rolled
back operation leaves no audit entry behind. Once committed, an
entry is never updated or deleted.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.time.clock import Clock, get_default_clock
from core.transactions.unit_of_work import Transaction


# ══════════════════════════════════════════════════════════════
# AUDIT ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of one action against one entity."""

    entry_id: uuid.UUID
    tenant_schema: str
    action: str
    entity_type: str
    entity_id: uuid.UUID
    actor_id: Optional[uuid.UUID]
    actor_role: str
    occurred_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.action or "." not in self.action:
            raise ValueError(
                f"AuditEntry action must look like 'entity.verb', got '{self.action}'."
            )

    def to_dict(self) -> dict:
        return {
            "entry_id": str(self.entry_id),
            "tenant_schema": self.tenant_schema,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id),
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "actor_role": self.actor_role,
            "occurred_at": self.occurred_at.isoformat(),
            "details": dict(self.details),
        }


# ══════════════════════════════════════════════════════════════
# AUDIT LOG
# ══════════════════════════════════════════════════════════════

class AuditLog:
    """
    In-memory audit log. Production may persist to the tenant schema.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: List[AuditEntry] = []
        self._clock = clock or get_default_clock()

    def record(
        self,
        tx: Transaction,
        *,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            entry_id=uuid.uuid4(),
            tenant_schema=tx.tenant.tenant_schema,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=tx.tenant.actor_id,
            actor_role=tx.tenant.actor_role,
            occurred_at=self._clock.now_utc(),
            details=dict(details or {}),
        )
        with self._lock:
            self._entries.append(entry)

        def _discard() -> None:
            with self._lock:
                self._entries.remove(entry)

        tx.record_undo(_discard)
        return entry

    def query_by_tenant(self, tenant_schema: str) -> List[AuditEntry]:
        with self._lock:
            return [e for e in self._entries if e.tenant_schema == tenant_schema]

    def actions_for(self, tenant_schema: str, entity_id: uuid.UUID) -> List[str]:
        with self._lock:
            return [
                e.action for e in self._entries
                if e.tenant_schema == tenant_schema and e.entity_id == entity_id
            ]
