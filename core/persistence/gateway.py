"""
PracticeOps Persistence — Tenant-Scoped Gateway
=================================================
Load/save by id, scoped to the tenant of the active Transaction.

Doctrine:
- Every call takes the Transaction; the tenant comes from it.
  There is no way to read or write another tenant's rows.
- Loaded entities are detached copies. Mutations become visible
  only through save().
- Writes are staged on the Transaction and published on commit.
  A rollback discards them, so other transactions never see them.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

from core.errors import NotFound
from core.transactions.unit_of_work import Transaction

logger = logging.getLogger("practiceops.persistence")

T = TypeVar("T")


# ══════════════════════════════════════════════════════════════
# GATEWAY PROTOCOL
# ══════════════════════════════════════════════════════════════

class PersistenceGateway(Protocol):
    def get(self, tx: Transaction, entity_type: Type[T], entity_id: uuid.UUID) -> Optional[T]:
        ...  # pragma: no cover

    def save(self, tx: Transaction, entity: T) -> T:
        ...  # pragma: no cover

    def delete(self, tx: Transaction, entity: Any) -> None:
        ...  # pragma: no cover

    def find(self, tx: Transaction, entity_type: Type[T], **criteria: Any) -> List[T]:
        ...  # pragma: no cover

    def exists(self, tx: Transaction, entity_type: Type[T], **criteria: Any) -> bool:
        ...  # pragma: no cover


def load_or_raise(
    gateway: PersistenceGateway,
    tx: Transaction,
    entity_type: Type[T],
    entity_id: uuid.UUID,
) -> T:
    """Load an entity or raise NotFound."""
    entity = gateway.get(tx, entity_type, entity_id)
    if entity is None:
        raise NotFound(entity_type.__name__, entity_id)
    return entity


# ══════════════════════════════════════════════════════════════
# IN-MEMORY GATEWAY
# ══════════════════════════════════════════════════════════════

_MISSING = object()
_DELETED = object()


class InMemoryPersistenceGateway:
    """
    Thread-safe in-memory store. Used in tests and bootstrap.

    Rows are keyed by (tenant_schema, entity type name) then by id.
    Entities must expose an `id` attribute.

    Writes are staged per Transaction and published to the shared
    tables on commit. A transaction reads its own staged writes;
    other transactions see only committed rows. Concurrent commits
    to the same row are last-writer-wins.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[tuple[str, str], Dict[uuid.UUID, Any]] = {}
        self._staged: Dict[uuid.UUID, Dict[tuple[str, uuid.UUID], Any]] = {}

    def _table(self, tenant_schema: str, type_name: str) -> Dict[uuid.UUID, Any]:
        return self._tables.setdefault((tenant_schema, type_name), {})

    def _stage(self, tx: Transaction, type_name: str, entity_id: uuid.UUID, row: Any) -> None:
        with self._lock:
            staged = self._staged.get(tx.transaction_id)
            if staged is None:
                staged = self._staged[tx.transaction_id] = {}
                tx.record_commit_step(lambda: self._publish(tx))
                tx.record_undo(lambda: self._discard(tx))
            staged[(type_name, entity_id)] = row

    def _publish(self, tx: Transaction) -> None:
        schema = tx.tenant.tenant_schema
        with self._lock:
            staged = self._staged.pop(tx.transaction_id, {})
            for (type_name, entity_id), row in staged.items():
                table = self._table(schema, type_name)
                if row is _DELETED:
                    table.pop(entity_id, None)
                else:
                    table[entity_id] = row
        logger.debug(f"Published {len(staged)} row(s) for transaction {tx.transaction_id}")

    def _discard(self, tx: Transaction) -> None:
        with self._lock:
            self._staged.pop(tx.transaction_id, None)

    def _rows(self, tx: Transaction, type_name: str) -> Dict[uuid.UUID, Any]:
        """Committed rows overlaid with tx's own staged writes. Caller holds the lock."""
        rows = dict(self._table(tx.tenant.tenant_schema, type_name))
        for (staged_type, entity_id), row in self._staged.get(tx.transaction_id, {}).items():
            if staged_type != type_name:
                continue
            if row is _DELETED:
                rows.pop(entity_id, None)
            else:
                rows[entity_id] = row
        return rows

    def get(self, tx: Transaction, entity_type: Type[T], entity_id: uuid.UUID) -> Optional[T]:
        type_name = entity_type.__name__
        with self._lock:
            row = self._staged.get(tx.transaction_id, {}).get((type_name, entity_id), _MISSING)
            if row is _MISSING:
                row = self._table(tx.tenant.tenant_schema, type_name).get(entity_id)
            if row is None or row is _DELETED:
                return None
            return copy.deepcopy(row)

    def save(self, tx: Transaction, entity: T) -> T:
        entity_id = getattr(entity, "id", None)
        if not isinstance(entity_id, uuid.UUID):
            raise ValueError(f"{type(entity).__name__}.id must be UUID.")
        self._stage(tx, type(entity).__name__, entity_id, copy.deepcopy(entity))
        return entity

    def delete(self, tx: Transaction, entity: Any) -> None:
        self._stage(tx, type(entity).__name__, entity.id, _DELETED)

    def find(self, tx: Transaction, entity_type: Type[T], **criteria: Any) -> List[T]:
        with self._lock:
            rows = list(self._rows(tx, entity_type.__name__).values())
            return [
                copy.deepcopy(row) for row in rows
                if all(getattr(row, k, _MISSING) == v for k, v in criteria.items())
            ]

    def exists(self, tx: Transaction, entity_type: Type[T], **criteria: Any) -> bool:
        with self._lock:
            rows = self._rows(tx, entity_type.__name__).values()
            return any(
                all(getattr(row, k, _MISSING) == v for k, v in criteria.items())
                for row in rows
            )

    def count(self, tenant_schema: str, entity_type: Type[Any]) -> int:
        """Committed row count for a tenant (test helper)."""
        with self._lock:
            return len(self._table(tenant_schema, entity_type.__name__))
