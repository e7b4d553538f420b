"""
PracticeOps Sequences — Allocators
====================================
Gap-free, per-tenant document number allocation.

Contract: allocate(tx, kind) → formatted number.
- Strictly increasing per (tenant, kind).
- No two concurrent callers ever receive the same number.
- The counter advance belongs to the caller's transaction: a
  rollback returns the number to the pool.

Both implementations serialise on the single counter row for
(tenant, kind). A second allocator in the same tenant blocks until
the first transaction finishes; other tenants are unaffected.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Protocol

from django.db import transaction
from django.db.models import F

from core.sequences.policy import SequencePolicy, default_policies
from core.transactions.unit_of_work import Transaction

logger = logging.getLogger("practiceops.sequences")


class SequenceAllocator(Protocol):
    def allocate(self, tx: Transaction, kind: str) -> str:
        """Return the next formatted number for tx's tenant."""
        ...  # pragma: no cover


class _PolicyLookup:
    def __init__(self, policies: Iterable[SequencePolicy]):
        self._policies: Dict[str, SequencePolicy] = {p.kind: p for p in policies}
        if not self._policies:
            raise ValueError("At least one SequencePolicy is required.")

    def policy_for(self, kind: str) -> SequencePolicy:
        policy = self._policies.get(kind)
        if policy is None:
            raise ValueError(f"No sequence policy configured for kind '{kind}'.")
        return policy


# ══════════════════════════════════════════════════════════════
# IN-MEMORY ALLOCATOR
# ══════════════════════════════════════════════════════════════

class InMemorySequenceAllocator(_PolicyLookup):
    """
    Thread-safe in-memory allocator.

    Each (tenant, kind) row has its own lock, held by the allocating
    transaction until it commits or rolls back.
    """

    def __init__(self, policies: Iterable[SequencePolicy] = ()):
        super().__init__(tuple(policies) or default_policies())
        self._guard = threading.Lock()
        self._row_locks: Dict[tuple[str, str], threading.Lock] = {}
        self._next: Dict[tuple[str, str], int] = {}

    def _row_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._row_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._row_locks[key] = lock
            return lock

    def allocate(self, tx: Transaction, kind: str) -> str:
        policy = self.policy_for(kind)
        key = (tx.tenant.tenant_schema, kind)
        lock_key = ("sequence", key)

        if not tx.holds(lock_key):
            lock = self._row_lock(key)
            lock.acquire()
            tx.hold(lock_key, lock.release)

        current = self._next.get(key, policy.start_at)
        self._next[key] = current + 1

        def _restore() -> None:
            self._next[key] = current

        tx.record_undo(_restore, key=lock_key)

        number = policy.format_number(current)
        logger.debug(f"Allocated {number} (tenant: {key[0]}, kind: {kind})")
        return number

    def peek_next(self, tenant_schema: str, kind: str) -> int:
        """Next counter value for (tenant, kind) (test helper)."""
        policy = self.policy_for(kind)
        return self._next.get((tenant_schema, kind), policy.start_at)


# ══════════════════════════════════════════════════════════════
# DATABASE ALLOCATOR (Django)
# ══════════════════════════════════════════════════════════════

class DatabaseSequenceAllocator(_PolicyLookup):
    """
    Allocator backed by the SequenceCounter table.

    The row is created lazily, then locked with SELECT ... FOR UPDATE
    and advanced inside the caller's atomic block. When the caller's
    transaction rolls back, so does the advance.
    """

    def __init__(self, policies: Iterable[SequencePolicy] = (), *, using: str = "default"):
        super().__init__(tuple(policies) or default_policies())
        self._using = using

    def allocate(self, tx: Transaction, kind: str) -> str:
        from core.sequences.models import SequenceCounter

        policy = self.policy_for(kind)
        tenant_schema = tx.tenant.tenant_schema
        counters = SequenceCounter.objects.using(self._using)

        with transaction.atomic(using=self._using):
            counters.get_or_create(
                tenant_schema=tenant_schema,
                kind=kind,
                defaults={"next_number": policy.start_at},
            )
            row = counters.select_for_update().get(
                tenant_schema=tenant_schema,
                kind=kind,
            )
            current = row.next_number
            counters.filter(pk=row.pk).update(next_number=F("next_number") + 1)

        number = policy.format_number(current)
        logger.debug(f"Allocated {number} (tenant: {tenant_schema}, kind: {kind})")
        return number
