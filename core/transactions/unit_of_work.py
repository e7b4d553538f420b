"""
PracticeOps Transactions — Unit of Work
=========================================
The atomic boundary every workflow operation runs inside.

A Transaction carries:
- the TenantContext it was opened for
- an undo log (in-memory stores register compensations here)
- commit steps that publish staged writes
- row locks held until the transaction finishes
- deferred actions queued for COMMIT or ROLLBACK

RULES:
- Commit: staged writes published, locks released, COMMIT actions
  dispatched, ROLLBACK actions discarded.
- Rollback (any exception): undo log replayed newest-first, locks
  released, ROLLBACK actions dispatched, exception re-raised.
- Each queued action runs at most once.
- A nested atomic() on the same thread joins the enclosing
  transaction. It must target the same tenant.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Callable, ContextManager, Hashable, Iterator, Optional, Protocol

from core.context.tenant_context import TenantContext
from core.time.clock import Clock, get_default_clock
from core.transactions.deferred import (
    ON_COMMIT,
    ON_ROLLBACK,
    DeferredAction,
    DeferredCallable,
    DeferredEventDispatcher,
    build_deferred_action,
)

logger = logging.getLogger("practiceops.transactions")

TX_ACTIVE = "ACTIVE"
TX_COMMITTED = "COMMITTED"
TX_ROLLED_BACK = "ROLLED_BACK"


# ══════════════════════════════════════════════════════════════
# TRANSACTION
# ══════════════════════════════════════════════════════════════

class Transaction:
    """One atomic unit of work for a single tenant."""

    def __init__(self, tenant: TenantContext, *, clock: Clock | None = None):
        if not isinstance(tenant, TenantContext):
            raise TypeError("tenant must be TenantContext.")
        self.transaction_id = uuid.uuid4()
        self.tenant = tenant
        self.state = TX_ACTIVE
        self._clock = clock or get_default_clock()
        self._undo: list[Callable[[], None]] = []
        self._undo_keys: set[Hashable] = set()
        self._commit_steps: list[Callable[[], None]] = []
        self._held: set[Hashable] = set()
        self._releases: list[Callable[[], None]] = []
        self._actions: list[DeferredAction] = []

    @property
    def is_active(self) -> bool:
        return self.state == TX_ACTIVE

    def _require_active(self) -> None:
        if self.state != TX_ACTIVE:
            raise RuntimeError(
                f"Transaction {self.transaction_id} is {self.state}, not ACTIVE."
            )

    # ── Deferred side-effects ─────────────────────────────────

    def on_commit(self, action: DeferredCallable, *, name: str) -> DeferredAction:
        """Queue action to run after this transaction commits."""
        return self._queue(action, name=name, outcome=ON_COMMIT)

    def on_rollback(self, action: DeferredCallable, *, name: str) -> DeferredAction:
        """Queue action to run after this transaction rolls back."""
        return self._queue(action, name=name, outcome=ON_ROLLBACK)

    def _queue(self, action: DeferredCallable, *, name: str, outcome: str) -> DeferredAction:
        self._require_active()
        deferred = build_deferred_action(
            name=name,
            outcome=outcome,
            tenant=self.tenant,
            action=action,
            clock=self._clock,
        )
        self._actions.append(deferred)
        return deferred

    def pending_actions(self, outcome: Optional[str] = None) -> tuple[DeferredAction, ...]:
        return tuple(
            a for a in self._actions
            if outcome is None or a.outcome == outcome
        )

    # ── Undo log and locks ────────────────────────────────────

    def record_undo(self, undo: Callable[[], None], *, key: Hashable = None) -> bool:
        """
        Register a compensation to replay on rollback.

        With a key, only the first registration counts: it restores
        the state as it was before this transaction touched it.
        """
        self._require_active()
        if key is not None:
            if key in self._undo_keys:
                return False
            self._undo_keys.add(key)
        self._undo.append(undo)
        return True

    def record_commit_step(self, step: Callable[[], None]) -> None:
        """Register a step that publishes staged writes on commit."""
        self._require_active()
        self._commit_steps.append(step)

    def holds(self, key: Hashable) -> bool:
        return key in self._held

    def hold(self, key: Hashable, release: Callable[[], None]) -> None:
        """Track a lock acquired on behalf of this transaction."""
        self._require_active()
        self._held.add(key)
        self._releases.append(release)

    # ── Completion ────────────────────────────────────────────

    def _release_all(self) -> None:
        while self._releases:
            self._releases.pop()()
        self._held.clear()

    def _take_actions(self, outcome: str) -> list[DeferredAction]:
        actions = [a for a in self._actions if a.outcome == outcome]
        self._actions.clear()
        return actions

    def finish_commit(self) -> list[DeferredAction]:
        """Publish staged writes and mark committed. Returns the COMMIT actions to dispatch."""
        self._require_active()
        self.state = TX_COMMITTED
        for step in self._commit_steps:
            step()
        self._commit_steps.clear()
        self._undo.clear()
        self._undo_keys.clear()
        self._release_all()
        return self._take_actions(ON_COMMIT)

    def finish_rollback(self) -> list[DeferredAction]:
        """Replay the undo log. Returns the ROLLBACK actions to dispatch."""
        self._require_active()
        self.state = TX_ROLLED_BACK
        while self._undo:
            undo = self._undo.pop()
            try:
                undo()
            except Exception as exc:
                logger.error(
                    f"Undo step failed during rollback of {self.transaction_id}: {exc}",
                    exc_info=True,
                )
        self._undo_keys.clear()
        self._commit_steps.clear()
        self._release_all()
        return self._take_actions(ON_ROLLBACK)


# ══════════════════════════════════════════════════════════════
# UNIT OF WORK PROTOCOL
# ══════════════════════════════════════════════════════════════

class UnitOfWork(Protocol):
    def atomic(self, ctx: TenantContext) -> ContextManager[Transaction]:
        """Open (or join) the atomic block for ctx's tenant."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY UNIT OF WORK
# ══════════════════════════════════════════════════════════════

class InMemoryUnitOfWork:
    """
    Unit of work for the in-memory persistence gateway.

    Atomicity comes from the Transaction: in-memory stores stage
    writes or register compensations on it, and it publishes or
    undoes them when the block ends.
    """

    def __init__(
        self,
        dispatcher: DeferredEventDispatcher | None = None,
        *,
        clock: Clock | None = None,
    ):
        self._dispatcher = dispatcher or DeferredEventDispatcher()
        self._clock = clock
        self._local = threading.local()

    @property
    def dispatcher(self) -> DeferredEventDispatcher:
        return self._dispatcher

    def active(self) -> Optional[Transaction]:
        return getattr(self._local, "tx", None)

    @contextmanager
    def atomic(self, ctx: TenantContext) -> Iterator[Transaction]:
        outer = self.active()
        if outer is not None:
            if not outer.tenant.same_tenant(ctx):
                raise ValueError(
                    "Nested unit of work must stay within tenant "
                    f"'{outer.tenant.tenant_schema}'."
                )
            yield outer
            return

        tx = Transaction(ctx, clock=self._clock)
        self._local.tx = tx
        try:
            yield tx
        except BaseException:
            self._local.tx = None
            actions = tx.finish_rollback()
            logger.info(
                f"Transaction {tx.transaction_id} rolled back "
                f"(tenant: {ctx.tenant_schema})"
            )
            self._dispatcher.dispatch(
                transaction_id=tx.transaction_id,
                outcome=ON_ROLLBACK,
                actions=actions,
            )
            raise
        self._local.tx = None
        actions = tx.finish_commit()
        self._dispatcher.dispatch(
            transaction_id=tx.transaction_id,
            outcome=ON_COMMIT,
            actions=actions,
        )
