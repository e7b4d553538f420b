"""
PracticeOps Transactions — Django Unit of Work
================================================
Maps a Transaction onto django.db.transaction.atomic().

- COMMIT actions are handed to transaction.on_commit(), so they run
  only once the outermost atomic block has durably committed.
- ROLLBACK actions run when the block exits with an exception, after
  Django has rolled it back.
- The Transaction's undo log is still replayed on rollback, so
  in-memory collaborators used alongside the database stay consistent.
- A nested atomic() on the same thread joins the enclosing
  Transaction instead of opening a savepoint with its own.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from django.db import transaction

from core.context.tenant_context import TenantContext
from core.time.clock import Clock
from core.transactions.deferred import ON_COMMIT, ON_ROLLBACK, DeferredEventDispatcher
from core.transactions.unit_of_work import Transaction

logger = logging.getLogger("practiceops.transactions")


class DjangoUnitOfWork:
    """Unit of work backed by the Django database connection."""

    def __init__(
        self,
        dispatcher: DeferredEventDispatcher | None = None,
        *,
        using: str = "default",
        clock: Clock | None = None,
    ):
        self._dispatcher = dispatcher or DeferredEventDispatcher()
        self._using = using
        self._clock = clock
        self._local = threading.local()

    @property
    def dispatcher(self) -> DeferredEventDispatcher:
        return self._dispatcher

    def active(self) -> Optional[Transaction]:
        return getattr(self._local, "tx", None)

    def _after_commit(self, tx: Transaction) -> None:
        if self.active() is tx:
            self._local.tx = None
        actions = tx.finish_commit()
        self._dispatcher.dispatch(
            transaction_id=tx.transaction_id,
            outcome=ON_COMMIT,
            actions=actions,
        )

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
            with transaction.atomic(using=self._using):
                transaction.on_commit(
                    lambda: self._after_commit(tx),
                    using=self._using,
                )
                yield tx
        except BaseException:
            self._local.tx = None
            actions = tx.finish_rollback()
            logger.info(
                f"Transaction {tx.transaction_id} rolled back "
                f"(tenant: {ctx.tenant_schema}, database: {self._using})"
            )
            self._dispatcher.dispatch(
                transaction_id=tx.transaction_id,
                outcome=ON_ROLLBACK,
                actions=actions,
            )
            raise
        finally:
            if self.active() is tx:
                self._local.tx = None
