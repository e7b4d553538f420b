"""
PracticeOps Transactions — Public API
=======================================
Unit of work and the deferred side-effect dispatcher.
The Django-backed unit of work lives in core.transactions.django_atomic.
"""

from core.transactions.deferred import (
    ON_COMMIT,
    ON_ROLLBACK,
    DeferredAction,
    DeferredEventDispatcher,
    build_deferred_action,
)
from core.transactions.unit_of_work import (
    TX_ACTIVE,
    TX_COMMITTED,
    TX_ROLLED_BACK,
    InMemoryUnitOfWork,
    Transaction,
    UnitOfWork,
)

__all__ = [
    "ON_COMMIT",
    "ON_ROLLBACK",
    "DeferredAction",
    "DeferredEventDispatcher",
    "build_deferred_action",
    "Transaction",
    "UnitOfWork",
    "InMemoryUnitOfWork",
    "TX_ACTIVE",
    "TX_COMMITTED",
    "TX_ROLLED_BACK",
]
