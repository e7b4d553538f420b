"""
PracticeOps Transactions — Deferred Event Dispatcher
======================================================
Runs side-effects queued against a transaction once its outcome
is known.

Dispatch behavior:
1. Take the actions queued for the outcome (COMMIT or ROLLBACK)
2. Rebind the TenantContext captured when each action was queued
3. Execute actions sequentially
4. Catch, log and record each failure
5. Continue to the next action

An action failure must NOT:
- Break dispatch of other actions
- Propagate to the caller of the (already finished) transaction
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from core.context.tenant_context import TenantContext, bound_tenant
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("practiceops.transactions")

ON_COMMIT = "COMMIT"
ON_ROLLBACK = "ROLLBACK"

VALID_OUTCOMES = frozenset({ON_COMMIT, ON_ROLLBACK})

DeferredCallable = Callable[[TenantContext], None]


# ══════════════════════════════════════════════════════════════
# DEFERRED ACTION (side-effect descriptor)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeferredAction:
    """
    A side-effect waiting for its transaction's outcome.

    The tenant is captured at queue time and rebound before the
    action runs. The action receives it as its only argument.
    """

    action_id: uuid.UUID
    name: str
    outcome: str
    tenant: TenantContext
    action: DeferredCallable = field(repr=False, compare=False)
    queued_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string.")
        if self.outcome not in VALID_OUTCOMES:
            raise ValueError(
                f"outcome '{self.outcome}' is not valid. "
                f"Must be one of: {sorted(VALID_OUTCOMES)}"
            )
        if not isinstance(self.tenant, TenantContext):
            raise TypeError("tenant must be TenantContext.")
        if not callable(self.action):
            raise TypeError("action must be callable.")

    def describe(self) -> dict:
        return {
            "action_id": str(self.action_id),
            "name": self.name,
            "outcome": self.outcome,
            "tenant_schema": self.tenant.tenant_schema,
            "org_id": self.tenant.org_id,
            "queued_at": self.queued_at.isoformat() if self.queued_at else None,
        }


def build_deferred_action(
    *,
    name: str,
    outcome: str,
    tenant: TenantContext,
    action: DeferredCallable,
    clock: Clock | None = None,
) -> DeferredAction:
    return DeferredAction(
        action_id=uuid.uuid4(),
        name=name,
        outcome=outcome,
        tenant=tenant,
        action=action,
        queued_at=(clock or get_default_clock()).now_utc(),
    )


# ══════════════════════════════════════════════════════════════
# DISPATCHER
# ══════════════════════════════════════════════════════════════

class DeferredEventDispatcher:
    """
    Executes deferred actions after their transaction finishes.

    Keeps the dispatch reports it produced so callers and tests can
    inspect what ran and what failed.
    """

    def __init__(self) -> None:
        self._reports: list[dict] = []

    def dispatch(
        self,
        *,
        transaction_id: uuid.UUID,
        outcome: str,
        actions: Iterable[DeferredAction],
    ) -> dict:
        """
        Run every action queued for outcome.

        Returns:
            {
                'transaction_id': str,
                'outcome': str,
                'actions_run': int,
                'actions_failed': int,
                'failures': list[dict]
            }

        This method NEVER raises for a failing action.
        """
        report = {
            "transaction_id": str(transaction_id),
            "outcome": outcome,
            "actions_run": 0,
            "actions_failed": 0,
            "failures": [],
        }

        for deferred in actions:
            if deferred.outcome != outcome:
                continue
            try:
                with bound_tenant(deferred.tenant):
                    deferred.action(deferred.tenant)
                report["actions_run"] += 1
                logger.debug(
                    f"Deferred action ran: {deferred.name} "
                    f"(tenant: {deferred.tenant.tenant_schema}, outcome: {outcome})"
                )
            except Exception as exc:
                report["actions_failed"] += 1
                report["failures"].append({
                    "action": deferred.name,
                    "action_id": str(deferred.action_id),
                    "tenant_schema": deferred.tenant.tenant_schema,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                })
                logger.error(
                    f"Deferred action failed: {deferred.name} "
                    f"(tenant: {deferred.tenant.tenant_schema}, "
                    f"transaction: {transaction_id}): {exc}",
                    exc_info=True,
                )

        if report["actions_run"] or report["actions_failed"]:
            logger.info(
                f"Deferred dispatch complete for {transaction_id} ({outcome}) — "
                f"{report['actions_run']} run, {report['actions_failed']} failed"
            )
        self._reports.append(report)
        return report

    @property
    def reports(self) -> tuple[dict, ...]:
        return tuple(self._reports)
