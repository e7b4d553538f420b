"""
PracticeOps Context — TenantContext
=====================================
Immutable carrier of tenant identity for one logical operation.

Doctrine:
- Every core operation receives a TenantContext explicitly.
- bound_tenant() additionally exposes it to collaborators that
  resolve the tenant ambiently (schema routing, notification writers).
- Deferred actions rebind the context captured at queue time.
  Nothing runs against whatever tenant happens to be ambient.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Iterator, Optional

from core.errors import TenantContextMissing


ROLE_OWNER = "OWNER"
ROLE_ADMIN = "ADMIN"
ROLE_MEMBER = "MEMBER"
ROLE_PORTAL_CONTACT = "PORTAL_CONTACT"
ROLE_SYSTEM = "SYSTEM"

VALID_ACTOR_ROLES = frozenset({
    ROLE_OWNER,
    ROLE_ADMIN,
    ROLE_MEMBER,
    ROLE_PORTAL_CONTACT,
    ROLE_SYSTEM,
})


# ══════════════════════════════════════════════════════════════
# TENANT CONTEXT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TenantContext:
    """
    Tenant identity for one request, sweep, or deferred callback.

    Fields:
        tenant_schema: isolated schema / data partition of the tenant
        org_id:        external organization identifier
        actor_id:      member (or portal contact) performing the work;
                       None for system-initiated work
        actor_role:    one of VALID_ACTOR_ROLES
    """

    tenant_schema: str
    org_id: str
    actor_id: Optional[uuid.UUID] = None
    actor_role: str = ROLE_SYSTEM

    def __post_init__(self):
        if not self.tenant_schema or not isinstance(self.tenant_schema, str):
            raise ValueError("tenant_schema must be a non-empty string.")
        if not self.org_id or not isinstance(self.org_id, str):
            raise ValueError("org_id must be a non-empty string.")
        if self.actor_id is not None and not isinstance(self.actor_id, uuid.UUID):
            raise ValueError("actor_id must be UUID or None.")
        if self.actor_role not in VALID_ACTOR_ROLES:
            raise ValueError(
                f"actor_role '{self.actor_role}' is not valid. "
                f"Must be one of: {sorted(VALID_ACTOR_ROLES)}"
            )

    def as_system(self) -> TenantContext:
        """Same tenant, acting as the system (sweeps, webhooks)."""
        return replace(self, actor_id=None, actor_role=ROLE_SYSTEM)

    def same_tenant(self, other: TenantContext) -> bool:
        return (
            self.tenant_schema == other.tenant_schema
            and self.org_id == other.org_id
        )

    def to_dict(self) -> dict:
        return {
            "tenant_schema": self.tenant_schema,
            "org_id": self.org_id,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "actor_role": self.actor_role,
        }


# ══════════════════════════════════════════════════════════════
# AMBIENT BINDING
# ══════════════════════════════════════════════════════════════

_bound: ContextVar[Optional[TenantContext]] = ContextVar(
    "practiceops_tenant", default=None
)


@contextmanager
def bound_tenant(ctx: TenantContext) -> Iterator[TenantContext]:
    """
    Bind ctx as the ambient tenant for the duration of the block.

    Usage:
        with bound_tenant(ctx):
            sender.notify(...)
    """
    if not isinstance(ctx, TenantContext):
        raise TypeError("ctx must be TenantContext.")
    token = _bound.set(ctx)
    try:
        yield ctx
    finally:
        _bound.reset(token)


def current_tenant() -> Optional[TenantContext]:
    return _bound.get()


def require_tenant() -> TenantContext:
    ctx = _bound.get()
    if ctx is None:
        raise TenantContextMissing()
    return ctx
