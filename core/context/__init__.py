"""
PracticeOps Context — Public API
==================================
Explicit tenant context plus its ambient binding.
"""

from core.context.tenant_context import (
    ROLE_ADMIN,
    ROLE_MEMBER,
    ROLE_OWNER,
    ROLE_PORTAL_CONTACT,
    ROLE_SYSTEM,
    VALID_ACTOR_ROLES,
    TenantContext,
    bound_tenant,
    current_tenant,
    require_tenant,
)

__all__ = [
    "TenantContext",
    "bound_tenant",
    "current_tenant",
    "require_tenant",
    "ROLE_OWNER",
    "ROLE_ADMIN",
    "ROLE_MEMBER",
    "ROLE_PORTAL_CONTACT",
    "ROLE_SYSTEM",
    "VALID_ACTOR_ROLES",
]
