"""
Tests for core.context — TenantContext and ambient binding.
"""

import uuid

import pytest

from core.context.tenant_context import (
    ROLE_MEMBER,
    ROLE_SYSTEM,
    TenantContext,
    bound_tenant,
    current_tenant,
    require_tenant,
)
from core.errors import TenantContextMissing


class TestTenantContext:
    def test_defaults_to_system_actor(self):
        ctx = TenantContext(tenant_schema="tenant_a", org_id="org_a")
        assert ctx.actor_id is None
        assert ctx.actor_role == ROLE_SYSTEM

    def test_rejects_empty_schema(self):
        with pytest.raises(ValueError, match="tenant_schema"):
            TenantContext(tenant_schema="", org_id="org_a")

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError, match="actor_role"):
            TenantContext(tenant_schema="tenant_a", org_id="org_a", actor_role="GUEST")

    def test_rejects_non_uuid_actor(self):
        with pytest.raises(ValueError, match="actor_id"):
            TenantContext(tenant_schema="tenant_a", org_id="org_a", actor_id="abc")

    def test_as_system_keeps_tenant(self):
        ctx = TenantContext(
            tenant_schema="tenant_a", org_id="org_a",
            actor_id=uuid.uuid4(), actor_role=ROLE_MEMBER,
        )
        system = ctx.as_system()
        assert system.tenant_schema == "tenant_a"
        assert system.actor_id is None
        assert system.actor_role == ROLE_SYSTEM
        assert system.same_tenant(ctx)

    def test_different_schema_is_different_tenant(self):
        a = TenantContext(tenant_schema="tenant_a", org_id="org_a")
        b = TenantContext(tenant_schema="tenant_b", org_id="org_a")
        assert not a.same_tenant(b)


class TestBoundTenant:
    def test_nothing_bound_by_default(self):
        assert current_tenant() is None
        with pytest.raises(TenantContextMissing):
            require_tenant()

    def test_binding_is_scoped_and_nests(self):
        a = TenantContext(tenant_schema="tenant_a", org_id="org_a")
        b = TenantContext(tenant_schema="tenant_b", org_id="org_b")
        with bound_tenant(a):
            assert require_tenant() == a
            with bound_tenant(b):
                assert current_tenant() == b
            assert current_tenant() == a
        assert current_tenant() is None

    def test_binding_resets_after_exception(self):
        a = TenantContext(tenant_schema="tenant_a", org_id="org_a")
        with pytest.raises(RuntimeError):
            with bound_tenant(a):
                raise RuntimeError("boom")
        assert current_tenant() is None
