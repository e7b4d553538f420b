"""
Shared fixtures: one tenant, a pinned clock, and the in-memory
stack (gateway, unit of work, allocator, audit log, collaborators).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from core.audit.log import AuditLog
from core.context.tenant_context import ROLE_OWNER, TenantContext
from core.persistence.gateway import InMemoryPersistenceGateway
from core.sequences.allocator import InMemorySequenceAllocator
from core.time.clock import FixedClock
from core.transactions.unit_of_work import InMemoryUnitOfWork
from integration.memory import (
    FakePaymentGateway,
    InMemoryCustomerDirectory,
    InMemoryMemberDirectory,
    InMemoryProjectService,
    RecordingNotificationSender,
    RecordingReadModelSync,
)

NOW = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)
CREATOR_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def ctx() -> TenantContext:
    return TenantContext(
        tenant_schema="tenant_acme",
        org_id="org_acme",
        actor_id=CREATOR_ID,
        actor_role=ROLE_OWNER,
    )


@pytest.fixture
def gateway() -> InMemoryPersistenceGateway:
    return InMemoryPersistenceGateway()


@pytest.fixture
def uow(clock) -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(clock=clock)


@pytest.fixture
def allocator() -> InMemorySequenceAllocator:
    return InMemorySequenceAllocator()


@pytest.fixture
def audit(clock) -> AuditLog:
    return AuditLog(clock=clock)


@pytest.fixture
def customers(gateway) -> InMemoryCustomerDirectory:
    return InMemoryCustomerDirectory(gateway)


@pytest.fixture
def projects(gateway) -> InMemoryProjectService:
    return InMemoryProjectService(gateway)


@pytest.fixture
def notifications() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture
def read_model() -> RecordingReadModelSync:
    return RecordingReadModelSync()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def members() -> InMemoryMemberDirectory:
    return InMemoryMemberDirectory()


@pytest.fixture
def customer_and_contact(ctx, uow, customers) -> tuple[uuid.UUID, uuid.UUID]:
    """A PROSPECT customer with one portal contact."""
    with uow.atomic(ctx) as tx:
        customer_id = customers.add_customer(tx, "Harbor Dental")
        contact_id = customers.add_contact(tx, customer_id, "owner@harbor.test")
    return customer_id, contact_id
