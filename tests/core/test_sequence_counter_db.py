"""
Tests for the database-backed allocator and the Django unit of work.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass

import pytest
from django.db import connection

from core.context.tenant_context import TenantContext, current_tenant
from core.persistence.gateway import InMemoryPersistenceGateway
from core.sequences.allocator import DatabaseSequenceAllocator
from core.sequences.models import SequenceCounter
from core.sequences.policy import KIND_INVOICE, KIND_PROPOSAL
from core.transactions.deferred import DeferredEventDispatcher
from core.transactions.django_atomic import DjangoUnitOfWork
from core.transactions.unit_of_work import TX_COMMITTED, TX_ROLLED_BACK

pytestmark = pytest.mark.django_db(transaction=True)


TENANT_A = TenantContext(tenant_schema="tenant_a", org_id="org_a")
TENANT_B = TenantContext(tenant_schema="tenant_b", org_id="org_b")


@dataclass
class Note:
    id: uuid.UUID
    text: str


def _allocate(uow, allocator, ctx, kind=KIND_INVOICE) -> str:
    with uow.atomic(ctx) as tx:
        return allocator.allocate(tx, kind)


def test_first_allocation_creates_counter_row() -> None:
    uow = DjangoUnitOfWork()
    allocator = DatabaseSequenceAllocator()
    assert _allocate(uow, allocator, TENANT_A) == "INV-0001"
    row = SequenceCounter.objects.get(tenant_schema="tenant_a", kind=KIND_INVOICE)
    assert row.next_number == 2


def test_numbers_increase_per_tenant_and_kind() -> None:
    uow = DjangoUnitOfWork()
    allocator = DatabaseSequenceAllocator()
    assert _allocate(uow, allocator, TENANT_A) == "INV-0001"
    assert _allocate(uow, allocator, TENANT_A) == "INV-0002"
    assert _allocate(uow, allocator, TENANT_A, KIND_PROPOSAL) == "PROP-0001"
    assert _allocate(uow, allocator, TENANT_B) == "INV-0001"


def test_rollback_does_not_consume_a_number() -> None:
    uow = DjangoUnitOfWork()
    allocator = DatabaseSequenceAllocator()
    _allocate(uow, allocator, TENANT_A)

    with pytest.raises(RuntimeError):
        with uow.atomic(TENANT_A) as tx:
            assert allocator.allocate(tx, KIND_INVOICE) == "INV-0002"
            raise RuntimeError("abort")

    assert _allocate(uow, allocator, TENANT_A) == "INV-0002"


def test_commit_actions_run_after_commit_with_tenant_bound() -> None:
    dispatcher = DeferredEventDispatcher()
    uow = DjangoUnitOfWork(dispatcher)
    seen = []
    with uow.atomic(TENANT_A) as tx:
        tx.on_commit(lambda ctx: seen.append(current_tenant()), name="test.commit")
        tx.on_rollback(lambda ctx: seen.append("rollback"), name="test.rollback")
        assert seen == []
    assert seen == [TENANT_A]
    assert dispatcher.reports[-1]["actions_run"] == 1


def test_rollback_actions_run_on_exception() -> None:
    uow = DjangoUnitOfWork()
    seen = []
    with pytest.raises(ValueError):
        with uow.atomic(TENANT_A) as tx:
            tx.on_commit(lambda ctx: seen.append("commit"), name="test.commit")
            tx.on_rollback(lambda ctx: seen.append("rollback"), name="test.rollback")
            raise ValueError("abort")
    assert seen == ["rollback"]


def test_nested_block_joins_outer_and_rolls_back_with_it() -> None:
    uow = DjangoUnitOfWork()
    allocator = DatabaseSequenceAllocator()
    gateway = InMemoryPersistenceGateway()
    seen = []

    with pytest.raises(RuntimeError):
        with uow.atomic(TENANT_A) as outer:
            with uow.atomic(TENANT_A) as inner:
                assert inner is outer
                assert allocator.allocate(inner, KIND_INVOICE) == "INV-0001"
                gateway.save(inner, Note(id=uuid.uuid4(), text="draft"))
                inner.on_rollback(lambda ctx: seen.append("rollback"), name="test.rollback")
            raise RuntimeError("abort")

    assert seen == ["rollback"]
    assert outer.state == TX_ROLLED_BACK
    assert gateway.count("tenant_a", Note) == 0
    assert uow.active() is None
    assert _allocate(uow, allocator, TENANT_A) == "INV-0001"


def test_nested_block_commit_actions_run_once_after_outer_commit() -> None:
    uow = DjangoUnitOfWork()
    gateway = InMemoryPersistenceGateway()
    seen = []

    with uow.atomic(TENANT_A) as outer:
        with uow.atomic(TENANT_A) as inner:
            gateway.save(inner, Note(id=uuid.uuid4(), text="final"))
            inner.on_commit(lambda ctx: seen.append("commit"), name="test.commit")
        assert seen == []
        assert gateway.count("tenant_a", Note) == 0

    assert seen == ["commit"]
    assert outer.state == TX_COMMITTED
    assert gateway.count("tenant_a", Note) == 1


def test_nested_block_for_other_tenant_is_rejected() -> None:
    uow = DjangoUnitOfWork()
    with uow.atomic(TENANT_A):
        with pytest.raises(ValueError, match="tenant_a"):
            with uow.atomic(TENANT_B):
                pass


def test_concurrent_first_allocations_are_gap_free() -> None:
    uow = DjangoUnitOfWork()
    allocator = DatabaseSequenceAllocator()
    workers = 8
    barrier = threading.Barrier(workers)
    guard = threading.Lock()
    numbers: list[str] = []
    errors: list[Exception] = []

    def worker() -> None:
        try:
            barrier.wait()
            number = _allocate(uow, allocator, TENANT_A)
            with guard:
                numbers.append(number)
        except Exception as exc:
            with guard:
                errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(numbers) == [f"INV-{n:04d}" for n in range(1, workers + 1)]
    row = SequenceCounter.objects.get(tenant_schema="tenant_a", kind=KIND_INVOICE)
    assert row.next_number == workers + 1
