"""
Tests for integration.memory — in-memory collaborators.
"""

import uuid

import pytest

from core.errors import Conflict
from integration.collaborators import CustomerLifecycle, MemberAlreadyAssigned


class TestProjectService:
    def test_prospect_customer_cannot_get_project(self, ctx, uow, customers, projects):
        with uow.atomic(ctx) as tx:
            customer_id = customers.add_customer(tx, "Prospect Co")
            with pytest.raises(Conflict, match="PROSPECT"):
                projects.create_project(tx, name="Too early", customer_id=customer_id)

    def test_template_members_are_added(self, ctx, uow, customers, projects):
        member = uuid.uuid4()
        with uow.atomic(ctx) as tx:
            customer_id = customers.add_customer(tx, "Client", CustomerLifecycle.ACTIVE)
            template_id = projects.add_template(tx, "Audit", default_member_ids=[member])
            project_id = projects.create_project(
                tx, name="Audit 2026", customer_id=customer_id, template_id=template_id
            )
            assert projects.members_of(tx, project_id) == [member]
            with pytest.raises(MemberAlreadyAssigned):
                projects.add_member(tx, project_id, member)


class TestCustomerDirectory:
    def test_contact_membership(self, ctx, uow, customers):
        with uow.atomic(ctx) as tx:
            a = customers.add_customer(tx, "A")
            b = customers.add_customer(tx, "B")
            contact = customers.add_contact(tx, a, "x@a.test")
            assert customers.contact_belongs_to(tx, contact, a)
            assert not customers.contact_belongs_to(tx, contact, b)
            assert not customers.contact_belongs_to(tx, uuid.uuid4(), a)

    def test_lifecycle_transition_returns_previous(self, ctx, uow, customers):
        with uow.atomic(ctx) as tx:
            customer_id = customers.add_customer(tx, "A")
            previous = customers.transition_lifecycle(tx, customer_id, CustomerLifecycle.ONBOARDING)
            assert previous == CustomerLifecycle.PROSPECT
            assert customers.get_customer(tx, customer_id).lifecycle_status == CustomerLifecycle.ONBOARDING
