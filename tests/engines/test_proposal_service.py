"""
Tests for engines.proposals.services — authoring, send and decline.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.context.tenant_context import current_tenant
from core.errors import Conflict, InvalidState, Mismatch, NotFound
from core.lifecycle.definitions import ProposalStatus
from core.sequences.policy import KIND_PROPOSAL
from engines.proposals.events import NOTIFY_PROPOSAL_DECLINED, PROPOSAL_CREATED, PROPOSAL_SENT
from engines.proposals.models import FeeModel
from engines.proposals.services import (
    MilestoneInput,
    ProposalService,
    ProposalSideEffects,
    TeamMemberInput,
)

NOW = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)
CONTENT = {"scope": "Quarterly bookkeeping and year-end filing."}


@pytest.fixture
def service(gateway, uow, allocator, audit, customers, read_model, notifications, clock):
    return ProposalService(
        gateway=gateway,
        unit_of_work=uow,
        allocator=allocator,
        audit_log=audit,
        customers=customers,
        side_effects=ProposalSideEffects(
            read_model_sync=read_model, notifications=notifications
        ),
        clock=clock,
    )


def _fixed(service, ctx, customer_id, amount="9000.00", content=CONTENT):
    return service.create(
        ctx,
        title="Annual accounts",
        customer_id=customer_id,
        fee_model=FeeModel.FIXED,
        fixed_fee_amount=Decimal(amount),
        content=content,
    )


class TestCreate:
    def test_create_allocates_number(self, service, ctx, customer_and_contact, audit):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        assert proposal.number == "PROP-0001"
        assert proposal.status == ProposalStatus.DRAFT
        assert proposal.created_by == ctx.actor_id
        assert proposal.created_at == NOW
        assert audit.actions_for(ctx.tenant_schema, proposal.id) == [PROPOSAL_CREATED]

    def test_invalid_fee_consumes_no_number(self, service, ctx, customer_and_contact, allocator):
        customer_id, _ = customer_and_contact
        with pytest.raises(InvalidState, match="Fixed fee amount"):
            service.create(
                ctx, title="No fee", customer_id=customer_id, fee_model=FeeModel.FIXED
            )
        assert allocator.peek_next(ctx.tenant_schema, KIND_PROPOSAL) == 1

    def test_retainer_requires_amount(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        with pytest.raises(InvalidState, match="Retainer amount"):
            service.create(
                ctx, title="Retainer", customer_id=customer_id, fee_model=FeeModel.RETAINER
            )

    def test_unknown_customer(self, service, ctx):
        with pytest.raises(NotFound, match="Customer"):
            service.create(
                ctx, title="Ghost", customer_id=uuid.uuid4(), fee_model=FeeModel.HOURLY
            )


class TestDraftEditing:
    def test_update_draft(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        updated = service.update(ctx, proposal.id, title="Annual accounts 2026")
        assert updated.title == "Annual accounts 2026"

    def test_unknown_field_rejected(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        with pytest.raises(ValueError, match="not editable"):
            service.update(ctx, proposal.id, status=ProposalStatus.ACCEPTED)

    def test_milestones_must_sum_to_hundred(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.replace_milestones(ctx, proposal.id, [
            MilestoneInput("Kick-off", Decimal("50")),
            MilestoneInput("Delivery", Decimal("50"), relative_due_days=30),
        ])

        with pytest.raises(InvalidState, match="got 90"):
            service.replace_milestones(ctx, proposal.id, [
                MilestoneInput("Kick-off", Decimal("50")),
                MilestoneInput("Delivery", Decimal("40")),
            ])

        kept = service.milestones_of(ctx, proposal.id)
        assert [m.percentage for m in kept] == [Decimal("50"), Decimal("50")]

    def test_milestones_only_for_fixed_fee(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = service.create(
            ctx, title="Hourly", customer_id=customer_id, fee_model=FeeModel.HOURLY,
            hourly_rate_note="$180/h",
        )
        with pytest.raises(InvalidState, match="FIXED"):
            service.replace_milestones(ctx, proposal.id, [MilestoneInput("All", Decimal("100"))])

    def test_blank_milestone_description_rejected(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        with pytest.raises(InvalidState, match="description"):
            service.replace_milestones(ctx, proposal.id, [MilestoneInput("  ", Decimal("100"))])

    def test_duplicate_team_member_rejected(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        member = uuid.uuid4()
        with pytest.raises(ValueError, match="duplicate"):
            service.replace_team(ctx, proposal.id, [
                TeamMemberInput(member, "Lead"), TeamMemberInput(member, "Reviewer"),
            ])
        assert service.team_of(ctx, proposal.id) == []


class TestExpiryTimestamps:
    def test_naive_expiry_rejected_on_create(self, service, ctx, customer_and_contact):
        customer_id, _ = customer_and_contact
        with pytest.raises(ValueError, match="timezone-aware"):
            service.create(
                ctx,
                title="Annual accounts",
                customer_id=customer_id,
                fee_model=FeeModel.FIXED,
                fixed_fee_amount=Decimal("9000.00"),
                expires_at=datetime(2026, 3, 1, 9, 0),
            )
        assert _fixed(service, ctx, customer_id).number == "PROP-0001"

    def test_naive_expiry_rejected_on_send(self, service, ctx, customer_and_contact):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        with pytest.raises(ValueError, match="timezone-aware"):
            service.send(
                ctx, proposal.id, portal_contact_id=contact_id,
                expires_at=datetime(2026, 3, 1, 9, 0),
            )
        assert service.get(ctx, proposal.id).status == ProposalStatus.DRAFT


class TestSend:
    def test_send_binds_contact(self, service, ctx, customer_and_contact, read_model, audit):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        expires = NOW + timedelta(days=14)

        sent = service.send(ctx, proposal.id, portal_contact_id=contact_id, expires_at=expires)

        assert sent.status == ProposalStatus.SENT
        assert sent.portal_contact_id == contact_id
        assert sent.sent_at == NOW
        assert sent.expires_at == expires
        assert read_model.statuses_for(proposal.id) == [ProposalStatus.SENT]
        assert PROPOSAL_SENT in audit.actions_for(ctx.tenant_schema, proposal.id)

    def test_contact_of_other_customer_rejected(
        self, service, ctx, uow, customers, customer_and_contact, read_model,
    ):
        customer_id, _ = customer_and_contact
        with uow.atomic(ctx) as tx:
            other_customer = customers.add_customer(tx, "Other Co")
            stranger = customers.add_contact(tx, other_customer, "x@other.test")
        proposal = _fixed(service, ctx, customer_id)

        with pytest.raises(Mismatch):
            service.send(ctx, proposal.id, portal_contact_id=stranger)
        assert service.get(ctx, proposal.id).status == ProposalStatus.DRAFT
        assert read_model.pushed == []

    def test_empty_content_rejected(self, service, ctx, customer_and_contact):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id, content={})
        with pytest.raises(InvalidState, match="content"):
            service.send(ctx, proposal.id, portal_contact_id=contact_id)

    def test_send_twice_is_invalid(self, service, ctx, customer_and_contact):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)
        with pytest.raises(InvalidState):
            service.send(ctx, proposal.id, portal_contact_id=contact_id)

    def test_sent_proposal_is_frozen(self, service, ctx, customer_and_contact):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)
        with pytest.raises(Conflict):
            service.update(ctx, proposal.id, title="Changed")
        with pytest.raises(Conflict):
            service.replace_milestones(ctx, proposal.id, [MilestoneInput("All", Decimal("100"))])


class TestDecline:
    def test_decline_notifies_creator_after_commit(
        self, service, ctx, customer_and_contact, notifications, read_model,
    ):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)

        declined = service.decline(
            ctx, proposal.id, portal_contact_id=contact_id, reason="  Budget cut  "
        )

        assert declined.status == ProposalStatus.DECLINED
        assert declined.decline_reason == "Budget cut"
        assert declined.declined_at == NOW
        sent = notifications.of_type(NOTIFY_PROPOSAL_DECLINED)
        assert len(sent) == 1
        assert sent[0].recipient_id == ctx.actor_id
        assert sent[0].title == "Proposal PROP-0001 was declined"
        assert sent[0].body == "Reason: Budget cut"
        assert notifications.sent[0].ambient_tenant == ctx
        assert read_model.statuses_for(proposal.id) == [
            ProposalStatus.SENT, ProposalStatus.DECLINED,
        ]
        assert current_tenant() is None

    def test_decline_without_reason(self, service, ctx, customer_and_contact, notifications):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)
        service.decline(ctx, proposal.id, portal_contact_id=contact_id)
        assert notifications.of_type(NOTIFY_PROPOSAL_DECLINED)[0].body == "No reason provided"

    def test_decline_by_wrong_contact(self, service, ctx, customer_and_contact, notifications):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)
        with pytest.raises(Mismatch):
            service.decline(ctx, proposal.id, portal_contact_id=uuid.uuid4())
        assert service.get(ctx, proposal.id).status == ProposalStatus.SENT
        assert notifications.sent == []

    def test_declined_is_terminal(self, service, ctx, customer_and_contact):
        customer_id, contact_id = customer_and_contact
        proposal = _fixed(service, ctx, customer_id)
        service.send(ctx, proposal.id, portal_contact_id=contact_id)
        service.decline(ctx, proposal.id, portal_contact_id=contact_id)
        with pytest.raises(InvalidState):
            service.decline(ctx, proposal.id, portal_contact_id=contact_id)
