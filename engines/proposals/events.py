"""PracticeOps Proposals - audit actions, notification types and snapshot builders."""

from __future__ import annotations

from typing import Optional

from engines.proposals.models import FeeModel, Proposal

PROPOSAL_CREATED = "proposal.created"
PROPOSAL_UPDATED = "proposal.updated"
PROPOSAL_MILESTONES_REPLACED = "proposal.milestones_replaced"
PROPOSAL_TEAM_REPLACED = "proposal.team_replaced"
PROPOSAL_SENT = "proposal.sent"
PROPOSAL_ACCEPTED = "proposal.accepted"
PROPOSAL_DECLINED = "proposal.declined"
PROPOSAL_EXPIRED = "proposal.expired"

PROPOSAL_AUDIT_ACTIONS = (
    PROPOSAL_CREATED,
    PROPOSAL_UPDATED,
    PROPOSAL_MILESTONES_REPLACED,
    PROPOSAL_TEAM_REPLACED,
    PROPOSAL_SENT,
    PROPOSAL_ACCEPTED,
    PROPOSAL_DECLINED,
    PROPOSAL_EXPIRED,
)

NOTIFY_PROPOSAL_ACCEPTED = "PROPOSAL_ACCEPTED"
NOTIFY_PROPOSAL_DECLINED = "PROPOSAL_DECLINED"
NOTIFY_PROPOSAL_EXPIRED = "PROPOSAL_EXPIRED"
NOTIFY_ORCHESTRATION_FAILED = "PROPOSAL_ORCHESTRATION_FAILED"

# Deferred action names
SYNC_PROPOSAL_READ_MODEL = "proposal.read_model.sync"
NOTIFY_PROPOSAL_CREATOR = "proposal.creator.notify"


def build_fee_summary(proposal: Proposal) -> dict:
    if proposal.fee_model == FeeModel.FIXED:
        return {
            "fee_model": proposal.fee_model,
            "amount": str(proposal.fixed_fee_amount),
            "currency": proposal.fixed_fee_currency,
        }
    if proposal.fee_model == FeeModel.RETAINER:
        return {
            "fee_model": proposal.fee_model,
            "amount": str(proposal.retainer_amount),
            "currency": proposal.retainer_currency,
            "hours_included": (
                str(proposal.retainer_hours_included)
                if proposal.retainer_hours_included is not None else None
            ),
        }
    return {
        "fee_model": proposal.fee_model,
        "rate_note": proposal.hourly_rate_note,
    }


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_proposal_snapshot(proposal: Proposal) -> dict:
    """Denormalized view pushed to the portal read path."""
    return {
        "proposal_id": str(proposal.id),
        "number": proposal.number,
        "title": proposal.title,
        "customer_id": str(proposal.customer_id),
        "portal_contact_id": (
            str(proposal.portal_contact_id) if proposal.portal_contact_id else None
        ),
        "status": proposal.status,
        "fee_model": proposal.fee_model,
        "fee_summary": build_fee_summary(proposal),
        "sent_at": _iso(proposal.sent_at),
        "expires_at": _iso(proposal.expires_at),
        "accepted_at": _iso(proposal.accepted_at),
        "declined_at": _iso(proposal.declined_at),
        "decline_reason": proposal.decline_reason,
    }


def build_proposal_details(proposal: Proposal, **extra) -> dict:
    details = {
        "proposal_number": proposal.number,
        "customer_id": str(proposal.customer_id),
        "status": proposal.status,
        "fee_model": proposal.fee_model,
    }
    details.update(extra)
    return details


def build_declined_notification(proposal: Proposal) -> tuple[str, str]:
    title = f"Proposal {proposal.number} was declined"
    if proposal.decline_reason:
        body = f"Reason: {proposal.decline_reason}"
    else:
        body = "No reason provided"
    return title, body


def build_accepted_notification(proposal: Proposal) -> tuple[str, str]:
    return (
        f"Proposal {proposal.number} was accepted",
        f"A project has been created for \"{proposal.title}\".",
    )


def build_expired_notification(proposal: Proposal) -> tuple[str, str]:
    return (
        f"Proposal {proposal.number} has expired",
        f"\"{proposal.title}\" was not accepted before it expired.",
    )


def build_orchestration_failed_notification(proposal: Proposal, error: str) -> tuple[str, str]:
    return (
        f"Acceptance of proposal {proposal.number} failed",
        f"No changes were saved. Error: {error}",
    )
