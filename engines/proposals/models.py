"""
PracticeOps Proposals — Entities
==================================
Proposal, ProposalMilestone and ProposalTeamMember.

RULES:
- A proposal is editable only while DRAFT.
- ACCEPTED, DECLINED and EXPIRED are terminal.
- Milestones exist only for FIXED fee proposals; their percentages
  sum to exactly 100.00.
- A proposal owns its milestones and team members.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from core.lifecycle.definitions import PROPOSAL_LIFECYCLE, ProposalStatus


class FeeModel:
    FIXED = "FIXED"
    HOURLY = "HOURLY"
    RETAINER = "RETAINER"


VALID_FEE_MODELS = frozenset({FeeModel.FIXED, FeeModel.HOURLY, FeeModel.RETAINER})

# Fields a DRAFT proposal may change after creation.
EDITABLE_FIELDS = frozenset({
    "title",
    "fee_model",
    "fixed_fee_amount",
    "fixed_fee_currency",
    "hourly_rate_note",
    "retainer_amount",
    "retainer_currency",
    "retainer_hours_included",
    "content",
    "project_template_id",
    "expires_at",
})


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be a timezone-aware datetime.")


@dataclass
class Proposal:
    id: uuid.UUID
    number: str
    title: str
    customer_id: uuid.UUID
    fee_model: str
    status: str = ProposalStatus.DRAFT
    portal_contact_id: Optional[uuid.UUID] = None
    fixed_fee_amount: Optional[Decimal] = None
    fixed_fee_currency: str = "USD"
    hourly_rate_note: Optional[str] = None
    retainer_amount: Optional[Decimal] = None
    retainer_currency: str = "USD"
    retainer_hours_included: Optional[Decimal] = None
    content: Dict[str, Any] = field(default_factory=dict)
    project_template_id: Optional[uuid.UUID] = None
    sent_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    expired_at: Optional[datetime] = None
    created_project_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("Proposal title must be non-empty.")
        if self.fee_model not in VALID_FEE_MODELS:
            raise ValueError(
                f"fee_model '{self.fee_model}' is not valid. "
                f"Must be one of: {sorted(VALID_FEE_MODELS)}"
            )
        if self.status not in PROPOSAL_LIFECYCLE.states:
            raise ValueError(f"Unknown proposal status '{self.status}'.")
        if self.expires_at is not None:
            _require_aware(self.expires_at, "expires_at")

    def is_editable(self) -> bool:
        return PROPOSAL_LIFECYCLE.is_editable(self.status)

    def require_editable(self, action: str) -> None:
        PROPOSAL_LIFECYCLE.require_editable(self.status, action=action)

    def apply_changes(self, changes: Dict[str, Any]) -> None:
        """Guarded field edit. Only EDITABLE_FIELDS, only while DRAFT."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        self.require_editable("edit proposal")
        for name, value in changes.items():
            setattr(self, name, value)
        self.__post_init__()

    # ── Lifecycle ─────────────────────────────────────────────

    def mark_sent(
        self,
        portal_contact_id: uuid.UUID,
        at: datetime,
        expires_at: Optional[datetime] = None,
    ) -> None:
        PROPOSAL_LIFECYCLE.require_transition(self.status, ProposalStatus.SENT, action="send")
        if expires_at is not None:
            _require_aware(expires_at, "expires_at")
        self.portal_contact_id = portal_contact_id
        self.sent_at = at
        if expires_at is not None:
            self.expires_at = expires_at
        self.status = ProposalStatus.SENT

    def mark_accepted(self, at: datetime) -> None:
        PROPOSAL_LIFECYCLE.require_transition(self.status, ProposalStatus.ACCEPTED, action="accept")
        self.accepted_at = at
        self.status = ProposalStatus.ACCEPTED

    def mark_declined(self, at: datetime, reason: Optional[str] = None) -> None:
        PROPOSAL_LIFECYCLE.require_transition(self.status, ProposalStatus.DECLINED, action="decline")
        self.declined_at = at
        self.decline_reason = reason
        self.status = ProposalStatus.DECLINED

    def mark_expired(self, at: datetime) -> None:
        PROPOSAL_LIFECYCLE.require_transition(self.status, ProposalStatus.EXPIRED, action="expire")
        self.expired_at = at
        self.status = ProposalStatus.EXPIRED

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


@dataclass
class ProposalMilestone:
    id: uuid.UUID
    proposal_id: uuid.UUID
    description: str
    percentage: Decimal
    relative_due_days: int
    sort_order: int = 0
    invoice_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        self.percentage = Decimal(self.percentage)
        if not isinstance(self.relative_due_days, int) or self.relative_due_days < 0:
            raise ValueError("relative_due_days must be int >= 0.")


@dataclass
class ProposalTeamMember:
    id: uuid.UUID
    proposal_id: uuid.UUID
    member_id: uuid.UUID
    role: Optional[str] = None
    sort_order: int = 0
