"""PracticeOps Proposals - policies."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from core.policy.rejection import ReasonCode, RejectionReason
from engines.proposals.models import FeeModel

EXACTLY_HUNDRED = Decimal("100.00")


def fee_configuration_must_be_valid_policy(
    fee_model: str,
    *,
    fixed_fee_amount: Optional[Decimal],
    retainer_amount: Optional[Decimal],
) -> RejectionReason | None:
    if fee_model == FeeModel.FIXED and (fixed_fee_amount is None or fixed_fee_amount <= 0):
        return RejectionReason(
            code=ReasonCode.FIXED_FEE_REQUIRED,
            message="Fixed fee amount must be greater than zero for FIXED proposals.",
            policy_name="fee_configuration_must_be_valid_policy",
        )
    if fee_model == FeeModel.RETAINER and (retainer_amount is None or retainer_amount <= 0):
        return RejectionReason(
            code=ReasonCode.RETAINER_AMOUNT_REQUIRED,
            message="Retainer amount must be greater than zero for RETAINER proposals.",
            policy_name="fee_configuration_must_be_valid_policy",
        )
    return None


def milestones_require_fixed_fee_policy(fee_model: str) -> RejectionReason | None:
    if fee_model != FeeModel.FIXED:
        return RejectionReason(
            code=ReasonCode.MILESTONES_REQUIRE_FIXED_FEE,
            message="Milestones are only supported for FIXED fee proposals.",
            policy_name="milestones_require_fixed_fee_policy",
        )
    return None


def milestone_entries_must_be_valid_policy(
    entries: Iterable[tuple[str, Decimal]],
) -> RejectionReason | None:
    """entries: (description, percentage) pairs."""
    for index, (description, percentage) in enumerate(entries, start=1):
        if not description or not description.strip():
            return RejectionReason(
                code=ReasonCode.MILESTONE_DESCRIPTION_REQUIRED,
                message=f"Milestone {index} description must not be blank.",
                policy_name="milestone_entries_must_be_valid_policy",
            )
        if percentage is None or Decimal(percentage) <= 0:
            return RejectionReason(
                code=ReasonCode.MILESTONE_PERCENTAGE_INVALID,
                message=f"Milestone {index} percentage must be greater than zero.",
                policy_name="milestone_entries_must_be_valid_policy",
            )
    return None


def milestone_percentages_must_sum_to_hundred_policy(
    percentages: Iterable[Decimal],
) -> RejectionReason | None:
    values = [Decimal(p) for p in percentages]
    if not values:
        return None
    total = sum(values, Decimal("0"))
    if total != EXACTLY_HUNDRED:
        return RejectionReason(
            code=ReasonCode.MILESTONE_SUM_INVALID,
            message=f"Milestone percentages must sum to exactly 100.00, got {total}",
            policy_name="milestone_percentages_must_sum_to_hundred_policy",
        )
    return None


def team_members_must_be_unique_policy(member_ids: Sequence[Any]) -> RejectionReason | None:
    seen = set()
    for member_id in member_ids:
        if member_id is None or member_id in seen:
            return RejectionReason(
                code=ReasonCode.DUPLICATE_TEAM_MEMBER,
                message=f"Team member list contains a missing or duplicate member: {member_id}",
                policy_name="team_members_must_be_unique_policy",
            )
        seen.add(member_id)
    return None


def proposal_content_must_be_present_policy(content: Optional[dict]) -> RejectionReason | None:
    if not content:
        return RejectionReason(
            code=ReasonCode.CONTENT_REQUIRED,
            message="Proposal content must not be empty before sending.",
            policy_name="proposal_content_must_be_present_policy",
        )
    return None
