"""
PracticeOps Policy — Rejection Model
======================================
Structured reasons returned by domain policies.

A policy function returns RejectionReason | None. Services turn a
rejection into the matching workflow error. Every rejection is:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    """
    Fields:
        code:        machine-readable code (e.g. 'MILESTONE_SUM_INVALID')
        message:     human-readable explanation
        policy_name: policy that produced the rejection
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


class ReasonCode:
    """Known rejection codes. Convention: SCREAMING_SNAKE_CASE."""

    # ── Fee configuration ─────────────────────────────────────
    FIXED_FEE_REQUIRED = "FIXED_FEE_REQUIRED"
    RETAINER_AMOUNT_REQUIRED = "RETAINER_AMOUNT_REQUIRED"
    INVALID_FEE_MODEL = "INVALID_FEE_MODEL"

    # ── Milestones ────────────────────────────────────────────
    MILESTONES_REQUIRE_FIXED_FEE = "MILESTONES_REQUIRE_FIXED_FEE"
    MILESTONE_DESCRIPTION_REQUIRED = "MILESTONE_DESCRIPTION_REQUIRED"
    MILESTONE_PERCENTAGE_INVALID = "MILESTONE_PERCENTAGE_INVALID"
    MILESTONE_SUM_INVALID = "MILESTONE_SUM_INVALID"

    # ── Team / content ────────────────────────────────────────
    DUPLICATE_TEAM_MEMBER = "DUPLICATE_TEAM_MEMBER"
    CONTENT_REQUIRED = "CONTENT_REQUIRED"

    # ── Invoices ──────────────────────────────────────────────
    NO_LINE_ITEMS = "NO_LINE_ITEMS"
