"""
PracticeOps Policy — Public API
=================================
Policies are plain functions returning RejectionReason | None.
"""

from core.policy.rejection import ReasonCode, RejectionReason

__all__ = [
    "RejectionReason",
    "ReasonCode",
]
