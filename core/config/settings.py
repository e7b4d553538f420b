"""
PracticeOps Core Config — Workflow Settings
=============================================
Numbering prefixes, padding and date defaults used by the engines.

Values come from Django's settings.PRACTICEOPS when Django is
configured, otherwise from the defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from core.sequences.policy import MIN_PADDING, SequencePolicy, default_policies


@dataclass(frozen=True)
class WorkflowSettings:
    invoice_prefix: str = "INV-"
    proposal_prefix: str = "PROP-"
    number_padding: int = MIN_PADDING
    default_due_days: int = 30
    default_currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.number_padding, int) or self.number_padding < MIN_PADDING:
            raise ValueError(f"number_padding must be int >= {MIN_PADDING}.")
        if not isinstance(self.default_due_days, int) or self.default_due_days < 0:
            raise ValueError("default_due_days must be int >= 0.")
        if not self.default_currency or len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO code.")

    def sequence_policies(self) -> tuple[SequencePolicy, ...]:
        return default_policies(
            invoice_prefix=self.invoice_prefix,
            proposal_prefix=self.proposal_prefix,
            padding=self.number_padding,
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> WorkflowSettings:
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown workflow settings: {sorted(unknown)}")
        return cls(**dict(values))

    @classmethod
    def from_django_settings(cls) -> WorkflowSettings:
        from django.conf import settings

        if not settings.configured:
            return cls()
        return cls.from_mapping(getattr(settings, "PRACTICEOPS", {}))
