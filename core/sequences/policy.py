"""
PracticeOps Sequences — Sequence Policy
=========================================
How a document kind's counter is formatted.

Doctrine:
- Same policy + counter value → same document number.
- Fixed prefix plus a zero-padded number, minimum width 4.
- Numbers are never reused, even after a void or a deleted draft.
"""

from __future__ import annotations

from dataclasses import dataclass

KIND_INVOICE = "invoice"
KIND_PROPOSAL = "proposal"

VALID_SEQUENCE_KINDS = frozenset({KIND_INVOICE, KIND_PROPOSAL})

MIN_PADDING = 4


@dataclass(frozen=True)
class SequencePolicy:
    """
    Fields:
        kind:     document kind (invoice / proposal)
        prefix:   prepended before the number (e.g. "INV-")
        padding:  minimum digit width, at least 4
        start_at: first number issued for a fresh tenant
    """
    kind: str
    prefix: str
    padding: int = MIN_PADDING
    start_at: int = 1

    def __post_init__(self):
        if self.kind not in VALID_SEQUENCE_KINDS:
            raise ValueError(
                f"kind '{self.kind}' is not valid. "
                f"Must be one of: {sorted(VALID_SEQUENCE_KINDS)}"
            )
        if not isinstance(self.prefix, str):
            raise ValueError("prefix must be a string.")
        if not isinstance(self.padding, int) or self.padding < MIN_PADDING:
            raise ValueError(f"padding must be int >= {MIN_PADDING}.")
        if not isinstance(self.start_at, int) or self.start_at < 1:
            raise ValueError("start_at must be int >= 1.")

    def format_number(self, sequence: int) -> str:
        """e.g. 7 → "PROP-0007"; 12345 → "INV-12345"."""
        if not isinstance(sequence, int) or sequence < 1:
            raise ValueError("sequence must be int >= 1.")
        return f"{self.prefix}{str(sequence).zfill(self.padding)}"


def default_policies(
    *,
    invoice_prefix: str = "INV-",
    proposal_prefix: str = "PROP-",
    padding: int = MIN_PADDING,
) -> tuple[SequencePolicy, ...]:
    return (
        SequencePolicy(kind=KIND_INVOICE, prefix=invoice_prefix, padding=padding),
        SequencePolicy(kind=KIND_PROPOSAL, prefix=proposal_prefix, padding=padding),
    )
