"""
PracticeOps Sequences — Public API
====================================
The Django model lives in core.sequences.models and is loaded by the
app registry, not imported here.
"""

from core.sequences.allocator import (
    DatabaseSequenceAllocator,
    InMemorySequenceAllocator,
    SequenceAllocator,
)
from core.sequences.policy import (
    KIND_INVOICE,
    KIND_PROPOSAL,
    MIN_PADDING,
    VALID_SEQUENCE_KINDS,
    SequencePolicy,
    default_policies,
)

__all__ = [
    "SequencePolicy",
    "default_policies",
    "KIND_INVOICE",
    "KIND_PROPOSAL",
    "MIN_PADDING",
    "VALID_SEQUENCE_KINDS",
    "SequenceAllocator",
    "InMemorySequenceAllocator",
    "DatabaseSequenceAllocator",
]
