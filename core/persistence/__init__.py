"""
PracticeOps Persistence — Public API
======================================
"""

from core.persistence.gateway import (
    InMemoryPersistenceGateway,
    PersistenceGateway,
    load_or_raise,
)

__all__ = [
    "PersistenceGateway",
    "InMemoryPersistenceGateway",
    "load_or_raise",
]
