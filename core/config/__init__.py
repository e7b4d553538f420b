"""
PracticeOps Core Config — Public API
======================================
"""

from core.config.settings import WorkflowSettings

__all__ = [
    "WorkflowSettings",
]
