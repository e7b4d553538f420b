"""
PracticeOps Core Audit — Public API
=====================================
"""

from core.audit.log import AuditEntry, AuditLog

__all__ = [
    "AuditEntry",
    "AuditLog",
]
