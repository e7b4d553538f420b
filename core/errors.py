"""
PracticeOps Core — Workflow Errors
====================================
The error taxonomy shared by every workflow engine.

NotFound      — referenced entity absent (404-equivalent).
Conflict      — valid entity, wrong lifecycle state for the operation,
                or a guarded mutation on a non-editable entity.
InvalidState  — transition not permitted by the lifecycle table.
                Never retried: indicates a logic or double-submit bug.
Mismatch      — acting party is not the party bound to the entity.

All are raised synchronously inside the enclosing unit of work and
cause a full rollback of that unit.
"""

from __future__ import annotations

from typing import Any, Optional


class WorkflowError(Exception):
    """Base error for workflow engine operations."""
    pass


class NotFound(WorkflowError):
    """Referenced entity does not exist in the active tenant."""

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class Conflict(WorkflowError):
    """Operation is not allowed in the entity's current state."""
    pass


class InvalidState(WorkflowError):
    """Attempted action is not permitted from the current state."""

    def __init__(
        self,
        action: str,
        current_state: str,
        message: Optional[str] = None,
    ):
        self.action = action
        self.current_state = current_state
        super().__init__(
            message or f"Cannot {action}: current state is {current_state}."
        )


class Mismatch(WorkflowError):
    """Acting party does not match the party bound to the entity."""
    pass


class TenantContextMissing(WorkflowError):
    """An operation required a bound TenantContext and none was present."""

    def __init__(self):
        super().__init__("No TenantContext is bound for this operation.")
