"""
PracticeOps Lifecycle — Guarded State Machine
===============================================
One transition table per stateful entity kind, checked before
any mutation. Entities never carry their own ad-hoc guards.

RULES:
- A transition outside the table raises InvalidState and the
  entity is left untouched.
- Terminal states have no outgoing transitions.
- Field edits on DRAFT-only entities call require_editable(),
  which raises Conflict outside the editable states.
- Advisory definitions (enforced=False) log violations instead
  of raising. Used for append-only ledgers.

This file contains NO persistence logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet

from core.errors import Conflict, InvalidState

logger = logging.getLogger("practiceops.lifecycle")


@dataclass(frozen=True)
class LifecycleDefinition:
    """
    Transition table for one entity kind.

    Fields:
        name:            entity kind (e.g. "Invoice")
        initial_state:   state every new entity starts in
        terminal_states: states with no way out
        transitions:     {from_state: frozenset(allowed targets)}
        editable_states: states in which field edits are allowed
        enforced:        False makes violations advisory (logged only)
    """
    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]
    editable_states: FrozenSet[str] = field(default_factory=frozenset)
    enforced: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("Lifecycle name must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )
        for state in self.terminal_states:
            if self.transitions.get(state):
                raise ValueError(
                    f"Terminal state '{state}' must not have outgoing transitions."
                )
        for targets in self.transitions.values():
            unknown = targets - set(self.transitions)
            if unknown:
                raise ValueError(
                    f"{self.name}: transition targets {sorted(unknown)} are not declared states."
                )

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.transitions.get(current, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def is_editable(self, state: str) -> bool:
        return state in self.editable_states

    def allowed_next_states(self, current: str) -> FrozenSet[str]:
        return self.transitions.get(current, frozenset())

    def require_transition(self, current: str, target: str, *, action: str) -> None:
        """Raise InvalidState unless current → target is in the table."""
        if self.can_transition(current, target):
            return
        allowed = sorted(self.allowed_next_states(current))
        message = (
            f"Cannot {action} {self.name}: {current} → {target} is not allowed. "
            f"Allowed: {allowed}."
        )
        if not self.enforced:
            logger.warning(f"Advisory lifecycle violation: {message}")
            return
        logger.error(message)
        raise InvalidState(action, current, message)

    def require_editable(self, current: str, *, action: str) -> None:
        """Raise Conflict unless the entity is in an editable state."""
        if self.is_editable(current):
            return
        raise Conflict(
            f"Cannot {action}: {self.name} is {current}, "
            f"editable only in {sorted(self.editable_states)}."
        )
