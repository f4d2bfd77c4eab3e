"""
Canonical workflow types (``custody_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  The assignment, transfer
and return-batch modules declare their lifecycles as explicit transition
tables built from these types, and every status write is checked by the
single ``assert_transition`` function below.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* A status write not present in the table fails with
  ``InvalidTransitionError`` before any permission or storage check.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from custody_kernel.exceptions import InvalidTransitionError


def _state_value(state: str | Enum) -> str:
    return state.value if isinstance(state, Enum) else state


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``moves_custody=True`` marks transitions that write
    the item's holder/availability/custody fields in the same transaction.
    ``requires_document`` names the signed document kind that gates it.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_custody: bool = False
    requires_document: str | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a custody episode.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )

    def allowed_next(self, state: str | Enum) -> tuple[str, ...]:
        """States reachable from ``state`` in one step, in table order."""
        current = _state_value(state)
        seen: list[str] = []
        for t in self.transitions:
            if t.from_state == current and t.to_state not in seen:
                seen.append(t.to_state)
        return tuple(seen)

    def can_transition(self, from_state: str | Enum, to_state: str | Enum) -> bool:
        return _state_value(to_state) in self.allowed_next(from_state)

    def is_terminal(self, state: str | Enum) -> bool:
        return _state_value(state) in self.terminal_states

    def open_states(self) -> tuple[str, ...]:
        """Every non-terminal state."""
        return tuple(s for s in self.states if s not in self.terminal_states)

    def as_table(self) -> dict[str, tuple[str, ...]]:
        """The status flow as a plain mapping of state to allowed next states."""
        return {s: self.allowed_next(s) for s in self.states}


def assert_transition(
    workflow: Workflow,
    from_state: str | Enum,
    to_state: str | Enum,
) -> None:
    """Raise ``InvalidTransitionError`` unless the table allows the move."""
    if not workflow.can_transition(from_state, to_state):
        raise InvalidTransitionError(
            workflow.name,
            _state_value(from_state),
            _state_value(to_state),
        )
