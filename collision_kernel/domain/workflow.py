"""
Canonical workflow types (``collision_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines plus the two checks the
services run before mutating a status column: ``can_transition`` and
``require_transition``.  Part lines and purchase orders are both driven
by these definitions; no service compares status strings directly.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from collision_kernel.exceptions import InvalidStateTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow {self.name}: initial_state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.from_state!r} -> "
                    f"{t.to_state!r} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has an outgoing transition"
                )

    def transitions_from(self, state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)

    def find(self, from_state: str, to_state: str, action: str | None = None) -> Transition | None:
        for t in self.transitions:
            if t.from_state != from_state or t.to_state != to_state:
                continue
            if action is None or t.action == action:
                return t
        return None


def _state(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else value


def can_transition(
    workflow: Workflow,
    from_state: str | Enum,
    to_state: str | Enum,
    action: str | None = None,
) -> bool:
    return workflow.find(_state(from_state), _state(to_state), action) is not None


def require_transition(
    workflow: Workflow,
    from_state: str | Enum,
    to_state: str | Enum,
    *,
    entity: str,
    entity_id: object,
    action: str | None = None,
) -> Transition:
    """Return the matching transition or raise InvalidStateTransitionError."""
    transition = workflow.find(_state(from_state), _state(to_state), action)
    if transition is None:
        raise InvalidStateTransitionError(
            entity=entity,
            entity_id=entity_id,
            from_state=_state(from_state),
            to_state=_state(to_state),
            action=action,
        )
    return transition
