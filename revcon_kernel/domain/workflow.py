"""
Canonical workflow types (``revcon_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines.  The project lifecycle table
is declared with these types so that legal moves are data, not scattered
``if`` checks in services.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions.

All three are checked by ``validate_workflow``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  The service performing the
    transition evaluates it.
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
    """A state machine definition for a record lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition from ``from_state`` to ``to_state``, if declared."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def targets_from(self, from_state: str) -> frozenset[str]:
        """All states reachable in one step from ``from_state``."""
        return frozenset(
            t.to_state for t in self.transitions if t.from_state == from_state
        )


def validate_workflow(workflow: Workflow) -> list[str]:
    """Return a list of structural problems (empty when the workflow is sound)."""
    errors: list[str] = []
    states = set(workflow.states)

    if workflow.initial_state not in states:
        errors.append(
            f"{workflow.name}: initial state '{workflow.initial_state}' not in states"
        )

    for t in workflow.transitions:
        if t.from_state not in states:
            errors.append(f"{workflow.name}: unknown from_state '{t.from_state}'")
        if t.to_state not in states:
            errors.append(f"{workflow.name}: unknown to_state '{t.to_state}'")
        if t.from_state in workflow.terminal_states:
            errors.append(
                f"{workflow.name}: terminal state '{t.from_state}' has outgoing "
                f"transition '{t.action}'"
            )

    return errors
