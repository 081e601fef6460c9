"""
revcon_kernel.domain.project_workflow
=====================================

Responsibility:
    Declarative status state machine for projects.  The lifecycle guard
    consults this table for every status change; a move that is not listed
    here is rejected with ``IllegalStatusTransitionError``.

Architecture:
    Kernel domain layer.  Pure data declarations -- no I/O.

    pending  --start-->    ongoing
    pending  --cancel-->   cancelled
    ongoing  --complete--> completed
    ongoing  --cancel-->   cancelled
    completed--reopen-->   ongoing
    pending / ongoing / completed --close--> closed

    ``cancelled`` and ``closed`` are terminal.
"""

from __future__ import annotations

from enum import Enum

from revcon_kernel.domain.workflow import Guard, Transition, Workflow


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


# Statuses for which the end date still matters (ending-soon / overdue).
ACTIVE_STATUSES: frozenset[ProjectStatus] = frozenset(
    {ProjectStatus.PENDING, ProjectStatus.ONGOING}
)


_P = ProjectStatus

CLOSE_REQUIRES_PERMISSION = Guard(
    name="close_lock_permission",
    description="Actor role grants closeLockProject",
)

PROJECT_WORKFLOW = Workflow(
    name="project",
    description="Project status lifecycle",
    initial_state=_P.PENDING.value,
    states=tuple(s.value for s in ProjectStatus),
    transitions=(
        Transition(_P.PENDING.value, _P.ONGOING.value, action="start"),
        Transition(_P.PENDING.value, _P.CANCELLED.value, action="cancel"),
        Transition(_P.ONGOING.value, _P.COMPLETED.value, action="complete"),
        Transition(_P.ONGOING.value, _P.CANCELLED.value, action="cancel"),
        Transition(_P.COMPLETED.value, _P.ONGOING.value, action="reopen"),
        Transition(
            _P.PENDING.value, _P.CLOSED.value,
            action="close", guard=CLOSE_REQUIRES_PERMISSION,
        ),
        Transition(
            _P.ONGOING.value, _P.CLOSED.value,
            action="close", guard=CLOSE_REQUIRES_PERMISSION,
        ),
        Transition(
            _P.COMPLETED.value, _P.CLOSED.value,
            action="close", guard=CLOSE_REQUIRES_PERMISSION,
        ),
    ),
    terminal_states=(_P.CANCELLED.value, _P.CLOSED.value),
)


def _value(status: ProjectStatus | str) -> str:
    return status.value if isinstance(status, ProjectStatus) else str(status)


def is_transition_allowed(
    from_status: ProjectStatus | str,
    to_status: ProjectStatus | str,
) -> bool:
    """True iff ``from_status -> to_status`` is listed in PROJECT_WORKFLOW."""
    return PROJECT_WORKFLOW.find_transition(_value(from_status), _value(to_status)) is not None


def allowed_targets(from_status: ProjectStatus | str) -> frozenset[ProjectStatus]:
    return frozenset(
        ProjectStatus(s) for s in PROJECT_WORKFLOW.targets_from(_value(from_status))
    )
