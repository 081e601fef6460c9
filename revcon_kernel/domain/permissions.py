"""
revcon_kernel.domain.permissions -- role -> action matrix.

Responsibility:
    Static permission table for the tracker's roles and the boolean check
    the lifecycle guard consults before close / lock / unlock / permanent
    delete.  Identity resolution (who the actor is, which role they hold)
    is the caller's concern; ``RolePermissionOracle`` in
    ``revcon_kernel.services.permission_oracle`` does it from the users table.

Invariants:
    - ``master_admin`` holds every action.
    - Every role may view reports.
    - Officer roles hold exactly their own record action plus view_reports.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol
from uuid import UUID


class Role(str, Enum):
    MASTER_ADMIN = "master_admin"
    SYSTEM_ADMIN = "system_admin"
    REVENUE_OFFICER = "revenue_officer"
    DISBURSING_OFFICER = "disbursing_officer"
    BILLING_OFFICER = "billing_officer"
    COLLECTING_OFFICER = "collecting_officer"
    VIEWER = "viewer"


class Action(str, Enum):
    REVENUE = "revenue"
    EXPENSES = "expenses"
    BILLING = "billing"
    COLLECTION = "collection"
    APPROVE = "approve"
    CLOSE_LOCK_PROJECT = "close_lock_project"
    DELETE_PROJECT = "delete_project"
    VIEW_REPORTS = "view_reports"


ROLE_PERMISSIONS: dict[Role, frozenset[Action]] = {
    Role.MASTER_ADMIN: frozenset(Action),
    Role.SYSTEM_ADMIN: frozenset(
        {Action.APPROVE, Action.CLOSE_LOCK_PROJECT, Action.VIEW_REPORTS}
    ),
    Role.REVENUE_OFFICER: frozenset({Action.REVENUE, Action.VIEW_REPORTS}),
    Role.DISBURSING_OFFICER: frozenset({Action.EXPENSES, Action.VIEW_REPORTS}),
    Role.BILLING_OFFICER: frozenset({Action.BILLING, Action.VIEW_REPORTS}),
    Role.COLLECTING_OFFICER: frozenset({Action.COLLECTION, Action.VIEW_REPORTS}),
    Role.VIEWER: frozenset({Action.VIEW_REPORTS}),
}


def has_permission(role: Role | str | None, action: Action | str) -> bool:
    """Return True iff ``role`` grants ``action``.  Unknown roles grant nothing."""
    if role is None:
        return False
    try:
        role_enum = Role(role)
        action_enum = Action(action)
    except ValueError:
        return False
    return action_enum in ROLE_PERMISSIONS.get(role_enum, frozenset())


class PermissionOracle(Protocol):
    """Boolean permission check consulted by the lifecycle guard."""

    def is_allowed(self, actor_id: UUID, action: Action) -> bool: ...


class StaticRoleOracle:
    """Oracle over a fixed actor -> role mapping (scripts, tests)."""

    def __init__(self, roles: dict[UUID, Role | str]):
        self._roles = dict(roles)

    def is_allowed(self, actor_id: UUID, action: Action) -> bool:
        return has_permission(self._roles.get(actor_id), action)
