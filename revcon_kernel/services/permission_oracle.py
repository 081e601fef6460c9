"""
RolePermissionOracle -- permission checks backed by the users table.

Resolves the actor's role from ``users.role`` and consults the static
matrix in ``revcon_kernel.domain.permissions``.  An unknown or inactive
actor is denied everything.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from revcon_kernel.domain.permissions import Action, has_permission
from revcon_kernel.models.user import User


class RolePermissionOracle:
    def __init__(self, session: Session):
        self._session = session

    def is_allowed(self, actor_id: UUID, action: Action) -> bool:
        user = self._session.get(User, actor_id)
        if user is None or not user.is_active:
            return False
        return has_permission(user.role, action)
