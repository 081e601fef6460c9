"""
ProjectLifecycleGuard -- project close / lock / soft delete state machine.

Responsibility:
    Owns every lifecycle mutation of a Project row and the synchronous
    ``guard_write`` check that every financial child write path calls
    before touching revenue, expense, billing or collection rows.

Architecture position:
    Kernel > Services.  Consulted by FinancialRecordService; driven by
    callers that hold an authenticated actor id.

Invariants enforced:
    - A soft-deleted project rejects close / lock / unlock / status changes
      with ProjectDeletedError.  Only restore and permanent delete reach it.
    - A locked project rejects child writes with LockedProjectError.
    - is_locked, locked_at and locked_by_id change together.  Lock and
      unlock are compare-and-set UPDATEs on is_locked, so a repeated call
      is a no-op that does not rewrite the lock pair.
    - close sets status=closed and actual_end_date in the same flush.
    - Status moves follow PROJECT_WORKFLOW.
    - restore on a live project performs no write at all.

Failure modes:
    - ProjectNotFoundError: no such project.
    - ProjectDeletedError: project is soft-deleted.
    - LockedProjectError: child write under a locked project.
    - IllegalStatusTransitionError: move not in PROJECT_WORKFLOW.
    - PermissionDeniedError: the permission oracle refused the actor.
"""

from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.domain.permissions import Action, PermissionOracle
from revcon_kernel.domain.project_workflow import ProjectStatus, is_transition_allowed
from revcon_kernel.exceptions import (
    IllegalStatusTransitionError,
    LockedProjectError,
    PermissionDeniedError,
    ProjectDeletedError,
    ProjectNotFoundError,
)
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.audit_event import AuditAction
from revcon_kernel.models.billing import Billing
from revcon_kernel.models.collection import Collection
from revcon_kernel.models.expense import Expense
from revcon_kernel.models.project import Project
from revcon_kernel.models.revenue import Revenue
from revcon_kernel.services.auditor_service import AuditorService
from revcon_kernel.services.base import BaseService

logger = get_logger("services.lifecycle_guard")


class ProjectLifecycleGuard(BaseService[Project]):
    """
    Lifecycle state machine for projects.

    Contract:
        ``permissions`` is the boolean role oracle.  When it is None the
        caller has already authorized the actor and no check is made.
        ``auditor`` is optional; when present every mutation appends an
        audit event in the same transaction.  ``audited_actions`` narrows
        that to the listed actions; None means all of them.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        permissions: PermissionOracle | None = None,
        auditor: AuditorService | None = None,
        audited_actions: frozenset[AuditAction] | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._permissions = permissions
        self._auditor = auditor
        self._audited_actions = audited_actions

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def get(self, project_id: UUID) -> Project:
        """Return the project, deleted or not."""
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _get_live(self, project_id: UUID, operation: str) -> Project:
        project = self.get(project_id)
        if project.is_deleted:
            raise ProjectDeletedError(project_id, operation)
        return project

    def _authorize(self, actor_id: UUID, action: Action) -> None:
        if self._permissions is None:
            return
        if not self._permissions.is_allowed(actor_id, action):
            logger.warning(
                "permission_denied",
                extra={"actor_id": str(actor_id), "action": action.value},
            )
            raise PermissionDeniedError(actor_id, action.value)

    def _audit(
        self,
        project: Project,
        action: AuditAction,
        actor_id: UUID | None,
        payload: dict | None = None,
    ) -> None:
        if self._auditor is None:
            return
        if self._audited_actions is not None and action not in self._audited_actions:
            return
        data = {"code": project.code}
        data.update(payload or {})
        self._auditor.record_project_action(project.id, action, actor_id, data)

    # ------------------------------------------------------------------
    # Write guard
    # ------------------------------------------------------------------

    def guard_write(self, project_id: UUID) -> Project:
        """
        Admit or refuse a child record write under ``project_id``.

        Returns the project when the write may proceed.

        Raises:
            ProjectNotFoundError: no such project.
            ProjectDeletedError: project is soft-deleted.
            LockedProjectError: project is locked.
        """
        project = self._get_live(project_id, "write records under")
        if project.is_locked:
            logger.info(
                "locked_project_write_rejected",
                extra={"project_id": str(project_id), "project_code": project.code},
            )
            raise LockedProjectError(project_id, project.code)
        return project

    # ------------------------------------------------------------------
    # Close / lock / unlock
    # ------------------------------------------------------------------

    def close(self, project_id: UUID, actor_id: UUID) -> Project:
        """Set status=closed and actual_end_date=now in one flush."""
        self._authorize(actor_id, Action.CLOSE_LOCK_PROJECT)
        project = self._get_live(project_id, "close")

        previous = ProjectStatus(project.status)
        if not is_transition_allowed(previous, ProjectStatus.CLOSED):
            raise IllegalStatusTransitionError(
                project_id, previous.value, ProjectStatus.CLOSED.value
            )

        project.status = ProjectStatus.CLOSED
        project.actual_end_date = self._clock.now()
        project.updated_by_id = actor_id
        self.session.flush()

        self._audit(
            project,
            AuditAction.PROJECT_CLOSED,
            actor_id,
            {"from_status": previous.value},
        )
        logger.info(
            "project_closed",
            extra={
                "project_id": str(project_id),
                "from_status": previous.value,
                "actor_id": str(actor_id),
            },
        )
        return project

    def lock(self, project_id: UUID, actor_id: UUID) -> Project:
        """
        Lock the project against child writes.

        Locking an already-locked project returns it unchanged; locked_at
        and locked_by_id keep their original values.
        """
        self._authorize(actor_id, Action.CLOSE_LOCK_PROJECT)
        project = self._get_live(project_id, "lock")

        result = self.session.execute(
            update(Project)
            .where(Project.id == project_id, Project.is_locked.is_(False))
            .values(
                is_locked=True,
                locked_at=self._clock.now(),
                locked_by_id=actor_id,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(project)

        if result.rowcount == 0:
            logger.info(
                "project_already_locked",
                extra={"project_id": str(project_id)},
            )
            return project

        self._audit(project, AuditAction.PROJECT_LOCKED, actor_id)
        logger.info(
            "project_locked",
            extra={"project_id": str(project_id), "actor_id": str(actor_id)},
        )
        return project

    def unlock(self, project_id: UUID, actor_id: UUID) -> Project:
        """Clear is_locked, locked_at and locked_by_id together."""
        self._authorize(actor_id, Action.CLOSE_LOCK_PROJECT)
        project = self._get_live(project_id, "unlock")

        result = self.session.execute(
            update(Project)
            .where(Project.id == project_id, Project.is_locked.is_(True))
            .values(
                is_locked=False,
                locked_at=None,
                locked_by_id=None,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(project)

        if result.rowcount == 0:
            logger.info(
                "project_already_unlocked",
                extra={"project_id": str(project_id)},
            )
            return project

        self._audit(project, AuditAction.PROJECT_UNLOCKED, actor_id)
        logger.info(
            "project_unlocked",
            extra={"project_id": str(project_id), "actor_id": str(actor_id)},
        )
        return project

    # ------------------------------------------------------------------
    # Soft delete / restore / permanent delete
    # ------------------------------------------------------------------

    def soft_delete(self, project_id: UUID, actor_id: UUID | None = None) -> Project:
        """Mark the project deleted.  Child records are left in place."""
        project = self.get(project_id)
        if project.is_deleted:
            return project

        project.deleted_at = self._clock.now()
        if actor_id is not None:
            project.updated_by_id = actor_id
        self.session.flush()

        self._audit(project, AuditAction.PROJECT_SOFT_DELETED, actor_id)
        logger.info(
            "project_soft_deleted",
            extra={"project_id": str(project_id)},
        )
        return project

    def restore(self, project_id: UUID, actor_id: UUID | None = None) -> Project:
        """Clear deleted_at.  A live project is returned without any write."""
        project = self.get(project_id)
        if not project.is_deleted:
            return project

        project.deleted_at = None
        if actor_id is not None:
            project.updated_by_id = actor_id
        self.session.flush()

        self._audit(project, AuditAction.PROJECT_RESTORED, actor_id)
        logger.info(
            "project_restored",
            extra={"project_id": str(project_id)},
        )
        return project

    def permanent_delete(self, project_id: UUID, actor_id: UUID) -> None:
        """
        Physically remove the project and every child record.

        Collections go first, then billings, revenues and expenses, then the
        project itself, all in the caller's transaction.
        """
        self._authorize(actor_id, Action.DELETE_PROJECT)
        project = self.get(project_id)
        code = project.code

        counts = {}
        for model in (Collection, Billing, Revenue, Expense):
            result = self.session.execute(
                delete(model)
                .where(model.project_id == project_id)
                .execution_options(synchronize_session="fetch")
            )
            counts[model.__tablename__] = result.rowcount

        self._audit(project, AuditAction.PROJECT_PERMANENTLY_DELETED, actor_id, counts)
        self.session.delete(project)
        self.session.flush()

        logger.info(
            "project_permanently_deleted",
            extra={
                "project_id": str(project_id),
                "project_code": code,
                "actor_id": str(actor_id),
                **{f"deleted_{name}": n for name, n in counts.items()},
            },
        )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def transition_status(
        self,
        project_id: UUID,
        to_status: ProjectStatus | str,
        actor_id: UUID,
    ) -> Project:
        """
        Move the project to ``to_status`` if PROJECT_WORKFLOW allows it.

        Moving to ``closed`` goes through close().  Requesting the current
        status is a no-op.
        """
        target = ProjectStatus(to_status)
        if target == ProjectStatus.CLOSED:
            return self.close(project_id, actor_id)

        project = self._get_live(project_id, "change status of")
        current = ProjectStatus(project.status)
        if current == target:
            return project

        if not is_transition_allowed(current, target):
            logger.info(
                "illegal_status_transition_rejected",
                extra={
                    "project_id": str(project_id),
                    "from_status": current.value,
                    "to_status": target.value,
                },
            )
            raise IllegalStatusTransitionError(project_id, current.value, target.value)

        project.status = target
        project.updated_by_id = actor_id
        self.session.flush()

        self._audit(
            project,
            AuditAction.PROJECT_STATUS_CHANGED,
            actor_id,
            {"from_status": current.value, "to_status": target.value},
        )
        logger.info(
            "project_status_changed",
            extra={
                "project_id": str(project_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return project
