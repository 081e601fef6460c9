"""
Tests for revcon_kernel.services.lifecycle_guard.

Covers guard_write, close/lock/unlock, soft delete and restore, permanent
delete (with cascade), and workflow-checked status transitions.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from revcon_kernel.domain.permissions import Role, StaticRoleOracle
from revcon_kernel.domain.project_workflow import ProjectStatus
from revcon_kernel.exceptions import (
    IllegalStatusTransitionError,
    LockedProjectError,
    PermissionDeniedError,
    ProjectDeletedError,
    ProjectNotFoundError,
)
from revcon_kernel.models.audit_event import AuditAction
from revcon_kernel.models.billing import Billing
from revcon_kernel.models.collection import Collection
from revcon_kernel.models.expense import Expense
from revcon_kernel.models.project import Project
from revcon_kernel.models.revenue import Revenue
from revcon_kernel.services.lifecycle_guard import ProjectLifecycleGuard
from tests.conftest import TEST_ACTOR_ID


def _count(session, model, **filters) -> int:
    stmt = select(func.count()).select_from(model)
    for name, value in filters.items():
        stmt = stmt.where(getattr(model, name) == value)
    return session.execute(stmt).scalar_one()


# =============================================================================
# guard_write
# =============================================================================


class TestGuardWrite:
    def test_live_unlocked_project_is_admitted(self, guard, project):
        assert guard.guard_write(project.id).id == project.id

    def test_missing_project_raises_not_found(self, guard, db_engine):
        with pytest.raises(ProjectNotFoundError) as exc_info:
            guard.guard_write(uuid4())
        assert exc_info.value.code == "PROJECT_NOT_FOUND"

    def test_soft_deleted_project_raises_deleted(self, guard, project):
        guard.soft_delete(project.id, TEST_ACTOR_ID)
        with pytest.raises(ProjectDeletedError) as exc_info:
            guard.guard_write(project.id)
        # Deleted is a specialization of not-found
        assert isinstance(exc_info.value, ProjectNotFoundError)
        assert exc_info.value.code == "PROJECT_DELETED"

    def test_locked_project_raises_locked(self, guard, project):
        guard.lock(project.id, TEST_ACTOR_ID)
        with pytest.raises(LockedProjectError) as exc_info:
            guard.guard_write(project.id)
        assert exc_info.value.project_code == "PRJ-MAIN"

    def test_unlocked_again_is_admitted(self, guard, project):
        guard.lock(project.id, TEST_ACTOR_ID)
        guard.unlock(project.id, TEST_ACTOR_ID)
        guard.guard_write(project.id)


# =============================================================================
# Lock / unlock
# =============================================================================


class TestLock:
    def test_lock_sets_flag_timestamp_and_actor(self, guard, project, clock):
        locked = guard.lock(project.id, TEST_ACTOR_ID)
        assert locked.is_locked is True
        assert locked.locked_at == clock.now()
        assert locked.locked_by_id == TEST_ACTOR_ID

    def test_relock_keeps_original_lock_pair(self, guard, project, clock):
        first = guard.lock(project.id, TEST_ACTOR_ID)
        original_at = first.locked_at

        clock.advance(3600)
        other_actor = uuid4()
        second = guard.lock(project.id, other_actor)

        assert second.locked_at == original_at
        assert second.locked_by_id == TEST_ACTOR_ID

    def test_unlock_clears_all_three_fields(self, guard, project):
        guard.lock(project.id, TEST_ACTOR_ID)
        unlocked = guard.unlock(project.id, TEST_ACTOR_ID)
        assert unlocked.is_locked is False
        assert unlocked.locked_at is None
        assert unlocked.locked_by_id is None

    def test_unlock_of_unlocked_project_is_noop(self, guard, project, captured_logs):
        guard.unlock(project.id, TEST_ACTOR_ID)
        messages = [r["message"] for r in captured_logs()]
        assert "project_already_unlocked" in messages
        assert "project_unlocked" not in messages

    def test_lock_deleted_project_raises(self, guard, project):
        guard.soft_delete(project.id)
        with pytest.raises(ProjectDeletedError):
            guard.lock(project.id, TEST_ACTOR_ID)

    def test_lock_missing_project_raises(self, guard, db_engine):
        with pytest.raises(ProjectNotFoundError):
            guard.lock(uuid4(), TEST_ACTOR_ID)


# =============================================================================
# Close
# =============================================================================


class TestClose:
    def test_close_sets_status_and_actual_end_date(self, guard, project, clock):
        closed = guard.close(project.id, TEST_ACTOR_ID)
        assert closed.status == ProjectStatus.CLOSED
        assert closed.actual_end_date == clock.now()
        assert closed.updated_by_id == TEST_ACTOR_ID

    @pytest.mark.parametrize(
        "status", [ProjectStatus.PENDING, ProjectStatus.ONGOING, ProjectStatus.COMPLETED],
    )
    def test_close_allowed_from_open_statuses(self, guard, make_project, status):
        p = make_project(status=status)
        assert guard.close(p.id, TEST_ACTOR_ID).status == ProjectStatus.CLOSED

    def test_close_twice_is_illegal(self, guard, project):
        guard.close(project.id, TEST_ACTOR_ID)
        with pytest.raises(IllegalStatusTransitionError) as exc_info:
            guard.close(project.id, TEST_ACTOR_ID)
        assert exc_info.value.from_status == "closed"

    def test_close_cancelled_is_illegal(self, guard, make_project):
        p = make_project(status=ProjectStatus.CANCELLED)
        with pytest.raises(IllegalStatusTransitionError):
            guard.close(p.id, TEST_ACTOR_ID)

    def test_close_missing_project_raises(self, guard, db_engine):
        with pytest.raises(ProjectNotFoundError):
            guard.close(uuid4(), TEST_ACTOR_ID)


# =============================================================================
# Permissions
# =============================================================================


class TestPermissions:
    @pytest.fixture
    def checked_guard(self, session, clock, role_oracle):
        return ProjectLifecycleGuard(session, clock=clock, permissions=role_oracle)

    def test_admin_may_close_and_lock(self, checked_guard, project):
        checked_guard.lock(project.id, TEST_ACTOR_ID)
        checked_guard.close(project.id, TEST_ACTOR_ID)

    def test_unknown_actor_is_denied(self, checked_guard, project):
        with pytest.raises(PermissionDeniedError) as exc_info:
            checked_guard.lock(project.id, uuid4())
        assert exc_info.value.action == "close_lock_project"

    def test_system_admin_cannot_permanently_delete(self, session, clock, project):
        admin = uuid4()
        guard = ProjectLifecycleGuard(
            session, clock=clock,
            permissions=StaticRoleOracle({admin: Role.SYSTEM_ADMIN}),
        )
        with pytest.raises(PermissionDeniedError):
            guard.permanent_delete(project.id, admin)
        assert session.get(Project, project.id) is not None

    def test_denied_close_leaves_project_untouched(self, checked_guard, project):
        with pytest.raises(PermissionDeniedError):
            checked_guard.close(project.id, uuid4())
        assert project.status == ProjectStatus.ONGOING


# =============================================================================
# Soft delete / restore
# =============================================================================


class TestSoftDeleteRestore:
    def test_soft_delete_sets_deleted_at(self, guard, project, clock):
        deleted = guard.soft_delete(project.id, TEST_ACTOR_ID)
        assert deleted.deleted_at == clock.now()
        assert deleted.is_deleted

    def test_soft_delete_leaves_children(self, guard, project, make_billing, session):
        make_billing(project)
        guard.soft_delete(project.id)
        assert _count(session, Billing, project_id=project.id) == 1

    def test_soft_delete_twice_keeps_first_timestamp(self, guard, project, clock):
        first = guard.soft_delete(project.id).deleted_at
        clock.advance(60)
        assert guard.soft_delete(project.id).deleted_at == first

    def test_restore_clears_deleted_at(self, guard, project):
        guard.soft_delete(project.id)
        restored = guard.restore(project.id, TEST_ACTOR_ID)
        assert restored.deleted_at is None
        guard.guard_write(project.id)

    def test_restore_of_live_project_writes_nothing(self, guard, project, session, clock, captured_logs):
        session.refresh(project)
        updated_before = project.updated_at

        clock.advance(3600)
        restored = guard.restore(project.id, TEST_ACTOR_ID)
        session.refresh(restored)

        assert restored.deleted_at is None
        assert restored.updated_at == updated_before
        assert restored.updated_by_id is None
        assert "project_restored" not in [r["message"] for r in captured_logs()]

    def test_restore_missing_project_raises(self, guard, db_engine):
        with pytest.raises(ProjectNotFoundError):
            guard.restore(uuid4())


# =============================================================================
# Permanent delete
# =============================================================================


class TestPermanentDelete:
    def test_cascades_to_every_child_kind(self, guard, records, project, session):
        billing = records.create_billing(project.id, "INV-100", Decimal("1000"), TEST_ACTOR_ID)
        records.create_collection(billing.id, "COL-100", Decimal("400"), TEST_ACTOR_ID)
        records.create_revenue(project.id, "REV-1", "Design fee", Decimal("2500"), TEST_ACTOR_ID)
        records.create_expense(project.id, "EXP-1", "Steel", Decimal("700"), TEST_ACTOR_ID)

        guard.permanent_delete(project.id, TEST_ACTOR_ID)

        assert session.get(Project, project.id) is None
        for model in (Billing, Collection, Revenue, Expense):
            assert _count(session, model, project_id=project.id) == 0

    def test_other_projects_untouched(self, guard, records, project, make_project, session):
        other = make_project()
        records.create_billing(other.id, "INV-OTHER", Decimal("10"), TEST_ACTOR_ID)

        guard.permanent_delete(project.id, TEST_ACTOR_ID)

        assert _count(session, Billing, project_id=other.id) == 1

    def test_general_expenses_survive(self, guard, records, project, session):
        records.create_expense(None, "EXP-GEN", "Office rent", Decimal("900"), TEST_ACTOR_ID)
        guard.permanent_delete(project.id, TEST_ACTOR_ID)
        assert _count(session, Expense) == 1

    def test_works_on_soft_deleted_project(self, guard, project, session):
        guard.soft_delete(project.id)
        guard.permanent_delete(project.id, TEST_ACTOR_ID)
        assert session.get(Project, project.id) is None

    def test_missing_project_raises(self, guard, db_engine):
        with pytest.raises(ProjectNotFoundError):
            guard.permanent_delete(uuid4(), TEST_ACTOR_ID)


# =============================================================================
# Status transitions
# =============================================================================


class TestTransitionStatus:
    def test_start_pending_project(self, guard, make_project):
        p = make_project(status=ProjectStatus.PENDING)
        assert guard.transition_status(p.id, "ongoing", TEST_ACTOR_ID).status == ProjectStatus.ONGOING

    def test_reopen_completed_project(self, guard, make_project):
        p = make_project(status=ProjectStatus.COMPLETED)
        guard.transition_status(p.id, ProjectStatus.ONGOING, TEST_ACTOR_ID)
        assert p.status == ProjectStatus.ONGOING

    def test_backwards_move_is_illegal(self, guard, project):
        with pytest.raises(IllegalStatusTransitionError) as exc_info:
            guard.transition_status(project.id, ProjectStatus.PENDING, TEST_ACTOR_ID)
        assert exc_info.value.to_status == "pending"

    def test_cancelled_is_terminal(self, guard, make_project):
        p = make_project(status=ProjectStatus.CANCELLED)
        with pytest.raises(IllegalStatusTransitionError):
            guard.transition_status(p.id, ProjectStatus.ONGOING, TEST_ACTOR_ID)

    def test_same_status_is_noop(self, guard, project, auditor):
        guard.transition_status(project.id, ProjectStatus.ONGOING, TEST_ACTOR_ID)
        assert auditor.get_trace("Project", project.id).is_empty

    def test_closed_target_goes_through_close(self, guard, project, clock):
        closed = guard.transition_status(project.id, ProjectStatus.CLOSED, TEST_ACTOR_ID)
        assert closed.actual_end_date == clock.now()

    def test_unknown_status_rejected(self, guard, project):
        with pytest.raises(ValueError):
            guard.transition_status(project.id, "archived", TEST_ACTOR_ID)


# =============================================================================
# Audit trail
# =============================================================================


class TestAudit:
    def test_lifecycle_actions_are_audited_in_order(self, guard, project, auditor):
        guard.lock(project.id, TEST_ACTOR_ID)
        guard.unlock(project.id, TEST_ACTOR_ID)
        guard.soft_delete(project.id, TEST_ACTOR_ID)
        guard.restore(project.id, TEST_ACTOR_ID)
        guard.close(project.id, TEST_ACTOR_ID)

        trace = auditor.get_trace("Project", project.id)
        assert trace.actions == (
            AuditAction.PROJECT_LOCKED,
            AuditAction.PROJECT_UNLOCKED,
            AuditAction.PROJECT_SOFT_DELETED,
            AuditAction.PROJECT_RESTORED,
            AuditAction.PROJECT_CLOSED,
        )
        assert auditor.validate_chain() is True

    def test_noop_relock_is_not_audited(self, guard, project, auditor):
        guard.lock(project.id, TEST_ACTOR_ID)
        guard.lock(project.id, TEST_ACTOR_ID)
        assert auditor.get_trace("Project", project.id).actions == (
            AuditAction.PROJECT_LOCKED,
        )

    def test_guard_without_auditor_still_works(self, session, clock, project):
        bare = ProjectLifecycleGuard(session, clock=clock)
        bare.lock(project.id, TEST_ACTOR_ID)
        assert project.is_locked
