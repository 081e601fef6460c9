"""
Audit switches flowing from company settings into the kernel services.

Verifies:
- audit.enabled = false leaves the audit chain empty
- log_deletions / log_data_edits gate their own actions only
- Defaults audit everything
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from revcon_config import AuditConfig, parse_audit_config
from revcon_config.bridges import audited_actions, build_lifecycle_guard, build_record_service
from revcon_kernel.models.audit_event import AuditAction, AuditEvent
from tests.conftest import TEST_ACTOR_ID


def _actions(session) -> list[AuditAction]:
    return [
        AuditAction(a)
        for a in session.execute(select(AuditEvent.action).order_by(AuditEvent.seq)).scalars()
    ]


@pytest.fixture
def build(session, clock):
    def _build(config: AuditConfig):
        guard = build_lifecycle_guard(session, config, clock=clock)
        return guard, build_record_service(session, guard, config, clock=clock)

    return _build


def _exercise(guard, records, project) -> None:
    billing = records.create_billing(project.id, "INV-900", Decimal("100"), TEST_ACTOR_ID)
    records.update_billing(billing.id, TEST_ACTOR_ID, notes="sent by post")
    records.delete_billing(billing.id, TEST_ACTOR_ID)
    guard.lock(project.id, TEST_ACTOR_ID)
    guard.unlock(project.id, TEST_ACTOR_ID)
    guard.soft_delete(project.id, TEST_ACTOR_ID)


class TestAuditedActions:
    def test_disabled_audits_nothing(self):
        assert audited_actions(AuditConfig(enabled=False)) == frozenset()

    def test_defaults_audit_everything(self):
        assert audited_actions(AuditConfig()) == frozenset(AuditAction)

    def test_edits_off_keeps_deletes(self):
        actions = audited_actions(AuditConfig(log_data_edits=False))
        assert AuditAction.RECORD_DELETED in actions
        assert AuditAction.RECORD_CREATED not in actions
        assert AuditAction.PROJECT_LOCKED in actions


class TestBuiltServices:
    def test_audit_disabled_writes_no_events(self, session, build, project):
        guard, records = build(parse_audit_config({"enabled": False}))
        _exercise(guard, records, project)
        assert _actions(session) == []

    def test_defaults_record_every_write(self, session, build, project):
        guard, records = build(AuditConfig())
        _exercise(guard, records, project)
        assert _actions(session) == [
            AuditAction.RECORD_CREATED,
            AuditAction.RECORD_UPDATED,
            AuditAction.RECORD_DELETED,
            AuditAction.PROJECT_LOCKED,
            AuditAction.PROJECT_UNLOCKED,
            AuditAction.PROJECT_SOFT_DELETED,
        ]

    def test_deletions_off(self, session, build, project):
        guard, records = build(AuditConfig(log_deletions=False))
        _exercise(guard, records, project)
        assert _actions(session) == [
            AuditAction.RECORD_CREATED,
            AuditAction.RECORD_UPDATED,
            AuditAction.PROJECT_LOCKED,
            AuditAction.PROJECT_UNLOCKED,
        ]

    def test_edits_off(self, session, build, project):
        guard, records = build(AuditConfig(log_data_edits=False))
        _exercise(guard, records, project)
        assert AuditAction.RECORD_CREATED not in _actions(session)
        assert AuditAction.RECORD_DELETED in _actions(session)
