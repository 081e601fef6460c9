"""
Config -> Kernel bridges.

Builds kernel services from company settings.  These live in revcon_config
because the kernel must NEVER import revcon_config.

Usage:
    from revcon_config.bridges import build_lifecycle_guard, build_record_service

    settings = CompanyProfileConfigSource(session).get_settings()
    guard = build_lifecycle_guard(session, settings.audit, clock=clock)
    records = build_record_service(session, guard, settings.audit, clock=clock)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from revcon_config.schema import AuditConfig
from revcon_kernel.domain.clock import Clock
from revcon_kernel.domain.permissions import PermissionOracle
from revcon_kernel.models.audit_event import AuditAction
from revcon_kernel.services.auditor_service import AuditorService
from revcon_kernel.services.financial_record_service import FinancialRecordService
from revcon_kernel.services.lifecycle_guard import ProjectLifecycleGuard

_PROJECT_DELETES = frozenset({
    AuditAction.PROJECT_SOFT_DELETED,
    AuditAction.PROJECT_PERMANENTLY_DELETED,
})
_PROJECT_LIFECYCLE = frozenset({
    AuditAction.PROJECT_CLOSED,
    AuditAction.PROJECT_LOCKED,
    AuditAction.PROJECT_UNLOCKED,
    AuditAction.PROJECT_RESTORED,
    AuditAction.PROJECT_STATUS_CHANGED,
})
_RECORD_EDITS = frozenset({AuditAction.RECORD_CREATED, AuditAction.RECORD_UPDATED})


def audited_actions(config: AuditConfig) -> frozenset[AuditAction]:
    """The audit actions the company has switched on."""
    if not config.enabled:
        return frozenset()
    actions = set(_PROJECT_LIFECYCLE)
    if config.log_deletions:
        actions |= _PROJECT_DELETES
        actions.add(AuditAction.RECORD_DELETED)
    if config.log_data_edits:
        actions |= _RECORD_EDITS
    return frozenset(actions)


def _auditor_for(
    session: Session, actions: frozenset[AuditAction], clock: Clock | None,
) -> AuditorService | None:
    return AuditorService(session, clock) if actions else None


def build_lifecycle_guard(
    session: Session,
    config: AuditConfig,
    clock: Clock | None = None,
    permissions: PermissionOracle | None = None,
) -> ProjectLifecycleGuard:
    actions = audited_actions(config)
    return ProjectLifecycleGuard(
        session,
        clock=clock,
        permissions=permissions,
        auditor=_auditor_for(session, actions, clock),
        audited_actions=actions,
    )


def build_record_service(
    session: Session,
    guard: ProjectLifecycleGuard,
    config: AuditConfig,
    clock: Clock | None = None,
) -> FinancialRecordService:
    actions = audited_actions(config)
    return FinancialRecordService(
        session,
        guard,
        clock=clock,
        auditor=_auditor_for(session, actions, clock),
        audited_actions=actions,
    )
