"""
ORM-level append-only enforcement for the audit trail.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners here reject any modification of an AuditEvent row:

    session.flush()
         |
         v
    [before_update] --> _check_audit_event_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_audit_event_delete() ---------> ImmutabilityViolationError

Usage:

    from revcon_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent

Tests that need to tamper with a row to prove the chain check catches it
call unregister_immutability_listeners() first.
"""

from sqlalchemy import event

from revcon_kernel.exceptions import ImmutabilityViolationError
from revcon_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_audit_event_immutability(mapper, connection, target):
    """Audit events are immutable from creation."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEvent",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEvent",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events cannot be deleted",
    )


def register_immutability_listeners():
    """Register the audit append-only listeners (safe to call repeatedly)."""
    from revcon_kernel.models.audit_event import AuditEvent

    if not event.contains(AuditEvent, "before_update", _check_audit_event_immutability):
        event.listen(AuditEvent, "before_update", _check_audit_event_immutability)
    if not event.contains(AuditEvent, "before_delete", _check_audit_event_delete):
        event.listen(AuditEvent, "before_delete", _check_audit_event_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only for tests that deliberately tamper with the audit chain.
    """
    from revcon_kernel.models.audit_event import AuditEvent

    _safe_remove_listener(AuditEvent, "before_update", _check_audit_event_immutability)
    _safe_remove_listener(AuditEvent, "before_delete", _check_audit_event_delete)
