"""
Typed Exception Hierarchy for the RevCon kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP controllers, the scan scheduler, CLI scripts) must react to
errors by TYPE, never by parsing message text.  Every exception therefore:

  1. Has a typed class (catch by type, not message)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Carries structured data as attributes (project_id, evaluator, ...)

Example:
    try:
        guard.guard_write(project_id)
    except LockedProjectError as e:
        return {"error": e.code, "project_id": str(e.project_id)}, 403
    except ProjectNotFoundError as e:
        return {"error": e.code}, 404

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RevconError (base)
    |
    +-- ProjectError
    |   +-- ProjectNotFoundError
    |   |   +-- ProjectDeletedError
    |   +-- LockedProjectError
    |   +-- IllegalStatusTransitionError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- DuplicateRecordError
    |
    +-- NotificationError
    |   +-- NotificationNotFoundError
    |
    +-- PermissionDeniedError
    |
    +-- ConfigError
    |   +-- InvalidConfigError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |   +-- ImmutabilityViolationError
    |
    +-- ScanError
        +-- EvaluatorError
        +-- ScanTimeoutError
        +-- ScanAlreadyRunningError
        +-- InvalidCronExpressionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|------------------------------------
Project       | PROJECT_NOT_FOUND          | No project with the given id (404)
              | PROJECT_DELETED            | Project is soft-deleted (404)
              | PROJECT_LOCKED             | Child write under a locked project
              | ILLEGAL_STATUS_TRANSITION  | Status move not in workflow table
--------------|----------------------------|------------------------------------
Record        | RECORD_NOT_FOUND           | Billing/collection/... id unknown
              | DUPLICATE_RECORD           | Unique business key already used
--------------|----------------------------|------------------------------------
Notification  | NOTIFICATION_NOT_FOUND     | Not found or not owned by the user
--------------|----------------------------|------------------------------------
Permission    | PERMISSION_DENIED          | Role lacks the required action
--------------|----------------------------|------------------------------------
Config        | INVALID_CONFIG             | Malformed notification config
--------------|----------------------------|------------------------------------
Audit         | AUDIT_CHAIN_BROKEN         | Hash chain recomputation mismatch
              | IMMUTABILITY_VIOLATION     | Audit row updated or deleted
--------------|----------------------------|------------------------------------
Scan          | EVALUATOR_FAILED           | One evaluator failed (isolated)
              | SCAN_TIMEOUT               | Run exceeded its time budget
              | SCAN_ALREADY_RUNNING       | Overlapping run refused
              | INVALID_CRON_EXPRESSION    | Schedule cron cannot be parsed

===============================================================================
PROPAGATION
===============================================================================

ProjectError / RecordError / PermissionDeniedError propagate synchronously
to the caller and are never retried.  EvaluatorError is caught by the scan
driver, logged, and recorded in the run result.  ScanTimeoutError is the
only scan error that leaves the driver; it carries the partial result.
"""

from __future__ import annotations

from typing import Any


class RevconError(Exception):
    """
    Base exception for all RevCon kernel errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "REVCON_ERROR"


# Project-related exceptions


class ProjectError(RevconError):
    """Base exception for project lifecycle errors."""

    code: str = "PROJECT_ERROR"


class ProjectNotFoundError(ProjectError):
    """No project with the given id."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: Any, message: str | None = None):
        self.project_id = project_id
        super().__init__(message or f"Project not found: {project_id}")


class ProjectDeletedError(ProjectNotFoundError):
    """Project exists but is soft-deleted (only restore/purge allowed)."""

    code: str = "PROJECT_DELETED"

    def __init__(self, project_id: Any, operation: str):
        self.operation = operation
        super().__init__(
            project_id,
            f"Cannot {operation} project {project_id}: project is deleted",
        )


class LockedProjectError(ProjectError):
    """Write rejected because the parent project is locked."""

    code: str = "PROJECT_LOCKED"

    def __init__(self, project_id: Any, project_code: str | None = None):
        self.project_id = project_id
        self.project_code = project_code
        label = project_code or str(project_id)
        super().__init__(
            f"Project {label} is locked and cannot be modified. "
            "Unlock the project first."
        )


class IllegalStatusTransitionError(ProjectError):
    """Requested status change is not in the project workflow table."""

    code: str = "ILLEGAL_STATUS_TRANSITION"

    def __init__(self, project_id: Any, from_status: str, to_status: str):
        self.project_id = project_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Illegal status transition for project {project_id}: "
            f"{from_status} -> {to_status}"
        )


# Financial record exceptions


class RecordError(RevconError):
    """Base exception for financial child record errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Billing, collection, revenue or expense was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_kind: str, record_id: Any):
        self.record_kind = record_kind
        self.record_id = record_id
        super().__init__(f"{record_kind} not found: {record_id}")


class DuplicateRecordError(RecordError):
    """A unique business key (invoice number, project code, ...) is taken."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, record_kind: str, field_name: str, value: str):
        self.record_kind = record_kind
        self.field_name = field_name
        self.value = value
        super().__init__(f"{record_kind} {field_name} already exists: {value}")


# Notification exceptions


class NotificationError(RevconError):
    """Base exception for notification sink errors."""

    code: str = "NOTIFICATION_ERROR"


class NotificationNotFoundError(NotificationError):
    """Notification missing or not owned by the requesting user."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, notification_id: Any, user_id: Any):
        self.notification_id = notification_id
        self.user_id = user_id
        super().__init__(
            f"Notification {notification_id} not found for user {user_id}"
        )


# Permission exceptions


class PermissionDeniedError(RevconError):
    """Actor's role does not grant the required action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: Any, action: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor {actor_id} is not allowed to {action}")


# Configuration exceptions


class ConfigError(RevconError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidConfigError(ConfigError):
    """Configuration value could not be parsed or is out of range."""

    code: str = "INVALID_CONFIG"

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid config {field_name}={value!r}: {reason}")


# Audit exceptions


class AuditError(RevconError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


class ImmutabilityViolationError(AuditError):
    """UPDATE or DELETE attempted on an append-only row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Scan exceptions


class ScanError(RevconError):
    """Base exception for notification scan errors."""

    code: str = "SCAN_ERROR"


class EvaluatorError(ScanError):
    """
    A single condition evaluator failed.

    The scan driver drops that evaluator's candidates and continues.
    """

    code: str = "EVALUATOR_FAILED"

    def __init__(self, evaluator: str, entity_id: Any, reason: str):
        self.evaluator = evaluator
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Evaluator {evaluator} failed on entity {entity_id}: {reason}"
        )


class ScanTimeoutError(ScanError):
    """
    The scan exceeded its time budget.

    Notifications persisted before the timeout remain; the next run's
    dedup check makes the partial completion safe.
    """

    code: str = "SCAN_TIMEOUT"

    def __init__(
        self,
        elapsed_seconds: float,
        budget_seconds: float,
        partial_result: Any = None,
    ):
        self.elapsed_seconds = elapsed_seconds
        self.budget_seconds = budget_seconds
        self.partial_result = partial_result
        super().__init__(
            f"Notification scan exceeded its budget: "
            f"{elapsed_seconds:.1f}s > {budget_seconds:.1f}s"
        )


class ScanAlreadyRunningError(ScanError):
    """Another scan holds the run slot."""

    code: str = "SCAN_ALREADY_RUNNING"

    def __init__(self, run_key: str):
        self.run_key = run_key
        super().__init__(f"Notification scan already running: {run_key}")


class InvalidCronExpressionError(ScanError):
    """Scan schedule cron expression is malformed."""

    code: str = "INVALID_CRON_EXPRESSION"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")
