"""
revcon_notifications.domain.types -- Pure frozen dataclasses for the
notification scan.  ZERO I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - A CandidateNotification carries everything the sink needs; the dedup
      key is (user_id, type, related_id) on the scan's reference day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from revcon_kernel.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedKind,
)


# =============================================================================
# Status enums
# =============================================================================


class ScanRunStatus(str, Enum):
    """Lifecycle status of one scan run."""

    RUNNING = "running"
    COMPLETED = "completed"  # Every evaluator ran cleanly
    PARTIALLY_COMPLETED = "partially_completed"  # Some evaluator or insert failed
    FAILED = "failed"  # The run itself raised
    TIMED_OUT = "timed_out"  # Time budget exceeded
    SKIPPED = "skipped"  # Notifications globally disabled


class ScanTrigger(str, Enum):
    SCHEDULE = "schedule"
    MANUAL = "manual"


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class CandidateNotification:
    """A notification an evaluator wants to send; not yet deduplicated."""

    user_id: UUID
    type: NotificationType
    title: str
    message: str
    related_id: UUID | None
    related_kind: RelatedKind | None
    priority: NotificationPriority
    action_url: str | None = None

    @property
    def dedup_key(self) -> tuple[UUID, str, UUID | None]:
        return (self.user_id, self.type.value, self.related_id)


@dataclass(frozen=True)
class ScanRunResult:
    """Outcome of one ``NotificationScanDriver.run()``.

    ``errors`` holds one human-readable string per isolated failure.
    """

    reference_day: date
    status: ScanRunStatus
    created: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    evaluated: int = 0
    run_key: str | None = None
    trigger: ScanTrigger = ScanTrigger.MANUAL
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status in (ScanRunStatus.COMPLETED, ScanRunStatus.SKIPPED)
