"""
revcon_notifications -- the daily notification scan.

Responsibility:
    Evaluates business conditions over projects and billings (ending soon,
    overdue, unpaid, completed but unbilled), suppresses same-day
    duplicates, persists new notifications through the kernel sink, and
    runs the whole thing on a schedule.

Architecture position:
    Above ``revcon_kernel`` and ``revcon_config``.  Evaluators are pure
    (``domain/``); persistence and threading live in ``services/``.

Failure modes:
    - ``EvaluatorError`` -- isolated per evaluator, logged, never aborts a run.
    - ``ScanTimeoutError`` -- time budget exceeded; carries the partial result.
    - ``ScanAlreadyRunningError`` -- the scheduled slot was already taken.
"""

from revcon_notifications.domain.types import (
    CandidateNotification,
    ScanRunResult,
    ScanRunStatus,
    ScanTrigger,
)
from revcon_notifications.services.scan_driver import (
    NotificationScanDriver,
    run_notification_scan,
)
from revcon_notifications.services.scheduler import ScanScheduler

__all__ = [
    "CandidateNotification",
    "NotificationScanDriver",
    "ScanRunResult",
    "ScanRunStatus",
    "ScanScheduler",
    "ScanTrigger",
    "run_notification_scan",
]
