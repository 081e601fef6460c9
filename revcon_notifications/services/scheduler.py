"""
ScanScheduler -- In-process polling scheduler for the daily notification
scan.

Contract:
    Polls on a configurable interval, evaluates ``should_fire()`` (pure)
    against the injected clock, and runs the scan in a fresh session per
    firing.

Architecture: revcon_notifications/services.  Uses
    revcon_notifications.domain.schedule for pure evaluation and the scan
    driver for execution.

Invariants enforced:
    - All timestamps from the injected Clock.
    - Skip-if-running: a tick that finds a scan in progress returns at once
      without queuing another run.
    - One ``run_key`` per scheduled slot, so a second instance firing the
      same slot is rejected by the UNIQUE constraint.
    - Graceful shutdown: ``stop()`` sets the stop event; the loop exits after
      the current tick.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.exceptions import ScanAlreadyRunningError, ScanTimeoutError
from revcon_kernel.logging_config import get_logger
from revcon_notifications.domain.schedule import (
    DEFAULT_SCAN_CRON,
    ScanSchedule,
    compute_next_run,
    should_fire,
)
from revcon_notifications.domain.types import ScanRunResult, ScanTrigger
from revcon_notifications.services.scan_driver import NotificationScanDriver

logger = get_logger("notifications.scheduler")


class ScanScheduler:
    """In-process scheduler for the notification scan.

    Contract:
        - ``tick()`` fires the scan if due and returns its result, else None.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        driver_factory: Callable[[Session], NotificationScanDriver],
        clock: Clock | None = None,
        cron_expression: str = DEFAULT_SCAN_CRON,
        tick_interval_seconds: float = 60,
    ):
        self._session_factory = session_factory
        self._driver_factory = driver_factory
        self._clock = clock or SystemClock()
        # First slot at or after the current minute
        self._schedule = ScanSchedule(
            cron_expression=cron_expression,
            next_run_at=compute_next_run(
                cron_expression, self._clock.now() - timedelta(minutes=1),
            ),
        )
        self._tick_interval = tick_interval_seconds
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def schedule(self) -> ScanSchedule:
        return self._schedule

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_scanning(self) -> bool:
        return self._run_lock.locked()

    def tick(self) -> ScanRunResult | None:
        """Run the scan if it is due (public for testing).

        Returns the scan result, or None when nothing fired.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("scan_tick_skipped_already_running")
            return None
        try:
            now = self._clock.now()
            if not should_fire(self._schedule, now):
                return None
            return self._fire(now)
        finally:
            self._run_lock.release()

    def run_now(self) -> ScanRunResult | None:
        """Manual trigger outside the schedule; honours skip-if-running."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("scan_tick_skipped_already_running")
            return None
        try:
            return self._execute(self._clock.now(), ScanTrigger.MANUAL, run_key=None)
        finally:
            self._run_lock.release()

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="notification-scan-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "tick_interval": self._tick_interval,
                "cron_expression": self._schedule.cron_expression,
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to finish the current tick."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _fire(self, now: datetime) -> ScanRunResult | None:
        # run_key names the cron slot, not the tick time
        slot = self._schedule.next_run_at or now.replace(second=0, microsecond=0)
        run_key = f"schedule-{slot.strftime('%Y%m%d-%H%M')}"
        try:
            return self._execute(now, ScanTrigger.SCHEDULE, run_key)
        finally:
            self._schedule = replace(
                self._schedule,
                last_run_at=now,
                next_run_at=compute_next_run(self._schedule.cron_expression, now),
            )
            logger.info(
                "scan_schedule_advanced",
                extra={"next_run_at": self._schedule.next_run_at.isoformat()},
            )

    def _execute(self, now: datetime, trigger: ScanTrigger, run_key: str | None) -> ScanRunResult | None:
        session = self._session_factory()
        try:
            result = self._driver_factory(session).run(now.date(), trigger=trigger, run_key=run_key)
            session.commit()
            return result
        except ScanAlreadyRunningError:
            session.rollback()
            logger.info("scan_slot_taken_by_other_instance", extra={"run_key": run_key})
            return None
        except ScanTimeoutError as exc:
            # Notifications created before the timeout are kept.
            session.commit()
            logger.warning(
                "scan_timed_out",
                extra={"run_key": run_key, "elapsed_seconds": exc.elapsed_seconds},
            )
            return exc.partial_result
        except Exception:
            session.rollback()
            logger.exception("scan_run_failed", extra={"run_key": run_key})
            return None
        finally:
            session.close()
