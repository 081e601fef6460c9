"""
NotificationScanDriver -- one end-to-end notification scan.

Contract:
    ``run(reference_date)`` loads the configuration once, records a
    ``skipped`` run when notifications are disabled, otherwise loads one
    record snapshot, runs every enabled evaluator, and pushes each
    candidate through the dedup filter.  Returns a ScanRunResult and
    records a ScanRunModel row.

Architecture: revcon_notifications/services.  Imports revcon_config for
    the configuration value, kernel selectors for the snapshot, and the
    kernel NotificationService as the sink.

Invariants enforced:
    - One configuration value per run, threaded through every evaluator.
    - Evaluator isolation: an exception drops that evaluator's candidates,
      is logged with the evaluator name and entity id, and is recorded in
      ``errors``.  The other evaluators still run.
    - Candidate isolation: a failed insert is counted as an error and the
      remaining candidates are still persisted.
    - Idempotent per day: a second run on the same reference day creates
      nothing new.
    - Time budget checked between evaluators and between candidates;
      exceeding it records ``timed_out`` and raises ScanTimeoutError with
      the partial result.  Rows already persisted stay.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Does NOT manage threads -- that is the scheduler's job.
"""

from __future__ import annotations

import time
from datetime import date, datetime
from typing import Callable, Sequence
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from revcon_config.loader import ConfigSource
from revcon_config.schema import NotificationConfig
from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.exceptions import (
    EvaluatorError,
    ScanAlreadyRunningError,
    ScanTimeoutError,
)
from revcon_kernel.logging_config import LogContext, get_logger
from revcon_kernel.selectors.record_selector import RecordSelector
from revcon_kernel.services.notification_service import NotificationService
from revcon_notifications.domain.evaluators import DEFAULT_EVALUATORS, EvaluatorSpec
from revcon_notifications.domain.types import (
    CandidateNotification,
    ScanRunResult,
    ScanRunStatus,
    ScanTrigger,
)
from revcon_notifications.models.scan_run import ScanRunModel
from revcon_notifications.services.dedup import DeduplicationFilter, NotificationSink

logger = get_logger("notifications.scan")

DEFAULT_TIMEOUT_SECONDS = 300


class _Budget:
    def __init__(self, seconds: float, timer: Callable[[], float]):
        self.seconds = seconds
        self._timer = timer
        self._start = timer()

    @property
    def elapsed(self) -> float:
        return self._timer() - self._start

    @property
    def exceeded(self) -> bool:
        return self.elapsed > self.seconds


class _Tally:
    def __init__(self) -> None:
        self.created = 0
        self.skipped = 0
        self.evaluated = 0
        self.errors: list[str] = []
        self.failed_evaluators = 0


class NotificationScanDriver:
    """Runs the condition evaluators and persists new notifications."""

    def __init__(
        self,
        session: Session,
        config_source: ConfigSource,
        clock: Clock | None = None,
        evaluators: Sequence[EvaluatorSpec] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sink: NotificationSink | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._session = session
        self._config_source = config_source
        self._clock = clock or SystemClock()
        self._evaluators = tuple(evaluators if evaluators is not None else DEFAULT_EVALUATORS)
        self._timeout = timeout_seconds
        self._sink = sink or NotificationService(session, self._clock)
        self._dedup = DeduplicationFilter(self._sink)
        self._timer = timer

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(
        self,
        reference_date: date | datetime | None = None,
        trigger: ScanTrigger = ScanTrigger.MANUAL,
        run_key: str | None = None,
    ) -> ScanRunResult:
        """Run one scan for ``reference_date`` (defaults to today).

        Raises:
            ScanAlreadyRunningError: ``run_key`` was already recorded.
            ScanTimeoutError: the time budget ran out; carries the partial
                result.
        """
        reference_day = _truncate(reference_date) if reference_date else self._clock.today()
        run_key = run_key or f"{trigger.value}-{reference_day.isoformat()}-{uuid4().hex[:12]}"
        budget = _Budget(self._timeout, self._timer)

        with LogContext.bind(scan_id=run_key):
            run = self._start_run(run_key, reference_day, trigger)
            config = self._config_source.get_notification_config()
            enabled = [e for e in self._evaluators if e.is_enabled(config)]

            if not enabled:
                logger.info(
                    "scan_skipped_notifications_disabled",
                    extra={"reference_day": reference_day.isoformat(),
                           "globally_enabled": config.enabled},
                )
                return self._finish(run, ScanRunStatus.SKIPPED, _Tally(), budget)

            logger.info(
                "scan_started",
                extra={
                    "reference_day": reference_day.isoformat(),
                    "trigger": trigger.value,
                    "evaluators": [e.name for e in enabled],
                },
            )

            tally = _Tally()
            try:
                self._scan(enabled, reference_day, config, budget, tally)
            except ScanTimeoutError as exc:
                exc.partial_result = self._finish(run, ScanRunStatus.TIMED_OUT, tally, budget)
                raise
            except Exception:
                logger.exception("scan_failed", extra={"reference_day": reference_day.isoformat()})
                self._finish(run, ScanRunStatus.FAILED, tally, budget)
                raise

            if not tally.errors:
                status = ScanRunStatus.COMPLETED
            elif tally.failed_evaluators == len(enabled):
                status = ScanRunStatus.FAILED
            else:
                status = ScanRunStatus.PARTIALLY_COMPLETED
            return self._finish(run, status, tally, budget)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _scan(
        self,
        evaluators: list[EvaluatorSpec],
        reference_day: date,
        config: NotificationConfig,
        budget: _Budget,
        tally: _Tally,
    ) -> None:
        snapshot = RecordSelector(self._session).load_snapshot(tz=self._clock.now().tzinfo)

        for spec in evaluators:
            self._check_budget(budget)
            candidates = self._evaluate(spec, snapshot, reference_day, config, tally)
            for candidate in candidates:
                self._check_budget(budget)
                self._persist(spec, candidate, reference_day, tally)

    def _evaluate(self, spec, snapshot, reference_day, config, tally) -> tuple[CandidateNotification, ...]:
        try:
            candidates = spec.evaluate(snapshot, reference_day, config)
        except EvaluatorError as exc:
            logger.exception(
                "evaluator_failed",
                extra={"evaluator": spec.name, "entity_id": str(exc.entity_id)},
            )
            tally.errors.append(str(exc))
            tally.failed_evaluators += 1
            return ()
        except Exception as exc:
            logger.exception(
                "evaluator_failed",
                extra={"evaluator": spec.name, "entity_id": None},
            )
            tally.errors.append(f"Evaluator {spec.name} failed: {exc}")
            tally.failed_evaluators += 1
            return ()

        tally.evaluated += len(candidates)
        logger.debug(
            "evaluator_completed",
            extra={"evaluator": spec.name, "candidates": len(candidates)},
        )
        return candidates

    def _persist(self, spec, candidate: CandidateNotification, reference_day: date, tally: _Tally) -> None:
        try:
            accepted = self._dedup.accept(candidate, reference_day)
        except Exception as exc:
            logger.exception(
                "notification_persist_failed",
                extra={
                    "evaluator": spec.name,
                    "entity_id": str(candidate.related_id) if candidate.related_id else None,
                    "user_id": str(candidate.user_id),
                },
            )
            tally.errors.append(
                f"Failed to persist {candidate.type.value} for {candidate.related_id}: {exc}"
            )
            return
        if accepted:
            tally.created += 1
        else:
            tally.skipped += 1

    def _check_budget(self, budget: _Budget) -> None:
        if budget.exceeded:
            raise ScanTimeoutError(budget.elapsed, budget.seconds)

    def _start_run(self, run_key: str, reference_day: date, trigger: ScanTrigger) -> ScanRunModel:
        run = ScanRunModel(
            run_key=run_key,
            reference_day=reference_day,
            status=ScanRunStatus.RUNNING.value,
            trigger=trigger.value,
            started_at=self._clock.now(),
        )
        try:
            with self._session.begin_nested():
                self._session.add(run)
        except IntegrityError as exc:
            raise ScanAlreadyRunningError(run_key) from exc
        return run

    def _finish(
        self,
        run: ScanRunModel,
        status: ScanRunStatus,
        tally: _Tally,
        budget: _Budget,
    ) -> ScanRunResult:
        run.status = status.value
        run.created = tally.created
        run.skipped = tally.skipped
        run.evaluated = tally.evaluated
        run.errors = list(tally.errors) or None
        run.completed_at = self._clock.now()
        run.duration_ms = int(budget.elapsed * 1000)
        self._session.flush()

        result = ScanRunResult(
            reference_day=run.reference_day,
            status=status,
            created=tally.created,
            skipped=tally.skipped,
            errors=tuple(tally.errors),
            evaluated=tally.evaluated,
            run_key=run.run_key,
            trigger=ScanTrigger(run.trigger),
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_ms=run.duration_ms,
        )
        log = logger.warning if status in (ScanRunStatus.FAILED, ScanRunStatus.TIMED_OUT) else logger.info
        log(
            "scan_completed",
            extra={
                "status": status.value,
                "reference_day": run.reference_day.isoformat(),
                "created_count": tally.created,
                "skipped_count": tally.skipped,
                "error_count": len(tally.errors),
                "duration_ms": run.duration_ms,
            },
        )
        return result


def _truncate(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def run_notification_scan(
    session: Session,
    reference_date: date | datetime | None,
    config_source: ConfigSource,
    clock: Clock | None = None,
    **kwargs,
) -> ScanRunResult:
    """Convenience wrapper: build a driver and run one scan."""
    return NotificationScanDriver(session, config_source, clock=clock, **kwargs).run(reference_date)
