"""
ScanScheduler tests.

The scheduler opens its own sessions, so fixtures commit their seed data
before ticking and tests read results back through the ``session`` fixture.
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from revcon_config import StaticConfigSource
from revcon_kernel.exceptions import InvalidCronExpressionError
from revcon_kernel.models.notification import Notification
from revcon_notifications import NotificationScanDriver, ScanRunStatus, ScanScheduler, ScanTrigger
from revcon_notifications.models import ScanRunModel

NINE = datetime(2026, 3, 10, 9, 0)


@pytest.fixture
def seeded(session, make_project, user):
    make_project(code="PRJ-LATE", end_in_days=-1)
    session.commit()


@pytest.fixture
def make_scheduler(session_factory, clock):
    def _make(driver_factory=None, **kwargs) -> ScanScheduler:
        driver_factory = driver_factory or (
            lambda s: NotificationScanDriver(s, StaticConfigSource(), clock=clock)
        )
        return ScanScheduler(session_factory, driver_factory, clock=clock, **kwargs)

    return _make


def _runs(session) -> list[ScanRunModel]:
    return list(session.execute(select(ScanRunModel).order_by(ScanRunModel.started_at)).scalars())


def _notification_count(session) -> int:
    return session.execute(select(func.count()).select_from(Notification)).scalar_one()


class TestTick:
    def test_not_due_before_nine(self, session, seeded, make_scheduler, clock):
        clock.set_time(datetime(2026, 3, 10, 8, 59))
        assert make_scheduler().tick() is None
        assert _runs(session) == []

    def test_fires_at_nine_and_advances(self, session, seeded, make_scheduler, clock):
        clock.set_time(NINE)
        scheduler = make_scheduler()

        result = scheduler.tick()

        assert result.status == ScanRunStatus.COMPLETED
        assert result.trigger == ScanTrigger.SCHEDULE
        assert result.run_key == "schedule-20260310-0900"
        assert result.created == 1
        assert scheduler.schedule.last_run_at == NINE
        assert scheduler.schedule.next_run_at == datetime(2026, 3, 11, 9, 0)
        session.expire_all()
        assert _notification_count(session) == 1

    def test_first_slot_seeded_at_construction(self, make_scheduler, clock):
        clock.set_time(datetime(2026, 3, 10, 8, 0, 30))
        assert make_scheduler().schedule.next_run_at == NINE

    def test_late_tick_still_fires_the_slot(self, session, seeded, make_scheduler, clock):
        clock.set_time(datetime(2026, 3, 10, 8, 58, 40))
        scheduler = make_scheduler()
        assert scheduler.tick() is None

        # The next tick lands after the 09:00 minute has passed.
        clock.set_time(datetime(2026, 3, 10, 9, 1, 5))
        result = scheduler.tick()

        assert result.run_key == "schedule-20260310-0900"
        assert result.created == 1
        assert scheduler.schedule.next_run_at == datetime(2026, 3, 11, 9, 0)

    def test_fires_once_per_slot(self, session, seeded, make_scheduler, clock):
        clock.set_time(NINE)
        scheduler = make_scheduler()
        scheduler.tick()

        clock.advance(30)
        assert scheduler.tick() is None

        clock.set_time(datetime(2026, 3, 11, 9, 0))
        again = scheduler.tick()
        assert again.run_key == "schedule-20260311-0900"
        assert again.created == 1
        assert len(_runs(session)) == 2

    def test_skip_if_running(self, seeded, make_scheduler, clock, captured_logs):
        clock.set_time(NINE)
        inner_results = []
        scheduler = None

        def reentrant_driver(s):
            inner_results.append(scheduler.tick())
            return NotificationScanDriver(s, StaticConfigSource(), clock=clock)

        scheduler = make_scheduler(driver_factory=reentrant_driver)
        outer = scheduler.tick()

        assert outer.status == ScanRunStatus.COMPLETED
        assert inner_results == [None]
        assert any(
            r["message"] == "scan_tick_skipped_already_running" for r in captured_logs()
        )
        assert not scheduler.is_scanning

    def test_slot_taken_by_other_instance(self, session, seeded, make_scheduler, clock):
        session.add(ScanRunModel(
            run_key="schedule-20260310-0900",
            reference_day=NINE.date(),
            status=ScanRunStatus.RUNNING.value,
            trigger=ScanTrigger.SCHEDULE.value,
            started_at=NINE,
        ))
        session.commit()
        clock.set_time(NINE)

        scheduler = make_scheduler()
        assert scheduler.tick() is None
        assert scheduler.schedule.next_run_at == datetime(2026, 3, 11, 9, 0)
        assert _notification_count(session) == 0

    def test_failed_run_is_logged_and_schedule_advances(
        self, seeded, make_scheduler, clock, captured_logs,
    ):
        def broken_driver(s):
            raise RuntimeError("config store unreachable")

        clock.set_time(NINE)
        scheduler = make_scheduler(driver_factory=broken_driver)

        assert scheduler.tick() is None
        assert scheduler.schedule.next_run_at == datetime(2026, 3, 11, 9, 0)
        assert any(r["message"] == "scan_run_failed" for r in captured_logs())

    def test_timeout_returns_partial_result(self, session, seeded, make_scheduler, clock):
        readings = iter([0.0] + [500.0] * 10)

        def slow_driver(s):
            return NotificationScanDriver(
                s, StaticConfigSource(), clock=clock,
                timeout_seconds=60, timer=lambda: next(readings),
            )

        clock.set_time(NINE)
        result = make_scheduler(driver_factory=slow_driver).tick()

        assert result.status == ScanRunStatus.TIMED_OUT
        session.expire_all()
        (run,) = _runs(session)
        assert run.status == ScanRunStatus.TIMED_OUT.value


class TestControl:
    def test_run_now_ignores_schedule(self, session, seeded, make_scheduler, clock):
        clock.set_time(datetime(2026, 3, 10, 14, 30))
        scheduler = make_scheduler()
        result = scheduler.run_now()

        assert result.trigger == ScanTrigger.MANUAL
        assert result.created == 1
        assert scheduler.schedule.next_run_at == datetime(2026, 3, 11, 9, 0)
        assert scheduler.schedule.last_run_at is None

    def test_invalid_cron_rejected(self, make_scheduler):
        with pytest.raises(InvalidCronExpressionError):
            make_scheduler(cron_expression="every morning")

    def test_start_and_stop(self, seeded, make_scheduler, clock):
        clock.set_time(datetime(2026, 3, 10, 8, 0))
        scheduler = make_scheduler(tick_interval_seconds=0.01)

        scheduler.start()
        assert scheduler.is_running
        scheduler.start()  # second start is a no-op

        scheduler.stop(timeout=5)
        assert not scheduler.is_running
