#!/usr/bin/env python3
"""
Run the notification scan once, or start the daily scan scheduler.

Configuration comes from --config (a settings YAML in the shape of
revcon_config/defaults.yaml) or, when omitted, from the stored company
profile (packaged defaults if there is none).

Usage:
    python3 scripts/run_notification_scan.py --db-url <url> [--date YYYY-MM-DD] [options]

Examples:
    # One scan for today against a local database
    python3 scripts/run_notification_scan.py --db-url sqlite:///revcon.db --create-tables

    # Re-run a specific day with a YAML config
    python3 scripts/run_notification_scan.py --db-url postgresql://... --date 2026-03-01 --config ops.yaml

    # Scheduler loop (daily at 09:00 unless --cron says otherwise)
    python3 scripts/run_notification_scan.py --db-url postgresql://... --serve
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
from datetime import date, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DB_URL = os.environ.get("REVCON_DB_URL", "sqlite:///revcon.db")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the project/billing notification scan.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--db-url",
        default=DB_URL,
        help=f"Database URL (default: REVCON_DB_URL env or {DB_URL!r}).",
    )
    parser.add_argument(
        "--date",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="Reference day (YYYY-MM-DD). Default: today.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML. Default: the stored company profile.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the scheduler loop instead of running one scan.",
    )
    parser.add_argument(
        "--cron",
        default=None,
        help="Cron expression for --serve (default: '0 9 * * *').",
    )
    parser.add_argument(
        "--timezone",
        type=ZoneInfo,
        default=timezone.utc,
        help="IANA zone the reference day and cron are read in (default: UTC).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=300,
        help="Scan time budget in seconds (default: 300).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from revcon_config import CompanyProfileConfigSource, YamlConfigSource
    from revcon_kernel.db.engine import (
        create_tables,
        get_session,
        get_session_factory,
        init_engine_from_url,
    )
    from revcon_kernel.domain.clock import SystemClock
    from revcon_kernel.exceptions import RevconError, ScanTimeoutError
    from revcon_kernel.logging_config import configure_logging, get_logger
    from revcon_notifications import NotificationScanDriver, ScanScheduler
    from revcon_notifications.domain.schedule import DEFAULT_SCAN_CRON

    configure_logging(level=args.log_level.upper())
    logger = get_logger("scripts.run_notification_scan")

    if args.config is not None and not args.config.is_file():
        print(f"ERROR: Config file not found: {args.config}", file=sys.stderr)
        return 1

    init_engine_from_url(args.db_url)
    if args.create_tables:
        create_tables()

    clock = SystemClock(args.timezone)

    def driver_factory(session):
        source = (
            YamlConfigSource(args.config)
            if args.config is not None
            else CompanyProfileConfigSource(session)
        )
        return NotificationScanDriver(
            session, source, clock=clock, timeout_seconds=args.timeout,
        )

    if args.serve:
        scheduler = ScanScheduler(
            session_factory=get_session_factory(),
            driver_factory=driver_factory,
            clock=clock,
            cron_expression=args.cron or DEFAULT_SCAN_CRON,
        )
        stopped = threading.Event()

        def _shutdown(signum, frame):
            logger.info("shutdown_signal_received", extra={"signal": signum})
            stopped.set()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)
        scheduler.start()
        stopped.wait()
        scheduler.stop()
        return 0

    session = get_session()
    try:
        result = driver_factory(session).run(args.date or clock.today())
        session.commit()
    except ScanTimeoutError as e:
        # Keep what was persisted before the budget ran out.
        session.commit()
        result = e.partial_result
        print(f"WARNING: {e}", file=sys.stderr)
    except RevconError as e:
        session.rollback()
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()

    print(f"Reference day: {result.reference_day.isoformat()}")
    print(f"Status:        {result.status.value}")
    print(f"Created:       {result.created}")
    print(f"Skipped:       {result.skipped}")
    for err in result.errors:
        print(f"  ERROR: {err}")
    return 0 if result.succeeded else 2


if __name__ == "__main__":
    sys.exit(main())
