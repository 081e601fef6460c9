"""
Pure schedule evaluation for the daily notification scan.

Contract:
    ``parse_cron``, ``matches_cron``, ``should_fire`` and
    ``compute_next_run`` are PURE -- no I/O, no side effects.  All
    timestamps come from the caller.

Architecture: revcon_notifications/domain.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from revcon_kernel.exceptions import InvalidCronExpressionError

# Every day at 09:00.
DEFAULT_SCAN_CRON = "0 9 * * *"


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression (minute hour day_of_month month day_of_week).

    Each field is a frozenset of valid integer values.
    Supports: *, values, lists, ranges (1-5), steps (*/5, 1-10/2).
    """

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Raises:
        ValueError: If the field is syntactically invalid or values out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            values.update(v for v in range(start, end + 1, step) if min_val <= v <= max_val)

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            values.update(v for v in range(start, end + 1) if min_val <= v <= max_val)

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(f"Value {v} outside range [{min_val}, {max_val}]")
            values.add(v)

    if not values:
        raise ValueError(f"Field '{field_str}' matches nothing")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression into a CronSpec.

    Raises:
        InvalidCronExpressionError: If the expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise InvalidCronExpressionError(
            expression, f"expected 5 fields, got {len(parts)}",
        )

    try:
        return CronSpec(
            minutes=_parse_cron_field(parts[0], 0, 59),
            hours=_parse_cron_field(parts[1], 0, 23),
            days_of_month=_parse_cron_field(parts[2], 1, 31),
            months=_parse_cron_field(parts[3], 1, 12),
            days_of_week=_parse_cron_field(parts[4], 0, 6),
        )
    except ValueError as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check if a datetime matches a cron spec.

    Cron convention: 0=Sunday, 1=Monday, ..., 6=Saturday.
    Python datetime.weekday(): 0=Monday, ..., 6=Sunday.
    """
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


# =============================================================================
# Schedule evaluation (pure)
# =============================================================================


@dataclass(frozen=True)
class ScanSchedule:
    """When the scheduler runs the scan, and when it last did."""

    cron_expression: str = DEFAULT_SCAN_CRON
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    is_active: bool = True


def should_fire(schedule: ScanSchedule, as_of: datetime) -> bool:
    """Determine if the scan is due at ``as_of``.

    Rules:
        - Inactive schedules never fire.
        - With ``next_run_at`` known, fire once ``as_of >= next_run_at``.
        - Otherwise (first tick after start) fire only on a cron match.
    """
    if not schedule.is_active:
        return False

    if schedule.next_run_at is not None:
        return as_of >= schedule.next_run_at

    return matches_cron(parse_cron(schedule.cron_expression), as_of)


def compute_next_run(cron_expression: str, after: datetime) -> datetime:
    """Find the next minute strictly after ``after`` that matches the cron.

    Scans minute-by-minute up to 366 days.

    Raises:
        InvalidCronExpressionError: If the expression is malformed or never
            matches within 366 days (e.g. February 30th).
    """
    spec = parse_cron(cron_expression)
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    max_iterations = 366 * 24 * 60

    for _ in range(max_iterations):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)

    raise InvalidCronExpressionError(
        cron_expression, f"no match within 366 days after {after.isoformat()}",
    )
