"""
Company settings schema.

Frozen value objects for the settings the core reads from the company
profile: the notification switches, the "ending soon" timing policy and
the audit switches.  YAML and JSON blobs are parsed into these types by
``revcon_config.loader``; nothing downstream ever sees a raw dict.

A scan receives one ``NotificationConfig`` value and threads it through
every evaluator, so the configuration cannot change halfway through a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DAYS_BEFORE = 3

# Fixed timing values offered by the company profile screen.
FIXED_TIMING_TYPES = frozenset({"1", "2", "3"})
CUSTOM_TIMING_TYPE = "custom"


# ---------------------------------------------------------------------------
# Notification settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimingPolicy:
    """When "ending soon" notifications fire, in days before the end date.

    ``timing_type`` is ``"1"``, ``"2"``, ``"3"``, a comma-separated list
    such as ``"3,2,1"``, or ``"custom"`` together with ``custom_days``.
    """

    timing_type: str = str(DEFAULT_DAYS_BEFORE)
    custom_days: int | None = None

    def days_to_check(self) -> frozenset[int]:
        if self.timing_type == CUSTOM_TIMING_TYPE and self.custom_days:
            return frozenset({int(self.custom_days)})

        days: set[int] = set()
        for part in str(self.timing_type).split(","):
            part = part.strip()
            if part.isdigit() and int(part) > 0:
                days.add(int(part))
        # Unparseable values ("custom" without days, "", "abc") fall back.
        return frozenset(days) if days else frozenset({DEFAULT_DAYS_BEFORE})


@dataclass(frozen=True)
class CategoryFlags:
    """Company-wide switches per notification category."""

    project_end_date: bool = True
    billing_follow_up: bool = True
    payment_overdue: bool = True
    system_announcements: bool = True
    unpaid_after_completion: bool = True


@dataclass(frozen=True)
class NotificationConfig:
    enabled: bool = True
    categories: CategoryFlags = field(default_factory=CategoryFlags)
    timing: TimingPolicy = field(default_factory=TimingPolicy)


# ---------------------------------------------------------------------------
# Audit settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditConfig:
    """Which writes reach the audit chain.

    ``enabled`` is the master switch.  ``log_deletions`` covers project soft
    and permanent deletes as well as record deletes; ``log_data_edits``
    covers record creates and updates.  The remaining project lifecycle
    actions follow ``enabled`` alone.
    """

    enabled: bool = True
    log_data_edits: bool = True
    log_deletions: bool = True


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompanySettings:
    """Everything the core reads from one company profile."""

    company_name: str = "Default Company"
    currency: str = "USD"
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
