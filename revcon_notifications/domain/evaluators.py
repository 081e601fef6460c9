"""
Condition evaluators (pure).

Contract:
    Each evaluator is ``(snapshot, reference_day, config) -> tuple of
    CandidateNotification``.  No I/O, no clock: the reference day and the
    configuration are passed in, so one scan sees one consistent world.

Architecture: revcon_notifications/domain.  ZERO I/O.

Invariants enforced:
    - Day arithmetic is on calendar days: both the end date and the
      reference day are truncated to midnight before subtracting.  End
      dates arrive already converted to the scan's zone (see
      RecordSelector.load_snapshot), so truncation gives the local day.
    - A project without an end date has no deadline and is skipped by the
      deadline evaluators.
    - Soft-deleted projects never produce candidates.
    - A user whose preference for a category is off is skipped for that
      category only.
    - A malformed value (an end date that is not a date) raises
      EvaluatorError naming the evaluator and the entity; the driver drops
      that evaluator's candidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from revcon_config.schema import NotificationConfig
from revcon_kernel.domain.project_workflow import ACTIVE_STATUSES, ProjectStatus
from revcon_kernel.domain.snapshots import (
    BillingView,
    ProjectView,
    RecordSnapshot,
    UserView,
)
from revcon_kernel.exceptions import EvaluatorError
from revcon_kernel.models.billing import BillingStatus
from revcon_kernel.models.notification import (
    NotificationPriority,
    NotificationType,
    RelatedKind,
)
from revcon_notifications.domain.types import CandidateNotification

Evaluator = Callable[[RecordSnapshot, date, NotificationConfig], tuple[CandidateNotification, ...]]

_ACTIVE = frozenset(s.value for s in ACTIVE_STATUSES)
_UNPAID_STATUSES = frozenset({BillingStatus.SENT.value, BillingStatus.OVERDUE.value})


# =============================================================================
# Helpers
# =============================================================================


def _end_day(evaluator: str, project: ProjectView) -> date | None:
    """Calendar day of the end date, or None when the project has none."""
    value = project.end_date
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise EvaluatorError(
        evaluator, project.id, f"end date is not a date: {value!r}",
    )


def days_until(end_day: date, reference_day: date) -> int:
    """Whole days from ``reference_day`` to ``end_day`` (negative if past)."""
    return (end_day - reference_day).days


def _plural(n: int) -> str:
    return "Day" if n == 1 else "Days"


def _fanout(
    users: tuple[UserView, ...],
    wants: Callable[[UserView], bool],
    build: Callable[[UserView], CandidateNotification],
) -> list[CandidateNotification]:
    return [build(u) for u in users if wants(u)]


# =============================================================================
# Evaluators
# =============================================================================


def ending_soon(
    snapshot: RecordSnapshot, reference_day: date, config: NotificationConfig,
) -> tuple[CandidateNotification, ...]:
    """Active projects whose end date is a configured number of days away."""
    days_to_check = config.timing.days_to_check()
    candidates: list[CandidateNotification] = []

    for project in snapshot.projects:
        if project.is_deleted or project.status not in _ACTIVE:
            continue
        end_day = _end_day("ending_soon", project)
        if end_day is None:
            continue
        remaining = days_until(end_day, reference_day)
        if remaining not in days_to_check:
            continue

        if remaining == 1:
            priority = NotificationPriority.URGENT
        elif remaining == 2:
            priority = NotificationPriority.HIGH
        else:
            priority = NotificationPriority.MEDIUM

        candidates.extend(_fanout(
            snapshot.users,
            lambda u: u.notify_project_deadline,
            lambda u: CandidateNotification(
                user_id=u.id,
                type=NotificationType.PROJECT_END_DATE,
                title=f"Project Ending in {remaining} {_plural(remaining)}",
                message=(
                    f'Project "{project.name}" ({project.code}) is ending in '
                    f"{remaining} {_plural(remaining).lower()}."
                ),
                related_id=project.id,
                related_kind=RelatedKind.PROJECT,
                priority=priority,
                action_url=f"/projects/{project.id}",
            ),
        ))
    return tuple(candidates)


def overdue(
    snapshot: RecordSnapshot, reference_day: date, config: NotificationConfig,
) -> tuple[CandidateNotification, ...]:
    """Active projects past their end date.  Re-qualifies every day."""
    candidates: list[CandidateNotification] = []

    for project in snapshot.projects:
        if project.is_deleted or project.status not in _ACTIVE:
            continue
        end_day = _end_day("overdue", project)
        if end_day is None or not end_day < reference_day:
            continue

        candidates.extend(_fanout(
            snapshot.users,
            lambda u: u.notify_project_deadline,
            lambda u: CandidateNotification(
                user_id=u.id,
                type=NotificationType.PROJECT_OVERDUE,
                title="Project Overdue",
                message=(
                    f'Project "{project.name}" ({project.code}) has passed its end date '
                    f"and is not marked as completed."
                ),
                related_id=project.id,
                related_kind=RelatedKind.PROJECT,
                priority=NotificationPriority.URGENT,
                action_url=f"/projects/{project.id}",
            ),
        ))
    return tuple(candidates)


def unpaid_billing(
    snapshot: RecordSnapshot, reference_day: date, config: NotificationConfig,
) -> tuple[CandidateNotification, ...]:
    """Sent or overdue billings whose collections fall short of the total."""
    candidates: list[CandidateNotification] = []

    for billing in snapshot.billings:
        if billing.project_is_deleted or billing.status not in _UNPAID_STATUSES:
            continue
        if billing.total_amount is None:
            raise EvaluatorError("unpaid_billing", billing.id, "billing has no total amount")
        if billing.is_fully_collected:
            continue

        priority = (
            NotificationPriority.URGENT
            if billing.status == BillingStatus.OVERDUE.value
            else NotificationPriority.HIGH
        )
        candidates.extend(_fanout(
            snapshot.users,
            lambda u: u.notify_billing_follow_up,
            lambda u: _unpaid_candidate(u, billing, priority),
        ))
    return tuple(candidates)


def _unpaid_candidate(
    user: UserView, billing: BillingView, priority: NotificationPriority,
) -> CandidateNotification:
    return CandidateNotification(
        user_id=user.id,
        type=NotificationType.BILLING_UNPAID,
        title="Unpaid Invoice",
        message=(
            f'Invoice {billing.invoice_number} for project '
            f'"{billing.project_name}" is billed but unpaid.'
        ),
        related_id=billing.id,
        related_kind=RelatedKind.BILLING,
        priority=priority,
        action_url=f"/projects/{billing.project_id}/billing",
    )


def completed_unbilled(
    snapshot: RecordSnapshot, reference_day: date, config: NotificationConfig,
) -> tuple[CandidateNotification, ...]:
    """Completed projects with no billing at all."""
    candidates: list[CandidateNotification] = []

    for project in snapshot.projects:
        if project.is_deleted or project.status != ProjectStatus.COMPLETED.value:
            continue
        if project.billing_count > 0:
            continue

        candidates.extend(_fanout(
            snapshot.users,
            lambda u: u.notify_payment_overdue,
            lambda u: CandidateNotification(
                user_id=u.id,
                type=NotificationType.PROJECT_UNBILLED,
                title="Completed Project Unbilled",
                message=(
                    f'Project "{project.name}" ({project.code}) is completed but has no '
                    f"billing records."
                ),
                related_id=project.id,
                related_kind=RelatedKind.PROJECT,
                priority=NotificationPriority.MEDIUM,
                action_url=f"/projects/{project.id}/billing",
            ),
        ))
    return tuple(candidates)


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class EvaluatorSpec:
    """An evaluator and the company-wide category flag that gates it."""

    name: str
    evaluate: Evaluator
    category: str

    def is_enabled(self, config: NotificationConfig) -> bool:
        return config.enabled and bool(getattr(config.categories, self.category))


DEFAULT_EVALUATORS: tuple[EvaluatorSpec, ...] = (
    EvaluatorSpec("ending_soon", ending_soon, "project_end_date"),
    EvaluatorSpec("overdue", overdue, "project_end_date"),
    EvaluatorSpec("unpaid_billing", unpaid_billing, "billing_follow_up"),
    EvaluatorSpec("completed_unbilled", completed_unbilled, "unpaid_after_completion"),
)
