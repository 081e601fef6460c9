"""
Module: revcon_kernel.selectors.record_selector
Responsibility: Build the RecordSnapshot a notification scan evaluates:
    live projects with their billing counts, outstanding billings with the
    amount collected so far, and active users with their preferences.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Soft-deleted projects, and billings of soft-deleted projects, are not
      loaded.
    - collected_amount is computed from collections at read time; there is
      no stored running balance.
"""

from datetime import datetime, tzinfo
from decimal import Decimal

from sqlalchemy import func, select

from revcon_kernel.domain.snapshots import (
    BillingView,
    ProjectView,
    RecordSnapshot,
    UserView,
)
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.billing import OUTSTANDING_BILLING_STATUSES, Billing
from revcon_kernel.models.collection import Collection
from revcon_kernel.models.project import Project
from revcon_kernel.models.user import User
from revcon_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.records")


def _in_zone(value: datetime | None, tz: tzinfo | None) -> datetime | None:
    if value is None or tz is None or value.tzinfo is None:
        return value
    return value.astimezone(tz)


class RecordSelector(BaseSelector):
    """Loads the scan's view of projects, billings and users."""

    def active_users(self) -> tuple[UserView, ...]:
        users = self.session.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.email)
        ).scalars().all()
        return tuple(
            UserView(
                id=u.id,
                email=u.email,
                notify_project_deadline=u.notify_project_deadline,
                notify_billing_follow_up=u.notify_billing_follow_up,
                notify_payment_overdue=u.notify_payment_overdue,
                notify_system_announcements=u.notify_system_announcements,
            )
            for u in users
        )

    def live_projects(self, tz: tzinfo | None = None) -> tuple[ProjectView, ...]:
        """Live projects; aware end dates are converted to ``tz`` when given."""
        billing_counts = (
            select(Billing.project_id, func.count(Billing.id).label("n"))
            .group_by(Billing.project_id)
            .subquery()
        )
        rows = self.session.execute(
            select(Project, func.coalesce(billing_counts.c.n, 0))
            .outerjoin(billing_counts, billing_counts.c.project_id == Project.id)
            .where(Project.deleted_at.is_(None))
            .order_by(Project.code)
        ).all()
        return tuple(
            ProjectView(
                id=p.id,
                code=p.code,
                name=p.name,
                status=str(p.status.value if hasattr(p.status, "value") else p.status),
                end_date=_in_zone(p.end_date, tz),
                is_deleted=False,
                billing_count=int(n),
            )
            for p, n in rows
        )

    def outstanding_billings(self) -> tuple[BillingView, ...]:
        collected = (
            select(
                Collection.billing_id,
                func.sum(Collection.amount).label("collected"),
            )
            .group_by(Collection.billing_id)
            .subquery()
        )
        statuses = [s.value for s in OUTSTANDING_BILLING_STATUSES]
        rows = self.session.execute(
            select(Billing, Project.name, func.coalesce(collected.c.collected, 0))
            .join(Project, Project.id == Billing.project_id)
            .outerjoin(collected, collected.c.billing_id == Billing.id)
            .where(
                Billing.status.in_(statuses),
                Project.deleted_at.is_(None),
            )
            .order_by(Billing.invoice_number)
        ).all()
        return tuple(
            BillingView(
                id=b.id,
                invoice_number=b.invoice_number,
                project_id=b.project_id,
                project_name=project_name,
                status=str(b.status.value if hasattr(b.status, "value") else b.status),
                total_amount=Decimal(b.total_amount),
                collected_amount=Decimal(amount),
            )
            for b, project_name, amount in rows
        )

    def load_snapshot(self, tz: tzinfo | None = None) -> RecordSnapshot:
        """Everything a scan reads, in one consistent pass.

        ``tz`` is the zone the scan counts calendar days in.  Aware end
        dates are converted into it so that truncating to a day gives the
        local calendar day, not the UTC one.  Naive values are taken as
        already local.
        """
        snapshot = RecordSnapshot(
            projects=self.live_projects(tz),
            billings=self.outstanding_billings(),
            users=self.active_users(),
        )
        logger.debug(
            "record_snapshot_loaded",
            extra={
                "project_count": len(snapshot.projects),
                "billing_count": len(snapshot.billings),
                "user_count": len(snapshot.users),
            },
        )
        return snapshot
