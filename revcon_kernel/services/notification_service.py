"""
NotificationService -- the notification sink.

Responsibility:
    Persists notifications produced by the scan, answers the same-day
    existence question the dedup filter asks, and serves the per-user
    inbox operations (list, unread count, mark read, delete).

Architecture position:
    Kernel > Services.  Called by revcon_notifications.services.dedup and
    by whatever API layer exposes the inbox.

Invariants enforced:
    - dedup_day defaults to the clock's calendar day, so "exists today"
      and the compound unique constraint agree on what "today" means.
    - Inbox operations are scoped to the owning user; another user's
      notification id is reported as not found.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.exceptions import NotificationNotFoundError
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedKind,
)
from revcon_kernel.services.base import BaseService

logger = get_logger("services.notifications")


class NotificationService(BaseService[Notification]):
    """Notification sink and per-user inbox."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Sink operations (used by the scan)
    # ------------------------------------------------------------------

    def exists_today(
        self,
        user_id: UUID,
        type: NotificationType | str,
        related_id: UUID | None,
        day: date | None = None,
    ) -> bool:
        """True if ``user_id`` already has a ``type`` notification about
        ``related_id`` counted against ``day``."""
        day = day or self._clock.today()
        related_clause = (
            Notification.related_id.is_(None)
            if related_id is None
            else Notification.related_id == related_id
        )
        stmt = (
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.type == NotificationType(type).value,
                related_clause,
                Notification.dedup_day == day,
            )
            .limit(1)
        )
        return self.session.execute(stmt).first() is not None

    def create(
        self,
        user_id: UUID,
        type: NotificationType | str,
        title: str,
        message: str,
        related_id: UUID | None = None,
        related_kind: RelatedKind | str | None = None,
        priority: NotificationPriority | str = NotificationPriority.MEDIUM,
        action_url: str | None = None,
        dedup_day: date | None = None,
    ) -> Notification:
        """
        Insert one notification.

        Raises:
            IntegrityError: a notification with the same (user, type,
                related_id, dedup_day) exists.  The dedup filter expects
                this and runs the call inside a SAVEPOINT.
        """
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type),
            title=title,
            message=message,
            related_id=related_id,
            related_kind=RelatedKind(related_kind) if related_kind else None,
            priority=NotificationPriority(priority),
            action_url=action_url,
            is_read=False,
            created_at=self._clock.now(),
            dedup_day=dedup_day or self._clock.today(),
        )
        self.session.add(notification)
        self.session.flush()

        logger.debug(
            "notification_created",
            extra={
                "notification_id": str(notification.id),
                "user_id": str(user_id),
                "type": notification.type.value,
                "related_id": str(related_id) if related_id else None,
            },
        )
        return notification

    # ------------------------------------------------------------------
    # Inbox operations
    # ------------------------------------------------------------------

    def list_for_user(
        self,
        user_id: UUID,
        is_read: bool | None = None,
        type: NotificationType | str | None = None,
        limit: int = 100,
    ) -> list[Notification]:
        """Newest first, optionally filtered by read state and type."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(is_read))
        if type is not None:
            stmt = stmt.where(Notification.type == NotificationType(type).value)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def unread_count(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        return int(self.session.execute(stmt).scalar_one())

    def _owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotificationNotFoundError(notification_id, user_id)
        return notification

    def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = self._owned(notification_id, user_id)
        notification.is_read = True
        self.session.flush()
        return notification

    def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of ``user_id`` read; returns the count."""
        result = self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        logger.info(
            "notifications_marked_read",
            extra={"user_id": str(user_id), "count": result.rowcount},
        )
        return result.rowcount

    def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = self._owned(notification_id, user_id)
        self.session.delete(notification)
        self.session.flush()
