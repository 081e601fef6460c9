"""
Module: revcon_kernel.models.notification
Responsibility: ORM persistence for in-app notifications produced by the
    scan and read/acknowledged by users.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one notification per (user_id, type, related_id, dedup_day).
      The compound unique constraint makes the same-day rule exact even when
      two scans race; the dedup filter treats the resulting IntegrityError
      as a suppressed duplicate.
    - is_read never affects dedup: a read notification still blocks a second
      one on the same day, and does not block one on the next day.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import Base, UUIDString


class NotificationType(str, Enum):
    PROJECT_END_DATE = "project_end_date"
    PROJECT_OVERDUE = "project_overdue"
    BILLING_UNPAID = "billing_unpaid"
    PROJECT_UNBILLED = "project_unbilled"
    PROJECT_FOLLOW_UP = "project_follow_up"
    SYSTEM = "system"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RelatedKind(str, Enum):
    PROJECT = "project"
    BILLING = "billing"
    COLLECTION = "collection"


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        UniqueConstraint(
            "user_id", "type", "related_id", "dedup_day",
            name="uq_notification_daily",
        ),
        Index("idx_notification_user_read", "user_id", "is_read", "created_at"),
        Index("idx_notification_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    type: Mapped[NotificationType] = mapped_column(String(30), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    related_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    related_kind: Mapped[RelatedKind | None] = mapped_column(
        String(20),
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    priority: Mapped[NotificationPriority] = mapped_column(
        String(10),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )

    action_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Calendar day this notification counts against for dedup
    dedup_day: Mapped[date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type} user={self.user_id} day={self.dedup_day}>"
