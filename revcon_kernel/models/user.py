"""
Module: revcon_kernel.models.user
Responsibility: ORM persistence for tracker users: their role (consulted by
    the permission oracle) and their per-category notification preferences
    (consulted by the condition evaluators).
Architecture position: Kernel > Models.  May import from db/base.py only.

Authentication material (passwords, sessions, email verification) is not
stored here.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import Base
from revcon_kernel.domain.permissions import Role


class User(Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_active", "is_active"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[Role] = mapped_column(
        String(30),
        nullable=False,
        default=Role.VIEWER,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Notification preferences.  A False value mutes that category for this
    # user only.
    notify_project_deadline: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    notify_billing_follow_up: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    notify_payment_overdue: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    notify_system_announcements: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
