"""
Module: revcon_kernel.models.project
Responsibility: ORM persistence for projects, the parent of every revenue,
    expense, billing and collection record.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain enums only.

Invariants enforced (by ProjectLifecycleGuard, not at ORM level):
    - deleted_at IS NOT NULL hides the project from active views and from
      every lifecycle transition except restore / permanent delete.
    - is_locked forbids create/update/delete of child financial records.
    - locked_at / locked_by_id are set together with is_locked and cleared
      together on unlock.
    - status moves follow PROJECT_WORKFLOW; close sets status=closed and
      actual_end_date in the same flush.

Failure modes:
    - IntegrityError on duplicate code (uq_project_code).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from revcon_kernel.db.base import TrackedBase, UUIDString
from revcon_kernel.domain.project_workflow import ProjectStatus


class Project(TrackedBase):
    """
    A client engagement whose money flows are tracked.

    Guarantees:
        - code is unique and stored upper-case.
        - status defaults to pending.
        - start_date and end_date are always set.
    """

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("code", name="uq_project_code"),
        Index("idx_project_status", "status"),
        Index("idx_project_end_date", "end_date"),
        Index("idx_project_deleted_at", "deleted_at"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ProjectStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProjectStatus.PENDING,
    )

    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Planned end; drives the ending-soon and overdue notifications
    end_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    actual_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    budget: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    locked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Soft delete marker; NULL means live
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @validates("code")
    def _normalize_code(self, key: str, value: str) -> str:
        return value.strip().upper()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Project {self.code}: {self.name} ({self.status})>"
