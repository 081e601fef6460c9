"""
Module: revcon_kernel.models.revenue
Responsibility: ORM persistence for revenue recognized on a project.
Architecture position: Kernel > Models.  May import from db/base.py only.

Revenue rows carry no notification semantics.  Every write goes through
FinancialRecordService so the project lock applies.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import TrackedBase, UUIDString


class RevenueCategory(str, Enum):
    SERVICE = "service"
    PRODUCT = "product"
    CONSULTATION = "consultation"
    OTHER = "other"


class RevenueStatus(str, Enum):
    RECORDED = "recorded"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Revenue(TrackedBase):
    __tablename__ = "revenues"

    __table_args__ = (
        Index("idx_revenue_project_date", "project_id", "date"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    revenue_code: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    category: Mapped[RevenueCategory] = mapped_column(
        String(20),
        nullable=False,
        default=RevenueCategory.SERVICE,
    )

    status: Mapped[RevenueStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RevenueStatus.RECORDED,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Revenue {self.revenue_code} {self.amount}>"
