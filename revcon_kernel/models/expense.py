"""
Module: revcon_kernel.models.expense
Responsibility: ORM persistence for project and general expenses.
Architecture position: Kernel > Models.  May import from db/base.py only.

project_id is nullable: a general expense belongs to no project and is
therefore never subject to a project lock.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import TrackedBase, UUIDString


class ExpenseCategory(str, Enum):
    LABOR = "labor"
    MATERIALS = "materials"
    EQUIPMENT = "equipment"
    TRAVEL = "travel"
    OVERHEAD = "overhead"
    OTHER = "other"


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class Expense(TrackedBase):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expense_project_date", "project_id", "date"),
        Index("idx_expense_category", "category"),
    )

    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=True,
    )

    expense_code: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    category: Mapped[ExpenseCategory] = mapped_column(
        String(20),
        nullable=False,
        default=ExpenseCategory.OTHER,
    )

    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)

    receipt_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[ExpenseStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ExpenseStatus.PENDING,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Expense {self.expense_code} {self.amount}>"
