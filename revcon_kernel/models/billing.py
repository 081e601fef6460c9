"""
Module: revcon_kernel.models.billing
Responsibility: ORM persistence for invoices issued against a project.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - total_amount = amount - tax whenever the caller does not supply it
      (compute_total_amount, applied by FinancialRecordService).
    - invoice_number is unique (uq_billing_invoice_number).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import TrackedBase, UUIDString


class BillingStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Statuses under which an invoice is still awaiting money
OUTSTANDING_BILLING_STATUSES: frozenset[BillingStatus] = frozenset(
    {BillingStatus.SENT, BillingStatus.OVERDUE}
)


def compute_total_amount(amount: Decimal, tax: Decimal | None) -> Decimal:
    """Net invoice total: the tax figure is withheld from the billed amount."""
    return Decimal(amount) - Decimal(tax or 0)


class Billing(TrackedBase):
    """An invoice against a project."""

    __tablename__ = "billings"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_billing_invoice_number"),
        Index("idx_billing_project", "project_id"),
        Index("idx_billing_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    billing_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[BillingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BillingStatus.DRAFT,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Billing {self.invoice_number} ({self.status})>"
