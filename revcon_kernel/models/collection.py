"""
Module: revcon_kernel.models.collection
Responsibility: ORM persistence for money received against a billing.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - project_id is copied from the parent billing when the collection is
      created (FinancialRecordService) so the lock guard can resolve the
      project without a join.
    - collection_number is unique (uq_collection_number).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import TrackedBase, UUIDString


class CollectionStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    PARTIAL = "partial"
    UNCOLLECTIBLE = "uncollectible"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


class Collection(TrackedBase):
    """A payment received against a billing."""

    __tablename__ = "collections"

    __table_args__ = (
        UniqueConstraint("collection_number", name="uq_collection_number"),
        Index("idx_collection_billing", "billing_id"),
        Index("idx_collection_project", "project_id"),
    )

    collection_number: Mapped[str] = mapped_column(String(50), nullable=False)

    billing_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billings.id"),
        nullable=False,
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[CollectionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CollectionStatus.UNPAID,
    )

    collection_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        String(20),
        nullable=True,
    )

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Collection {self.collection_number} {self.amount}>"
