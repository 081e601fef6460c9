"""
Read-side value objects handed from the record selector to the condition
evaluators.

Responsibility:
    Immutable views of projects, outstanding billings and active users as
    of one scan.  Evaluators see only these types, never ORM rows, so they
    stay pure and can be tested without a database.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ProjectView:
    id: UUID
    code: str
    name: str
    status: str
    end_date: datetime | None
    is_deleted: bool = False
    billing_count: int = 0


@dataclass(frozen=True)
class BillingView:
    id: UUID
    invoice_number: str
    project_id: UUID
    project_name: str
    status: str
    total_amount: Decimal
    collected_amount: Decimal = Decimal("0")
    project_is_deleted: bool = False

    @property
    def is_fully_collected(self) -> bool:
        return self.collected_amount >= self.total_amount


@dataclass(frozen=True)
class UserView:
    """An active user and their per-category notification preferences."""

    id: UUID
    email: str
    notify_project_deadline: bool = True
    notify_billing_follow_up: bool = True
    notify_payment_overdue: bool = True
    notify_system_announcements: bool = True


@dataclass(frozen=True)
class RecordSnapshot:
    """Everything one notification scan reads, loaded once."""

    projects: tuple[ProjectView, ...] = ()
    billings: tuple[BillingView, ...] = ()
    users: tuple[UserView, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.projects or self.billings)
