"""
ORM model for notification scan history.

Contract:
    One ScanRunModel row per scan execution, including skipped runs.
    ``to_result()`` converts the row back into a ScanRunResult.

Architecture: revcon_notifications/models. Imports from revcon_kernel.db.base only.

Invariants enforced:
    - ``run_key`` is UNIQUE: two instances firing the same scheduled slot
      cannot both record a run for it.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import Base

if TYPE_CHECKING:
    from revcon_notifications.domain.types import ScanRunResult


class ScanRunModel(Base):
    """Persistent record of one notification scan."""

    __tablename__ = "notification_scan_runs"

    __table_args__ = (
        Index("ix_scan_runs_reference_day", "reference_day"),
        Index("ix_scan_runs_status", "status"),
    )

    run_key: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    reference_day: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    trigger: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    evaluated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def to_result(self) -> ScanRunResult:
        from revcon_notifications.domain.types import (
            ScanRunResult,
            ScanRunStatus,
            ScanTrigger,
        )

        return ScanRunResult(
            reference_day=self.reference_day,
            status=ScanRunStatus(self.status),
            created=self.created,
            skipped=self.skipped,
            errors=tuple(self.errors or ()),
            evaluated=self.evaluated,
            run_key=self.run_key,
            trigger=ScanTrigger(self.trigger),
            started_at=self.started_at,
            completed_at=self.completed_at,
            duration_ms=self.duration_ms,
        )

    def __repr__(self) -> str:
        return f"<ScanRun {self.run_key} {self.status}>"
