"""
DeduplicationFilter -- at most one notification per (user, type, related
entity) per calendar day.

Contract:
    ``accept(candidate, day)`` persists the candidate through the sink and
    returns True, or returns False when the same notification already
    exists for ``day``.

Architecture: revcon_notifications/services.  Talks to the kernel's
    NotificationService through the NotificationSink protocol.

Invariants enforced:
    - The read check avoids a failed INSERT in the common case; the compound
      UNIQUE constraint decides the race between two concurrent scans.
    - The INSERT runs in a SAVEPOINT so a lost race rolls back only that
      row, never the caller's transaction.
    - Read state is irrelevant: a read notification still blocks a second
      one on the same day.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from revcon_kernel.logging_config import get_logger
from revcon_notifications.domain.types import CandidateNotification

logger = get_logger("notifications.dedup")


class NotificationSink(Protocol):
    session: Session

    def exists_today(
        self, user_id: UUID, type: str, related_id: UUID | None, day: date | None = None,
    ) -> bool: ...

    def create(self, user_id: UUID, type: str, title: str, message: str, **kwargs): ...


class DeduplicationFilter:
    """Same-day suppression in front of a notification sink."""

    def __init__(self, sink: NotificationSink):
        self._sink = sink

    def accept(self, candidate: CandidateNotification, day: date) -> bool:
        if self._sink.exists_today(
            candidate.user_id, candidate.type, candidate.related_id, day,
        ):
            return False

        try:
            with self._sink.session.begin_nested():
                self._sink.create(
                    user_id=candidate.user_id,
                    type=candidate.type,
                    title=candidate.title,
                    message=candidate.message,
                    related_id=candidate.related_id,
                    related_kind=candidate.related_kind,
                    priority=candidate.priority,
                    action_url=candidate.action_url,
                    dedup_day=day,
                )
        except IntegrityError:
            logger.info(
                "notification_duplicate_suppressed",
                extra={
                    "user_id": str(candidate.user_id),
                    "type": candidate.type.value,
                    "related_id": str(candidate.related_id) if candidate.related_id else None,
                    "dedup_day": day.isoformat(),
                },
            )
            return False
        return True
