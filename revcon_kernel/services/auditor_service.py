"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates append-only, hash-chained audit events for project lifecycle
    changes and financial record writes.  Provides chain validation for
    tamper detection and per-entity trace queries.

Architecture position:
    Kernel > Services -- called by ProjectLifecycleGuard and
    FinancialRecordService when they are constructed with an auditor.

Invariants enforced:
    - Sequence monotonicity via SequenceService.
    - Chain integrity: every event's hash covers its predecessor's hash.
    - Append-only: enforced by the listeners in db/immutability.py.

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored hash or a
      prev_hash link does not match the recomputed value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from revcon_kernel.domain.clock import Clock, SystemClock
from revcon_kernel.exceptions import AuditChainBrokenError
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.audit_event import AuditAction, AuditEvent
from revcon_kernel.services.base import SYSTEM_ACTOR_ID
from revcon_kernel.services.sequence_service import SequenceService
from revcon_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


class AuditorService:
    """
    Service for creating and validating tamper-evident audit events.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT decide whether an action is worth auditing; callers that
          hold no auditor simply skip the call.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append one event to the chain.

        Postconditions:
            - A new AuditEvent row is flushed with the next ``seq`` and
              ``hash == H(entity_type, entity_id, action, payload_hash,
              prev_hash)``.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = to_json_safe(payload or {})
        computed_payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id or SYSTEM_ACTOR_ID,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )

        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )

        return audit_event

    # Domain-specific recording methods

    def record_project_action(
        self,
        project_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Record a lifecycle action (close, lock, delete, ...) on a project."""
        return self._create_audit_event(
            entity_type="Project",
            entity_id=project_id,
            action=action,
            actor_id=actor_id,
            payload=payload,
        )

    def record_financial_record(
        self,
        record_kind: str,
        record_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        project_id: UUID | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Record a create/update/delete of a billing, collection, revenue or expense."""
        data = dict(payload or {})
        data["project_id"] = str(project_id) if project_id else None
        return self._create_audit_event(
            entity_type=record_kind,
            entity_id=record_id,
            action=action,
            actor_id=actor_id,
            payload=data,
        )

    def validate_chain(self) -> bool:
        """
        Recompute every event hash and link, oldest first.

        Raises:
            AuditChainBrokenError: At the first event whose hash does not
                recompute or whose prev_hash is not its predecessor's hash.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for event in events:
            if event.prev_hash != prev_hash:
                self._chain_broken(event, expected=prev_hash or "None", actual=event.prev_hash or "None")

            recomputed = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=AuditAction(event.action).value,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )
            if event.hash != recomputed:
                self._chain_broken(event, expected=recomputed, actual=event.hash)
            prev_hash = event.hash

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    @staticmethod
    def _chain_broken(event: AuditEvent, expected: str, actual: str) -> None:
        logger.critical("audit_chain_broken", extra={"seq": event.seq, "event_id": str(event.id)})
        raise AuditChainBrokenError(str(event.id), expected, actual)

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        """All audit events for one entity in chronological order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=event.occurred_at,
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=entries,
        )
