"""
AuditService -- append-only audit trail for custody operations.

Responsibility:
    Appends one ``AuditLogModel`` row per significant state change: who
    (actor), what (action), which entity, in which office, and the
    before/after diff.  Provides trace queries for review.

Architecture position:
    Kernel > Services -- imperative shell, called by the workflow services
    and by RegisterService inside their transactions.

Invariants enforced:
    - Append-only: rows are inserted, never updated or deleted.
    - Ordering: ``seq`` comes from SequenceService, so the trace order is
      the commit order of the allocating transactions.
    - Atomicity: the row is flushed into the caller's transaction and
      disappears with it on rollback.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from custody_kernel.domain.access import Actor
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.logging_config import get_logger
from custody_kernel.models.audit_log import AuditLogModel
from custody_kernel.services.sequence_service import SequenceService

logger = get_logger("services.audit")


class AuditAction(str, Enum):
    """Audit actions written by the custody engine."""

    # Assignment
    ASSIGN_DRAFT_CREATE = "ASSIGN_DRAFT_CREATE"
    ASSIGN_HANDOVER_SLIP_GENERATE = "ASSIGN_HANDOVER_SLIP_GENERATE"
    ASSIGN_ISSUE_FROM_SIGNED_HANDOVER = "ASSIGN_ISSUE_FROM_SIGNED_HANDOVER"
    ASSIGN_RETURN_REQUEST = "ASSIGN_RETURN_REQUEST"
    ASSIGN_RETURN_SLIP_GENERATE = "ASSIGN_RETURN_SLIP_GENERATE"
    ASSIGN_RETURN_FROM_SIGNED_SLIP = "ASSIGN_RETURN_FROM_SIGNED_SLIP"
    ASSIGN_REASSIGN_DRAFT_CREATE = "ASSIGN_REASSIGN_DRAFT_CREATE"
    ASSIGN_RETIRE = "ASSIGN_RETIRE"

    # Transfer
    TRANSFER_CREATE = "TRANSFER_CREATE"
    TRANSFER_APPROVE = "TRANSFER_APPROVE"
    TRANSFER_DISPATCH_TO_STORE = "TRANSFER_DISPATCH_TO_STORE"
    TRANSFER_RECEIVE_AT_STORE = "TRANSFER_RECEIVE_AT_STORE"
    TRANSFER_DISPATCH_TO_DEST = "TRANSFER_DISPATCH_TO_DEST"
    TRANSFER_RECEIVE_AT_DEST = "TRANSFER_RECEIVE_AT_DEST"
    TRANSFER_REJECT = "TRANSFER_REJECT"
    TRANSFER_CANCEL = "TRANSFER_CANCEL"

    # Return batch
    RETURN_REQUEST_SUBMIT = "RETURN_REQUEST_SUBMIT"
    RETURN_REQUEST_RECEIVE = "RETURN_REQUEST_RECEIVE"
    RETURN_REQUEST_SIGNED_RETURN_UPLOAD = "RETURN_REQUEST_SIGNED_RETURN_UPLOAD"

    # Register
    CREATE_RECORD = "CREATE_RECORD"
    STATUS_CHANGE = "STATUS_CHANGE"
    REQUEST_APPROVAL = "REQUEST_APPROVAL"
    APPROVE = "APPROVE"
    REJECT = "REJECT"

    # Documents
    DOCUMENT_CREATE = "DOCUMENT_CREATE"
    DOCUMENT_VERSION_UPLOAD = "DOCUMENT_VERSION_UPLOAD"


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: str
    occurred_at: datetime
    actor_user_id: UUID
    office_id: UUID | None
    diff: dict[str, Any]


class AuditService:
    """
    Service for appending and reading audit log rows.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence = SequenceService(session)

    def append(
        self,
        actor: Actor,
        action: AuditAction | str,
        entity_type: str,
        entity_id: UUID,
        office_id: UUID | None = None,
        diff: dict[str, Any] | None = None,
    ) -> AuditLogModel:
        """Append one audit row to the caller's transaction."""
        action_value = action.value if isinstance(action, AuditAction) else action
        row = AuditLogModel(
            seq=self._sequence.next_value(SequenceService.AUDIT_LOG),
            actor_user_id=actor.user_id,
            office_id=office_id,
            action=action_value,
            entity_type=entity_type,
            entity_id=entity_id,
            occurred_at=self._clock.now(),
            diff=_jsonable(diff) if diff else None,
        )
        self._session.add(row)
        self._session.flush()

        logger.info(
            "audit_log_appended",
            extra={
                "action": action_value,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "seq": row.seq,
            },
        )
        return row

    def get_trace(self, entity_type: str, entity_id: UUID) -> tuple[AuditTraceEntry, ...]:
        """All audit rows for an entity in append order."""
        rows = self._session.execute(
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(AuditLogModel.seq)
        ).scalars().all()
        return tuple(
            AuditTraceEntry(
                seq=row.seq,
                action=row.action,
                occurred_at=row.occurred_at,
                actor_user_id=row.actor_user_id,
                office_id=row.office_id,
                diff=row.diff or {},
            )
            for row in rows
        )

    def actions_for(self, entity_type: str, entity_id: UUID) -> list[str]:
        return [entry.action for entry in self.get_trace(entity_type, entity_id)]


def _jsonable(value: Any) -> Any:
    """Coerce UUIDs, datetimes and enums in a diff to JSON-safe values."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value
