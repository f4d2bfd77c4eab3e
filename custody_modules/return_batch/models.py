"""
Return Batch Domain Models.

The nouns of a bulk return: one employee, one office, the lines of items
being handed back together, and the receipt they produce.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from custody_kernel.logging_config import get_logger

logger = get_logger("modules.return_batch.models")


class ReturnBatchStatus(str, Enum):
    """Return batch lifecycle states."""
    SUBMITTED = "SUBMITTED"
    RECEIVED_CONFIRMED = "RECEIVED_CONFIRMED"  # declared, no transition produces it
    CLOSED_PENDING_SIGNATURE = "CLOSED_PENDING_SIGNATURE"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"  # declared, no transition produces it


# Batches that still own their lines' assignments.
OPEN_RETURN_BATCH_STATUSES: frozenset[ReturnBatchStatus] = frozenset({
    ReturnBatchStatus.SUBMITTED,
    ReturnBatchStatus.RECEIVED_CONFIRMED,
})

RECEIVABLE_STATUSES = OPEN_RETURN_BATCH_STATUSES


@dataclass(frozen=True)
class ReturnBatchLine:
    """One returned item and the assignment it closes."""
    item_id: UUID
    assignment_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReturnBatch:
    """A bulk-return episode for one employee within one office."""
    id: UUID
    employee_id: UUID
    office_id: UUID
    status: ReturnBatchStatus
    lines: tuple[ReturnBatchLine, ...] = field(default_factory=tuple)
    register_entry_id: UUID | None = None
    receipt_document_id: UUID | None = None
    submitted_by_id: UUID | None = None
    submitted_at: datetime | None = None
    received_by_id: UUID | None = None
    received_at: datetime | None = None
    closed_by_id: UUID | None = None
    closed_at: datetime | None = None
    notes: str | None = None

    @property
    def item_ids(self) -> tuple[UUID, ...]:
        return tuple(line.item_id for line in self.lines)
