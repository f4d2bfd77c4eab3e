"""
Transfer Domain Models.

The nouns of an inter-office move: lines of items, a source office, a
destination office and the head office store every transfer passes through.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from custody_kernel.domain.custody import CustodyLine
from custody_kernel.logging_config import get_logger

logger = get_logger("modules.transfer.models")


class TransferStatus(str, Enum):
    """Transfer lifecycle states."""
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    DISPATCHED_TO_STORE = "DISPATCHED_TO_STORE"
    RECEIVED_AT_STORE = "RECEIVED_AT_STORE"
    DISPATCHED_TO_DEST = "DISPATCHED_TO_DEST"
    RECEIVED_AT_DEST = "RECEIVED_AT_DEST"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Single-hop transfers recorded before the store waypoint existed.
LEGACY_STATUS_ALIASES: dict[str, TransferStatus] = {
    "DISPATCHED": TransferStatus.DISPATCHED_TO_DEST,
    "RECEIVED": TransferStatus.RECEIVED_AT_DEST,
}

# Items have left the source office; aborting must put them back.
IN_FLIGHT_STATUSES: frozenset[TransferStatus] = frozenset({
    TransferStatus.DISPATCHED_TO_STORE,
    TransferStatus.RECEIVED_AT_STORE,
    TransferStatus.DISPATCHED_TO_DEST,
})

TERMINAL_STATUSES: frozenset[TransferStatus] = frozenset({
    TransferStatus.RECEIVED_AT_DEST,
    TransferStatus.REJECTED,
    TransferStatus.CANCELLED,
})


def normalize_transfer_status(value: str) -> TransferStatus:
    """Canonical status for a stored value, legacy names included."""
    if value in LEGACY_STATUS_ALIASES:
        return LEGACY_STATUS_ALIASES[value]
    return TransferStatus(value)


def stored_values_for(statuses) -> tuple[str, ...]:
    """Every stored status string that reads as one of ``statuses``."""
    wanted = set(statuses)
    values = [s.value for s in TransferStatus if s in wanted]
    values.extend(raw for raw, status in LEGACY_STATUS_ALIASES.items() if status in wanted)
    return tuple(values)


OPEN_TRANSFER_STATUS_VALUES: tuple[str, ...] = stored_values_for(
    s for s in TransferStatus if s not in TERMINAL_STATUSES
)


@dataclass(frozen=True)
class Transfer:
    """A batch move of items from one office to another via the store."""
    id: UUID
    source_office_id: UUID
    destination_office_id: UUID
    status: TransferStatus
    lines: tuple[CustodyLine, ...] = field(default_factory=tuple)
    store_id: UUID | None = None
    handover_document_id: UUID | None = None
    takeover_document_id: UUID | None = None
    transfer_date: date | None = None
    requested_by_id: UUID | None = None
    requested_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    dispatched_to_store_by_id: UUID | None = None
    dispatched_to_store_at: datetime | None = None
    received_at_store_by_id: UUID | None = None
    received_at_store_at: datetime | None = None
    dispatched_to_dest_by_id: UUID | None = None
    dispatched_to_dest_at: datetime | None = None
    received_at_dest_by_id: UUID | None = None
    received_at_dest_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    cancelled_by_id: UUID | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None
    is_active: bool = True

    @property
    def item_ids(self) -> tuple[UUID, ...]:
        return tuple(line.item_id for line in self.lines)
