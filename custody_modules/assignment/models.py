"""
Assignment Domain Models.

The nouns of a custody handoff: one item, one custodian (employee or
room), one episode from draft to return.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from custody_kernel.domain.custody import Custodian, custodian_employee_id
from custody_kernel.logging_config import get_logger

logger = get_logger("modules.assignment.models")


class AssignmentStatus(str, Enum):
    """Assignment lifecycle states."""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


OPEN_ASSIGNMENT_STATUSES: frozenset[AssignmentStatus] = frozenset({
    AssignmentStatus.DRAFT,
    AssignmentStatus.ISSUED,
    AssignmentStatus.RETURN_REQUESTED,
})

# Statuses in which the item is physically with the custodian.
HELD_ASSIGNMENT_STATUSES: frozenset[AssignmentStatus] = frozenset({
    AssignmentStatus.ISSUED,
    AssignmentStatus.RETURN_REQUESTED,
})

MOVEABLE_LINE_TYPE = "MOVEABLE"


@dataclass(frozen=True)
class Assignment:
    """One handoff episode of an item to a custodian."""
    id: UUID
    item_id: UUID
    custodian: Custodian
    status: AssignmentStatus
    office_id: UUID | None = None
    requisition_id: UUID | None = None
    requisition_line_id: UUID | None = None
    handover_document_id: UUID | None = None
    return_document_id: UUID | None = None
    previous_assignment_id: UUID | None = None
    assigned_date: date | None = None
    expected_return_date: date | None = None
    issued_at: datetime | None = None
    return_requested_at: datetime | None = None
    returned_date: datetime | None = None
    notes: str | None = None
    is_active: bool = True

    @property
    def employee_id(self) -> UUID | None:
        return custodian_employee_id(self.custodian)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ASSIGNMENT_STATUSES
