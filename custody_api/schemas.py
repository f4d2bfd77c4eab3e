"""Request and response bodies for the HTTP surface (pydantic v2)."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from custody_modules.assignment.models import Assignment
from custody_modules.return_batch.models import ReturnBatch
from custody_modules.transfer.models import Transfer


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class AssignmentCreate(BaseModel):
    item_id: UUID
    requisition_id: UUID
    requisition_line_id: UUID
    assigned_date: date | None = None
    expected_return_date: date | None = None
    notes: str | None = None


class AssignmentReassign(BaseModel):
    employee_id: UUID
    notes: str | None = None


class NotesBody(BaseModel):
    notes: str | None = None


class TransferLineIn(BaseModel):
    # Lines are validated by the transfer service; keep them loose here.
    model_config = ConfigDict(extra="allow")

    item_id: str | None = None
    notes: str | None = None


class TransferCreate(BaseModel):
    source_office_id: UUID
    destination_office_id: UUID
    lines: list[TransferLineIn] = Field(default_factory=list)
    notes: str | None = None


class TransferDocumentBody(BaseModel):
    document_id: UUID | None = None
    notes: str | None = None


class ReturnBatchCreate(BaseModel):
    employee_id: UUID | None = None
    office_id: UUID | None = None
    return_all: bool = False
    item_ids: list[UUID] | None = None
    notes: str | None = None


class DocumentCreate(BaseModel):
    kind: str
    office_id: UUID | None = None
    title: str


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class AssignmentOut(BaseModel):
    id: UUID
    item_id: UUID
    custodian_type: str
    custodian_id: UUID
    status: str
    office_id: UUID | None
    requisition_id: UUID | None
    requisition_line_id: UUID | None
    handover_document_id: UUID | None
    return_document_id: UUID | None
    previous_assignment_id: UUID | None
    assigned_date: date | None
    expected_return_date: date | None
    issued_at: datetime | None
    return_requested_at: datetime | None
    returned_date: datetime | None
    notes: str | None
    is_active: bool

    @classmethod
    def from_dto(cls, dto: Assignment) -> "AssignmentOut":
        return cls(
            id=dto.id,
            item_id=dto.item_id,
            custodian_type=dto.custodian.custodian_type.value,
            custodian_id=dto.custodian.custodian_id,
            status=dto.status.value,
            office_id=dto.office_id,
            requisition_id=dto.requisition_id,
            requisition_line_id=dto.requisition_line_id,
            handover_document_id=dto.handover_document_id,
            return_document_id=dto.return_document_id,
            previous_assignment_id=dto.previous_assignment_id,
            assigned_date=dto.assigned_date,
            expected_return_date=dto.expected_return_date,
            issued_at=dto.issued_at,
            return_requested_at=dto.return_requested_at,
            returned_date=dto.returned_date,
            notes=dto.notes,
            is_active=dto.is_active,
        )


class LineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    notes: str | None = None


class TransferOut(BaseModel):
    id: UUID
    source_office_id: UUID
    destination_office_id: UUID
    store_id: UUID | None
    status: str
    lines: list[LineOut]
    handover_document_id: UUID | None
    takeover_document_id: UUID | None
    transfer_date: date | None
    requested_at: datetime | None
    approved_at: datetime | None
    dispatched_to_store_at: datetime | None
    received_at_store_at: datetime | None
    dispatched_to_dest_at: datetime | None
    received_at_dest_at: datetime | None
    rejected_at: datetime | None
    cancelled_at: datetime | None
    notes: str | None

    @classmethod
    def from_dto(cls, dto: Transfer) -> "TransferOut":
        return cls(
            id=dto.id,
            source_office_id=dto.source_office_id,
            destination_office_id=dto.destination_office_id,
            store_id=dto.store_id,
            status=dto.status.value,
            lines=[LineOut.model_validate(line) for line in dto.lines],
            handover_document_id=dto.handover_document_id,
            takeover_document_id=dto.takeover_document_id,
            transfer_date=dto.transfer_date,
            requested_at=dto.requested_at,
            approved_at=dto.approved_at,
            dispatched_to_store_at=dto.dispatched_to_store_at,
            received_at_store_at=dto.received_at_store_at,
            dispatched_to_dest_at=dto.dispatched_to_dest_at,
            received_at_dest_at=dto.received_at_dest_at,
            rejected_at=dto.rejected_at,
            cancelled_at=dto.cancelled_at,
            notes=dto.notes,
        )


class ReturnBatchLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    assignment_id: UUID | None = None
    notes: str | None = None


class ReturnBatchOut(BaseModel):
    id: UUID
    employee_id: UUID
    office_id: UUID
    status: str
    lines: list[ReturnBatchLineOut]
    register_entry_id: UUID | None
    receipt_document_id: UUID | None
    submitted_at: datetime | None
    received_at: datetime | None
    closed_at: datetime | None
    notes: str | None

    @classmethod
    def from_dto(cls, dto: ReturnBatch) -> "ReturnBatchOut":
        return cls(
            id=dto.id,
            employee_id=dto.employee_id,
            office_id=dto.office_id,
            status=dto.status.value,
            lines=[ReturnBatchLineOut.model_validate(line) for line in dto.lines],
            register_entry_id=dto.register_entry_id,
            receipt_document_id=dto.receipt_document_id,
            submitted_at=dto.submitted_at,
            received_at=dto.received_at,
            closed_at=dto.closed_at,
            notes=dto.notes,
        )


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    kind: str
    status: str
    office_id: UUID | None


class DocumentVersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    version_no: int
    file_name: str
    mime_type: str
    size_bytes: int
    sha256: str
    uploaded_at: datetime
