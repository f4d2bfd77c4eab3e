from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from custody_api.deps import get_actor, get_assignment_service
from custody_api.routers.uploads import read_signed_file
from custody_api.schemas import AssignmentCreate, AssignmentOut, AssignmentReassign, NotesBody
from custody_kernel.domain.access import Actor
from custody_modules.assignment.models import AssignmentStatus
from custody_modules.assignment.service import AssignmentService

router = APIRouter()


@router.get("", response_model=list[AssignmentOut])
def list_assignments(
    status: AssignmentStatus | None = Query(default=None),
    item_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    rows = service.list(actor, status=status, item_id=item_id, limit=limit, offset=offset)
    return [AssignmentOut.from_dto(row) for row in rows]


@router.post("", response_model=AssignmentOut, status_code=201)
def create_assignment(
    body: AssignmentCreate,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    dto = service.create(
        actor,
        body.item_id,
        body.requisition_id,
        body.requisition_line_id,
        assigned_date=body.assigned_date,
        expected_return_date=body.expected_return_date,
        notes=body.notes,
    )
    return AssignmentOut.from_dto(dto)


@router.get("/{assignment_id}", response_model=AssignmentOut)
def get_assignment(
    assignment_id: UUID,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    return AssignmentOut.from_dto(service.get(actor, assignment_id))


@router.post("/{assignment_id}/handover-slip", response_model=AssignmentOut)
def generate_handover_slip(
    assignment_id: UUID,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    return AssignmentOut.from_dto(service.generate_handover_slip(actor, assignment_id))


@router.post("/{assignment_id}/handover-slip/signed", response_model=AssignmentOut)
def upload_signed_handover(
    assignment_id: UUID,
    file: UploadFile | None = File(default=None),
    notes: str | None = Form(default=None),
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    signed = read_signed_file(file)
    return AssignmentOut.from_dto(service.issue(actor, assignment_id, signed, notes=notes))


@router.post("/{assignment_id}/request-return", response_model=AssignmentOut)
def request_return(
    assignment_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    notes = body.notes if body else None
    return AssignmentOut.from_dto(service.request_return(actor, assignment_id, notes=notes))


@router.post("/{assignment_id}/return-slip", response_model=AssignmentOut)
def generate_return_slip(
    assignment_id: UUID,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    return AssignmentOut.from_dto(service.generate_return_slip(actor, assignment_id))


@router.post("/{assignment_id}/return-slip/signed", response_model=AssignmentOut)
def upload_signed_return(
    assignment_id: UUID,
    file: UploadFile | None = File(default=None),
    notes: str | None = Form(default=None),
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    signed = read_signed_file(file)
    return AssignmentOut.from_dto(service.return_item(actor, assignment_id, signed, notes=notes))


@router.post("/{assignment_id}/reassign", response_model=AssignmentOut, status_code=201)
def reassign(
    assignment_id: UUID,
    body: AssignmentReassign,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    dto = service.reassign(actor, assignment_id, body.employee_id, notes=body.notes)
    return AssignmentOut.from_dto(dto)


@router.post("/{assignment_id}/retire", response_model=AssignmentOut)
def retire(
    assignment_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: AssignmentService = Depends(get_assignment_service),
):
    notes = body.notes if body else None
    return AssignmentOut.from_dto(service.retire(actor, assignment_id, notes=notes))
