from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile

from custody_api.deps import get_actor, get_return_batch_service
from custody_api.routers.uploads import read_signed_file
from custody_api.schemas import NotesBody, ReturnBatchCreate, ReturnBatchOut
from custody_kernel.domain.access import Actor
from custody_modules.return_batch.models import ReturnBatchStatus
from custody_modules.return_batch.service import ReturnBatchService

router = APIRouter()


@router.get("", response_model=list[ReturnBatchOut])
def list_return_batches(
    status: ReturnBatchStatus | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    service: ReturnBatchService = Depends(get_return_batch_service),
):
    rows = service.list(actor, status=status, limit=limit, offset=offset)
    return [ReturnBatchOut.from_dto(row) for row in rows]


@router.post("", response_model=ReturnBatchOut, status_code=201)
def create_return_batch(
    body: ReturnBatchCreate,
    actor: Actor = Depends(get_actor),
    service: ReturnBatchService = Depends(get_return_batch_service),
):
    dto = service.create(
        actor,
        employee_id=body.employee_id,
        office_id=body.office_id,
        return_all=body.return_all,
        item_ids=body.item_ids,
        notes=body.notes,
    )
    return ReturnBatchOut.from_dto(dto)


@router.get("/{batch_id}", response_model=ReturnBatchOut)
def get_return_batch(
    batch_id: UUID,
    actor: Actor = Depends(get_actor),
    service: ReturnBatchService = Depends(get_return_batch_service),
):
    return ReturnBatchOut.from_dto(service.get(actor, batch_id))


@router.post("/{batch_id}/receive", response_model=ReturnBatchOut)
def receive(
    batch_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: ReturnBatchService = Depends(get_return_batch_service),
):
    notes = body.notes if body else None
    return ReturnBatchOut.from_dto(service.receive(actor, batch_id, notes=notes))


@router.post("/{batch_id}/signed-return", response_model=ReturnBatchOut)
def upload_signed_return(
    batch_id: UUID,
    file: UploadFile | None = File(default=None),
    actor: Actor = Depends(get_actor),
    service: ReturnBatchService = Depends(get_return_batch_service),
):
    signed = read_signed_file(file)
    return ReturnBatchOut.from_dto(service.upload_signed_return(actor, batch_id, signed))
