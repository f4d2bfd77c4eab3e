from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from custody_api.deps import get_actor, get_transfer_service
from custody_api.schemas import NotesBody, TransferCreate, TransferDocumentBody, TransferOut
from custody_kernel.domain.access import Actor
from custody_modules.transfer.models import TransferStatus
from custody_modules.transfer.service import TransferService

router = APIRouter()


def _notes(body: NotesBody | None) -> str | None:
    return body.notes if body else None


@router.get("", response_model=list[TransferOut])
def list_transfers(
    status: TransferStatus | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return [TransferOut.from_dto(t) for t in service.list(actor, status=status, limit=limit, offset=offset)]


@router.post("", response_model=TransferOut, status_code=201)
def create_transfer(
    body: TransferCreate,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    dto = service.create(
        actor,
        body.source_office_id,
        body.destination_office_id,
        [line.model_dump() for line in body.lines],
        notes=body.notes,
    )
    return TransferOut.from_dto(dto)


@router.get("/{transfer_id}", response_model=TransferOut)
def get_transfer(
    transfer_id: UUID,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.get(actor, transfer_id))


@router.post("/{transfer_id}/approve", response_model=TransferOut)
def approve(
    transfer_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.approve(actor, transfer_id, notes=_notes(body)))


@router.post("/{transfer_id}/dispatch-to-store", response_model=TransferOut)
def dispatch_to_store(
    transfer_id: UUID,
    body: TransferDocumentBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    body = body or TransferDocumentBody()
    dto = service.dispatch_to_store(
        actor, transfer_id, handover_document_id=body.document_id, notes=body.notes,
    )
    return TransferOut.from_dto(dto)


@router.post("/{transfer_id}/receive-at-store", response_model=TransferOut)
def receive_at_store(
    transfer_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.receive_at_store(actor, transfer_id, notes=_notes(body)))


@router.post("/{transfer_id}/dispatch-to-dest", response_model=TransferOut)
def dispatch_to_dest(
    transfer_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.dispatch_to_dest(actor, transfer_id, notes=_notes(body)))


@router.post("/{transfer_id}/receive-at-dest", response_model=TransferOut)
def receive_at_dest(
    transfer_id: UUID,
    body: TransferDocumentBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    body = body or TransferDocumentBody()
    dto = service.receive_at_dest(
        actor, transfer_id, takeover_document_id=body.document_id, notes=body.notes,
    )
    return TransferOut.from_dto(dto)


@router.post("/{transfer_id}/reject", response_model=TransferOut)
def reject(
    transfer_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.reject(actor, transfer_id, notes=_notes(body)))


@router.post("/{transfer_id}/cancel", response_model=TransferOut)
def cancel(
    transfer_id: UUID,
    body: NotesBody | None = None,
    actor: Actor = Depends(get_actor),
    service: TransferService = Depends(get_transfer_service),
):
    return TransferOut.from_dto(service.cancel(actor, transfer_id, notes=_notes(body)))
