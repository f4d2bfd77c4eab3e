"""
Signed documents that workflows reference but do not create themselves,
such as transfer challans.  Each request is its own transaction.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from custody_api.deps import get_actor, get_db
from custody_api.routers.uploads import read_signed_file
from custody_api.schemas import DocumentCreate, DocumentOut, DocumentVersionOut
from custody_kernel.domain.access import Actor, require_manager, require_office_scope
from custody_kernel.domain.documents import DocumentKind
from custody_kernel.exceptions import InvalidInputError
from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.document_service import DocumentService
from custody_modules.collaborators import DOCUMENT_ENTITY, require_signed_file

router = APIRouter()


def _services(request: Request, session: Session) -> tuple[DocumentService, AuditService]:
    clock = request.app.state.clock
    return DocumentService(session, clock), AuditService(session, clock)


@router.post("", response_model=DocumentOut, status_code=201)
def create_document(
    body: DocumentCreate,
    request: Request,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_db),
):
    try:
        kind = DocumentKind(body.kind)
    except ValueError:
        raise InvalidInputError(f"Unknown document kind: {body.kind}", field="kind") from None
    documents, audit = _services(request, session)
    try:
        require_manager(actor, "create document")
        require_office_scope(actor, body.office_id, "create document")
        document = documents.create(kind, body.office_id, actor, title=body.title)
        audit.append(
            actor, AuditAction.DOCUMENT_CREATE, DOCUMENT_ENTITY, document.id,
            office_id=body.office_id, diff={"kind": kind, "title": body.title},
        )
        out = DocumentOut.model_validate(document)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return out


@router.get("/{document_id}", response_model=DocumentOut)
def get_document(
    document_id: UUID,
    request: Request,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_db),
):
    documents, _ = _services(request, session)
    document = documents.get(document_id)
    require_office_scope(actor, document.office_id, "view document")
    return DocumentOut.model_validate(document)


@router.get("/{document_id}/versions", response_model=list[DocumentVersionOut])
def list_versions(
    document_id: UUID,
    request: Request,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_db),
):
    documents, _ = _services(request, session)
    document = documents.get(document_id)
    require_office_scope(actor, document.office_id, "view document")
    return [DocumentVersionOut.model_validate(v) for v in documents.versions(document_id)]


@router.post("/{document_id}/versions", response_model=DocumentVersionOut, status_code=201)
def upload_version(
    document_id: UUID,
    request: Request,
    file: UploadFile | None = File(default=None),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_db),
):
    """Attach a signed scan as the next version and finalize the document."""
    documents, audit = _services(request, session)
    try:
        document = documents.get(document_id)
        require_manager(actor, "upload document version")
        require_office_scope(actor, document.office_id, "upload document version")
        signed = require_signed_file(read_signed_file(file), DocumentKind(document.kind))
        version = documents.attach_signed_version(document.id, signed, actor, finalize=True)
        audit.append(
            actor, AuditAction.DOCUMENT_VERSION_UPLOAD, DOCUMENT_ENTITY, document.id,
            office_id=document.office_id,
            diff={"version_no": version.version_no, "sha256": version.sha256},
        )
        out = DocumentVersionOut.model_validate(version)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return out
