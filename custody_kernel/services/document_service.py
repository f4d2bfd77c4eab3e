"""
DocumentService -- signed paperwork records consulted by the workflows.

Responsibility:
    Creates document records (handover slips, return slips, transfer
    challans ...), appends signed scan versions, links documents to
    entities, and answers whether a required document exists in the
    required kind and status.  File bytes are digested here but stored by
    an outside blob store keyed by ``storage_key``.

Architecture position:
    Kernel > Services.  Called inside workflow transactions, so a document
    created for a workflow step disappears if the step rolls back.

Invariants enforced:
    - ``version_no`` is max(existing) + 1 per document and unique per
      document (a racing upload fails on the unique constraint).
    - Every version records the sha256 and size of the uploaded bytes.

Failure modes:
    - EntityNotFoundError: ``get`` on an unknown document id.
    - MissingDocumentError: ``require`` when the document is absent, of the
      wrong kind, or not in the required status.
"""

import hashlib
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from custody_kernel.domain.access import Actor
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.domain.documents import DocumentKind, DocumentStatus, SignedFile
from custody_kernel.exceptions import EntityNotFoundError, MissingDocumentError
from custody_kernel.logging_config import get_logger
from custody_kernel.models.document import DocumentLinkModel, DocumentModel, DocumentVersionModel

logger = get_logger("services.document")


class DocumentService:
    """
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT render or store file bytes.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def create(
        self,
        kind: DocumentKind,
        office_id: UUID | None,
        actor: Actor,
        title: str | None = None,
        status: DocumentStatus = DocumentStatus.DRAFT,
    ) -> DocumentModel:
        document = DocumentModel(
            title=title or kind.value,
            kind=kind.value,
            status=status.value,
            office_id=office_id,
            created_by_id=actor.user_id,
        )
        self._session.add(document)
        self._session.flush()
        logger.info(
            "document_created",
            extra={"document_id": str(document.id), "kind": kind.value},
        )
        return document

    def get(self, document_id: UUID) -> DocumentModel:
        document = self._session.get(DocumentModel, document_id)
        if document is None:
            raise EntityNotFoundError("Document", str(document_id))
        return document

    def exists(
        self,
        document_id: UUID | None,
        required_kind: DocumentKind | None = None,
        required_status: DocumentStatus | None = None,
    ) -> bool:
        if document_id is None:
            return False
        document = self._session.get(DocumentModel, document_id)
        if document is None:
            return False
        if required_kind is not None and document.kind != required_kind.value:
            return False
        if required_status is not None and document.status != required_status.value:
            return False
        return True

    def require(
        self,
        document_id: UUID | None,
        required_kind: DocumentKind,
        required_status: DocumentStatus = DocumentStatus.FINAL,
    ) -> DocumentModel:
        """Return the document, or raise MissingDocumentError naming the gap."""
        if document_id is None:
            raise MissingDocumentError(required_kind.value, "no document reference supplied")
        document = self._session.get(DocumentModel, document_id)
        if document is None:
            raise MissingDocumentError(
                required_kind.value, "document does not exist", str(document_id),
            )
        if document.kind != required_kind.value:
            raise MissingDocumentError(
                required_kind.value,
                f"document is a {document.kind}",
                str(document_id),
            )
        if document.status != required_status.value:
            raise MissingDocumentError(
                required_kind.value,
                f"document is {document.status}, expected {required_status.value}",
                str(document_id),
            )
        return document

    def set_status(self, document_id: UUID, status: DocumentStatus) -> DocumentModel:
        document = self.get(document_id)
        document.status = status.value
        self._session.flush()
        return document

    def finalize(self, document_id: UUID) -> DocumentModel:
        return self.set_status(document_id, DocumentStatus.FINAL)

    # -------------------------------------------------------------------------
    # Versions
    # -------------------------------------------------------------------------

    def attach_signed_version(
        self,
        document_id: UUID,
        signed_file: SignedFile,
        actor: Actor,
        finalize: bool = True,
    ) -> DocumentVersionModel:
        """Append the signed scan as the next version; finalize the document."""
        document = self.get(document_id)
        current_max = self._session.execute(
            select(func.max(DocumentVersionModel.version_no))
            .where(DocumentVersionModel.document_id == document_id)
        ).scalar_one_or_none()
        version_no = (current_max or 0) + 1

        version = DocumentVersionModel(
            document_id=document_id,
            version_no=version_no,
            file_name=signed_file.file_name,
            mime_type=signed_file.mime_type,
            size_bytes=signed_file.size_bytes,
            storage_key=signed_file.storage_key
            or f"documents/{document_id}/v{version_no}/{signed_file.file_name}",
            sha256=hashlib.sha256(signed_file.content).hexdigest(),
            uploaded_by_id=actor.user_id,
            uploaded_at=self._clock.now(),
        )
        self._session.add(version)
        if finalize:
            document.status = DocumentStatus.FINAL.value
        self._session.flush()

        logger.info(
            "document_version_attached",
            extra={
                "document_id": str(document_id),
                "version_no": version_no,
                "sha256": version.sha256,
            },
        )
        return version

    def versions(self, document_id: UUID) -> list[DocumentVersionModel]:
        return list(
            self._session.execute(
                select(DocumentVersionModel)
                .where(DocumentVersionModel.document_id == document_id)
                .order_by(DocumentVersionModel.version_no)
            ).scalars().all()
        )

    # -------------------------------------------------------------------------
    # Links
    # -------------------------------------------------------------------------

    def link(
        self,
        document_id: UUID,
        entity_type: str,
        entity_id: UUID,
        required_for_status: str | None = None,
    ) -> DocumentLinkModel:
        """Link a document to an entity; an identical existing link is reused."""
        existing = self._session.execute(
            select(DocumentLinkModel).where(
                DocumentLinkModel.document_id == document_id,
                DocumentLinkModel.entity_type == entity_type,
                DocumentLinkModel.entity_id == entity_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            if required_for_status and existing.required_for_status != required_for_status:
                existing.required_for_status = required_for_status
                self._session.flush()
            return existing

        link = DocumentLinkModel(
            document_id=document_id,
            entity_type=entity_type,
            entity_id=entity_id,
            required_for_status=required_for_status,
        )
        self._session.add(link)
        self._session.flush()
        return link

    def linked_kinds(self, entity_type: str, entity_id: UUID) -> set[DocumentKind]:
        kinds = self._session.execute(
            select(DocumentModel.kind)
            .join(DocumentLinkModel, DocumentLinkModel.document_id == DocumentModel.id)
            .where(
                DocumentLinkModel.entity_type == entity_type,
                DocumentLinkModel.entity_id == entity_id,
            )
        ).scalars().all()
        return {DocumentKind(kind) for kind in kinds}
