"""
Collaborator wiring shared by the workflow services.

Every workflow service needs the same kernel collaborators bound to one
session and one clock.  ``Collaborators.build`` constructs them once so
the document, register and audit writes of an operation all land in the
workflow's transaction.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from custody_kernel.domain.access import Actor
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.domain.documents import DocumentKind, DocumentStatus, SignedFile
from custody_kernel.exceptions import MissingDocumentError
from custody_kernel.models.document import DocumentModel, DocumentVersionModel
from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.document_service import DocumentService
from custody_kernel.services.item_registry import ItemRegistry
from custody_kernel.services.notification_service import (
    NotificationDispatcher,
    NotificationService,
)
from custody_kernel.services.register_service import RegisterService
from custody_modules.open_operations import OpenOperationGuard

DOCUMENT_ENTITY = "Document"


@dataclass(frozen=True)
class Collaborators:
    clock: Clock
    documents: DocumentService
    audit: AuditService
    register: RegisterService
    registry: ItemRegistry
    guard: OpenOperationGuard
    notifier: NotificationDispatcher

    @classmethod
    def build(
        cls,
        session: Session,
        clock: Clock | None = None,
        notification_service: NotificationService | None = None,
        notifications_enabled: bool = True,
    ) -> "Collaborators":
        clock = clock or SystemClock()
        documents = DocumentService(session, clock)
        audit = AuditService(session, clock)
        return cls(
            clock=clock,
            documents=documents,
            audit=audit,
            register=RegisterService(session, clock, audit=audit, documents=documents),
            registry=ItemRegistry(session),
            guard=OpenOperationGuard(session),
            notifier=NotificationDispatcher(
                session,
                service=notification_service,
                clock=clock,
                enabled=notifications_enabled,
            ),
        )

    # -------------------------------------------------------------------------
    # Signed slips
    # -------------------------------------------------------------------------

    def slip_document(
        self,
        existing_id: UUID | None,
        kind: DocumentKind,
        office_id: UUID | None,
        actor: Actor,
        title: str,
    ) -> DocumentModel:
        """The slip already referenced by the workflow entity, or a new Draft one.

        A referenced document of another kind, or an archived one, cannot
        carry the signature.
        """
        if existing_id is None:
            document = self.documents.create(kind, office_id, actor, title=title)
            self.audit.append(
                actor, AuditAction.DOCUMENT_CREATE, DOCUMENT_ENTITY, document.id,
                office_id=office_id, diff={"kind": kind, "title": title},
            )
            return document
        if not self.documents.exists(existing_id):
            raise MissingDocumentError(kind.value, "document does not exist", str(existing_id))
        document = self.documents.get(existing_id)
        if document.kind != kind.value:
            raise MissingDocumentError(kind.value, f"document is a {document.kind}", str(existing_id))
        if document.status == DocumentStatus.ARCHIVED.value:
            raise MissingDocumentError(kind.value, "document is Archived", str(existing_id))
        return document

    def sign_document(
        self,
        document: DocumentModel,
        kind: DocumentKind,
        signed_file: SignedFile | None,
        actor: Actor,
    ) -> DocumentVersionModel:
        """Attach the signed scan, finalize, and confirm the document now qualifies."""
        signed_file = require_signed_file(signed_file, kind)
        version = self.documents.attach_signed_version(document.id, signed_file, actor, finalize=True)
        self.documents.require(document.id, kind, DocumentStatus.FINAL)
        self.audit.append(
            actor, AuditAction.DOCUMENT_VERSION_UPLOAD, DOCUMENT_ENTITY, document.id,
            office_id=document.office_id,
            diff={"version_no": version.version_no, "sha256": version.sha256},
        )
        return version


def require_signed_file(signed_file: SignedFile | None, kind: DocumentKind) -> SignedFile:
    if signed_file is None or not signed_file.content:
        raise MissingDocumentError(kind.value, "signed file is required")
    return signed_file
