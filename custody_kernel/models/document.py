"""
Document, DocumentVersion and DocumentLink models.

A document is a logical paper (handover slip, return slip, transfer
challan ...).  Each uploaded scan becomes an immutable DocumentVersion with
a monotonically increasing ``version_no`` and a sha256 digest.  A
DocumentLink ties a document to any entity (assignment, transfer, return
batch, register entry), optionally marking it as required for a status.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import Base, TrackedBase, UUIDString
from custody_kernel.domain.documents import DocumentStatus


class DocumentModel(TrackedBase):
    __tablename__ = "documents"

    __table_args__ = (
        Index("idx_documents_office", "office_id"),
    )

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.DRAFT.value,
    )
    office_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)


class DocumentVersionModel(Base):
    __tablename__ = "document_versions"

    __table_args__ = (
        UniqueConstraint("document_id", "version_no", name="uq_document_version_no"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    version_no: Mapped[int] = mapped_column(Integer, nullable=False)
    file_name: Mapped[str] = mapped_column(String(300), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    uploaded_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DocumentLinkModel(Base):
    __tablename__ = "document_links"

    __table_args__ = (
        Index("idx_document_links_entity", "entity_type", "entity_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    required_for_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
