"""
Transfer ORM Models (``custody_modules.transfer.orm``).

Responsibility
--------------
SQLAlchemy persistence for transfers and their ordered item lines.
Transfers recorded before lines existed carry a single ``legacy_item_id``
and may carry the single-hop statuses ``DISPATCHED`` / ``RECEIVED``;
``to_dto()`` reads both through pure normalization functions and never
writes the canonical shape back.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``custody_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``custody_kernel``.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from custody_kernel.db.base import Base, TrackedBase, UUIDString


# ---------------------------------------------------------------------------
# TransferModel
# ---------------------------------------------------------------------------

class TransferModel(TrackedBase):
    """
    ORM model for ``Transfer`` -- a batch move between two offices.

    Table: ``transfers``
    """

    __tablename__ = "transfers"

    source_office_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=False,
    )
    destination_office_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=False,
    )
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    # Single item reference of pre-lines records.
    legacy_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    handover_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    takeover_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    transfer_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    requested_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispatched_to_store_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    dispatched_to_store_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    received_at_store_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    received_at_store_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    dispatched_to_dest_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    dispatched_to_dest_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    received_at_dest_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    received_at_dest_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lines: Mapped[list["TransferLineModel"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferLineModel.position",
    )

    __table_args__ = (
        Index("idx_transfers_source", "source_office_id", "status"),
        Index("idx_transfers_destination", "destination_office_id", "status"),
        Index("idx_transfers_legacy_item", "legacy_item_id"),
    )

    def to_dto(self):
        from custody_kernel.domain.custody import CustodyLine, normalize_lines
        from custody_modules.transfer.models import Transfer, normalize_transfer_status
        return Transfer(
            id=self.id,
            source_office_id=self.source_office_id,
            destination_office_id=self.destination_office_id,
            status=normalize_transfer_status(self.status),
            lines=normalize_lines(
                (CustodyLine(item_id=line.item_id, notes=line.notes) for line in self.lines),
                legacy_item_id=self.legacy_item_id,
            ),
            store_id=self.store_id,
            handover_document_id=self.handover_document_id,
            takeover_document_id=self.takeover_document_id,
            transfer_date=self.transfer_date,
            requested_by_id=self.requested_by_id,
            requested_at=self.requested_at,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            dispatched_to_store_by_id=self.dispatched_to_store_by_id,
            dispatched_to_store_at=self.dispatched_to_store_at,
            received_at_store_by_id=self.received_at_store_by_id,
            received_at_store_at=self.received_at_store_at,
            dispatched_to_dest_by_id=self.dispatched_to_dest_by_id,
            dispatched_to_dest_at=self.dispatched_to_dest_at,
            received_at_dest_by_id=self.received_at_dest_by_id,
            received_at_dest_at=self.received_at_dest_at,
            rejected_by_id=self.rejected_by_id,
            rejected_at=self.rejected_at,
            cancelled_by_id=self.cancelled_by_id,
            cancelled_at=self.cancelled_at,
            notes=self.notes,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Transfer {self.id} {self.status}>"


# ---------------------------------------------------------------------------
# TransferLineModel
# ---------------------------------------------------------------------------

class TransferLineModel(Base):
    """
    One item line of a transfer, kept in request order by ``position``.

    Table: ``transfer_lines``
    """

    __tablename__ = "transfer_lines"

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("transfers.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    transfer: Mapped[TransferModel] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("transfer_id", "item_id", name="uq_transfer_lines_item"),
        Index("idx_transfer_lines_item", "item_id"),
    )
