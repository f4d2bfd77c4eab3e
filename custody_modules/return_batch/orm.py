"""
Return Batch ORM Models (``custody_modules.return_batch.orm``).

Responsibility
--------------
SQLAlchemy persistence for return batches and their item lines.  Each line
records the assignment it will close so receipt can check that the batch
still matches the open assignments exactly.

Architecture position
---------------------
**Modules layer** -- persistence.  MUST NOT be imported by ``custody_kernel``.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from custody_kernel.db.base import Base, TrackedBase, UUIDString


class ReturnBatchModel(TrackedBase):
    """
    ORM model for ``ReturnBatch``.

    Table: ``return_batches``
    """

    __tablename__ = "return_batches"

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False,
    )
    office_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    register_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("register_entries.id"), nullable=True,
    )
    receipt_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )

    submitted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    received_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["ReturnBatchLineModel"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="ReturnBatchLineModel.position",
    )

    __table_args__ = (
        Index("idx_return_batches_office_status", "office_id", "status"),
        Index("idx_return_batches_employee_status", "employee_id", "status"),
    )

    def to_dto(self):
        from custody_modules.return_batch.models import (
            ReturnBatch,
            ReturnBatchLine,
            ReturnBatchStatus,
        )
        return ReturnBatch(
            id=self.id,
            employee_id=self.employee_id,
            office_id=self.office_id,
            status=ReturnBatchStatus(self.status),
            lines=tuple(
                ReturnBatchLine(
                    item_id=line.item_id,
                    assignment_id=line.assignment_id,
                    notes=line.notes,
                )
                for line in self.lines
            ),
            register_entry_id=self.register_entry_id,
            receipt_document_id=self.receipt_document_id,
            submitted_by_id=self.submitted_by_id,
            submitted_at=self.submitted_at,
            received_by_id=self.received_by_id,
            received_at=self.received_at,
            closed_by_id=self.closed_by_id,
            closed_at=self.closed_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<ReturnBatch {self.id} {self.status}>"


class ReturnBatchLineModel(Base):
    """Table: ``return_batch_lines``"""

    __tablename__ = "return_batch_lines"

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("return_batches.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    assignment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("assignments.id"), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped[ReturnBatchModel] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("batch_id", "item_id", name="uq_return_batch_lines_item"),
        Index("idx_return_batch_lines_item", "item_id"),
    )
