"""
Register entry and approval models.

Register entries are the reference-numbered ledger of custody operations.
Approvals record a decision that lets non-administrators move a
TRANSFER/DISPOSAL entry to Approved or Completed.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import Base, TrackedBase, UUIDString


class RegisterEntryModel(TrackedBase):
    __tablename__ = "register_entries"

    __table_args__ = (
        Index("idx_register_kind_assignment", "kind", "assignment_id"),
        Index("idx_register_kind_transfer", "kind", "transfer_id"),
        Index("idx_register_office", "office_id"),
    )

    reference_no: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    office_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    employee_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assignment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    transfer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    return_batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class RegisterApprovalModel(Base):
    __tablename__ = "register_approvals"

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("register_entries.id"), nullable=False,
    )
    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Pending, Approved, Rejected, Cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    decided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
