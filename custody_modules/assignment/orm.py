"""
Assignment ORM Models (``custody_modules.assignment.orm``).

Responsibility
--------------
SQLAlchemy persistence for assignments.  Maps the frozen ``Assignment``
dataclass from ``models.py`` to the ``assignments`` table.  The custodian
is stored as a ``(custodian_type, custodian_id)`` pair and read back
through ``custodian_from_columns`` so consumers always see the sum type.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``custody_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``custody_kernel``.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import TrackedBase, UUIDString


class AssignmentModel(TrackedBase):
    """
    ORM model for ``Assignment`` -- one handoff of an item to an employee or
    a room.

    Table: ``assignments``
    """

    __tablename__ = "assignments"

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    custodian_type: Mapped[str] = mapped_column(String(20), nullable=False)
    custodian_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Office holding the item when the draft was created.
    office_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)

    requisition_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("requisitions.id"), nullable=True,
    )
    requisition_line_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("requisition_lines.id"), nullable=True,
    )
    previous_assignment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    handover_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    handover_signed_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    return_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=True,
    )
    return_signed_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    assigned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_return_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    issued_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    return_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    return_requested_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    returned_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    returned_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_assignments_item_status", "item_id", "status"),
        Index("idx_assignments_custodian", "custodian_type", "custodian_id"),
        Index("idx_assignments_office", "office_id"),
        Index("idx_assignments_requisition", "requisition_id"),
    )

    def to_dto(self):
        from custody_kernel.domain.custody import custodian_from_columns
        from custody_modules.assignment.models import Assignment, AssignmentStatus
        return Assignment(
            id=self.id,
            item_id=self.item_id,
            custodian=custodian_from_columns(self.custodian_type, self.custodian_id),
            status=AssignmentStatus(self.status),
            office_id=self.office_id,
            requisition_id=self.requisition_id,
            requisition_line_id=self.requisition_line_id,
            handover_document_id=self.handover_document_id,
            return_document_id=self.return_document_id,
            previous_assignment_id=self.previous_assignment_id,
            assigned_date=self.assigned_date,
            expected_return_date=self.expected_return_date,
            issued_at=self.issued_at,
            return_requested_at=self.return_requested_at,
            returned_date=self.returned_date,
            notes=self.notes,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Assignment {self.id} item={self.item_id} {self.status}>"
