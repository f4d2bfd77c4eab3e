"""
AuditLog -- append-only record of who did what to which entity.

Rows are inserted by ``AuditService.append`` inside the same transaction as
the change they describe, so a rolled-back workflow leaves no audit row.
Nothing in the engine updates or deletes them.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import Base, UUIDString


class AuditLogModel(Base):
    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_office", "office_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    actor_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    office_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    diff: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
