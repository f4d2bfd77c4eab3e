"""Named monotonic counters (register reference numbers, audit ordering)."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import Base


class SequenceCounterModel(Base):
    """
    Sequence counter table.

    Each row is one named sequence with its current value.  Increments are
    UPDATEs on the row, so concurrent allocations serialize on the row lock
    and a value is only consumed when the caller's transaction commits.
    """

    __tablename__ = "sequence_counters"

    # e.g. "audit_log" or "HQ:TRANSFER:2024"
    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
