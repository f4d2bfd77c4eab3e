"""
Item -- one physical, individually trackable unit of a catalog asset.

Responsibility:
    Persists the item's holder, availability, custody flag, condition and
    optimistic ``version``.  Rows written before holder columns existed only
    carry ``location_id``; ``to_dto()`` reads them through the pure
    ``holder_from_columns`` normalization and never rewrites them.

Architecture position:
    Kernel > Models.  Written only through ``ItemRegistry`` compare-and-swap
    updates; workflow modules never assign these columns directly.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import TrackedBase, UUIDString
from custody_kernel.domain.custody import (
    CustodyState,
    FunctionalStatus,
    ItemAvailability,
    ItemCondition,
    ItemSnapshot,
    holder_from_columns,
)


class ItemModel(TrackedBase):
    """Persisted item row; see ``ItemSnapshot`` for the canonical read shape."""

    __tablename__ = "items"

    __table_args__ = (
        Index("idx_items_holder", "holder_type", "holder_id"),
        Index("idx_items_location", "location_id"),
        Index("idx_items_asset", "asset_id"),
    )

    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("catalog_assets.id"), nullable=False,
    )
    holder_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    holder_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    # Legacy holder column; read only when holder_type is absent.
    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    availability: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ItemAvailability.AVAILABLE.value,
    )
    custody: Mapped[str] = mapped_column(
        String(32), nullable=False, default=CustodyState.UNASSIGNED.value,
    )
    condition: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ItemCondition.GOOD.value,
    )
    functional_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=FunctionalStatus.FUNCTIONAL.value,
    )
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tag: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_dto(self) -> ItemSnapshot:
        return ItemSnapshot(
            id=self.id,
            asset_id=self.asset_id,
            holder=holder_from_columns(self.holder_type, self.holder_id, self.location_id),
            availability=ItemAvailability(self.availability),
            custody=CustodyState(self.custody),
            condition=ItemCondition(self.condition),
            functional_status=FunctionalStatus(self.functional_status),
            is_active=self.is_active,
            version=self.version,
            serial_number=self.serial_number,
            tag=self.tag,
        )

    def __repr__(self) -> str:
        return f"<Item {self.id} {self.custody}/{self.availability}>"
