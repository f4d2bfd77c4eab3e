"""
Reference data read by the custody workflows.

Offices, stores, users, employees, rooms, categories, catalog assets and
requisitions are owned by master-data services outside this engine.  These
minimal mappings exist so workflows can validate preconditions against them
inside the same transaction; the engine never creates or edits them except
through test fixtures and the seeding script.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from custody_kernel.db.base import Base, UUIDString


class OfficeModel(Base):
    __tablename__ = "offices"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    office_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class StoreModel(Base):
    """A central holding store; the head office store is the transfer waypoint."""

    __tablename__ = "stores"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class UserModel(Base):
    """Login identity; ``role`` is stored raw and normalized on use."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    office_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class EmployeeModel(Base):
    __tablename__ = "employees"

    office_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=True,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RoomModel(Base):
    """A room or section inside an office that can hold items directly."""

    __tablename__ = "rooms"

    office_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class CategoryModel(Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # GENERAL or LAB_ONLY
    scope: Mapped[str] = mapped_column(String(20), nullable=False, default="GENERAL")


class CatalogAssetModel(Base):
    __tablename__ = "catalog_assets"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("categories.id"), nullable=True,
    )


class RequisitionModel(Base):
    """An approved request naming who (employee or room) should receive items."""

    __tablename__ = "requisitions"

    office_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("offices.id"), nullable=False,
    )
    file_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    target_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    target_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="APPROVED")


class RequisitionLineModel(Base):
    __tablename__ = "requisition_lines"

    requisition_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requisitions.id"), nullable=False,
    )
    # MOVEABLE lines request discrete items; CONSUMABLE lines are out of scope.
    line_type: Mapped[str] = mapped_column(String(20), nullable=False)
    asset_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("catalog_assets.id"), nullable=True,
    )
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
