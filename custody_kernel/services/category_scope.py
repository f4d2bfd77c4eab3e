"""Category-scope policy: which offices may hold items of a given category."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from custody_kernel.exceptions import CategoryScopeError, EntityNotFoundError
from custody_kernel.logging_config import get_logger
from custody_kernel.models.item import ItemModel
from custody_kernel.models.reference import CatalogAssetModel, CategoryModel, OfficeModel

logger = get_logger("services.category_scope")

LAB_ONLY = "LAB_ONLY"


@runtime_checkable
class CategoryScopePolicy(Protocol):
    def check(self, item_id: UUID, office_id: UUID) -> None:
        """Raise ``CategoryScopeError`` if the item may not be held by the office."""
        ...


class LabOnlyCategoryPolicy:
    """LAB_ONLY categories may only be held by offices of a lab office type."""

    def __init__(self, session: Session, lab_office_types: Iterable[str] = ("DISTRICT_LAB",)):
        self._session = session
        self._lab_office_types = tuple(lab_office_types)

    def check(self, item_id: UUID, office_id: UUID) -> None:
        scope = self._session.execute(
            select(CategoryModel.scope)
            .join(CatalogAssetModel, CatalogAssetModel.category_id == CategoryModel.id)
            .join(ItemModel, ItemModel.asset_id == CatalogAssetModel.id)
            .where(ItemModel.id == item_id)
        ).scalar_one_or_none()
        if scope != LAB_ONLY:
            return

        office = self._session.get(OfficeModel, office_id)
        if office is None:
            raise EntityNotFoundError("Office", str(office_id))
        if office.office_type not in self._lab_office_types:
            logger.info(
                "category_scope_rejected",
                extra={"item_id": str(item_id), "office_id": str(office_id)},
            )
            raise CategoryScopeError(str(item_id), str(office_id), scope, self._lab_office_types)
