"""
ItemRegistry -- the only writer of item custody fields.

Responsibility:
    Loads items (404 on absence), exposes the office-holder SQL filter that
    understands legacy ``location_id`` rows, and applies every custody
    mutation the workflows need as a compare-and-swap UPDATE that also bumps
    the item's ``version``.

Architecture position:
    Kernel > Services -- leaf.  Called by the assignment, transfer and return
    batch services inside their transactions.  Never commits.

Invariants enforced:
    - Every write increments ``version``; ``claim`` writes only if the
      version is still the one the caller read, so two transactions that
      both validated an item against the same version cannot both commit
      an operation on it.
    - Conditional writes that match zero rows raise ``StaleStateError``;
      callers never observe a silent lost update.
    - Holder writes always set ``holder_type``/``holder_id``; legacy
      ``location_id`` is left untouched (it is ignored once
      ``holder_type`` is set).
"""

from collections.abc import Collection, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from custody_kernel.db.conditional import conditional_update, expire_loaded
from custody_kernel.domain.custody import (
    CustodyState,
    HolderType,
    ItemAvailability,
    ItemSnapshot,
    availability_after_return,
)
from custody_kernel.exceptions import EntityNotFoundError, StaleStateError
from custody_kernel.logging_config import get_logger
from custody_kernel.models.item import ItemModel

logger = get_logger("services.item_registry")

ENTITY_TYPE = "Item"


def office_holder_clause(office_id: UUID):
    """SQL predicate: the item is held by ``office_id`` (legacy rows included)."""
    return or_(
        and_(ItemModel.holder_type == HolderType.OFFICE.value, ItemModel.holder_id == office_id),
        and_(
            or_(ItemModel.holder_type.is_(None), ItemModel.holder_type == ""),
            ItemModel.location_id == office_id,
        ),
    )


class ItemRegistry:
    """
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide whether a move is allowed; workflows do.
    """

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, item_id: UUID) -> ItemModel:
        item = self._session.get(ItemModel, item_id)
        if item is None:
            raise EntityNotFoundError(ENTITY_TYPE, str(item_id))
        return item

    def snapshot(self, item_id: UUID) -> ItemSnapshot:
        return self.get(item_id).to_dto()

    def load_many(self, item_ids: Sequence[UUID]) -> list[ItemModel]:
        """Items in the order requested; 404 if any is missing."""
        rows = self._session.execute(
            select(ItemModel).where(ItemModel.id.in_(list(item_ids)))
        ).scalars().all()
        by_id = {row.id: row for row in rows}
        missing = [str(i) for i in item_ids if i not in by_id]
        if missing:
            raise EntityNotFoundError(ENTITY_TYPE, ", ".join(missing))
        return [by_id[i] for i in item_ids]

    def active_ids_held_by(self, office_id: UUID) -> list[UUID]:
        return list(
            self._session.execute(
                select(ItemModel.id).where(
                    office_holder_clause(office_id),
                    ItemModel.is_active.is_(True),
                )
            ).scalars().all()
        )

    # -------------------------------------------------------------------------
    # Compare-and-swap writes
    # -------------------------------------------------------------------------

    def _swap(self, item_id: UUID, expected: dict[str, Any], values: dict[str, Any]) -> None:
        values = {**values, "version": ItemModel.version + 1}
        if conditional_update(self._session, ItemModel, item_id, expected, values) == 0:
            state = ", ".join(f"{k}={v}" for k, v in expected.items())
            raise StaleStateError(ENTITY_TYPE, str(item_id), state)

    def claim(self, item: ItemModel | ItemSnapshot) -> None:
        """Bump the version read by the caller; fails if anyone wrote since."""
        self._swap(item.id, {"version": item.version}, {})

    def mark_assigned(self, item_id: UUID) -> None:
        self._swap(
            item_id,
            {"custody": CustodyState.UNASSIGNED.value, "is_active": True},
            {
                "custody": CustodyState.ASSIGNED.value,
                "availability": ItemAvailability.ASSIGNED.value,
            },
        )
        logger.info("item_marked_assigned", extra={"item_id": str(item_id)})

    def mark_returned(self, item_id: UUID) -> None:
        """Custody released; Available unless the item is under maintenance."""
        item = self.get(item_id)
        current = ItemAvailability(item.availability)
        self._swap(
            item_id,
            {"availability": current.value},
            {
                "custody": CustodyState.UNASSIGNED.value,
                "availability": availability_after_return(current).value,
            },
        )
        logger.info("item_marked_returned", extra={"item_id": str(item_id)})

    def _bulk(self, item_ids: Collection[UUID], criteria: list, values: dict[str, Any]) -> int:
        stmt = (
            update(ItemModel)
            .where(ItemModel.id.in_(list(item_ids)), *criteria)
            .values(**values, version=ItemModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        count = self._session.execute(stmt).rowcount
        if count:
            expire_loaded(self._session, ItemModel, item_ids, [*values, "version"])
        return count

    def dispatch_from_office(self, item_ids: Collection[UUID], office_id: UUID) -> int:
        """Items still held by ``office_id`` go InTransit; others are left alone."""
        count = self._bulk(
            item_ids,
            [office_holder_clause(office_id)],
            {
                "availability": ItemAvailability.IN_TRANSIT.value,
                "custody": CustodyState.UNASSIGNED.value,
            },
        )
        logger.info(
            "items_dispatched_from_office",
            extra={"office_id": str(office_id), "requested": len(item_ids), "updated": count},
        )
        return count

    def place_in_store(self, item_ids: Collection[UUID], store_id: UUID) -> int:
        return self._bulk(
            item_ids,
            [],
            {
                "holder_type": HolderType.STORE.value,
                "holder_id": store_id,
                "availability": ItemAvailability.IN_TRANSIT.value,
            },
        )

    def place_in_office(self, item_ids: Collection[UUID], office_id: UUID) -> int:
        """Held by ``office_id``, Available, Unassigned."""
        return self._bulk(
            item_ids,
            [],
            {
                "holder_type": HolderType.OFFICE.value,
                "holder_id": office_id,
                "availability": ItemAvailability.AVAILABLE.value,
                "custody": CustodyState.UNASSIGNED.value,
            },
        )
