"""
ItemRegistry: the only writer of item custody fields.

Every write bumps the item's version; compare-and-swap writes that match
nothing raise StaleStateError instead of silently losing the update.
"""

from uuid import uuid4

import pytest

from custody_kernel.domain.custody import (
    CustodyState,
    HolderType,
    ItemAvailability,
    OfficeHolder,
    StoreHolder,
)
from custody_kernel.exceptions import EntityNotFoundError, StaleStateError
from custody_kernel.models.item import ItemModel
from custody_kernel.services.item_registry import ItemRegistry


@pytest.fixture
def registry(session) -> ItemRegistry:
    return ItemRegistry(session)


def _reload(session, item_id) -> ItemModel:
    session.expire_all()
    return session.get(ItemModel, item_id)


class TestReads:

    def test_get_missing_item(self, registry, world):
        with pytest.raises(EntityNotFoundError) as exc_info:
            registry.get(uuid4())
        assert exc_info.value.entity_type == "Item"

    def test_snapshot_reads_office_holder(self, registry, world):
        snapshot = registry.snapshot(world.item_ids[0])
        assert snapshot.holder == OfficeHolder(world.source_office_id)
        assert snapshot.availability is ItemAvailability.AVAILABLE
        assert snapshot.custody is CustodyState.UNASSIGNED
        assert snapshot.version == 1
        assert not snapshot.is_assigned

    def test_load_many_keeps_request_order(self, registry, world):
        ids = list(reversed(world.item_ids))
        assert [item.id for item in registry.load_many(ids)] == ids

    def test_load_many_names_missing_ids(self, registry, world):
        missing = uuid4()
        with pytest.raises(EntityNotFoundError) as exc_info:
            registry.load_many([world.item_ids[0], missing])
        assert exc_info.value.entity_id == str(missing)

    def test_active_ids_include_legacy_location_rows(self, registry, session, world, make_item):
        legacy = make_item(holder_type=None, holder_id=None, location_id=world.source_office_id)
        inactive = make_item(is_active=False)
        held = set(registry.active_ids_held_by(world.source_office_id))
        assert legacy in held
        assert inactive not in held
        assert set(world.item_ids) <= held
        assert registry.snapshot(legacy).office_id == world.source_office_id

    def test_other_office_holds_nothing(self, registry, world):
        assert registry.active_ids_held_by(world.dest_office_id) == []


class TestCompareAndSwap:

    def test_claim_bumps_version(self, registry, session, world):
        item = registry.snapshot(world.item_ids[0])
        registry.claim(item)
        session.commit()
        assert _reload(session, item.id).version == 2

    def test_claim_with_stale_version_fails(self, registry, session, world):
        stale = registry.snapshot(world.item_ids[0])
        registry.claim(stale)
        with pytest.raises(StaleStateError) as exc_info:
            registry.claim(stale)
        assert exc_info.value.entity_type == "Item"

    def test_mark_assigned(self, registry, session, world):
        registry.mark_assigned(world.item_ids[0])
        session.commit()
        item = _reload(session, world.item_ids[0])
        assert item.custody == CustodyState.ASSIGNED.value
        assert item.availability == ItemAvailability.ASSIGNED.value

    def test_mark_assigned_twice_fails(self, registry, world):
        registry.mark_assigned(world.item_ids[0])
        with pytest.raises(StaleStateError):
            registry.mark_assigned(world.item_ids[0])

    def test_mark_assigned_refuses_inactive_item(self, registry, make_item):
        item_id = make_item(is_active=False)
        with pytest.raises(StaleStateError):
            registry.mark_assigned(item_id)

    def test_mark_returned_releases_custody(self, registry, session, world):
        registry.mark_assigned(world.item_ids[0])
        registry.mark_returned(world.item_ids[0])
        session.commit()
        item = _reload(session, world.item_ids[0])
        assert item.custody == CustodyState.UNASSIGNED.value
        assert item.availability == ItemAvailability.AVAILABLE.value
        assert item.version == 3

    def test_mark_returned_keeps_maintenance(self, registry, session, make_item):
        item_id = make_item(
            availability=ItemAvailability.MAINTENANCE.value,
            custody=CustodyState.ASSIGNED.value,
        )
        registry.mark_returned(item_id)
        session.commit()
        item = _reload(session, item_id)
        assert item.availability == ItemAvailability.MAINTENANCE.value
        assert item.custody == CustodyState.UNASSIGNED.value


class TestBulkMoves:

    def test_dispatch_moves_only_items_still_held(self, registry, session, world):
        moved_elsewhere = world.item_ids[1]
        registry.place_in_office([moved_elsewhere], world.dest_office_id)
        count = registry.dispatch_from_office(world.item_ids[:2], world.source_office_id)
        session.commit()
        assert count == 1
        assert _reload(session, world.item_ids[0]).availability == ItemAvailability.IN_TRANSIT.value
        assert _reload(session, moved_elsewhere).availability == ItemAvailability.AVAILABLE.value

    def test_dispatch_leaves_holder_at_source(self, registry, session, world):
        registry.dispatch_from_office([world.item_ids[0]], world.source_office_id)
        session.commit()
        assert _reload(session, world.item_ids[0]).to_dto().holder == OfficeHolder(world.source_office_id)

    def test_place_in_store(self, registry, session, world):
        count = registry.place_in_store(world.item_ids[:2], world.store_id)
        session.commit()
        assert count == 2
        snapshot = _reload(session, world.item_ids[0]).to_dto()
        assert snapshot.holder == StoreHolder(world.store_id)
        assert snapshot.office_id is None
        assert snapshot.availability is ItemAvailability.IN_TRANSIT

    def test_place_in_office_normalizes_legacy_row(self, registry, session, world, make_item):
        legacy = make_item(holder_type=None, holder_id=None, location_id=world.source_office_id)
        registry.place_in_office([legacy], world.dest_office_id)
        session.commit()
        item = _reload(session, legacy)
        assert item.holder_type == HolderType.OFFICE.value
        assert item.holder_id == world.dest_office_id
        assert item.location_id == world.source_office_id
        assert item.to_dto().office_id == world.dest_office_id
        assert item.version == 2
