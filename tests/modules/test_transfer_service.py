"""
TransferService: the store-routed transfer chain, aborts with custody
rollback, the LAB_ONLY receiving rule and register synchronization.
"""

from uuid import uuid4

import pytest

from custody_config import CustodySettings, DatabaseSettings
from custody_kernel.domain.access import Actor, Role
from custody_kernel.domain.custody import ItemAvailability, OfficeHolder, StoreHolder
from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.register import RegisterKind, RegisterStatus
from custody_kernel.exceptions import (
    CategoryScopeError,
    EntityNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    ItemUnavailableError,
    MissingDocumentError,
    OfficeScopeError,
    RoleNotPermittedError,
    StoreNotConfiguredError,
)
from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.item_registry import ItemRegistry
from custody_kernel.services.register_service import ENTITY_TYPE as REGISTER_ENTITY
from custody_kernel.services.register_service import RegisterService
from custody_modules.transfer.models import TransferStatus
from custody_modules.transfer.orm import TransferModel
from custody_modules.transfer.service import ENTITY_TYPE, TransferService


def _lines(*item_ids):
    return [{"item_id": str(item_id)} for item_id in item_ids]


def _item(session, item_id):
    session.expire_all()
    return ItemRegistry(session).snapshot(item_id)


def _register_entry(session, transfer_id):
    session.expire_all()
    return RegisterService(session).find(RegisterKind.TRANSFER, transfer_id=transfer_id)


@pytest.fixture
def requested(transfer_service, caretaker, world):
    return transfer_service.create(
        caretaker, world.source_office_id, world.dest_office_id,
        _lines(world.item_ids[0], world.item_ids[1]), notes="rebalancing",
    )


@pytest.fixture
def source_challan(make_document, caretaker, world):
    return make_document(DocumentKind.TRANSFER_CHALLAN, caretaker, world.source_office_id)


@pytest.fixture
def dest_challan(make_document, dest_caretaker, world):
    return make_document(DocumentKind.TRANSFER_CHALLAN, dest_caretaker, world.dest_office_id)


@pytest.fixture
def advance(transfer_service, head, caretaker, admin, source_challan):
    """Drive a transfer forward from its current status until it reaches ``status``."""

    steps = [
        (TransferStatus.APPROVED, lambda t: transfer_service.approve(head, t)),
        (TransferStatus.DISPATCHED_TO_STORE,
         lambda t: transfer_service.dispatch_to_store(caretaker, t, source_challan)),
        (TransferStatus.RECEIVED_AT_STORE, lambda t: transfer_service.receive_at_store(admin, t)),
        (TransferStatus.DISPATCHED_TO_DEST, lambda t: transfer_service.dispatch_to_dest(admin, t)),
    ]

    order = [reached for reached, _ in steps]

    def _advance(transfer_id, status: TransferStatus):
        current = transfer_service.get(admin, transfer_id).status
        start = order.index(current) + 1 if current in order else 0
        for reached, step in steps[start:]:
            result = step(transfer_id)
            if reached is status:
                return result
        raise AssertionError(f"cannot advance from {current} to {status}")

    return _advance


# =============================================================================
# Create
# =============================================================================


class TestCreate:

    def test_requested_transfer(self, requested, world, deterministic_clock):
        assert requested.status is TransferStatus.REQUESTED
        assert requested.item_ids == (world.item_ids[0], world.item_ids[1])
        assert requested.store_id == world.store_id
        assert requested.transfer_date == deterministic_clock.today()
        assert requested.notes == "rebalancing"

    def test_duplicate_lines_collapse(self, transfer_service, caretaker, world):
        transfer = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id,
            _lines(world.item_ids[0], world.item_ids[0], world.item_ids[1]),
        )
        assert transfer.item_ids == (world.item_ids[0], world.item_ids[1])

    def test_register_entry_pending_for_manager(self, session, requested):
        entry = _register_entry(session, requested.id)
        assert entry.status == RegisterStatus.PENDING_APPROVAL.value
        assert entry.reference_no.startswith("TRF-CH-2024-")

    def test_register_entry_approved_for_admin(self, transfer_service, session, admin, world):
        transfer = transfer_service.create(
            admin, world.source_office_id, world.dest_office_id, _lines(world.item_ids[2]),
        )
        assert _register_entry(session, transfer.id).status == RegisterStatus.APPROVED.value

    def test_items_stay_put_on_request(self, session, requested, world):
        item = _item(session, world.item_ids[0])
        assert item.holder == OfficeHolder(world.source_office_id)
        assert item.availability is ItemAvailability.AVAILABLE

    def test_same_office_refused(self, transfer_service, caretaker, world):
        with pytest.raises(InvalidInputError) as exc_info:
            transfer_service.create(
                caretaker, world.source_office_id, world.source_office_id, _lines(world.item_ids[0]),
            )
        assert exc_info.value.field == "destination_office_id"

    def test_lines_required(self, transfer_service, caretaker, world):
        with pytest.raises(InvalidInputError) as exc_info:
            transfer_service.create(caretaker, world.source_office_id, world.dest_office_id, [])
        assert exc_info.value.field == "lines"

    def test_unknown_destination(self, transfer_service, caretaker, world):
        with pytest.raises(EntityNotFoundError):
            transfer_service.create(caretaker, world.source_office_id, uuid4(), _lines(world.item_ids[0]))

    def test_only_source_managers_create(self, transfer_service, dest_caretaker, employee_actor, world):
        with pytest.raises(OfficeScopeError):
            transfer_service.create(
                dest_caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
            )
        with pytest.raises(RoleNotPermittedError):
            transfer_service.create(
                employee_actor, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
            )

    def test_item_held_elsewhere_refused(self, transfer_service, caretaker, world, make_item):
        elsewhere = make_item(office_id=world.dest_office_id)
        with pytest.raises(ItemUnavailableError) as exc_info:
            transfer_service.create(caretaker, world.source_office_id, world.dest_office_id, _lines(elsewhere))
        assert exc_info.value.reason == "item is not held by the source office"

    def test_assigned_item_refused(self, transfer_service, caretaker, issue_item, world):
        issue_item(world.item_ids[0])
        with pytest.raises(ItemUnavailableError) as exc_info:
            transfer_service.create(
                caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
            )
        assert exc_info.value.reason == "item is assigned"

    def test_legacy_location_item_accepted(self, transfer_service, caretaker, world, make_item):
        legacy = make_item(holder_type=None, holder_id=None, location_id=world.source_office_id)
        transfer = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, [{"asset_item_id": str(legacy)}],
        )
        assert transfer.item_ids == (legacy,)

    def test_missing_store(self, session, deterministic_clock, caretaker, world):
        settings = CustodySettings(
            database=DatabaseSettings(url="sqlite://"),
            head_office_store_code="NO_SUCH_STORE",
        )
        service = TransferService(session, deterministic_clock, settings=settings)
        with pytest.raises(StoreNotConfiguredError) as exc_info:
            service.create(caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]))
        assert exc_info.value.store_code == "NO_SUCH_STORE"


# =============================================================================
# Forward chain
# =============================================================================


class TestForwardChain:

    def test_dispatch_to_store_marks_items_in_transit(self, session, requested, advance, world):
        approved = advance(requested.id, TransferStatus.APPROVED)
        assert approved.approved_by_id is not None

        dispatched = advance(requested.id, TransferStatus.DISPATCHED_TO_STORE)
        assert dispatched.handover_document_id is not None
        item = _item(session, world.item_ids[0])
        assert item.availability is ItemAvailability.IN_TRANSIT
        assert item.holder == OfficeHolder(world.source_office_id)

    def test_store_holds_items_between_legs(self, session, requested, advance, world):
        advance(requested.id, TransferStatus.RECEIVED_AT_STORE)
        in_store = _item(session, world.item_ids[0])
        assert in_store.holder == StoreHolder(world.store_id)
        assert in_store.office_id is None

        dispatched = advance(requested.id, TransferStatus.DISPATCHED_TO_DEST)
        assert dispatched.dispatched_to_dest_by_id is not None
        assert _item(session, world.item_ids[0]).holder == StoreHolder(world.store_id)

    def test_receive_at_dest_completes_transfer(
        self, transfer_service, session, requested, advance, dest_caretaker, dest_challan, world,
    ):
        advance(requested.id, TransferStatus.DISPATCHED_TO_DEST)
        received = transfer_service.receive_at_dest(dest_caretaker, requested.id, dest_challan)

        assert received.status is TransferStatus.RECEIVED_AT_DEST
        assert received.takeover_document_id == dest_challan
        for item_id in requested.item_ids:
            item = _item(session, item_id)
            assert item.holder == OfficeHolder(world.dest_office_id)
            assert item.availability is ItemAvailability.AVAILABLE
        assert _register_entry(session, requested.id).status == RegisterStatus.COMPLETED.value

    def test_every_step_is_audited(
        self, transfer_service, session, requested, advance, dest_caretaker, dest_challan,
        deterministic_clock,
    ):
        advance(requested.id, TransferStatus.DISPATCHED_TO_DEST)
        transfer_service.receive_at_dest(dest_caretaker, requested.id, dest_challan)
        assert AuditService(session, deterministic_clock).actions_for(ENTITY_TYPE, requested.id) == [
            AuditAction.TRANSFER_CREATE.value,
            AuditAction.TRANSFER_APPROVE.value,
            AuditAction.TRANSFER_DISPATCH_TO_STORE.value,
            AuditAction.TRANSFER_RECEIVE_AT_STORE.value,
            AuditAction.TRANSFER_DISPATCH_TO_DEST.value,
            AuditAction.TRANSFER_RECEIVE_AT_DEST.value,
        ]

    def test_approval_reaches_register(self, session, requested, advance):
        advance(requested.id, TransferStatus.APPROVED)
        assert _register_entry(session, requested.id).status == RegisterStatus.APPROVED.value

    def test_steps_cannot_be_skipped(self, transfer_service, caretaker, requested, source_challan):
        with pytest.raises(InvalidTransitionError):
            transfer_service.dispatch_to_store(caretaker, requested.id, source_challan)


# =============================================================================
# Step permissions and documents
# =============================================================================


class TestStepRules:

    def test_only_source_head_approves(self, transfer_service, caretaker, dest_head, requested):
        with pytest.raises(RoleNotPermittedError):
            transfer_service.approve(caretaker, requested.id)
        with pytest.raises(OfficeScopeError):
            transfer_service.approve(dest_head, requested.id)

    def test_dispatch_needs_challan(self, transfer_service, head, caretaker, requested):
        transfer_service.approve(head, requested.id)
        with pytest.raises(MissingDocumentError) as exc_info:
            transfer_service.dispatch_to_store(caretaker, requested.id)
        assert exc_info.value.required_kind == DocumentKind.TRANSFER_CHALLAN.value

    def test_dispatch_needs_final_challan(self, transfer_service, head, caretaker, requested,
                                          make_document, world):
        draft_challan = make_document(DocumentKind.TRANSFER_CHALLAN, caretaker, world.source_office_id,
                                      final=False)
        transfer_service.approve(head, requested.id)
        with pytest.raises(MissingDocumentError):
            transfer_service.dispatch_to_store(caretaker, requested.id, draft_challan)
        assert transfer_service.get(caretaker, requested.id).status is TransferStatus.APPROVED

    def test_store_steps_are_admin_only(self, transfer_service, caretaker, requested, advance):
        advance(requested.id, TransferStatus.DISPATCHED_TO_STORE)
        with pytest.raises(RoleNotPermittedError):
            transfer_service.receive_at_store(caretaker, requested.id)

    def test_source_cannot_receive_at_dest(self, transfer_service, caretaker, requested, advance,
                                           source_challan):
        advance(requested.id, TransferStatus.DISPATCHED_TO_DEST)
        with pytest.raises(OfficeScopeError):
            transfer_service.receive_at_dest(caretaker, requested.id, source_challan)

    def test_receive_needs_takeover_challan(self, transfer_service, dest_caretaker, requested, advance):
        advance(requested.id, TransferStatus.DISPATCHED_TO_DEST)
        with pytest.raises(MissingDocumentError):
            transfer_service.receive_at_dest(dest_caretaker, requested.id)


# =============================================================================
# LAB_ONLY receiving rule
# =============================================================================


class TestLabOnlyItems:

    def test_lab_item_cannot_land_in_general_office(
        self, transfer_service, session, caretaker, head, admin, dest_caretaker, source_challan,
        dest_challan, world,
    ):
        transfer = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.lab_item_id),
        )
        transfer_service.approve(head, transfer.id)
        transfer_service.dispatch_to_store(caretaker, transfer.id, source_challan)
        transfer_service.receive_at_store(admin, transfer.id)
        transfer_service.dispatch_to_dest(admin, transfer.id)

        with pytest.raises(CategoryScopeError):
            transfer_service.receive_at_dest(dest_caretaker, transfer.id, dest_challan)
        assert transfer_service.get(admin, transfer.id).status is TransferStatus.DISPATCHED_TO_DEST
        assert _item(session, world.lab_item_id).holder == StoreHolder(world.store_id)

    def test_lab_item_lands_in_lab_office(
        self, transfer_service, session, caretaker, head, admin, source_challan, make_document, world,
    ):
        transfer = transfer_service.create(
            caretaker, world.source_office_id, world.lab_office_id, _lines(world.lab_item_id),
        )
        transfer_service.approve(head, transfer.id)
        transfer_service.dispatch_to_store(caretaker, transfer.id, source_challan)
        transfer_service.receive_at_store(admin, transfer.id)
        transfer_service.dispatch_to_dest(admin, transfer.id)
        lab_challan = make_document(DocumentKind.TRANSFER_CHALLAN, admin, world.lab_office_id)

        received = transfer_service.receive_at_dest(admin, transfer.id, lab_challan)
        assert received.status is TransferStatus.RECEIVED_AT_DEST
        assert _item(session, world.lab_item_id).holder == OfficeHolder(world.lab_office_id)


# =============================================================================
# Aborts
# =============================================================================


class TestAbort:

    def test_reject_requested(self, transfer_service, session, head, requested):
        rejected = transfer_service.reject(head, requested.id, notes="not needed")
        assert rejected.status is TransferStatus.REJECTED
        assert rejected.rejected_by_id is not None
        assert _register_entry(session, requested.id).status == RegisterStatus.REJECTED.value

    def test_cancel_requested(self, transfer_service, session, caretaker, requested):
        cancelled = transfer_service.cancel(caretaker, requested.id)
        assert cancelled.status is TransferStatus.CANCELLED
        assert _register_entry(session, requested.id).status == RegisterStatus.CANCELLED.value

    @pytest.mark.parametrize("status", [
        TransferStatus.DISPATCHED_TO_STORE,
        TransferStatus.RECEIVED_AT_STORE,
        TransferStatus.DISPATCHED_TO_DEST,
    ])
    def test_cancel_in_flight_restores_items(
        self, transfer_service, session, caretaker, requested, advance, world, status, captured_logs,
    ):
        advance(requested.id, status)
        cancelled = transfer_service.cancel(caretaker, requested.id)
        assert cancelled.status is TransferStatus.CANCELLED
        for item_id in requested.item_ids:
            item = _item(session, item_id)
            assert item.holder == OfficeHolder(world.source_office_id)
            assert item.availability is ItemAvailability.AVAILABLE
        assert any(
            r["message"] == "transfer_rolled_back" and r["from_status"] == status.value
            for r in captured_logs()
        )

    def test_reject_after_approval_keeps_transfer_rejected(
        self, transfer_service, session, head, requested, advance, captured_logs,
    ):
        advance(requested.id, TransferStatus.DISPATCHED_TO_STORE)
        rejected = transfer_service.reject(head, requested.id)
        assert rejected.status is TransferStatus.REJECTED
        # An approved register entry has no edge to Rejected; the committed
        # transfer stands and the register keeps its status.
        assert _register_entry(session, requested.id).status == RegisterStatus.APPROVED.value
        failures = [r for r in captured_logs() if r["message"] == "transfer_register_update_failed"]
        assert failures and failures[0]["target_status"] == RegisterStatus.REJECTED.value

    def test_items_free_after_abort(self, transfer_service, caretaker, requested, world):
        transfer_service.cancel(caretaker, requested.id)
        again = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
        )
        assert again.status is TransferStatus.REQUESTED

    def test_terminal_transfer_cannot_abort(self, transfer_service, caretaker, requested):
        transfer_service.cancel(caretaker, requested.id)
        with pytest.raises(InvalidTransitionError):
            transfer_service.cancel(caretaker, requested.id)

    def test_only_source_head_rejects(self, transfer_service, caretaker, requested):
        with pytest.raises(RoleNotPermittedError):
            transfer_service.reject(caretaker, requested.id)

    def test_destination_cannot_cancel(self, transfer_service, dest_caretaker, requested):
        with pytest.raises(OfficeScopeError):
            transfer_service.cancel(dest_caretaker, requested.id)


# =============================================================================
# Legacy rows and reads
# =============================================================================


class TestLegacyAndReads:

    def test_legacy_single_item_dispatched_row(
        self, transfer_service, session, admin, dest_caretaker, dest_challan, world,
    ):
        ItemRegistry(session).place_in_store([world.item_ids[3]], world.store_id)
        legacy = TransferModel(
            source_office_id=world.source_office_id,
            destination_office_id=world.dest_office_id,
            status="DISPATCHED",
            legacy_item_id=world.item_ids[3],
            created_by_id=world.admin_user_id,
        )
        session.add(legacy)
        session.commit()

        read = transfer_service.get(dest_caretaker, legacy.id)
        assert read.status is TransferStatus.DISPATCHED_TO_DEST
        assert read.item_ids == (world.item_ids[3],)

        received = transfer_service.receive_at_dest(admin, legacy.id, dest_challan)
        assert received.status is TransferStatus.RECEIVED_AT_DEST
        assert _item(session, world.item_ids[3]).holder == OfficeHolder(world.dest_office_id)
        # No register entry existed; receiving creates a completed one.
        entry = _register_entry(session, legacy.id)
        assert entry.status == RegisterStatus.COMPLETED.value
        trace = AuditService(session).get_trace(REGISTER_ENTITY, entry.id)
        assert [e.action for e in trace] == [
            AuditAction.CREATE_RECORD.value, AuditAction.STATUS_CHANGE.value,
        ]
        assert trace[0].diff["status"] == RegisterStatus.DRAFT.value
        assert trace[1].diff == {
            "from": RegisterStatus.DRAFT.value, "to": RegisterStatus.COMPLETED.value,
        }

    def test_legacy_row_backfill_obeys_register_workflow(
        self, transfer_service, session, head, world, captured_logs,
    ):
        legacy = TransferModel(
            source_office_id=world.source_office_id,
            destination_office_id=world.dest_office_id,
            status=TransferStatus.REQUESTED.value,
            legacy_item_id=world.item_ids[3],
            created_by_id=world.admin_user_id,
        )
        session.add(legacy)
        session.commit()

        rejected = transfer_service.reject(head, legacy.id)

        # Draft entries cannot move to Rejected, so no entry is backfilled.
        assert rejected.status is TransferStatus.REJECTED
        assert _register_entry(session, legacy.id) is None
        failures = [r for r in captured_logs() if r["message"] == "transfer_register_update_failed"]
        assert failures[0]["target_status"] == RegisterStatus.REJECTED.value
        assert failures[0]["exc_code"] == "INVALID_TRANSITION"

    def test_both_offices_see_transfer(self, transfer_service, caretaker, dest_caretaker, requested):
        assert [t.id for t in transfer_service.list(caretaker)] == [requested.id]
        assert [t.id for t in transfer_service.list(dest_caretaker)] == [requested.id]
        assert transfer_service.get(dest_caretaker, requested.id).id == requested.id

    def test_unrelated_office_cannot_see_transfer(self, transfer_service, requested, world):
        lab_manager = Actor(user_id=uuid4(), role=Role.CARETAKER, office_id=world.lab_office_id)
        assert transfer_service.list(lab_manager) == []
        with pytest.raises(OfficeScopeError):
            transfer_service.get(lab_manager, requested.id)

    def test_list_by_status(self, transfer_service, admin, caretaker, requested, world):
        other = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[2]),
        )
        transfer_service.cancel(caretaker, other.id)
        assert [t.id for t in transfer_service.list(admin, status=TransferStatus.REQUESTED)] == [requested.id]
        assert [t.id for t in transfer_service.list(admin, status=TransferStatus.CANCELLED)] == [other.id]
