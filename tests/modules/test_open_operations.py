"""
OpenOperationGuard: an item belongs to at most one open assignment,
transfer or return batch at a time.
"""

import pytest

from custody_kernel.exceptions import OpenOperationExistsError
from custody_modules.open_operations import OpenOperationGuard, Operation
from custody_modules.transfer.orm import TransferModel


def _lines(*item_ids):
    return [{"item_id": str(item_id)} for item_id in item_ids]


@pytest.fixture
def guard(session) -> OpenOperationGuard:
    return OpenOperationGuard(session)


class TestAcrossWorkflows:

    def test_free_item_passes(self, guard, world):
        guard.ensure_free(world.item_ids)

    def test_draft_assignment_blocks_transfer(self, assignment_service, transfer_service, caretaker, world):
        draft = assignment_service.create(
            caretaker, world.item_ids[0], world.requisition_id, world.requisition_line_id,
        )
        with pytest.raises(OpenOperationExistsError) as exc_info:
            transfer_service.create(
                caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
            )
        assert exc_info.value.operation == Operation.ASSIGNMENT.value
        assert exc_info.value.operation_id == str(draft.id)

    def test_requested_transfer_blocks_assignment(self, assignment_service, transfer_service, caretaker,
                                                  world):
        transfer = transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
        )
        with pytest.raises(OpenOperationExistsError) as exc_info:
            assignment_service.create(
                caretaker, world.item_ids[0], world.requisition_id, world.requisition_line_id,
            )
        assert exc_info.value.operation == Operation.TRANSFER.value
        assert exc_info.value.operation_id == str(transfer.id)

    def test_overlapping_transfers_refused(self, transfer_service, caretaker, world):
        transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
        )
        with pytest.raises(OpenOperationExistsError):
            transfer_service.create(
                caretaker, world.source_office_id, world.lab_office_id,
                _lines(world.item_ids[1], world.item_ids[0]),
            )

    def test_failed_create_claims_nothing(self, transfer_service, caretaker, guard, world):
        transfer_service.create(
            caretaker, world.source_office_id, world.dest_office_id, _lines(world.item_ids[0]),
        )
        with pytest.raises(OpenOperationExistsError):
            transfer_service.create(
                caretaker, world.source_office_id, world.dest_office_id,
                _lines(world.item_ids[1], world.item_ids[0]),
            )
        assert guard.open_transfer(world.item_ids[1]) is None


class TestTransferRows:

    def test_legacy_single_item_row_counts(self, session, guard, world):
        session.add(TransferModel(
            source_office_id=world.source_office_id,
            destination_office_id=world.dest_office_id,
            status="DISPATCHED",
            legacy_item_id=world.item_ids[2],
            created_by_id=world.admin_user_id,
        ))
        session.commit()
        with pytest.raises(OpenOperationExistsError) as exc_info:
            guard.ensure_free([world.item_ids[2]])
        assert exc_info.value.operation == Operation.TRANSFER.value

    @pytest.mark.parametrize("status", ["RECEIVED_AT_DEST", "RECEIVED", "REJECTED", "CANCELLED"])
    def test_terminal_transfers_release_items(self, session, guard, world, status):
        session.add(TransferModel(
            source_office_id=world.source_office_id,
            destination_office_id=world.dest_office_id,
            status=status,
            legacy_item_id=world.item_ids[2],
            created_by_id=world.admin_user_id,
        ))
        session.commit()
        guard.ensure_free([world.item_ids[2]])


class TestTolerance:

    def test_return_batch_tolerates_the_assignment_it_closes(self, guard, issue_item, world):
        issue_item(world.item_ids[0])
        with pytest.raises(OpenOperationExistsError):
            guard.ensure_free([world.item_ids[0]])
        guard.ensure_free([world.item_ids[0]], tolerate=[Operation.ASSIGNMENT])

    def test_open_batch_reported(self, guard, issue_item, return_batch_service, employee_actor, world):
        issue_item(world.item_ids[0])
        batch = return_batch_service.create(employee_actor, item_ids=[world.item_ids[0]])
        assert guard.open_return_batch(world.item_ids[0]).id == batch.id
        with pytest.raises(OpenOperationExistsError) as exc_info:
            guard.ensure_not_in_return_batch(world.item_ids[0])
        assert exc_info.value.operation == Operation.RETURN_BATCH.value
