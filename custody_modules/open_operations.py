"""
Open-operation guard (``custody_modules.open_operations``).

Responsibility
--------------
Answers, for an item, which workflow currently owns it:

* an Assignment in DRAFT, ISSUED or RETURN_REQUESTED;
* a Transfer in any non-terminal status (lines, or the legacy single item);
* a ReturnBatch in SUBMITTED or RECEIVED_CONFIRMED.

Every creating operation calls ``ensure_free`` inside its own transaction
before it writes.  An open return batch sits on top of the open
assignments it will close, so return batch creation tolerates the
assignment and nothing else.

Architecture position
---------------------
**Modules layer** -- the only module that reads all three workflow tables.
Pair with ``ItemRegistry.claim`` so that two transactions that both passed
this check cannot both commit.
"""

from collections.abc import Iterable
from enum import Enum
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from custody_kernel.exceptions import OpenOperationExistsError
from custody_kernel.logging_config import get_logger
from custody_modules.assignment.models import OPEN_ASSIGNMENT_STATUSES
from custody_modules.assignment.orm import AssignmentModel
from custody_modules.return_batch.models import OPEN_RETURN_BATCH_STATUSES
from custody_modules.return_batch.orm import ReturnBatchLineModel, ReturnBatchModel
from custody_modules.transfer.models import OPEN_TRANSFER_STATUS_VALUES
from custody_modules.transfer.orm import TransferLineModel, TransferModel

logger = get_logger("modules.open_operations")


class Operation(str, Enum):
    ASSIGNMENT = "assignment"
    TRANSFER = "transfer"
    RETURN_BATCH = "return batch"


class OpenOperationGuard:
    """Read-only checks; never writes, never commits."""

    def __init__(self, session: Session):
        self._session = session

    def open_assignment(self, item_id: UUID) -> AssignmentModel | None:
        return self._session.execute(
            select(AssignmentModel).where(
                AssignmentModel.item_id == item_id,
                AssignmentModel.status.in_([s.value for s in OPEN_ASSIGNMENT_STATUSES]),
            ).limit(1)
        ).scalar_one_or_none()

    def open_transfer(self, item_id: UUID) -> TransferModel | None:
        with_line = select(TransferLineModel.transfer_id).where(TransferLineModel.item_id == item_id)
        return self._session.execute(
            select(TransferModel).where(
                TransferModel.status.in_(OPEN_TRANSFER_STATUS_VALUES),
                or_(
                    TransferModel.id.in_(with_line),
                    TransferModel.legacy_item_id == item_id,
                ),
            ).limit(1)
        ).scalar_one_or_none()

    def open_return_batch(self, item_id: UUID) -> ReturnBatchModel | None:
        return self._session.execute(
            select(ReturnBatchModel)
            .join(ReturnBatchLineModel, ReturnBatchLineModel.batch_id == ReturnBatchModel.id)
            .where(
                ReturnBatchLineModel.item_id == item_id,
                ReturnBatchModel.status.in_([s.value for s in OPEN_RETURN_BATCH_STATUSES]),
            ).limit(1)
        ).scalar_one_or_none()

    def ensure_free(
        self,
        item_ids: Iterable[UUID],
        tolerate: Iterable[Operation] = (),
    ) -> None:
        """Raise ``OpenOperationExistsError`` for the first item already owned."""
        tolerated = set(tolerate)
        checks = (
            (Operation.ASSIGNMENT, self.open_assignment),
            (Operation.TRANSFER, self.open_transfer),
            (Operation.RETURN_BATCH, self.open_return_batch),
        )
        for item_id in item_ids:
            for operation, lookup in checks:
                if operation in tolerated:
                    continue
                existing = lookup(item_id)
                if existing is not None:
                    logger.info(
                        "open_operation_conflict",
                        extra={
                            "item_id": str(item_id),
                            "operation": operation.value,
                            "operation_id": str(existing.id),
                        },
                    )
                    raise OpenOperationExistsError(str(item_id), operation.value, str(existing.id))

    def ensure_not_in_return_batch(self, item_id: UUID) -> None:
        batch = self.open_return_batch(item_id)
        if batch is not None:
            raise OpenOperationExistsError(str(item_id), Operation.RETURN_BATCH.value, str(batch.id))
