"""
SequenceService -- monotonic sequence allocation via counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for register reference
    numbers (one sequence per ``officeCode:kind:year``) and for audit log
    ordering.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by RegisterService and AuditService.

Invariants enforced:
    - The counter row is the sole source of truth for the next value; the
      aggregate-max-plus-one pattern is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: two transactions create the same new counter row at
      once.  The loser's transaction is unusable and the caller's request
      fails as an infrastructure error; a retry sees the committed row.
"""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from custody_kernel.logging_config import get_logger
from custody_kernel.models.sequence import SequenceCounterModel

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    AUDIT_LOG = "audit_log"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        The UPDATE increments in place and holds the row lock until the
        caller commits; a missing row is created at 1.

        Returns:
            The next sequence value (always > 0).
        """
        updated = self._session.execute(
            update(SequenceCounterModel)
            .where(SequenceCounterModel.name == sequence_name)
            .values(current_value=SequenceCounterModel.current_value + 1)
            .execution_options(synchronize_session=False)
        ).rowcount

        if updated == 0:
            self._session.add(SequenceCounterModel(name=sequence_name, current_value=1))
            self._session.flush()
            value = 1
        else:
            value = self._session.execute(
                select(SequenceCounterModel.current_value)
                .where(SequenceCounterModel.name == sequence_name)
            ).scalar_one()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value
