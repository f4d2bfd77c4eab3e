"""
Return Batch Workflows.

State machine for bulk returns.  ``RECEIVED_CONFIRMED`` and ``REJECTED``
are declared states that no operation currently produces; receipt accepts
a batch in either ``SUBMITTED`` or ``RECEIVED_CONFIRMED``.
"""

from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.workflow import Guard, Transition, Workflow
from custody_kernel.logging_config import get_logger
from custody_modules.return_batch.models import ReturnBatchStatus

logger = get_logger("modules.return_batch.workflows")

_S = ReturnBatchStatus


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

LINES_MATCH_OPEN_ASSIGNMENTS = Guard(
    name="lines_match_open_assignments",
    description="Every line still has its open assignment and active item",
)

SIGNED_RECEIPT_UPLOADED = Guard(
    name="signed_receipt_uploaded",
    description="The signed combined receipt has been uploaded",
)


# -----------------------------------------------------------------------------
# Return Batch Workflow
# -----------------------------------------------------------------------------

RETURN_BATCH_WORKFLOW = Workflow(
    name="ReturnBatch",
    description="Bulk return of an employee's items within one office",
    initial_state=_S.SUBMITTED.value,
    states=tuple(s.value for s in ReturnBatchStatus),
    transitions=(
        Transition(
            _S.SUBMITTED.value, _S.CLOSED_PENDING_SIGNATURE.value, action="receive",
            guard=LINES_MATCH_OPEN_ASSIGNMENTS, moves_custody=True,
        ),
        Transition(
            _S.RECEIVED_CONFIRMED.value, _S.CLOSED_PENDING_SIGNATURE.value, action="receive",
            guard=LINES_MATCH_OPEN_ASSIGNMENTS, moves_custody=True,
        ),
        Transition(
            _S.CLOSED_PENDING_SIGNATURE.value, _S.CLOSED.value, action="upload_signed_return",
            guard=SIGNED_RECEIPT_UPLOADED,
            requires_document=DocumentKind.RETURN_SLIP.value,
        ),
    ),
    terminal_states=(_S.CLOSED.value, _S.REJECTED.value),
)

logger.info(
    "return_batch_workflow_registered",
    extra={
        "workflow_name": RETURN_BATCH_WORKFLOW.name,
        "state_count": len(RETURN_BATCH_WORKFLOW.states),
        "transition_count": len(RETURN_BATCH_WORKFLOW.transitions),
        "initial_state": RETURN_BATCH_WORKFLOW.initial_state,
    },
)
