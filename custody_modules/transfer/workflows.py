"""
Transfer Workflows.

State machine for inter-office transfers through the head office store.
Every status write is checked against ``TRANSFER_WORKFLOW`` before any
permission check runs.
"""

from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.workflow import Guard, Transition, Workflow
from custody_kernel.logging_config import get_logger
from custody_modules.transfer.models import TransferStatus

logger = get_logger("modules.transfer.workflows")

_S = TransferStatus


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HANDOVER_CHALLAN_FINAL = Guard(
    name="handover_challan_final",
    description="A Final transfer challan documents the handover at the source office",
)

TAKEOVER_CHALLAN_FINAL = Guard(
    name="takeover_challan_final",
    description="A Final transfer challan documents the takeover at the destination office",
)

NO_LINE_ITEM_ASSIGNED = Guard(
    name="no_line_item_assigned",
    description="No line item is currently assigned to a custodian",
)

logger.info(
    "transfer_workflow_guards_defined",
    extra={
        "guards": [
            HANDOVER_CHALLAN_FINAL.name,
            TAKEOVER_CHALLAN_FINAL.name,
            NO_LINE_ITEM_ASSIGNED.name,
        ],
    },
)


def _abort_transitions(from_state: TransferStatus, moves_custody: bool) -> tuple[Transition, ...]:
    return (
        Transition(from_state.value, _S.REJECTED.value, action="reject", moves_custody=moves_custody),
        Transition(from_state.value, _S.CANCELLED.value, action="cancel", moves_custody=moves_custody),
    )


# -----------------------------------------------------------------------------
# Transfer Workflow
# -----------------------------------------------------------------------------

TRANSFER_WORKFLOW = Workflow(
    name="Transfer",
    description="Multi-item move between two offices via the head office store",
    initial_state=_S.REQUESTED.value,
    states=tuple(s.value for s in TransferStatus),
    transitions=(
        Transition(_S.REQUESTED.value, _S.APPROVED.value, action="approve"),
        *_abort_transitions(_S.REQUESTED, moves_custody=False),
        Transition(
            _S.APPROVED.value, _S.DISPATCHED_TO_STORE.value, action="dispatch_to_store",
            guard=HANDOVER_CHALLAN_FINAL, moves_custody=True,
            requires_document=DocumentKind.TRANSFER_CHALLAN.value,
        ),
        *_abort_transitions(_S.APPROVED, moves_custody=False),
        Transition(
            _S.DISPATCHED_TO_STORE.value, _S.RECEIVED_AT_STORE.value, action="receive_at_store",
            moves_custody=True,
        ),
        *_abort_transitions(_S.DISPATCHED_TO_STORE, moves_custody=True),
        Transition(
            _S.RECEIVED_AT_STORE.value, _S.DISPATCHED_TO_DEST.value, action="dispatch_to_dest",
        ),
        *_abort_transitions(_S.RECEIVED_AT_STORE, moves_custody=True),
        Transition(
            _S.DISPATCHED_TO_DEST.value, _S.RECEIVED_AT_DEST.value, action="receive_at_dest",
            guard=TAKEOVER_CHALLAN_FINAL, moves_custody=True,
            requires_document=DocumentKind.TRANSFER_CHALLAN.value,
        ),
        *_abort_transitions(_S.DISPATCHED_TO_DEST, moves_custody=True),
    ),
    terminal_states=(
        _S.RECEIVED_AT_DEST.value,
        _S.REJECTED.value,
        _S.CANCELLED.value,
    ),
)

# The status flow as plain data: state -> allowed next states.
STATUS_FLOW: dict[str, tuple[str, ...]] = TRANSFER_WORKFLOW.as_table()

logger.info(
    "transfer_workflow_registered",
    extra={
        "workflow_name": TRANSFER_WORKFLOW.name,
        "state_count": len(TRANSFER_WORKFLOW.states),
        "transition_count": len(TRANSFER_WORKFLOW.transitions),
        "initial_state": TRANSFER_WORKFLOW.initial_state,
    },
)
