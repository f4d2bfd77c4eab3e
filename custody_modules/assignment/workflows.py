"""
Assignment Workflows.

State machine for a single-item custody handoff.
"""

from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.workflow import Guard, Transition, Workflow
from custody_kernel.logging_config import get_logger
from custody_modules.assignment.models import AssignmentStatus

logger = get_logger("modules.assignment.workflows")

_S = AssignmentStatus


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

SIGNED_HANDOVER_UPLOADED = Guard(
    name="signed_handover_uploaded",
    description="A signed handover slip has been attached to the issue slip document",
)

SIGNED_RETURN_UPLOADED = Guard(
    name="signed_return_uploaded",
    description="A signed return slip has been attached to the return slip document",
)

REQUESTER_IS_CUSTODIAN_OR_MANAGER = Guard(
    name="requester_is_custodian_or_manager",
    description="Caller is the employee custodian or manages the item's office",
)

logger.info(
    "assignment_workflow_guards_defined",
    extra={
        "guards": [
            SIGNED_HANDOVER_UPLOADED.name,
            SIGNED_RETURN_UPLOADED.name,
            REQUESTER_IS_CUSTODIAN_OR_MANAGER.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Assignment Workflow
# -----------------------------------------------------------------------------

ASSIGNMENT_WORKFLOW = Workflow(
    name="Assignment",
    description="Single item handoff to an employee or room",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in AssignmentStatus),
    transitions=(
        Transition(
            _S.DRAFT.value, _S.ISSUED.value, action="issue",
            guard=SIGNED_HANDOVER_UPLOADED, moves_custody=True,
            requires_document=DocumentKind.ISSUE_SLIP.value,
        ),
        Transition(
            _S.ISSUED.value, _S.RETURN_REQUESTED.value, action="request_return",
            guard=REQUESTER_IS_CUSTODIAN_OR_MANAGER,
        ),
        Transition(
            _S.ISSUED.value, _S.RETURNED.value, action="return",
            guard=SIGNED_RETURN_UPLOADED, moves_custody=True,
            requires_document=DocumentKind.RETURN_SLIP.value,
        ),
        Transition(
            _S.RETURN_REQUESTED.value, _S.RETURNED.value, action="return",
            guard=SIGNED_RETURN_UPLOADED, moves_custody=True,
            requires_document=DocumentKind.RETURN_SLIP.value,
        ),
        Transition(_S.DRAFT.value, _S.CANCELLED.value, action="retire"),
        Transition(_S.ISSUED.value, _S.CANCELLED.value, action="retire"),
        Transition(_S.RETURN_REQUESTED.value, _S.CANCELLED.value, action="retire"),
    ),
    terminal_states=(_S.RETURNED.value, _S.CANCELLED.value),
)

logger.info(
    "assignment_workflow_registered",
    extra={
        "workflow_name": ASSIGNMENT_WORKFLOW.name,
        "state_count": len(ASSIGNMENT_WORKFLOW.states),
        "transition_count": len(ASSIGNMENT_WORKFLOW.transitions),
        "initial_state": ASSIGNMENT_WORKFLOW.initial_state,
    },
)
