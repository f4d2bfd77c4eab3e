"""
Register entry lifecycle (``custody_kernel.domain.register``).

Responsibility
--------------
Pure rules for register entries, the reference-numbered ledger rows that
summarize each custody operation:

* ``REGISTER_WORKFLOW`` -- allowed status transitions as data.
* ``REQUIRED_DOCUMENTS`` -- document kinds that must be linked before an
  entry of a given kind may enter a given status.
* ``APPROVAL_REQUIRED`` -- statuses that non-administrators may only reach
  through a prior approval.
* Reference number formatting: ``{PREFIX}-{OFFICECODE}-{YEAR}-{SEQ:06d}``.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Consumed by ``RegisterService``.
"""

from __future__ import annotations

from enum import Enum

from custody_kernel.domain.documents import DocumentKind
from custody_kernel.domain.workflow import Transition, Workflow


class RegisterKind(str, Enum):
    ISSUE = "ISSUE"
    RETURN = "RETURN"
    TRANSFER = "TRANSFER"
    MAINTENANCE = "MAINTENANCE"
    DISPOSAL = "DISPOSAL"
    INCIDENT = "INCIDENT"


class RegisterStatus(str, Enum):
    DRAFT = "Draft"
    PENDING_APPROVAL = "PendingApproval"
    APPROVED = "Approved"
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    ARCHIVED = "Archived"


_S = RegisterStatus

REGISTER_WORKFLOW = Workflow(
    name="register_entry",
    description="Register entry lifecycle",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in RegisterStatus),
    transitions=(
        Transition(_S.DRAFT.value, _S.PENDING_APPROVAL.value, action="submit"),
        Transition(_S.DRAFT.value, _S.APPROVED.value, action="approve"),
        Transition(_S.DRAFT.value, _S.COMPLETED.value, action="complete"),
        Transition(_S.DRAFT.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.PENDING_APPROVAL.value, _S.APPROVED.value, action="approve"),
        Transition(_S.PENDING_APPROVAL.value, _S.REJECTED.value, action="reject"),
        Transition(_S.PENDING_APPROVAL.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.APPROVED.value, _S.COMPLETED.value, action="complete"),
        Transition(_S.APPROVED.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.COMPLETED.value, _S.ARCHIVED.value, action="archive"),
        Transition(_S.REJECTED.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.CANCELLED.value, _S.ARCHIVED.value, action="archive"),
    ),
    terminal_states=(_S.ARCHIVED.value,),
)

# Every group must be satisfied; a group is satisfied by any one of its kinds.
DocumentRequirement = tuple[tuple[DocumentKind, ...], ...]

REQUIRED_DOCUMENTS: dict[RegisterKind, dict[RegisterStatus, DocumentRequirement]] = {
    RegisterKind.TRANSFER: {
        _S.COMPLETED: ((DocumentKind.TRANSFER_CHALLAN,),),
    },
    RegisterKind.DISPOSAL: {
        _S.APPROVED: ((DocumentKind.DISPOSAL_APPROVAL,),),
        _S.COMPLETED: ((DocumentKind.DISPOSAL_APPROVAL,),),
    },
    RegisterKind.MAINTENANCE: {
        _S.COMPLETED: ((DocumentKind.MAINTENANCE_JOB_CARD, DocumentKind.INVOICE),),
    },
}

APPROVAL_REQUIRED: dict[RegisterKind, frozenset[RegisterStatus]] = {
    RegisterKind.TRANSFER: frozenset({_S.APPROVED, _S.COMPLETED}),
    RegisterKind.DISPOSAL: frozenset({_S.APPROVED, _S.COMPLETED}),
}

REFERENCE_PREFIXES: dict[RegisterKind, str] = {
    RegisterKind.ISSUE: "ISS",
    RegisterKind.RETURN: "RET",
    RegisterKind.TRANSFER: "TRF",
    RegisterKind.MAINTENANCE: "MNT",
    RegisterKind.DISPOSAL: "DSP",
    RegisterKind.INCIDENT: "INC",
}
DEFAULT_REFERENCE_PREFIX = "REC"


def required_documents(kind: RegisterKind, status: RegisterStatus) -> DocumentRequirement:
    return REQUIRED_DOCUMENTS.get(kind, {}).get(status, ())


def documents_satisfy(requirement: DocumentRequirement, linked_kinds: set[DocumentKind]) -> bool:
    return all(any(kind in linked_kinds for kind in group) for group in requirement)


def requires_approval(kind: RegisterKind, status: RegisterStatus) -> bool:
    return status in APPROVAL_REQUIRED.get(kind, frozenset())


def office_code_for(name: str | None, explicit_code: str | None = None) -> str:
    """Short code used in reference numbers.

    An explicit office code wins.  Otherwise a one-word name yields its first
    three letters and a multi-word name yields up to four initials.
    """
    if explicit_code and explicit_code.strip():
        return explicit_code.strip().upper()
    words = [w for w in "".join(c if c.isalnum() else " " for c in (name or "")).split() if w]
    if not words:
        return "OFF"
    if len(words) == 1:
        return words[0][:3].upper()
    return "".join(w[0] for w in words[:4]).upper()


def reference_counter_key(office_code: str, kind: RegisterKind, year: int) -> str:
    return f"{office_code}:{kind.value}:{year}"


def format_reference_number(kind: RegisterKind, office_code: str, year: int, sequence: int) -> str:
    prefix = REFERENCE_PREFIXES.get(kind, DEFAULT_REFERENCE_PREFIX)
    return f"{prefix}-{office_code}-{year}-{sequence:06d}"
