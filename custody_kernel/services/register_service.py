"""
RegisterService -- reference-numbered ledger of custody operations.

Responsibility:
    Creates register entries with reference numbers of the form
    ``{PREFIX}-{OFFICECODE}-{YEAR}-{SEQ:06d}``, moves them through their
    own lifecycle (Draft, PendingApproval, Approved, Completed, Rejected,
    Cancelled, Archived), and records approval decisions.

Architecture position:
    Kernel > Services.  Workflow services call ``create``/``upsert`` inside
    their transactions, and ``transition`` either inside (ISSUE, RETURN)
    or as a post-commit courtesy update (TRANSFER reject/cancel/receive).

Invariants enforced:
    - Status moves follow ``REGISTER_WORKFLOW``.
    - Required linked documents (``REQUIRED_DOCUMENTS``) are present before
      the target status.
    - Non-administrators reach approval-gated statuses only after an
      Approved approval row exists for the entry.
    - Status writes are conditional on the previous status.

Failure modes:
    - EntityNotFoundError, OfficeScopeError, InvalidTransitionError,
      ApprovalRequiredError, MissingDocumentError, StaleStateError.

Audit relevance:
    ``CREATE_RECORD`` on creation, ``STATUS_CHANGE`` with from/to on every
    transition, ``REQUEST_APPROVAL`` / ``APPROVE`` / ``REJECT`` on
    approvals.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from custody_kernel.db.conditional import conditional_update
from custody_kernel.domain.access import Actor, require_office_head, require_office_scope
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.domain.register import (
    REGISTER_WORKFLOW,
    RegisterKind,
    RegisterStatus,
    documents_satisfy,
    format_reference_number,
    office_code_for,
    reference_counter_key,
    required_documents,
    requires_approval,
)
from custody_kernel.domain.workflow import assert_transition
from custody_kernel.exceptions import (
    ApprovalRequiredError,
    EntityNotFoundError,
    InvalidInputError,
    MissingDocumentError,
    StaleStateError,
)
from custody_kernel.logging_config import get_logger
from custody_kernel.models.reference import OfficeModel
from custody_kernel.models.register import RegisterApprovalModel, RegisterEntryModel
from custody_kernel.services.audit_service import AuditAction, AuditService
from custody_kernel.services.document_service import DocumentService
from custody_kernel.services.sequence_service import SequenceService

logger = get_logger("services.register")

ENTITY_TYPE = "RegisterEntry"

APPROVAL_PENDING = "Pending"
APPROVAL_APPROVED = "Approved"
APPROVAL_REJECTED = "Rejected"


@dataclass(frozen=True)
class RegisterLinks:
    """Entities a register entry summarizes."""

    item_id: UUID | None = None
    employee_id: UUID | None = None
    assignment_id: UUID | None = None
    transfer_id: UUID | None = None
    return_batch_id: UUID | None = None


class RegisterService:
    """
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        documents: DocumentService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._documents = documents or DocumentService(session, self._clock)
        self._sequence = SequenceService(session)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def next_reference_number(self, kind: RegisterKind, office_id: UUID) -> str:
        office = self._session.get(OfficeModel, office_id)
        code = office_code_for(office.name, office.code) if office else "OFF"
        year = self._clock.now().year
        sequence = self._sequence.next_value(reference_counter_key(code, kind, year))
        return format_reference_number(kind, code, year, sequence)

    def create(
        self,
        kind: RegisterKind,
        office_id: UUID | None,
        status: RegisterStatus,
        links: RegisterLinks,
        actor: Actor,
        notes: str | None = None,
    ) -> RegisterEntryModel:
        """Write a new entry in ``status`` as given.

        No transition, approval or document check applies here: callers open
        the entry in the state their own workflow step has just committed to
        (an issue or return as Completed, a transfer request as
        PendingApproval, or Approved for an administrator).  Later moves go
        through ``transition``.
        """
        if office_id is None:
            raise InvalidInputError("Office is required for record", field="office_id")
        require_office_scope(actor, office_id, "create register entry")

        entry = RegisterEntryModel(
            reference_no=self.next_reference_number(kind, office_id),
            kind=kind.value,
            status=status.value,
            office_id=office_id,
            item_id=links.item_id,
            employee_id=links.employee_id,
            assignment_id=links.assignment_id,
            transfer_id=links.transfer_id,
            return_batch_id=links.return_batch_id,
            notes=notes,
            created_by_id=actor.user_id,
        )
        self._session.add(entry)
        self._session.flush()

        self._audit.append(
            actor,
            AuditAction.CREATE_RECORD,
            ENTITY_TYPE,
            entry.id,
            office_id=office_id,
            diff={"reference_no": entry.reference_no, "kind": kind, "status": status},
        )
        logger.info(
            "register_entry_created",
            extra={
                "entry_id": str(entry.id),
                "reference_no": entry.reference_no,
                "kind": kind.value,
                "status": status.value,
            },
        )
        return entry

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, entry_id: UUID) -> RegisterEntryModel:
        entry = self._session.get(RegisterEntryModel, entry_id)
        if entry is None:
            raise EntityNotFoundError(ENTITY_TYPE, str(entry_id))
        return entry

    def find(self, kind: RegisterKind, **link: UUID) -> RegisterEntryModel | None:
        """Most recent entry of ``kind`` linked to e.g. ``transfer_id=...``."""
        stmt = select(RegisterEntryModel).where(RegisterEntryModel.kind == kind.value)
        for column, value in link.items():
            stmt = stmt.where(getattr(RegisterEntryModel, column) == value)
        stmt = stmt.order_by(RegisterEntryModel.created_at.desc()).limit(1)
        return self._session.execute(stmt).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def transition(
        self,
        entry_id: UUID,
        status: RegisterStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> RegisterEntryModel:
        """Move an entry to ``status``.

        The calling workflow has already authorized ``actor`` for the
        operation the entry summarizes, which may belong to another office
        (a transfer received at its destination).  An entry already in
        Approved carries its approval forward.
        """
        entry = self.get(entry_id)

        previous = RegisterStatus(entry.status)
        assert_transition(REGISTER_WORKFLOW, previous, status)

        kind = RegisterKind(entry.kind)
        if (
            requires_approval(kind, status)
            and previous is not RegisterStatus.APPROVED
            and not actor.is_admin
            and not self.has_approval(entry.id)
        ):
            raise ApprovalRequiredError(str(entry.id), status.value)

        requirement = required_documents(kind, status)
        if requirement and not documents_satisfy(
            requirement, self._documents.linked_kinds(ENTITY_TYPE, entry.id)
        ):
            missing = " or ".join(k.value for group in requirement for k in group)
            raise MissingDocumentError(missing, f"required for {status.value}")

        values: dict = {"status": status.value, "updated_by_id": actor.user_id}
        if notes:
            values["notes"] = notes
        if conditional_update(
            self._session, RegisterEntryModel, entry.id, {"status": previous.value}, values,
        ) == 0:
            raise StaleStateError(ENTITY_TYPE, str(entry.id), previous.value)

        self._audit.append(
            actor,
            AuditAction.STATUS_CHANGE,
            ENTITY_TYPE,
            entry.id,
            office_id=entry.office_id,
            diff={"from": previous, "to": status},
        )
        logger.info(
            "register_entry_transitioned",
            extra={"entry_id": str(entry.id), "from": previous.value, "to": status.value},
        )
        return entry

    def upsert(
        self,
        kind: RegisterKind,
        office_id: UUID | None,
        status: RegisterStatus,
        links: RegisterLinks,
        actor: Actor,
        match_on: str,
        notes: str | None = None,
    ) -> RegisterEntryModel:
        """Move the entry linked via ``match_on`` to ``status``; create it if absent."""
        match_value = getattr(links, match_on)
        entry = self.find(kind, **{match_on: match_value}) if match_value is not None else None
        if entry is None:
            return self.create(kind, office_id, status, links, actor, notes=notes)
        if entry.status == status.value:
            return entry
        return self.transition(entry.id, status, actor, notes=notes)

    # -------------------------------------------------------------------------
    # Approvals
    # -------------------------------------------------------------------------

    def has_approval(self, entry_id: UUID) -> bool:
        return self._session.execute(
            select(RegisterApprovalModel.id).where(
                RegisterApprovalModel.entry_id == entry_id,
                RegisterApprovalModel.status == APPROVAL_APPROVED,
            ).limit(1)
        ).first() is not None

    def request_approval(
        self, entry_id: UUID, actor: Actor, notes: str | None = None,
    ) -> RegisterApprovalModel:
        entry = self.get(entry_id)
        require_office_scope(actor, entry.office_id, "request approval")

        approval = RegisterApprovalModel(
            entry_id=entry.id,
            requested_by_id=actor.user_id,
            status=APPROVAL_PENDING,
            decision_notes=notes,
        )
        self._session.add(approval)
        if entry.status == RegisterStatus.DRAFT.value:
            entry.status = RegisterStatus.PENDING_APPROVAL.value
        self._session.flush()

        self._audit.append(
            actor,
            AuditAction.REQUEST_APPROVAL,
            ENTITY_TYPE,
            entry.id,
            office_id=entry.office_id,
            diff={"approval_id": approval.id},
        )
        return approval

    def decide_approval(
        self,
        approval_id: UUID,
        actor: Actor,
        approved: bool,
        notes: str | None = None,
    ) -> RegisterApprovalModel:
        approval = self._session.get(RegisterApprovalModel, approval_id)
        if approval is None:
            raise EntityNotFoundError("RegisterApproval", str(approval_id))
        entry = self.get(approval.entry_id)
        require_office_head(actor, entry.office_id, "decide approval")
        if approval.status != APPROVAL_PENDING:
            raise StaleStateError("RegisterApproval", str(approval.id), APPROVAL_PENDING)

        approval.status = APPROVAL_APPROVED if approved else APPROVAL_REJECTED
        approval.decided_by_id = actor.user_id
        approval.decided_at = self._clock.now()
        if notes:
            approval.decision_notes = notes

        if entry.status == RegisterStatus.PENDING_APPROVAL.value:
            entry.status = (
                RegisterStatus.APPROVED.value if approved else RegisterStatus.REJECTED.value
            )
        self._session.flush()

        self._audit.append(
            actor,
            AuditAction.APPROVE if approved else AuditAction.REJECT,
            ENTITY_TYPE,
            entry.id,
            office_id=entry.office_id,
            diff={"approval_id": approval.id, "decision": approval.status},
        )
        return approval

    def approve(self, entry_id: UUID, actor: Actor, notes: str | None = None) -> RegisterApprovalModel:
        """Request and grant approval in one step, for an actor who may decide."""
        approval = self.request_approval(entry_id, actor, notes)
        return self.decide_approval(approval.id, actor, approved=True, notes=notes)
