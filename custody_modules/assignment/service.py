"""
Assignment Module Service (``custody_modules.assignment.service``).

Responsibility
--------------
Orchestrates the assignment lifecycle -- draft creation from a requisition
line, handover and return slips, issue, return request, return,
reassignment and retirement -- over the kernel item registry and the
document, register, audit and notification collaborators.

Architecture position
---------------------
**Modules layer** -- ``AssignmentService`` is the sole public entry point
for assignment operations.  Item custody writes go through
``ItemRegistry``; status writes through ``conditional_update``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on any exception).
* All preconditions are checked before the first write; inside the write
  block only a lost compare-and-swap race or a storage fault can abort.
* An item has at most one open operation; creates re-check it in the same
  transaction and claim the item's version.
* An assignment whose item sits in an open return batch cannot be
  returned, retired or asked for return on its own.  Return and retire
  claim the item's version, so a batch submitted after the check wins.

Failure modes
-------------
* ``EntityNotFoundError`` (404) -- item, requisition, line, employee, room,
  assignment.
* ``InvalidTransitionError`` / ``StatusNotAllowedError`` /
  ``StaleStateError`` / ``OpenOperationExistsError`` /
  ``ItemUnavailableError`` (400).
* ``MissingDocumentError`` (400) -- signed file absent or slip unusable.
* ``RoleNotPermittedError`` / ``OfficeScopeError`` (403).

Audit relevance
---------------
One ``ASSIGN_*`` audit row per operation; Issue and Return also write an
ISSUE / RETURN register entry.  Notifications go out after commit and
never undo it.

Usage::

    service = AssignmentService(session, clock)
    draft = service.create(actor, item_id, requisition_id, line_id)
    issued = service.issue(actor, draft.id, SignedFile("slip.pdf", "application/pdf", data))
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from custody_kernel.db.conditional import conditional_update
from custody_kernel.domain.access import (
    Actor,
    Role,
    require_manager,
    require_office_manager,
)
from custody_kernel.domain.clock import Clock
from custody_kernel.domain.custody import (
    Custodian,
    CustodianType,
    EmployeeCustodian,
    ItemSnapshot,
    RoomCustodian,
    custodian_employee_id,
    custodian_from_columns,
)
from custody_kernel.domain.documents import DocumentKind, SignedFile
from custody_kernel.domain.register import RegisterKind, RegisterStatus
from custody_kernel.domain.workflow import assert_transition
from custody_kernel.exceptions import (
    EntityNotFoundError,
    InvalidInputError,
    ItemUnavailableError,
    OfficeScopeError,
    ReferenceMismatchError,
    RoleNotPermittedError,
    StaleStateError,
    StatusNotAllowedError,
)
from custody_kernel.logging_config import get_logger
from custody_kernel.models.reference import (
    EmployeeModel,
    RequisitionLineModel,
    RequisitionModel,
    RoomModel,
)
from custody_kernel.services.audit_service import AuditAction
from custody_kernel.services.notification_service import (
    NotificationEvent,
    NotificationMessage,
    NotificationService,
)
from custody_kernel.services.register_service import ENTITY_TYPE as REGISTER_ENTITY
from custody_kernel.services.register_service import RegisterLinks
from custody_modules.assignment.models import (
    HELD_ASSIGNMENT_STATUSES,
    MOVEABLE_LINE_TYPE,
    Assignment,
    AssignmentStatus,
)
from custody_modules.assignment.orm import AssignmentModel
from custody_modules.assignment.workflows import ASSIGNMENT_WORKFLOW
from custody_modules.collaborators import Collaborators

logger = get_logger("modules.assignment.service")

ENTITY_TYPE = "Assignment"

_ROOM_TYPE_VALUES = (CustodianType.ROOM.value, "SUB_LOCATION")


class AssignmentService:
    """
    Orchestrates assignment operations through the kernel collaborators.

    Contract
    --------
    * Every operation takes the calling ``Actor`` and returns the
      ``Assignment`` DTO as committed.
    * Errors are raised as typed ``CustodyKernelError`` subclasses after the
      session has been rolled back.

    Guarantees
    ----------
    * Assignment row, item row, register entry, documents and audit rows of
      one operation commit together or not at all.
    * Notification delivery runs after commit in its own transaction.

    Non-goals
    ---------
    * Does NOT render slip PDFs; slip documents are records only.
    * Does NOT edit requisitions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notification_service: NotificationService | None = None,
        notifications_enabled: bool = True,
    ):
        self._session = session
        self._c = Collaborators.build(
            session,
            clock,
            notification_service=notification_service,
            notifications_enabled=notifications_enabled,
        )
        self._clock = self._c.clock

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, actor: Actor, assignment_id: UUID) -> Assignment:
        model = self._get(assignment_id)
        if not self._visible_to(actor, model):
            raise OfficeScopeError("view assignment", str(model.office_id) if model.office_id else None)
        return model.to_dto()

    def list(
        self,
        actor: Actor,
        status: AssignmentStatus | None = None,
        item_id: UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Assignment]:
        """Assignments visible to ``actor``, newest first."""
        stmt = select(AssignmentModel)
        scope = self._scope_clause(actor)
        if scope is not None:
            stmt = stmt.where(scope)
        if status is not None:
            stmt = stmt.where(AssignmentModel.status == AssignmentStatus(status).value)
        if item_id is not None:
            stmt = stmt.where(AssignmentModel.item_id == item_id)
        stmt = (
            stmt.order_by(AssignmentModel.created_at.desc(), AssignmentModel.id)
            .limit(max(1, min(limit, 500)))
            .offset(max(0, offset))
        )
        return [row.to_dto() for row in self._session.execute(stmt).scalars().all()]

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        actor: Actor,
        item_id: UUID,
        requisition_id: UUID,
        requisition_line_id: UUID,
        assigned_date: date | None = None,
        expected_return_date: date | None = None,
        notes: str | None = None,
    ) -> Assignment:
        """Draft an assignment of ``item_id`` to the requisition's target."""
        try:
            logger.info("assignment_create_started", extra={
                "item_id": str(item_id),
                "requisition_id": str(requisition_id),
            })
            require_manager(actor, "create assignment draft")

            item = self._c.registry.snapshot(item_id)
            requisition = self._session.get(RequisitionModel, requisition_id)
            if requisition is None:
                raise EntityNotFoundError("Requisition", str(requisition_id))
            line = self._session.get(RequisitionLineModel, requisition_line_id)
            if line is None or line.requisition_id != requisition.id:
                raise EntityNotFoundError("RequisitionLine", str(requisition_line_id))

            require_office_manager(actor, requisition.office_id, "create assignment draft")

            if (line.line_type or "").upper() != MOVEABLE_LINE_TYPE:
                raise InvalidInputError(
                    "Only MOVEABLE requisition lines can create assignments",
                    field="requisition_line_id",
                )
            if item.office_id != requisition.office_id:
                raise ReferenceMismatchError(
                    "Item must belong to the requisition office", rule="item_office",
                )
            self._require_assignable(item)
            if line.asset_id is not None and line.asset_id != item.asset_id:
                raise ReferenceMismatchError(
                    "Item does not match requisition line asset", rule="line_asset",
                )

            custodian = custodian_from_columns(requisition.target_type, requisition.target_id)
            self._require_custodian_in_office(custodian, requisition.office_id)
            self._c.guard.ensure_free([item.id])

            # Writes
            self._c.registry.claim(item)
            model = AssignmentModel(
                item_id=item.id,
                custodian_type=custodian.custodian_type.value,
                custodian_id=custodian.custodian_id,
                office_id=requisition.office_id,
                status=AssignmentStatus.DRAFT.value,
                requisition_id=requisition.id,
                requisition_line_id=line.id,
                assigned_date=assigned_date or self._clock.today(),
                expected_return_date=expected_return_date,
                notes=notes,
                is_active=True,
                created_by_id=actor.user_id,
            )
            self._session.add(model)
            self._session.flush()

            self._c.audit.append(
                actor, AuditAction.ASSIGN_DRAFT_CREATE, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "status": AssignmentStatus.DRAFT,
                    "item_id": item.id,
                    "custodian_type": custodian.custodian_type,
                    "custodian_id": custodian.custodian_id,
                    "requisition_id": requisition.id,
                    "requisition_line_id": line.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_draft_created", extra={
            "assignment_id": str(dto.id),
            "item_id": str(dto.item_id),
        })
        self._notify(
            dto, NotificationEvent.ASSIGNMENT_DRAFT_CREATED,
            "Assignment draft created",
            "An assignment draft is ready for handover.",
        )
        return dto

    # =========================================================================
    # Slips
    # =========================================================================

    def generate_handover_slip(self, actor: Actor, assignment_id: UUID) -> Assignment:
        """Create the Draft IssueSlip for a DRAFT assignment, once."""
        return self._generate_slip(
            actor,
            assignment_id,
            kind=DocumentKind.ISSUE_SLIP,
            allowed=(AssignmentStatus.DRAFT,),
            column="handover_document_id",
            action=AuditAction.ASSIGN_HANDOVER_SLIP_GENERATE,
            event=NotificationEvent.HANDOVER_SLIP_READY,
            title="Handover slip",
        )

    def generate_return_slip(self, actor: Actor, assignment_id: UUID) -> Assignment:
        """Create the Draft ReturnSlip for an issued assignment, once."""
        return self._generate_slip(
            actor,
            assignment_id,
            kind=DocumentKind.RETURN_SLIP,
            allowed=tuple(HELD_ASSIGNMENT_STATUSES),
            column="return_document_id",
            action=AuditAction.ASSIGN_RETURN_SLIP_GENERATE,
            event=NotificationEvent.RETURN_SLIP_READY,
            title="Return slip",
        )

    def _generate_slip(
        self,
        actor: Actor,
        assignment_id: UUID,
        kind: DocumentKind,
        allowed: tuple[AssignmentStatus, ...],
        column: str,
        action: AuditAction,
        event: NotificationEvent,
        title: str,
    ) -> Assignment:
        created = False
        try:
            model = self._get(assignment_id)
            require_office_manager(actor, model.office_id, f"generate {title.lower()}")
            status = AssignmentStatus(model.status)
            if status not in allowed:
                raise StatusNotAllowedError(
                    ENTITY_TYPE, f"{title.lower()} generation", status.value,
                    tuple(s.value for s in allowed),
                )

            if getattr(model, column) is None:
                document = self._c.slip_document(
                    None, kind, model.office_id, actor, title=f"{title} {model.id}",
                )
                self._swap(
                    model,
                    (status,),
                    {column: document.id, "updated_by_id": actor.user_id},
                    extra_expected={column: None},
                )
                self._c.documents.link(document.id, ENTITY_TYPE, model.id)
                self._c.audit.append(
                    actor, action, ENTITY_TYPE, model.id,
                    office_id=model.office_id,
                    diff={"document_id": document.id, "kind": kind},
                )
                created = True
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        if created:
            logger.info("assignment_slip_generated", extra={
                "assignment_id": str(dto.id),
                "kind": kind.value,
            })
            self._notify(dto, event, f"{title} ready", f"{title} is ready for signature.")
        return dto

    # =========================================================================
    # Issue
    # =========================================================================

    def issue(
        self,
        actor: Actor,
        assignment_id: UUID,
        signed_file: SignedFile | None,
        notes: str | None = None,
    ) -> Assignment:
        """Issue a DRAFT assignment on upload of the signed handover slip."""
        try:
            model = self._get(assignment_id)
            require_office_manager(actor, model.office_id, "upload signed handover slip")
            assert_transition(ASSIGNMENT_WORKFLOW, model.status, AssignmentStatus.ISSUED)
            self._c.guard.ensure_not_in_return_batch(model.item_id)

            item = self._c.registry.snapshot(model.item_id)
            self._require_assignable(item)
            custodian = custodian_from_columns(model.custodian_type, model.custodian_id)

            document = self._c.slip_document(
                model.handover_document_id, DocumentKind.ISSUE_SLIP, model.office_id, actor,
                title=f"Handover slip {model.id}",
            )

            # Writes
            version = self._c.sign_document(document, DocumentKind.ISSUE_SLIP, signed_file, actor)
            now = self._clock.now()
            values: dict[str, Any] = {
                "status": AssignmentStatus.ISSUED.value,
                "handover_document_id": document.id,
                "handover_signed_version_id": version.id,
                "issued_at": now,
                "issued_by_id": actor.user_id,
                "updated_by_id": actor.user_id,
            }
            if notes:
                values["notes"] = notes
            self._swap(model, (AssignmentStatus.DRAFT,), values)
            self._c.registry.mark_assigned(model.item_id)

            entry = self._c.register.upsert(
                RegisterKind.ISSUE,
                model.office_id,
                RegisterStatus.COMPLETED,
                RegisterLinks(
                    item_id=model.item_id,
                    employee_id=custodian_employee_id(custodian),
                    assignment_id=model.id,
                ),
                actor,
                match_on="assignment_id",
                notes=f"Assignment {model.id} issued",
            )
            self._c.documents.link(
                document.id, ENTITY_TYPE, model.id,
                required_for_status=AssignmentStatus.ISSUED.value,
            )
            self._c.documents.link(
                document.id, REGISTER_ENTITY, entry.id,
                required_for_status=RegisterStatus.COMPLETED.value,
            )
            self._c.audit.append(
                actor, AuditAction.ASSIGN_ISSUE_FROM_SIGNED_HANDOVER, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "from": AssignmentStatus.DRAFT,
                    "to": AssignmentStatus.ISSUED,
                    "document_id": document.id,
                    "version_id": version.id,
                    "register_entry_id": entry.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_issued", extra={
            "assignment_id": str(dto.id),
            "item_id": str(dto.item_id),
        })
        self._notify(
            dto, NotificationEvent.ASSIGNMENT_ISSUED,
            "Assignment issued",
            "The item has been issued against the signed handover slip.",
        )
        return dto

    # =========================================================================
    # Return
    # =========================================================================

    def request_return(
        self,
        actor: Actor,
        assignment_id: UUID,
        notes: str | None = None,
    ) -> Assignment:
        """ISSUED -> RETURN_REQUESTED, by the employee custodian or a manager."""
        try:
            model = self._get(assignment_id)
            assert_transition(ASSIGNMENT_WORKFLOW, model.status, AssignmentStatus.RETURN_REQUESTED)

            custodian = custodian_from_columns(model.custodian_type, model.custodian_id)
            employee_id = custodian_employee_id(custodian)
            is_custodian = employee_id is not None and actor.employee_id == employee_id
            if not is_custodian:
                if actor.role is Role.EMPLOYEE:
                    raise RoleNotPermittedError(
                        "request return for another custodian", actor.role.value,
                    )
                require_office_manager(actor, model.office_id, "request return")
            self._c.guard.ensure_not_in_return_batch(model.item_id)

            # Writes
            values: dict[str, Any] = {
                "status": AssignmentStatus.RETURN_REQUESTED.value,
                "return_requested_at": self._clock.now(),
                "return_requested_by_id": actor.user_id,
                "updated_by_id": actor.user_id,
            }
            if notes:
                values["notes"] = notes
            self._swap(model, (AssignmentStatus.ISSUED,), values)
            self._c.audit.append(
                actor, AuditAction.ASSIGN_RETURN_REQUEST, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={"from": AssignmentStatus.ISSUED, "to": AssignmentStatus.RETURN_REQUESTED},
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_return_requested", extra={"assignment_id": str(dto.id)})
        self._notify(
            dto, NotificationEvent.RETURN_REQUESTED,
            "Return requested",
            "A return has been requested for an issued item.",
        )
        return dto

    def return_item(
        self,
        actor: Actor,
        assignment_id: UUID,
        signed_file: SignedFile | None,
        notes: str | None = None,
    ) -> Assignment:
        """Close an issued assignment on upload of the signed return slip."""
        try:
            model = self._get(assignment_id)
            require_office_manager(actor, model.office_id, "upload signed return slip")
            previous = AssignmentStatus(model.status)
            assert_transition(ASSIGNMENT_WORKFLOW, previous, AssignmentStatus.RETURNED)
            self._c.guard.ensure_not_in_return_batch(model.item_id)
            custodian = custodian_from_columns(model.custodian_type, model.custodian_id)
            item = self._c.registry.snapshot(model.item_id)

            document = self._c.slip_document(
                model.return_document_id, DocumentKind.RETURN_SLIP, model.office_id, actor,
                title=f"Return slip {model.id}",
            )

            # Writes
            version = self._c.sign_document(document, DocumentKind.RETURN_SLIP, signed_file, actor)
            now = self._clock.now()
            values: dict[str, Any] = {
                "status": AssignmentStatus.RETURNED.value,
                "return_document_id": document.id,
                "return_signed_version_id": version.id,
                "returned_date": now,
                "returned_by_id": actor.user_id,
                "is_active": False,
                "updated_by_id": actor.user_id,
            }
            if notes:
                values["notes"] = notes
            self._swap(model, tuple(HELD_ASSIGNMENT_STATUSES), values)
            self._c.registry.claim(item)
            self._c.registry.mark_returned(model.item_id)

            entry = self._c.register.upsert(
                RegisterKind.RETURN,
                model.office_id,
                RegisterStatus.COMPLETED,
                RegisterLinks(
                    item_id=model.item_id,
                    employee_id=custodian_employee_id(custodian),
                    assignment_id=model.id,
                ),
                actor,
                match_on="assignment_id",
                notes=f"Assignment {model.id} returned",
            )
            self._c.documents.link(
                document.id, ENTITY_TYPE, model.id,
                required_for_status=AssignmentStatus.RETURNED.value,
            )
            self._c.documents.link(
                document.id, REGISTER_ENTITY, entry.id,
                required_for_status=RegisterStatus.COMPLETED.value,
            )
            self._c.audit.append(
                actor, AuditAction.ASSIGN_RETURN_FROM_SIGNED_SLIP, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "from": previous,
                    "to": AssignmentStatus.RETURNED,
                    "document_id": document.id,
                    "version_id": version.id,
                    "register_entry_id": entry.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_returned", extra={
            "assignment_id": str(dto.id),
            "item_id": str(dto.item_id),
        })
        self._notify(
            dto, NotificationEvent.ASSIGNMENT_RETURNED,
            "Assignment returned",
            "The item has been returned against the signed return slip.",
        )
        return dto

    # =========================================================================
    # Reassign / Retire
    # =========================================================================

    def reassign(
        self,
        actor: Actor,
        assignment_id: UUID,
        employee_id: UUID,
        notes: str | None = None,
    ) -> Assignment:
        """Draft a new assignment of a returned item to another employee."""
        try:
            prior = self._get(assignment_id)
            status = AssignmentStatus(prior.status)
            if status is not AssignmentStatus.RETURNED:
                raise StatusNotAllowedError(
                    ENTITY_TYPE, "reassign", status.value, (AssignmentStatus.RETURNED.value,),
                )
            item = self._c.registry.snapshot(prior.item_id)
            require_office_manager(actor, item.office_id, "reassign item")
            self._require_assignable(item)

            custodian = EmployeeCustodian(employee_id)
            self._require_custodian_in_office(custodian, item.office_id)
            self._c.guard.ensure_free([item.id])

            # Writes
            self._c.registry.claim(item)
            model = AssignmentModel(
                item_id=item.id,
                custodian_type=CustodianType.EMPLOYEE.value,
                custodian_id=employee_id,
                office_id=item.office_id,
                status=AssignmentStatus.DRAFT.value,
                requisition_id=prior.requisition_id,
                requisition_line_id=prior.requisition_line_id,
                previous_assignment_id=prior.id,
                assigned_date=self._clock.today(),
                notes=notes,
                is_active=True,
                created_by_id=actor.user_id,
            )
            self._session.add(model)
            self._session.flush()

            self._c.audit.append(
                actor, AuditAction.ASSIGN_REASSIGN_DRAFT_CREATE, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "status": AssignmentStatus.DRAFT,
                    "previous_assignment_id": prior.id,
                    "employee_id": employee_id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_reassigned", extra={
            "assignment_id": str(dto.id),
            "previous_assignment_id": str(assignment_id),
        })
        self._notify(
            dto, NotificationEvent.ASSIGNMENT_DRAFT_CREATED,
            "Assignment draft created",
            "A reassignment draft is ready for handover.",
        )
        return dto

    def retire(self, actor: Actor, assignment_id: UUID, notes: str | None = None) -> Assignment:
        """Cancel an open assignment.  Item custody is left as the caller reconciled it."""
        try:
            model = self._get(assignment_id)
            require_office_manager(actor, model.office_id, "retire assignment")
            previous = AssignmentStatus(model.status)
            assert_transition(ASSIGNMENT_WORKFLOW, previous, AssignmentStatus.CANCELLED)
            # Read before the batch check so a batch submitted after it
            # fails the claim below.
            item = self._c.registry.snapshot(model.item_id)
            self._c.guard.ensure_not_in_return_batch(model.item_id)

            values: dict[str, Any] = {
                "status": AssignmentStatus.CANCELLED.value,
                "is_active": False,
                "returned_date": self._clock.now(),
                "updated_by_id": actor.user_id,
            }
            if notes:
                values["notes"] = notes
            self._c.registry.claim(item)
            self._swap(model, (previous,), values)
            self._c.audit.append(
                actor, AuditAction.ASSIGN_RETIRE, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={"from": previous, "to": AssignmentStatus.CANCELLED},
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("assignment_retired", extra={"assignment_id": str(dto.id)})
        return dto

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, assignment_id: UUID) -> AssignmentModel:
        model = self._session.get(AssignmentModel, assignment_id)
        if model is None:
            raise EntityNotFoundError(ENTITY_TYPE, str(assignment_id))
        return model

    def _swap(
        self,
        model: AssignmentModel,
        expected: Collection[AssignmentStatus],
        values: dict[str, Any],
        extra_expected: dict[str, Any] | None = None,
    ) -> None:
        """Write ``values`` only while the status is still one of ``expected``."""
        statuses = [s.value for s in expected]
        criteria: dict[str, Any] = {"status": statuses if len(statuses) > 1 else statuses[0]}
        criteria.update(extra_expected or {})
        if conditional_update(self._session, AssignmentModel, model.id, criteria, values) == 0:
            raise StaleStateError(ENTITY_TYPE, str(model.id), "/".join(statuses))

    @staticmethod
    def _require_assignable(item: ItemSnapshot) -> None:
        if not item.is_active:
            raise ItemUnavailableError(str(item.id), "item is inactive")
        if item.is_assigned:
            raise ItemUnavailableError(str(item.id), "item is already assigned")
        if item.office_id is None:
            raise ItemUnavailableError(str(item.id), "item is not held by an office")

    def _require_custodian_in_office(self, custodian: Custodian, office_id: UUID | None) -> None:
        match custodian:
            case EmployeeCustodian(employee_id=employee_id):
                employee = self._session.get(EmployeeModel, employee_id)
                if employee is None:
                    raise EntityNotFoundError("Employee", str(employee_id))
                if not employee.is_active:
                    raise InvalidInputError("Target employee is inactive", field="target_id")
                if employee.office_id != office_id:
                    raise ReferenceMismatchError(
                        "Target employee must belong to the item office", rule="custodian_office",
                    )
            case RoomCustodian(room_id=room_id):
                room = self._session.get(RoomModel, room_id)
                if room is None:
                    raise EntityNotFoundError("Room", str(room_id))
                if room.office_id != office_id:
                    raise ReferenceMismatchError(
                        "Target room must belong to the item office", rule="custodian_office",
                    )
            case _:
                raise TypeError(f"Unhandled custodian variant: {custodian!r}")

    def _scope_clause(self, actor: Actor):
        """SQL filter for what ``actor`` may read; None means everything."""
        if actor.is_admin:
            return None
        if actor.is_office_manager and actor.office_id is not None:
            office_employees = select(EmployeeModel.id).where(EmployeeModel.office_id == actor.office_id)
            office_rooms = select(RoomModel.id).where(RoomModel.office_id == actor.office_id)
            return or_(
                AssignmentModel.office_id == actor.office_id,
                and_(
                    AssignmentModel.custodian_type == CustodianType.EMPLOYEE.value,
                    AssignmentModel.custodian_id.in_(office_employees),
                ),
                and_(
                    AssignmentModel.custodian_type.in_(_ROOM_TYPE_VALUES),
                    AssignmentModel.custodian_id.in_(office_rooms),
                ),
            )
        if actor.employee_id is None:
            raise RoleNotPermittedError("list assignments without an employee record", actor.role.value)
        return and_(
            AssignmentModel.custodian_type == CustodianType.EMPLOYEE.value,
            AssignmentModel.custodian_id == actor.employee_id,
        )

    def _visible_to(self, actor: Actor, model: AssignmentModel) -> bool:
        if actor.is_admin:
            return True
        custodian = custodian_from_columns(model.custodian_type, model.custodian_id)
        if actor.is_office_manager and actor.office_id is not None:
            if model.office_id == actor.office_id:
                return True
            match custodian:
                case EmployeeCustodian(employee_id=employee_id):
                    owner = self._session.get(EmployeeModel, employee_id)
                case RoomCustodian(room_id=room_id):
                    owner = self._session.get(RoomModel, room_id)
                case _:
                    raise TypeError(f"Unhandled custodian variant: {custodian!r}")
            return owner is not None and owner.office_id == actor.office_id
        employee_id = custodian_employee_id(custodian)
        return employee_id is not None and employee_id == actor.employee_id

    def _notify(
        self,
        dto: Assignment,
        event: NotificationEvent,
        title: str,
        message: str,
    ) -> None:
        self._c.notifier.dispatch(
            NotificationMessage(
                event=event,
                title=title,
                message=message,
                office_id=dto.office_id,
                entity_type=ENTITY_TYPE,
                entity_id=dto.id,
                payload={"item_id": dto.item_id, "status": dto.status.value},
            ),
            office_id=dto.office_id,
            employee_id=dto.employee_id,
        )

