"""
Return Batch Module Service (``custody_modules.return_batch.service``).

Responsibility
--------------
Bulk return of several issued items by one employee within one office:

    submit (SUBMITTED) -> receive (CLOSED_PENDING_SIGNATURE)
                       -> upload signed receipt (CLOSED)

Receipt closes every underlying assignment and releases every item in a
single transaction, or closes nothing.

Architecture position
---------------------
**Modules layer** -- ``ReturnBatchService`` is the sole public entry point
for return batch operations.  It writes assignment rows directly (as a
batch owner) through ``conditional_update``, never through
``AssignmentService``, so the whole receipt stays one unit of work.

Invariants enforced
-------------------
* Each line names an item actively assigned to the batch employee.
* An item is in at most one open batch; transfers and other batches are
  refused, the item's own open assignment is expected.
* Receipt is all-or-nothing: the resolved open assignments and items must
  match the line count exactly.
* Closing requires a RETURN register entry and a ReturnSlip receipt.

Failure modes
-------------
* ``InvalidInputError`` (400) -- return_all/item_ids misuse, empty
  candidate set, line/assignment mismatch on receipt.
* ``ReferenceMismatchError`` (400) -- employee or items outside the office.
* ``RoleNotPermittedError`` / ``OfficeScopeError`` (403).
* ``InvalidTransitionError`` / ``StaleStateError`` (400).
* ``MissingDocumentError`` (400) -- signed receipt missing or not a ReturnSlip.

Audit relevance
---------------
``RETURN_REQUEST_SUBMIT``, ``RETURN_REQUEST_RECEIVE`` and
``RETURN_REQUEST_SIGNED_RETURN_UPLOAD`` on the batch; the RETURN register
entry carries the reference number and its own ``CREATE_RECORD`` /
``STATUS_CHANGE`` trail.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from custody_kernel.db.conditional import conditional_update
from custody_kernel.domain.access import Actor, require_office_manager
from custody_kernel.domain.clock import Clock
from custody_kernel.domain.custody import CustodianType, is_held_by_office
from custody_kernel.domain.documents import DocumentKind, SignedFile
from custody_kernel.domain.register import RegisterKind, RegisterStatus
from custody_kernel.domain.workflow import assert_transition
from custody_kernel.exceptions import (
    EntityNotFoundError,
    InvalidInputError,
    OfficeScopeError,
    ReferenceMismatchError,
    RoleNotPermittedError,
    StaleStateError,
)
from custody_kernel.logging_config import get_logger
from custody_kernel.models.reference import EmployeeModel, OfficeModel
from custody_kernel.services.audit_service import AuditAction
from custody_kernel.services.notification_service import (
    NotificationEvent,
    NotificationMessage,
    NotificationService,
)
from custody_kernel.services.register_service import ENTITY_TYPE as REGISTER_ENTITY
from custody_kernel.services.register_service import RegisterLinks
from custody_modules.assignment.models import HELD_ASSIGNMENT_STATUSES, AssignmentStatus
from custody_modules.assignment.orm import AssignmentModel
from custody_modules.collaborators import Collaborators, require_signed_file
from custody_modules.open_operations import Operation
from custody_modules.return_batch.models import ReturnBatch, ReturnBatchStatus
from custody_modules.return_batch.orm import ReturnBatchLineModel, ReturnBatchModel
from custody_modules.return_batch.workflows import RETURN_BATCH_WORKFLOW

logger = get_logger("modules.return_batch.service")

ENTITY_TYPE = "ReturnBatch"

_HELD_VALUES = [s.value for s in HELD_ASSIGNMENT_STATUSES]


def _coerce_item_ids(raw: Iterable[Any]) -> list[UUID]:
    """De-duplicated item ids in request order."""
    seen: dict[UUID, None] = {}
    for index, value in enumerate(raw):
        try:
            item_id = value if isinstance(value, UUID) else UUID(str(value))
        except ValueError:
            raise InvalidInputError(f"item_ids[{index}] is not a valid id", field="item_ids") from None
        seen.setdefault(item_id, None)
    return list(seen)


class ReturnBatchService:
    """
    Orchestrates bulk returns through the kernel collaborators.

    Contract
    --------
    * ``create`` takes exactly one of ``return_all`` / ``item_ids``.
    * Every operation returns the committed ``ReturnBatch`` DTO.

    Guarantees
    ----------
    * Receipt closes all lines' assignments and releases all items, or
      nothing.
    * Notifications run after commit and never undo it.

    Non-goals
    ---------
    * Does NOT reject batches; ``REJECTED`` is declared but unreached.
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

    def get(self, actor: Actor, batch_id: UUID) -> ReturnBatch:
        model = self._get(batch_id)
        if not (
            actor.manages(model.office_id)
            or (actor.employee_id is not None and actor.employee_id == model.employee_id)
        ):
            raise OfficeScopeError("view return batch", str(model.office_id))
        return model.to_dto()

    def list(
        self,
        actor: Actor,
        status: ReturnBatchStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ReturnBatch]:
        stmt = select(ReturnBatchModel)
        if actor.is_admin:
            pass
        elif actor.is_office_manager and actor.office_id is not None:
            stmt = stmt.where(ReturnBatchModel.office_id == actor.office_id)
        elif actor.employee_id is not None:
            stmt = stmt.where(ReturnBatchModel.employee_id == actor.employee_id)
        else:
            raise RoleNotPermittedError("list return batches without an employee record", actor.role.value)
        if status is not None:
            stmt = stmt.where(ReturnBatchModel.status == ReturnBatchStatus(status).value)
        stmt = (
            stmt.order_by(ReturnBatchModel.created_at.desc(), ReturnBatchModel.id)
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
        employee_id: UUID | None = None,
        office_id: UUID | None = None,
        return_all: bool = False,
        item_ids: Iterable[Any] | None = None,
        notes: str | None = None,
    ) -> ReturnBatch:
        """Submit a batch for the employee's items held by the office."""
        try:
            requested = _coerce_item_ids(item_ids or ())
            if return_all and requested:
                raise InvalidInputError("Use either return_all or item_ids, not both", field="item_ids")
            if not return_all and not requested:
                raise InvalidInputError("item_ids is required when return_all is false", field="item_ids")

            employee_id = employee_id or actor.employee_id
            if employee_id is None:
                raise InvalidInputError("employee_id is required", field="employee_id")
            employee = self._session.get(EmployeeModel, employee_id)
            if employee is None:
                raise EntityNotFoundError("Employee", str(employee_id))
            office_id = office_id or employee.office_id
            if office_id is None or self._session.get(OfficeModel, office_id) is None:
                raise EntityNotFoundError("Office", str(office_id))
            if employee.office_id != office_id:
                raise ReferenceMismatchError(
                    "Employee does not belong to the selected office", rule="employee_office",
                )

            is_manager = actor.is_admin or actor.is_office_manager
            if not is_manager and actor.employee_id != employee_id:
                raise RoleNotPermittedError(
                    "create return requests for anyone but themselves", actor.role.value,
                )
            if not actor.is_admin and actor.office_id != office_id:
                raise OfficeScopeError("create return request", str(office_id))

            candidates = self._candidate_assignments(employee_id, office_id)
            if return_all:
                if not candidates:
                    raise InvalidInputError(
                        "No active assignments found for employee in this office", field="return_all",
                    )
                selected = list(candidates.values())
            else:
                items = self._c.registry.load_many(requested)
                if any(not item.is_active or not is_held_by_office(item.to_dto().holder, office_id)
                       for item in items):
                    raise ReferenceMismatchError(
                        "Some item_ids do not belong to the selected office", rule="item_office",
                    )
                missing = [item_id for item_id in requested if item_id not in candidates]
                if missing:
                    raise InvalidInputError(
                        "Some items are not actively assigned to the employee", field="item_ids",
                    )
                selected = [candidates[item_id] for item_id in requested]

            line_item_ids = [assignment.item_id for assignment in selected]
            self._c.guard.ensure_free(line_item_ids, tolerate=[Operation.ASSIGNMENT])

            # Writes
            for item in self._c.registry.load_many(line_item_ids):
                self._c.registry.claim(item)
            model = ReturnBatchModel(
                employee_id=employee_id,
                office_id=office_id,
                status=ReturnBatchStatus.SUBMITTED.value,
                submitted_by_id=actor.user_id,
                submitted_at=self._clock.now(),
                notes=notes,
                created_by_id=actor.user_id,
                lines=[
                    ReturnBatchLineModel(
                        position=index,
                        item_id=assignment.item_id,
                        assignment_id=assignment.id,
                    )
                    for index, assignment in enumerate(selected)
                ],
            )
            self._session.add(model)
            self._session.flush()

            self._c.audit.append(
                actor, AuditAction.RETURN_REQUEST_SUBMIT, ENTITY_TYPE, model.id,
                office_id=office_id,
                diff={
                    "status": ReturnBatchStatus.SUBMITTED,
                    "employee_id": employee_id,
                    "item_ids": line_item_ids,
                    "return_all": return_all,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("return_batch_submitted", extra={
            "return_batch_id": str(dto.id),
            "line_count": len(dto.lines),
        })
        self._notify(
            dto, NotificationEvent.RETURN_BATCH_SUBMITTED,
            "Return request submitted",
            f"Return of {len(dto.lines)} item(s) submitted.",
        )
        return dto

    # =========================================================================
    # Receive
    # =========================================================================

    def receive(self, actor: Actor, batch_id: UUID, notes: str | None = None) -> ReturnBatch:
        """Close every line's assignment, release every item, draft the receipt."""
        try:
            model = self._get(batch_id)
            require_office_manager(actor, model.office_id, "receive return request")
            current = ReturnBatchStatus(model.status)
            assert_transition(RETURN_BATCH_WORKFLOW, current, ReturnBatchStatus.CLOSED_PENDING_SIGNATURE)

            lines = model.to_dto().lines
            item_ids = [line.item_id for line in lines]
            assignments = self._session.execute(
                select(AssignmentModel).where(
                    AssignmentModel.item_id.in_(item_ids),
                    AssignmentModel.status.in_(_HELD_VALUES),
                    AssignmentModel.custodian_type == CustodianType.EMPLOYEE.value,
                    AssignmentModel.custodian_id == model.employee_id,
                    AssignmentModel.is_active.is_(True),
                )
            ).scalars().all()
            if len({a.item_id for a in assignments}) != len(lines) or len(assignments) != len(lines):
                raise InvalidInputError(
                    "Some requested items do not have active assignments to this employee",
                    field="lines",
                )
            items = [
                item for item in self._c.registry.load_many(item_ids)
                if item.is_active and is_held_by_office(item.to_dto().holder, model.office_id)
            ]
            if len(items) != len(lines):
                raise InvalidInputError(
                    "Some requested items are no longer held by the office", field="lines",
                )

            # Writes
            now = self._clock.now()
            assignment_ids = [a.id for a in assignments]
            closed = conditional_update(
                self._session, AssignmentModel, assignment_ids,
                {"status": _HELD_VALUES, "is_active": True},
                {
                    "status": AssignmentStatus.RETURNED.value,
                    "returned_date": now,
                    "returned_by_id": actor.user_id,
                    "is_active": False,
                    "updated_by_id": actor.user_id,
                },
            )
            if closed != len(assignment_ids):
                raise StaleStateError("Assignment", ", ".join(str(i) for i in assignment_ids), "ISSUED")
            for item_id in item_ids:
                self._c.registry.mark_returned(item_id)

            entry = self._c.register.create(
                RegisterKind.RETURN,
                model.office_id,
                RegisterStatus.DRAFT,
                RegisterLinks(employee_id=model.employee_id, return_batch_id=model.id),
                actor,
                notes=f"Return request {model.id} received; {len(lines)} item(s) closed",
            )
            document = self._c.slip_document(
                model.receipt_document_id, DocumentKind.RETURN_SLIP, model.office_id, actor,
                title=f"Return receipt {model.id}",
            )
            self._c.documents.link(document.id, ENTITY_TYPE, model.id)
            self._c.documents.link(
                document.id, REGISTER_ENTITY, entry.id,
                required_for_status=RegisterStatus.COMPLETED.value,
            )

            values: dict[str, Any] = {
                "status": ReturnBatchStatus.CLOSED_PENDING_SIGNATURE.value,
                "register_entry_id": entry.id,
                "receipt_document_id": document.id,
                "received_by_id": actor.user_id,
                "received_at": now,
                "updated_by_id": actor.user_id,
            }
            if notes:
                values["notes"] = notes
            self._swap(model, current, values)
            self._c.audit.append(
                actor, AuditAction.RETURN_REQUEST_RECEIVE, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "from": current,
                    "to": ReturnBatchStatus.CLOSED_PENDING_SIGNATURE,
                    "assignment_ids": assignment_ids,
                    "register_entry_id": entry.id,
                    "receipt_document_id": document.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("return_batch_received", extra={
            "return_batch_id": str(dto.id),
            "items_closed": len(dto.lines),
        })
        self._notify(
            dto, NotificationEvent.RETURN_BATCH_RECEIVED,
            "Return request received",
            f"{len(dto.lines)} item(s) received; the receipt awaits signature.",
        )
        return dto

    # =========================================================================
    # Upload signed receipt
    # =========================================================================

    def upload_signed_return(
        self,
        actor: Actor,
        batch_id: UUID,
        signed_file: SignedFile | None,
    ) -> ReturnBatch:
        """Attach the signed receipt, complete the register entry, close the batch."""
        try:
            model = self._get(batch_id)
            require_office_manager(actor, model.office_id, "upload signed return receipt")
            current = ReturnBatchStatus(model.status)
            assert_transition(RETURN_BATCH_WORKFLOW, current, ReturnBatchStatus.CLOSED)
            require_signed_file(signed_file, DocumentKind.RETURN_SLIP)

            if model.register_entry_id is None:
                raise EntityNotFoundError(REGISTER_ENTITY, "none linked")
            entry = self._c.register.get(model.register_entry_id)
            if entry.kind != RegisterKind.RETURN.value:
                raise InvalidInputError("Associated record must be a RETURN record", field="register_entry_id")
            document = self._c.slip_document(
                model.receipt_document_id, DocumentKind.RETURN_SLIP, model.office_id, actor,
                title=f"Return receipt {model.id}",
            )

            # Writes
            self._c.documents.link(
                document.id, REGISTER_ENTITY, entry.id,
                required_for_status=RegisterStatus.COMPLETED.value,
            )
            version = self._c.sign_document(document, DocumentKind.RETURN_SLIP, signed_file, actor)
            self._c.register.transition(entry.id, RegisterStatus.COMPLETED, actor)
            self._swap(model, current, {
                "status": ReturnBatchStatus.CLOSED.value,
                "receipt_document_id": document.id,
                "closed_by_id": actor.user_id,
                "closed_at": self._clock.now(),
                "updated_by_id": actor.user_id,
            })
            self._c.audit.append(
                actor, AuditAction.RETURN_REQUEST_SIGNED_RETURN_UPLOAD, ENTITY_TYPE, model.id,
                office_id=model.office_id,
                diff={
                    "from": current,
                    "to": ReturnBatchStatus.CLOSED,
                    "document_id": document.id,
                    "version_no": version.version_no,
                    "register_entry_id": entry.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("return_batch_closed", extra={"return_batch_id": str(dto.id)})
        self._notify(
            dto, NotificationEvent.RETURN_BATCH_CLOSED,
            "Return request closed",
            "The signed return receipt has been uploaded.",
        )
        return dto

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, batch_id: UUID) -> ReturnBatchModel:
        model = self._session.get(ReturnBatchModel, batch_id)
        if model is None:
            raise EntityNotFoundError(ENTITY_TYPE, str(batch_id))
        return model

    def _candidate_assignments(self, employee_id: UUID, office_id: UUID) -> dict[UUID, AssignmentModel]:
        """Issued assignments of the employee on active items held by the office, by item."""
        rows = self._session.execute(
            select(AssignmentModel).where(
                AssignmentModel.custodian_type == CustodianType.EMPLOYEE.value,
                AssignmentModel.custodian_id == employee_id,
                AssignmentModel.status.in_(_HELD_VALUES),
                AssignmentModel.is_active.is_(True),
                AssignmentModel.item_id.in_(self._c.registry.active_ids_held_by(office_id)),
            ).order_by(AssignmentModel.created_at, AssignmentModel.id)
        ).scalars().all()
        return {row.item_id: row for row in rows}

    def _swap(self, model: ReturnBatchModel, current: ReturnBatchStatus, values: dict[str, Any]) -> None:
        if conditional_update(
            self._session, ReturnBatchModel, model.id, {"status": current.value}, values,
        ) == 0:
            raise StaleStateError(ENTITY_TYPE, str(model.id), current.value)

    def _notify(
        self,
        dto: ReturnBatch,
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
                payload={"status": dto.status.value, "item_ids": list(dto.item_ids)},
            ),
            office_id=dto.office_id,
            employee_id=dto.employee_id,
        )
