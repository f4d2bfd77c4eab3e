"""
Transfer Module Service (``custody_modules.transfer.service``).

Responsibility
--------------
Moves a set of items from a source office to a destination office through
the head office store:

    REQUESTED -> APPROVED -> DISPATCHED_TO_STORE -> RECEIVED_AT_STORE
              -> DISPATCHED_TO_DEST -> RECEIVED_AT_DEST

and aborts a transfer (reject / cancel) at any non-terminal step, putting
items that already left the source office back where they came from.

Architecture position
---------------------
**Modules layer** -- ``TransferService`` is the sole public entry point for
transfer operations.  Every status write is checked against
``TRANSFER_WORKFLOW`` before permissions are looked at, then applied as a
compare-and-swap on the stored status (legacy aliases included).

Invariants enforced
-------------------
* Lines are non-empty and de-duplicated; source and destination differ.
* Every line item is active, held by the source office, Unassigned and
  free of any other open operation when the transfer is created.
* Aborting from DISPATCHED_TO_STORE, RECEIVED_AT_STORE or
  DISPATCHED_TO_DEST restores every line item to the source office,
  Available and Unassigned, in the same transaction as the status write.
* Dispatch and final receipt require a Final TransferChallan.

Failure modes
-------------
* ``InvalidTransitionError`` (400) -- move not in the status table.
* ``StaleStateError`` (400) -- another request moved the transfer first.
* ``MissingDocumentError`` (400) -- challan missing, wrong kind or not Final.
* ``CategoryScopeError`` (400) -- a LAB_ONLY item bound for a non-lab office.
* ``StoreNotConfiguredError`` (500) -- head office store row absent.

Audit relevance
---------------
One ``TRANSFER_*`` audit row per step.  The TRANSFER register entry is
created with the transfer; its later status changes (approval, completion,
rejection, cancellation) are post-commit courtesy updates whose failure is
logged and never reverts the transfer.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from custody_config import CustodySettings, get_settings
from custody_kernel.db.conditional import conditional_update
from custody_kernel.domain.access import (
    Actor,
    require_admin,
    require_office_head,
    require_office_manager,
)
from custody_kernel.domain.clock import Clock
from custody_kernel.domain.custody import is_held_by_office, parse_line_payload
from custody_kernel.domain.documents import DocumentKind, DocumentStatus
from custody_kernel.domain.register import RegisterKind, RegisterStatus
from custody_kernel.domain.workflow import assert_transition
from custody_kernel.exceptions import (
    EntityNotFoundError,
    InvalidInputError,
    ItemUnavailableError,
    MissingDocumentError,
    OfficeScopeError,
    StaleStateError,
    StoreNotConfiguredError,
)
from custody_kernel.logging_config import get_logger
from custody_kernel.models.reference import OfficeModel, StoreModel
from custody_kernel.services.audit_service import AuditAction
from custody_kernel.services.category_scope import CategoryScopePolicy, LabOnlyCategoryPolicy
from custody_kernel.services.notification_service import (
    NotificationEvent,
    NotificationMessage,
    NotificationService,
)
from custody_kernel.services.register_service import ENTITY_TYPE as REGISTER_ENTITY
from custody_kernel.services.register_service import RegisterLinks
from custody_modules.collaborators import Collaborators
from custody_modules.transfer.models import (
    IN_FLIGHT_STATUSES,
    Transfer,
    TransferStatus,
    normalize_transfer_status,
    stored_values_for,
)
from custody_modules.transfer.orm import TransferLineModel, TransferModel
from custody_modules.transfer.workflows import TRANSFER_WORKFLOW

logger = get_logger("modules.transfer.service")

ENTITY_TYPE = "Transfer"

_ABORT_REGISTER_STATUS = {
    TransferStatus.REJECTED: RegisterStatus.REJECTED,
    TransferStatus.CANCELLED: RegisterStatus.CANCELLED,
}


class TransferService:
    """
    Orchestrates inter-office transfers through the kernel collaborators.

    Contract
    --------
    * Every operation takes the calling ``Actor`` and returns the committed
      ``Transfer`` DTO, lines normalized.
    * The waypoint store is resolved by ``head_office_store_code``.

    Guarantees
    ----------
    * Transfer status, item custody and audit rows of a step commit together.
    * Register courtesy updates and notifications never undo a committed step.

    Non-goals
    ---------
    * Does NOT allocate item quantities; lines are discrete items.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: CustodySettings | None = None,
        category_policy: CategoryScopePolicy | None = None,
        notification_service: NotificationService | None = None,
        notifications_enabled: bool = True,
    ):
        self._session = session
        self._settings = settings or get_settings()
        self._c = Collaborators.build(
            session,
            clock,
            notification_service=notification_service,
            notifications_enabled=notifications_enabled,
        )
        self._clock = self._c.clock
        self._category_policy = category_policy or LabOnlyCategoryPolicy(
            session, self._settings.lab_office_types,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, actor: Actor, transfer_id: UUID) -> Transfer:
        model = self._get(transfer_id)
        if not (
            actor.can_see_office(model.source_office_id)
            or actor.can_see_office(model.destination_office_id)
        ):
            raise OfficeScopeError("view transfer", str(actor.office_id) if actor.office_id else None)
        return model.to_dto()

    def list(
        self,
        actor: Actor,
        status: TransferStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transfer]:
        stmt = select(TransferModel)
        if not actor.is_admin:
            if actor.office_id is None:
                raise OfficeScopeError("list transfers", None)
            stmt = stmt.where(
                or_(
                    TransferModel.source_office_id == actor.office_id,
                    TransferModel.destination_office_id == actor.office_id,
                )
            )
        if status is not None:
            stmt = stmt.where(TransferModel.status.in_(stored_values_for([TransferStatus(status)])))
        stmt = (
            stmt.order_by(TransferModel.created_at.desc(), TransferModel.id)
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
        source_office_id: UUID,
        destination_office_id: UUID,
        lines: Sequence[Mapping[str, Any]] | None,
        notes: str | None = None,
    ) -> Transfer:
        """Request a transfer of ``lines`` from source to destination."""
        try:
            if source_office_id == destination_office_id:
                raise InvalidInputError(
                    "Source and destination offices must differ", field="destination_office_id",
                )
            parsed = parse_line_payload(lines)
            require_office_manager(actor, source_office_id, "create transfer")
            for office_id in (source_office_id, destination_office_id):
                if self._session.get(OfficeModel, office_id) is None:
                    raise EntityNotFoundError("Office", str(office_id))
            store = self._resolve_store()

            item_ids = [line.item_id for line in parsed]
            items = [item.to_dto() for item in self._c.registry.load_many(item_ids)]
            for item in items:
                if not item.is_active:
                    raise ItemUnavailableError(str(item.id), "item is inactive")
                if not is_held_by_office(item.holder, source_office_id):
                    raise ItemUnavailableError(str(item.id), "item is not held by the source office")
                if item.is_assigned:
                    raise ItemUnavailableError(str(item.id), "item is assigned")
            self._c.guard.ensure_free(item_ids)

            # Writes
            for item in items:
                self._c.registry.claim(item)
            now = self._clock.now()
            model = TransferModel(
                source_office_id=source_office_id,
                destination_office_id=destination_office_id,
                store_id=store.id,
                status=TransferStatus.REQUESTED.value,
                transfer_date=self._clock.today(),
                requested_by_id=actor.user_id,
                requested_at=now,
                notes=notes,
                is_active=True,
                created_by_id=actor.user_id,
                lines=[
                    TransferLineModel(position=index, item_id=line.item_id, notes=line.notes)
                    for index, line in enumerate(parsed)
                ],
            )
            self._session.add(model)
            self._session.flush()

            register_status = (
                RegisterStatus.APPROVED if actor.is_admin else RegisterStatus.PENDING_APPROVAL
            )
            entry = self._c.register.create(
                RegisterKind.TRANSFER,
                source_office_id,
                register_status,
                RegisterLinks(transfer_id=model.id),
                actor,
                notes=f"Transfer {model.id} requested",
            )
            self._c.audit.append(
                actor, AuditAction.TRANSFER_CREATE, ENTITY_TYPE, model.id,
                office_id=source_office_id,
                diff={
                    "status": TransferStatus.REQUESTED,
                    "destination_office_id": destination_office_id,
                    "item_ids": item_ids,
                    "register_entry_id": entry.id,
                },
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("transfer_created", extra={
            "transfer_id": str(dto.id),
            "line_count": len(dto.lines),
        })
        self._notify(
            dto, NotificationEvent.TRANSFER_REQUESTED, dto.source_office_id,
            "Transfer requested", f"Transfer of {len(dto.lines)} item(s) requested.",
        )
        return dto

    # =========================================================================
    # Forward steps
    # =========================================================================

    def approve(self, actor: Actor, transfer_id: UUID, notes: str | None = None) -> Transfer:
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, TransferStatus.APPROVED)
            require_office_head(actor, model.source_office_id, "approve transfer")

            self._swap(model, current, TransferStatus.APPROVED, {
                "approved_by_id": actor.user_id,
                "approved_at": self._clock.now(),
            }, actor, notes)
            self._audit_step(actor, model, AuditAction.TRANSFER_APPROVE, current, TransferStatus.APPROVED)
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        self._after_step(dto, actor, model.source_office_id)
        self._approve_register(dto.id, actor)
        return dto

    def dispatch_to_store(
        self,
        actor: Actor,
        transfer_id: UUID,
        handover_document_id: UUID | None = None,
        notes: str | None = None,
    ) -> Transfer:
        """Hand the items over at the source office against a Final challan."""
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, TransferStatus.DISPATCHED_TO_STORE)
            require_office_manager(actor, model.source_office_id, "dispatch transfer")
            document_id = handover_document_id or model.handover_document_id
            if document_id is None:
                raise MissingDocumentError(
                    DocumentKind.TRANSFER_CHALLAN.value, "handover document is required",
                )
            self._c.documents.require(document_id, DocumentKind.TRANSFER_CHALLAN, DocumentStatus.FINAL)
            item_ids = list(model.to_dto().item_ids)

            # Writes
            self._swap(model, current, TransferStatus.DISPATCHED_TO_STORE, {
                "handover_document_id": document_id,
                "dispatched_to_store_by_id": actor.user_id,
                "dispatched_to_store_at": self._clock.now(),
            }, actor, notes)
            moved = self._c.registry.dispatch_from_office(item_ids, model.source_office_id)
            self._c.documents.link(
                document_id, ENTITY_TYPE, model.id,
                required_for_status=TransferStatus.DISPATCHED_TO_STORE.value,
            )
            self._audit_step(
                actor, model, AuditAction.TRANSFER_DISPATCH_TO_STORE,
                current, TransferStatus.DISPATCHED_TO_STORE,
                document_id=document_id, items_moved=moved,
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        self._after_step(dto, actor, model.source_office_id)
        return dto

    def receive_at_store(self, actor: Actor, transfer_id: UUID, notes: str | None = None) -> Transfer:
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, TransferStatus.RECEIVED_AT_STORE)
            require_admin(actor, "receive transfer at store")
            store = self._resolve_store()
            item_ids = list(model.to_dto().item_ids)

            # Writes
            self._swap(model, current, TransferStatus.RECEIVED_AT_STORE, {
                "store_id": store.id,
                "received_at_store_by_id": actor.user_id,
                "received_at_store_at": self._clock.now(),
            }, actor, notes)
            moved = self._c.registry.place_in_store(item_ids, store.id)
            self._audit_step(
                actor, model, AuditAction.TRANSFER_RECEIVE_AT_STORE,
                current, TransferStatus.RECEIVED_AT_STORE,
                store_id=store.id, items_moved=moved,
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        self._after_step(dto, actor, model.source_office_id)
        return dto

    def dispatch_to_dest(self, actor: Actor, transfer_id: UUID, notes: str | None = None) -> Transfer:
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, TransferStatus.DISPATCHED_TO_DEST)
            require_admin(actor, "dispatch transfer to destination")

            self._swap(model, current, TransferStatus.DISPATCHED_TO_DEST, {
                "dispatched_to_dest_by_id": actor.user_id,
                "dispatched_to_dest_at": self._clock.now(),
            }, actor, notes)
            self._audit_step(
                actor, model, AuditAction.TRANSFER_DISPATCH_TO_DEST,
                current, TransferStatus.DISPATCHED_TO_DEST,
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        self._after_step(dto, actor, model.destination_office_id)
        return dto

    def receive_at_dest(
        self,
        actor: Actor,
        transfer_id: UUID,
        takeover_document_id: UUID | None = None,
        notes: str | None = None,
    ) -> Transfer:
        """Take the items over at the destination office against a Final challan."""
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, TransferStatus.RECEIVED_AT_DEST)
            require_office_manager(actor, model.destination_office_id, "receive transfer")
            document_id = takeover_document_id or model.takeover_document_id
            if document_id is None:
                raise MissingDocumentError(
                    DocumentKind.TRANSFER_CHALLAN.value, "takeover document is required",
                )
            self._c.documents.require(document_id, DocumentKind.TRANSFER_CHALLAN, DocumentStatus.FINAL)

            item_ids = list(model.to_dto().item_ids)
            for item in self._c.registry.load_many(item_ids):
                if item.to_dto().is_assigned:
                    raise ItemUnavailableError(str(item.id), "an assigned item cannot be received")
                self._category_policy.check(item.id, model.destination_office_id)

            # Writes
            self._swap(model, current, TransferStatus.RECEIVED_AT_DEST, {
                "takeover_document_id": document_id,
                "received_at_dest_by_id": actor.user_id,
                "received_at_dest_at": self._clock.now(),
            }, actor, notes)
            moved = self._c.registry.place_in_office(item_ids, model.destination_office_id)
            self._c.documents.link(
                document_id, ENTITY_TYPE, model.id,
                required_for_status=TransferStatus.RECEIVED_AT_DEST.value,
            )
            self._audit_step(
                actor, model, AuditAction.TRANSFER_RECEIVE_AT_DEST,
                current, TransferStatus.RECEIVED_AT_DEST,
                document_id=document_id, items_moved=moved,
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        self._after_step(dto, actor, model.destination_office_id)
        self._sync_register(dto, RegisterStatus.COMPLETED, actor, challan_id=document_id)
        return dto

    # =========================================================================
    # Abort
    # =========================================================================

    def reject(self, actor: Actor, transfer_id: UUID, notes: str | None = None) -> Transfer:
        return self._abort(actor, transfer_id, TransferStatus.REJECTED, notes)

    def cancel(self, actor: Actor, transfer_id: UUID, notes: str | None = None) -> Transfer:
        return self._abort(actor, transfer_id, TransferStatus.CANCELLED, notes)

    def _abort(
        self,
        actor: Actor,
        transfer_id: UUID,
        target: TransferStatus,
        notes: str | None,
    ) -> Transfer:
        try:
            model = self._get(transfer_id)
            current = self._advance_check(model, target)
            if target is TransferStatus.REJECTED:
                require_office_head(actor, model.source_office_id, "reject transfer")
                stage = {"rejected_by_id": actor.user_id, "rejected_at": self._clock.now()}
                action = AuditAction.TRANSFER_REJECT
            else:
                require_office_manager(actor, model.source_office_id, "cancel transfer")
                stage = {"cancelled_by_id": actor.user_id, "cancelled_at": self._clock.now()}
                action = AuditAction.TRANSFER_CANCEL
            item_ids = list(model.to_dto().item_ids)

            # Writes: custody back to the source office before the status lands.
            restored = 0
            if current in IN_FLIGHT_STATUSES:
                restored = self._c.registry.place_in_office(item_ids, model.source_office_id)
            self._swap(model, current, target, stage, actor, notes)
            self._audit_step(
                actor, model, action, current, target,
                rolled_back=current in IN_FLIGHT_STATUSES, items_restored=restored,
            )
            dto = model.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        if current in IN_FLIGHT_STATUSES:
            logger.info("transfer_rolled_back", extra={
                "transfer_id": str(dto.id),
                "from_status": current.value,
                "items_restored": restored,
            })
        self._after_step(dto, actor, model.source_office_id)
        self._sync_register(dto, _ABORT_REGISTER_STATUS[target], actor)
        return dto

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, transfer_id: UUID) -> TransferModel:
        model = self._session.get(TransferModel, transfer_id)
        if model is None:
            raise EntityNotFoundError(ENTITY_TYPE, str(transfer_id))
        return model

    @staticmethod
    def _advance_check(model: TransferModel, target: TransferStatus) -> TransferStatus:
        current = normalize_transfer_status(model.status)
        assert_transition(TRANSFER_WORKFLOW, current, target)
        return current

    def _resolve_store(self) -> StoreModel:
        code = self._settings.head_office_store_code
        store = self._session.execute(
            select(StoreModel).where(StoreModel.code == code, StoreModel.is_active.is_(True))
        ).scalar_one_or_none()
        if store is None:
            raise StoreNotConfiguredError(code)
        return store

    def _swap(
        self,
        model: TransferModel,
        current: TransferStatus,
        target: TransferStatus,
        values: dict[str, Any],
        actor: Actor,
        notes: str | None,
    ) -> None:
        """Status write conditioned on the stored value still reading as ``current``."""
        values = {**values, "status": target.value, "updated_by_id": actor.user_id}
        if notes:
            values["notes"] = notes
        expected = list(stored_values_for([current]))
        if conditional_update(self._session, TransferModel, model.id, {"status": expected}, values) == 0:
            raise StaleStateError(ENTITY_TYPE, str(model.id), current.value)

    def _audit_step(
        self,
        actor: Actor,
        model: TransferModel,
        action: AuditAction,
        current: TransferStatus,
        target: TransferStatus,
        **details: Any,
    ) -> None:
        self._c.audit.append(
            actor, action, ENTITY_TYPE, model.id,
            office_id=model.source_office_id,
            diff={"from": current, "to": target, **details},
        )

    def _after_step(self, dto: Transfer, actor: Actor, office_id: UUID) -> None:
        logger.info("transfer_status_changed", extra={
            "transfer_id": str(dto.id),
            "status": dto.status.value,
            "actor_id": str(actor.user_id),
        })
        self._notify(
            dto, NotificationEvent.TRANSFER_STATUS_CHANGED, office_id,
            "Transfer status changed", f"Transfer is now {dto.status.value}.",
        )

    def _notify(
        self,
        dto: Transfer,
        event: NotificationEvent,
        office_id: UUID,
        title: str,
        message: str,
    ) -> None:
        self._c.notifier.dispatch(
            NotificationMessage(
                event=event,
                title=title,
                message=message,
                office_id=office_id,
                entity_type=ENTITY_TYPE,
                entity_id=dto.id,
                payload={"status": dto.status.value, "item_ids": list(dto.item_ids)},
            ),
            office_id=office_id,
        )

    # -------------------------------------------------------------------------
    # Register courtesy updates (post-commit)
    # -------------------------------------------------------------------------

    def _approve_register(self, transfer_id: UUID, actor: Actor) -> None:
        try:
            entry = self._c.register.find(RegisterKind.TRANSFER, transfer_id=transfer_id)
            if entry is None or entry.status != RegisterStatus.PENDING_APPROVAL.value:
                return
            self._c.register.approve(entry.id, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "transfer_register_update_failed",
                extra={"transfer_id": str(transfer_id), "target_status": RegisterStatus.APPROVED.value},
                exc_info=True,
            )

    def _sync_register(
        self,
        dto: Transfer,
        status: RegisterStatus,
        actor: Actor,
        challan_id: UUID | None = None,
    ) -> None:
        try:
            entry = self._c.register.find(RegisterKind.TRANSFER, transfer_id=dto.id)
            if entry is None:
                # Rows older than the register get an entry on first sync; it
                # starts at Draft and reaches ``status`` through the checked
                # transition below.
                entry = self._c.register.create(
                    RegisterKind.TRANSFER,
                    dto.source_office_id,
                    RegisterStatus.DRAFT,
                    RegisterLinks(transfer_id=dto.id),
                    actor,
                    notes=f"Transfer {dto.id} {dto.status.value}",
                )
            if challan_id is not None:
                self._c.documents.link(
                    challan_id, REGISTER_ENTITY, entry.id, required_for_status=status.value,
                )
            if entry.status != status.value:
                self._c.register.transition(entry.id, status, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning(
                "transfer_register_update_failed",
                extra={"transfer_id": str(dto.id), "target_status": status.value},
                exc_info=True,
            )
