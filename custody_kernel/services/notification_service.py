"""
Notifications -- best-effort alerts fired after a workflow commits.

Responsibility:
    ``NotificationService`` is the collaborator contract
    (``notify(recipients, event, payload)``).  ``DatabaseNotificationService``
    is the default implementation: in-app rows in ``notifications``.
    ``NotificationDispatcher`` is what workflows call: it resolves
    recipients (office managers plus the employee's user), calls the
    service in its own transaction after the workflow has committed, and
    logs instead of raising when anything goes wrong.

Failure modes:
    None propagate from ``NotificationDispatcher.dispatch``.  A failure is
    logged at WARNING as ``notification_dispatch_failed`` and the session
    is rolled back to a clean state; the workflow's committed changes are
    unaffected.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from custody_kernel.domain.access import OFFICE_MANAGER_ROLES, normalize_role
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.exceptions import InvalidInputError
from custody_kernel.logging_config import get_logger
from custody_kernel.models.notification import NotificationModel
from custody_kernel.models.reference import EmployeeModel, UserModel

logger = get_logger("services.notification")


class NotificationEvent(str, Enum):
    ASSIGNMENT_DRAFT_CREATED = "ASSIGNMENT_DRAFT_CREATED"
    HANDOVER_SLIP_READY = "HANDOVER_SLIP_READY"
    ASSIGNMENT_ISSUED = "ASSIGNMENT_ISSUED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_SLIP_READY = "RETURN_SLIP_READY"
    ASSIGNMENT_RETURNED = "ASSIGNMENT_RETURNED"
    TRANSFER_REQUESTED = "TRANSFER_REQUESTED"
    TRANSFER_STATUS_CHANGED = "TRANSFER_STATUS_CHANGED"
    RETURN_BATCH_SUBMITTED = "RETURN_BATCH_SUBMITTED"
    RETURN_BATCH_RECEIVED = "RETURN_BATCH_RECEIVED"
    RETURN_BATCH_CLOSED = "RETURN_BATCH_CLOSED"


@dataclass(frozen=True)
class NotificationMessage:
    event: NotificationEvent
    title: str
    message: str
    office_id: UUID | None = None
    entity_type: str | None = None
    entity_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationService(Protocol):
    """Collaborator contract for alert delivery."""

    def notify(self, recipients: Iterable[UUID], message: NotificationMessage) -> int:
        """Deliver ``message`` to every recipient; return how many were accepted."""
        ...


class DatabaseNotificationService:
    """Stores one in-app notification row per valid recipient."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def notify(self, recipients: Iterable[UUID], message: NotificationMessage) -> int:
        if not message.title or not message.message:
            raise InvalidInputError("Notification title and message are required")

        created = 0
        seen: set[UUID] = set()
        for recipient in recipients:
            # Invalid and duplicate recipients are skipped, not fatal.
            if not isinstance(recipient, UUID) or recipient in seen:
                continue
            seen.add(recipient)
            self._session.add(
                NotificationModel(
                    recipient_user_id=recipient,
                    office_id=message.office_id,
                    event=message.event.value,
                    title=message.title,
                    message=message.message,
                    entity_type=message.entity_type,
                    entity_id=message.entity_id,
                    payload={k: str(v) for k, v in message.payload.items()} or None,
                    created_at=self._clock.now(),
                )
            )
            created += 1
        self._session.flush()
        return created


class NotificationDispatcher:
    """
    Post-commit, failure-isolated notification sender.

    Contract:
        Call only after the workflow transaction has committed.  Runs the
        delivery in a fresh transaction on the same session and commits it.
    """

    def __init__(
        self,
        session: Session,
        service: NotificationService | None = None,
        clock: Clock | None = None,
        enabled: bool = True,
    ):
        self._session = session
        self._service = service or DatabaseNotificationService(session, clock)
        self._enabled = enabled

    def office_manager_user_ids(self, office_id: UUID | None) -> list[UUID]:
        if office_id is None:
            return []
        users = self._session.execute(
            select(UserModel).where(
                UserModel.office_id == office_id,
                UserModel.is_active.is_(True),
            )
        ).scalars().all()
        result = []
        for user in users:
            try:
                role = normalize_role(user.role)
            except InvalidInputError:
                continue
            if role in OFFICE_MANAGER_ROLES:
                result.append(user.id)
        return result

    def employee_user_id(self, employee_id: UUID | None) -> UUID | None:
        if employee_id is None:
            return None
        employee = self._session.get(EmployeeModel, employee_id)
        return employee.user_id if employee else None

    def recipients(
        self,
        office_id: UUID | None,
        employee_id: UUID | None = None,
        extra: Iterable[UUID | None] = (),
    ) -> list[UUID]:
        ids: list[UUID] = list(self.office_manager_user_ids(office_id))
        employee_user = self.employee_user_id(employee_id)
        if employee_user is not None:
            ids.append(employee_user)
        ids.extend(uid for uid in extra if uid is not None)
        return list(dict.fromkeys(ids))

    def dispatch(
        self,
        message: NotificationMessage,
        office_id: UUID | None = None,
        employee_id: UUID | None = None,
        extra_recipients: Iterable[UUID | None] = (),
    ) -> int:
        """Resolve recipients and deliver; never raises."""
        if not self._enabled:
            return 0
        try:
            recipients = self.recipients(office_id, employee_id, extra_recipients)
            if not recipients:
                return 0
            delivered = self._service.notify(recipients, message)
            self._session.commit()
            logger.info(
                "notification_dispatched",
                extra={"event": message.event.value, "recipients": delivered},
            )
            return delivered
        except Exception:
            self._session.rollback()
            logger.warning(
                "notification_dispatch_failed",
                extra={"event": message.event.value},
                exc_info=True,
            )
            return 0
