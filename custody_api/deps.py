"""Request-scoped dependencies: session, actor and workflow services."""

from __future__ import annotations

from collections.abc import Generator
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from custody_kernel.domain.access import Actor, normalize_role
from custody_kernel.exceptions import InvalidInputError
from custody_modules.assignment.service import AssignmentService
from custody_modules.return_batch.service import ReturnBatchService
from custody_modules.transfer.service import TransferService


def get_db(request: Request) -> Generator[Session, None, None]:
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def _uuid_header(name: str, value: str | None) -> UUID | None:
    if value is None or not value.strip():
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidInputError(f"{name} header is not a valid id", field=name) from None


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_office_id: str | None = Header(default=None),
    x_employee_id: str | None = Header(default=None),
) -> Actor:
    user_id = _uuid_header("X-User-Id", x_user_id)
    if user_id is None:
        raise InvalidInputError("X-User-Id header is required", field="X-User-Id")
    return Actor(
        user_id=user_id,
        role=normalize_role(x_user_role),
        office_id=_uuid_header("X-Office-Id", x_office_id),
        employee_id=_uuid_header("X-Employee-Id", x_employee_id),
    )


def get_assignment_service(request: Request, session: Session = Depends(get_db)) -> AssignmentService:
    state = request.app.state
    return AssignmentService(
        session,
        state.clock,
        notification_service=state.notification_service,
        notifications_enabled=state.settings.notifications_enabled,
    )


def get_transfer_service(request: Request, session: Session = Depends(get_db)) -> TransferService:
    state = request.app.state
    return TransferService(
        session,
        state.clock,
        settings=state.settings,
        notification_service=state.notification_service,
        notifications_enabled=state.settings.notifications_enabled,
    )


def get_return_batch_service(request: Request, session: Session = Depends(get_db)) -> ReturnBatchService:
    state = request.app.state
    return ReturnBatchService(
        session,
        state.clock,
        notification_service=state.notification_service,
        notifications_enabled=state.settings.notifications_enabled,
    )
