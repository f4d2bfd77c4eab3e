"""
Actor and role predicates (``custody_kernel.domain.access``).

Responsibility
--------------
Defines the authenticated ``Actor`` every workflow operation receives and
the small set of role/office predicates the workflows check before they
mutate anything.  Authentication itself happens upstream; this module
only interprets the (user, role, office) triple it is handed.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.

Failure modes
-------------
* ``RoleNotPermittedError`` (403) -- the role never permits the action.
* ``OfficeScopeError`` (403) -- the role permits it, but not for this office.
* ``InvalidInputError`` (400) -- unknown role name.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from custody_kernel.exceptions import InvalidInputError, OfficeScopeError, RoleNotPermittedError


class Role(str, Enum):
    ORG_ADMIN = "org_admin"
    OFFICE_HEAD = "office_head"
    CARETAKER = "caretaker"
    EMPLOYEE = "employee"


_LEGACY_ROLE_ALIASES: dict[str, Role] = {
    "super_admin": Role.ORG_ADMIN,
    "admin": Role.ORG_ADMIN,
    "headoffice_admin": Role.ORG_ADMIN,
    "auditor": Role.ORG_ADMIN,
    "viewer": Role.ORG_ADMIN,
    "directorate_head": Role.OFFICE_HEAD,
    "location_admin": Role.OFFICE_HEAD,
    "lab_manager": Role.OFFICE_HEAD,
    "assistant_caretaker": Role.CARETAKER,
    "central_store_admin": Role.CARETAKER,
    "lab_user": Role.CARETAKER,
}

OFFICE_MANAGER_ROLES: frozenset[Role] = frozenset({Role.OFFICE_HEAD, Role.CARETAKER})


def normalize_role(value: str | Role | None, fallback: Role = Role.EMPLOYEE) -> Role:
    """Canonical role for a stored or legacy role name.

    Blank values resolve to ``fallback``; unrecognized names are rejected.
    """
    if isinstance(value, Role):
        return value
    key = (value or "").strip().lower()
    if not key:
        return fallback
    try:
        return Role(key)
    except ValueError:
        pass
    if key in _LEGACY_ROLE_ALIASES:
        return _LEGACY_ROLE_ALIASES[key]
    raise InvalidInputError(f"Invalid role: {value}", field="role")


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a workflow operation.

    ``employee_id`` links the user to their employee record, when they
    have one; employees act on their own assignments through it.
    """

    user_id: UUID
    role: Role
    office_id: UUID | None = None
    employee_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ORG_ADMIN

    @property
    def is_office_manager(self) -> bool:
        return self.role in OFFICE_MANAGER_ROLES

    def manages(self, office_id: UUID | None) -> bool:
        """Administrator, or a manager whose office is ``office_id``."""
        if self.is_admin:
            return True
        return self.is_office_manager and office_id is not None and self.office_id == office_id

    def heads(self, office_id: UUID | None) -> bool:
        if self.is_admin:
            return True
        return self.role is Role.OFFICE_HEAD and office_id is not None and self.office_id == office_id

    def can_see_office(self, office_id: UUID | None) -> bool:
        if self.is_admin:
            return True
        return office_id is not None and self.office_id == office_id


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise RoleNotPermittedError(action, actor.role.value)


def require_manager(actor: Actor, action: str) -> None:
    """Administrator or any office manager, regardless of office."""
    if not (actor.is_admin or actor.is_office_manager):
        raise RoleNotPermittedError(action, actor.role.value)


def require_office_manager(actor: Actor, office_id: UUID | None, action: str) -> None:
    require_manager(actor, action)
    if not actor.manages(office_id):
        raise OfficeScopeError(action, str(office_id) if office_id else None)


def require_office_head(actor: Actor, office_id: UUID | None, action: str) -> None:
    if not (actor.is_admin or actor.role is Role.OFFICE_HEAD):
        raise RoleNotPermittedError(action, actor.role.value)
    if not actor.heads(office_id):
        raise OfficeScopeError(action, str(office_id) if office_id else None)


def require_office_scope(actor: Actor, office_id: UUID | None, action: str) -> None:
    if not actor.can_see_office(office_id):
        raise OfficeScopeError(action, str(office_id) if office_id else None)
