"""
Custody value types (``custody_kernel.domain.custody``).

Responsibility
--------------
Pure value objects describing who holds an item and who it is assigned to:

* ``Holder``: sum type ``NoHolder | OfficeHolder | StoreHolder``.
* ``Custodian``: sum type ``EmployeeCustodian | RoomCustodian``.
* Item availability / custody / condition enums.
* ``CustodyLine``: one ``{item_id, notes}`` line of a transfer or return batch.

It also owns the read-time normalization of legacy persisted shapes:
items written before holder fields existed carry only ``location_id``;
transfers written before ``lines`` existed carry a single item reference.
Both are mapped to the canonical shape here, on every read, and never
written back.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  ORM models call these functions from
``to_dto()``; services consume only the canonical shapes.

Invariants enforced
-------------------
* Every consumer of a holder or custodian matches exhaustively; an
  unknown variant raises ``TypeError`` instead of falling through.
* Normalization is pure: the same legacy row yields an equal canonical
  value on every read.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from custody_kernel.exceptions import InvalidInputError


class HolderType(str, Enum):
    NONE = "NONE"
    OFFICE = "OFFICE"
    STORE = "STORE"


class ItemAvailability(str, Enum):
    """Operational availability of an item."""

    AVAILABLE = "Available"
    ASSIGNED = "Assigned"
    MAINTENANCE = "Maintenance"
    DAMAGED = "Damaged"
    RETIRED = "Retired"
    IN_TRANSIT = "InTransit"


class CustodyState(str, Enum):
    """Whether the item is currently handed to a custodian."""

    ASSIGNED = "Assigned"
    UNASSIGNED = "Unassigned"


class ItemCondition(str, Enum):
    NEW = "New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    DAMAGED = "Damaged"


class FunctionalStatus(str, Enum):
    FUNCTIONAL = "Functional"
    NEED_REPAIRS = "Need Repairs"
    DEAD = "Dead"


class CustodianType(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    ROOM = "ROOM"


# Older requisitions name rooms "sub-locations".
_CUSTODIAN_ALIASES: dict[str, CustodianType] = {
    "EMPLOYEE": CustodianType.EMPLOYEE,
    "ROOM": CustodianType.ROOM,
    "SUB_LOCATION": CustodianType.ROOM,
}


# -----------------------------------------------------------------------------
# Holder
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class NoHolder:
    """The item is not held by any office or store."""

    @property
    def holder_type(self) -> HolderType:
        return HolderType.NONE

    @property
    def holder_id(self) -> None:
        return None


@dataclass(frozen=True)
class OfficeHolder:
    office_id: UUID

    @property
    def holder_type(self) -> HolderType:
        return HolderType.OFFICE

    @property
    def holder_id(self) -> UUID:
        return self.office_id


@dataclass(frozen=True)
class StoreHolder:
    store_id: UUID

    @property
    def holder_type(self) -> HolderType:
        return HolderType.STORE

    @property
    def holder_id(self) -> UUID:
        return self.store_id


Holder = NoHolder | OfficeHolder | StoreHolder


def holder_from_columns(
    holder_type: str | None,
    holder_id: UUID | None,
    location_id: UUID | None = None,
) -> Holder:
    """Map persisted holder columns to a ``Holder``.

    Rows lacking ``holder_type`` are legacy rows: their ``location_id`` is
    read as an office holder.
    """
    match holder_type:
        case HolderType.OFFICE.value:
            return OfficeHolder(holder_id) if holder_id is not None else NoHolder()
        case HolderType.STORE.value:
            return StoreHolder(holder_id) if holder_id is not None else NoHolder()
        case HolderType.NONE.value:
            return NoHolder()
        case None | "":
            if location_id is not None:
                return OfficeHolder(location_id)
            return NoHolder()
        case _:
            raise ValueError(f"Unknown holder type: {holder_type}")


def holder_office_id(holder: Holder) -> UUID | None:
    """The office holding the item, or None while unheld or in the store."""
    match holder:
        case OfficeHolder(office_id=office_id):
            return office_id
        case StoreHolder() | NoHolder():
            return None
        case _:
            raise TypeError(f"Unhandled holder variant: {holder!r}")


def is_held_by_office(holder: Holder, office_id: UUID) -> bool:
    return holder_office_id(holder) == office_id


# -----------------------------------------------------------------------------
# Custodian
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EmployeeCustodian:
    employee_id: UUID

    @property
    def custodian_type(self) -> CustodianType:
        return CustodianType.EMPLOYEE

    @property
    def custodian_id(self) -> UUID:
        return self.employee_id


@dataclass(frozen=True)
class RoomCustodian:
    room_id: UUID

    @property
    def custodian_type(self) -> CustodianType:
        return CustodianType.ROOM

    @property
    def custodian_id(self) -> UUID:
        return self.room_id


Custodian = EmployeeCustodian | RoomCustodian


def parse_custodian_type(value: str | None) -> CustodianType:
    """Resolve a custodian type name, accepting the legacy SUB_LOCATION alias."""
    key = (value or "").strip().upper()
    try:
        return _CUSTODIAN_ALIASES[key]
    except KeyError:
        raise InvalidInputError(
            f"Invalid assignment target type: {value!r}", field="target_type"
        ) from None


def custodian_from_columns(custodian_type: str | None, custodian_id: UUID | None) -> Custodian:
    """Map persisted target columns to a ``Custodian``."""
    if custodian_id is None:
        raise InvalidInputError("Assignment target id is required", field="target_id")
    match parse_custodian_type(custodian_type):
        case CustodianType.EMPLOYEE:
            return EmployeeCustodian(custodian_id)
        case CustodianType.ROOM:
            return RoomCustodian(custodian_id)


def custodian_employee_id(custodian: Custodian) -> UUID | None:
    match custodian:
        case EmployeeCustodian(employee_id=employee_id):
            return employee_id
        case RoomCustodian():
            return None
        case _:
            raise TypeError(f"Unhandled custodian variant: {custodian!r}")


# -----------------------------------------------------------------------------
# Item snapshot
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ItemSnapshot:
    """Canonical read shape of an item."""

    id: UUID
    asset_id: UUID
    holder: Holder
    availability: ItemAvailability
    custody: CustodyState
    condition: ItemCondition
    functional_status: FunctionalStatus
    is_active: bool
    version: int
    serial_number: str | None = None
    tag: str | None = None

    @property
    def office_id(self) -> UUID | None:
        return holder_office_id(self.holder)

    @property
    def is_assigned(self) -> bool:
        return self.custody is CustodyState.ASSIGNED


def availability_after_return(current: ItemAvailability | str) -> ItemAvailability:
    """Returned items become Available, except those under maintenance."""
    current = ItemAvailability(current)
    if current is ItemAvailability.MAINTENANCE:
        return ItemAvailability.MAINTENANCE
    return ItemAvailability.AVAILABLE


# -----------------------------------------------------------------------------
# Lines
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CustodyLine:
    """One item line of a transfer or return batch."""

    item_id: UUID
    notes: str | None = None


def _coerce_uuid(value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def parse_line_payload(raw_lines: Sequence[Mapping[str, Any]] | None) -> tuple[CustodyLine, ...]:
    """Validate and de-duplicate request lines, preserving first occurrence order.

    Each entry needs an ``item_id`` (``asset_item_id`` is accepted from older
    clients).  Duplicates are dropped silently; an empty result is an error.
    """
    lines: list[CustodyLine] = []
    seen: set[UUID] = set()
    for index, entry in enumerate(raw_lines or ()):
        raw_id = entry.get("item_id") or entry.get("asset_item_id")
        item_id = _coerce_uuid(raw_id)
        if item_id is None:
            raise InvalidInputError(
                f"lines[{index}].item_id is required", field=f"lines[{index}].item_id"
            )
        if item_id in seen:
            continue
        seen.add(item_id)
        notes = str(entry.get("notes") or "").strip()
        lines.append(CustodyLine(item_id=item_id, notes=notes or None))
    if not lines:
        raise InvalidInputError("At least one transfer line is required", field="lines")
    return tuple(lines)


def normalize_lines(
    lines: Iterable[CustodyLine],
    legacy_item_id: UUID | None = None,
) -> tuple[CustodyLine, ...]:
    """Canonical line list for a persisted operation.

    Legacy single-item records have no lines but carry ``legacy_item_id``;
    they read as a one-line list.  The input is never modified.
    """
    canonical = tuple(lines)
    if canonical:
        return canonical
    if legacy_item_id is not None:
        return (CustodyLine(item_id=legacy_item_id),)
    return ()
