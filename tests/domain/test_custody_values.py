"""
Pure custody value types: holders, custodians, lines and the
after-return availability rule.
"""

from uuid import UUID, uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from custody_kernel.domain.custody import (
    CustodianType,
    CustodyLine,
    EmployeeCustodian,
    HolderType,
    ItemAvailability,
    NoHolder,
    OfficeHolder,
    RoomCustodian,
    StoreHolder,
    availability_after_return,
    custodian_employee_id,
    custodian_from_columns,
    holder_from_columns,
    holder_office_id,
    is_held_by_office,
    normalize_lines,
    parse_custodian_type,
    parse_line_payload,
)
from custody_kernel.exceptions import InvalidInputError


# =============================================================================
# Holders
# =============================================================================


class TestHolderColumns:

    def test_office_holder(self):
        office = uuid4()
        holder = holder_from_columns("OFFICE", office)
        assert holder == OfficeHolder(office)
        assert holder.holder_type is HolderType.OFFICE
        assert holder_office_id(holder) == office

    def test_store_holder_has_no_office(self):
        store = uuid4()
        holder = holder_from_columns("STORE", store)
        assert holder == StoreHolder(store)
        assert holder_office_id(holder) is None

    def test_legacy_row_reads_location_as_office(self):
        location = uuid4()
        assert holder_from_columns(None, None, location) == OfficeHolder(location)
        assert holder_from_columns("", None, location) == OfficeHolder(location)

    def test_location_ignored_once_holder_type_set(self):
        store, location = uuid4(), uuid4()
        assert holder_from_columns("STORE", store, location) == StoreHolder(store)

    def test_missing_ids_mean_no_holder(self):
        assert holder_from_columns(None, None) == NoHolder()
        assert holder_from_columns("OFFICE", None) == NoHolder()
        assert holder_from_columns("NONE", uuid4()) == NoHolder()

    def test_unknown_holder_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown holder type"):
            holder_from_columns("WAREHOUSE", uuid4())

    def test_is_held_by_office(self):
        office = uuid4()
        assert is_held_by_office(OfficeHolder(office), office)
        assert not is_held_by_office(OfficeHolder(office), uuid4())
        assert not is_held_by_office(StoreHolder(office), office)


# =============================================================================
# Custodians
# =============================================================================


class TestCustodians:

    @pytest.mark.parametrize("raw, expected", [
        ("EMPLOYEE", CustodianType.EMPLOYEE),
        ("employee", CustodianType.EMPLOYEE),
        ("ROOM", CustodianType.ROOM),
        ("SUB_LOCATION", CustodianType.ROOM),
        (" sub_location ", CustodianType.ROOM),
    ])
    def test_parse_custodian_type(self, raw, expected):
        assert parse_custodian_type(raw) is expected

    @pytest.mark.parametrize("raw", [None, "", "DEPARTMENT"])
    def test_unknown_custodian_type_rejected(self, raw):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_custodian_type(raw)
        assert exc_info.value.field == "target_type"

    def test_custodian_from_columns(self):
        employee, room = uuid4(), uuid4()
        assert custodian_from_columns("EMPLOYEE", employee) == EmployeeCustodian(employee)
        assert custodian_from_columns("SUB_LOCATION", room) == RoomCustodian(room)

    def test_custodian_requires_id(self):
        with pytest.raises(InvalidInputError):
            custodian_from_columns("EMPLOYEE", None)

    def test_only_employees_have_employee_id(self):
        employee = uuid4()
        assert custodian_employee_id(EmployeeCustodian(employee)) == employee
        assert custodian_employee_id(RoomCustodian(uuid4())) is None


# =============================================================================
# Availability after return
# =============================================================================


class TestAvailabilityAfterReturn:

    def test_maintenance_is_preserved(self):
        assert availability_after_return(ItemAvailability.MAINTENANCE) is ItemAvailability.MAINTENANCE

    @given(st.sampled_from([a for a in ItemAvailability if a is not ItemAvailability.MAINTENANCE]))
    def test_everything_else_becomes_available(self, current):
        assert availability_after_return(current) is ItemAvailability.AVAILABLE

    def test_accepts_stored_strings(self):
        assert availability_after_return("Assigned") is ItemAvailability.AVAILABLE


# =============================================================================
# Line payloads
# =============================================================================


class TestLinePayload:

    def test_accepts_legacy_key(self):
        item = uuid4()
        (line,) = parse_line_payload([{"asset_item_id": str(item)}])
        assert line.item_id == item

    def test_notes_are_stripped(self):
        item = uuid4()
        (line,) = parse_line_payload([{"item_id": item, "notes": "  spare charger  "}])
        assert line.notes == "spare charger"
        (blank,) = parse_line_payload([{"item_id": item, "notes": "   "}])
        assert blank.notes is None

    def test_missing_item_id_names_the_line(self):
        with pytest.raises(InvalidInputError, match=r"lines\[1\]\.item_id is required"):
            parse_line_payload([{"item_id": str(uuid4())}, {"notes": "no id"}])

    def test_malformed_item_id_rejected(self):
        with pytest.raises(InvalidInputError):
            parse_line_payload([{"item_id": "not-a-uuid"}])

    @pytest.mark.parametrize("payload", [None, []])
    def test_empty_payload_rejected(self, payload):
        with pytest.raises(InvalidInputError, match="At least one transfer line is required"):
            parse_line_payload(payload)

    @settings(max_examples=50)
    @given(st.lists(st.uuids(), min_size=1, max_size=12))
    def test_dedup_keeps_first_occurrence_order(self, ids):
        lines = parse_line_payload([{"item_id": str(i)} for i in ids])
        expected = list(dict.fromkeys(ids))
        assert [line.item_id for line in lines] == expected

    @settings(max_examples=50)
    @given(st.lists(st.uuids(), min_size=1, max_size=6), st.integers(min_value=1, max_value=3))
    def test_repeating_the_payload_changes_nothing(self, ids, repeat):
        once = parse_line_payload([{"item_id": i} for i in ids])
        many = parse_line_payload([{"item_id": i} for i in ids] * repeat)
        assert once == many


class TestNormalizeLines:

    def test_lines_win_over_legacy_item(self):
        line = CustodyLine(item_id=uuid4())
        assert normalize_lines([line], legacy_item_id=uuid4()) == (line,)

    def test_legacy_item_reads_as_single_line(self):
        legacy = uuid4()
        assert normalize_lines([], legacy_item_id=legacy) == (CustodyLine(item_id=legacy),)

    def test_nothing_gives_empty_tuple(self):
        assert normalize_lines([]) == ()

    def test_input_not_mutated(self):
        lines = [CustodyLine(item_id=UUID(int=1))]
        normalize_lines(lines, legacy_item_id=UUID(int=2))
        assert lines == [CustodyLine(item_id=UUID(int=1))]
