from __future__ import annotations

from datetime import date

import pytest

from sheetrules.errors import SchemaLookupError, ShapeError
from sheetrules.schema.accessor import SchemaAccessor
from sheetrules.schema.models import SchemaStore
from sheetrules.surface.memory import InMemorySheet


@pytest.fixture  # type: ignore[misc]
def accessor(employees_store: SchemaStore, employees_sheet: InMemorySheet) -> SchemaAccessor:
    return SchemaAccessor(employees_store.get("Employees"), employees_sheet)


def test_views(accessor: SchemaAccessor) -> None:
    assert accessor.header_row_count == 4
    assert accessor.first_data_row == 5
    assert dict(accessor.column_letters) == {
        "name": "A",
        "age": "B",
        "joinDate": "C",
        "department": "D",
        "score": "E",
        "relativeScore": "F",
    }
    assert accessor.column_indices["relativeScore"] == 6
    assert accessor.column_types["joinDate"] == "date"
    assert dict(accessor.region_locators) == {
        "headcount": "H1",
        "bonusPool": "H2",
        "totalBudget": "I1",
        "bonusPerHead": "I2",
    }
    assert list(accessor.calculated_columns) == ["relativeScore"]
    assert list(accessor.calculated_regions) == ["totalBudget", "bonusPerHead"]
    assert accessor.locked_columns == ("relativeScore",)
    assert accessor.locked_regions == ("headcount",)
    assert accessor.schema_name == "Employees"


def test_views_are_read_only(accessor: SchemaAccessor) -> None:
    with pytest.raises(TypeError):
        accessor.column_letters["extra"] = "Z"  # type: ignore[index]
    with pytest.raises(TypeError):
        accessor.calculated_columns["extra"] = None  # type: ignore[index]


def test_lookups_are_case_insensitive(accessor: SchemaAccessor) -> None:
    assert accessor.column_letter("SCORE") == "E"
    assert accessor.column_index("JoinDate") == 3
    assert accessor.column_type("Age") == "number"
    assert accessor.region_locator("BONUSPOOL") == "H2"
    assert accessor.has_column("Department")
    assert not accessor.has_region("missing")


def test_unknown_names_raise_lookup_error(accessor: SchemaAccessor) -> None:
    with pytest.raises(SchemaLookupError, match="Unknown column name: 'salary'"):
        accessor.column_letter("salary")
    with pytest.raises(LookupError):
        accessor.region_locator("nowhere")


def test_reverse_lookups(accessor: SchemaAccessor) -> None:
    assert accessor.column_name_at(5) == "score"
    assert accessor.column_name_at(7) is None
    assert accessor.resolve_column_key("e") == "score"
    assert accessor.resolve_region_key("h2") == "bonusPool"
    with pytest.raises(SchemaLookupError):
        accessor.resolve_region_key("Z9")


def test_column_extent_spans_grid(accessor: SchemaAccessor) -> None:
    assert accessor.column_extent("relativeScore") == "F5:F1000"


def test_read_column_stops_at_last_data_row(accessor: SchemaAccessor) -> None:
    assert accessor.read_column("name") == ["Ada", "Grace", "Linus"]
    assert accessor.read_column("relativeScore") == [None, None, None]


def test_read_column_on_empty_sheet(employees_store: SchemaStore) -> None:
    sheet = InMemorySheet("Employees", rows=[["header"]] * 4)
    empty = SchemaAccessor(employees_store.get("Employees"), sheet)
    assert empty.read_column("score") == []


def test_read_row_and_record(accessor: SchemaAccessor) -> None:
    assert accessor.read_row(5) == ["Ada", 36, date(2015, 3, 1), "Engineering", 88, None]
    record = accessor.read_record(6)
    assert record["name"] == "Grace"
    assert record["score"] == 92
    assert list(record) == list(accessor.column_names)


def test_write_row(accessor: SchemaAccessor, employees_sheet: InMemorySheet) -> None:
    accessor.write_row(8, ["Barbara", 51, date(2009, 2, 2), "Sales", 77, None])
    assert employees_sheet.read_values("A8:E8") == [
        ["Barbara", 51, date(2009, 2, 2), "Sales", 77]
    ]
    assert employees_sheet.calls["write_values"] == 1


def test_write_row_rejects_wrong_shape(accessor: SchemaAccessor) -> None:
    with pytest.raises(ShapeError, match="declares 6 column"):
        accessor.write_row(8, ["Barbara", 51])


def test_write_record_keeps_other_cells(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    accessor.write_record(5, {"SCORE": 90})
    assert accessor.read_record(5)["score"] == 90
    assert accessor.read_record(5)["name"] == "Ada"


def test_write_record_rejects_unknown_column(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    employees_sheet.calls.clear()
    with pytest.raises(ShapeError, match=r"undeclared column\(s\) on sheet 'Employees': 'salary'"):
        accessor.write_record(5, {"score": 90, "salary": 1})
    with pytest.raises(ShapeError, match="Record is empty"):
        accessor.write_record(5, {})
    assert employees_sheet.calls["write_values"] == 0
    assert accessor.read_record(5)["score"] == 88


def test_accessors_do_not_share_state(
    employees_store: SchemaStore, employees_sheet: InMemorySheet
) -> None:
    other_sheet = InMemorySheet("Employees", max_rows=20)
    first = SchemaAccessor(employees_store.get("Employees"), employees_sheet)
    second = SchemaAccessor(employees_store.get("Employees"), other_sheet)
    assert first.column_extent("score") == "E5:E1000"
    assert second.column_extent("score") == "E5:E20"
    assert first.column_letters is not second.column_letters
