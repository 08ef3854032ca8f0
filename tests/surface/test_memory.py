from __future__ import annotations

import pytest

from sheetrules.errors import ExternalOperationError
from sheetrules.surface.base import (
    FormattingRule,
    SheetSurface,
    ValidationRule,
    WorkbookSurface,
    is_formula,
)
from sheetrules.surface.memory import InMemorySheet, InMemoryWorkbook


def test_in_memory_classes_satisfy_protocols() -> None:
    sheet = InMemorySheet("Data")
    assert isinstance(sheet, SheetSurface)
    assert isinstance(InMemoryWorkbook([sheet]), WorkbookSurface)


def test_is_formula() -> None:
    assert is_formula("=A1")
    assert not is_formula("A1")
    assert not is_formula(1)


def test_read_write_values() -> None:
    sheet = InMemorySheet("Data", rows=[["a", "b"], [1, 2]])
    assert sheet.read_values("A1:C2") == [["a", "b", None], [1, 2, None]]
    sheet.write_values("B2:C2", [[None, 3]])
    assert sheet.read_values("A2:C2") == [[1, None, 3]]
    assert sheet.calls["write_values"] == 1


def test_write_shape_mismatch() -> None:
    sheet = InMemorySheet("Data")
    with pytest.raises(ExternalOperationError, match="shape does not match A1:B1"):
        sheet.write_values("A1:B1", [[1]])
    assert sheet.mutation_count() == 0


def test_last_data_row_ignores_formulas() -> None:
    sheet = InMemorySheet("Data", rows=[["h"], [1], [2]])
    sheet.write_formulas("B1:B5", [["=A1"], ["=A2"], ["=A3"], ["=A4"], ["=A5"]])
    assert sheet.last_data_row() == 3
    assert InMemorySheet("Empty").last_data_row() == 0


def test_validation_lifecycle() -> None:
    sheet = InMemorySheet("Data")
    rule = ValidationRule(criterion="list", values=("x", "y"))
    sheet.set_validation("a1:a3", rule)
    assert sheet.validation_at("A1:A3") == rule
    sheet.clear_validation("A1:A3")
    assert sheet.validation_at("A1:A3") is None
    sheet.set_validation("B1", rule)
    sheet.clear_all_validation()
    assert sheet.validations == {}


def test_formatting_replaced_wholesale() -> None:
    sheet = InMemorySheet("Data")
    first = FormattingRule(extent="A1", kind="expression", formulas=("TRUE",))
    second = FormattingRule(extent="B1", kind="colorScale", scale_colors=("#000000", "#FFFFFF"))
    sheet.replace_formatting_rules([first])
    sheet.replace_formatting_rules([second])
    assert sheet.formatting_rules() == [second]


def test_protection_records_count_calls() -> None:
    sheet = InMemorySheet("Data")
    record = sheet.protect("A1:B2")
    record.set_label("block")
    record.add_editors(["a@example.com"])
    record.remove_editors(["a@example.com"])
    assert sheet.calls == {
        "protect": 1,
        "set_protection_label": 1,
        "add_protection_editors": 1,
        "remove_protection_editors": 1,
    }
    sheet.unprotect(record)
    assert sheet.protections() == []


def test_workbook_named_regions() -> None:
    workbook = InMemoryWorkbook.from_rows({"Data": [["x"]]})
    workbook.set_named_region("total", "Data", "b2")
    assert workbook.named_regions() == {"total": ("Data", "B2")}
    workbook.remove_named_region("total")
    assert workbook.named_regions() == {}
    with pytest.raises(ExternalOperationError, match="Sheet not found: Other"):
        workbook.set_named_region("total", "Other", "A1")


def test_workbook_editor_accounts() -> None:
    workbook = InMemoryWorkbook(
        [InMemorySheet("Data")], editors=["a@example.com"], accounts=["b@example.com"]
    )
    workbook.add_editor("b@example.com")
    assert workbook.editors() == frozenset({"a@example.com", "b@example.com"})
    with pytest.raises(ExternalOperationError, match="No account found"):
        workbook.add_editor("ghost@example.com")


def test_from_rows_sets_grid_size() -> None:
    workbook = InMemoryWorkbook.from_rows({"Data": []}, max_rows=50)
    sheet = workbook.sheet("Data")
    assert sheet is not None
    assert sheet.max_rows == 50
    assert workbook.sheet("Missing") is None
    assert workbook.sheet_names() == ["Data"]
