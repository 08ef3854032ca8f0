from __future__ import annotations

from typing import Any

import pytest

from sheetrules.errors import ConfigError
from sheetrules.protection import ProtectionReconciler
from sheetrules.rules.applicator import RuleApplicator
from sheetrules.schema.accessor import SchemaAccessor
from sheetrules.schema.models import SchemaStore
from sheetrules.surface.base import FormattingRule
from sheetrules.surface.memory import InMemorySheet


@pytest.fixture  # type: ignore[misc]
def accessor(employees_store: SchemaStore, employees_sheet: InMemorySheet) -> SchemaAccessor:
    return SchemaAccessor(employees_store.get("Employees"), employees_sheet)


def test_calculated_column_is_batch_written(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    report = RuleApplicator(accessor).apply_formulas()
    assert employees_sheet.calls["write_formulas"] == 3
    assert employees_sheet.cells[(5, 6)] == '=IF(ISBLANK(E5), "", E5/AVERAGE($E$5:$E$1000))'
    assert employees_sheet.cells[(1000, 6)] == (
        '=IF(ISBLANK(E1000), "", E1000/AVERAGE($E$5:$E$1000))'
    )
    assert (1001, 6) not in employees_sheet.cells
    assert report.formula_extents == ["F5:F1000", "I1", "I2"]
    assert report.formula_cells == 996 + 2


def test_calculated_regions(accessor: SchemaAccessor, employees_sheet: InMemorySheet) -> None:
    RuleApplicator(accessor).apply_formulas()
    assert employees_sheet.cells[(1, 9)] == "=TOTAL_BUDGET(H1,H2)"
    assert employees_sheet.cells[(2, 9)] == "=H2/H1"


def test_formula_write_does_not_move_data_extent(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    RuleApplicator(accessor).apply_formulas()
    assert employees_sheet.last_data_row() == 7


def test_locked_column_is_protected_after_write(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    reconciler = ProtectionReconciler(["owner@example.com"])
    report = RuleApplicator(accessor, reconciler).apply_formulas()
    assert report.protected == ["F5:F1000"]
    [record] = employees_sheet.protections()
    assert record.extent == "F5:F1000"
    assert record.label == "Employees:relativeScore"
    assert record.editors() == frozenset({"owner@example.com"})


def test_validation_rules(accessor: SchemaAccessor, employees_sheet: InMemorySheet) -> None:
    report = RuleApplicator(accessor).apply_validation()
    assert report.validations == 4
    assert set(employees_sheet.validations) == {"B5:B1000", "C5:C1000", "D5:D1000", "H2"}
    age = employees_sheet.validation_at("B5:B1000")
    assert age is not None
    assert (age.criterion, age.operator, age.formula1, age.formula2) == (
        "decimal",
        "between",
        "18",
        "70",
    )
    department = employees_sheet.validation_at("D5:D1000")
    assert department is not None
    assert department.values == ("Engineering", "Sales", "Support")
    assert department.help_text == "Pick a department."
    assert employees_sheet.calls["clear_validation"] == 4
    assert employees_sheet.calls["set_validation"] == 4


def test_validation_builder_returning_none_is_skipped(
    employees_sheet: InMemorySheet,
) -> None:
    from sheetrules.rules.specs import register_validation_builder

    @register_validation_builder("never")
    def never(*_: Any) -> None:
        return None

    store = SchemaStore.from_literal(
        {
            "Employees": {
                "layout": {"columns": {"A": {"name": "name"}}, "namedRegions": {}},
                "validationRules": {
                    "column": {"A": {"kind": "customBuilder", "builder": "never"}}
                },
            }
        }
    )
    accessor = SchemaAccessor(store.get("Employees"), employees_sheet)
    report = RuleApplicator(accessor).apply_validation()
    assert report.validations == 0
    assert report.skipped_validations == ["A1:A1000"]
    assert employees_sheet.calls["clear_validation"] == 0


def test_formatting_is_replaced_once(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    report = RuleApplicator(accessor).apply_formatting()
    assert employees_sheet.calls["replace_formatting_rules"] == 1
    assert report.formatting_rules == 2
    low, scale = employees_sheet.formatting_rules()
    assert low == FormattingRule(
        extent="E5:E1000",
        kind="cellIs",
        operator="lessThan",
        formulas=("50",),
        fill_color="#FFC7CE",
        bold=True,
    )
    assert scale.kind == "colorScale"
    assert scale.extent == "F5:F1000"


def test_empty_formatting_still_clears_stale_rules(employees_sheet: InMemorySheet) -> None:
    employees_sheet.replace_formatting_rules(
        [FormattingRule(extent="A1", kind="expression", formulas=("TRUE",))]
    )
    store = SchemaStore.from_literal(
        {"Employees": {"layout": {"columns": {}, "namedRegions": {}}}}
    )
    accessor = SchemaAccessor(store.get("Employees"), employees_sheet)
    RuleApplicator(accessor).apply_formatting()
    assert employees_sheet.formatting_rules() == []
    assert employees_sheet.calls["replace_formatting_rules"] == 2


def test_multi_cell_calculated_region_is_rejected(employees_sheet: InMemorySheet) -> None:
    store = SchemaStore.from_literal(
        {
            "Employees": {
                "layout": {
                    "columns": {},
                    "namedRegions": {
                        "H1": {"name": "base"},
                        "H2:H3": {
                            "name": "spread",
                            "formula": {"kind": "namedCall", "function": "SPREAD"},
                            "args": ["base"],
                        },
                    },
                }
            }
        }
    )
    accessor = SchemaAccessor(store.get("Employees"), employees_sheet)
    with pytest.raises(ConfigError, match="spans several cells"):
        RuleApplicator(accessor).apply_formulas()
    assert employees_sheet.calls["write_formulas"] == 0


def test_strict_mode_rejects_unknown_placeholders(employees_sheet: InMemorySheet) -> None:
    store = SchemaStore.from_literal(
        {
            "Employees": {
                "layout": {
                    "columns": {"A": {"name": "a", "formula": "$a+$ghost"}},
                    "namedRegions": {},
                }
            }
        }
    )
    accessor = SchemaAccessor(store.get("Employees"), employees_sheet)
    with pytest.raises(ConfigError, match="Unresolved placeholders"):
        RuleApplicator(accessor).apply_formulas()
    RuleApplicator(accessor, strict=False).apply_formulas()
    assert employees_sheet.cells[(1, 1)] == "=A1+"


def test_apply_all_orders_stages(
    accessor: SchemaAccessor, employees_sheet: InMemorySheet
) -> None:
    report = RuleApplicator(accessor).apply_all()
    assert report.sheet == "Employees"
    assert report.validations == 4
    assert report.formatting_rules == 2
    assert report.formula_cells == 998
