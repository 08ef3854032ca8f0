from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import date
from typing import Any

import pytest

from sheetrules.rules.specs import formatting_builders, validation_builders
from sheetrules.schema.models import SchemaStore
from sheetrules.surface.memory import InMemorySheet, InMemoryWorkbook

ENV_VARS = ("SHEETRULES_DEBUG", "SHEETRULES_EDITORS", "SHEETRULES_GRID_ROWS")

RELATIVE_SCORE_TEMPLATE = (
    'IF(ISBLANK($score), "", $score/AVERAGE($score$5:$score$1000))'
)

EMPLOYEE_ROWS: list[list[Any]] = [
    ["Employees"],
    [],
    ["Maintained by HR"],
    ["name", "age", "joinDate", "department", "score", "relativeScore"],
    ["Ada", 36, date(2015, 3, 1), "Engineering", 88],
    ["Grace", 45, date(2011, 7, 15), "Engineering", 92],
    ["Linus", 29, date(2020, 1, 6), "Support", 64],
]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers to avoid pytest warnings."""
    config.addinivalue_line(
        "markers", "xlsx: reads or writes .xlsx files through openpyxl."
    )


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SHEETRULES_* variables of the host shell out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _restore_builder_registries() -> Iterator[None]:
    """Drop builders registered by a test once it finishes."""
    validation_before = set(validation_builders.names())
    formatting_before = set(formatting_builders.names())
    yield
    for name in set(validation_builders.names()) - validation_before:
        validation_builders.unregister(name)
    for name in set(formatting_builders.names()) - formatting_before:
        formatting_builders.unregister(name)


def employees_literal(edit_rules: Sequence[Any] = ()) -> dict[str, Any]:
    """Return the Employees schema literal used across the suite."""
    return {
        "Employees": {
            "layout": {
                "headerRowCount": 4,
                "columns": {
                    "A": {"name": "name"},
                    "B": {"name": "age", "type": "number"},
                    "C": {"name": "joinDate", "type": "date"},
                    "D": {"name": "department"},
                    "E": {"name": "score", "type": "number"},
                    "F": {
                        "name": "relativeScore",
                        "type": "number",
                        "formula": RELATIVE_SCORE_TEMPLATE,
                        "lock": True,
                    },
                },
                "namedRegions": {
                    "H1": {"name": "headcount", "lock": True},
                    "H2": {"name": "bonusPool"},
                    "I1": {
                        "name": "totalBudget",
                        "formula": {
                            "kind": "namedCall",
                            "function": "TOTAL_BUDGET",
                            "args": ["headcount", "bonusPool"],
                        },
                    },
                    "I2": {"name": "bonusPerHead", "formula": "$bonusPool/$headcount"},
                },
            },
            "editRules": list(edit_rules),
            "validationRules": {
                "column": {
                    "A": None,
                    "B": {
                        "kind": "numberValidation",
                        "operator": "between",
                        "minimum": 18,
                        "maximum": 70,
                    },
                    "C": {"kind": "dateValidation", "minimum": "2000-01-01"},
                    "D": {
                        "kind": "listValidation",
                        "values": ["Engineering", "Sales", "Support"],
                        "helpText": "Pick a department.",
                    },
                },
                "region": {
                    "H2": {
                        "kind": "numberValidation",
                        "operator": "greaterThanOrEqual",
                        "minimum": 0,
                    },
                },
            },
            "formattingRules": {
                "column": {
                    "E": [
                        {
                            "kind": "cellValue",
                            "operator": "lessThan",
                            "values": ["50"],
                            "style": {"fillColor": "#ffc7ce", "bold": True},
                        }
                    ],
                    "F": {
                        "kind": "colorScale",
                        "startColor": "#F8696B",
                        "endColor": "#63BE7B",
                    },
                },
            },
        }
    }


@pytest.fixture  # type: ignore[misc]
def employees_store() -> SchemaStore:
    return SchemaStore.from_literal(employees_literal())


@pytest.fixture  # type: ignore[misc]
def employees_sheet() -> InMemorySheet:
    return InMemorySheet("Employees", rows=EMPLOYEE_ROWS)


@pytest.fixture  # type: ignore[misc]
def employees_workbook(employees_sheet: InMemorySheet) -> InMemoryWorkbook:
    return InMemoryWorkbook([employees_sheet])


@pytest.fixture  # type: ignore[misc]
def make_employees_store() -> Callable[..., SchemaStore]:
    """Build the Employees store with the given edit rules."""

    def _make(edit_rules: Sequence[Any] = ()) -> SchemaStore:
        return SchemaStore.from_literal(employees_literal(edit_rules))

    return _make


@pytest.fixture  # type: ignore[misc]
def employees_literal_copy() -> dict[str, Any]:
    """Return a fresh Employees literal that a test may modify."""
    return employees_literal()
