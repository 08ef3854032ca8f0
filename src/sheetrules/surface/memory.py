"""In-memory implementation of the surface contract.

Every mutating call is counted in ``calls`` so that callers can assert how
many operations a pass issued against the host.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence

from ..errors import ExternalOperationError
from ..shared.a1 import Extent, normalize_extent, parse_extent
from .base import CellValue, FormattingRule, ValidationRule, is_formula

DEFAULT_GRID_ROWS = 1000


class InMemoryProtection:
    """Protection record stored on an in-memory sheet."""

    def __init__(self, extent: str, calls: Counter[str]) -> None:
        self._extent = normalize_extent(extent)
        self._label = ""
        self._editors: set[str] = set()
        self._calls = calls

    @property
    def extent(self) -> str:
        return self._extent

    @property
    def label(self) -> str:
        return self._label

    def set_label(self, label: str) -> None:
        self._calls["set_protection_label"] += 1
        self._label = label

    def editors(self) -> frozenset[str]:
        return frozenset(self._editors)

    def add_editors(self, emails: Sequence[str]) -> None:
        self._calls["add_protection_editors"] += 1
        self._editors.update(emails)

    def remove_editors(self, emails: Sequence[str]) -> None:
        self._calls["remove_protection_editors"] += 1
        self._editors.difference_update(emails)


class InMemorySheet:
    """A sparse grid with validation, formatting and protection state."""

    def __init__(
        self,
        name: str,
        *,
        max_rows: int = DEFAULT_GRID_ROWS,
        rows: Iterable[Sequence[CellValue]] = (),
    ) -> None:
        self._name = name
        self._max_rows = max_rows
        self.cells: dict[tuple[int, int], CellValue] = {}
        self.validations: dict[str, ValidationRule] = {}
        self._formatting: list[FormattingRule] = []
        self._protections: list[InMemoryProtection] = []
        self.calls: Counter[str] = Counter()
        for row_index, row in enumerate(rows, start=1):
            for col_index, value in enumerate(row, start=1):
                if value is not None:
                    self.cells[(row_index, col_index)] = value

    @property
    def name(self) -> str:
        return self._name

    @property
    def max_rows(self) -> int:
        return self._max_rows

    def last_data_row(self) -> int:
        rows = [
            row
            for (row, _col), value in self.cells.items()
            if value is not None and not is_formula(value)
        ]
        return max(rows, default=0)

    def read_values(self, extent: str) -> list[list[CellValue]]:
        box = parse_extent(extent)
        return [
            [self.cells.get((row, col)) for col in range(box.min_col, box.max_col + 1)]
            for row in range(box.min_row, box.max_row + 1)
        ]

    def write_values(self, extent: str, values: Sequence[Sequence[CellValue]]) -> None:
        box = parse_extent(extent)
        _check_shape(box, values)
        self.calls["write_values"] += 1
        self._store(box, values)

    def write_formulas(self, extent: str, formulas: Sequence[Sequence[str]]) -> None:
        box = parse_extent(extent)
        _check_shape(box, formulas)
        self.calls["write_formulas"] += 1
        self._store(box, formulas)

    def _store(self, box: Extent, values: Sequence[Sequence[CellValue]]) -> None:
        for r_offset, row in enumerate(values):
            for c_offset, value in enumerate(row):
                key = (box.min_row + r_offset, box.min_col + c_offset)
                if value is None:
                    self.cells.pop(key, None)
                else:
                    self.cells[key] = value

    def clear_validation(self, extent: str) -> None:
        self.calls["clear_validation"] += 1
        self.validations.pop(normalize_extent(extent), None)

    def clear_all_validation(self) -> None:
        self.calls["clear_validation"] += 1
        self.validations.clear()

    def set_validation(self, extent: str, rule: ValidationRule) -> None:
        self.calls["set_validation"] += 1
        self.validations[normalize_extent(extent)] = rule

    def validation_at(self, extent: str) -> ValidationRule | None:
        return self.validations.get(normalize_extent(extent))

    def formatting_rules(self) -> list[FormattingRule]:
        return list(self._formatting)

    def replace_formatting_rules(self, rules: Sequence[FormattingRule]) -> None:
        self.calls["replace_formatting_rules"] += 1
        self._formatting = list(rules)

    def protections(self) -> list[InMemoryProtection]:
        return list(self._protections)

    def protect(self, extent: str) -> InMemoryProtection:
        self.calls["protect"] += 1
        record = InMemoryProtection(extent, self.calls)
        self._protections.append(record)
        return record

    def unprotect(self, record: object) -> None:
        self.calls["unprotect"] += 1
        self._protections = [item for item in self._protections if item is not record]

    def mutation_count(self) -> int:
        """Return the total number of mutating calls issued so far."""
        return sum(self.calls.values())


class InMemoryWorkbook:
    """A workbook of in-memory sheets.

    Args:
        sheets: Sheets to expose, in order.
        editors: Initial workbook editor roster.
        accounts: Addresses the host recognizes; ``None`` accepts any address.
    """

    def __init__(
        self,
        sheets: Iterable[InMemorySheet] = (),
        *,
        editors: Iterable[str] = (),
        accounts: Iterable[str] | None = None,
    ) -> None:
        self._sheets: dict[str, InMemorySheet] = {sheet.name: sheet for sheet in sheets}
        self._regions: dict[str, tuple[str, str]] = {}
        self._editors: set[str] = set(editors)
        self._accounts = set(accounts) if accounts is not None else None
        self.calls: Counter[str] = Counter()

    @classmethod
    def from_rows(
        cls,
        data: Mapping[str, Iterable[Sequence[CellValue]]],
        *,
        max_rows: int = DEFAULT_GRID_ROWS,
        editors: Iterable[str] = (),
        accounts: Iterable[str] | None = None,
    ) -> InMemoryWorkbook:
        """Build a workbook from sheet name -> rows of values."""
        sheets = [
            InMemorySheet(name, max_rows=max_rows, rows=rows)
            for name, rows in data.items()
        ]
        return cls(sheets, editors=editors, accounts=accounts)

    def add_sheet(self, sheet: InMemorySheet) -> InMemorySheet:
        self._sheets[sheet.name] = sheet
        return sheet

    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    def sheet(self, name: str) -> InMemorySheet | None:
        return self._sheets.get(name)

    def named_regions(self) -> dict[str, tuple[str, str]]:
        return dict(self._regions)

    def set_named_region(self, name: str, sheet: str, extent: str) -> None:
        if sheet not in self._sheets:
            raise ExternalOperationError("set_named_region", f"Sheet not found: {sheet}")
        self.calls["set_named_region"] += 1
        self._regions[name] = (sheet, normalize_extent(extent))

    def remove_named_region(self, name: str) -> None:
        self.calls["remove_named_region"] += 1
        self._regions.pop(name, None)

    def editors(self) -> frozenset[str]:
        return frozenset(self._editors)

    def add_editor(self, email: str) -> None:
        if self._accounts is not None and email not in self._accounts:
            raise ExternalOperationError(
                "add_editor", f"No account found for address: {email}"
            )
        self.calls["add_editor"] += 1
        self._editors.add(email)


def _check_shape(box: Extent, values: Sequence[Sequence[object]]) -> None:
    if len(values) != box.rows or any(len(row) != box.cols for row in values):
        raise ExternalOperationError(
            "write",
            f"values shape does not match {box.a1} ({box.rows}x{box.cols}).",
        )


__all__ = ["DEFAULT_GRID_ROWS", "InMemoryProtection", "InMemorySheet", "InMemoryWorkbook"]
