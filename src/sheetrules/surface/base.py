"""Capability contract consumed from the host tabular surface.

Rules are handed to a surface as neutral descriptors (``ValidationRule``,
``FormattingRule``); each concrete surface translates them into its native
objects.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ..types import ComparisonOperator, FormattingRuleKind, ValidationCriterion

CellValue = str | int | float | bool | date | datetime | None

FORMULA_PREFIX = "="


def is_formula(value: object) -> bool:
    """Return True for formula text (a string starting with ``=``)."""
    return isinstance(value, str) and value.startswith(FORMULA_PREFIX)


class ValidationRule(BaseModel):
    """Data validation bound to a cell extent."""

    model_config = ConfigDict(frozen=True)

    criterion: ValidationCriterion
    operator: ComparisonOperator | None = None
    values: tuple[str, ...] = ()
    formula1: str | None = None
    formula2: str | None = None
    allow_invalid: bool = False
    help_text: str | None = None


class FormattingRule(BaseModel):
    """Conditional formatting rule bound to a cell extent."""

    model_config = ConfigDict(frozen=True)

    extent: str
    kind: FormattingRuleKind
    operator: ComparisonOperator | None = None
    formulas: tuple[str, ...] = ()
    fill_color: str | None = None
    font_color: str | None = None
    bold: bool | None = None
    scale_colors: tuple[str, ...] = Field(default=(), max_length=3)


@runtime_checkable
class ProtectionRecord(Protocol):
    """Protected extent with a label and an editor allow-list."""

    @property
    def extent(self) -> str: ...

    @property
    def label(self) -> str: ...

    def set_label(self, label: str) -> None: ...

    def editors(self) -> frozenset[str]: ...

    def add_editors(self, emails: Sequence[str]) -> None: ...

    def remove_editors(self, emails: Sequence[str]) -> None: ...


@runtime_checkable
class SheetSurface(Protocol):
    """One sheet of the host workbook."""

    @property
    def name(self) -> str: ...

    @property
    def max_rows(self) -> int:
        """Row count of the sheet grid (the configured data extent)."""

    def last_data_row(self) -> int:
        """Last row holding a literal (non-formula) value; 0 when empty."""

    def read_values(self, extent: str) -> list[list[CellValue]]: ...

    def write_values(
        self, extent: str, values: Sequence[Sequence[CellValue]]
    ) -> None: ...

    def write_formulas(self, extent: str, formulas: Sequence[Sequence[str]]) -> None: ...

    def clear_validation(self, extent: str) -> None: ...

    def clear_all_validation(self) -> None: ...

    def set_validation(self, extent: str, rule: ValidationRule) -> None: ...

    def validation_at(self, extent: str) -> ValidationRule | None: ...

    def formatting_rules(self) -> list[FormattingRule]: ...

    def replace_formatting_rules(self, rules: Sequence[FormattingRule]) -> None: ...

    def protections(self) -> list[ProtectionRecord]: ...

    def protect(self, extent: str) -> ProtectionRecord: ...

    def unprotect(self, record: ProtectionRecord) -> None: ...


@runtime_checkable
class WorkbookSurface(Protocol):
    """The host workbook: sheets, named regions and the editor roster."""

    def sheet_names(self) -> list[str]: ...

    def sheet(self, name: str) -> SheetSurface | None: ...

    def named_regions(self) -> dict[str, tuple[str, str]]:
        """Return region name -> (sheet name, A1 extent)."""

    def set_named_region(self, name: str, sheet: str, extent: str) -> None: ...

    def remove_named_region(self, name: str) -> None: ...

    def editors(self) -> frozenset[str]: ...

    def add_editor(self, email: str) -> None:
        """Add a workbook editor.

        Raises:
            ExternalOperationError: If the host rejects the address.
        """


__all__ = [
    "CellValue",
    "FORMULA_PREFIX",
    "FormattingRule",
    "ProtectionRecord",
    "SheetSurface",
    "ValidationRule",
    "WorkbookSurface",
    "is_formula",
]
