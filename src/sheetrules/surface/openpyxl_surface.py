"""openpyxl implementation of the surface contract.

Mapping onto the xlsx model:

- named regions are workbook-level defined names;
- validation rules are ``DataValidation`` objects;
- formatting rules are conditional formatting rules (replaced wholesale);
- protection records are hidden defined names prefixed with
  ``_sheetrules_lock_``: the reference is the protected extent, ``comment``
  holds the label and ``description`` the ``;``-separated editor list; the
  covered cells are also marked locked;
- the workbook editor roster is the ``sheetrules.editors`` custom document
  property.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import hashlib
from pathlib import Path
import re
from typing import Any
import warnings

from openpyxl import Workbook, load_workbook
from openpyxl.formatting.formatting import ConditionalFormattingList
from openpyxl.formatting.rule import CellIsRule, ColorScaleRule, FormulaRule, Rule
from openpyxl.packaging.custom import StringProperty
from openpyxl.styles import Font, PatternFill, Protection
from openpyxl.workbook.defined_name import DefinedName
from openpyxl.worksheet.cell_range import CellRange, MultiCellRange
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from ..errors import ExternalOperationError
from ..shared.a1 import absolute_reference, normalize_extent, parse_extent
from .base import CellValue, FormattingRule, ValidationRule, is_formula
from .memory import DEFAULT_GRID_ROWS

PROTECTION_NAME_PREFIX = "_sheetrules_lock_"
EDITORS_PROPERTY = "sheetrules.editors"
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NAME_UNSAFE_PATTERN = re.compile(r"[^A-Za-z0-9_]")
_KNOWN_CRITERIA = {"list", "decimal", "date", "custom"}


def protection_name(sheet_name: str, extent: str) -> str:
    """Return the hidden defined name holding a protection record.

    Names are distinct per exact sheet title, so ``Data 1`` and ``Data_1``
    never share a record.
    """
    digest = hashlib.sha1(sheet_name.encode("utf-8")).hexdigest()[:8]
    return (
        f"{PROTECTION_NAME_PREFIX}{_NAME_UNSAFE_PATTERN.sub('_', sheet_name)}_{digest}_"
        f"{normalize_extent(extent).replace(':', '_')}"
    )


@contextmanager
def open_workbook(
    file_path: Path, *, grid_rows: int = DEFAULT_GRID_ROWS
) -> Iterator[OpenpyxlWorkbook]:
    """Open an xlsx workbook as a surface and ensure it is closed.

    Args:
        file_path: Workbook path.
        grid_rows: Row count treated as the sheet grid size.

    Yields:
        Workbook surface wrapping the loaded openpyxl workbook.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore",
            message="Unknown extension is not supported and will be removed",
            category=UserWarning,
            module="openpyxl",
        )
        warnings.filterwarnings(
            "ignore",
            message="Conditional Formatting extension is not supported and will be removed",
            category=UserWarning,
            module="openpyxl",
        )
        keep_vba = file_path.suffix.lower() == ".xlsm"
        wb = load_workbook(file_path, keep_vba=keep_vba)
    try:
        yield OpenpyxlWorkbook(wb, grid_rows=grid_rows)
    finally:
        wb.close()


def _rgb(color: str | None) -> str | None:
    if color is None:
        return None
    return color.lstrip("#").upper()


def _color_from_native(color: Any) -> str | None:
    rgb = getattr(color, "rgb", None)
    if not isinstance(rgb, str):
        return None
    return "#" + rgb[-6:].upper()


class OpenpyxlProtection:
    """Protection record stored as a hidden defined name."""

    def __init__(self, defined_name: DefinedName, extent: str) -> None:
        self._defined_name = defined_name
        self._extent = extent

    @property
    def extent(self) -> str:
        return self._extent

    @property
    def label(self) -> str:
        return self._defined_name.comment or ""

    @property
    def defined_name(self) -> DefinedName:
        return self._defined_name

    def set_label(self, label: str) -> None:
        self._defined_name.comment = label

    def editors(self) -> frozenset[str]:
        raw = self._defined_name.description or ""
        return frozenset(item for item in raw.split(";") if item)

    def add_editors(self, emails: Sequence[str]) -> None:
        self._store(self.editors() | set(emails))

    def remove_editors(self, emails: Sequence[str]) -> None:
        self._store(self.editors() - set(emails))

    def _store(self, editors: frozenset[str] | set[str]) -> None:
        self._defined_name.description = ";".join(sorted(editors)) or None


class OpenpyxlSheet:
    """Surface view over one openpyxl worksheet."""

    def __init__(self, worksheet: Worksheet, owner: OpenpyxlWorkbook, max_rows: int) -> None:
        self._ws = worksheet
        self._owner = owner
        self._max_rows = max_rows

    @property
    def name(self) -> str:
        return str(self._ws.title)

    @property
    def worksheet(self) -> Worksheet:
        return self._ws

    @property
    def max_rows(self) -> int:
        return max(self._max_rows, self._ws.max_row)

    def last_data_row(self) -> int:
        last = 0
        for index, row in enumerate(
            self._ws.iter_rows(min_row=1, max_row=self._ws.max_row, values_only=True),
            start=1,
        ):
            if any(value is not None and not is_formula(value) for value in row):
                last = index
        return last

    def read_values(self, extent: str) -> list[list[CellValue]]:
        box = parse_extent(extent)
        return [
            list(row)
            for row in self._ws.iter_rows(
                min_row=box.min_row,
                max_row=box.max_row,
                min_col=box.min_col,
                max_col=box.max_col,
                values_only=True,
            )
        ]

    def write_values(self, extent: str, values: Sequence[Sequence[CellValue]]) -> None:
        self._write(extent, values)

    def write_formulas(self, extent: str, formulas: Sequence[Sequence[str]]) -> None:
        self._write(extent, formulas)

    def _write(self, extent: str, values: Sequence[Sequence[CellValue]]) -> None:
        box = parse_extent(extent)
        if len(values) != box.rows or any(len(row) != box.cols for row in values):
            raise ExternalOperationError(
                "write",
                f"values shape does not match {box.a1} ({box.rows}x{box.cols}).",
            )
        for r_offset, row in enumerate(values):
            for c_offset, value in enumerate(row):
                self._ws.cell(
                    row=box.min_row + r_offset, column=box.min_col + c_offset
                ).value = value

    def clear_validation(self, extent: str) -> None:
        target = CellRange(normalize_extent(extent))
        kept: list[DataValidation] = []
        for validation in self._ws.data_validations.dataValidation:
            remaining = [
                cell_range
                for cell_range in validation.sqref.ranges
                if not cell_range.issubset(target)
            ]
            if remaining:
                validation.sqref = MultiCellRange(remaining)
                kept.append(validation)
        self._ws.data_validations.dataValidation = kept

    def clear_all_validation(self) -> None:
        self._ws.data_validations.dataValidation = []

    def set_validation(self, extent: str, rule: ValidationRule) -> None:
        validation = DataValidation(
            type=rule.criterion,
            operator=rule.operator if rule.criterion != "list" else None,
            formula1=_validation_formula1(rule),
            formula2=rule.formula2,
            allow_blank=True,
            showErrorMessage=True,
            errorStyle="warning" if rule.allow_invalid else "stop",
            showInputMessage=rule.help_text is not None,
            prompt=rule.help_text,
        )
        validation.add(normalize_extent(extent))
        self._ws.add_data_validation(validation)

    def validation_at(self, extent: str) -> ValidationRule | None:
        target = CellRange(normalize_extent(extent))
        for validation in self._ws.data_validations.dataValidation:
            if validation.type not in _KNOWN_CRITERIA:
                continue
            if any(cell_range == target for cell_range in validation.sqref.ranges):
                return _validation_from_native(validation)
        return None

    def formatting_rules(self) -> list[FormattingRule]:
        rules: list[FormattingRule] = []
        for formatting in self._ws.conditional_formatting:
            extent = str(formatting.sqref)
            for rule in formatting.rules:
                converted = _formatting_from_native(extent, rule)
                if converted is not None:
                    rules.append(converted)
        return rules

    def replace_formatting_rules(self, rules: Sequence[FormattingRule]) -> None:
        replacement = ConditionalFormattingList()
        for rule in rules:
            replacement.add(normalize_extent(rule.extent), _formatting_to_native(rule))
        self._ws.conditional_formatting = replacement

    def protections(self) -> list[OpenpyxlProtection]:
        return self._owner._protections_for(self.name)

    def protect(self, extent: str) -> OpenpyxlProtection:
        normalized = normalize_extent(extent)
        name = protection_name(self.name, normalized)
        defined_name = DefinedName(
            name,
            attr_text=absolute_reference(self.name, normalized),
            hidden=True,
        )
        self._owner.workbook.defined_names[name] = defined_name
        box = parse_extent(normalized)
        for row in self._ws.iter_rows(
            min_row=box.min_row,
            max_row=box.max_row,
            min_col=box.min_col,
            max_col=box.max_col,
        ):
            for cell in row:
                cell.protection = Protection(locked=True)
        return OpenpyxlProtection(defined_name, normalized)

    def unprotect(self, record: object) -> None:
        if not isinstance(record, OpenpyxlProtection):
            raise ExternalOperationError("unprotect", "Unknown protection record.")
        self._owner.workbook.defined_names.pop(record.defined_name.name, None)


class OpenpyxlWorkbook:
    """Surface view over an openpyxl workbook."""

    def __init__(self, workbook: Workbook, *, grid_rows: int = DEFAULT_GRID_ROWS) -> None:
        self._wb = workbook
        self._grid_rows = grid_rows
        self._sheets: dict[str, OpenpyxlSheet] = {}

    @property
    def workbook(self) -> Workbook:
        return self._wb

    def save(self, path: Path) -> None:
        self._wb.save(path)

    def sheet_names(self) -> list[str]:
        return list(self._wb.sheetnames)

    def sheet(self, name: str) -> OpenpyxlSheet | None:
        if name not in self._wb.sheetnames:
            return None
        if name not in self._sheets:
            self._sheets[name] = OpenpyxlSheet(self._wb[name], self, self._grid_rows)
        return self._sheets[name]

    def named_regions(self) -> dict[str, tuple[str, str]]:
        regions: dict[str, tuple[str, str]] = {}
        for name, defined_name in self._wb.defined_names.items():
            if name.startswith(PROTECTION_NAME_PREFIX):
                continue
            for sheet, cells in defined_name.destinations:
                regions[name] = (sheet, normalize_extent(cells.replace("$", "")))
                break
        return regions

    def set_named_region(self, name: str, sheet: str, extent: str) -> None:
        if sheet not in self._wb.sheetnames:
            raise ExternalOperationError("set_named_region", f"Sheet not found: {sheet}")
        self._wb.defined_names[name] = DefinedName(
            name, attr_text=absolute_reference(sheet, extent)
        )

    def remove_named_region(self, name: str) -> None:
        self._wb.defined_names.pop(name, None)

    def editors(self) -> frozenset[str]:
        for prop in self._wb.custom_doc_props.props:
            if prop.name == EDITORS_PROPERTY:
                return frozenset(item for item in (prop.value or "").split(";") if item)
        return frozenset()

    def add_editor(self, email: str) -> None:
        if not _EMAIL_PATTERN.match(email):
            raise ExternalOperationError(
                "add_editor", f"Not a valid account address: {email}"
            )
        value = ";".join(sorted(self.editors() | {email}))
        props = self._wb.custom_doc_props
        props.props = [prop for prop in props.props if prop.name != EDITORS_PROPERTY]
        props.append(StringProperty(name=EDITORS_PROPERTY, value=value))

    def _protections_for(self, sheet_name: str) -> list[OpenpyxlProtection]:
        records: list[OpenpyxlProtection] = []
        for name, defined_name in self._wb.defined_names.items():
            if not name.startswith(PROTECTION_NAME_PREFIX):
                continue
            for sheet, cells in defined_name.destinations:
                if sheet == sheet_name:
                    records.append(
                        OpenpyxlProtection(
                            defined_name, normalize_extent(cells.replace("$", ""))
                        )
                    )
                break
        return records


def _validation_formula1(rule: ValidationRule) -> str | None:
    if rule.criterion == "list":
        return '"' + ",".join(rule.values) + '"'
    return rule.formula1


def _validation_from_native(validation: DataValidation) -> ValidationRule:
    values: tuple[str, ...] = ()
    formula1 = validation.formula1
    if validation.type == "list" and formula1:
        values = tuple(formula1.strip('"').split(","))
        formula1 = None
    return ValidationRule(
        criterion=validation.type,
        operator=validation.operator if validation.type != "list" else None,
        values=values,
        formula1=formula1,
        formula2=validation.formula2,
        allow_invalid=validation.errorStyle == "warning",
        help_text=validation.prompt,
    )


def _differential_style(rule: FormattingRule) -> dict[str, Any]:
    style: dict[str, Any] = {}
    fill_rgb = _rgb(rule.fill_color)
    if fill_rgb is not None:
        style["fill"] = PatternFill(
            start_color=fill_rgb, end_color=fill_rgb, fill_type="solid"
        )
    font_rgb = _rgb(rule.font_color)
    if font_rgb is not None or rule.bold is not None:
        style["font"] = Font(color=font_rgb, bold=rule.bold)
    return style


def _formatting_to_native(rule: FormattingRule) -> Rule:
    if rule.kind == "cellIs":
        return CellIsRule(
            operator=rule.operator,
            formula=list(rule.formulas),
            **_differential_style(rule),
        )
    if rule.kind == "expression":
        return FormulaRule(formula=list(rule.formulas), **_differential_style(rule))
    colors = [_rgb(color) for color in rule.scale_colors]
    if len(colors) == 3:
        return ColorScaleRule(
            start_type="min",
            start_color=colors[0],
            mid_type="percentile",
            mid_value=50,
            mid_color=colors[1],
            end_type="max",
            end_color=colors[2],
        )
    return ColorScaleRule(
        start_type="min",
        start_color=colors[0],
        end_type="max",
        end_color=colors[-1],
    )


def _formatting_from_native(extent: str, rule: Rule) -> FormattingRule | None:
    if rule.type == "colorScale" and rule.colorScale is not None:
        return FormattingRule(
            extent=extent,
            kind="colorScale",
            scale_colors=tuple(
                color
                for color in (_color_from_native(item) for item in rule.colorScale.color)
                if color is not None
            ),
        )
    if rule.type not in {"cellIs", "expression"}:
        return None
    dxf = rule.dxf
    fill = getattr(dxf, "fill", None)
    font = getattr(dxf, "font", None)
    return FormattingRule(
        extent=extent,
        kind=rule.type,
        operator=rule.operator,
        formulas=tuple(rule.formula),
        fill_color=_color_from_native(getattr(fill, "fgColor", None)),
        font_color=_color_from_native(getattr(font, "color", None)),
        bold=getattr(font, "b", None),
    )


__all__ = [
    "EDITORS_PROPERTY",
    "OpenpyxlProtection",
    "OpenpyxlSheet",
    "OpenpyxlWorkbook",
    "PROTECTION_NAME_PREFIX",
    "open_workbook",
    "protection_name",
]
