"""Structural integrity checks for a SchemaStore.

Every sheet is scanned in full even after a failure so that one pass reports
every issue. Nothing here mutates a surface and nothing here raises except
``ensure_valid``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging

from pydantic import BaseModel, Field

from ..errors import ConfigError
from ..expression import placeholders
from ..shared.a1 import (
    Extent,
    extents_overlap,
    is_a1_extent,
    is_column_label,
    parse_extent,
)
from ..types import IssueCode
from .models import (
    ColumnDef,
    CustomFormulaValidationSpec,
    FormulaFormatSpec,
    NamedCallFormula,
    RegionDef,
    SchemaStore,
    SheetSchema,
    TemplateFormula,
)

logger = logging.getLogger(__name__)


class SchemaIssue(BaseModel):
    """One integrity problem found in a schema."""

    sheet: str
    code: IssueCode
    message: str

    def __str__(self) -> str:
        return f"[{self.sheet}] {self.message}"


class ValidationReport(BaseModel):
    """Result of checking a whole store."""

    issues: list[SchemaIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def messages(self) -> list[str]:
        return [str(issue) for issue in self.issues]

    def codes(self) -> list[IssueCode]:
        return [issue.code for issue in self.issues]


def validate(store: SchemaStore) -> bool:
    """Check the store and log one warning per issue.

    Returns:
        True when no issue was found.
    """
    report = check(store)
    for issue in report.issues:
        logger.warning("Schema issue: %s", issue)
    return report.ok


def ensure_valid(store: SchemaStore) -> ValidationReport:
    """Check the store and raise when any issue is found.

    Raises:
        ConfigError: Carrying one line per issue.
    """
    report = check(store)
    if not report.ok:
        raise ConfigError(
            f"Schema validation failed with {len(report.issues)} issue(s).",
            report.messages(),
        )
    return report


def check(store: SchemaStore) -> ValidationReport:
    """Run every integrity check over every sheet of the store."""
    issues: list[SchemaIssue] = []
    region_owners: dict[str, tuple[str, str]] = {}
    for sheet_name, schema in store.items():
        issues.extend(_check_sheet(sheet_name, schema, region_owners))
    return ValidationReport(issues=issues)


def _check_sheet(
    sheet: str,
    schema: SheetSchema,
    region_owners: dict[str, tuple[str, str]],
) -> list[SchemaIssue]:
    layout = schema.layout
    issues: list[SchemaIssue] = []
    if layout.columns is None:
        issues.append(_issue(sheet, "missing_layout_section", "layout.columns is missing."))
    if layout.named_regions is None:
        issues.append(
            _issue(sheet, "missing_layout_section", "layout.namedRegions is missing.")
        )
    if layout.columns is None or layout.named_regions is None:
        return issues

    issues.extend(_check_columns(sheet, layout.columns))
    issues.extend(_check_regions(sheet, layout.named_regions))
    issues.extend(_check_region_names(sheet, layout.named_regions, region_owners))
    issues.extend(_check_formulas(sheet, layout.columns, layout.named_regions))
    issues.extend(_check_rule_targets(sheet, schema, layout.columns, layout.named_regions))
    return issues


def _check_columns(sheet: str, columns: Mapping[str, ColumnDef]) -> list[SchemaIssue]:
    issues: list[SchemaIssue] = []
    names: dict[str, tuple[str, str]] = {}
    locators: dict[str, str] = {}
    name_flagged = False
    locator_flagged = False
    for key, column in columns.items():
        if not is_column_label(key):
            issues.append(
                _issue(
                    sheet,
                    "invalid_column_key",
                    f"Column key '{key}' for '{column.name}' is not a column label.",
                )
            )
            continue
        locator = key.strip().upper()
        folded = column.name.casefold()
        previous = names.get(folded)
        if previous is not None and not name_flagged:
            issues.append(
                _issue(
                    sheet,
                    "duplicate_column_name",
                    f"Duplicate column name: '{previous[0]}' (column {previous[1]}) "
                    f"and '{column.name}' (column {locator}).",
                )
            )
            name_flagged = True
        names.setdefault(folded, (column.name, locator))
        if locator in locators and not locator_flagged:
            issues.append(
                _issue(
                    sheet,
                    "duplicate_column_locator",
                    f"Duplicate column locator {locator}: "
                    f"'{locators[locator]}' and '{column.name}'.",
                )
            )
            locator_flagged = True
        locators.setdefault(locator, column.name)
    return issues


def _check_regions(sheet: str, regions: Mapping[str, RegionDef]) -> list[SchemaIssue]:
    issues: list[SchemaIssue] = []
    parsed: list[tuple[str, RegionDef, Extent]] = []
    for key, region in regions.items():
        if not is_a1_extent(key):
            issues.append(
                _issue(
                    sheet,
                    "invalid_region_key",
                    f"Region key '{key}' for '{region.name}' is not an A1 cell or range.",
                )
            )
            continue
        parsed.append((key, region, parse_extent(key)))
    for index, (key, region, extent) in enumerate(parsed):
        for other_key, other, other_extent in parsed[index + 1 :]:
            if extents_overlap(extent, other_extent):
                issues.append(
                    _issue(
                        sheet,
                        "overlapping_regions",
                        f"Regions '{region.name}' ({key}) and '{other.name}' "
                        f"({other_key}) overlap.",
                    )
                )
    return issues


def _check_region_names(
    sheet: str,
    regions: Mapping[str, RegionDef],
    region_owners: dict[str, tuple[str, str]],
) -> list[SchemaIssue]:
    issues: list[SchemaIssue] = []
    for region in regions.values():
        folded = region.name.casefold()
        owner = region_owners.get(folded)
        if owner is not None:
            issues.append(
                _issue(
                    sheet,
                    "duplicate_region_name",
                    f"Region name '{region.name}' is already declared as "
                    f"'{owner[1]}' in sheet '{owner[0]}'.",
                )
            )
            continue
        region_owners[folded] = (sheet, region.name)
    return issues


def _check_formulas(
    sheet: str,
    columns: Mapping[str, ColumnDef],
    regions: Mapping[str, RegionDef],
) -> list[SchemaIssue]:
    issues: list[SchemaIssue] = []
    column_names = {column.name.casefold() for column in columns.values()}
    region_names = {region.name.casefold() for region in regions.values()}
    for column in columns.values():
        if column.formula is None:
            continue
        issues.extend(
            _unknown_placeholders(
                sheet, column.formula.template, column_names, f"column '{column.name}'"
            )
        )
    for key, region in regions.items():
        formula = region.formula
        if isinstance(formula, TemplateFormula):
            issues.extend(
                _unknown_placeholders(
                    sheet, formula.template, region_names, f"region '{region.name}'"
                )
            )
        elif isinstance(formula, NamedCallFormula):
            for arg in region.call_args():
                if arg.casefold() not in region_names:
                    issues.append(
                        _issue(
                            sheet,
                            "unknown_region_argument",
                            f"Region '{region.name}' calls {formula.function} with "
                            f"unknown region '{arg}'.",
                        )
                    )
        if (
            formula is not None
            and is_a1_extent(key)
            and not parse_extent(key).is_single_cell
        ):
            issues.append(
                _issue(
                    sheet,
                    "multi_cell_calculated_region",
                    f"Region '{region.name}' ({key}) spans several cells; "
                    "a calculated region must be a single cell.",
                )
            )
    return issues


def _check_rule_targets(
    sheet: str,
    schema: SheetSchema,
    columns: Mapping[str, ColumnDef],
    regions: Mapping[str, RegionDef],
) -> list[SchemaIssue]:
    issues: list[SchemaIssue] = []
    column_keys = {key.strip().upper() for key in columns}
    region_keys = {key.strip().upper() for key in regions}
    known_names = {column.name.casefold() for column in columns.values()} | {
        region.name.casefold() for region in regions.values()
    }
    groups = (
        ("validation", "column", schema.validation_rules.column, column_keys),
        ("validation", "region", schema.validation_rules.region, region_keys),
        ("formatting", "column", schema.formatting_rules.column, column_keys),
        ("formatting", "region", schema.formatting_rules.region, region_keys),
    )
    for family, kind, entries, declared in groups:
        for key, spec in entries.items():
            if key.strip().upper() not in declared:
                issues.append(
                    _issue(
                        sheet,
                        "unknown_rule_target",
                        f"{family} rule targets undeclared {kind} '{key}'.",
                    )
                )
            for template in _rule_templates(spec):
                issues.extend(
                    _unknown_placeholders(
                        sheet, template, known_names, f"{family} rule for {kind} '{key}'"
                    )
                )
    return issues


def _rule_templates(spec: object) -> Iterable[str]:
    specs = spec if isinstance(spec, tuple) else (spec,)
    for item in specs:
        if isinstance(item, (CustomFormulaValidationSpec, FormulaFormatSpec)):
            yield item.formula


def _unknown_placeholders(
    sheet: str, template: str, known: set[str], owner: str
) -> list[SchemaIssue]:
    return [
        _issue(
            sheet,
            "unknown_placeholder",
            f"Template of {owner} references unknown name '${name}'.",
        )
        for name in placeholders(template)
        if name.casefold() not in known
    ]


def _issue(sheet: str, code: IssueCode, message: str) -> SchemaIssue:
    return SchemaIssue(sheet=sheet, code=code, message=message)


__all__ = [
    "SchemaIssue",
    "ValidationReport",
    "check",
    "ensure_valid",
    "extents_overlap",
    "validate",
]
