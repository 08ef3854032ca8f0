from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any
import logging

from pydantic import BaseModel, Field

from ..errors import ConfigError
from ..expression import as_formula, build_call, expand_per_row, substitute
from ..protection import ProtectionReconciler
from ..schema.accessor import SchemaAccessor
from ..schema.models import NamedCallFormula, RegionDef, RuleSpec, TemplateFormula
from ..shared.a1 import column_range, parse_extent
from ..surface.base import FormattingRule
from .specs import build_formatting, build_validation

logger = logging.getLogger(__name__)


class ApplyReport(BaseModel):
    """What one applicator pass pushed to a sheet."""

    sheet: str
    formula_cells: int = 0
    formula_extents: list[str] = Field(default_factory=list)
    validations: int = 0
    skipped_validations: list[str] = Field(default_factory=list)
    formatting_rules: int = 0
    protected: list[str] = Field(default_factory=list)


class RuleApplicator:
    """Push formulas, validation and conditional formatting for one sheet.

    Args:
        accessor: Accessor bound to the target sheet.
        reconciler: Reconciler used to lock calculated entries right after
            their formula is written. Locks are skipped when omitted.
        strict: Fail on template placeholders with no matching name instead
            of substituting an empty token.
    """

    def __init__(
        self,
        accessor: SchemaAccessor,
        reconciler: ProtectionReconciler | None = None,
        *,
        strict: bool = True,
    ) -> None:
        self._accessor = accessor
        self._sheet = accessor.sheet
        self._reconciler = reconciler
        self._strict = strict
        self.report = ApplyReport(sheet=accessor.sheet.name)

    def apply_all(self) -> ApplyReport:
        """Apply formulas, then validation, then formatting."""
        self.apply_formulas()
        self.apply_validation()
        self.apply_formatting()
        return self.report

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------

    def apply_formulas(self) -> ApplyReport:
        """Write calculated column and region formulas."""
        accessor = self._accessor
        for name, column in accessor.calculated_columns.items():
            if column.formula is None:
                continue
            letter = accessor.column_letter(name)
            template = substitute(
                column.formula.template,
                accessor.column_letters,
                preserve_marker=True,
                strict=self._strict,
            )
            first_row = accessor.first_data_row
            last_row = self._sheet.max_rows
            formulas = [[formula] for formula in expand_per_row(template, first_row, last_row)]
            if not formulas:
                logger.debug("Column %s has no data rows; formula skipped.", name)
                continue
            extent = column_range(letter, first_row, last_row)
            self._sheet.write_formulas(extent, formulas)
            self.report.formula_cells += len(formulas)
            self.report.formula_extents.append(extent)
            logger.info("Wrote %d formula(s) to %s!%s", len(formulas), self._sheet.name, extent)
            if column.lock:
                self._lock(name, extent)

        for name, region in accessor.calculated_regions.items():
            locator = accessor.region_locator(name)
            if not parse_extent(locator).is_single_cell:
                raise ConfigError(
                    f"Region '{name}' ({locator}) spans several cells; "
                    "a calculated region must be a single cell."
                )
            formula = self._region_formula(region)
            self._sheet.write_formulas(locator, [[formula]])
            self.report.formula_cells += 1
            self.report.formula_extents.append(locator)
            logger.info("Wrote region formula %s!%s = %s", self._sheet.name, locator, formula)
            if region.lock:
                self._lock(name, locator)
        return self.report

    def _region_formula(self, region: RegionDef) -> str:
        accessor = self._accessor
        formula = region.formula
        if isinstance(formula, NamedCallFormula):
            locators = [accessor.region_locator(arg) for arg in region.call_args()]
            return build_call(formula.function, locators)
        if isinstance(formula, TemplateFormula):
            return as_formula(
                substitute(formula.template, accessor.region_locators, strict=self._strict)
            )
        raise ConfigError(f"Region '{region.name}' has no formula.")

    def _lock(self, name: str, extent: str) -> None:
        if self._reconciler is None:
            return
        label = self._reconciler.label_for(self._accessor.schema_name, name)
        self._reconciler.reconcile(self._sheet, extent, label)
        self.report.protected.append(extent)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def apply_validation(self) -> ApplyReport:
        """Replace the validation of every column and region with a rule."""
        for extent, spec in self._validation_targets():
            rule = build_validation(spec, self._accessor, extent, strict=self._strict)
            if rule is None:
                self.report.skipped_validations.append(extent)
                continue
            self._sheet.clear_validation(extent)
            self._sheet.set_validation(extent, rule)
            self.report.validations += 1
        logger.info(
            "Applied %d validation rule(s) on %s", self.report.validations, self._sheet.name
        )
        return self.report

    def _validation_targets(self) -> Iterator[tuple[str, RuleSpec]]:
        rules = self._accessor.schema.validation_rules
        yield from self._targets(rules.column, rules.region)

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def apply_formatting(self) -> ApplyReport:
        """Replace the sheet's conditional formatting in one call."""
        rules: list[FormattingRule] = []
        formatting = self._accessor.schema.formatting_rules
        for extent, specs in self._targets(formatting.column, formatting.region):
            rules.extend(
                build_formatting(specs, self._accessor, extent, strict=self._strict)
            )
        self._sheet.replace_formatting_rules(rules)
        self.report.formatting_rules = len(rules)
        logger.info("Applied %d formatting rule(s) on %s", len(rules), self._sheet.name)
        return self.report

    def _targets(
        self, column: Mapping[str, Any], region: Mapping[str, Any]
    ) -> Iterator[tuple[str, Any]]:
        accessor = self._accessor
        for key, entry in column.items():
            if entry is None:
                continue
            yield accessor.column_extent(accessor.resolve_column_key(key)), entry
        for key, entry in region.items():
            if entry is None:
                continue
            yield accessor.region_locator(accessor.resolve_region_key(key)), entry


__all__ = ["ApplyReport", "RuleApplicator"]
