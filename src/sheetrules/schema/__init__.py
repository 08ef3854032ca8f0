from __future__ import annotations

from .accessor import SchemaAccessor
from .models import (
    CellValueFormatSpec,
    ColorScaleFormatSpec,
    ColumnDef,
    CustomBuilderSpec,
    CustomFormulaValidationSpec,
    DateValidationSpec,
    EditRule,
    FormatSpec,
    FormatStyle,
    FormattingRules,
    FormulaFormatSpec,
    FormulaSpec,
    Layout,
    ListValidationSpec,
    NamedCallFormula,
    NumberValidationSpec,
    RegionDef,
    RuleSpec,
    SchemaStore,
    SheetSchema,
    TemplateFormula,
    ValidationRules,
)
from .validator import SchemaIssue, ValidationReport, check, ensure_valid, validate

__all__ = [
    "CellValueFormatSpec",
    "ColorScaleFormatSpec",
    "ColumnDef",
    "CustomBuilderSpec",
    "CustomFormulaValidationSpec",
    "DateValidationSpec",
    "EditRule",
    "FormatSpec",
    "FormatStyle",
    "FormattingRules",
    "FormulaFormatSpec",
    "FormulaSpec",
    "Layout",
    "ListValidationSpec",
    "NamedCallFormula",
    "NumberValidationSpec",
    "RegionDef",
    "RuleSpec",
    "SchemaAccessor",
    "SchemaIssue",
    "SchemaStore",
    "SheetSchema",
    "TemplateFormula",
    "ValidationReport",
    "ValidationRules",
    "check",
    "ensure_valid",
    "validate",
]
