from __future__ import annotations

from typing import Literal

ColumnType = Literal["string", "number", "date", "boolean", "email", "currency"]
FormulaKind = Literal["template", "namedCall"]
ValidationKind = Literal[
    "listValidation",
    "numberValidation",
    "dateValidation",
    "customFormulaValidation",
    "customBuilder",
]
FormatKind = Literal["cellValue", "formula", "colorScale", "customBuilder"]
ComparisonOperator = Literal[
    "between",
    "notBetween",
    "equal",
    "notEqual",
    "greaterThan",
    "lessThan",
    "greaterThanOrEqual",
    "lessThanOrEqual",
]
ValidationCriterion = Literal["list", "decimal", "date", "custom"]
FormattingRuleKind = Literal["cellIs", "expression", "colorScale"]
IssueCode = Literal[
    "missing_layout_section",
    "invalid_column_key",
    "invalid_region_key",
    "duplicate_column_name",
    "duplicate_column_locator",
    "overlapping_regions",
    "duplicate_region_name",
    "unknown_placeholder",
    "unknown_region_argument",
    "multi_cell_calculated_region",
    "unknown_rule_target",
]
TargetKind = Literal["column", "region"]
