"""Frozen pydantic models for sheet schemas.

A schema literal is a nested mapping keyed in camelCase (``headerRowCount``,
``namedRegions``, ``editRules`` ...); snake_case keys are accepted as well.
Once validated, every mapping is exposed as a read-only view and every model
is frozen, so a ``SchemaStore`` can be shared by all accessors.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from datetime import date
import re
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..errors import ConfigError, SchemaLookupError
from ..types import ColumnType, ComparisonOperator

_HEX_COLOR_PATTERN = re.compile(r"^#?(?:[0-9A-Fa-f]{6})$")
_RANGE_OPERATORS = {"between", "notBetween"}


class SchemaModel(BaseModel):
    """Base model for schema literals."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


def _normalize_hex_color(value: str | None) -> str | None:
    if value is None:
        return None
    if not _HEX_COLOR_PATTERN.match(value):
        raise ValueError(f"Invalid color (expected #RRGGBB): {value}")
    return "#" + value.lstrip("#").upper()


def _freeze_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if value is None:
        return None
    return MappingProxyType(dict(value))


class TemplateFormula(SchemaModel):
    """Formula written as a template expression with ``$name`` placeholders."""

    kind: Literal["template"] = "template"
    template: str = Field(..., min_length=1)


class NamedCallFormula(SchemaModel):
    """Formula that calls a host-side named function with region arguments."""

    kind: Literal["namedCall"] = "namedCall"
    function: str = Field(..., min_length=1)
    args: tuple[str, ...] = ()


FormulaSpec = Annotated[
    Union[TemplateFormula, NamedCallFormula], Field(discriminator="kind")
]


def _coerce_formula(value: object) -> object:
    if isinstance(value, str):
        return {"kind": "template", "template": value}
    return value


class ColumnDef(SchemaModel):
    """Logical column bound to a physical column letter."""

    name: str = Field(..., min_length=1)
    type: ColumnType = "string"
    formula: TemplateFormula | None = None
    lock: bool = False

    @field_validator("formula", mode="before")
    @classmethod
    def _formula_from_text(cls, value: object) -> object:
        return _coerce_formula(value)


class RegionDef(SchemaModel):
    """Named region bound to a physical cell or range."""

    name: str = Field(..., min_length=1)
    formula: FormulaSpec | None = None
    args: tuple[str, ...] = ()
    lock: bool = False

    @field_validator("formula", mode="before")
    @classmethod
    def _formula_from_text(cls, value: object) -> object:
        return _coerce_formula(value)

    def call_args(self) -> tuple[str, ...]:
        """Return named-call arguments, falling back to the region's ``args``."""
        if isinstance(self.formula, NamedCallFormula) and self.formula.args:
            return self.formula.args
        return self.args


class Layout(SchemaModel):
    """Physical layout of one sheet.

    ``columns`` and ``named_regions`` stay optional at the model level so that
    the schema validator can report a missing section instead of failing the
    whole store at construction time.
    """

    header_row_count: int = Field(default=0, ge=0)
    columns: Mapping[str, ColumnDef] | None = None
    named_regions: Mapping[str, RegionDef] | None = None

    @field_validator("columns", "named_regions", mode="after")
    @classmethod
    def _freeze(cls, value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
        return _freeze_mapping(value)


class ListValidationSpec(SchemaModel):
    """Restrict values to a fixed list (rendered as a dropdown)."""

    kind: Literal["listValidation"] = "listValidation"
    values: tuple[str, ...] = Field(..., min_length=1)
    allow_invalid: bool = False
    help_text: str | None = None


class NumberValidationSpec(SchemaModel):
    """Restrict values to numbers compared against bounds."""

    kind: Literal["numberValidation"] = "numberValidation"
    operator: ComparisonOperator = "between"
    minimum: float
    maximum: float | None = None
    allow_invalid: bool = False
    help_text: str | None = None

    @model_validator(mode="after")
    def _require_maximum(self) -> NumberValidationSpec:
        if self.operator in _RANGE_OPERATORS and self.maximum is None:
            raise ValueError(f"numberValidation with {self.operator} requires maximum.")
        return self


class DateValidationSpec(SchemaModel):
    """Restrict values to dates compared against bounds."""

    kind: Literal["dateValidation"] = "dateValidation"
    operator: ComparisonOperator = "greaterThanOrEqual"
    minimum: date
    maximum: date | None = None
    allow_invalid: bool = False
    help_text: str | None = None

    @model_validator(mode="after")
    def _require_maximum(self) -> DateValidationSpec:
        if self.operator in _RANGE_OPERATORS and self.maximum is None:
            raise ValueError(f"dateValidation with {self.operator} requires maximum.")
        return self


class CustomFormulaValidationSpec(SchemaModel):
    """Accept values for which a template formula evaluates to TRUE."""

    kind: Literal["customFormulaValidation"] = "customFormulaValidation"
    formula: str = Field(..., min_length=1)
    allow_invalid: bool = False
    help_text: str | None = None


class CustomBuilderSpec(SchemaModel):
    """Delegate rule construction to a registered builder function."""

    kind: Literal["customBuilder"] = "customBuilder"
    builder: str = Field(..., min_length=1)
    options: Mapping[str, Any] = Field(default_factory=dict)

    @field_validator("options", mode="after")
    @classmethod
    def _freeze(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))


RuleSpec = Annotated[
    Union[
        ListValidationSpec,
        NumberValidationSpec,
        DateValidationSpec,
        CustomFormulaValidationSpec,
        CustomBuilderSpec,
    ],
    Field(discriminator="kind"),
]


class FormatStyle(SchemaModel):
    """Visual style applied when a conditional format matches."""

    fill_color: str | None = None
    font_color: str | None = None
    bold: bool | None = None

    @field_validator("fill_color", "font_color")
    @classmethod
    def _normalize_color(cls, value: str | None) -> str | None:
        return _normalize_hex_color(value)


class CellValueFormatSpec(SchemaModel):
    """Highlight cells whose value compares against fixed operands."""

    kind: Literal["cellValue"] = "cellValue"
    operator: ComparisonOperator
    values: tuple[str, ...] = Field(..., min_length=1, max_length=2)
    style: FormatStyle = Field(default_factory=FormatStyle)


class FormulaFormatSpec(SchemaModel):
    """Highlight cells for which a template formula evaluates to TRUE."""

    kind: Literal["formula"] = "formula"
    formula: str = Field(..., min_length=1)
    style: FormatStyle = Field(default_factory=FormatStyle)


class ColorScaleFormatSpec(SchemaModel):
    """Two- or three-point color scale across the extent."""

    kind: Literal["colorScale"] = "colorScale"
    start_color: str
    end_color: str
    mid_color: str | None = None

    @field_validator("start_color", "end_color", "mid_color")
    @classmethod
    def _normalize_color(cls, value: str | None) -> str | None:
        return _normalize_hex_color(value)


FormatSpec = Annotated[
    Union[
        CellValueFormatSpec,
        FormulaFormatSpec,
        ColorScaleFormatSpec,
        CustomBuilderSpec,
    ],
    Field(discriminator="kind"),
]


class ValidationRules(SchemaModel):
    """Validation rule per column key and per region key."""

    column: Mapping[str, RuleSpec | None] = Field(default_factory=dict)
    region: Mapping[str, RuleSpec | None] = Field(default_factory=dict)

    @field_validator("column", "region", mode="after")
    @classmethod
    def _freeze(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))


def _coerce_format_list(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            key: [item] if isinstance(item, (Mapping, BaseModel)) else item
            for key, item in value.items()
        }
    return value


class FormattingRules(SchemaModel):
    """Conditional formatting specs per column key and per region key."""

    column: Mapping[str, tuple[FormatSpec, ...] | None] = Field(default_factory=dict)
    region: Mapping[str, tuple[FormatSpec, ...] | None] = Field(default_factory=dict)

    @field_validator("column", "region", mode="before")
    @classmethod
    def _single_spec_as_list(cls, value: object) -> object:
        return _coerce_format_list(value)

    @field_validator("column", "region", mode="after")
    @classmethod
    def _freeze(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))


class EditRule(SchemaModel):
    """Condition/handler pair evaluated for each edit event."""

    condition: Callable[[Any, Any], bool]
    handler: Callable[[Any, Any], None]
    name: str | None = None


class SheetSchema(SchemaModel):
    """Declarative description of one sheet."""

    layout: Layout
    edit_rules: tuple[EditRule, ...] = ()
    validation_rules: ValidationRules = Field(default_factory=ValidationRules)
    formatting_rules: FormattingRules = Field(default_factory=FormattingRules)


class SchemaStore(SchemaModel):
    """Immutable collection of sheet schemas keyed by sheet name."""

    sheets: Mapping[str, SheetSchema] = Field(default_factory=dict)

    @field_validator("sheets", mode="after")
    @classmethod
    def _freeze(cls, value: Mapping[str, SheetSchema]) -> Mapping[str, SheetSchema]:
        return MappingProxyType(dict(value))

    @classmethod
    def from_literal(cls, literal: Mapping[str, Any]) -> SchemaStore:
        """Build a store from a schema literal keyed by sheet name.

        Raises:
            ConfigError: If the literal does not match the schema shape.
        """
        try:
            return cls.model_validate({"sheets": dict(literal)})
        except ValidationError as exc:
            issues = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            ]
            raise ConfigError("Schema literal is malformed.", issues) from exc

    def names(self) -> list[str]:
        """Return sheet names in declaration order."""
        return list(self.sheets)

    def get(self, name: str) -> SheetSchema:
        """Return the schema for a sheet name."""
        try:
            return self.sheets[name]
        except KeyError:
            raise SchemaLookupError("sheet", name) from None

    def __contains__(self, name: object) -> bool:
        return name in self.sheets

    def items(self) -> Iterator[tuple[str, SheetSchema]]:
        """Iterate (sheet name, schema) pairs in declaration order."""
        return iter(self.sheets.items())
