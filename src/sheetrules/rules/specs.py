"""Translation of declarative rule specs into surface rule descriptors.

Specs with ``kind="customBuilder"`` are resolved through two registries of
plain callables. Register a builder with the decorators::

    @register_validation_builder("weekday")
    def weekday(accessor, extent, options):
        return ValidationRule(criterion="custom", formula1="WEEKDAY(A5,2)<6")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

from ..errors import ConfigError
from ..expression import qualify_row, substitute
from ..schema.accessor import SchemaAccessor
from ..schema.models import (
    CellValueFormatSpec,
    ColorScaleFormatSpec,
    CustomBuilderSpec,
    CustomFormulaValidationSpec,
    DateValidationSpec,
    FormatSpec,
    FormatStyle,
    FormulaFormatSpec,
    ListValidationSpec,
    NumberValidationSpec,
    RuleSpec,
)
from ..shared.a1 import column_index_to_label, parse_extent
from ..surface.base import FormattingRule, ValidationRule

ValidationBuilder = Callable[
    [SchemaAccessor, str, Mapping[str, Any]], ValidationRule | None
]
FormattingBuilder = Callable[
    [SchemaAccessor, str, Mapping[str, Any]], Iterable[FormattingRule]
]

BuilderT = TypeVar("BuilderT")


class BuilderRegistry(Generic[BuilderT]):
    """Name -> builder callable registry."""

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._builders: dict[str, BuilderT] = {}

    def register(self, name: str, builder: BuilderT) -> None:
        if not name:
            raise ValueError(f"{self._kind} builder name must not be empty.")
        if name in self._builders:
            raise ValueError(f"Duplicate {self._kind} builder registered: {name}")
        self._builders[name] = builder

    def unregister(self, name: str) -> None:
        self._builders.pop(name, None)

    def get(self, name: str) -> BuilderT:
        try:
            return self._builders[name]
        except KeyError:
            raise ConfigError(f"Unknown {self._kind} builder: {name}") from None

    def names(self) -> list[str]:
        return sorted(self._builders)

    def __contains__(self, name: object) -> bool:
        return name in self._builders


validation_builders: BuilderRegistry[ValidationBuilder] = BuilderRegistry("validation")
formatting_builders: BuilderRegistry[FormattingBuilder] = BuilderRegistry("formatting")


def register_validation_builder(
    name: str,
) -> Callable[[ValidationBuilder], ValidationBuilder]:
    """Register a validation builder under ``name``."""

    def _decorator(builder: ValidationBuilder) -> ValidationBuilder:
        validation_builders.register(name, builder)
        return builder

    return _decorator


def register_formatting_builder(
    name: str,
) -> Callable[[FormattingBuilder], FormattingBuilder]:
    """Register a formatting builder under ``name``."""

    def _decorator(builder: FormattingBuilder) -> FormattingBuilder:
        formatting_builders.register(name, builder)
        return builder

    return _decorator


def build_validation(
    spec: RuleSpec,
    accessor: SchemaAccessor,
    extent: str,
    *,
    strict: bool = True,
) -> ValidationRule | None:
    """Build the validation rule for one extent; None means skip the entry."""
    if isinstance(spec, ListValidationSpec):
        return ValidationRule(
            criterion="list",
            values=spec.values,
            allow_invalid=spec.allow_invalid,
            help_text=spec.help_text,
        )
    if isinstance(spec, NumberValidationSpec):
        return ValidationRule(
            criterion="decimal",
            operator=spec.operator,
            formula1=_number(spec.minimum),
            formula2=_number(spec.maximum) if spec.maximum is not None else None,
            allow_invalid=spec.allow_invalid,
            help_text=spec.help_text,
        )
    if isinstance(spec, DateValidationSpec):
        return ValidationRule(
            criterion="date",
            operator=spec.operator,
            formula1=_date(spec.minimum),
            formula2=_date(spec.maximum) if spec.maximum is not None else None,
            allow_invalid=spec.allow_invalid,
            help_text=spec.help_text,
        )
    if isinstance(spec, CustomFormulaValidationSpec):
        return ValidationRule(
            criterion="custom",
            formula1=anchored_expression(spec.formula, accessor, extent, strict=strict),
            allow_invalid=spec.allow_invalid,
            help_text=spec.help_text,
        )
    return validation_builders.get(spec.builder)(accessor, extent, spec.options)


def build_formatting(
    specs: Iterable[FormatSpec],
    accessor: SchemaAccessor,
    extent: str,
    *,
    strict: bool = True,
) -> list[FormattingRule]:
    """Bind every format spec of one entry to the same extent."""
    rules: list[FormattingRule] = []
    for spec in specs:
        rules.extend(_format_rules(spec, accessor, extent, strict=strict))
    return rules


def _format_rules(
    spec: FormatSpec, accessor: SchemaAccessor, extent: str, *, strict: bool
) -> Iterable[FormattingRule]:
    if isinstance(spec, CellValueFormatSpec):
        return [
            FormattingRule(
                extent=extent,
                kind="cellIs",
                operator=spec.operator,
                formulas=tuple(_operand(value) for value in spec.values),
                **_style(spec.style),
            )
        ]
    if isinstance(spec, FormulaFormatSpec):
        return [
            FormattingRule(
                extent=extent,
                kind="expression",
                formulas=(anchored_expression(spec.formula, accessor, extent, strict=strict),),
                **_style(spec.style),
            )
        ]
    if isinstance(spec, ColorScaleFormatSpec):
        colors = [spec.start_color, spec.mid_color, spec.end_color]
        return [
            FormattingRule(
                extent=extent,
                kind="colorScale",
                scale_colors=tuple(color for color in colors if color is not None),
            )
        ]
    if isinstance(spec, CustomBuilderSpec):
        return list(formatting_builders.get(spec.builder)(accessor, extent, spec.options))
    raise ConfigError(f"Unsupported format spec: {spec!r}")


def anchored_expression(
    template: str, accessor: SchemaAccessor, extent: str, *, strict: bool = True
) -> str:
    """Resolve a rule template relative to the top-left cell of ``extent``.

    Column placeholders become relative references on the extent's first
    row; region placeholders become absolute references. The result carries
    no leading ``=``.
    """
    mapping = dict(accessor.column_letters)
    for name, locator in accessor.region_locators.items():
        mapping.setdefault(name, _absolute_tail(locator))
    resolved = substitute(template, mapping, preserve_marker=True, strict=strict)
    return qualify_row(resolved, parse_extent(extent).min_row)[1:]


def _absolute_tail(locator: str) -> str:
    # The substitution marker supplies the leading "$".
    extent = parse_extent(locator)
    start = f"{column_index_to_label(extent.min_col)}${extent.min_row}"
    if extent.is_single_cell:
        return start
    return f"{start}:${column_index_to_label(extent.max_col)}${extent.max_row}"


def _number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _date(value: Any) -> str:
    return f"DATE({value.year},{value.month},{value.day})"


def _operand(value: str) -> str:
    text = value.strip()
    if text.startswith("="):
        return text[1:]
    try:
        float(text)
    except ValueError:
        return '"' + text.replace('"', '""') + '"'
    return text


def _style(style: FormatStyle) -> dict[str, Any]:
    return {
        "fill_color": style.fill_color,
        "font_color": style.font_color,
        "bold": style.bold,
    }


__all__ = [
    "BuilderRegistry",
    "FormattingBuilder",
    "ValidationBuilder",
    "anchored_expression",
    "build_formatting",
    "build_validation",
    "formatting_builders",
    "register_formatting_builder",
    "register_validation_builder",
    "validation_builders",
]
