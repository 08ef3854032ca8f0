"""Logical-to-physical resolution for one sheet schema bound to one sheet.

All derived maps are computed once in ``SchemaAccessor.__init__`` and exposed
as read-only views. A new accessor is required whenever the schema or the
sheet handle changes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from types import MappingProxyType
from typing import Any

from ..errors import SchemaLookupError, ShapeError
from ..shared.a1 import (
    column_index_to_label,
    column_label_to_index,
    column_range,
    normalize_extent,
)
from ..surface.base import CellValue, SheetSurface
from ..types import ColumnType
from .models import ColumnDef, EditRule, RegionDef, SheetSchema

logger = logging.getLogger(__name__)


class SchemaAccessor:
    """Resolve logical column and region names of a schema on a sheet.

    Args:
        schema: Sheet schema (validated beforehand).
        sheet: Sheet surface the schema is bound to.
        schema_name: Logical sheet name of the schema; defaults to the
            sheet's own name.
    """

    def __init__(
        self,
        schema: SheetSchema,
        sheet: SheetSurface,
        *,
        schema_name: str | None = None,
    ) -> None:
        self._schema = schema
        self._sheet = sheet
        self._schema_name = schema_name or sheet.name
        layout = schema.layout
        columns = layout.columns or {}
        regions = layout.named_regions or {}

        letters: dict[str, str] = {}
        types: dict[str, ColumnType] = {}
        indices: dict[str, int] = {}
        column_defs: dict[str, ColumnDef] = {}
        for key, column in columns.items():
            letter = key.strip().upper()
            letters[column.name] = letter
            types[column.name] = column.type
            indices[column.name] = column_label_to_index(letter)
            column_defs[column.name] = column

        locators: dict[str, str] = {}
        region_defs: dict[str, RegionDef] = {}
        for key, region in regions.items():
            locators[region.name] = normalize_extent(key)
            region_defs[region.name] = region

        self._column_letters = MappingProxyType(letters)
        self._column_types = MappingProxyType(types)
        self._column_indices = MappingProxyType(indices)
        self._region_locators = MappingProxyType(locators)
        self._column_defs = MappingProxyType(column_defs)
        self._region_defs = MappingProxyType(region_defs)
        self._calculated_columns = MappingProxyType(
            {name: col for name, col in column_defs.items() if col.formula is not None}
        )
        self._calculated_regions = MappingProxyType(
            {name: reg for name, reg in region_defs.items() if reg.formula is not None}
        )
        self._locked_columns = tuple(name for name, col in column_defs.items() if col.lock)
        self._locked_regions = tuple(name for name, reg in region_defs.items() if reg.lock)
        self._column_folded = {name.casefold(): name for name in column_defs}
        self._region_folded = {name.casefold(): name for name in region_defs}
        self._names_by_index = {index: name for name, index in indices.items()}
        # Declared columns ordered left to right.
        self._ordered_columns = tuple(sorted(indices, key=indices.__getitem__))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def schema(self) -> SheetSchema:
        return self._schema

    @property
    def sheet(self) -> SheetSurface:
        return self._sheet

    @property
    def schema_name(self) -> str:
        return self._schema_name

    @property
    def header_row_count(self) -> int:
        return self._schema.layout.header_row_count

    @property
    def first_data_row(self) -> int:
        return self._schema.layout.header_row_count + 1

    @property
    def column_letters(self) -> Mapping[str, str]:
        return self._column_letters

    @property
    def column_types(self) -> Mapping[str, ColumnType]:
        return self._column_types

    @property
    def column_indices(self) -> Mapping[str, int]:
        return self._column_indices

    @property
    def region_locators(self) -> Mapping[str, str]:
        return self._region_locators

    @property
    def columns(self) -> Mapping[str, ColumnDef]:
        return self._column_defs

    @property
    def regions(self) -> Mapping[str, RegionDef]:
        return self._region_defs

    @property
    def calculated_columns(self) -> Mapping[str, ColumnDef]:
        return self._calculated_columns

    @property
    def calculated_regions(self) -> Mapping[str, RegionDef]:
        return self._calculated_regions

    @property
    def locked_columns(self) -> tuple[str, ...]:
        return self._locked_columns

    @property
    def locked_regions(self) -> tuple[str, ...]:
        return self._locked_regions

    @property
    def edit_rules(self) -> tuple[EditRule, ...]:
        return self._schema.edit_rules

    @property
    def column_names(self) -> tuple[str, ...]:
        """Declared column names ordered left to right."""
        return self._ordered_columns

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def column_letter(self, name: str) -> str:
        return self._column_letters[self._column_name(name)]

    def column_index(self, name: str) -> int:
        return self._column_indices[self._column_name(name)]

    def column_type(self, name: str) -> ColumnType:
        return self._column_types[self._column_name(name)]

    def region_locator(self, name: str) -> str:
        return self._region_locators[self._region_name(name)]

    def column_name_at(self, index: int) -> str | None:
        """Return the column name declared at a 1-based index, if any."""
        return self._names_by_index.get(index)

    def has_column(self, name: str) -> bool:
        return name in self._column_defs or name.casefold() in self._column_folded

    def has_region(self, name: str) -> bool:
        return name in self._region_defs or name.casefold() in self._region_folded

    def column_extent(self, name: str) -> str:
        """Return the data extent of a column, first data row to ``max_rows``."""
        return column_range(
            self.column_letter(name), self.first_data_row, self._sheet.max_rows
        )

    def resolve_column_key(self, key: str) -> str:
        """Return the column name declared under a physical column key."""
        name = self.column_name_at(column_label_to_index(key))
        if name is None:
            raise SchemaLookupError("column locator", key, self._schema_name)
        return name

    def resolve_region_key(self, key: str) -> str:
        """Return the region name declared under a physical region key."""
        target = normalize_extent(key)
        for name, locator in self._region_locators.items():
            if locator == target:
                return name
        raise SchemaLookupError("region locator", key, self._schema_name)

    def _column_name(self, name: str) -> str:
        if name in self._column_defs:
            return name
        resolved = self._column_folded.get(name.casefold())
        if resolved is None:
            raise SchemaLookupError("column", name, self._schema_name)
        return resolved

    def _region_name(self, name: str) -> str:
        if name in self._region_defs:
            return name
        resolved = self._region_folded.get(name.casefold())
        if resolved is None:
            raise SchemaLookupError("region", name, self._schema_name)
        return resolved

    # ------------------------------------------------------------------
    # Cell I/O
    # ------------------------------------------------------------------

    def read_column(self, name: str) -> list[CellValue]:
        """Read a column's values below the header rows.

        The read stops at the sheet's last data row; an empty sheet yields
        an empty list.
        """
        letter = self.column_letter(name)
        last_row = self._sheet.last_data_row()
        if last_row < self.first_data_row:
            return []
        values = self._sheet.read_values(column_range(letter, self.first_data_row, last_row))
        return [row[0] for row in values]

    def read_row(self, row: int) -> list[CellValue]:
        """Read one row as a list ordered by the declared columns."""
        cells = self._read_span(row)
        start = self._span_start()
        return [cells[self._column_indices[name] - start] for name in self._ordered_columns]

    def read_record(self, row: int) -> dict[str, CellValue]:
        """Read one row as a column name -> value mapping."""
        return dict(zip(self._ordered_columns, self.read_row(row), strict=True))

    def write_row(self, row: int, values: Sequence[CellValue]) -> None:
        """Write one row given values ordered by the declared columns.

        Raises:
            ShapeError: If the value count differs from the column count.
        """
        if len(values) != len(self._ordered_columns):
            raise ShapeError(
                f"Row has {len(values)} value(s) but sheet '{self._schema_name}' "
                f"declares {len(self._ordered_columns)} column(s)."
            )
        self._write_span(row, dict(zip(self._ordered_columns, values, strict=True)))

    def write_record(self, row: int, record: Mapping[str, Any]) -> None:
        """Write the named columns of one row, leaving other cells intact.

        Raises:
            ShapeError: If the record is empty or names an undeclared column.
        """
        if not record:
            raise ShapeError("Record is empty.")
        unknown = [key for key in record if not self.has_column(key)]
        if unknown:
            listed = ", ".join(repr(key) for key in unknown)
            raise ShapeError(
                f"Record names undeclared column(s) on sheet '{self._schema_name}': {listed}."
            )
        updates = {self._column_name(key): value for key, value in record.items()}
        self._write_span(row, updates)

    def _span_start(self) -> int:
        return min(self._column_indices.values())

    def _span_extent(self, row: int) -> str:
        if not self._column_indices:
            raise ShapeError(f"Sheet '{self._schema_name}' declares no columns.")
        start = column_index_to_label(self._span_start())
        end = column_index_to_label(max(self._column_indices.values()))
        return f"{start}{row}:{end}{row}"

    def _read_span(self, row: int) -> list[CellValue]:
        return self._sheet.read_values(self._span_extent(row))[0]

    def _write_span(self, row: int, updates: Mapping[str, CellValue]) -> None:
        extent = self._span_extent(row)
        cells = self._read_span(row)
        start = self._span_start()
        for name, value in updates.items():
            cells[self._column_indices[name] - start] = value
        logger.debug("Writing %s on sheet %s", extent, self._sheet.name)
        self._sheet.write_values(extent, [cells])


__all__ = ["SchemaAccessor"]
