"""First-match routing of edit events to declared edit rules.

Edit rules are evaluated top to bottom for every event. The first rule whose
condition holds runs its handler and dispatch stops there; later rules are
not consulted even when they would match too.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .schema.accessor import SchemaAccessor
from .shared.a1 import Extent, extents_overlap, normalize_extent, parse_extent

logger = logging.getLogger(__name__)

Condition = Callable[["EditEvent", SchemaAccessor], bool]
DispatcherState = Literal["idle", "dispatching"]


class EditEvent(BaseModel):
    """One change delivered by the host."""

    model_config = ConfigDict(frozen=True)

    sheet: str
    range: str
    old_value: Any = None
    value: Any = None

    @field_validator("range")
    @classmethod
    def _normalize_range(cls, value: str) -> str:
        return normalize_extent(value)

    @property
    def extent(self) -> Extent:
        return parse_extent(self.range)

    @property
    def row(self) -> int:
        return self.extent.min_row

    @property
    def column(self) -> int:
        return self.extent.min_col

    @property
    def is_single_cell(self) -> bool:
        return self.extent.is_single_cell

    @property
    def row_count(self) -> int:
        return self.extent.rows

    @property
    def column_count(self) -> int:
        return self.extent.cols


class DispatchResult(BaseModel):
    """Outcome of dispatching one event."""

    sheet: str
    matched: int | None = None
    rule_name: str | None = None

    @property
    def handled(self) -> bool:
        return self.matched is not None


class EventDispatcher:
    """Route each event to at most one edit rule."""

    def __init__(self) -> None:
        self._state: DispatcherState = "idle"

    @property
    def state(self) -> DispatcherState:
        return self._state

    def dispatch(self, event: EditEvent, accessor: SchemaAccessor) -> DispatchResult:
        """Run the handler of the first rule whose condition matches.

        Exceptions raised by a condition or a handler propagate unchanged.
        """
        self._state = "dispatching"
        try:
            for index, rule in enumerate(accessor.edit_rules):
                if not rule.condition(event, accessor):
                    continue
                logger.debug(
                    "Edit %s!%s matched rule %d (%s).",
                    event.sheet,
                    event.range,
                    index,
                    rule.name or "unnamed",
                )
                rule.handler(event, accessor)
                return DispatchResult(sheet=event.sheet, matched=index, rule_name=rule.name)
            return DispatchResult(sheet=event.sheet)
        finally:
            self._state = "idle"


def column_edited(name: str) -> Condition:
    """Match edits touching the named column."""

    def _condition(event: EditEvent, accessor: SchemaAccessor) -> bool:
        if not accessor.has_column(name):
            return False
        index = accessor.column_index(name)
        extent = event.extent
        return extent.min_col <= index <= extent.max_col

    return _condition


def data_row_edited() -> Condition:
    """Match edits lying entirely below the header rows."""

    def _condition(event: EditEvent, accessor: SchemaAccessor) -> bool:
        return event.row >= accessor.first_data_row

    return _condition


def region_edited(name: str) -> Condition:
    """Match edits overlapping the named region."""

    def _condition(event: EditEvent, accessor: SchemaAccessor) -> bool:
        if not accessor.has_region(name):
            return False
        return extents_overlap(event.extent, parse_extent(accessor.region_locator(name)))

    return _condition


def all_of(*conditions: Condition) -> Condition:
    """Match when every condition matches."""

    def _condition(event: EditEvent, accessor: SchemaAccessor) -> bool:
        return all(condition(event, accessor) for condition in conditions)

    return _condition


def any_of(*conditions: Condition) -> Condition:
    """Match when at least one condition matches."""

    def _condition(event: EditEvent, accessor: SchemaAccessor) -> bool:
        return any(condition(event, accessor) for condition in conditions)

    return _condition


__all__ = [
    "Condition",
    "DispatchResult",
    "EditEvent",
    "EventDispatcher",
    "all_of",
    "any_of",
    "column_edited",
    "data_row_edited",
    "region_edited",
]
