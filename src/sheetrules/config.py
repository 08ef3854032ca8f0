from __future__ import annotations

from collections.abc import Mapping
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .protection import DEFAULT_LABEL_FORMAT
from .surface.memory import DEFAULT_GRID_ROWS

_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    """Immutable engine configuration passed to every component."""

    model_config = ConfigDict(frozen=True)

    debug: bool = Field(default=False, description="Target the development sheet and reset first.")
    production_sheet_name: str | None = Field(
        default=None, description="Schema name bound to the production sheet."
    )
    development_sheet_name: str | None = Field(
        default=None, description="Physical sheet used for that schema in debug mode."
    )
    editors: tuple[str, ...] = Field(default=(), description="Editor allow-list.")
    protection_label: str = Field(
        default=DEFAULT_LABEL_FORMAT,
        description="Protection label format with {sheet} and {name} fields.",
    )
    grid_rows: int = Field(default=DEFAULT_GRID_ROWS, ge=1, description="Sheet grid rows.")

    @field_validator("editors", mode="before")
    @classmethod
    def _split_editors(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: object
    ) -> EngineConfig:
        """Build a config from ``SHEETRULES_*`` environment variables.

        Args:
            environ: Mapping read instead of ``os.environ`` when given.
            **overrides: Field values taking precedence over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        debug = env.get("SHEETRULES_DEBUG")
        if debug is not None:
            values["debug"] = debug.strip().lower() in _TRUE_VALUES
        editors = env.get("SHEETRULES_EDITORS")
        if editors is not None:
            values["editors"] = editors
        grid_rows = env.get("SHEETRULES_GRID_ROWS")
        if grid_rows:
            values["grid_rows"] = int(grid_rows)
        values.update(overrides)
        return cls.model_validate(values)

    def physical_sheet_name(self, schema_name: str) -> str:
        """Return the sheet a schema is applied to under this config."""
        if (
            self.debug
            and self.development_sheet_name
            and schema_name == self.production_sheet_name
        ):
            return self.development_sheet_name
        return schema_name

    def schema_name_for(self, sheet_name: str) -> str | None:
        """Return the schema name bound to a physical sheet name.

        In debug mode the production sheet is bound to no schema; None is
        returned for it.
        """
        if self.debug and self.production_sheet_name and self.development_sheet_name:
            if sheet_name == self.development_sheet_name:
                return self.production_sheet_name
            if sheet_name == self.production_sheet_name:
                return None
        return sheet_name


__all__ = ["EngineConfig"]
