from __future__ import annotations

from collections.abc import Sequence


class SheetRulesError(Exception):
    """Base class for errors raised by sheetrules."""


class ConfigError(SheetRulesError, ValueError):
    """Schema or configuration failed integrity checks."""

    def __init__(self, message: str, issues: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.issues = list(issues)

    def describe(self) -> str:
        """Return the message followed by one line per issue."""
        if not self.issues:
            return str(self)
        lines = [str(self), *(f"- {issue}" for issue in self.issues)]
        return "\n".join(lines)


class SchemaLookupError(SheetRulesError, LookupError):
    """A logical column or region name is not declared in the schema."""

    def __init__(self, kind: str, name: str, sheet: str | None = None) -> None:
        where = f" in sheet '{sheet}'" if sheet else ""
        super().__init__(f"Unknown {kind} name: '{name}'{where}")
        self.kind = kind
        self.name = name
        self.sheet = sheet


class ShapeError(SheetRulesError, ValueError):
    """A row or record does not match the declared column set."""


class ExternalOperationError(SheetRulesError, RuntimeError):
    """A call against the host tabular surface failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
