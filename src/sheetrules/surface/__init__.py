from __future__ import annotations

from .base import (
    CellValue,
    FormattingRule,
    ProtectionRecord,
    SheetSurface,
    ValidationRule,
    WorkbookSurface,
    is_formula,
)
from .memory import InMemoryProtection, InMemorySheet, InMemoryWorkbook

__all__ = [
    "CellValue",
    "FormattingRule",
    "InMemoryProtection",
    "InMemorySheet",
    "InMemoryWorkbook",
    "ProtectionRecord",
    "SheetSurface",
    "ValidationRule",
    "WorkbookSurface",
    "is_formula",
]
