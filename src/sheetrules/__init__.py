"""Declarative schema-driven rules for spreadsheet sheets."""

from __future__ import annotations

from .config import EngineConfig
from .dispatch import (
    DispatchResult,
    EditEvent,
    EventDispatcher,
    all_of,
    any_of,
    column_edited,
    data_row_edited,
    region_edited,
)
from .errors import (
    ConfigError,
    ExternalOperationError,
    SchemaLookupError,
    ShapeError,
    SheetRulesError,
)
from .orchestrator import (
    InitializationReport,
    LoggingNotifier,
    Notifier,
    Orchestrator,
)
from .protection import ProtectionReconciler, ReconcileResult
from .rules import (
    ApplyReport,
    RuleApplicator,
    register_formatting_builder,
    register_validation_builder,
)
from .schema import SchemaAccessor, SchemaStore, check, ensure_valid, validate

__all__ = [
    "ApplyReport",
    "ConfigError",
    "DispatchResult",
    "EditEvent",
    "EngineConfig",
    "EventDispatcher",
    "ExternalOperationError",
    "InitializationReport",
    "LoggingNotifier",
    "Notifier",
    "Orchestrator",
    "ProtectionReconciler",
    "ReconcileResult",
    "RuleApplicator",
    "SchemaAccessor",
    "SchemaLookupError",
    "SchemaStore",
    "ShapeError",
    "SheetRulesError",
    "all_of",
    "any_of",
    "check",
    "column_edited",
    "data_row_edited",
    "ensure_valid",
    "region_edited",
    "register_formatting_builder",
    "register_validation_builder",
    "validate",
]
