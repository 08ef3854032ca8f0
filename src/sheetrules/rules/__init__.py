from __future__ import annotations

from .applicator import ApplyReport, RuleApplicator
from .specs import (
    BuilderRegistry,
    anchored_expression,
    build_formatting,
    build_validation,
    formatting_builders,
    register_formatting_builder,
    register_validation_builder,
    validation_builders,
)

__all__ = [
    "ApplyReport",
    "BuilderRegistry",
    "RuleApplicator",
    "anchored_expression",
    "build_formatting",
    "build_validation",
    "formatting_builders",
    "register_formatting_builder",
    "register_validation_builder",
    "validation_builders",
]
