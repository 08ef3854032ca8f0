from __future__ import annotations

from .a1 import (
    Extent,
    absolute_reference,
    column_index_to_label,
    column_label_to_index,
    column_range,
    extents_overlap,
    is_a1_extent,
    is_column_label,
    normalize_extent,
    normalize_range,
    parse_extent,
    split_a1,
)
from .output_path import apply_conflict_policy, next_available_path, resolve_output_path

__all__ = [
    "Extent",
    "absolute_reference",
    "apply_conflict_policy",
    "column_index_to_label",
    "column_label_to_index",
    "column_range",
    "extents_overlap",
    "is_a1_extent",
    "is_column_label",
    "next_available_path",
    "normalize_extent",
    "normalize_range",
    "parse_extent",
    "resolve_output_path",
    "split_a1",
]
