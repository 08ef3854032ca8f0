from __future__ import annotations

from pathlib import Path
from typing import Literal

OnConflictPolicy = Literal["overwrite", "skip", "rename"]

_APPLIED_SUFFIX = "_applied"


def resolve_output_path(workbook_path: Path, out_path: Path | None) -> Path:
    """Return the workbook output path, defaulting to ``<stem>_applied<ext>``."""
    if out_path is not None:
        candidate = out_path if out_path.suffix else out_path.with_suffix(
            workbook_path.suffix
        )
        return candidate.resolve()
    return (workbook_path.parent / applied_name(workbook_path)).resolve()


def applied_name(workbook_path: Path) -> str:
    """Build the default output name without chaining the suffix repeatedly."""
    stem = workbook_path.stem
    if stem.casefold().endswith(_APPLIED_SUFFIX):
        return workbook_path.name
    return f"{stem}{_APPLIED_SUFFIX}{workbook_path.suffix}"


def apply_conflict_policy(
    output_path: Path, on_conflict: OnConflictPolicy
) -> tuple[Path, str | None, bool]:
    """Apply output conflict policy to a resolved output path.

    Returns:
        (path, warning, skipped) where ``skipped`` means nothing should be written.
    """
    if not output_path.exists():
        return output_path, None, False
    if on_conflict == "skip":
        return (
            output_path,
            f"Output exists; skipping write: {output_path.name}",
            True,
        )
    if on_conflict == "rename":
        renamed = next_available_path(output_path)
        return (
            renamed,
            f"Output exists; renamed to: {renamed.name}",
            False,
        )
    return output_path, None, False


def next_available_path(path: Path) -> Path:
    """Return the next available path by appending a numeric suffix."""
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    for idx in range(1, 10_000):
        candidate = path.with_name(f"{stem}_{idx}{suffix}")
        if not candidate.exists():
            return candidate
    raise RuntimeError(f"Failed to resolve unique path for {path}")
