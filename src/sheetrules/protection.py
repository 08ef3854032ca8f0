"""Edit allow-list reconciliation for protected extents."""

from __future__ import annotations

from collections.abc import Iterable
import logging

from pydantic import BaseModel, Field

from .schema.accessor import SchemaAccessor
from .shared.a1 import normalize_extent
from .surface.base import ProtectionRecord, SheetSurface

logger = logging.getLogger(__name__)

DEFAULT_LABEL_FORMAT = "{sheet}:{name}"


class ReconcileResult(BaseModel):
    """Mutations issued by one reconcile call."""

    extent: str
    label: str
    created: bool = False
    label_changed: bool = False
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.label_changed or self.added or self.removed)


class ProtectionReconciler:
    """Keep protection records in line with a desired editor allow-list.

    Args:
        editors: Default allow-list used by ``protect_locked``.
        label_format: Label template with ``{sheet}`` and ``{name}`` fields.
    """

    def __init__(
        self,
        editors: Iterable[str] = (),
        *,
        label_format: str = DEFAULT_LABEL_FORMAT,
    ) -> None:
        self._editors = frozenset(editors)
        self._label_format = label_format

    @property
    def editors(self) -> frozenset[str]:
        return self._editors

    def label_for(self, sheet: str, name: str) -> str:
        return self._label_format.format(sheet=sheet, name=name)

    def reconcile(
        self,
        sheet: SheetSurface,
        extent: str,
        label: str,
        editors: Iterable[str] | None = None,
    ) -> ReconcileResult:
        """Make the record protecting ``extent`` match ``label`` and ``editors``.

        The record is matched on extent equality, never overlap. Editors are
        diffed so that a repeated call with the same arguments issues no
        mutating call at all.
        """
        target = normalize_extent(extent)
        desired = frozenset(self._editors if editors is None else editors)
        record = find_record(sheet, target)
        result = ReconcileResult(extent=target, label=label)
        if record is None:
            record = sheet.protect(target)
            result.created = True
        if record.label != label:
            record.set_label(label)
            result.label_changed = True

        current = record.editors()
        extra = sorted(current - desired)
        missing = sorted(desired - current)
        if extra:
            record.remove_editors(extra)
            result.removed = extra
        if missing:
            record.add_editors(missing)
            result.added = missing
        if result.changed:
            logger.info(
                "Protection %s on %s reconciled (created=%s, +%d, -%d).",
                label,
                sheet.name,
                result.created,
                len(missing),
                len(extra),
            )
        return result

    def unprotect(self, sheet: SheetSurface, extent: str) -> bool:
        """Remove the record protecting exactly ``extent``; True when removed."""
        record = find_record(sheet, normalize_extent(extent))
        if record is None:
            return False
        sheet.unprotect(record)
        return True

    def protect_locked(
        self,
        accessor: SchemaAccessor,
        *,
        skip: Iterable[str] = (),
    ) -> list[ReconcileResult]:
        """Reconcile every locked column and region of an accessor.

        Args:
            accessor: Accessor bound to the target sheet.
            skip: Normalized extents already reconciled in this pass.
        """
        done = set(skip)
        results: list[ReconcileResult] = []
        targets = [
            (name, accessor.column_extent(name)) for name in accessor.locked_columns
        ] + [(name, accessor.region_locator(name)) for name in accessor.locked_regions]
        for name, extent in targets:
            if extent in done:
                continue
            label = self.label_for(accessor.schema_name, name)
            results.append(self.reconcile(accessor.sheet, extent, label))
            done.add(extent)
        return results


def find_record(sheet: SheetSurface, extent: str) -> ProtectionRecord | None:
    """Return the protection record whose extent equals ``extent``."""
    target = normalize_extent(extent)
    for record in sheet.protections():
        if normalize_extent(record.extent) == target:
            return record
    return None


__all__ = [
    "DEFAULT_LABEL_FORMAT",
    "ProtectionReconciler",
    "ReconcileResult",
    "find_record",
]
