"""Initialization and edit entry points.

``Orchestrator.initialize`` validates the store before touching the workbook,
then walks the declared sheets in order. For each sheet the stages run in a
fixed sequence: named regions, formulas (locking calculated entries right
after their write), validation, formatting, then the remaining locks.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .config import EngineConfig
from .dispatch import DispatchResult, EditEvent, EventDispatcher
from .errors import ConfigError, ExternalOperationError, SchemaLookupError
from .protection import ProtectionReconciler
from .rules.applicator import ApplyReport, RuleApplicator
from .rules.specs import formatting_builders, validation_builders
from .schema.accessor import SchemaAccessor
from .schema.models import CustomBuilderSpec, SchemaStore, SheetSchema
from .schema.validator import check
from .surface.base import SheetSurface, WorkbookSurface

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Channel for operator-facing alerts."""

    def alert(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier used when no interactive surface is available."""

    def alert(self, message: str) -> None:
        logger.error("%s", message)


class SheetReport(BaseModel):
    """Initialization outcome for one declared sheet."""

    schema_name: str
    sheet: str
    regions: list[str] = Field(default_factory=list)
    apply: ApplyReport | None = None
    protected: list[str] = Field(default_factory=list)


class InitializationReport(BaseModel):
    """Outcome of one initialization pass."""

    ok: bool = True
    reset: bool = False
    issues: list[str] = Field(default_factory=list)
    editor_failures: list[str] = Field(default_factory=list)
    sheets: list[SheetReport] = Field(default_factory=list)
    skipped_sheets: list[str] = Field(default_factory=list)


class Orchestrator:
    """Sequence validation, application and protection over a workbook.

    Args:
        store: Schema store shared by every accessor built here.
        config: Engine configuration; defaults to ``EngineConfig()``.
        notifier: Alert channel; defaults to ``LoggingNotifier``.
    """

    def __init__(
        self,
        store: SchemaStore,
        config: EngineConfig | None = None,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self._store = store
        self._config = config or EngineConfig()
        self._notifier = notifier or LoggingNotifier()
        self._reconciler = ProtectionReconciler(
            self._config.editors, label_format=self._config.protection_label
        )
        self._dispatcher = EventDispatcher()

    @property
    def store(self) -> SchemaStore:
        return self._store

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    def initialize(self, workbook: WorkbookSurface) -> InitializationReport:
        """Apply every declared sheet schema to the workbook.

        Configuration problems are reported through the notifier and leave
        the workbook untouched. Host failures other than editor roster sync
        propagate; stages already applied are kept.
        """
        report = InitializationReport()
        issues = self._preflight()
        if issues:
            return self._abort(report, "Schema validation failed.", issues)

        if self._config.debug:
            self.reset(workbook)
            report.reset = True

        report.editor_failures = self._sync_editors(workbook)

        for schema_name, schema in self._store.items():
            sheet_name = self._config.physical_sheet_name(schema_name)
            sheet = workbook.sheet(sheet_name)
            if sheet is None:
                logger.warning(
                    "Sheet %s (schema %s) not found; skipping.", sheet_name, schema_name
                )
                report.skipped_sheets.append(schema_name)
                continue
            try:
                report.sheets.append(
                    self._initialize_sheet(workbook, schema_name, schema, sheet)
                )
            except ConfigError as exc:
                return self._abort(report, str(exc), exc.issues or [str(exc)])
        logger.info(
            "Initialized %d sheet(s), skipped %d.",
            len(report.sheets),
            len(report.skipped_sheets),
        )
        return report

    def handle_edit(
        self, workbook: WorkbookSurface, event: EditEvent
    ) -> DispatchResult | None:
        """Route an edit to the schema bound to the edited sheet.

        Returns:
            None when no schema is bound to the sheet.
        """
        schema_name = self._config.schema_name_for(event.sheet)
        if schema_name is None or schema_name not in self._store:
            logger.debug("No schema bound to sheet %s; edit ignored.", event.sheet)
            return None
        sheet = workbook.sheet(event.sheet)
        if sheet is None:
            raise SchemaLookupError("sheet", event.sheet)
        accessor = SchemaAccessor(self._store.get(schema_name), sheet, schema_name=schema_name)
        return self._dispatcher.dispatch(event, accessor)

    def accessor_for(self, workbook: WorkbookSurface, schema_name: str) -> SchemaAccessor:
        """Build an accessor for a schema on its physical sheet.

        Raises:
            SchemaLookupError: If the schema or its sheet does not exist.
        """
        schema = self._store.get(schema_name)
        sheet_name = self._config.physical_sheet_name(schema_name)
        sheet = workbook.sheet(sheet_name)
        if sheet is None:
            raise SchemaLookupError("sheet", sheet_name)
        return SchemaAccessor(schema, sheet, schema_name=schema_name)

    def reset(self, workbook: WorkbookSurface) -> None:
        """Clear formatting, validation, protection and named regions.

        Only the sheets targeted by the store are touched.
        """
        targets = {
            self._config.physical_sheet_name(schema_name) for schema_name in self._store.names()
        }
        for name in workbook.sheet_names():
            if name not in targets:
                continue
            sheet = workbook.sheet(name)
            if sheet is None:
                continue
            sheet.replace_formatting_rules([])
            sheet.clear_all_validation()
            for record in sheet.protections():
                sheet.unprotect(record)
        for region, (sheet_name, _extent) in workbook.named_regions().items():
            if sheet_name in targets:
                workbook.remove_named_region(region)
        logger.info("Reset %d sheet(s).", len(targets))

    def _preflight(self) -> list[str]:
        report = check(self._store)
        for issue in report.issues:
            logger.warning("Schema issue: %s", issue)
        return report.messages() + self._unknown_builders()

    def _unknown_builders(self) -> list[str]:
        issues: list[str] = []
        for schema_name, schema in self._store.items():
            for key, spec in schema.validation_rules.column.items():
                issues.extend(_missing_validation_builder(schema_name, key, spec))
            for key, spec in schema.validation_rules.region.items():
                issues.extend(_missing_validation_builder(schema_name, key, spec))
            entries = [
                *schema.formatting_rules.column.items(),
                *schema.formatting_rules.region.items(),
            ]
            for key, specs in entries:
                for spec in specs or ():
                    if (
                        isinstance(spec, CustomBuilderSpec)
                        and spec.builder not in formatting_builders
                    ):
                        issues.append(
                            f"[{schema_name}] Unknown formatting builder "
                            f"'{spec.builder}' for '{key}'."
                        )
        return issues

    def _abort(
        self, report: InitializationReport, message: str, issues: list[str]
    ) -> InitializationReport:
        report.ok = False
        report.issues = list(issues)
        lines = [message, *(f"- {issue}" for issue in issues)]
        self._notifier.alert("\n".join(lines))
        return report

    def _sync_editors(self, workbook: WorkbookSurface) -> list[str]:
        missing = sorted(set(self._config.editors) - workbook.editors())
        failures: list[str] = []
        for email in missing:
            try:
                workbook.add_editor(email)
            except ExternalOperationError as exc:
                failures.append(str(exc))
        if failures:
            lines = [f"Could not add {len(failures)} editor(s):"]
            lines.extend(f"- {failure}" for failure in failures)
            self._notifier.alert("\n".join(lines))
        return failures

    def _initialize_sheet(
        self,
        workbook: WorkbookSurface,
        schema_name: str,
        schema: SheetSchema,
        sheet: SheetSurface,
    ) -> SheetReport:
        accessor = SchemaAccessor(schema, sheet, schema_name=schema_name)
        report = SheetReport(schema_name=schema_name, sheet=sheet.name)
        for name, locator in accessor.region_locators.items():
            workbook.set_named_region(name, sheet.name, locator)
            report.regions.append(name)

        applicator = RuleApplicator(accessor, self._reconciler, strict=True)
        applicator.apply_formulas()
        applicator.apply_validation()
        applicator.apply_formatting()
        report.apply = applicator.report

        locked = self._reconciler.protect_locked(accessor, skip=applicator.report.protected)
        report.protected = [*applicator.report.protected, *(item.extent for item in locked)]
        logger.info(
            "Sheet %s initialized: %d region(s), %d formula cell(s), %d lock(s).",
            sheet.name,
            len(report.regions),
            applicator.report.formula_cells,
            len(report.protected),
        )
        return report


def _missing_validation_builder(schema_name: str, key: str, spec: object) -> list[str]:
    if isinstance(spec, CustomBuilderSpec) and spec.builder not in validation_builders:
        return [f"[{schema_name}] Unknown validation builder '{spec.builder}' for '{key}'."]
    return []


__all__ = [
    "InitializationReport",
    "LoggingNotifier",
    "Notifier",
    "Orchestrator",
    "SheetReport",
]
