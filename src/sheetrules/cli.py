from __future__ import annotations

import argparse
from collections.abc import Mapping
import importlib
import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from .config import EngineConfig
from .dispatch import EditEvent
from .errors import ConfigError, SheetRulesError
from .orchestrator import Orchestrator
from .schema.models import SchemaStore
from .schema.validator import check
from .shared.a1 import is_a1_extent, parse_extent
from .shared.output_path import (
    OnConflictPolicy,
    apply_conflict_policy,
    resolve_output_path,
)
from .surface.base import CellValue

logger = logging.getLogger(__name__)

Command = Literal["validate", "init", "edit"]


class CliConfig(BaseModel):
    """Parsed command line."""

    command: Command
    schema_ref: str = Field(..., description="Schema object as module:attribute.")
    workbook: Path | None = Field(default=None, description="Workbook path.")
    out: Path | None = Field(default=None, description="Output workbook path.")
    on_conflict: OnConflictPolicy = Field(
        default="overwrite", description="Output conflict policy."
    )
    debug: bool = Field(default=False, description="Use the development sheet.")
    editors: list[str] = Field(default_factory=list, description="Editor allow-list.")
    sheet: str | None = Field(default=None, description="Edited sheet name.")
    cell: str | None = Field(default=None, description="Edited cell (A1).")
    value: str | None = Field(default=None, description="New cell value.")
    log_level: str = Field(default="INFO", description="Logging level.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")


def main(argv: list[str] | None = None) -> int:
    """Run the sheetrules command line.

    Args:
        argv: Optional CLI arguments for testing.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    config = _parse_args(argv)
    _configure_logging(config)
    try:
        if config.command == "validate":
            return run_validate(config)
        if config.command == "init":
            return run_init(config)
        return run_edit(config)
    except ConfigError as exc:
        logger.error("%s", exc.describe())
        return 1
    except SheetRulesError as exc:
        logger.error("sheetrules %s failed: %s", config.command, exc)
        return 1


def load_schema(ref: str) -> SchemaStore:
    """Load a schema store referenced as ``module:attribute``.

    The attribute may be a ``SchemaStore`` or a schema literal mapping.

    Raises:
        ConfigError: If the reference cannot be resolved.
    """
    module_name, sep, attribute = ref.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(f"Schema reference must look like module:attribute: {ref}")
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        raise ConfigError(f"Schema module not found: {module_name}") from exc
    try:
        target = getattr(module, attribute)
    except AttributeError as exc:
        raise ConfigError(f"Schema attribute not found: {ref}") from exc
    if isinstance(target, SchemaStore):
        return target
    if isinstance(target, Mapping):
        return SchemaStore.from_literal(target)
    raise ConfigError(f"{ref} is neither a SchemaStore nor a schema mapping.")


def run_validate(config: CliConfig) -> int:
    """Check a schema and print one line per issue."""
    report = check(load_schema(config.schema_ref))
    for message in report.messages():
        print(message)
    if report.ok:
        logger.info("Schema %s is valid.", config.schema_ref)
        return 0
    logger.error("Schema %s has %d issue(s).", config.schema_ref, len(report.issues))
    return 1


def run_init(config: CliConfig) -> int:
    """Initialize a workbook and save the result."""
    from .surface.openpyxl_surface import open_workbook

    store = load_schema(config.schema_ref)
    workbook_path = _require_workbook(config)
    output_path = _output_path(workbook_path, config)
    if output_path is None:
        return 0
    engine_config = _engine_config(config)
    with open_workbook(workbook_path, grid_rows=engine_config.grid_rows) as surface:
        report = Orchestrator(store, engine_config).initialize(surface)
        if not report.ok:
            return 1
        surface.save(output_path)
    print(report.model_dump_json(indent=2))
    logger.info("Wrote %s", output_path)
    return 0


def run_edit(config: CliConfig) -> int:
    """Write one value, dispatch the edit and save the result."""
    from .surface.openpyxl_surface import open_workbook

    if config.sheet is None or config.cell is None:
        raise ConfigError("edit requires --sheet and --cell.")
    if not is_a1_extent(config.cell) or not parse_extent(config.cell).is_single_cell:
        raise ConfigError(f"edit --cell must be a single A1 cell: {config.cell}")
    store = load_schema(config.schema_ref)
    workbook_path = _require_workbook(config)
    output_path = _output_path(workbook_path, config)
    if output_path is None:
        return 0
    engine_config = _engine_config(config)
    with open_workbook(workbook_path, grid_rows=engine_config.grid_rows) as surface:
        sheet = surface.sheet(config.sheet)
        if sheet is None:
            raise ConfigError(f"Sheet not found: {config.sheet}")
        value = _coerce_value(config.value)
        old_value = sheet.read_values(config.cell)[0][0]
        sheet.write_values(config.cell, [[value]])
        event = EditEvent(
            sheet=config.sheet, range=config.cell, old_value=old_value, value=value
        )
        result = Orchestrator(store, engine_config).handle_edit(surface, event)
        surface.save(output_path)
    if result is not None:
        print(result.model_dump_json(indent=2))
    logger.info("Wrote %s", output_path)
    return 0


def _require_workbook(config: CliConfig) -> Path:
    if config.workbook is None:
        raise ConfigError(f"{config.command} requires --workbook.")
    if not config.workbook.is_file():
        raise ConfigError(f"Workbook not found: {config.workbook}")
    return config.workbook


def _output_path(workbook_path: Path, config: CliConfig) -> Path | None:
    resolved = resolve_output_path(workbook_path, config.out)
    output_path, warning, skipped = apply_conflict_policy(resolved, config.on_conflict)
    if warning is not None:
        logger.warning("%s", warning)
    if skipped:
        return None
    return output_path


def _engine_config(config: CliConfig) -> EngineConfig:
    overrides: dict[str, object] = {}
    if config.debug:
        overrides["debug"] = True
    if config.editors:
        overrides["editors"] = tuple(config.editors)
    return EngineConfig.from_env(**overrides)


def _coerce_value(value: str | None) -> CellValue:
    if value is None or value == "":
        return None
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def _parse_args(argv: list[str] | None) -> CliConfig:
    """Parse CLI arguments into a CLI config.

    Args:
        argv: Optional CLI argument list.

    Returns:
        Parsed CLI configuration.
    """
    parser = argparse.ArgumentParser(
        prog="sheetrules", description="Apply declarative sheet schemas to xlsx workbooks."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument("--log-file", type=Path, help="Optional log file path.")
    commands = parser.add_subparsers(dest="command", required=True)

    validate = commands.add_parser("validate", help="Check schema integrity.")
    _add_schema_argument(validate)

    init = commands.add_parser("init", help="Initialize a workbook from a schema.")
    _add_schema_argument(init)
    _add_workbook_arguments(init)
    init.add_argument(
        "--debug",
        action="store_true",
        help="Target the development sheet and reset it first.",
    )
    init.add_argument(
        "--editor",
        action="append",
        default=[],
        help="Editor address (can be specified multiple times).",
    )

    edit = commands.add_parser("edit", help="Dispatch one cell edit.")
    _add_schema_argument(edit)
    _add_workbook_arguments(edit)
    edit.add_argument("--sheet", required=True, help="Edited sheet name.")
    edit.add_argument("--cell", required=True, help="Edited cell (A1).")
    edit.add_argument("--value", default=None, help="New value for the cell.")

    args = parser.parse_args(argv)
    return CliConfig(
        command=args.command,
        schema_ref=args.schema,
        workbook=getattr(args, "workbook", None),
        out=getattr(args, "out", None),
        on_conflict=getattr(args, "on_conflict", "overwrite"),
        debug=bool(getattr(args, "debug", False)),
        editors=list(getattr(args, "editor", [])),
        sheet=getattr(args, "sheet", None),
        cell=getattr(args, "cell", None),
        value=getattr(args, "value", None),
        log_level=args.log_level,
        log_file=args.log_file,
    )


def _add_schema_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--schema", required=True, help="Schema object as module:attribute."
    )


def _add_workbook_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workbook", type=Path, required=True, help="Workbook path.")
    parser.add_argument("--out", type=Path, help="Output workbook path.")
    parser.add_argument(
        "--on-conflict",
        choices=["overwrite", "skip", "rename"],
        default="overwrite",
        help="Output conflict policy (overwrite/skip/rename).",
    )


def _configure_logging(config: CliConfig) -> None:
    """Configure logging for the CLI process.

    Args:
        config: CLI configuration.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=config.log_level.upper(),
        handlers=handlers,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["CliConfig", "load_schema", "main"]
