"""Command line interface for the node file collector."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from filecollector.agent import bootstrap, run_agent, shutdown
from filecollector.collector import CycleResult
from filecollector.config import CollectorConfig, ConfigError, ConfigManager
from filecollector.log import configure_logging
from filecollector.storage import ConnectError, Database, MigrationError

LOGGER = logging.getLogger(__name__)

console = Console()

_MASK = "********"


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool = False,
    original: Exception | None = None,
) -> None:
    """Log a startup failure and terminate the command with exit status 1.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    LOGGER.error(message, extra={"code": code})
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _load_config(
    config_path: Optional[str],
    *,
    cli_overrides: dict[str, Any] | None = None,
    include_env: bool = True,
    json_output: bool = False,
) -> CollectorConfig:
    """Resolve configuration or exit through :func:`_handle_cli_error`."""
    manager = ConfigManager(Path(config_path) if config_path else None)
    try:
        return manager.load(cli_overrides=cli_overrides, include_env=include_env)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # pragma: no cover - _handle_cli_error always raises


def _masked(config: CollectorConfig) -> dict[str, Any]:
    data = config.model_dump(mode="python")
    if data["database"].get("password"):
        data["database"]["password"] = _MASK
    return data


def _emit_cycle(result: CycleResult, config: CollectorConfig, *, json_output: bool) -> None:
    """Render one cycle outcome as a table or JSON payload."""
    payload = {
        "node_name": config.node_name,
        "mount_path": config.collector.mount_path,
        "started_at": result.started_at.isoformat(),
        "ok": result.ok,
        "file_count": result.file_count,
        "duration_ms": round(result.duration_ms, 3),
        "store_duration_ms": (
            round(result.store_duration_ms, 3) if result.store_duration_ms is not None else None
        ),
        "collection_id": result.collection_id,
        "error_type": result.error_type,
        "error": str(result.error) if result.error is not None else None,
    }
    if json_output:
        console.print_json(data=payload)
        return

    table = Table(title="Collection cycle", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in payload.items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)
    if result.ok:
        console.print(
            f"[green]Collection summary for {config.collector.mount_path}: "
            f"files={result.file_count}, collection_id={result.collection_id}.[/green]"
        )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="filecollector")
def cli() -> None:
    """Snapshot a mounted directory into a relational store on a fixed interval.

    Returns:
        None: This function is invoked for its side effects.
    """


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file.")
@click.option("--mount-path", type=str, help="Override the directory to scan.")
@click.option("--interval-minutes", type=int, help="Override minutes between cycles.")
@click.option("--once", is_flag=True, help="Run a single collection cycle and exit.")
@click.option("--json", "json_output", is_flag=True, help="Emit the --once result as JSON.")
def run(
    config_path: Optional[str],
    mount_path: Optional[str],
    interval_minutes: Optional[int],
    once: bool,
    json_output: bool,
) -> None:
    """Start the collector and run until SIGINT or SIGTERM.

    Args:
        config_path: Optional YAML configuration file.
        mount_path: Optional mount path override.
        interval_minutes: Optional interval override in minutes.
        once: When True, run exactly one cycle and exit.
        json_output: When True, print the one-shot result as JSON.

    Raises:
        click.ClickException: On any startup failure, a failed one-shot cycle, or
            a collector crash.
    """
    # Keep stdout a single JSON document in --json mode.
    log_stream = sys.stderr if json_output else None
    configure_logging("info", stream=log_stream)

    overrides: dict[str, Any] = {}
    if mount_path:
        overrides["collector.mount_path"] = mount_path
    if interval_minutes is not None:
        overrides["collector.interval_minutes"] = interval_minutes

    config = _load_config(config_path, cli_overrides=overrides, json_output=json_output)
    configure_logging(config.logging.level, stream=log_stream)
    LOGGER.info(
        "Configuration loaded",
        extra={
            "node_name": config.node_name,
            "mount_path": config.collector.mount_path,
            "interval_minutes": config.collector.interval_minutes,
            "db_host": config.database.host,
        },
    )

    if once:
        try:
            runtime = bootstrap(config)
        except (ConnectError, MigrationError) as exc:
            _handle_cli_error(str(exc), code="startup_error", json_output=json_output, original=exc)
            return
        try:
            result = runtime.service.run_cycle()
        finally:
            shutdown(runtime)
        _emit_cycle(result, config, json_output=json_output)
        if not result.ok:
            raise SystemExit(1)
        return

    try:
        outcome = run_agent(config)
    except (ConnectError, MigrationError) as exc:
        _handle_cli_error(str(exc), code="startup_error", original=exc)
        return

    if not outcome.graceful:
        raise click.ClickException(f"File collector stopped with an error: {outcome.error}")


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file.")
def migrate(config_path: Optional[str]) -> None:
    """Create the snapshot tables if they do not exist.

    Args:
        config_path: Optional YAML configuration file.

    Raises:
        click.ClickException: If configuration, connection, or migration fails.
    """
    configure_logging("info")
    config = _load_config(config_path)
    configure_logging(config.logging.level)

    try:
        database = Database.connect(config.database)
    except ConnectError as exc:
        _handle_cli_error(str(exc), code="connect_error", original=exc)
        return
    try:
        database.migrate()
    except MigrationError as exc:
        _handle_cli_error(str(exc), code="migration_error", original=exc)
    finally:
        database.close()

    console.print("[green]Database schema is up to date.[/green]")


@cli.group()
def config() -> None:
    """Inspect collector configuration.

    Returns:
        None: This function is invoked for its side effects.
    """


@config.command("view")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file.")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(config_path: Optional[str], no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        config_path: Optional YAML configuration file.
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    config_obj = _load_config(config_path, include_env=not no_env)
    yaml_text = yaml.safe_dump(_masked(config_obj), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


__all__ = ["cli"]
