"""Command line interface for assetpipe."""

from __future__ import annotations

import difflib
import time
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax

from assetpipe.cli_support import (
    ConsoleSink,
    build_category_table,
    build_events_table,
    build_summary_table,
    format_scan_line,
    open_catalog,
    resolve_database_path,
    status_payload,
)
from assetpipe.config import AssetPipeConfig, ConfigError, ConfigManager, resolve_with_precedence
from assetpipe.logs import configure_logging
from assetpipe.state import CatalogError, CatalogRepository
from assetpipe.watch import WatchService

console = Console()

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _load_config(ctx: click.Context) -> AssetPipeConfig:
    """Load configuration and set up logging for the current invocation.

    Args:
        ctx: Click context carrying global options.

    Returns:
        AssetPipeConfig: Effective configuration.

    Raises:
        click.ClickException: If the configuration cannot be loaded.
    """
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    configure_logging(config.logging, level_override=ctx.obj.get("log_level"))
    return config


def _resolve_root(path: Optional[str]) -> Path:
    """Return the asset root, prompting for it when PATH was omitted.

    Raises:
        click.ClickException: If the path is not an existing directory.
    """
    if not path:
        path = click.prompt("Asset directory", type=str)
    root = Path(path).expanduser()
    if not root.is_dir():
        raise click.ClickException(f"Directory not found: {root}")
    return root


def _open_catalog(ctx: click.Context, config: AssetPipeConfig) -> CatalogRepository:
    try:
        return open_catalog(config, ctx.obj.get("database"))
    except CatalogError as exc:
        raise click.ClickException(str(exc)) from exc


def _quiet_enabled(ctx: click.Context, quiet: bool, config: AssetPipeConfig) -> bool:
    if ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE:
        return quiet
    return config.cli.quiet_default


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Args:
        target: Mapping to mutate in-place.
        path: Sequence of keys representing the nested location.
        value: Value to assign at the nested location.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _interactive_loop(service: WatchService, sink: ConsoleSink) -> None:
    """Read single-key commands until the operator quits.

    ``r`` forces a full rescan and ``q`` returns. Without a usable terminal
    the loop waits for Ctrl+C instead.
    """
    while True:
        try:
            key = click.getchar()
        except (EOFError, OSError):
            key = ""
        if not key:
            while True:
                time.sleep(1)
        key = key.lower()
        if key == "q":
            sink.emit("[yellow]Shutting down watcher...[/yellow]", mode="summary")
            return
        if key == "r":
            sink.emit("[cyan]Rescanning...[/cyan]", mode="summary")
            report = service.process_once(callback=sink.watch_update)
            sink.emit(format_scan_line(report), mode="summary")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="assetpipe")
@click.option(
    "--database",
    type=click.Path(dir_okay=False, path_type=str),
    help="Catalog database to use instead of storage.database_path.",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    help="Override logging.level for this invocation.",
)
@click.pass_context
def cli(ctx: click.Context, database: Optional[str], log_level: Optional[str]) -> None:
    """Catalog game assets and keep the catalog in sync with the filesystem."""
    ctx.ensure_object(dict)
    ctx.obj["database"] = database
    ctx.obj["log_level"] = log_level


@cli.command()
@click.argument("path", required=False, type=click.Path(path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit the scan result as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(ctx: click.Context, path: Optional[str], json_output: bool, quiet: bool) -> None:
    """Process every supported file under PATH once and print the summary.

    Args:
        ctx: Click context carrying global options.
        path: Asset root; prompted for when omitted.
        json_output: When True, emit a JSON document instead of tables.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If PATH is not a directory or the catalog cannot be opened.
    """
    config = _load_config(ctx)
    root = _resolve_root(path)
    sink = ConsoleSink(console, quiet=_quiet_enabled(ctx, quiet, config) or json_output)

    with _open_catalog(ctx, config) as catalog:
        service = WatchService(config, root, catalog)
        report = service.process_once(callback=sink.watch_update)
        summary = catalog.summary()
        if json_output:
            sink.emit_json(
                {
                    "root": str(report.root),
                    "processed": report.processed,
                    "inserted": report.inserted,
                    "updated": report.updated,
                    "unchanged": report.unchanged,
                    "failed": report.failed,
                    "summary": summary.model_dump(mode="json"),
                }
            )
            return
        sink.emit(format_scan_line(report), mode="summary")
        sink.emit(build_summary_table(summary), mode="summary")


@cli.command()
@click.argument("path", required=False, type=click.Path(path_type=str))
@click.option("--settle", type=float, help="Override watch.settle_delay_seconds.")
@click.option("--once", is_flag=True, help="Run the initial scan and exit.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    path: Optional[str],
    settle: Optional[float],
    once: bool,
    quiet: bool,
) -> None:
    """Scan PATH, then keep the catalog in sync as files change.

    Press ``r`` to force a full rescan and ``q`` (or Ctrl+C) to stop.

    Args:
        ctx: Click context carrying global options.
        path: Asset root; prompted for when omitted.
        settle: Optional settle delay override in seconds.
        once: When True, stop after the initial scan.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If options are invalid or PATH is not a directory.
    """
    if settle is not None and settle < 0:
        raise click.ClickException("--settle must not be negative.")

    config = _load_config(ctx)
    root = _resolve_root(path)
    sink = ConsoleSink(console, quiet=_quiet_enabled(ctx, quiet, config))

    with _open_catalog(ctx, config) as catalog:
        service = WatchService(config, root, catalog, settle_delay=settle)
        report = service.process_once(callback=sink.watch_update)
        sink.emit(format_scan_line(report), mode="summary")
        if once:
            return

        try:
            service.start(sink.watch_update)
        except (OSError, RuntimeError) as exc:
            raise click.ClickException(f"Unable to watch {root}: {exc}") from exc

        sink.emit(
            f"[cyan]Watching {service.root}. Press 'r' to rescan, 'q' to quit.[/cyan]",
            mode="detail",
        )
        try:
            _interactive_loop(service, sink)
        except KeyboardInterrupt:
            sink.emit("[yellow]Watch stopped by user request.[/yellow]", mode="summary")
        finally:
            service.stop()

        sink.emit(build_summary_table(catalog.summary()), mode="summary")


@cli.command()
@click.option("--events", "event_limit", type=click.IntRange(min=0), help="Recent events to show.")
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
@click.pass_context
def status(ctx: click.Context, event_limit: Optional[int], json_output: bool) -> None:
    """Show catalog totals, the per-category breakdown and recent events.

    Raises:
        click.ClickException: If no catalog exists yet.
    """
    config = _load_config(ctx)
    database = resolve_database_path(config, ctx.obj.get("database"))
    if not database.exists():
        raise click.ClickException(
            f"No catalog found at {database}. Run `assetpipe scan PATH` first."
        )
    limit = event_limit if event_limit is not None else config.cli.recent_events_limit

    with _open_catalog(ctx, config) as catalog:
        summary = catalog.summary()
        breakdown = catalog.category_breakdown()
        events = catalog.recent_events(limit) if limit else []

    if json_output:
        console.print_json(data=status_payload(database, summary, breakdown, events))
        return

    console.print(f"[bold]Catalog:[/bold] {database}")
    console.print(build_summary_table(summary))
    if breakdown:
        console.print(build_category_table(breakdown))
    if events:
        console.print(build_events_table(events))
    elif limit:
        console.print("[yellow]No events recorded yet.[/yellow]")


@cli.group()
def config() -> None:
    """Manage assetpipe configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        file_data = manager.load_file_overrides()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'watch.settle_delay_seconds'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=AssetPipeConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    # The header timestamp always changes; compare the body only.
    diff = list(
        difflib.unified_diff(
            [line for line in before if not line.startswith("#")],
            [line for line in after if not line.startswith("#")],
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
