"""Shared CLI options and output formatters."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from toolbridge.config.errors import ConfigError
from toolbridge.config.loader import collect_configs

if TYPE_CHECKING:
    from toolbridge.config.models import ProviderConfig
    from toolbridge.core.orchestration.catalog import ToolCatalog
    from toolbridge.core.orchestration.pool import PoolStartReport

console = Console()

F = TypeVar("F", bound=Callable[..., Any])


def provider_options(func: F) -> F:
    """Attach the ``SCRIPTS...`` argument and ``--config`` option."""
    func = click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Providers file (YAML or JSON).",
    )(func)
    func = click.argument("scripts", nargs=-1, type=click.Path(exists=True, dir_okay=False))(func)
    return func


def log_level_option(func: F) -> F:
    return click.option(
        "--log-level",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
        default=None,
        help="Logging level (defaults to TOOLBRIDGE_LOG_LEVEL).",
    )(func)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_configs(scripts: tuple[str, ...], config_path: Path | None) -> list[ProviderConfig]:
    """Resolve providers from the command line, exiting on bad input."""
    try:
        configs = collect_configs(scripts, config_path)
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc
    if not configs:
        msg = "Provide at least one server script or --config file."
        raise click.UsageError(msg)
    return configs


def print_start_report(report: PoolStartReport) -> None:
    """Pretty-print which providers came up and which failed."""
    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for name, count in report.succeeded.items():
        table.add_row(name, "[green]ready[/green]", f"{count} tool(s)")
    for name, cause in report.failed.items():
        table.add_row(name, "[red]failed[/red]", _truncate(cause))
    for name in report.duplicates:
        table.add_row(name, "[yellow]skipped[/yellow]", "duplicate provider name")

    console.print(table)


def print_catalog(catalog: ToolCatalog) -> None:
    """Pretty-print the unified tool namespace as a table."""
    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Description")

    for tool in catalog.tools():
        table.add_row(tool.qualified_name, tool.owner_provider, _truncate(tool.description))

    console.print(table)
    for tool in catalog.dropped:
        console.print(
            f"[yellow]Dropped {tool.raw_name} from {tool.owner_provider}: "
            f"name {tool.qualified_name} is already taken[/yellow]"
        )


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
