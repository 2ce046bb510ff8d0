"""``toolbridge tools``: inspect the unified tool catalog."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from toolbridge.cli_commands._output import (
    configure_logging,
    console,
    load_configs,
    log_level_option,
    print_catalog,
    print_start_report,
    provider_options,
)

if TYPE_CHECKING:
    from pathlib import Path

    from toolbridge.core.orchestration.catalog import ToolCatalog
    from toolbridge.core.orchestration.pool import PoolStartReport


@click.group()
def tools() -> None:
    """Discover and inspect tools."""


@tools.command("list")
@provider_options
@click.option(
    "--separator",
    default=None,
    help="Provider/tool separator (defaults to TOOLBRIDGE_SEPARATOR).",
)
@log_level_option
def list_tools(
    scripts: tuple[str, ...],
    config_path: Path | None,
    separator: str | None,
    log_level: str | None,
) -> None:
    """Start the providers and list the tools the model would see.

    SCRIPTS are .py or .js MCP server scripts.
    """
    from toolbridge.config.settings import BridgeSettings
    from toolbridge.core.orchestration.catalog import ToolCatalog
    from toolbridge.core.orchestration.pool import ConnectionPool

    settings = BridgeSettings()
    if separator:
        settings.separator = separator
    configure_logging(log_level or settings.log_level)
    configs = load_configs(scripts, config_path)

    async def _discover() -> tuple[PoolStartReport, ToolCatalog]:
        async with ConnectionPool.from_settings(settings) as pool:
            report = await pool.start_all(configs)
            return report, ToolCatalog.build(pool, separator=settings.separator)

    report, catalog = asyncio.run(_discover())

    print_start_report(report)
    if not len(catalog):
        console.print("[yellow]No tools discovered.[/yellow]")
        return
    print_catalog(catalog)
