"""``toolbridge query``: answer one query from the command line."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from toolbridge.cli_commands._output import (
    configure_logging,
    console,
    load_configs,
    log_level_option,
    print_start_report,
    provider_options,
)

if TYPE_CHECKING:
    from pathlib import Path


@click.command()
@click.argument("text")
@provider_options
@click.option("--model", "-m", default=None, help="LiteLLM model string.")
@click.option("--verbose", "-v", is_flag=True, help="Show provider start-up report.")
@log_level_option
def query(
    text: str,
    scripts: tuple[str, ...],
    config_path: Path | None,
    model: str | None,
    verbose: bool,
    log_level: str | None,
) -> None:
    """Answer TEXT using tools from SCRIPTS and/or --config providers."""
    from toolbridge.config.settings import BridgeSettings
    from toolbridge.core.orchestration.context import OrchestrationContext

    settings = BridgeSettings()
    if model:
        settings.model = model
    configure_logging(log_level or settings.log_level)
    configs = load_configs(scripts, config_path)

    async def _run() -> str:
        async with OrchestrationContext.from_settings(settings) as ctx:
            report = await ctx.start(configs)
            if verbose:
                print_start_report(report)
            return await ctx.process_query(text)

    try:
        answer = asyncio.run(_run())
    except Exception as exc:
        console.print(f"[red]Query failed:[/red] {exc}")
        sys.exit(1)

    click.echo(answer)
