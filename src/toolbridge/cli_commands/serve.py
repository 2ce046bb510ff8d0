"""``toolbridge serve``: run the HTTP API."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from toolbridge.cli_commands._output import (
    configure_logging,
    console,
    load_configs,
    log_level_option,
    provider_options,
)

if TYPE_CHECKING:
    from pathlib import Path


@click.command()
@provider_options
@click.option("--host", default=None, help="Bind address (defaults to TOOLBRIDGE_HOST).")
@click.option("--port", "-p", type=int, default=None, help="Port (defaults to TOOLBRIDGE_PORT).")
@click.option("--telemetry", is_flag=True, help="Export OpenTelemetry spans (OTLP if TOOLBRIDGE_OTLP_ENDPOINT is set, else stdout).")
@log_level_option
def serve(
    scripts: tuple[str, ...],
    config_path: Path | None,
    host: str | None,
    port: int | None,
    telemetry: bool,
    log_level: str | None,
) -> None:
    """Serve /health and /chat backed by SCRIPTS and/or --config providers."""
    import uvicorn

    from toolbridge.config.settings import BridgeSettings
    from toolbridge.core.orchestration.context import OrchestrationContext
    from toolbridge.server.app import create_app

    settings = BridgeSettings()
    if host:
        settings.host = host
    if port:
        settings.port = port
    level = log_level or settings.log_level
    configure_logging(level)
    configs = load_configs(scripts, config_path)

    context = OrchestrationContext.from_settings(settings)
    app = create_app(context, settings, configs=configs)
    if telemetry:
        from toolbridge.utils.telemetry import configure_telemetry

        app.state.tracer_provider = configure_telemetry(otlp_endpoint=settings.otlp_endpoint)

    console.print(f"Server running on http://{settings.host}:{settings.port}")
    console.print(f"Health check: http://{settings.host}:{settings.port}/health")
    console.print(f"Chat endpoint: http://{settings.host}:{settings.port}/chat")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=level.lower())
