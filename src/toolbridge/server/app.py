"""FastAPI application factory and lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolbridge import __version__
from toolbridge.config.settings import BridgeSettings
from toolbridge.server.routers import chat, health
from toolbridge.utils.telemetry import shutdown_telemetry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from toolbridge.config.models import ProviderConfig
    from toolbridge.core.orchestration.context import OrchestrationContext

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start providers on startup and close them exactly once on shutdown.

    uvicorn turns SIGTERM/SIGINT into a lifespan shutdown, so providers are
    closed before the process exits.
    """
    context: OrchestrationContext = app.state.context
    configs: Sequence[ProviderConfig] | None = app.state.provider_configs
    if configs is not None and not context.started:
        report = await context.start(configs)
        logger.info(
            "Providers up: %s; failed: %s",
            sorted(report.succeeded),
            sorted(report.failed) or "none",
        )

    yield

    logger.info("Shutting down, closing providers")
    await context.close()
    shutdown_telemetry(app.state.tracer_provider)


def create_app(
    context: OrchestrationContext,
    settings: BridgeSettings | None = None,
    configs: Sequence[ProviderConfig] | None = None,
) -> FastAPI:
    """Create the FastAPI app serving *context*.

    Args:
        context: The orchestration context to serve.
        settings: Optional settings; loaded from the environment if omitted.
        configs: Providers to start during lifespan startup. Leave ``None``
            when *context* was already started.
    """
    settings = settings or BridgeSettings()

    app = FastAPI(
        title="toolbridge",
        description="Chat model with tools from many MCP providers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.context = context
    app.state.provider_configs = configs
    app.state.tracer_provider = None

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(chat.router)

    return app
