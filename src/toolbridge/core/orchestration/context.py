"""OrchestrationContext: explicit owner of the pool, catalog and model client.

Replaces ambient module-level clients with one object that has a clear
construction, serving and teardown lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from toolbridge.core.interface.client import ModelClient
from toolbridge.core.interface.config import ModelConfig
from toolbridge.core.orchestration.catalog import DEFAULT_SEPARATOR, ToolCatalog
from toolbridge.core.orchestration.engine import (
    DEFAULT_MAX_ROUNDS,
    ConversationEngine,
    TurnResult,
)
from toolbridge.core.orchestration.pool import ConnectionPool, PoolStartReport

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolbridge.config.models import ProviderConfig
    from toolbridge.config.settings import BridgeSettings
    from toolbridge.core.interface.client import CompletionService

logger = logging.getLogger(__name__)


class OrchestrationContext:
    """Builds the pool and catalog once, then serves queries until closed.

    Usage::

        async with OrchestrationContext(ModelClient(config)) as ctx:
            report = await ctx.start(configs)
            answer = await ctx.process_query("add 2 and 3")
    """

    def __init__(
        self,
        service: CompletionService,
        *,
        pool: ConnectionPool | None = None,
        separator: str = DEFAULT_SEPARATOR,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        parallel_invocations: bool = False,
        system_prompt: str | None = None,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self.service = service
        self.pool = pool or ConnectionPool(close_timeout=shutdown_timeout)
        self.separator = separator
        self.max_rounds = max_rounds
        self.parallel_invocations = parallel_invocations
        self.system_prompt = system_prompt
        self.shutdown_timeout = shutdown_timeout
        self.catalog = ToolCatalog({}, separator=separator)
        self.report: PoolStartReport | None = None
        self._closed = False
        self._inflight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        *,
        service: CompletionService | None = None,
    ) -> OrchestrationContext:
        """Wire a context from :class:`BridgeSettings`."""
        if service is None:
            service = ModelClient(
                ModelConfig(
                    model=settings.model,
                    api_key=settings.api_key,
                    api_base=settings.api_base,
                    max_tokens=settings.max_tokens,
                )
            )
        return cls(
            service,
            pool=ConnectionPool.from_settings(settings),
            separator=settings.separator,
            max_rounds=settings.max_rounds,
            parallel_invocations=settings.parallel_invocations,
            system_prompt=settings.system_prompt,
            shutdown_timeout=settings.shutdown_timeout,
        )

    async def __aenter__(self) -> OrchestrationContext:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    def started(self) -> bool:
        return self.report is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self, configs: Iterable[ProviderConfig]) -> PoolStartReport:
        """Start all providers and build the catalog. Call once."""
        if self._closed:
            msg = "context is closed"
            raise RuntimeError(msg)
        if self.report is not None:
            msg = "context already started"
            raise RuntimeError(msg)

        self.report = await self.pool.start_all(configs)
        self.catalog = ToolCatalog.build(self.pool, separator=self.separator)
        for name, cause in self.report.failed.items():
            logger.warning("Provider %s unavailable: %s", name, cause)
        logger.info(
            "Serving %d tools from %d providers", len(self.catalog), len(self.report.succeeded)
        )
        return self.report

    def engine(self) -> ConversationEngine:
        """A fresh engine bound to this context's catalog and pool."""
        return ConversationEngine(
            self.service,
            self.catalog,
            self.pool,
            max_rounds=self.max_rounds,
            parallel_invocations=self.parallel_invocations,
            system_prompt=self.system_prompt,
        )

    async def run(self, user_text: str) -> TurnResult:
        """Run one query, tracking it so :meth:`close` waits for it."""
        if self._closed:
            msg = "context is closed"
            raise RuntimeError(msg)
        self._inflight += 1
        self._idle.clear()
        try:
            return await self.engine().run(user_text)
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._idle.set()

    async def process_query(self, user_text: str) -> str:
        result = await self.run(user_text)
        return result.text

    async def close(self) -> None:
        """Wait for in-flight queries, then close every provider. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Closing providers with %d queries still in flight", self._inflight)
        await self.pool.close_all()
