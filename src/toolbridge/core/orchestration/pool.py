"""ConnectionPool: owns the set of provider connections.

Starts N providers concurrently, isolating each provider's launch failure,
and tears them all down concurrently at shutdown.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from toolbridge.protocols.errors import LaunchError
from toolbridge.protocols.mcp.connection import ProviderConnection
from toolbridge.utils.telemetry import (
    ATTR_PROVIDER_COUNT,
    ATTR_PROVIDER_FAILED,
    ATTR_TOOL_COUNT,
    get_tracer,
)

if TYPE_CHECKING:
    from toolbridge.config.models import ProviderConfig
    from toolbridge.config.settings import BridgeSettings
    from toolbridge.protocols.provider import ToolProvider

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)

ConnectionFactory = Callable[["ProviderConfig"], "ToolProvider"]


@dataclass
class PoolStartReport:
    """Outcome of :meth:`ConnectionPool.start_all`.

    ``succeeded`` maps provider name to its tool count, ``failed`` maps
    provider name to the cause of its launch failure. ``duplicates`` lists
    configs skipped because their name was already taken. A skipped config
    is never launched, so it adds nothing to either mapping.
    """

    succeeded: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    duplicates: list[str] = field(default_factory=list)

    @property
    def total_tools(self) -> int:
        return sum(self.succeeded.values())


class ConnectionPool:
    """Ready provider connections keyed by provider name.

    The connection set is only mutated by :meth:`start_all` and
    :meth:`close_all`; everything else reads it.

    Usage::

        pool = ConnectionPool()
        report = await pool.start_all(configs)
        conn = pool.get("calc")
        ...
        await pool.close_all()
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory | None = None,
        *,
        close_timeout: float = 10.0,
    ) -> None:
        self._factory: ConnectionFactory = connection_factory or ProviderConnection
        self._close_timeout = close_timeout
        self._connections: dict[str, ToolProvider] = {}

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> ConnectionPool:
        """A pool whose connections use the timeouts in *settings*."""
        factory: ConnectionFactory = functools.partial(
            ProviderConnection,
            handshake_timeout=settings.handshake_timeout,
            invoke_timeout=settings.invoke_timeout,
        )
        return cls(factory, close_timeout=settings.shutdown_timeout)

    async def __aenter__(self) -> ConnectionPool:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close_all()

    @property
    def names(self) -> list[str]:
        """Names of retained connections, in start order."""
        return list(self._connections)

    def connections(self) -> list[ToolProvider]:
        """Retained connections that are still ``Ready``, in start order."""
        return [c for c in self._connections.values() if c.is_ready]

    def get(self, name: str) -> ToolProvider | None:
        """Look up a ``Ready`` connection by provider name."""
        conn = self._connections.get(name)
        if conn is None or not conn.is_ready:
            return None
        return conn

    def __len__(self) -> int:
        return len(self._connections)

    async def start_all(self, configs: Iterable[ProviderConfig]) -> PoolStartReport:
        """Start every provider concurrently and keep the ones that came up.

        One provider's :class:`LaunchError` never aborts the others. Failed
        attempts are force-closed and discarded.
        """
        report = PoolStartReport()
        pending: list[ProviderConfig] = []
        seen: set[str] = set(self._connections)
        for cfg in configs:
            if cfg.name in seen:
                report.duplicates.append(cfg.name)
                logger.warning("Skipping duplicate provider name: %s", cfg.name)
                continue
            seen.add(cfg.name)
            pending.append(cfg)

        with _tracer.start_as_current_span("pool.start_all") as span:
            span.set_attribute(ATTR_PROVIDER_COUNT, len(pending))
            outcomes = await asyncio.gather(*(self._start_one(cfg) for cfg in pending))

            for cfg, (conn, error) in zip(pending, outcomes):
                if conn is not None:
                    self._connections[cfg.name] = conn
                    report.succeeded[cfg.name] = len(conn.list_capabilities())
                else:
                    report.failed[cfg.name] = error

            span.set_attribute(ATTR_PROVIDER_FAILED, len(report.failed))
            span.set_attribute(ATTR_TOOL_COUNT, report.total_tools)

        return report

    async def close_all(self) -> list[tuple[str, BaseException]]:
        """Close every connection concurrently; the pool is empty afterwards.

        Close failures are logged and returned, never raised. The whole
        teardown is bounded by ``close_timeout``.
        """
        connections = list(self._connections.items())
        self._connections.clear()
        if not connections:
            return []

        tasks = [asyncio.ensure_future(conn.close()) for _, conn in connections]
        done, not_done = await asyncio.wait(tasks, timeout=self._close_timeout)

        failures: list[tuple[str, BaseException]] = []
        for (name, _), task in zip(connections, tasks):
            if task in not_done:
                task.cancel()
                failures.append((name, TimeoutError(f"close timed out after {self._close_timeout}s")))
            elif task.cancelled():
                failures.append((name, asyncio.CancelledError()))
            elif task.exception() is not None:
                failures.append((name, task.exception()))  # type: ignore[arg-type]

        for name, exc in failures:
            logger.warning("Failed to close provider %s: %s", name, exc)
        return failures

    async def _start_one(self, cfg: ProviderConfig) -> tuple[ToolProvider | None, str]:
        conn: ToolProvider | None = None
        try:
            conn = self._factory(cfg)
            await conn.start()
        except LaunchError as exc:
            cause = exc.cause or str(exc)
        except Exception as exc:
            cause = str(exc) or exc.__class__.__name__
        else:
            return conn, ""

        logger.warning("Failed to connect to provider %s: %s", cfg.name, cause)
        if conn is not None:
            await conn.close()
        return None, cause
