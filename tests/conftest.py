"""Shared fakes for orchestration tests.

``FakeProvider`` stands in for a ProviderConnection; ``ScriptedService``
stands in for the completion service and replays canned responses.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from toolbridge.config.models import ProviderConfig
from toolbridge.core.interface.models import CompletionResponse, ConversationHistory
from toolbridge.core.orchestration.pool import ConnectionPool
from toolbridge.protocols.errors import ConnectionNotReadyError, InvocationError, LaunchError
from toolbridge.protocols.mcp.models import InvocationResult, RawTool

Handler = Callable[[str, dict[str, Any]], str]


def raw_tool(name: str, description: str = "", **properties: str) -> RawTool:
    """A RawTool whose listed properties are all required."""
    return RawTool(
        name=name,
        description=description,
        inputSchema={
            "type": "object",
            "properties": {key: {"type": kind} for key, kind in properties.items()},
            "required": list(properties),
        },
    )


class FakeProvider:
    def __init__(
        self,
        config: ProviderConfig,
        tools: list[RawTool] | None = None,
        handler: Handler | None = None,
        *,
        launch_error: str | None = None,
        close_error: Exception | None = None,
        close_delay: float = 0.0,
    ) -> None:
        self.config = config
        self.tools = tools or []
        self.handler = handler or (lambda name, args: f"{config.name}:{name}")
        self.launch_error = launch_error
        self.close_error = close_error
        self.close_delay = close_delay
        self.ready = False
        self.started = False
        self.close_calls = 0
        self.invocations: list[tuple[str, dict[str, Any]]] = []

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def start(self) -> None:
        self.started = True
        if self.launch_error is not None:
            raise LaunchError(self.name, self.launch_error)
        self.ready = True

    def list_capabilities(self) -> list[RawTool]:
        if not self.ready:
            raise ConnectionNotReadyError(self.name)
        return list(self.tools)

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        request_id: str = "",
    ) -> InvocationResult:
        if not self.ready:
            raise ConnectionNotReadyError(self.name, name)
        if name not in {t.name for t in self.tools}:
            raise InvocationError(name, "no such tool")
        self.invocations.append((name, arguments))
        await asyncio.sleep(0)
        return InvocationResult(request_id=request_id, content=self.handler(name, arguments))

    async def close(self) -> None:
        self.close_calls += 1
        self.ready = False
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if self.close_error is not None:
            raise self.close_error


class ScriptedService:
    """Replays *responses* in order and records what it was sent."""

    def __init__(self, responses: list[CompletionResponse | Exception]) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[ConversationHistory, list[dict[str, Any]] | None]] = []

    async def complete(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
    ) -> CompletionResponse:
        self.calls.append((history.model_copy(deep=True), tools))
        if not self._responses:
            msg = "no scripted response left"
            raise AssertionError(msg)
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeFleet:
    """Builds FakeProviders by config name; usable as a pool connection factory."""

    def __init__(self) -> None:
        self.specs: dict[str, dict[str, Any]] = {}
        self.built: dict[str, FakeProvider] = {}
        self.options: dict[str, dict[str, Any]] = {}

    def add(self, name: str, *tools: RawTool, **kwargs: Any) -> ProviderConfig:
        self.specs[name] = {"tools": list(tools), **kwargs}
        return ProviderConfig(name=name, command="fake")

    def __call__(self, config: ProviderConfig, **options: Any) -> FakeProvider:
        """Build a provider; connection *options* such as timeouts are recorded."""
        provider = FakeProvider(config, **self.specs.get(config.name, {}))
        self.built[config.name] = provider
        self.options[config.name] = options
        return provider

    def configs(self) -> list[ProviderConfig]:
        return [ProviderConfig(name=name, command="fake") for name in self.specs]

    async def start_pool(self, **kwargs: Any) -> ConnectionPool:
        pool = ConnectionPool(self, **kwargs)
        await pool.start_all(self.configs())
        return pool


@pytest.fixture
def fleet() -> FakeFleet:
    return FakeFleet()


@pytest.fixture
def make_service() -> Callable[..., ScriptedService]:
    def _make(*responses: CompletionResponse | Exception) -> ScriptedService:
        return ScriptedService(list(responses))

    return _make


@pytest.fixture
def tool() -> Callable[..., RawTool]:
    return raw_tool
