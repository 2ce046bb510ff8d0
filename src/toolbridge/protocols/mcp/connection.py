"""ProviderConnection: one live session to one tool-provider process.

Launches the process, performs the ``initialize`` / ``tools/list``
handshake, and serves ``tools/call`` requests until closed. A connection
is never resurrected: once ``Closed`` it stays closed for the session.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import TYPE_CHECKING, Any, cast

from pydantic import ValidationError

from toolbridge import __version__
from toolbridge.protocols.errors import ConnectionNotReadyError, InvocationError, LaunchError
from toolbridge.protocols.mcp.models import (
    PROTOCOL_VERSION,
    InvocationResult,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    RawTool,
)
from toolbridge.protocols.mcp.transport import MCPTransport, StdioTransport
from toolbridge.utils.telemetry import ATTR_PROVIDER, ATTR_TOOL_COUNT, ATTR_TOOL_NAME, get_tracer

if TYPE_CHECKING:
    from toolbridge.config.models import ProviderConfig

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


class ProviderConnection:
    """Async session with a single MCP provider process.

    Satisfies the :class:`~toolbridge.protocols.provider.ToolProvider` protocol.

    Usage::

        cfg = ProviderConfig(name="calc", command="python3", args=["calc.py"])
        async with ProviderConnection(cfg) as conn:
            tools = conn.list_capabilities()
            result = await conn.invoke("add", {"a": 2, "b": 3})
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        handshake_timeout: float = 30.0,
        invoke_timeout: float | None = None,
    ) -> None:
        self.config = config
        self.state = ConnectionState.DISCONNECTED
        self._handshake_timeout = handshake_timeout
        self._invoke_timeout = invoke_timeout
        self._transport: MCPTransport | None = None
        self._capabilities: list[RawTool] = []
        self._known: set[str] = set()
        self._next_id = 1
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    async def __aenter__(self) -> ProviderConnection:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch the process and run the capability-listing handshake.

        Raises:
            LaunchError: On spawn failure, handshake timeout, or a malformed
                capability response. The connection is ``Closed`` afterwards.
        """
        if self.state is not ConnectionState.DISCONNECTED:
            raise LaunchError(self.name, f"cannot start from state '{self.state.value}'")

        self.state = ConnectionState.CONNECTING
        with _tracer.start_as_current_span("provider.start") as span:
            span.set_attribute(ATTR_PROVIDER, self.name)
            try:
                self._transport = self._create_transport()
                await asyncio.wait_for(self._handshake(), timeout=self._handshake_timeout)
            except asyncio.TimeoutError as exc:
                await self.close()
                raise LaunchError(
                    self.name, f"handshake timed out after {self._handshake_timeout}s"
                ) from exc
            except Exception as exc:
                await self.close()
                raise LaunchError(self.name, str(exc) or exc.__class__.__name__) from exc

            self.state = ConnectionState.READY
            span.set_attribute(ATTR_TOOL_COUNT, len(self._capabilities))

        logger.info(
            "Connected to provider %s with tools: %s",
            self.name,
            [t.name for t in self._capabilities],
        )

    def list_capabilities(self) -> list[RawTool]:
        """Return the tools cached during the handshake."""
        if not self.is_ready:
            raise ConnectionNotReadyError(self.name)
        return list(self._capabilities)

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        request_id: str = "",
    ) -> InvocationResult:
        """Send ``tools/call`` for *name* and await the matching response.

        Invocations on one connection are serialised. A transport failure or
        an expired ``invoke_timeout`` closes the connection for good. So does
        cancelling the caller while a request is outstanding.
        """
        if not self.is_ready:
            raise ConnectionNotReadyError(self.name, name)
        if name not in self._known:
            raise InvocationError(name, f"provider '{self.name}' has no such tool")

        with _tracer.start_as_current_span("tool.invoke") as span:
            span.set_attribute(ATTR_PROVIDER, self.name)
            span.set_attribute(ATTR_TOOL_NAME, name)
            async with self._lock:
                # Another caller may have lost the connection while we waited.
                if not self.is_ready:
                    raise ConnectionNotReadyError(self.name, name)
                logger.debug("Invoking %s on provider %s", name, self.name)
                try:
                    response = await asyncio.wait_for(
                        self._send_request("tools/call", {"name": name, "arguments": arguments}),
                        timeout=self._invoke_timeout,
                    )
                except asyncio.TimeoutError as exc:
                    await self.close()
                    raise InvocationError(
                        name, f"timed out after {self._invoke_timeout}s"
                    ) from exc
                except (RuntimeError, OSError, ValueError, ValidationError) as exc:
                    await self.close()
                    raise InvocationError(name, f"transport failure: {exc}") from exc
                except asyncio.CancelledError:
                    # The response may still be in the pipe; never reuse the stream.
                    await asyncio.shield(self.close())
                    raise

        if response.error is not None:
            raise InvocationError(name, response.error.message)
        return self._to_result(name, response, request_id)

    async def close(self) -> None:
        """Terminate the process. Idempotent and never raises."""
        transport = self._transport
        self._transport = None
        self.state = ConnectionState.CLOSED
        if transport is None:
            return
        try:
            await transport.close()
        except Exception:
            logger.warning("Error while closing provider %s", self.name, exc_info=True)

    def _create_transport(self) -> MCPTransport:
        """Build the stdio transport from the provider config."""
        return StdioTransport(
            command=self.config.command,
            args=self.config.args,
            cwd=self.config.cwd,
            env=dict(self.config.env) if self.config.env else None,
        )

    async def _handshake(self) -> None:
        """Connect, ``initialize``, and cache ``tools/list``."""
        assert self._transport is not None
        await self._transport.connect()

        init = await self._send_request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "toolbridge", "version": __version__},
            },
        )
        if init.error is not None:
            msg = f"initialize rejected: {init.error.message}"
            raise RuntimeError(msg)
        await self._transport.send(
            JsonRpcNotification(method="notifications/initialized").model_dump()
        )

        listing = await self._send_request("tools/list")
        if listing.error is not None:
            msg = f"tools/list rejected: {listing.error.message}"
            raise RuntimeError(msg)
        raw_tools = (listing.result or {}).get("tools", [])
        if not isinstance(raw_tools, list):
            msg = "malformed tools/list response"
            raise ValueError(msg)
        self._capabilities = [
            RawTool.model_validate(raw) for raw in cast("list[dict[str, Any]]", raw_tools)
        ]
        self._known = {t.name for t in self._capabilities}

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> JsonRpcResponse:
        """Send a JSON-RPC request and wait for the response with the same id."""
        if self._transport is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)

        request_id = self._next_id
        self._next_id += 1

        request = JsonRpcRequest(method=method, id=request_id, params=params or {})
        await self._transport.send(request.model_dump())
        while True:
            raw = await self._transport.receive()
            # Notifications and server-initiated requests carry no matching id.
            if raw.get("id") == request_id and "method" not in raw:
                return JsonRpcResponse.model_validate(raw)
            logger.debug("Skipping unrelated message from %s: %s", self.name, raw.get("method"))

    @staticmethod
    def _to_result(name: str, response: JsonRpcResponse, request_id: str) -> InvocationResult:
        """Flatten a ``tools/call`` result into text.

        Raises:
            InvocationError: If ``content`` is not a list of content objects.
        """
        result = response.result or {}
        content = result.get("content", [])
        if not isinstance(content, list) or not all(isinstance(item, dict) for item in content):
            raise InvocationError(name, "malformed tools/call result")
        items = cast("list[dict[str, Any]]", content)
        parts = [str(item.get("text", "")) for item in items if item.get("type") == "text"]
        text = "\n".join(parts) if parts else json.dumps(result)
        return InvocationResult(
            request_id=request_id,
            content=text,
            is_error=bool(result.get("isError", False)),
        )
