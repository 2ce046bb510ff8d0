"""ToolProvider protocol: what the orchestration layer needs from a provider.

:class:`~toolbridge.protocols.mcp.connection.ProviderConnection` satisfies
it; tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolbridge.protocols.mcp.models import InvocationResult, RawTool


@runtime_checkable
class ToolProvider(Protocol):
    """A started session with one provider process."""

    @property
    def name(self) -> str: ...

    @property
    def is_ready(self) -> bool: ...

    async def start(self) -> None:
        """Launch and handshake; raise ``LaunchError`` on any failure."""
        ...

    def list_capabilities(self) -> list[RawTool]:
        """Return the tools cached during the handshake."""
        ...

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        request_id: str = "",
    ) -> InvocationResult:
        """Execute a tool by its raw name and return its result."""
        ...

    async def close(self) -> None:
        """Release the provider. Idempotent and never raises."""
        ...
