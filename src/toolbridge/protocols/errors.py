"""Shared error types for the protocol and orchestration layers."""


class BridgeError(Exception):
    """Base error for all toolbridge failures."""


class LaunchError(BridgeError):
    """A provider process failed to start or to complete its handshake."""

    def __init__(self, provider: str, cause: str = "") -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(f"Failed to launch provider: {provider}" + (f": {cause}" if cause else ""))


class InvocationError(BridgeError):
    """A tool invocation failed or returned malformed data."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Tool invocation failed: {name}" + (f": {detail}" if detail else ""))


class ConnectionNotReadyError(InvocationError):
    """The target provider connection is missing or not in the Ready state."""

    def __init__(self, provider: str, name: str = "") -> None:
        self.provider = provider
        super().__init__(name or provider, f"provider '{provider}' is not ready")


class ToolResolutionError(BridgeError):
    """A qualified tool name does not map to any connected provider."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class CompletionServiceError(BridgeError):
    """The model backend call itself failed."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Completion service failed" + (f": {detail}" if detail else ""))
