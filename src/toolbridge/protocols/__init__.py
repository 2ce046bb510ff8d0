"""Protocol layer: provider sessions and the error taxonomy."""

from toolbridge.protocols.errors import (
    BridgeError,
    CompletionServiceError,
    ConnectionNotReadyError,
    InvocationError,
    LaunchError,
    ToolResolutionError,
)
from toolbridge.protocols.provider import ToolProvider

__all__ = [
    "BridgeError",
    "CompletionServiceError",
    "ConnectionNotReadyError",
    "InvocationError",
    "LaunchError",
    "ToolProvider",
    "ToolResolutionError",
]
