"""MCP protocol: Model Context Protocol client over stdio."""

from toolbridge.protocols.mcp.connection import ConnectionState, ProviderConnection
from toolbridge.protocols.mcp.models import (
    InvocationResult,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    RawTool,
)
from toolbridge.protocols.mcp.transport import MCPTransport, StdioTransport

__all__ = [
    "ConnectionState",
    "InvocationResult",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPTransport",
    "ProviderConnection",
    "RawTool",
    "StdioTransport",
]
