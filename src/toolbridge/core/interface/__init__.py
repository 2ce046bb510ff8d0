"""Completion service interface and the canonical message schema."""

from toolbridge.core.interface.client import CompletionService, ModelClient
from toolbridge.core.interface.config import ModelConfig
from toolbridge.core.interface.models import (
    CanonicalMessage,
    CompletionResponse,
    ContentPart,
    ConversationHistory,
    ResponseSegment,
    TextContent,
    TextSegment,
    ToolCall,
    ToolCallSegment,
    ToolResult,
)
from toolbridge.core.interface.transpiler import Transpiler

__all__ = [
    "CanonicalMessage",
    "CompletionResponse",
    "CompletionService",
    "ContentPart",
    "ConversationHistory",
    "ModelClient",
    "ModelConfig",
    "ResponseSegment",
    "TextContent",
    "TextSegment",
    "ToolCall",
    "ToolCallSegment",
    "ToolResult",
    "Transpiler",
]
