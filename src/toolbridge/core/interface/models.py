"""Canonical Message Schema (CMS): the internal message format.

Conversation history is kept in this provider-neutral form; the
transpiler converts it into the chat payload LiteLLM expects. Completion
responses are a tagged union of text and tool-call segments.
"""

from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Content Parts
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


ContentPart = TextContent


# ---------------------------------------------------------------------------
# Tool Calling: structured tool invocations and results
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A tool invocation requested by the completion service.

    ``parse_error`` is set when the service sent arguments that were not a
    JSON object; ``arguments`` is then empty.
    """

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    name: str
    arguments: dict[str, Any] = {}
    parse_error: str | None = None


class ToolResult(BaseModel):
    """The result of executing a tool, returned as a tool-role message."""

    tool_call_id: str
    content: list[ContentPart] = []
    is_error: bool = False

    @classmethod
    def from_text(cls, tool_call_id: str, text: str, *, is_error: bool = False) -> "ToolResult":
        """Create a ToolResult with a single text content part."""
        parts: list[ContentPart] = [TextContent(text=text)]
        return cls(tool_call_id=tool_call_id, content=parts, is_error=is_error)


# ---------------------------------------------------------------------------
# Canonical Message: the core message type
# ---------------------------------------------------------------------------


class CanonicalMessage(BaseModel):
    """A single message in the canonical format.

    Roles:
    - system: instruction/context messages
    - user: human input
    - assistant: model output (may include tool_calls)
    - tool: tool execution results (must include tool_call_id)
    """

    role: Literal["system", "user", "assistant", "tool"]
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    is_error: bool = False
    metadata: dict[str, Any] = {}

    @property
    def text(self) -> str:
        """Extract concatenated text from all TextContent parts."""
        return "".join(part.text for part in self.content)

    @classmethod
    def system(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        """Create a system message."""
        return cls(role="system", content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        """Create a user message."""
        return cls(role="user", content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> "CanonicalMessage":
        """Create an assistant message."""
        content: list[ContentPart] = [TextContent(text=text)] if text else []
        return cls(role="assistant", content=content, tool_calls=tool_calls, metadata=metadata)

    @classmethod
    def tool(cls, result: ToolResult, **metadata: Any) -> "CanonicalMessage":
        """Create a tool-result message."""
        return cls(
            role="tool",
            content=list(result.content),
            tool_call_id=result.tool_call_id,
            is_error=result.is_error,
            metadata=metadata,
        )


# ---------------------------------------------------------------------------
# Conversation History: ordered container of messages
# ---------------------------------------------------------------------------


class ConversationHistory(BaseModel):
    """An ordered, append-only sequence of canonical messages."""

    messages: list[CanonicalMessage] = []

    def append(self, message: CanonicalMessage) -> None:
        """Append a message to the history."""
        self.messages.append(message)

    def index_of_result(self, request_id: str) -> int | None:
        """Return the position of the tool result for *request_id*, if any."""
        for i, msg in enumerate(self.messages):
            if msg.role == "tool" and msg.tool_call_id == request_id:
                return i
        return None

    def tool_result(self, request_id: str) -> CanonicalMessage | None:
        """Return the tool-result message correlated to *request_id*."""
        index = self.index_of_result(request_id)
        return None if index is None else self.messages[index]

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        return iter(self.messages)


# ---------------------------------------------------------------------------
# Completion responses: tagged union of segments
# ---------------------------------------------------------------------------


class TextSegment(BaseModel):
    """Plain text emitted by the completion service."""

    kind: Literal["text"] = "text"
    text: str


class ToolCallSegment(BaseModel):
    """A tool invocation request emitted by the completion service."""

    kind: Literal["tool_call"] = "tool_call"
    call: ToolCall


ResponseSegment = Annotated[TextSegment | ToolCallSegment, Field(discriminator="kind")]


class CompletionResponse(BaseModel):
    """One completion-service response, segments in emission order."""

    segments: list[ResponseSegment] = []
    metadata: dict[str, Any] = {}

    @property
    def text(self) -> str:
        return "\n".join(s.text for s in self.segments if isinstance(s, TextSegment))

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [s.call for s in self.segments if isinstance(s, ToolCallSegment)]

    @classmethod
    def of(cls, *items: str | ToolCall, **metadata: Any) -> "CompletionResponse":
        """Build a response from plain strings and tool calls, in order."""
        segments: list[TextSegment | ToolCallSegment] = [
            TextSegment(text=item) if isinstance(item, str) else ToolCallSegment(call=item)
            for item in items
        ]
        return cls(segments=segments, metadata=metadata)
