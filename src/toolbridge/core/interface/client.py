"""ModelClient: the completion service, backed by LiteLLM.

Wraps LiteLLM behind a CMS-native interface so the orchestration layer
only ever works with :class:`ConversationHistory` and
:class:`CompletionResponse`.
"""

import json
from typing import Any, Protocol, runtime_checkable

import litellm

from toolbridge.core.interface.config import ModelConfig
from toolbridge.core.interface.models import (
    CompletionResponse,
    ConversationHistory,
    TextSegment,
    ToolCall,
    ToolCallSegment,
)
from toolbridge.core.interface.transpiler import Transpiler
from toolbridge.core.interface.transpilers.openai import OpenAITranspiler
from toolbridge.utils.telemetry import ATTR_FINISH_REASON, ATTR_MODEL, ATTR_TOKENS_TOTAL, get_tracer

_tracer = get_tracer(__name__)


@runtime_checkable
class CompletionService(Protocol):
    """Consumes conversation history plus a tool catalog, returns one response."""

    async def complete(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
    ) -> CompletionResponse: ...


class ModelClient:
    """Async completion client over LiteLLM.

    Usage::

        client = ModelClient(ModelConfig(model="anthropic/claude-3-5-sonnet-20241022"))
        response = await client.complete(history, tools=catalog.export_for_completion_service())
    """

    def __init__(self, config: ModelConfig, transpiler: Transpiler | None = None) -> None:
        self.config = config
        self.transpiler: Transpiler = transpiler or OpenAITranspiler()

    async def complete(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> CompletionResponse:
        """Generate a response from the configured model.

        Args:
            history: The conversation history in CMS format.
            tools: Optional tool declarations in OpenAI function schema format.
            **kwargs: Additional parameters passed to LiteLLM.
        """
        with _tracer.start_as_current_span("model.complete") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)

            call_kwargs: dict[str, Any] = {
                "model": self.config.model,
                "messages": self.transpiler.to_provider(history)["messages"],
                "max_tokens": self.config.max_tokens,
                **self.config.extra,
                **kwargs,
            }
            if self.config.api_key:
                call_kwargs["api_key"] = self.config.api_key
            if self.config.api_base:
                call_kwargs["api_base"] = self.config.api_base
            if tools:
                call_kwargs["tools"] = tools

            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            result = self._parse_response(response)

            usage = result.metadata.get("usage")
            if isinstance(usage, dict):
                span.set_attribute(ATTR_TOKENS_TOTAL, int(usage.get("total_tokens", 0)))
            finish_reason = result.metadata.get("finish_reason")
            if finish_reason is not None:
                span.set_attribute(ATTR_FINISH_REASON, str(finish_reason))
            return result

    def _parse_response(self, response: Any) -> CompletionResponse:
        """Convert a LiteLLM (OpenAI-shaped) response into segments."""
        message = response.choices[0].message

        segments: list[TextSegment | ToolCallSegment] = []
        if message.content:
            segments.append(TextSegment(text=message.content))
        for tc in message.tool_calls or []:
            arguments, error = _parse_arguments(tc.function.arguments)
            segments.append(
                ToolCallSegment(
                    call=ToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=arguments,
                        parse_error=error,
                    )
                )
            )

        metadata: dict[str, Any] = {}
        if getattr(response, "usage", None):
            metadata["usage"] = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        metadata["finish_reason"] = response.choices[0].finish_reason
        metadata["model"] = response.model

        return CompletionResponse(segments=segments, metadata=metadata)


def _parse_arguments(raw: Any) -> tuple[dict[str, Any], str | None]:
    """Parse JSON string arguments from a tool call.

    Returns the arguments and, when they are not a JSON object, an error.
    """
    if isinstance(raw, dict):
        return raw, None
    if raw is None or raw == "":
        return {}, None
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        return {}, f"arguments are not valid JSON: {exc}"
    if not isinstance(parsed, dict):
        return {}, "arguments must be a JSON object"
    return parsed, None
