"""OpenAI transpiler: CMS is closest to ChatML so this is the simplest mapping.

LiteLLM accepts OpenAI-style messages for every backend, so this is the
only transpiler the completion client needs.
"""

import json
from typing import Any

from toolbridge.core.interface.models import CanonicalMessage, ConversationHistory


class OpenAITranspiler:
    """Converts CMS history to OpenAI's chat completion format."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Return ``{"messages": [...]}`` following OpenAI's schema."""
        return {"messages": [self._message_to_openai(msg) for msg in history]}

    def _message_to_openai(self, msg: CanonicalMessage) -> dict[str, Any]:
        result: dict[str, Any] = {"role": msg.role}

        if msg.role == "tool":
            result["tool_call_id"] = msg.tool_call_id
            result["content"] = msg.text
            return result

        result["content"] = msg.text or None

        if msg.tool_calls:
            result["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    },
                }
                for tc in msg.tool_calls
            ]

        return result
