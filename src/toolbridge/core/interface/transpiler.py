"""Transpiler protocol: converts CMS history into a provider payload."""

from typing import Any, Protocol

from toolbridge.core.interface.models import ConversationHistory


class Transpiler(Protocol):
    """Protocol for provider-specific message format transpilers."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Convert a CMS conversation history to a provider-specific payload."""
        ...
