"""Model configuration: which completion backend to call and how."""

from typing import Any

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Configuration for a specific model/provider combination.

    The ``model`` field uses LiteLLM's naming convention:
    ``provider/model_name`` (e.g. ``openai/gpt-4o``,
    ``anthropic/claude-3-5-sonnet-20241022``).
    """

    model: str = "anthropic/claude-3-5-sonnet-20241022"
    api_key: str | None = None
    api_base: str | None = None
    max_tokens: int = 1000
    extra: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())
