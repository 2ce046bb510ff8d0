"""Provider-specific transpiler implementations."""

from toolbridge.core.interface.transpilers.openai import OpenAITranspiler

__all__ = ["OpenAITranspiler"]
