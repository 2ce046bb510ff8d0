"""Configuration error types."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when provider configuration fails parsing or validation."""
