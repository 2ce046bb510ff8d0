"""toolbridge: one tool namespace over many MCP providers for a chat model."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from toolbridge.core.orchestration.context import (
        OrchestrationContext as OrchestrationContext,
    )
    from toolbridge.server.app import create_app as create_app

_LAZY_EXPORTS = {
    "OrchestrationContext": "toolbridge.core.orchestration.context",
    "create_app": "toolbridge.server.app",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'toolbridge' has no attribute {name!r}")
