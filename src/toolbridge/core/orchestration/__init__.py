"""Orchestration: connection pool, tool catalog and conversation engine."""

from toolbridge.core.orchestration.catalog import NamespacedTool, ToolCatalog
from toolbridge.core.orchestration.context import OrchestrationContext
from toolbridge.core.orchestration.engine import ConversationEngine, TurnResult
from toolbridge.core.orchestration.pool import ConnectionPool, PoolStartReport

__all__ = [
    "ConnectionPool",
    "ConversationEngine",
    "NamespacedTool",
    "OrchestrationContext",
    "PoolStartReport",
    "ToolCatalog",
    "TurnResult",
]
