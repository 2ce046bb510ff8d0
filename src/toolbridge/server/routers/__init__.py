"""HTTP routers."""

from toolbridge.server.routers import chat, health

__all__ = ["chat", "health"]
