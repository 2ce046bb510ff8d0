"""HTTP presentation layer."""

from toolbridge.server.app import create_app

__all__ = ["create_app"]
