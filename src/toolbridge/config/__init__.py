"""Provider configuration and runtime settings."""

from toolbridge.config.errors import ConfigError
from toolbridge.config.loader import ProvidersLoader, collect_configs
from toolbridge.config.models import ProviderConfig, ProviderEntry, ProvidersFile
from toolbridge.config.settings import BridgeSettings

__all__ = [
    "BridgeSettings",
    "ConfigError",
    "ProviderConfig",
    "ProviderEntry",
    "ProvidersFile",
    "ProvidersLoader",
    "collect_configs",
]
