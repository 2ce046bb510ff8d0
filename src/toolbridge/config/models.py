"""Pydantic models for provider configuration."""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from toolbridge.config.errors import ConfigError


class ProviderConfig(BaseModel):
    """How to launch one tool-provider process.

    Immutable once read::

        ProviderConfig(name="fs", command="npx", args=["@mcp/filesystem", "/tmp"])
    """

    model_config = ConfigDict(frozen=True)

    name: str
    command: str
    args: list[str] = []
    cwd: str | None = None
    env: dict[str, str] = {}

    @field_validator("name", "command")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return value

    @classmethod
    def from_script(cls, path: str | Path, name: str | None = None) -> ProviderConfig:
        """Build a config that runs a ``.py`` or ``.js`` server script.

        Python scripts run under ``python3`` (``python`` on Windows),
        JavaScript under ``node``.
        """
        script = Path(path)
        if script.suffix == ".py":
            command = "python" if sys.platform == "win32" else "python3"
        elif script.suffix == ".js":
            command = "node"
        else:
            msg = f"Server script must be a .js or .py file: {script}"
            raise ConfigError(msg)
        return cls(name=name or script.stem, command=command, args=[str(script)])


class ProviderEntry(BaseModel):
    """One entry of a providers file, keyed by provider name."""

    command: str
    args: list[str] = []
    cwd: str | None = None
    env: dict[str, str] = {}


class ProvidersFile(BaseModel):
    """Validated representation of a providers file.

    Example YAML::

        mcpServers:
          calc:
            command: python3
            args: [servers/calc.py]
          search:
            command: npx
            args: ["@acme/search-mcp"]
            env:
              SEARCH_API_KEY: ${SEARCH_API_KEY}
    """

    providers: dict[str, ProviderEntry] = Field(default_factory=dict)

    def to_configs(self) -> list[ProviderConfig]:
        """Return one :class:`ProviderConfig` per entry, in file order."""
        return [
            ProviderConfig(name=name, **entry.model_dump())
            for name, entry in self.providers.items()
        ]
