"""Loading provider configuration from YAML or JSON files."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from toolbridge.config.errors import ConfigError
from toolbridge.config.models import ProviderConfig, ProvidersFile

if TYPE_CHECKING:
    from pathlib import Path

_SERVERS_KEY = "mcpServers"


class ProvidersLoader:
    """Load and validate a providers file into :class:`ProviderConfig` objects."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> list[ProviderConfig]:
        """Read the file, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before parsing. Files ending in
        ``.json`` are parsed as JSON, everything else as YAML.

        Raises:
            ConfigError: On read, parse, or schema validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read {self._path}: {exc}") from exc

        data = self._parse(os.path.expandvars(raw))

        if not isinstance(data, dict):
            raise ConfigError("Providers file must be a mapping")
        if _SERVERS_KEY in data:
            data = data[_SERVERS_KEY]
            if not isinstance(data, dict):
                raise ConfigError(f"'{_SERVERS_KEY}' must be a mapping")

        try:
            parsed = ProvidersFile.model_validate({"providers": data})
            return parsed.to_configs()
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    def _parse(self, text: str) -> Any:
        if self._path.suffix == ".json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"JSON parse error: {exc}") from exc
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error: {exc}") from exc


def collect_configs(
    scripts: tuple[str, ...] | list[str],
    config_path: Path | None = None,
) -> list[ProviderConfig]:
    """Merge providers from a config file with script-path shorthands.

    File entries come first. A script whose name clashes with a file entry
    is rejected.
    """
    configs: list[ProviderConfig] = []
    if config_path is not None:
        configs.extend(ProvidersLoader(config_path).load())

    names = {c.name for c in configs}
    for script in scripts:
        cfg = ProviderConfig.from_script(script)
        if cfg.name in names:
            raise ConfigError(f"Duplicate provider name: {cfg.name}")
        names.add(cfg.name)
        configs.append(cfg)
    return configs
