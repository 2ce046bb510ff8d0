"""ToolCatalog: one flat tool namespace over every connected provider.

Qualification rule: with exactly one provider, tools keep their raw
names; with more than one, every tool is exposed as
``<provider><separator><raw name>``, whether or not names collide.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from toolbridge.core.orchestration.pool import ConnectionPool
    from toolbridge.protocols.mcp.models import RawTool

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "."

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
    "null": (type(None),),
}


class NamespacedTool(BaseModel):
    """A provider tool as exposed to the completion service."""

    model_config = ConfigDict(frozen=True)

    qualified_name: str
    description: str = ""
    input_schema: dict[str, Any] = {}
    owner_provider: str
    raw_name: str

    def to_function_schema(self) -> dict[str, Any]:
        """Return an OpenAI-compatible function declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.qualified_name,
                "description": self.description,
                "parameters": self.input_schema or {"type": "object", "properties": {}},
            },
        }

    def validate_arguments(self, arguments: Any) -> list[str]:
        """Check *arguments* against the declared schema.

        Only the top level is checked: the value must be an object, every
        ``required`` key must be present, and properties with a primitive
        ``type`` must match it. Returns a list of problems, empty if valid.
        """
        if not isinstance(arguments, dict):
            return ["arguments must be a JSON object"]

        errors: list[str] = []
        required = self.input_schema.get("required", [])
        for key in required if isinstance(required, list) else []:
            if key not in arguments:
                errors.append(f"missing required argument '{key}'")

        properties = self.input_schema.get("properties", {})
        if not isinstance(properties, dict):
            return errors
        for key, value in arguments.items():
            declared = properties.get(key)
            if not isinstance(declared, dict):
                continue
            expected = declared.get("type")
            if not isinstance(expected, str) or expected not in _JSON_TYPES:
                continue
            # bool is an int subclass in Python but not in JSON Schema.
            if isinstance(value, bool) and expected in ("integer", "number"):
                errors.append(f"argument '{key}' must be of type {expected}")
            elif not isinstance(value, _JSON_TYPES[expected]):
                errors.append(f"argument '{key}' must be of type {expected}")
        return errors


class ToolCatalog:
    """Bidirectional mapping between qualified names and provider tools.

    Usage::

        catalog = ToolCatalog.build(pool)
        catalog.export_for_completion_service()   # tool declarations
        catalog.resolve("calc.add")               # -> ("calc", "add")
    """

    def __init__(
        self,
        provider_tools: dict[str, list[RawTool]],
        *,
        separator: str = DEFAULT_SEPARATOR,
    ) -> None:
        if not separator:
            msg = "separator must not be empty"
            raise ValueError(msg)
        self.separator = separator
        self._providers = list(provider_tools)
        self._tools: dict[str, NamespacedTool] = {}
        self._by_owner: dict[tuple[str, str], NamespacedTool] = {}
        self._dropped: list[NamespacedTool] = []

        qualify = len(self._providers) > 1
        for provider, raw_tools in provider_tools.items():
            for raw in raw_tools:
                name = f"{provider}{separator}{raw.name}" if qualify else raw.name
                tool = NamespacedTool(
                    qualified_name=name,
                    description=raw.description,
                    input_schema=raw.input_schema,
                    owner_provider=provider,
                    raw_name=raw.name,
                )
                kept = self._tools.get(name)
                if kept is not None:
                    self._dropped.append(tool)
                    if (kept.owner_provider, kept.raw_name) == (provider, raw.name):
                        logger.warning(
                            "Provider %s lists tool %s twice; keeping the first", provider, raw.name
                        )
                    else:
                        logger.warning(
                            "Dropping tool %s of provider %s: name %s is taken by %s of provider %s",
                            raw.name,
                            provider,
                            name,
                            kept.raw_name,
                            kept.owner_provider,
                        )
                    continue
                self._tools[name] = tool
                self._by_owner[(provider, raw.name)] = tool

    @classmethod
    def build(cls, pool: ConnectionPool, *, separator: str = DEFAULT_SEPARATOR) -> ToolCatalog:
        """Build the catalog from every ``Ready`` connection in *pool*."""
        return cls(
            {conn.name: conn.list_capabilities() for conn in pool.connections()},
            separator=separator,
        )

    @property
    def providers(self) -> list[str]:
        return list(self._providers)

    @property
    def is_qualified(self) -> bool:
        """``True`` when names carry a provider prefix."""
        return len(self._providers) > 1

    def names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[NamespacedTool]:
        return list(self._tools.values())

    @property
    def dropped(self) -> list[NamespacedTool]:
        """Tools left out because their exposed name was already taken."""
        return list(self._dropped)

    def get(self, qualified_name: str) -> NamespacedTool | None:
        return self._tools.get(qualified_name)

    def qualified_name_for(self, provider: str, raw_name: str) -> str | None:
        """Reverse lookup from ``(provider, raw_name)`` to the exposed name."""
        tool = self._by_owner.get((provider, raw_name))
        return tool.qualified_name if tool else None

    def lookup(self, provider: str, raw_name: str) -> NamespacedTool | None:
        """The catalogued tool for ``(provider, raw_name)``, if any."""
        return self._by_owner.get((provider, raw_name))

    def resolve(self, qualified_name: str) -> tuple[str, str] | None:
        """Map an exposed name back to ``(provider, raw_name)``.

        A name whose part before the first separator is a known provider
        resolves to that provider's tool, in either mode. Otherwise the
        exact exposed name is looked up, so a single provider's raw names
        resolve as-is. Returns ``None`` when nothing matches; callers must
        not guess a provider.
        """
        provider, sep, raw_name = qualified_name.partition(self.separator)
        tool = self._by_owner.get((provider, raw_name)) if sep else None
        if tool is None:
            # Provider names may themselves contain the separator.
            tool = self._tools.get(qualified_name)
        if tool is None:
            return None
        return tool.owner_provider, tool.raw_name

    def export_for_completion_service(self) -> list[dict[str, Any]]:
        """Return the catalog as OpenAI-compatible function declarations."""
        return [tool.to_function_schema() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self._tools
