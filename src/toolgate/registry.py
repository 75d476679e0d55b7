"""Tool registry: maps ``group:tool`` names to their ToolSpecs."""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from toolgate.adapters import BUILTIN_TOOLS, ToolSpec, load_custom_specs
from toolgate.config import load_custom_tools
from toolgate.exposure import ToolRegistration

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Holds every tool toolgate can run, keyed by qualified name."""

    def __init__(self, tools: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in tools:
            self.register(spec)

    def register(self, spec: ToolSpec, replace: bool = False) -> None:
        """Add a tool.

        Args:
            spec: The tool to add
            replace: Allow overriding an existing tool of the same name

        Raises:
            ValueError: If the name is taken and ``replace`` is False
        """
        name = spec.qualified_name
        if name in self._tools and not replace:
            raise ValueError(f"Tool already registered: {name}")
        if name in self._tools:
            logger.info("Overriding tool %s", name)
        self._tools[name] = spec

    def get(self, group: str, tool: str) -> ToolSpec | None:
        """Look up a tool by group and name."""
        return self._tools.get(f"{group}:{tool}")

    def get_qualified(self, name: str) -> ToolSpec | None:
        """Look up a tool by ``group:tool`` name."""
        return self._tools.get(name)

    def list_tools(self, group: str | None = None) -> list[ToolSpec]:
        """List tools in registration order, optionally for one group."""
        return [spec for spec in self._tools.values() if group is None or spec.group == group]

    def groups(self) -> list[str]:
        """Distinct group names, in registration order."""
        return list(dict.fromkeys(spec.group for spec in self._tools.values()))

    def registrations(self) -> list[ToolRegistration]:
        """Exposure registrations for every tool."""
        return [spec.registration() for spec in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def create_registry(config_dir: Path | None = None, include_custom: bool = True) -> ToolRegistry:
    """Build the registry of built-in and user-defined tools.

    User-defined tools from tools.toml are registered after the built-ins
    and may override them.

    Args:
        config_dir: Directory holding tools.toml (default ~/.config/toolgate)
        include_custom: Whether to read tools.toml at all

    Returns:
        Populated ToolRegistry

    Raises:
        tomllib.TOMLDecodeError: If tools.toml is malformed
        pydantic.ValidationError: If a tool definition is invalid
    """
    registry = ToolRegistry(BUILTIN_TOOLS)
    if include_custom:
        custom = load_custom_specs(load_custom_tools(config_dir))
        for spec in custom:
            registry.register(spec, replace=True)
        if custom:
            logger.debug("Registered %d user-defined tool(s)", len(custom))
    return registry
