"""Tool adapters for toolgate.

Each adapter is a ``ToolSpec``: parameter model, argv builder, pure parser,
renderers and compact projection. Built-in adapters:

- ``process:run``: any allow-listed command
- ``git:status`` / ``git:log``: parsed git output

User-defined passthrough tools come from ``tools.toml`` (see ``custom``).
"""

from . import custom, git, process
from .base import Invocation, StrList, ToolSpec
from .custom import CustomToolDefinition, load_custom_specs, make_custom_tool

BUILTIN_TOOLS: list[ToolSpec] = [*process.TOOLS, *git.TOOLS]

__all__ = [
    # Contract
    "Invocation",
    "StrList",
    "ToolSpec",
    # Built-ins
    "BUILTIN_TOOLS",
    "git",
    "process",
    # User-defined
    "CustomToolDefinition",
    "custom",
    "load_custom_specs",
    "make_custom_tool",
]
