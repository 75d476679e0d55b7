"""Discovery of deferred tools."""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from toolgate.output import DualOutput, dual_output

from .policy import ToolExposurePolicy


class AvailableTool(BaseModel):
    """A deferred tool that can still be loaded."""

    name: str
    description: str = ""


class DiscoveryResult(BaseModel):
    """Outcome of a discovery call."""

    available: list[AvailableTool] = Field(default_factory=list)
    loaded: list[str] = Field(default_factory=list)
    total_available: int = 0


def _qualify(name: str, group: str | None) -> str:
    name = name.strip()
    if group is None or ":" in name:
        return name
    return f"{group}:{name}"


def discover(
    policy: ToolExposurePolicy,
    load: Iterable[str] | None = None,
    group: str | None = None,
) -> DiscoveryResult:
    """List deferred tools and optionally load some of them.

    Args:
        policy: The exposure policy to query and mutate
        load: Tool names to load. ``group:tool``, or bare tool names when
            ``group`` is given. Unknown names are skipped.
        group: Restrict the listing (and bare names) to one group

    Returns:
        DiscoveryResult with the tools loaded by this call and what remains
    """
    loaded: list[str] = []
    if load:
        loaded = policy.load_many(_qualify(name, group) for name in load if name.strip())

    available = [
        AvailableTool(name=reg.name, description=reg.description)
        for reg in policy.deferred(group)
    ]
    return DiscoveryResult(available=available, loaded=loaded, total_available=len(available))


def format_discovery(result: DiscoveryResult) -> str:
    """Render a discovery result as text."""
    lines: list[str] = []
    if result.loaded:
        lines.append(f"Loaded {len(result.loaded)} tool(s): {', '.join(result.loaded)}")

    if not result.available:
        lines.append("All tools are loaded")
        return "\n".join(lines)

    lines.append(f"{result.total_available} additional tool(s) available:")
    for tool in result.available:
        if tool.description:
            lines.append(f"  {tool.name} - {tool.description}")
        else:
            lines.append(f"  {tool.name}")
    return "\n".join(lines)


def discovery_output(result: DiscoveryResult) -> DualOutput[DiscoveryResult, None]:
    """Dual output for a discovery call (never compacted)."""
    return dual_output(result, format_discovery)
