"""Tool exposure for toolgate.

Decides at startup which tools are advertised (explicit lists, profiles,
per-group filters) and supports lazy deferral with on-demand discovery.
"""

from .discovery import AvailableTool, DiscoveryResult, discover, discovery_output, format_discovery
from .policy import (
    ExposureState,
    ToolExposurePolicy,
    ToolRegistration,
    is_tool_enabled,
    lazy_enabled,
)
from .profiles import CORE_TOOLS, PROFILES, get_profile, is_core_tool, list_profiles

__all__ = [
    # Policy
    "ExposureState",
    "ToolExposurePolicy",
    "ToolRegistration",
    "is_tool_enabled",
    "lazy_enabled",
    # Profiles
    "CORE_TOOLS",
    "PROFILES",
    "get_profile",
    "is_core_tool",
    "list_profiles",
    # Discovery
    "AvailableTool",
    "DiscoveryResult",
    "discover",
    "discovery_output",
    "format_discovery",
]
