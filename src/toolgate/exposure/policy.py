"""Tool exposure: which tools are advertised, and lazy loading."""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from toolgate.config import ExposureConfig

from .profiles import FULL_PROFILE, PROFILES, is_core_tool

logger = logging.getLogger(__name__)

ListChangedCallback = Callable[[list[str]], None]


class ExposureState(str, Enum):
    """Registration state of a single tool."""

    DISABLED = "disabled"
    IMMEDIATE = "enabled-immediate"
    DEFERRED = "enabled-deferred"
    LOADED = "enabled-loaded"

    @property
    def advertised(self) -> bool:
        """Whether a tool in this state can be called."""
        return self in (ExposureState.IMMEDIATE, ExposureState.LOADED)


@dataclass(frozen=True)
class ToolRegistration:
    """A tool known to the exposure policy.

    ``is_core`` defaults from the built-in core-tool table when not given.
    """

    group: str
    tool: str
    description: str = ""
    is_core: bool | None = None

    def __post_init__(self) -> None:
        if self.is_core is None:
            object.__setattr__(self, "is_core", is_core_tool(self.group, self.tool))

    @property
    def name(self) -> str:
        """Qualified name, ``group:tool``."""
        return f"{self.group}:{self.tool}"


def is_tool_enabled(config: ExposureConfig, group: str, tool: str) -> bool:
    """Apply the enablement rules to one tool.

    Resolution order, first match wins:
      1. Explicit global list (``TOOLGATE_TOOLS``)
      2. Named profile (``TOOLGATE_PROFILE``), unknown names ignored
      3. Per-group list (``TOOLGATE_<GROUP>_TOOLS``)
      4. Everything enabled
    """
    name = f"{group}:{tool}"
    if config.tools is not None:
        return name in config.tools

    if config.profile is not None and config.profile in PROFILES:
        profile = PROFILES[config.profile]
        return profile is None or name in profile

    group_filter = config.tools_for_group(group)
    if group_filter is not None:
        return tool in group_filter

    return True


def lazy_enabled(config: ExposureConfig) -> bool:
    """Whether lazy deferral applies under this configuration.

    An explicit tool list or the full profile turns it off.
    """
    if not config.lazy:
        return False
    if config.tools is not None:
        return False
    return config.profile != FULL_PROFILE


class ToolExposurePolicy:
    """Tracks the exposure state of every registered tool.

    States are computed once at construction. The only later transition is
    ``enabled-deferred`` -> ``enabled-loaded`` via ``load``/``load_many``,
    serialized by an internal lock.
    """

    def __init__(self, config: ExposureConfig, registrations: Iterable[ToolRegistration]) -> None:
        self.config = config
        self.lazy = lazy_enabled(config)
        self._lock = threading.Lock()
        self._subscribers: list[ListChangedCallback] = []
        self._registrations: dict[str, ToolRegistration] = {}
        self._states: dict[str, ExposureState] = {}

        if config.profile is not None and config.profile not in PROFILES:
            logger.warning(
                "Unknown profile '%s' ignored (available: %s)",
                config.profile,
                ", ".join(PROFILES),
            )

        for registration in registrations:
            self._registrations[registration.name] = registration
            self._states[registration.name] = self._initial_state(registration)

    def _initial_state(self, registration: ToolRegistration) -> ExposureState:
        if not is_tool_enabled(self.config, registration.group, registration.tool):
            return ExposureState.DISABLED
        if self.lazy and not registration.is_core:
            return ExposureState.DEFERRED
        return ExposureState.IMMEDIATE

    def state(self, name: str) -> ExposureState | None:
        """Current state of a tool, or None if it is not registered."""
        with self._lock:
            return self._states.get(name)

    def is_advertised(self, name: str) -> bool:
        """Whether a tool may currently be called."""
        state = self.state(name)
        return state is not None and state.advertised

    def registration(self, name: str) -> ToolRegistration | None:
        """Look up a registration by qualified name."""
        return self._registrations.get(name)

    def _select(
        self, predicate: Callable[[ExposureState], bool], group: str | None
    ) -> list[ToolRegistration]:
        with self._lock:
            return [
                reg
                for name, reg in self._registrations.items()
                if predicate(self._states[name]) and (group is None or reg.group == group)
            ]

    def all(self, group: str | None = None) -> list[ToolRegistration]:
        """Every registered tool, in registration order."""
        return self._select(lambda _state: True, group)

    def advertised(self, group: str | None = None) -> list[ToolRegistration]:
        """Tools that are currently callable."""
        return self._select(lambda state: state.advertised, group)

    def deferred(self, group: str | None = None) -> list[ToolRegistration]:
        """Enabled tools still waiting to be loaded."""
        return self._select(lambda state: state is ExposureState.DEFERRED, group)

    def subscribe(self, callback: ListChangedCallback) -> Callable[[], None]:
        """Register a tool-list-changed callback.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def load_many(self, names: Iterable[str]) -> list[str]:
        """Load deferred tools.

        Names that are unknown, disabled, immediate or already loaded are
        skipped. When at least one tool was loaded, every subscriber is
        notified exactly once with the loaded names.

        Returns:
            Names that moved to ``enabled-loaded``, in request order
        """
        loaded: list[str] = []
        with self._lock:
            for name in names:
                if self._states.get(name) is ExposureState.DEFERRED:
                    self._states[name] = ExposureState.LOADED
                    loaded.append(name)
            subscribers = list(self._subscribers)

        if loaded:
            logger.info("Loaded %d deferred tool(s): %s", len(loaded), ", ".join(loaded))
            for callback in subscribers:
                callback(list(loaded))
        return loaded

    def load(self, name: str) -> bool:
        """Load one deferred tool; False if nothing changed."""
        return bool(self.load_many([name]))
