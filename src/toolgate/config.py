"""Configuration models and environment resolution for toolgate.

All settings come from ``TOOLGATE_*`` environment variables and are read
once at startup. The resolvers here are pure functions of an env mapping so
they can be tested without touching ``os.environ``; ``load_settings()`` is
the only place that reads the real environment.

Precedence for every policy setting:

1. ``TOOLGATE_{SETTING}`` applies to all groups.
2. ``TOOLGATE_{GROUP}_{SETTING}`` applies to one group.
3. Neither set: permissive default.

A global setting always wins outright; it is never merged with the
per-group value.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "TOOLGATE_"

DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # per stream

_TRUE = "true"


def group_env_key(group: str) -> str:
    """Normalize a group name to its env-var fragment ("my-group" -> "MY_GROUP")."""
    return group.upper().replace("-", "_")


def parse_list(raw: str | None) -> frozenset[str] | None:
    """Parse a comma-separated value into a set.

    Returns None when the value is unset or blank, meaning "no policy".
    """
    if raw is None or not raw.strip():
        return None
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def parse_filter(raw: str | None) -> frozenset[str] | None:
    """Parse a comma-separated tool filter.

    Unlike ``parse_list``, a set-but-blank value is an empty filter
    (everything disabled), not the absence of one.
    """
    if raw is None:
        return None
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def parse_flag(raw: str | None) -> bool:
    """Only a (case-insensitive, trimmed) "true" turns a flag on."""
    return raw is not None and raw.strip().lower() == _TRUE


def _scan_group_settings(env: Mapping[str, str], suffix: str) -> dict[str, str]:
    """Collect ``TOOLGATE_{GROUP}{suffix}`` values keyed by group fragment."""
    found: dict[str, str] = {}
    for key, value in env.items():
        if not key.startswith(ENV_PREFIX) or not key.endswith(suffix):
            continue
        # The global key itself ("TOOLGATE_TOOLS") leaves an empty fragment
        fragment = key[len(ENV_PREFIX) : len(key) - len(suffix)]
        if fragment:
            found[fragment] = value
    return found


class PolicyConfig(BaseModel):
    """Process-wide execution policy, immutable after startup."""

    model_config = ConfigDict(frozen=True)

    allowed_commands: frozenset[str] | None = None
    group_allowed_commands: dict[str, frozenset[str]] = Field(default_factory=dict)
    allowed_roots: frozenset[str] | None = None
    group_allowed_roots: dict[str, frozenset[str]] = Field(default_factory=dict)
    strict_path: bool | None = None  # None = not set globally
    group_strict_path: dict[str, bool] = Field(default_factory=dict)
    sanitize_all_paths: bool = False
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)
    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    def commands_for(self, group: str | None) -> frozenset[str] | None:
        """Effective command allow-list for a group (None = unrestricted)."""
        if self.allowed_commands is not None:
            return self.allowed_commands
        if group is None:
            return None
        return self.group_allowed_commands.get(group_env_key(group))

    def roots_for(self, group: str | None) -> frozenset[str] | None:
        """Effective root allow-list for a group (None = unrestricted)."""
        if self.allowed_roots is not None:
            return self.allowed_roots
        if group is None:
            return None
        return self.group_allowed_roots.get(group_env_key(group))

    def strict_path_for(self, group: str | None) -> bool:
        """Whether strict-path mode applies to a group."""
        if self.strict_path is not None:
            return self.strict_path
        if group is None:
            return False
        return self.group_strict_path.get(group_env_key(group), False)


class ExposureConfig(BaseModel):
    """Which tools are advertised, resolved once at startup."""

    model_config = ConfigDict(frozen=True)

    tools: frozenset[str] | None = None  # "group:tool" entries
    profile: str | None = None
    group_tools: dict[str, frozenset[str]] = Field(default_factory=dict)
    lazy: bool = False

    @field_validator("profile")
    @classmethod
    def normalize_profile(cls, v: str | None) -> str | None:
        """Profiles are case-insensitive; blank means unset."""
        if v is None or not v.strip():
            return None
        return v.strip().lower()

    def tools_for_group(self, group: str) -> frozenset[str] | None:
        """Per-group filter for a group (None = no filter)."""
        return self.group_tools.get(group_env_key(group))


class Settings(BaseModel):
    """Everything toolgate reads from the environment."""

    model_config = ConfigDict(frozen=True)

    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    exposure: ExposureConfig = Field(default_factory=ExposureConfig)
    log_level: str = "WARNING"
    config_dir: Path | None = None


def _group_lists(env: Mapping[str, str], setting: str) -> dict[str, frozenset[str]]:
    """Per-group allow-lists for a setting.

    A global variable that is set, even to a blank value, shadows every
    per-group one, so a blank global leaves the setting unrestricted.
    """
    if f"{ENV_PREFIX}{setting}" in env:
        return {}
    return {
        group: parsed
        for group, raw in _scan_group_settings(env, f"_{setting}").items()
        if (parsed := parse_list(raw)) is not None
    }


def resolve_policy_config(env: Mapping[str, str]) -> PolicyConfig:
    """Build the policy configuration from raw environment strings.

    Args:
        env: Environment mapping (usually ``os.environ``)

    Returns:
        Finalized PolicyConfig

    Raises:
        pydantic.ValidationError: If a numeric setting is not a positive integer
    """
    group_commands = _group_lists(env, "ALLOWED_COMMANDS")
    group_roots = _group_lists(env, "ALLOWED_ROOTS")
    group_strict = {
        group: parse_flag(raw) for group, raw in _scan_group_settings(env, "_STRICT_PATH").items()
    }

    strict_raw = env.get(f"{ENV_PREFIX}STRICT_PATH")

    data: dict = {
        "allowed_commands": parse_list(env.get(f"{ENV_PREFIX}ALLOWED_COMMANDS")),
        "group_allowed_commands": group_commands,
        "allowed_roots": parse_list(env.get(f"{ENV_PREFIX}ALLOWED_ROOTS")),
        "group_allowed_roots": group_roots,
        "strict_path": parse_flag(strict_raw) if strict_raw is not None else None,
        "group_strict_path": group_strict,
        "sanitize_all_paths": parse_flag(env.get(f"{ENV_PREFIX}SANITIZE_ALL_PATHS")),
    }
    if max_bytes := env.get(f"{ENV_PREFIX}MAX_OUTPUT_BYTES"):
        data["max_output_bytes"] = max_bytes.strip()
    if timeout := env.get(f"{ENV_PREFIX}TIMEOUT_MS"):
        data["default_timeout_ms"] = timeout.strip()

    return PolicyConfig.model_validate(data)


def resolve_exposure_config(env: Mapping[str, str]) -> ExposureConfig:
    """Build the exposure configuration from raw environment strings."""
    group_tools = {
        group: parsed
        for group, raw in _scan_group_settings(env, "_TOOLS").items()
        if (parsed := parse_filter(raw)) is not None
    }
    return ExposureConfig(
        tools=parse_filter(env.get(f"{ENV_PREFIX}TOOLS")),
        profile=env.get(f"{ENV_PREFIX}PROFILE"),
        group_tools=group_tools,
        lazy=parse_flag(env.get(f"{ENV_PREFIX}LAZY")),
    )


def resolve_settings(env: Mapping[str, str]) -> Settings:
    """Resolve the complete settings value from an env mapping."""
    config_dir = env.get(f"{ENV_PREFIX}CONFIG_DIR")
    return Settings(
        policy=resolve_policy_config(env),
        exposure=resolve_exposure_config(env),
        log_level=(env.get(f"{ENV_PREFIX}LOG_LEVEL") or "WARNING").strip().upper(),
        config_dir=Path(config_dir).expanduser() if config_dir else None,
    )


def load_settings() -> Settings:
    """Read settings from the real process environment."""
    return resolve_settings(os.environ)


def get_default_config_dir() -> Path:
    """Get the default configuration directory (~/.config/toolgate)."""
    return Path.home() / ".config" / "toolgate"


def get_tools_file(config_dir: Path | None = None) -> Path:
    """Get the path to the user-defined tools file."""
    return (config_dir or get_default_config_dir()) / "tools.toml"


def load_custom_tools(config_dir: Path | None = None) -> dict[str, dict[str, dict]]:
    """Load user-defined tool definitions from tools.toml.

    Returns:
        Mapping of group name -> tool name -> definition dict.
        Empty dict if the file doesn't exist.

    Raises:
        tomllib.TOMLDecodeError: If the file is malformed

    Example tools.toml:
        [shellcheck.check]
        command = "shellcheck"
        args = ["--format=gcc"]
        description = "Run shellcheck on scripts"
        core = true
    """
    tools_path = get_tools_file(config_dir)
    if not tools_path.exists():
        return {}

    with open(tools_path, "rb") as f:
        data = tomllib.load(f)

    return {
        group: {name: dict(defn) for name, defn in tools.items() if isinstance(defn, dict)}
        for group, tools in data.items()
        if isinstance(tools, dict)
    }
