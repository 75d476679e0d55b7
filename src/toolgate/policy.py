"""Policy gate: decides whether a command may run at all, and where.

The gate never executes anything. It checks, in order:

1. Strict-path mode: no path separators in the command.
2. Command allow-list: the command's basename must be listed.
3. Root allow-list: the working directory must sit under an allowed root.
4. Flag injection: caller-supplied values must not start with ``-``.

Example:
    gate = PolicyGate(settings.policy, group="git")
    decision = gate.authorize("git", ["status"], "/srv/repo", {"ref": "main"})
    if not decision.allowed:
        print(decision.reason, decision.message)
"""

import logging
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from toolgate.config import PolicyConfig
from toolgate.errors import (
    CommandNotAllowedError,
    FlagInjectionError,
    PathNotAllowedError,
    PathQualifiedCommandError,
    PolicyError,
)

logger = logging.getLogger(__name__)

_EXECUTABLE_SUFFIX = re.compile(r"\.(cmd|exe|bat|sh)$", re.IGNORECASE)


def command_basename(command: str) -> str:
    """Extract the bare program name from a command.

    Handles both separators and common launcher extensions, so
    ``C:\\tools\\npm.cmd`` and ``/usr/bin/npm`` both yield ``npm``.
    """
    last = command.replace("\\", "/").split("/")[-1]
    return _EXECUTABLE_SUFFIX.sub("", last)


def normalize_path(path: str | Path) -> str:
    """Absolute, normalized form of a path (symlinks are not resolved)."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


def is_under_root(target: str | Path, root: str | Path) -> bool:
    """Whether ``target`` equals ``root`` or is a descendant of it."""
    normalized_target = normalize_path(target)
    normalized_root = normalize_path(root)
    if normalized_target == normalized_root:
        return True
    prefix = normalized_root if normalized_root.endswith(os.sep) else normalized_root + os.sep
    return normalized_target.startswith(prefix)


def assert_no_flag_injection(value: str, param: str, group: str | None = None) -> None:
    """Reject a value that would be read as a flag.

    Leading whitespace is ignored so " --force" is caught too.

    Raises:
        FlagInjectionError: If the value starts with "-"
    """
    if value.lstrip().startswith("-"):
        raise FlagInjectionError(
            f'Invalid {param}: "{value}". Values must not start with "-" '
            "(flag injection is not allowed).",
            param=param,
            value=value,
            group=group,
        )


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check.

    Attributes:
        allowed: Whether the command may run
        reason: Stable reason code when denied
        message: Human-readable explanation when denied
        error: The policy error that caused the denial
    """

    allowed: bool
    reason: str | None = None
    message: str | None = None
    error: PolicyError | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(allowed=True)


class PolicyGate:
    """Validates commands against the process-wide policy for one tool group."""

    def __init__(self, config: PolicyConfig, group: str | None = None) -> None:
        """Initialize the gate.

        Args:
            config: Immutable policy configuration loaded at startup
            group: Tool group used to look up per-group settings
        """
        self._config = config
        self._group = group

    @property
    def group(self) -> str | None:
        """Tool group this gate checks for."""
        return self._group

    @property
    def config(self) -> PolicyConfig:
        """The policy configuration in force."""
        return self._config

    def check_strict_path(self, command: str) -> None:
        """Reject path-qualified commands when strict-path mode is on."""
        if not self._config.strict_path_for(self._group):
            return
        if "/" in command or "\\" in command:
            raise PathQualifiedCommandError(
                "Path-qualified commands are not allowed in strict-path mode. "
                f'Use a bare command name (e.g., "{command_basename(command)}" '
                f'not "{command}") that resolves via PATH.',
                group=self._group,
            )

    def check_command(self, command: str) -> None:
        """Reject commands missing from the effective allow-list."""
        allowed = self._config.commands_for(self._group)
        if allowed is None:
            return
        if command in allowed:
            return
        base = command_basename(command)
        if base in allowed:
            if command != base:
                logger.warning(
                    'Path-qualified command "%s" allowed by basename "%s"', command, base
                )
            return
        raise CommandNotAllowedError(
            f'Command "{command}" is not allowed by the command allow-list. '
            f"Allowed: {', '.join(sorted(allowed))}",
            group=self._group,
        )

    def check_root(self, cwd: str | Path | None) -> None:
        """Reject working directories outside every allowed root."""
        roots = self._config.roots_for(self._group)
        if roots is None:
            return
        target = cwd if cwd is not None else os.getcwd()
        if any(is_under_root(target, root) for root in roots):
            return
        raise PathNotAllowedError(
            f'Path "{target}" is outside allowed roots. '
            f"Allowed roots: {', '.join(sorted(roots))}",
            group=self._group,
        )

    def check_values(self, values: Mapping[str, str | None] | None) -> None:
        """Reject caller-supplied value fields that look like flags."""
        if not values:
            return
        for param, value in values.items():
            if value is not None:
                assert_no_flag_injection(value, param, group=self._group)

    def enforce(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: str | Path | None = None,
        values: Mapping[str, str | None] | None = None,
    ) -> None:
        """Run every check, raising on the first failure.

        ``args`` is the full argument vector the adapter built; it may contain
        legitimate flags and is not prefix-checked. Only ``values``, the
        fields a caller supplied as data, are.

        Raises:
            PolicyError: A subclass naming the failed check
        """
        try:
            self.check_strict_path(command)
            self.check_command(command)
            self.check_root(cwd)
            self.check_values(values)
        except PolicyError as e:
            logger.warning("Policy denied %s (%s): %s", command, e.reason, e)
            raise

    def authorize(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: str | Path | None = None,
        values: Mapping[str, str | None] | None = None,
    ) -> Decision:
        """Check a command without raising.

        Returns:
            ALLOWED, or a denied Decision carrying the reason code
        """
        try:
            self.enforce(command, args, cwd, values)
        except PolicyError as e:
            return Decision(allowed=False, reason=e.reason, message=str(e), error=e)
        return ALLOWED
