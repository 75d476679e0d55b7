"""Exception hierarchy and structured error payloads for toolgate.

Two kinds of failure leave the framework:

- Exceptions (``PolicyError``, ``ToolError`` and subclasses) raised before or
  instead of a normal result: a policy denial, a missing executable.
- ``ErrorPayload`` values, the structured form of those failures (and of
  tool-level failures an adapter chooses to classify) returned to a caller
  with ``isError: true``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

if TYPE_CHECKING:
    from toolgate.execution.base import ExecutionResult


class ToolgateError(Exception):
    """Base exception for everything raised by toolgate."""


# --- Policy errors ---


class PolicyError(ToolgateError):
    """Raised when the policy gate refuses a command.

    Attributes:
        reason: Stable reason code callers can match on
        group: Tool group the check ran for, if any
    """

    reason: str = "policy-denied"

    def __init__(self, message: str, group: str | None = None) -> None:
        self.group = group
        super().__init__(message)


class CommandNotAllowedError(PolicyError):
    """Command basename is not on the configured allow-list."""

    reason = "command-not-allowed"


class PathNotAllowedError(PolicyError):
    """Working directory is outside every allowed root."""

    reason = "path-not-allowed"


class PathQualifiedCommandError(PolicyError):
    """Command contains a path separator while strict-path mode is on."""

    reason = "path-qualified-command"


class FlagInjectionError(PolicyError):
    """A value field starts with a flag prefix."""

    reason = "flag-injection"

    def __init__(self, message: str, param: str, value: str, group: str | None = None) -> None:
        super().__init__(message, group)
        self.param = param
        self.value = value


# --- Tool errors ---


class ToolError(ToolgateError):
    """Base exception for tool-related errors."""

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ToolNotFoundError(ToolError):
    """Raised when a tool or its executable cannot be found."""

    pass


class CommandNotFoundError(ToolNotFoundError):
    """Raised when the executable is not on PATH (or the given path)."""

    pass


class CommandPermissionError(ToolError):
    """Raised when the executable exists but cannot be executed."""

    pass


class ToolExecutionError(ToolError):
    """Raised when a command fails to execute for another OS-level reason."""

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message, tool_name)
        self.exit_code = exit_code
        self.stderr = stderr


class ToolUnavailableError(ToolError):
    """Raised when a tool exists but is disabled or still deferred."""

    def __init__(
        self, message: str, tool_name: str | None = None, state: str | None = None
    ) -> None:
        super().__init__(message, tool_name)
        self.state = state


# --- Structured error payloads ---


class ErrorCategory(str, Enum):
    """Classes of failure a caller can match on without parsing messages."""

    COMMAND_NOT_FOUND = "command-not-found"
    PERMISSION_DENIED = "permission-denied"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    NETWORK_ERROR = "network-error"
    AUTHENTICATION_ERROR = "authentication-error"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration-error"
    ALREADY_EXISTS = "already-exists"
    COMMAND_FAILED = "command-failed"
    POLICY_DENIED = "policy-denied"
    TOOL_UNAVAILABLE = "tool-unavailable"


class ErrorPayload(BaseModel):
    """Structured error returned in place of a tool result."""

    is_error: Literal[True] = True
    category: ErrorCategory
    message: str
    command: str | None = None
    exit_code: int | None = None
    reason: str | None = None  # Policy reason code
    suggestion: str | None = None


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


def is_command_not_found(text: str) -> bool:
    """Whether error text says the command itself was not found."""
    lower = text.lower()
    return _contains_any(
        lower,
        (
            "command not found",
            "not recognized",
            "enoent",
            "no such file or directory",
        ),
    )


def is_permission_denied(text: str) -> bool:
    """Whether error text indicates a permission/access error."""
    lower = text.lower()
    return _contains_any(
        lower,
        (
            "permission denied",
            "eacces",
            "eperm",
            "access denied",
            "operation not permitted",
        ),
    )


def is_timeout(text: str) -> bool:
    """Whether error text indicates a timeout."""
    lower = text.lower()
    return "timed out" in lower or "timeout" in lower


def is_network_error(text: str) -> bool:
    """Whether error text indicates a network connectivity problem."""
    lower = text.lower()
    return _contains_any(
        lower,
        (
            "connection refused",
            "econnrefused",
            "etimedout",
            "econnreset",
            "enetunreach",
            "could not resolve host",
            "network is unreachable",
            "dns resolution failed",
        ),
    )


_HTTP_401_403 = re.compile(r" 40[13][ :]")
_HTTP_404 = re.compile(r" 404[ :]")


def is_auth_error(text: str) -> bool:
    """Whether error text indicates an authentication failure."""
    lower = text.lower()
    if _HTTP_401_403.search(lower):
        return True
    return _contains_any(
        lower,
        (
            "authentication",
            "authenticated",
            "credential",
            "unauthorized",
            "permission denied (publickey",
            "invalid credentials",
            "bad credentials",
            "login required",
        ),
    )


def is_conflict(text: str) -> bool:
    """Whether error text indicates a merge conflict or lock contention."""
    lower = text.lower()
    return _contains_any(lower, ("conflict", "lock file", "locked"))


def is_not_found(text: str) -> bool:
    """Whether error text says a resource does not exist."""
    lower = text.lower()
    if _HTTP_404.search(lower):
        return True
    return _contains_any(
        lower,
        ("not found", "does not exist", "no such", "unknown revision", "pathspec"),
    )


def is_already_exists(text: str) -> bool:
    """Whether error text says a resource already exists."""
    return "already exist" in text.lower()


def is_configuration_error(text: str) -> bool:
    """Whether error text indicates a missing or broken config file."""
    lower = text.lower()
    return _contains_any(
        lower,
        (
            "missing config",
            "configuration error",
            "config file not found",
            "invalid configuration",
            "no configuration",
            ".eslintrc",
            "tsconfig",
            "could not read config",
        ),
    )


def classify_text(text: str, exit_code: int) -> ErrorCategory:
    """Pick the most specific category for error text and exit code.

    Order matters: auth is checked before permission because
    "permission denied (publickey)" is an auth failure, and conflict before
    not-found because conflict messages often mention missing paths.
    """
    if exit_code == 124 or is_timeout(text):
        return ErrorCategory.TIMEOUT
    if is_command_not_found(text):
        return ErrorCategory.COMMAND_NOT_FOUND
    if is_auth_error(text):
        return ErrorCategory.AUTHENTICATION_ERROR
    if is_permission_denied(text):
        return ErrorCategory.PERMISSION_DENIED
    if is_network_error(text):
        return ErrorCategory.NETWORK_ERROR
    if is_already_exists(text):
        return ErrorCategory.ALREADY_EXISTS
    if is_configuration_error(text):
        return ErrorCategory.CONFIGURATION_ERROR
    if is_conflict(text):
        return ErrorCategory.CONFLICT
    if is_not_found(text):
        return ErrorCategory.NOT_FOUND
    return ErrorCategory.COMMAND_FAILED


_SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.COMMAND_NOT_FOUND: 'Ensure "{command}" is installed and available in your PATH.',
    ErrorCategory.PERMISSION_DENIED: (
        "Check file/directory permissions or run with elevated privileges."
    ),
    ErrorCategory.TIMEOUT: (
        "The command took too long. Retry with a longer timeout or a smaller scope."
    ),
    ErrorCategory.INVALID_INPUT: "Check the input parameters and try again.",
    ErrorCategory.NOT_FOUND: "Verify the resource (file, branch, ref, etc.) exists.",
    ErrorCategory.NETWORK_ERROR: "Check your network connection and try again.",
    ErrorCategory.AUTHENTICATION_ERROR: (
        "Verify your credentials or tokens are valid and not expired."
    ),
    ErrorCategory.CONFLICT: "Resolve the conflict or release the lock and retry.",
    ErrorCategory.CONFIGURATION_ERROR: "Check that all required config files exist and are valid.",
    ErrorCategory.ALREADY_EXISTS: (
        "The resource already exists. Use a different name or remove it first."
    ),
    ErrorCategory.COMMAND_FAILED: 'Inspect the error message from "{command}" for more details.',
    ErrorCategory.POLICY_DENIED: (
        "The request was refused by the configured security policy; adjust the "
        "command, working directory or arguments."
    ),
    ErrorCategory.TOOL_UNAVAILABLE: (
        "Enable the tool in the exposure settings or load it via discovery first."
    ),
}


def suggest_recovery(category: ErrorCategory, command: str = "") -> str:
    """Get the recovery hint for a category."""
    return _SUGGESTIONS[category].format(command=command)


def classify_error(result: ExecutionResult, command: str) -> ErrorPayload:
    """Classify a failed execution into a structured error.

    Args:
        result: The execution result (stderr preferred, stdout as fallback)
        command: Human-readable label for the command (e.g. "git tag")

    Returns:
        Fully populated ErrorPayload
    """
    text = result.stderr or result.stdout
    category = classify_text(text, result.exit_code)
    return ErrorPayload(
        category=category,
        message=text.strip() or f"{command} failed with exit code {result.exit_code}",
        command=command,
        exit_code=result.exit_code,
        suggestion=suggest_recovery(category, command),
    )


def payload_from_exception(exc: ToolgateError, command: str | None = None) -> ErrorPayload:
    """Build the structured error for a policy or spawn failure."""
    if isinstance(exc, PolicyError):
        category = ErrorCategory.POLICY_DENIED
        reason: str | None = exc.reason
    elif isinstance(exc, ToolUnavailableError):
        category = ErrorCategory.TOOL_UNAVAILABLE
        reason = exc.state
    elif isinstance(exc, ToolNotFoundError):
        category = ErrorCategory.COMMAND_NOT_FOUND
        reason = None
    elif isinstance(exc, CommandPermissionError):
        category = ErrorCategory.PERMISSION_DENIED
        reason = None
    else:
        category = ErrorCategory.COMMAND_FAILED
        reason = None

    return ErrorPayload(
        category=category,
        message=str(exc),
        command=command,
        reason=reason,
        suggestion=suggest_recovery(category, command or ""),
    )


def format_error(error: ErrorPayload) -> str:
    """Format an error payload as human-readable text."""
    lines = [f"Error [{error.category.value}]: {error.message}"]
    if error.reason:
        lines.append(f"Reason: {error.reason}")
    if error.command:
        lines.append(f"Command: {error.command}")
    if error.exit_code is not None:
        lines.append(f"Exit code: {error.exit_code}")
    if error.suggestion:
        lines.append(f"Suggestion: {error.suggestion}")
    return "\n".join(lines)


def error_response(error: ErrorPayload) -> dict[str, Any]:
    """Create the dual-output response mapping for an error."""
    return {
        "content": [{"type": "text", "text": format_error(error)}],
        "structuredContent": error.model_dump(mode="json", exclude_none=True),
        "isError": True,
    }


def invalid_input_error(message: str) -> dict[str, Any]:
    """Shortcut for an input-validation failure response."""
    return error_response(
        ErrorPayload(
            category=ErrorCategory.INVALID_INPUT,
            message=message,
            suggestion=suggest_recovery(ErrorCategory.INVALID_INPUT),
        )
    )
