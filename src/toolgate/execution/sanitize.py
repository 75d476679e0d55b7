"""Cleanup applied to captured output before parsers see it."""

import re

# CSI sequences (colors, cursor movement), OSC sequences (titles, hyperlinks)
# and two-byte escapes
_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
    r"|\x9b[0-?]*[ -/]*[@-~]"
)

_UNIX_HOME_RE = re.compile(r"(?<![\w.-])/(?:home|Users)/[^/\s]+/")
_ROOT_HOME_RE = re.compile(r"(?<![\w.-])/root/")
_WINDOWS_HOME_RE = re.compile(r"[A-Za-z]:\\Users\\[^\\\s]+\\")

# Absolute paths outside home directories, redacted in broad mode.
# The final segment is kept so messages stay useful.
_UNIX_ABS_RE = re.compile(
    r"(?<![\w~.])/(?:etc|var|opt|usr|tmp|srv|snap|nix|private|Library|System|Applications"
    r"|mnt|media|proc|sys|bin|sbin|lib|dev)"
    r"(?:/[^/\s:]+)*/([^/\s:]+)"
)
_WINDOWS_ABS_RE = re.compile(r"[A-Za-z]:\\(?:[^\\\r\n:]+\\)*([^\\\s:]+)")

REDACTED = "<redacted-path>"


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences from text."""
    return _ANSI_RE.sub("", text)


def sanitize_error_output(text: str, broad: bool = False) -> str:
    """Hide user-identifying paths in error output.

    Home directories are replaced with ``~``. With ``broad`` enabled, other
    absolute paths are collapsed to ``<redacted-path>/<last segment>``.

    Args:
        text: Error text (usually stderr)
        broad: Also redact system paths outside home directories

    Returns:
        Sanitized text
    """
    if not text:
        return text

    result = _UNIX_HOME_RE.sub("~/", text)
    result = _ROOT_HOME_RE.sub("~/", result)
    result = _WINDOWS_HOME_RE.sub(lambda _m: "~\\", result)

    if broad:
        result = _UNIX_ABS_RE.sub(lambda m: f"{REDACTED}/{m.group(1)}", result)
        result = _WINDOWS_ABS_RE.sub(lambda m: f"{REDACTED}\\{m.group(1)}", result)

    return result
