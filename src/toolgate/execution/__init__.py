"""Command execution for toolgate.

Provides the request/result types and the process runner every tool
adapter executes through:

- ``CommandRequest`` / ``ExecutionResult``: immutable per-call values
- ``ProcessRunner``: shell-free subprocess execution with timeouts and
  output ceilings
- ``strip_ansi`` / ``sanitize_error_output``: output cleanup

Example:
    runner = ProcessRunner()
    result = await runner.run("git", ["status", "--porcelain"], cwd="/srv/repo")
    if result.timed_out:
        ...
"""

from .base import TIMEOUT_EXIT_CODE, CommandRequest, ExecutionResult
from .runner import ProcessRunner
from .sanitize import sanitize_error_output, strip_ansi

__all__ = [
    "CommandRequest",
    "ExecutionResult",
    "ProcessRunner",
    "TIMEOUT_EXIT_CODE",
    "sanitize_error_output",
    "strip_ansi",
]
