"""Request and result types for command execution."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from toolgate.config import DEFAULT_TIMEOUT_MS

# Exit code reported when a command is killed for running past its deadline
TIMEOUT_EXIT_CODE = 124


@dataclass(frozen=True)
class CommandRequest:
    """A single program invocation.

    Attributes:
        program: Executable name or path (never a shell string)
        args: Argument vector passed to the program
        cwd: Working directory (None = current directory)
        env: Variables merged over the current environment
        timeout_ms: Deadline after which the process is terminated
        stdin: Text written to the process's stdin, then closed
    """

    program: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    stdin: str | None = None

    def __post_init__(self) -> None:
        # Freeze caller-owned containers
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        if self.cwd is not None and not isinstance(self.cwd, Path):
            object.__setattr__(self, "cwd", Path(self.cwd))

    @property
    def argv(self) -> list[str]:
        """Full argument vector including the program."""
        return [self.program, *self.args]

    @property
    def display(self) -> str:
        """Command line for logs and messages."""
        return " ".join(self.argv)


@dataclass(frozen=True)
class ExecutionResult:
    """Result of running one command.

    Attributes:
        stdout: Standard output (ANSI-stripped)
        stderr: Standard error (ANSI-stripped, sanitized)
        exit_code: Process exit code (0 = success)
        duration_ms: Wall-clock time from spawn to exit
        timed_out: Whether the deadline fired
        signal: Name of the signal that ended the process, if any
        command: The command line that was executed
        stdout_truncated_bytes: Bytes dropped beyond the output ceiling
        stderr_truncated_bytes: Bytes dropped beyond the output ceiling
    """

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int = 0
    timed_out: bool = False
    signal: str | None = None
    command: str = ""
    stdout_truncated_bytes: int = 0
    stderr_truncated_bytes: int = 0

    @property
    def success(self) -> bool:
        """Whether the command succeeded (exit code 0)."""
        return self.exit_code == 0

    @property
    def truncated(self) -> bool:
        """Whether any output was dropped."""
        return self.stdout_truncated_bytes > 0 or self.stderr_truncated_bytes > 0

    @property
    def output(self) -> str:
        """Combined stdout then stderr."""
        parts = []
        if self.stdout:
            parts.append(self.stdout)
        if self.stderr:
            parts.append(self.stderr)
        return "\n".join(parts)
