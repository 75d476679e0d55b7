"""Process runner: executes one approved command and captures the result."""

import asyncio
import logging
import os
import signal as signal_module
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from toolgate.config import DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_TIMEOUT_MS
from toolgate.errors import (
    CommandNotFoundError,
    CommandPermissionError,
    ToolExecutionError,
)

from .base import TIMEOUT_EXIT_CODE, CommandRequest, ExecutionResult
from .sanitize import sanitize_error_output, strip_ansi

logger = logging.getLogger(__name__)

# How long a timed-out process gets to exit after SIGTERM before SIGKILL
DEFAULT_KILL_GRACE = 2.0  # seconds

_READ_CHUNK = 64 * 1024


def _signal_name(signum: int) -> str:
    try:
        return signal_module.Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


class _CappedBuffer:
    """Accumulates stream bytes up to a ceiling and counts the overflow."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._data = bytearray()
        self.dropped = 0

    def feed(self, chunk: bytes) -> None:
        room = self._limit - len(self._data)
        if room >= len(chunk):
            self._data.extend(chunk)
            return
        if room > 0:
            self._data.extend(chunk[:room])
        self.dropped += len(chunk) - max(room, 0)

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")


def _signal_group(pgid: int, signum: int) -> bool:
    """Signal every process in a group. Returns False if none was left."""
    try:
        os.killpg(pgid, signum)
    except ProcessLookupError:
        return False
    return True


async def _drain(stream: asyncio.StreamReader | None, buffer: _CappedBuffer) -> None:
    """Read a stream to EOF, keeping at most the buffer's limit."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        buffer.feed(chunk)


class ProcessRunner:
    """Runs commands as child processes without a shell.

    Nonzero exits and timeouts are returned as ordinary results. Only
    failures to start the process at all are raised.
    """

    def __init__(
        self,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        sanitize_all_paths: bool = False,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        kill_grace: float = DEFAULT_KILL_GRACE,
    ) -> None:
        """Initialize the runner.

        Args:
            max_output_bytes: Per-stream capture ceiling in bytes
            sanitize_all_paths: Redact all absolute paths in stderr, not just home dirs
            default_timeout_ms: Timeout used when a call doesn't give one
            kill_grace: Seconds between SIGTERM and SIGKILL on timeout
        """
        self._max_output_bytes = max_output_bytes
        self._sanitize_all_paths = sanitize_all_paths
        self._default_timeout_ms = default_timeout_ms
        self._kill_grace = kill_grace

    @property
    def max_output_bytes(self) -> int:
        """Per-stream capture ceiling in bytes."""
        return self._max_output_bytes

    @property
    def default_timeout_ms(self) -> int:
        """Timeout used when a call doesn't give one."""
        return self._default_timeout_ms

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        timeout_ms: int | None = None,
        env: Mapping[str, str] | None = None,
        stdin: str | None = None,
    ) -> ExecutionResult:
        """Run a command with the given arguments.

        Args:
            command: Program name or path
            args: Argument vector
            cwd: Working directory
            timeout_ms: Deadline in milliseconds (default: runner default)
            env: Variables merged over the current environment
            stdin: Text to write to the process's stdin

        Returns:
            ExecutionResult with captured output and status

        Raises:
            CommandNotFoundError: If the executable does not exist
            CommandPermissionError: If the executable cannot be run
            ToolExecutionError: If the process fails to start for another reason
        """
        request = CommandRequest(
            program=command,
            args=tuple(args),
            cwd=Path(cwd) if cwd is not None else None,
            env=env or {},
            timeout_ms=timeout_ms if timeout_ms is not None else self._default_timeout_ms,
            stdin=stdin,
        )
        return await self.run_request(request)

    async def run_request(self, request: CommandRequest) -> ExecutionResult:
        """Run a prepared CommandRequest. See ``run`` for details."""
        cmd_str = request.display
        logger.debug("Spawning %s (cwd=%s, timeout=%sms)", cmd_str, request.cwd, request.timeout_ms)

        if request.cwd is not None and not request.cwd.is_dir():
            raise ToolExecutionError(
                f"Working directory does not exist: {request.cwd}",
                tool_name=request.program,
            )

        start_time = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                *request.argv,
                stdin=asyncio.subprocess.PIPE
                if request.stdin is not None
                else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=request.cwd,
                env=self._get_env(request.env),
                start_new_session=True,
            )
        except FileNotFoundError:
            raise CommandNotFoundError(
                f'Command not found: "{request.program}". '
                "Ensure it is installed and available in your PATH.",
                tool_name=request.program,
            ) from None
        except PermissionError as e:
            raise CommandPermissionError(
                f'Permission denied executing "{request.program}": {e}',
                tool_name=request.program,
            ) from e
        except OSError as e:
            raise ToolExecutionError(
                f"Failed to execute command: {e}",
                tool_name=request.program,
            ) from e

        stdout_buf = _CappedBuffer(self._max_output_bytes)
        stderr_buf = _CappedBuffer(self._max_output_bytes)
        # process.wait() also waits for the pipes, so a lingering grandchild
        # holding them keeps this open past the child's own exit
        finished = asyncio.gather(
            _drain(process.stdout, stdout_buf),
            _drain(process.stderr, stderr_buf),
            process.wait(),
        )

        feeder: asyncio.Task[None] | None = None
        if request.stdin is not None and process.stdin is not None:
            feeder = asyncio.create_task(self._feed_stdin(process.stdin, request.stdin))

        timed_out = False
        sent_signal: str | None = None
        try:
            await asyncio.wait_for(asyncio.shield(finished), timeout=request.timeout_ms / 1000)
        except TimeoutError:
            if process.returncode is None:
                timed_out = True
                sent_signal = await self._terminate(process.pid, finished)
                logger.warning("Command timed out after %sms: %s", request.timeout_ms, cmd_str)
            else:
                _signal_group(process.pid, signal_module.SIGKILL)
                logger.warning(
                    "Killed background processes left running by %s after %sms",
                    cmd_str,
                    request.timeout_ms,
                )
        except asyncio.CancelledError:
            _signal_group(process.pid, signal_module.SIGKILL)
            finished.cancel()
            raise

        if feeder is not None:
            if timed_out:
                feeder.cancel()
            await asyncio.gather(feeder, return_exceptions=True)

        if not finished.done():
            # Processes that left the group may still hold the pipes open
            try:
                await asyncio.wait_for(finished, timeout=self._kill_grace)
            except TimeoutError:
                logger.debug("Output streams still open after kill: %s", cmd_str)
        duration_ms = int((time.perf_counter() - start_time) * 1000)

        returncode = process.returncode
        signal_name: str | None = None
        if returncode is not None and returncode < 0:
            signal_name = _signal_name(-returncode)

        if timed_out:
            # A signal death carries no exit code of its own
            exit_code = (
                returncode if returncode is not None and returncode >= 0 else TIMEOUT_EXIT_CODE
            )
            signal_name = signal_name or sent_signal
        elif returncode is None:
            exit_code = 1
        elif returncode < 0:
            exit_code = 128 - returncode
        else:
            exit_code = returncode

        if stdout_buf.dropped or stderr_buf.dropped:
            logger.warning(
                "Output truncated for %s: stdout dropped %d bytes, stderr dropped %d bytes",
                cmd_str,
                stdout_buf.dropped,
                stderr_buf.dropped,
            )
        logger.debug("Finished %s: exit=%s in %dms", cmd_str, exit_code, duration_ms)

        return ExecutionResult(
            stdout=strip_ansi(stdout_buf.text()),
            stderr=sanitize_error_output(
                strip_ansi(stderr_buf.text()), broad=self._sanitize_all_paths
            ),
            exit_code=exit_code,
            duration_ms=duration_ms,
            timed_out=timed_out,
            signal=signal_name,
            command=cmd_str,
            stdout_truncated_bytes=stdout_buf.dropped,
            stderr_truncated_bytes=stderr_buf.dropped,
        )

    async def _feed_stdin(self, writer: asyncio.StreamWriter, data: str) -> None:
        """Write stdin data and close the stream so the child sees EOF."""
        try:
            writer.write(data.encode("utf-8"))
            await writer.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The child exited without reading its input
            logger.debug("stdin closed early by child process")
        finally:
            writer.close()

    async def _terminate(self, pgid: int, finished: asyncio.Future) -> str | None:
        """Stop a timed-out process group: SIGTERM, then SIGKILL after the grace period.

        Returns:
            Name of the last signal delivered, or None if the group was already gone
        """
        if not _signal_group(pgid, signal_module.SIGTERM):
            return None
        try:
            await asyncio.wait_for(asyncio.shield(finished), timeout=self._kill_grace)
            return "SIGTERM"
        except TimeoutError:
            if _signal_group(pgid, signal_module.SIGKILL):
                return "SIGKILL"
            return "SIGTERM"

    def _get_env(self, overrides: Mapping[str, str]) -> dict[str, str] | None:
        """Merge overrides onto a copy of the current environment."""
        if not overrides:
            return None
        env = os.environ.copy()
        env.update(overrides)
        return env
