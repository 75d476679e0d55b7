"""process:run - run an arbitrary allow-listed command."""

from pydantic import BaseModel, ConfigDict, Field

from toolgate.execution import ExecutionResult
from toolgate.limits import ARRAY_MAX, PATH_MAX, STRING_MAX, BoundedStr, ShortStr

from .base import Invocation, StrList, ToolSpec, count_lines


class ProcessRunParams(BaseModel):
    """Parameters for process:run."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(
        min_length=1, max_length=PATH_MAX, description="Program to run (no shell syntax)"
    )
    args: StrList = Field(default_factory=list, max_length=ARRAY_MAX, description="Argument vector")
    stdin: str | None = Field(
        default=None, max_length=STRING_MAX, description="Text piped to the process"
    )
    timeout_ms: int | None = Field(default=None, gt=0, description="Deadline in milliseconds")
    env: dict[ShortStr, BoundedStr] = Field(
        default_factory=dict, max_length=ARRAY_MAX, description="Extra environment variables"
    )


class ProcessRunResult(BaseModel):
    """Outcome of process:run."""

    command: str
    exit_code: int
    success: bool
    stdout: str
    stderr: str
    duration_ms: int = 0
    timed_out: bool = False
    truncated: bool = False


class ProcessRunCompact(BaseModel):
    """process:run without the output bodies."""

    command: str
    exit_code: int
    success: bool
    stdout_lines: int
    stderr_lines: int
    duration_ms: int = 0
    timed_out: bool = False


def build_run(params: ProcessRunParams) -> Invocation:
    return Invocation(
        program=params.command,
        args=tuple(params.args),
        env=params.env,
        stdin=params.stdin,
        timeout_ms=params.timeout_ms,
    )


def parse_run(exit_code: int, stdout: str, stderr: str) -> ProcessRunResult:
    """Parse raw output with no execution metadata."""
    return ProcessRunResult(
        command="",
        exit_code=exit_code,
        success=exit_code == 0,
        stdout=stdout.rstrip("\n"),
        stderr=stderr.rstrip("\n"),
    )


def parse_run_execution(result: ExecutionResult) -> ProcessRunResult:
    """Parse an execution result, keeping its timing and truncation data."""
    parsed = parse_run(result.exit_code, result.stdout, result.stderr)
    return parsed.model_copy(
        update={
            "command": result.command,
            "duration_ms": result.duration_ms,
            "timed_out": result.timed_out,
            "truncated": result.truncated,
        }
    )


def _status_line(command: str, exit_code: int, duration_ms: int, timed_out: bool) -> str:
    if timed_out:
        return f"$ {command}\nTimed out after {duration_ms}ms (exit code {exit_code})"
    return f"$ {command}\nExit code {exit_code} in {duration_ms}ms"


def format_run(result: ProcessRunResult) -> str:
    """Format a process:run result as text."""
    lines = [_status_line(result.command, result.exit_code, result.duration_ms, result.timed_out)]
    if result.stdout:
        lines.append(result.stdout)
    if result.stderr:
        lines.append(f"[stderr]\n{result.stderr}")
    if result.truncated:
        lines.append("(output truncated)")
    return "\n".join(lines)


def compact_run(result: ProcessRunResult) -> ProcessRunCompact:
    return ProcessRunCompact(
        command=result.command,
        exit_code=result.exit_code,
        success=result.success,
        stdout_lines=count_lines(result.stdout),
        stderr_lines=count_lines(result.stderr),
        duration_ms=result.duration_ms,
        timed_out=result.timed_out,
    )


def format_run_compact(result: ProcessRunCompact) -> str:
    status = _status_line(result.command, result.exit_code, result.duration_ms, result.timed_out)
    return f"{status}\n{result.stdout_lines} stdout line(s), {result.stderr_lines} stderr line(s)"


RUN = ToolSpec(
    group="process",
    name="run",
    description="Run an allow-listed command and capture its output",
    params_model=ProcessRunParams,
    build=build_run,
    parse=parse_run,
    parse_execution=parse_run_execution,
    render=format_run,
    result_model=ProcessRunResult,
    compact_map=compact_run,
    compact_render=format_run_compact,
)

TOOLS = [RUN]
