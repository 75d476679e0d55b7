"""User-defined passthrough tools from tools.toml."""

from pydantic import BaseModel, ConfigDict, Field

from toolgate.limits import ARRAY_MAX, STRING_MAX

from .base import Invocation, StrList, ToolSpec


class CustomToolDefinition(BaseModel):
    """One ``[group.tool]`` table of tools.toml.

    Attributes:
        command: Program to run
        args: Arguments always passed before caller targets
        description: Shown in tool listings
        core: Core-tool flag (None = use the built-in table)
        timeout_ms: Per-call deadline (None = runner default)
    """

    model_config = ConfigDict(extra="forbid")

    command: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)
    description: str = ""
    core: bool | None = None
    timeout_ms: int | None = Field(default=None, gt=0)


class CustomToolParams(BaseModel):
    """Parameters accepted by every user-defined tool."""

    model_config = ConfigDict(extra="forbid")

    targets: StrList = Field(
        default_factory=list, max_length=ARRAY_MAX, description="Arguments appended to the command"
    )
    stdin: str | None = Field(
        default=None, max_length=STRING_MAX, description="Text piped to the process"
    )


class CustomToolResult(BaseModel):
    """Output of a user-defined tool, split into lines."""

    exit_code: int
    success: bool
    lines: list[str] = Field(default_factory=list)


class CustomToolCompact(BaseModel):
    exit_code: int
    success: bool
    line_count: int = 0


def parse_custom(exit_code: int, stdout: str, stderr: str) -> CustomToolResult:
    """Collect non-empty stdout lines, then stderr lines."""
    lines = [line for line in stdout.splitlines() if line.strip()]
    lines.extend(line for line in stderr.splitlines() if line.strip())
    return CustomToolResult(exit_code=exit_code, success=exit_code == 0, lines=lines)


def format_custom(result: CustomToolResult) -> str:
    body = "\n".join(result.lines) if result.lines else "(no output)"
    if result.success:
        return body
    return f"{body}\nExit code {result.exit_code}"


def compact_custom(result: CustomToolResult) -> CustomToolCompact:
    return CustomToolCompact(
        exit_code=result.exit_code,
        success=result.success,
        line_count=len(result.lines),
    )


def format_custom_compact(result: CustomToolCompact) -> str:
    status = "ok" if result.success else f"exit code {result.exit_code}"
    return f"{result.line_count} line(s), {status}"


def make_custom_tool(group: str, name: str, definition: CustomToolDefinition) -> ToolSpec:
    """Create a ToolSpec for a tools.toml entry.

    Caller targets are appended after the configured args and each one is
    checked for flag injection.
    """

    def build(params: CustomToolParams) -> Invocation:
        return Invocation(
            program=definition.command,
            args=(*definition.args, *params.targets),
            values={f"targets[{i}]": target for i, target in enumerate(params.targets)},
            stdin=params.stdin,
            timeout_ms=definition.timeout_ms,
        )

    return ToolSpec(
        group=group,
        name=name,
        description=definition.description or f"Custom tool: {definition.command}",
        params_model=CustomToolParams,
        build=build,
        parse=parse_custom,
        render=format_custom,
        result_model=CustomToolResult,
        compact_map=compact_custom,
        compact_render=format_custom_compact,
        is_core=definition.core,
        is_builtin=False,
    )


def load_custom_specs(definitions: dict[str, dict[str, dict]]) -> list[ToolSpec]:
    """Build ToolSpecs from the parsed tools.toml mapping.

    Raises:
        pydantic.ValidationError: If a definition is invalid
    """
    return [
        make_custom_tool(group, name, CustomToolDefinition.model_validate(data))
        for group, tools in definitions.items()
        for name, data in tools.items()
    ]
