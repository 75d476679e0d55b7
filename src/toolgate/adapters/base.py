"""Adapter contract: the capability bundle every tool provides."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, BeforeValidator

from toolgate.execution import ExecutionResult
from toolgate.exposure import ToolRegistration
from toolgate.limits import BoundedStr

P = TypeVar("P", bound=BaseModel)
R = TypeVar("R")
C = TypeVar("C")


@dataclass(frozen=True)
class Invocation:
    """What an adapter wants executed for one call.

    Attributes:
        program: Executable to run
        args: Full argument vector (may contain the adapter's own flags)
        values: Caller-supplied data fields, checked for flag injection
        env: Variables merged over the current environment
        stdin: Text piped to the process
        timeout_ms: Per-call deadline (None = runner default)
    """

    program: str
    args: tuple[str, ...] = ()
    values: Mapping[str, str | None] = field(default_factory=lambda: MappingProxyType({}))
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    stdin: str | None = None
    timeout_ms: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True)
class ToolSpec(Generic[P, R, C]):
    """Everything the invoker needs to run and shape one tool.

    Attributes:
        group: Tool group (also selects the per-group policy)
        name: Tool name within the group
        description: One-line description shown in listings
        params_model: Pydantic model validating caller parameters
        build: Turns validated parameters into an Invocation
        parse: Pure parser ``(exit_code, stdout, stderr) -> result``
        render: Human-readable rendering of the full result
        result_model: Model describing the structured result
        compact_map: Projection to the compact form (None = never compacted)
        compact_render: Rendering of the compact form
        schema_map: Drops internal-only fields from the structured payload
        parse_execution: Replaces ``parse`` when the result needs execution
            metadata (duration, timeout, truncation)
        fail_on_error: Report a nonzero exit as a classified error instead
            of a normal result
        is_core: Core-tool flag (None = use the built-in core table)
        is_builtin: Whether the tool ships with toolgate
    """

    group: str
    name: str
    description: str
    params_model: type[P]
    build: Callable[[P], Invocation]
    parse: Callable[[int, str, str], R]
    render: Callable[[R], str]
    result_model: type[BaseModel] | None = None
    compact_map: Callable[[R], C] | None = None
    compact_render: Callable[[C], str] | None = None
    schema_map: Callable[[R], Any] | None = None
    parse_execution: Callable[[ExecutionResult], R] | None = None
    fail_on_error: bool = False
    is_core: bool | None = None
    is_builtin: bool = True

    @property
    def qualified_name(self) -> str:
        """``group:tool`` name used by exposure settings."""
        return f"{self.group}:{self.name}"

    @property
    def compactable(self) -> bool:
        """Whether the tool has a compact form."""
        return self.compact_map is not None and self.compact_render is not None

    def parse_result(self, result: ExecutionResult) -> R:
        """Parse an execution result with whichever parser the tool declares."""
        if self.parse_execution is not None:
            return self.parse_execution(result)
        return self.parse(result.exit_code, result.stdout, result.stderr)

    def registration(self) -> ToolRegistration:
        """Exposure registration for this tool."""
        return ToolRegistration(
            group=self.group,
            tool=self.name,
            description=self.description,
            is_core=self.is_core,
        )

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's parameters."""
        return self.params_model.model_json_schema()

    def output_schema(self) -> dict[str, Any] | None:
        """JSON schema of the structured result, if declared."""
        if self.result_model is None:
            return None
        return self.result_model.model_json_schema()


def as_list(value: Any) -> Any:
    """Coerce a single string into a one-item list (for repeatable params)."""
    if isinstance(value, str):
        return [value]
    return value


def count_lines(text: str) -> int:
    """Number of non-empty lines in text."""
    return sum(1 for line in text.splitlines() if line.strip())


# A bounded list parameter that also accepts a single string
StrList = Annotated[list[BoundedStr], BeforeValidator(as_list)]
