"""Tool invoker: runs one tool call through the whole pipeline.

exposure check -> parameter validation -> build -> policy gate -> process
runner -> parser -> dual output. Failures before the parser turn into a
structured error response; tool-level failures stay ordinary results
unless the tool asks for them to be classified.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolgate.adapters import Invocation, ToolSpec
from toolgate.config import PolicyConfig, Settings
from toolgate.errors import (
    ToolgateError,
    ToolUnavailableError,
    classify_error,
    error_response,
    invalid_input_error,
    payload_from_exception,
)
from toolgate.execution import ExecutionResult, ProcessRunner
from toolgate.exposure import ToolExposurePolicy
from toolgate.output import ToolResponse, compose
from toolgate.policy import PolicyGate
from toolgate.registry import ToolRegistry, create_registry

logger = logging.getLogger(__name__)


def _error(payload: dict[str, Any]) -> ToolResponse:
    return ToolResponse.model_validate(payload)


def _validation_message(spec: ToolSpec, exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "params"
        problems.append(f"{location}: {err['msg']}")
    return f"Invalid parameters for {spec.qualified_name}: " + "; ".join(problems)


def _command_label(invocation: Invocation) -> str:
    if invocation.args:
        return f"{invocation.program} {invocation.args[0]}"
    return invocation.program


class ToolInvoker:
    """Runs tool calls against a registry under exposure and policy rules."""

    def __init__(
        self,
        registry: ToolRegistry,
        exposure: ToolExposurePolicy,
        policy_config: PolicyConfig,
        runner: ProcessRunner | None = None,
    ) -> None:
        """Initialize the invoker.

        Args:
            registry: Tools that can be called
            exposure: Which of them are currently advertised
            policy_config: Process-wide policy for the gate
            runner: Process runner (default: one built from policy_config)
        """
        self.registry = registry
        self.exposure = exposure
        self.policy_config = policy_config
        self.runner = runner or ProcessRunner(
            max_output_bytes=policy_config.max_output_bytes,
            sanitize_all_paths=policy_config.sanitize_all_paths,
            default_timeout_ms=policy_config.default_timeout_ms,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: ToolRegistry | None = None
    ) -> "ToolInvoker":
        """Wire an invoker from resolved settings."""
        if registry is None:
            registry = create_registry(settings.config_dir)
        exposure = ToolExposurePolicy(settings.exposure, registry.registrations())
        return cls(registry, exposure, settings.policy)

    def _check_exposure(self, group: str, tool: str) -> ToolSpec:
        name = f"{group}:{tool}"
        spec = self.registry.get(group, tool)
        if spec is None:
            raise ToolUnavailableError(f"Unknown tool: {name}", tool_name=name, state="unknown")

        state = self.exposure.state(name)
        if state is None or not state.advertised:
            state_name = state.value if state is not None else "unregistered"
            raise ToolUnavailableError(
                f"Tool {name} is not available ({state_name})",
                tool_name=name,
                state=state_name,
            )
        return spec

    async def execute(
        self,
        spec: ToolSpec,
        invocation: Invocation,
        cwd: str | Path | None = None,
    ) -> ExecutionResult:
        """Authorize and run a built invocation.

        Raises:
            PolicyError: If the gate refuses the command
            ToolError: If the process cannot be started
        """
        gate = PolicyGate(self.policy_config, group=spec.group)
        gate.enforce(invocation.program, invocation.args, cwd, invocation.values)
        return await self.runner.run(
            invocation.program,
            invocation.args,
            cwd=cwd,
            timeout_ms=invocation.timeout_ms,
            env=invocation.env,
            stdin=invocation.stdin,
        )

    async def invoke(
        self,
        group: str,
        tool: str,
        params: Mapping[str, Any] | None = None,
        cwd: str | Path | None = None,
        force_full: bool = False,
    ) -> ToolResponse:
        """Call a tool and shape its result.

        Args:
            group: Tool group
            tool: Tool name within the group
            params: Caller parameters, validated by the tool's model
            cwd: Working directory (default: current directory)
            force_full: Return the full structured result, never the compact one

        Returns:
            ToolResponse; ``is_error`` is set for refusals, spawn failures,
            invalid parameters and classified tool failures
        """
        logger.debug("Invoking %s:%s", group, tool)
        try:
            spec = self._check_exposure(group, tool)
        except ToolUnavailableError as e:
            return _error(error_response(payload_from_exception(e)))

        try:
            validated = spec.params_model.model_validate(dict(params or {}))
        except ValidationError as e:
            return _error(invalid_input_error(_validation_message(spec, e)))

        invocation = spec.build(validated)
        try:
            result = await self.execute(spec, invocation, cwd)
        except ToolgateError as e:
            return _error(error_response(payload_from_exception(e, invocation.program)))

        if spec.fail_on_error and not result.success:
            return _error(error_response(classify_error(result, _command_label(invocation))))

        parsed = spec.parse_result(result)
        output = compose(
            parsed,
            human_renderer=spec.render,
            compact_mapper=spec.compact_map or (lambda r: r),
            compact_renderer=spec.compact_render or spec.render,
            force_full=force_full or not spec.compactable,
            raw_output=result.output,
            schema_mapper=spec.schema_map,
        )
        return output.to_response()
