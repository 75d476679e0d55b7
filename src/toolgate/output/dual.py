"""Dual-output composition: human text plus structured payload."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .compaction import Choice, CompactionDecision, evaluate, serialize_structured, to_jsonable

logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C")


class TextContent(BaseModel):
    """A text block of a tool response."""

    type: str = "text"
    text: str


class ToolResponse(BaseModel):
    """Caller-facing response: text content, structured content, error flag."""

    content: list[TextContent] = Field(default_factory=list)
    structured_content: dict[str, Any] = Field(default_factory=dict, alias="structuredContent")
    is_error: bool = Field(default=False, alias="isError")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def text(self) -> str:
        """All text blocks joined."""
        return "\n".join(block.text for block in self.content)

    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass
class DualOutput(Generic[T, C]):
    """Both views of one tool result.

    Attributes:
        human_text: Rendering of the full result
        structured_full: The full structured result (after schema projection)
        structured_compact: Compact projection, absent when forced full
        compact_text: Rendering of the compact projection
        selected: Which structured view is returned to the caller
        decision: Cost comparison behind the selection, if one was made
    """

    human_text: str
    structured_full: T
    structured_compact: C | None = None
    compact_text: str | None = None
    selected: Choice = "full"
    decision: CompactionDecision | None = None

    @property
    def is_compact(self) -> bool:
        """Whether the compact view was selected."""
        return self.selected == "compact"

    @property
    def text(self) -> str:
        """Human text for the selected view."""
        if self.is_compact and self.compact_text is not None:
            return self.compact_text
        return self.human_text

    @property
    def structured(self) -> T | C:
        """Structured payload for the selected view."""
        if self.is_compact and self.structured_compact is not None:
            return self.structured_compact
        return self.structured_full

    def to_response(self) -> ToolResponse:
        """Build the caller-facing response from the selected view."""
        data = to_jsonable(self.structured)
        if not isinstance(data, dict):
            data = {"result": data}
        return ToolResponse(
            content=[TextContent(text=self.text)],
            structured_content=data,
            is_error=False,
        )


def dual_output(data: T, human_renderer: Callable[[T], str]) -> DualOutput[T, Any]:
    """Plain dual output with no compaction."""
    return DualOutput(human_text=human_renderer(data), structured_full=data)


def compose(
    tool_result: T,
    human_renderer: Callable[[T], str],
    compact_mapper: Callable[[T], C],
    compact_renderer: Callable[[C], str],
    force_full: bool = False,
    raw_output: str = "",
    schema_mapper: Callable[[T], Any] | None = None,
) -> DualOutput[Any, C]:
    """Produce the human and structured views of a tool result.

    Args:
        tool_result: Parsed result from the tool's parser
        human_renderer: Formats the full result as text (always invoked)
        compact_mapper: Projects the result into a reduced form
        compact_renderer: Formats the compact form as text
        force_full: Skip compaction entirely and return the full form
        raw_output: The tool's raw (ANSI-stripped) output, the cost baseline
        schema_mapper: Optional projection that drops internal-only fields
            from the full structured payload; the human renderer still
            receives the unprojected result

    Returns:
        DualOutput with the selected view marked
    """
    human_text = human_renderer(tool_result)
    full = schema_mapper(tool_result) if schema_mapper is not None else tool_result

    if force_full:
        return DualOutput(human_text=human_text, structured_full=full, selected="full")

    compact = compact_mapper(tool_result)
    compact_text = compact_renderer(compact)
    # Costs are measured on the payloads the caller would actually receive
    decision = evaluate(raw_output, serialize_structured(full), serialize_structured(compact))
    logger.debug(
        "Compaction %s (raw=%d, full=%d, compact=%d tokens)",
        decision.choice,
        decision.raw_cost,
        decision.full_cost,
        decision.compact_cost,
    )
    return DualOutput(
        human_text=human_text,
        structured_full=full,
        structured_compact=compact,
        compact_text=compact_text,
        selected=decision.choice,
        decision=decision,
    )
