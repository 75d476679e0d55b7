"""Output shaping for tool results.

This module turns a parsed tool result into the two views returned to a
caller: human-readable text and a structured payload. When the structured
payload would cost more tokens than the raw tool output, a compact
projection is substituted.

Example:
    output = compose(
        result,
        human_renderer=format_status,
        compact_mapper=compact_status,
        compact_renderer=format_status_compact,
        force_full=False,
        raw_output=execution.stdout,
    )
    response = output.to_response()
"""

from .compaction import (
    CompactionDecision,
    decide,
    estimate_tokens,
    evaluate,
    serialize_structured,
)
from .dual import DualOutput, TextContent, ToolResponse, compose, dual_output

__all__ = [
    # Composition
    "DualOutput",
    "ToolResponse",
    "TextContent",
    "compose",
    "dual_output",
    # Compaction
    "CompactionDecision",
    "decide",
    "evaluate",
    "estimate_tokens",
    "serialize_structured",
]
