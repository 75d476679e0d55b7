"""Compaction engine: picks the full or compact structured view.

Token cost is estimated as ``ceil(len / 4)`` characters. This is a fixed
heuristic, not a tokenizer, so decisions are cheap and reproducible.
"""

import dataclasses
import json
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

Choice = Literal["full", "compact"]


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a string as ceil(len / 4)."""
    return (len(text) + 3) // 4


def to_jsonable(obj: Any) -> Any:
    """Convert a structured payload to plain JSON-compatible data."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", exclude_none=True)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {k: v for k, v in dataclasses.asdict(obj).items() if v is not None}
    return obj


def serialize_structured(obj: Any) -> str:
    """Serialize a structured payload as compact JSON.

    Pydantic models and dataclasses are dumped without ``None`` fields;
    no whitespace is emitted between tokens.
    """
    return json.dumps(to_jsonable(obj), separators=(",", ":"), ensure_ascii=False, default=str)


@dataclass(frozen=True)
class CompactionDecision:
    """A compaction choice together with the costs behind it."""

    choice: Choice
    raw_cost: int
    full_cost: int
    compact_cost: int


def evaluate(raw_output: str, full_json: str, compact_json: str) -> CompactionDecision:
    """Compare token costs and choose a view.

    Rules, in order:
      1. full_cost <= raw_cost: keep full (nothing to gain by dropping detail)
      2. compact_cost < full_cost: compact
      3. otherwise full (compacting would not help)
    """
    raw_cost = estimate_tokens(raw_output)
    full_cost = estimate_tokens(full_json)
    compact_cost = estimate_tokens(compact_json)

    if full_cost <= raw_cost:
        choice: Choice = "full"
    elif compact_cost < full_cost:
        choice = "compact"
    else:
        choice = "full"

    return CompactionDecision(
        choice=choice,
        raw_cost=raw_cost,
        full_cost=full_cost,
        compact_cost=compact_cost,
    )


def decide(raw_output: str, full_json: str, compact_json: str) -> Choice:
    """Return "full" or "compact" for the given serialized candidates."""
    return evaluate(raw_output, full_json, compact_json).choice
