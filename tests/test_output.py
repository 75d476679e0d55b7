"""Tests for compaction and dual-output composition."""

from dataclasses import dataclass

from pydantic import BaseModel

from toolgate.output import (
    CompactionDecision,
    DualOutput,
    ToolResponse,
    compose,
    decide,
    dual_output,
    estimate_tokens,
    evaluate,
    serialize_structured,
)


class Listing(BaseModel):
    files: list[str]
    total: int
    note: str | None = None
    internal: str | None = None


class ListingCompact(BaseModel):
    total: int


def render_listing(listing: Listing) -> str:
    return "\n".join(listing.files) or "(empty)"


def compact_listing(listing: Listing) -> ListingCompact:
    return ListingCompact(total=listing.total)


def render_compact(compact: ListingCompact) -> str:
    return f"{compact.total} files"


def big_listing(count: int = 50) -> Listing:
    return Listing(files=[f"src/module_{i}.py" for i in range(count)], total=count)


class TestEstimateTokens:
    """Test the token heuristic."""

    def test_rounds_up(self):
        """Costs are ceil(len / 4)."""
        assert estimate_tokens("") == 0
        assert estimate_tokens("a") == 1
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("x" * 200) == 50


class TestSerializeStructured:
    """Test compact JSON serialization."""

    def test_no_whitespace_and_no_none(self):
        """Models are dumped without None fields or spaces."""
        listing = Listing(files=["a", "b"], total=2)
        assert serialize_structured(listing) == '{"files":["a","b"],"total":2}'

    def test_dataclass(self):
        """Dataclasses are supported too."""

        @dataclass
        class Point:
            x: int
            label: str | None = None

        assert serialize_structured(Point(x=1)) == '{"x":1}'

    def test_plain_data(self):
        """Plain data passes straight through."""
        assert serialize_structured({"a": [1, 2]}) == '{"a":[1,2]}'


class TestCompactionDecision:
    """Test the full/compact rule."""

    def test_compact_when_structured_exceeds_raw(self):
        """raw 20, full 200, compact 40 chars selects compact."""
        assert decide("r" * 20, "f" * 200, "c" * 40) == "compact"

    def test_full_when_structured_is_cheaper_than_raw(self):
        """raw 1000, full 80 keeps full regardless of compact."""
        assert decide("r" * 1000, "f" * 80, "c" * 4) == "full"

    def test_full_when_equal_to_raw(self):
        """full_cost == raw_cost keeps full."""
        assert decide("r" * 40, "f" * 40, "c" * 4) == "full"

    def test_full_when_compact_does_not_help(self):
        """Compact at or above full cost keeps full."""
        assert decide("r" * 4, "f" * 40, "c" * 40) == "full"
        assert decide("r" * 4, "f" * 40, "c" * 80) == "full"

    def test_evaluate_reports_costs(self):
        """evaluate returns the choice with all three costs."""
        decision = evaluate("r" * 20, "f" * 200, "c" * 40)
        assert decision == CompactionDecision(
            choice="compact", raw_cost=5, full_cost=50, compact_cost=10
        )


class TestCompose:
    """Test the dual-output composer."""

    def test_compact_selected_for_short_raw_output(self):
        """A bulky result of terse raw output is compacted."""
        listing = big_listing()
        output = compose(
            listing,
            render_listing,
            compact_listing,
            render_compact,
            raw_output="50 files",
        )
        assert output.selected == "compact"
        assert output.is_compact
        assert output.structured == ListingCompact(total=50)
        assert output.text == "50 files"
        assert output.human_text == render_listing(listing)
        assert output.decision is not None

    def test_full_selected_for_verbose_raw_output(self):
        """When the raw output is larger, the full result is kept."""
        listing = big_listing()
        output = compose(
            listing,
            render_listing,
            compact_listing,
            render_compact,
            raw_output="x" * 10_000,
        )
        assert output.selected == "full"
        assert output.structured is listing
        assert output.text == render_listing(listing)

    def test_force_full_skips_compaction(self):
        """force_full never calls the compact mapper."""
        calls = []

        def mapper(listing: Listing) -> ListingCompact:
            calls.append(listing)
            return compact_listing(listing)

        output = compose(
            big_listing(),
            render_listing,
            mapper,
            render_compact,
            force_full=True,
            raw_output="",
        )
        assert calls == []
        assert output.selected == "full"
        assert output.structured_compact is None
        assert output.compact_text is None
        assert output.decision is None

    def test_human_renderer_always_called(self):
        """The human renderer runs even when compact is chosen."""
        calls = []

        def renderer(listing: Listing) -> str:
            calls.append(listing)
            return "rendered"

        compose(big_listing(), renderer, compact_listing, render_compact, raw_output="")
        assert len(calls) == 1

    def test_schema_mapper_projects_full_payload(self):
        """schema_mapper strips fields from the structured view only."""
        listing = Listing(files=["a"], total=1, internal="secret")
        seen = []

        def renderer(item: Listing) -> str:
            seen.append(item.internal)
            return render_listing(item)

        output = compose(
            listing,
            renderer,
            compact_listing,
            render_compact,
            force_full=True,
            schema_mapper=lambda item: item.model_copy(update={"internal": None}),
        )
        assert seen == ["secret"]
        assert output.structured_full.internal is None
        assert "internal" not in output.to_response().structured_content


class TestResponses:
    """Test the caller-facing response shape."""

    def test_to_response(self):
        """Responses carry text, structured content and isError False."""
        output = dual_output(Listing(files=["a"], total=1), render_listing)
        response = output.to_response()
        assert isinstance(response, ToolResponse)
        assert response.to_dict() == {
            "content": [{"type": "text", "text": "a"}],
            "structuredContent": {"files": ["a"], "total": 1},
            "isError": False,
        }
        assert response.text == "a"

    def test_non_mapping_payload_is_wrapped(self):
        """Scalar payloads are wrapped under 'result'."""
        output = DualOutput(human_text="3", structured_full=3)
        assert output.to_response().structured_content == {"result": 3}

    def test_response_accepts_wire_keys(self):
        """ToolResponse validates from the camelCase wire form."""
        response = ToolResponse.model_validate(
            {
                "content": [{"type": "text", "text": "Error"}],
                "structuredContent": {"is_error": True},
                "isError": True,
            }
        )
        assert response.is_error
        assert response.structured_content == {"is_error": True}
