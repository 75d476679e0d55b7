"""Tests for length limits on tool parameters."""

import pytest
from pydantic import ValidationError

from toolgate.adapters.custom import CustomToolParams
from toolgate.adapters.git import GitLogParams
from toolgate.adapters.process import ProcessRunParams
from toolgate.limits import ARRAY_MAX, PATH_MAX, SHORT_STRING_MAX, STRING_MAX


class TestLimitValues:
    """Test the limit constants."""

    def test_values(self):
        """Limits have their documented sizes."""
        assert STRING_MAX == 65_536
        assert ARRAY_MAX == 1_000
        assert PATH_MAX == 4_096
        assert SHORT_STRING_MAX == 255


class TestProcessRunLimits:
    """Test bounds on process:run parameters."""

    def test_at_limits(self):
        """Values exactly at each limit are accepted."""
        params = ProcessRunParams(
            command="c" * PATH_MAX,
            args=["a" * STRING_MAX] + ["x"] * (ARRAY_MAX - 1),
            stdin="s" * STRING_MAX,
            env={"K" * SHORT_STRING_MAX: "v" * STRING_MAX},
        )
        assert len(params.args) == ARRAY_MAX

    @pytest.mark.parametrize(
        "overrides",
        [
            {"command": "c" * (PATH_MAX + 1)},
            {"args": ["x"] * (ARRAY_MAX + 1)},
            {"args": ["a" * (STRING_MAX + 1)]},
            {"args": "a" * (STRING_MAX + 1)},
            {"stdin": "s" * (STRING_MAX + 1)},
            {"env": {"K" * (SHORT_STRING_MAX + 1): "v"}},
            {"env": {"K": "v" * (STRING_MAX + 1)}},
            {"env": {f"K{i}": "v" for i in range(ARRAY_MAX + 1)}},
        ],
        ids=[
            "command",
            "args-count",
            "arg-length",
            "single-arg-length",
            "stdin",
            "env-name",
            "env-value",
            "env-count",
        ],
    )
    def test_over_limits(self, overrides):
        """One past any limit is a validation error."""
        with pytest.raises(ValidationError):
            ProcessRunParams(**{"command": "ls", **overrides})


class TestGitLogLimits:
    """Test bounds on git:log parameters."""

    def test_at_limits(self):
        """A ref and path at their limits are accepted."""
        params = GitLogParams(ref="r" * SHORT_STRING_MAX, path="p" * PATH_MAX)
        assert len(params.ref) == SHORT_STRING_MAX

    def test_ref_too_long(self):
        """Refs are short strings."""
        with pytest.raises(ValidationError):
            GitLogParams(ref="r" * (SHORT_STRING_MAX + 1))

    def test_path_too_long(self):
        """Paths are bounded by the path limit."""
        with pytest.raises(ValidationError):
            GitLogParams(path="p" * (PATH_MAX + 1))


class TestCustomToolLimits:
    """Test bounds on user-defined tool parameters."""

    def test_at_limits(self):
        """A full list of targets and maximal stdin are accepted."""
        params = CustomToolParams(targets=["t"] * ARRAY_MAX, stdin="s" * STRING_MAX)
        assert len(params.targets) == ARRAY_MAX

    def test_too_many_targets(self):
        with pytest.raises(ValidationError):
            CustomToolParams(targets=["t"] * (ARRAY_MAX + 1))

    def test_target_too_long(self):
        with pytest.raises(ValidationError):
            CustomToolParams(targets=["t" * (STRING_MAX + 1)])

    def test_stdin_too_long(self):
        with pytest.raises(ValidationError):
            CustomToolParams(stdin="s" * (STRING_MAX + 1))
