"""Tests for the policy gate."""

import os
from pathlib import Path

import pytest

from toolgate.config import PolicyConfig, resolve_policy_config
from toolgate.errors import (
    CommandNotAllowedError,
    FlagInjectionError,
    PathNotAllowedError,
    PathQualifiedCommandError,
    PolicyError,
)
from toolgate.policy import (
    ALLOWED,
    PolicyGate,
    assert_no_flag_injection,
    command_basename,
    is_under_root,
    normalize_path,
)


class TestCommandBasename:
    """Test extraction of the bare program name."""

    @pytest.mark.parametrize(
        ("command", "expected"),
        [
            ("git", "git"),
            ("/usr/bin/git", "git"),
            ("C:\\tools\\npm.cmd", "npm"),
            ("node.EXE", "node"),
            ("./scripts/build.sh", "build"),
            ("run.bat", "run"),
            ("python3.11", "python3.11"),
        ],
    )
    def test_basename(self, command, expected):
        """Separators are normalized and launcher extensions stripped."""
        assert command_basename(command) == expected


class TestRootMatching:
    """Test root containment checks."""

    def test_same_path(self, tmp_path: Path):
        """A root contains itself."""
        assert is_under_root(tmp_path, tmp_path)

    def test_descendant(self, tmp_path: Path):
        """A nested directory is under its root."""
        assert is_under_root(tmp_path / "a" / "b", tmp_path)

    def test_sibling_prefix_is_not_descendant(self):
        """/tmp/a does not admit /tmp/ab."""
        assert not is_under_root("/tmp/ab", "/tmp/a")

    def test_dot_segments_are_normalized(self):
        """Parent segments cannot escape a root."""
        assert not is_under_root("/srv/repos/../etc", "/srv/repos")

    def test_trailing_separator_on_root(self):
        """A root given with a trailing slash still matches."""
        assert is_under_root("/srv/repos/app", "/srv/repos/")

    def test_normalize_relative(self):
        """Relative paths are made absolute against the cwd."""
        assert normalize_path("sub") == os.path.join(os.getcwd(), "sub")


class TestFlagInjection:
    """Test value-field flag checks."""

    @pytest.mark.parametrize("value", ["--force", "-x", "  --output=/etc/passwd", "\t-n"])
    def test_rejects_flags(self, value):
        """Values that start with '-' after whitespace are refused."""
        with pytest.raises(FlagInjectionError) as exc_info:
            assert_no_flag_injection(value, "ref")
        assert exc_info.value.param == "ref"
        assert exc_info.value.reason == "flag-injection"
        assert "ref" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["", "main", "feature/x", "a-b", "v1.0-rc"])
    def test_accepts_values(self, value):
        """Ordinary values (including empty) pass."""
        assert_no_flag_injection(value, "ref")


class TestPolicyGate:
    """Test PolicyGate authorization."""

    def test_no_configuration_allows_everything(self, tmp_path: Path):
        """With nothing configured, any command runs anywhere."""
        gate = PolicyGate(PolicyConfig())
        assert gate.authorize("anything", ["--flag"], tmp_path) is ALLOWED

    def test_command_allow_list_denies(self):
        """A command missing from the allow-list is denied."""
        config = PolicyConfig(allowed_commands=frozenset({"node", "git"}))
        decision = PolicyGate(config).authorize("python", [], "/tmp", {})
        assert not decision.allowed
        assert decision.reason == "command-not-allowed"
        assert "python" in decision.message
        assert "git, node" in decision.message
        assert isinstance(decision.error, CommandNotAllowedError)

    def test_command_and_root_allowed(self):
        """A listed command under an allowed root is allowed."""
        config = PolicyConfig(
            allowed_commands=frozenset({"node", "git"}),
            allowed_roots=frozenset({"/tmp"}),
        )
        decision = PolicyGate(config).authorize("git", ["status"], "/tmp", {})
        assert decision.allowed
        assert bool(decision) is True

    def test_path_qualified_command_matches_basename(self):
        """/usr/bin/git is allowed when 'git' is listed."""
        config = PolicyConfig(allowed_commands=frozenset({"git"}))
        assert PolicyGate(config).authorize("/usr/bin/git").allowed

    def test_basename_match_is_logged(self, caplog):
        """Allowing a path-qualified command by its basename logs a warning."""
        config = PolicyConfig(allowed_commands=frozenset({"npm"}))
        with caplog.at_level("WARNING", logger="toolgate.policy"):
            assert PolicyGate(config).authorize("/usr/bin/npm").allowed
        assert '"/usr/bin/npm" allowed by basename "npm"' in caplog.text

    def test_bare_command_is_not_logged(self, caplog):
        """A bare listed command is allowed silently."""
        config = PolicyConfig(allowed_commands=frozenset({"npm"}))
        with caplog.at_level("WARNING", logger="toolgate.policy"):
            assert PolicyGate(config).authorize("npm").allowed
        assert caplog.text == ""

    def test_group_allow_list(self):
        """Per-group lists only constrain their own group."""
        config = resolve_policy_config({"TOOLGATE_GIT_ALLOWED_COMMANDS": "git"})
        assert not PolicyGate(config, group="git").authorize("rm").allowed
        assert PolicyGate(config, group="npm").authorize("rm").allowed

    def test_root_denied(self, tmp_path: Path):
        """A cwd outside every allowed root is denied."""
        allowed = tmp_path / "allowed"
        allowed.mkdir()
        config = PolicyConfig(allowed_roots=frozenset({str(allowed)}))
        decision = PolicyGate(config).authorize("ls", [], tmp_path / "other")
        assert decision.reason == "path-not-allowed"
        assert isinstance(decision.error, PathNotAllowedError)

    def test_root_defaults_to_process_cwd(self, tmp_path: Path, monkeypatch):
        """Without a cwd, the process's current directory is checked."""
        monkeypatch.chdir(tmp_path)
        config = PolicyConfig(allowed_roots=frozenset({str(tmp_path)}))
        assert PolicyGate(config).authorize("ls").allowed

    def test_strict_path_rejects_separators(self):
        """Strict-path mode refuses commands with a path separator."""
        config = PolicyConfig(strict_path=True)
        gate = PolicyGate(config)
        for command in ("/usr/bin/git", "bin\\git.exe", "./git"):
            decision = gate.authorize(command)
            assert decision.reason == "path-qualified-command"
        assert gate.authorize("git").allowed

    def test_strict_path_is_checked_first(self):
        """Strict-path failures win over allow-list failures."""
        config = PolicyConfig(strict_path=True, allowed_commands=frozenset({"git"}))
        decision = PolicyGate(config).authorize("/opt/evil")
        assert decision.reason == "path-qualified-command"

    def test_command_checked_before_root(self, tmp_path: Path):
        """The command check runs before the root check."""
        config = PolicyConfig(
            allowed_commands=frozenset({"git"}),
            allowed_roots=frozenset({str(tmp_path / "only")}),
        )
        decision = PolicyGate(config).authorize("rm", [], tmp_path)
        assert decision.reason == "command-not-allowed"

    def test_values_checked_last(self):
        """Value fields are checked for flags; args are not."""
        gate = PolicyGate(PolicyConfig())
        assert gate.authorize("git", ["log", "--oneline"], None, {"ref": "main"}).allowed

        decision = gate.authorize("git", ["log"], None, {"ref": "--output=/tmp/x"})
        assert decision.reason == "flag-injection"

    def test_none_values_are_skipped(self):
        """Unset optional value fields are ignored."""
        assert PolicyGate(PolicyConfig()).authorize("git", [], None, {"ref": None}).allowed

    def test_enforce_raises_policy_error(self):
        """enforce raises the specific subclass instead of returning."""
        gate = PolicyGate(PolicyConfig(strict_path=True), group="git")
        with pytest.raises(PathQualifiedCommandError) as exc_info:
            gate.enforce("/usr/bin/git")
        assert isinstance(exc_info.value, PolicyError)
        assert exc_info.value.group == "git"

    def test_denials_are_logged(self, caplog):
        """Denials are logged as warnings."""
        config = PolicyConfig(allowed_commands=frozenset({"git"}))
        with caplog.at_level("WARNING", logger="toolgate.policy"):
            PolicyGate(config).authorize("curl")
        assert "command-not-allowed" in caplog.text
