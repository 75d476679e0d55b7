"""Shared pytest fixtures for toolgate tests."""

import shutil
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from toolgate.adapters import BUILTIN_TOOLS, CustomToolDefinition, make_custom_tool
from toolgate.config import resolve_settings
from toolgate.invoke import ToolInvoker
from toolgate.registry import ToolRegistry

PYTHON = sys.executable


def python_tool_registry() -> ToolRegistry:
    """Built-in tools plus a user-defined tool that runs the test interpreter."""
    registry = ToolRegistry(BUILTIN_TOOLS)
    registry.register(
        make_custom_tool(
            "py",
            "eval",
            CustomToolDefinition(command=PYTHON, args=["-c"], description="Run Python code"),
        )
    )
    return registry


@pytest.fixture
def python() -> str:
    """Path of the running interpreter, a command that always exists."""
    return PYTHON


@pytest.fixture
def make_invoker() -> Callable[..., ToolInvoker]:
    """Factory for invokers configured from an env mapping."""

    def factory(env: dict[str, str] | None = None, registry: ToolRegistry | None = None):
        settings = resolve_settings(env or {})
        return ToolInvoker.from_settings(settings, registry or python_tool_registry())

    return factory


def _git(repo: Path, *args: str) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test User",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=repo,
        check=True,
        capture_output=True,
    )


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A git repository with two commits and some working-tree changes."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q", "-b", "main")
    (repo / "README.md").write_text("hello\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-q", "-m", "Initial commit")
    (repo / "app.py").write_text("print('hi')\n")
    _git(repo, "add", "app.py")
    _git(repo, "commit", "-q", "-m", "Add app")

    (repo / "README.md").write_text("hello world\n")
    (repo / "new.txt").write_text("new\n")
    return repo
