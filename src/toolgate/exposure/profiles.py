"""Built-in tool profiles and the core-tool table.

A profile is a named shorthand for a ``TOOLGATE_TOOLS`` list tuned to a
common workflow. ``full`` (or no profile) enables everything.

Core tools are the most commonly used tools of each group; they are
registered immediately even when lazy mode is on. Everything else in the
group is deferred until a caller loads it through discovery.
"""

FULL_PROFILE = "full"


def _expand(groups: dict[str, str]) -> frozenset[str]:
    """Expand {"git": "status log"} into {"git:status", "git:log"}."""
    return frozenset(f"{group}:{tool}" for group, tools in groups.items() for tool in tools.split())


# Shared by the language profiles
_GIT_EVERYDAY = (
    "status log log-graph diff branch show add commit push pull checkout "
    "merge rebase stash stash-list reset restore"
)
_GITHUB_EVERYDAY = (
    "pr-view pr-list pr-create pr-merge pr-checks issue-view issue-list issue-create "
    "run-view run-list"
)

PROFILES: dict[str, frozenset[str] | None] = {
    "minimal": _expand(
        {
            "git": "status log diff add commit push pull checkout branch",
            "test": "run",
            "build": "build tsc",
            "search": "search find",
            "github": "pr-view pr-list pr-create",
            "process": "run",
        }
    ),
    "web": _expand(
        {
            "git": _GIT_EVERYDAY,
            "github": (
                "pr-view pr-list pr-create pr-merge pr-comment pr-review pr-update pr-checks "
                "pr-diff issue-view issue-list issue-create issue-close issue-comment "
                "run-view run-list"
            ),
            "npm": "install audit outdated list run test info search nvm",
            "build": "tsc build esbuild vite-build webpack turbo nx",
            "test": "run coverage playwright",
            "lint": (
                "lint format-check prettier-format biome-check biome-format oxlint stylelint"
            ),
            "search": "search find count jq",
            "http": "get post request head",
            "process": "run",
        }
    ),
    "python": _expand(
        {
            "git": _GIT_EVERYDAY,
            "github": _GITHUB_EVERYDAY,
            "python": (
                "pip-install pip-list pip-show mypy ruff-check ruff-format pip-audit pytest "
                "uv-install uv-run black poetry pyenv conda"
            ),
            "test": "run coverage",
            "search": "search find count",
            "make": "run list",
            "process": "run",
        }
    ),
    "devops": _expand(
        {
            "git": "status log diff branch show add commit push pull checkout tag remote merge",
            "github": (
                "pr-view pr-list pr-create pr-merge pr-checks issue-view issue-list run-view "
                "run-list run-rerun release-create release-list"
            ),
            "docker": (
                "ps build logs images run exec compose-up compose-down pull inspect "
                "network-ls volume-ls compose-ps compose-logs compose-build stats"
            ),
            "k8s": "get describe logs apply helm",
            "security": "trivy semgrep gitleaks",
            "make": "run list",
            "lint": "shellcheck hadolint",
            "http": "get post request head",
            "search": "search find",
            "process": "run",
        }
    ),
    "rust": _expand(
        {
            "git": _GIT_EVERYDAY,
            "github": _GITHUB_EVERYDAY,
            "cargo": "build test clippy run add remove fmt doc check update tree audit",
            "test": "run coverage",
            "search": "search find count",
            "process": "run",
        }
    ),
    "go": _expand(
        {
            "git": _GIT_EVERYDAY,
            "github": _GITHUB_EVERYDAY,
            "go": "build test vet run mod-tidy fmt generate env list get golangci-lint",
            "test": "run coverage",
            "search": "search find count",
            "process": "run",
        }
    ),
    FULL_PROFILE: None,
}

CORE_TOOLS: dict[str, frozenset[str]] = {
    group: frozenset(tools.split())
    for group, tools in {
        "git": "status log diff commit push pull checkout branch add",
        "github": "pr-view pr-list pr-create pr-checks issue-view issue-list issue-create",
        "npm": "install run test audit list",
        "docker": "ps build logs images compose-up compose-down",
        "build": "tsc build",
        "test": "run coverage",
        "lint": "lint format-check prettier-format",
        "search": "search find count",
        "cargo": "build test clippy run check",
        "go": "build test vet run mod-tidy fmt",
        "python": "pip-install pip-list pytest ruff-check uv-run",
        "k8s": "get describe logs",
        "http": "get post request",
        "security": "trivy semgrep",
        "make": "run list",
        "process": "run",
        "bun": "run test build install",
        "deno": "run test fmt lint",
        "dotnet": "build test run",
        "infra": "plan validate init",
        "jvm": "gradle-build gradle-test maven-build maven-test",
        "nix": "build run develop",
        "remote": "ssh-run ssh-test",
        "ruby": "run check bundle-install bundle-exec",
        "swift": "build test run",
        "db": "psql-query psql-list-databases mysql-query mysql-list-databases",
        "bazel": "bazel",
        "cmake": "cmake",
    }.items()
}


def list_profiles() -> list[str]:
    """List available profile names."""
    return list(PROFILES.keys())


def get_profile(name: str) -> frozenset[str] | None:
    """Get a profile's tool set by name.

    Returns:
        The ``group:tool`` set, or None for the full profile

    Raises:
        KeyError: If the profile does not exist
    """
    return PROFILES[name.strip().lower()]


def is_core_tool(group: str, tool: str) -> bool:
    """Whether a tool is in its group's core set.

    Groups missing from the table treat every tool as core.
    """
    core = CORE_TOOLS.get(group)
    if core is None:
        return True
    return tool in core
