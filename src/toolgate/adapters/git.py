"""Reference git tools: git:status and git:log."""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from toolgate.limits import PATH_MAX, SHORT_STRING_MAX

from .base import Invocation, ToolSpec

# --- git:status ---

StagedStatus = Literal["added", "modified", "deleted", "renamed", "copied"]

_STAGED_STATUS: dict[str, StagedStatus] = {
    "A": "added",
    "M": "modified",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
}

_AHEAD = re.compile(r"ahead (\d+)")
_BEHIND = re.compile(r"behind (\d+)")


class GitStatusParams(BaseModel):
    """git:status takes no parameters."""

    model_config = ConfigDict(extra="forbid")


class StagedFile(BaseModel):
    """A change recorded in the index."""

    file: str
    status: StagedStatus
    old_file: str | None = None


class GitStatus(BaseModel):
    """Parsed ``git status --porcelain=v1 --branch``."""

    branch: str = ""
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    staged: list[StagedFile] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    clean: bool = True


class GitStatusCompact(BaseModel):
    """git:status reduced to counts."""

    branch: str
    ahead: int = 0
    behind: int = 0
    staged: int = 0
    modified: int = 0
    deleted: int = 0
    untracked: int = 0
    conflicts: int = 0
    clean: bool = True


def parse_branch_line(line: str) -> tuple[str, str | None, int, int]:
    """Parse the ``## ...`` header of porcelain status output.

    Handles ``## main``, ``## main...origin/main [ahead 2, behind 1]``,
    ``## No commits yet on main`` and ``## HEAD (no branch)``.

    Returns:
        (branch, upstream, ahead, behind)
    """
    stripped = line[3:] if line.startswith("## ") else line
    if stripped.startswith("No commits yet on "):
        return stripped.removeprefix("No commits yet on ").strip(), None, 0, 0

    name, sep, rest = stripped.partition("...")
    if not sep:
        return name.split(" ")[0], None, 0, 0

    upstream = rest.split(" ")[0]
    ahead = _AHEAD.search(rest)
    behind = _BEHIND.search(rest)
    return (
        name,
        upstream,
        int(ahead.group(1)) if ahead else 0,
        int(behind.group(1)) if behind else 0,
    )


def parse_status(exit_code: int, stdout: str, stderr: str) -> GitStatus:
    """Parse porcelain v1 status output."""
    branch, upstream, ahead, behind = "", None, 0, 0
    staged: list[StagedFile] = []
    modified: list[str] = []
    deleted: list[str] = []
    untracked: list[str] = []
    conflicts: list[str] = []

    for line in stdout.splitlines():
        if not line:
            continue
        if line.startswith("## "):
            branch, upstream, ahead, behind = parse_branch_line(line)
            continue

        index, worktree, file = line[0], line[1:2], line[3:].strip()

        if index == "?":
            untracked.append(file)
            continue
        if index == "U" or worktree == "U" or (index == "A" and worktree == "A") or (
            index == "D" and worktree == "D"
        ):
            conflicts.append(file)
            continue

        old, arrow, new = file.partition(" -> ")
        path = new if arrow else file

        if index not in (" ", "!"):
            staged.append(
                StagedFile(
                    file=path,
                    status=_STAGED_STATUS.get(index, "modified"),
                    old_file=old if arrow else None,
                )
            )

        if worktree == "M":
            modified.append(path)
        elif worktree == "D":
            deleted.append(path)

    return GitStatus(
        branch=branch,
        upstream=upstream,
        ahead=ahead,
        behind=behind,
        staged=staged,
        modified=modified,
        deleted=deleted,
        untracked=untracked,
        conflicts=conflicts,
        clean=not (staged or modified or deleted or untracked or conflicts),
    )


def _branch_header(branch: str, ahead: int, behind: int) -> str:
    header = f"On branch {branch or '(unknown)'}"
    tracking = []
    if ahead:
        tracking.append(f"ahead {ahead}")
    if behind:
        tracking.append(f"behind {behind}")
    if tracking:
        header += f" [{', '.join(tracking)}]"
    return header


def format_status(status: GitStatus) -> str:
    """Format git status as text."""
    header = _branch_header(status.branch, status.ahead, status.behind)
    if status.clean:
        return f"{header}, clean"

    parts = [header]
    if status.staged:
        parts.append("Staged: " + ", ".join(f"{f.status[0]}:{f.file}" for f in status.staged))
    if status.modified:
        parts.append(f"Modified: {', '.join(status.modified)}")
    if status.deleted:
        parts.append(f"Deleted: {', '.join(status.deleted)}")
    if status.untracked:
        parts.append(f"Untracked: {', '.join(status.untracked)}")
    if status.conflicts:
        parts.append(f"Conflicts: {', '.join(status.conflicts)}")
    return "\n".join(parts)


def compact_status(status: GitStatus) -> GitStatusCompact:
    return GitStatusCompact(
        branch=status.branch,
        ahead=status.ahead,
        behind=status.behind,
        staged=len(status.staged),
        modified=len(status.modified),
        deleted=len(status.deleted),
        untracked=len(status.untracked),
        conflicts=len(status.conflicts),
        clean=status.clean,
    )


def format_status_compact(status: GitStatusCompact) -> str:
    header = _branch_header(status.branch, status.ahead, status.behind)
    if status.clean:
        return f"{header}, clean"
    counts = [
        f"{count} {label}"
        for label, count in (
            ("staged", status.staged),
            ("modified", status.modified),
            ("deleted", status.deleted),
            ("untracked", status.untracked),
            ("conflicts", status.conflicts),
        )
        if count
    ]
    return f"{header}\n{', '.join(counts)}"


def build_status(params: GitStatusParams) -> Invocation:
    return Invocation(program="git", args=("status", "--porcelain=v1", "--branch"))


# --- git:log ---

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = f"%H{FIELD_SEP}%h{FIELD_SEP}%an{FIELD_SEP}%ae{FIELD_SEP}%aI{FIELD_SEP}%s{RECORD_SEP}"


class GitLogParams(BaseModel):
    """Parameters for git:log."""

    model_config = ConfigDict(extra="forbid")

    max_count: int = Field(default=10, ge=1, le=1000, description="Number of commits")
    ref: str | None = Field(
        default=None, max_length=SHORT_STRING_MAX, description="Branch, tag or commit to start from"
    )
    path: str | None = Field(
        default=None, max_length=PATH_MAX, description="Limit to commits touching this path"
    )


class Commit(BaseModel):
    """One commit from git log."""

    hash: str
    short_hash: str
    author: str
    email: str | None = None
    date: str
    subject: str


class GitLog(BaseModel):
    """Parsed git log output."""

    commits: list[Commit] = Field(default_factory=list)
    total: int = 0


class CommitCompact(BaseModel):
    short_hash: str
    subject: str


class GitLogCompact(BaseModel):
    """git:log reduced to short hashes and subjects."""

    commits: list[CommitCompact] = Field(default_factory=list)
    total: int = 0


def build_log(params: GitLogParams) -> Invocation:
    args = ["log", f"--max-count={params.max_count}", f"--format={LOG_FORMAT}"]
    if params.ref:
        args.append(params.ref)
    if params.path:
        args.extend(["--", params.path])
    return Invocation(
        program="git",
        args=tuple(args),
        values={"ref": params.ref, "path": params.path},
    )


def parse_log(exit_code: int, stdout: str, stderr: str) -> GitLog:
    """Parse log records written with LOG_FORMAT."""
    commits = []
    for record in stdout.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(FIELD_SEP)
        if len(fields) < 6:
            continue
        hash_, short_hash, author, email, date, *subject = fields
        commits.append(
            Commit(
                hash=hash_,
                short_hash=short_hash,
                author=author,
                email=email or None,
                date=date,
                subject=FIELD_SEP.join(subject),
            )
        )
    return GitLog(commits=commits, total=len(commits))


def format_log(log: GitLog) -> str:
    """Format git log as one line per commit."""
    if not log.commits:
        return "No commits"
    lines = []
    for c in log.commits:
        author = f"{c.author} <{c.email}>" if c.email else c.author
        lines.append(f"{c.short_hash} {c.subject} ({author}, {c.date})")
    return "\n".join(lines)


def strip_log(log: GitLog) -> GitLog:
    """Drop author emails from the structured payload."""
    return GitLog(
        commits=[c.model_copy(update={"email": None}) for c in log.commits],
        total=log.total,
    )


def compact_log(log: GitLog) -> GitLogCompact:
    return GitLogCompact(
        commits=[CommitCompact(short_hash=c.short_hash, subject=c.subject) for c in log.commits],
        total=log.total,
    )


def format_log_compact(log: GitLogCompact) -> str:
    if not log.commits:
        return "No commits"
    return "\n".join(f"{c.short_hash} {c.subject}" for c in log.commits)


STATUS = ToolSpec(
    group="git",
    name="status",
    description="Working tree status: branch, staged, modified and untracked files",
    params_model=GitStatusParams,
    build=build_status,
    parse=parse_status,
    render=format_status,
    result_model=GitStatus,
    compact_map=compact_status,
    compact_render=format_status_compact,
    fail_on_error=True,
)

LOG = ToolSpec(
    group="git",
    name="log",
    description="Commit history with hashes, authors, dates and subjects",
    params_model=GitLogParams,
    build=build_log,
    parse=parse_log,
    render=format_log,
    result_model=GitLog,
    compact_map=compact_log,
    compact_render=format_log_compact,
    schema_map=strip_log,
    fail_on_error=True,
)

TOOLS = [STATUS, LOG]
