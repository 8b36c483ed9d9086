"""
report-todo — changed-line filter from git

File: src/report_todo/vcs/git_diff.py
Last updated: 2026-10-18

Purpose
- Restrict reporting to lines added since the branch forked from its upstream.

What should be included in this file
- A pure unified-diff parser returning added line numbers per file.
- A deterministic subprocess wrapper around the git CLI.
- Fork-point discovery: `upstream` remote if present else `origin`, its HEAD
  branch from `git remote show`, then `git merge-base --fork-point`.

Functional requirements
- Non-zero git exits raise `GitCommandError` with the captured streams.
- Parsing rejects malformed hunk headers with `DiffParseError`.

Non-functional requirements
- Git never prompts (`GIT_TERMINAL_PROMPT=0`).
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from report_todo.errors import ReportTodoError

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_DEFAULT_HEAD_BRANCH = "master"


class GitCommandError(ReportTodoError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class DiffParseError(ReportTodoError, ValueError):
    """Raised when unified diff text does not have the expected structure."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


def _strip_diff_path(raw: str) -> str | None:
    value = raw.split("\t", 1)[0].strip()
    if value == "/dev/null":
        return None
    if value.startswith('"') and value.endswith('"'):
        value = value[1:-1].encode("latin-1", "backslashreplace").decode("unicode_escape")
        value = value.encode("latin-1").decode("utf-8", errors="replace")
    if value.startswith(("a/", "b/")):
        value = value[2:]
    return value


def parse_unified_diff(text: str) -> dict[str, frozenset[int]]:
    """Map each target path to the 1-based line numbers added in ``text``.

    Deleted files contribute nothing. Line numbers refer to the new file.
    """

    added: dict[str, set[int]] = {}
    current: str | None = None
    next_line = 0
    remaining = 0

    for raw_line in text.splitlines():
        if remaining > 0 and raw_line[:1] in ("+", " ", "-", "\\"):
            if raw_line.startswith("+"):
                if current is not None:
                    added.setdefault(current, set()).add(next_line)
                next_line += 1
                remaining -= 1
            elif raw_line.startswith(" "):
                next_line += 1
                remaining -= 1
            continue
        if raw_line.startswith("+++ "):
            current = _strip_diff_path(raw_line[4:])
            continue
        if raw_line.startswith("@@"):
            match = _HUNK_RE.match(raw_line)
            if match is None:
                raise DiffParseError(f"invalid hunk header: {raw_line!r}")
            next_line = int(match.group(3))
            remaining = 1 if match.group(4) is None else int(match.group(4))
            continue

    return {path: frozenset(lines) for path, lines in added.items() if lines}


def run_git(
    args: Sequence[str],
    *,
    cwd: Path,
    check: bool = True,
    env_overrides: Mapping[str, str] | None = None,
) -> CommandResult:
    command = ("git", *args)
    run_cwd = cwd.resolve()
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.update(env_overrides or {})
    logger.debug("running %s", " ".join(command), extra={"cwd": run_cwd.as_posix()})

    try:
        completed = subprocess.run(
            command,
            cwd=run_cwd,
            env=env,
            text=True,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise GitCommandError(
            command=command, returncode=127, stdout="", stderr=f"git executable not found: {exc}"
        ) from exc

    result = CommandResult(
        command=command,
        cwd=run_cwd.as_posix(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and result.returncode != 0:
        raise GitCommandError(
            command=result.command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def upstream_remote(repo_root: Path) -> str:
    listing = run_git(["remote", "-v"], cwd=repo_root).stdout
    for line in listing.splitlines():
        if line.strip().startswith("upstream"):
            return "upstream"
    return "origin"


def remote_head_branch(repo_root: Path, remote: str) -> str:
    shown = run_git(["remote", "show", remote], cwd=repo_root).stdout
    for line in shown.splitlines():
        stripped = line.strip()
        if stripped.startswith("HEAD branch: "):
            return stripped[len("HEAD branch: ") :]
    return _DEFAULT_HEAD_BRANCH


def fork_point(repo_root: Path) -> str:
    remote = upstream_remote(repo_root)
    remote_ref = f"{remote}/{remote_head_branch(repo_root, remote)}"
    commit = run_git(["merge-base", "--fork-point", remote_ref], cwd=repo_root).stdout.strip()
    logger.info("fork point resolved", extra={"remote_ref": remote_ref, "commit": commit})
    return commit


def added_lines_since_fork_point(repo_root: Path) -> dict[str, frozenset[int]]:
    """Added lines keyed by path relative to ``repo_root``."""

    root = repo_root.resolve()
    toplevel = Path(run_git(["rev-parse", "--show-toplevel"], cwd=root).stdout.strip()).resolve()
    base = fork_point(root)
    diff = run_git(["diff", "--unified=0", "--no-color", "--no-ext-diff", base], cwd=root).stdout
    by_root: dict[str, frozenset[int]] = {}
    for path, lines in parse_unified_diff(diff).items():
        try:
            relative = (toplevel / path).relative_to(root).as_posix()
        except ValueError:
            continue
        by_root[relative] = lines
    return by_root


__all__ = [
    "CommandResult",
    "DiffParseError",
    "GitCommandError",
    "added_lines_since_fork_point",
    "fork_point",
    "parse_unified_diff",
    "remote_head_branch",
    "run_git",
    "upstream_remote",
]
