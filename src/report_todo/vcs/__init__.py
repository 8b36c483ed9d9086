"""Version-control integration for diff-restricted reporting."""

from report_todo.vcs.git_diff import (
    DiffParseError,
    GitCommandError,
    added_lines_since_fork_point,
    parse_unified_diff,
    run_git,
)

__all__ = [
    "DiffParseError",
    "GitCommandError",
    "added_lines_since_fork_point",
    "parse_unified_diff",
    "run_git",
]
