"""
report-todo — source discovery

File: src/report_todo/discovery.py
Last updated: 2026-10-18

Purpose
- Turn command-line targets into an ordered list of files with a resolved
  language id per file.

What should be included in this file
- Directory walking with always-ignored tool/cache directories pruned.
- Git-style ignore files (`.gitignore`, `.todoignore`) applied per directory,
  patterns relative to the directory holding the ignore file.
- Language resolution: forced language, then override globs, then the
  registry's filename/extension tables.

Functional requirements
- Output order is deterministic (sorted relative POSIX paths).
- Walked files without a grammar are dropped; explicitly named files are
  always kept so the caller can report them.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import pathspec

from report_todo.lexing.grammar import GrammarRegistry

logger = logging.getLogger(__name__)

_ALWAYS_IGNORED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".hypothesis",
        ".tox",
        ".nox",
    }
)


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: Path
    rel_path: str
    language: str | None
    explicit: bool = False


class IgnoreRules:
    """Ignore-file patterns collected while walking, keyed by owning directory."""

    def __init__(self, root: Path, filenames: Sequence[str]) -> None:
        self._root = root
        self._filenames = tuple(filenames)
        self._specs: dict[str, pathspec.PathSpec | None] = {}

    def _spec_for(self, rel_dir: str) -> pathspec.PathSpec | None:
        if rel_dir in self._specs:
            return self._specs[rel_dir]
        directory = self._root / rel_dir if rel_dir else self._root
        lines: list[str] = []
        for name in self._filenames:
            candidate = directory / name
            if not candidate.is_file():
                continue
            try:
                lines.extend(candidate.read_text(encoding="utf-8", errors="replace").splitlines())
            except OSError as exc:
                logger.warning("cannot read ignore file %s: %s", candidate, exc)
        spec = pathspec.PathSpec.from_lines("gitwildmatch", lines) if lines else None
        self._specs[rel_dir] = spec
        return spec

    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        parts = PurePosixPath(rel_path).parts
        for depth in range(len(parts)):
            base = "/".join(parts[:depth])
            spec = self._spec_for(base)
            if spec is None:
                continue
            relative = "/".join(parts[depth:])
            if spec.match_file(relative + "/" if is_dir else relative):
                return True
        return False


def _relative_posix(path: Path, root: Path) -> str | None:
    try:
        relative = path.resolve(strict=False).relative_to(root)
    except ValueError:
        return None
    return relative.as_posix()


def _is_excluded(rel_path: str, exclude: Sequence[str]) -> bool:
    for excluded in exclude:
        if not excluded:
            continue
        if rel_path == excluded or rel_path.startswith(f"{excluded}/"):
            return True
        if fnmatch.fnmatchcase(rel_path, excluded):
            return True
    return False


def resolve_language(
    rel_path: str,
    registry: GrammarRegistry,
    *,
    overrides: Mapping[str, str] | None = None,
    forced: str | None = None,
) -> str | None:
    if forced is not None:
        return forced
    for pattern, language_id in (overrides or {}).items():
        if fnmatch.fnmatchcase(rel_path, pattern) or fnmatch.fnmatchcase(
            PurePosixPath(rel_path).name, pattern
        ):
            return language_id
    grammar = registry.lookup_for_path(rel_path)
    return None if grammar is None else grammar.language


def discover(
    targets: Sequence[str | Path],
    *,
    root: Path,
    registry: GrammarRegistry,
    exclude: Sequence[str] = (),
    ignore_files: Sequence[str] = (),
    language_overrides: Mapping[str, str] | None = None,
    forced_language: str | None = None,
) -> list[SourceFile]:
    """Expand ``targets`` (files or directories) into language-tagged sources.

    ``forced_language`` applies only to explicitly named files.
    """

    resolved_root = root.resolve()
    rules = IgnoreRules(resolved_root, ignore_files)
    found: dict[str, SourceFile] = {}

    for target in targets:
        base = Path(target)
        if not base.is_absolute():
            base = resolved_root / base
        if base.is_file():
            rel = _relative_posix(base, resolved_root) or base.as_posix()
            found[rel] = SourceFile(
                path=base,
                rel_path=rel,
                language=resolve_language(
                    rel, registry, overrides=language_overrides, forced=forced_language
                ),
                explicit=True,
            )
            continue
        if not base.is_dir():
            found[str(target)] = SourceFile(
                path=base, rel_path=str(target), language=None, explicit=True
            )
            continue
        if _relative_posix(base, resolved_root) is None:
            # Directory outside the root: walk it as its own root.
            for item in discover(
                [base],
                root=base,
                registry=registry,
                exclude=exclude,
                ignore_files=ignore_files,
                language_overrides=language_overrides,
            ):
                rel = f"{base.as_posix()}/{item.rel_path}"
                found[rel] = SourceFile(path=item.path, rel_path=rel, language=item.language)
            continue

        for dirpath, dirnames, filenames in os.walk(base):
            current = Path(dirpath)
            rel_dir = _relative_posix(current, resolved_root)
            if rel_dir is None:
                continue
            rel_dir = "" if rel_dir == "." else rel_dir

            kept: list[str] = []
            for dirname in sorted(dirnames):
                candidate = f"{rel_dir}/{dirname}" if rel_dir else dirname
                if dirname in _ALWAYS_IGNORED_DIRS or _is_excluded(candidate, exclude):
                    continue
                if rules.is_ignored(candidate, is_dir=True):
                    continue
                kept.append(dirname)
            dirnames[:] = kept

            for filename in sorted(filenames):
                rel_file = f"{rel_dir}/{filename}" if rel_dir else filename
                if rel_file in found or filename in ignore_files:
                    continue
                if _is_excluded(rel_file, exclude) or rules.is_ignored(rel_file):
                    continue
                language = resolve_language(rel_file, registry, overrides=language_overrides)
                if language is None:
                    logger.debug("no grammar for %s; skipping", rel_file)
                    continue
                found[rel_file] = SourceFile(path=current / filename, rel_path=rel_file, language=language)

    return [found[key] for key in sorted(found)]


__all__ = ["IgnoreRules", "SourceFile", "discover", "resolve_language"]
