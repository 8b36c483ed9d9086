"""Unit tests for source discovery, ignore files and language resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from report_todo.discovery import IgnoreRules, discover, resolve_language
from report_todo.lexing import builtin_registry

REGISTRY = builtin_registry()
IGNORE_FILES = (".gitignore", ".todoignore")


def _tree(root: Path, files: dict[str, str]) -> None:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _rel_paths(root: Path, exclude: tuple[str, ...] = ()) -> list[str]:
    sources = discover(["."], root=root, registry=REGISTRY, ignore_files=IGNORE_FILES, exclude=exclude)
    return [source.rel_path for source in sources]


@pytest.mark.unit
def test_walk_is_sorted_and_drops_files_without_grammar(tmp_path: Path) -> None:
    _tree(
        tmp_path,
        {
            "src/main.rs": "",
            "src/lib.c": "",
            "README.md": "",
            "notes.txt": "",
            "Makefile": "",
            ".git/config": "",
            "__pycache__/x.py": "",
        },
    )

    assert _rel_paths(tmp_path) == ["Makefile", "README.md", "src/lib.c", "src/main.rs"]


@pytest.mark.unit
def test_gitignore_and_todoignore_apply_per_directory(tmp_path: Path) -> None:
    _tree(
        tmp_path,
        {
            ".gitignore": "target/\n*.gen.c\n",
            "target/out.rs": "",
            "a.gen.c": "",
            "keep.c": "",
            "sub/.todoignore": "/vendor.js\n",
            "sub/vendor.js": "",
            "sub/app.js": "",
            "sub/deeper/vendor.js": "",
        },
    )

    assert _rel_paths(tmp_path) == ["keep.c", "sub/app.js", "sub/deeper/vendor.js"]


@pytest.mark.unit
def test_ignore_rules_negation(tmp_path: Path) -> None:
    _tree(tmp_path, {".gitignore": "*.c\n!keep.c\n"})
    rules = IgnoreRules(tmp_path, IGNORE_FILES)

    assert rules.is_ignored("drop.c")
    assert not rules.is_ignored("keep.c")
    assert not rules.is_ignored("main.rs")


@pytest.mark.unit
def test_exclude_prefixes_and_globs(tmp_path: Path) -> None:
    _tree(tmp_path, {"gen/a.c": "", "src/a.c": "", "src/a_test.c": ""})

    assert _rel_paths(tmp_path, exclude=("gen", "*_test.c")) == ["src/a.c"]


@pytest.mark.unit
def test_explicit_files_bypass_ignore_rules_and_are_kept_without_grammar(tmp_path: Path) -> None:
    _tree(tmp_path, {".gitignore": "*.c\n", "ignored.c": "", "notes.txt": ""})

    sources = discover(
        ["ignored.c", "notes.txt", "missing.rs"],
        root=tmp_path,
        registry=REGISTRY,
        ignore_files=IGNORE_FILES,
    )

    assert [(s.rel_path, s.language, s.explicit) for s in sources] == [
        ("ignored.c", "c", True),
        ("missing.rs", None, True),
        ("notes.txt", None, True),
    ]


@pytest.mark.unit
def test_overrides_and_forced_language(tmp_path: Path) -> None:
    _tree(tmp_path, {"tpl/page.tpl": "", "x.inc": ""})

    walked = discover(
        ["."],
        root=tmp_path,
        registry=REGISTRY,
        language_overrides={"*.tpl": "html", "x.inc": "c"},
        forced_language="rust",
    )

    assert [(s.rel_path, s.language) for s in walked] == [("tpl/page.tpl", "html"), ("x.inc", "c")]
    (forced,) = discover(["x.inc"], root=tmp_path, registry=REGISTRY, forced_language="rust")
    assert forced.language == "rust"


@pytest.mark.unit
def test_resolve_language_precedence() -> None:
    assert resolve_language("a/b.h", REGISTRY) == "c"
    assert resolve_language("a/b.h", REGISTRY, overrides={"*.h": "cpp"}) == "cpp"
    assert resolve_language("a/b.h", REGISTRY, overrides={"*.h": "cpp"}, forced="c") == "c"
    assert resolve_language("a/b.unknown", REGISTRY) is None


@pytest.mark.unit
def test_directory_outside_root_is_walked_as_its_own_root(tmp_path: Path) -> None:
    root = tmp_path / "root"
    other = tmp_path / "other"
    _tree(root, {"a.c": ""})
    _tree(other, {"b.c": ""})

    sources = discover([other], root=root, registry=REGISTRY)

    assert [source.rel_path for source in sources] == [f"{other.as_posix()}/b.c"]
