"""
report-todo — CLI subprocess smoke contracts

File: tests/integration/test_cli_smoke.py
Last updated: 2026-10-18

Purpose
- Enforce CLI behavior for `python -m report_todo` scan/languages/config.
- Verify exit codes (0 clean, 1 findings, 2 usage/config), report formats,
  and the git-backed `--diff` filter against a throwaway repository.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

_GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "report-todo tests",
    "GIT_AUTHOR_EMAIL": "tests@example.invalid",
    "GIT_COMMITTER_NAME": "report-todo tests",
    "GIT_COMMITTER_EMAIL": "tests@example.invalid",
}


def _env() -> dict[str, str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    env.pop("NO_COLOR", None)
    for key in list(env):
        if key.startswith("REPORT_TODO_"):
            env.pop(key)
    env.update(_GIT_IDENTITY)
    return env


def _run_cli(repo_root: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "report_todo", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=_env(),
    )


def _git(repo_root: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=_env(),
    )
    if completed.returncode != 0:
        command = "git " + " ".join(args)
        detail = completed.stderr.strip() or completed.stdout.strip()
        raise RuntimeError(f"git command failed: {command}: {detail}")
    return completed.stdout


def _write(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")


def _seed(repo_root: Path) -> None:
    _write(repo_root / "src" / "lib.rs", "fn f() {\n    // TODO fix this\n    todo!()\n}\n")
    _write(repo_root / "src" / "ok.c", "// TODO(#12): tracked\nint x;\n")
    _write(repo_root / "web" / "index.html", "<p>TODO in text</p>\n<script>// FIXME later</script>\n")
    _write(repo_root / "notes.txt", "TODO: plain text is never scanned\n")


@pytest.mark.integration
def test_scan_reports_findings_and_exits_one(tmp_path: Path) -> None:
    _seed(tmp_path)

    completed = _run_cli(tmp_path, "scan", "--no-color")

    assert completed.returncode == 1, completed.stderr
    out = completed.stdout
    assert "error: TODO found without issue number\n --> src/lib.rs:2:8\n" in out
    assert "error: `todo!()` macro invocation" in out
    assert " --> web/index.html:2:12" in out
    assert "notes.txt" not in out
    assert out.rstrip().endswith("3 issues found.")


@pytest.mark.integration
def test_scan_clean_tree_exits_zero(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "ok.c", "// TODO(#1): tracked\n")

    completed = _run_cli(tmp_path, "scan", "src")

    assert completed.returncode == 0, completed.stderr
    assert completed.stdout == ""


@pytest.mark.integration
def test_scan_json_report(tmp_path: Path) -> None:
    _seed(tmp_path)

    completed = _run_cli(tmp_path, "scan", "--format", "json", "--all", "--issue-link-format", "https://t/{reference}")

    assert completed.returncode == 1, completed.stderr
    payload = json.loads(completed.stdout)
    assert payload["summary"]["issues"] == 3
    assert payload["summary"]["by_kind"] == {"compliant": 1, "missing_reference": 2, "placeholder": 1}
    compliant = [item for item in payload["findings"] if item["kind"] == "compliant"]
    assert compliant[0]["help"] == "link: https://t/12"
    assert [item["path"] for item in payload["findings"]] == sorted(item["path"] for item in payload["findings"])


@pytest.mark.integration
def test_config_file_and_keyword_flags(tmp_path: Path) -> None:
    _write(tmp_path / "report_todo.toml", '[report]\nfail_on = ["placeholder"]\n')
    _write(tmp_path / "a.py", "# HACK around it\n# TODO later\n")

    default_run = _run_cli(tmp_path, "scan")
    hack_run = _run_cli(tmp_path, "scan", "--keyword", "HACK", "--no-color")

    assert default_run.returncode == 0, default_run.stderr
    assert "warning: TODO found without issue number" in default_run.stdout
    assert hack_run.returncode == 0
    assert "HACK found without issue number" in hack_run.stdout
    assert "TODO found" not in hack_run.stdout


@pytest.mark.integration
@pytest.mark.parametrize(
    "args",
    [
        ("scan", "--language", "cobol", "x.c"),
        ("scan", "--format", "yaml"),
        ("scan", "--config", "missing.toml"),
        ("scan", "--workers", "0"),
        ("scan", "--reference-pattern", "[0-9"),
        ("frobnicate",),
    ],
)
def test_usage_and_config_errors_exit_two(tmp_path: Path, args: tuple[str, ...]) -> None:
    completed = _run_cli(tmp_path, *args)

    assert completed.returncode == 2, completed.stdout + completed.stderr
    assert completed.stderr.strip()


@pytest.mark.integration
def test_unreadable_encoding_warns_and_fail_on_warn(tmp_path: Path) -> None:
    (tmp_path / "bad.c").write_bytes(b"// \xff\n")

    relaxed = _run_cli(tmp_path, "scan", "--no-color")
    strict = _run_cli(tmp_path, "scan", "--fail-on-warn")
    lossy = _run_cli(tmp_path, "scan", "--lossy-decode")

    assert relaxed.returncode == 0
    assert "warning:" in relaxed.stdout and "bad.c" in relaxed.stdout
    assert strict.returncode == 1
    assert lossy.returncode == 0
    assert lossy.stdout == ""


@pytest.mark.integration
def test_languages_and_config_commands(tmp_path: Path) -> None:
    listing = _run_cli(tmp_path, "languages", "--json")
    table = _run_cli(tmp_path, "languages")
    config = _run_cli(tmp_path, "config", "--log-level", "debug")

    assert listing.returncode == 0, listing.stderr
    languages = {item["id"] for item in json.loads(listing.stdout)["languages"]}
    assert {"rust", "c", "html", "markdown"} <= languages
    assert table.stdout.splitlines()[0].split() == ["language", "files", "embeds"]
    assert config.returncode == 0, config.stderr
    effective = json.loads(config.stdout)
    assert effective["observability"]["log_level"] == "DEBUG"
    assert effective["markers"]["keywords"] == ["TODO", "FIXME"]


@pytest.mark.integration
def test_grammar_file_extends_languages(tmp_path: Path) -> None:
    _write(
        tmp_path / "grammars.yaml",
        "languages:\n  - id: nim\n    extensions: [.nim]\n    line_comments: ['#']\n",
    )
    _write(tmp_path / "main.nim", 'echo "TODO"  # TODO nim\n')

    completed = _run_cli(tmp_path, "scan", "--grammar", "grammars.yaml", "--no-color")
    broken = _run_cli(tmp_path, "scan", "--grammar", "missing.yaml")

    assert completed.returncode == 1, completed.stderr
    assert " --> main.nim:1:16" in completed.stdout
    assert broken.returncode == 2


@pytest.mark.integration
@pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")
def test_diff_mode_limits_report_to_added_lines(tmp_path: Path) -> None:
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    remote.mkdir()
    work.mkdir()
    _git(remote, "init", "--bare", "-q", "-b", "main")
    _git(work, "init", "-q", "-b", "main")
    _write(work / "old.c", "// TODO legacy\n")
    _git(work, "add", "old.c")
    _git(work, "commit", "-q", "-m", "initial")
    _git(work, "remote", "add", "origin", str(remote))
    _git(work, "push", "-q", "-u", "origin", "main")

    _write(work / "old.c", "// TODO legacy\n// FIXME fresh\n")
    _write(work / "new.rs", "fn f() { todo!() }\n")
    _git(work, "add", "new.rs")

    completed = _run_cli(work, "scan", "--diff", "--format", "json")

    assert completed.returncode == 1, completed.stderr
    findings = json.loads(completed.stdout)["findings"]
    assert [(item["path"], item["line"], item["kind"]) for item in findings] == [
        ("new.rs", 1, "placeholder"),
        ("old.c", 2, "missing_reference"),
    ]


@pytest.mark.integration
def test_diff_outside_git_is_a_usage_error(tmp_path: Path) -> None:
    _write(tmp_path / "a.c", "// TODO\n")

    completed = _run_cli(tmp_path, "scan", "--diff")

    assert completed.returncode == 2
    assert "--diff" in completed.stderr
