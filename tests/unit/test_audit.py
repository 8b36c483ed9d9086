"""
report-todo — unit tests for the audit pipeline

File: tests/unit/test_audit.py
Last updated: 2026-10-18

Purpose
- Validate per-file scanning into findings/diagnostics and the tree-wide
  fan-out with de-duplication, ordering, diff filtering and cancellation.

What this test file should cover
- Canonical marker and placeholder findings with positions and messages.
- Per-file diagnostics never abort a run.
- `report_all`, link help, `fail_on` severities.
- Idempotence and worker-count independence.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from report_todo.audit import AuditSettings, Finding, run_audit, scan_source
from report_todo.config import default_config, merge_config
from report_todo.lexing import builtin_registry
from report_todo.utils.concurrency import CancellationToken

REGISTRY = builtin_registry()
DEFAULTS = AuditSettings()


def _scan(text: str, language: str | None = "c", audit_settings: AuditSettings = DEFAULTS, path: str = "a.c"):  # noqa: ANN202
    return scan_source(path, text.encode("utf-8"), language, audit_settings, REGISTRY)


def _write(root: Path, files: dict[str, bytes | str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)


@pytest.mark.unit
def test_missing_reference_finding_has_position_and_help() -> None:
    report = _scan("int x;\n  // TODO tidy up\n")

    (finding,) = report.findings
    assert (finding.kind, finding.severity, finding.line, finding.col) == ("missing_reference", "ERROR", 2, 6)
    assert finding.message == "TODO found without issue number"
    assert finding.snippet == "  // TODO tidy up"
    assert finding.width == len("TODO tidy up")
    assert finding.help == "create a work item and reference it here (e.g. `TODO(#1): ...`)"
    assert report.diagnostics == ()


@pytest.mark.unit
def test_marker_underline_stops_at_the_end_of_its_comment() -> None:
    (html,) = _scan("<p>x</p>\n<p><!-- FIXME later --></p>\n", "html", path="a.html").findings
    (c_block,) = _scan("/* TODO a */ int x; // trailing\n").findings

    assert (html.line, html.col, html.width) == (2, 9, len("FIXME later -->"))
    assert (c_block.col, c_block.width) == (4, len("TODO a */"))


@pytest.mark.unit
def test_malformed_reference_message_names_expected_form() -> None:
    (finding,) = _scan("/* FIXME(bad): x */").findings

    assert finding.kind == "malformed_reference"
    assert finding.message == "FIXME has a malformed issue reference (expected `FIXME(#1):`)"


@pytest.mark.unit
def test_compliant_markers_only_reported_with_report_all() -> None:
    text = "// TODO(#42): fix this\n"

    assert _scan(text).findings == ()

    audit_settings = replace(DEFAULTS, report_all=True, link_format="https://tracker/issues/{reference}")
    (finding,) = _scan(text, audit_settings=audit_settings).findings
    assert finding.severity == "INFO"
    assert finding.label == "TODO(#42)"
    assert finding.reference == "42"
    assert finding.message == "fix this"
    assert finding.help == "link: https://tracker/issues/42"


@pytest.mark.unit
def test_rust_placeholder_finding_carries_suggestion() -> None:
    text = "fn main() {\n    let x = todo!();\n}\n"

    (finding,) = _scan(text, "rust", path="src/main.rs").findings

    assert (finding.kind, finding.line, finding.col, finding.width) == ("placeholder", 2, 13, 7)
    assert finding.message == "`todo!()` macro invocation"
    assert finding.help == "replace with `unimplemented!()` and a TODO comment with a linked work item"
    assert finding.suggestion == "    // TODO: \n    let x = unimplemented!();"


@pytest.mark.unit
def test_placeholder_check_can_be_disabled() -> None:
    audit_settings = replace(DEFAULTS, placeholder_enabled=False)

    assert _scan("fn f() { todo!() }", "rust", audit_settings).findings == ()


@pytest.mark.unit
def test_fail_on_controls_severity() -> None:
    audit_settings = replace(DEFAULTS, fail_on=frozenset({"placeholder"}))

    (finding,) = _scan("// TODO\n", audit_settings=audit_settings).findings

    assert finding.severity == "WARNING"
    assert finding.label == "warning"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "language", "kind"),
    [
        (b"int x; /* \xff */", "c", "encoding_error"),
        (b"// TODO", None, "unknown_language"),
        (b"// TODO", "cobol", "unknown_language"),
    ],
)
def test_per_file_errors_become_diagnostics(raw: bytes, language: str | None, kind: str) -> None:
    report = scan_source("f.x", raw, language, DEFAULTS, REGISTRY)

    assert report.findings == ()
    assert [diagnostic.kind for diagnostic in report.diagnostics] == [kind]


@pytest.mark.unit
def test_lossy_decode_keeps_scanning() -> None:
    report = scan_source("f.c", b"// TODO \xff\n", "c", replace(DEFAULTS, lossy_decode=True), REGISTRY)

    assert [finding.kind for finding in report.findings] == ["missing_reference"]


@pytest.mark.unit
def test_unterminated_comment_reports_and_still_extracts() -> None:
    report = _scan("int x;\n/* TODO never closed\n")

    assert [d.kind for d in report.diagnostics] == ["unterminated_block_comment"]
    assert report.diagnostics[0].line == 2
    assert [f.kind for f in report.findings] == ["missing_reference"]


@pytest.mark.unit
def test_embedding_too_deep_is_a_diagnostic_not_a_failure() -> None:
    text = "<p>x</p>\n<script>// TODO js</script>\n"

    report = _scan(text, "html", replace(DEFAULTS, max_embedding_depth=0), path="a.html")

    assert [d.kind for d in report.diagnostics] == ["embedding_too_deep"]
    assert report.diagnostics[0].line == 2
    assert report.findings == ()


@pytest.mark.unit
def test_settings_from_config() -> None:
    config = merge_config(
        default_config(),
        {"markers": {"keywords": ["HACK"], "default_keyword": "HACK"}, "reference": {"require_colon": False}},
    )

    audit_settings = AuditSettings.from_config(config)

    assert audit_settings.keywords == ("HACK",)
    assert audit_settings.reference.example() == "(#1)"
    assert audit_settings.fail_on == frozenset({"missing_reference", "malformed_reference", "placeholder"})


@pytest.mark.unit
@settings(max_examples=40, derandomize=True, deadline=None)
@given(
    body=st.lists(
        st.sampled_from(["// TODO x\n", "/* FIXME(#2): y */\n", 'let s = "TODO";\n', "todo!();\n", "x\n", "/*"]),
        max_size=12,
    )
)
def test_scan_source_is_idempotent(body: list[str]) -> None:
    text = "".join(body)

    first = _scan(text, "rust", path="p.rs")
    second = _scan(text, "rust", path="p.rs")

    assert first == second
    assert list(first.findings) == sorted(first.findings, key=Finding.sort_key)


@pytest.mark.unit
def test_run_audit_sorts_and_is_independent_of_workers(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "b.rs": "fn f() { todo!() } // TODO\n",
            "a.c": "// FIXME\n// TODO(#1): ok\n",
            "docs/readme.md": "```c\n// TODO in fence\n```\n",
            "bad.c": b"\xff// TODO\n",
            "skip.txt": "// TODO\n",
        },
    )

    single = run_audit(["."], root=tmp_path, settings=DEFAULTS, registry=REGISTRY, workers=1)
    many = run_audit(["."], root=tmp_path, settings=DEFAULTS, registry=REGISTRY, workers=4)

    assert single == many
    assert [(f.path, f.line, f.kind) for f in single.findings] == [
        ("a.c", 1, "missing_reference"),
        ("b.rs", 1, "placeholder"),
        ("b.rs", 1, "missing_reference"),
        ("docs/readme.md", 2, "missing_reference"),
    ]
    assert [(d.path, d.kind) for d in single.diagnostics] == [("bad.c", "encoding_error")]
    assert single.files_scanned == 4
    assert single.has_failures()
    assert single.summary()["by_kind"] == {"missing_reference": 3, "placeholder": 1}


@pytest.mark.unit
def test_run_audit_dedupes_overlapping_targets(tmp_path: Path) -> None:
    _write(tmp_path, {"src/a.c": "// TODO\n"})

    result = run_audit(["src", "src/a.c", "."], root=tmp_path, settings=DEFAULTS, registry=REGISTRY)

    assert len(result.findings) == 1
    assert result.files_scanned == 1


@pytest.mark.unit
def test_run_audit_changed_lines_filter(tmp_path: Path) -> None:
    _write(tmp_path, {"a.c": "// TODO one\n// TODO two\n", "b.c": "// TODO\n"})

    result = run_audit(
        ["."],
        root=tmp_path,
        settings=DEFAULTS,
        registry=REGISTRY,
        changed_lines={"a.c": frozenset({2})},
    )

    assert [(f.path, f.line) for f in result.findings] == [("a.c", 2)]
    assert result.files_scanned == 1


@pytest.mark.unit
def test_run_audit_explicit_file_without_grammar_and_warn_exit(tmp_path: Path) -> None:
    _write(tmp_path, {"notes.txt": "TODO\n"})

    result = run_audit(["notes.txt"], root=tmp_path, settings=DEFAULTS, registry=REGISTRY)

    assert [d.kind for d in result.diagnostics] == ["unknown_language"]
    assert not result.has_failures()
    assert result.has_failures(fail_on_warn=True)


@pytest.mark.unit
def test_run_audit_cancelled_before_start_skips_everything(tmp_path: Path) -> None:
    _write(tmp_path, {"a.c": "// TODO\n", "b.c": "// TODO\n"})
    token = CancellationToken()
    token.cancel()

    result = run_audit(["."], root=tmp_path, settings=DEFAULTS, registry=REGISTRY, cancel_token=token)

    assert result.findings == ()
    assert (result.files_scanned, result.files_skipped) == (0, 2)
