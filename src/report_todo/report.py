"""Report formatting: rustc-style text and deterministic JSON."""

from __future__ import annotations

import json
from typing import Any

from report_todo.audit import AuditResult, FileDiagnostic, Finding
from report_todo.constants import REPORT_SCHEMA_VERSION
from report_todo.ui.render import CLIRenderer

_LABEL_STYLES = {"ERROR": "error", "WARNING": "warning", "INFO": "info"}


def format_finding(finding: Finding, renderer: CLIRenderer) -> list[str]:
    """Render one finding as a rustc-style block (without the trailing blank line).

    ::

        error: TODO found without issue number
         --> src/lib.rs:3:8
          |
        3 |     // TODO fix this
          |        ^^^^^^^^^^^^^
          |
          = help: create a work item and reference it here (e.g. `TODO(#1): ...`)
    """

    gutter = " " * len(str(finding.line))
    bar = renderer.paint("|", "gutter")
    style = _LABEL_STYLES[finding.severity]
    label = renderer.paint(finding.label, style)
    caret = renderer.paint("^" * finding.width, style)
    lines = [
        f"{label}{renderer.paint(': ' + finding.message, 'bold')}",
        f"{gutter}{renderer.paint('-->', 'gutter')} {finding.path}:{finding.line}:{finding.col}",
        f"{gutter} {bar}",
        f"{renderer.paint(str(finding.line), 'gutter')} {bar} {finding.snippet.rstrip()}",
        f"{gutter} {bar} {' ' * (finding.col - 1)}{caret}",
    ]
    notes: list[str] = []
    if finding.help:
        notes.append(finding.help if finding.kind == "compliant" else f"help: {finding.help}")
    if finding.suggestion:
        notes.append("suggestion:")
    if notes:
        lines.append(f"{gutter} {bar}")
    equals = renderer.paint("=", "gutter")
    for note in notes:
        lines.append(f"{gutter} {equals} {note}")
    if finding.suggestion:
        lines.extend(f"{gutter}     {row}" for row in finding.suggestion.splitlines())
    return lines


def format_diagnostic(diagnostic: FileDiagnostic, renderer: CLIRenderer) -> list[str]:
    location = diagnostic.path if diagnostic.line is None else f"{diagnostic.path}:{diagnostic.line}"
    return [
        f"{renderer.paint('warning', 'warning')}{renderer.paint(': ' + diagnostic.message, 'bold')}",
        f" {renderer.paint('-->', 'gutter')} {location}",
    ]


def summary_line(result: AuditResult) -> str | None:
    """Count every printed finding, compliant ones included under ``--all``."""

    count = len(result.findings)
    if count == 0:
        return None
    return f"{count} issue{'s' if count != 1 else ''} found."


def render_text(result: AuditResult, renderer: CLIRenderer) -> None:
    for finding in result.findings:
        for line in format_finding(finding, renderer):
            renderer.write(line)
        renderer.blank()
    for diagnostic in result.diagnostics:
        for line in format_diagnostic(diagnostic, renderer):
            renderer.write(line)
        renderer.blank()
    summary = summary_line(result)
    if summary is not None:
        renderer.write(renderer.paint(summary, "bold"))
    elif renderer.verbose:
        renderer.write(f"no issues found in {result.files_scanned} file(s).")


def report_payload(result: AuditResult) -> dict[str, Any]:
    summary = {"schema_version": REPORT_SCHEMA_VERSION, **result.summary()}
    return {
        "summary": summary,
        "findings": [finding.to_dict() for finding in result.findings],
        "diagnostics": [diagnostic.to_dict() for diagnostic in result.diagnostics],
    }


def render_json(result: AuditResult) -> str:
    return json.dumps(report_payload(result), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = [
    "format_diagnostic",
    "format_finding",
    "render_json",
    "render_text",
    "report_payload",
    "summary_line",
]
