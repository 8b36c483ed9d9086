"""
report-todo — audit pipeline

File: src/report_todo/audit.py
Last updated: 2026-10-18

Purpose
- Turn one file's raw bytes into reportable findings, and fan that out over a
  discovered source tree.

What should be included in this file
- `Finding` / `FileDiagnostic` records with deterministic ordering keys.
- `scan_source`: decode -> scan -> resolve -> marker extraction -> Rust
  placeholder detection, with per-file errors turned into diagnostics.
- `run_audit`: discovery, bounded worker-thread fan-out, optional
  changed-lines filter, de-duplication and sorting.

Functional requirements
- No per-file failure escapes `scan_source`.
- Identical input yields identical output regardless of worker count.

Non-functional requirements
- `scan_source` is a pure function of (path, bytes, language, settings,
  registry) apart from logging.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Literal

from report_todo.checks.markers import Marker, ReferencePattern, Verdict, extract
from report_todo.checks.placeholders import PlaceholderOccurrence, detect
from report_todo.constants import (
    DEFAULT_FAIL_ON,
    DEFAULT_KEYWORDS,
    DEFAULT_MAX_EMBEDDING_DEPTH,
    DEFAULT_PLACEHOLDER_NAME,
    DEFAULT_PLACEHOLDER_REPLACEMENT,
    RUST_LANGUAGE_ID,
    SEVERITY_ORDER,
)
from report_todo.discovery import SourceFile, discover
from report_todo.errors import EncodingError, UnknownLanguage
from report_todo.lexing.grammar import GrammarRegistry
from report_todo.lexing.resolver import scan_and_resolve
from report_todo.lexing.scanner import decode_buffer
from report_todo.lexing.spans import LineIndex
from report_todo.observability.logging import correlation_scope
from report_todo.utils.concurrency import CancellationToken, run_threaded

logger = logging.getLogger(__name__)

Severity = Literal["ERROR", "WARNING", "INFO"]

DIAGNOSTIC_KINDS: Final[tuple[str, ...]] = (
    "embedding_too_deep",
    "encoding_error",
    "read_error",
    "unknown_language",
    "unterminated_block_comment",
)


@dataclass(frozen=True, slots=True)
class Finding:
    """One reportable marker or placeholder, located by 1-based line/column."""

    severity: Severity
    kind: str
    path: str
    line: int
    col: int
    width: int
    label: str
    message: str
    snippet: str
    help: str | None = None
    keyword: str | None = None
    reference: str | None = None
    suggestion: str | None = None
    language: str | None = None

    def sort_key(self) -> tuple[str, int, int, int, str, str]:
        return (self.path, self.line, self.col, SEVERITY_ORDER[self.severity], self.kind, self.message)

    def dedupe_key(self) -> tuple[str, int, int, str]:
        return (self.path, self.line, self.col, self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "kind": self.kind,
            "path": self.path,
            "line": self.line,
            "col": self.col,
            "label": self.label,
            "message": self.message,
            "help": self.help,
            "keyword": self.keyword,
            "reference": self.reference,
            "suggestion": self.suggestion,
            "language": self.language,
            "snippet": self.snippet,
        }


@dataclass(frozen=True, slots=True)
class FileDiagnostic:
    """Per-file warning: the file was skipped or only partially analysed."""

    path: str
    kind: str
    message: str
    line: int | None = None

    def sort_key(self) -> tuple[str, int, str]:
        return (self.path, self.line or 0, self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "kind": self.kind, "message": self.message, "line": self.line}


@dataclass(frozen=True, slots=True)
class FileReport:
    path: str
    language: str | None
    findings: tuple[Finding, ...] = ()
    diagnostics: tuple[FileDiagnostic, ...] = ()


@dataclass(frozen=True, slots=True)
class AuditSettings:
    """Per-run knobs consumed by `scan_source`, derived from validated config."""

    keywords: tuple[str, ...] = DEFAULT_KEYWORDS
    default_keyword: str = DEFAULT_KEYWORDS[0]
    reference: ReferencePattern = field(default_factory=ReferencePattern)
    link_format: str = ""
    placeholder_enabled: bool = True
    placeholder_name: str = DEFAULT_PLACEHOLDER_NAME
    placeholder_replacement: str = DEFAULT_PLACEHOLDER_REPLACEMENT
    max_embedding_depth: int = DEFAULT_MAX_EMBEDDING_DEPTH
    lossy_decode: bool = False
    report_all: bool = False
    fail_on: frozenset[str] = frozenset(DEFAULT_FAIL_ON)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AuditSettings:
        markers = config["markers"]
        reference = config["reference"]
        placeholder = config["placeholder"]
        scan = config["scan"]
        report = config["report"]
        return cls(
            keywords=tuple(markers["keywords"]),
            default_keyword=str(markers["default_keyword"]),
            reference=ReferencePattern(
                open=reference["open"],
                sigil=reference["sigil"],
                pattern=reference["pattern"],
                close=reference["close"],
                require_colon=bool(reference["require_colon"]),
            ),
            link_format=str(reference["link_format"]),
            placeholder_enabled=bool(placeholder["enabled"]),
            placeholder_name=str(placeholder["name"]),
            placeholder_replacement=str(placeholder["replacement"]),
            max_embedding_depth=int(scan["max_embedding_depth"]),
            lossy_decode=bool(scan["lossy_decode"]),
            report_all=bool(report["report_all"]),
            fail_on=frozenset(report["fail_on"]),
        )


@dataclass(frozen=True, slots=True)
class AuditResult:
    findings: tuple[Finding, ...]
    diagnostics: tuple[FileDiagnostic, ...]
    files_scanned: int
    files_skipped: int = 0
    fail_on: frozenset[str] = frozenset()

    @property
    def issues(self) -> tuple[Finding, ...]:
        return tuple(finding for finding in self.findings if finding.kind != Verdict.COMPLIANT.value)

    @property
    def failing(self) -> tuple[Finding, ...]:
        return tuple(finding for finding in self.findings if finding.kind in self.fail_on)

    def has_failures(self, *, fail_on_warn: bool = False) -> bool:
        if self.failing:
            return True
        return fail_on_warn and bool(self.diagnostics)

    def summary(self) -> dict[str, Any]:
        by_kind = Counter(finding.kind for finding in self.findings)
        return {
            "files_scanned": self.files_scanned,
            "files_skipped": self.files_skipped,
            "issues": len(self.issues),
            "failing": len(self.failing),
            "diagnostics": len(self.diagnostics),
            "by_kind": {kind: by_kind[kind] for kind in sorted(by_kind)},
        }


def scan_source(
    path: str,
    raw: bytes,
    language: str | None,
    settings: AuditSettings,
    registry: GrammarRegistry,
) -> FileReport:
    """Scan one file's bytes and classify every marker and placeholder in it."""

    with correlation_scope(path=path, language=language):
        if language is None:
            return _skipped(path, None, "unknown_language", "no grammar matches this file")
        try:
            grammar = registry.lookup(language)
        except UnknownLanguage as exc:
            return _skipped(path, language, "unknown_language", str(exc))

        try:
            text = decode_buffer(raw, lossy=settings.lossy_decode)
        except EncodingError as exc:
            return _skipped(path, language, "encoding_error", str(exc))

        resolved = scan_and_resolve(
            text, grammar, registry=registry, max_depth=settings.max_embedding_depth
        )
        lines = LineIndex(text)

        diagnostics: list[FileDiagnostic] = []
        for error in resolved.too_deep:
            diagnostics.append(
                FileDiagnostic(path, "embedding_too_deep", str(error), lines.line_col(error.offset)[0])
            )
        for comment in resolved.unterminated:
            line = lines.line_col(comment.offset)[0]
            diagnostics.append(
                FileDiagnostic(
                    path,
                    "unterminated_block_comment",
                    f"unterminated {comment.language} block comment closed at end of file",
                    line,
                )
            )
            logger.warning("unterminated block comment", extra={"line": line})

        findings: list[Finding] = []
        markers = extract(
            resolved.spans, text, settings.keywords, settings.reference, registry=registry
        )
        for marker in markers:
            if marker.verdict is Verdict.COMPLIANT and not settings.report_all:
                continue
            findings.append(_marker_finding(path, marker, lines, settings))

        if settings.placeholder_enabled:
            occurrences = detect(
                resolved.spans,
                text,
                name=settings.placeholder_name,
                replacement=settings.placeholder_replacement,
                keyword=settings.default_keyword,
                language=RUST_LANGUAGE_ID,
            )
            findings.extend(_placeholder_finding(path, item, lines, settings) for item in occurrences)

        findings.sort(key=Finding.sort_key)
        logger.debug(
            "file scanned",
            extra={"spans": len(resolved.spans), "findings": len(findings)},
        )
        return FileReport(
            path=path,
            language=language,
            findings=tuple(findings),
            diagnostics=tuple(diagnostics),
        )


def run_audit(
    targets: Sequence[str | Path],
    *,
    root: Path,
    settings: AuditSettings,
    registry: GrammarRegistry,
    workers: int = 1,
    exclude: Sequence[str] = (),
    ignore_files: Sequence[str] = (),
    language_overrides: Mapping[str, str] | None = None,
    forced_language: str | None = None,
    changed_lines: Mapping[str, frozenset[int]] | None = None,
    cancel_token: CancellationToken | None = None,
) -> AuditResult:
    """Audit every source under ``targets``.

    With ``changed_lines`` only files in the mapping are scanned, and only
    findings on listed lines are kept. Files are still scanned whole.
    """

    sources = discover(
        targets,
        root=root,
        registry=registry,
        exclude=exclude,
        ignore_files=ignore_files,
        language_overrides=language_overrides,
        forced_language=forced_language,
    )
    if changed_lines is not None:
        sources = [source for source in sources if source.rel_path in changed_lines]
    logger.info("sources discovered", extra={"count": len(sources)})

    def audit_one(source: SourceFile) -> FileReport:
        return _read_and_scan(source, settings, registry)

    reports = run_threaded(audit_one, sources, workers=workers, cancel_token=cancel_token)

    findings: dict[tuple[str, int, int, str], Finding] = {}
    diagnostics: set[FileDiagnostic] = set()
    scanned = 0
    for report in reports:
        if report is None:
            continue
        scanned += 1
        diagnostics.update(report.diagnostics)
        allowed = None if changed_lines is None else changed_lines.get(report.path, frozenset())
        for finding in report.findings:
            if allowed is not None and finding.line not in allowed:
                continue
            findings.setdefault(finding.dedupe_key(), finding)

    skipped = len(reports) - scanned
    if skipped:
        logger.warning("audit cancelled", extra={"skipped": skipped})
    return AuditResult(
        findings=tuple(sorted(findings.values(), key=Finding.sort_key)),
        diagnostics=tuple(sorted(diagnostics, key=FileDiagnostic.sort_key)),
        files_scanned=scanned,
        files_skipped=skipped,
        fail_on=settings.fail_on,
    )


def _read_and_scan(source: SourceFile, settings: AuditSettings, registry: GrammarRegistry) -> FileReport:
    try:
        raw = source.path.read_bytes()
    except OSError as exc:
        with correlation_scope(path=source.rel_path):
            message = f"cannot read file: {exc.strerror or exc}"
            return _skipped(source.rel_path, source.language, "read_error", message)
    return scan_source(source.rel_path, raw, source.language, settings, registry)


def _skipped(path: str, language: str | None, kind: str, message: str) -> FileReport:
    logger.warning("file skipped: %s", message, extra={"kind": kind})
    return FileReport(
        path=path,
        language=language,
        diagnostics=(FileDiagnostic(path=path, kind=kind, message=message),),
    )


def _marker_finding(path: str, marker: Marker, lines: LineIndex, settings: AuditSettings) -> Finding:
    line, col = lines.line_col(marker.offset)
    snippet = lines.line_text(line)
    stop = len(snippet.rstrip())
    if marker.comment_end is not None:
        end_line, end_col = lines.line_col(marker.comment_end)
        if end_line == line:
            stop = min(stop, end_col - 1)
    width = max(len(snippet[col - 1 : stop].rstrip()), len(marker.keyword))
    example = settings.reference.example()

    if marker.verdict is Verdict.COMPLIANT:
        help_text = None
        if settings.link_format and marker.reference is not None:
            help_text = "link: " + settings.link_format.replace("{reference}", marker.reference)
        label = f"{marker.keyword}{settings.reference.example(marker.reference or '')}".rstrip(":")
        return Finding(
            severity="INFO",
            kind=Verdict.COMPLIANT.value,
            path=path,
            line=line,
            col=col,
            width=width,
            label=label,
            message=marker.message,
            snippet=snippet,
            help=help_text,
            keyword=marker.keyword,
            reference=marker.reference,
            language=marker.language,
        )

    if marker.verdict is Verdict.MISSING_REFERENCE:
        message = f"{marker.keyword} found without issue number"
    else:
        message = f"{marker.keyword} has a malformed issue reference (expected `{marker.keyword}{example}`)"
    severity = _severity(marker.verdict.value, settings)
    return Finding(
        severity=severity,
        kind=marker.verdict.value,
        path=path,
        line=line,
        col=col,
        width=width,
        label=severity.lower(),
        message=message,
        snippet=snippet,
        help=f"create a work item and reference it here (e.g. `{settings.default_keyword}{example} ...`)",
        keyword=marker.keyword,
        reference=marker.reference,
        language=marker.language,
    )


def _placeholder_finding(
    path: str, occurrence: PlaceholderOccurrence, lines: LineIndex, settings: AuditSettings
) -> Finding:
    line, col = lines.line_col(occurrence.offset)
    end_line, end_col = lines.line_col(occurrence.end)
    snippet = lines.line_text(line)
    width = end_col - col if end_line == line else len(snippet) - (col - 1)
    severity = _severity("placeholder", settings)
    return Finding(
        severity=severity,
        kind="placeholder",
        path=path,
        line=line,
        col=col,
        width=max(width, 1),
        label=severity.lower(),
        message=f"`{settings.placeholder_name}!()` macro invocation",
        snippet=snippet,
        help=(
            f"replace with `{occurrence.replacement_call}` and a "
            f"{settings.default_keyword} comment with a linked work item"
        ),
        suggestion=occurrence.suggestion,
        language=RUST_LANGUAGE_ID,
    )


def _severity(kind: str, settings: AuditSettings) -> Severity:
    return "ERROR" if kind in settings.fail_on else "WARNING"


__all__ = [
    "DIAGNOSTIC_KINDS",
    "AuditResult",
    "AuditSettings",
    "FileDiagnostic",
    "FileReport",
    "Finding",
    "run_audit",
    "scan_source",
]
