"""
report-todo — marker extraction and reference policy

File: src/report_todo/checks/markers.py
Last updated: 2026-10-18

Purpose
- Find configured keywords inside comment spans and classify each occurrence
  against the reference annotation policy.

What should be included in this file
- `ReferencePattern`: open marker, sigil, reference regex, close marker, colon.
- `extract`: per-occurrence `Marker` records with verdicts.

Functional requirements
- Keywords match case-sensitively at word boundaries (`_` counts as a word
  character) and only inside line or block comments.
- No opener directly after the keyword is `missing_reference`; an opener with
  an unusable reference is `malformed_reference`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from report_todo.constants import (
    DEFAULT_REFERENCE_CLOSE,
    DEFAULT_REFERENCE_OPEN,
    DEFAULT_REFERENCE_PATTERN,
    DEFAULT_REFERENCE_SIGIL,
)
from report_todo.lexing.grammar import GrammarRegistry
from report_todo.lexing.spans import Span, SpanKind


class Verdict(str, Enum):
    COMPLIANT = "compliant"
    MISSING_REFERENCE = "missing_reference"
    MALFORMED_REFERENCE = "malformed_reference"


@dataclass(frozen=True, slots=True)
class ReferencePattern:
    """Expected annotation shape, ``TODO(#42):`` by default."""

    open: str = DEFAULT_REFERENCE_OPEN
    sigil: str = DEFAULT_REFERENCE_SIGIL
    pattern: str = DEFAULT_REFERENCE_PATTERN
    close: str = DEFAULT_REFERENCE_CLOSE
    require_colon: bool = True
    compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.open:
            raise ValueError("reference open marker must be non-empty")
        if not self.close:
            raise ValueError("reference close marker must be non-empty")
        if "\n" in self.open + self.sigil + self.close:
            raise ValueError("reference markers must not contain newlines")
        try:
            compiled = re.compile(self.pattern)
        except re.error as exc:
            raise ValueError(f"invalid reference pattern {self.pattern!r}: {exc}") from exc
        object.__setattr__(self, "compiled", compiled)

    def example(self, reference: str = "1") -> str:
        colon = ":" if self.require_colon else ""
        return f"{self.open}{self.sigil}{reference}{self.close}{colon}"


@dataclass(frozen=True, slots=True)
class Marker:
    keyword: str
    offset: int
    trailing_text: str
    reference: str | None
    verdict: Verdict
    language: str
    message: str = ""
    comment_end: int | None = None

    @property
    def end(self) -> int:
        return self.offset + len(self.keyword)

    def to_dict(self) -> dict[str, object]:
        return {
            "keyword": self.keyword,
            "offset": self.offset,
            "reference": self.reference,
            "verdict": self.verdict.value,
            "language": self.language,
            "message": self.message,
        }


def compile_keywords(keywords: Iterable[str]) -> re.Pattern[str]:
    unique = sorted({keyword for keyword in keywords}, key=lambda item: (-len(item), item))
    if not unique or any(not keyword or keyword.isspace() for keyword in unique):
        raise ValueError("keywords must be a non-empty list of non-empty strings")
    alternation = "|".join(re.escape(keyword) for keyword in unique)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")


def classify_annotation(rest: str, reference: ReferencePattern) -> tuple[Verdict, str | None, int]:
    """Classify the text right after a keyword.

    Returns the verdict, the parsed reference (if any), and how many
    characters of ``rest`` the annotation consumed.
    """

    if not rest.startswith(reference.open):
        return Verdict.MISSING_REFERENCE, None, 0
    cursor = len(reference.open)
    line_end = rest.find("\n")
    if line_end == -1:
        line_end = len(rest)
    close_at = rest.find(reference.close, cursor, line_end)
    if close_at == -1:
        return Verdict.MALFORMED_REFERENCE, None, cursor
    inner = rest[cursor:close_at]
    consumed = close_at + len(reference.close)
    if reference.sigil and not inner.startswith(reference.sigil):
        return Verdict.MALFORMED_REFERENCE, None, consumed
    value = inner[len(reference.sigil) :]
    if not value or reference.compiled.fullmatch(value) is None:
        return Verdict.MALFORMED_REFERENCE, None, consumed
    if reference.require_colon:
        if not rest.startswith(":", consumed):
            return Verdict.MALFORMED_REFERENCE, value, consumed
        consumed += 1
    return Verdict.COMPLIANT, value, consumed


def _strip_closer(text: str, closers: Sequence[str]) -> str:
    stripped = text.rstrip()
    for closer in closers:
        if closer and stripped.endswith(closer):
            return stripped[: -len(closer)].rstrip()
    return stripped


def extract(
    spans: Iterable[Span],
    buffer: str,
    keywords: Iterable[str],
    reference_pattern: ReferencePattern | None = None,
    *,
    registry: GrammarRegistry | None = None,
) -> tuple[Marker, ...]:
    """Return every keyword occurrence found in comment spans, in buffer order.

    When ``registry`` is given, block-comment terminators are trimmed from the
    trailing text and message of markers on a comment's last line.
    """

    reference = reference_pattern or ReferencePattern()
    keyword_re = compile_keywords(keywords)
    markers: list[Marker] = []
    for span in spans:
        if not span.kind.is_comment:
            continue
        comment = buffer[span.start : span.end]
        closers: tuple[str, ...] = ()
        if span.kind is SpanKind.BLOCK_COMMENT and registry is not None and span.language in registry:
            closers = registry.lookup(span.language).block_closers
        for match in keyword_re.finditer(comment):
            rest = comment[match.end() :]
            line_end = rest.find("\n")
            line_rest = rest if line_end == -1 else rest[:line_end]
            on_last_line = line_end == -1
            trailing = line_rest.rstrip("\r")
            if on_last_line and closers:
                trailing = _strip_closer(trailing, closers)
            verdict, value, consumed = classify_annotation(rest, reference)
            message = trailing[consumed:] if consumed <= len(trailing) else ""
            markers.append(
                Marker(
                    keyword=match.group(),
                    offset=span.start + match.start(),
                    trailing_text=trailing,
                    reference=value,
                    verdict=verdict,
                    language=span.language,
                    message=message.strip(),
                    comment_end=span.end,
                )
            )
    return tuple(markers)


__all__ = [
    "Marker",
    "ReferencePattern",
    "Verdict",
    "classify_annotation",
    "compile_keywords",
    "extract",
]
