"""Rust placeholder detection: flag ``todo!()`` in code and suggest a tracked rewrite."""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable
from dataclasses import dataclass

from report_todo.constants import (
    DEFAULT_KEYWORDS,
    DEFAULT_PLACEHOLDER_NAME,
    DEFAULT_PLACEHOLDER_REPLACEMENT,
    RUST_LANGUAGE_ID,
)
from report_todo.lexing.spans import LineIndex, Span, SpanKind


@dataclass(frozen=True, slots=True)
class PlaceholderOccurrence:
    offset: int
    end: int
    call: str
    replacement_call: str
    suggestion: str

    def to_dict(self) -> dict[str, object]:
        return {
            "offset": self.offset,
            "end": self.end,
            "call": self.call,
            "replacement_call": self.replacement_call,
            "suggestion": self.suggestion,
        }


@functools.lru_cache(maxsize=32)
def _call_pattern(name: str) -> re.Pattern[str]:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"placeholder name must be a Rust identifier, got {name!r}")
    return re.compile(rf"(?<![A-Za-z0-9_]){re.escape(name)}!\(\s*\)")


def detect(
    spans: Iterable[Span],
    buffer: str,
    *,
    name: str = DEFAULT_PLACEHOLDER_NAME,
    replacement: str = DEFAULT_PLACEHOLDER_REPLACEMENT,
    keyword: str = DEFAULT_KEYWORDS[0],
    language: str = RUST_LANGUAGE_ID,
) -> tuple[PlaceholderOccurrence, ...]:
    """Find ``name!()`` calls in code spans tagged ``language``.

    Each suggestion is two lines: a bare ``// {keyword}: `` comment at the
    call's indentation, then the original line with the call rewritten to
    ``replacement!()``. The reference is left for the author to fill in.
    """

    pattern = _call_pattern(name)
    _call_pattern(replacement)
    replacement_call = f"{replacement}!()"
    lines: LineIndex | None = None
    found: list[PlaceholderOccurrence] = []
    for span in spans:
        if span.kind is not SpanKind.CODE or span.language != language:
            continue
        code = buffer[span.start : span.end]
        for match in pattern.finditer(code):
            if lines is None:
                lines = LineIndex(buffer)
            offset = span.start + match.start()
            end = span.start + match.end()
            found.append(
                PlaceholderOccurrence(
                    offset=offset,
                    end=end,
                    call=match.group(),
                    replacement_call=replacement_call,
                    suggestion=_suggest(buffer, lines, offset, end, keyword, replacement_call),
                )
            )
    return tuple(found)


def _suggest(
    buffer: str,
    lines: LineIndex,
    offset: int,
    end: int,
    keyword: str,
    replacement_call: str,
) -> str:
    line, _col = lines.line_col(offset)
    line_start = lines.line_start(line)
    source = lines.line_text(line)
    indent = source[: len(source) - len(source.lstrip())]
    head = buffer[line_start:offset]
    end_line, _end_col = lines.line_col(end)
    tail = lines.line_text(end_line)[end - lines.line_start(end_line) :]
    return f"{indent}// {keyword}: \n{head}{replacement_call}{tail}"


__all__ = ["PlaceholderOccurrence", "detect"]
