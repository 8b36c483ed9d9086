"""
report-todo — comment-aware lexical scanner

File: src/report_todo/lexing/scanner.py
Last updated: 2026-10-18

Purpose
- Classify every character of a decoded buffer as code, line comment, block
  comment, or string literal under a single grammar.

What should be included in this file
- Buffer decoding with a structured `EncodingError`.
- A single left-to-right pass driven by the grammar's compiled opener.
- Tracking of unterminated block comments, which close implicitly at the end
  of the scanned range.

Functional requirements
- Output spans partition the scanned range: ordered, gap-free, non-overlapping.
- Touching spans of identical kind and language are merged.
- Nestable block comments track depth; others close at the first terminator.

Non-functional requirements
- Linear in the buffer length; no backtracking across constructs.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

from report_todo.errors import EncodingError
from report_todo.lexing.grammar import BlockCommentRule, FencedRule, Grammar, StringRule
from report_todo.lexing.spans import LineIndex, Span, SpanKind, merge_adjacent


@dataclass(frozen=True, slots=True)
class ScanResult:
    spans: tuple[Span, ...]
    unterminated: tuple[int, ...] = ()


def decode_buffer(raw: bytes, *, lossy: bool = False) -> str:
    """Decode UTF-8 (a leading BOM is dropped).

    Strict mode raises `EncodingError` at the first undecodable byte. Lossy
    mode substitutes U+FFFD so scanning can continue on a best-effort basis.
    """

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        if lossy:
            return raw.decode("utf-8-sig", errors="replace")
        raise EncodingError(offset=exc.start, reason=exc.reason) from exc


@functools.lru_cache(maxsize=256)
def _string_stops(rule: StringRule) -> re.Pattern[str]:
    parts = [re.escape(rule.close)]
    if rule.escape is not None:
        parts.insert(0, re.escape(rule.escape) + r"(?s:.)")
    if not rule.multiline:
        parts.append(r"\n")
    return re.compile("|".join(parts))


@functools.lru_cache(maxsize=256)
def _block_stops(rule: BlockCommentRule) -> re.Pattern[str]:
    if rule.nestable:
        return re.compile(f"(?P<close>{re.escape(rule.close)})|(?P<open>{re.escape(rule.open)})")
    return re.compile(f"(?P<close>{re.escape(rule.close)})")


def _end_of_string(text: str, rule: StringRule, pos: int, end: int) -> int:
    stops = _string_stops(rule)
    while True:
        match = stops.search(text, pos, end)
        if match is None:
            return end
        token = match.group()
        if token == "\n" and not rule.multiline:
            return match.start()
        if rule.escape is not None and token[0] == rule.escape and token != rule.close:
            pos = match.end()
            continue
        return match.end()


def _end_of_block(text: str, rule: BlockCommentRule, pos: int, end: int) -> int | None:
    stops = _block_stops(rule)
    depth = 1
    while True:
        match = stops.search(text, pos, end)
        if match is None:
            return None
        if match.lastgroup == "open":
            depth += 1
        else:
            depth -= 1
            if depth == 0:
                return match.end()
        pos = match.end()


def _end_of_fenced(text: str, rule: FencedRule, opener: str, pos: int, end: int) -> int | None:
    terminator = rule.terminator(opener)
    found = text.find(terminator, pos, end)
    if found == -1:
        return None
    return found + len(terminator)


def scan_detailed(text: str, grammar: Grammar, start: int = 0, end: int | None = None) -> ScanResult:
    """Scan ``text[start:end]`` and report unterminated block comment offsets too."""

    stop = len(text) if end is None else end
    language = grammar.language
    if grammar.opener is None or start >= stop:
        spans = [Span(start, stop, SpanKind.CODE, language)] if start < stop else []
        return ScanResult(spans=tuple(spans))

    raw: list[Span] = []
    unterminated: list[int] = []
    pos = start
    while pos < stop:
        match = grammar.opener.search(text, pos, stop)
        if match is None:
            raw.append(Span(pos, stop, SpanKind.CODE, language))
            break
        token_start = match.start()
        if token_start > pos:
            raw.append(Span(pos, token_start, SpanKind.CODE, language))

        kind, rule = grammar.token_rules[match.lastgroup or ""]
        body = match.end()
        if isinstance(rule, StringRule):
            token_end = _end_of_string(text, rule, body, stop)
        elif isinstance(rule, BlockCommentRule):
            closed = _end_of_block(text, rule, body, stop)
            if closed is None:
                unterminated.append(token_start)
            token_end = stop if closed is None else closed
        elif isinstance(rule, FencedRule):
            closed = _end_of_fenced(text, rule, match.group(), body, stop)
            if closed is None and kind is SpanKind.BLOCK_COMMENT:
                unterminated.append(token_start)
            token_end = stop if closed is None else closed
        elif kind is SpanKind.LINE_COMMENT:
            newline = text.find("\n", body, stop)
            token_end = stop if newline == -1 else newline
        else:
            # Fixed-shape literal pattern: the match itself is the literal.
            token_end = body

        if token_end <= token_start:
            # Zero-width opener; treat the character as code to keep progress.
            token_end = token_start + 1
            kind = SpanKind.CODE
        raw.append(Span(token_start, token_end, kind, language))
        pos = token_end

    return ScanResult(spans=tuple(merge_adjacent(raw)), unterminated=tuple(unterminated))


def scan(buffer: str | bytes, grammar: Grammar, start: int = 0, end: int | None = None) -> tuple[Span, ...]:
    """Return the ordered spans covering the scanned range of ``buffer``.

    Byte buffers are decoded leniently; offsets always index the decoded text.
    """

    text = decode_buffer(buffer, lossy=True) if isinstance(buffer, bytes) else buffer
    return scan_detailed(text, grammar, start, end).spans


__all__ = [
    "LineIndex",
    "ScanResult",
    "Span",
    "SpanKind",
    "decode_buffer",
    "scan",
    "scan_detailed",
]
