"""Span model shared by the scanner, resolver, and downstream checks."""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum


class SpanKind(str, Enum):
    """Lexical classification of one contiguous buffer range."""

    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING_LITERAL = "string_literal"

    @property
    def is_comment(self) -> bool:
        return self in (SpanKind.LINE_COMMENT, SpanKind.BLOCK_COMMENT)


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open ``[start, end)`` character range tagged with kind and language."""

    start: int
    end: int
    kind: SpanKind
    language: str

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid span bounds [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def text(self, buffer: str) -> str:
        return buffer[self.start : self.end]

    def clip(self, start: int, end: int) -> Span | None:
        """Return the part of this span inside ``[start, end)``, if any."""

        lo = max(self.start, start)
        hi = min(self.end, end)
        if lo >= hi:
            return None
        return Span(lo, hi, self.kind, self.language)

    def to_dict(self) -> dict[str, object]:
        return {
            "start": self.start,
            "end": self.end,
            "kind": self.kind.value,
            "language": self.language,
        }


def merge_adjacent(spans: Iterable[Span]) -> list[Span]:
    """Merge touching spans that share kind and language; drop empty spans."""

    merged: list[Span] = []
    for span in spans:
        if span.start == span.end:
            continue
        if merged:
            last = merged[-1]
            if last.end == span.start and last.kind is span.kind and last.language == span.language:
                merged[-1] = Span(last.start, span.end, last.kind, last.language)
                continue
        merged.append(span)
    return merged


def clip_spans(spans: Iterable[Span], start: int, end: int) -> list[Span]:
    clipped: list[Span] = []
    for span in spans:
        piece = span.clip(start, end)
        if piece is not None:
            clipped.append(piece)
    return clipped


def is_partition(spans: Sequence[Span], start: int, end: int) -> bool:
    """Check that ``spans`` cover ``[start, end)`` in order with no gaps or overlaps."""

    cursor = start
    for span in spans:
        if span.start != cursor or span.end <= span.start:
            return False
        cursor = span.end
    return cursor == end


class LineIndex:
    """Maps character offsets to 1-based ``(line, column)`` by newline counting."""

    __slots__ = ("_starts", "_text")

    def __init__(self, text: str) -> None:
        self._text = text
        starts = [0]
        position = text.find("\n")
        while position != -1:
            starts.append(position + 1)
            position = text.find("\n", position + 1)
        self._starts = starts

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_col(self, offset: int) -> tuple[int, int]:
        bounded = min(max(offset, 0), len(self._text))
        index = bisect.bisect_right(self._starts, bounded) - 1
        return index + 1, bounded - self._starts[index] + 1

    def line_start(self, line: int) -> int:
        return self._starts[line - 1]

    def line_text(self, line: int) -> str:
        """Return line ``line`` (1-based) without its trailing newline."""

        if line < 1 or line > len(self._starts):
            return ""
        start = self._starts[line - 1]
        end = self._text.find("\n", start)
        if end == -1:
            end = len(self._text)
        return self._text[start:end].rstrip("\r")


__all__ = [
    "LineIndex",
    "Span",
    "SpanKind",
    "clip_spans",
    "is_partition",
    "merge_adjacent",
]
