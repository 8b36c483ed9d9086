"""Nested-region resolution: splice embedded-language scans into the host span stream."""

from __future__ import annotations

import bisect
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from report_todo.constants import DEFAULT_MAX_EMBEDDING_DEPTH
from report_todo.errors import EmbeddingTooDeep
from report_todo.lexing.grammar import EmbeddingRule, Grammar, GrammarRegistry, builtin_registry
from report_todo.lexing.scanner import scan_detailed
from report_todo.lexing.spans import Span, SpanKind, clip_spans, merge_adjacent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnterminatedComment:
    offset: int
    language: str


@dataclass(frozen=True, slots=True)
class ResolveResult:
    spans: tuple[Span, ...]
    unterminated: tuple[UnterminatedComment, ...] = ()
    too_deep: tuple[EmbeddingTooDeep, ...] = ()


class _Resolution:
    __slots__ = ("max_depth", "registry", "text", "too_deep", "unterminated")

    def __init__(self, text: str, registry: GrammarRegistry, max_depth: int) -> None:
        self.text = text
        self.registry = registry
        self.max_depth = max_depth
        self.unterminated: list[UnterminatedComment] = []
        self.too_deep: list[EmbeddingTooDeep] = []

    def scan(self, grammar: Grammar, start: int, end: int) -> list[Span]:
        result = scan_detailed(self.text, grammar, start, end)
        self.unterminated.extend(
            UnterminatedComment(offset, grammar.language) for offset in result.unterminated
        )
        return list(result.spans)

    def find_trigger(
        self, spans: Sequence[Span], grammar: Grammar, end: int
    ) -> tuple[EmbeddingRule, int, int] | None:
        """Earliest embedding start that begins inside a code span; rule order breaks ties.

        Each rule's pattern is searched forward only: a match that lands in a
        non-code span moves the cursor to the span holding it.
        """

        starts = [span.start for span in spans]
        best: tuple[int, int, EmbeddingRule, int] | None = None
        for order, rule in enumerate(grammar.embeddings):
            index = 0
            while index < len(spans):
                span = spans[index]
                if span.kind is not SpanKind.CODE:
                    index += 1
                    continue
                if best is not None and span.start > best[0]:
                    break
                match = rule.start_re.search(self.text, span.start, end)
                if match is None:
                    break
                if match.start() < span.end:
                    candidate = (match.start(), order, rule, match.end())
                    if best is None or candidate[:2] < best[:2]:
                        best = candidate
                    break
                index = max(index + 1, bisect.bisect_right(starts, match.start()) - 1)
        if best is None:
            return None
        return best[2], best[0], best[3]

    def resolve(
        self,
        grammar: Grammar,
        spans: list[Span],
        start: int,
        end: int,
        depth: int,
    ) -> list[Span]:
        out: list[Span] = []
        pos = start
        current = spans
        while pos < end:
            trigger = self.find_trigger(current, grammar, end)
            if trigger is None:
                out.extend(clip_spans(current, pos, end))
                break
            rule, _trigger_start, region_start = trigger
            closing = rule.end_re.search(self.text, region_start, end)
            region_end = end if closing is None else max(closing.start(), region_start)

            try:
                embedded = self.embed(rule, region_start, region_end, depth + 1)
            except EmbeddingTooDeep as exc:
                logger.warning(
                    "embedding depth exceeded; keeping %s for the rest of the range",
                    grammar.language,
                    extra={"language": rule.language, "offset": exc.offset},
                )
                self.too_deep.append(exc)
                out.extend(clip_spans(current, pos, end))
                break

            out.extend(clip_spans(current, pos, region_start))
            out.extend(embedded)
            pos = region_end
            if pos < end:
                current = self.scan(grammar, pos, end)
        return out

    def embed(self, rule: EmbeddingRule, start: int, end: int, depth: int) -> list[Span]:
        if depth > self.max_depth:
            raise EmbeddingTooDeep(
                depth=depth,
                max_depth=self.max_depth,
                language_id=rule.language,
                offset=start,
            )
        grammar = self.registry.lookup(rule.language)
        return self.resolve(grammar, self.scan(grammar, start, end), start, end, depth)


def resolve_detailed(
    spans: Sequence[Span],
    buffer: str,
    outer_grammar: Grammar,
    *,
    registry: GrammarRegistry | None = None,
    max_depth: int = DEFAULT_MAX_EMBEDDING_DEPTH,
) -> ResolveResult:
    """Resolve embeddings over ``spans`` (a scan of the whole of ``buffer``).

    A region that would exceed ``max_depth`` is recorded in ``too_deep`` and
    the rest of its host range keeps the host grammar's classification.
    """

    if max_depth < 0:
        raise ValueError("max_depth must be non-negative")
    resolution = _Resolution(buffer, registry or builtin_registry(), max_depth)
    start = spans[0].start if spans else 0
    end = spans[-1].end if spans else 0
    resolved = tuple(merge_adjacent(resolution.resolve(outer_grammar, list(spans), start, end, 0)))
    return ResolveResult(
        spans=resolved,
        unterminated=_surviving(resolution.unterminated, resolved),
        too_deep=tuple(resolution.too_deep),
    )


def resolve(
    spans: Sequence[Span],
    buffer: str,
    outer_grammar: Grammar,
    *,
    registry: GrammarRegistry | None = None,
    max_depth: int = DEFAULT_MAX_EMBEDDING_DEPTH,
) -> tuple[Span, ...]:
    return resolve_detailed(
        spans, buffer, outer_grammar, registry=registry, max_depth=max_depth
    ).spans


def scan_and_resolve(
    buffer: str,
    grammar: Grammar,
    *,
    registry: GrammarRegistry | None = None,
    max_depth: int = DEFAULT_MAX_EMBEDDING_DEPTH,
) -> ResolveResult:
    """Scan ``buffer`` under ``grammar`` and resolve every embedded region."""

    outer = scan_detailed(buffer, grammar)
    result = resolve_detailed(
        outer.spans, buffer, grammar, registry=registry, max_depth=max_depth
    )
    host = [UnterminatedComment(offset, grammar.language) for offset in outer.unterminated]
    return ResolveResult(
        spans=result.spans,
        unterminated=_surviving([*host, *result.unterminated], result.spans),
        too_deep=result.too_deep,
    )


def _surviving(
    candidates: Sequence[UnterminatedComment], spans: Sequence[Span]
) -> tuple[UnterminatedComment, ...]:
    """Drop duplicates and comments that a later splice reclassified."""

    kept: set[UnterminatedComment] = set()
    for item in candidates:
        for span in spans:
            if span.start <= item.offset < span.end:
                if span.kind.is_comment and span.language == item.language:
                    kept.add(item)
                break
    return tuple(sorted(kept, key=lambda item: item.offset))


__all__ = [
    "ResolveResult",
    "UnterminatedComment",
    "resolve",
    "resolve_detailed",
    "scan_and_resolve",
]
