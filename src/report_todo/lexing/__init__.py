"""Lexing primitives: grammar registry, scanner, and nested-region resolver."""

from report_todo.lexing.grammar import (
    BlockCommentRule,
    EmbeddingRule,
    FencedRule,
    Grammar,
    GrammarRegistry,
    StringRule,
    builtin_registry,
    load_grammar_file,
    registry_from_files,
)
from report_todo.lexing.resolver import ResolveResult, resolve, scan_and_resolve
from report_todo.lexing.scanner import decode_buffer, scan, scan_detailed
from report_todo.lexing.spans import LineIndex, Span, SpanKind

__all__ = [
    "BlockCommentRule",
    "EmbeddingRule",
    "FencedRule",
    "Grammar",
    "GrammarRegistry",
    "LineIndex",
    "ResolveResult",
    "Span",
    "SpanKind",
    "StringRule",
    "builtin_registry",
    "decode_buffer",
    "load_grammar_file",
    "registry_from_files",
    "resolve",
    "scan",
    "scan_and_resolve",
    "scan_detailed",
]
