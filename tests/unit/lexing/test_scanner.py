"""
report-todo — unit tests for the lexical scanner

File: tests/unit/lexing/test_scanner.py
Last updated: 2026-10-18

Purpose
- Validate span classification for comments, strings, and code across grammars.

What this test file should cover
- Partition invariant (no gaps, no overlaps, ordered) for arbitrary input.
- Nested vs non-nested block comments and unterminated comments at EOF.
- Escapes, single-line string termination, raw/fenced literals, char literals.
- Boundary-sensitive line comments.
- Buffer decoding (BOM, strict vs lossy).

Functional requirements
- Offline only.

Non-functional requirements
- Deterministic property tests (derandomized hypothesis).
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from report_todo.errors import EncodingError
from report_todo.lexing import builtin_registry, decode_buffer, scan, scan_detailed
from report_todo.lexing.spans import LineIndex, Span, SpanKind, is_partition

REGISTRY = builtin_registry()

_TRICKY_ALPHABET = st.sampled_from(
    list("ab #/*\"'\\\n\t-[]=r!<>{}`;") + ["//", "/*", "*/", "--[[", "]]", 'r#"', '"#', "<!--", "-->"]
)


def _kinds(text: str, language: str) -> list[tuple[str, SpanKind]]:
    return [(span.text(text), span.kind) for span in scan(text, REGISTRY.lookup(language))]


@pytest.mark.unit
@settings(max_examples=150, derandomize=True, deadline=None)
@given(
    pieces=st.lists(_TRICKY_ALPHABET, max_size=60),
    language=st.sampled_from(("c", "rust", "python", "shell", "lua", "cmake", "html", "haskell", "sql")),
)
def test_spans_partition_buffer_for_any_input(pieces: list[str], language: str) -> None:
    text = "".join(pieces)
    spans = scan(text, REGISTRY.lookup(language))

    assert is_partition(spans, 0, len(text))
    assert all(span.language == language for span in spans)
    for left, right in zip(spans, spans[1:]):
        assert left.kind is not right.kind


@pytest.mark.unit
def test_empty_buffer_has_no_spans() -> None:
    assert scan("", REGISTRY.lookup("c")) == ()


@pytest.mark.unit
def test_c_line_block_and_string_classification() -> None:
    text = 'int a = 1; // line\n/* block */ char *s = "// not a comment";'

    assert _kinds(text, "c") == [
        ("int a = 1; ", SpanKind.CODE),
        ("// line", SpanKind.LINE_COMMENT),
        ("\n", SpanKind.CODE),
        ("/* block */", SpanKind.BLOCK_COMMENT),
        (" char *s = ", SpanKind.CODE),
        ('"// not a comment"', SpanKind.STRING_LITERAL),
        (";", SpanKind.CODE),
    ]


@pytest.mark.unit
def test_nestable_block_comment_closes_only_at_depth_zero() -> None:
    text = "/* a /* b */ c */"

    spans = scan(text, REGISTRY.lookup("rust"))

    assert spans == (Span(0, len(text), SpanKind.BLOCK_COMMENT, "rust"),)


@pytest.mark.unit
def test_non_nestable_block_comment_closes_at_first_terminator() -> None:
    text = "/* a /* b */ c */"

    assert _kinds(text, "c") == [
        ("/* a /* b */", SpanKind.BLOCK_COMMENT),
        (" c */", SpanKind.CODE),
    ]


@pytest.mark.unit
def test_unterminated_block_comment_runs_to_eof_and_is_reported() -> None:
    text = "x = 1;\n/* never closed\n// still comment"

    result = scan_detailed(text, REGISTRY.lookup("c"))

    assert result.spans[-1] == Span(7, len(text), SpanKind.BLOCK_COMMENT, "c")
    assert result.unterminated == (7,)


@pytest.mark.unit
def test_escape_consumes_following_character() -> None:
    text = 'x = "a\\"b // x"; // real'

    assert _kinds(text, "c") == [
        ("x = ", SpanKind.CODE),
        ('"a\\"b // x"', SpanKind.STRING_LITERAL),
        ("; ", SpanKind.CODE),
        ("// real", SpanKind.LINE_COMMENT),
    ]


@pytest.mark.unit
def test_single_line_string_ends_at_newline() -> None:
    text = 'char *s = "open\n// TODO after'

    kinds = _kinds(text, "c")

    assert kinds[1] == ('"open', SpanKind.STRING_LITERAL)
    assert kinds[-1] == ("// TODO after", SpanKind.LINE_COMMENT)


@pytest.mark.unit
def test_longest_prefix_doc_comment_is_still_a_line_comment() -> None:
    text = "/// docs\nfn f() {}"

    assert _kinds(text, "rust")[0] == ("/// docs", SpanKind.LINE_COMMENT)


@pytest.mark.unit
def test_rust_raw_string_uses_fence_matched_terminator() -> None:
    text = 'let s = r#"say "hi" // x"#; // real'

    assert _kinds(text, "rust") == [
        ("let s = ", SpanKind.CODE),
        ('r#"say "hi" // x"#', SpanKind.STRING_LITERAL),
        ("; ", SpanKind.CODE),
        ("// real", SpanKind.LINE_COMMENT),
    ]


@pytest.mark.unit
def test_rust_multiline_string_hides_comment_delimiters() -> None:
    text = 'let s = "line one\n/* not a comment */";'

    kinds = _kinds(text, "rust")

    assert kinds[1] == ('"line one\n/* not a comment */"', SpanKind.STRING_LITERAL)


@pytest.mark.unit
def test_rust_char_literal_does_not_swallow_lifetimes() -> None:
    text = "fn f<'a>(x: &'a str) -> char { '\"' } // c"

    kinds = _kinds(text, "rust")

    assert ("'\"'", SpanKind.STRING_LITERAL) in kinds
    assert kinds[-1] == ("// c", SpanKind.LINE_COMMENT)
    assert kinds[0] == ("fn f<'a>(x: &'a str) -> char { ", SpanKind.CODE)


@pytest.mark.unit
@pytest.mark.parametrize("language", ["c", "cpp"])
def test_c_digit_separators_stay_code_and_char_literals_stay_literals(language: str) -> None:
    text = "int x = 1'000'000; char c = '\\''; // TODO c"

    kinds = _kinds(text, language)

    assert kinds[0] == ("int x = 1'000'000; char c = ", SpanKind.CODE)
    assert kinds[1] == ("'\\''", SpanKind.STRING_LITERAL)
    assert kinds[-1] == ("// TODO c", SpanKind.LINE_COMMENT)


@pytest.mark.unit
def test_hash_comment_requires_whitespace_before_it_in_shell() -> None:
    text = "echo a#b # real"

    assert _kinds(text, "shell") == [
        ("echo a#b ", SpanKind.CODE),
        ("# real", SpanKind.LINE_COMMENT),
    ]


@pytest.mark.unit
def test_lua_long_comment_and_long_string() -> None:
    text = "--[==[ TODO ]] still ]==] x = [[ -- no ]] -- yes"

    assert _kinds(text, "lua") == [
        ("--[==[ TODO ]] still ]==]", SpanKind.BLOCK_COMMENT),
        (" x = ", SpanKind.CODE),
        ("[[ -- no ]]", SpanKind.STRING_LITERAL),
        (" ", SpanKind.CODE),
        ("-- yes", SpanKind.LINE_COMMENT),
    ]


@pytest.mark.unit
def test_cmake_bracket_comment() -> None:
    text = "#[[ multi\nline ]] set(X 1) # tail"

    kinds = _kinds(text, "cmake")

    assert kinds[0] == ("#[[ multi\nline ]]", SpanKind.BLOCK_COMMENT)
    assert kinds[-1] == ("# tail", SpanKind.LINE_COMMENT)


@pytest.mark.unit
def test_scan_accepts_bytes_and_subrange() -> None:
    grammar = REGISTRY.lookup("python")
    text = "x = 1  # note\n"

    assert scan(text.encode("utf-8"), grammar) == scan(text, grammar)
    sub = scan(text, grammar, 7, 13)
    assert sub == (Span(7, 13, SpanKind.LINE_COMMENT, "python"),)


@pytest.mark.unit
def test_decode_buffer_drops_bom_and_rejects_invalid_utf8() -> None:
    assert decode_buffer(b"\xef\xbb\xbf// hi") == "// hi"
    with pytest.raises(EncodingError) as excinfo:
        decode_buffer(b"ok\xff")
    assert excinfo.value.offset == 2
    assert decode_buffer(b"ok\xff", lossy=True) == "ok\ufffd"


@pytest.mark.unit
def test_line_index_maps_offsets_to_one_based_positions() -> None:
    index = LineIndex("ab\r\ncd\nef")

    assert index.line_col(0) == (1, 1)
    assert index.line_col(4) == (2, 1)
    assert index.line_col(8) == (3, 2)
    assert index.line_text(1) == "ab"
    assert index.line_count == 3
