"""
report-todo — language grammar registry

File: src/report_todo/lexing/grammar.py
Last updated: 2026-10-18

Purpose
- Model per-language comment and string syntax as immutable data records.
- Provide the process-wide registry mapping language ids, extensions, and
  well-known filenames to grammars.

What should be included in this file
- Rule records: line-comment prefixes, block comments (optionally nestable),
  escaped string literals, fenced (delimiter-matched) literals, fixed-shape
  literal patterns, and embedding rules.
- The built-in grammar table.
- YAML grammar extension files that add languages or embedding rules.

Functional requirements
- `lookup` fails with `UnknownLanguage`; `lookup_by_extension` returns None.
- Registries never mutate after construction; extension produces a new one.
- Every embedding rule must name a language present in the same registry.

Non-functional requirements
- Grammar construction compiles all regexes once so scans share them.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from types import MappingProxyType
from typing import Any

import yaml

from report_todo.errors import GrammarDefinitionError, UnknownLanguage
from report_todo.lexing.spans import SpanKind

_LANGUAGE_ID_RE = re.compile(r"^[a-z][a-z0-9_+-]*$")
_WORD_BOUNDARY = r"(?<![A-Za-z0-9_])"
_LINE_START_BOUNDARY = r"(?<!\S)"

TokenRule = tuple[SpanKind, Any]


@dataclass(frozen=True, slots=True)
class BlockCommentRule:
    open: str
    close: str
    nestable: bool = False

    def __post_init__(self) -> None:
        if not self.open or not self.close:
            raise GrammarDefinitionError("block comment delimiters must be non-empty")


@dataclass(frozen=True, slots=True)
class StringRule:
    """Quoted literal; ``escape`` consumes the following character verbatim."""

    open: str
    close: str
    escape: str | None = "\\"
    multiline: bool = False

    def __post_init__(self) -> None:
        if not self.open or not self.close:
            raise GrammarDefinitionError("string delimiters must be non-empty")
        if self.escape is not None and len(self.escape) != 1:
            raise GrammarDefinitionError(
                f"string escape must be a single character, got {self.escape!r}"
            )


@dataclass(frozen=True, slots=True)
class FencedRule:
    """Literal whose terminator repeats the opener's fence count.

    The opener is ``prefix`` + ``fence`` * n + ``quote`` and the terminator is
    ``close_head`` + ``fence`` * n + ``close_tail``. Rust ``r##"..."##``, Lua
    ``[==[...]==]`` and CMake ``#[[...]]`` all fit this shape. Bodies are raw:
    no escapes are honoured.
    """

    prefix: str
    fence: str
    quote: str
    close_head: str
    close_tail: str = ""
    kind: SpanKind = SpanKind.STRING_LITERAL
    word_boundary: bool = False

    def __post_init__(self) -> None:
        if not self.fence or not self.quote or not (self.close_head or self.close_tail):
            raise GrammarDefinitionError("fenced rule needs a fence, a quote, and a terminator")
        if self.kind not in (SpanKind.STRING_LITERAL, SpanKind.BLOCK_COMMENT):
            raise GrammarDefinitionError(
                f"fenced rule kind must be string_literal or block_comment, got {self.kind.value}"
            )

    def opener_pattern(self) -> str:
        head = _WORD_BOUNDARY if self.word_boundary else ""
        return (
            f"{head}{re.escape(self.prefix)}(?:{re.escape(self.fence)})*{re.escape(self.quote)}"
        )

    def terminator(self, opener_text: str) -> str:
        fences = (len(opener_text) - len(self.prefix) - len(self.quote)) // len(self.fence)
        return f"{self.close_head}{self.fence * fences}{self.close_tail}"


@dataclass(frozen=True, slots=True)
class EmbeddingRule:
    """Region of ``language`` opened by ``start`` and closed by ``end`` (regexes)."""

    start: str
    end: str
    language: str
    start_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    end_re: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            start_re = re.compile(self.start)
            end_re = re.compile(self.end)
        except re.error as exc:
            raise GrammarDefinitionError(
                f"invalid embedding pattern for {self.language!r}: {exc}"
            ) from exc
        object.__setattr__(self, "start_re", start_re)
        object.__setattr__(self, "end_re", end_re)

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end, "language": self.language}


@dataclass(frozen=True, slots=True)
class Grammar:
    """Comment and literal syntax for one language.

    ``opener`` is a single alternation over every construct that can leave the
    code state. Alternatives are ordered by priority (strings, then block
    comments, then line comments) and by descending delimiter length within a
    class, so the first alternative matching at the leftmost position wins.
    """

    language: str
    extensions: tuple[str, ...] = ()
    filenames: tuple[str, ...] = ()
    line_comments: tuple[str, ...] = ()
    line_comment_boundary: bool = False
    block_comments: tuple[BlockCommentRule, ...] = ()
    strings: tuple[StringRule, ...] = ()
    fenced: tuple[FencedRule, ...] = ()
    literal_patterns: tuple[str, ...] = ()
    embeddings: tuple[EmbeddingRule, ...] = ()
    opener: re.Pattern[str] | None = field(init=False, repr=False, compare=False)
    token_rules: Mapping[str, TokenRule] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not _LANGUAGE_ID_RE.fullmatch(self.language):
            raise GrammarDefinitionError(f"invalid language id {self.language!r}")
        if any(not prefix for prefix in self.line_comments):
            raise GrammarDefinitionError(f"{self.language}: empty line-comment prefix")
        opener, token_rules = _compile_opener(self)
        object.__setattr__(self, "opener", opener)
        object.__setattr__(self, "token_rules", MappingProxyType(token_rules))

    @property
    def block_closers(self) -> tuple[str, ...]:
        closers = [rule.close for rule in self.block_comments]
        closers.extend(
            rule.close_head + rule.close_tail
            for rule in self.fenced
            if rule.kind is SpanKind.BLOCK_COMMENT
        )
        return tuple(closers)

    def with_embeddings(self, extra: Iterable[EmbeddingRule]) -> Grammar:
        return replace(self, embeddings=self.embeddings + tuple(extra))

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.language,
            "extensions": list(self.extensions),
            "filenames": list(self.filenames),
            "line_comments": list(self.line_comments),
            "block_comments": [
                {"open": rule.open, "close": rule.close, "nestable": rule.nestable}
                for rule in self.block_comments
            ],
            "embeddings": [rule.to_dict() for rule in self.embeddings],
        }


def _compile_opener(grammar: Grammar) -> tuple[re.Pattern[str] | None, dict[str, TokenRule]]:
    alternatives: list[str] = []
    token_rules: dict[str, TokenRule] = {}

    def add(name: str, pattern: str, kind: SpanKind, rule: object) -> None:
        alternatives.append(f"(?P<{name}>{pattern})")
        token_rules[name] = (kind, rule)

    for index, pattern in enumerate(grammar.literal_patterns):
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise GrammarDefinitionError(
                f"{grammar.language}: invalid literal pattern {pattern!r}: {exc}"
            ) from exc
        if compiled.groupindex:
            raise GrammarDefinitionError(
                f"{grammar.language}: literal pattern {pattern!r} must not define named groups"
            )
        add(f"p{index}", pattern, SpanKind.STRING_LITERAL, pattern)

    for index, fenced in enumerate(grammar.fenced):
        if fenced.kind is SpanKind.STRING_LITERAL:
            add(f"f{index}", fenced.opener_pattern(), fenced.kind, fenced)

    for index, rule in sorted(
        enumerate(grammar.strings), key=lambda item: (-len(item[1].open), item[0])
    ):
        add(f"s{index}", re.escape(rule.open), SpanKind.STRING_LITERAL, rule)

    for index, fenced in enumerate(grammar.fenced):
        if fenced.kind is SpanKind.BLOCK_COMMENT:
            add(f"f{index}", fenced.opener_pattern(), fenced.kind, fenced)

    for index, rule in sorted(
        enumerate(grammar.block_comments), key=lambda item: (-len(item[1].open), item[0])
    ):
        add(f"b{index}", re.escape(rule.open), SpanKind.BLOCK_COMMENT, rule)

    head = _LINE_START_BOUNDARY if grammar.line_comment_boundary else ""
    for index, prefix in sorted(
        enumerate(grammar.line_comments), key=lambda item: (-len(item[1]), item[0])
    ):
        add(f"l{index}", head + re.escape(prefix), SpanKind.LINE_COMMENT, prefix)

    if not alternatives:
        return None, token_rules
    try:
        return re.compile("|".join(alternatives)), token_rules
    except re.error as exc:
        raise GrammarDefinitionError(f"{grammar.language}: cannot compile grammar: {exc}") from exc


# ---------------------------------------------------------------------------
# Built-in table
# ---------------------------------------------------------------------------

_C_BLOCK = BlockCommentRule("/*", "*/")
_C_BLOCK_NESTED = BlockCommentRule("/*", "*/", nestable=True)
_XML_BLOCK = BlockCommentRule("<!--", "-->")
_DQ = StringRule('"', '"')
_SQ = StringRule("'", "'")
_DQ_ML = StringRule('"', '"', multiline=True)
_SQ_RAW = StringRule("'", "'", escape=None)
_BACKTICK = StringRule("`", "`", multiline=True)

_RUST_CHAR = (
    r"(?<![A-Za-z0-9_])b?'(?:[^'\\\n]|\\(?:u\{[0-9A-Fa-f_]{1,8}\}|x[0-9A-Fa-f]{2}|[^\n]))'"
)
_SIMPLE_CHAR = r"(?<![A-Za-z0-9_'])'(?:[^'\\\n]|\\[^\n][0-9A-Fa-fxu]{0,6})'"
_C_CHAR = (
    r"(?<![A-Za-z0-9_'])(?:u8|[uUL])?'(?:[^'\\\n]|\\(?:x[0-9A-Fa-f]+|u[0-9A-Fa-f]{4}|U[0-9A-Fa-f]{8}|[^\n]))+'"
)


def _fence_embedding(tags: str, language: str) -> EmbeddingRule:
    return EmbeddingRule(
        start=rf"(?m)^[ \t]*(?:```|~~~)[ \t]*(?:{tags})\b[^\n]*\n",
        end=r"(?m)^[ \t]*(?:```|~~~)",
        language=language,
    )


def _c_family(language: str, extensions: tuple[str, ...], **extra: Any) -> Grammar:
    if "strings" not in extra:
        # Character literals are fixed-shape so C++14 digit separators stay code.
        extra["strings"] = (_DQ,)
        extra.setdefault("literal_patterns", (_C_CHAR,))
    extra.setdefault("block_comments", (_C_BLOCK,))
    return Grammar(language=language, extensions=extensions, line_comments=("//",), **extra)


def _hash_family(language: str, extensions: tuple[str, ...], **extra: Any) -> Grammar:
    extra.setdefault("line_comment_boundary", True)
    return Grammar(language=language, extensions=extensions, line_comments=("#",), **extra)


_HTML_EMBEDDINGS = (
    EmbeddingRule(r"(?i)<script\b[^>]*>", r"(?i)</script\s*>", "javascript"),
    EmbeddingRule(r"(?i)<style\b[^>]*>", r"(?i)</style\s*>", "css"),
)

_MARKDOWN_EMBEDDINGS = (
    _fence_embedding("rust|rs", "rust"),
    _fence_embedding("python|py|python3", "python"),
    _fence_embedding("javascript|js|jsx", "javascript"),
    _fence_embedding("typescript|ts|tsx", "typescript"),
    _fence_embedding("sh|bash|shell|zsh|console", "shell"),
    _fence_embedding("toml", "toml"),
    _fence_embedding("yaml|yml", "yaml"),
    _fence_embedding("c|h", "c"),
    _fence_embedding("cpp|c\\+\\+|cxx", "cpp"),
    _fence_embedding("go|golang", "go"),
    _fence_embedding("java", "java"),
    _fence_embedding("html", "html"),
    _fence_embedding("css", "css"),
    _fence_embedding("sql", "sql"),
    _fence_embedding("lua", "lua"),
)


def _builtin_grammars() -> tuple[Grammar, ...]:
    return (
        _c_family("c", (".c", ".h")),
        _c_family("cpp", (".cc", ".cpp", ".cxx", ".hh", ".hpp", ".hxx", ".ino")),
        _c_family("csharp", (".cs",), strings=(StringRule('@"', '"', escape=None, multiline=True), _DQ, _SQ)),
        _c_family("java", (".java",), strings=(StringRule('"""', '"""', multiline=True), _DQ, _SQ)),
        _c_family(
            "kotlin",
            (".kt", ".kts"),
            block_comments=(_C_BLOCK_NESTED,),
            strings=(StringRule('"""', '"""', escape=None, multiline=True), _DQ, _SQ),
        ),
        _c_family(
            "swift",
            (".swift",),
            block_comments=(_C_BLOCK_NESTED,),
            strings=(StringRule('"""', '"""', multiline=True), _DQ),
        ),
        _c_family("go", (".go",), strings=(_DQ, _SQ, StringRule("`", "`", escape=None, multiline=True))),
        _c_family("javascript", (".js", ".cjs", ".mjs", ".jsx"), strings=(_DQ, _SQ, _BACKTICK)),
        _c_family("typescript", (".ts", ".cts", ".mts", ".tsx"), strings=(_DQ, _SQ, _BACKTICK)),
        _c_family("jsonc", (".jsonc", ".json5"), strings=(_DQ, _SQ)),
        _c_family("glsl", (".glsl", ".vert", ".frag", ".geom", ".comp", ".tesc", ".tese")),
        _c_family("hlsl", (".hlsl", ".fx", ".fxh")),
        _c_family("wgsl", (".wgsl",), block_comments=(_C_BLOCK_NESTED,), strings=()),
        _c_family("pest", (".pest",)),
        Grammar(
            language="rust",
            extensions=(".rs",),
            line_comments=("//",),
            block_comments=(_C_BLOCK_NESTED,),
            strings=(_DQ_ML,),
            fenced=(
                FencedRule("r", "#", '"', '"', word_boundary=True),
                FencedRule("br", "#", '"', '"', word_boundary=True),
                FencedRule("cr", "#", '"', '"', word_boundary=True),
            ),
            literal_patterns=(_RUST_CHAR,),
        ),
        Grammar(
            language="python",
            extensions=(".py", ".pyi", ".pyw"),
            line_comments=("#",),
            strings=(
                StringRule('"""', '"""', multiline=True),
                StringRule("'''", "'''", multiline=True),
                _DQ,
                _SQ,
            ),
        ),
        _hash_family(
            "shell",
            (".sh", ".bash", ".zsh", ".ksh"),
            filenames=(".bashrc", ".profile", ".zshrc"),
            strings=(_DQ_ML, StringRule("'", "'", escape=None, multiline=True)),
        ),
        _hash_family(
            "fish",
            (".fish",),
            strings=(_DQ_ML, StringRule("'", "'", multiline=True)),
        ),
        Grammar(
            language="toml",
            extensions=(".toml",),
            filenames=("Cargo.lock",),
            line_comments=("#",),
            strings=(
                StringRule('"""', '"""', multiline=True),
                StringRule("'''", "'''", escape=None, multiline=True),
                _DQ,
                _SQ_RAW,
            ),
        ),
        _hash_family("yaml", (".yaml", ".yml"), strings=(_DQ, _SQ_RAW)),
        Grammar(
            language="ini",
            extensions=(".ini", ".cfg", ".conf", ".env"),
            line_comments=(";", "#"),
            line_comment_boundary=True,
        ),
        _hash_family(
            "makefile",
            (".mk", ".mak"),
            filenames=("Makefile", "makefile", "GNUmakefile"),
            line_comment_boundary=False,
        ),
        _hash_family(
            "dockerfile",
            (".dockerfile",),
            filenames=("Dockerfile", "Containerfile"),
        ),
        Grammar(
            language="cmake",
            extensions=(".cmake",),
            filenames=("CMakeLists.txt",),
            line_comments=("#",),
            strings=(_DQ_ML,),
            fenced=(
                FencedRule("#[", "=", "[", "]", "]", kind=SpanKind.BLOCK_COMMENT),
                FencedRule("[", "=", "[", "]", "]"),
            ),
        ),
        Grammar(
            language="powershell",
            extensions=(".ps1", ".psm1", ".psd1"),
            line_comments=("#",),
            block_comments=(BlockCommentRule("<#", "#>"),),
            strings=(
                StringRule('"', '"', escape="`", multiline=True),
                StringRule("'", "'", escape=None, multiline=True),
            ),
        ),
        Grammar(
            language="lua",
            extensions=(".lua",),
            line_comments=("--",),
            strings=(_DQ, _SQ),
            fenced=(
                FencedRule("--[", "=", "[", "]", "]", kind=SpanKind.BLOCK_COMMENT),
                FencedRule("[", "=", "[", "]", "]"),
            ),
        ),
        Grammar(
            language="sql",
            extensions=(".sql",),
            line_comments=("--",),
            block_comments=(_C_BLOCK,),
            strings=(StringRule("'", "'", escape=None, multiline=True), StringRule('"', '"', escape=None)),
        ),
        Grammar(
            language="haskell",
            extensions=(".hs", ".lhs"),
            line_comments=("--",),
            block_comments=(BlockCommentRule("{-", "-}", nestable=True),),
            strings=(_DQ,),
            literal_patterns=(_SIMPLE_CHAR,),
        ),
        Grammar(
            language="ruby",
            extensions=(".rb", ".rake", ".gemspec"),
            filenames=("Rakefile", "Gemfile"),
            line_comments=("#",),
            strings=(_DQ_ML, StringRule("'", "'", multiline=True)),
        ),
        Grammar(
            language="css",
            extensions=(".css",),
            block_comments=(_C_BLOCK,),
            strings=(_DQ, _SQ),
        ),
        Grammar(
            language="scss",
            extensions=(".scss", ".less"),
            line_comments=("//",),
            block_comments=(_C_BLOCK,),
            strings=(_DQ, _SQ),
        ),
        Grammar(
            language="html",
            extensions=(".html", ".htm", ".xhtml"),
            block_comments=(_XML_BLOCK,),
            embeddings=_HTML_EMBEDDINGS,
        ),
        Grammar(
            language="vue",
            extensions=(".vue", ".svelte"),
            block_comments=(_XML_BLOCK,),
            embeddings=(
                EmbeddingRule(
                    r"""(?i)<script\b[^>]*\blang\s*=\s*["']ts["'][^>]*>""",
                    r"(?i)</script\s*>",
                    "typescript",
                ),
            )
            + _HTML_EMBEDDINGS,
        ),
        Grammar(
            language="xml",
            extensions=(".xml", ".xsd", ".xsl", ".svg", ".plist"),
            block_comments=(_XML_BLOCK,),
            strings=(StringRule("<![CDATA[", "]]>", escape=None, multiline=True),),
        ),
        Grammar(
            language="markdown",
            extensions=(".md", ".markdown"),
            block_comments=(_XML_BLOCK,),
            embeddings=_MARKDOWN_EMBEDDINGS,
        ),
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _normalize_extension(ext: str) -> str:
    lowered = ext.strip().lower()
    if lowered and not lowered.startswith("."):
        lowered = "." + lowered
    return lowered


class GrammarRegistry:
    """Read-only mapping of language ids to grammars.

    Safe for concurrent readers: all indexes are built in ``__init__`` and
    exposed only through read-only views.
    """

    __slots__ = ("_by_extension", "_by_filename", "_grammars")

    def __init__(self, grammars: Iterable[Grammar]) -> None:
        by_id: dict[str, Grammar] = {}
        by_extension: dict[str, str] = {}
        by_filename: dict[str, str] = {}
        for grammar in grammars:
            if grammar.language in by_id:
                raise GrammarDefinitionError(f"duplicate grammar id {grammar.language!r}")
            by_id[grammar.language] = grammar
            for ext in grammar.extensions:
                by_extension.setdefault(_normalize_extension(ext), grammar.language)
            for name in grammar.filenames:
                by_filename.setdefault(name, grammar.language)

        for grammar in by_id.values():
            for rule in grammar.embeddings:
                if rule.language not in by_id:
                    raise GrammarDefinitionError(
                        f"{grammar.language}: embedding targets unknown language {rule.language!r}"
                    )

        self._grammars: Mapping[str, Grammar] = MappingProxyType(by_id)
        self._by_extension: Mapping[str, str] = MappingProxyType(by_extension)
        self._by_filename: Mapping[str, str] = MappingProxyType(by_filename)

    def __contains__(self, language_id: object) -> bool:
        return language_id in self._grammars

    def __iter__(self) -> Iterator[Grammar]:
        return iter(self._grammars[key] for key in sorted(self._grammars))

    def __len__(self) -> int:
        return len(self._grammars)

    def languages(self) -> tuple[str, ...]:
        return tuple(sorted(self._grammars))

    def lookup(self, language_id: str) -> Grammar:
        try:
            return self._grammars[language_id]
        except KeyError:
            raise UnknownLanguage(language_id) from None

    def lookup_by_extension(self, ext: str) -> Grammar | None:
        language_id = self._by_extension.get(_normalize_extension(ext))
        if language_id is None:
            return None
        return self._grammars[language_id]

    def lookup_for_path(self, path: str | PurePath) -> Grammar | None:
        """Resolve by exact filename first, then by the last suffix."""

        pure = PurePath(path)
        language_id = self._by_filename.get(pure.name)
        if language_id is not None:
            return self._grammars[language_id]
        if not pure.suffix:
            return None
        return self.lookup_by_extension(pure.suffix)

    def extended(
        self,
        grammars: Iterable[Grammar] = (),
        embeddings: Mapping[str, Sequence[EmbeddingRule]] | None = None,
    ) -> GrammarRegistry:
        """Return a new registry with added languages and extra embedding rules.

        Added grammars replace built-ins with the same id. Added embedding
        rules are appended after a host's existing rules.
        """

        merged = dict(self._grammars)
        for grammar in grammars:
            merged[grammar.language] = grammar
        for host, rules in (embeddings or {}).items():
            if host not in merged:
                raise GrammarDefinitionError(f"embedding host {host!r} is not a known language")
            merged[host] = merged[host].with_embeddings(rules)
        return GrammarRegistry(merged.values())


@functools.lru_cache(maxsize=1)
def builtin_registry() -> GrammarRegistry:
    return GrammarRegistry(_builtin_grammars())


# ---------------------------------------------------------------------------
# YAML grammar extension files
# ---------------------------------------------------------------------------

_GRAMMAR_KEYS = frozenset(
    {
        "id",
        "extends",
        "extensions",
        "filenames",
        "line_comments",
        "line_comment_boundary",
        "block_comments",
        "strings",
        "fenced",
        "literal_patterns",
        "embeddings",
    }
)


@dataclass(frozen=True, slots=True)
class GrammarExtension:
    grammars: tuple[Grammar, ...]
    embeddings: Mapping[str, tuple[EmbeddingRule, ...]]


def _require_mapping(value: object, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise GrammarDefinitionError(f"{where}: expected a mapping")
    return value


def _str_tuple(value: object, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise GrammarDefinitionError(f"{where}: expected a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise GrammarDefinitionError(f"{where}: expected a list of strings")
        items.append(item)
    return tuple(items)


def _records(value: object, where: str) -> list[Mapping[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise GrammarDefinitionError(f"{where}: expected a list")
    return [_require_mapping(item, f"{where}[{index}]") for index, item in enumerate(value)]


def _build(factory: Any, payload: Mapping[str, Any], where: str) -> Any:
    try:
        return factory(**payload)
    except TypeError as exc:
        raise GrammarDefinitionError(f"{where}: {exc}") from exc


def _embedding_rules(value: object, where: str) -> tuple[EmbeddingRule, ...]:
    rules: list[EmbeddingRule] = []
    for index, record in enumerate(_records(value, where)):
        rules.append(_build(EmbeddingRule, record, f"{where}[{index}]"))
    return tuple(rules)


def grammar_from_mapping(
    payload: Mapping[str, Any],
    *,
    base: GrammarRegistry | None = None,
    where: str = "grammar",
) -> Grammar:
    """Build a `Grammar` from a decoded YAML/JSON record.

    ``extends: <id>`` copies every rule from an existing grammar in ``base``;
    listed fields then replace the inherited values.
    """

    unknown = sorted(set(payload) - _GRAMMAR_KEYS)
    if unknown:
        raise GrammarDefinitionError(f"{where}: unknown keys {', '.join(unknown)}")
    language = payload.get("id")
    if not isinstance(language, str):
        raise GrammarDefinitionError(f"{where}: 'id' must be a string")

    fields: dict[str, Any] = {}
    parent_id = payload.get("extends")
    if parent_id is not None:
        registry = base if base is not None else builtin_registry()
        try:
            parent = registry.lookup(str(parent_id))
        except UnknownLanguage as exc:
            raise GrammarDefinitionError(f"{where}: cannot extend {exc.language_id!r}") from exc
        fields = {
            "line_comments": parent.line_comments,
            "line_comment_boundary": parent.line_comment_boundary,
            "block_comments": parent.block_comments,
            "strings": parent.strings,
            "fenced": parent.fenced,
            "literal_patterns": parent.literal_patterns,
            "embeddings": parent.embeddings,
        }

    for key in ("extensions", "filenames", "line_comments", "literal_patterns"):
        if key in payload:
            fields[key] = _str_tuple(payload[key], f"{where}.{key}")
    if "line_comment_boundary" in payload:
        fields["line_comment_boundary"] = bool(payload["line_comment_boundary"])
    if "block_comments" in payload:
        fields["block_comments"] = tuple(
            _build(BlockCommentRule, record, f"{where}.block_comments[{index}]")
            for index, record in enumerate(_records(payload["block_comments"], where))
        )
    if "strings" in payload:
        fields["strings"] = tuple(
            _build(StringRule, record, f"{where}.strings[{index}]")
            for index, record in enumerate(_records(payload["strings"], where))
        )
    if "fenced" in payload:
        fenced: list[FencedRule] = []
        for index, record in enumerate(_records(payload["fenced"], where)):
            values = dict(record)
            kind = values.pop("kind", SpanKind.STRING_LITERAL.value)
            try:
                values["kind"] = SpanKind(kind)
            except ValueError as exc:
                raise GrammarDefinitionError(
                    f"{where}.fenced[{index}]: unknown kind {kind!r}"
                ) from exc
            fenced.append(_build(FencedRule, values, f"{where}.fenced[{index}]"))
        fields["fenced"] = tuple(fenced)
    if "embeddings" in payload:
        fields["embeddings"] = _embedding_rules(payload["embeddings"], f"{where}.embeddings")

    return _build(Grammar, {"language": language, **fields}, where)


def load_grammar_file(path: str | Path, *, base: GrammarRegistry | None = None) -> GrammarExtension:
    """Parse one YAML grammar extension file.

    Expected shape::

        languages:
          - id: jinja
            extends: html
            extensions: [.j2]
            block_comments: [{open: "{#", close: "#}"}]
        embeddings:
          markdown:
            - {start: "(?m)^```jinja\\n", end: "(?m)^```", language: jinja}
    """

    file_path = Path(path)
    try:
        document = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise GrammarDefinitionError(f"cannot read grammar file {file_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise GrammarDefinitionError(f"invalid YAML in grammar file {file_path}: {exc}") from exc

    if document is None:
        return GrammarExtension(grammars=(), embeddings=MappingProxyType({}))
    root = _require_mapping(document, str(file_path))
    unknown = sorted(set(root) - {"languages", "embeddings"})
    if unknown:
        raise GrammarDefinitionError(f"{file_path}: unknown top-level keys {', '.join(unknown)}")

    grammars = tuple(
        grammar_from_mapping(record, base=base, where=f"{file_path}: languages[{index}]")
        for index, record in enumerate(_records(root.get("languages"), f"{file_path}: languages"))
    )
    embeddings: dict[str, tuple[EmbeddingRule, ...]] = {}
    raw_embeddings = root.get("embeddings")
    if raw_embeddings is not None:
        for host, rules in _require_mapping(raw_embeddings, f"{file_path}: embeddings").items():
            embeddings[str(host)] = _embedding_rules(rules, f"{file_path}: embeddings.{host}")
    return GrammarExtension(grammars=grammars, embeddings=MappingProxyType(embeddings))


def registry_from_files(
    paths: Iterable[str | Path],
    *,
    base: GrammarRegistry | None = None,
) -> GrammarRegistry:
    """Fold grammar extension files, in order, over ``base`` (built-ins by default)."""

    registry = base if base is not None else builtin_registry()
    for path in paths:
        extension = load_grammar_file(path, base=registry)
        registry = registry.extended(extension.grammars, extension.embeddings)
    return registry


__all__ = [
    "BlockCommentRule",
    "EmbeddingRule",
    "FencedRule",
    "Grammar",
    "GrammarExtension",
    "GrammarRegistry",
    "StringRule",
    "builtin_registry",
    "grammar_from_mapping",
    "load_grammar_file",
    "registry_from_files",
]
