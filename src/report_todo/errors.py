"""Error taxonomy shared by the scanner, resolver, and audit pipeline.

Per-file errors (``UnknownLanguage``, ``EncodingError``, ``EmbeddingTooDeep``)
are caught by the audit pipeline and turned into diagnostics; they never abort
a run. ``GrammarDefinitionError`` is raised while building the registry and is
fatal at startup.
"""

from __future__ import annotations


class ReportTodoError(Exception):
    """Base error for report-todo failures."""


class UnknownLanguage(ReportTodoError, LookupError):
    """Raised when no grammar is registered for a language id or path."""

    def __init__(self, language_id: str) -> None:
        self.language_id = language_id
        super().__init__(f"no grammar registered for language {language_id!r}")


class EncodingError(ReportTodoError):
    """Raised when a buffer is not decodable under the assumed text encoding."""

    def __init__(self, *, offset: int, reason: str) -> None:
        self.offset = offset
        self.reason = reason
        super().__init__(f"undecodable input at byte {offset}: {reason}")


class EmbeddingTooDeep(ReportTodoError):
    """Raised when nested-region resolution exceeds the configured depth."""

    def __init__(self, *, depth: int, max_depth: int, language_id: str, offset: int) -> None:
        self.depth = depth
        self.max_depth = max_depth
        self.language_id = language_id
        self.offset = offset
        super().__init__(
            f"embedded {language_id!r} region at offset {offset} exceeds "
            f"maximum embedding depth {max_depth}"
        )


class GrammarDefinitionError(ReportTodoError, ValueError):
    """Raised when a grammar table entry or grammar extension file is invalid."""


__all__ = [
    "EmbeddingTooDeep",
    "EncodingError",
    "GrammarDefinitionError",
    "ReportTodoError",
    "UnknownLanguage",
]
