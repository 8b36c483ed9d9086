"""Checks run over resolved span streams: marker policy and Rust placeholders."""

from report_todo.checks.markers import (
    Marker,
    ReferencePattern,
    Verdict,
    classify_annotation,
    compile_keywords,
    extract,
)
from report_todo.checks.placeholders import PlaceholderOccurrence, detect

__all__ = [
    "Marker",
    "PlaceholderOccurrence",
    "ReferencePattern",
    "Verdict",
    "classify_annotation",
    "compile_keywords",
    "detect",
    "extract",
]
