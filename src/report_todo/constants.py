"""Stable constants shared across the scanner, checks, and CLI."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
REPORT_SCHEMA_VERSION: Final[int] = 1

DEFAULT_CONFIG_FILE: Final[str] = "report_todo.toml"
ENV_PREFIX: Final[str] = "REPORT_TODO_"
LOGGER_NAMESPACE: Final[str] = "report_todo"

# Marker policy defaults.
DEFAULT_KEYWORDS: Final[tuple[str, ...]] = ("TODO", "FIXME")
DEFAULT_REFERENCE_OPEN: Final[str] = "("
DEFAULT_REFERENCE_SIGIL: Final[str] = "#"
DEFAULT_REFERENCE_PATTERN: Final[str] = "[0-9]+"
DEFAULT_REFERENCE_CLOSE: Final[str] = ")"

# Rust placeholder idiom.
RUST_LANGUAGE_ID: Final[str] = "rust"
DEFAULT_PLACEHOLDER_NAME: Final[str] = "todo"
DEFAULT_PLACEHOLDER_REPLACEMENT: Final[str] = "unimplemented"

# Nested-region resolution.
DEFAULT_MAX_EMBEDDING_DEPTH: Final[int] = 8

DEFAULT_WORKERS: Final[int] = 4
DEFAULT_IGNORE_FILES: Final[tuple[str, ...]] = (".gitignore", ".todoignore")

# Finding kinds that fail the run unless configured otherwise.
FINDING_KINDS: Final[tuple[str, ...]] = (
    "compliant",
    "malformed_reference",
    "missing_reference",
    "placeholder",
)
DEFAULT_FAIL_ON: Final[tuple[str, ...]] = (
    "missing_reference",
    "malformed_reference",
    "placeholder",
)

SEVERITY_ORDER: Final[dict[str, int]] = {"ERROR": 0, "WARNING": 1, "INFO": 2}

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_FAIL_ON",
    "DEFAULT_IGNORE_FILES",
    "DEFAULT_KEYWORDS",
    "DEFAULT_MAX_EMBEDDING_DEPTH",
    "DEFAULT_PLACEHOLDER_NAME",
    "DEFAULT_PLACEHOLDER_REPLACEMENT",
    "DEFAULT_REFERENCE_CLOSE",
    "DEFAULT_REFERENCE_OPEN",
    "DEFAULT_REFERENCE_PATTERN",
    "DEFAULT_REFERENCE_SIGIL",
    "DEFAULT_WORKERS",
    "ENV_PREFIX",
    "FINDING_KINDS",
    "LOGGER_NAMESPACE",
    "REPORT_SCHEMA_VERSION",
    "RUST_LANGUAGE_ID",
    "SEVERITY_ORDER",
]
