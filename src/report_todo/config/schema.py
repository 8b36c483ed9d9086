"""
report-todo — configuration schema and validation.

File: src/report_todo/config/schema.py
Last updated: 2026-10-18

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Cross-field checks that must fail before any file is scanned (reference
  regex, link format, keyword list).
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys at every level.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
import string
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from report_todo.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_FAIL_ON,
    DEFAULT_IGNORE_FILES,
    DEFAULT_KEYWORDS,
    DEFAULT_MAX_EMBEDDING_DEPTH,
    DEFAULT_PLACEHOLDER_NAME,
    DEFAULT_PLACEHOLDER_REPLACEMENT,
    DEFAULT_REFERENCE_CLOSE,
    DEFAULT_REFERENCE_OPEN,
    DEFAULT_REFERENCE_PATTERN,
    DEFAULT_REFERENCE_SIGIL,
    DEFAULT_WORKERS,
    FINDING_KINDS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_LANGUAGE_ID_PATTERN = re.compile(r"^[a-z][a-z0-9_+-]*$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("scan", "grammar_files"),
    ("observability", "log_file"),
)


class MetaConfig(TypedDict):
    schema_version: int


class MarkersConfig(TypedDict):
    keywords: list[str]
    default_keyword: str


class ReferenceConfig(TypedDict):
    open: str
    sigil: str
    pattern: str
    close: str
    require_colon: bool
    link_format: str


class PlaceholderConfig(TypedDict):
    enabled: bool
    name: str
    replacement: str


class ScanConfig(TypedDict):
    max_embedding_depth: int
    workers: int
    lossy_decode: bool
    exclude: list[str]
    ignore_files: list[str]
    grammar_files: list[str]
    language_overrides: dict[str, str]


class ReportConfig(TypedDict):
    format: Literal["text", "json"]
    report_all: bool
    fail_on: list[str]
    color: Literal["auto", "always", "never"]


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_file: str


class ReportTodoConfig(TypedDict):
    meta: MetaConfig
    markers: MarkersConfig
    reference: ReferenceConfig
    placeholder: PlaceholderConfig
    scan: ScanConfig
    report: ReportConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[ReportTodoConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "markers": {
        "keywords": list(DEFAULT_KEYWORDS),
        "default_keyword": DEFAULT_KEYWORDS[0],
    },
    "reference": {
        "open": DEFAULT_REFERENCE_OPEN,
        "sigil": DEFAULT_REFERENCE_SIGIL,
        "pattern": DEFAULT_REFERENCE_PATTERN,
        "close": DEFAULT_REFERENCE_CLOSE,
        "require_colon": True,
        "link_format": "",
    },
    "placeholder": {
        "enabled": True,
        "name": DEFAULT_PLACEHOLDER_NAME,
        "replacement": DEFAULT_PLACEHOLDER_REPLACEMENT,
    },
    "scan": {
        "max_embedding_depth": DEFAULT_MAX_EMBEDDING_DEPTH,
        "workers": DEFAULT_WORKERS,
        "lossy_decode": False,
        "exclude": [],
        "ignore_files": list(DEFAULT_IGNORE_FILES),
        "grammar_files": [],
        "language_overrides": {},
    },
    "report": {
        "format": "text",
        "report_all": False,
        "fail_on": list(DEFAULT_FAIL_ON),
        "color": "auto",
    },
    "observability": {
        "log_level": "WARNING",
        "log_format": "json",
        "log_file": "",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ReportTodoConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade report_todo.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade report-todo"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``.

    Lists replace rather than extend, so an overlay can shrink a default list.
    """

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators: dict[str, Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]]] = {
        "meta": _validate_meta,
        "markers": _validate_markers,
        "reference": _validate_reference,
        "placeholder": _validate_placeholder,
        "scan": _validate_scan,
        "report": _validate_report,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(validators), "", issues)
    _require_keys(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for key in sorted(validators):
        _section(payload, key=key, issues=issues, validator=validators[key], out=out)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_obj = _as_object(raw, key, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, key, issues)


def _validate_meta(payload: dict[str, object], path: str, issues: _IssueCollector) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(payload["schema_version"], _join(path, "schema_version"), issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_markers(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"keywords", "default_keyword"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "keywords" in payload:
        keywords = _as_str_list(payload["keywords"], _join(path, "keywords"), issues)
        if keywords is not None:
            if not keywords:
                issues.add(_join(path, "keywords"), "must contain at least one keyword")
            for index, keyword in enumerate(keywords):
                if any(char.isspace() for char in keyword):
                    issues.add(f"{_join(path, 'keywords')}[{index}]", "must not contain whitespace")
            out["keywords"] = keywords
    if "default_keyword" in payload:
        parsed = _as_str(payload["default_keyword"], _join(path, "default_keyword"), issues)
        if parsed is not None:
            out["default_keyword"] = parsed
    return out


def _validate_reference(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"open", "sigil", "pattern", "close", "require_colon", "link_format"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("open", "close", "pattern"):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    if "sigil" in payload:
        parsed_sigil = _as_text(payload["sigil"], _join(path, "sigil"), issues)
        if parsed_sigil is not None:
            out["sigil"] = parsed_sigil
    if "require_colon" in payload:
        parsed_colon = _as_bool(payload["require_colon"], _join(path, "require_colon"), issues)
        if parsed_colon is not None:
            out["require_colon"] = parsed_colon
    if "link_format" in payload:
        parsed_link = _as_text(payload["link_format"], _join(path, "link_format"), issues)
        if parsed_link is not None:
            problem = _link_format_problem(parsed_link)
            if problem is not None:
                issues.add(_join(path, "link_format"), problem)
            out["link_format"] = parsed_link

    pattern = out.get("pattern")
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as exc:
            issues.add(_join(path, "pattern"), f"invalid regular expression: {exc}")
    return out


def _link_format_problem(value: str) -> str | None:
    try:
        fields = [name for _, name, _, _ in string.Formatter().parse(value) if name is not None]
    except ValueError as exc:
        return f"invalid format string: {exc}"
    unknown = sorted({name for name in fields if name != "reference"})
    if unknown:
        return f"unknown placeholders {', '.join(unknown)}; only {{reference}} is supported"
    return None


def _validate_placeholder(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"enabled", "name", "replacement"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "enabled" in payload:
        parsed_enabled = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if parsed_enabled is not None:
            out["enabled"] = parsed_enabled
    for key in ("name", "replacement"):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is None:
                continue
            if not _IDENTIFIER_PATTERN.fullmatch(parsed):
                issues.add(_join(path, key), "must be an identifier (example: todo)")
                continue
            out[key] = parsed
    if out.get("name") is not None and out.get("name") == out.get("replacement"):
        issues.add(_join(path, "replacement"), "must differ from placeholder name")
    return out


def _validate_scan(payload: dict[str, object], path: str, issues: _IssueCollector) -> dict[str, Any]:
    allowed = {
        "max_embedding_depth",
        "workers",
        "lossy_decode",
        "exclude",
        "ignore_files",
        "grammar_files",
        "language_overrides",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("max_embedding_depth", "workers"):
        if key in payload:
            parsed_int = _as_int(payload[key], _join(path, key), issues, minimum=1)
            if parsed_int is not None:
                out[key] = parsed_int
    if "lossy_decode" in payload:
        parsed_lossy = _as_bool(payload["lossy_decode"], _join(path, "lossy_decode"), issues)
        if parsed_lossy is not None:
            out["lossy_decode"] = parsed_lossy
    for key in ("exclude", "ignore_files", "grammar_files"):
        if key in payload:
            parsed_list = _as_str_list(payload[key], _join(path, key), issues)
            if parsed_list is not None:
                out[key] = parsed_list
    if "language_overrides" in payload:
        overrides_path = _join(path, "language_overrides")
        raw = _as_object(payload["language_overrides"], overrides_path, issues)
        if raw is not None:
            overrides: dict[str, str] = {}
            for glob, language in raw.items():
                parsed_language = _as_str(language, _join(overrides_path, glob), issues)
                if parsed_language is None:
                    continue
                if not _LANGUAGE_ID_PATTERN.fullmatch(parsed_language):
                    issues.add(_join(overrides_path, glob), "must be a language id (example: rust)")
                    continue
                overrides[glob] = parsed_language
            out["language_overrides"] = overrides
    return out


def _validate_report(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"format", "report_all", "fail_on", "color"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "format" in payload:
        parsed_format = _as_enum(
            payload["format"], _join(path, "format"), issues, allowed_values=("text", "json")
        )
        if parsed_format is not None:
            out["format"] = parsed_format
    if "report_all" in payload:
        parsed_all = _as_bool(payload["report_all"], _join(path, "report_all"), issues)
        if parsed_all is not None:
            out["report_all"] = parsed_all
    if "fail_on" in payload:
        parsed_fail_on = _as_str_list(payload["fail_on"], _join(path, "fail_on"), issues)
        if parsed_fail_on is not None:
            for index, kind in enumerate(parsed_fail_on):
                if kind not in FINDING_KINDS:
                    expected = ", ".join(FINDING_KINDS)
                    issues.add(
                        f"{_join(path, 'fail_on')}[{index}]",
                        f"invalid value {kind!r}; expected one of: {expected}",
                    )
            out["fail_on"] = parsed_fail_on
    if "color" in payload:
        parsed_color = _as_enum(
            payload["color"],
            _join(path, "color"),
            issues,
            allowed_values=("auto", "always", "never"),
        )
        if parsed_color is not None:
            out["color"] = parsed_color
    return out


def _validate_observability(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        if isinstance(raw_level, str):
            raw_level = raw_level.upper()
        parsed_log_level = _as_enum(
            raw_level, _join(path, "log_level"), issues, allowed_values=_LOG_LEVELS
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level
    if "log_format" in payload:
        parsed_log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_log_format is not None:
            out["log_format"] = parsed_log_format
    if "log_file" in payload:
        parsed_log_file = _as_text(payload["log_file"], _join(path, "log_file"), issues)
        if parsed_log_file is not None:
            if "\x00" in parsed_log_file:
                issues.add(_join(path, "log_file"), "must not contain NUL bytes")
            out["log_file"] = parsed_log_file
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    """String that may be empty."""

    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    return value


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ReportTodoConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
