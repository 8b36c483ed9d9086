"""
report-todo — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-18

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
- Effective config dumping.

Functional requirements
- Works offline against temporary directories only.

Non-functional requirements
- Deterministic output across repeated loads.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from report_todo.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    env_bindings,
    load_config,
)
from report_todo.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _sha256_json(data: dict[str, object]) -> str:
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@pytest.mark.unit
def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    default_path = _write_config(tmp_path / "default.toml", "")
    config_path = _write_config(tmp_path / "report_todo.toml", "[scan]\nworkers = 2\n")

    default_loaded = load_config(default_path, environ={})
    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"REPORT_TODO_SCAN_WORKERS": "6"})
    cli_loaded = load_config(
        config_path,
        environ={"REPORT_TODO_SCAN_WORKERS": "6"},
        cli_overrides={"scan.workers": 7},
    )

    assert default_loaded["scan"]["workers"] == 4
    assert file_loaded["scan"]["workers"] == 2
    assert env_loaded["scan"]["workers"] == 6
    assert cli_loaded["scan"]["workers"] == 7


@pytest.mark.unit
def test_missing_default_file_is_fine_but_explicit_file_is_required(tmp_path: Path) -> None:
    loaded = load_config(environ={}, cwd=tmp_path)

    assert loaded["markers"]["keywords"] == ["TODO", "FIXME"]
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ={})


@pytest.mark.unit
def test_default_file_is_discovered_in_cwd(tmp_path: Path) -> None:
    _write_config(tmp_path / "report_todo.toml", '[markers]\nkeywords = ["HACK"]\n')

    loaded = load_config(environ={}, cwd=tmp_path)

    assert loaded["markers"]["keywords"] == ["HACK"]


@pytest.mark.unit
def test_env_coercion_for_bool_list_and_str(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "report_todo.toml", "")

    loaded = load_config(
        config_path,
        environ={
            "REPORT_TODO_PLACEHOLDER_ENABLED": "off",
            "REPORT_TODO_MARKERS_KEYWORDS": "TODO, XXX ,",
            "REPORT_TODO_REFERENCE_LINK_FORMAT": "https://tracker/{reference}",
            "REPORT_TODO_OBSERVABILITY_LOG_LEVEL": "debug",
        },
    )

    assert loaded["placeholder"]["enabled"] is False
    assert loaded["markers"]["keywords"] == ["TODO", "XXX"]
    assert loaded["reference"]["link_format"] == "https://tracker/{reference}"
    assert loaded["observability"]["log_level"] == "DEBUG"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("REPORT_TODO_SCAN_WORKERS", "not-an-int"),
        ("REPORT_TODO_SCAN_LOSSY_DECODE", "maybe"),
    ],
)
def test_invalid_env_coercion_raises_actionable_error(tmp_path: Path, name: str, value: str) -> None:
    config_path = _write_config(tmp_path / "report_todo.toml", "")

    with pytest.raises(ConfigLoadError, match=name):
        load_config(config_path, environ={name: value})


@pytest.mark.unit
def test_env_bindings_skip_mapping_valued_settings() -> None:
    bindings = env_bindings()

    assert bindings["REPORT_TODO_SCAN_WORKERS"] == ("scan", "workers")
    assert "REPORT_TODO_SCAN_LANGUAGE_OVERRIDES" not in bindings
    assert all(name.startswith("REPORT_TODO_") for name in bindings)


@pytest.mark.unit
def test_loader_is_deterministic_for_same_inputs(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "report_todo.toml", "")
    env = {"REPORT_TODO_SCAN_WORKERS": "6", "REPORT_TODO_REPORT_REPORT_ALL": "true"}
    cli = {"report.format": "json"}

    first = load_config(config_path, environ=env, cli_overrides=cli)
    second = load_config(config_path, environ=env, cli_overrides=cli)

    assert _sha256_json(first) == _sha256_json(second)


@pytest.mark.unit
def test_path_normalization_is_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "nested" / "report_todo.toml",
        """
[scan]
grammar_files = ["grammars/extra.yaml"]

[observability]
log_file = "logs/../report.log"
""".strip(),
    )

    loaded = load_config(config_path, environ={})

    assert loaded["scan"]["grammar_files"] == [(config_path.parent / "grammars/extra.yaml").as_posix()]
    assert loaded["observability"]["log_file"] == (config_path.parent / "report.log").as_posix()


@pytest.mark.unit
def test_cli_paths_resolve_against_cwd(tmp_path: Path) -> None:
    config_dir = tmp_path / "conf"
    config_path = _write_config(config_dir / "report_todo.toml", "")

    loaded = load_config(
        config_path,
        environ={},
        cwd=tmp_path,
        cli_overrides={"scan.grammar_files": ["g.yaml"], "scan.workers": None},
    )

    assert loaded["scan"]["grammar_files"] == [(tmp_path / "g.yaml").as_posix()]
    assert loaded["scan"]["workers"] == 4


@pytest.mark.unit
def test_invalid_toml_and_invalid_values_fail_before_scanning(tmp_path: Path) -> None:
    broken = _write_config(tmp_path / "broken.toml", "[scan\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})

    bad_regex = _write_config(tmp_path / "regex.toml", '[reference]\npattern = "[0-9"\n')
    with pytest.raises(ConfigValidationError, match="reference.pattern"):
        load_config(bad_regex, environ={})


@pytest.mark.unit
def test_dump_effective_config_is_deterministic_json(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "report_todo.toml", "")

    loaded = load_config(config_path, environ={})
    first = dump_effective_config(loaded)
    second = dump_effective_config(loaded)

    assert first == second
    parsed = json.loads(first)
    assert parsed["meta"]["schema_version"] == 1
    assert list(parsed) == sorted(parsed)


@pytest.mark.unit
def test_config_package_exports_loader_and_errors(tmp_path: Path) -> None:
    import report_todo.config as config_pkg

    config_path = _write_config(tmp_path / "report_todo.toml", "")

    loaded = config_pkg.load_config(config_path, environ={})
    assert loaded["report"]["fail_on"] == ["missing_reference", "malformed_reference", "placeholder"]

    with pytest.raises(config_pkg.ConfigLoadError):
        config_pkg.load_config(tmp_path / "missing.toml")
