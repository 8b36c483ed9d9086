"""Command-line interface router for report-todo."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from report_todo.audit import AuditSettings, run_audit
from report_todo.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from report_todo.errors import GrammarDefinitionError
from report_todo.lexing.grammar import GrammarRegistry, builtin_registry, registry_from_files
from report_todo.main import ExitCode
from report_todo.observability.logging import setup_logging, shutdown_logging
from report_todo.report import render_json, render_text
from report_todo.ui.render import CLIRenderer, create_renderer
from report_todo.utils.concurrency import CancellationToken
from report_todo.vcs.git_diff import GitCommandError, added_lines_since_fork_point


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.CONFIG_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="report-todo",
        description=(
            "report-todo — find TODO/FIXME markers in comments and check they are tracked.\n\n"
            "Common workflows:\n"
            "  report-todo scan              Scan the current directory\n"
            "  report-todo scan --diff       Only report markers on lines added since the fork point\n"
            "  report-todo languages         List supported languages\n"
            "  report-todo config            Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        default=".",
        help="Directory that paths are reported relative to (default: current directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./report_todo.toml if present).",
    )
    common.add_argument(
        "--grammar",
        dest="grammar_files",
        action="append",
        default=None,
        metavar="PATH",
        help="YAML grammar extension file (repeatable; replaces scan.grammar_files).",
    )
    common.add_argument("--verbose", "-v", action="store_true", default=False, help="Show detailed output.")
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR).")
    common.add_argument("--log-file", default=None, help="Write logs to this file instead of stderr.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # scan ----------------------------------------------------------------
    scan_parser = subparsers.add_parser(
        "scan",
        parents=[common],
        help="Scan files or directories for untracked markers",
        description=(
            "Scan sources for TODO/FIXME markers without an issue reference and\n"
            "for Rust `todo!()` placeholders.\n\n"
            "Examples:\n"
            "  report-todo scan src/\n"
            "  report-todo scan --format json --all\n"
            "  report-todo scan --language rust build.rs.in\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    scan_parser.add_argument("paths", nargs="*", default=["."], help="Files or directories to scan.")
    scan_parser.add_argument(
        "--keyword",
        dest="keywords",
        action="append",
        default=None,
        help="Marker keyword to flag (repeatable; replaces markers.keywords).",
    )
    scan_parser.add_argument("--reference-pattern", default=None, help="Regex the issue reference must match.")
    scan_parser.add_argument(
        "--issue-link-format",
        default=None,
        help="Link template for tracked markers, e.g. https://tracker/issues/{reference}",
    )
    scan_parser.add_argument(
        "--all",
        dest="report_all",
        action="store_true",
        default=False,
        help="Also report tracked (compliant) markers.",
    )
    scan_parser.add_argument(
        "--diff",
        action="store_true",
        default=False,
        help="Only report findings on lines added since the upstream fork point.",
    )
    scan_parser.add_argument("--format", choices=("text", "json"), default=None, help="Report format.")
    scan_parser.add_argument("--language", default=None, help="Force this language for named files.")
    scan_parser.add_argument("--max-embedding-depth", type=int, default=None, help="Embedded-region depth bound.")
    scan_parser.add_argument(
        "--no-placeholder",
        action="store_true",
        default=False,
        help="Disable Rust placeholder detection.",
    )
    scan_parser.add_argument(
        "--fail-on-warn",
        action="store_true",
        default=False,
        help="Exit non-zero when any file-level warning was reported.",
    )
    scan_parser.add_argument("--workers", type=int, default=None, help="Files scanned in parallel.")
    scan_parser.add_argument(
        "--lossy-decode",
        action="store_true",
        default=False,
        help="Replace undecodable bytes instead of skipping the file.",
    )
    scan_parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Path or glob to skip (repeatable; replaces scan.exclude).",
    )
    scan_parser.set_defaults(handler=_cmd_scan)

    # languages -----------------------------------------------------------
    languages_parser = subparsers.add_parser(
        "languages",
        parents=[common],
        help="List supported languages and embedding rules",
    )
    languages_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    languages_parser.set_defaults(handler=_cmd_languages)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description="Display the effective config after merging defaults, file, env, and flags.",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_scan(args: argparse.Namespace) -> int:
    root = _root(args)
    config = _load_effective_config(args, root)
    handle = setup_logging(config["observability"])
    try:
        registry = _build_registry(config)
        scan_cfg = config["scan"]
        overrides: Mapping[str, str] = scan_cfg["language_overrides"]
        forced = _optional_str(getattr(args, "language", None))
        _check_languages(registry, overrides, forced)

        try:
            settings = AuditSettings.from_config(config)
        except ValueError as exc:
            raise CLIError(str(exc)) from exc

        changed_lines = None
        if _flag(args, "diff"):
            try:
                changed_lines = added_lines_since_fork_point(root)
            except GitCommandError as exc:
                raise CLIError(f"--diff needs a git checkout with an upstream: {exc}") from exc

        token = CancellationToken()
        result = run_audit(
            list(args.paths),
            root=root,
            settings=settings,
            registry=registry,
            workers=int(scan_cfg["workers"]),
            exclude=tuple(scan_cfg["exclude"]),
            ignore_files=tuple(scan_cfg["ignore_files"]),
            language_overrides=overrides,
            forced_language=forced,
            changed_lines=changed_lines,
            cancel_token=token,
        )
        if token.is_cancelled:
            print(
                f"error: scan {token.reason}; {result.files_skipped} file(s) not scanned",
                file=sys.stderr,
            )
            return int(ExitCode.INTERRUPTED)

        if config["report"]["format"] == "json":
            print(render_json(result))
        else:
            render_text(result, _get_renderer(args, config))
    finally:
        shutdown_logging(handle)

    if result.has_failures(fail_on_warn=_flag(args, "fail_on_warn")):
        return int(ExitCode.FINDINGS)
    return int(ExitCode.SUCCESS)


def _cmd_languages(args: argparse.Namespace) -> int:
    root = _root(args)
    config = _load_effective_config(args, root)
    registry = _build_registry(config)

    if _flag(args, "json"):
        _emit_json({"languages": [grammar.to_dict() for grammar in registry]})
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args, config)
    rows = []
    for grammar in registry:
        embeds = sorted({rule.language for rule in grammar.embeddings})
        rows.append(
            [
                grammar.language,
                " ".join((*grammar.extensions, *grammar.filenames)) or "-",
                ", ".join(embeds) or "-",
            ]
        )
    renderer.table(["language", "files", "embeds"], rows)
    return int(ExitCode.SUCCESS)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args, _root(args))
    print(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace, config: Mapping[str, Any]) -> CLIRenderer:
    return create_renderer(
        mode=str(config["report"]["color"]),
        no_color=_flag(args, "no_color"),
        verbose=_flag(args, "verbose"),
    )


def _root(args: argparse.Namespace) -> Path:
    raw = _optional_str(getattr(args, "root", None)) or "."
    candidate = Path(raw).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"root is not a directory: {candidate}")
    return candidate


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    """Dotted config keys for every flag the user actually passed."""

    overrides: dict[str, object] = {
        "markers.keywords": getattr(args, "keywords", None),
        "reference.pattern": getattr(args, "reference_pattern", None),
        "reference.link_format": getattr(args, "issue_link_format", None),
        "report.format": getattr(args, "format", None),
        "scan.max_embedding_depth": getattr(args, "max_embedding_depth", None),
        "scan.workers": getattr(args, "workers", None),
        "scan.exclude": getattr(args, "exclude", None),
        "scan.grammar_files": getattr(args, "grammar_files", None),
        "observability.log_level": getattr(args, "log_level", None),
        "observability.log_file": getattr(args, "log_file", None),
    }
    if _flag(args, "report_all"):
        overrides["report.report_all"] = True
    if _flag(args, "no_placeholder"):
        overrides["placeholder.enabled"] = False
    if _flag(args, "lossy_decode"):
        overrides["scan.lossy_decode"] = True
    if _flag(args, "no_color"):
        overrides["report.color"] = "never"
    if _flag(args, "verbose") and overrides["observability.log_level"] is None:
        overrides["observability.log_level"] = "INFO"
    return overrides


def _load_effective_config(args: argparse.Namespace, root: Path) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    try:
        return load_config(config_path, cli_overrides=_cli_overrides(args), cwd=root)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc)) from exc


def _build_registry(config: Mapping[str, Any]) -> GrammarRegistry:
    paths = list(config["scan"]["grammar_files"])
    if not paths:
        return builtin_registry()
    try:
        return registry_from_files(paths, base=builtin_registry())
    except GrammarDefinitionError as exc:
        raise CLIError(str(exc)) from exc


def _check_languages(
    registry: GrammarRegistry, overrides: Mapping[str, str], forced: str | None
) -> None:
    unknown = sorted({language for language in overrides.values() if language not in registry})
    if unknown:
        raise CLIError(f"scan.language_overrides names unknown language(s): {', '.join(unknown)}")
    if forced is not None and forced not in registry:
        raise CLIError(f"--language {forced!r} is not a known language (see `report-todo languages`)")


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
