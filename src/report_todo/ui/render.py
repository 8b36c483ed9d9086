"""Output rendering abstraction for the report-todo CLI.

File: src/report_todo/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin rendering layer for CLI output with optional ANSI colour.
- Respect the NO_COLOR environment variable, the --no-color CLI flag, and the
  ``report.color`` setting (auto | always | never).

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Factory function to create a renderer with appropriate settings.

Functional requirements
- Plain-text rendering must always work; colour is decoration only.
- All public methods must be safe to call in any environment.

Non-functional requirements
- No mandatory dependencies beyond the standard library.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final, TextIO

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_RESET: Final[str] = "\x1b[0m"
STYLES: Final[dict[str, str]] = {
    "error": "\x1b[1;31m",
    "warning": "\x1b[1;33m",
    "info": "\x1b[1;36m",
    "bold": "\x1b[1m",
    "gutter": "\x1b[1;34m",
    "normal": "",
}


def color_allowed(
    mode: str = "auto",
    *,
    no_color_flag: bool = False,
    stream: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Check whether colour output should be attempted."""

    if no_color_flag or mode == "never":
        return False
    env = os.environ if environ is None else environ
    if env.get("NO_COLOR", ""):
        return False
    if mode == "always":
        return True
    target = sys.stdout if stream is None else stream
    return hasattr(target, "isatty") and target.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces deterministic plain text, optionally wrapped in ANSI styles.
    """

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        color: bool = False,
        verbose: bool = False,
    ) -> None:
        self.verbose = verbose
        self.color = color
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return sys.stdout if self._stream is None else self._stream

    def paint(self, text: str, style: str) -> str:
        """Wrap ``text`` in the ANSI sequence for ``style`` when colour is on."""

        code = STYLES.get(style, "")
        if not self.color or not code or not text:
            return text
        return f"{code}{text}{_RESET}"

    def write(self, line: str = "") -> None:
        print(line, file=self.stream)

    def text(self, line: str) -> None:
        """Print a plain text line."""

        self.write(line)

    def blank(self) -> None:
        self.write()

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        self.write(f"{self.paint(key, 'bold')}: {value}")

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self.write()
        self.write(self.paint(title, "bold"))

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self.write(self.paint(_pad(list(headers)), "bold"))
        self.write("  ".join("-" * w for w in widths))
        for row in rows:
            self.write(_pad(list(row)))


def create_renderer(
    *,
    mode: str = "auto",
    no_color: bool = False,
    verbose: bool = False,
    stream: TextIO | None = None,
) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    color = color_allowed(mode, no_color_flag=no_color, stream=stream)
    return CLIRenderer(stream=stream, color=color, verbose=verbose)


__all__ = ["CLIRenderer", "STYLES", "color_allowed", "create_renderer"]
