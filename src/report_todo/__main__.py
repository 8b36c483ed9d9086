"""Module entrypoint for ``python -m report_todo``."""

from __future__ import annotations

from report_todo.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
