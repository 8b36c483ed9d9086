"""
report-todo — package root

File: src/report_todo/__init__.py
Last updated: 2026-10-18

Purpose
- Package root for the comment-aware TODO/FIXME policy scanner.

What should be included in this file
- Version export and a deliberately small public API surface.
- Import boundary rules: no config loading or logging setup at import time.

Functional requirements
- Must not have side effects at import time.
"""

from __future__ import annotations

__version__ = "0.3.0"

__all__ = ["__version__"]
