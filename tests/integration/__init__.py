"""
report-todo — integration test package

File: tests/integration/__init__.py
Last updated: 2026-10-18

Purpose
- Group the tests that run `python -m report_todo` and real `git` subprocesses.

Functional requirements
- Tests create throwaway trees and repositories under `tmp_path` only.
- No network access; the `--diff` test uses a local bare remote.
"""
