"""CLI surface: argument parsing and terminal rendering."""

from report_todo.ui.render import CLIRenderer, color_allowed, create_renderer

__all__ = ["CLIRenderer", "color_allowed", "create_renderer"]
