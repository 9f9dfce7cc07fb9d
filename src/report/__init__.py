"""Result rendering for codehealth."""

from report.console import DEFAULT_THEME, Reporter, make_console

__all__ = ["DEFAULT_THEME", "Reporter", "make_console"]
