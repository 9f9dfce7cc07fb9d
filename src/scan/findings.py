"""Finding records produced by the pattern scanner."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from rules.models import Severity

EXCERPT_LIMIT = 80


class Finding(BaseModel):
    """One occurrence of a rule matching a source line."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    file_path: str
    line_number: int
    excerpt: str
    summary: str

    def location(self) -> str:
        return f"{self.file_path}:{self.line_number}"


def make_excerpt(line: str, limit: int = EXCERPT_LIMIT) -> str:
    """Trim surrounding whitespace and cap the line for display."""
    return line.strip()[:limit]


__all__ = ["EXCERPT_LIMIT", "Finding", "make_excerpt"]
