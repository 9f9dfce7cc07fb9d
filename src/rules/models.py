"""Defect rule records loaded from declarative rule definitions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    """Severity of a defect rule, most severe first."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """0 for CRITICAL up to 3 for LOW; sorts most severe first."""
        return _SEVERITY_ORDER.index(self)

    @property
    def is_blocking(self) -> bool:
        """Whether a finding of this severity fails the run."""
        return self in {Severity.CRITICAL, Severity.HIGH}


_SEVERITY_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


def severities() -> tuple[Severity, ...]:
    """Return all severities ordered from most to least severe."""
    return _SEVERITY_ORDER


class Lifecycle(str, Enum):
    """Whether a rule still describes a live defect."""

    OPEN = "OPEN"
    FIXED = "FIXED"


def _compile_pattern_list(value: Any) -> tuple[re.Pattern[str], ...]:
    if value is None:
        return ()
    if isinstance(value, str | re.Pattern):
        value = [value]
    if not isinstance(value, list | tuple):
        msg = "patterns must be a list of regular expression strings"
        raise ValueError(msg)

    compiled: list[re.Pattern[str]] = []
    for pattern in value:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
            continue
        if not isinstance(pattern, str):
            msg = f"pattern {pattern!r} is not a string"
            raise ValueError(msg)
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            msg = f"invalid regular expression {pattern!r}: {exc}"
            raise ValueError(msg) from exc
    return tuple(compiled)


class DefectRule(BaseModel):
    """A named, declaratively configured pattern check.

    Field aliases follow the rule definition file (``status``, ``patterns``,
    ``search_paths``, ``what_to_look_for``). Patterns are compiled while the
    record is validated, so a loaded rule always carries usable regexes.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1, description="Unique rule key (e.g. 'TLF-001')")
    title: str = Field(default="", description="Short human-readable title")
    severity: Severity
    lifecycle: Lifecycle = Field(
        default=Lifecycle.OPEN,
        alias="status",
        description="OPEN rules are scanned by default, FIXED rules only on request",
    )
    match_patterns: tuple[re.Pattern[str], ...] = Field(
        default=(),
        alias="patterns",
        description="A line matching any of these qualifies",
    )
    exclude_patterns: tuple[re.Pattern[str], ...] = Field(
        default=(),
        description="A match anywhere in the context window suppresses the finding",
    )
    search_scope: tuple[str, ...] = Field(
        default=(),
        alias="search_paths",
        description="Files or directories relative to the project root",
    )
    summary: str = Field(default="", alias="what_to_look_for")
    whole_file_exclude: bool = Field(
        default=False,
        description="Test exclude patterns against the whole file instead of a window",
    )
    context_lines: int = Field(
        default=3,
        ge=0,
        description="Lines before and after a match that form the exclusion window",
    )

    # Informational fields carried through for --list and JSON output.
    fix: str | None = None
    affected_files: tuple[str, ...] = ()
    discovered: str | None = None
    fixed: str | None = None

    @field_validator("severity", "lifecycle", mode="before")
    @classmethod
    def normalize_enum_case(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("match_patterns", "exclude_patterns", mode="before")
    @classmethod
    def compile_patterns(cls, v: Any) -> tuple[re.Pattern[str], ...]:
        """Compile pattern strings once; invalid regexes are rejected here."""
        return _compile_pattern_list(v)

    @field_validator("search_scope", "affected_files", mode="before")
    @classmethod
    def coerce_path_list(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("discovered", "fixed", mode="before")
    @classmethod
    def stringify_dates(cls, v: Any) -> Any:
        # TOML parses bare dates into datetime.date objects.
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @property
    def is_open(self) -> bool:
        return self.lifecycle is Lifecycle.OPEN

    @property
    def is_scannable(self) -> bool:
        """A rule with no patterns or no scope can never produce a finding."""
        return bool(self.match_patterns) and bool(self.search_scope)


@dataclass(frozen=True)
class RuleError:
    """A rule that was declared but could not be loaded."""

    rule_id: str
    message: str

    def location(self) -> str:
        return f"rule {self.rule_id}"


__all__ = [
    "DefectRule",
    "Lifecycle",
    "RuleError",
    "Severity",
    "severities",
]
