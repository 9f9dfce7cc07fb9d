"""Machine-readable output for codehealth results."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rules.models import DefectRule
    from rules.store import RuleSet


def _to_dict(obj: object) -> object:
    """Convert records to plain data for JSON serialization."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, list | tuple):
        return [_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {key: _to_dict(value) for key, value in obj.items()}
    return obj


def rule_to_dict(rule: DefectRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "title": rule.title,
        "severity": rule.severity.value,
        "status": rule.lifecycle.value,
        "patterns": [pattern.pattern for pattern in rule.match_patterns],
        "exclude_patterns": [pattern.pattern for pattern in rule.exclude_patterns],
        "search_paths": list(rule.search_scope),
        "what_to_look_for": rule.summary,
        "fix": rule.fix,
    }


def rules_payload(rule_set: RuleSet) -> dict[str, Any]:
    return {
        "rules": [rule_to_dict(rule) for rule in rule_set.rules.values()],
        "errors": _to_dict(list(rule_set.errors)),
    }


def dumps(payload: object) -> str:
    """Serialize with sorted keys and two-space indentation."""
    opts = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2
    return orjson.dumps(_to_dict(payload), option=opts).decode("utf-8")


__all__ = ["dumps", "rule_to_dict", "rules_payload"]
