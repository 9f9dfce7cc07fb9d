"""Load defect rules from a declarative definition file."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import orjson
from pydantic import ValidationError

from rules.config import ConfigError
from rules.models import DefectRule, Lifecycle, RuleError, Severity

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

RULES_TABLE = "rules"


@dataclass(frozen=True)
class RuleSet:
    """Rules loaded from one definition file, in declaration order."""

    rules: dict[str, DefectRule] = field(default_factory=dict)
    errors: tuple[RuleError, ...] = ()
    source: Path | None = None
    missing: bool = False

    def ids(self) -> list[str]:
        return list(self.rules)

    def open_rules(self) -> list[DefectRule]:
        return [rule for rule in self.rules.values() if rule.is_open]

    def select(
        self,
        *,
        lifecycle: Lifecycle | None = None,
        severity_in: Iterable[Severity] | None = None,
    ) -> list[DefectRule]:
        """Filter rules by lifecycle and/or a set of severities."""
        allowed = set(severity_in) if severity_in is not None else None
        return [
            rule
            for rule in self.rules.values()
            if (lifecycle is None or rule.lifecycle is lifecycle)
            and (allowed is None or rule.severity in allowed)
        ]


def _parse_document(definition_path: Path) -> dict[str, Any]:
    raw = definition_path.read_bytes()
    if definition_path.suffix == ".json":
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            msg = f"Invalid JSON in {definition_path}: {e}"
            raise ConfigError(msg) from e
    else:
        try:
            data = tomllib.loads(raw.decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            msg = f"Invalid TOML in {definition_path}: {e}"
            raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"Rule definitions in {definition_path} must be a table"
        raise ConfigError(msg)
    return data


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error["loc"]) or "rule"
        parts.append(f"{loc}: {error['msg']}")
    return "; ".join(parts)


def _build_rule(rule_id: str, record: Any) -> DefectRule:
    if not isinstance(record, dict):
        msg = "rule definition must be a table"
        raise ValueError(msg)
    return DefectRule.model_validate({**record, "id": rule_id})


def load_rules(definition_path: Path) -> RuleSet:
    """Load every rule declared in ``definition_path``.

    A missing file yields an empty, ``missing`` rule set. A file that cannot
    be parsed raises ``ConfigError``. A single rule that fails validation
    (for example a malformed regular expression) is reported in
    ``RuleSet.errors`` under its id; the remaining rules still load.
    Rules are kept regardless of lifecycle.
    """
    if not definition_path.is_file():
        logger.debug("rule definitions not found: %s", definition_path)
        return RuleSet(source=definition_path, missing=True)

    try:
        data = _parse_document(definition_path)
    except OSError as e:
        msg = f"Cannot read rule definitions {definition_path}: {e}"
        raise ConfigError(msg) from e

    if RULES_TABLE not in data:
        msg = f"No [{RULES_TABLE}] table in {definition_path}"
        raise ConfigError(msg)

    table = data[RULES_TABLE]
    if not isinstance(table, dict):
        msg = f"'{RULES_TABLE}' in {definition_path} must map rule ids to tables"
        raise ConfigError(msg)

    rules: dict[str, DefectRule] = {}
    errors: list[RuleError] = []
    for rule_id, record in table.items():
        try:
            rules[rule_id] = _build_rule(rule_id, record)
        except ValidationError as exc:
            errors.append(RuleError(rule_id, _format_validation_error(exc)))
        except ValueError as exc:
            errors.append(RuleError(rule_id, str(exc)))

    logger.debug(
        "loaded %d rule(s) from %s (%d invalid)",
        len(rules),
        definition_path,
        len(errors),
    )
    return RuleSet(rules=rules, errors=tuple(errors), source=definition_path)


__all__ = ["RULES_TABLE", "RuleSet", "load_rules"]
