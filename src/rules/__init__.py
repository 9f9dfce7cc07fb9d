"""Rule definitions and project configuration for codehealth."""

from rules.config import (
    ConfigError,
    HealthConfig,
    load_config,
)
from rules.models import DefectRule, Lifecycle, RuleError, Severity
from rules.store import RuleSet, load_rules

__all__ = [
    "ConfigError",
    "DefectRule",
    "HealthConfig",
    "Lifecycle",
    "RuleError",
    "RuleSet",
    "Severity",
    "load_config",
    "load_rules",
]
