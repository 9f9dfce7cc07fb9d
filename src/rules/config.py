from __future__ import annotations

from pathlib import Path

import tomllib
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILENAME = "codehealth.toml"
DEFAULT_RULES_FILENAME = "codehealth-rules.toml"

DEFAULT_EXTENSIONS = (".ts", ".tsx")


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OrphansConfig(_StrictModel):
    """Configuration for unreferenced source file detection."""

    candidate_roots: list[str] = Field(
        default_factory=lambda: ["components", "lib"],
        description="Directories whose files may be reported as orphans",
    )
    scanning_roots: list[str] = Field(
        default_factory=lambda: ["app", "components", "lib", "contexts"],
        description="Directories whose files are searched for references",
    )
    alias_prefix: str = Field(
        default="@/",
        description="Import path prefix that maps to the project root",
    )
    implicit_names: list[str] = Field(
        default_factory=lambda: ["index", "ThemeProvider"],
        description="File stems loaded by convention, never reported as orphans",
    )
    strict: bool = Field(
        default=False,
        description="Match references on full paths only (no last-segment match)",
    )


class LinksConfig(_StrictModel):
    """Configuration for dead internal link detection."""

    app_dir: str = Field(
        default="app",
        description="Routing root; one directory per route segment",
    )
    page_files: list[str] = Field(
        default_factory=lambda: [
            "page.tsx",
            "page.ts",
            "page.jsx",
            "page.js",
            "route.ts",
            "route.js",
        ],
        description="File names that make their directory an addressable route",
    )
    link_roots: list[str] = Field(
        default_factory=lambda: ["app", "components"],
        description="Directories whose files are searched for link targets",
    )
    link_attributes: list[str] = Field(
        default_factory=lambda: ["href", "to"],
        description="Attribute names whose literal values are navigation targets",
    )
    public_dir: str | None = Field(
        default="public",
        description="Static asset directory served from the site root",
    )

    @field_validator("link_attributes")
    @classmethod
    def validate_link_attributes(cls, v: list[str]) -> list[str]:
        for name in v:
            if not name.replace("-", "").replace("_", "").isalnum():
                msg = f"Invalid link attribute name '{name}'"
                raise ValueError(msg)
        return v


class TypeCheckConfig(_StrictModel):
    """Configuration for the delegated type checker."""

    command: list[str] = Field(
        default_factory=lambda: ["npx", "tsc", "--noEmit"],
        min_length=1,
        description="Command line of the external type checker",
    )


class HealthConfig(_StrictModel):
    """Configuration for a codehealth run over one project."""

    rules_file: str = Field(
        default=DEFAULT_RULES_FILENAME,
        description="Rule definition file, relative to the project root",
    )
    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="Source file suffixes considered by every analysis",
    )
    skip_dirs: list[str] = Field(
        default_factory=lambda: ["node_modules"],
        description="Directory names pruned during traversal (dot-dirs always are)",
    )
    respect_gitignore: bool = Field(
        default=False,
        description="Skip files matched by the root .gitignore",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    orphans: OrphansConfig = Field(default_factory=OrphansConfig)
    links: LinksConfig = Field(default_factory=LinksConfig)
    typecheck: TypeCheckConfig = Field(default_factory=TypeCheckConfig)

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        if not v:
            msg = "extensions must not be empty"
            raise ValueError(msg)
        for ext in v:
            if not ext.startswith("."):
                msg = f"Extension '{ext}' must start with '.'"
                raise ValueError(msg)
        return v


class ConfigError(Exception):
    """Raised when a config or rule definition file exists but cannot be used."""


def resolve_rules_file(root: Path, rules_file: str) -> Path:
    """Resolve a config-provided rules_file safely within the project root.

    The path must be a non-empty relative path that remains within the
    project root after resolution. Absolute paths and paths that escape the
    root are rejected.
    """
    if not rules_file:
        msg = "rules_file must be a non-empty relative path"
        raise ConfigError(msg)

    if rules_file.startswith("~"):
        msg = "rules_file must be a relative path within the project root"
        raise ConfigError(msg)

    rules_path = Path(rules_file)
    if rules_path.is_absolute():
        msg = "rules_file must be a relative path within the project root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_rules = (resolved_root / rules_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve rules_file '{rules_file}': {exc}"
        raise ConfigError(msg) from exc

    try:
        resolved_rules.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"rules_file '{rules_file}' escapes the project root"
        raise ConfigError(msg) from exc

    return resolved_rules


def load_config(root: Path) -> HealthConfig:
    """Load configuration from codehealth.toml if it exists."""
    config_path = root / CONFIG_FILENAME

    if not config_path.is_file():
        return HealthConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return HealthConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e
