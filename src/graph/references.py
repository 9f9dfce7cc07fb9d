"""Import/reference graph over project sources and orphan detection."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rules.config import DEFAULT_EXTENSIONS
from scan.files import DEFAULT_SKIP_DIRS, list_files
from utils import strip_source_extension, to_relative_posix

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

_LEADING_RELATIVE = re.compile(r"^\.\.?/")


def build_reference_pattern(alias_prefix: str) -> re.Pattern[str]:
    """Compile the regex that captures quoted module references.

    Matches strings that start with ``alias_prefix`` or ``./``/``../`` and
    follow ``import``, ``from``, a dynamic ``import(`` or ``require(``.
    """
    prefixes = [r"\.\.?/"]
    if alias_prefix:
        prefixes.insert(0, re.escape(alias_prefix))
    prefix = "|".join(prefixes)
    return re.compile(
        rf"""(?:\bimport|\bfrom|\brequire)\s*\(?\s*["']((?:{prefix})[^"']+)["']"""
    )


def extract_references(text: str, pattern: re.Pattern[str]) -> list[str]:
    """Return every captured reference string in ``text``, in order."""
    return [match.group(1) for match in pattern.finditer(text)]


def normalize_reference(raw: str, alias_prefix: str) -> frozenset[str]:
    """Turn one reference string into the identifiers it may stand for.

    The alias prefix and a single leading ``./`` or ``../`` are stripped.
    Besides the remaining path, the last segment is registered both as
    written and without its extension, because references spell out varying
    amounts of the path.

    Examples:
        >>> sorted(normalize_reference("@/components/game/ChatPanel", "@/"))
        ['ChatPanel', 'components/game/ChatPanel']
        >>> sorted(normalize_reference("../lib/api.ts", "@/"))
        ['api', 'api.ts', 'lib/api.ts']
    """
    path = raw
    if alias_prefix and path.startswith(alias_prefix):
        path = path[len(alias_prefix) :]
    path = _LEADING_RELATIVE.sub("", path, count=1)
    last = path.rsplit("/", 1)[-1]
    return frozenset({path, last, strip_source_extension(last)})


def resolve_reference(raw: str, importer: str, alias_prefix: str) -> str | None:
    """Resolve a reference to a root-relative path, or None if it leaves the root.

    Aliased references are taken relative to the project root; relative ones
    relative to the importing file's directory.

    Examples:
        >>> resolve_reference("../lib/api", "components/game/Chat.tsx", "@/")
        'components/lib/api'
        >>> resolve_reference("@/lib/api", "app/page.tsx", "@/")
        'lib/api'
    """
    if alias_prefix and raw.startswith(alias_prefix):
        return posixpath.normpath(raw[len(alias_prefix) :])
    resolved = posixpath.normpath(posixpath.join(posixpath.dirname(importer), raw))
    if resolved == ".." or resolved.startswith("../"):
        return None
    return resolved


def _strict_identifiers(resolved: str) -> frozenset[str]:
    return frozenset({resolved, strip_source_extension(resolved)})


@dataclass(frozen=True)
class SourceFileNode:
    """A tracked source file, keyed by its root-relative path."""

    relative_path: str
    base_name: str

    @classmethod
    def from_relative_path(cls, relative_path: str) -> SourceFileNode:
        file_name = relative_path.rsplit("/", 1)[-1]
        return cls(relative_path=relative_path, base_name=strip_source_extension(file_name))

    @property
    def file_name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    def lookup_keys(self, *, strict: bool) -> tuple[str, ...]:
        """Identifiers under which a reference to this file would be registered."""
        stripped = strip_source_extension(self.relative_path)
        if strict:
            keys = [self.relative_path, stripped]
            if self.base_name == "index" and "/" in stripped:
                keys.append(stripped.rsplit("/", 1)[0])
            return tuple(keys)
        return (self.file_name, self.base_name, self.relative_path, stripped)


@dataclass(frozen=True)
class ReferenceEdge:
    """``source`` contains the literal reference ``raw``; unvalidated."""

    source: str
    raw: str
    identifiers: frozenset[str]


@dataclass
class ReferenceGraph:
    """Nodes and heuristic reference edges built from one scanning set."""

    alias_prefix: str = "@/"
    strict: bool = False
    nodes: dict[str, SourceFileNode] = field(default_factory=dict)
    edges: list[ReferenceEdge] = field(default_factory=list)
    identifiers: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self._pattern = build_reference_pattern(self.alias_prefix)

    def add_source(self, relative_path: str, text: str) -> None:
        """Register a scanned file and every reference it contains."""
        self.nodes.setdefault(
            relative_path, SourceFileNode.from_relative_path(relative_path)
        )
        for raw in extract_references(text, self._pattern):
            if self.strict:
                resolved = resolve_reference(raw, relative_path, self.alias_prefix)
                if resolved is None:
                    continue
                identifiers = _strict_identifiers(resolved)
            else:
                identifiers = normalize_reference(raw, self.alias_prefix)
            self.edges.append(ReferenceEdge(relative_path, raw, identifiers))
            self.identifiers.update(identifiers)

    def is_referenced(self, node: SourceFileNode) -> bool:
        return any(key in self.identifiers for key in node.lookup_keys(strict=self.strict))


def is_orphan(
    node: SourceFileNode,
    graph: ReferenceGraph,
    implicit_names: Iterable[str],
) -> bool:
    """A node is an orphan when nothing references it and it is not implicit."""
    if node.base_name in set(implicit_names):
        return False
    return not graph.is_referenced(node)


def _collect_files(
    project_root: Path,
    roots: Iterable[str],
    extensions: tuple[str, ...],
    skip_dirs: tuple[str, ...],
    gitignore_matches: Callable[[str], bool] | None,
) -> list[Path]:
    files: list[Path] = []
    seen: set[Path] = set()
    for root in roots:
        for path in list_files(
            project_root / root,
            extensions,
            skip_dirs=skip_dirs,
            gitignore_matches=gitignore_matches,
        ):
            if path not in seen:
                seen.add(path)
                files.append(path)
    return files


def build_reference_graph(
    project_root: Path,
    scanning_roots: Iterable[str],
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    alias_prefix: str = "@/",
    strict: bool = False,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> ReferenceGraph:
    """Read every file under ``scanning_roots`` into a reference graph."""
    graph = ReferenceGraph(alias_prefix=alias_prefix, strict=strict)
    for path in _collect_files(
        project_root,
        scanning_roots,
        tuple(extensions),
        tuple(skip_dirs),
        gitignore_matches,
    ):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("skipping unreadable file %s: %s", path, exc)
            continue
        graph.add_source(to_relative_posix(path, project_root), text)
    return graph


def find_orphans(
    project_root: Path,
    *,
    candidate_roots: Iterable[str] = ("components", "lib"),
    scanning_roots: Iterable[str] = ("app", "components", "lib", "contexts"),
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    alias_prefix: str = "@/",
    implicit_names: Iterable[str] = ("index", "ThemeProvider"),
    strict: bool = False,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> list[str]:
    """Return root-relative paths of candidate files nobody references.

    This is a heuristic audit: the default mode accepts a match on the bare
    file name, so a genuinely unused file may be missed, but a referenced
    file is rarely reported. ``strict`` matches resolved full paths only.
    """
    suffixes = tuple(extensions)
    skipped = tuple(skip_dirs)
    implicit = frozenset(implicit_names)
    graph = build_reference_graph(
        project_root,
        scanning_roots,
        extensions=suffixes,
        alias_prefix=alias_prefix,
        strict=strict,
        skip_dirs=skipped,
        gitignore_matches=gitignore_matches,
    )

    orphans: list[str] = []
    for path in _collect_files(
        project_root, candidate_roots, suffixes, skipped, gitignore_matches
    ):
        node = SourceFileNode.from_relative_path(to_relative_posix(path, project_root))
        if is_orphan(node, graph, implicit):
            orphans.append(node.relative_path)
    return sorted(orphans)


__all__ = [
    "ReferenceEdge",
    "ReferenceGraph",
    "SourceFileNode",
    "build_reference_graph",
    "build_reference_pattern",
    "extract_references",
    "find_orphans",
    "is_orphan",
    "normalize_reference",
    "resolve_reference",
]
