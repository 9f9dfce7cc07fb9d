"""Route derivation from the routing directory and dead link detection."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from rules.config import DEFAULT_EXTENSIONS
from scan.files import DEFAULT_SKIP_DIRS, list_files
from utils import split_segments, to_relative_posix

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PAGE_FILES = ("page.tsx", "page.ts", "page.jsx", "page.js", "route.ts", "route.js")
DEFAULT_LINK_ATTRIBUTES = ("href", "to")


class SegmentKind(str, Enum):
    LITERAL = "literal"
    WILDCARD = "wildcard"
    CATCH_ALL = "catch_all"
    OPTIONAL_CATCH_ALL = "optional_catch_all"


@dataclass(frozen=True)
class RouteSegment:
    kind: SegmentKind
    value: str

    @classmethod
    def parse(cls, text: str) -> RouteSegment:
        if text.startswith("[[...") and text.endswith("]]"):
            return cls(SegmentKind.OPTIONAL_CATCH_ALL, text)
        if text.startswith("[...") and text.endswith("]"):
            return cls(SegmentKind.CATCH_ALL, text)
        if text.startswith("[") and text.endswith("]"):
            return cls(SegmentKind.WILDCARD, text)
        return cls(SegmentKind.LITERAL, text)


@dataclass(frozen=True)
class RouteTemplate:
    """A statically addressable path; segments are literal or placeholders."""

    segments: tuple[RouteSegment, ...]

    @property
    def path_template(self) -> str:
        return "/" + "/".join(segment.value for segment in self.segments)

    @property
    def is_static(self) -> bool:
        return all(segment.kind is SegmentKind.LITERAL for segment in self.segments)

    def matches(self, link_segments: Sequence[str]) -> bool:
        """Check a link's segments against this template.

        Literal segments must be equal, ``[x]`` accepts any single segment,
        ``[...x]`` one or more trailing segments and ``[[...x]]`` zero or more.
        Otherwise the segment counts must agree.
        """
        for index, segment in enumerate(self.segments):
            if segment.kind is SegmentKind.OPTIONAL_CATCH_ALL:
                return True
            if segment.kind is SegmentKind.CATCH_ALL:
                return len(link_segments) > index
            if index >= len(link_segments):
                return False
            if segment.kind is SegmentKind.LITERAL and segment.value != link_segments[index]:
                return False
        return len(link_segments) == len(self.segments)


def route_matches(template: RouteTemplate, link: str) -> bool:
    """Check a normalized internal link path against one route template.

    Examples:
        >>> route_matches(parse_route("wiki/[land]"), "/wiki/fantasy")
        True
        >>> route_matches(parse_route("wiki/[land]"), "/wiki")
        False
    """
    return template.matches(split_segments(link))


def is_known_route(routes: Iterable[RouteTemplate], link: str) -> bool:
    """True when ``link`` is the root or matches any of ``routes``."""
    normalized = normalize_link(link)
    if normalized == "/":
        return True
    return any(route_matches(route, normalized) for route in routes)


def _is_url_segment(name: str) -> bool:
    # Route groups "(name)" and parallel-route slots "@name" do not appear in URLs.
    return not (name.startswith("(") and name.endswith(")")) and not name.startswith("@")


def parse_route(directory: str) -> RouteTemplate | None:
    """Convert a routing-root-relative directory into a route template.

    Returns None for private folders (``_name``), which are not routable.

    Examples:
        >>> parse_route("wiki/[land]").path_template
        '/wiki/[land]'
        >>> parse_route("(marketing)/about").path_template
        '/about'
        >>> parse_route("").path_template
        '/'
    """
    parts = split_segments(directory)
    if any(part.startswith("_") for part in parts):
        return None
    segments = tuple(RouteSegment.parse(part) for part in parts if _is_url_segment(part))
    return RouteTemplate(segments)


class LinkClass(str, Enum):
    EXACT = "exact"
    WILDCARD = "wildcard"
    STATIC_ASSET = "static_asset"
    UNCHECKED = "unchecked"
    DEAD = "dead"


def normalize_link(target: str) -> str:
    """Strip query string, fragment and trailing slashes from an internal link.

    Examples:
        >>> normalize_link("/wiki/fantasy?tab=lore#top")
        '/wiki/fantasy'
        >>> normalize_link("/hiscores/")
        '/hiscores'
    """
    path = target.split("?", 1)[0].split("#", 1)[0]
    stripped = path.rstrip("/")
    return stripped or "/"


def is_checkable(target: str) -> bool:
    """Only literal, internal, absolute targets can be validated statically."""
    if target.startswith("#") or "{" in target or "$" in target:
        return False
    return target.startswith("/") and not target.startswith("//")


def classify_link(
    target: str,
    routes: Iterable[RouteTemplate],
    static_assets: frozenset[str] = frozenset(),
) -> LinkClass:
    """Classify a literal link target against the known routes."""
    if not is_checkable(target):
        return LinkClass.UNCHECKED

    normalized = normalize_link(target)
    if normalized == "/":
        return LinkClass.EXACT

    link_segments = split_segments(normalized)
    route_list = list(routes)
    if any(route.is_static and route.matches(link_segments) for route in route_list):
        return LinkClass.EXACT
    if is_known_route(route_list, normalized):
        return LinkClass.WILDCARD
    if normalized in static_assets:
        return LinkClass.STATIC_ASSET
    return LinkClass.DEAD


def build_link_pattern(attributes: Iterable[str]) -> re.Pattern[str]:
    """Compile the regex capturing quoted literal values of link attributes.

    Matches ``href="/x"``, ``to='/x'``, ``href=`/x``` and ``href={"/x"}``.
    """
    names = "|".join(re.escape(name) for name in attributes)
    return re.compile(rf"""(?<![\w-])(?:{names})=\{{?\s*["'`]([^"'`]+)["'`]""")


_DEFAULT_LINK_PATTERN = build_link_pattern(DEFAULT_LINK_ATTRIBUTES)


def extract_link_targets(
    line: str, pattern: re.Pattern[str] = _DEFAULT_LINK_PATTERN
) -> list[str]:
    return [match.group(1) for match in pattern.finditer(line)]


@dataclass(frozen=True)
class LinkReference:
    """A literal navigation target found in source text."""

    file_path: str
    line_number: int
    target: str


def extract_link_references(
    text: str, file_path: str, pattern: re.Pattern[str]
) -> list[LinkReference]:
    """Collect link targets line by line, keeping 1-based line numbers."""
    return [
        LinkReference(file_path, index + 1, target)
        for index, line in enumerate(text.split("\n"))
        for target in extract_link_targets(line, pattern)
    ]


class DeadLink(BaseModel):
    """An internal link target that matches no known route."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int
    link: str
    reason: str

    def location(self) -> str:
        return f"{self.file}:{self.line}"


def derive_routes(
    app_root: Path,
    page_files: Iterable[str] = DEFAULT_PAGE_FILES,
    *,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> list[RouteTemplate]:
    """Derive one route per page-entry file under ``app_root``."""
    names = tuple(page_files)
    routes: dict[str, RouteTemplate] = {}
    for path in list_files(
        app_root, names, skip_dirs=skip_dirs, gitignore_matches=gitignore_matches
    ):
        if path.name not in names:
            continue
        route = parse_route(to_relative_posix(path.parent, app_root))
        if route is not None:
            routes.setdefault(route.path_template, route)
    return [routes[key] for key in sorted(routes)]


def _collect_static_assets(public_root: Path) -> frozenset[str]:
    if not public_root.is_dir():
        return frozenset()
    assets: set[str] = set()
    try:
        for path in public_root.rglob("*"):
            if path.is_file():
                assets.add("/" + path.relative_to(public_root).as_posix())
    except OSError as exc:
        logger.debug("cannot list static assets under %s: %s", public_root, exc)
    return frozenset(assets)


def find_dead_links(
    project_root: Path,
    *,
    app_dir: str = "app",
    page_files: Iterable[str] = DEFAULT_PAGE_FILES,
    link_roots: Iterable[str] = ("app", "components"),
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    link_attributes: Iterable[str] = DEFAULT_LINK_ATTRIBUTES,
    public_dir: str | None = "public",
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> list[DeadLink]:
    """Report literal internal link targets that match no derived route.

    Targets that cannot be judged statically (anchors, interpolated values,
    external URLs) are never reported.
    """
    skipped = tuple(skip_dirs)
    routes = derive_routes(
        project_root / app_dir,
        page_files,
        skip_dirs=skipped,
        gitignore_matches=gitignore_matches,
    )
    logger.debug("derived %d route(s) from %s", len(routes), app_dir)
    static_assets = (
        _collect_static_assets(project_root / public_dir) if public_dir else frozenset()
    )
    pattern = build_link_pattern(link_attributes)
    reason = f"Route not found in {app_dir}/"

    dead: list[DeadLink] = []
    seen: set[Path] = set()
    suffixes = tuple(extensions)
    for root in link_roots:
        for path in list_files(
            project_root / root,
            suffixes,
            skip_dirs=skipped,
            gitignore_matches=gitignore_matches,
        ):
            if path in seen:
                continue
            seen.add(path)
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.debug("skipping unreadable file %s: %s", path, exc)
                continue
            relative = to_relative_posix(path, project_root)
            for ref in extract_link_references(text, relative, pattern):
                if classify_link(ref.target, routes, static_assets) is LinkClass.DEAD:
                    dead.append(
                        DeadLink(
                            file=ref.file_path,
                            line=ref.line_number,
                            link=ref.target,
                            reason=reason,
                        )
                    )
    return dead


__all__ = [
    "DeadLink",
    "LinkClass",
    "LinkReference",
    "RouteSegment",
    "RouteTemplate",
    "SegmentKind",
    "build_link_pattern",
    "classify_link",
    "derive_routes",
    "extract_link_references",
    "extract_link_targets",
    "find_dead_links",
    "is_known_route",
    "normalize_link",
    "parse_route",
    "route_matches",
]
