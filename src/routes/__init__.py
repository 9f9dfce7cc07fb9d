"""Route derivation and dead link detection."""

from routes.matcher import (
    DeadLink,
    LinkClass,
    RouteTemplate,
    classify_link,
    derive_routes,
    find_dead_links,
    parse_route,
)

__all__ = [
    "DeadLink",
    "LinkClass",
    "RouteTemplate",
    "classify_link",
    "derive_routes",
    "find_dead_links",
    "parse_route",
]
