"""Reference graph construction and orphan detection."""

from graph.references import (
    ReferenceGraph,
    SourceFileNode,
    build_reference_graph,
    find_orphans,
)

__all__ = [
    "ReferenceGraph",
    "SourceFileNode",
    "build_reference_graph",
    "find_orphans",
]
