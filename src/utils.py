"""Shared utilities for codehealth."""

from __future__ import annotations

import re
from pathlib import Path

SOURCE_EXTENSION_PATTERN = re.compile(r"\.(?:tsx?|jsx?)$")


def to_relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` as a POSIX string.

    Paths outside ``root`` are returned unchanged (as POSIX) so callers never
    need to handle ``ValueError``.

    Examples:
        >>> to_relative_posix(Path("/repo/app/page.tsx"), Path("/repo"))
        'app/page.tsx'
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def strip_source_extension(path: str) -> str:
    """Drop a trailing ``.ts``/``.tsx``/``.js``/``.jsx`` extension.

    Examples:
        >>> strip_source_extension("components/game/ChatPanel.tsx")
        'components/game/ChatPanel'
        >>> strip_source_extension("lib/api")
        'lib/api'
    """
    return SOURCE_EXTENSION_PATTERN.sub("", path)


def split_segments(path: str) -> list[str]:
    """Split a slash-separated path into non-empty segments, dropping ``.``.

    Examples:
        >>> split_segments("/wiki//fantasy/")
        ['wiki', 'fantasy']
        >>> split_segments(".")
        []
    """
    return [part for part in path.replace("\\", "/").split("/") if part and part != "."]
