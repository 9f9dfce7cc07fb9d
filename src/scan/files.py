"""File scanning utilities for codehealth."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_SKIP_DIRS = frozenset({"node_modules"})


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _should_descend(name: str, skip_dirs: frozenset[str]) -> bool:
    return not name.startswith(".") and name not in skip_dirs


def _should_include_file(
    path: Path,
    root: Path,
    extensions: tuple[str, ...],
    gitignore_matches: Callable[[str], bool] | None,
) -> bool:
    """Check if a file should be included based on all filtering rules."""
    if not path.name.endswith(extensions):
        return False

    if path.is_symlink() and not _is_within_root(path, root):
        return False

    return gitignore_matches is None or not gitignore_matches(str(path))


def _iter_gitignore_files(root: Path) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    gitignore_paths = [root / ".gitignore"]
    gitignore_paths.extend(root.rglob(".gitignore"))
    unique_paths = {
        path for path in gitignore_paths if path.is_file() and not path.is_symlink()
    }
    return sorted(unique_paths, key=lambda p: p.relative_to(root).as_posix())


def build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    """Build a matcher for the project's .gitignore file(s), if any exist."""
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def _log_walk_error(exc: OSError) -> None:
    logger.debug("skipping unreadable directory: %s", exc)


def list_files(
    root: Path,
    extensions: Iterable[str],
    *,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> Iterator[Path]:
    """Lazily yield every file under ``root`` with one of ``extensions``.

    Args:
        root: Directory to walk. A missing or unreadable root yields nothing.
        extensions: Case-sensitive file name suffixes (e.g. ``".tsx"``).
        skip_dirs: Directory names pruned before descent, in addition to any
            directory whose name starts with ``.``.
        gitignore_matches: Optional predicate; files it matches are skipped.

    Yields:
        Absolute paths, directories and files visited in sorted name order
        so repeated walks over an unchanged tree are identical. Nothing is
        cached between calls.
    """
    suffixes = tuple(extensions)
    skipped = frozenset(skip_dirs)
    if not suffixes:
        return

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dirnames[:] = sorted(name for name in dirnames if _should_descend(name, skipped))
        current = Path(dirpath)
        for name in sorted(filenames):
            path = current / name
            if _should_include_file(path, root, suffixes, gitignore_matches):
                yield path


__all__ = ["DEFAULT_SKIP_DIRS", "build_gitignore_matcher", "list_files"]
