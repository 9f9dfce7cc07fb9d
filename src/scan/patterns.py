"""Line-oriented regex scanning of source files against defect rules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rules.config import DEFAULT_EXTENSIONS
from scan.files import DEFAULT_SKIP_DIRS, list_files
from scan.findings import Finding, make_excerpt
from utils import to_relative_posix

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence
    from pathlib import Path

    from rules.models import DefectRule

logger = logging.getLogger(__name__)


def _is_excluded(rule: DefectRule, text: str) -> bool:
    return any(pattern.search(text) for pattern in rule.exclude_patterns)


def _context_window(lines: Sequence[str], index: int, radius: int) -> str:
    start = max(0, index - radius)
    end = min(len(lines), index + radius + 1)
    return "\n".join(lines[start:end])


def scan_lines(rule: DefectRule, lines: Sequence[str], file_path: str) -> list[Finding]:
    """Apply ``rule`` to already-split source lines.

    Each line is tested against the match patterns in order. On the first
    match, the exclude patterns are tested against the surrounding window
    (or the whole file when ``rule.whole_file_exclude`` is set); if none
    hit, a single finding is recorded and the remaining patterns are not
    tried for that line.
    """
    if not rule.match_patterns:
        return []
    if rule.whole_file_exclude and _is_excluded(rule, "\n".join(lines)):
        return []

    findings: list[Finding] = []
    for index, line in enumerate(lines):
        for pattern in rule.match_patterns:
            if not pattern.search(line):
                continue
            if not rule.whole_file_exclude and _is_excluded(
                rule, _context_window(lines, index, rule.context_lines)
            ):
                continue
            findings.append(
                Finding(
                    rule_id=rule.id,
                    severity=rule.severity,
                    file_path=file_path,
                    line_number=index + 1,
                    excerpt=make_excerpt(line),
                    summary=rule.summary,
                )
            )
            break
    return findings


def _read_lines(path: Path) -> list[str] | None:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("skipping unreadable file %s: %s", path, exc)
        return None
    return text.split("\n")


def iter_scope_files(
    rule: DefectRule,
    project_root: Path,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> Iterator[Path]:
    """Yield each file named by ``rule.search_scope`` exactly once.

    Scope entries that are files are yielded as-is (whatever their
    extension); directories are walked for ``extensions``; entries that do
    not exist contribute nothing.
    """
    suffixes = tuple(extensions)
    seen: set[Path] = set()
    for entry in rule.search_scope:
        scope_path = project_root / entry
        if scope_path.is_file():
            candidates: Iterable[Path] = (scope_path,)
        elif scope_path.is_dir():
            candidates = list_files(
                scope_path,
                suffixes,
                skip_dirs=skip_dirs,
                gitignore_matches=gitignore_matches,
            )
        else:
            logger.debug("rule %s: scope path %s does not exist", rule.id, entry)
            continue

        for path in candidates:
            key = path.resolve()
            if key in seen:
                continue
            seen.add(key)
            yield path


def scan_rule(
    rule: DefectRule,
    project_root: Path,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> list[Finding]:
    """Scan every file in the rule's search scope.

    Unreadable files are skipped without aborting the scan.
    """
    if not rule.is_scannable:
        logger.debug("rule %s has no patterns or no scope; skipping", rule.id)
        return []

    findings: list[Finding] = []
    for path in iter_scope_files(
        rule,
        project_root,
        extensions=extensions,
        skip_dirs=skip_dirs,
        gitignore_matches=gitignore_matches,
    ):
        lines = _read_lines(path)
        if lines is None:
            continue
        findings.extend(scan_lines(rule, lines, to_relative_posix(path, project_root)))
    return findings


def scan_rules(
    rules: Iterable[DefectRule],
    project_root: Path,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    gitignore_matches: Callable[[str], bool] | None = None,
) -> list[Finding]:
    """Scan several rules and merge their findings.

    The result is ordered by severity (most severe first), then by discovery
    order: rule order, file order, line number.
    """
    suffixes = tuple(extensions)
    skipped = tuple(skip_dirs)
    findings: list[Finding] = []
    for rule in rules:
        findings.extend(
            scan_rule(
                rule,
                project_root,
                extensions=suffixes,
                skip_dirs=skipped,
                gitignore_matches=gitignore_matches,
            )
        )
    return sorted(findings, key=lambda finding: finding.severity.rank)


__all__ = ["iter_scope_files", "scan_lines", "scan_rule", "scan_rules"]
