"""Tree walking and pattern scanning for codehealth."""

from scan.files import build_gitignore_matcher, list_files
from scan.findings import Finding
from scan.patterns import scan_rule, scan_rules

__all__ = [
    "Finding",
    "build_gitignore_matcher",
    "list_files",
    "scan_rule",
    "scan_rules",
]
