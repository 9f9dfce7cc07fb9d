"""Terminal reporting for codehealth results."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

from rules.models import severities

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from routes.matcher import DeadLink
    from rules.models import RuleError, Severity
    from rules.store import RuleSet
    from scan.findings import Finding
    from verify.typecheck import TypeCheckResult

DEFAULT_THEME = Theme(
    {
        "severity.critical": "bold red",
        "severity.high": "red",
        "severity.medium": "yellow",
        "severity.low": "blue",
        "status.open": "yellow",
        "status.fixed": "green",
        "heading": "bold",
        "info": "cyan",
        "ok": "green",
        "fail": "red",
        "warning": "yellow",
    }
)


def make_console(
    *,
    file: TextIO | None = None,
    color: bool = True,
    theme: Theme = DEFAULT_THEME,
) -> Console:
    """Create a console bound to ``theme``; colour is dropped when disabled."""
    return Console(
        file=file,
        theme=theme,
        no_color=not color,
        highlight=False,
        soft_wrap=True,
        emoji=False,
    )


def _severity_style(severity: Severity) -> str:
    return f"severity.{severity.value.lower()}"


def count_by_severity(findings: Sequence[Finding]) -> dict[Severity, int]:
    counts = Counter(finding.severity for finding in findings)
    return {severity: counts.get(severity, 0) for severity in severities()}


def blocking_count(findings: Sequence[Finding]) -> int:
    return sum(1 for finding in findings if finding.severity.is_blocking)


class Reporter:
    """Renders results to an output console and an error console."""

    def __init__(self, console: Console, err_console: Console | None = None) -> None:
        self.console = console
        self.err_console = err_console or console

    def header(self, root: Path) -> None:
        self.console.print("[heading]Codebase Health Scanner[/heading]")
        self.console.print(f"Scanning: {escape(str(root))}")

    def info(self, message: str) -> None:
        self.console.print(f"\n[info]{escape(message)}[/info]")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[warning]warning: {escape(message)}[/warning]")

    def error(self, message: str) -> None:
        self.err_console.print(f"[fail]error: {escape(message)}[/fail]")

    def rule_errors(self, errors: Sequence[RuleError]) -> None:
        for rule_error in errors:
            self.error(f"{rule_error.location()}: {rule_error.message}")

    def unknown_rule(self, rule_id: str, available: Sequence[str]) -> None:
        self.err_console.print(f"[fail]Unknown error: {escape(rule_id)}[/fail]")
        self.err_console.print(f"Available: {escape(', '.join(available))}")

    def finding(self, finding: Finding) -> None:
        style = _severity_style(finding.severity)
        self.console.print(
            f"\n[{style}]\\[{escape(finding.rule_id)}] {finding.severity.value}[/{style}]"
        )
        self.console.print(f"  File: {escape(finding.location())}")
        self.console.print(f"  Code: {escape(finding.excerpt)}")
        self.console.print(f"  Issue: {escape(finding.summary)}")

    def findings(self, findings: Sequence[Finding]) -> None:
        """Print every finding, grouped from most to least severe."""
        if not findings:
            self.console.print("\n[ok]No issues found![/ok]")
            return
        self.console.print(f"\n[heading]Found {len(findings)} issues:[/heading]")
        for severity in severities():
            for finding in findings:
                if finding.severity is severity:
                    self.finding(finding)

    def summary(self, findings: Sequence[Finding]) -> None:
        self.console.print("\n[heading]Summary:[/heading]")
        for severity, count in count_by_severity(findings).items():
            style = _severity_style(severity)
            self.console.print(f"  [{style}]{severity.value}: {count}[/{style}]")

    def verdict(self, findings: Sequence[Finding]) -> None:
        blocking = blocking_count(findings)
        if blocking:
            self.console.print(f"\n[fail]FAILED: {blocking} critical/high issues[/fail]")
        else:
            self.console.print("\n[ok]PASSED[/ok]")

    def rules(self, rule_set: RuleSet) -> None:
        """List every loaded rule grouped by severity with its lifecycle."""
        if not rule_set.rules:
            self.console.print("\n[warning]No rules defined[/warning]")
            return
        for severity in severities():
            grouped = [rule for rule in rule_set.rules.values() if rule.severity is severity]
            if not grouped:
                continue
            style = _severity_style(severity)
            self.console.print(f"\n[{style}]{severity.value}[/{style}]")
            for rule in grouped:
                status = rule.lifecycle.value
                status_style = f"status.{status.lower()}"
                self.console.print(
                    f"  [{status_style}]\\[{status}][/{status_style}] "
                    f"{escape(rule.id)}: {escape(rule.title)}"
                )

    def orphans(self, orphans: Sequence[str]) -> None:
        if not orphans:
            self.console.print("\n[ok]No orphaned files found[/ok]")
            return
        self.console.print(f"\n[warning]Found {len(orphans)} orphaned files:[/warning]")
        for orphan in orphans:
            self.console.print(f"  [warning]{escape(orphan)}[/warning]")
        self.console.print(
            "\n[warning]WARNING: These files are not imported anywhere[/warning]"
        )

    def dead_links(self, dead_links: Sequence[DeadLink]) -> None:
        if not dead_links:
            self.console.print("\n[ok]No dead links found[/ok]")
            return
        self.console.print(f"\n[warning]Found {len(dead_links)} dead links:[/warning]")
        for dead in dead_links:
            self.console.print(f"  [warning]{escape(dead.location())}[/warning]")
            self.console.print(f"    Link: {escape(dead.link)}")
            self.console.print(f"    Issue: {escape(dead.reason)}")

    def type_check(self, result: TypeCheckResult) -> None:
        if result.ok:
            self.console.print("[ok]Type check passed[/ok]")
            return
        self.console.print("[fail]Type check failed:[/fail]")
        if result.output:
            # Subprocess output is passed through untouched.
            self.console.out(result.output, highlight=False)


__all__ = [
    "DEFAULT_THEME",
    "Reporter",
    "blocking_count",
    "count_by_severity",
    "make_console",
]
