"""Command-line interface for codehealth."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from graph.references import find_orphans
from report.console import Reporter, blocking_count, count_by_severity, make_console
from report.serialize import dumps, rules_payload
from routes.matcher import find_dead_links
from rules.config import ConfigError, load_config, resolve_rules_file
from rules.models import Lifecycle, Severity
from rules.store import load_rules
from scan.files import build_gitignore_matcher
from scan.patterns import scan_rules
from verify.typecheck import run_type_check

if TYPE_CHECKING:
    from collections.abc import Callable

    from rules.config import HealthConfig
    from rules.models import DefectRule
    from rules.store import RuleSet

QUICK_SEVERITIES = frozenset({Severity.CRITICAL, Severity.HIGH})


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codehealth",
        description="Scan a front-end source tree for known defect patterns.",
    )
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root (default: .)",
    )

    verbs = parser.add_mutually_exclusive_group()
    verbs.add_argument(
        "--quick",
        action="store_true",
        help="Scan only OPEN rules of severity CRITICAL or HIGH",
    )
    verbs.add_argument(
        "--err",
        metavar="RULE_ID",
        default=None,
        help="Scan exactly one rule",
    )
    verbs.add_argument(
        "--list",
        dest="list_rules",
        action="store_true",
        help="List rules grouped by severity without scanning",
    )
    verbs.add_argument(
        "--type-check",
        action="store_true",
        help="Run the external type checker only",
    )
    verbs.add_argument(
        "--orphans",
        action="store_true",
        help="Report source files that nothing imports",
    )
    verbs.add_argument(
        "--links",
        action="store_true",
        help="Report internal links that match no route",
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print per-severity counts instead of every finding",
    )
    parser.add_argument(
        "--rules",
        default=None,
        help="Rule definition file (default: rules_file from codehealth.toml)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="With --orphans, match references on full paths only",
    )
    parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable coloured output",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details to stderr",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _write_json(payload: object) -> None:
    sys.stdout.write(dumps(payload))
    sys.stdout.write("\n")


def _gitignore_matcher(root: Path, config: HealthConfig) -> Callable[[str], bool] | None:
    if not (config.respect_gitignore or config.nested_gitignore):
        return None
    return build_gitignore_matcher(root, nested_gitignore=config.nested_gitignore)


def _resolve_rules_path(root: Path, config: HealthConfig, rules: str | None) -> Path:
    if rules is None:
        return resolve_rules_file(root, config.rules_file)
    return Path(rules).expanduser().resolve()


def _handle_type_check(
    root: Path, config: HealthConfig, reporter: Reporter, as_json: bool
) -> int:
    if not as_json:
        reporter.info("Running type check...")
    result = run_type_check(root, config.typecheck.command)
    if as_json:
        _write_json(result)
    else:
        reporter.type_check(result)
    return 0 if result.ok else 1


def _handle_orphans(
    root: Path,
    config: HealthConfig,
    reporter: Reporter,
    *,
    strict: bool,
    as_json: bool,
) -> int:
    if not as_json:
        reporter.info("Scanning for orphaned files...")
    orphans = find_orphans(
        root,
        candidate_roots=config.orphans.candidate_roots,
        scanning_roots=config.orphans.scanning_roots,
        extensions=config.extensions,
        alias_prefix=config.orphans.alias_prefix,
        implicit_names=config.orphans.implicit_names,
        strict=strict or config.orphans.strict,
        skip_dirs=config.skip_dirs,
        gitignore_matches=_gitignore_matcher(root, config),
    )
    if as_json:
        _write_json({"orphans": orphans})
    else:
        reporter.orphans(orphans)
    # Orphans are advisory; they never fail the run.
    return 0


def _handle_links(
    root: Path, config: HealthConfig, reporter: Reporter, as_json: bool
) -> int:
    if not as_json:
        reporter.info("Checking for dead links...")
    dead_links = find_dead_links(
        root,
        app_dir=config.links.app_dir,
        page_files=config.links.page_files,
        link_roots=config.links.link_roots,
        extensions=config.extensions,
        link_attributes=config.links.link_attributes,
        public_dir=config.links.public_dir,
        skip_dirs=config.skip_dirs,
        gitignore_matches=_gitignore_matcher(root, config),
    )
    if as_json:
        _write_json({"dead_links": dead_links})
    else:
        reporter.dead_links(dead_links)
    return 1 if dead_links else 0


def _handle_list(rule_set: RuleSet, reporter: Reporter, as_json: bool) -> int:
    if as_json:
        _write_json(rules_payload(rule_set))
    else:
        reporter.rules(rule_set)
    return 1 if rule_set.errors else 0


def _select_rules(
    rule_set: RuleSet, *, err: str | None, quick: bool
) -> list[DefectRule]:
    if err is not None:
        return [rule_set.rules[err]]
    if quick:
        return rule_set.select(lifecycle=Lifecycle.OPEN, severity_in=QUICK_SEVERITIES)
    return rule_set.open_rules()


def _handle_scan(
    root: Path,
    config: HealthConfig,
    rule_set: RuleSet,
    reporter: Reporter,
    args: argparse.Namespace,
) -> int:
    as_json = args.format == "json"
    if args.err is not None and args.err not in rule_set.rules:
        # An id that failed to load has already been reported as a rule error.
        if not any(error.rule_id == args.err for error in rule_set.errors):
            reporter.unknown_rule(args.err, rule_set.ids())
        return 1

    selected = _select_rules(rule_set, err=args.err, quick=args.quick)
    findings = scan_rules(
        selected,
        root,
        extensions=config.extensions,
        skip_dirs=config.skip_dirs,
        gitignore_matches=_gitignore_matcher(root, config),
    )

    if as_json:
        counts = count_by_severity(findings)
        _write_json(
            {
                "findings": findings,
                "counts": {severity.value: count for severity, count in counts.items()},
                "rules": [rule.id for rule in selected],
                "errors": list(rule_set.errors),
            }
        )
    else:
        if args.summary:
            reporter.summary(findings)
        else:
            reporter.findings(findings)
        reporter.verdict(findings)

    return 1 if blocking_count(findings) or rule_set.errors else 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    root = Path(args.root).expanduser().resolve()
    color = not args.no_color
    reporter = Reporter(
        make_console(color=color),
        make_console(file=sys.stderr, color=color),
    )
    as_json = args.format == "json"

    if not as_json:
        reporter.header(root)

    try:
        config = load_config(root)
    except ConfigError as exc:
        reporter.error(str(exc))
        return 1

    if args.type_check:
        return _handle_type_check(root, config, reporter, as_json)

    if args.orphans:
        return _handle_orphans(root, config, reporter, strict=args.strict, as_json=as_json)

    if args.links:
        return _handle_links(root, config, reporter, as_json)

    try:
        rules_path = _resolve_rules_path(root, config, args.rules)
        rule_set = load_rules(rules_path)
    except ConfigError as exc:
        reporter.error(str(exc))
        return 1

    if rule_set.missing:
        reporter.warning(f"rule definitions not found: {rules_path}")
    reporter.rule_errors(rule_set.errors)

    if args.list_rules:
        return _handle_list(rule_set, reporter, as_json)

    return _handle_scan(root, config, rule_set, reporter, args)


if __name__ == "__main__":
    raise SystemExit(main())
