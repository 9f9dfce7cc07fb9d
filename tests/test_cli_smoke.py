from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import orjson
import pytest

from cli import main
from verify import typecheck

_FIXTURE = Path(__file__).parent / "fixtures" / "mini_app"
_RULESET_PATH = Path(__file__).parent.parent / "rulesets" / "frontend.toml"


def _copy_fixture(tmp_path: Path) -> Path:
    project = tmp_path / "mini_app"
    shutil.copytree(_FIXTURE, project)
    return project


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_full_scan_reports_open_rules_and_fails_on_high(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--no-color"])

    assert exit_code == 1
    out = capsys.readouterr().out
    assert "Codebase Health Scanner" in out
    assert "Found 2 issues:" in out
    assert out.index("[R-STORAGE] HIGH") < out.index("[R-LOG] LOW")
    assert "File: components/game/ChatPanel.tsx:4" in out
    assert "File: components/game/ChatPanel.tsx:5" in out
    assert "lib/api.ts" not in out
    assert "FAILED: 1 critical/high issues" in out


def test_quick_scan_only_runs_critical_and_high(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--quick", "--no-color"])

    assert exit_code == 1
    out = capsys.readouterr().out
    assert "[R-STORAGE] HIGH" in out
    assert "R-LOG" not in out


def test_single_rule_scan_with_low_finding_passes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--err", "R-LOG", "--no-color"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "File: components/game/ChatPanel.tsx:5" in out
    assert "R-STORAGE" not in out
    assert "PASSED" in out


def test_single_rule_scan_includes_fixed_rules(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)
    _write(project / "lib" / "legacy.ts", "export const payload: any = {};\n")

    assert main([str(project), "--no-color"]) == 1
    assert "R-ANY" not in capsys.readouterr().out

    exit_code = main([str(project), "--err", "R-ANY", "--no-color"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "[R-ANY] MEDIUM" in out
    assert "File: lib/legacy.ts:1" in out


def test_unknown_rule_id_lists_available_rules(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--err", "NOPE", "--no-color"])

    assert exit_code == 1
    err = capsys.readouterr().err
    assert "Unknown error: NOPE" in err
    assert "Available: R-LOG, R-STORAGE, R-ANY" in err


def test_list_groups_rules_without_scanning(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--list", "--no-color"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "[OPEN] R-STORAGE: Unguarded localStorage Access" in out
    assert "[FIXED] R-ANY: any Type Usage" in out
    assert "Found" not in out


def test_summary_prints_counts_per_severity(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--summary", "--no-color"])

    assert exit_code == 1
    out = capsys.readouterr().out
    for expected in ("CRITICAL: 0", "HIGH: 1", "MEDIUM: 0", "LOW: 1"):
        assert expected in out
    assert "File:" not in out


def test_orphans_are_advisory(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--orphans", "--no-color"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Found 1 orphaned files:" in out
    assert "components/Unused.tsx" in out


def test_strict_orphans_flag(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project = _copy_fixture(tmp_path)
    _write(project / "components" / "other" / "ChatPanel.tsx", "export {};\n")

    assert main([str(project), "--orphans", "--no-color"]) == 0
    assert "components/other/ChatPanel.tsx" not in capsys.readouterr().out

    assert main([str(project), "--orphans", "--strict", "--no-color"]) == 0
    assert "components/other/ChatPanel.tsx" in capsys.readouterr().out


def test_dead_links_fail_the_run(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--links", "--no-color"])

    assert exit_code == 1
    out = capsys.readouterr().out
    assert "Found 1 dead links:" in out
    assert "app/page.tsx:9" in out
    assert "Link: /leaderboard" in out
    assert "/wiki/fantasy/items/42" not in out


def test_no_dead_links_passes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project = _copy_fixture(tmp_path)
    _write(project / "app" / "leaderboard" / "page.tsx", "export default function P() {}\n")

    exit_code = main([str(project), "--links", "--no-color"])

    assert exit_code == 0
    assert "No dead links found" in capsys.readouterr().out


@pytest.mark.parametrize(("returncode", "expected_exit"), [(0, 0), (2, 1)])
def test_type_check_uses_exit_status(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    returncode: int,
    expected_exit: int,
) -> None:
    project = _copy_fixture(tmp_path)
    monkeypatch.setattr(
        typecheck.subprocess,
        "run",
        lambda command, **kwargs: subprocess.CompletedProcess(
            command, returncode, stdout="app/page.tsx(1,1): error TS2304\n", stderr=""
        ),
    )

    exit_code = main([str(project), "--type-check", "--no-color"])

    assert exit_code == expected_exit
    out = capsys.readouterr().out
    if expected_exit:
        assert "Type check failed:" in out
        assert "error TS2304" in out
    else:
        assert "Type check passed" in out


def test_type_check_command_from_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    project = _copy_fixture(tmp_path)
    _write(project / "codehealth.toml", '[typecheck]\ncommand = ["tsc", "-p", "."]\n')
    seen: list[list[str]] = []

    def fake_run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        seen.append(command)
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

    monkeypatch.setattr(typecheck.subprocess, "run", fake_run)

    assert main([str(project), "--type-check", "--no-color"]) == 0
    assert seen == [["tsc", "-p", "."]]


def test_json_scan_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--format", "json"])

    assert exit_code == 1
    payload = orjson.loads(capsys.readouterr().out)
    assert [(f["rule_id"], f["line_number"]) for f in payload["findings"]] == [
        ("R-STORAGE", 4),
        ("R-LOG", 5),
    ]
    assert payload["counts"] == {"CRITICAL": 0, "HIGH": 1, "MEDIUM": 0, "LOW": 1}
    assert payload["rules"] == ["R-LOG", "R-STORAGE"]
    assert payload["errors"] == []


def test_json_orphans_and_links(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    assert main([str(project), "--orphans", "--format", "json"]) == 0
    assert orjson.loads(capsys.readouterr().out) == {"orphans": ["components/Unused.tsx"]}

    assert main([str(project), "--links", "--format", "json"]) == 1
    assert orjson.loads(capsys.readouterr().out) == {
        "dead_links": [
            {
                "file": "app/page.tsx",
                "line": 9,
                "link": "/leaderboard",
                "reason": "Route not found in app/",
            }
        ]
    }


def test_missing_rule_definitions_warn_and_pass(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path / "app" / "page.tsx", 'console.log("x");\n')

    exit_code = main([str(tmp_path), "--no-color"])

    assert exit_code == 0
    captured = capsys.readouterr()
    assert "rule definitions not found" in captured.err
    assert "No issues found!" in captured.out


def test_malformed_pattern_is_reported_and_fails(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path / "app" / "page.tsx", "export {};\n")
    _write(
        tmp_path / "codehealth-rules.toml",
        """
[rules.BROKEN]
severity = "LOW"
patterns = ['fetch\\((']
search_paths = ["app/"]

[rules.GOOD]
severity = "LOW"
patterns = ['never-matches']
search_paths = ["app/"]
""",
    )

    exit_code = main([str(tmp_path), "--no-color"])

    assert exit_code == 1
    captured = capsys.readouterr()
    assert "rule BROKEN" in captured.err
    assert "invalid regular expression" in captured.err
    assert "No issues found!" in captured.out


def test_unknown_rule_matching_a_broken_rule_is_not_reported_twice(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(
        tmp_path / "codehealth-rules.toml",
        "[rules.BROKEN]\nseverity = \"LOW\"\npatterns = ['(']\nsearch_paths = [\"app/\"]\n",
    )

    exit_code = main([str(tmp_path), "--err", "BROKEN", "--no-color"])

    assert exit_code == 1
    err = capsys.readouterr().err
    assert "rule BROKEN" in err
    assert "Unknown error" not in err


@pytest.mark.parametrize(
    ("severity", "expected_exit"),
    [("CRITICAL", 1), ("HIGH", 1), ("MEDIUM", 0), ("LOW", 0)],
)
def test_exit_status_follows_highest_severity(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    severity: str,
    expected_exit: int,
) -> None:
    _write(
        tmp_path / "codehealth-rules.toml",
        f"""
[rules.R1]
title = "Console.log"
severity = "{severity}"
status = "OPEN"
patterns = ['console\\.log\\(']
search_paths = ["app/"]
what_to_look_for = "Remove console.log"
""",
    )
    _write(tmp_path / "app" / "page.tsx", "// filler\n" * 9 + 'console.log("debug");\n')

    exit_code = main([str(tmp_path), "--err", "R1", "--no-color"])

    assert exit_code == expected_exit
    out = capsys.readouterr().out
    assert "Found 1 issues:" in out
    assert f"[R1] {severity}" in out
    assert "File: app/page.tsx:10" in out


def test_rules_flag_overrides_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)

    exit_code = main([str(project), "--list", "--rules", str(_RULESET_PATH), "--no-color"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "TLF-001" in out
    assert "R-LOG" not in out


def test_rules_file_from_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    project = _copy_fixture(tmp_path)
    (project / "codehealth-rules.toml").rename(project / "health.toml")
    _write(project / "codehealth.toml", 'rules_file = "health.toml"\n')

    assert main([str(project), "--list", "--no-color"]) == 0
    assert "R-STORAGE" in capsys.readouterr().out


def test_rules_file_escaping_root_is_rejected(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    project = _copy_fixture(tmp_path)
    _write(project / "codehealth.toml", 'rules_file = "../outside.toml"\n')

    exit_code = main([str(project), "--no-color"])

    assert exit_code == 1
    assert "escapes the project root" in capsys.readouterr().err


def test_invalid_config_is_reported(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path / "codehealth.toml", "unknown_key = 1\n")

    exit_code = main([str(tmp_path), "--no-color"])

    assert exit_code == 1
    assert "Invalid config in" in capsys.readouterr().err


def test_modes_are_mutually_exclusive(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([str(tmp_path), "--orphans", "--links"])

    assert exc_info.value.code == 2


def test_rule_records_outside_rules_table_fail_the_run(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(
        tmp_path / "codehealth-rules.toml",
        "[R1]\nseverity = \"HIGH\"\npatterns = ['console\\.log\\(']\nsearch_paths = [\"app/\"]\n",
    )
    _write(tmp_path / "app" / "page.tsx", 'console.log("x");\n')

    exit_code = main([str(tmp_path), "--no-color"])

    assert exit_code == 1
    captured = capsys.readouterr()
    assert "No [rules] table" in captured.err
    assert "PASSED" not in captured.out
