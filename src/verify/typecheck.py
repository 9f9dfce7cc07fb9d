"""Delegation to an external type checker."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TYPECHECK_COMMAND = ("npx", "tsc", "--noEmit")


@dataclass(frozen=True)
class TypeCheckResult:
    ok: bool
    returncode: int
    output: str = ""


def run_type_check(
    project_root: Path,
    command: Sequence[str] = DEFAULT_TYPECHECK_COMMAND,
) -> TypeCheckResult:
    """Run the type checker in ``project_root`` and wait for it to finish.

    The outcome is the subprocess exit status alone; its output is captured
    verbatim (stdout followed by stderr, undecodable bytes replaced) and
    not interpreted. There is no timeout. A missing executable is reported
    as a failed check with return code 127.
    """
    logger.debug("running type checker: %s", " ".join(command))
    try:
        completed = subprocess.run(
            list(command),
            cwd=project_root,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as exc:
        return TypeCheckResult(ok=False, returncode=127, output=f"{command[0]}: {exc}")

    output = completed.stdout + completed.stderr
    return TypeCheckResult(
        ok=completed.returncode == 0,
        returncode=completed.returncode,
        output=output,
    )


__all__ = ["DEFAULT_TYPECHECK_COMMAND", "TypeCheckResult", "run_type_check"]
