"""Run a sequence of gate commands, stopping at the first critical failure."""

import logging
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Check:
    name: str
    command: list[str]
    critical: bool = True


@dataclass
class CheckResult:
    name: str
    passed: bool
    critical: bool
    duration: float
    error: str | None = None


def default_checks(lint_command: str = "", typecheck_command: str = "") -> list[Check]:
    """Lint, type check, tests, coverage, then the security scan.

    Lint and type check are shell-style command lines; an empty one is skipped.
    """
    python = sys.executable
    checks = []
    if lint_command.strip():
        checks.append(Check("Lint", shlex.split(lint_command)))
    if typecheck_command.strip():
        checks.append(Check("Type Check", shlex.split(typecheck_command)))
    return checks + [
        Check("Unit Tests", [python, "-m", "pytest", "-q"]),
        Check("Test Coverage", [python, "-m", "shogun.cli", "gates", "coverage"]),
        Check("Security Scan", [python, "-m", "shogun.cli", "gates", "security"], critical=False),
    ]


def run_check(check: Check, cwd=None) -> CheckResult:
    start = time.monotonic()
    try:
        subprocess.run(check.command, cwd=cwd, check=True)
        error = None
    except subprocess.CalledProcessError as e:
        error = f"exit code {e.returncode}"
    except FileNotFoundError as e:
        error = f"command not found: {e.filename}"
    duration = time.monotonic() - start
    if error:
        logger.debug("%s failed: %s", check.name, error)
    return CheckResult(
        name=check.name,
        passed=error is None,
        critical=check.critical,
        duration=duration,
        error=error,
    )


def run_checks(checks: list[Check], cwd=None, on_result=None) -> list[CheckResult]:
    """Run ``checks`` in order. A failed critical check ends the run."""
    results = []
    for check in checks:
        result = run_check(check, cwd=cwd)
        results.append(result)
        if on_result is not None:
            on_result(result)
        if not result.passed and check.critical:
            break
    return results


def critical_failure(results: list[CheckResult]) -> CheckResult | None:
    for result in results:
        if not result.passed and result.critical:
            return result
    return None
