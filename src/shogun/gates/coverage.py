"""Coverage threshold gate."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from shogun.errors import QualityGateError

MINIMUM_COVERAGE = 80.0


@dataclass
class CoverageSummary:
    lines: float
    statements: float
    functions: float
    branches: float

    def items(self) -> list[tuple[str, float]]:
        return [
            ("Lines", self.lines),
            ("Statements", self.statements),
            ("Functions", self.functions),
            ("Branches", self.branches),
        ]


@dataclass
class CoverageResult:
    summary: CoverageSummary
    threshold: float
    failures: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures


def _pct(covered: int, total: int) -> float:
    return covered / total * 100 if total else 100.0


def parse_summary(data: dict) -> CoverageSummary:
    """Accept istanbul ``coverage-summary.json`` or coverage.py ``coverage json`` output.

    coverage.py has no function-level figure; its overall percentage is used.
    """
    if "total" in data:
        total = data["total"]
        return CoverageSummary(
            lines=float(total["lines"]["pct"]),
            statements=float(total["statements"]["pct"]),
            functions=float(total["functions"]["pct"]),
            branches=float(total["branches"]["pct"]),
        )
    if "totals" in data:
        totals = data["totals"]
        lines = _pct(totals.get("covered_lines", 0), totals.get("num_statements", 0))
        return CoverageSummary(
            lines=lines,
            statements=lines,
            functions=float(totals.get("percent_covered", lines)),
            branches=_pct(totals.get("covered_branches", 0), totals.get("num_branches", 0)),
        )
    raise QualityGateError("Unrecognized coverage summary format")


def load_summary(path: str | Path) -> CoverageSummary:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise QualityGateError(f"Coverage report not found: {path}", context={"path": str(path)}) from e
    except (OSError, json.JSONDecodeError) as e:
        raise QualityGateError(f"Failed to read coverage summary: {e}", context={"path": str(path)}) from e
    try:
        return parse_summary(data)
    except (KeyError, TypeError, ValueError) as e:
        raise QualityGateError(f"Malformed coverage summary: {e}", context={"path": str(path)}) from e


def check_coverage(summary: CoverageSummary, threshold: float = MINIMUM_COVERAGE) -> CoverageResult:
    failures = [
        f"{name} coverage {value:.2f}% is below {threshold:g}%"
        for name, value in summary.items()
        if value < threshold
    ]
    return CoverageResult(summary=summary, threshold=threshold, failures=failures)
