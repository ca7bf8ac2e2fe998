"""Cross-check task status against report artifacts and gate thresholds."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from shogun.core.documents import DocumentStore
from shogun.core.schemas import QualityGates, QualityMetrics, Report, Task, TaskStatus
from shogun.errors import DocumentValidationError

logger = logging.getLogger(__name__)

REPORT_SUFFIXES = (".yaml", ".yml")


@dataclass
class QualityStatus:
    task_id: str
    player_id: str
    report_exists: bool
    yaml_status: TaskStatus
    inconsistent: bool


@dataclass
class GateResult:
    passed: bool
    failures: list[str] = field(default_factory=list)


@dataclass
class QualitySummary:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    blocked: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> int:
        return round(self.completed / self.total * 100) if self.total else 0


class QualityMonitor:
    """Look for report files in a task's output directory.

    A report "exists" for a player when any filename in the directory contains
    the player id. Relative output locations resolve against ``root``.
    """

    def __init__(self, root: str | Path, reports_dir: str = "docs/reports", store: DocumentStore | None = None):
        self.root = Path(root)
        self.reports_dir = reports_dir
        self.store = store or DocumentStore()

    def _location(self, output_location: str | None) -> Path:
        location = Path(output_location or self.reports_dir)
        return location if location.is_absolute() else self.root / location

    def find_reports(self, player_id: str, output_location: str | None = None) -> list[Path]:
        location = self._location(output_location)
        try:
            found = sorted(p for p in location.iterdir() if p.is_file() and player_id in p.name)
        except (FileNotFoundError, NotADirectoryError):
            return []
        return found

    def check_report_exists(self, player_id: str, output_location: str | None = None) -> bool:
        found = self.find_reports(player_id, output_location)
        if found:
            logger.debug("Report found for %s: %s", player_id, found[0].name)
        return bool(found)

    def detect_inconsistency(self, task: Task, player_id: str) -> QualityStatus:
        body = task.task
        report_exists = self.check_report_exists(player_id, body.output_location)
        return QualityStatus(
            task_id=body.id,
            player_id=player_id,
            report_exists=report_exists,
            yaml_status=body.status,
            inconsistent=report_exists and body.status.is_active,
        )

    def load_report(self, player_id: str, task_id: str | None = None, output_location: str | None = None) -> Report | None:
        """Newest structured Report for ``player_id`` (and ``task_id`` if given)."""
        candidates = [
            p for p in self.find_reports(player_id, output_location) if p.suffix in REPORT_SUFFIXES
        ]
        candidates.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        for path in candidates:
            try:
                report = self.store.read(path, Report)
            except (DocumentValidationError, yaml.YAMLError, OSError):
                logger.debug("Skipping non-report file %s", path)
                continue
            if task_id is None or report.task_id == task_id:
                return report
        return None

    def evaluate_gates(self, gates: QualityGates | None, metrics: QualityMetrics | None) -> GateResult:
        """Compare observed metrics against declared gates.

        Gates with no corresponding observation are not counted as failures.
        """
        if gates is None or metrics is None:
            return GateResult(passed=True)

        failures = []
        if gates.lint and metrics.lint_passed is False:
            failures.append("Lint failed")
        if gates.typecheck and metrics.typecheck_passed is False:
            failures.append("Type check failed")
        if metrics.tests_passed is False:
            failures.append("Tests failed")
        if gates.test_coverage is not None and metrics.test_coverage is not None:
            if metrics.test_coverage < gates.test_coverage:
                failures.append(
                    f"Coverage {metrics.test_coverage:g}% below required {gates.test_coverage:g}%"
                )
        if gates.max_lines is not None and metrics.lines_of_code is not None:
            if metrics.lines_of_code > gates.max_lines:
                failures.append(f"PR size {metrics.lines_of_code} lines exceeds {gates.max_lines}")
        return GateResult(passed=not failures, failures=failures)

    def summarize(self, tasks: list[Task]) -> QualitySummary:
        summary = QualitySummary(total=len(tasks))
        for task in tasks:
            status = task.task.status
            if status.is_terminal_success:
                summary.completed += 1
            elif status is TaskStatus.IN_PROGRESS:
                summary.in_progress += 1
            elif status is TaskStatus.BLOCKED:
                summary.blocked += 1
            elif status is TaskStatus.FAILED:
                summary.failed += 1
        return summary
