"""Player side: read the assigned task, advance its status, write reports."""

import logging
from pathlib import Path

from shogun.config import Config
from shogun.core.documents import DocumentStore
from shogun.core.schemas import (
    QualityGates,
    QualityMetrics,
    Report,
    ReportStatus,
    Task,
    TaskStatus,
    utc_now,
)

logger = logging.getLogger(__name__)

RULE = "=" * 60

TDD_GUIDE = """\
Follow the RED-GREEN-REFACTOR cycle:

RED - Write a failing test
   1. Write a test that describes the desired behavior
   2. Run it - it should FAIL (no implementation yet)
   3. Check the failure message is meaningful

GREEN - Make the test pass
   1. Write the MINIMAL code that makes the test pass
   2. Run it - it should PASS

REFACTOR - Improve the code
   1. Clean up while keeping tests green
   2. Remove duplication, improve names and structure
   3. Run ALL tests after each change"""


def format_task(task: Task) -> str:
    body = task.task
    lines = [
        RULE,
        "NEW TASK ASSIGNED",
        RULE,
        f"Task ID: {body.id}",
        f"Type: {body.type.value}",
        f"Status: {body.status.value}",
        "",
        "Description:",
        f"  {body.description}",
        "",
        "Goal:",
        *(f"  {line}" for line in body.goal.splitlines()),
    ]
    if body.context:
        lines += ["", "Context:", *(f"  {line}" for line in body.context.splitlines())]
    return "\n".join(lines)


def format_checklist(gates: QualityGates | None) -> str:
    """Numbered pre-completion checklist for the gates that are set."""
    if gates is None:
        return "No specific quality gates defined. Follow standard best practices."

    items = [("TDD workflow followed", ["RED, GREEN, REFACTOR in that order"])]
    if gates.lint:
        items.append(("Lint passing", ["Fix every reported issue"]))
    if gates.typecheck:
        items.append(("Type check passing", ["No type errors"]))
    if gates.test_coverage:
        items.append((f"Test coverage >= {gates.test_coverage:g}%", ["Add tests for uncovered code"]))
    if gates.max_lines:
        items.append((f"PR size < {gates.max_lines} lines", ["Check with: git diff --stat", "Split the task if it is too large"]))
    if gates.comprehensive:
        items.append(("Comprehensive documentation", ["Include clear examples", "Cover all major use cases"]))
    if gates.sources_cited:
        items.append(("Sources cited", ["List all reference URLs"]))

    lines = ["Before marking the task completed, ensure:"]
    for number, (title, notes) in enumerate(items, 1):
        lines.append(f"{number}. {title}")
        lines += [f"   - {note}" for note in notes]
    return "\n".join(lines)


def completion_instructions(config: Config, player_id: str) -> str:
    task_file = config.display_path(config.task_file(player_id))
    return "\n".join([
        "When the task is complete:",
        f"1. Run: shogun player report {player_id} --status completed",
        f"   (or set status to completed in {task_file})",
        f"2. Run: shogun player status {player_id} completed",
    ])


class Player:
    def __init__(self, config: Config, player_id: str, store: DocumentStore | None = None):
        self.config = config
        self.player_id = player_id
        self.store = store or DocumentStore()

    @property
    def task_file(self) -> Path:
        return self.config.task_file(self.player_id)

    def load_task(self) -> Task:
        return self.store.read(self.task_file, Task)

    def guidance(self) -> str:
        task = self.load_task()
        return "\n\n".join([
            format_task(task),
            TDD_GUIDE,
            format_checklist(task.task.quality_gates),
            completion_instructions(self.config, self.player_id),
        ])

    def update_status(self, status: TaskStatus) -> Task:
        """Set the task status; terminal success also stamps ``completed_at``."""
        status = TaskStatus(status)
        if not status.is_terminal_success:
            self.store.update_field(self.task_file, ["task", "status"], status.value)
            logger.info("%s set %s to %s", self.player_id, self.task_file.name, status.value)
            return self.load_task()

        task = self.load_task()
        task.task.status = status
        task.task.completed_at = utc_now()
        self.store.write(self.task_file, task, Task)
        logger.info("%s completed %s", self.player_id, task.task.id)
        return task

    def write_report(
        self,
        status: ReportStatus,
        metrics: QualityMetrics | None = None,
        blockers: list[str] | None = None,
        report_location: str | None = None,
    ) -> Path:
        """Write a Report YAML into the task's output directory."""
        task = self.load_task()
        location = Path(task.task.output_location or self.config.reports_dir)
        if not location.is_absolute():
            location = self.config.root / location
        path = location / f"{self.player_id}-{task.task.id}.yaml"

        report = Report(
            player_id=self.player_id,
            task_id=task.task.id,
            status=status,
            timestamp=utc_now(),
            report_location=report_location,
            quality_metrics=metrics,
            blockers=blockers or None,
        )
        self.store.write(path, report, Report)
        logger.info("Report written to %s", path)
        return path
