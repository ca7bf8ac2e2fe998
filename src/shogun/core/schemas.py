"""Document schemas for the queue protocol.

Every file under ``queue/`` is one of these models serialized to YAML.
Commands and tasks are wrapped in a single top-level key (``command:`` /
``task:``) so a reader can tell the document kind at a glance.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, model_validator


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _iso_timestamp(value: Any) -> Any:
    # PyYAML turns unquoted timestamps into datetime objects.
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from e
    return value


IsoTimestamp = Annotated[str, BeforeValidator(_iso_timestamp)]


# ── Enums ─────────────────────────────────────────────────────────────────────


class TaskType(str, Enum):
    FEATURE = "feature"
    FIX = "fix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"


class CommandStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DONE = "done"
    FAILED = "failed"
    BLOCKED = "blocked"

    @property
    def is_terminal_success(self) -> bool:
        """``completed`` and ``done`` are synonyms."""
        return self in (TaskStatus.COMPLETED, TaskStatus.DONE)

    @property
    def is_terminal(self) -> bool:
        return self.is_terminal_success or self is TaskStatus.FAILED

    @property
    def is_active(self) -> bool:
        return self in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)


class ReportStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


class RunStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


# ── Building blocks ───────────────────────────────────────────────────────────


class QualityGates(BaseModel):
    lint: bool | None = None
    typecheck: bool | None = None
    test_coverage: float | None = Field(None, ge=0, le=100)
    max_lines: int | None = Field(None, gt=0)
    comprehensive: bool | None = None
    sources_cited: bool | None = None


class Dependencies(BaseModel):
    install: str | None = None
    depends_on: str | None = None


class Subtask(BaseModel):
    id: str = Field(..., min_length=1)
    description: str
    assigned_to: str = ""
    goal: str
    type: TaskType = TaskType.FEATURE
    context: str | None = None
    output_location: str | None = None
    output_format: str | None = None
    output_filename: str | None = None
    depends_on: str | None = None
    quality_gates: QualityGates | None = None


# ── Command ───────────────────────────────────────────────────────────────────


class CommandBody(BaseModel):
    id: str = Field(..., min_length=1)
    timestamp: IsoTimestamp
    description: str
    type: TaskType = TaskType.FEATURE
    status: CommandStatus = CommandStatus.PENDING
    small_pr: bool = True
    tdd_required: bool = True
    subtasks: list[Subtask] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_subtask_ids(self) -> "CommandBody":
        seen = set()
        for subtask in self.subtasks:
            if subtask.id in seen:
                raise ValueError(f"duplicate subtask id: {subtask.id}")
            seen.add(subtask.id)
        return self


class Command(BaseModel):
    command: CommandBody


# ── Task ──────────────────────────────────────────────────────────────────────


class TaskBody(BaseModel):
    id: str = Field(..., min_length=1)
    parent_id: str | None = None
    description: str
    goal: str
    type: TaskType = TaskType.FEATURE
    status: TaskStatus = TaskStatus.ASSIGNED
    timestamp: IsoTimestamp
    completed_at: IsoTimestamp | None = None
    context: str | None = None
    output_location: str | None = None
    output_format: str | None = None
    output_filename: str | None = None
    quality_gates: QualityGates | None = None
    dependencies: Dependencies | None = None


class Task(BaseModel):
    task: TaskBody


# ── Report ────────────────────────────────────────────────────────────────────


class QualityMetrics(BaseModel):
    test_coverage: float | None = Field(None, ge=0, le=100)
    lines_of_code: int | None = Field(None, ge=0)
    lint_passed: bool | None = None
    typecheck_passed: bool | None = None
    tests_passed: bool | None = None


class Report(BaseModel):
    player_id: str = Field(..., min_length=1)
    task_id: str = Field(..., min_length=1)
    status: ReportStatus
    timestamp: IsoTimestamp
    report_location: str | None = None
    quality_metrics: QualityMetrics | None = None
    blockers: list[str] | None = None


# ── Captain status (completion protocol) ──────────────────────────────────────


class AssignmentStatus(BaseModel):
    player_id: str
    task_id: str
    description: str = ""
    status: TaskStatus = TaskStatus.ASSIGNED


class BlockerNote(BaseModel):
    player_id: str
    task_id: str | None = None
    reason: str


class CaptainStatus(BaseModel):
    command_id: str | None = None
    status: RunStatus = RunStatus.IDLE
    updated_at: IsoTimestamp = Field(default_factory=utc_now)
    total: int = 0
    completed: int = 0
    failed: int = 0
    assignments: list[AssignmentStatus] = Field(default_factory=list)
    blockers: list[BlockerNote] = Field(default_factory=list)

    @property
    def in_progress(self) -> int:
        return sum(1 for a in self.assignments if a.status is TaskStatus.IN_PROGRESS)

    @property
    def progress_percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)


def dump_model(model: BaseModel) -> dict:
    """Plain, YAML-safe dict with unset optional fields left out."""
    return model.model_dump(mode="json", exclude_none=True)
