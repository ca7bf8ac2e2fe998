"""Turn a user request into subtasks and a Command document."""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from shogun.core.documents import write_text_atomic
from shogun.core.schemas import (
    Command,
    CommandBody,
    CommandStatus,
    QualityGates,
    Subtask,
    TaskType,
    utc_now,
)
from shogun.errors import DecompositionError

logger = logging.getLogger(__name__)

PLACEHOLDER_PLAYER = "player1"
MIN_DESCRIPTION_LENGTH = 10
MIN_GOAL_LENGTH = 20
MIN_COVERAGE = 80

GOAL_TEMPLATES = {
    TaskType.FEATURE: "Implement new feature: {description}\n\nFollow TDD (RED-GREEN-REFACTOR) and keep PR < 200 lines.",
    TaskType.FIX: "Fix bug: {description}\n\nWrite failing test first, then fix. Verify with existing tests.",
    TaskType.REFACTOR: "Refactor: {description}\n\nEnsure all existing tests pass. No behavior changes.",
    TaskType.DOCS: "Document: {description}\n\nProvide clear examples and comprehensive coverage.",
    TaskType.TEST: "Add tests for: {description}\n\nAchieve >= 80% coverage for new code.",
}


def default_quality_gates() -> QualityGates:
    return QualityGates(lint=True, typecheck=True, test_coverage=80, max_lines=200)


def generate_id(prefix: str, sequence: int = 1, now: datetime | None = None) -> str:
    """``PREFIX-YYYYMMDD-NNN``."""
    now = now or datetime.now()
    return f"{prefix}-{now:%Y%m%d}-{sequence:03d}"


class IdSequence:
    """Per-day counters behind ``generate_id``, one per prefix.

    With a ``path`` the counters are kept in a small JSON file so ids stay
    unique across director processes; without one they live in memory.
    Counters restart at 1 when the date changes.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._state: dict = {}
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if self.path is None:
            return self._state
        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError):
            logger.warning("Unreadable id sequence %s, starting over", self.path)
            return {}
        return state if isinstance(state, dict) else {}

    def _save(self, state: dict) -> None:
        if self.path is None:
            self._state = state
        else:
            write_text_atomic(self.path, json.dumps(state, indent=2) + "\n")

    def next_id(self, prefix: str, now: datetime | None = None) -> str:
        now = now or datetime.now()
        day = f"{now:%Y%m%d}"
        with self._lock:
            state = self._load()
            if state.get("date") != day:
                state = {"date": day}
            sequence = int(state.get(prefix, 0)) + 1
            state[prefix] = sequence
            self._save(state)
        return generate_id(prefix, sequence, now)


@dataclass
class UserCommand:
    description: str
    type: TaskType | None = None
    context: str | None = None


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


class TaskDecomposer:
    """Split a request into subtasks.

    Currently every request becomes exactly one subtask; the allocator decides
    who actually gets it unless the placeholder assignment is kept.
    """

    def __init__(self, ids: IdSequence | None = None):
        self.ids = ids or IdSequence()

    def decompose(self, command: UserCommand) -> list[Subtask]:
        description = command.description.strip()
        if not description:
            raise DecompositionError("Cannot decompose an empty request")

        task_type = TaskType(command.type) if command.type else TaskType.FEATURE
        subtask = Subtask(
            id=self.ids.next_id("TASK"),
            description=description,
            assigned_to=PLACEHOLDER_PLAYER,
            goal=self.generate_goal(description, task_type),
            type=task_type,
            context=command.context,
            quality_gates=default_quality_gates(),
        )
        logger.info("Decomposed request into %s (%s)", subtask.id, task_type.value)
        return [subtask]

    def generate_goal(self, description: str, task_type: TaskType = TaskType.FEATURE) -> str:
        return GOAL_TEMPLATES[TaskType(task_type)].format(description=description)

    def validate_subtasks(self, subtasks: list[Subtask]) -> ValidationResult:
        errors = []
        for subtask in subtasks:
            if len(subtask.description) < MIN_DESCRIPTION_LENGTH:
                errors.append(f"Subtask {subtask.id}: Description too short")
            if len(subtask.goal) < MIN_GOAL_LENGTH:
                errors.append(f"Subtask {subtask.id}: Goal not clear enough")
            if not subtask.assigned_to:
                errors.append(f"Subtask {subtask.id}: No player assigned")
            gates = subtask.quality_gates
            if gates and gates.test_coverage is not None and gates.test_coverage < MIN_COVERAGE:
                errors.append(f"Subtask {subtask.id}: Test coverage should be >= {MIN_COVERAGE}%")
        return ValidationResult(valid=not errors, errors=errors)

    def build_command(
        self,
        description: str,
        subtasks: list[Subtask],
        task_type: TaskType = TaskType.FEATURE,
    ) -> Command:
        return Command(
            command=CommandBody(
                id=self.ids.next_id("CMD"),
                timestamp=utc_now(),
                description=description.strip(),
                type=task_type,
                status=CommandStatus.PENDING,
                small_pr=True,
                tdd_required=True,
                subtasks=subtasks,
            )
        )
