"""Per-command coordinator state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from shogun.captain.allocator import PlayerAssignment
from shogun.core.schemas import (
    AssignmentStatus,
    BlockerNote,
    CaptainStatus,
    CommandBody,
    RunStatus,
    TaskStatus,
)


@dataclass
class CommandRun:
    """Everything the captain tracks while one Command is being worked.

    A new Command replaces the run wholesale, so nothing leaks between
    commands.
    """

    command: CommandBody
    assignments: list[PlayerAssignment] = field(default_factory=list)
    statuses: dict[str, TaskStatus] = field(default_factory=dict)
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    blocked_reported: set[str] = field(default_factory=set)
    blockers: list[BlockerNote] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.assignments)

    def is_settled(self, task_id: str) -> bool:
        return task_id in self.completed or task_id in self.failed

    def pending(self) -> list[PlayerAssignment]:
        return [a for a in self.assignments if not self.is_settled(a.subtask.id)]

    @property
    def all_completed(self) -> bool:
        return len(self.completed) == self.total

    @property
    def finished(self) -> bool:
        return not self.pending()

    def mark_completed(self, task_id: str) -> None:
        if task_id not in self.completed:
            self.completed.append(task_id)

    def mark_failed(self, task_id: str) -> None:
        if task_id not in self.failed:
            self.failed.append(task_id)

    def to_status(self) -> CaptainStatus:
        if self.all_completed:
            run_status = RunStatus.COMPLETED
        elif self.finished:
            run_status = RunStatus.FAILED
        else:
            run_status = RunStatus.IN_PROGRESS

        return CaptainStatus(
            command_id=self.command.id,
            status=run_status,
            total=self.total,
            completed=len(self.completed),
            failed=len(self.failed),
            assignments=[
                AssignmentStatus(
                    player_id=a.player_id,
                    task_id=a.subtask.id,
                    description=a.subtask.description,
                    status=self.statuses.get(a.subtask.id, TaskStatus.ASSIGNED),
                )
                for a in self.assignments
            ],
            blockers=list(self.blockers),
        )
