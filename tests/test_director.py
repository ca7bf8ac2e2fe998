"""Tests for the director: decomposition, command submission and progress."""

import re
import threading
from datetime import datetime

import pytest

from shogun.captain.dashboard import StatusBoard
from shogun.core.documents import DocumentStore
from shogun.core.schemas import BlockerNote, CaptainStatus, Command, QualityGates, RunStatus, Subtask, TaskType
from shogun.director.decomposer import (
    IdSequence,
    TaskDecomposer,
    UserCommand,
    default_quality_gates,
    generate_id,
)
from shogun.director.director import Director
from shogun.director.progress import ProgressMonitor
from shogun.errors import DecompositionError

TASK_ID = re.compile(r"^TASK-\d{8}-\d{3}$")
CMD_ID = re.compile(r"^CMD-\d{8}-\d{3}$")


@pytest.fixture
def decomposer():
    return TaskDecomposer()


class TestDecompose:
    def test_single_subtask(self, decomposer):
        subtasks = decomposer.decompose(UserCommand(description="Add user authentication"))
        assert len(subtasks) == 1
        subtask = subtasks[0]
        assert TASK_ID.match(subtask.id)
        assert subtask.assigned_to == "player1"
        assert subtask.type is TaskType.FEATURE
        assert subtask.goal.startswith("Implement new feature: Add user authentication")

    def test_context_is_carried(self, decomposer):
        subtask = decomposer.decompose(UserCommand(description="Fix login", context="See issue 12"))[0]
        assert subtask.context == "See issue 12"

    @pytest.mark.parametrize("task_type", list(TaskType))
    def test_default_gates_for_every_type(self, decomposer, task_type):
        subtask = decomposer.decompose(UserCommand(description="Something to do", type=task_type))[0]
        assert subtask.quality_gates == QualityGates(lint=True, typecheck=True, test_coverage=80, max_lines=200)

    @pytest.mark.parametrize("description", ["", "   "])
    def test_empty_request(self, decomposer, description):
        with pytest.raises(DecompositionError):
            decomposer.decompose(UserCommand(description=description))

    def test_goal_templates(self, decomposer):
        assert decomposer.generate_goal("login crash", TaskType.FIX) == (
            "Fix bug: login crash\n\nWrite failing test first, then fix. Verify with existing tests."
        )
        assert decomposer.generate_goal("parser", TaskType.TEST).startswith("Add tests for: parser")
        assert "No behavior changes." in decomposer.generate_goal("db layer", TaskType.REFACTOR)


class TestValidate:
    def test_three_violations(self, decomposer):
        subtask = Subtask(id="T1", description="short", assigned_to="", goal="goal")
        result = decomposer.validate_subtasks([subtask])
        assert result.valid is False
        assert result.errors == [
            "Subtask T1: Description too short",
            "Subtask T1: Goal not clear enough",
            "Subtask T1: No player assigned",
        ]

    def test_low_coverage_gate(self, decomposer):
        subtask = Subtask(
            id="T2",
            description="A long enough description",
            assigned_to="player2",
            goal="A goal that is clearly long enough",
            quality_gates=QualityGates(test_coverage=70),
        )
        result = decomposer.validate_subtasks([subtask])
        assert result.errors == ["Subtask T2: Test coverage should be >= 80%"]

    def test_valid(self, decomposer):
        subtasks = decomposer.decompose(UserCommand(description="Add user authentication"))
        assert decomposer.validate_subtasks(subtasks).valid


class TestIds:
    def test_generate_id(self):
        assert generate_id("CMD", 7, now=datetime(2025, 3, 9)) == "CMD-20250309-007"

    def test_default_gates_are_fresh(self):
        gates = default_quality_gates()
        gates.max_lines = 999
        assert default_quality_gates().max_lines == 200

    def test_build_command(self, decomposer):
        subtasks = decomposer.decompose(UserCommand(description="Add auth"))
        command = decomposer.build_command("Add auth", subtasks, TaskType.FEATURE)
        assert CMD_ID.match(command.command.id)
        assert command.command.status.value == "pending"
        assert command.command.small_pr is True
        assert command.command.subtasks == subtasks

    def test_sequence_increments(self, decomposer):
        first = decomposer.decompose(UserCommand(description="Add user authentication"))[0]
        second = decomposer.decompose(UserCommand(description="Add user authorization"))[0]
        assert first.id.endswith("-001")
        assert second.id.endswith("-002")
        assert TASK_ID.match(second.id)

    def test_sequence_per_prefix(self):
        ids = IdSequence()
        now = datetime(2025, 3, 9)
        assert ids.next_id("TASK", now=now) == "TASK-20250309-001"
        assert ids.next_id("CMD", now=now) == "CMD-20250309-001"
        assert ids.next_id("TASK", now=now) == "TASK-20250309-002"

    def test_sequence_resets_each_day(self, tmp_path):
        ids = IdSequence(tmp_path / "seq.json")
        ids.next_id("CMD", now=datetime(2025, 3, 9))
        ids.next_id("CMD", now=datetime(2025, 3, 9))
        assert ids.next_id("CMD", now=datetime(2025, 3, 10)) == "CMD-20250310-001"

    def test_sequence_survives_restart(self, tmp_path):
        path = tmp_path / "seq.json"
        now = datetime(2025, 3, 9)
        IdSequence(path).next_id("CMD", now=now)
        assert IdSequence(path).next_id("CMD", now=now) == "CMD-20250309-002"

    def test_corrupt_sequence_starts_over(self, tmp_path):
        path = tmp_path / "seq.json"
        path.write_text("{not json")
        assert IdSequence(path).next_id("CMD", now=datetime(2025, 3, 9)) == "CMD-20250309-001"


class TestDirector:
    def test_submit_writes_command_and_notifies(self, config, bridge):
        director = Director(config, bridge=bridge)
        command = director.submit("Add user authentication", TaskType.FEATURE)

        stored = DocumentStore().read(config.command_file, Command)
        assert stored == command
        assert bridge.sent_to("captain:0.0") == [
            "New command ready. Check queue/director_to_captain.yaml and execute it."
        ]

    def test_submit_survives_notification_failure(self, config, make_bridge):
        director = Director(config, bridge=make_bridge(fail_targets={"captain:0.0"}))
        director.submit("Add user authentication")
        assert config.command_file.exists()

    def test_short_description_is_only_a_warning(self, config, bridge):
        command = Director(config, bridge=bridge).submit("Add auth")
        assert command.command.description == "Add auth"

    def test_wait_returns_final_status(self, config, bridge):
        director = Director(config, bridge=bridge)
        command = director.submit("Add user authentication")
        StatusBoard(config.status_file, config.dashboard_file).publish(
            CaptainStatus(command_id=command.command.id, status=RunStatus.COMPLETED, total=1, completed=1)
        )
        assert director.wait(command.command.id) is RunStatus.COMPLETED

    def test_consecutive_submissions_get_distinct_ids(self, config, bridge):
        director = Director(config, bridge=bridge)
        first = director.submit("Add user authentication").command
        second = director.submit("Add password reset").command

        assert CMD_ID.match(second.id)
        assert TASK_ID.match(second.subtasks[0].id)
        assert first.id != second.id
        assert first.subtasks[0].id != second.subtasks[0].id

        # A fresh director (new process) continues the same sequence.
        third = Director(config, bridge=bridge).submit("Add session timeout").command
        assert third.id not in (first.id, second.id)
        assert third.subtasks[0].id not in (first.subtasks[0].id, second.subtasks[0].id)

    def test_wait_ignores_status_of_previous_command(self, config, bridge):
        director = Director(config, bridge=bridge)
        first = director.submit("Add user authentication")
        StatusBoard(config.status_file, config.dashboard_file).publish(
            CaptainStatus(command_id=first.command.id, status=RunStatus.COMPLETED, total=1, completed=1)
        )
        second = director.submit("Add password reset")

        threading.Timer(0.1, director.stop).start()
        assert director.wait(second.command.id) is None


def _publish(config, **fields):
    StatusBoard(config.status_file, config.dashboard_file).publish(CaptainStatus(**fields))


class TestProgressMonitor:
    def test_completed(self, config):
        _publish(config, command_id="CMD-1", status=RunStatus.COMPLETED, total=2, completed=2)
        assert ProgressMonitor(0.01).watch(config.status_file) is RunStatus.COMPLETED

    def test_failed(self, config):
        _publish(config, command_id="CMD-1", status=RunStatus.FAILED, total=2, completed=1, failed=1)
        assert ProgressMonitor(0.01).watch(config.status_file) is RunStatus.FAILED

    def test_waits_for_status(self, config):
        monitor = ProgressMonitor(0.01)
        timer = threading.Timer(
            0.1, _publish, args=(config,), kwargs={"command_id": "CMD-1", "status": RunStatus.COMPLETED}
        )
        timer.start()
        try:
            assert monitor.watch(config.status_file) is RunStatus.COMPLETED
        finally:
            timer.cancel()

    def test_stop_returns_none(self, config):
        monitor = ProgressMonitor(0.01)
        timer = threading.Timer(0.1, monitor.stop)
        timer.start()
        assert monitor.watch(config.status_file) is None

    def test_ignores_other_commands(self, config):
        _publish(config, command_id="CMD-OLD", status=RunStatus.COMPLETED)
        monitor = ProgressMonitor(0.01)
        threading.Timer(0.1, monitor.stop).start()
        assert monitor.watch(config.status_file, command_id="CMD-NEW") is None

    def test_unreadable_status_is_not_ready(self, config):
        config.status_file.parent.mkdir(parents=True)
        config.status_file.write_text("status: [unclosed")
        monitor = ProgressMonitor(0.01)
        assert monitor.read_status(config.status_file) is None

    def test_summary(self, config):
        _publish(
            config,
            command_id="CMD-1",
            status=RunStatus.IN_PROGRESS,
            total=4,
            completed=1,
            blockers=[BlockerNote(player_id="player2", task_id="T2", reason="Need API key")],
        )
        summary = ProgressMonitor().status_summary(config.status_file)
        assert summary == "CMD-1: in_progress (1/4 completed, 0 failed, 25%), 1 blocker(s)"

    def test_summary_without_status(self, config):
        assert ProgressMonitor().status_summary(config.status_file) == "No status yet"
