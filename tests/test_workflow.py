"""End-to-end runs: director -> captain -> player -> captain -> director."""

import re
import threading
import time

import pytest

from shogun.captain.coordinator import Captain
from shogun.captain.quality import QualityMonitor
from shogun.core.documents import DocumentStore
from shogun.core.schemas import Command, QualityMetrics, ReportStatus, RunStatus, Task, TaskStatus
from shogun.core.watcher import FileWatcher
from shogun.director.director import Director
from shogun.player import Player


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


@pytest.fixture
def captain(config, bridge):
    c = Captain(config, bridge=bridge, watcher=FileWatcher(poll_interval=0.02, stability=0.06))
    yield c
    c.shutdown()


class TestHappyPath:
    def test_request_to_completion(self, config, bridge, captain):
        director = Director(config, bridge=bridge)
        command = director.submit("Add auth")

        body = DocumentStore().read(config.command_file, Command).command
        captain.dispatch(body)

        task = DocumentStore().read(config.task_file("player1"), Task).task
        assert re.match(r"^TASK-\d{8}-\d{3}$", task.id)
        assert task.parent_id == command.command.id
        assert task.status is TaskStatus.ASSIGNED
        for step in ("RED", "GREEN", "REFACTOR"):
            assert step in task.goal

        player = Player(config, "player1")
        player.update_status(TaskStatus.IN_PROGRESS)
        assert player.load_task().task.status is TaskStatus.IN_PROGRESS
        player.write_report(ReportStatus.COMPLETED, QualityMetrics(test_coverage=88, lines_of_code=90))
        player.update_status(TaskStatus.COMPLETED)

        assert captain.sweep() is True
        assert director.wait(command.command.id) is RunStatus.COMPLETED
        assert bridge.sent_to("director:0.0") == ["Captain: all tasks completed. Reports are in docs/reports/."]

    def test_serve_picks_up_command(self, config, bridge, captain):
        server = threading.Thread(target=captain.serve, daemon=True)
        server.start()
        assert _wait_for(lambda: captain.watcher.is_watching(config.command_file))

        command = Director(config, bridge=bridge).submit("Add user authentication")
        assert _wait_for(lambda: config.task_file("player1").exists())
        assert _wait_for(lambda: captain.run is not None)
        assert captain.run.command.id == command.command.id

        Player(config, "player1").update_status(TaskStatus.DONE)
        assert _wait_for(lambda: captain.run.finished)

        captain.request_shutdown()
        server.join(timeout=5)
        assert not server.is_alive()
        assert Director(config, bridge=bridge).wait(command.command.id) is RunStatus.COMPLETED


class TestBlockedPath:
    def test_blocked_report_on_assigned_task(self, config, bridge, captain):
        Director(config, bridge=bridge).submit("Add user authentication")
        captain.dispatch(DocumentStore().read(config.command_file, Command).command)

        player = Player(config, "player1")
        player.write_report(ReportStatus.BLOCKED, blockers=["Need API key", "Staging is down"])

        monitor = QualityMonitor(config.root, config.reports_dir)
        status = monitor.detect_inconsistency(player.load_task(), "player1")
        assert status.report_exists is True
        assert status.inconsistent is True
        assert status.yaml_status is TaskStatus.ASSIGNED

        bridge.messages.clear()
        captain.sweep()
        assert bridge.sent_to("players:0.0") == [
            "Report exists but queue/captain_to_players/player1.yaml status is still assigned. Update it to completed."
        ]

        player.update_status(TaskStatus.BLOCKED)
        captain.sweep()
        assert bridge.sent_to("director:0.0")[-1] == (
            "Captain: player1 is blocked on "
            f"{player.load_task().task.id}: Need API key; Staging is down"
        )
