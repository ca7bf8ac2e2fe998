"""Tests for the MCP tools, called directly with a stub request context."""

from types import SimpleNamespace

import pytest

from shogun.captain.dashboard import StatusBoard
from shogun.captain.prompts import PromptOptimizer
from shogun.core.documents import DocumentStore
from shogun.core.schemas import CaptainStatus, Report, RunStatus, Subtask, Task
from shogun.mcp import prompts
from shogun.mcp.server import (
    AppContext,
    get_captain_status,
    get_task,
    get_task_guidance,
    submit_report,
    update_task_status,
)


@pytest.fixture
def ctx(config):
    app = AppContext(config=config, store=DocumentStore())
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=app))


@pytest.fixture
def assigned(config):
    subtask = Subtask(id="TASK-1", description="Add login", goal="Implement login", assigned_to="player1")
    task = PromptOptimizer().enrich(subtask, "Add user authentication", parent_id="CMD-1")
    DocumentStore().write(config.task_file("player1"), task, Task)
    return config


class TestTaskTools:
    def test_get_task(self, ctx, assigned):
        data = get_task(ctx, "player1")
        assert data["id"] == "TASK-1"
        assert data["status"] == "assigned"

    def test_get_task_unassigned(self, ctx):
        assert get_task(ctx, "player2") == {"error": "No task assigned to player2"}

    def test_guidance(self, ctx, assigned):
        assert "NEW TASK ASSIGNED" in get_task_guidance(ctx, "player1")
        assert get_task_guidance(ctx, "player2") == "No task assigned to player2"

    def test_update_status(self, ctx, assigned):
        data = update_task_status(ctx, "player1", "completed")
        assert data["status"] == "completed"
        assert "completed_at" in data

    def test_update_status_invalid(self, ctx, assigned):
        data = update_task_status(ctx, "player1", "finished")
        assert data["error"].startswith("Invalid status: finished")

    def test_update_status_unassigned(self, ctx):
        assert update_task_status(ctx, "player2", "in_progress") == {"error": "No task assigned to player2"}


class TestReportTools:
    def test_submit(self, ctx, assigned):
        data = submit_report(ctx, "player1", status="blocked", test_coverage=70, blockers=["Need API key"])
        assert data == {"report": "docs/reports/player1-TASK-1.yaml", "status": "blocked"}

        report = DocumentStore().read(assigned.root / data["report"], Report)
        assert report.quality_metrics.test_coverage == 70
        assert report.blockers == ["Need API key"]

    def test_submit_invalid_status(self, ctx, assigned):
        assert "error" in submit_report(ctx, "player1", status="maybe")

    def test_submit_invalid_metrics(self, ctx, assigned):
        assert "error" in submit_report(ctx, "player1", test_coverage=150)


class TestStatusTools:
    def test_idle(self, ctx):
        assert get_captain_status(ctx)["status"] == "idle"

    def test_status(self, ctx, config):
        StatusBoard(config.status_file, config.dashboard_file).publish(
            CaptainStatus(command_id="CMD-1", status=RunStatus.IN_PROGRESS, total=4, completed=1)
        )
        data = get_captain_status(ctx)
        assert data["command_id"] == "CMD-1"
        assert data["progress_pct"] == 25


class TestPrompts:
    def test_start_task(self):
        text = prompts.start_task("player2")
        assert "You are player2" in text
        assert "get_task_guidance with player_id='player2'" in text

    def test_status_report(self):
        assert "get_captain_status" in prompts.status_report()
