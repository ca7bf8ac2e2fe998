"""MCP server giving players tool access to their task and report files."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from shogun.captain.dashboard import StatusBoard
from shogun.config import Config, get_config
from shogun.core.documents import DocumentStore
from shogun.core.schemas import QualityMetrics, ReportStatus, TaskStatus, dump_model
from shogun.errors import ShogunError
from shogun.player import Player


@dataclass
class AppContext:
    config: Config
    store: DocumentStore


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Load configuration once per session."""
    yield AppContext(config=get_config(), store=DocumentStore())


mcp = FastMCP("shogun", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


def _player(ctx: Context, player_id: str) -> Player:
    app = _ctx(ctx)
    return Player(app.config, player_id, store=app.store)


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def get_task(ctx: Context, player_id: str) -> dict:
    """Get the task currently assigned to a player."""
    player = _player(ctx, player_id)
    try:
        return dump_model(player.load_task().task)
    except FileNotFoundError:
        return {"error": f"No task assigned to {player_id}"}
    except ShogunError as e:
        return e.to_dict()


@mcp.tool()
def get_task_guidance(ctx: Context, player_id: str) -> str:
    """Get the task with the TDD guide, quality checklist and completion steps."""
    try:
        return _player(ctx, player_id).guidance()
    except FileNotFoundError:
        return f"No task assigned to {player_id}"
    except ShogunError as e:
        return f"Error: {e}"


@mcp.tool()
def update_task_status(ctx: Context, player_id: str, status: str) -> dict:
    """Update a player's task status.

    Valid statuses: assigned, in_progress, completed, done, failed, blocked.
    Moving to completed or done also records ``completed_at``.
    """
    try:
        new_status = TaskStatus(status)
    except ValueError:
        valid = ", ".join(s.value for s in TaskStatus)
        return {"error": f"Invalid status: {status}. Valid: {valid}"}

    try:
        task = _player(ctx, player_id).update_status(new_status)
    except FileNotFoundError:
        return {"error": f"No task assigned to {player_id}"}
    except ShogunError as e:
        return e.to_dict()
    return dump_model(task.task)


# ── Report Tools ──────────────────────────────────────────────────────────────


@mcp.tool()
def submit_report(
    ctx: Context,
    player_id: str,
    status: str = "completed",
    test_coverage: float | None = None,
    lines_of_code: int | None = None,
    lint_passed: bool | None = None,
    typecheck_passed: bool | None = None,
    tests_passed: bool | None = None,
    blockers: list[str] | None = None,
    report_location: str | None = None,
) -> dict:
    """Write a structured report for the player's current task.

    Status is one of completed, failed, blocked. Blockers are listed when
    the task cannot proceed; the captain forwards them to the director.
    """
    values = {
        "test_coverage": test_coverage,
        "lines_of_code": lines_of_code,
        "lint_passed": lint_passed,
        "typecheck_passed": typecheck_passed,
        "tests_passed": tests_passed,
    }
    try:
        report_status = ReportStatus(status)
        metrics = None
        if any(v is not None for v in values.values()):
            metrics = QualityMetrics(**{k: v for k, v in values.items() if v is not None})
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        return {"error": str(e)}

    try:
        path = _player(ctx, player_id).write_report(report_status, metrics, blockers, report_location)
    except FileNotFoundError:
        return {"error": f"No task assigned to {player_id}"}
    except ShogunError as e:
        return e.to_dict()
    return {"report": _ctx(ctx).config.display_path(path), "status": report_status.value}


# ── Status Tools ──────────────────────────────────────────────────────────────


@mcp.tool()
def get_captain_status(ctx: Context) -> dict:
    """Get the captain's progress on the current command."""
    app = _ctx(ctx)
    try:
        status = StatusBoard(app.config.status_file, app.config.dashboard_file, store=app.store).read()
    except ShogunError as e:
        return e.to_dict()
    if status is None:
        return {"status": "idle", "message": "No command has been dispatched yet"}
    data = dump_model(status)
    data["progress_pct"] = status.progress_percent
    return data
