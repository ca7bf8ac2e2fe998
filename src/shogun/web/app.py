"""Read-only web dashboard over the queue, status and metrics files."""

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from shogun.captain.dashboard import StatusBoard
from shogun.config import get_config
from shogun.core.documents import DocumentStore
from shogun.core.schemas import CaptainStatus, Task, dump_model
from shogun.errors import ShogunError
from shogun.metrics.anomalies import AnomalyDetector, recommendations
from shogun.metrics.store import MetricsStore, PlayerStateStore
from shogun.web.dashboard import get_dashboard_html

logger = logging.getLogger(__name__)


def _read_task(config, player_id: str) -> Task | None:
    try:
        return DocumentStore().read(config.task_file(player_id), Task)
    except FileNotFoundError:
        return None


# ── Handlers ──────────────────────────────────────────────────────────────────


async def index(request: Request):
    return HTMLResponse(get_dashboard_html())


async def api_status(request: Request):
    config = get_config()
    try:
        status = StatusBoard(config.status_file, config.dashboard_file).read()
    except ShogunError as e:
        return JSONResponse(e.to_dict(), status_code=422)
    return JSONResponse(_status_dict(status or CaptainStatus()))


async def api_list_tasks(request: Request):
    config = get_config()
    states = {s.player_id: s for s in PlayerStateStore(config.player_states_file, config.players).load()}
    result = []
    for player_id in config.players:
        entry = {"player_id": player_id, "state": None, "task": None}
        if player_id in states:
            entry["state"] = states[player_id].status.value
        try:
            task = _read_task(config, player_id)
            if task is not None:
                entry["task"] = dump_model(task.task)
        except ShogunError as e:
            logger.warning("Unreadable task for %s: %s", player_id, e)
            entry["error"] = str(e)
        result.append(entry)
    return JSONResponse(result)


async def api_get_task(request: Request):
    player_id = request.path_params["player_id"]
    config = get_config()
    try:
        task = _read_task(config, player_id)
    except ShogunError as e:
        return JSONResponse(e.to_dict(), status_code=422)
    if task is None:
        return JSONResponse({"error": "Task not found"}, status_code=404)
    return JSONResponse(dump_model(task.task))


async def api_metrics_summary(request: Request):
    config = get_config()
    store = MetricsStore(config.metrics_file)
    coverage = store.latest_coverage()
    return JSONResponse({
        "average_task_ms": store.average_task_time(),
        "coverage": coverage.model_dump(exclude={"timestamp"}) if coverage else None,
        "pr_size": store.pr_size_stats().model_dump(),
        "blockers": store.blocker_frequency().model_dump(),
        "utilization": store.utilization_summary().model_dump(),
        "recent_tasks": [t.model_dump(exclude_none=True) for t in store.recent_tasks(10)],
    })


async def api_metrics_anomalies(request: Request):
    config = get_config()
    anomalies = AnomalyDetector(MetricsStore(config.metrics_file)).detect_all()
    return JSONResponse({
        "anomalies": [a.to_dict() for a in anomalies],
        "recommendations": recommendations(anomalies),
    })


# ── Serialization ─────────────────────────────────────────────────────────────


def _status_dict(status: CaptainStatus) -> dict:
    data = dump_model(status)
    data["progress_pct"] = status.progress_percent
    data["in_progress"] = status.in_progress
    return data


# ── App ───────────────────────────────────────────────────────────────────────


def create_app() -> Starlette:
    routes = [
        Route("/", index),
        Route("/api/status", api_status),
        Route("/api/tasks", api_list_tasks),
        Route("/api/tasks/{player_id}", api_get_task),
        Route("/api/metrics/summary", api_metrics_summary),
        Route("/api/metrics/anomalies", api_metrics_anomalies),
    ]
    return Starlette(routes=routes)


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
