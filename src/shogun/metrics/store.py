"""JSON-file metrics store.

Everything lives in one object with five arrays (``tasks``, ``coverage``,
``prSizes``, ``blockers``, ``playerUtilization``). Each mutation reads the
whole file and rewrites it; a missing or corrupt file reads as empty.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from shogun.core.documents import write_text_atomic
from shogun.core.schemas import utc_now

logger = logging.getLogger(__name__)

PR_SIZE_THRESHOLD = 200


def parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskMetric(_Record):
    task_id: str
    player_id: str
    start_time: str
    end_time: str
    duration_ms: float
    status: str
    blocker_reason: str | None = None


class CoverageMetric(_Record):
    timestamp: str = Field(default_factory=utc_now)
    lines: float
    statements: float
    functions: float
    branches: float


class PRSizeMetric(_Record):
    timestamp: str = Field(default_factory=utc_now)
    pr_number: int | None = None
    additions: int
    deletions: int
    total: int
    files_changed: int


class BlockerMetric(_Record):
    timestamp: str = Field(default_factory=utc_now)
    player_id: str
    reason: str
    resolved: bool = False
    resolution_time: float | None = None


class PlayerUtilization(_Record):
    player_id: str
    period: str
    idle_time: float = 0
    working_time: float = 0
    blocked_time: float = 0
    tasks_completed: int = 0


class MetricsData(_Record):
    tasks: list[TaskMetric] = Field(default_factory=list)
    coverage: list[CoverageMetric] = Field(default_factory=list)
    pr_sizes: list[PRSizeMetric] = Field(default_factory=list)
    blockers: list[BlockerMetric] = Field(default_factory=list)
    player_utilization: list[PlayerUtilization] = Field(default_factory=list)


class PRSizeStats(BaseModel):
    average: float = 0
    median: float = 0
    max: float = 0
    over_threshold: int = 0


class BlockerFrequency(BaseModel):
    total: int = 0
    unresolved: int = 0
    average_resolution_ms: float = 0


class UtilizationSummary(BaseModel):
    total_idle_time: float = 0
    total_working_time: float = 0
    total_blocked_time: float = 0
    total_tasks_completed: int = 0
    utilization_rate: float = 0


def _dump_json(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2) + "\n"


def _find_utilization(data: MetricsData, player_id: str, period: str) -> PlayerUtilization | None:
    return next(
        (u for u in data.player_utilization if u.player_id == player_id and u.period == period),
        None,
    )


def _upsert_utilization(data: MetricsData, entry: PlayerUtilization) -> None:
    for i, existing in enumerate(data.player_utilization):
        if existing.player_id == entry.player_id and existing.period == entry.period:
            data.player_utilization[i] = entry
            return
    data.player_utilization.append(entry)


class MetricsStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> MetricsData:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return MetricsData.model_validate(raw)
        except FileNotFoundError:
            return MetricsData()
        except (OSError, json.JSONDecodeError, ValidationError):
            logger.warning("Unreadable metrics file %s, starting empty", self.path)
            return MetricsData()

    def save(self, data: MetricsData) -> None:
        write_text_atomic(self.path, _dump_json(data))

    # ── Recording ─────────────────────────────────────────────────────────────

    def record_task_completion(
        self,
        task_id: str,
        player_id: str,
        start_time: datetime,
        end_time: datetime,
        status: str,
        blocker_reason: str | None = None,
    ) -> TaskMetric:
        metric = TaskMetric(
            task_id=task_id,
            player_id=player_id,
            start_time=start_time.isoformat(),
            end_time=end_time.isoformat(),
            duration_ms=(end_time - start_time).total_seconds() * 1000,
            status=status,
            blocker_reason=blocker_reason,
        )
        with self._lock:
            data = self.load()
            data.tasks.append(metric)
            self.save(data)
        return metric

    def record_coverage(self, lines: float, statements: float, functions: float, branches: float) -> CoverageMetric:
        metric = CoverageMetric(lines=lines, statements=statements, functions=functions, branches=branches)
        with self._lock:
            data = self.load()
            data.coverage.append(metric)
            self.save(data)
        return metric

    def record_pr_size(self, additions: int, deletions: int, files_changed: int, pr_number: int | None = None) -> PRSizeMetric:
        metric = PRSizeMetric(
            pr_number=pr_number,
            additions=additions,
            deletions=deletions,
            total=additions + deletions,
            files_changed=files_changed,
        )
        with self._lock:
            data = self.load()
            data.pr_sizes.append(metric)
            self.save(data)
        return metric

    def record_blocker(self, player_id: str, reason: str) -> BlockerMetric:
        metric = BlockerMetric(player_id=player_id, reason=reason)
        with self._lock:
            data = self.load()
            data.blockers.append(metric)
            self.save(data)
        return metric

    def resolve_blocker(self, player_id: str, timestamp: str | None = None) -> BlockerMetric | None:
        """Resolve the matching open blocker, or the oldest open one for the player."""
        with self._lock:
            data = self.load()
            for blocker in data.blockers:
                if blocker.player_id != player_id or blocker.resolved:
                    continue
                if timestamp is not None and blocker.timestamp != timestamp:
                    continue
                blocker.resolved = True
                elapsed = datetime.now(timezone.utc) - parse_time(blocker.timestamp)
                blocker.resolution_time = elapsed.total_seconds() * 1000
                self.save(data)
                return blocker
        return None

    def record_player_utilization(
        self,
        player_id: str,
        period: str,
        idle_time: float,
        working_time: float,
        blocked_time: float,
        tasks_completed: int,
    ) -> PlayerUtilization:
        entry = PlayerUtilization(
            player_id=player_id,
            period=period,
            idle_time=idle_time,
            working_time=working_time,
            blocked_time=blocked_time,
            tasks_completed=tasks_completed,
        )
        with self._lock:
            data = self.load()
            _upsert_utilization(data, entry)
            self.save(data)
        return entry

    def accumulate_utilization(
        self,
        player_id: str,
        period: str,
        idle_time: float = 0,
        working_time: float = 0,
        blocked_time: float = 0,
        tasks_completed: int = 0,
    ) -> PlayerUtilization:
        """Add to the player's entry for ``period`` (a ``YYYY-MM-DD`` day).

        The read and the write happen under one lock acquisition, so
        concurrent callers on the same store never drop each other's updates.
        """
        with self._lock:
            data = self.load()
            current = _find_utilization(data, player_id, period) or PlayerUtilization(
                player_id=player_id, period=period
            )
            entry = PlayerUtilization(
                player_id=player_id,
                period=period,
                idle_time=current.idle_time + idle_time,
                working_time=current.working_time + working_time,
                blocked_time=current.blocked_time + blocked_time,
                tasks_completed=current.tasks_completed + tasks_completed,
            )
            _upsert_utilization(data, entry)
            self.save(data)
        return entry

    # ── Queries ───────────────────────────────────────────────────────────────

    def average_task_time(self, player_id: str | None = None) -> float:
        tasks = [t for t in self.load().tasks if t.status == "completed"]
        if player_id:
            tasks = [t for t in tasks if t.player_id == player_id]
        if not tasks:
            return 0
        return sum(t.duration_ms for t in tasks) / len(tasks)

    def latest_coverage(self) -> CoverageMetric | None:
        coverage = self.load().coverage
        return coverage[-1] if coverage else None

    def coverage_trend(self, count: int = 10) -> list[CoverageMetric]:
        return self.load().coverage[-count:]

    def recent_tasks(self, count: int = 10) -> list[TaskMetric]:
        return self.load().tasks[-count:]

    def pr_size_stats(self) -> PRSizeStats:
        sizes = [pr.total for pr in self.load().pr_sizes]
        if not sizes:
            return PRSizeStats()
        ordered = sorted(sizes)
        return PRSizeStats(
            average=sum(sizes) / len(sizes),
            median=ordered[len(ordered) // 2],
            max=max(sizes),
            over_threshold=sum(1 for s in sizes if s > PR_SIZE_THRESHOLD),
        )

    def blocker_frequency(self) -> BlockerFrequency:
        blockers = self.load().blockers
        resolved = [b for b in blockers if b.resolved and b.resolution_time]
        average = sum(b.resolution_time for b in resolved) / len(resolved) if resolved else 0
        return BlockerFrequency(
            total=len(blockers),
            unresolved=sum(1 for b in blockers if not b.resolved),
            average_resolution_ms=average,
        )

    def unresolved_blockers(self) -> list[BlockerMetric]:
        return [b for b in self.load().blockers if not b.resolved]

    def utilization_summary(self, player_id: str | None = None) -> UtilizationSummary:
        entries = self.load().player_utilization
        if player_id:
            entries = [u for u in entries if u.player_id == player_id]
        idle = sum(u.idle_time for u in entries)
        working = sum(u.working_time for u in entries)
        blocked = sum(u.blocked_time for u in entries)
        total = idle + working + blocked
        return UtilizationSummary(
            total_idle_time=idle,
            total_working_time=working,
            total_blocked_time=blocked,
            total_tasks_completed=sum(u.tasks_completed for u in entries),
            utilization_rate=working / total if total > 0 else 0,
        )


# ── Player states ─────────────────────────────────────────────────────────────


class PlayerActivity(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    BLOCKED = "blocked"


class PlayerState(_Record):
    player_id: str
    status: PlayerActivity = PlayerActivity.IDLE
    current_task: str | None = None
    blocker_reason: str | None = None


class PlayerStateStore:
    """``metrics/player-states.json``: one entry per roster member."""

    def __init__(self, path: str | Path, players: list[str]):
        self.path = Path(path)
        self.players = list(players)
        self._lock = threading.Lock()

    def load(self) -> list[PlayerState]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [PlayerState.model_validate(item) for item in raw]
        except FileNotFoundError:
            pass
        except (OSError, json.JSONDecodeError, ValidationError, TypeError):
            logger.warning("Unreadable player states %s, using defaults", self.path)
        return [PlayerState(player_id=p) for p in self.players]

    def save(self, states: list[PlayerState]) -> None:
        payload = [s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in states]
        write_text_atomic(self.path, json.dumps(payload, indent=2) + "\n")

    def update(
        self,
        player_id: str,
        status: PlayerActivity,
        current_task: str | None = None,
        blocker_reason: str | None = None,
    ) -> PlayerState:
        state = PlayerState(
            player_id=player_id,
            status=status,
            current_task=current_task,
            blocker_reason=blocker_reason,
        )
        with self._lock:
            states = self.load()
            for i, existing in enumerate(states):
                if existing.player_id == player_id:
                    states[i] = state
                    break
            else:
                states.append(state)
            self.save(states)
        return state
