"""Markdown views over the metrics store: periodic reports and a snapshot."""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path

from shogun.core.documents import write_text_atomic
from shogun.metrics.store import MetricsStore, PlayerActivity, PlayerState, parse_time

logger = logging.getLogger(__name__)


class ReportPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def _one_month_before(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range(period: ReportPeriod, end: datetime | None = None) -> tuple[datetime, datetime]:
    end = end or datetime.now(timezone.utc)
    if ReportPeriod(period) is ReportPeriod.WEEKLY:
        return end - timedelta(days=7), end
    return _one_month_before(end), end


def _minutes(ms: float) -> str:
    return f"{ms / 1000 / 60:.1f}"


def _pct(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}%" if whole else "0.0%"


def progress_bar(percent: float, width: int = 20) -> str:
    filled = round(max(0.0, min(percent, 100.0)) / 100 * width)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


@dataclass
class PlayerStats:
    tasks_completed: int
    utilization_rate: float
    average_task_ms: float


class ReportGenerator:
    def __init__(self, store: MetricsStore, players: list[str]):
        self.store = store
        self.players = list(players)

    def render(self, period: ReportPeriod, end: datetime | None = None) -> str:
        start, end = date_range(period, end)
        data = self.store.load()

        in_range = [t for t in data.tasks if start <= parse_time(t.start_time) <= end]
        completed = [t for t in in_range if t.status == "completed"]
        failed = [t for t in in_range if t.status == "failed"]
        blocked = [t for t in in_range if t.status == "blocked"]
        total = len(in_range)
        average_ms = sum(t.duration_ms for t in completed) / len(completed) if completed else 0

        trend = self.store.coverage_trend(10)
        current = trend[-1].lines if trend else 0
        change = current - trend[0].lines if len(trend) > 1 else 0
        pr = self.store.pr_size_stats()
        blockers = self.store.blocker_frequency()

        title = "Weekly" if ReportPeriod(period) is ReportPeriod.WEEKLY else "Monthly"
        rate = len(completed) / total * 100 if total else 0
        lines = [
            f"# {title} Metrics Report",
            "",
            f"**Period**: {start:%Y-%m-%d} - {end:%Y-%m-%d}",
            f"**Generated**: {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC",
            "",
            "---",
            "",
            "## Summary",
            "",
            f"- **Total Tasks**: {total}",
            f"- **Completed**: {len(completed)} ({_pct(len(completed), total)})",
            f"- **Failed**: {len(failed)}",
            f"- **Blocked**: {len(blocked)}",
            f"- **Average Task Time**: {_minutes(average_ms)} minutes",
            "",
            "### Completion Rate",
            "",
            f"{progress_bar(rate)} {rate:.1f}%",
            "",
            "---",
            "",
            "## Test Coverage",
            "",
            f"- **Current Coverage**: {current:.1f}%",
            f"- **Change**: {change:+.1f}%",
            f"- **Status**: {'Meets target' if current >= 80 else 'Below target'}",
            "",
        ]
        if trend:
            lines += [
                "| Date | Lines | Statements | Functions | Branches |",
                "|------|-------|------------|-----------|----------|",
            ]
            for entry in trend[-5:]:
                lines.append(
                    f"| {entry.timestamp[:10]} | {entry.lines:.1f}% | {entry.statements:.1f}% "
                    f"| {entry.functions:.1f}% | {entry.branches:.1f}% |"
                )
            lines.append("")

        lines += [
            "---",
            "",
            "## PR Size",
            "",
            f"- **Average Size**: {pr.average:.0f} lines",
            f"- **Median Size**: {pr.median:.0f} lines",
            f"- **Largest PR**: {pr.max:.0f} lines",
            f"- **Over Threshold (>200)**: {pr.over_threshold}",
            "",
            "---",
            "",
            "## Blockers",
            "",
            f"- **Total Blockers**: {blockers.total}",
            f"- **Unresolved**: {blockers.unresolved}",
            f"- **Average Resolution Time**: {_minutes(blockers.average_resolution_ms)} minutes",
            "",
            "---",
            "",
            "## Player Performance",
            "",
            "| Player | Tasks | Utilization | Avg Time |",
            "|--------|-------|-------------|----------|",
        ]
        for player_id, stats in self.player_stats(completed).items():
            lines.append(
                f"| {player_id} | {stats.tasks_completed} | {stats.utilization_rate * 100:.1f}% "
                f"| {_minutes(stats.average_task_ms)}m |"
            )
        return "\n".join(lines) + "\n"

    def player_stats(self, completed) -> dict[str, PlayerStats]:
        result = {}
        for player_id in self.players:
            utilization = self.store.utilization_summary(player_id)
            result[player_id] = PlayerStats(
                tasks_completed=sum(1 for t in completed if t.player_id == player_id),
                utilization_rate=utilization.utilization_rate,
                average_task_ms=self.store.average_task_time(player_id),
            )
        return result

    def generate(self, period: ReportPeriod, output_dir: str | Path, end: datetime | None = None) -> Path:
        start, _ = date_range(period, end)
        path = Path(output_dir) / f"{ReportPeriod(period).value}-{start:%Y-%m-%d}.md"
        write_text_atomic(path, self.render(period, end))
        logger.info("Report generated: %s", path)
        return path


_ACTIVITY_LABELS = {
    PlayerActivity.IDLE: "idle",
    PlayerActivity.WORKING: "working",
    PlayerActivity.BLOCKED: "BLOCKED",
}


def render_snapshot(store: MetricsStore, states: list[PlayerState]) -> str:
    """Plain-text metrics dashboard for the terminal."""
    coverage = store.latest_coverage()
    pr = store.pr_size_stats()
    blockers = store.blocker_frequency()

    lines = ["Players", "-------"]
    for state in states:
        line = f"  {state.player_id:<10} {_ACTIVITY_LABELS[state.status]:<8}"
        if state.current_task:
            line += f" {state.current_task}"
        if state.blocker_reason:
            line += f" ({state.blocker_reason})"
        lines.append(line)

    lines += ["", "Quality", "-------"]
    if coverage:
        lines.append(
            f"  Coverage   lines {coverage.lines:.1f}%  statements {coverage.statements:.1f}%  "
            f"functions {coverage.functions:.1f}%  branches {coverage.branches:.1f}%"
        )
    else:
        lines.append("  Coverage   no data")
    lines.append(f"  PR size    avg {pr.average:.0f} lines, {pr.over_threshold} over 200")
    lines.append(f"  Blockers   {blockers.unresolved} unresolved of {blockers.total}")
    lines.append(f"  Avg task   {_minutes(store.average_task_time())} minutes")
    return "\n".join(lines)
