"""Threshold checks over stored metrics."""

from dataclasses import dataclass, field
from enum import Enum

from shogun.core.schemas import utc_now
from shogun.metrics.store import MetricsStore

COVERAGE_TARGET = 80
COVERAGE_CRITICAL = 70
COVERAGE_DROP = 10
PR_SIZE_TARGET = 200
PR_SIZE_CRITICAL = 300
OVERSIZE_PR_LIMIT = 3
UNRESOLVED_BLOCKER_LIMIT = 3
UNRESOLVED_BLOCKER_CRITICAL = 5
RESOLUTION_HOURS_LIMIT = 2
RESOLUTION_HOURS_CRITICAL = 4
COMPLETION_RATE_TARGET = 80
RECENT_TASKS = 10


class AnomalyType(str, Enum):
    COVERAGE_DROP = "coverage_drop"
    PR_SIZE_INCREASE = "pr_size_increase"
    BLOCKER_SPIKE = "blocker_spike"
    COMPLETION_RATE_DROP = "completion_rate_drop"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Anomaly:
    type: AnomalyType
    severity: Severity
    message: str
    current: float
    threshold: float
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "current": self.current,
            "threshold": self.threshold,
            "timestamp": self.timestamp,
        }


RECOMMENDATIONS = {
    AnomalyType.COVERAGE_DROP: [
        "Add more unit tests to increase coverage",
        "Review untested code paths and edge cases",
    ],
    AnomalyType.PR_SIZE_INCREASE: [
        "Break down large PRs into smaller, focused changes",
        "Keep each change to a single responsibility",
    ],
    AnomalyType.BLOCKER_SPIKE: [
        "Prioritize resolving active blockers",
        "Consider pairing on blocked tasks",
    ],
    AnomalyType.COMPLETION_RATE_DROP: [
        "Review task complexity and estimation",
        "Provide clearer task requirements",
    ],
}


def coverage_drop_severity(drop: float) -> Severity:
    if drop > 20:
        return Severity.HIGH
    if drop >= 15:
        return Severity.MEDIUM
    return Severity.LOW


class AnomalyDetector:
    """Four independent checks; each yields at most one Anomaly."""

    def __init__(self, store: MetricsStore):
        self.store = store

    def detect_all(self) -> list[Anomaly]:
        checks = [
            self.detect_coverage_drop,
            self.detect_pr_size_increase,
            self.detect_blocker_spike,
            self.detect_completion_rate_drop,
        ]
        return [anomaly for check in checks if (anomaly := check()) is not None]

    def detect_coverage_drop(self) -> Anomaly | None:
        trend = self.store.coverage_trend(5)
        if len(trend) < 2:
            return None

        current = trend[-1].lines
        previous = trend[-2].lines
        drop = previous - current

        if drop > COVERAGE_DROP:
            return Anomaly(
                type=AnomalyType.COVERAGE_DROP,
                severity=coverage_drop_severity(drop),
                message=f"Test coverage dropped by {drop:.1f}% (from {previous:.1f}% to {current:.1f}%)",
                current=current,
                threshold=previous - COVERAGE_DROP,
            )

        if current < COVERAGE_TARGET:
            return Anomaly(
                type=AnomalyType.COVERAGE_DROP,
                severity=Severity.HIGH if current < COVERAGE_CRITICAL else Severity.MEDIUM,
                message=f"Test coverage is below target at {current:.1f}%",
                current=current,
                threshold=COVERAGE_TARGET,
            )
        return None

    def detect_pr_size_increase(self) -> Anomaly | None:
        stats = self.store.pr_size_stats()
        if stats.average == 0:
            return None

        if stats.average > PR_SIZE_TARGET:
            return Anomaly(
                type=AnomalyType.PR_SIZE_INCREASE,
                severity=Severity.HIGH if stats.average > PR_SIZE_CRITICAL else Severity.MEDIUM,
                message=f"Average PR size is {stats.average:.0f} lines (threshold: {PR_SIZE_TARGET})",
                current=stats.average,
                threshold=PR_SIZE_TARGET,
            )

        if stats.over_threshold > OVERSIZE_PR_LIMIT:
            return Anomaly(
                type=AnomalyType.PR_SIZE_INCREASE,
                severity=Severity.MEDIUM,
                message=f"{stats.over_threshold} PRs are over {PR_SIZE_TARGET} lines",
                current=stats.over_threshold,
                threshold=OVERSIZE_PR_LIMIT,
            )
        return None

    def detect_blocker_spike(self) -> Anomaly | None:
        stats = self.store.blocker_frequency()

        if stats.unresolved > UNRESOLVED_BLOCKER_LIMIT:
            return Anomaly(
                type=AnomalyType.BLOCKER_SPIKE,
                severity=Severity.HIGH if stats.unresolved > UNRESOLVED_BLOCKER_CRITICAL else Severity.MEDIUM,
                message=f"{stats.unresolved} unresolved blockers detected",
                current=stats.unresolved,
                threshold=UNRESOLVED_BLOCKER_LIMIT,
            )

        hours = stats.average_resolution_ms / 1000 / 60 / 60
        if hours > RESOLUTION_HOURS_LIMIT and stats.total > 0:
            return Anomaly(
                type=AnomalyType.BLOCKER_SPIKE,
                severity=Severity.HIGH if hours > RESOLUTION_HOURS_CRITICAL else Severity.MEDIUM,
                message=f"Average blocker resolution time is {hours:.1f} hours",
                current=hours,
                threshold=RESOLUTION_HOURS_LIMIT,
            )
        return None

    def detect_completion_rate_drop(self) -> Anomaly | None:
        recent = self.store.recent_tasks(RECENT_TASKS)
        if not recent:
            return None

        completed = sum(1 for t in recent if t.status == "completed")
        rate = completed / len(recent) * 100
        if rate >= COMPLETION_RATE_TARGET:
            return None

        if rate < 60:
            severity = Severity.HIGH
        elif rate < 70:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW
        return Anomaly(
            type=AnomalyType.COMPLETION_RATE_DROP,
            severity=severity,
            message=f"Task completion rate is {rate:.1f}% (last {len(recent)} tasks)",
            current=rate,
            threshold=COMPLETION_RATE_TARGET,
        )


def recommendations(anomalies: list[Anomaly]) -> list[str]:
    result = []
    for anomaly in anomalies:
        for rec in RECOMMENDATIONS[anomaly.type]:
            if rec not in result:
                result.append(rec)
    return result
