"""Tests for the metrics store, anomaly detector and reports."""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from shogun.metrics.anomalies import AnomalyDetector, AnomalyType, Severity, coverage_drop_severity, recommendations
from shogun.metrics.report import ReportGenerator, ReportPeriod, date_range, progress_bar, render_snapshot
from shogun.metrics.store import MetricsStore, PlayerActivity, PlayerStateStore


@pytest.fixture
def store(root):
    return MetricsStore(root / "metrics" / "data.json")


def _record_tasks(store, statuses, minutes=30):
    end = datetime.now(timezone.utc)
    for i, status in enumerate(statuses):
        store.record_task_completion(f"T{i}", "player1", end - timedelta(minutes=minutes), end, status)


class TestMetricsStore:
    def test_empty(self, store):
        data = store.load()
        assert data.tasks == [] and data.coverage == []
        assert store.average_task_time() == 0
        assert store.latest_coverage() is None

    def test_file_uses_camel_case(self, store):
        store.record_pr_size(120, 30, 4, pr_number=12)
        raw = json.loads(store.path.read_text())
        assert set(raw) == {"tasks", "coverage", "prSizes", "blockers", "playerUtilization"}
        assert raw["prSizes"][0]["filesChanged"] == 4
        assert raw["prSizes"][0]["total"] == 150

    def test_corrupt_file_reads_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load().tasks == []
        store.record_coverage(90, 90, 90, 90)
        assert len(store.load().coverage) == 1

    def test_task_duration(self, store):
        start = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
        metric = store.record_task_completion("T1", "player1", start, start + timedelta(minutes=2), "completed")
        assert metric.duration_ms == 120000
        assert store.average_task_time() == 120000
        assert store.average_task_time("player2") == 0

    def test_average_ignores_failed(self, store):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        store.record_task_completion("T1", "player1", start, start + timedelta(seconds=10), "completed")
        store.record_task_completion("T2", "player1", start, start + timedelta(seconds=90), "failed")
        assert store.average_task_time() == 10000

    def test_coverage_trend(self, store):
        for value in (70, 75, 80, 85):
            store.record_coverage(value, value, value, value)
        assert [c.lines for c in store.coverage_trend(2)] == [80, 85]
        assert store.latest_coverage().lines == 85

    def test_pr_size_stats(self, store):
        for total in (100, 300, 250, 50):
            store.record_pr_size(total, 0, 1)
        stats = store.pr_size_stats()
        assert stats.average == 175
        assert stats.median == 250
        assert stats.max == 300
        assert stats.over_threshold == 2

    def test_blockers(self, store):
        first = store.record_blocker("player1", "Need API key")
        store.record_blocker("player2", "Flaky CI")

        resolved = store.resolve_blocker("player1", first.timestamp)
        assert resolved.resolved is True
        assert resolved.resolution_time >= 0

        freq = store.blocker_frequency()
        assert freq.total == 2
        assert freq.unresolved == 1
        assert [b.player_id for b in store.unresolved_blockers()] == ["player2"]

    def test_resolve_unknown_blocker(self, store):
        assert store.resolve_blocker("player9") is None

    def test_utilization_upsert(self, store):
        store.record_player_utilization("player1", "2025-01-01", 10, 30, 0, 1)
        store.record_player_utilization("player1", "2025-01-01", 20, 60, 20, 2)
        data = store.load()
        assert len(data.player_utilization) == 1
        summary = store.utilization_summary("player1")
        assert summary.total_tasks_completed == 2
        assert summary.utilization_rate == 0.6

    def test_accumulate_utilization(self, store):
        store.accumulate_utilization("player1", "2025-01-01", working_time=100, tasks_completed=1)
        store.accumulate_utilization("player1", "2025-01-01", blocked_time=100, tasks_completed=1)
        summary = store.utilization_summary()
        assert summary.total_working_time == 100
        assert summary.total_blocked_time == 100
        assert summary.total_tasks_completed == 2
        assert summary.utilization_rate == 0.5

    def test_concurrent_accumulate_keeps_every_update(self, store):
        workers = 8
        per_worker = 10
        start = threading.Barrier(workers)

        def work():
            start.wait()
            for _ in range(per_worker):
                store.accumulate_utilization("player1", "2025-01-01", working_time=5, tasks_completed=1)

        threads = [threading.Thread(target=work) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        summary = store.utilization_summary("player1")
        assert summary.total_tasks_completed == workers * per_worker
        assert summary.total_working_time == workers * per_worker * 5
        assert len(store.load().player_utilization) == 1


class TestPlayerStateStore:
    def test_defaults_to_idle(self, root):
        states = PlayerStateStore(root / "states.json", ["player1", "player2"]).load()
        assert [(s.player_id, s.status) for s in states] == [
            ("player1", PlayerActivity.IDLE),
            ("player2", PlayerActivity.IDLE),
        ]

    def test_update(self, root):
        store = PlayerStateStore(root / "states.json", ["player1", "player2"])
        store.update("player2", PlayerActivity.BLOCKED, current_task="T2", blocker_reason="Need API key")
        states = {s.player_id: s for s in store.load()}
        assert states["player2"].status is PlayerActivity.BLOCKED
        assert states["player2"].blocker_reason == "Need API key"
        assert states["player1"].status is PlayerActivity.IDLE
        raw = json.loads((root / "states.json").read_text())
        assert raw[1]["playerId"] == "player2"


# ── Anomalies ─────────────────────────────────────────────────────────────────


def _coverage(store, *values):
    for value in values:
        store.record_coverage(value, value, value, value)


class TestCoverageAnomaly:
    @pytest.mark.parametrize(
        "drop, severity",
        [(10.5, Severity.LOW), (14.9, Severity.LOW), (15, Severity.MEDIUM), (20, Severity.MEDIUM), (20.1, Severity.HIGH)],
    )
    def test_severity_boundaries(self, drop, severity):
        assert coverage_drop_severity(drop) is severity

    def test_drop_of_fifteen_is_medium(self, store):
        _coverage(store, 90, 75)
        anomaly = AnomalyDetector(store).detect_coverage_drop()
        assert anomaly.type is AnomalyType.COVERAGE_DROP
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.message == "Test coverage dropped by 15.0% (from 90.0% to 75.0%)"

    def test_large_drop_is_high(self, store):
        _coverage(store, 95, 70)
        assert AnomalyDetector(store).detect_coverage_drop().severity is Severity.HIGH

    def test_small_drop_below_target(self, store):
        _coverage(store, 82, 79)
        anomaly = AnomalyDetector(store).detect_coverage_drop()
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.threshold == 80

    def test_drop_of_exactly_ten_falls_through(self, store):
        _coverage(store, 75, 65)
        anomaly = AnomalyDetector(store).detect_coverage_drop()
        assert anomaly.message == "Test coverage is below target at 65.0%"
        assert anomaly.severity is Severity.HIGH

    def test_healthy(self, store):
        _coverage(store, 85, 84)
        assert AnomalyDetector(store).detect_coverage_drop() is None

    def test_needs_two_samples(self, store):
        _coverage(store, 40)
        assert AnomalyDetector(store).detect_coverage_drop() is None


class TestOtherAnomalies:
    def test_pr_mean_250_is_medium(self, store):
        for total in (200, 300):
            store.record_pr_size(total, 0, 1)
        anomaly = AnomalyDetector(store).detect_pr_size_increase()
        assert anomaly.type is AnomalyType.PR_SIZE_INCREASE
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.current == 250

    def test_pr_mean_over_300_is_high(self, store):
        store.record_pr_size(350, 0, 1)
        assert AnomalyDetector(store).detect_pr_size_increase().severity is Severity.HIGH

    def test_many_oversize_prs(self, store):
        for total in [210] * 4 + [10] * 6:
            store.record_pr_size(total, 0, 1)
        anomaly = AnomalyDetector(store).detect_pr_size_increase()
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.current == 4

    def test_no_prs(self, store):
        assert AnomalyDetector(store).detect_pr_size_increase() is None

    @pytest.mark.parametrize("count, severity", [(4, Severity.MEDIUM), (6, Severity.HIGH)])
    def test_unresolved_blockers(self, store, count, severity):
        for i in range(count):
            store.record_blocker(f"player{i}", "stuck")
        assert AnomalyDetector(store).detect_blocker_spike().severity is severity

    def test_few_blockers(self, store):
        store.record_blocker("player1", "stuck")
        assert AnomalyDetector(store).detect_blocker_spike() is None

    @pytest.mark.parametrize(
        "completed, severity",
        [(5, Severity.HIGH), (6, Severity.MEDIUM), (7, Severity.LOW), (8, None)],
    )
    def test_completion_rate(self, store, completed, severity):
        _record_tasks(store, ["completed"] * completed + ["failed"] * (10 - completed))
        anomaly = AnomalyDetector(store).detect_completion_rate_drop()
        if severity is None:
            assert anomaly is None
        else:
            assert anomaly.severity is severity

    def test_detect_all_and_recommendations(self, store):
        _coverage(store, 90, 60)
        store.record_pr_size(500, 0, 1)
        anomalies = AnomalyDetector(store).detect_all()
        assert [a.type for a in anomalies] == [AnomalyType.COVERAGE_DROP, AnomalyType.PR_SIZE_INCREASE]
        recs = recommendations(anomalies + anomalies)
        assert recs[0] == "Add more unit tests to increase coverage"
        assert len(recs) == len(set(recs)) == 4
        assert anomalies[0].to_dict()["severity"] == "high"


# ── Reports ───────────────────────────────────────────────────────────────────


class TestReports:
    def test_weekly_range(self):
        end = datetime(2025, 3, 15, tzinfo=timezone.utc)
        assert date_range(ReportPeriod.WEEKLY, end) == (datetime(2025, 3, 8, tzinfo=timezone.utc), end)

    def test_monthly_range_clamps_day(self):
        end = datetime(2025, 3, 31, tzinfo=timezone.utc)
        start, _ = date_range(ReportPeriod.MONTHLY, end)
        assert start == datetime(2025, 2, 28, tzinfo=timezone.utc)

    def test_monthly_range_crosses_year(self):
        start, _ = date_range(ReportPeriod.MONTHLY, datetime(2025, 1, 10, tzinfo=timezone.utc))
        assert start == datetime(2024, 12, 10, tzinfo=timezone.utc)

    def test_progress_bar(self):
        assert progress_bar(50, width=10) == "[#####-----]"
        assert progress_bar(150, width=4) == "[####]"

    def test_generate(self, store, root):
        _record_tasks(store, ["completed", "completed", "failed"])
        _coverage(store, 78, 82)
        store.record_pr_size(150, 20, 3)

        end = datetime.now(timezone.utc)
        path = ReportGenerator(store, ["player1", "player2"]).generate(ReportPeriod.WEEKLY, root / "reports", end)

        start, _ = date_range(ReportPeriod.WEEKLY, end)
        assert path.name == f"weekly-{start:%Y-%m-%d}.md"
        text = path.read_text()
        assert text.startswith("# Weekly Metrics Report")
        assert "- **Total Tasks**: 3" in text
        assert "- **Completed**: 2 (66.7%)" in text
        assert "- **Current Coverage**: 82.0%" in text
        assert "- **Change**: +4.0%" in text
        assert "| player1 | 2 |" in text
        assert "| player2 | 0 |" in text

    def test_snapshot(self, store, root):
        states = PlayerStateStore(root / "states.json", ["player1", "player2"])
        states.update("player2", PlayerActivity.BLOCKED, current_task="T2", blocker_reason="Need API key")
        text = render_snapshot(store, states.load())
        assert "player1" in text
        assert "BLOCKED  T2 (Need API key)" in text
        assert "Coverage   no data" in text
