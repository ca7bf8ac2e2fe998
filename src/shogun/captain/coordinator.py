"""Captain: turn Commands into player Tasks and watch them to completion."""

import logging
import signal
import threading
from datetime import datetime, timezone
from pathlib import Path

from shogun.captain.allocator import PlayerAllocator, PlayerAssignment
from shogun.captain.dashboard import StatusBoard
from shogun.captain.prompts import PromptOptimizer
from shogun.captain.quality import QualityMonitor
from shogun.captain.state import CommandRun
from shogun.config import Config
from shogun.core.documents import DocumentStore
from shogun.core.schemas import BlockerNote, Command, CommandBody, Task, TaskStatus
from shogun.core.watcher import FileWatcher
from shogun.errors import CommunicationError, ShogunError
from shogun.integrations.tmux import TmuxBridge
from shogun.metrics.store import MetricsStore, PlayerActivity, PlayerStateStore

logger = logging.getLogger(__name__)

NEW_TASK_MESSAGE = "New task assigned. Check {task_file}."
STALE_STATUS_MESSAGE = "Report exists but {task_file} status is still {status}. Update it to completed."
REMINDER_MESSAGE = "Check progress on task {task_id}. Report if you are blocked."
ALL_COMPLETED_MESSAGE = "Captain: all tasks completed. Reports are in {reports_dir}/."
FAILED_MESSAGE = "Captain: {failed} of {total} task(s) failed. See {status_file}."
BLOCKED_MESSAGE = "Captain: {player_id} is blocked on {task_id}: {reason}"

NO_BLOCKER_REASON = "Blocked (no reason given)"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class Captain:
    """Coordinator control loop.

    ``handle_command`` runs on the watcher thread when the command file
    changes. Monitoring runs on its own daemon thread; both share ``run``
    under ``_lock``. One sweep finishes (including the status publish)
    before the loop waits again, so sweeps never overlap.
    """

    def __init__(
        self,
        config: Config,
        store: DocumentStore | None = None,
        bridge: TmuxBridge | None = None,
        watcher: FileWatcher | None = None,
        metrics: MetricsStore | None = None,
        player_states: PlayerStateStore | None = None,
    ):
        self.config = config
        self.store = store or DocumentStore()
        self.bridge = bridge or TmuxBridge()
        self.watcher = watcher or FileWatcher()
        self.metrics = metrics or MetricsStore(config.metrics_file)
        self.player_states = player_states or PlayerStateStore(config.player_states_file, config.players)
        self.allocator = PlayerAllocator(config.players)
        self.optimizer = PromptOptimizer()
        self.monitor = QualityMonitor(config.root, config.reports_dir, store=self.store)
        self.board = StatusBoard(config.status_file, config.dashboard_file, store=self.store)

        self.run: CommandRun | None = None
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None

    def _notify(self, target: str, text: str) -> bool:
        """Send one message; a delivery failure only affects this recipient."""
        try:
            self.bridge.send_message(target, text)
            return True
        except CommunicationError as e:
            logger.error("Could not notify %s: %s", target, e)
            return False

    # ── Command intake ────────────────────────────────────────────────────────

    def handle_command(self, path: str | Path | None = None) -> CommandRun | None:
        """Read a Command document and hand its subtasks out.

        Errors are logged and swallowed: the captain keeps waiting for the
        next command.
        """
        path = Path(path or self.config.command_file)
        logger.info("New command detected: %s", path)
        try:
            command = self.store.read(path, Command)
            run = self.dispatch(command.command)
        except Exception:
            logger.exception("Error handling command from %s", path)
            return None
        self.start_monitoring()
        return run

    def dispatch(self, body: CommandBody) -> CommandRun:
        logger.info("Processing command %s: %s", body.id, body.description)
        if not body.subtasks:
            logger.warning("Command %s has no subtasks", body.id)

        tasks = {
            s.id: self.optimizer.enrich(s, body.description, parent_id=body.id)
            for s in body.subtasks
        }
        assignments = self.allocator.assign(body.subtasks)

        run = CommandRun(command=body)
        for assignment in assignments:
            player_id = assignment.player_id
            task = tasks.get(assignment.subtask.id)
            if task is None:
                logger.warning("No enriched task for %s, skipping", assignment.subtask.id)
                self.allocator.complete_task(player_id)
                continue

            task_file = self.config.task_file(player_id)
            logger.info("Writing task %s to %s", task.task.id, task_file)
            run.assignments.append(assignment)
            try:
                self.store.write(task_file, task, Task)
            except (OSError, ShogunError) as e:
                logger.error("Could not write task %s to %s: %s", task.task.id, task_file, e)
                self.allocator.complete_task(player_id)
                run.statuses[task.task.id] = TaskStatus.FAILED
                run.mark_failed(task.task.id)
                continue

            run.statuses[task.task.id] = TaskStatus.ASSIGNED
            self.player_states.update(player_id, PlayerActivity.WORKING, current_task=task.task.id)
            self._notify(
                self.config.player_pane(player_id),
                NEW_TASK_MESSAGE.format(task_file=self.config.display_path(task_file)),
            )

        with self._lock:
            if self.run is not None and not self.run.finished:
                logger.warning("Replacing unfinished command %s", self.run.command.id)
            self.run = run
            self.board.publish(run.to_status())
            logger.info("Assigned %d task(s) for %s", run.total - len(run.failed), body.id)
            self._announce_outcome(run)
        return run

    # ── Monitoring ────────────────────────────────────────────────────────────

    def start_monitoring(self):
        """Start the monitor thread unless one is already running."""
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._monitor, name="captain-monitor", daemon=True
            )
            self._thread.start()
        logger.info("Captain monitor started (every %ss)", self.config.monitor_interval)

    def stop_monitoring(self):
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=10)
        logger.info("Captain monitor stopped")

    @property
    def monitoring(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _monitor(self):
        while not self._stop_event.wait(self.config.monitor_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Error in captain monitor loop")
            with self._lock:
                if self.run is None or self.run.finished:
                    self._thread = None
                    break

    def sweep(self) -> bool:
        """Reconcile every open assignment once. Returns True when the run is over."""
        with self._lock:
            run = self.run
            if run is None or run.finished:
                return True

            for assignment in run.pending():
                try:
                    self._check_assignment(run, assignment)
                except Exception:
                    logger.exception("Error checking %s", assignment.player_id)

            self.board.publish(run.to_status())
            return self._announce_outcome(run)

    def _announce_outcome(self, run: CommandRun) -> bool:
        """Tell the director how a finished run ended. Returns False while it is still open."""
        if run.all_completed:
            logger.info("All tasks completed for %s", run.command.id)
            self._notify(
                self.config.director_target,
                ALL_COMPLETED_MESSAGE.format(reports_dir=self.config.reports_dir),
            )
            return True
        if run.finished:
            logger.warning("Command %s finished with %d failed task(s)", run.command.id, len(run.failed))
            self._notify(
                self.config.director_target,
                FAILED_MESSAGE.format(
                    failed=len(run.failed),
                    total=run.total,
                    status_file=self.config.display_path(self.config.status_file),
                ),
            )
            return True
        return False

    def _check_assignment(self, run: CommandRun, assignment: PlayerAssignment):
        player_id = assignment.player_id
        task_file = self.config.task_file(player_id)
        task = self.store.read(task_file, Task)
        body = task.task
        if body.id != assignment.subtask.id:
            logger.warning("%s now holds %s, expected %s", task_file, body.id, assignment.subtask.id)
            return

        quality = self.monitor.detect_inconsistency(task, player_id)
        run.statuses[body.id] = body.status
        pane = self.config.player_pane(player_id)

        if body.id in run.blocked_reported and body.status is not TaskStatus.BLOCKED:
            self._unblock(run, assignment)

        if quality.inconsistent:
            logger.warning("Inconsistency detected: %s - %s", player_id, body.id)
            self._notify(
                pane,
                STALE_STATUS_MESSAGE.format(task_file=self.config.display_path(task_file), status=body.status.value),
            )
        elif not quality.report_exists and body.status is TaskStatus.ASSIGNED:
            logger.info("No progress for %s, sending reminder", player_id)
            self._notify(pane, REMINDER_MESSAGE.format(task_id=body.id))
        elif body.status.is_terminal_success:
            self._complete(run, assignment, task)
        elif body.status is TaskStatus.FAILED:
            self._fail(run, assignment)
        elif body.status is TaskStatus.BLOCKED:
            self._block(run, assignment, task)

    def _complete(self, run: CommandRun, assignment: PlayerAssignment, task: Task):
        player_id = assignment.player_id
        body = task.task
        logger.info("Task completed: %s by %s", body.id, player_id)
        run.mark_completed(body.id)
        self.allocator.complete_task(player_id)

        report = self.monitor.load_report(player_id, body.id, body.output_location)
        if report is not None:
            result = self.monitor.evaluate_gates(body.quality_gates, report.quality_metrics)
            for failure in result.failures:
                logger.warning("Quality gate for %s: %s", body.id, failure)

        metric = self.metrics.record_task_completion(
            body.id, player_id, run.started_at, datetime.now(timezone.utc), "completed"
        )
        self.metrics.accumulate_utilization(
            player_id, _today(), working_time=metric.duration_ms, tasks_completed=1
        )
        self.player_states.update(player_id, PlayerActivity.IDLE)

    def _fail(self, run: CommandRun, assignment: PlayerAssignment):
        player_id = assignment.player_id
        task_id = assignment.subtask.id
        logger.warning("Task failed: %s by %s", task_id, player_id)
        run.mark_failed(task_id)
        self.allocator.complete_task(player_id)
        self.metrics.record_task_completion(
            task_id, player_id, run.started_at, datetime.now(timezone.utc), "failed"
        )
        self.player_states.update(player_id, PlayerActivity.IDLE)

    def _block(self, run: CommandRun, assignment: PlayerAssignment, task: Task):
        player_id = assignment.player_id
        task_id = assignment.subtask.id
        if task_id in run.blocked_reported:
            return

        report = self.monitor.load_report(player_id, task_id, task.task.output_location)
        reason = "; ".join(report.blockers) if report and report.blockers else NO_BLOCKER_REASON
        logger.warning("%s blocked on %s: %s", player_id, task_id, reason)

        run.blocked_reported.add(task_id)
        run.blockers.append(BlockerNote(player_id=player_id, task_id=task_id, reason=reason))
        self.metrics.record_blocker(player_id, reason)
        self.player_states.update(
            player_id, PlayerActivity.BLOCKED, current_task=task_id, blocker_reason=reason
        )
        self._notify(
            self.config.director_target,
            BLOCKED_MESSAGE.format(player_id=player_id, task_id=task_id, reason=reason),
        )

    def _unblock(self, run: CommandRun, assignment: PlayerAssignment):
        player_id = assignment.player_id
        task_id = assignment.subtask.id
        logger.info("%s unblocked on %s", player_id, task_id)
        run.blocked_reported.discard(task_id)
        run.blockers = [b for b in run.blockers if b.task_id != task_id]
        resolved = self.metrics.resolve_blocker(player_id)
        if resolved is not None and resolved.resolution_time:
            self.metrics.accumulate_utilization(player_id, _today(), blocked_time=resolved.resolution_time)
        self.player_states.update(player_id, PlayerActivity.WORKING, current_task=task_id)

    # ── Process lifecycle ─────────────────────────────────────────────────────

    def serve(self):
        """Watch the command file until SIGINT/SIGTERM or ``request_shutdown``."""
        self.config.queue_dir.mkdir(parents=True, exist_ok=True)
        self.watcher.watch(self.config.command_file, self.handle_command)

        def _handle_signal(signum, frame):
            logger.info("Received signal %d, shutting down", signum)
            self._shutdown.set()

        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)

        logger.info("Captain ready. Watching %s", self.config.command_file)
        try:
            while not self._shutdown.wait(1.0):
                pass
        finally:
            self.shutdown()

    def request_shutdown(self):
        self._shutdown.set()

    def shutdown(self):
        self.stop_monitoring()
        self.watcher.unwatch_all()
        logger.info("Captain stopped")
