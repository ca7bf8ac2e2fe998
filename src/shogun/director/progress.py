"""Director-side wait on the captain's status file."""

import logging
import threading
from pathlib import Path

import yaml

from shogun.core.documents import DocumentStore
from shogun.core.schemas import CaptainStatus, RunStatus
from shogun.errors import DocumentValidationError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 10.0


class ProgressMonitor:
    """Poll ``captain_status.yaml`` until the command completes or fails.

    A missing or unreadable status file just means "not ready yet".
    """

    def __init__(self, interval: float = POLL_INTERVAL, store: DocumentStore | None = None):
        self.interval = interval
        self.store = store or DocumentStore()
        self._stop_event = threading.Event()

    def read_status(self, path: str | Path) -> CaptainStatus | None:
        try:
            return self.store.read(path, CaptainStatus)
        except FileNotFoundError:
            logger.debug("Status file %s not found, waiting", path)
        except (DocumentValidationError, yaml.YAMLError, OSError) as e:
            logger.warning("Could not read status file %s: %s", path, e)
        return None

    def watch(self, path: str | Path, command_id: str | None = None) -> RunStatus | None:
        """Block until the run is over. Returns its final status, or None if stopped.

        With ``command_id`` set, status documents for other commands are ignored.
        """
        self._stop_event.clear()
        logger.info("Monitoring progress via %s", path)
        reported_blockers = 0

        while True:
            status = self.read_status(path)
            if status is not None and (command_id is None or status.command_id == command_id):
                if status.status in (RunStatus.COMPLETED, RunStatus.FAILED):
                    logger.info("Command %s %s", status.command_id, status.status.value)
                    return status.status
                if len(status.blockers) > reported_blockers:
                    logger.warning("Blockers reported: %d", len(status.blockers))
                reported_blockers = len(status.blockers)

            if self._stop_event.wait(self.interval):
                logger.info("Stopping progress monitoring")
                return None

    def stop(self):
        self._stop_event.set()

    def status_summary(self, path: str | Path) -> str:
        status = self.read_status(path)
        if status is None:
            return "No status yet"
        summary = (
            f"{status.command_id or '-'}: {status.status.value} "
            f"({status.completed}/{status.total} completed, {status.failed} failed, "
            f"{status.progress_percent}%)"
        )
        if status.blockers:
            summary += f", {len(status.blockers)} blocker(s)"
        return summary
