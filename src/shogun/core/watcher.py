"""Polling file watcher with write-stabilization debounce."""

import hashlib
import logging
import threading
from collections.abc import Callable
from pathlib import Path

from shogun.errors import WatchError

logger = logging.getLogger(__name__)

Callback = Callable[[Path], None]
Signature = tuple[int, int, str] | None

POLL_INTERVAL = 0.1
STABILITY_THRESHOLD = 0.2


def file_signature(path: Path) -> Signature:
    """Return (mtime_ns, size, digest), or None when the file is absent."""
    try:
        stat = path.stat()
        digest = hashlib.sha1(path.read_bytes()).hexdigest()
    except FileNotFoundError:
        return None
    return (stat.st_mtime_ns, stat.st_size, digest)


class _PathWatch:
    """One polling thread for one path."""

    def __init__(self, path: Path, callback: Callback, poll_interval: float, stability: float):
        self.path = path
        self.callback = callback
        self.poll_interval = poll_interval
        self.stability = stability
        self._stop_event = threading.Event()
        self._baseline = file_signature(path)
        self._thread = threading.Thread(
            target=self._run, name=f"watch:{path.name}", daemon=True
        )

    def start(self):
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)

    def _run(self):
        while not self._stop_event.wait(self.poll_interval):
            try:
                current = file_signature(self.path)
            except OSError:
                logger.exception("Error polling %s", self.path)
                continue

            if current == self._baseline:
                continue
            if current is None:
                # Deleted: remember it so a re-created file counts as a change.
                self._baseline = None
                continue

            settled = self._wait_until_stable(current)
            if settled is None:
                continue
            self._baseline = settled
            self._fire()

    def _wait_until_stable(self, signature: Signature) -> Signature:
        """Block until the file stops changing for ``stability`` seconds."""
        quiet = 0.0
        while quiet < self.stability:
            if self._stop_event.wait(self.poll_interval):
                return None
            try:
                current = file_signature(self.path)
            except OSError:
                logger.exception("Error polling %s", self.path)
                return None
            if current is None:
                self._baseline = None
                return None
            if current == signature:
                quiet += self.poll_interval
            else:
                signature = current
                quiet = 0.0
        return signature

    def _fire(self):
        try:
            self.callback(self.path)
        except Exception:
            logger.exception("Error in change callback for %s", self.path)


class FileWatcher:
    """Watch files for content replacement.

    The state of a file at registration never triggers the callback. After a
    change is seen, the callback runs once the file has been quiet for
    ``stability`` seconds, so partial writes are never delivered.
    """

    def __init__(self, poll_interval: float = POLL_INTERVAL, stability: float = STABILITY_THRESHOLD):
        self.poll_interval = poll_interval
        self.stability = stability
        self._watches: dict[Path, _PathWatch] = {}
        self._lock = threading.Lock()

    def watch(self, path: str | Path, callback: Callback) -> None:
        path = Path(path).resolve()
        with self._lock:
            if path in self._watches:
                logger.warning("Already watching %s", path)
                return
            if not path.parent.is_dir():
                raise WatchError(
                    f"Cannot watch {path}: directory does not exist",
                    context={"path": str(path)},
                )
            watch = _PathWatch(path, callback, self.poll_interval, self.stability)
            self._watches[path] = watch
        watch.start()
        logger.info("Watching %s", path)

    def watch_multiple(self, paths: list[str | Path], callback: Callback) -> None:
        for path in paths:
            self.watch(path, callback)

    def unwatch(self, path: str | Path) -> None:
        path = Path(path).resolve()
        with self._lock:
            watch = self._watches.pop(path, None)
        if watch is not None:
            watch.stop()
            logger.info("Stopped watching %s", path)

    def unwatch_all(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for watch in watches:
            watch.stop()
        if watches:
            logger.info("Stopped %d watcher(s)", len(watches))

    def watched_paths(self) -> list[Path]:
        with self._lock:
            return list(self._watches)

    def is_watching(self, path: str | Path) -> bool:
        with self._lock:
            return Path(path).resolve() in self._watches
