"""Tests for the polling file watcher."""

import threading
import time

import pytest

from shogun.core.watcher import FileWatcher, file_signature
from shogun.errors import WatchError


@pytest.fixture
def watcher():
    w = FileWatcher(poll_interval=0.02, stability=0.06)
    yield w
    w.unwatch_all()


class Recorder:
    def __init__(self):
        self.calls = []
        self.event = threading.Event()

    def __call__(self, path):
        self.calls.append(path)
        self.event.set()

    def wait(self, timeout=3.0):
        fired = self.event.wait(timeout)
        self.event.clear()
        return fired


class TestFileWatcher:
    def test_change_fires_callback(self, watcher, root):
        path = root / "command.yaml"
        path.write_text("one")
        recorder = Recorder()
        watcher.watch(path, recorder)

        path.write_text("two")

        assert recorder.wait()
        assert recorder.calls == [path.resolve()]

    def test_initial_state_does_not_fire(self, watcher, root):
        path = root / "command.yaml"
        path.write_text("one")
        recorder = Recorder()
        watcher.watch(path, recorder)
        time.sleep(0.3)
        assert recorder.calls == []

    def test_created_file_fires(self, watcher, root):
        path = root / "later.yaml"
        recorder = Recorder()
        watcher.watch(path, recorder)
        path.write_text("created")
        assert recorder.wait()

    def test_recreated_after_delete_fires(self, watcher, root):
        path = root / "doc.yaml"
        path.write_text("one")
        recorder = Recorder()
        watcher.watch(path, recorder)

        path.unlink()
        time.sleep(0.1)
        path.write_text("one")

        assert recorder.wait()

    def test_callback_error_does_not_stop_watching(self, watcher, root):
        path = root / "doc.yaml"
        path.write_text("one")
        calls = []
        second = threading.Event()

        def flaky(p):
            calls.append(p)
            if len(calls) == 1:
                raise RuntimeError("boom")
            second.set()

        watcher.watch(path, flaky)
        path.write_text("two")
        deadline = time.monotonic() + 3
        while not calls and time.monotonic() < deadline:
            time.sleep(0.02)
        path.write_text("three")

        assert second.wait(3.0)

    def test_missing_directory(self, watcher, root):
        with pytest.raises(WatchError):
            watcher.watch(root / "nope" / "doc.yaml", lambda p: None)

    def test_duplicate_registration_ignored(self, watcher, root):
        path = root / "doc.yaml"
        watcher.watch(path, lambda p: None)
        watcher.watch(path, lambda p: None)
        assert watcher.watched_paths() == [path.resolve()]

    def test_unwatch(self, watcher, root):
        path = root / "doc.yaml"
        path.write_text("one")
        recorder = Recorder()
        watcher.watch(path, recorder)

        watcher.unwatch(path)
        assert not watcher.is_watching(path)

        path.write_text("two")
        time.sleep(0.3)
        assert recorder.calls == []

    def test_unwatch_unknown_is_noop(self, watcher, root):
        watcher.unwatch(root / "never.yaml")

    def test_watch_multiple(self, watcher, root):
        paths = [root / "a.yaml", root / "b.yaml"]
        watcher.watch_multiple(paths, lambda p: None)
        assert all(watcher.is_watching(p) for p in paths)
        watcher.unwatch_all()
        assert watcher.watched_paths() == []


class TestFileSignature:
    def test_missing(self, root):
        assert file_signature(root / "missing") is None

    def test_content_changes_signature(self, root):
        path = root / "f"
        path.write_text("aaa")
        first = file_signature(path)
        path.write_text("bbb")
        assert file_signature(path) != first
