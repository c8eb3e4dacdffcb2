"""Tests for the self-healing watch source."""

import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from filetracking.watcher import WatchEvent, WatchSource, WatchState


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class _Recorder:
    """Collects watch events from the observer thread."""

    def __init__(self) -> None:
        self.events: list[WatchEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: WatchEvent) -> None:
        with self._lock:
            self.events.append(event)

    def names(self) -> list[str]:
        with self._lock:
            return [e.name for e in self.events]


@pytest.fixture
def recorder() -> _Recorder:
    return _Recorder()


def test_start_requires_existing_folder(tmp_path: Path, recorder: _Recorder) -> None:
    source = WatchSource(tmp_path / "missing", recorder)

    with pytest.raises(FileNotFoundError):
        source.start()
    assert source.state is WatchState.STOPPED


def test_emits_event_for_created_file(tmp_path: Path, recorder: _Recorder) -> None:
    source = WatchSource(tmp_path, recorder, health_check_interval=0.05)
    source.start()
    try:
        assert source.state is WatchState.ACTIVE
        (tmp_path / "new.txt").write_text("hello", encoding="utf-8")

        assert _wait_for(lambda: "new.txt" in recorder.names())
        event = next(e for e in recorder.events if e.name == "new.txt")
        assert event.path == tmp_path / "new.txt"
    finally:
        source.stop()
    assert source.state is WatchState.STOPPED
    assert source.observer is None


def test_ignores_created_directories(tmp_path: Path, recorder: _Recorder) -> None:
    source = WatchSource(tmp_path, recorder, health_check_interval=0.05)
    source.start()
    try:
        (tmp_path / "subdir").mkdir()
        (tmp_path / "marker.txt").write_text("x", encoding="utf-8")
        assert _wait_for(lambda: "marker.txt" in recorder.names())
        assert "subdir" not in recorder.names()
    finally:
        source.stop()


def test_forced_fault_restarts_observer(tmp_path: Path, recorder: _Recorder) -> None:
    restarts: list[int] = []
    source = WatchSource(
        tmp_path,
        recorder,
        on_restart=lambda: restarts.append(1),
        health_check_interval=0.05,
    )
    source.start()
    try:
        original = source.observer

        assert source.fault(RuntimeError("internal buffer overflow")) is True

        assert source.state is WatchState.ACTIVE
        assert source.restart_count == 1
        assert source.observer is not original
        assert source.is_running
        assert not original.is_alive()
        assert restarts == [1]

        (tmp_path / "after-restart.txt").write_text("x", encoding="utf-8")
        assert _wait_for(lambda: "after-restart.txt" in recorder.names())
    finally:
        source.stop()


def test_supervisor_replaces_dead_observer(tmp_path: Path, recorder: _Recorder) -> None:
    source = WatchSource(tmp_path, recorder, health_check_interval=0.05)
    source.start()
    try:
        original = source.observer
        original.stop()
        original.join(timeout=5)

        assert _wait_for(lambda: source.observer is not original and source.is_running)
        assert source.restart_count >= 1

        (tmp_path / "later.txt").write_text("x", encoding="utf-8")
        assert _wait_for(lambda: "later.txt" in recorder.names())
    finally:
        source.stop()


def test_failed_restart_stays_faulted(
    tmp_path: Path, recorder: _Recorder, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = WatchSource(tmp_path, recorder, health_check_interval=60)
    source.start()
    try:
        def _broken() -> None:
            raise OSError("directory inaccessible")

        monkeypatch.setattr(source, "_open_observer", _broken)

        assert source.fault("forced") is False
        assert source.state is WatchState.FAULTED
        assert source.restart_count == 0
    finally:
        source.stop()


def test_fault_after_stop_is_ignored(tmp_path: Path, recorder: _Recorder) -> None:
    source = WatchSource(tmp_path, recorder)
    source.start()
    source.stop()

    assert source.fault("late error") is False
    assert source.state is WatchState.STOPPED
