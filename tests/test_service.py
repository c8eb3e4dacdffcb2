"""Tests for the service lifecycle and directory bootstrap."""

import logging
import os
import plistlib
import threading
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from filetracking import service as service_module
from filetracking.config import Config
from filetracking.dataset import ReportDataset
from filetracking.service import FileTrackingService, ensure_directory, setup_logging


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class _RecordingRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[ReportDataset, Path]] = []

    def render(self, dataset: ReportDataset, output_path: Path) -> None:
        self.calls.append((dataset, output_path))


def _config(tmp_path: Path) -> Config:
    config = Config(tmp_path / "config.json")
    config.source_folder = str(tmp_path / "watch")
    config.destination_folder = str(tmp_path / "mirror")
    config.report_folder = str(tmp_path / "reports")
    config.watch_health_check = 0.1
    config.shutdown_poll = 1
    config.stable_time = 0.2
    return config


def test_ensure_directory_creates_missing_folder(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"

    assert ensure_directory(target) is True
    assert target.is_dir()
    assert ensure_directory(target) is True


def test_ensure_directory_logs_failure(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("x", encoding="utf-8")

    with caplog.at_level(logging.ERROR, logger="filetracking.service"):
        assert ensure_directory(blocker / "child") is False

    assert "Failed to create directory" in caplog.text


def test_start_bootstraps_and_mirrors(tmp_path: Path) -> None:
    config = _config(tmp_path)
    service = FileTrackingService(config, renderer=_RecordingRenderer())

    service.start()
    try:
        for name in ("watch", "mirror", "reports"):
            assert (tmp_path / name).is_dir()
        assert service.scheduler is not None
        assert service.scheduler.state.next_fire > datetime.now()
        assert service.ingestion.watch_source.is_running

        staged = tmp_path / "incoming.txt"
        staged.write_text("data", encoding="utf-8")
        os.replace(staged, tmp_path / "watch" / "incoming.txt")
        assert _wait_for(lambda: (tmp_path / "mirror" / "incoming.txt").exists())
    finally:
        service.stop()

    assert service.ingestion is None
    assert service.scheduler is None


def test_start_backfills_existing_files(tmp_path: Path) -> None:
    config = _config(tmp_path)
    (tmp_path / "watch").mkdir()
    (tmp_path / "watch" / "before.txt").write_text("x", encoding="utf-8")
    service = FileTrackingService(config, renderer=_RecordingRenderer())

    service.start()
    try:
        assert (tmp_path / "mirror" / "before.txt").exists()
    finally:
        service.stop()


def test_report_job_uses_configured_folders(tmp_path: Path) -> None:
    config = _config(tmp_path)
    renderer = _RecordingRenderer()
    service = FileTrackingService(config, renderer=renderer)
    service.start()
    try:
        (tmp_path / "mirror" / "a.bin").write_bytes(b"x" * 10)
        path = service.report_job.run(now=datetime(2024, 5, 1, 15, 0))
    finally:
        service.stop()

    assert path == tmp_path / "reports" / "FileReport_2024-05-01.pdf"
    assert renderer.calls[0][0].total_size == 10


def test_run_returns_after_stop_request(tmp_path: Path) -> None:
    service = FileTrackingService(_config(tmp_path), renderer=_RecordingRenderer())
    runner = threading.Thread(target=service.run)

    runner.start()
    assert _wait_for(lambda: service.ingestion is not None)
    service.request_stop()
    runner.join(timeout=10)

    assert not runner.is_alive()
    assert service.ingestion is None


def test_setup_logging_writes_to_log_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    log_path = tmp_path / "service.log"
    monkeypatch.setattr("filetracking.service.get_log_path", lambda: log_path)
    root_logger = logging.getLogger()
    before = list(root_logger.handlers)
    previous_level = root_logger.level

    setup_logging(_config(tmp_path))
    try:
        logging.getLogger("filetracking.test").info("hello log")
        for handler in root_logger.handlers:
            handler.flush()
        assert "hello log" in log_path.read_text(encoding="utf-8")
    finally:
        for handler in list(root_logger.handlers):
            if handler not in before:
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(previous_level)


def test_copier_uses_configured_timings(tmp_path: Path) -> None:
    config = _config(tmp_path)
    config.lock_retry_interval = 0.05
    service = FileTrackingService(config, renderer=_RecordingRenderer())

    service.start()
    try:
        assert service.ingestion.copier.retry_interval == pytest.approx(0.05)
        assert service.ingestion.copier.stable_time == pytest.approx(0.2)
    finally:
        service.stop()


def _fake_launchd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> list[list[str]]:
    calls: list[list[str]] = []
    monkeypatch.setattr(
        service_module, "_PLIST_PATH", tmp_path / "LaunchAgents" / "agent.plist"
    )
    monkeypatch.setattr(service_module, "_macos_log_dir", lambda: tmp_path / "Logs")
    monkeypatch.setattr(
        service_module.subprocess, "run", lambda args, check: calls.append(args)
    )
    return calls


def test_launchd_agent_runs_module_in_foreground(tmp_path: Path) -> None:
    agent = service_module._launchd_agent(tmp_path)

    assert agent["Label"] == "com.filetracking.service"
    assert agent["ProgramArguments"][1:] == ["-m", "filetracking", "run"]
    assert agent["StandardErrorPath"] == str(tmp_path / "stderr.log")
    assert not (tmp_path / "stderr.log").exists()


def test_launchd_install_start_and_remove(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = _fake_launchd(tmp_path, monkeypatch)
    plist_path = service_module._PLIST_PATH

    service_module._macos_start()
    assert calls == []

    service_module._macos_install()
    assert (tmp_path / "Logs").is_dir()
    agent = plistlib.loads(plist_path.read_bytes())
    assert agent["KeepAlive"] is True

    service_module._macos_start()
    service_module._macos_remove()

    assert calls == [
        ["launchctl", "load", str(plist_path)],
        ["launchctl", "unload", str(plist_path)],
    ]
    assert not plist_path.exists()
