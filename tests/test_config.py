"""Unit tests for configuration management."""

import json
from pathlib import Path

import pytest

from filetracking import platform_utils
from filetracking.config import DEFAULT_CONFIG, Config


def test_missing_file_is_created_with_defaults(tmp_path: Path) -> None:
    path = tmp_path / "cfg" / "config.json"

    config = Config(path)

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == DEFAULT_CONFIG
    assert config.report_hour == 15
    assert config.report_minute == 0
    assert config.lock_retry_interval == pytest.approx(0.1)
    assert config.shutdown_poll == 5


def test_blank_folders_resolve_to_platform_defaults(tmp_path: Path) -> None:
    config = Config(tmp_path / "config.json")

    assert config.source_folder == str(platform_utils.default_source_folder())
    assert config.destination_folder == str(platform_utils.default_destination_folder())
    assert config.report_folder == str(platform_utils.default_report_folder())


def test_stored_values_override_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"source_folder": "/data/in", "report_hour": 6}), encoding="utf-8"
    )

    config = Config(path)

    assert config.source_folder == "/data/in"
    assert config.report_hour == 6
    assert config.report_minute == 0


def test_out_of_range_stored_report_time_is_clamped(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"report_hour": 25, "report_minute": -3}), encoding="utf-8"
    )

    config = Config(path)

    assert config.report_hour == 23
    assert config.report_minute == 0


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    config = Config(path)

    assert config.report_hour == DEFAULT_CONFIG["report_hour"]


def test_setters_clamp_and_persist(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    config = Config(path)

    config.report_hour = 42
    config.report_minute = -5
    config.lock_retry_interval = 0.001
    config.destination_folder = str(tmp_path / "mirror")
    config.save()

    reloaded = Config(path)
    assert reloaded.report_hour == 23
    assert reloaded.report_minute == 0
    assert reloaded.lock_retry_interval == pytest.approx(0.01)
    assert reloaded.destination_folder == str(tmp_path / "mirror")


def test_config_dir_honours_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    if platform_utils.IS_WINDOWS or platform_utils.IS_MACOS:
        pytest.skip("XDG layout is Linux only")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert platform_utils.get_config_dir() == tmp_path / "FileTracking"
    assert platform_utils.get_log_path().parent == tmp_path / "FileTracking"
