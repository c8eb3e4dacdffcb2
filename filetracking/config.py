"""Configuration management for File Tracking.

Stores and retrieves service settings from a JSON config file
in the platform-appropriate application data directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from filetracking.platform_utils import (
    default_destination_folder,
    default_report_folder,
    default_source_folder,
)
from filetracking.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from filetracking.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    # Blank folders resolve to the platform defaults in platform_utils
    "source_folder": "",
    "destination_folder": "",
    "report_folder": "",
    # ---- daily report ----
    "report_hour": 15,
    "report_minute": 0,
    # ---- timing ----
    "lock_retry_interval_ms": 100,
    "stable_time_seconds": 1,  # POSIX: how long a file must stay unchanged
    "shutdown_poll_seconds": 5,
    "watch_health_check_seconds": 1,
    # ---- logging ----
    "log_level": "INFO",
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- folders ----

    @property
    def source_folder(self) -> str:
        """Return the watched source folder path."""
        return self._data.get("source_folder") or str(default_source_folder())

    @source_folder.setter
    def source_folder(self, value: str) -> None:
        self._data["source_folder"] = value

    @property
    def destination_folder(self) -> str:
        """Return the mirror folder path."""
        return self._data.get("destination_folder") or str(
            default_destination_folder()
        )

    @destination_folder.setter
    def destination_folder(self, value: str) -> None:
        self._data["destination_folder"] = value

    @property
    def report_folder(self) -> str:
        """Return the folder that receives daily PDF reports."""
        return self._data.get("report_folder") or str(default_report_folder())

    @report_folder.setter
    def report_folder(self, value: str) -> None:
        self._data["report_folder"] = value

    # ---- daily report ----

    @property
    def report_hour(self) -> int:
        """Return the hour of day (0-23) the report fires."""
        return min(23, max(0, int(self._data.get("report_hour", 15))))

    @report_hour.setter
    def report_hour(self, value: int) -> None:
        self._data["report_hour"] = min(23, max(0, int(value)))

    @property
    def report_minute(self) -> int:
        """Return the minute (0-59) the report fires."""
        return min(59, max(0, int(self._data.get("report_minute", 0))))

    @report_minute.setter
    def report_minute(self, value: int) -> None:
        self._data["report_minute"] = min(59, max(0, int(value)))

    # ---- timing ----

    @property
    def lock_retry_interval(self) -> float:
        """Return seconds to wait between lock probes."""
        return int(self._data.get("lock_retry_interval_ms", 100)) / 1000.0

    @lock_retry_interval.setter
    def lock_retry_interval(self, seconds: float) -> None:
        """Set the lock probe interval (minimum 10 ms)."""
        self._data["lock_retry_interval_ms"] = max(10, int(seconds * 1000))

    @property
    def stable_time(self) -> float:
        """Return seconds a file must stay unchanged before it is copied."""
        return max(0.0, float(self._data.get("stable_time_seconds", 1)))

    @stable_time.setter
    def stable_time(self, value: float) -> None:
        self._data["stable_time_seconds"] = max(0.0, float(value))

    @property
    def shutdown_poll(self) -> int:
        """Return how often (seconds) the main loop checks for shutdown."""
        return int(self._data.get("shutdown_poll_seconds", 5))

    @shutdown_poll.setter
    def shutdown_poll(self, value: int) -> None:
        self._data["shutdown_poll_seconds"] = max(1, int(value))

    @property
    def watch_health_check(self) -> float:
        """Return how often (seconds) the watcher checks its own health."""
        return float(self._data.get("watch_health_check_seconds", 1))

    @watch_health_check.setter
    def watch_health_check(self, value: float) -> None:
        self._data["watch_health_check_seconds"] = max(0.1, float(value))

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        self._data["log_backup_count"] = max(0, int(value))
