"""
Cross-platform utilities for File Tracking.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - Windows 10/11
  - macOS 12+ (Monterey and newer)
  - Linux (foreground process only)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_APP_DIR_NAME = "FileTracking"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\FileTracking``
    - macOS   : ``~/Library/Application Support/FileTracking``
    - Linux   : ``$XDG_CONFIG_HOME/FileTracking`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "file_tracking.log"


# ---- default working folders ---------------------------------------------


def default_source_folder() -> Path:
    """Return the default watched folder (``TrackingFile`` on the desktop)."""
    return Path.home() / "Desktop" / "TrackingFile"


def default_destination_folder() -> Path:
    """Return the default mirror folder."""
    if IS_WINDOWS:
        return Path("D:\\") / "TrackingFile"
    return Path.home() / _APP_DIR_NAME / "TrackingFile"


def default_report_folder() -> Path:
    """Return the default folder for generated PDF reports."""
    if IS_WINDOWS:
        return Path("D:\\") / "PDF"
    return Path.home() / _APP_DIR_NAME / "PDF"


# ---- report fonts --------------------------------------------------------


def get_report_font_candidates() -> list[str]:
    """Return TrueType font files to try, in order, for PDF reports."""
    if IS_WINDOWS:
        return ["segoeui.ttf", "arial.ttf"]
    if IS_MACOS:
        return [
            "/System/Library/Fonts/Helvetica.ttc",
            "/Library/Fonts/Arial.ttf",
        ]
    return [
        "DejaVuSans.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    ]
