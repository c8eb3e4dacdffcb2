"""
Background service / daemon support for File Tracking.

Runs the service headless: the ingestion pipeline (backfill, watcher,
lock-aware copies) and the daily report scheduler, kept alive by a main
loop that checks for a shutdown request every few seconds.

**Windows**: runs as a Windows service via pywin32:
    python -m filetracking install
    python -m filetracking start
    python -m filetracking stop
    python -m filetracking remove

**macOS**: runs via a launchd LaunchAgent:
    python -m filetracking install   (creates ~/Library/LaunchAgents plist)
    python -m filetracking start     (launchctl load)
    python -m filetracking stop      (launchctl unload)
    python -m filetracking remove    (deletes plist)

**Linux**: runs as a headless foreground process:
    python -m filetracking start     (blocks until Ctrl-C)
"""

import logging
import logging.handlers
import plistlib
import signal
import subprocess
import sys
import threading
from pathlib import Path

from filetracking import __app_name__, __version__
from filetracking.config import Config, get_log_path
from filetracking.copier import LockAwareCopier
from filetracking.ingestion import IngestionCoordinator
from filetracking.platform_utils import IS_MACOS, IS_WINDOWS
from filetracking.report import PdfReportRenderer, ReportRenderer
from filetracking.scheduler import ReportJob, ReportScheduler

logger = logging.getLogger(__name__)

# ---- Windows service (pywin32) -----------------------------------------

_HAS_WIN32 = False
if IS_WINDOWS:
    try:
        import servicemanager  # type: ignore[import-untyped]
        import win32service  # type: ignore[import-untyped]
        import win32serviceutil  # type: ignore[import-untyped]
        _HAS_WIN32 = True
    except ImportError:
        pass

# ---- macOS launchd constants -------------------------------------------

_LAUNCHD_LABEL = "com.filetracking.service"
_PLIST_PATH = Path.home() / "Library" / "LaunchAgents" / f"{_LAUNCHD_LABEL}.plist"


def setup_logging(config: Config) -> None:
    """Configure rotating file log and stderr handler."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # Rotating file handler
    max_bytes = config.max_log_size_mb * 1024 * 1024
    fh = logging.handlers.RotatingFileHandler(
        str(get_log_path()),
        maxBytes=max_bytes,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


def ensure_directory(path: str | Path) -> bool:
    """Create *path* if missing.  Failures are logged, never raised."""
    path = Path(path)
    if path.is_dir():
        return True
    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.info("Created directory: %s", path)
        return True
    except OSError as exc:
        logger.error("Failed to create directory %s: %s", path, exc)
        return False


class FileTrackingService:
    """
    The headless service: ingestion pipeline plus daily report.

    ``run()`` blocks until ``request_stop()`` is called (from a signal
    handler or the host's stop hook).
    """

    def __init__(
        self,
        config: Config | None = None,
        renderer: ReportRenderer | None = None,
    ) -> None:
        self.config = config or Config()
        self._renderer = renderer
        self.ingestion: IngestionCoordinator | None = None
        self.scheduler: ReportScheduler | None = None
        self.report_job: ReportJob | None = None
        self._shutdown = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Create the working folders, then start the scheduler and ingestion."""
        cfg = self.config
        logger.info("Starting file tracking service (%s %s)", __app_name__, __version__)
        logger.info("Source directory: %s", cfg.source_folder)
        logger.info("Destination directory: %s", cfg.destination_folder)
        logger.info("Report directory: %s", cfg.report_folder)

        for folder in (cfg.source_folder, cfg.destination_folder, cfg.report_folder):
            ensure_directory(folder)

        self.report_job = ReportJob(
            cfg.destination_folder,
            cfg.report_folder,
            self._renderer or PdfReportRenderer(),
        )
        try:
            self.scheduler = ReportScheduler(
                self.report_job.run,
                fire_hour=cfg.report_hour,
                fire_minute=cfg.report_minute,
            )
            self.scheduler.start()
        except Exception:
            logger.exception("Error initializing report timer")
            self.scheduler = None

        self.ingestion = IngestionCoordinator(
            cfg.source_folder,
            cfg.destination_folder,
            copier=LockAwareCopier(
                retry_interval=cfg.lock_retry_interval,
                stable_time=cfg.stable_time,
            ),
            health_check_interval=cfg.watch_health_check,
        )
        try:
            self.ingestion.start()
        except FileNotFoundError as exc:
            logger.error("Cannot start file watcher: %s", exc)

    def run(self) -> None:
        """Start, then idle until a stop is requested, then stop."""
        self.start()
        poll = self.config.shutdown_poll
        try:
            while not self._shutdown.wait(timeout=poll):
                pass
        finally:
            self.stop()

    def request_stop(self) -> None:
        """Ask the main loop to exit.  Safe to call from any thread."""
        self._shutdown.set()

    def stop(self) -> None:
        """Dispose the watcher and the report timer."""
        logger.info("Stopping file tracking service")
        if self.ingestion:
            self.ingestion.stop()
            self.ingestion = None
        if self.scheduler:
            self.scheduler.stop()
            self.scheduler = None


# ======================================================================
# Windows service
# ======================================================================

if _HAS_WIN32:

    class FileTrackingWindowsService(win32serviceutil.ServiceFramework):
        """Windows service implementation for File Tracking."""

        _svc_name_ = "FileTracking"
        _svc_display_name_ = "File Tracking Service"
        _svc_description_ = (
            "Mirrors new files from a watched folder into a destination "
            "folder and writes a daily PDF report of its contents."
        )

        def __init__(self, args):
            super().__init__(args)
            self._service: FileTrackingService | None = None

        def SvcStop(self):
            self.ReportServiceStatus(win32service.SERVICE_STOP_PENDING)
            if self._service:
                self._service.request_stop()
            logger.info("Service stop requested.")

        def SvcDoRun(self):
            servicemanager.LogMsg(
                servicemanager.EVENTLOG_INFORMATION_TYPE,
                servicemanager.PYS_SERVICE_STARTED,
                (self._svc_name_, ""),
            )
            try:
                config = Config()
                setup_logging(config)
                self._service = FileTrackingService(config)
                self._service.run()
            except Exception as exc:
                logger.exception("Service error: %s", exc)
                servicemanager.LogErrorMsg(f"File Tracking error: {exc}")
            logger.info("Service stopped.")


# ======================================================================
# macOS launchd helpers
# ======================================================================

def _macos_log_dir() -> Path:
    return Path.home() / "Library" / "Logs" / "FileTracking"


def _launchd_agent(log_dir: Path) -> dict:
    """Return the launchd job description for the current interpreter."""
    return {
        "Label": _LAUNCHD_LABEL,
        "ProgramArguments": [sys.executable, "-m", "filetracking", "run"],
        "RunAtLoad": True,
        "KeepAlive": True,
        "StandardOutPath": str(log_dir / "stdout.log"),
        "StandardErrorPath": str(log_dir / "stderr.log"),
    }


def _macos_install() -> None:
    log_dir = _macos_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    _PLIST_PATH.parent.mkdir(parents=True, exist_ok=True)
    _PLIST_PATH.write_bytes(plistlib.dumps(_launchd_agent(log_dir)))
    print(f"Installed launchd agent: {_PLIST_PATH}")


def _launchctl(action: str, check: bool) -> bool:
    if not _PLIST_PATH.exists():
        print("Launchd agent not installed. Run 'install' first.")
        return False
    subprocess.run(["launchctl", action, str(_PLIST_PATH)], check=check)
    return True


def _macos_start() -> None:
    if _launchctl("load", check=True):
        print("File Tracking launchd agent loaded.")


def _macos_stop() -> None:
    if _launchctl("unload", check=False):
        print("File Tracking launchd agent unloaded.")


def _macos_remove() -> None:
    _macos_stop()
    if _PLIST_PATH.exists():
        _PLIST_PATH.unlink()
        print("Removed launchd agent.")


# ======================================================================
# Cross-platform headless runner (Linux / fallback)
# ======================================================================

def _run_foreground() -> None:
    """Run the service in the foreground until SIGINT/SIGTERM."""
    config = Config()
    setup_logging(config)
    service = FileTrackingService(config)

    def _handler(sig, frame):
        service.request_stop()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print("File Tracking running (press Ctrl-C to stop)…")
    service.run()
    print("File Tracking stopped.")


# ======================================================================
# CLI entry
# ======================================================================

def main() -> None:
    """Entry point for service/daemon control."""
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""

    # ---- Windows ----
    if IS_WINDOWS:
        if not _HAS_WIN32:
            print("ERROR: pywin32 is required for service mode on Windows.")
            print("       pip install pywin32")
            sys.exit(1)
        if cmd == "":
            try:
                servicemanager.Initialize()
                servicemanager.PrepareToHostSingle(FileTrackingWindowsService)
                servicemanager.StartServiceCtrlDispatcher()
            except Exception:
                _show_help()
        elif cmd == "run":
            _run_foreground()
        else:
            win32serviceutil.HandleCommandLine(FileTrackingWindowsService)
        return

    # ---- macOS ----
    if IS_MACOS:
        actions = {
            "install": _macos_install,
            "start": _macos_start,
            "stop": _macos_stop,
            "remove": _macos_remove,
        }
        if cmd in actions:
            actions[cmd]()
        elif cmd == "run":
            _run_foreground()
        else:
            _show_help()
        return

    # ---- Linux / other ----
    if cmd in ("start", "run"):
        _run_foreground()
    else:
        _show_help()


def _show_help() -> None:
    platform = "Windows" if IS_WINDOWS else ("macOS" if IS_MACOS else "Linux")
    print(f"{__app_name__}: Background Service  ({platform})")
    print()
    if IS_WINDOWS:
        print("Usage:")
        print("  python -m filetracking install   Install the Windows service")
        print("  python -m filetracking start     Start the service")
        print("  python -m filetracking stop      Stop the service")
        print("  python -m filetracking remove    Uninstall the service")
        print("  python -m filetracking run       Run in foreground")
    elif IS_MACOS:
        print("Usage:")
        print("  python -m filetracking install   Create launchd plist")
        print("  python -m filetracking start     Load the launchd agent")
        print("  python -m filetracking stop      Unload the launchd agent")
        print("  python -m filetracking remove    Remove the plist")
        print("  python -m filetracking run       Run in foreground")
    else:
        print("Usage:")
        print("  python -m filetracking start     Run in foreground (Ctrl-C to stop)")


if __name__ == "__main__":
    main()
