"""File system watcher for File Tracking.

Uses the watchdog library to monitor a source folder for newly created
files and hands each one to a callback as a :class:`WatchEvent`.

The watcher heals itself: a supervisor thread checks the observer on a
fixed interval, and when the observer or one of its emitters has died
(inotify overflow, the folder vanishing, ...) it is thrown away and a
fresh one is scheduled on the same folder.  There is no backoff and no
restart limit.  A file created while the observer is being replaced may
not produce an event, so owners should rescan after a restart.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileCreatedEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchEvent:
    """A file that appeared in the watched folder."""
    path: Path
    name: str


class WatchState(enum.Enum):
    STOPPED = "stopped"
    ACTIVE = "active"
    FAULTED = "faulted"


class CreationHandler(FileSystemEventHandler):
    """Watchdog handler that turns file-creation events into WatchEvents."""

    def __init__(self, on_event: Callable[[WatchEvent], None]):
        super().__init__()
        self._on_event = on_event

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        """Handle a new file creation event."""
        if event.is_directory:
            return
        path = Path(os.fsdecode(event.src_path))
        try:
            self._on_event(WatchEvent(path=path, name=path.name))
        except Exception:
            logger.exception("Error in watch event callback for %s", path)


class WatchSource:
    """Self-healing watcher for file creations in a single folder.

    Usage:
        source = WatchSource(folder, on_event)
        source.start()
        ...
        source.stop()
    """

    def __init__(
        self,
        folder: str | Path,
        on_event: Callable[[WatchEvent], None],
        on_restart: Callable[[], None] | None = None,
        health_check_interval: float = 1.0,
    ):
        """Create a watcher for *folder* that calls *on_event* per new file."""
        self.folder = str(folder)
        self._handler = CreationHandler(on_event)
        self._on_restart = on_restart
        self._health_check_interval = health_check_interval
        self._observer: BaseObserver | None = None
        self._state = WatchState.STOPPED
        self._restart_count = 0
        # Guards the observer handle across fault, restart and stop
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._supervisor: threading.Thread | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the folder."""
        if not os.path.isdir(self.folder):
            logger.error("Source folder does not exist: %s", self.folder)
            raise FileNotFoundError(f"Source folder does not exist: {self.folder}")

        with self._lock:
            if self._state is not WatchState.STOPPED:
                return
            self._observer = self._open_observer()
            self._state = WatchState.ACTIVE

        self._stop.clear()
        self._supervisor = threading.Thread(
            target=self._supervise, daemon=True, name="WatchSupervisor"
        )
        self._supervisor.start()
        logger.info("Watching '%s' for new files", self.folder)

    def stop(self) -> None:
        """Stop watching and release the observer."""
        self._stop.set()
        with self._lock:
            observer = self._observer
            self._observer = None
            self._state = WatchState.STOPPED
        if observer is not None:
            self._dispose(observer)
        if self._supervisor and self._supervisor is not threading.current_thread():
            self._supervisor.join(timeout=5)
        self._supervisor = None
        logger.info("Watcher stopped.")

    # ---- fault handling ----

    def fault(self, error: BaseException | str) -> bool:
        """
        Report an internal watch error and restart the observer.

        Returns True when a fresh observer is active afterwards.  When the
        restart fails the watcher stays FAULTED and the supervisor retries
        on its next cycle.
        """
        with self._lock:
            if self._state is WatchState.STOPPED:
                return False
            if isinstance(error, BaseException):
                logger.error("File watcher error on %s", self.folder, exc_info=error)
            else:
                logger.error("File watcher error on %s: %s", self.folder, error)
            self._state = WatchState.FAULTED
            restarted = self._restart()
        if restarted and self._on_restart:
            try:
                self._on_restart()
            except Exception:
                logger.exception("Error in watcher restart callback")
        return restarted

    def _restart(self) -> bool:
        # Called with self._lock held.  The new observer is started before
        # the old one is disposed so there is never a moment with neither.
        try:
            fresh = self._open_observer()
        except OSError as exc:
            logger.error("Failed to restart file watcher on %s: %s", self.folder, exc)
            return False
        old = self._observer
        self._observer = fresh
        self._state = WatchState.ACTIVE
        self._restart_count += 1
        if old is not None:
            self._dispose(old)
        logger.info("File watcher restarted after error (restart #%d)", self._restart_count)
        return True

    def _supervise(self) -> None:
        """Periodically check observer health and restart when needed."""
        while not self._stop.wait(timeout=self._health_check_interval):
            with self._lock:
                state = self._state
                observer = self._observer
            if state is WatchState.STOPPED:
                return
            if state is WatchState.FAULTED:
                self.fault("previous restart failed; retrying")
            elif observer is not None and not self._is_healthy(observer):
                self.fault("observer is no longer running")

    def _is_healthy(self, observer: BaseObserver) -> bool:
        if not observer.is_alive():
            return False
        if not all(emitter.is_alive() for emitter in observer.emitters):
            return False
        return os.path.isdir(self.folder)

    def _open_observer(self) -> BaseObserver:
        observer = Observer()
        observer.schedule(self._handler, self.folder, recursive=False)
        observer.start()
        return observer

    @staticmethod
    def _dispose(observer: BaseObserver) -> None:
        try:
            observer.stop()
            # The observer may be the thread reporting the fault
            if observer is not threading.current_thread():
                observer.join(timeout=5)
        except Exception:
            logger.warning("Error disposing file watcher", exc_info=True)

    # ---- status ----

    @property
    def state(self) -> WatchState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def observer(self) -> BaseObserver | None:
        """Return the currently active observer, if any."""
        return self._observer

    @property
    def restart_count(self) -> int:
        """Return how many times the observer has been replaced."""
        return self._restart_count

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        observer = self._observer
        return (
            self._state is WatchState.ACTIVE
            and observer is not None
            and observer.is_alive()
        )
