"""
Ingestion coordinator for File Tracking.

Mirrors the source folder into the destination folder: a one-off
backfill pass at startup copies anything not mirrored yet, then every
file creation reported by the watcher is copied as it arrives.

Live copies and the rescan that follows a watcher restart run on their
own daemon threads, so a file that stays locked holds up neither the
other files nor the watcher.  Copies to the same destination name are
serialised.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from filetracking.copier import CopyRecord, LockAwareCopier
from filetracking.watcher import WatchEvent, WatchSource

logger = logging.getLogger(__name__)


@dataclass
class _NameLock:
    """Lock for one destination name, counted so idle names can be dropped."""
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class IngestionCoordinator:
    """
    Owns the watcher and routes new files through the copier.

    Parameters
    ----------
    source_folder : str
        The folder being watched.
    destination_folder : str
        The mirror folder files are copied into.
    copier : LockAwareCopier, optional
        Copier to use; a default one is created when omitted.
    health_check_interval : float
        Seconds between watcher health checks.
    rescan_on_restart : bool
        Re-run backfill after every watcher restart to pick up files
        created while the watcher was being replaced.
    """

    def __init__(
        self,
        source_folder: str | Path,
        destination_folder: str | Path,
        copier: LockAwareCopier | None = None,
        health_check_interval: float = 1.0,
        rescan_on_restart: bool = True,
    ):
        self.source_root = Path(source_folder)
        self.destination_root = Path(destination_folder)
        self.copier = copier or LockAwareCopier()
        self._health_check_interval = health_check_interval
        self._rescan_on_restart = rescan_on_restart
        self._watch: WatchSource | None = None
        self._name_locks: dict[str, _NameLock] = {}
        self._name_locks_guard = threading.Lock()
        self._workers: set[threading.Thread] = set()
        self._workers_lock = threading.Lock()

    # ---- lifecycle ----

    def start(self) -> None:
        """Run the backfill pass, then start watching for new files."""
        self.backfill()
        self._watch = WatchSource(
            self.source_root,
            on_event=self.on_watch_event,
            on_restart=self._on_watch_restart if self._rescan_on_restart else None,
            health_check_interval=self._health_check_interval,
        )
        self._watch.start()
        logger.info("Ingestion started: %s -> %s", self.source_root, self.destination_root)

    def stop(self) -> None:
        """Dispose the watcher.  Copies already in flight run to completion."""
        if self._watch:
            self._watch.stop()
            self._watch = None
        logger.info("Ingestion stopped.")

    @property
    def watch_source(self) -> WatchSource | None:
        return self._watch

    # ---- backfill ----

    def backfill(self) -> int:
        """
        Copy every source file whose name is not present in the destination.

        Files already mirrored are left alone; only the name is compared.
        Failures are logged and the pass carries on.  Returns the number of
        files copied.
        """
        logger.info("Checking for existing files to copy...")
        try:
            candidates = [p for p in self.source_root.iterdir() if p.is_file()]
        except OSError as exc:
            logger.error("Error listing existing files in %s: %s", self.source_root, exc)
            return 0

        copied = 0
        for source_path in candidates:
            destination_path = self.destination_root / source_path.name
            if destination_path.exists():
                continue
            rec = self._copy_serialised(source_path, destination_path)
            if rec.success:
                copied += 1
                logger.info("Copied existing file: %s", source_path.name)
        logger.info("Backfill finished: %d file(s) copied", copied)
        return copied

    def _on_watch_restart(self) -> None:
        # Called on the watcher's supervisor thread, which must never wait on a copy
        logger.info("Rescanning %s after watcher restart", self.source_root)
        self._spawn(self._rescan, "Rescan")

    def _rescan(self) -> None:
        try:
            self.backfill()
        except Exception:
            logger.exception("Error rescanning %s", self.source_root)
        finally:
            self._worker_done()

    # ---- live events ----

    def on_watch_event(self, event: WatchEvent) -> None:
        """Queue a background copy for a newly created file."""
        logger.info("New file detected: %s", event.name)
        self._spawn(self._handle_event, f"Copy-{event.name}", event)

    def _spawn(self, target, name: str, *args) -> None:
        thread = threading.Thread(target=target, args=args, daemon=True, name=name)
        with self._workers_lock:
            self._workers.add(thread)
        thread.start()

    def _worker_done(self) -> None:
        with self._workers_lock:
            self._workers.discard(threading.current_thread())

    def handle_event(self, event: WatchEvent) -> CopyRecord:
        """Copy the file named by *event* into the destination folder."""
        destination_path = self.destination_root / event.name
        return self._copy_serialised(event.path, destination_path)

    def _handle_event(self, event: WatchEvent) -> None:
        try:
            self.handle_event(event)
        except Exception:
            logger.exception("Error copying file %s", event.name)
        finally:
            self._worker_done()

    def _copy_serialised(self, source_path: Path, destination_path: Path) -> CopyRecord:
        name = destination_path.name
        with self._name_locks_guard:
            entry = self._name_locks.setdefault(name, _NameLock())
            entry.holders += 1
        try:
            with entry.lock:
                return self.copier.copy(source_path, destination_path)
        finally:
            with self._name_locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._name_locks[name]

    @property
    def busy_names(self) -> list[str]:
        """Destination names with a copy running or waiting to run."""
        with self._name_locks_guard:
            return list(self._name_locks)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for in-flight copies and rescans to finish.  Returns True if idle."""
        with self._workers_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout=timeout)
        with self._workers_lock:
            return not any(w.is_alive() for w in self._workers)
