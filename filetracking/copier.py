"""
Lock-aware file copy engine for File Tracking.

Before copying, the source file is probed with an exclusive read open.
While another process still holds the file (its writer has not let go
yet) the probe fails and is retried after a short fixed delay, with no
upper bound.  Once the probe succeeds the file is copied to the
destination, overwriting anything already there.

Probing:
  - Windows: ``CreateFile`` with share mode 0 via pywin32; a sharing or
    lock violation means the writer still has the file open.
  - POSIX: a non-blocking exclusive ``flock`` on a read-only descriptor.
    Ordinary writers take no advisory lock, so on POSIX the file must
    also have kept the same size and mtime for ``stable_time`` seconds
    before it counts as released.
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from filetracking.platform_utils import IS_WINDOWS

if IS_WINDOWS:
    import pywintypes  # type: ignore[import-untyped]
    import win32file  # type: ignore[import-untyped]
else:
    import fcntl

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 0.1  # seconds between lock probes
DEFAULT_STABLE_TIME = 1.0  # seconds a POSIX file must stay unchanged

_ERROR_FILE_NOT_FOUND = 2
_ERROR_PATH_NOT_FOUND = 3
_ERROR_SHARING_VIOLATION = 32
_ERROR_LOCK_VIOLATION = 33


def _probe_windows(path: Path) -> bool:
    try:
        handle = win32file.CreateFile(
            str(path),
            win32file.GENERIC_READ,
            0,  # no sharing: fails while anyone else has the file open
            None,
            win32file.OPEN_EXISTING,
            win32file.FILE_ATTRIBUTE_NORMAL,
            None,
        )
    except pywintypes.error as exc:
        if exc.winerror in (_ERROR_SHARING_VIOLATION, _ERROR_LOCK_VIOLATION):
            return False
        if exc.winerror in (_ERROR_FILE_NOT_FOUND, _ERROR_PATH_NOT_FOUND):
            raise FileNotFoundError(exc.winerror, exc.strerror, str(path)) from exc
        raise OSError(exc.winerror, exc.strerror, str(path)) from exc
    handle.Close()
    return True


def _probe_posix(path: Path) -> bool:
    fd = os.open(path, os.O_RDONLY)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)
        return True
    finally:
        os.close(fd)


def try_exclusive_open(path: Path) -> bool:
    """
    Open *path* for exclusive reading and close it again at once.

    Returns False when another process holds a conflicting lock.
    Any other failure (missing file, permissions) raises ``OSError``.
    """
    if IS_WINDOWS:
        return _probe_windows(path)
    return _probe_posix(path)




def _signature(path: Path) -> tuple[int, int]:
    st = path.stat()
    return st.st_size, st.st_mtime_ns


def wait_until_unlocked(
    path: Path,
    interval: float = DEFAULT_RETRY_INTERVAL,
    stable_time: float = DEFAULT_STABLE_TIME,
) -> int:
    """
    Block until *path* can be opened exclusively.

    On POSIX the file must also have been unchanged for *stable_time*
    seconds.  There is no timeout: a file that stays locked keeps the
    caller waiting forever.  Returns the number of probes that found the
    file still held or still changing.
    """
    attempts = 0
    signature = None
    unchanged_since = time.monotonic()
    while True:
        released = try_exclusive_open(path)
        if released and IS_WINDOWS:
            break
        if not IS_WINDOWS:
            current = _signature(path)
            now = time.monotonic()
            if current != signature:
                signature, unchanged_since = current, now
            # A file last written long ago is settled on first sight
            quiet = max(now - unchanged_since, time.time() - current[1] / 1e9)
            if released and quiet >= stable_time:
                break
        if attempts == 0:
            logger.debug("Waiting for %s to be released by its writer", path)
        attempts += 1
        time.sleep(interval)
    if attempts:
        logger.debug("%s released after %d probes", path, attempts)
    return attempts


@dataclass
class CopyRecord:
    """Outcome of a single file copy."""
    source: str
    destination: str
    size_bytes: int = 0
    lock_waits: int = 0
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    error: str = ""

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


class LockAwareCopier:
    """
    Copies single files once their writer has released them.

    Parameters
    ----------
    retry_interval : float
        Seconds to sleep between lock probes.
    stable_time : float
        Seconds a file must stay unchanged before it is copied (POSIX).
    """

    def __init__(
        self,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        stable_time: float = DEFAULT_STABLE_TIME,
    ):
        self.retry_interval = retry_interval
        self.stable_time = stable_time

    def copy(self, source_path: Path, destination_path: Path) -> CopyRecord:
        """
        Wait for *source_path* to be released, then copy it over
        *destination_path*.

        I/O errors are logged and returned on the record, never raised
        and never retried.
        """
        source_path = Path(source_path)
        destination_path = Path(destination_path)
        rec = CopyRecord(source=str(source_path), destination=str(destination_path))

        try:
            rec.lock_waits = wait_until_unlocked(
                source_path, self.retry_interval, self.stable_time
            )
            rec.size_bytes = source_path.stat().st_size
            rec.started = time.time()
            logger.info(
                "Copying %s -> %s (%d bytes)",
                source_path, destination_path, rec.size_bytes,
            )
            shutil.copy2(str(source_path), str(destination_path))
            rec.finished = time.time()
            rec.success = True
            logger.info("Copy complete in %.1fs: %s", rec.duration, destination_path)
        except OSError as exc:
            rec.error = str(exc)
            rec.finished = time.time()
            logger.error("Copy failed for %s: %s", source_path, exc)
        return rec
