"""Report dataset collection for File Tracking."""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedFile:
    """A file in the mirror folder, as seen at enumeration time."""
    name: str
    size: int
    path: Path

    def last_modified(self) -> datetime | None:
        """Look up the modification time now; None if the file has gone."""
        try:
            return datetime.fromtimestamp(self.path.stat().st_mtime)
        except OSError:
            return None


@dataclass
class ReportDataset:
    """Ordered files for one report, plus totals."""
    entries: list[TrackedFile] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


def collect(directory: str | Path) -> ReportDataset:
    """
    List the regular files directly inside *directory*, in the order the
    file system enumerates them.

    A missing directory yields an empty dataset and a warning.  If the
    listing fails part way, the entries read so far are returned.
    """
    directory = Path(directory)
    dataset = ReportDataset()
    if not directory.is_dir():
        logger.warning("Directory does not exist: %s", directory)
        return dataset

    try:
        with os.scandir(directory) as it:
            for entry in it:
                try:
                    if not entry.is_file():
                        continue
                    size = entry.stat().st_size
                except FileNotFoundError:
                    # Removed between listing and stat
                    continue
                dataset.entries.append(
                    TrackedFile(name=entry.name, size=size, path=Path(entry.path))
                )
    except OSError as exc:
        logger.error(
            "Error getting file information from directory %s: %s", directory, exc
        )
    return dataset
