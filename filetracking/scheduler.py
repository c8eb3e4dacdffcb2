"""Daily report scheduling for File Tracking.

The first fire is the next occurrence of the configured wall-clock
time; after that the report fires on a flat 24 hour period.  The
period is not re-anchored to the wall clock, so a daylight-saving
switch or a manual clock change shifts the effective fire time.

Fires run one after another on the scheduler's own thread.  If a fire
overruns into the next slot, that slot is skipped rather than run
concurrently.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from filetracking.dataset import collect
from filetracking.report import ReportRenderer, report_file_name

logger = logging.getLogger(__name__)

REPORT_INTERVAL = timedelta(hours=24)


@dataclass(frozen=True)
class ScheduleState:
    """When the report fires next, and how often it recurs."""
    next_fire: datetime
    interval: timedelta = REPORT_INTERVAL


def schedule_next(
    fire_hour: int,
    fire_minute: int,
    now: datetime | None = None,
) -> ScheduleState:
    """
    Return the next time the report should fire.

    Today at ``fire_hour:fire_minute:00`` unless that is already in the
    past, in which case the same time tomorrow.
    """
    now = now or datetime.now()
    scheduled = now.replace(hour=fire_hour, minute=fire_minute, second=0, microsecond=0)
    if scheduled < now:
        scheduled += timedelta(days=1)
    return ScheduleState(next_fire=scheduled)


class ReportJob:
    """Collects the mirror folder and hands the dataset to a renderer."""

    def __init__(
        self,
        destination_folder: str | Path,
        report_folder: str | Path,
        renderer: ReportRenderer,
    ):
        self.destination_folder = Path(destination_folder)
        self.report_folder = Path(report_folder)
        self.renderer = renderer

    def run(self, now: datetime | None = None) -> Path | None:
        """
        Produce today's report.  Returns the report path, or None when
        nothing was rendered because the mirror folder is empty.
        """
        now = now or datetime.now()
        logger.info("Starting daily report generation at %s", now)
        logger.info("Generating daily report from directory: %s", self.destination_folder)
        dataset = collect(self.destination_folder)
        if not dataset:
            logger.warning("No files found in the directory for reporting")
            return None
        output_path = self.report_folder / report_file_name(now.date())
        self.renderer.render(dataset, output_path)
        logger.info("Daily report generated successfully: %s", output_path)
        return output_path


class ReportScheduler:
    """
    Fires a callback once a day on a dedicated daemon thread.

    The wall clock is read once, at ``start()``, to find the first fire.
    From then on fires are spaced on the monotonic clock, so later wall
    clock changes do not move them.

    Usage:
        scheduler = ReportScheduler(job.run, fire_hour=15, fire_minute=0)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        on_fire: Callable[[], object],
        fire_hour: int = 15,
        fire_minute: int = 0,
        interval: timedelta = REPORT_INTERVAL,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._on_fire = on_fire
        self.fire_hour = fire_hour
        self.fire_minute = fire_minute
        self._interval = interval
        self._clock = clock
        self._monotonic = monotonic
        self._state: ScheduleState | None = None
        self._deadline = 0.0
        self._fire_count = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ---- lifecycle ----

    def start(self) -> ScheduleState:
        """Compute the first fire and start the timer thread."""
        now = self._clock()
        first = schedule_next(self.fire_hour, self.fire_minute, now)
        self._state = ScheduleState(next_fire=first.next_fire, interval=self._interval)
        self._deadline = self._monotonic() + (first.next_fire - now).total_seconds()
        logger.info("Next report scheduled at: %s", self._state.next_fire)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="ReportScheduler"
        )
        self._thread.start()
        return self._state

    def stop(self) -> None:
        """Stop the timer.  A fire already running is not interrupted."""
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=1)
        self._thread = None
        logger.info("Report scheduler stopped.")

    @property
    def state(self) -> ScheduleState | None:
        return self._state

    @property
    def fire_count(self) -> int:
        return self._fire_count

    # ---- timer ----

    def _run(self) -> None:
        while self._state is not None:
            delay = self._deadline - self._monotonic()
            if self._stop.wait(timeout=max(0.0, delay)):
                return
            self._fire()
            self._advance()

    def _fire(self) -> None:
        self._fire_count += 1
        started = self._monotonic()
        try:
            self._on_fire()
        except Exception:
            logger.exception("Error generating daily report")
        logger.debug("Report fire #%d took %.1fs", self._fire_count,
                     self._monotonic() - started)

    def _advance(self) -> None:
        """Move to the next slot on the fixed period, skipping overrun slots."""
        assert self._state is not None
        interval = self._state.interval
        step = interval.total_seconds()
        next_fire = self._state.next_fire + interval
        deadline = self._deadline + step
        skipped = 0
        now = self._monotonic()
        while deadline < now:
            next_fire += interval
            deadline += step
            skipped += 1
        if skipped:
            logger.warning("Report fire overran; skipped %d scheduled fire(s)", skipped)
        self._deadline = deadline
        self._state = ScheduleState(next_fire=next_fire, interval=interval)
        logger.info("Next report scheduled at: %s", next_fire)
