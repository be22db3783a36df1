# savemanager/services/progress.py
"""
Archive progress tracking.

A ProgressCounter is shared by one archive writer and one ProgressReporter.
Increments take a lock; reads do not, so the reporter may see a slightly
stale value. The counter only grows, which is all a progress line needs.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Callable, Optional

logger = logging.getLogger(__name__)

REPORT_INTERVAL_SECONDS = 10.0


class ProgressCounter:
    """Monotonic file counter plus a finished flag set by the writer"""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()
        self.finished = threading.Event()

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def finish(self):
        self.finished.set()


@dataclass
class ProgressReport:
    label: str  # "<level-name>/<world>"
    percent: int
    archived: int
    total: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_percent(archived: int, total: int) -> int:
    if total <= 0:
        return 100
    return int(archived * 100 // total)


class ProgressReporter:
    """Samples a counter every interval on its own thread until the job is done"""

    def __init__(
        self,
        label: str,
        counter: ProgressCounter,
        total: int,
        interval: float = REPORT_INTERVAL_SECONDS,
        on_report: Optional[Callable[[ProgressReport], None]] = None,
    ):
        self.label = label
        self.counter = counter
        self.total = total
        self.interval = interval
        self.on_report = on_report
        self.reports_sent = 0
        self._thread: Optional[threading.Thread] = None

    def _done(self) -> bool:
        return self.counter.value >= self.total or self.counter.finished.is_set()

    def _run(self):
        while not self._done():
            # Returns early once the writer finishes or fails
            if self.counter.finished.wait(self.interval):
                break

            archived = self.counter.value
            report = ProgressReport(
                label=self.label,
                percent=compute_percent(archived, self.total),
                archived=archived,
                total=self.total,
            )
            logger.info(
                "Backing up '%s': %d%% complete (%d/%d)",
                report.label, report.percent, report.archived, report.total,
            )
            self.reports_sent += 1
            if self.on_report:
                try:
                    self.on_report(report)
                except Exception as e:
                    logger.warning("[Progress] Report callback failed: %s", e)

    def start(self):
        self._thread = threading.Thread(
            target=self._run, name=f"backup-progress-{self.label}", daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """Signal the writer is done and wait for the sampling thread"""
        self.counter.finish()
        if self._thread is not None:
            self._thread.join(timeout)
