"""Bounded history of rendered reports.

The daemon keeps the last `history_size` reports in memory and logs them on
SIGUSR1, so recent intervals can be pulled from a running daemon.
"""

from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class ReportSample:
    """A rendered report and the wall-clock time it was produced."""

    timestamp: float
    text: str


class ReportBuffer:
    """Fixed-size report history; the oldest report is dropped first."""

    def __init__(self, max_samples: int = 60) -> None:
        self._reports: deque[ReportSample] = deque(maxlen=max_samples)

    def __len__(self) -> int:
        return len(self._reports)

    @property
    def capacity(self) -> int:
        return self._reports.maxlen or 0

    @property
    def latest(self) -> ReportSample | None:
        return self._reports[-1] if self._reports else None

    def push(self, timestamp: float, text: str) -> None:
        self._reports.append(ReportSample(timestamp=timestamp, text=text))

    def recent(self, count: int | None = None) -> list[ReportSample]:
        """Return the newest `count` reports, oldest first.

        All retained reports are returned when count is None.
        """
        reports = list(self._reports)
        if count is None:
            return reports
        return reports[-count:] if count > 0 else []
