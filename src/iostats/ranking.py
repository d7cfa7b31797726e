"""Bounded top-K ranking of UIDs by read or write volume."""

from typing import Callable, Literal

from iostats.usage import UserIO

# Number of ranked UIDs kept per metric
IO_TOP_MAX = 5

Metric = Literal["read", "write"]

_METRICS: dict[str, Callable[[UserIO], int]] = {
    "read": lambda u: u.read_total,
    "write": lambda u: u.write_total,
}


class TopRanker:
    """Fixed-size list of the largest records seen this interval.

    Slots are always sorted descending by the metric. Empty slots hold zero
    records, so the populated ranks form a contiguous prefix.
    """

    def __init__(self, metric: Metric, size: int = IO_TOP_MAX) -> None:
        if metric not in _METRICS:
            raise ValueError(f"Unknown metric: {metric!r}. Valid metrics: {list(_METRICS)}")
        if size < 1:
            raise ValueError(f"size must be >= 1, got {size}")
        self.metric = metric
        self._key = _METRICS[metric]
        self._slots = [UserIO() for _ in range(size)]

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def slots(self) -> list[UserIO]:
        """All K slots including zero padding (returns a copy)."""
        return list(self._slots)

    def value(self, usage: UserIO) -> int:
        """Return the ranked metric for a record."""
        return self._key(usage)

    def offer(self, usage: UserIO) -> None:
        """Insert a record, evicting the smallest if it no longer fits.

        Each displaced slot occupant becomes the candidate for the next slot.
        Strict comparison keeps the earlier record on ties.
        """
        candidate = usage
        for i, current in enumerate(self._slots):
            if self._key(candidate) > self._key(current):
                self._slots[i] = candidate
                candidate = current

    def snapshot(self) -> list[UserIO]:
        """Return populated ranks in descending order."""
        ranked = []
        for usage in self._slots:
            if self._key(usage) == 0:
                break
            ranked.append(usage)
        return ranked

    def reset(self) -> None:
        """Empty every slot."""
        self._slots = [UserIO() for _ in self._slots]

    def sum(self) -> UserIO:
        """Field-wise sum of all retained slots."""
        total = UserIO()
        for usage in self._slots:
            total = total + usage
        return total
