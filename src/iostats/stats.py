"""Interval aggregation of per-UID I/O counters."""

import time
from typing import Callable

import structlog

from iostats.config import IoStatsConfig
from iostats.formatting import render_report
from iostats.names import NameResolver
from iostats.ranking import IO_TOP_MAX, TopRanker
from iostats.usage import UserIO

log = structlog.get_logger()


class IoStats:
    """Turns successive cumulative snapshots into interval usage.

    The first snapshot only establishes a baseline. Every later snapshot is
    diffed against its predecessor to produce per-UID deltas, which feed the
    interval total and the read/write rankers. UIDs with traffic but no known
    name are handed to the resolver once per interval.
    """

    def __init__(
        self,
        resolver: NameResolver,
        config: IoStatsConfig,
        clock: Callable[[], float] = time.time,
        top_max: int = IO_TOP_MAX,
    ) -> None:
        self.resolver = resolver
        self.config = config
        self._clock = clock

        self.previous: dict[int, UserIO] = {}
        # Equal timestamps mark the uninitialized state
        self.previous_time = 0.0
        self.current_time = 0.0

        self.total = UserIO()
        self.read_top = TopRanker("read", top_max)
        self.write_top = TopRanker("write", top_max)
        self.pending: set[int] = set()

    @property
    def initialized(self) -> bool:
        """True once a baseline snapshot has been captured.

        Derived from the two timestamps differing, so a clock that returns the
        same value on consecutive ticks makes the next ingest re-seed and that
        interval goes unreported.
        """
        return self.previous_time != self.current_time

    @property
    def elapsed_ms(self) -> int:
        """Length of the last interval in milliseconds."""
        return int((self.current_time - self.previous_time) * 1000)

    def _advance_clock(self) -> None:
        self.previous_time = self.current_time
        self.current_time = self._clock()

    def ingest(self, snapshot: dict[int, UserIO]) -> None:
        """Consume the current cumulative snapshot."""
        if not self.initialized:
            self.previous = snapshot
            self._advance_clock()
            self.pending.update(snapshot)
            self._resolve_pending(force_all=True)
            return

        self._advance_clock()

        deltas = self.calc_increment(snapshot)
        self.previous = snapshot

        self.total = UserIO()
        self.read_top.reset()
        self.write_top.reset()
        for delta in deltas.values():
            self.total = self.total + delta
            self.read_top.offer(delta)
            self.write_top.offer(delta)

        self._resolve_pending()

    def calc_increment(self, snapshot: dict[int, UserIO]) -> dict[int, UserIO]:
        """Diff a snapshot against the previous one and queue unnamed UIDs.

        A UID missing from the previous snapshot contributes its counters
        unchanged.
        """
        deltas: dict[int, UserIO] = {}
        for uid, usage in snapshot.items():
            earlier = self.previous.get(uid)
            if earlier is None:
                delta = usage
            else:
                if self.config.verbose and usage.decreased_from(earlier):
                    log.info("counter_reset", uid=uid)
                delta = usage - earlier
            deltas[uid] = delta

            if (delta.read_total or delta.write_total) and uid not in self.resolver:
                self.pending.add(uid)
        return deltas

    def _resolve_pending(self, force_all: bool = False) -> None:
        if self.pending:
            self.resolver.resolve(self.pending, force_all=force_all)
        self.pending.clear()

    def dump(self) -> str:
        """Render the report for the last interval."""
        return render_report(
            self.total,
            self.read_top,
            self.write_top,
            self.resolver.names,
            self.elapsed_ms,
            self.config,
        )
