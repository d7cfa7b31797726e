"""Per-UID I/O counter collector reading /proc/uid_io/stats."""

import asyncio
from pathlib import Path

import structlog

from iostats.usage import UserIO

log = structlog.get_logger()

# Minimum number of space-separated fields in a stats line
MIN_FIELDS = 11

# Field positions of the counters we keep. Positions 1, 2, 5 and 6 are the
# char-level rchar/wchar counters and are ignored.
_FIELD_POSITIONS = {
    "uid": 0,
    "fg_read": 3,
    "fg_write": 4,
    "bg_read": 7,
    "bg_write": 8,
    "fg_fsync": 9,
    "bg_fsync": 10,
}


class CollectorError(Exception):
    """Raised when the counter source cannot be read."""


def _parse_uint(token: str) -> int:
    # int() is more lenient than the kernel format
    if not (token.isascii() and token.isdigit()):
        raise ValueError(f"not an unsigned integer: {token!r}")
    return int(token)


def parse_stats_line(line: str) -> UserIO | None:
    """Parse one stats line into a UserIO.

    Returns None (and logs a warning) for lines with too few fields or a
    non-numeric counter.
    """
    parts = line.split(" ")
    if len(parts) < MIN_FIELDS:
        log.warning("invalid_uid_io_line", line=line)
        return None
    try:
        values = {name: _parse_uint(parts[pos]) for name, pos in _FIELD_POSITIONS.items()}
    except ValueError:
        log.warning("invalid_uid_io_line", line=line)
        return None
    return UserIO(**values)


def parse_stats(text: str) -> dict[int, UserIO]:
    """Parse a whole stats file into a snapshot keyed by UID.

    Empty lines are skipped. If a UID appears twice the later line wins.
    """
    snapshot: dict[int, UserIO] = {}
    for line in text.split("\n"):
        if not line:
            continue
        usage = parse_stats_line(line)
        if usage is None:
            continue
        snapshot[usage.uid] = usage
    return snapshot


class UidIoCollector:
    """Reads cumulative per-UID I/O counters from the kernel."""

    def __init__(self, stats_path: Path = Path("/proc/uid_io/stats")) -> None:
        self.stats_path = stats_path

    def read(self) -> dict[int, UserIO]:
        """Read and parse the counter file.

        Undecodable bytes become U+FFFD, so only the line holding them is
        discarded.

        Raises:
            CollectorError: If the file cannot be read.
        """
        try:
            text = self.stats_path.read_bytes().decode("ascii", errors="replace")
        except OSError as e:
            raise CollectorError(f"{self.stats_path}: {e}") from e
        return parse_stats(text)

    async def collect(self) -> dict[int, UserIO]:
        """Read counters without blocking the event loop."""
        return await asyncio.to_thread(self.read)
