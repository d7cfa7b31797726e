"""Fixed-layout text rendering of an interval's I/O usage.

Sample report:

    [IO_TOTAL: 10.160s] RD:371,703,808 WR:15,929,344 fsync:567
    [IO_TOP    ]    fg bytes,    bg bytes,fgsyn,bgsyn :  UID   PKG_NAME
    [R1: 33.99%]           0,    73240576,    0,  240 : 10016 .android.gms.ui
    [R2: 28.34%]    16039936,    45027328,    1,   21 : 10082 -
    [W1: 58.19%]           0,     7655424,    0,  240 : 10016 .android.gms.ui
    [W2: 41.81%]     1486848,           0,   58,    0 :  1000 system
"""

from typing import Mapping

import structlog

from iostats.config import IoStatsConfig
from iostats.ranking import TopRanker
from iostats.usage import UserIO

log = structlog.get_logger()

# Longest grouped number the report accepts
GROUPED_MAX_LEN = 31

TOP_HEADER = "[IO_TOP    ]    fg bytes,    bg bytes,fgsyn,bgsyn :  UID   PKG_NAME\n"
UNKNOWN_NAME = "-"


class FormatCapacityError(ValueError):
    """Raised when a grouped number does not fit the report field."""


def group_thousands(value: int) -> str:
    """Format an unsigned integer with a comma every three digits.

    Raises:
        FormatCapacityError: If the result is longer than GROUPED_MAX_LEN.
    """
    text = f"{value:,}"
    if len(text) > GROUPED_MAX_LEN:
        raise FormatCapacityError(f"{len(text)} chars exceeds {GROUPED_MAX_LEN}: {value}")
    return text


def _grouped_or_plain(value: int, label: str) -> str:
    try:
        return group_thousands(value)
    except FormatCapacityError:
        log.error("grouped_number_too_long", field=label, value=value)
        return str(value)


def format_elapsed(elapsed_ms: int) -> str:
    """Format milliseconds as seconds with millisecond precision ("10.160s")."""
    return f"{elapsed_ms // 1000}.{elapsed_ms % 1000:03d}s"


def format_total(total: UserIO, elapsed_ms: int) -> str:
    """Render the interval total line."""
    rd = _grouped_or_plain(total.read_total, "read")
    wr = _grouped_or_plain(total.write_total, "write")
    return f"[IO_TOTAL: {format_elapsed(elapsed_ms)}] RD:{rd} WR:{wr} fsync:{total.fsync_total}\n"


def _format_section(ranker: TopRanker, names: Mapping[int, str]) -> str:
    prefix = "R" if ranker.metric == "read" else "W"
    retained = ranker.value(ranker.sum())
    if retained == 0:
        return ""
    lines = []
    for rank, usage in enumerate(ranker.snapshot(), start=1):
        percent = 100.0 * ranker.value(usage) / retained
        if ranker.metric == "read":
            fg, bg = usage.fg_read, usage.bg_read
        else:
            fg, bg = usage.fg_write, usage.bg_write
        name = names.get(usage.uid, UNKNOWN_NAME)
        lines.append(
            f"[{prefix}{rank}:{percent:6.2f}%]{fg:12d},{bg:12d},"
            f"{usage.fg_fsync:5d},{usage.bg_fsync:5d} :{usage.uid:6d} {name}\n"
        )
    return "".join(lines)


def format_skip(metric: str, amount: int, threshold: int) -> str:
    """Render the notice for a section skipped under its threshold."""
    label = "RD" if metric == "read" else "WR"
    return f"({amount}<{threshold // 1_000_000}MB)skip {label}\n"


def render_report(
    total: UserIO,
    read_top: TopRanker,
    write_top: TopRanker,
    names: Mapping[int, str],
    elapsed_ms: int,
    config: IoStatsConfig,
) -> str:
    """Render the full report for one interval.

    Args:
        total: Sum of all deltas in the interval
        read_top: Ranker ordered by read volume
        write_top: Ranker ordered by write volume
        names: Resolved UID names; missing UIDs show as "-"
        elapsed_ms: Interval length in milliseconds
        config: Thresholds for the ranking sections
    """
    read_total = total.read_total
    write_total = total.write_total

    out = [format_total(total, elapsed_ms)]
    if read_total >= config.read_min or write_total >= config.write_min:
        out.append(TOP_HEADER)

    if read_total < config.read_min:
        out.append(format_skip("read", read_total, config.read_min))
    else:
        out.append(_format_section(read_top, names))

    if write_total < config.write_min:
        out.append(format_skip("write", write_total, config.write_min))
    else:
        out.append(_format_section(write_top, names))

    return "".join(out)
