"""Tests for report formatting."""

import pytest

from iostats.config import IoStatsConfig
from iostats.formatting import (
    GROUPED_MAX_LEN,
    TOP_HEADER,
    FormatCapacityError,
    format_elapsed,
    format_skip,
    format_total,
    group_thousands,
    render_report,
)
from iostats.ranking import TopRanker
from iostats.usage import UserIO
from tests.conftest import make_usage


def rankers(*records: UserIO, size: int = 5) -> tuple[TopRanker, TopRanker, UserIO]:
    read_top = TopRanker("read", size)
    write_top = TopRanker("write", size)
    total = UserIO()
    for r in records:
        read_top.offer(r)
        write_top.offer(r)
        total = total + r
    return read_top, write_top, total


class TestGroupThousands:
    """Tests for comma grouping."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, "0"),
            (999, "999"),
            (1000, "1,000"),
            (10000, "10,000"),
            (371703808, "371,703,808"),
            (18446744073709551615, "18,446,744,073,709,551,615"),
        ],
    )
    def test_grouping(self, value: int, expected: str) -> None:
        assert group_thousands(value) == expected

    def test_too_long(self) -> None:
        with pytest.raises(FormatCapacityError):
            group_thousands(10**30)

    def test_longest_accepted(self) -> None:
        """24 digits group to exactly GROUPED_MAX_LEN characters."""
        assert len(group_thousands(10**23)) <= GROUPED_MAX_LEN


class TestFormatElapsed:
    """Tests for interval length formatting."""

    def test_milliseconds_padded(self) -> None:
        assert format_elapsed(10160) == "10.160s"
        assert format_elapsed(5) == "0.005s"
        assert format_elapsed(0) == "0.000s"


class TestFormatTotal:
    """Tests for the IO_TOTAL line."""

    def test_total_line(self) -> None:
        total = make_usage(
            fg_read=300_000_000, bg_read=71_703_808, fg_write=15_929_344, fg_fsync=500, bg_fsync=67
        )
        assert format_total(total, 10160) == (
            "[IO_TOTAL: 10.160s] RD:371,703,808 WR:15,929,344 fsync:567\n"
        )

    def test_oversized_value_falls_back_to_plain_digits(self) -> None:
        """A value too long to group is printed without separators."""
        huge = 10**40
        line = format_total(make_usage(fg_read=huge, fg_write=1234), 1000)
        assert line == f"[IO_TOTAL: 1.000s] RD:{huge} WR:1,234 fsync:0\n"


class TestFormatSkip:
    """Tests for skip notices."""

    def test_read_skip(self) -> None:
        assert format_skip("read", 12345, 50_000_000) == "(12345<50MB)skip RD\n"

    def test_write_skip_truncates_megabytes(self) -> None:
        assert format_skip("write", 0, 1_999_999) == "(0<1MB)skip WR\n"


class TestRenderReport:
    """Tests for the full report layout."""

    def test_sample_report(self) -> None:
        """Lines match the fixed layout byte for byte."""
        read_top, write_top, total = rankers(
            make_usage(uid=10016, bg_read=73240576, bg_write=7655424, bg_fsync=240),
            make_usage(uid=1000, fg_read=26759424, fg_write=1486848, fg_fsync=58),
        )
        report = render_report(
            total,
            read_top,
            write_top,
            {10016: ".android.gms.ui", 1000: "system"},
            10160,
            IoStatsConfig(read_min=0, write_min=0),
        )
        assert report == (
            "[IO_TOTAL: 10.160s] RD:100,000,000 WR:9,142,272 fsync:298\n"
            + TOP_HEADER
            + "[R1: 73.24%]           0,    73240576,    0,  240 : 10016 .android.gms.ui\n"
            "[R2: 26.76%]    26759424,           0,   58,    0 :  1000 system\n"
            "[W1: 83.74%]           0,     7655424,    0,  240 : 10016 .android.gms.ui\n"
            "[W2: 16.26%]     1486848,           0,   58,    0 :  1000 system\n"
        )

    def test_unknown_name_placeholder(self) -> None:
        read_top, write_top, total = rankers(make_usage(uid=10082, fg_read=10))
        report = render_report(
            total, read_top, write_top, {}, 0, IoStatsConfig(read_min=0, write_min=0)
        )
        assert "[R1:100.00%]          10,           0,    0,    0 : 10082 -\n" in report

    def test_both_under_threshold(self) -> None:
        """No header and no rank lines, only the skip notices."""
        read_top, write_top, total = rankers(make_usage(uid=1, fg_read=100, fg_write=200))
        report = render_report(
            total, read_top, write_top, {}, 1000, IoStatsConfig(read_min=1000, write_min=2000000)
        )
        assert report == (
            "[IO_TOTAL: 1.000s] RD:100 WR:200 fsync:0\n"
            "(100<0MB)skip RD\n"
            "(200<2MB)skip WR\n"
        )

    def test_read_gated_write_shown(self) -> None:
        """Reads under threshold are skipped while writes are ranked."""
        read_top, write_top, total = rankers(make_usage(uid=1, fg_read=10, fg_write=60_000_000))
        report = render_report(
            total,
            read_top,
            write_top,
            {},
            1000,
            IoStatsConfig(read_min=50_000_000, write_min=50_000_000),
        )
        lines = report.splitlines()
        assert lines[1] == TOP_HEADER.rstrip("\n")
        assert lines[2] == "(10<50MB)skip RD"
        assert lines[3].startswith("[W1:100.00%]")
        assert not any(line.startswith("[R") for line in lines)

    def test_threshold_is_inclusive(self) -> None:
        """A total equal to the threshold is ranked."""
        read_top, write_top, total = rankers(make_usage(uid=1, fg_read=500))
        report = render_report(
            total, read_top, write_top, {}, 0, IoStatsConfig(read_min=500, write_min=10**9)
        )
        assert "[R1:100.00%]" in report

    def test_percent_of_retained_sum(self) -> None:
        """Shares are relative to the ranked entries, not the interval total."""
        records = [make_usage(uid=i, fg_read=amount) for i, amount in enumerate([50, 30, 20, 1])]
        read_top, write_top, total = rankers(*records, size=3)
        report = render_report(
            total, read_top, write_top, {}, 0, IoStatsConfig(read_min=0, write_min=0)
        )
        assert "[R1: 50.00%]" in report
        assert "[R3: 20.00%]" in report
        assert "[R4:" not in report

    def test_zero_activity_above_zero_threshold(self) -> None:
        """With zero thresholds and no traffic, only total and header are emitted."""
        read_top, write_top, total = rankers()
        report = render_report(
            total, read_top, write_top, {}, 0, IoStatsConfig(read_min=0, write_min=0)
        )
        assert report == "[IO_TOTAL: 0.000s] RD:0 WR:0 fsync:0\n" + TOP_HEADER
