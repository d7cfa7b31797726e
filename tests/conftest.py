"""Shared test fixtures for iostats."""

from pathlib import Path

import pytest

from iostats.config import IoStatsConfig
from iostats.names import NameResolver, ProcessScanner
from iostats.stats import IoStats
from iostats.usage import UserIO


def make_usage(
    uid: int = 10000,
    fg_read: int = 0,
    fg_write: int = 0,
    bg_read: int = 0,
    bg_write: int = 0,
    fg_fsync: int = 0,
    bg_fsync: int = 0,
) -> UserIO:
    """Create a UserIO for testing."""
    return UserIO(
        uid=uid,
        fg_read=fg_read,
        fg_write=fg_write,
        bg_read=bg_read,
        bg_write=bg_write,
        fg_fsync=fg_fsync,
        bg_fsync=bg_fsync,
    )


def make_stats_line(usage: UserIO) -> str:
    """Render a UserIO as a /proc/uid_io/stats line (rchar/wchar fields are filler)."""
    return (
        f"{usage.uid} 111 222 {usage.fg_read} {usage.fg_write} 333 444 "
        f"{usage.bg_read} {usage.bg_write} {usage.fg_fsync} {usage.bg_fsync}"
    )


def add_process(proc_root: Path, pid: int, name: str, uid: int) -> None:
    """Create a fake /proc/<pid>/status entry."""
    pid_dir = proc_root / str(pid)
    pid_dir.mkdir(parents=True, exist_ok=True)
    (pid_dir / "status").write_text(
        f"Name:\t{name}\n"
        "Umask:\t0077\n"
        "State:\tS (sleeping)\n"
        f"Tgid:\t{pid}\n"
        f"Pid:\t{pid}\n"
        "PPid:\t1\n"
        f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}\n"
        f"Gid:\t{uid}\t{uid}\t{uid}\t{uid}\n"
    )


class FakeClock:
    """Deterministic clock advancing a fixed step on every call."""

    def __init__(self, start: float = 1000.0, step: float = 10.0) -> None:
        self.now = start - step
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    """Empty fake proc tree."""
    root = tmp_path / "proc"
    root.mkdir()
    return root


@pytest.fixture
def iostats_config() -> IoStatsConfig:
    """Config with thresholds disabled so every section is rendered."""
    return IoStatsConfig(read_min=0, write_min=0)


@pytest.fixture
def resolver(proc_root: Path, iostats_config: IoStatsConfig) -> NameResolver:
    return NameResolver(ProcessScanner(proc_root), iostats_config)


@pytest.fixture
def stats(resolver: NameResolver, iostats_config: IoStatsConfig) -> IoStats:
    return IoStats(resolver, iostats_config, clock=FakeClock())
