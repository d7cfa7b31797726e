"""Background daemon for iostats."""

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import psutil
import structlog

from iostats.collector import CollectorError, UidIoCollector
from iostats.config import Config
from iostats.names import NameResolver, ProcessScanner
from iostats.ringbuffer import ReportBuffer
from iostats.stats import IoStats

log = structlog.get_logger()


@dataclass
class DaemonState:
    """Runtime state of the daemon."""

    running: bool = False
    tick_count: int = 0
    report_count: int = 0
    failed_ticks: int = 0
    last_tick_time: datetime | None = None

    def update_tick(self, reported: bool) -> None:
        """Update state after a completed tick."""
        self.tick_count += 1
        if reported:
            self.report_count += 1
        self.last_tick_time = datetime.now()


class Daemon:
    """Main daemon class driving the sample -> aggregate -> report cycle."""

    def __init__(self, config: Config):
        self.config = config
        self.state = DaemonState()

        self.collector = UidIoCollector(Path(config.system.stats_path))
        scanner = ProcessScanner(Path(config.system.proc_root), verbose=config.iostats.verbose)
        self.resolver = NameResolver(scanner, config.iostats)
        self.stats = IoStats(self.resolver, config.iostats)
        self.reports = ReportBuffer(max_samples=config.system.history_size)

        self._shutdown_event = asyncio.Event()
        self._owns_pid_file = False

    async def tick(self) -> str | None:
        """Run one sampling cycle.

        Returns:
            The rendered report, or None if sampling is disabled, the counter
            source could not be read, or this tick only captured the baseline.
        """
        if self.config.iostats.disabled:
            return None

        try:
            snapshot = await self.collector.collect()
        except CollectorError as e:
            # Leave interval state untouched; next tick diffs against the last good read
            log.error("collect_failed", error=str(e))
            self.state.failed_ticks += 1
            return None

        if self.config.iostats.verbose:
            log.debug("collect_ok", path=str(self.collector.stats_path), uids=len(snapshot))

        baseline = not self.stats.initialized
        self.stats.ingest(snapshot)
        if baseline:
            log.info("baseline_captured", uids=len(snapshot), names=len(self.resolver))
            return None

        report = self.stats.dump()
        self.reports.push(time.time(), report)
        log.info("io_report", report=report, elapsed_ms=self.stats.elapsed_ms)
        if self.config.iostats.verbose:
            log.debug("io_report_length", length=len(report))
        return report

    async def start(self) -> None:
        """Start the daemon."""
        from importlib.metadata import version

        log.info("daemon_starting", version=version("iostats"))
        log.info(
            "daemon_config",
            sample_interval=self.config.system.sample_interval,
            read_min=self.config.iostats.read_min,
            write_min=self.config.iostats.write_min,
            stats_path=self.config.system.stats_path,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))
        loop.add_signal_handler(signal.SIGUSR1, self.dump_history)

        if self._check_already_running():
            log.error("daemon_already_running")
            raise RuntimeError("Daemon is already running")

        self._write_pid_file()

        self.state.running = True
        log.info("daemon_started")

        await self._main_loop()

    async def stop(self) -> None:
        """Stop the daemon gracefully."""
        log.info("daemon_stopping")
        self.state.running = False
        self._remove_pid_file()
        log.info("daemon_stopped", ticks=self.state.tick_count, reports=self.state.report_count)

    def dump_history(self) -> None:
        """Log every retained report, oldest first."""
        reports = self.reports.recent()
        log.info("report_history", count=len(reports), capacity=self.reports.capacity)
        for sample in reports:
            log.info("history_report", timestamp=sample.timestamp, report=sample.text)

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        self._shutdown_event.set()

    def _write_pid_file(self) -> None:
        """Write PID file."""
        self.config.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_path.write_text(str(os.getpid()))
        self._owns_pid_file = True
        log.debug("pid_file_written", path=str(self.config.pid_path))

    def _remove_pid_file(self) -> None:
        """Remove the PID file if this instance wrote it."""
        if not self._owns_pid_file:
            return
        self.config.pid_path.unlink(missing_ok=True)
        self._owns_pid_file = False
        log.debug("pid_file_removed")

    def _discard_stale_pid_file(self) -> None:
        self.config.pid_path.unlink(missing_ok=True)
        log.debug("pid_file_removed", reason="stale")

    def _check_already_running(self) -> bool:
        """Check if another iostats daemon owns the PID file.

        A PID that now belongs to an unrelated process (e.g. after a reboot)
        counts as stale and the file is removed.
        """
        if not self.config.pid_path.exists():
            return False

        try:
            pid = int(self.config.pid_path.read_text().strip())
        except ValueError:
            log.warning("pid_file_invalid", reason="not a number")
            self._discard_stale_pid_file()
            return False

        try:
            proc = psutil.Process(pid)
            cmdline = proc.cmdline()

            if "iostats" in " ".join(cmdline).lower():
                log.info("daemon_already_running_verified", pid=pid, cmdline=" ".join(cmdline[:3]))
                return True
            log.warning(
                "pid_file_stale",
                reason="different process",
                pid=pid,
                actual_process=proc.name(),
            )
            self._discard_stale_pid_file()
            return False

        except psutil.NoSuchProcess:
            log.warning("pid_file_stale", reason="process not found", pid=pid)
            self._discard_stale_pid_file()
            return False
        except psutil.AccessDenied:
            # Can't inspect process - assume it's running to be safe
            log.warning("pid_check_access_denied", pid=pid)
            return True

    async def _main_loop(self) -> None:
        """Run ticks at the configured interval until shutdown.

        Ticks are strictly sequential: the next one starts only after the
        previous one has finished and the remaining interval has elapsed.
        """
        sample_interval = self.config.system.sample_interval

        while not self._shutdown_event.is_set():
            try:
                iteration_start = asyncio.get_running_loop().time()

                report = await self.tick()
                self.state.update_tick(report is not None)

                elapsed = asyncio.get_running_loop().time() - iteration_start
                sleep_time = sample_interval - elapsed
                if sleep_time > 0:
                    try:
                        await asyncio.wait_for(self._shutdown_event.wait(), timeout=sleep_time)
                        break  # Shutdown requested during sleep
                    except asyncio.TimeoutError:
                        pass  # Normal timeout, continue to next tick

            except asyncio.CancelledError:
                log.info("main_loop_cancelled")
                break
            except Exception as e:
                log.error("sample_failed", error=str(e))
                self.state.failed_ticks += 1
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=1.0)
                    break
                except asyncio.TimeoutError:
                    pass


async def run_daemon(config: Config | None = None) -> None:
    """Run the daemon until shutdown.

    Args:
        config: Optional config, loads from file if not provided
    """
    from iostats.logging import configure

    if config is None:
        config = Config.load()

    configure(config)

    daemon = Daemon(config)

    try:
        await daemon.start()
    except Exception as e:
        log.exception("daemon_crashed", error=str(e))
        raise
    finally:
        await daemon.stop()
