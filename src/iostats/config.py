"""Configuration system for iostats."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import structlog
import tomlkit

log = structlog.get_logger()

# Keys accepted by IoStatsConfig.set_option()
OPTION_KEYS = (
    "iostats.min",
    "iostats.read.min",
    "iostats.write.min",
    "iostats.debug",
    "iostats.disabled",
)


@dataclass
class IoStatsConfig:
    """I/O accounting configuration.

    Report sections are skipped while the interval total stays below the
    thresholds, which keeps quiet intervals down to a single line.
    """

    read_min: int = 50_000_000  # Bytes read per interval before ranking reads (50MB)
    write_min: int = 50_000_000  # Bytes written per interval before ranking writes (50MB)
    verbose: bool = False  # Diagnostic logging for name resolution and reports
    disabled: bool = False  # Skip sampling entirely

    def set_option(self, key: str, value: str) -> bool:
        """Apply a single `iostats.*` option given as strings.

        Unknown keys are ignored.

        Returns:
            True if the key was recognized and applied.

        Raises:
            ValueError: If the value is not an unsigned integer.
        """
        if key not in OPTION_KEYS:
            return False
        # Plain decimal digits only; int() would also take "+5", " 5" and "1_000"
        if not (value.isascii() and value.isdigit()):
            raise ValueError(f"Unable to parse value for {key}: {value!r}")
        val = int(value)

        if key == "iostats.min":
            self.read_min = val
            self.write_min = val
        elif key == "iostats.read.min":
            self.read_min = val
        elif key == "iostats.write.min":
            self.write_min = val
        elif key == "iostats.debug":
            self.verbose = val != 0
        elif key == "iostats.disabled":
            self.disabled = val != 0
        log.info("option_set", key=key, value=val)
        return True


@dataclass
class SystemConfig:
    """Daemon and data source configuration."""

    sample_interval: float = 10.0  # Seconds between ticks
    history_size: int = 60  # Reports kept in memory
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep
    # Kernel interfaces
    stats_path: str = "/proc/uid_io/stats"
    proc_root: str = "/proc"


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    iostats: IoStatsConfig = field(default_factory=IoStatsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "iostats"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "iostats"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for ephemeral files, cleared on reboot."""
        return Path("/tmp/iostats")

    @property
    def log_path(self) -> Path:
        """Daemon log path."""
        return self.state_dir / "daemon.log"

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("iostats", "system"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of an empty file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            iostats=_load_iostats_config(data.get("iostats", {})),
            system=_load_system_config(data.get("system", {})),
        )


def _load_iostats_config(data: dict) -> IoStatsConfig:
    """Load iostats config from TOML data, using dataclass defaults for missing fields."""
    defaults = IoStatsConfig()

    read_min = data.get("read_min", defaults.read_min)
    write_min = data.get("write_min", defaults.write_min)
    if read_min < 0:
        raise ValueError(f"read_min must be >= 0, got {read_min}")
    if write_min < 0:
        raise ValueError(f"write_min must be >= 0, got {write_min}")

    return IoStatsConfig(
        read_min=int(read_min),
        write_min=int(write_min),
        verbose=bool(data.get("verbose", defaults.verbose)),
        disabled=bool(data.get("disabled", defaults.disabled)),
    )


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config from TOML data."""
    d = SystemConfig()

    sample_interval = data.get("sample_interval", d.sample_interval)
    history_size = data.get("history_size", d.history_size)
    if sample_interval <= 0:
        raise ValueError(f"sample_interval must be > 0, got {sample_interval}")
    if history_size < 1:
        raise ValueError(f"history_size must be >= 1, got {history_size}")

    return SystemConfig(
        sample_interval=float(sample_interval),
        history_size=int(history_size),
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
        stats_path=str(data.get("stats_path", d.stats_path)),
        proc_root=str(data.get("proc_root", d.proc_root)),
    )
