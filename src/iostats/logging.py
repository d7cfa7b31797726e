"""Console and structured logging.

CLI commands report to the user through `info` and `error`, which print Rich
markup to stdout. Daemon events go through structlog and are written both to
the console and as JSON Lines to a rotating log file (see `configure`).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from iostats.config import Config

_console = Console(highlight=False)


class Icon:
    FAIL = "[bold red]✗[/]"
    SAVE = "💾"


def _print(tag: str, msg: str, icon: str) -> None:
    stamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"{tag} {icon}" if icon else tag
    _console.print(f"[dim]{stamp}[/] {prefix} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Print a status line for the user."""
    _print("[bright_blue]\\[info][/]", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Print a failure line for the user."""
    _print("[bold red]\\[err][/]", msg, icon)


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, console: bool = True) -> None:
    """Configure structlog with dual output: console + JSON file.

    Console output uses a human-readable format with colors.
    File output uses JSON Lines format for machine parsing.

    Args:
        config: Application config with paths and rotation settings
        console: Also write events to stderr
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if config.iostats.verbose else logging.INFO

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("daemon"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(level)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(),
                foreign_pre_chain=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
                    structlog.processors.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                ],
            )
        )
        stdlib_root.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

