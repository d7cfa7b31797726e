"""CLI commands for iostats."""

import click


@click.group()
@click.version_option(package_name="iostats")
def main() -> None:
    """Per-UID I/O usage accounting."""
    pass


@main.command()
def daemon() -> None:
    """Run the background sampler."""
    import asyncio

    from iostats.daemon import run_daemon

    asyncio.run(run_daemon())


@main.command()
@click.option("--interval", "-i", default=1.0, type=float, help="Seconds between the two samples")
def once(interval: float) -> None:
    """Sample twice and print a single report."""
    import time
    from pathlib import Path

    from iostats.collector import CollectorError, UidIoCollector
    from iostats.config import Config
    from iostats.logging import Icon, error
    from iostats.names import NameResolver, ProcessScanner
    from iostats.stats import IoStats

    config = Config.load()
    collector = UidIoCollector(Path(config.system.stats_path))
    scanner = ProcessScanner(Path(config.system.proc_root), verbose=config.iostats.verbose)
    stats = IoStats(NameResolver(scanner, config.iostats), config.iostats)

    try:
        stats.ingest(collector.read())
        time.sleep(interval)
        stats.ingest(collector.read())
    except CollectorError as e:
        error(f"Unable to read counters: {e}", Icon.FAIL)
        raise SystemExit(1)

    click.echo(stats.dump(), nl=False)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from iostats.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[iostats]")
    click.echo(f"  read_min = {cfg.iostats.read_min}")
    click.echo(f"  write_min = {cfg.iostats.write_min}")
    click.echo(f"  verbose = {cfg.iostats.verbose}")
    click.echo(f"  disabled = {cfg.iostats.disabled}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  sample_interval = {cfg.system.sample_interval}")
    click.echo(f"  history_size = {cfg.system.history_size}")
    click.echo(f"  stats_path = {cfg.system.stats_path}")
    click.echo(f"  proc_root = {cfg.system.proc_root}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set an iostats.* option and save it.

    Keys: iostats.min, iostats.read.min, iostats.write.min, iostats.debug,
    iostats.disabled.
    """
    from iostats.config import OPTION_KEYS, Config
    from iostats.logging import Icon, info

    cfg = Config.load()
    try:
        applied = cfg.iostats.set_option(key, value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not applied:
        valid = ", ".join(OPTION_KEYS)
        click.echo(f"Error: unknown option {key!r}. Valid options: {valid}", err=True)
        raise SystemExit(1)

    cfg.save()
    info(f"Saved [cyan]{key}[/] = {value} to [cyan]{cfg.config_path}[/]", Icon.SAVE)


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from iostats.config import Config

    cfg = Config.load()

    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])
