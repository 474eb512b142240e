# src/dbsync/cli.py
"""dbsync Command Line Interface.

Entry point for the dbsync CLI tool.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from dbsync import __version__
from dbsync.contracts.errors import ConfigurationError, SyncError
from dbsync.core.config import SyncSettings, load_settings

__all__ = [
    "app",
]

app = typer.Typer(
    name="dbsync",
    help="dbsync: Keep a target database in sync with its sources.",
    no_args_is_help=True,
)

_SETTINGS_OPTION = typer.Option(
    ...,
    "--settings",
    "-s",
    help="Path to settings YAML file.",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"dbsync version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(None, "--env-file", help="Path to .env file (skips automatic search)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose/debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs."),
) -> None:
    """dbsync: Keep a target database in sync with its sources."""
    from dbsync.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _load_settings_or_exit(settings: Path) -> SyncSettings:
    try:
        return load_settings(settings)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _build_manager(config: SyncSettings) -> Any:
    from dbsync.core.logging import configure_logging
    from dbsync.core.plans import plans_from_settings
    from dbsync.engine.manager import Manager

    if config.logging.level.upper() != "INFO" or config.logging.json_output:
        configure_logging(json_output=config.logging.json_output, level=config.logging.level)
    return Manager(config, plans_from_settings(config))


@contextmanager
def _stop_on_signal(manager: Any) -> Iterator[None]:
    """Route SIGINT/SIGTERM to manager.stop() while the block runs.

    The first signal stops the loop at the next cycle boundary; the
    default SIGINT handler is restored so a second Ctrl-C force-kills.
    Skipped off the main thread, where signal handlers cannot be set.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, frame: Any) -> None:
        typer.echo("Stopping after the current cycle...", err=True)
        manager.stop()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)


def _run(settings: Path, operation: str, tables: list[str] | None = None) -> None:
    config = _load_settings_or_exit(settings)
    manager = _build_manager(config)
    selection = tables or None
    try:
        with manager:
            if operation == "increment":
                with _stop_on_signal(manager):
                    manager.increment()
            else:
                getattr(manager, operation)(selection)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from None
    except SyncError as e:
        typer.echo(f"Sync failed: {e}", err=True)
        raise typer.Exit(1) from None
    except Exception as e:
        typer.echo(f"Error during {operation.replace('_', '-')}: {type(e).__name__}: {e}", err=True)
        raise typer.Exit(1) from None


@app.command()
def batch(
    tables: list[str] | None = typer.Argument(None, help="Tables to load (default: all)."),
    settings: Path = _SETTINGS_OPTION,
    skip_refresh: bool = typer.Option(False, "--skip-refresh", help="Skip the recent-window refresh pass."),
) -> None:
    """Full load of tables, followed by a recent-window refresh."""
    _run(settings, "batch_load" if skip_refresh else "batch", tables)
    typer.echo("Batch load complete.")


@app.command("refresh-recent")
def refresh_recent(
    tables: list[str] | None = typer.Argument(None, help="Tables to refresh (default: all)."),
    settings: Path = _SETTINGS_OPTION,
) -> None:
    """Reload the recent window of tables."""
    _run(settings, "refresh_recent", tables)
    typer.echo("Refresh complete.")


@app.command()
def increment(
    settings: Path = _SETTINGS_OPTION,
) -> None:
    """Keep the target up to date until interrupted."""
    _run(settings, "increment")
    typer.echo("Incremental sync stopped.")


@app.command()
def tables(
    settings: Path = _SETTINGS_OPTION,
) -> None:
    """List the resolved table plan."""
    config = _load_settings_or_exit(settings)
    manager = _build_manager(config)
    try:
        with manager:
            specs = manager.tables_to_load()
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from None

    for spec in specs:
        refresh = spec.refresh_recent.column or spec.refresh_recent.mode.value
        typer.echo(f"{spec.table_name}\tsource={spec.source_name}\tbatch_load={spec.batch_load}\trefresh_recent={refresh}")
