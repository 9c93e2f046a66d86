"""Configuration helpers shared by the CLI commands."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click

from filesyncer.core.config import DEFAULT_CONFIG_FILE, ConfigManager, SyncConfig
from filesyncer.core.errors import ConfigurationError

F = TypeVar("F", bound=Callable[..., Any])


def config_option(func: F) -> F:
    """Add the -c/--config option to a command."""
    return click.option(
        "--config",
        "-c",
        "config_path",
        default=DEFAULT_CONFIG_FILE,
        show_default=True,
        type=click.Path(dir_okay=False, path_type=Path),
        help="Config file path.",
    )(func)


def verbose_option(func: F) -> F:
    """Add the -v/--verbose option to a command."""
    return click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")(func)


def setup_logging(verbose: bool) -> None:
    """Route filesyncer logs to stderr.

    Warnings and errors are always shown; --verbose adds debug output.
    """
    handler = logging.StreamHandler(sys.stderr)
    if verbose:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))

    filesyncer_logger = logging.getLogger("filesyncer")
    for existing in filesyncer_logger.handlers[:]:
        filesyncer_logger.removeHandler(existing)
    filesyncer_logger.addHandler(handler)
    filesyncer_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    filesyncer_logger.propagate = False


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"✗ Error: {message}", fg="red"), err=True)
    sys.exit(1)


def load_config_or_exit(config_path: Path) -> SyncConfig:
    """Load the config file, exiting with a message if it is invalid."""
    try:
        config = ConfigManager(config_path).load()
    except ConfigurationError as e:
        fail(str(e))
    click.echo(click.style("✓ Configuration loaded", fg="green"))
    return config


def warn_delete_mode(config: SyncConfig) -> None:
    """Warn before a sync that may delete remote files."""
    if config.delete_remote_files:
        click.echo()
        click.echo(click.style("⚠ WARNING: delete_remote_files is ENABLED!", fg="yellow"))
        click.echo(
            click.style(
                "  Files on the remote server that don't exist locally will be DELETED.",
                fg="yellow",
            )
        )
        click.echo(click.style("  This cannot be undone!", fg="yellow"))
        click.echo()
    if config.propagate_deletes and config.sync_method == "rsync":
        click.echo(
            click.style("⚠ Local deletions will be propagated to the remote.", fg="yellow")
        )
