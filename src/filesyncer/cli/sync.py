"""Sync commands for FileSyncer CLI.

Commands:
- deploy: Synchronize the whole source tree once
- watch: Watch for changes and synchronize them continuously
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import click

from filesyncer.cli.config import (
    config_option,
    fail,
    load_config_or_exit,
    setup_logging,
    verbose_option,
    warn_delete_mode,
)
from filesyncer.cli.remote import ensure_connected
from filesyncer.core.errors import ConfigurationError, ConnectivityError
from filesyncer.core.types import Batch, ChangeKind, SyncOutcome

KIND_SYMBOLS = {
    ChangeKind.ADD: "+",
    ChangeKind.MODIFY: "~",
    ChangeKind.REMOVE: "-",
    ChangeKind.DIR_ADD: "+",
    ChangeKind.DIR_REMOVE: "-",
}


def echo_errors(outcome: SyncOutcome) -> None:
    """Print every error of a failed outcome."""
    for error in outcome.errors:
        click.echo(click.style(f"  ✗ {error}", fg="red"))


@click.command()
@config_option
@verbose_option
def deploy(config_path: Path, verbose: bool) -> None:
    """Deploy all files once (full sync)."""
    from filesyncer.sync.dispatcher import SyncDispatcher

    setup_logging(verbose)
    config = load_config_or_exit(config_path)

    try:
        ensure_connected(config)
        warn_delete_mode(config)

        click.echo("Deploying files...")
        with SyncDispatcher.from_config(config) as dispatcher:
            outcome = dispatcher.sync_full()
    except (ConfigurationError, ConnectivityError) as e:
        fail(str(e))

    if not outcome.succeeded:
        click.echo(click.style("✗ Deploy failed", fg="red"))
        echo_errors(outcome)
        raise SystemExit(1)

    click.echo(click.style(f"✓ Deployed successfully in {outcome.duration_ms}ms", fg="green"))
    click.echo(f"  All files synced to {config.remote_target}")


@click.command()
@config_option
@verbose_option
def watch(config_path: Path, verbose: bool) -> None:
    """Watch files and sync changes automatically."""
    from filesyncer.sync.dispatcher import SyncDispatcher
    from filesyncer.sync.watcher import FileWatcher

    setup_logging(verbose)
    config = load_config_or_exit(config_path)

    try:
        ensure_connected(config)
    except ConnectivityError as e:
        fail(f"{e}\nPlease check your SSH configuration.")
    warn_delete_mode(config)

    try:
        dispatcher = SyncDispatcher.from_config(config)
    except ConfigurationError as e:
        fail(str(e))

    # Batches flush on timer threads and may overlap
    output_lock = threading.Lock()

    def on_batch(batch: Batch) -> None:
        outcome = dispatcher.sync_batch(batch)
        with output_lock:
            click.echo(f"\n{len(batch)} file(s) changed:")
            for event in batch:
                click.echo(f"  {KIND_SYMBOLS[event.kind]} {event.path}")
            if outcome.succeeded:
                click.echo(
                    click.style(
                        f"  ✓ Synced {outcome.files_attempted} file(s) "
                        f"in {outcome.duration_ms}ms",
                        fg="green",
                    )
                )
            else:
                click.echo(click.style("  ✗ Sync failed", fg="red"))
                echo_errors(outcome)

    try:
        watcher = FileWatcher(config, on_batch=on_batch)
    except (ValueError, ConfigurationError) as e:
        dispatcher.close()
        fail(str(e))

    click.echo()
    click.echo("Watching for changes... (Ctrl+C to stop)")
    click.echo(f"  Source: {watcher.watch_path}")
    click.echo(f"  Remote: {config.remote_target}")
    click.echo(f"  Method: {config.sync_method}")
    click.echo()

    watcher.start()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        click.echo("\nStopping watcher...")
    finally:
        watcher.stop()
        dispatcher.close()
