"""Connection check for FileSyncer CLI.

Commands:
- check: Verify that the remote host is reachable
"""

from __future__ import annotations

from pathlib import Path

import click

from filesyncer.cli.config import (
    config_option,
    fail,
    load_config_or_exit,
    setup_logging,
    verbose_option,
)
from filesyncer.core.config import SyncConfig
from filesyncer.core.errors import ConnectivityError
from filesyncer.sync.probe import ConnectionProbe


def ensure_connected(config: SyncConfig) -> None:
    """Probe the remote.

    Raises:
        ConnectivityError: If the remote is unreachable.
    """
    click.echo("Testing connection to remote server...")
    endpoint = config.endpoint
    if not ConnectionProbe().probe(endpoint):
        raise ConnectivityError(
            f"Failed to connect to remote server {endpoint} "
            f"(key: {endpoint.private_key_path or 'default'})"
        )
    click.echo(click.style("✓ Connected to remote server", fg="green"))


@click.command()
@config_option
@verbose_option
def check(config_path: Path, verbose: bool) -> None:
    """Check that the remote server accepts a non-interactive login."""
    setup_logging(verbose)
    config = load_config_or_exit(config_path)

    try:
        ensure_connected(config)
    except ConnectivityError as e:
        fail(f"{e}\nPlease check your SSH configuration.")
