"""Command-line interface for FileSyncer.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Create a default sync.json
- check: Test the connection to the remote server
- deploy: Full-tree sync, once
- watch: Watch the source tree and sync changes as they happen
"""

from __future__ import annotations

import click

from filesyncer.cli.config import load_config_or_exit, setup_logging
from filesyncer.cli.init import init
from filesyncer.cli.remote import check, ensure_connected
from filesyncer.cli.sync import deploy, watch


@click.group()
@click.version_option(package_name="filesyncer")
def cli() -> None:
    """FileSyncer - Real-time file synchronization for development."""


cli.add_command(init)
cli.add_command(check)
cli.add_command(deploy)
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "ensure_connected",
    "load_config_or_exit",
    "setup_logging",
]
