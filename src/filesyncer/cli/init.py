"""Init command for FileSyncer CLI.

Commands:
- init: Create a default configuration file
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from filesyncer.cli.config import config_option, fail
from filesyncer.core.config import ConfigManager
from filesyncer.core.errors import ConfigurationError


@click.command()
@config_option
def init(config_path: Path) -> None:
    """Create a configuration file with default settings."""
    manager = ConfigManager(config_path)

    if manager.exists():
        click.echo(click.style("⚠ Configuration file already exists!", fg="yellow"))
        click.echo(f"  {manager.path.resolve()}")
        return

    try:
        config = manager.create_default()
    except ConfigurationError as e:
        fail(f"Failed to initialize: {e}")

    click.echo(click.style("✓ Configuration file created!", fg="green"))
    click.echo(f"  {manager.path.resolve()}")
    click.echo()
    click.echo("Please edit the configuration file with your settings:")
    click.echo(json.dumps(config.to_dict(), indent=2))
