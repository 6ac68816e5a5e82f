"""Command-line interface for remotesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- watch: Watch the local tree and push changes until Ctrl+C
- check-config: Validate the settings file and print the resolved values
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from remotesync import __version__
from remotesync.client.cli.config import resolve_config
from remotesync.client.cli.watch import watch
from remotesync.core.config import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="remotesync")
def cli() -> None:
    """remotesync - push local build changes to a remote host over SFTP."""


@cli.command("check-config")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: ./remotesync.json).",
)
def check_config(config_path: Path | None) -> None:
    """Validate the settings file and print the resolved values."""
    try:
        config = resolve_config(config_path, prompt=False)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for key, value in config.redacted().items():
        click.echo(f"{key}: {value}")
    if not config.sftp.has_credentials:
        click.echo(click.style("No password or key file configured; watch will prompt.", fg="yellow"))


cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
