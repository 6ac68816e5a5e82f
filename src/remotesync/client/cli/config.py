"""Configuration utilities for remotesync CLI.

This module loads the settings file and fills in interactive credentials.
"""

from __future__ import annotations

from pathlib import Path

import click

from remotesync.core.config import SyncConfig, load_config


def resolve_config(path: Path | None = None, prompt: bool = True) -> SyncConfig:
    """Load settings and prompt for a password when no credential is configured.

    Args:
        path: Settings file (default: ./remotesync.json).
        prompt: Ask for the password interactively if missing.

    Returns:
        Configuration ready to start a session.

    Raises:
        ConfigurationError: If the settings file is missing or invalid.
    """
    config = load_config(path)
    if prompt and not config.sftp.has_credentials:
        config.sftp.password = click.prompt(
            f"Password for {config.sftp.username}@{config.sftp.host}",
            hide_input=True,
        )
    return config
