"""Configuration for remotesync.

This module provides:
- SyncConfig: Top-level settings (local root, ignore patterns, debounce)
- SFTPSettings: Remote host, credentials and remote root
- RetrySettings: Reconnect pacing
- load_config: Read and validate a JSON settings file

Example file::

    {
      "local_path": "/proj/src",
      "debounce_ms": 5000,
      "sftp": {
        "host": "dev.example.com",
        "username": "deploy",
        "password": "secret",
        "remote_path": "/var/www/app"
      }
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_FILE = "remotesync.json"
DEFAULT_DEBOUNCE_MS = 5000
DEFAULT_SFTP_PORT = 22
PASSWORD_ENV_VAR = "REMOTESYNC_PASSWORD"


class ConfigurationError(ValueError):
    """A required setting is missing or invalid."""


@dataclass
class SFTPSettings:
    """Connection settings for the SFTP transfer channel.

    Attributes:
        host: Remote host name or address.
        username: Login user.
        remote_path: Remote directory mirroring the local root.
        port: SSH port.
        password: Password (optional when key_filename is set).
        key_filename: Private key file for key authentication.
        timeout: Connect timeout in seconds.
        keepalive_s: SSH keepalive interval in seconds.
    """

    host: str
    username: str
    remote_path: str
    port: int = DEFAULT_SFTP_PORT
    password: str | None = None
    key_filename: str | None = None
    timeout: float = 10.0
    keepalive_s: int = 30

    def __post_init__(self) -> None:
        """Normalize the remote root to forward slashes without a trailing one."""
        normalized = self.remote_path.replace("\\", "/")
        self.remote_path = normalized.rstrip("/") or "/"

    @property
    def has_credentials(self) -> bool:
        """Check if a password or key file is available."""
        return bool(self.password or self.key_filename)


@dataclass
class RetrySettings:
    """Reconnect pacing.

    Attributes:
        backoff: Use exponential backoff instead of a constant pause.
        pause_s: Constant pause between attempts when backoff is off.
        initial_s: First backoff delay.
        max_s: Backoff ceiling.
        multiplier: Backoff growth factor.
    """

    backoff: bool = False
    pause_s: float = 0.5
    initial_s: float = 1.0
    max_s: float = 60.0
    multiplier: float = 2.0


@dataclass
class SyncConfig:
    """Settings for one local → remote sync session."""

    local_path: Path
    sftp: SFTPSettings
    ignore: list[str] | None = None
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    requeue_failed: bool = False
    retry: RetrySettings = field(default_factory=RetrySettings)

    @property
    def debounce_s(self) -> float:
        """Get the quiescence window in seconds."""
        return self.debounce_ms / 1000.0

    def redacted(self) -> dict[str, Any]:
        """Get a printable view of the settings with secrets masked."""
        return {
            "local_path": str(self.local_path),
            "remote_path": self.sftp.remote_path,
            "host": f"{self.sftp.host}:{self.sftp.port}",
            "username": self.sftp.username,
            "password": "********" if self.sftp.password else None,
            "key_filename": self.sftp.key_filename,
            "ignore": self.ignore,
            "debounce_ms": self.debounce_ms,
            "requeue_failed": self.requeue_failed,
            "retry_backoff": self.retry.backoff,
        }


def _require(section: dict[str, Any], key: str, prefix: str = "") -> Any:
    value = section.get(key)
    if value is None or value == "":
        raise ConfigurationError(f"Missing required setting: {prefix}{key}")
    return value


def parse_config(data: dict[str, Any]) -> SyncConfig:
    """Build a SyncConfig from a decoded settings mapping.

    Args:
        data: Decoded JSON settings.

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: If a required setting is missing or invalid.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    local_path = Path(_require(data, "local_path")).expanduser().resolve()
    if not local_path.is_dir():
        raise ConfigurationError(f"local_path is not a directory: {local_path}")

    sftp_data = data.get("sftp")
    if not isinstance(sftp_data, dict):
        raise ConfigurationError("Missing required section: sftp")

    try:
        sftp = SFTPSettings(
            host=_require(sftp_data, "host", "sftp."),
            username=_require(sftp_data, "username", "sftp."),
            remote_path=_require(sftp_data, "remote_path", "sftp."),
            port=int(sftp_data.get("port", DEFAULT_SFTP_PORT)),
            password=os.environ.get(PASSWORD_ENV_VAR) or sftp_data.get("password"),
            key_filename=sftp_data.get("key_filename"),
            timeout=float(sftp_data.get("timeout", 10.0)),
            keepalive_s=int(sftp_data.get("keepalive_s", 30)),
        )
        retry_data = data.get("retry") or {}
        retry = RetrySettings(
            backoff=bool(retry_data.get("backoff", False)),
            pause_s=float(retry_data.get("pause_s", 0.5)),
            initial_s=float(retry_data.get("initial_s", 1.0)),
            max_s=float(retry_data.get("max_s", 60.0)),
            multiplier=float(retry_data.get("multiplier", 2.0)),
        )
        debounce_ms = int(data.get("debounce_ms", DEFAULT_DEBOUNCE_MS))
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid setting: {e}") from e

    if debounce_ms < 0:
        raise ConfigurationError(f"debounce_ms must not be negative, got {debounce_ms}")

    ignore = data.get("ignore")
    if ignore is not None:
        if isinstance(ignore, str):
            ignore = [ignore]
        if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
            raise ConfigurationError("ignore must be a list of patterns")

    return SyncConfig(
        local_path=local_path,
        sftp=sftp,
        ignore=ignore,
        debounce_ms=debounce_ms,
        requeue_failed=bool(data.get("requeue_failed", False)),
        retry=retry,
    )


def load_config(path: Path | str | None = None) -> SyncConfig:
    """Load configuration from a JSON file.

    Args:
        path: Settings file (default: ./remotesync.json).

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_file = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILE
    if not config_file.exists():
        raise ConfigurationError(f"Config file not found: {config_file}")

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_file}: {e}") from e

    return parse_config(data)
