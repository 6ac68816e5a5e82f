"""Core module - Shared configuration, fingerprinting and types."""

from remotesync.core.config import (
    ConfigurationError,
    RetrySettings,
    SFTPSettings,
    SyncConfig,
    load_config,
    parse_config,
)
from remotesync.core.hashing import (
    ContentFingerprinter,
    FileReadError,
)
from remotesync.core.types import ConnectionState, WatchEventKind

__all__ = [
    # Config
    "ConfigurationError",
    "RetrySettings",
    "SFTPSettings",
    "SyncConfig",
    "load_config",
    "parse_config",
    # Hashing
    "ContentFingerprinter",
    "FileReadError",
    # Types
    "ConnectionState",
    "WatchEventKind",
]
