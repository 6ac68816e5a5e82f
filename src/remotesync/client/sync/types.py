"""Shared types and exceptions for the upload pipeline.

This module provides:
- SyncError, TransientConnectionError, TransferError, ConnectionClosedError
- FileFingerprint: Last known digest for a relative path
- DrainResult: Outcome of uploading one batch
- Path helpers shared by the watcher and the uploader
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from remotesync.core.types import WatchEventKind


class SyncError(Exception):
    """Base exception for sync errors."""


class TransientConnectionError(SyncError):
    """The transfer channel dropped, refused or timed out.

    Recovered by ConnectionManager's reconnect loop; never fatal.
    """


class TransferError(SyncError):
    """A single remote write failed."""


class ConnectionClosedError(SyncError):
    """The connection manager was closed while a caller waited for it."""


@dataclass(frozen=True)
class FileFingerprint:
    """Last known content digest for a relative path."""

    relative_path: str
    digest: str


@dataclass
class DrainResult:
    """Result of draining one batch.

    Attributes:
        uploaded: Relative paths sent successfully.
        failed: Relative path -> error message for each failed transfer.
    """

    uploaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        """Get number of transfer attempts."""
        return len(self.uploaded) + len(self.failed)

    @property
    def success(self) -> bool:
        """Check if every file was sent."""
        return not self.failed


# Callback types
EventCallback = Callable[[WatchEventKind, Path], None]
DrainCallback = Callable[[DrainResult], None]


def relative_path_for(root: Path, path: Path) -> str:
    """Get the root-relative form of path using forward slashes.

    Args:
        root: Watched root directory.
        path: Absolute path under root.

    Returns:
        Relative path such as "css/site.css".

    Raises:
        ValueError: If path is not under root.
    """
    return str(path.relative_to(root)).replace("\\", "/")


def remote_path_for(remote_root: str, relative_path: str) -> str:
    """Join the remote root and a relative path with forward slashes.

    Args:
        remote_root: Remote directory, e.g. "/var/www/app".
        relative_path: Root-relative path, e.g. "index.html".

    Returns:
        Remote path, e.g. "/var/www/app/index.html".
    """
    root = remote_root.replace("\\", "/").rstrip("/")
    rel = relative_path.replace("\\", "/").lstrip("/")
    return posixpath.normpath(f"{root}/{rel}") if root else "/" + posixpath.normpath(rel)
