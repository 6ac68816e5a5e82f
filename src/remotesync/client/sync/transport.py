"""Transfer channel used to push files to the remote host.

This module provides:
- Transport: Interface the connection manager and uploader rely on
- SFTPTransport: paramiko SSH + SFTP implementation

Error mapping:
- Network/SSH failures and channel timeouts -> TransientConnectionError (reconnect)
- Remote write failures for one file -> TransferError
- Local file missing -> FileReadError
"""

from __future__ import annotations

import logging
import posixpath
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import paramiko

from remotesync.client.sync.types import TransferError, TransientConnectionError
from remotesync.core.hashing import FileReadError

if TYPE_CHECKING:
    from remotesync.core.config import SFTPSettings

logger = logging.getLogger(__name__)

# Failures that mean the channel itself is gone
CHANNEL_EXCEPTIONS: tuple[type[Exception], ...] = (
    paramiko.SSHException,
    EOFError,
    OSError,
)


class Transport(ABC):
    """A connection able to send local files to remote paths.

    A transport instance is used for a single connection; reconnecting
    builds a new one.
    """

    @abstractmethod
    def connect(self) -> None:
        """Perform the handshake.

        Raises:
            TransientConnectionError: If the remote cannot be reached.
        """

    @abstractmethod
    def send_file(self, local_path: Path, remote_path: str) -> None:
        """Copy one local file to remote_path.

        Raises:
            FileReadError: If the local file cannot be read.
            TransferError: If the remote write fails.
            TransientConnectionError: If the channel dropped.
        """

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the underlying channel is still usable."""

    @abstractmethod
    def close(self) -> None:
        """Release the channel (safe to call more than once)."""


class SFTPTransport(Transport):
    """paramiko-backed SFTP channel."""

    def __init__(self, settings: SFTPSettings) -> None:
        """Initialize the transport.

        Args:
            settings: Host, credentials and timeouts.
        """
        self._settings = settings
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        # Remote directories known to exist for this connection
        self._known_dirs: set[str] = set()

    def connect(self) -> None:
        s = self._settings
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kwargs: dict = dict(
            hostname=s.host,
            port=s.port,
            username=s.username,
            timeout=s.timeout,
            banner_timeout=s.timeout,
            auth_timeout=s.timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        if s.key_filename:
            kwargs["key_filename"] = s.key_filename
        if s.password:
            kwargs["password"] = s.password

        try:
            client.connect(**kwargs)
            transport = client.get_transport()
            if transport is not None:
                transport.set_keepalive(s.keepalive_s)
            sftp = client.open_sftp()
            # Bound every channel read/write, not just the TCP connect
            sftp.get_channel().settimeout(s.timeout)
        except paramiko.AuthenticationException as e:
            client.close()
            raise TransientConnectionError(
                f"Authentication failed for {s.username}@{s.host}: {e}"
            ) from e
        except CHANNEL_EXCEPTIONS as e:
            client.close()
            raise TransientConnectionError(f"Cannot connect to {s.host}:{s.port}: {e}") from e

        self._ssh = client
        self._sftp = sftp
        self._known_dirs.clear()
        logger.debug(f"SFTP session open on {s.host}:{s.port}")

    def send_file(self, local_path: Path, remote_path: str) -> None:
        if self._sftp is None:
            raise TransientConnectionError("SFTP session is not open")
        if not local_path.is_file():
            raise FileReadError(f"File not found: {local_path}")

        try:
            self._ensure_remote_dir(posixpath.dirname(remote_path))
            self._sftp.put(str(local_path), remote_path)
        except FileNotFoundError as e:
            # paramiko raises FileNotFoundError for both sides; check which one
            if not local_path.exists():
                raise FileReadError(f"File vanished during upload: {local_path}") from e
            raise TransferError(f"{remote_path}: {e}") from e
        except TimeoutError as e:
            # The SSH transport may still look active on a half-open link
            raise TransientConnectionError(f"Timed out during upload: {e}") from e
        except CHANNEL_EXCEPTIONS as e:
            if not self.is_alive():
                raise TransientConnectionError(f"Connection lost during upload: {e}") from e
            raise TransferError(f"{remote_path}: {e}") from e

    def _ensure_remote_dir(self, remote_dir: str) -> None:
        """Create remote_dir and its missing parents."""
        if not remote_dir or remote_dir in ("/", ".") or remote_dir in self._known_dirs:
            return
        assert self._sftp is not None
        try:
            attrs = self._sftp.stat(remote_dir)
            if attrs.st_mode is not None and not stat.S_ISDIR(attrs.st_mode):
                raise TransferError(f"Remote path is not a directory: {remote_dir}")
        except FileNotFoundError:
            self._ensure_remote_dir(posixpath.dirname(remote_dir))
            logger.debug(f"Creating remote directory {remote_dir}")
            self._sftp.mkdir(remote_dir)
        self._known_dirs.add(remote_dir)

    def is_alive(self) -> bool:
        if self._ssh is None:
            return False
        transport = self._ssh.get_transport()
        return transport is not None and transport.is_active()

    def close(self) -> None:
        if self._sftp is not None:
            try:
                self._sftp.close()
            except (OSError, paramiko.SSHException) as e:
                logger.debug(f"Error closing SFTP session: {e}")
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None
        self._known_dirs.clear()
