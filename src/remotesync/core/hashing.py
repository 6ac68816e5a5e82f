"""Content fingerprinting for change detection.

This module provides:
- ContentFingerprinter: Streams a file through a hashlib digest
- FileReadError: Raised when a file vanishes or cannot be read mid-hash

Fingerprints only need to tell "same bytes" from "different bytes", so MD5
is the default algorithm.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

DEFAULT_ALGORITHM = "md5"
DEFAULT_CHUNK_SIZE = 64 * 1024


class FileReadError(OSError):
    """A file could not be read (deleted, moved or locked)."""


class ContentFingerprinter:
    """Computes a content digest for a file without loading it whole."""

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize the fingerprinter.

        Args:
            algorithm: Any algorithm name accepted by hashlib.new().
            chunk_size: Bytes read per iteration.

        Raises:
            ValueError: If the algorithm is unknown or chunk_size is not positive.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        # Fail fast on unknown algorithms
        hashlib.new(algorithm)
        self._algorithm = algorithm
        self._chunk_size = chunk_size

    @property
    def algorithm(self) -> str:
        """Get the digest algorithm name."""
        return self._algorithm

    def fingerprint_stream(self, stream: BinaryIO) -> str:
        """Hash a binary stream until it reaches end-of-data.

        Args:
            stream: Readable binary stream.

        Returns:
            Hexadecimal digest.

        Raises:
            FileReadError: If reading the stream fails.
        """
        hasher = hashlib.new(self._algorithm)
        try:
            for block in iter(lambda: stream.read(self._chunk_size), b""):
                hasher.update(block)
        except OSError as e:
            raise FileReadError(f"Read failed while hashing: {e}") from e
        return hasher.hexdigest()

    def fingerprint(self, path: Path) -> str:
        """Hash the file at path.

        Args:
            path: File to hash.

        Returns:
            Hexadecimal digest.

        Raises:
            FileReadError: If the file cannot be opened or read.
        """
        try:
            with open(path, "rb") as f:
                return self.fingerprint_stream(f)
        except FileReadError:
            raise
        except OSError as e:
            raise FileReadError(f"Cannot read {path}: {e}") from e

