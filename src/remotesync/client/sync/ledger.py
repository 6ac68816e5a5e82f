"""Last-known content fingerprints per relative path.

The ledger decides whether a watcher notification is a real content change.
Checks for the same path are serialized with a per-path lock; different
paths never contend beyond the short registry lock.
"""

from __future__ import annotations

import logging
import threading

from remotesync.client.sync.types import FileFingerprint

logger = logging.getLogger(__name__)


class ChangeLedger:
    """Thread-safe map of relative path -> last seen digest.

    Entries live for the process lifetime. Nothing is persisted; every
    restart re-baselines from the watcher's initial scan.
    """

    def __init__(self) -> None:
        self._digests: dict[str, str] = {}
        self._path_locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, relative_path: str) -> threading.RLock:
        """Get the lock serializing checks for one path.

        Callers hold it across hash-then-check so two notifications for the
        same file cannot interleave their reads and writes.
        """
        with self._registry_lock:
            lock = self._path_locks.get(relative_path)
            if lock is None:
                lock = threading.RLock()
                self._path_locks[relative_path] = lock
            return lock

    def check_and_update(self, relative_path: str, digest: str) -> bool:
        """Record digest for a path and report whether it is a real change.

        Args:
            relative_path: Root-relative path.
            digest: Freshly computed content digest.

        Returns:
            True if the path was unknown or its digest differs (the new
            digest is stored), False if the content is unchanged.
        """
        with self.lock_for(relative_path):
            previous = self._digests.get(relative_path)
            if previous == digest:
                return False
            self._digests[relative_path] = digest
            logger.debug(
                "Fingerprint updated for %s: %s -> %s", relative_path, previous, digest
            )
            return True

    def get(self, relative_path: str) -> str | None:
        """Get the stored digest for a path, if any."""
        with self.lock_for(relative_path):
            return self._digests.get(relative_path)

    def fingerprints(self) -> list[FileFingerprint]:
        """Get a snapshot of all stored fingerprints, sorted by path."""
        items = sorted(self._digests.copy().items())
        return [FileFingerprint(relative_path=p, digest=d) for p, d in items]

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self._digests

    def __len__(self) -> int:
        return len(self._digests)
