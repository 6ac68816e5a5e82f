"""Pipeline wiring for one sync session.

This module provides:
- SyncEngine: Builds and owns the ledger, scheduler, connection manager,
  uploader, upload queue and watcher for one local -> remote mapping

Flow::

    FileWatcher -> handle_event -> ContentFingerprinter -> ChangeLedger
        -> BatchScheduler (debounce) -> UploadQueue -> Uploader
        -> ConnectionManager.await_ready() -> Transport.send_file()

Events seen before the watcher's READY signal only establish baseline
fingerprints; they never reach the scheduler, so startup does not upload
the whole tree.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from remotesync.client.sync.batch import BatchScheduler, PendingBatch, TimerFactory
from remotesync.client.sync.connection import ConnectionManager, RetryCallback
from remotesync.client.sync.ledger import ChangeLedger
from remotesync.client.sync.retry import policy_from_settings
from remotesync.client.sync.transport import SFTPTransport, Transport
from remotesync.client.sync.types import DrainCallback, relative_path_for
from remotesync.client.sync.upload import Uploader, UploadQueue
from remotesync.client.sync.watcher import FileWatcher
from remotesync.core.hashing import ContentFingerprinter, FileReadError
from remotesync.core.types import WatchEventKind

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from remotesync.core.config import SyncConfig

logger = logging.getLogger(__name__)


@dataclass
class EngineCallbacks:
    """Console hooks for the CLI.

    Attributes:
        on_ready: Initial scan finished.
        on_change: A file's content changed (relative path).
        on_drain_start: A batch of N files is about to be uploaded.
        on_drained: A batch finished.
        on_retry: A connect attempt failed (attempt, glyph, error).
        on_connected: The connection became READY.
    """

    on_ready: Callable[[], None] | None = None
    on_change: Callable[[str], None] | None = None
    on_drain_start: Callable[[int], None] | None = None
    on_drained: DrainCallback | None = None
    on_retry: RetryCallback | None = None
    on_connected: Callable[[], None] | None = None


class SyncEngine:
    """One-way sync from a local tree to a remote directory.

    Usage:
        engine = SyncEngine(load_config("remotesync.json"))
        engine.start()   # blocks for the initial scan
        ...
        engine.stop()
    """

    def __init__(
        self,
        config: SyncConfig,
        callbacks: EngineCallbacks | None = None,
        transport_factory: Callable[[], Transport] | None = None,
        timer_factory: TimerFactory | None = None,
        observer: BaseObserver | None = None,
        fingerprinter: ContentFingerprinter | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Session configuration.
            callbacks: Console hooks.
            transport_factory: Builds transports (default: SFTP from config).
            timer_factory: Debounce timer factory (default: threading.Timer).
            observer: watchdog observer (default: platform Observer).
            fingerprinter: Content hasher (default: MD5).
        """
        self._config = config
        self._callbacks = callbacks or EngineCallbacks()
        self._local_root = Path(config.local_path).resolve()
        self._ready = threading.Event()

        self.fingerprinter = fingerprinter or ContentFingerprinter()
        self.ledger = ChangeLedger()

        self.connections = ConnectionManager(
            transport_factory=transport_factory or (lambda: SFTPTransport(config.sftp)),
            retry_policy=policy_from_settings(config.retry),
            on_retry=self._callbacks.on_retry,
            on_ready=self._callbacks.on_connected,
        )

        self.scheduler = BatchScheduler(
            on_batch=self._submit_batch,
            window_s=config.debounce_s,
            timer_factory=timer_factory,
        )

        self.uploader = Uploader(
            connections=self.connections,
            local_root=self._local_root,
            remote_root=config.sftp.remote_path,
            on_failed=self.scheduler.requeue if config.requeue_failed else None,
        )

        self.upload_queue = UploadQueue(
            self.uploader,
            on_drain_start=self._callbacks.on_drain_start,
            on_drained=self._callbacks.on_drained,
        )

        self.watcher = FileWatcher(
            self._local_root,
            on_event=self.handle_event,
            ignore_patterns=config.ignore,
            observer=observer,
        )

    @property
    def local_root(self) -> Path:
        """Get the watched local root."""
        return self._local_root

    @property
    def is_ready(self) -> bool:
        """Check if the initial scan has completed."""
        return self._ready.is_set()

    def start(self) -> None:
        """Start uploading, connecting and watching.

        Returns once the initial backlog scan is complete.
        """
        self.upload_queue.start()
        self.connections.start()
        self.watcher.start()

    def stop(self, flush: bool = False, flush_timeout: float = 30.0) -> None:
        """Shut the pipeline down (best effort).

        Args:
            flush: Hand off pending changes and wait for them to upload.
            flush_timeout: Maximum seconds to wait for the flushed batch.
        """
        logger.info("Closing watcher...")
        self.watcher.stop()
        if flush:
            self.scheduler.flush()
            self.upload_queue.join(timeout=flush_timeout)
        self.scheduler.cancel()
        logger.info("Closing SFTP connection...")
        # Closing first releases a drain blocked waiting for a connection
        self.connections.close()
        self.upload_queue.stop()

    def handle_event(self, kind: WatchEventKind, path: Path) -> None:
        """Process one watcher notification.

        Args:
            kind: Notification kind.
            path: Absolute path the notification is about.
        """
        if kind is WatchEventKind.READY:
            self._mark_ready()
            return
        if kind is WatchEventKind.DELETE:
            logger.debug(f"Ignoring deletion of {path}")
            return
        if kind is WatchEventKind.ERROR:
            logger.warning(f"Watcher cannot read {path}; its files are not tracked")
            return
        if kind is not WatchEventKind.ADD and kind is not WatchEventKind.CHANGE:
            return

        try:
            relative_path = relative_path_for(self._local_root, path)
        except ValueError:
            logger.warning(f"Path {path} is not under {self._local_root}")
            return

        # Hash and compare under the path's lock so repeated checks are ordered
        with self.ledger.lock_for(relative_path):
            try:
                digest = self.fingerprinter.fingerprint(path)
            except FileReadError as e:
                logger.warning(f"Skipping {relative_path}: {e}")
                return
            changed = self.ledger.check_and_update(relative_path, digest)

        if not changed or not self._ready.is_set():
            return

        logger.debug(f"file has changed {path.name}")
        if self._callbacks.on_change:
            self._callbacks.on_change(relative_path)
        self.scheduler.on_change(relative_path)

    def _mark_ready(self) -> None:
        if self._ready.is_set():
            return
        self._ready.set()
        logger.info(f"Initial scan complete: {len(self.ledger)} file(s) fingerprinted")
        if self._callbacks.on_ready:
            self._callbacks.on_ready()

    def _submit_batch(self, batch: PendingBatch) -> None:
        self.upload_queue.submit(batch)
