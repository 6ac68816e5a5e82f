"""Batch upload over the managed connection.

This module provides:
- Uploader: Sends every file of a batch, isolating per-file failures
- UploadQueue: Single worker thread draining batches one at a time

Drains are serialized: a batch handed off while another is still uploading
waits in the queue instead of sharing the connection concurrently.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from remotesync.client.sync.types import (
    ConnectionClosedError,
    DrainCallback,
    DrainResult,
    TransferError,
    TransientConnectionError,
    remote_path_for,
)
from remotesync.core.hashing import FileReadError

if TYPE_CHECKING:
    from remotesync.client.sync.batch import PendingBatch
    from remotesync.client.sync.connection import ConnectionManager

logger = logging.getLogger(__name__)


class Uploader:
    """Uploads batches of relative paths from local_root to remote_root."""

    def __init__(
        self,
        connections: ConnectionManager,
        local_root: Path,
        remote_root: str,
        on_failed: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            connections: Supplies a ready transport for each drain.
            local_root: Local directory the relative paths resolve against.
            remote_root: Remote directory mirroring local_root.
            on_failed: Receives the retryable failed paths after a drain
                (re-queue hook). Files that could not be read locally are
                left out.
        """
        self._connections = connections
        self._local_root = Path(local_root)
        self._remote_root = remote_root
        self._on_failed = on_failed

    def local_path_for(self, relative_path: str) -> Path:
        """Resolve a relative path to its local absolute path."""
        return self._local_root.joinpath(*relative_path.split("/"))

    def remote_path_for(self, relative_path: str) -> str:
        """Resolve a relative path to its remote destination."""
        return remote_path_for(self._remote_root, relative_path)

    def drain(self, batch: Iterable[str]) -> DrainResult:
        """Upload every path of a batch.

        Each file is attempted once. A failed file is recorded in the result,
        which on_drained listeners report; the remaining files are still
        attempted. If the connection drops mid-batch, the manager is told and
        the next file waits for a fresh connection.

        Args:
            batch: Relative paths to upload.

        Returns:
            DrainResult listing uploaded and failed paths.

        Raises:
            ConnectionClosedError: If the connection manager was closed.
        """
        result = DrainResult()
        paths = list(batch)
        if not paths:
            return result

        # A local file that cannot be read is not retried
        retryable: list[str] = []

        for relative_path in paths:
            # Borrow the transport per file; a reconnect may replace it
            transport = self._connections.await_ready()
            local_path = self.local_path_for(relative_path)
            remote_path = self.remote_path_for(relative_path)
            try:
                transport.send_file(local_path, remote_path)
            except TransientConnectionError as e:
                logger.debug(f"Upload of {relative_path} interrupted: {e}")
                result.failed[relative_path] = str(e)
                retryable.append(relative_path)
                self._connections.report_error(e, transport)
            except FileReadError as e:
                logger.debug(f"Cannot read {relative_path}: {e}")
                result.failed[relative_path] = str(e)
            except (TransferError, OSError) as e:
                logger.debug(f"Failed to upload {relative_path}: {e}")
                result.failed[relative_path] = str(e)
                retryable.append(relative_path)
            else:
                logger.debug(f"Uploaded {local_path} -> {remote_path}")
                result.uploaded.append(relative_path)

        if retryable and self._on_failed:
            self._on_failed(sorted(retryable))

        return result


class UploadQueue:
    """Channel of batches consumed by a single drain worker.

    Usage:
        upload_queue = UploadQueue(uploader)
        upload_queue.start()
        scheduler = BatchScheduler(on_batch=upload_queue.submit)
        ...
        upload_queue.stop()
    """

    def __init__(
        self,
        uploader: Uploader,
        on_drain_start: Callable[[int], None] | None = None,
        on_drained: DrainCallback | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            uploader: Performs each drain.
            on_drain_start: Called with the batch size before a drain.
            on_drained: Called with each DrainResult.
        """
        self._uploader = uploader
        self._on_drain_start = on_drain_start
        self._on_drained = on_drained
        self._batches: queue.Queue[PendingBatch | None] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._running = False
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._outstanding = 0
        self._drained_count = 0

    @property
    def is_running(self) -> bool:
        """Check if the drain worker is running."""
        return self._running

    @property
    def pending_batches(self) -> int:
        """Get number of batches waiting to be drained."""
        return self._batches.qsize()

    @property
    def drained_count(self) -> int:
        """Get number of batches drained so far."""
        with self._lock:
            return self._drained_count

    def start(self) -> None:
        """Start the drain worker thread."""
        with self._lock:
            if self._running:
                logger.warning("Upload queue already running")
                return
            self._running = True
            self._thread = threading.Thread(
                target=self._worker_loop,
                name="UploadQueue",
                daemon=True,
            )
            self._thread.start()

    def submit(self, batch: PendingBatch) -> bool:
        """Queue a batch for upload.

        Returns:
            True if queued, False if the queue is stopped.
        """
        with self._lock:
            # Accepted batches are queued before stop()'s sentinel
            if not self._running:
                logger.warning(f"Upload queue stopped, dropping batch of {len(batch)} file(s)")
                return False
            self._outstanding += 1
            self._batches.put(batch)
        logger.debug(f"Batch queued: {len(batch)} file(s)")
        return True

    def join(self, timeout: float | None = None) -> bool:
        """Block until every submitted batch has been drained.

        Args:
            timeout: Maximum seconds to wait (None = wait forever).

        Returns:
            True if the queue is idle, False if timeout expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker after the batch in progress.

        Batches still waiting are discarded.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            thread = self._thread
            self._thread = None

        # Poison pill
        self._batches.put(None)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _worker_loop(self) -> None:
        """Drain batches one at a time until stopped."""
        while True:
            batch = self._batches.get()
            if batch is None or not self._running:
                if batch is not None:
                    self._task_done()
                break
            try:
                self._process(batch)
            except Exception:
                logger.exception("Unexpected error in upload worker")
            finally:
                self._task_done()

        # Discard batches still waiting so join() cannot hang
        while True:
            try:
                batch = self._batches.get_nowait()
            except queue.Empty:
                break
            if batch is not None:
                logger.warning(f"Discarding queued batch of {len(batch)} file(s)")
                self._task_done()

    def _task_done(self) -> None:
        with self._idle:
            self._outstanding -= 1
            self._idle.notify_all()

    def _process(self, batch: PendingBatch) -> None:
        if self._on_drain_start:
            self._on_drain_start(len(batch))
        try:
            result = self._uploader.drain(batch)
        except ConnectionClosedError:
            logger.info(f"Connection closed, {len(batch)} file(s) not uploaded")
            return
        except Exception:
            logger.exception("Unexpected error while draining batch")
            return

        with self._lock:
            self._drained_count += 1
        if self._on_drained:
            self._on_drained(result)
