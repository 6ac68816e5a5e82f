"""Debounced batching of changed paths.

This module provides:
- PendingBatch: Deduplicated set of relative paths awaiting upload
- BatchScheduler: Reset-on-activity debounce that hands off full batches

A build touching many files within a short span produces one batch instead
of one upload per file. The timer is restarted on every qualifying change,
so the batch is only handed off once the tree has been quiet for the whole
window.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_S = 5.0


class PendingBatch:
    """Relative paths accumulated between two debounce firings.

    Keys are unique; insertion order carries no meaning. Not thread-safe on
    its own: BatchScheduler guards the current batch with its lock.
    """

    def __init__(self, paths: Iterable[str] = ()) -> None:
        self._paths: dict[str, None] = dict.fromkeys(paths)

    def add(self, relative_path: str) -> None:
        """Insert a path (no-op if already present)."""
        self._paths[relative_path] = None

    @property
    def paths(self) -> list[str]:
        """Get the batch contents as a sorted list."""
        return sorted(self._paths)

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __bool__(self) -> bool:
        return bool(self._paths)

    def __repr__(self) -> str:
        return f"PendingBatch({self.paths!r})"


class Timer(Protocol):
    """Subset of threading.Timer used by the scheduler."""

    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class BatchScheduler:
    """Debounce timer owning the current PendingBatch.

    Usage:
        scheduler = BatchScheduler(on_batch=upload_queue.submit, window_s=5.0)
        scheduler.on_change("index.html")  # arms or re-arms the timer
        # ... 5s of quiet later, on_batch(PendingBatch(["index.html"])) runs
    """

    def __init__(
        self,
        on_batch: Callable[[PendingBatch], None],
        window_s: float = DEFAULT_WINDOW_S,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            on_batch: Receives each swapped-out batch, outside the lock.
            window_s: Quiescence window in seconds.
            timer_factory: Builds timers; defaults to threading.Timer.
        """
        if window_s < 0:
            raise ValueError(f"window_s must not be negative, got {window_s}")
        self._on_batch = on_batch
        self._window_s = window_s
        self._timer_factory: TimerFactory = timer_factory or threading.Timer

        self._lock = threading.Lock()
        self._batch = PendingBatch()
        self._timer: Timer | None = None
        # Bumped on every (re)arm so a superseded timer that still fires is ignored
        self._generation = 0
        self._closed = False

    @property
    def window_s(self) -> float:
        """Get the quiescence window in seconds."""
        return self._window_s

    @property
    def is_armed(self) -> bool:
        """Check if a debounce timer is pending."""
        with self._lock:
            return self._timer is not None

    @property
    def pending(self) -> list[str]:
        """Get a snapshot of the paths waiting in the current batch."""
        with self._lock:
            return self._batch.paths

    def on_change(self, relative_path: str) -> None:
        """Add a changed path and restart the quiescence window.

        Args:
            relative_path: Root-relative path whose content changed.
        """
        with self._lock:
            if self._closed:
                logger.debug("Scheduler closed, dropping change: %s", relative_path)
                return
            self._batch.add(relative_path)
            self._arm_locked()

    def requeue(self, paths: Iterable[str]) -> None:
        """Put paths back into the current batch and restart the window."""
        paths = list(paths)
        if not paths:
            return
        with self._lock:
            if self._closed:
                return
            for path in paths:
                self._batch.add(path)
            self._arm_locked()
        logger.info("Re-queued %d failed file(s) for the next batch", len(paths))

    def flush(self) -> PendingBatch | None:
        """Hand off the current batch immediately.

        Returns:
            The batch handed to on_batch, or None if it was empty.
        """
        with self._lock:
            self._disarm_locked()
            batch = self._swap_locked()
        if batch is not None:
            self._on_batch(batch)
        return batch

    def cancel(self) -> None:
        """Disarm the timer and refuse further changes.

        Paths still pending stay in the current batch (see pending).
        """
        with self._lock:
            self._closed = True
            self._disarm_locked()

    def _arm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        generation = self._generation
        timer = self._timer_factory(self._window_s, lambda: self._expire(generation))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _disarm_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _swap_locked(self) -> PendingBatch | None:
        if not self._batch:
            return None
        batch = self._batch
        self._batch = PendingBatch()
        return batch

    def _expire(self, generation: int) -> None:
        """Timer callback: swap the batch out and hand it off."""
        with self._lock:
            if generation != self._generation or self._closed:
                return
            self._timer = None
            batch = self._swap_locked()

        if batch is None:
            return

        logger.debug("Debounce window elapsed, handing off %d path(s)", len(batch))
        # Call handler outside lock
        self._on_batch(batch)
