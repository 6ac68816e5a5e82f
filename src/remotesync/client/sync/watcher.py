"""File system watcher feeding the upload pipeline.

This module provides:
- WatcherEventHandler: Maps watchdog events to WatchEventKind notifications
- FileWatcher: Watches the local root, replays a backlog scan, signals READY

The observer is started before the backlog scan so that modifications made
while the scan runs are not missed. Every file present at startup is
reported as ADD, then READY is reported once.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from remotesync.client.sync.ignore import IgnorePatterns
from remotesync.core.types import WatchEventKind

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from remotesync.client.sync.types import EventCallback

logger = logging.getLogger(__name__)

SYNCIGNORE_FILE = ".syncignore"

_DIR_EVENTS = (DirCreatedEvent, DirModifiedEvent, DirDeletedEvent, DirMovedEvent)


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class WatcherEventHandler(FileSystemEventHandler):
    """Forwards file events under base_path to a callback."""

    def __init__(
        self,
        base_path: Path,
        on_event: EventCallback,
        ignore_patterns: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            base_path: Watched root directory.
            on_event: Receives (kind, absolute path).
            ignore_patterns: Patterns for files to skip.
        """
        super().__init__()
        self._base_path = base_path
        self._on_event = on_event
        self._ignore = ignore_patterns or IgnorePatterns()

    def _emit(self, kind: WatchEventKind, raw_path: str | bytes) -> None:
        path = Path(_decode(raw_path))
        if self._ignore.should_ignore(path, self._base_path):
            return
        try:
            self._on_event(kind, path)
        except Exception:
            # Keep the observer thread alive
            logger.exception(f"Error handling {kind.value} event for {path}")

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Dispatch file events; directory events are dropped."""
        if isinstance(event, _DIR_EVENTS):
            return
        if isinstance(event, FileCreatedEvent):
            self._emit(WatchEventKind.ADD, event.src_path)
        elif isinstance(event, FileModifiedEvent):
            self._emit(WatchEventKind.CHANGE, event.src_path)
        elif isinstance(event, FileDeletedEvent):
            self._emit(WatchEventKind.DELETE, event.src_path)
        elif isinstance(event, FileMovedEvent):
            # Atomic-save editors write a temp file and rename it into place
            self._emit(WatchEventKind.ADD, event.dest_path)


class FileWatcher:
    """Watches a directory tree and reports file notifications."""

    def __init__(
        self,
        watch_path: Path,
        on_event: EventCallback,
        ignore_patterns: list[str] | None = None,
        observer: BaseObserver | None = None,
    ) -> None:
        """Initialize the file watcher.

        Args:
            watch_path: Directory to watch.
            on_event: Receives (kind, absolute path) for every notification.
            ignore_patterns: Patterns to ignore (None = dotfiles).
            observer: watchdog observer to use (default: platform Observer).

        Raises:
            ValueError: If watch_path is not a directory.
        """
        self._watch_path = Path(watch_path).resolve()
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")

        self._on_event = on_event
        self._ignore = IgnorePatterns(ignore_patterns)
        # Load .syncignore if it exists
        self._ignore.load_from_file(self._watch_path / SYNCIGNORE_FILE)

        self._handler = WatcherEventHandler(
            base_path=self._watch_path,
            on_event=on_event,
            ignore_patterns=self._ignore,
        )
        self._observer: BaseObserver = observer or Observer()
        self._running = False
        self._ready = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def ignore(self) -> IgnorePatterns:
        """Get the active ignore patterns."""
        return self._ignore

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    @property
    def is_ready(self) -> bool:
        """Check if the initial backlog scan has completed."""
        return self._ready

    def start(self) -> None:
        """Start watching, replay the backlog, then report READY.

        Blocks while the backlog scan runs.
        """
        if self._running:
            return

        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True

        count = self._scan_backlog()
        self._ready = True
        logger.debug(f"Initial scan found {count} file(s) under {self._watch_path}")
        self._on_event(WatchEventKind.READY, self._watch_path)

    def _scan_backlog(self) -> int:
        """Report every non-ignored file under the root as ADD."""
        count = 0

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Cannot scan {error.filename}: {error.strerror}")
            self._on_event(WatchEventKind.ERROR, Path(error.filename or self._watch_path))

        for dirpath, dirnames, filenames in os.walk(self._watch_path, onerror=on_walk_error):
            current = Path(dirpath)
            # Prune ignored directories in place
            dirnames[:] = sorted(
                d for d in dirnames
                if not self._ignore.should_ignore(current / d, self._watch_path)
            )
            for name in sorted(filenames):
                path = current / name
                if self._ignore.should_ignore(path, self._watch_path):
                    continue
                self._on_event(WatchEventKind.ADD, path)
                count += 1
        return count

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
