"""Tests for ignore patterns and the file system watcher."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from remotesync.client.sync.ignore import IgnorePatterns
from remotesync.client.sync.watcher import FileWatcher, WatcherEventHandler
from remotesync.core.types import WatchEventKind


class EventRecorder:
    """Collects (kind, path) notifications."""

    def __init__(self) -> None:
        self.events: list[tuple[WatchEventKind, Path]] = []
        self._lock = threading.Lock()
        self._seen = threading.Condition(self._lock)

    def __call__(self, kind: WatchEventKind, path: Path) -> None:
        with self._seen:
            self.events.append((kind, path))
            self._seen.notify_all()

    def wait_for(self, kind: WatchEventKind, path: Path, timeout: float = 5.0) -> bool:
        with self._seen:
            return self._seen.wait_for(lambda: (kind, path) in self.events, timeout=timeout)


class TestIgnorePatterns:
    """Tests for ignore pattern matching."""

    def test_dotfiles_ignored_by_default(self, tmp_path: Path) -> None:
        """Should ignore dotfiles and anything under dot-directories."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / ".DS_Store", tmp_path) is True
        assert ignore.should_ignore(tmp_path / ".git" / "HEAD", tmp_path) is True

    def test_normal_file_not_ignored(self, tmp_path: Path) -> None:
        """Should not ignore normal files."""
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / "index.html", tmp_path) is False

    def test_root_never_ignored(self, tmp_path: Path) -> None:
        """The watched root itself is never ignored."""
        assert IgnorePatterns(["*"]).should_ignore(tmp_path, tmp_path) is False

    def test_outside_root_not_ignored(self, tmp_path: Path) -> None:
        """Paths outside the root are left to the caller."""
        root = tmp_path / "src"
        assert IgnorePatterns().should_ignore(tmp_path / "other.txt", root) is False

    def test_custom_list_replaces_defaults(self, tmp_path: Path) -> None:
        """An explicit list replaces the dotfile default."""
        ignore = IgnorePatterns(["*.map"])
        assert ignore.should_ignore(tmp_path / "app.js.map", tmp_path) is True
        assert ignore.should_ignore(tmp_path / ".env", tmp_path) is False

    def test_directory_pattern(self, tmp_path: Path) -> None:
        """A trailing slash matches a directory anywhere in the path."""
        ignore = IgnorePatterns(["node_modules/"])
        assert ignore.should_ignore(tmp_path / "node_modules", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "node_modules" / "x" / "y.js", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "lib" / "node_modules.js", tmp_path) is False

    def test_path_glob(self, tmp_path: Path) -> None:
        """A glob with a slash matches the whole relative path."""
        ignore = IgnorePatterns(["build/*.tmp"])
        assert ignore.should_ignore(tmp_path / "build" / "a.tmp", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "a.tmp", tmp_path) is False

    def test_regex_pattern(self, tmp_path: Path) -> None:
        """"re:" patterns are searched in the relative path."""
        ignore = IgnorePatterns([r"re:\.min\.(js|css)$"])
        assert ignore.should_ignore(tmp_path / "js" / "app.min.js", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "js" / "app.js", tmp_path) is False
        assert ignore.patterns == [r"re:\.min\.(js|css)$"]

    def test_invalid_regex(self) -> None:
        """A broken regular expression is rejected."""
        with pytest.raises(ValueError, match="Invalid ignore regex"):
            IgnorePatterns(["re:("])

    def test_load_from_file(self, tmp_path: Path) -> None:
        """Should read patterns, skipping comments and blank lines."""
        ignore_file = tmp_path / ".syncignore"
        ignore_file.write_text("# generated\n\n*.log\n")
        ignore = IgnorePatterns([])
        ignore.load_from_file(ignore_file)
        assert ignore.patterns == ["*.log"]

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """A missing ignore file is not an error."""
        ignore = IgnorePatterns([])
        ignore.load_from_file(tmp_path / ".syncignore")
        assert ignore.patterns == []


class TestWatcherEventHandler:
    """Tests for WatcherEventHandler class."""

    @pytest.fixture
    def recorder(self) -> EventRecorder:
        return EventRecorder()

    @pytest.fixture
    def handler(self, tmp_path: Path, recorder: EventRecorder) -> WatcherEventHandler:
        return WatcherEventHandler(tmp_path, recorder, IgnorePatterns())

    def test_created(self, tmp_path: Path, handler, recorder) -> None:
        """A created file is reported as ADD."""
        handler.on_any_event(FileCreatedEvent(str(tmp_path / "a.js")))
        assert recorder.events == [(WatchEventKind.ADD, tmp_path / "a.js")]

    def test_modified(self, tmp_path: Path, handler, recorder) -> None:
        """A modified file is reported as CHANGE."""
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "a.js")))
        assert recorder.events == [(WatchEventKind.CHANGE, tmp_path / "a.js")]

    def test_deleted(self, tmp_path: Path, handler, recorder) -> None:
        """A deleted file is reported as DELETE."""
        handler.on_any_event(FileDeletedEvent(str(tmp_path / "a.js")))
        assert recorder.events == [(WatchEventKind.DELETE, tmp_path / "a.js")]

    def test_moved_reports_destination(self, tmp_path: Path, handler, recorder) -> None:
        """A rename into place is reported as ADD of the destination."""
        handler.on_any_event(
            FileMovedEvent(str(tmp_path / "a.js.swp"), str(tmp_path / "a.js"))
        )
        assert recorder.events == [(WatchEventKind.ADD, tmp_path / "a.js")]

    def test_directory_events_dropped(self, tmp_path: Path, handler, recorder) -> None:
        """Directory events are not forwarded."""
        handler.on_any_event(DirCreatedEvent(str(tmp_path / "css")))
        assert recorder.events == []

    def test_ignored_paths_dropped(self, tmp_path: Path, handler, recorder) -> None:
        """Ignored files are not forwarded."""
        handler.on_any_event(FileModifiedEvent(str(tmp_path / ".a.js.swp")))
        assert recorder.events == []

    def test_callback_error_contained(self, tmp_path: Path) -> None:
        """A failing callback does not propagate into the observer."""
        on_event = MagicMock(side_effect=RuntimeError("boom"))
        handler = WatcherEventHandler(tmp_path, on_event)
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "a.js")))
        on_event.assert_called_once()


class TestFileWatcher:
    """Tests for FileWatcher class."""

    def test_requires_directory(self, tmp_path: Path) -> None:
        """Should refuse a path that is not a directory."""
        with pytest.raises(ValueError, match="directory"):
            FileWatcher(tmp_path / "missing", EventRecorder())

    def test_backlog_then_ready(self, tmp_path: Path) -> None:
        """Existing files are reported as ADD, then READY exactly once."""
        (tmp_path / "index.html").write_text("<html>")
        (tmp_path / "css").mkdir()
        (tmp_path / "css" / "site.css").write_text("body {}")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref")
        (tmp_path / ".env").write_text("SECRET=1")
        recorder = EventRecorder()
        observer = MagicMock()

        watcher = FileWatcher(tmp_path, recorder, observer=observer)
        watcher.start()

        root = tmp_path.resolve()
        assert recorder.events == [
            (WatchEventKind.ADD, root / "index.html"),
            (WatchEventKind.ADD, root / "css" / "site.css"),
            (WatchEventKind.READY, root),
        ]
        assert watcher.is_ready is True
        observer.schedule.assert_called_once()
        observer.start.assert_called_once()

        watcher.stop()
        observer.stop.assert_called_once()
        assert watcher.is_running is False

    def test_observer_started_before_scan(self, tmp_path: Path) -> None:
        """The observer runs before the backlog is replayed."""
        (tmp_path / "a.js").write_text("1")
        order: list[str] = []
        observer = MagicMock()
        observer.start.side_effect = lambda: order.append("observer")

        watcher = FileWatcher(tmp_path, lambda kind, path: order.append(kind.value), observer=observer)
        watcher.start()

        assert order[0] == "observer"
        assert order[-1] == WatchEventKind.READY.value

    def test_syncignore_file(self, tmp_path: Path) -> None:
        """Patterns from .syncignore are applied to the backlog."""
        (tmp_path / ".syncignore").write_text("*.map\n")
        (tmp_path / "app.js").write_text("1")
        (tmp_path / "app.js.map").write_text("{}")
        recorder = EventRecorder()

        FileWatcher(tmp_path, recorder, observer=MagicMock()).start()

        added = [p.name for kind, p in recorder.events if kind is WatchEventKind.ADD]
        assert added == ["app.js"]

    def test_configured_ignore(self, tmp_path: Path) -> None:
        """Ignored directories are pruned from the backlog."""
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "x.js").write_text("1")
        (tmp_path / "main.js").write_text("1")
        recorder = EventRecorder()

        FileWatcher(tmp_path, recorder, ignore_patterns=["node_modules/"], observer=MagicMock()).start()

        added = [p.name for kind, p in recorder.events if kind is WatchEventKind.ADD]
        assert added == ["main.js"]

    def test_detects_modification(self, tmp_path: Path) -> None:
        """A real observer reports a modified file."""
        target = tmp_path / "index.html"
        target.write_text("v1")
        recorder = EventRecorder()

        with FileWatcher(tmp_path, recorder) as watcher:
            assert watcher.is_running is True
            target.write_text("v2")
            assert recorder.wait_for(WatchEventKind.CHANGE, target.resolve())
