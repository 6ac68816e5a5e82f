"""Shared fixtures: an in-memory transfer channel and a manual debounce clock."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from remotesync.client.sync.transport import Transport
from remotesync.client.sync.types import TransientConnectionError
from remotesync.core.config import RetrySettings, SFTPSettings, SyncConfig
from remotesync.core.hashing import FileReadError


class FakeRemote:
    """State shared by every FakeTransport built from it.

    Attributes:
        connect_failures: Number of upcoming connect() calls that fail.
        send_errors: Remote path -> exception raised by send_file().
        sent: (local path, remote path) for every send_file() call.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.connect_failures = 0
        self.connect_calls = 0
        self.send_errors: dict[str, Exception] = {}
        self.sent: list[tuple[str, str]] = []
        self.transports: list[FakeTransport] = []

    def factory(self) -> FakeTransport:
        transport = FakeTransport(self)
        with self.lock:
            self.transports.append(transport)
        return transport

    @property
    def sent_remote_paths(self) -> list[str]:
        with self.lock:
            return [remote for _, remote in self.sent]


class FakeTransport(Transport):
    """Transport recording sends instead of talking to a server."""

    def __init__(self, remote: FakeRemote) -> None:
        self._remote = remote
        self.connected = False
        self.closed = False
        self.alive = True

    def connect(self) -> None:
        with self._remote.lock:
            self._remote.connect_calls += 1
            if self._remote.connect_failures > 0:
                self._remote.connect_failures -= 1
                raise TransientConnectionError("Connection refused")
        self.connected = True

    def send_file(self, local_path: Path, remote_path: str) -> None:
        with self._remote.lock:
            self._remote.sent.append((str(local_path), remote_path))
            error = self._remote.send_errors.get(remote_path)
        if error is None and not local_path.is_file():
            error = FileReadError(f"File not found: {local_path}")
        if error is not None:
            raise error

    def is_alive(self) -> bool:
        return self.connected and self.alive and not self.closed

    def close(self) -> None:
        self.closed = True


class ManualTimer:
    """threading.Timer stand-in fired by ManualClock.advance()."""

    def __init__(self, clock: ManualClock, interval: float, function: Callable[[], None]) -> None:
        self._clock = clock
        self.interval = interval
        self.function = function
        self.daemon = False
        self.fire_at: float | None = None
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.fire_at = self._clock.now + self.interval
        self._clock.timers.append(self)

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.fire_at is not None and not self.cancelled and not self.fired


class ManualClock:
    """Virtual time for deterministic debounce tests."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []
        self.fired_at: list[float] = []

    def timer_factory(self, interval: float, function: Callable[[], None]) -> ManualTimer:
        return ManualTimer(self, interval, function)

    @property
    def armed(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.active]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.armed if t.fire_at is not None and t.fire_at <= target + 1e-9),
                key=lambda t: t.fire_at,
            )
            if not due:
                break
            timer = due[0]
            self.now = timer.fire_at
            timer.fired = True
            self.fired_at.append(self.now)
            timer.function()
        self.now = target


@pytest.fixture
def fake_remote() -> FakeRemote:
    """Create an in-memory remote."""
    return FakeRemote()


@pytest.fixture
def clock() -> ManualClock:
    """Create a manual clock for debounce timers."""
    return ManualClock()


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    """Create a local source tree root."""
    root = tmp_path.resolve() / "proj" / "src"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def sync_config(local_root: Path) -> SyncConfig:
    """Configuration mapping local_root to /var/www/app."""
    return SyncConfig(
        local_path=local_root,
        sftp=SFTPSettings(
            host="dev.example.com",
            username="deploy",
            password="secret",
            remote_path="/var/www/app",
        ),
        debounce_ms=5000,
        retry=RetrySettings(pause_s=0.01),
    )
