"""Connection lifecycle for the transfer channel.

This module provides:
- ConnectionManager: Owns the single transfer connection, reconnects forever
- SPINNER_GLYPHS: Glyphs cycled by the retry indicator

State machine::

    DISCONNECTED --connect()--> CONNECTING --success--> READY
    READY | CONNECTING --error/disconnect--> DISCONNECTED (reconnect at once)

A background thread runs the connect loop. Callers that need the channel
block in await_ready() until it is READY. Retries never give up; their
pacing comes from a RetryPolicy.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from remotesync.client.sync.retry import NETWORK_EXCEPTIONS, ImmediateRetry, RetryPolicy
from remotesync.client.sync.transport import Transport
from remotesync.client.sync.types import ConnectionClosedError, TransientConnectionError
from remotesync.core.types import ConnectionState

logger = logging.getLogger(__name__)

SPINNER_GLYPHS = ("|", "/", "-", "\\")

DEFAULT_KEEPALIVE_S = 5.0

# Called with (attempt, spinner glyph, error) after each failed attempt
RetryCallback = Callable[[int, str, Exception], None]


def spinner_glyph(attempt: int) -> str:
    """Get the retry indicator glyph for an attempt number."""
    return SPINNER_GLYPHS[attempt % len(SPINNER_GLYPHS)]


class ConnectionManager:
    """Keeps one transfer connection usable across network failures.

    Usage:
        manager = ConnectionManager(lambda: SFTPTransport(settings))
        manager.start()
        transport = manager.await_ready()  # blocks until connected
        ...
        manager.close()
    """

    def __init__(
        self,
        transport_factory: Callable[[], Transport],
        retry_policy: RetryPolicy | None = None,
        on_retry: RetryCallback | None = None,
        on_ready: Callable[[], None] | None = None,
        keepalive_s: float = DEFAULT_KEEPALIVE_S,
    ) -> None:
        """Initialize the manager.

        Args:
            transport_factory: Builds a fresh, unconnected transport per attempt.
            retry_policy: Pause between failed attempts (default: ImmediateRetry).
            on_retry: Retry indicator hook, called after each failure.
            on_ready: Called each time the connection becomes READY.
            keepalive_s: Interval for checking that a READY channel is alive.
        """
        self._factory = transport_factory
        self._policy = retry_policy or ImmediateRetry()
        self._on_retry = on_retry
        self._on_ready = on_ready
        self._keepalive_s = keepalive_s

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._stop = threading.Event()
        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._transport: Transport | None = None
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> ConnectionState:
        """Get the current connection state."""
        with self._lock:
            return self._state

    @property
    def attempts(self) -> int:
        """Get consecutive failed attempts since the last READY."""
        with self._lock:
            return self._attempts

    @property
    def is_closed(self) -> bool:
        """Check if close() was called."""
        return self._stop.is_set()

    def start(self) -> None:
        """Start the background connect loop (idempotent)."""
        with self._lock:
            if self._thread is not None or self._stop.is_set():
                return
            self._thread = threading.Thread(
                target=self._run,
                name="ConnectionManager",
                daemon=True,
            )
            self._thread.start()
        logger.debug("Connection manager started")

    def await_ready(self, timeout: float | None = None) -> Transport:
        """Block until the connection is READY and return it.

        Starts the connect loop if needed. The returned transport must not be
        kept after the caller's drain: a reconnect replaces it.

        Args:
            timeout: Maximum seconds to wait (None = wait forever).

        Returns:
            The connected transport.

        Raises:
            ConnectionClosedError: If the manager is closed.
            TimeoutError: If timeout expired first.
        """
        self.start()
        with self._cond:
            self._cond.wait_for(
                lambda: self._stop.is_set() or self._state is ConnectionState.READY,
                timeout=timeout,
            )
            if self._stop.is_set():
                raise ConnectionClosedError("Connection manager is closed")
            if self._state is not ConnectionState.READY or self._transport is None:
                raise TimeoutError(f"Connection not ready after {timeout}s")
            return self._transport

    def report_error(self, error: Exception, transport: Transport | None = None) -> None:
        """Signal that the channel failed while in use.

        Moves READY to DISCONNECTED and wakes the connect loop. Reports for a
        transport that has already been replaced are ignored.

        Args:
            error: The failure observed by the caller.
            transport: The transport the caller was using, if known.
        """
        with self._cond:
            if self._state is not ConnectionState.READY:
                return
            if transport is not None and transport is not self._transport:
                return
            stale = self._disconnect_locked()
            attempt = self._attempts
            self._cond.notify_all()

        logger.warning(f"Lost connection to remote: {error}")
        self._close_quietly(stale)
        self._emit_retry(attempt, error)

    def close(self, timeout: float = 5.0) -> None:
        """Stop reconnecting and close the active connection (best effort)."""
        with self._cond:
            self._stop.set()
            transport = self._transport
            self._transport = None
            self._state = ConnectionState.DISCONNECTED
            self._cond.notify_all()
            thread = self._thread

        self._close_quietly(transport)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("Connection manager closed")

    def _disconnect_locked(self) -> Transport | None:
        transport = self._transport
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        self._attempts += 1
        return transport

    def _wait_while_ready(self) -> None:
        """Park the loop while the connection is READY, probing liveness."""
        with self._cond:
            while not self._stop.is_set() and self._state is ConnectionState.READY:
                self._cond.wait(timeout=self._keepalive_s)
                if (
                    self._state is ConnectionState.READY
                    and self._transport is not None
                    and not self._transport.is_alive()
                ):
                    stale = self._disconnect_locked()
                    attempt = self._attempts
                    break
            else:
                return

        logger.warning("Connection to remote went away")
        self._close_quietly(stale)
        self._emit_retry(attempt, TransientConnectionError("Connection is no longer alive"))

    def _run(self) -> None:
        """Connect loop: runs until close()."""
        while not self._stop.is_set():
            self._wait_while_ready()

            with self._cond:
                if self._stop.is_set():
                    return
                self._state = ConnectionState.CONNECTING

            transport: Transport | None = None
            try:
                transport = self._factory()
                transport.connect()
            except Exception as e:
                if not isinstance(e, (TransientConnectionError, *NETWORK_EXCEPTIONS)):
                    logger.exception("Unexpected error while connecting")
                self._close_quietly(transport)
                with self._cond:
                    self._state = ConnectionState.DISCONNECTED
                    self._attempts += 1
                    attempt = self._attempts
                logger.debug(f"Connect attempt {attempt} failed: {e}")
                self._emit_retry(attempt, e)
                if self._stop.wait(self._policy.delay(attempt)):
                    return
                continue

            with self._cond:
                if self._stop.is_set():
                    self._close_quietly(transport)
                    return
                self._transport = transport
                self._state = ConnectionState.READY
                recovered_after = self._attempts
                self._attempts = 0
                self._cond.notify_all()

            if recovered_after:
                logger.info(f"Connected to remote after {recovered_after} retries")
            else:
                logger.info("Connected to remote")
            if self._on_ready:
                self._on_ready()

    def _emit_retry(self, attempt: int, error: Exception) -> None:
        if self._on_retry is None:
            return
        try:
            self._on_retry(attempt, spinner_glyph(attempt), error)
        except Exception:
            logger.exception("Retry indicator callback failed")

    @staticmethod
    def _close_quietly(transport: Transport | None) -> None:
        if transport is None:
            return
        try:
            transport.close()
        except Exception as e:
            logger.debug(f"Error closing transport: {e}")
