"""Shared types for remotesync.

This module defines enums used across the upload pipeline.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """State of the transfer-channel connection.

    Driven only by ConnectionManager; read by the uploader to decide
    whether a drain may proceed.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


class WatchEventKind(str, Enum):
    """Kind of notification delivered by the filesystem watcher."""

    ADD = "add"
    CHANGE = "change"
    DELETE = "delete"
    READY = "ready"
    ERROR = "error"
