"""Change detection and batched upload pipeline.

Architecture:
    FileWatcher → ContentFingerprinter → ChangeLedger → BatchScheduler
        → UploadQueue → Uploader → ConnectionManager → Transport

Components:
- **FileWatcher**: watchdog observer plus initial backlog scan and READY signal
- **ChangeLedger**: Last known digest per relative path
- **BatchScheduler**: Reset-on-activity debounce producing PendingBatch objects
- **UploadQueue / Uploader**: Serialized drains with per-file failure isolation
- **ConnectionManager**: Reconnects forever, paced by a RetryPolicy
- **SFTPTransport**: paramiko implementation of the transfer channel
- **SyncEngine**: Wires the pieces together for one session
"""

from remotesync.client.sync.batch import BatchScheduler, PendingBatch
from remotesync.client.sync.connection import (
    SPINNER_GLYPHS,
    ConnectionManager,
    spinner_glyph,
)
from remotesync.client.sync.engine import EngineCallbacks, SyncEngine
from remotesync.client.sync.ignore import DEFAULT_IGNORE_PATTERNS, IgnorePatterns
from remotesync.client.sync.ledger import ChangeLedger
from remotesync.client.sync.retry import (
    NETWORK_EXCEPTIONS,
    ExponentialBackoff,
    ImmediateRetry,
    RetryPolicy,
    policy_from_settings,
)
from remotesync.client.sync.transport import SFTPTransport, Transport
from remotesync.client.sync.types import (
    ConnectionClosedError,
    DrainResult,
    FileFingerprint,
    SyncError,
    TransferError,
    TransientConnectionError,
    relative_path_for,
    remote_path_for,
)
from remotesync.client.sync.upload import Uploader, UploadQueue
from remotesync.client.sync.watcher import FileWatcher, WatcherEventHandler

__all__ = [
    # Batching
    "BatchScheduler",
    "PendingBatch",
    # Connection
    "SPINNER_GLYPHS",
    "ConnectionManager",
    "spinner_glyph",
    # Engine
    "EngineCallbacks",
    "SyncEngine",
    # Ignore
    "DEFAULT_IGNORE_PATTERNS",
    "IgnorePatterns",
    # Ledger
    "ChangeLedger",
    # Retry
    "NETWORK_EXCEPTIONS",
    "ExponentialBackoff",
    "ImmediateRetry",
    "RetryPolicy",
    "policy_from_settings",
    # Transport
    "SFTPTransport",
    "Transport",
    # Types
    "ConnectionClosedError",
    "DrainResult",
    "FileFingerprint",
    "SyncError",
    "TransferError",
    "TransientConnectionError",
    "relative_path_for",
    "remote_path_for",
    # Upload
    "UploadQueue",
    "Uploader",
    # Watcher
    "FileWatcher",
    "WatcherEventHandler",
]
