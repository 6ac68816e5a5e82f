"""remotesync - keep a remote directory in sync with a local build tree."""

__version__ = "0.1.0"
