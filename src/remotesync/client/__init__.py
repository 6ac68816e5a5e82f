"""Client module - watcher, upload pipeline and CLI."""
