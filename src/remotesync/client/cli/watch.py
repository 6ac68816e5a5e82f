"""Watch command for remotesync CLI.

Commands:
- watch: Watch the local tree and push changed files until Ctrl+C
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from pathlib import Path

import click

from remotesync.client.cli.config import resolve_config
from remotesync.client.sync import DrainResult, EngineCallbacks, SyncEngine
from remotesync.core.config import ConfigurationError

BANNER = (
    "************************************************\n"
    "*  Initial scan complete. Ready for changes.   *\n"
    "************************************************"
)


class StatusLine:
    """Single console line rewritten in place (retry spinner).

    Regular messages are printed through echo(), which clears the status
    line first and restores it afterwards so output never interleaves.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._lock = threading.Lock()
        self._text = ""
        self._shown_len = 0

    @property
    def enabled(self) -> bool:
        """Check if the line is drawn (stdout is a terminal)."""
        return self._enabled

    def show(self, text: str) -> None:
        """Replace the status line with text."""
        with self._lock:
            self._text = text
            self._draw()

    def clear(self) -> None:
        """Remove the status line."""
        with self._lock:
            self._text = ""
            self._erase()

    def echo(self, message: str, err: bool = False) -> None:
        """Print a message above the status line."""
        with self._lock:
            self._erase()
            click.echo(message, err=err)
            self._draw()

    def _erase(self) -> None:
        if self._shown_len > 0 and self._enabled:
            # Move to start of line and clear it
            sys.stdout.write("\r" + " " * self._shown_len + "\r")
            sys.stdout.flush()
        self._shown_len = 0

    def _draw(self) -> None:
        if not self._text or not self._enabled:
            return
        clear_part = " " * max(0, self._shown_len - len(self._text))
        sys.stdout.write(f"\r{self._text}{clear_part}\r")
        sys.stdout.flush()
        self._shown_len = len(self._text)


class StatusLineAwareHandler(logging.Handler):
    """Logging handler that prints records around the status line."""

    def __init__(self, status_line: StatusLine) -> None:
        super().__init__()
        self._status_line = status_line

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            self._status_line.echo(msg, err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def install_logging(status_line: StatusLine, verbose: bool) -> None:
    """Route remotesync log records through the status line."""
    handler = StatusLineAwareHandler(status_line)
    if verbose:
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s :: %(message)s"))
    level = logging.DEBUG if verbose else logging.WARNING
    handler.setLevel(level)

    remotesync_logger = logging.getLogger("remotesync")
    # Remove any existing handlers
    for existing in remotesync_logger.handlers[:]:
        remotesync_logger.removeHandler(existing)
    remotesync_logger.addHandler(handler)
    remotesync_logger.setLevel(level)
    # Prevent propagation to root logger
    remotesync_logger.propagate = False


def build_callbacks(status_line: StatusLine) -> EngineCallbacks:
    """Console output for the engine's lifecycle hooks."""

    def on_ready() -> None:
        status_line.echo(BANNER)

    def on_change(relative_path: str) -> None:
        status_line.echo(f"INFO :: file has changed {relative_path.rsplit('/', 1)[-1]}")

    def on_drain_start(count: int) -> None:
        status_line.echo(f"Writing {count} file(s) to sftp server ...")

    def on_drained(result: DrainResult) -> None:
        if result.failed:
            status_line.echo(
                click.style(
                    f"  ✗ {len(result.uploaded)} uploaded, {len(result.failed)} failed",
                    fg="red",
                )
            )
            for path, error in sorted(result.failed.items()):
                status_line.echo(f"    {path}: {error}")
        else:
            status_line.echo(f"........................ done ({len(result.uploaded)} uploaded)")

    def on_retry(attempt: int, glyph: str, error: Exception) -> None:
        if not status_line.enabled:
            if attempt == 1:
                status_line.echo("Unable to communicate with sftp server. Retrying...")
            return
        status_line.show(f"Unable to communicate with sftp server. Retrying {glyph}")

    def on_connected() -> None:
        status_line.clear()

    return EngineCallbacks(
        on_ready=on_ready,
        on_change=on_change,
        on_drain_start=on_drain_start,
        on_drained=on_drained,
        on_retry=on_retry,
        on_connected=on_connected,
    )


def wait_for_interrupt() -> None:
    """Sleep until Ctrl+C raises KeyboardInterrupt."""
    while True:
        time.sleep(1.0)


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (default: ./remotesync.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.option(
    "--flush-on-exit",
    is_flag=True,
    help="Upload changes still waiting in the debounce window before exiting.",
)
def watch(config_path: Path | None, verbose: bool, flush_on_exit: bool) -> None:
    """Watch the local tree and push changed files to the remote host.

    Runs until interrupted with Ctrl+C.
    """
    try:
        config = resolve_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    status_line = StatusLine(enabled=sys.stdout.isatty())
    install_logging(status_line, verbose)

    engine = SyncEngine(config, callbacks=build_callbacks(status_line))

    click.echo(
        f"Syncing {config.local_path} -> "
        f"{config.sftp.username}@{config.sftp.host}:{config.sftp.remote_path}"
    )
    click.echo("Scanning local files... (Ctrl+C to stop)")

    try:
        engine.start()
        wait_for_interrupt()
    except KeyboardInterrupt:
        status_line.clear()
        click.echo("\nShutting down...")

    engine.stop(flush=flush_on_exit)
    click.echo("Exiting application...")
