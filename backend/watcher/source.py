"""
LilNAS Watch Source.

Watches a single path with watchdog and publishes what it sees
as an event stream and an error stream.
Requires Python 3.11+.
"""

import asyncio
import os
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from utils.config import get_settings
from utils.logger import LoggerMixin
from watcher.errors import WatchError, WatchSourceError, WatchStartError
from watcher.events import ChangeKind, FileEvent
from watcher.stream import Stream


class ForwardingHandler(FileSystemEventHandler, LoggerMixin):
    """
    Translates watchdog events into FileEvent items.

    Runs on watchdog's observer thread; every item crosses into the
    event loop through the source's thread-safe stream methods.
    """

    def __init__(self, source: "WatchSource") -> None:
        super().__init__()
        self._source = source

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file/directory creation."""
        self._forward(event, ChangeKind.CREATE)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file/directory modification, including attribute changes."""
        self._forward(event, ChangeKind.WRITE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file/directory deletion."""
        if self._source.is_root(event.src_path):
            self._source.fail(
                WatchSourceError(
                    "watched path was removed",
                    path=self._source.path,
                    fatal=True,
                )
            )
            return
        self._forward(event, ChangeKind.REMOVE)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file/directory move/rename."""
        self._forward(event, ChangeKind.RENAME)

    def _forward(self, event: FileSystemEvent, kind: ChangeKind) -> None:
        try:
            item = translate(event, kind)
        except Exception as e:
            self.log.debug("event_translation_failed", event_type=event.event_type, error=str(e))
            self._source.report_error(
                WatchSourceError(
                    f"cannot translate {event.event_type} event: {e}",
                    path=self._source.path,
                )
            )
            return
        self._source.publish(item)


def translate(event: FileSystemEvent, kind: ChangeKind) -> FileEvent:
    """Build a FileEvent from a watchdog event."""
    dest = getattr(event, "dest_path", "")
    return FileEvent(
        path=Path(os.fsdecode(event.src_path)),
        kind=kind,
        is_directory=event.is_directory,
        dest_path=Path(os.fsdecode(dest)) if dest else None,
    )


class WatchSource(LoggerMixin):
    """
    Non-recursive watchdog watch over one path.

    start() returns the event and error streams. Both are closed by
    stop(), or by the source itself when the watched path disappears.
    """

    def __init__(self, path: Path, stop_timeout_seconds: float | None = None) -> None:
        """
        Initialize the watch source.

        Args:
            path: File or directory to watch
            stop_timeout_seconds: How long stop() waits for watchdog's thread
        """
        if stop_timeout_seconds is None:
            stop_timeout_seconds = get_settings().watcher.stop_timeout_seconds

        self._path = Path(path).expanduser().resolve()
        self._stop_timeout = stop_timeout_seconds
        self._observer: Any = None
        self._events: Stream[FileEvent] | None = None
        self._errors: Stream[Exception] | None = None
        self._failure: WatchSourceError | None = None
        self._running = False

    def start(self) -> tuple[Stream[FileEvent], Stream[Exception]]:
        """
        Begin watching and return (events, errors).

        Must be called from a coroutine; the streams are bound to the
        running event loop.

        Raises:
            WatchStartError: If the path cannot be watched
            WatchError: If the source was already started
        """
        if self._observer is not None:
            raise WatchError(f"watch source for {self._path} already started")

        if not self._path.exists():
            raise WatchStartError(self._path, "path does not exist") from FileNotFoundError(
                str(self._path)
            )
        if not os.access(self._path, os.R_OK):
            raise WatchStartError(self._path, "permission denied") from PermissionError(
                str(self._path)
            )

        loop = asyncio.get_running_loop()
        events: Stream[FileEvent] = Stream("events", loop)
        errors: Stream[Exception] = Stream("errors", loop)
        self._events, self._errors = events, errors

        observer = Observer()
        try:
            observer.schedule(ForwardingHandler(self), str(self._path), recursive=False)
            observer.start()
        except OSError as e:
            observer.stop()
            self._events = self._errors = None
            raise WatchStartError(self._path, e.strerror or str(e)) from e

        self._observer = observer
        self._running = True
        self.log.info("watch_started", path=str(self._path))
        return events, errors

    def stop(self) -> None:
        """Stop watching and close both streams. Safe to call more than once."""
        if not self._running:
            return
        self._running = False

        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=self._stop_timeout)
            if self._observer.is_alive():
                self.log.warning("observer_join_timeout", timeout=self._stop_timeout)

        self._close_streams()
        self.log.info("watch_stopped", path=str(self._path))

    def publish(self, item: FileEvent) -> None:
        """Hand an event to the loop. Called from watchdog's thread."""
        if self._events is not None:
            self._events.put_threadsafe(item)

    def report_error(self, error: Exception) -> None:
        """Hand an error to the loop. Called from watchdog's thread."""
        if self._errors is not None:
            self._errors.put_threadsafe(error)

    def fail(self, error: WatchSourceError) -> None:
        """Report a fatal error and close both streams."""
        if self._failure is not None:
            return
        self.log.error("watch_failed", path=str(self._path), error=str(error))
        self._failure = error
        self.report_error(error)
        self._close_streams()

    def is_root(self, src_path: str | bytes) -> bool:
        """Whether a watchdog path refers to the watched path itself."""
        return Path(os.fsdecode(src_path)) == self._path

    def _close_streams(self) -> None:
        # Scheduled behind any puts already queued from watchdog's thread.
        for stream in (self._events, self._errors):
            if stream is not None:
                stream.close_threadsafe()

    @property
    def path(self) -> Path:
        """The watched path."""
        return self._path

    @property
    def stop_timeout_seconds(self) -> float:
        """How long stop() waits for watchdog's thread."""
        return self._stop_timeout

    @property
    def failure(self) -> WatchSourceError | None:
        """The fatal error that ended the watch, if any."""
        return self._failure

    @property
    def is_running(self) -> bool:
        """Check if the source is watching."""
        return self._running

    def __enter__(self) -> "WatchSource":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
