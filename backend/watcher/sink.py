"""
LilNAS Log Sinks.

Destinations for the records the dispatcher forwards.
Requires Python 3.11+.
"""

from typing import Any, Protocol

from utils.logger import LoggerMixin
from watcher.events import FileEvent, RecordKind


class LogSink(Protocol):
    """Append-only destination for dispatched items."""

    def record(self, item: Any, kind: RecordKind) -> None:
        """Append one item tagged with its kind."""
        ...


class StructlogSink(LoggerMixin):
    """Writes each dispatched item as one structured log record."""

    def record(self, item: Any, kind: RecordKind) -> None:
        if kind is RecordKind.ERROR:
            self.log.warning(
                "fs_error",
                error=str(item),
                error_type=type(item).__name__,
            )
        elif isinstance(item, FileEvent):
            self.log.info(
                "fs_event",
                path=str(item.path),
                kind=item.kind.value,
                is_directory=item.is_directory,
                dest_path=str(item.dest_path) if item.dest_path is not None else None,
            )
        else:
            self.log.info("fs_event", event=str(item))
