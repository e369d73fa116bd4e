"""
LilNAS Watcher Exceptions.

Requires Python 3.11+.
"""

from pathlib import Path


class WatchError(Exception):
    """Base class for watcher errors."""


class WatchStartError(WatchError):
    """The watch source could not begin watching a path."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"cannot watch {path}: {reason}")
        self.path = path
        self.reason = reason


class WatchSourceError(WatchError):
    """A failure inside a running watch source, delivered as an error item."""

    def __init__(self, message: str, path: Path | None = None, fatal: bool = False) -> None:
        super().__init__(message)
        self.path = path
        self.fatal = fatal


class StreamClosedError(WatchError):
    """An item was put into a stream after its producer closed it."""


class CompletionUnderflowError(RuntimeError):
    """CompletionSignal.done() was called more times than work was added."""
