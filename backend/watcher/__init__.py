"""
LilNAS File Watcher Package.

Watches a single path and dispatches its events and errors to a log sink.
Requires Python 3.11+.
"""

from watcher.completion import CompletionSignal
from watcher.dispatcher import DispatcherState, DispatchStats, EventDispatcher
from watcher.errors import (
    CompletionUnderflowError,
    StreamClosedError,
    WatchError,
    WatchSourceError,
    WatchStartError,
)
from watcher.events import ChangeKind, FileEvent, RecordKind
from watcher.runner import RunOutcome, StopReason, run, watch
from watcher.sink import LogSink, StructlogSink
from watcher.source import WatchSource
from watcher.stream import CLOSED, Stream

__all__ = [
    "CLOSED",
    "ChangeKind",
    "CompletionSignal",
    "CompletionUnderflowError",
    "DispatchStats",
    "DispatcherState",
    "EventDispatcher",
    "FileEvent",
    "LogSink",
    "RecordKind",
    "RunOutcome",
    "StopReason",
    "Stream",
    "StreamClosedError",
    "StructlogSink",
    "WatchError",
    "WatchSource",
    "WatchSourceError",
    "WatchStartError",
    "run",
    "watch",
]
