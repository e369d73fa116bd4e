"""
LilNAS Event Dispatcher.

Fans the event and error streams of a watch source into a single
log sink and signals completion once both streams are closed.
Requires Python 3.11+.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from utils.logger import LoggerMixin
from watcher.completion import CompletionSignal
from watcher.events import FileEvent, RecordKind
from watcher.sink import LogSink
from watcher.stream import CLOSED, Stream


class DispatcherState(str, Enum):
    """Lifecycle of one dispatcher run."""

    RUNNING = "running"
    EVENTS_CLOSED = "events_closed"
    ERRORS_CLOSED = "errors_closed"
    DONE = "done"


@dataclass
class DispatchStats:
    """Counters for one dispatcher run."""

    events: int = 0
    errors: int = 0
    sink_failures: int = 0
    stopped: bool = False

    @property
    def total(self) -> int:
        """Items forwarded to the sink, failed or not."""
        return self.events + self.errors


class EventDispatcher(LoggerMixin):
    """
    Drains an event stream and an error stream into a log sink.

    The loop selects whichever stream has an item ready, with no priority
    between them. A stream that reports CLOSED is no longer selected on.
    The loop ends when both streams are closed or the stop signal is set,
    and done() is called on the completion signal exactly once on every
    exit path.
    """

    def __init__(
        self,
        events: Stream[FileEvent],
        errors: Stream[Exception],
        completion: CompletionSignal,
        sink: LogSink,
        stop: asyncio.Event | None = None,
        drain_on_stop: bool = True,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            events: Stream of filesystem events
            errors: Stream of watch source errors
            completion: Signal with one unit pre-registered by the caller
            sink: Destination for every item
            stop: Optional signal that ends the loop early
            drain_on_stop: Record items already buffered when stop is set
        """
        self._streams: dict[RecordKind, Stream[Any]] = {
            RecordKind.EVENT: events,
            RecordKind.ERROR: errors,
        }
        self._completion = completion
        self._sink = sink
        self._stop = stop
        self._drain_on_stop = drain_on_stop
        self._open: set[RecordKind] = set(self._streams)
        self._state = DispatcherState.RUNNING
        self._stats = DispatchStats()

    async def run(self) -> DispatchStats:
        """Run the loop to completion and return its counters."""
        try:
            self.log.debug("dispatcher_started")
            await self._loop()
        finally:
            self._state = DispatcherState.DONE
            # Before logging: a failing log write must not leave waiters hanging.
            self._completion.done()
            self.log.info(
                "dispatcher_finished",
                events=self._stats.events,
                errors=self._stats.errors,
                sink_failures=self._stats.sink_failures,
                stopped=self._stats.stopped,
            )
        return self._stats

    async def _loop(self) -> None:
        reads: dict[asyncio.Future[Any], RecordKind] = {}
        stop_wait: asyncio.Future[Any] | None = None
        if self._stop is not None:
            stop_wait = asyncio.ensure_future(self._stop.wait())

        try:
            for kind in self._open:
                reads[asyncio.ensure_future(self._streams[kind].get())] = kind

            while self._open:
                waitables = set(reads)
                if stop_wait is not None:
                    waitables.add(stop_wait)
                done, _ = await asyncio.wait(waitables, return_when=asyncio.FIRST_COMPLETED)

                for read in [r for r in done if r in reads]:
                    kind = reads.pop(read)
                    self._handle(kind, read.result())
                    if kind in self._open:
                        reads[asyncio.ensure_future(self._streams[kind].get())] = kind

                if stop_wait is not None and stop_wait in done:
                    self._stats.stopped = True
                    self.log.info("dispatcher_stop_requested", open_streams=len(self._open))
                    break
        finally:
            # A read can finish after asyncio.wait returns; its item is still owed.
            for read, kind in reads.items():
                if read.done() and not read.cancelled():
                    self._handle(kind, read.result())
                else:
                    read.cancel()
            if stop_wait is not None:
                stop_wait.cancel()

        if self._stats.stopped and self._drain_on_stop:
            self._drain()

    def _drain(self) -> None:
        """Record whatever is already buffered in the open streams."""
        for kind in list(self._open):
            stream = self._streams[kind]
            while kind in self._open:
                try:
                    item = stream.get_nowait()
                except asyncio.QueueEmpty:
                    break
                self._handle(kind, item)

    def _handle(self, kind: RecordKind, item: Any) -> None:
        if item is CLOSED:
            self._mark_closed(kind)
            return

        if kind is RecordKind.EVENT:
            self._stats.events += 1
        else:
            self._stats.errors += 1

        try:
            self._sink.record(item, kind)
        except Exception as e:
            self._stats.sink_failures += 1
            self.log.error("sink_record_failed", kind=kind.value, error=str(e))

    def _mark_closed(self, kind: RecordKind) -> None:
        self._open.discard(kind)
        self.log.debug("stream_closed", stream=kind.value)
        if not self._open:
            self._state = DispatcherState.DONE
        elif kind is RecordKind.EVENT:
            self._state = DispatcherState.EVENTS_CLOSED
        else:
            self._state = DispatcherState.ERRORS_CLOSED

    @property
    def state(self) -> DispatcherState:
        """Current lifecycle state."""
        return self._state

    @property
    def stats(self) -> DispatchStats:
        """Counters so far."""
        return self._stats
