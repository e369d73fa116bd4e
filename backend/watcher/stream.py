"""
LilNAS Stream.

An ordered, explicitly closable channel from one producer to one consumer.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

from utils.logger import LoggerMixin
from watcher.errors import StreamClosedError

T = TypeVar("T")


class _Closed:
    """Type of the CLOSED sentinel."""

    _instance: "_Closed | None" = None

    def __new__(cls) -> "_Closed":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLOSED"

    def __bool__(self) -> bool:
        return False


# Returned by Stream.get() once the producer has closed the stream
# and every buffered item has been consumed.
CLOSED = _Closed()


class Stream(LoggerMixin, Generic[T]):
    """
    FIFO stream bound to an event loop.

    Items put before close() are always delivered before CLOSED.
    Producers on other threads use put_threadsafe() and close_threadsafe().
    """

    def __init__(self, name: str, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Initialize the stream.

        Args:
            name: Label used in log records
            loop: Loop the consumer runs on (defaults to the running loop)
        """
        self.name = name
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue[T | _Closed] = asyncio.Queue()
        self._closed = False
        self._exhausted = False

    def put(self, item: T) -> None:
        """
        Append an item. Must be called on the stream's loop.

        Raises:
            StreamClosedError: If the stream has been closed
            ValueError: If item is the CLOSED sentinel
        """
        if item is CLOSED:
            raise ValueError("CLOSED cannot be put into a stream")
        if self._closed:
            raise StreamClosedError(f"stream {self.name!r} is closed")
        self._queue.put_nowait(item)

    def close(self) -> None:
        """Close the stream. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(CLOSED)

    def put_threadsafe(self, item: T) -> None:
        """Schedule put() on the stream's loop from any thread."""
        self._loop.call_soon_threadsafe(self._put_from_thread, item)

    def close_threadsafe(self) -> None:
        """Schedule close() on the stream's loop from any thread."""
        self._loop.call_soon_threadsafe(self.close)

    def _put_from_thread(self, item: T) -> None:
        # A producer thread can race its own teardown.
        if self._closed:
            self.log.debug("stream_item_dropped", stream=self.name, reason="closed")
            return
        self._queue.put_nowait(item)

    async def get(self) -> T | _Closed:
        """Wait for the next item, or return CLOSED once the stream is exhausted."""
        if self._exhausted:
            return CLOSED
        item = await self._queue.get()
        if item is CLOSED:
            self._exhausted = True
        return item

    def get_nowait(self) -> T | _Closed:
        """
        Return the next buffered item, or CLOSED once the stream is exhausted.

        Raises:
            asyncio.QueueEmpty: If the stream is open and nothing is buffered
        """
        if self._exhausted:
            return CLOSED
        item = self._queue.get_nowait()
        if item is CLOSED:
            self._exhausted = True
        return item

    @property
    def closed(self) -> bool:
        """Whether the producer has closed the stream."""
        return self._closed

    @property
    def exhausted(self) -> bool:
        """Whether the consumer has observed CLOSED."""
        return self._exhausted

    @property
    def buffered(self) -> int:
        """Number of items waiting to be consumed."""
        return self._queue.qsize() - (1 if self._closed and not self._exhausted else 0)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item = await self.get()
            if item is CLOSED:
                return
            yield item

    def __repr__(self) -> str:
        state = "exhausted" if self._exhausted else "closed" if self._closed else "open"
        return f"<Stream {self.name!r} {state}>"
