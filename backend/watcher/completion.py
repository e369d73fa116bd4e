"""
LilNAS Completion Signal.

Counter-based synchronization: producers register pending work,
waiters are released together once all of it has completed.
Requires Python 3.11+.
"""

import asyncio

from watcher.errors import CompletionUnderflowError


class CompletionSignal:
    """
    Releases every waiter when the pending-work count reaches zero.

    Usage:
        signal = CompletionSignal()
        signal.add(1)
        asyncio.create_task(worker(signal))  # worker calls signal.done()
        await signal.wait()

    All add() calls must happen before the wait() that depends on them.
    The signal belongs to the event loop that awaits it; add() and done()
    may be called from any task on that loop.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._released = asyncio.Event()
        self._released.set()

    def add(self, n: int = 1) -> None:
        """
        Register n units of pending work.

        Raises:
            ValueError: If n is less than one
        """
        if n < 1:
            raise ValueError(f"add() needs a positive count, got {n}")
        self._pending += n
        self._released.clear()

    def done(self) -> None:
        """
        Mark one unit of work complete.

        Raises:
            CompletionUnderflowError: If no work is pending
        """
        if self._pending == 0:
            raise CompletionUnderflowError("done() called with no pending work")
        self._pending -= 1
        if self._pending == 0:
            self._released.set()

    async def wait(self) -> None:
        """Wait until no work is pending. Returns at once if none is."""
        await self._released.wait()

    @property
    def pending(self) -> int:
        """Number of units still pending."""
        return self._pending

    def __repr__(self) -> str:
        return f"<CompletionSignal pending={self._pending}>"
