"""
LilNAS Watch Runner.

Entry operations: watch one path and dispatch everything it reports
to a log sink until the watch ends or a stop is requested.
Requires Python 3.11+.
"""

import asyncio
import contextlib
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from utils.config import Settings, get_settings
from utils.logger import get_logger
from watcher.completion import CompletionSignal
from watcher.dispatcher import DispatchStats, EventDispatcher
from watcher.errors import WatchSourceError
from watcher.sink import LogSink, StructlogSink
from watcher.source import WatchSource

logger = get_logger("runner")


class StopReason(str, Enum):
    """Why a run ended."""

    CLOSED = "closed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class RunOutcome:
    """Result of one watch run."""

    path: Path
    reason: StopReason
    stats: DispatchStats = field(default_factory=DispatchStats)
    failure: WatchSourceError | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "path": str(self.path),
            "reason": self.reason.value,
            "events": self.stats.events,
            "errors": self.stats.errors,
            "sink_failures": self.stats.sink_failures,
            "failure": str(self.failure) if self.failure is not None else None,
        }


async def run(
    path: Path,
    *,
    stop: asyncio.Event | None = None,
    sink: LogSink | None = None,
    settings: Settings | None = None,
    source_factory: Callable[..., WatchSource] = WatchSource,
) -> RunOutcome:
    """
    Watch a path until its streams close or stop is set.

    Args:
        path: File or directory to watch
        stop: Setting this ends the run
        sink: Destination for events and errors (defaults to structlog)
        settings: Settings override
        source_factory: Builds the watch source for the path

    Returns:
        RunOutcome describing how the run ended

    Raises:
        WatchStartError: If the path cannot be watched
    """
    settings = settings or get_settings()
    sink = sink or StructlogSink()
    path = Path(path)

    logger.info("watch_starting", path=str(path))

    completion = CompletionSignal()
    completion.add(1)

    source = source_factory(path, stop_timeout_seconds=settings.watcher.stop_timeout_seconds)
    try:
        events, errors = source.start()
    except BaseException:
        # No dispatcher exists to account for the registered unit.
        completion.done()
        raise

    dispatcher = EventDispatcher(
        events,
        errors,
        completion,
        sink,
        stop=stop,
        drain_on_stop=settings.watcher.drain_on_stop,
    )
    task = asyncio.create_task(dispatcher.run(), name=f"dispatch:{path}")
    try:
        await completion.wait()
        stats = await task
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        source.stop()

    if source.failure is not None:
        reason = StopReason.FAILED
    elif stats.stopped:
        reason = StopReason.STOPPED
    else:
        reason = StopReason.CLOSED

    outcome = RunOutcome(path=source.path, reason=reason, stats=stats, failure=source.failure)
    logger.info("watch_finished", **outcome.to_dict())
    return outcome


def watch(path: Path, settings: Settings | None = None) -> RunOutcome:
    """
    Blocking entry point. SIGINT and SIGTERM end the run gracefully.

    Args:
        path: File or directory to watch
        settings: Settings override

    Returns:
        RunOutcome describing how the run ended
    """

    async def _main() -> RunOutcome:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, stop.set)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass
        return await run(path, stop=stop, settings=settings)

    return asyncio.run(_main())
