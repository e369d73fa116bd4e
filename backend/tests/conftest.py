"""
LilNAS Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from watcher.completion import CompletionSignal
from watcher.errors import WatchSourceError
from watcher.events import FileEvent, RecordKind
from watcher.stream import Stream


class RecordingSink:
    """Sink that keeps every record in memory."""

    def __init__(self, fail_on: Callable[[Any], bool] | None = None) -> None:
        self.records: list[tuple[Any, RecordKind]] = []
        self._fail_on = fail_on

    def record(self, item: Any, kind: RecordKind) -> None:
        self.records.append((item, kind))
        if self._fail_on is not None and self._fail_on(item):
            raise RuntimeError(f"sink rejected {item}")

    @property
    def events(self) -> list[Any]:
        return [item for item, kind in self.records if kind is RecordKind.EVENT]

    @property
    def errors(self) -> list[Any]:
        return [item for item, kind in self.records if kind is RecordKind.ERROR]


class CountingSignal(CompletionSignal):
    """CompletionSignal that counts done() calls."""

    def __init__(self) -> None:
        super().__init__()
        self.done_calls = 0

    def done(self) -> None:
        self.done_calls += 1
        super().done()


class FakeSource:
    """Watch source that replays fixed items and then closes its streams."""

    def __init__(
        self,
        path: Path,
        stop_timeout_seconds: float | None = None,
        events: Iterable[FileEvent] = (),
        errors: Iterable[Exception] = (),
        failure: WatchSourceError | None = None,
        close: bool = True,
    ) -> None:
        self.path = Path(path)
        self.failure = failure
        self.stop_calls = 0
        self._items = (list(events), list(errors))
        self._close = close

    def start(self) -> tuple[Stream[FileEvent], Stream[Exception]]:
        events: Stream[FileEvent] = Stream("events")
        errors: Stream[Exception] = Stream("errors")
        for item in self._items[0]:
            events.put(item)
        for item in self._items[1]:
            errors.put(item)
        if self._close:
            events.close()
            errors.close()
        return events, errors

    def stop(self) -> None:
        self.stop_calls += 1


@pytest.fixture
def sink() -> RecordingSink:
    """Create an in-memory sink."""
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    """Create a sink that raises for items whose text mentions 'bad'."""
    return RecordingSink(fail_on=lambda item: "bad" in str(item))


@pytest.fixture
def completion() -> CountingSignal:
    """Create a completion signal with one unit registered."""
    signal = CountingSignal()
    signal.add(1)
    return signal


@pytest_asyncio.fixture
async def streams() -> tuple[Stream[FileEvent], Stream[Exception]]:
    """Create an open event stream and error stream on the running loop."""
    return Stream("events"), Stream("errors")


@pytest.fixture
def fake_sources() -> list[FakeSource]:
    """Every FakeSource built by fake_source_factory."""
    return []


@pytest.fixture
def fake_source_factory(fake_sources: list[FakeSource]) -> Callable[..., Callable[..., FakeSource]]:
    """Build source factories that replay the given items."""

    def make(**kwargs: Any) -> Callable[..., FakeSource]:
        def factory(path: Path, stop_timeout_seconds: float | None = None) -> FakeSource:
            source = FakeSource(path, stop_timeout_seconds, **kwargs)
            fake_sources.append(source)
            return source

        return factory

    return make


@pytest.fixture
def watched_dir(tmp_path: Path) -> Path:
    """Create an empty directory to watch."""
    path = tmp_path / "watched"
    path.mkdir()
    return path

