"""Position sources.

A position source owns the device's location sensor for the duration
of a watch. ``start_watching`` acquires it and ``stop_watching``
releases it, exactly once per handle, however the watch ends.

Two implementations are provided:

* :class:`IteratorPositionSource` pulls fixes from an async stream
  (a GPS daemon client, a replayed track, a phone relay...).
* :class:`ManualPositionSource` is fed by its host, e.g. from a
  platform callback or a test.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from pysquadz.config import WatchOptions
from pysquadz.exceptions import SensorError, SensorErrorCode
from pysquadz.models._base import ensure_utc
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import LocationSample

_logger = logging.getLogger(__name__)

SampleCallback = Callable[[LocationSample], None]
ErrorCallback = Callable[[SensorError], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclasses.dataclass(frozen=True)
class PositionFix:
    """A raw reading; ``captured_at`` is ``None`` when the sensor gives no time."""

    location: GeoPoint
    captured_at: datetime | None = None


FixStreamFactory = Callable[[WatchOptions], AsyncIterator["PositionFix | SensorError"]]


@dataclasses.dataclass(eq=False)
class WatchHandle:
    """Opaque token identifying one active watch."""

    watch_id: int
    released: bool = False


class PositionSource(Protocol):
    """Continuous location sampling for the local member."""

    def start_watching(self, on_sample: SampleCallback, on_error: ErrorCallback) -> WatchHandle:
        ...

    def stop_watching(self, handle: WatchHandle) -> None:
        ...


@dataclasses.dataclass(eq=False)
class _Watch:
    handle: WatchHandle
    on_sample: SampleCallback
    on_error: ErrorCallback
    task: asyncio.Task[None] | None = None


class _BasePositionSource:
    """Shared watch bookkeeping and sensor lock accounting."""

    def __init__(
        self,
        member_id: str,
        options: WatchOptions | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._member_id = member_id
        self._options = options or WatchOptions()
        self._clock = clock
        self._ids = itertools.count(1)
        self._watches: dict[int, _Watch] = {}
        self.acquisitions = 0
        self.releases = 0

    @property
    def options(self) -> WatchOptions:
        return self._options

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def start_watching(self, on_sample: SampleCallback, on_error: ErrorCallback) -> WatchHandle:
        handle = WatchHandle(watch_id=next(self._ids))
        watch = _Watch(handle=handle, on_sample=on_sample, on_error=on_error)
        self._watches[handle.watch_id] = watch
        self.acquisitions += 1
        _logger.debug("Position watch %d started (%s)", handle.watch_id, self._options)
        self._on_watch_started(watch)
        return handle

    def stop_watching(self, handle: WatchHandle) -> None:
        if handle.released:
            return
        handle.released = True
        watch = self._watches.pop(handle.watch_id, None)
        if watch is None:
            return
        self.releases += 1
        _logger.debug("Position watch %d stopped", handle.watch_id)
        self._on_watch_stopped(watch)

    def _on_watch_started(self, watch: _Watch) -> None:
        pass

    def _on_watch_stopped(self, watch: _Watch) -> None:
        pass

    def _emit_fix(self, watch: _Watch, fix: PositionFix) -> None:
        if watch.handle.released:
            return
        now = self._clock()
        captured_at = ensure_utc(fix.captured_at) if fix.captured_at is not None else now
        max_age = timedelta(milliseconds=self._options.max_sample_age_ms)
        if now - captured_at > max_age:
            _logger.debug("Dropping cached fix older than %d ms", self._options.max_sample_age_ms)
            return
        sample = LocationSample(member_id=self._member_id, location=fix.location, captured_at=captured_at)
        try:
            watch.on_sample(sample)
        except Exception:
            _logger.debug("Position sample callback failed", exc_info=True)

    def _emit_error(self, watch: _Watch, error: SensorError) -> None:
        if watch.handle.released:
            return
        try:
            watch.on_error(error)
        except Exception:
            _logger.debug("Position error callback failed", exc_info=True)


class ManualPositionSource(_BasePositionSource):
    """Position source driven by explicit :meth:`feed` / :meth:`fail` calls.

    Callbacks run synchronously on the calling thread; :class:`~pysquadz.sync.SquadSync`
    hands them over to its event loop when they arrive from another thread.
    """

    def feed(self, location: GeoPoint, captured_at: datetime | None = None) -> None:
        """Deliver a fix to every active watch."""
        fix = PositionFix(location=location, captured_at=captured_at)
        for watch in list(self._watches.values()):
            self._emit_fix(watch, fix)

    def fail(self, error: SensorError) -> None:
        """Report a sensor failure to every active watch."""
        for watch in list(self._watches.values()):
            self._emit_error(watch, error)


_END_OF_STREAM = object()


async def _next_item(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


class IteratorPositionSource(_BasePositionSource):
    """Position source reading fixes from an async stream.

    ``factory`` is called once per watch with the watch options and must
    return an async iterator of :class:`PositionFix` (or
    :class:`SensorError` for recoverable failures). A fix that does not
    arrive within ``timeout_ms`` is reported as a ``TIMEOUT`` error and
    the watch keeps waiting.
    """

    def __init__(
        self,
        member_id: str,
        factory: FixStreamFactory,
        options: WatchOptions | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(member_id, options, clock=clock)
        self._factory = factory

    def _on_watch_started(self, watch: _Watch) -> None:
        loop = asyncio.get_running_loop()
        watch.task = loop.create_task(self._run(watch), name=f"pysquadz-watch-{watch.handle.watch_id}")

    def _on_watch_stopped(self, watch: _Watch) -> None:
        if watch.task is not None and not watch.task.done():
            watch.task.cancel()

    async def _run(self, watch: _Watch) -> None:
        timeout = self._options.timeout_ms / 1000.0
        pending: asyncio.Task[Any] | None = None
        try:
            iterator = self._factory(self._options).__aiter__()
            while not watch.handle.released:
                if pending is None:
                    pending = asyncio.create_task(_next_item(iterator))
                done, _ = await asyncio.wait({pending}, timeout=timeout)
                if not done:
                    self._emit_error(
                        watch,
                        SensorError(
                            f"No position fix within {self._options.timeout_ms} ms",
                            code=SensorErrorCode.TIMEOUT,
                        ),
                    )
                    continue
                task, pending = pending, None
                item = task.result()
                if item is _END_OF_STREAM:
                    self._emit_error(watch, SensorError("Position stream ended"))
                    return
                if isinstance(item, SensorError):
                    self._emit_error(watch, item)
                elif isinstance(item, PositionFix):
                    self._emit_fix(watch, item)
                elif isinstance(item, GeoPoint):
                    self._emit_fix(watch, PositionFix(location=item))
                else:
                    _logger.debug("Ignoring unexpected position stream item %r", item)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _logger.debug("Position stream failed", exc_info=True)
            self._emit_error(watch, SensorError(f"Position stream failed: {exc}"))
        finally:
            if pending is not None and not pending.done():
                pending.cancel()
