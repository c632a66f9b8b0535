"""Lifecycle controller for live squad location sync.

:class:`SquadSync` brackets the active period of a squad view: it
starts the position watch and the poll timer together, routes what
they produce into a fresh :class:`~pysquadz.state.engine.ReconciliationEngine`,
and tears everything down on exit.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pysquadz.client import RemoteSync
from pysquadz.config import SquadzConfig
from pysquadz.exceptions import SensorError, SquadzError, SyncError
from pysquadz.models.location import LocationSample
from pysquadz.models.marker import MapCenter, SquadView
from pysquadz.position import PositionSource, WatchHandle
from pysquadz.state.engine import ReconciliationEngine
from pysquadz.state.events import (
    LocalSampleEvent,
    PushRequest,
    SensorFailureEvent,
    SnapshotEvent,
    SyncFailureEvent,
    SyncOperation,
)

_logger = logging.getLogger(__name__)

ViewCallback = Callable[[SquadView], None]
CenterCallback = Callable[[MapCenter | None], None]
ErrorCallback = Callable[[SquadzError], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SquadSync:
    """Keeps a squad view in sync while active.

    Usage::

        async with SquadzClient(config) as client:
            sync = SquadSync(config, source, client, on_view=render)
            async with sync:
                await asyncio.sleep(60)

    Callbacks
    ---------
    on_view
        Called with the new :class:`SquadView` after every successful pull.
    on_center
        Called after every reconciliation with the new map center, or
        ``None`` when the local member was absent and the center is unchanged.
    on_error
        Called with every :class:`SensorError` / :class:`SyncError`.
        Failures never propagate out of this class.
    """

    def __init__(
        self,
        config: SquadzConfig,
        source: PositionSource,
        remote: RemoteSync,
        *,
        on_view: ViewCallback | None = None,
        on_center: CenterCallback | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._source = source
        self._remote = remote
        self._on_view = on_view
        self._on_center = on_center
        self._on_error = on_error
        self._clock = clock
        self._engine: ReconciliationEngine | None = None
        self._handle: WatchHandle | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._push_tasks: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._generation = 0
        self._running = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SquadSync:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def engine(self) -> ReconciliationEngine | None:
        """Engine of the current (or most recent) activation."""
        return self._engine

    @property
    def view(self) -> SquadView | None:
        return self._engine.view if self._engine is not None else None

    async def start(self) -> None:
        """Start watching, pull once right away, then poll on a fixed interval.

        Calling ``start`` while already running is a no-op.
        """
        if self._running:
            return
        self._running = True
        self._generation += 1
        self._loop = asyncio.get_running_loop()
        generation = self._generation
        self._engine = ReconciliationEngine(
            squad_id=self._config.squad_id,
            local_member_id=self._config.member_id,
            stale_threshold=self._config.stale_threshold,
            default_center=self._config.default_center,
            clock=self._clock,
        )
        _logger.debug("Squad sync %s started (generation %d)", self._config.squad_id, generation)

        try:
            self._handle = self._source.start_watching(
                functools.partial(self._handle_sample, generation),
                functools.partial(self._handle_sensor_error, generation),
            )
        except SensorError as exc:
            # No watch, but the squad can still be followed.
            self._handle_sensor_error(generation, exc)
        except Exception as exc:
            _logger.debug("Position watch failed to start", exc_info=True)
            self._handle_sensor_error(generation, SensorError(f"Position watch failed to start: {exc}"))

        await self._pull(generation)

        if self._is_current(generation):
            self._poll_task = asyncio.create_task(
                self._poll_loop(generation),
                name=f"pysquadz-poll-{self._config.squad_id}",
            )

    async def stop(self) -> None:
        """Stop the position watch, then cancel the poll timer and in-flight pushes.

        Results of calls issued before ``stop`` are discarded.
        """
        if not self._running:
            return
        self._running = False
        self._generation += 1

        handle, self._handle = self._handle, None
        poll_task, self._poll_task = self._poll_task, None
        push_tasks = list(self._push_tasks)
        self._push_tasks.clear()
        try:
            if handle is not None:
                self._source.stop_watching(handle)
        finally:
            current = asyncio.current_task()
            pending = [task for task in (poll_task, *push_tasks) if task is not None and task is not current]
            for task in pending:
                task.cancel()
            if pending:
                # Cancelling the caller still interrupts this wait.
                await asyncio.wait(pending)
            _logger.debug("Squad sync %s stopped", self._config.squad_id)

    async def poll_now(self) -> SquadView | None:
        """Pull immediately, outside the regular cadence."""
        if not self._running:
            return None
        await self._pull(self._generation)
        return self.view

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _poll_loop(self, generation: int) -> None:
        # Ticks are anchored to a fixed schedule, not to when the last pull finished.
        loop = asyncio.get_running_loop()
        interval = self._config.poll_interval
        next_at = loop.time() + interval
        while self._is_current(generation):
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            if not self._is_current(generation):
                return
            await self._pull(generation)
            next_at += interval
            now = loop.time()
            if next_at < now:
                missed = int((now - next_at) // interval) + 1
                _logger.debug("Pull overran the poll interval; skipping %d tick(s)", missed)
                next_at += missed * interval

    async def _pull(self, generation: int) -> None:
        try:
            snapshot = await self._remote.pull(self._config.squad_id)
        except SyncError as exc:
            self._handle_sync_error(generation, SyncOperation.PULL, exc)
            return
        except Exception as exc:
            _logger.debug("Unexpected pull failure", exc_info=True)
            error = SyncError(f"Pull failed: {exc}")
            error.__cause__ = exc
            self._handle_sync_error(generation, SyncOperation.PULL, error)
            return

        if not self._is_current(generation) or self._engine is None:
            _logger.debug("Discarding late snapshot for squad %s", self._config.squad_id)
            return
        if not self._engine.follows(snapshot.squad_id):
            error = SyncError(
                f"Backend answered with squad {snapshot.squad_id}, expected {self._config.squad_id}"
            )
            self._handle_sync_error(generation, SyncOperation.PULL, error)
            return
        result = self._engine.apply(SnapshotEvent(snapshot=snapshot))
        if isinstance(result, SquadView):
            self._emit_view(result)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _handle_sample(self, generation: int, sample: LocationSample) -> None:
        if self._loop is not None and not self._on_loop_thread():
            # Position callbacks may fire on a platform thread.
            self._loop.call_soon_threadsafe(self._handle_sample, generation, sample)
            return
        if not self._is_current(generation) or self._engine is None or self._loop is None:
            return
        result = self._engine.apply(LocalSampleEvent(sample=sample))
        if isinstance(result, PushRequest):
            task = self._loop.create_task(self._push(generation, result))
            self._push_tasks.add(task)
            task.add_done_callback(self._push_tasks.discard)

    async def _push(self, generation: int, request: PushRequest) -> None:
        try:
            await self._remote.push(request.member_id, request.location)
        except SyncError as exc:
            self._handle_sync_error(generation, SyncOperation.PUSH, exc)
        except Exception as exc:
            _logger.debug("Unexpected push failure", exc_info=True)
            error = SyncError(f"Push failed: {exc}")
            error.__cause__ = exc
            self._handle_sync_error(generation, SyncOperation.PUSH, error)

    def _handle_sensor_error(self, generation: int, error: SensorError) -> None:
        if self._loop is not None and not self._on_loop_thread():
            self._loop.call_soon_threadsafe(self._handle_sensor_error, generation, error)
            return
        if not self._is_current(generation) or self._engine is None:
            return
        self._engine.apply(SensorFailureEvent(error=error))
        _logger.warning("Position sensor error (%s): %s", error.code, error)
        self._notify_error(error)

    def _handle_sync_error(self, generation: int, operation: SyncOperation, error: SyncError) -> None:
        if not self._is_current(generation) or self._engine is None:
            _logger.debug("Discarding late %s failure: %s", operation, error)
            return
        self._engine.apply(SyncFailureEvent(operation=operation, error=error))
        _logger.warning("Location %s failed: %s", operation, error)
        self._notify_error(error)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _emit_view(self, view: SquadView) -> None:
        if self._on_view is not None:
            try:
                self._on_view(view)
            except Exception:
                _logger.debug("on_view callback failed", exc_info=True)
        if self._on_center is not None:
            try:
                self._on_center(view.center if view.recentered else None)
            except Exception:
                _logger.debug("on_center callback failed", exc_info=True)

    def _notify_error(self, error: SquadzError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            _logger.debug("on_error callback failed", exc_info=True)
