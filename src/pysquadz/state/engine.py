"""Reconciliation engine.

This is the only component allowed to hold the current squad snapshot,
the local member's latest sample and the map center. Everything that
changes them arrives as an event through :meth:`ReconciliationEngine.apply`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pysquadz.models.location import LocationSample, SquadSnapshot, squad_key
from pysquadz.models.marker import MapCenter, SquadView, build_marker
from pysquadz.state.events import (
    EngineEvent,
    LocalSampleEvent,
    PushRequest,
    SensorFailureEvent,
    SnapshotEvent,
    SyncFailureEvent,
    SyncOperation,
)
from pysquadz.state.policy import as_threshold, is_stale

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Single-owner state machine merging local samples with polled snapshots.

    Readers get frozen models; there is no way to mutate engine state
    except by applying an event.
    """

    def __init__(
        self,
        *,
        squad_id: str,
        local_member_id: str,
        stale_threshold: timedelta | float,
        default_center: tuple[float, float],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._squad_id = squad_id
        self._squad_key = squad_key(squad_id)
        self._local_member_id = local_member_id
        self._stale_threshold = as_threshold(stale_threshold)
        self._clock = clock
        self._center = MapCenter(latitude=default_center[0], longitude=default_center[1])
        self._snapshot: SquadSnapshot | None = None
        self._view: SquadView | None = None
        self._latest_sample: LocationSample | None = None
        self._consecutive_pull_failures = 0
        self._sensor_failures = 0

    def follows(self, squad_id: str) -> bool:
        """Whether a snapshot for *squad_id* belongs to the followed squad."""
        return squad_key(squad_id) == self._squad_key

    @property
    def local_member_id(self) -> str:
        return self._local_member_id

    @property
    def snapshot(self) -> SquadSnapshot | None:
        """Last successfully reconciled snapshot (``None`` before the first pull)."""
        return self._snapshot

    @property
    def view(self) -> SquadView | None:
        return self._view

    @property
    def latest_sample(self) -> LocationSample | None:
        return self._latest_sample

    @property
    def center(self) -> MapCenter:
        return self._center

    @property
    def consecutive_pull_failures(self) -> int:
        return self._consecutive_pull_failures

    @property
    def sensor_failures(self) -> int:
        return self._sensor_failures

    def apply(self, event: EngineEvent) -> PushRequest | SquadView | None:
        """Apply one event.

        Returns a :class:`PushRequest` for an accepted local sample, the
        new :class:`SquadView` for an accepted snapshot, and ``None``
        otherwise.
        """
        if isinstance(event, LocalSampleEvent):
            return self._on_sample(event.sample)
        if isinstance(event, SnapshotEvent):
            return self._on_snapshot(event.snapshot)
        if isinstance(event, SyncFailureEvent):
            if event.operation == SyncOperation.PULL:
                # Keep the previous snapshot; markers age into stale instead of vanishing.
                self._consecutive_pull_failures += 1
            return None
        if isinstance(event, SensorFailureEvent):
            self._sensor_failures += 1
            return None
        raise TypeError(f"Unsupported engine event: {type(event).__name__}")

    def _on_sample(self, sample: LocationSample) -> PushRequest | None:
        if sample.member_id != self._local_member_id:
            _logger.debug("Ignoring sample for foreign member %s", sample.member_id)
            return None
        # Newest arrival wins locally, whatever happens to earlier pushes in flight.
        self._latest_sample = sample
        return PushRequest(member_id=sample.member_id, location=sample.location)

    def _on_snapshot(self, snapshot: SquadSnapshot) -> SquadView | None:
        if not self.follows(snapshot.squad_id):
            _logger.warning(
                "Dropping snapshot for squad %s (engine follows %s)",
                snapshot.squad_id,
                self._squad_id,
            )
            return None

        now = self._clock()
        reconciled = snapshot.replace_locations(
            entry.with_staleness(is_stale(entry.updated_at, now, self._stale_threshold))
            for entry in snapshot.locations
        )

        own = reconciled.get(self._local_member_id)
        recentered = own is not None
        center = MapCenter.from_point(own.location) if own is not None else self._center

        view = SquadView(
            snapshot=reconciled,
            markers=tuple(build_marker(entry, self._local_member_id) for entry in reconciled.locations),
            center=center,
            recentered=recentered,
        )

        # Swap all derived state together once everything is built.
        self._snapshot = reconciled
        self._center = center
        self._view = view
        self._consecutive_pull_failures = 0
        return view
