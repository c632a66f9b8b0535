"""Engine input events.

Both producers (the position watch and the poll timer) convert what
they observe into these events. Only the reconciliation engine is
allowed to apply them.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pysquadz.exceptions import SensorError, SyncError
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import LocationSample, SquadSnapshot


class SyncOperation(StrEnum):
    PUSH = "push"
    PULL = "pull"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class LocalSampleEvent(_Event):
    """A new fix for the local member arrived from the position source."""

    sample: LocationSample


class SnapshotEvent(_Event):
    """A pull succeeded; ``snapshot`` is the backend's view verbatim."""

    snapshot: SquadSnapshot


class SyncFailureEvent(_Event):
    operation: SyncOperation
    error: SyncError


class SensorFailureEvent(_Event):
    error: SensorError


EngineEvent = LocalSampleEvent | SnapshotEvent | SyncFailureEvent | SensorFailureEvent


class PushRequest(BaseModel):
    """Instruction to send ``location`` for ``member_id``; emitted for every accepted sample."""

    model_config = ConfigDict(frozen=True)

    member_id: str
    location: GeoPoint
