"""pysquadz - Async live location sync for ad-hoc squads."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysquadz")
except PackageNotFoundError:
    __version__ = "0+local"

from pysquadz.client import RemoteSync, SquadzClient
from pysquadz.config import SquadzConfig, WatchOptions
from pysquadz.exceptions import (
    SensorError,
    SensorErrorCode,
    SquadzConfigError,
    SquadzError,
    SyncError,
)
from pysquadz.models import (
    GeoPoint,
    LocationSample,
    MapCenter,
    MarkerHint,
    MarkerRole,
    MemberLocation,
    SquadSnapshot,
    SquadView,
)
from pysquadz.position import (
    IteratorPositionSource,
    ManualPositionSource,
    PositionFix,
    PositionSource,
    WatchHandle,
)
from pysquadz.state.engine import ReconciliationEngine
from pysquadz.state.policy import is_stale
from pysquadz.sync import SquadSync

__all__ = [
    "__version__",
    "GeoPoint",
    "IteratorPositionSource",
    "LocationSample",
    "ManualPositionSource",
    "MapCenter",
    "MarkerHint",
    "MarkerRole",
    "MemberLocation",
    "PositionFix",
    "PositionSource",
    "ReconciliationEngine",
    "RemoteSync",
    "SensorError",
    "SensorErrorCode",
    "SquadSnapshot",
    "SquadSync",
    "SquadView",
    "SquadzClient",
    "SquadzConfig",
    "SquadzConfigError",
    "SquadzError",
    "SyncError",
    "WatchHandle",
    "WatchOptions",
    "is_stale",
]
