"""Data models for squad locations."""

from pysquadz.models._base import SquadzBaseModel, SquadzTimestamp, ensure_utc, parse_timestamp
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import LocationSample, MemberLocation, SquadSnapshot, squad_key
from pysquadz.models.marker import (
    MapCenter,
    MarkerHint,
    MarkerRole,
    SquadView,
    build_marker,
    classify_marker,
)

__all__ = [
    "GeoPoint",
    "LocationSample",
    "MapCenter",
    "MarkerHint",
    "MarkerRole",
    "MemberLocation",
    "SquadSnapshot",
    "SquadView",
    "SquadzBaseModel",
    "SquadzTimestamp",
    "build_marker",
    "classify_marker",
    "ensure_utc",
    "parse_timestamp",
    "squad_key",
]
