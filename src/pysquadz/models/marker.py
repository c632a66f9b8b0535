"""Rendering hints handed to the map collaborator."""

from __future__ import annotations

import enum

from pysquadz._constants import (
    ACTIVE_COLOR,
    MEMBER_MARKER_SIZE,
    SELF_COLOR,
    SELF_MARKER_SIZE,
    STALE_COLOR,
)
from pysquadz.models._base import SquadzBaseModel
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import MemberLocation, SquadSnapshot


class MarkerRole(enum.StrEnum):
    """Mutually exclusive visual treatment of one marker."""

    SELF = "self"
    STALE = "stale"
    ACTIVE = "active"

    @property
    def color(self) -> str:
        return _ROLE_COLORS[self]


_ROLE_COLORS: dict[MarkerRole, str] = {
    MarkerRole.SELF: SELF_COLOR,
    MarkerRole.STALE: STALE_COLOR,
    MarkerRole.ACTIVE: ACTIVE_COLOR,
}


class MarkerHint(SquadzBaseModel):
    """How to draw one member's marker.

    ``is_stale`` is kept even for ``SELF`` markers so a renderer can
    flag one's own outdated position without losing the self styling.
    """

    member_id: str
    display_name: str
    location: GeoPoint
    role: MarkerRole
    is_stale: bool
    color: str
    size: int

    @property
    def is_self(self) -> bool:
        return self.role is MarkerRole.SELF


class MapCenter(SquadzBaseModel):
    latitude: float
    longitude: float

    @classmethod
    def from_point(cls, point: GeoPoint) -> MapCenter:
        return cls(latitude=point.latitude, longitude=point.longitude)

    def as_tuple(self) -> tuple[float, float]:
        return self.latitude, self.longitude


class SquadView(SquadzBaseModel):
    """One reconciliation result: the snapshot plus what to draw and where.

    ``recentered`` is ``False`` when the local member was absent from the
    snapshot and ``center`` is the previously held value.
    """

    snapshot: SquadSnapshot
    markers: tuple[MarkerHint, ...] = ()
    center: MapCenter
    recentered: bool = False


def classify_marker(entry: MemberLocation, local_member_id: str) -> MarkerRole:
    """Pick the marker role; being the local member beats being stale."""
    if entry.member_id == local_member_id:
        return MarkerRole.SELF
    if entry.is_stale:
        return MarkerRole.STALE
    return MarkerRole.ACTIVE


def build_marker(entry: MemberLocation, local_member_id: str) -> MarkerHint:
    role = classify_marker(entry, local_member_id)
    return MarkerHint(
        member_id=entry.member_id,
        display_name=entry.display_name,
        location=entry.location,
        role=role,
        is_stale=entry.is_stale,
        color=role.color,
        size=SELF_MARKER_SIZE if role is MarkerRole.SELF else MEMBER_MARKER_SIZE,
    )
