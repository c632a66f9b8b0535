"""Location sample and squad snapshot models."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from pydantic import Field, field_validator, model_validator

from pysquadz._constants import MS_TO_KMH
from pysquadz.models._base import SquadzBaseModel, SquadzTimestamp
from pysquadz.models.geo import GeoPoint


def _utcnow() -> datetime:
    return datetime.now(UTC)


def squad_key(squad_id: str) -> str:
    """Canonical form of a squad id for comparisons.

    UUIDs compare by value regardless of case or braces; other ids are
    compared case-insensitively.
    """
    value = squad_id.strip()
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return value.casefold()


def _normalize_member_id(value: object) -> str:
    member_id = str(value).strip()
    if not member_id:
        raise ValueError("member_id must be non-empty")
    return member_id


class LocationSample(SquadzBaseModel):
    """One fix of the local member's own position."""

    member_id: str
    location: GeoPoint
    captured_at: SquadzTimestamp = Field(default_factory=_utcnow)

    @field_validator("member_id", mode="before")
    @classmethod
    def _check_member_id(cls, value: object) -> str:
        return _normalize_member_id(value)


class MemberLocation(SquadzBaseModel):
    """Last known location of one squad member.

    Parameters
    ----------
    member_id : str
        Member identifier (UUID string on the reference backend).
    display_name : str
        Name shown next to the marker.
    location : GeoPoint
        Last reported position.
    updated_at : datetime
        When the backend received the position (UTC).
    is_stale : bool
        Whether ``updated_at`` is older than the staleness threshold.
        Recomputed locally on every reconciliation pass.
    """

    member_id: str
    display_name: str = ""
    location: GeoPoint
    updated_at: SquadzTimestamp
    is_stale: bool = False

    @field_validator("member_id", mode="before")
    @classmethod
    def _check_member_id(cls, value: object) -> str:
        return _normalize_member_id(value)

    @property
    def speed_kmh(self) -> float | None:
        """Ground speed in km/h, or ``None`` when unknown or not moving."""
        speed = self.location.speed
        if speed is None or speed <= 0:
            return None
        return speed * MS_TO_KMH

    def age(self, now: datetime) -> timedelta:
        return now - self.updated_at

    def with_staleness(self, is_stale: bool) -> MemberLocation:
        if is_stale == self.is_stale:
            return self
        return self.model_copy(update={"is_stale": is_stale})


class SquadSnapshot(SquadzBaseModel):
    """The squad's consolidated view at one point in time.

    Member ids are unique. Order carries no meaning; renderers may
    re-sort freely.
    """

    squad_id: str
    squad_name: str = ""
    locations: tuple[MemberLocation, ...] = ()
    updated_at: SquadzTimestamp | None = None

    @field_validator("squad_id", mode="before")
    @classmethod
    def _check_squad_id(cls, value: object) -> str:
        squad_id = str(value).strip()
        if not squad_id:
            raise ValueError("squad_id must be non-empty")
        return squad_id

    @model_validator(mode="after")
    def _check_unique_members(self) -> SquadSnapshot:
        seen: set[str] = set()
        for entry in self.locations:
            if entry.member_id in seen:
                raise ValueError(f"duplicate member_id in snapshot: {entry.member_id}")
            seen.add(entry.member_id)
        return self

    @property
    def member_ids(self) -> frozenset[str]:
        return frozenset(entry.member_id for entry in self.locations)

    @property
    def is_empty(self) -> bool:
        return not self.locations

    def get(self, member_id: str) -> MemberLocation | None:
        for entry in self.locations:
            if entry.member_id == member_id:
                return entry
        return None

    def replace_locations(self, locations: Iterable[MemberLocation]) -> SquadSnapshot:
        return self.model_copy(update={"locations": tuple(locations)})
