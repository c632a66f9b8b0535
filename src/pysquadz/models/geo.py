"""Geographic point model."""

from __future__ import annotations

import math
from typing import Any

from pydantic import field_validator

from pysquadz.models._base import SquadzBaseModel


def safe_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


class GeoPoint(SquadzBaseModel):
    """A WGS84 position as reported by a device.

    Only ``latitude`` and ``longitude`` are required; sensors routinely
    omit the rest, in which case they are ``None``.

    Parameters
    ----------
    latitude : float
        Degrees, within ``[-90, 90]``.
    longitude : float
        Degrees, within ``[-180, 180]``.
    altitude : float or None
        Meters above the WGS84 ellipsoid.
    accuracy : float or None
        Horizontal accuracy radius in meters.
    heading : float or None
        Direction of travel in degrees clockwise from true north.
    speed : float or None
        Ground speed in m/s.
    """

    latitude: float
    longitude: float
    altitude: float | None = None
    accuracy: float | None = None
    heading: float | None = None
    speed: float | None = None

    @field_validator("latitude")
    @classmethod
    def _check_latitude(cls, value: float) -> float:
        if not math.isfinite(value) or not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90], got {value}")
        return value

    @field_validator("longitude")
    @classmethod
    def _check_longitude(cls, value: float) -> float:
        if not math.isfinite(value) or not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180], got {value}")
        return value

    @field_validator("altitude", "accuracy", "heading", "speed", mode="before")
    @classmethod
    def _coerce_optional(cls, value: Any) -> float | None:
        return safe_float(value)

    def as_tuple(self) -> tuple[float, float]:
        """``(latitude, longitude)`` pair."""
        return self.latitude, self.longitude

    def to_payload(self) -> dict[str, Any]:
        """Wire representation; absent optional fields are omitted."""
        return self.model_dump(exclude_none=True)
