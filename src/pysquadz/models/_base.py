"""Base model and timestamp helpers for squad backend payloads.

Every pysquadz model inherits from :class:`SquadzBaseModel` which
provides:

* frozen instances, so snapshots handed to consumers can never be
  mutated behind the engine's back.
* ``alias_generator=to_camel`` with ``populate_by_name`` so both the
  backend's snake_case keys and camelCase variants are accepted.
* ``extra="ignore"`` so new backend fields do not break parsing.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> Any:
    """Coerce epoch seconds, epoch milliseconds or ISO-8601 strings to a datetime.

    Unrecognised values are returned unchanged so pydantic reports them.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return value
    return value


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


SquadzTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp), AfterValidator(ensure_utc)]
"""Annotated type producing tz-aware UTC datetimes from backend timestamps."""


class SquadzBaseModel(BaseModel):
    """Base for pysquadz value objects."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
