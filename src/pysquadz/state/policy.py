"""Freshness policy."""

from __future__ import annotations

from datetime import datetime, timedelta


def as_threshold(threshold: timedelta | float) -> timedelta:
    if isinstance(threshold, timedelta):
        return threshold
    return timedelta(seconds=float(threshold))


def is_stale(updated_at: datetime, now: datetime, threshold: timedelta | float) -> bool:
    """Return ``True`` when *updated_at* is strictly older than *threshold* at *now*.

    An age exactly equal to the threshold is still fresh.
    """
    return now - updated_at > as_threshold(threshold)
