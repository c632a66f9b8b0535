"""Custom exception hierarchy for pysquadz."""

from __future__ import annotations

import enum


class SquadzError(Exception):
    """Base exception for all pysquadz errors."""


class SquadzConfigError(SquadzError):
    """Invalid or missing configuration."""


class SensorErrorCode(enum.StrEnum):
    """Reasons a position source may fail to deliver a fix."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"


class SensorError(SquadzError):
    """The position source could not produce a fix.

    Non-fatal: the watch keeps running and the next fix (if any) is
    delivered normally.
    """

    def __init__(self, message: str, *, code: SensorErrorCode = SensorErrorCode.POSITION_UNAVAILABLE) -> None:
        self.code = code
        super().__init__(message)


class SyncError(SquadzError):
    """Push or pull against the squad backend failed.

    Covers network failures, non-2xx responses and payloads that do not
    match the expected shape.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
