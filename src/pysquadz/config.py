"""Client configuration for pysquadz."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysquadz._constants import (
    DEFAULT_BASE_URL,
    DEFAULT_CENTER,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STALE_THRESHOLD,
)
from pysquadz.exceptions import SquadzConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise SquadzConfigError(f"{env_key} must be a number, got {value!r}") from exc


def _parse_center(env_key: str, value: str) -> tuple[float, float]:
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2:
        raise SquadzConfigError(f"{env_key} must be 'lat,lon', got {value!r}")
    lat = _env_number(env_key, parts[0], float)
    lon = _env_number(env_key, parts[1], float)
    return float(lat), float(lon)


@dataclasses.dataclass(frozen=True)
class WatchOptions:
    """Position watch settings handed to the position source.

    The provider may answer with a cached fix younger than
    ``max_sample_age_ms`` instead of forcing a fresh read; older fixes
    are dropped.
    """

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_sample_age_ms: int = 5_000


@dataclasses.dataclass(frozen=True)
class SquadzConfig:
    """Client configuration.

    Parameters
    ----------
    squad_id : str
        Squad whose locations are synchronized.
    member_id : str
        The local member, i.e. the owner of this device.
    base_url : str
        Squad backend base URL.
    api_key : str or None
        Session key returned when creating/joining a squad. Sent as a
        bearer token; the backend requires it for location pushes.
    poll_interval : float
        Seconds between squad location pulls.
    stale_threshold : float
        Seconds after which a member's last update is considered stale.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    default_center : tuple[float, float]
        Map center used until the local member appears in a snapshot.
    watch : WatchOptions
        Position watch settings.
    """

    squad_id: str
    member_id: str
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    stale_threshold: float = DEFAULT_STALE_THRESHOLD
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    default_center: tuple[float, float] = DEFAULT_CENTER
    watch: WatchOptions = dataclasses.field(default_factory=WatchOptions)

    def __post_init__(self) -> None:
        if not self.squad_id.strip():
            raise SquadzConfigError("squad_id must be non-empty")
        if not self.member_id.strip():
            raise SquadzConfigError("member_id must be non-empty")
        if self.poll_interval <= 0:
            raise SquadzConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.stale_threshold < 0:
            raise SquadzConfigError(f"stale_threshold must not be negative, got {self.stale_threshold}")
        if self.request_timeout <= 0:
            raise SquadzConfigError(f"request_timeout must be positive, got {self.request_timeout}")

    @classmethod
    def from_env(cls, **overrides: Any) -> SquadzConfig:
        """Create configuration from environment variables.

        Reads ``SQUADZ_SQUAD_ID``, ``SQUADZ_MEMBER_ID`` and optional
        ``SQUADZ_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        SquadzConfig
            Populated configuration.

        Raises
        ------
        SquadzConfigError
            If a required value is missing or a value cannot be parsed.
        """
        env = os.environ

        watch_kwargs: dict[str, Any] = {}
        if "SQUADZ_HIGH_ACCURACY" in env:
            watch_kwargs["high_accuracy"] = _env_bool(env.get("SQUADZ_HIGH_ACCURACY"), True)
        _ENV_WATCH_MAP = {
            "SQUADZ_WATCH_TIMEOUT_MS": "timeout_ms",
            "SQUADZ_MAX_SAMPLE_AGE_MS": "max_sample_age_ms",
        }
        for env_key, field_name in _ENV_WATCH_MAP.items():
            val = env.get(env_key)
            if val is not None:
                watch_kwargs[field_name] = int(_env_number(env_key, val, int))

        # Allow overriding watch fields via a nested dict
        watch_overrides = overrides.pop("watch", None)
        if isinstance(watch_overrides, dict):
            watch_kwargs.update(watch_overrides)
        elif isinstance(watch_overrides, WatchOptions):
            watch_kwargs = dataclasses.asdict(watch_overrides)

        config_kwargs: dict[str, Any] = {"watch": WatchOptions(**watch_kwargs)}

        _ENV_CONFIG_MAP = {
            "SQUADZ_SQUAD_ID": "squad_id",
            "SQUADZ_MEMBER_ID": "member_id",
            "SQUADZ_BASE_URL": "base_url",
            "SQUADZ_API_KEY": "api_key",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "SQUADZ_POLL_INTERVAL": "poll_interval",
            "SQUADZ_STALE_THRESHOLD": "stale_threshold",
            "SQUADZ_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(_env_number(env_key, val, float))

        center_env = env.get("SQUADZ_DEFAULT_CENTER")
        if center_env is not None and "default_center" not in overrides:
            config_kwargs["default_center"] = _parse_center("SQUADZ_DEFAULT_CENTER", center_env)

        config_kwargs.update(overrides)

        for required in ("squad_id", "member_id"):
            if not config_kwargs.get(required):
                raise SquadzConfigError(f"Missing {required} (set SQUADZ_{required.upper()})")

        return cls(**config_kwargs)
