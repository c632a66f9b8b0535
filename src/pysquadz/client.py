"""High-level async client for the squad location backend."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import aiohttp

from pysquadz._api import locations as _locations_api
from pysquadz._transport import HttpTransport, Transport
from pysquadz.config import SquadzConfig
from pysquadz.exceptions import SquadzError
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import SquadSnapshot

_logger = logging.getLogger(__name__)


class RemoteSync(Protocol):
    """Push/pull contract the sync engine depends on.

    Both calls raise :class:`~pysquadz.exceptions.SyncError` on failure.
    Retrying is left to the caller's natural cadence.
    """

    async def push(self, member_id: str, location: GeoPoint) -> None:
        ...

    async def pull(self, squad_id: str) -> SquadSnapshot:
        ...


class SquadzClient:
    """Async client for the squad location API.

    Usage::

        async with SquadzClient(config) as client:
            await client.push(config.member_id, point)
            snapshot = await client.pull(config.squad_id)
    """

    def __init__(
        self,
        config: SquadzConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SquadzClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    @property
    def config(self) -> SquadzConfig:
        return self._config

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise SquadzError("Client not initialized. Use 'async with SquadzClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Location sync
    # ------------------------------------------------------------------

    async def push(self, member_id: str, location: GeoPoint) -> None:
        """Send *member_id*'s latest position to the configured squad."""
        transport = self._require_transport()
        await _locations_api.push_location(transport, self._config.squad_id, member_id, location)

    async def pull(self, squad_id: str | None = None) -> SquadSnapshot:
        """Fetch the consolidated location set of *squad_id* (default: configured squad)."""
        transport = self._require_transport()
        return await _locations_api.fetch_squad_locations(transport, squad_id or self._config.squad_id)
