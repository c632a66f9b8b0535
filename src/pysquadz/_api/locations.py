"""Location endpoints.

Endpoints:
  - POST /api/v1/locations (push)
  - GET /api/v1/squads/{squad_id}/locations (pull)
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from pydantic import ValidationError

from pysquadz._constants import LOCATIONS_ENDPOINT, SQUAD_LOCATIONS_ENDPOINT
from pysquadz._transport import Transport
from pysquadz.exceptions import SyncError
from pysquadz.models.geo import GeoPoint
from pysquadz.models.location import SquadSnapshot

_logger = logging.getLogger(__name__)


async def push_location(
    transport: Transport,
    squad_id: str,
    member_id: str,
    location: GeoPoint,
) -> None:
    """Send the member's latest position.

    The backend stamps the update with its own receive time and keeps
    the last write, so overlapping pushes are harmless.

    Raises
    ------
    SyncError
        If the request fails or the backend rejects it.
    """
    payload = {
        "squad_id": squad_id,
        "member_id": member_id,
        "location": location.to_payload(),
    }
    await transport.request_json("POST", LOCATIONS_ENDPOINT, payload)


async def fetch_squad_locations(transport: Transport, squad_id: str) -> SquadSnapshot:
    """Fetch every member's last known location in one call.

    Raises
    ------
    SyncError
        If the request fails or the response is not a valid snapshot.
    """
    endpoint = SQUAD_LOCATIONS_ENDPOINT.format(squad_id=quote(squad_id, safe=""))
    decoded = await transport.request_json("GET", endpoint)
    if not isinstance(decoded, dict):
        raise SyncError(f"Unexpected response shape from {endpoint}", endpoint=endpoint)

    try:
        snapshot = SquadSnapshot.model_validate(decoded)
    except ValidationError as exc:
        raise SyncError(f"Invalid snapshot from {endpoint}: {exc}", endpoint=endpoint) from exc

    _logger.debug("Squad %s snapshot members=%d", snapshot.squad_id, len(snapshot.locations))
    return snapshot
