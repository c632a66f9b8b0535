"""HTTP transport and location endpoint tests against a local aiohttp server."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import pytest
from aiohttp import test_utils, web

from pysquadz._api.locations import fetch_squad_locations, push_location
from pysquadz.client import SquadzClient
from pysquadz.config import SquadzConfig
from pysquadz.exceptions import SquadzError, SyncError
from pysquadz.models import GeoPoint

SQUAD = "6f1c0a52-1111-4e5b-9d1e-000000000001"

_SNAPSHOT_BODY = {
    "squad_id": SQUAD,
    "squad_name": "Hikers",
    "locations": [
        {
            "member_id": "m-1",
            "display_name": "Ana",
            "location": {"latitude": 52.37, "longitude": 4.89, "speed": 1.5},
            "updated_at": "2026-01-01T12:00:00.123456789Z",
            "is_stale": False,
        }
    ],
    "updated_at": "2026-01-01T12:00:05Z",
}


class _Backend:
    def __init__(self) -> None:
        self.pushes: list[tuple[dict[str, Any], str | None]] = []
        self.pull_status = 200
        self.pull_body: str = json.dumps(_SNAPSHOT_BODY)

    async def handle_push(self, request: web.Request) -> web.Response:
        self.pushes.append((await request.json(), request.headers.get("Authorization")))
        return web.Response(status=200)

    async def handle_pull(self, request: web.Request) -> web.Response:
        assert request.match_info["squad_id"] == SQUAD
        return web.Response(status=self.pull_status, text=self.pull_body, content_type="application/json")


@contextlib.asynccontextmanager
async def _serve(backend: _Backend) -> AsyncIterator[str]:
    app = web.Application()
    app.router.add_post("/api/v1/locations", backend.handle_push)
    app.router.add_get("/api/v1/squads/{squad_id}/locations", backend.handle_pull)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url(""))
    finally:
        await server.close()


def _config(base_url: str, **kwargs: Any) -> SquadzConfig:
    return SquadzConfig(squad_id=SQUAD, member_id="m-1", base_url=base_url, **kwargs)


@pytest.mark.asyncio
async def test_push_sends_location_with_bearer_key() -> None:
    backend = _Backend()
    async with _serve(backend) as base_url:
        async with SquadzClient(_config(base_url, api_key="sk-test")) as client:
            await client.push("m-1", GeoPoint(latitude=52.37, longitude=4.89, accuracy=8.0))

    assert backend.pushes == [
        (
            {
                "squad_id": SQUAD,
                "member_id": "m-1",
                "location": {"latitude": 52.37, "longitude": 4.89, "accuracy": 8.0},
            },
            "Bearer sk-test",
        )
    ]


@pytest.mark.asyncio
async def test_push_without_key_sends_no_authorization() -> None:
    backend = _Backend()
    async with _serve(backend) as base_url:
        async with SquadzClient(_config(base_url)) as client:
            await client.push("m-1", GeoPoint(latitude=1.0, longitude=2.0))

    assert backend.pushes[0][1] is None


@pytest.mark.asyncio
async def test_pull_parses_snapshot() -> None:
    backend = _Backend()
    async with _serve(backend) as base_url:
        async with SquadzClient(_config(base_url)) as client:
            snapshot = await client.pull()

    assert snapshot.squad_id == SQUAD
    entry = snapshot.get("m-1")
    assert entry is not None
    assert entry.display_name == "Ana"
    assert entry.location.speed == 1.5


@pytest.mark.asyncio
async def test_pull_http_error_carries_status() -> None:
    backend = _Backend()
    backend.pull_status = 404
    backend.pull_body = json.dumps({"error": "Squad not found"})
    async with _serve(backend) as base_url:
        async with SquadzClient(_config(base_url)) as client:
            with pytest.raises(SyncError) as excinfo:
                await client.pull()

    assert excinfo.value.status_code == 404
    assert excinfo.value.endpoint == f"/api/v1/squads/{SQUAD}/locations"


@pytest.mark.asyncio
async def test_pull_invalid_json_is_sync_error() -> None:
    backend = _Backend()
    backend.pull_body = "<html>gateway</html>"
    async with _serve(backend) as base_url:
        async with SquadzClient(_config(base_url)) as client:
            with pytest.raises(SyncError, match="Invalid JSON"):
                await client.pull()


@pytest.mark.asyncio
async def test_unreachable_backend_is_sync_error() -> None:
    backend = _Backend()
    async with _serve(backend) as base_url:
        pass
    # Server is gone; the port refuses connections.
    async with SquadzClient(_config(base_url, request_timeout=2.0)) as client:
        with pytest.raises(SyncError):
            await client.pull()


@pytest.mark.asyncio
async def test_client_requires_context_manager() -> None:
    client = SquadzClient(_config("http://localhost:1"))
    with pytest.raises(SquadzError, match="not initialized"):
        await client.pull()


# ------------------------------------------------------------------
# Endpoint functions with a transport double
# ------------------------------------------------------------------


class _StubTransport:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: list[tuple[str, str, Any]] = []

    async def request_json(self, method: str, endpoint: str, payload: Any = None) -> Any:
        self.calls.append((method, endpoint, payload))
        return self.response


@pytest.mark.asyncio
async def test_fetch_quotes_squad_id_in_path() -> None:
    body = dict(_SNAPSHOT_BODY, squad_id="a/b")
    transport = _StubTransport(body)
    await fetch_squad_locations(transport, "a/b")
    assert transport.calls == [("GET", "/api/v1/squads/a%2Fb/locations", None)]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [None, [], "ok"])
async def test_fetch_rejects_non_object_response(response: Any) -> None:
    with pytest.raises(SyncError, match="Unexpected response shape"):
        await fetch_squad_locations(_StubTransport(response), SQUAD)


@pytest.mark.asyncio
async def test_fetch_rejects_invalid_snapshot() -> None:
    body = dict(_SNAPSHOT_BODY)
    body["locations"] = [{"member_id": "m-1", "location": {"latitude": 200, "longitude": 0}}]
    with pytest.raises(SyncError, match="Invalid snapshot"):
        await fetch_squad_locations(_StubTransport(body), SQUAD)


@pytest.mark.asyncio
async def test_push_location_payload() -> None:
    transport = _StubTransport(None)
    await push_location(transport, SQUAD, "m-2", GeoPoint(latitude=1.0, longitude=2.0, heading=90.0))
    assert transport.calls == [
        (
            "POST",
            "/api/v1/locations",
            {"squad_id": SQUAD, "member_id": "m-2", "location": {"latitude": 1.0, "longitude": 2.0, "heading": 90.0}},
        )
    ]
