"""JSON-over-HTTP transport for the squad backend."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pysquadz._constants import USER_AGENT
from pysquadz._redact import redact_for_log
from pysquadz.config import SquadzConfig
from pysquadz.exceptions import SyncError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        ...


class HttpTransport:
    """HTTP transport that speaks JSON and carries the squad session key."""

    def __init__(self, config: SquadzConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.api_key:
            headers["authorization"] = f"Bearer {self._config.api_key}"
        return headers

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        An empty response body decodes to ``None`` (the push endpoint
        answers with an empty 200).

        Raises
        ------
        SyncError
            On network failure, timeout, non-2xx status or invalid JSON.
        """
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else None

        _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=self._build_headers(),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise SyncError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except SyncError:
            raise
        except asyncio.TimeoutError as exc:
            raise SyncError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise SyncError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        _logger.debug("%s %s -> HTTP %d (%d bytes)", method, url, resp.status, len(text))

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise SyncError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=resp.status,
                endpoint=endpoint,
            ) from exc
