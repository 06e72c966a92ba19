"""HTTP transport for the JSON-RPC telemetry API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleetsync._constants import AUTH_HTTP_STATUSES, QUOTA_HTTP_STATUSES, USER_AGENT
from fleetsync._redact import redact_for_log
from fleetsync.exceptions import (
    FleetSyncAuthenticationError,
    FleetSyncMalformedResponseError,
    FleetSyncQuotaError,
    FleetSyncTransportError,
)

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`JsonRpcTransport`) concrete.
    """

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ...


class JsonRpcTransport:
    """HTTP transport that posts JSON-RPC bodies and decodes the JSON reply.

    The decoded body is returned as-is (including any ``error`` member);
    interpreting JSON-RPC errors is left to :mod:`fleetsync._api._common`.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """POST *payload* as JSON to *url* and return the decoded object."""
        method = str(payload.get("method", ""))
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        body = json.dumps(payload, separators=(",", ":"))

        _logger.debug("POST %s method=%s params=%s", url, method, redact_for_log(payload.get("params")))

        try:
            async with self._http.post(url, data=body, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise FleetSyncTransportError(
                f"Request {method} to {url} failed: {exc}",
                method=method,
            ) from exc
        except TimeoutError as exc:
            raise FleetSyncTransportError(
                f"Request {method} to {url} timed out",
                method=method,
            ) from exc

        if status in QUOTA_HTTP_STATUSES:
            raise FleetSyncQuotaError(f"HTTP {status} from {method}: {text[:200]}", code=str(status), method=method)
        if status in AUTH_HTTP_STATUSES:
            raise FleetSyncAuthenticationError(
                f"HTTP {status} from {method}: {text[:200]}",
                code=str(status),
                method=method,
            )
        if status != 200:
            raise FleetSyncTransportError(
                f"HTTP {status} from {method}: {text[:200]}",
                status_code=status,
                method=method,
            )

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FleetSyncMalformedResponseError(
                f"Invalid JSON from {method}: {text[:200]}",
                code="invalid_json",
                method=method,
            ) from exc

        if not isinstance(decoded, dict):
            raise FleetSyncMalformedResponseError(
                f"Expected a JSON object from {method}, got {type(decoded).__name__}",
                code="invalid_body",
                method=method,
            )
        return decoded
