"""Shared helpers for JSON-RPC endpoint modules.

This module centralizes the most repeated patterns:
- building the JSON-RPC request body
- attaching session credentials to post-login calls
- mapping JSON-RPC error objects to exceptions
- unwrapping ``result`` from the reply

It is internal to fleetsync and may change at any time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fleetsync._constants import AUTH_ERROR_NAMES, QUOTA_ERROR_NAMES, SESSION_EXPIRED_ERROR_NAMES
from fleetsync._transport import Transport
from fleetsync.exceptions import (
    FleetSyncApiError,
    FleetSyncAuthenticationError,
    FleetSyncMalformedResponseError,
    FleetSyncQuotaError,
    FleetSyncSessionExpiredError,
)
from fleetsync.session import Session


def build_request(method: str, params: Mapping[str, Any]) -> dict[str, Any]:
    """Build a JSON-RPC request body."""
    return {"method": method, "params": dict(params)}


def error_name(error: Mapping[str, Any]) -> str:
    """Extract the exception type name from a JSON-RPC error object.

    The service reports it either as ``error.data.type`` or as the
    ``name`` of the first entry in ``error.errors``.
    """
    data = error.get("data")
    if isinstance(data, Mapping) and data.get("type"):
        return str(data["type"])
    errors = error.get("errors")
    if isinstance(errors, list):
        for item in errors:
            if isinstance(item, Mapping) and item.get("name"):
                return str(item["name"])
    return str(error.get("name") or "")


def _raise_for_error(*, method: str, error: Any, authenticated: bool) -> None:
    if not isinstance(error, Mapping):
        raise FleetSyncMalformedResponseError(
            f"{method} returned a non-object error: {str(error)[:128]}",
            code="invalid_error",
            method=method,
        )
    name = error_name(error)
    message = str(error.get("message", ""))
    if name in SESSION_EXPIRED_ERROR_NAMES and authenticated:
        raise FleetSyncSessionExpiredError(f"{method} failed: {name} {message}", code=name, method=method)
    if name in AUTH_ERROR_NAMES:
        raise FleetSyncAuthenticationError(f"{method} failed: {name} {message}", code=name, method=method)
    if name in QUOTA_ERROR_NAMES:
        raise FleetSyncQuotaError(f"{method} failed: {name} {message}", code=name, method=method)
    raise FleetSyncApiError(f"{method} failed: {name or 'error'} {message}", code=name, method=method)


async def call_method(
    *,
    transport: Transport,
    url: str,
    method: str,
    params: Mapping[str, Any],
    authenticated: bool = False,
) -> Any:
    """Post a JSON-RPC call and return its ``result`` member.

    This is a thin helper for endpoint modules; it intentionally returns `Any`
    since the service returns objects, lists or scalars depending on the method.
    """
    response = await transport.post_json(url, build_request(method, params))
    if "error" in response:
        _raise_for_error(method=method, error=response["error"], authenticated=authenticated)
    if "result" not in response:
        raise FleetSyncMalformedResponseError(
            f"{method} response has neither 'result' nor 'error'",
            code="missing_result",
            method=method,
        )
    return response["result"]


async def call_authenticated(
    *,
    session: Session,
    transport: Transport,
    method: str,
    params: Mapping[str, Any],
) -> Any:
    """Post a call carrying the session credentials."""
    return await call_method(
        transport=transport,
        url=session.base_url,
        method=method,
        params={**params, "credentials": session.credentials()},
        authenticated=True,
    )
