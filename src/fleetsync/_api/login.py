"""Authenticate endpoint.

Method:
  - Authenticate
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

from fleetsync._api._common import call_method
from fleetsync._constants import THIS_SERVER
from fleetsync._redact import redact_for_log
from fleetsync._transport import Transport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncAuthenticationError, FleetSyncMalformedResponseError
from fleetsync.session import Session

_logger = logging.getLogger(__name__)


def build_login_params(config: FleetSyncConfig) -> dict[str, Any]:
    """Build the ``params`` object for the Authenticate method."""
    return {
        "database": config.database,
        "userName": config.username,
        "password": config.password,
    }


def resolve_server_url(base_url: str, path: str | None) -> str:
    """Return the endpoint that owns the session.

    Authenticate answers with ``path`` set to ``"ThisServer"`` when the
    login server also hosts the database, or to another host name the
    client must switch to.
    """
    if not path or path == THIS_SERVER:
        return base_url
    host = path.strip().strip("/")
    if "://" in host:
        host = urlsplit(host).netloc or host
    api_path = urlsplit(base_url).path or "/apiv1"
    return f"https://{host}{api_path}"


def parse_login_result(result: Any, *, base_url: str, ttl: float) -> Session:
    """Parse the Authenticate result into a :class:`Session`.

    Raises
    ------
    FleetSyncMalformedResponseError
        If the result is not an object.
    FleetSyncAuthenticationError
        If the result is missing its credentials.
    """
    _logger.debug("Authenticate result=%s", redact_for_log(result))
    if not isinstance(result, dict):
        raise FleetSyncMalformedResponseError(
            "Authenticate result is not an object",
            code="invalid_result",
            method="Authenticate",
        )
    credentials = result.get("credentials")
    if (
        not isinstance(credentials, dict)
        or not credentials.get("sessionId")
        or not credentials.get("userName")
        or not credentials.get("database")
    ):
        raise FleetSyncAuthenticationError(
            "Authenticate response missing credential fields",
            method="Authenticate",
        )

    path = result.get("path")
    return Session(
        database=str(credentials["database"]),
        user_name=str(credentials["userName"]),
        session_id=str(credentials["sessionId"]),
        base_url=resolve_server_url(base_url, str(path) if path is not None else None),
        ttl=ttl,
    )


async def authenticate(config: FleetSyncConfig, transport: Transport) -> Session:
    """Log in and return a new session."""
    result = await call_method(
        transport=transport,
        url=config.base_url,
        method="Authenticate",
        params=build_login_params(config),
    )
    ttl = config.session_ttl if config.session_ttl > 0 else float("inf")
    session = parse_login_result(result, base_url=config.base_url, ttl=ttl)
    _logger.info("Authenticated as %s on %s", session.user_name, session.base_url)
    return session
