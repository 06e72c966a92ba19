"""High-level async client for the telemetry JSON-RPC API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import aiohttp

from fleetsync._api import devices as _devices_api
from fleetsync._api import feeds as _feeds_api
from fleetsync._api.login import authenticate
from fleetsync._transport import JsonRpcTransport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncAuthenticationError, FleetSyncError, FleetSyncSessionExpiredError
from fleetsync.models.device import Device
from fleetsync.models.feed import FeedKind
from fleetsync.models.records import LogRecord, StatusData
from fleetsync.session import Session

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FleetClient:
    """Async client for the telemetry API.

    Safe to share between concurrent tasks: at most one login runs at a
    time, and a rejected session only clears itself, never a newer one.

    Usage::

        async with FleetClient(config) as client:
            devices = await client.get_devices()
            records, version = await client.get_feed(FeedKind.POSITION, devices[0].id)
    """

    def __init__(
        self,
        config: FleetSyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: JsonRpcTransport | None = None
        self._session: Session | None = None
        self._login_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = JsonRpcTransport(
            self._http_session,
            timeout=self._config.request_timeout,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    @property
    def config(self) -> FleetSyncConfig:
        return self._config

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self) -> Session:
        """Authenticate and store a fresh session."""
        transport = self._require_transport()
        async with self._login_lock:
            self._session = await authenticate(self._config, transport)
            return self._session

    async def ensure_session(self) -> Session:
        """Return an active session, re-authenticating if expired or invalidated.

        Concurrent callers waiting on a login reuse its session instead of
        logging in again.
        """
        session = self._session
        if session is not None and not session.is_expired:
            return session
        async with self._login_lock:
            session = self._session
            if session is not None and not session.is_expired:
                return session
            self._session = await authenticate(self._config, self._require_transport())
            return self._session

    def invalidate_session(self, session: Session | None = None) -> None:
        """Force session invalidation (next call will re-authenticate).

        When *session* is given, the current session is only dropped if it
        is that one; a rejection of an older session is ignored.
        """
        current = self._session
        if current is None:
            return
        if session is not None and session is not current:
            _logger.debug("Ignoring rejection of a superseded session for %s", session.user_name)
            return
        _logger.info("Invalidating session for %s", current.user_name)
        self._session = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> JsonRpcTransport:
        if self._transport is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._transport

    async def _call_with_reauth(self, fn: Callable[[Session], Awaitable[T]]) -> T:
        """Run an API call, retrying once on session expiry."""
        session = await self.ensure_session()
        try:
            return await fn(session)
        except FleetSyncSessionExpiredError:
            self.invalidate_session(session)
            return await fn(await self.ensure_session())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_devices(self) -> list[Device]:
        """Discover every device visible to the account."""

        async def _fetch(session: Session) -> list[Device]:
            return await _devices_api.fetch_devices(session, self._require_transport())

        return await self._call_with_reauth(_fetch)

    async def get_feed(
        self,
        kind: FeedKind,
        entity_id: str,
        *,
        from_version: str | None = None,
        from_date: datetime | None = None,
    ) -> tuple[tuple[LogRecord | StatusData, ...], str]:
        """Fetch one feed page for one entity.

        A rejected session is invalidated and the error raised to the caller
        rather than retried here; the next call logs in again.
        """
        session = await self.ensure_session()
        try:
            return await _feeds_api.fetch_feed(
                session,
                self._require_transport(),
                kind,
                entity_id,
                from_version=from_version,
                from_date=from_date,
                results_limit=self._config.results_limit,
            )
        except FleetSyncAuthenticationError:
            self.invalidate_session(session)
            raise
