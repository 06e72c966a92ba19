"""Custom exception hierarchy for fleetsync."""

from __future__ import annotations


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors."""


class FleetSyncConfigError(FleetSyncError):
    """Invalid or missing configuration."""


class FleetSyncTransportError(FleetSyncError):
    """HTTP-level failure (network, timeout, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str = "",
    ) -> None:
        self.status_code = status_code
        self.method = method
        super().__init__(message)


class FleetSyncApiError(FleetSyncError):
    """API returned a JSON-RPC error object (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        method: str = "",
    ) -> None:
        self.code = code
        self.method = method
        super().__init__(message)


class FleetSyncAuthenticationError(FleetSyncApiError):
    """Login failed or the session credentials were rejected."""


class FleetSyncSessionExpiredError(FleetSyncAuthenticationError):
    """Session id rejected by the server.

    Raised when a post-login call fails with ``SessionExpiredException``.
    Callers invalidate the session so the next call logs in again.
    """


class FleetSyncQuotaError(FleetSyncApiError):
    """Call rejected because a rate limit was exceeded (``OverLimitException`` / HTTP 429)."""


class FleetSyncMalformedResponseError(FleetSyncApiError):
    """Response did not have the expected shape."""


class PersistenceError(FleetSyncError):
    """Cursor state could not be read or written."""


class PersistenceLoadError(PersistenceError):
    """Persisted cursor state is unreadable (missing permissions, corrupt document)."""


class PersistenceFlushError(PersistenceError):
    """Cursor state could not be written to durable storage."""


class SinkWriteError(FleetSyncError):
    """Enriched records could not be appended to the output sink."""

    def __init__(self, message: str, *, entity_id: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message)
