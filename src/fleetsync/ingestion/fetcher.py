"""Cursor-bounded feed fetching with classified results.

:class:`FeedFetcher` wraps the client's GetFeed call and turns every
expected failure into a :class:`~fleetsync.models.feed.FetchFailure`, so a
cycle can treat one rejected call as data rather than unwinding through
exception handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from fleetsync.exceptions import (
    FleetSyncApiError,
    FleetSyncAuthenticationError,
    FleetSyncMalformedResponseError,
    FleetSyncQuotaError,
    FleetSyncTransportError,
)
from fleetsync.models.feed import FailureKind, FeedBatch, FeedKind, FetchFailure, FetchResult
from fleetsync.models.records import LogRecord, StatusData
from fleetsync.sync.rotation import CallBudget

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FeedClient(Protocol):
    async def get_feed(
        self,
        kind: FeedKind,
        entity_id: str,
        *,
        from_version: str | None = None,
        from_date: datetime | None = None,
    ) -> tuple[tuple[LogRecord | StatusData, ...], str]: ...


def classify(exc: Exception) -> FailureKind | None:
    """Map a client exception to a failure kind; ``None`` for unexpected errors."""
    if isinstance(exc, FleetSyncAuthenticationError):
        return FailureKind.AUTH
    if isinstance(exc, FleetSyncQuotaError):
        return FailureKind.QUOTA
    if isinstance(exc, FleetSyncMalformedResponseError):
        return FailureKind.MALFORMED
    if isinstance(exc, (FleetSyncTransportError, FleetSyncApiError)):
        return FailureKind.TRANSPORT
    return None


class FeedFetcher:
    """Fetch new records for one entity/feed, resuming from its cursor.

    Without a cursor the request covers only the last *lookback* of history.
    """

    def __init__(
        self,
        client: FeedClient,
        *,
        lookback: timedelta,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._lookback = lookback
        self._clock = clock

    async def fetch(
        self,
        entity_id: str,
        kind: FeedKind,
        cursor: str | None,
        *,
        budget: CallBudget | None = None,
    ) -> FetchResult:
        if budget is not None and not budget.try_acquire():
            _logger.warning("Call budget exhausted; skipping %s feed for %s", kind, entity_id)
            return FetchFailure(entity_id, kind, FailureKind.QUOTA, "call budget exhausted")

        from_date = None if cursor else self._clock() - self._lookback
        try:
            records, to_version = await self._client.get_feed(
                kind,
                entity_id,
                from_version=cursor,
                from_date=from_date,
            )
        except (FleetSyncApiError, FleetSyncTransportError) as exc:
            failure = classify(exc) or FailureKind.TRANSPORT
            _logger.warning("Fetching %s feed for %s failed (%s): %s", kind, entity_id, failure, exc)
            return FetchFailure(entity_id, kind, failure, str(exc))

        return FeedBatch(entity_id=entity_id, kind=kind, cursor=to_version, records=records)
