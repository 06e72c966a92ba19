"""Incremental feed endpoint.

Method:
  - GetFeed (typeName="LogRecord" for positions, "StatusData" filtered to
    the odometer diagnostic for odometer readings)

A feed is resumed with ``fromVersion`` (the ``toVersion`` of the previous
page). Without a version the request is bounded by ``search.fromDate``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from fleetsync._api._common import call_authenticated
from fleetsync._constants import ODOMETER_DIAGNOSTIC_ID
from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncMalformedResponseError
from fleetsync.ingestion.normalize import format_timestamp
from fleetsync.models.feed import FeedKind
from fleetsync.models.records import LogRecord, StatusData
from fleetsync.session import Session

_logger = logging.getLogger(__name__)


def build_feed_params(
    kind: FeedKind,
    entity_id: str,
    *,
    from_version: str | None,
    from_date: datetime | None,
    results_limit: int,
) -> dict[str, Any]:
    """Build the ``params`` object for a GetFeed call.

    Exactly one of *from_version* and *from_date* is expected; when both are
    given the version wins.
    """
    search: dict[str, Any] = {"deviceSearch": {"id": entity_id}}
    if kind is FeedKind.ODOMETER:
        search["diagnosticSearch"] = {"id": ODOMETER_DIAGNOSTIC_ID}

    params: dict[str, Any] = {
        "typeName": kind.type_name,
        "resultsLimit": results_limit,
    }
    if from_version:
        params["fromVersion"] = from_version
    elif from_date is not None:
        search["fromDate"] = format_timestamp(from_date)
    params["search"] = search
    return params


def parse_feed_result(
    kind: FeedKind,
    result: Any,
    *,
    entity_id: str = "",
) -> tuple[tuple[LogRecord | StatusData, ...], str]:
    """Parse a GetFeed result into (records, toVersion).

    Records that fail validation or carry no timestamp are dropped with a
    warning; a result with the wrong shape raises.

    Raises
    ------
    FleetSyncMalformedResponseError
        If ``result`` is not an object, ``data`` is not a list or
        ``toVersion`` is missing.
    """
    if not isinstance(result, dict):
        raise FleetSyncMalformedResponseError(
            f"GetFeed {kind.type_name} result is not an object",
            code="invalid_result",
            method="GetFeed",
        )
    data = result.get("data")
    if not isinstance(data, list):
        raise FleetSyncMalformedResponseError(
            f"GetFeed {kind.type_name} result.data is not a list",
            code="invalid_data",
            method="GetFeed",
        )
    to_version = result.get("toVersion")
    if isinstance(to_version, int) and not isinstance(to_version, bool):
        to_version = str(to_version)
    if not isinstance(to_version, str) or not to_version:
        raise FleetSyncMalformedResponseError(
            f"GetFeed {kind.type_name} result has no toVersion",
            code="missing_version",
            method="GetFeed",
        )

    model: type[LogRecord] | type[StatusData] = LogRecord if kind is FeedKind.POSITION else StatusData
    records: list[LogRecord | StatusData] = []
    dropped = 0
    for item in data:
        try:
            record = model.model_validate(item)
        except ValidationError:
            dropped += 1
            continue
        if record.date_time is None:
            dropped += 1
            continue
        if record.device_id is not None and entity_id and record.device_id != entity_id:
            dropped += 1
            continue
        records.append(record)

    if dropped:
        _logger.warning(
            "Dropped %d unusable %s record(s) for %s",
            dropped,
            kind.type_name,
            entity_id or "<unknown>",
        )
    return tuple(records), to_version


async def fetch_feed(
    session: Session,
    transport: Transport,
    kind: FeedKind,
    entity_id: str,
    *,
    from_version: str | None,
    from_date: datetime | None,
    results_limit: int,
) -> tuple[tuple[LogRecord | StatusData, ...], str]:
    """Fetch one feed page for one entity."""
    params = build_feed_params(
        kind,
        entity_id,
        from_version=from_version,
        from_date=from_date,
        results_limit=results_limit,
    )
    result = await call_authenticated(
        session=session,
        transport=transport,
        method="GetFeed",
        params=params,
    )
    records, to_version = parse_feed_result(kind, result, entity_id=entity_id)
    _logger.debug(
        "GetFeed %s entity=%s from_version=%s records=%d to_version=%s",
        kind.type_name,
        entity_id,
        from_version,
        len(records),
        to_version,
    )
    return records, to_version
