from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp
import pytest

from fleetsync._api._common import call_authenticated, call_method, error_name
from fleetsync._api.devices import parse_devices
from fleetsync._api.feeds import build_feed_params, fetch_feed, parse_feed_result
from fleetsync._api.login import authenticate, resolve_server_url
from fleetsync._transport import JsonRpcTransport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import (
    FleetSyncApiError,
    FleetSyncAuthenticationError,
    FleetSyncMalformedResponseError,
    FleetSyncQuotaError,
    FleetSyncSessionExpiredError,
    FleetSyncTransportError,
)
from fleetsync.models.feed import FeedKind
from fleetsync.models.records import LogRecord, StatusData
from fleetsync.session import Session


@dataclass
class FakeTransport:
    responses: list[dict[str, Any]]
    requests: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        self.requests.append((url, dict(payload)))
        return self.responses.pop(0)


def _session() -> Session:
    return Session(database="fleet", user_name="ops@example.com", session_id="sid-1", base_url="https://my4.geotab.com/apiv1")


def _error(name: str, message: str = "boom") -> dict[str, Any]:
    return {"error": {"message": message, "data": {"type": name}}}


# ---------------------------------------------------------------------------
# JSON-RPC envelope and error mapping
# ---------------------------------------------------------------------------


def test_error_name_reads_data_type_or_errors_list() -> None:
    assert error_name({"data": {"type": "OverLimitException"}}) == "OverLimitException"
    assert error_name({"errors": [{"name": "InvalidUserException"}]}) == "InvalidUserException"
    assert error_name({"message": "?"}) == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("InvalidUserException", FleetSyncAuthenticationError),
        ("OverLimitException", FleetSyncQuotaError),
        ("DbUnavailableException", FleetSyncApiError),
    ],
)
async def test_call_method_maps_error_names(name: str, expected: type[Exception]) -> None:
    transport = FakeTransport([_error(name)])

    with pytest.raises(expected) as excinfo:
        await call_method(transport=transport, url="https://x/apiv1", method="Get", params={})

    assert excinfo.value.code == name  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_session_expired_only_after_login() -> None:
    with pytest.raises(FleetSyncSessionExpiredError):
        await call_authenticated(
            session=_session(),
            transport=FakeTransport([_error("SessionExpiredException")]),
            method="GetFeed",
            params={},
        )

    with pytest.raises(FleetSyncAuthenticationError) as excinfo:
        await call_method(
            transport=FakeTransport([_error("SessionExpiredException")]),
            url="https://x/apiv1",
            method="Authenticate",
            params={},
        )
    assert not isinstance(excinfo.value, FleetSyncSessionExpiredError)


@pytest.mark.asyncio
async def test_missing_result_is_malformed() -> None:
    with pytest.raises(FleetSyncMalformedResponseError):
        await call_method(transport=FakeTransport([{"jsonrpc": "2.0"}]), url="https://x/apiv1", method="Get", params={})


@pytest.mark.asyncio
async def test_authenticated_call_carries_credentials_to_session_server() -> None:
    transport = FakeTransport([{"result": []}])

    await call_authenticated(session=_session(), transport=transport, method="Get", params={"typeName": "Device"})

    url, payload = transport.requests[0]
    assert url == "https://my4.geotab.com/apiv1"
    assert payload == {
        "method": "Get",
        "params": {
            "typeName": "Device",
            "credentials": {"database": "fleet", "userName": "ops@example.com", "sessionId": "sid-1"},
        },
    }


# ---------------------------------------------------------------------------
# Authenticate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (None, "https://my.geotab.com/apiv1"),
        ("", "https://my.geotab.com/apiv1"),
        ("ThisServer", "https://my.geotab.com/apiv1"),
        ("my4.geotab.com", "https://my4.geotab.com/apiv1"),
        ("https://my5.geotab.com/", "https://my5.geotab.com/apiv1"),
    ],
)
def test_resolve_server_url(path: str | None, expected: str) -> None:
    assert resolve_server_url("https://my.geotab.com/apiv1", path) == expected


@pytest.mark.asyncio
async def test_authenticate_follows_server_redirect() -> None:
    config = FleetSyncConfig(username="ops@example.com", password="pw", database="fleet")
    transport = FakeTransport(
        [
            {
                "result": {
                    "credentials": {"database": "fleet", "userName": "ops@example.com", "sessionId": "sid-9"},
                    "path": "my4.geotab.com",
                }
            }
        ]
    )

    session = await authenticate(config, transport)

    assert session.session_id == "sid-9"
    assert session.base_url == "https://my4.geotab.com/apiv1"
    url, payload = transport.requests[0]
    assert url == config.base_url
    assert payload["method"] == "Authenticate"
    assert payload["params"] == {"database": "fleet", "userName": "ops@example.com", "password": "pw"}


@pytest.mark.asyncio
async def test_authenticate_without_session_id_fails() -> None:
    config = FleetSyncConfig(username="ops@example.com", password="pw", database="fleet")
    transport = FakeTransport([{"result": {"credentials": {"database": "fleet", "userName": "ops@example.com"}}}])

    with pytest.raises(FleetSyncAuthenticationError):
        await authenticate(config, transport)


# ---------------------------------------------------------------------------
# Device discovery
# ---------------------------------------------------------------------------


def test_parse_devices_skips_entries_without_id_and_duplicates() -> None:
    devices = parse_devices(
        [
            {"id": "b1", "name": "Truck 1", "vehicleIdentificationNumber": "VIN1"},
            {"name": "no id"},
            {"id": "b1", "name": "dup"},
            {"id": "b2", "vehicleIdentificationNumber": ""},
        ]
    )

    assert [(d.id, d.name, d.vin) for d in devices] == [("b1", "Truck 1", "VIN1"), ("b2", None, None)]


def test_parse_devices_requires_a_list() -> None:
    with pytest.raises(FleetSyncMalformedResponseError):
        parse_devices({"data": []})


# ---------------------------------------------------------------------------
# GetFeed
# ---------------------------------------------------------------------------


def test_feed_params_with_version() -> None:
    params = build_feed_params(FeedKind.POSITION, "b1", from_version="42", from_date=None, results_limit=5000)

    assert params == {
        "typeName": "LogRecord",
        "resultsLimit": 5000,
        "fromVersion": "42",
        "search": {"deviceSearch": {"id": "b1"}},
    }


def test_odometer_feed_params_with_from_date() -> None:
    params = build_feed_params(
        FeedKind.ODOMETER,
        "b1",
        from_version=None,
        from_date=datetime(2026, 2, 28, 12, 0, tzinfo=UTC),
        results_limit=100,
    )

    assert params["typeName"] == "StatusData"
    assert "fromVersion" not in params
    assert params["search"] == {
        "deviceSearch": {"id": "b1"},
        "diagnosticSearch": {"id": "DiagnosticOdometerId"},
        "fromDate": "2026-02-28T12:00:00Z",
    }


def test_parse_feed_result_keeps_arrival_order_and_drops_unusable_records() -> None:
    records, to_version = parse_feed_result(
        FeedKind.POSITION,
        {
            "data": [
                {"id": "r2", "device": {"id": "b1"}, "dateTime": "2026-03-01T12:00:05.000Z", "latitude": 1.5},
                {"id": "r1", "device": {"id": "b1"}, "dateTime": "2026-03-01T12:00:00Z", "speed": "42"},
                {"id": "r3", "device": {"id": "b1"}},
                {"id": "r4", "device": {"id": "b9"}, "dateTime": "2026-03-01T12:00:00Z"},
            ],
            "toVersion": "0000000000abc",
        },
        entity_id="b1",
    )

    assert to_version == "0000000000abc"
    assert [r.id for r in records] == ["r2", "r1"]
    assert all(isinstance(r, LogRecord) for r in records)
    assert records[1].speed == 42.0


def test_parse_odometer_feed_flattens_references() -> None:
    records, to_version = parse_feed_result(
        FeedKind.ODOMETER,
        {
            "data": [
                {
                    "device": {"id": "b1"},
                    "diagnostic": {"id": "DiagnosticOdometerId"},
                    "dateTime": "2026-03-01T12:00:00Z",
                    "data": 123456.5,
                }
            ],
            "toVersion": 17,
        },
    )

    assert to_version == "17"
    assert isinstance(records[0], StatusData)
    assert records[0].device_id == "b1"
    assert records[0].diagnostic_id == "DiagnosticOdometerId"
    assert records[0].data == 123456.5


@pytest.mark.parametrize(
    "result",
    [
        [],
        {"toVersion": "1"},
        {"data": {}, "toVersion": "1"},
        {"data": []},
        {"data": [], "toVersion": ""},
    ],
)
def test_parse_feed_result_rejects_bad_shapes(result: Any) -> None:
    with pytest.raises(FleetSyncMalformedResponseError):
        parse_feed_result(FeedKind.POSITION, result)


@pytest.mark.asyncio
async def test_fetch_feed_posts_get_feed() -> None:
    transport = FakeTransport([{"result": {"data": [], "toVersion": "9"}}])

    records, to_version = await fetch_feed(
        _session(),
        transport,
        FeedKind.POSITION,
        "b1",
        from_version="8",
        from_date=None,
        results_limit=10,
    )

    assert records == ()
    assert to_version == "9"
    assert transport.requests[0][1]["method"] == "GetFeed"
    assert transport.requests[0][1]["params"]["fromVersion"] == "8"


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeHttpSession:
    def __init__(self, status: int = 200, text: str = "{}", error: BaseException | None = None) -> None:
        self.status = status
        self.text = text
        self.error = error
        self.bodies: list[str] = []

    def post(self, url: str, *, data: str, headers: dict[str, str], timeout: Any) -> _FakeResponse:
        self.bodies.append(data)
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.text)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("http", "expected"),
    [
        (_FakeHttpSession(status=429, text="slow down"), FleetSyncQuotaError),
        (_FakeHttpSession(status=401, text="no"), FleetSyncAuthenticationError),
        (_FakeHttpSession(status=403, text="no"), FleetSyncAuthenticationError),
        (_FakeHttpSession(status=502, text="bad gateway"), FleetSyncTransportError),
        (_FakeHttpSession(text="<html>"), FleetSyncMalformedResponseError),
        (_FakeHttpSession(text="[1]"), FleetSyncMalformedResponseError),
        (_FakeHttpSession(error=aiohttp.ClientConnectionError("reset")), FleetSyncTransportError),
        (_FakeHttpSession(error=TimeoutError()), FleetSyncTransportError),
    ],
)
async def test_transport_maps_http_failures(http: _FakeHttpSession, expected: type[Exception]) -> None:
    transport = JsonRpcTransport(http, timeout=1.0)  # type: ignore[arg-type]

    with pytest.raises(expected):
        await transport.post_json("https://x/apiv1", {"method": "GetFeed", "params": {}})


@pytest.mark.asyncio
async def test_transport_returns_decoded_body_including_errors() -> None:
    http = _FakeHttpSession(text='{"error": {"message": "x"}}')
    transport = JsonRpcTransport(http, timeout=1.0)  # type: ignore[arg-type]

    body = await transport.post_json("https://x/apiv1", {"method": "Get", "params": {"typeName": "Device"}})

    assert body == {"error": {"message": "x"}}
    assert http.bodies == ['{"method":"Get","params":{"typeName":"Device"}}']
