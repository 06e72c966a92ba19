from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from fleetsync.ingestion.normalize import format_timestamp, parse_timestamp, safe_float, safe_str


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-03-01T12:00:00Z", datetime(2026, 3, 1, 12, 0, tzinfo=UTC)),
        ("2026-03-01T12:00:00.250Z", datetime(2026, 3, 1, 12, 0, 0, 250_000, tzinfo=UTC)),
        ("2026-03-01T14:00:00+02:00", datetime(2026, 3, 1, 12, 0, tzinfo=UTC)),
        ("2026-03-01T12:00:00", datetime(2026, 3, 1, 12, 0, tzinfo=UTC)),
        (1_772_366_400, datetime(2026, 3, 1, 12, 0, tzinfo=UTC)),
        (1_772_366_400_000, datetime(2026, 3, 1, 12, 0, tzinfo=UTC)),
    ],
)
def test_parse_timestamp_accepts_api_formats(value: object, expected: datetime) -> None:
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", True, 0, -5, float("nan"), object()])
def test_parse_timestamp_rejects_garbage(value: object) -> None:
    assert parse_timestamp(value) is None


def test_parse_timestamp_converts_aware_datetimes_to_utc() -> None:
    local = datetime(2026, 3, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert parse_timestamp(local) == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    assert parse_timestamp(local).tzinfo is UTC  # type: ignore[union-attr]


def test_format_timestamp_keeps_milliseconds_only_when_present() -> None:
    assert format_timestamp(datetime(2026, 3, 1, 12, 0, tzinfo=UTC)) == "2026-03-01T12:00:00Z"
    assert format_timestamp(datetime(2026, 3, 1, 12, 0, 0, 250_000, tzinfo=UTC)) == "2026-03-01T12:00:00.250Z"


def test_safe_float_and_safe_str() -> None:
    assert safe_float("12.5") == 12.5
    assert safe_float("n/a") is None
    assert safe_float(float("inf")) is None
    assert safe_float(False) is None
    assert safe_str("  b1 ") == "b1"
    assert safe_str("   ") is None
    assert safe_str(7) == "7"
