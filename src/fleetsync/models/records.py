"""Raw feed record models.

Both models are immutable and exist only for one cycle's in-memory
processing; nothing here is persisted.
"""

from __future__ import annotations

from typing import ClassVar

from fleetsync.models._base import FleetBaseModel, FleetFloat, FleetTimestamp


class LogRecord(FleetBaseModel):
    """A position sample from the ``LogRecord`` feed."""

    _ID_REFERENCES: ClassVar[tuple[str, ...]] = ("device",)

    id: str | None = None
    device_id: str | None = None
    date_time: FleetTimestamp = None
    latitude: FleetFloat = None
    longitude: FleetFloat = None
    speed: FleetFloat = None


class StatusData(FleetBaseModel):
    """A diagnostic reading from the ``StatusData`` feed.

    Fetched with the odometer diagnostic filter, so ``data`` holds the
    odometer value as delivered by the service.
    """

    _ID_REFERENCES: ClassVar[tuple[str, ...]] = ("device", "diagnostic")

    id: str | None = None
    device_id: str | None = None
    diagnostic_id: str | None = None
    date_time: FleetTimestamp = None
    data: FleetFloat = None
