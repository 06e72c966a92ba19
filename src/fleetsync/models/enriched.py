"""Enriched output record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from fleetsync.ingestion.normalize import format_timestamp


def _cell(value: float | str | None) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True, slots=True)
class EnrichedRecord:
    """A position sample with its matched odometer value, if any.

    Equality and hashing use only the logical key ``(entity_id, timestamp)``:
    two records with the same key describe the same fact.
    """

    entity_id: str
    timestamp: datetime
    vin: str | None = field(default=None, compare=False)
    name: str | None = field(default=None, compare=False)
    latitude: float | None = field(default=None, compare=False)
    longitude: float | None = field(default=None, compare=False)
    speed: float | None = field(default=None, compare=False)
    odometer: float | None = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, datetime]:
        """Deduplication key used by the sink."""
        return (self.entity_id, self.timestamp)

    @property
    def has_odometer(self) -> bool:
        return self.odometer is not None

    def to_csv_row(self) -> list[str]:
        """Row matching :data:`fleetsync._constants.CSV_HEADER`; absent values are empty cells."""
        return [
            self.entity_id,
            format_timestamp(self.timestamp),
            _cell(self.vin),
            _cell(self.name),
            _cell(self.latitude),
            _cell(self.longitude),
            _cell(self.speed),
            _cell(self.odometer),
        ]
