"""Temporal correlation of position samples with odometer readings.

Each position sample is paired with the nearest odometer reading taken at
or before it, provided the gap is strictly below the match threshold.
Correlation only sees the records fetched for one entity in one cycle: a
sample whose nearest reading arrives in a later cycle keeps an empty
odometer. That boundary loss is accepted; it is not recovered with a
wider lookback.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from fleetsync.models.device import Device
from fleetsync.models.enriched import EnrichedRecord
from fleetsync.models.records import LogRecord, StatusData

_logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = timedelta(seconds=10)


def match_odometer(
    sample_time: datetime,
    reading_times: Sequence[datetime],
    readings: Sequence[StatusData],
    threshold: timedelta,
) -> StatusData | None:
    """Return the reading matched to a sample taken at *sample_time*.

    *reading_times* must be sorted ascending and aligned with *readings*.
    The eligible reading closest to the sample is the last one not later
    than it; among readings sharing that timestamp the first in sorted
    order wins. A gap equal to *threshold* is not a match.
    """
    idx = bisect.bisect_right(reading_times, sample_time)
    if idx == 0:
        return None
    nearest = reading_times[idx - 1]
    if sample_time - nearest >= threshold:
        return None
    return readings[bisect.bisect_left(reading_times, nearest)]


def correlate(
    device: Device,
    positions: Sequence[LogRecord],
    odometers: Sequence[StatusData],
    *,
    threshold: timedelta = DEFAULT_MATCH_THRESHOLD,
) -> list[EnrichedRecord]:
    """Produce one enriched record per position sample, in sample order.

    Records without a timestamp are skipped; the parser normally drops them
    before they get here.
    """
    readings = sorted(
        (reading for reading in odometers if reading.date_time is not None and reading.data is not None),
        key=lambda reading: reading.date_time,  # type: ignore[arg-type,return-value]
    )
    reading_times = [reading.date_time for reading in readings]

    enriched: list[EnrichedRecord] = []
    matched = 0
    for sample in positions:
        if sample.date_time is None:
            continue
        reading = match_odometer(sample.date_time, reading_times, readings, threshold)  # type: ignore[arg-type]
        if reading is not None:
            matched += 1
        enriched.append(
            EnrichedRecord(
                entity_id=device.id,
                timestamp=sample.date_time,
                vin=device.vin,
                name=device.name,
                latitude=sample.latitude,
                longitude=sample.longitude,
                speed=sample.speed,
                odometer=reading.data if reading is not None else None,
            )
        )

    _logger.debug(
        "Correlated %s: %d sample(s), %d reading(s), %d matched",
        device.label,
        len(enriched),
        len(readings),
        matched,
    )
    return enriched
