"""Feed kinds and per-fetch result types.

A fetch either succeeds with a :class:`FeedBatch` or fails with a
:class:`FetchFailure` carrying a :class:`FailureKind`. The cycle
consumes these values instead of catching exceptions per call site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from fleetsync._constants import LOG_RECORD_TYPE_NAME, STATUS_DATA_TYPE_NAME
from fleetsync.models.records import LogRecord, StatusData


class FeedKind(StrEnum):
    POSITION = "position"
    ODOMETER = "odometer"

    @property
    def type_name(self) -> str:
        """Remote entity type fetched for this feed."""
        if self is FeedKind.POSITION:
            return LOG_RECORD_TYPE_NAME
        return STATUS_DATA_TYPE_NAME


class FailureKind(StrEnum):
    AUTH = "auth"
    QUOTA = "quota"
    MALFORMED = "malformed"
    TRANSPORT = "transport"


@dataclass(frozen=True, slots=True)
class FeedBatch:
    """New records for one entity/feed plus the cursor to persist.

    ``records`` keeps arrival order; it is not assumed to be time-sorted.
    An empty batch is a normal outcome.
    """

    entity_id: str
    kind: FeedKind
    cursor: str
    records: tuple[LogRecord | StatusData, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """A classified fetch failure; the entity's cursor must not advance."""

    entity_id: str
    kind: FeedKind
    failure: FailureKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


FetchResult = FeedBatch | FetchFailure
