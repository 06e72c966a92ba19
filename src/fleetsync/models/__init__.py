"""Data models for telemetry entities and sync results."""

from fleetsync.models._base import FleetBaseModel, FleetFloat, FleetTimestamp
from fleetsync.models.device import Device
from fleetsync.models.enriched import EnrichedRecord
from fleetsync.models.feed import FailureKind, FeedBatch, FeedKind, FetchFailure, FetchResult
from fleetsync.models.records import LogRecord, StatusData

__all__ = [
    "Device",
    "EnrichedRecord",
    "FailureKind",
    "FeedBatch",
    "FeedKind",
    "FetchFailure",
    "FetchResult",
    "FleetBaseModel",
    "FleetFloat",
    "FleetTimestamp",
    "LogRecord",
    "StatusData",
]
