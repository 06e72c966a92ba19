"""fleetsync - Incremental fleet telemetry sync with odometer correlation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsync.client import FleetClient
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import (
    FleetSyncApiError,
    FleetSyncAuthenticationError,
    FleetSyncConfigError,
    FleetSyncError,
    FleetSyncMalformedResponseError,
    FleetSyncQuotaError,
    FleetSyncSessionExpiredError,
    FleetSyncTransportError,
    PersistenceError,
    SinkWriteError,
)
from fleetsync.models import (
    Device,
    EnrichedRecord,
    FailureKind,
    FeedBatch,
    FeedKind,
    FetchFailure,
    LogRecord,
    StatusData,
)
from fleetsync.state import CursorStore
from fleetsync.sync.correlator import correlate
from fleetsync.sync.rotation import CallBudget, RotationPolicy
from fleetsync.sync.service import CycleSummary, SyncService
from fleetsync.sync.sink import CsvSink

__all__ = [
    "__version__",
    "CallBudget",
    "CsvSink",
    "CursorStore",
    "CycleSummary",
    "Device",
    "EnrichedRecord",
    "FailureKind",
    "FeedBatch",
    "FeedKind",
    "FetchFailure",
    "FleetClient",
    "FleetSyncApiError",
    "FleetSyncAuthenticationError",
    "FleetSyncConfig",
    "FleetSyncConfigError",
    "FleetSyncError",
    "FleetSyncMalformedResponseError",
    "FleetSyncQuotaError",
    "FleetSyncSessionExpiredError",
    "FleetSyncTransportError",
    "LogRecord",
    "PersistenceError",
    "RotationPolicy",
    "StatusData",
    "SinkWriteError",
    "SyncService",
    "correlate",
]
