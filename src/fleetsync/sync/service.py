"""Poll-and-correlate cycle and its periodic trigger.

:class:`SyncService` owns every piece of state a cycle touches (devices,
cursor store, rotation, sink) and passes it explicitly; nothing lives in
module globals. One cycle:

1. pick this cycle's entities from the rotation,
2. fetch both feeds of each entity concurrently under the call budget,
3. advance cursors for successful fetches only,
4. correlate and append enriched records to the sink,
5. flush cursors and log a summary.

Failures are contained per entity and feed; nothing short of a bug in this
module stops the periodic trigger.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncApiError, FleetSyncTransportError, SinkWriteError
from fleetsync.ingestion.fetcher import FeedClient, FeedFetcher
from fleetsync.models.device import Device
from fleetsync.models.enriched import EnrichedRecord
from fleetsync.models.feed import FailureKind, FeedBatch, FeedKind, FetchFailure, FetchResult
from fleetsync.models.records import LogRecord, StatusData
from fleetsync.state.cursors import CursorStore
from fleetsync.sync.correlator import correlate
from fleetsync.sync.rotation import CallBudget, RotationPolicy
from fleetsync.sync.sink import CsvSink

_logger = logging.getLogger(__name__)

SINK_FAILURE = "sink"
LOGIN_FAILURE = "login"
ERROR_FAILURE = "error"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncClient(FeedClient, Protocol):
    async def ensure_session(self) -> object: ...


class DiscoveringClient(SyncClient, Protocol):
    async def get_devices(self) -> list[Device]: ...


class EnrichedSink(Protocol):
    def write(self, entity_id: str, records: Sequence[EnrichedRecord]) -> int: ...


@dataclass
class EntityOutcome:
    """What one entity contributed to a cycle."""

    entity_id: str
    fetched: Counter[str] = field(default_factory=Counter)
    failures: Counter[str] = field(default_factory=Counter)
    enriched: int = 0
    written: int = 0


@dataclass
class CycleSummary:
    """Per-cycle counters, logged once at the end of the cycle."""

    cycle: int
    entities_attempted: int = 0
    records_fetched: Counter[str] = field(default_factory=Counter)
    records_enriched: int = 0
    records_written: int = 0
    failures: Counter[str] = field(default_factory=Counter)
    cursors_flushed: bool = True
    aborted: bool = False

    def add(self, outcome: EntityOutcome) -> None:
        self.records_fetched.update(outcome.fetched)
        self.failures.update(outcome.failures)
        self.records_enriched += outcome.enriched
        self.records_written += outcome.written

    def describe(self) -> str:
        fetched = ", ".join(f"{kind}={self.records_fetched.get(kind, 0)}" for kind in FeedKind)
        failures = ", ".join(f"{kind}={count}" for kind, count in sorted(self.failures.items())) or "none"
        return (
            f"cycle {self.cycle}: {self.entities_attempted} entities attempted, fetched {fetched}, "
            f"{self.records_enriched} enriched, {self.records_written} written, failures: {failures}, "
            f"cursors {'flushed' if self.cursors_flushed else 'NOT flushed'}"
            f"{' (aborted)' if self.aborted else ''}"
        )


class SyncService:
    """Runs sync cycles for a fixed set of devices."""

    def __init__(
        self,
        client: SyncClient,
        devices: Sequence[Device],
        cursors: CursorStore,
        sink: EnrichedSink,
        *,
        config: FleetSyncConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._config = config
        self._devices: dict[str, Device] = {device.id: device for device in devices}
        self._cursors = cursors
        self._sink = sink
        self._rotation = RotationPolicy(
            self._devices,
            max_calls_per_cycle=config.max_calls_per_cycle,
            calls_per_entity=len(FeedKind),
        )
        self._fetcher = FeedFetcher(client, lookback=timedelta(seconds=config.lookback), clock=clock)
        self._threshold = timedelta(seconds=config.match_threshold)
        self._semaphore = asyncio.Semaphore(config.max_concurrency)
        self._cycle_lock = asyncio.Lock()
        self._cycles = 0

    @classmethod
    async def create(cls, client: DiscoveringClient, config: FleetSyncConfig) -> SyncService:
        """Discover devices, load persisted cursors and build a service.

        Parameters
        ----------
        client
            An open client. Devices are discovered once, here.
        config
            Runtime settings; ``cursor_path`` and ``output_dir`` locate the
            cursor file and the CSV files.
        """
        devices = await client.get_devices()
        _logger.info("Discovered %d device(s)", len(devices))
        cursors = CursorStore(config.cursor_path)
        cursors.load()
        sink = CsvSink(config.output_dir, window=timedelta(seconds=config.lookback))
        return cls(client, devices, cursors, sink, config=config)

    @property
    def rotation(self) -> RotationPolicy:
        return self._rotation

    @property
    def cursors(self) -> CursorStore:
        return self._cursors

    @property
    def is_running(self) -> bool:
        """Whether a cycle is in flight."""
        return self._cycle_lock.locked()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleSummary:
        """Run one cycle. Concurrent callers are serialized, never overlapped."""
        async with self._cycle_lock:
            self._cycles += 1
            summary = CycleSummary(cycle=self._cycles)

            try:
                await self._client.ensure_session()
            except (FleetSyncApiError, FleetSyncTransportError) as exc:
                _logger.error("Cycle %d: login failed, skipping cycle: %s", self._cycles, exc)
                summary.failures[LOGIN_FAILURE] += 1
                summary.aborted = True
                summary.cursors_flushed = await self._flush_cursors()
                _logger.info("Sync %s", summary.describe())
                return summary

            selected = self._rotation.select()
            summary.entities_attempted = len(selected)
            budget = CallBudget(self._config.max_calls_per_cycle)

            results = await asyncio.gather(
                *(self._sync_entity(self._devices[entity_id], budget) for entity_id in selected),
                return_exceptions=True,
            )
            for entity_id, result in zip(selected, results, strict=True):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    _logger.error(
                        "Cycle %d: unexpected error for %s",
                        self._cycles,
                        entity_id,
                        exc_info=result,
                    )
                    summary.failures[ERROR_FAILURE] += 1
                    continue
                summary.add(result)

            summary.cursors_flushed = await self._flush_cursors()
            _logger.info("Sync %s", summary.describe())
            return summary

    async def _flush_cursors(self) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._cursors.flush)

    async def _fetch(self, entity_id: str, kind: FeedKind, budget: CallBudget) -> FetchResult:
        async with self._semaphore:
            cursor = self._cursors.get(entity_id, kind)
            return await self._fetcher.fetch(entity_id, kind, cursor, budget=budget)

    async def _sync_entity(self, device: Device, budget: CallBudget) -> EntityOutcome:
        outcome = EntityOutcome(entity_id=device.id)
        results: list[FetchResult] = list(
            await asyncio.gather(*(self._fetch(device.id, kind, budget) for kind in FeedKind))
        )

        failures = [result for result in results if isinstance(result, FetchFailure)]
        for failure in failures:
            outcome.failures[failure.failure] += 1

        if any(failure.failure is FailureKind.AUTH for failure in failures):
            # The client has already dropped the rejected session. Nothing from
            # this entity is kept; both feeds are re-read next cycle.
            return outcome

        batches = {result.kind: result for result in results if isinstance(result, FeedBatch)}
        for batch in batches.values():
            self._cursors.set(device.id, batch.kind, batch.cursor)
            outcome.fetched[batch.kind] += len(batch.records)

        positions = [r for r in _records(batches.get(FeedKind.POSITION)) if isinstance(r, LogRecord)]
        odometers = [r for r in _records(batches.get(FeedKind.ODOMETER)) if isinstance(r, StatusData)]
        enriched = correlate(device, positions, odometers, threshold=self._threshold)
        outcome.enriched = len(enriched)
        if not enriched:
            return outcome

        loop = asyncio.get_running_loop()
        try:
            outcome.written = await loop.run_in_executor(None, self._sink.write, device.id, enriched)
        except SinkWriteError as exc:
            _logger.error("Could not write %d record(s) for %s: %s", len(enriched), device.label, exc)
            outcome.failures[SINK_FAILURE] += 1
        return outcome

    # ------------------------------------------------------------------
    # Periodic trigger
    # ------------------------------------------------------------------

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            _logger.exception("Sync cycle crashed")

    async def run_forever(self, stop: asyncio.Event, *, interval: float | None = None) -> None:
        """Trigger a cycle every *interval* seconds until *stop* is set.

        A trigger that fires while the previous cycle is still running is
        skipped. On stop the in-flight cycle is awaited and cursors flushed.
        """
        period = interval if interval is not None else self._config.cycle_interval
        loop = asyncio.get_running_loop()
        in_flight: asyncio.Task[None] | None = None
        next_tick = loop.time()

        while not stop.is_set():
            if in_flight is not None and not in_flight.done():
                _logger.warning("Cycle %d still running; skipping this trigger", self._cycles)
            else:
                in_flight = asyncio.create_task(self._guarded_cycle())
            next_tick += period
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=max(next_tick - loop.time(), 0))

        if in_flight is not None:
            await in_flight
        await self._flush_cursors()


def _records(batch: FeedBatch | None) -> tuple[LogRecord | StatusData, ...]:
    return batch.records if batch is not None else ()
