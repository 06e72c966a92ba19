"""Append-only CSV sink, one file per entity.

The first write to a new or empty file emits the header row. Rows are
collapsed on the ``(entity_id, timestamp)`` key: keys already present in
the file (read once per process, on the first write) and keys written
earlier by this process are skipped, so re-running a range after a restart
does not duplicate facts.

Only keys within *window* of the newest timestamp seen for an entity are
remembered. A record older than that is written without a duplicate check.
"""

from __future__ import annotations

import csv
import logging
import os
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from fleetsync._constants import CSV_HEADER
from fleetsync.exceptions import SinkWriteError
from fleetsync.ingestion.normalize import format_timestamp, parse_timestamp
from fleetsync.models.enriched import EnrichedRecord

_logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

DEFAULT_WINDOW = timedelta(hours=24)

SinkKey = tuple[str, str]


def sink_key(record: EnrichedRecord) -> SinkKey:
    """Deduplication key of a record as stored in the file."""
    return (record.entity_id, format_timestamp(record.timestamp))


@dataclass
class _SeenKeys:
    """Keys of one entity's file, trimmed to a trailing time window."""

    window: timedelta
    keys: dict[SinkKey, datetime] = field(default_factory=dict)
    newest: datetime | None = None

    def __contains__(self, key: SinkKey) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    def add(self, key: SinkKey, ts: datetime) -> None:
        self.keys[key] = ts
        if self.newest is None or ts > self.newest:
            self.newest = ts

    def prune(self) -> None:
        if self.newest is None:
            return
        cutoff = self.newest - self.window
        self.keys = {key: ts for key, ts in self.keys.items() if ts >= cutoff}


class CsvSink:
    """Writes enriched records to ``<output_dir>/<entity_id>.csv``."""

    def __init__(self, output_dir: str | os.PathLike[str], *, window: timedelta = DEFAULT_WINDOW) -> None:
        self._output_dir = Path(output_dir)
        self._window = window
        self._seen: dict[str, _SeenKeys] = {}
        self._lock = threading.Lock()

    def path_for(self, entity_id: str) -> Path:
        safe = _UNSAFE_FILENAME_CHARS.sub("_", entity_id) or "_"
        return self._output_dir / f"{safe}.csv"

    def _existing_keys(self, entity_id: str, path: Path) -> _SeenKeys:
        seen = _SeenKeys(self._window)
        try:
            with path.open(newline="", encoding="utf-8") as handle:
                reader = csv.reader(handle)
                for row in reader:
                    if len(row) < 2 or tuple(row) == CSV_HEADER:
                        continue
                    ts = parse_timestamp(row[1])
                    if ts is None:
                        continue
                    seen.add((row[0], format_timestamp(ts)), ts)
        except FileNotFoundError:
            return seen
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SinkWriteError(f"cannot read existing rows from {path}: {exc}", entity_id=entity_id) from exc
        seen.prune()
        return seen

    def write(self, entity_id: str, records: Iterable[EnrichedRecord]) -> int:
        """Append *records* in order and return the number of rows written.

        Raises
        ------
        SinkWriteError
            If the file cannot be read or written.
        """
        path = self.path_for(entity_id)
        with self._lock:
            seen = self._seen.get(entity_id)
            if seen is None:
                seen = self._existing_keys(entity_id, path)
                self._seen[entity_id] = seen

            rows: list[list[str]] = []
            written: list[tuple[SinkKey, datetime]] = []
            batch_keys: set[SinkKey] = set()
            skipped = 0
            for record in records:
                key = sink_key(record)
                if key in seen or key in batch_keys:
                    skipped += 1
                    continue
                batch_keys.add(key)
                written.append((key, record.timestamp))
                rows.append(record.to_csv_row())

            if skipped:
                _logger.debug("Skipped %d duplicate row(s) for %s", skipped, entity_id)
            if not rows:
                return 0

            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                write_header = not path.exists() or path.stat().st_size == 0
                with path.open("a", newline="", encoding="utf-8") as handle:
                    writer = csv.writer(handle)
                    if write_header:
                        writer.writerow(CSV_HEADER)
                    writer.writerows(rows)
            except OSError as exc:
                raise SinkWriteError(f"cannot append to {path}: {exc}", entity_id=entity_id) from exc

            for key, ts in written:
                seen.add(key, ts)
            seen.prune()
            return len(rows)
