"""Durable per-entity, per-feed cursor store.

The store keeps ``{entity_id: {feed_kind: token}}`` in memory. It is read
in full at startup and rewritten in full (atomic replace) after each cycle.
Persistence problems are logged and never raised: a failed load starts
empty, a failed flush keeps the in-memory state for the next attempt.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from fleetsync.exceptions import PersistenceFlushError, PersistenceLoadError

_logger = logging.getLogger(__name__)

CursorMapping = dict[str, dict[str, str]]


def _decode(text: str) -> CursorMapping:
    """Decode the persisted document, keeping only string tokens."""
    try:
        document: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PersistenceLoadError(f"cursor file is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise PersistenceLoadError(f"cursor file must hold an object, got {type(document).__name__}")

    mapping: CursorMapping = {}
    for entity_id, feeds in document.items():
        if not isinstance(feeds, dict):
            _logger.warning("Ignoring cursor entry for %s: expected an object", entity_id)
            continue
        tokens = {str(kind): token for kind, token in feeds.items() if isinstance(token, str) and token}
        if tokens:
            mapping[str(entity_id)] = tokens
    return mapping


def encode(mapping: CursorMapping) -> str:
    """Serialize deterministically so an unchanged mapping yields identical bytes."""
    return json.dumps(mapping, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


class CursorStore:
    """In-memory cursor mapping backed by a JSON file.

    All methods are safe to call from concurrent tasks and threads.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._cursors: CursorMapping = {}
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        """Whether in-memory state differs from the last successful flush."""
        with self._lock:
            return self._dirty

    def load(self) -> None:
        """Replace in-memory state with the persisted mapping.

        A missing file means no cursors yet. Unreadable or corrupt files are
        logged and treated the same way.
        """
        try:
            mapping = self._read()
        except PersistenceLoadError as exc:
            _logger.warning("Could not load cursors from %s, starting empty: %s", self._path, exc)
            mapping = {}

        with self._lock:
            self._cursors = mapping
            self._dirty = False
        _logger.info(
            "Loaded %d cursor(s) for %d entities from %s",
            sum(len(feeds) for feeds in mapping.values()),
            len(mapping),
            self._path,
        )

    def _read(self) -> CursorMapping:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceLoadError(f"cannot read {self._path}: {exc}") from exc
        if not text.strip():
            return {}
        return _decode(text)

    def get(self, entity_id: str, feed_kind: str) -> str | None:
        with self._lock:
            return self._cursors.get(entity_id, {}).get(str(feed_kind))

    def set(self, entity_id: str, feed_kind: str, cursor: str) -> None:
        """Record a new cursor in memory. Persisted by the next :meth:`flush`."""
        if not isinstance(cursor, str) or not cursor:
            raise ValueError("cursor must be a non-empty string")
        kind = str(feed_kind)
        with self._lock:
            feeds = self._cursors.setdefault(entity_id, {})
            if feeds.get(kind) == cursor:
                return
            feeds[kind] = cursor
            self._dirty = True

    def snapshot(self) -> CursorMapping:
        """Deep copy of the current mapping."""
        with self._lock:
            return copy.deepcopy(self._cursors)

    def flush(self) -> bool:
        """Atomically persist the full mapping.

        Returns ``True`` when the file is up to date (including when nothing
        changed), ``False`` when the write failed; the failure is logged and
        the state stays dirty so the next flush retries.
        """
        with self._lock:
            if not self._dirty:
                return True
            payload = encode(self._cursors)

        try:
            self._write(payload)
        except PersistenceFlushError as exc:
            _logger.error("Could not persist cursors to %s: %s", self._path, exc)
            return False

        with self._lock:
            # Only clear the flag if nothing changed while writing.
            if encode(self._cursors) == payload:
                self._dirty = False
        _logger.debug("Persisted cursors to %s", self._path)
        return True

    def _write(self, payload: str) -> None:
        directory = self._path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceFlushError(f"cannot write {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    _logger.debug("Could not remove temporary cursor file %s", tmp_name)
