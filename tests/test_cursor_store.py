from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from fleetsync.models.feed import FeedKind
from fleetsync.state.cursors import CursorStore, encode


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    store = CursorStore(tmp_path / "cursors.json")
    store.load()

    assert store.snapshot() == {}
    assert store.get("b1", FeedKind.POSITION) is None


def test_set_then_flush_round_trips_through_a_new_store(tmp_path: Path) -> None:
    path = tmp_path / "cursors.json"
    store = CursorStore(path)
    store.set("b1", FeedKind.POSITION, "100")
    store.set("b1", FeedKind.ODOMETER, "7")
    store.set("b2", FeedKind.POSITION, "55")

    assert store.flush() is True

    reloaded = CursorStore(path)
    reloaded.load()
    assert reloaded.get("b1", FeedKind.POSITION) == "100"
    assert reloaded.get("b1", FeedKind.ODOMETER) == "7"
    assert reloaded.get("b2", FeedKind.POSITION) == "55"
    assert reloaded.get("b2", FeedKind.ODOMETER) is None


def test_flush_writes_sorted_indented_json_with_trailing_newline(tmp_path: Path) -> None:
    path = tmp_path / "cursors.json"
    store = CursorStore(path)
    store.set("b2", FeedKind.POSITION, "2")
    store.set("b1", FeedKind.POSITION, "1")
    store.set("b1", FeedKind.ODOMETER, "3")
    store.flush()

    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert text == json.dumps(
        {"b1": {"odometer": "3", "position": "1"}, "b2": {"position": "2"}},
        indent=2,
        sort_keys=True,
    ) + "\n"
    assert text == encode(store.snapshot())


def test_unchanged_mapping_is_not_rewritten(tmp_path: Path) -> None:
    path = tmp_path / "cursors.json"
    store = CursorStore(path)
    store.set("b1", FeedKind.POSITION, "100")
    store.flush()
    before = path.read_bytes()
    os.utime(path, (0, 0))

    # Same value again: not a change.
    store.set("b1", FeedKind.POSITION, "100")
    assert store.flush() is True

    assert path.read_bytes() == before
    assert path.stat().st_mtime == 0


def test_set_rejects_empty_cursor(tmp_path: Path) -> None:
    store = CursorStore(tmp_path / "cursors.json")
    store.set("b1", FeedKind.POSITION, "100")

    with pytest.raises(ValueError):
        store.set("b1", FeedKind.POSITION, "")
    with pytest.raises(ValueError):
        store.set("b1", FeedKind.POSITION, None)  # type: ignore[arg-type]

    assert store.get("b1", FeedKind.POSITION) == "100"


def test_corrupt_file_starts_empty_and_logs(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "cursors.json"
    path.write_text("{not json", encoding="utf-8")
    store = CursorStore(path)

    with caplog.at_level(logging.WARNING, logger="fleetsync.state.cursors"):
        store.load()

    assert store.snapshot() == {}
    assert any("cursor" in record.getMessage().lower() for record in caplog.records)


def test_wrong_shape_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "cursors.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    store = CursorStore(path)
    store.load()

    assert store.snapshot() == {}


def test_non_string_tokens_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "cursors.json"
    path.write_text(json.dumps({"b1": {"position": "10", "odometer": 5}, "b2": "oops"}), encoding="utf-8")
    store = CursorStore(path)
    store.load()

    assert store.snapshot() == {"b1": {"position": "10"}}


def test_flush_failure_keeps_state_and_retries(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = CursorStore(blocker / "cursors.json")
    store.set("b1", FeedKind.POSITION, "100")

    with caplog.at_level(logging.ERROR, logger="fleetsync.state.cursors"):
        assert store.flush() is False

    assert store.get("b1", FeedKind.POSITION) == "100"
    assert caplog.records

    # Still dirty: a later flush to a writable location succeeds.
    store._path = tmp_path / "cursors.json"
    assert store.flush() is True
    assert json.loads((tmp_path / "cursors.json").read_text(encoding="utf-8")) == {"b1": {"position": "100"}}


def test_flush_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = CursorStore(tmp_path / "cursors.json")
    store.set("b1", FeedKind.POSITION, "1")
    store.flush()
    store.set("b1", FeedKind.POSITION, "2")
    store.flush()

    assert sorted(p.name for p in tmp_path.iterdir()) == ["cursors.json"]


def test_snapshot_is_a_copy(tmp_path: Path) -> None:
    store = CursorStore(tmp_path / "cursors.json")
    store.set("b1", FeedKind.POSITION, "1")

    snapshot = store.snapshot()
    snapshot["b1"]["position"] = "999"

    assert store.get("b1", FeedKind.POSITION) == "1"
