import json
import sqlite3
import threading

import pytest

from bytewise.config import PROGRESS_KEY
from bytewise.progress import (
    SCHEMA_VERSION,
    MemoryBlobStore,
    ProgressStore,
    SQLiteBlobStore,
    WriteBehindBlobStore,
    decode_progress,
    open_blob_store,
)


class FailingBlobStore:
    def get(self, key: str) -> str | None:
        raise sqlite3.OperationalError("disk I/O error")

    def set(self, key: str, value: str) -> None:
        raise OSError("read-only file system")


def test_round_trip_through_blob(blobs) -> None:
    store = ProgressStore(blobs)
    store.update("X", True, 450)
    store.add_achievement("X", "badge")

    reloaded = ProgressStore(blobs)
    record = reloaded.get("X")
    assert record is not None
    assert record.completed is True
    assert record.score == 450
    assert record.achievements == frozenset({"badge"})
    assert record.last_accessed


def test_blob_uses_camel_case_record_fields(blobs) -> None:
    ProgressStore(blobs).update("BinaryBasics", False, 30)
    payload = json.loads(blobs.blobs[PROGRESS_KEY])
    assert set(payload["BinaryBasics"]) == {"completed", "score", "achievements", "lastAccessed"}


def test_update_is_last_write_wins(progress) -> None:
    progress.update("BinaryBasics", True, 500)
    progress.update("BinaryBasics", False, 100)
    record = progress.get("BinaryBasics")
    assert record is not None
    assert record.score == 100
    assert record.completed is False


def test_update_keeps_achievements_and_clamps_score(progress) -> None:
    progress.add_achievement("Hexadecimal", "hex_master")
    progress.update("Hexadecimal", True, -5)
    record = progress.get("Hexadecimal")
    assert record is not None
    assert record.score == 0
    assert "hex_master" in record.achievements


def test_add_achievement_is_idempotent(progress) -> None:
    assert progress.add_achievement("App_COLOR CODING", "color_master")
    assert not progress.add_achievement("App_COLOR CODING", "color_master")
    record = progress.get("App_COLOR CODING")
    assert record is not None and record.achievements == frozenset({"color_master"})


def test_reset_all_zeroes_known_modules(blobs) -> None:
    store = ProgressStore(blobs)
    store.update("A", True, 10)
    store.add_achievement("B", "b1")
    store.reset_all()

    reloaded = ProgressStore(blobs)
    for key in ("A", "B"):
        record = reloaded.get(key)
        assert record is not None
        assert record.score == 0
        assert record.completed is False
        assert record.achievements == frozenset()


def test_corrupt_blob_loads_as_empty() -> None:
    assert ProgressStore(MemoryBlobStore({PROGRESS_KEY: "{not json"})).modules() == {}
    assert ProgressStore(MemoryBlobStore({PROGRESS_KEY: "[1, 2]"})).modules() == {}


def test_malformed_records_are_skipped() -> None:
    raw = json.dumps(
        {
            "good": {"completed": True, "score": 5, "achievements": [], "lastAccessed": "2024-01-01T00:00:00+00:00"},
            "bad_score": {"completed": True, "score": "lots", "achievements": []},
            "bad_list": {"completed": False, "score": 1, "achievements": [1]},
            "not_a_record": 7,
            "no_timestamp": {"completed": False, "score": 2, "achievements": ["x"]},
        }
    )
    modules = decode_progress(raw)
    assert set(modules) == {"good", "no_timestamp"}
    assert modules["good"].last_accessed == "2024-01-01T00:00:00+00:00"
    assert modules["no_timestamp"].last_accessed


def test_storage_failures_are_absorbed() -> None:
    store = ProgressStore(FailingBlobStore())
    assert store.modules() == {}
    record = store.update("BinaryBasics", False, 40)
    assert record.score == 40
    assert store.get("BinaryBasics") == record
    assert store.add_achievement("BinaryBasics", "binary_master")


def test_modules_returns_copy(progress) -> None:
    progress.update("A", False, 1)
    snapshot = progress.modules()
    snapshot.clear()
    assert progress.get("A") is not None


def test_sqlite_round_trip(tmp_path) -> None:
    db_path = tmp_path / "nested" / "progress.db"
    first = SQLiteBlobStore(db_path)
    ProgressStore(first).update("App_FILE SIZES", False, 90)
    first.close()

    second = SQLiteBlobStore(db_path)
    try:
        record = ProgressStore(second).get("App_FILE SIZES")
        assert record is not None and record.score == 90
    finally:
        second.close()


def test_sqlite_sets_schema_version(tmp_path) -> None:
    db_path = tmp_path / "progress.db"
    SQLiteBlobStore(db_path).close()
    conn = sqlite3.connect(db_path)
    try:
        assert conn.execute("PRAGMA user_version").fetchone()[0] == SCHEMA_VERSION
    finally:
        conn.close()


def test_sqlite_rejects_newer_schema(tmp_path) -> None:
    db_path = tmp_path / "progress.db"
    conn = sqlite3.connect(db_path)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
    conn.commit()
    conn.close()
    with pytest.raises(RuntimeError):
        SQLiteBlobStore(db_path)


def test_deeply_nested_blob_loads_as_empty() -> None:
    store = ProgressStore(MemoryBlobStore({PROGRESS_KEY: "[" * 100000}))
    assert store.modules() == {}


def test_unreadable_database_file_is_moved_aside(tmp_path) -> None:
    db_path = tmp_path / "progress.db"
    db_path.write_bytes(b"this is not a sqlite database at all" * 100)

    store = open_blob_store(db_path)
    try:
        assert isinstance(store, SQLiteBlobStore)
        assert ProgressStore(store).modules() == {}
        ProgressStore(store).update("BinaryBasics", False, 10)
    finally:
        if isinstance(store, SQLiteBlobStore):
            store.close()
    assert (tmp_path / "progress.db.corrupt").read_bytes().startswith(b"this is not")


def test_unusable_database_path_falls_back_to_memory(tmp_path) -> None:
    store = open_blob_store(tmp_path)
    assert isinstance(store, MemoryBlobStore)
    assert ProgressStore(store).modules() == {}


class _GatedBlobStore(MemoryBlobStore):
    def __init__(self) -> None:
        super().__init__()
        self.gate = threading.Event()

    def set(self, key: str, value: str) -> None:
        assert self.gate.wait(timeout=5)
        super().set(key, value)


def test_write_behind_does_not_block_updates() -> None:
    inner = _GatedBlobStore()
    writer = WriteBehindBlobStore(inner)
    try:
        record = ProgressStore(writer).update("BinaryBasics", True, 70)
        assert record.score == 70
        assert PROGRESS_KEY not in inner.blobs

        inner.gate.set()
        writer.flush()
        assert json.loads(inner.blobs[PROGRESS_KEY])["BinaryBasics"]["score"] == 70
    finally:
        inner.gate.set()
        writer.close()


def test_write_behind_reads_see_queued_writes() -> None:
    writer = WriteBehindBlobStore(MemoryBlobStore())
    try:
        store = ProgressStore(writer)
        store.update("A", False, 1)
        store.update("A", False, 2)
        record = ProgressStore(writer).get("A")
        assert record is not None and record.score == 2
    finally:
        writer.close()


def test_write_behind_absorbs_worker_errors() -> None:
    class Broken(MemoryBlobStore):
        def set(self, key: str, value: str) -> None:
            raise OSError("disk full")

    writer = WriteBehindBlobStore(Broken())
    ProgressStore(writer).update("A", False, 1)
    writer.close()
    writer.set("k", "v")
