"""Module progress persisted as one JSON blob in a key-value store."""

from __future__ import annotations

import json
import logging
import sqlite3
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, cast

from .config import PROGRESS_KEY
from .models import ModuleProgress

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class BlobStore(Protocol):
    """Opaque key-value storage for serialized blobs."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryBlobStore:
    """In-process blob store for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self.blobs[key] = value


class SQLiteBlobStore:
    """SQLite-backed blob store with forward-only schema migrations."""

    def __init__(self, db_path: Path | str) -> None:
        """Open database and apply migrations."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        # Writes may run on the write-behind worker thread.
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        try:
            self._apply_migrations()
        except sqlite3.DatabaseError:
            self._conn.close()
            raise

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def get(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set(self, key: str, value: str) -> None:
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, now),
            )

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def open_blob_store(db_path: Path | str) -> SQLiteBlobStore | MemoryBlobStore:
    """Open the progress database, moving an unreadable file aside.

    Falls back to an in-memory store when no usable database can be created.
    """
    try:
        return SQLiteBlobStore(db_path)
    except (sqlite3.DatabaseError, OSError) as exc:
        logger.warning("Progress database %s is unreadable: %s", db_path, exc)

    path = Path(db_path)
    if str(db_path) != ":memory:" and path.is_file():
        aside = path.with_name(path.name + ".corrupt")
        try:
            path.replace(aside)
            logger.warning("Moved unreadable progress database to %s", aside)
            return SQLiteBlobStore(db_path)
        except (sqlite3.DatabaseError, OSError) as exc:
            logger.warning("Could not recreate progress database: %s", exc)
    logger.warning("Keeping progress in memory for this session.")
    return MemoryBlobStore()


class WriteBehindBlobStore:
    """Blob store wrapper that hands writes to one background worker.

    Writes run in submission order. Reads and `close` wait for queued writes.
    """

    def __init__(self, inner: BlobStore) -> None:
        self.inner = inner
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bytewise-save")
        self._pending: list[Future[None]] = []
        self._closed = False

    def get(self, key: str) -> str | None:
        self.flush()
        return self.inner.get(key)

    def set(self, key: str, value: str) -> None:
        if self._closed:
            self._write(key, value)
            return
        self._pending = [future for future in self._pending if not future.done()]
        self._pending.append(self._executor.submit(self._write, key, value))

    def flush(self) -> None:
        """Block until every queued write has finished."""
        pending, self._pending = self._pending, []
        wait(pending)

    def close(self) -> None:
        """Finish queued writes and stop the worker."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._pending = []

    def _write(self, key: str, value: str) -> None:
        try:
            self.inner.set(key, value)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not save progress blob: %s", exc)


class ProgressStore:
    """Per-module completion, score and achievements.

    The in-memory map is authoritative. Every mutation rewrites the whole blob;
    a failed write is logged and otherwise ignored.
    """

    def __init__(self, blobs: BlobStore | None = None, key: str = PROGRESS_KEY) -> None:
        self._blobs: BlobStore = blobs if blobs is not None else MemoryBlobStore()
        self._key = key
        self._modules: dict[str, ModuleProgress] = {}
        self.load()

    def load(self) -> None:
        """Replace in-memory state with the persisted blob; bad data yields an empty map."""
        try:
            raw = self._blobs.get(self._key)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not read progress blob: %s", exc)
            self._modules = {}
            return
        if raw is None:
            self._modules = {}
            return
        self._modules = decode_progress(raw)

    def modules(self) -> dict[str, ModuleProgress]:
        """Return a copy of all module records."""
        return dict(self._modules)

    def get(self, module_key: str) -> ModuleProgress | None:
        """Get one module record."""
        return self._modules.get(module_key)

    def update(self, module_key: str, completed: bool, score: int) -> ModuleProgress:
        """Upsert completion and score (last write wins)."""
        current = self._modules.get(module_key)
        achievements = current.achievements if current is not None else frozenset()
        record = ModuleProgress(
            completed=completed,
            score=max(0, int(score)),
            achievements=achievements,
            last_accessed=datetime.now(UTC).isoformat(),
        )
        self._modules[module_key] = record
        logger.debug("Progress for %s: completed=%s score=%d", module_key, completed, record.score)
        self._save()
        return record

    def add_achievement(self, module_key: str, achievement_id: str) -> bool:
        """Add an achievement id; return False when it was already present."""
        current = self._modules.get(module_key) or _zero_progress()
        if achievement_id in current.achievements:
            return False
        self._modules[module_key] = ModuleProgress(
            completed=current.completed,
            score=current.score,
            achievements=current.achievements | {achievement_id},
            last_accessed=current.last_accessed,
        )
        logger.info("Achievement %s earned for %s", achievement_id, module_key)
        self._save()
        return True

    def reset_all(self) -> None:
        """Return every known module record to its zero state."""
        for module_key in list(self._modules):
            self._modules[module_key] = _zero_progress()
        self._save()

    def _save(self) -> None:
        try:
            self._blobs.set(self._key, encode_progress(self._modules))
        except (sqlite3.Error, OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save progress blob: %s", exc)


def _zero_progress() -> ModuleProgress:
    return ModuleProgress(
        completed=False,
        score=0,
        achievements=frozenset(),
        last_accessed=datetime.now(UTC).isoformat(),
    )


def encode_progress(modules: dict[str, ModuleProgress]) -> str:
    """Serialize module records to the blob format."""
    payload = {
        key: {
            "completed": record.completed,
            "score": record.score,
            "achievements": sorted(record.achievements),
            "lastAccessed": record.last_accessed,
        }
        for key, record in modules.items()
    }
    return json.dumps(payload, sort_keys=True)


def decode_progress(raw: str) -> dict[str, ModuleProgress]:
    """Deserialize the blob format, skipping malformed records."""
    try:
        parsed: object = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        logger.warning("Discarding corrupt progress blob: %s", exc)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Discarding progress blob with non-object root.")
        return {}

    modules: dict[str, ModuleProgress] = {}
    for key, item in cast(dict[str, object], parsed).items():
        record = _record_from_raw(item)
        if record is None:
            logger.warning("Skipping malformed progress record for %s", key)
            continue
        modules[key] = record
    return modules


def _record_from_raw(raw: object) -> ModuleProgress | None:
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, object], raw)
    completed = row.get("completed", False)
    score = row.get("score", 0)
    achievements = row.get("achievements", [])
    last_accessed = row.get("lastAccessed")
    if not isinstance(completed, bool):
        return None
    if isinstance(score, bool) or not isinstance(score, int):
        return None
    if not isinstance(achievements, list) or not all(isinstance(item, str) for item in achievements):
        return None
    if not isinstance(last_accessed, str) or not last_accessed:
        last_accessed = datetime.now(UTC).isoformat()
    return ModuleProgress(
        completed=completed,
        score=max(0, score),
        achievements=frozenset(cast(list[str], achievements)),
        last_accessed=last_accessed,
    )
