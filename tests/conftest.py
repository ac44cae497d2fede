from __future__ import annotations

import random
import shutil
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from bytewise.progress import MemoryBlobStore, ProgressStore  # noqa: E402
from bytewise.scheduler import ManualTickSource  # noqa: E402


class ScriptedRandom(random.Random):
    """Random source that replays queued draws before falling back to a seeded stream.

    `randint` returns the next queued value; `choice` uses it as an index.
    """

    def __init__(self, values: Sequence[int] = ()) -> None:
        super().__init__(1234)
        self.queue = list(values)

    def randint(self, a: int, b: int) -> int:
        if self.queue:
            value = self.queue.pop(0)
            assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
            return value
        return super().randint(a, b)

    def choice(self, seq: Sequence[Any]) -> Any:
        if self.queue:
            return seq[self.queue.pop(0)]
        return super().choice(seq)


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    This intentionally overrides pytest's builtin ``tmp_path`` fixture for this
    repository so temporary databases live under ``.tmp_pytest/``.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


@pytest.fixture
def ticks() -> ManualTickSource:
    return ManualTickSource()


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def progress(blobs: MemoryBlobStore) -> ProgressStore:
    return ProgressStore(blobs)
