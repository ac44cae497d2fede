"""Application service wiring progress, achievements and challenge engines."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path

from .achievements import AchievementRules
from .content_loader import load_permission_scenarios
from .engine import ChallengeEngine
from .filesize import ConversionResult, FileSizeUnit, convert, parse_size
from .models import Achievement, ModuleProgress
from .progress import BlobStore, ProgressStore, SQLiteBlobStore, WriteBehindBlobStore, open_blob_store
from .scheduler import MonotonicTickSource, TickSource
from .variants import build_variant

logger = logging.getLogger(__name__)

FILE_SIZE_MODULE = "App_FILE SIZES"
FILE_SIZE_POINTS = 30
FILE_SIZE_COMPLETION_SCORE = 500

KNOWN_MODULES: tuple[tuple[str, str], ...] = (
    ("BinaryBasics", "Binary Basics"),
    ("Hexadecimal", "Hexadecimal"),
    ("BinaryOperations", "Binary Operations"),
    ("App_ASCII TEXT", "ASCII Text"),
    ("App_COLOR CODING", "Color Coding"),
    ("App_FILE PERMISSIONS", "File Permissions"),
    (FILE_SIZE_MODULE, "File Sizes"),
)


@dataclass(frozen=True)
class ModuleState:
    """Module progress row for status views."""

    module_key: str
    title: str
    completed: bool
    score: int
    achievements: tuple[str, ...]
    last_accessed: str | None


@dataclass(frozen=True)
class AchievementStatus:
    """One catalog achievement with the player's standing."""

    achievement: Achievement
    score: int
    earned: bool

    @property
    def ratio(self) -> float:
        if self.achievement.required_score <= 0:
            return 1.0
        return min(1.0, self.score / self.achievement.required_score)


class ByteWiseService:
    """Coordinates progress state and challenge flows."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        *,
        blobs: BlobStore | None = None,
        ticks: TickSource | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize service with a database path or an explicit blob store.

        A database path gets an SQLite store (or an in-memory fallback when the
        file is unusable) whose writes run off the caller's thread.
        """
        self._sqlite: SQLiteBlobStore | None = None
        self._writer: WriteBehindBlobStore | None = None
        if blobs is None and db_path is not None:
            store = open_blob_store(db_path)
            if isinstance(store, SQLiteBlobStore):
                self._sqlite = store
            self._writer = WriteBehindBlobStore(store)
            blobs = self._writer
        self.progress = ProgressStore(blobs)
        self.achievements = AchievementRules(self.progress)
        self.scenarios = load_permission_scenarios()
        self.ticks: TickSource = ticks if ticks is not None else MonotonicTickSource()
        self.rng = rng if rng is not None else random.Random()

    def new_engine(self, name: str, operation: str = "AND") -> ChallengeEngine:
        """Create an idle engine for one variant by short name."""
        variant = build_variant(name, operation=operation, scenarios=self.scenarios)
        return ChallengeEngine(
            variant,
            self.progress,
            achievements=self.achievements,
            ticks=self.ticks,
            rng=self.rng,
        )

    def list_module_states(self) -> list[ModuleState]:
        """Return known modules in menu order, then any other stored keys."""
        records = self.progress.modules()
        titles = dict(KNOWN_MODULES)
        keys = [key for key, _ in KNOWN_MODULES] + sorted(key for key in records if key not in titles)
        states: list[ModuleState] = []
        for key in keys:
            record: ModuleProgress | None = records.get(key)
            states.append(
                ModuleState(
                    module_key=key,
                    title=titles.get(key, key),
                    completed=record.completed if record else False,
                    score=record.score if record else 0,
                    achievements=tuple(sorted(record.achievements)) if record else (),
                    last_accessed=record.last_accessed if record else None,
                )
            )
        return states

    def list_achievements(self) -> list[AchievementStatus]:
        """Return catalog achievements with module scores."""
        statuses: list[AchievementStatus] = []
        for module, achievement in self.achievements.catalog.items():
            record = self.progress.get(module)
            statuses.append(
                AchievementStatus(
                    achievement=achievement,
                    score=record.score if record else 0,
                    earned=record is not None and achievement.id in record.achievements,
                )
            )
        return statuses

    def convert_file_size(self, value_text: str, source: FileSizeUnit, target: FileSizeUnit) -> ConversionResult:
        """Convert a size and bank points for the file-size module."""
        value = parse_size(value_text)
        if value is None:
            raise ValueError("Please enter a valid number.")
        result = convert(value, source, target)
        previous = self.progress.get(FILE_SIZE_MODULE)
        score = (previous.score if previous else 0) + FILE_SIZE_POINTS
        completed = score >= FILE_SIZE_COMPLETION_SCORE or (previous is not None and previous.completed)
        self.progress.update(FILE_SIZE_MODULE, completed, score)
        self.achievements.check_and_award(FILE_SIZE_MODULE, score)
        return result

    def reset_all_progress(self) -> None:
        """Clear every module record."""
        logger.info("Resetting all module progress")
        self.progress.reset_all()

    def close(self) -> None:
        """Flush pending saves and close resources."""
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        if self._sqlite is not None:
            self._sqlite.close()
            self._sqlite = None
