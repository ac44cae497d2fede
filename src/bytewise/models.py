"""Core domain models for timed bit challenges and module progress."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


@dataclass(frozen=True)
class RGB:
    """One 24-bit colour, one byte per channel."""

    red: int
    green: int
    blue: int

    def channels(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)


@dataclass(frozen=True)
class PermissionScenario:
    """Curated permission challenge with its expected 9-bit pattern."""

    id: str
    description: str
    expected_bits: tuple[bool, ...]


@dataclass(frozen=True)
class ScoreEntry:
    """One completed round."""

    target: object
    answer: object
    points: int
    created_at: str
    details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


@dataclass(frozen=True)
class Achievement:
    """Catalog badge awarded once a module score reaches a threshold."""

    id: str
    title: str
    description: str
    module: str
    required_score: int


@dataclass(frozen=True)
class ModuleProgress:
    """Persisted progress for one learning module."""

    completed: bool
    score: int
    achievements: frozenset[str]
    last_accessed: str


class EngineState(str, Enum):
    """Challenge engine lifecycle states."""

    IDLE = "idle"
    ACTIVE = "active"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class ChallengeSnapshot:
    """Read-only view of a challenge session for rendering."""

    state: EngineState
    target: object
    remaining_seconds: int
    score: int
    streak: int
    rounds: int
    completed: bool
    history: tuple[ScoreEntry, ...]
