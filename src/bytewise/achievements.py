"""Score thresholds that turn module scores into badges."""

from __future__ import annotations

import logging

from .content_loader import load_achievements
from .models import Achievement
from .progress import ProgressStore

logger = logging.getLogger(__name__)


class AchievementRules:
    """Read-only achievement catalog keyed by module."""

    def __init__(self, progress: ProgressStore, catalog: dict[str, Achievement] | None = None) -> None:
        self.progress = progress
        self.catalog = catalog if catalog is not None else load_achievements()

    def achievement_for(self, module: str) -> Achievement | None:
        return self.catalog.get(module)

    def threshold_for(self, module: str) -> tuple[str, int] | None:
        """Return (achievement id, required score) for a module, if it has one."""
        achievement = self.catalog.get(module)
        if achievement is None:
            return None
        return (achievement.id, achievement.required_score)

    def check_and_award(self, module: str, score: int) -> str | None:
        """Award the module's achievement when `score` reaches its threshold."""
        threshold = self.threshold_for(module)
        if threshold is None:
            return None
        achievement_id, required = threshold
        if score < required:
            logger.debug("%s score %d below %s threshold %d", module, score, achievement_id, required)
            return None
        self.progress.add_achievement(module, achievement_id)
        return achievement_id
