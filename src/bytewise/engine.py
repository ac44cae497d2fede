"""Generic timed challenge state machine."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .achievements import AchievementRules
from .config import TICK_INTERVAL_SECONDS
from .models import ChallengeSnapshot, EngineState, ScoreEntry
from .progress import ProgressStore
from .scheduler import MonotonicTickSource, TickHandle, TickSource
from .variants import ChallengeVariant

logger = logging.getLogger(__name__)


@dataclass
class ChallengeSession:
    """Mutable state of one running challenge."""

    target: object
    remaining_seconds: int
    score: int = 0
    streak: int = 0
    rounds: int = 0
    completed: bool = False
    history: list[ScoreEntry] = field(default_factory=list)


class ChallengeEngine:
    """Drive one challenge variant: targets, matching, scoring and countdown.

    The engine holds a non-owning reference to the progress store and reports
    the final score to it when a session ends. Sessions abandoned through
    `reset`/`exit` are discarded without reporting.
    """

    def __init__(
        self,
        variant: ChallengeVariant,
        progress: ProgressStore,
        achievements: AchievementRules | None = None,
        ticks: TickSource | None = None,
        rng: random.Random | None = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self.variant = variant
        self.progress = progress
        self.achievements = achievements
        self.ticks: TickSource = ticks if ticks is not None else MonotonicTickSource()
        self.rng = rng if rng is not None else random.Random()
        self.tick_interval = tick_interval
        self._state = EngineState.IDLE
        self._session: ChallengeSession | None = None
        self._timer: TickHandle | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def session(self) -> ChallengeSession | None:
        return self._session

    def start(self) -> bool:
        """Begin a fresh session; a no-op returning False while one is active."""
        if self._state is EngineState.ACTIVE:
            logger.debug("start() ignored: %s challenge already active", self.variant.module_key)
            return False
        self._cancel_timer()
        rules = self.variant.rules
        self._session = ChallengeSession(
            target=self.variant.generate_target(self.rng),
            remaining_seconds=rules.duration,
        )
        self._state = EngineState.ACTIVE
        self._timer = self.ticks.every(self.tick_interval, self.tick)
        logger.debug("Started %s challenge (%ds)", rules.module_key, rules.duration)
        return True

    def submit(self, player_state: object) -> bool:
        """Check player state against the current target; return True on a match."""
        session = self._session
        if self._state is not EngineState.ACTIVE or session is None:
            return False
        answer = self.variant.derive(player_state)
        if answer is None or not self.variant.matches(answer, session.target):
            return False

        rules = self.variant.rules
        points = rules.scoring.points(session.remaining_seconds, session.streak)
        entry = ScoreEntry(
            target=session.target,
            answer=answer,
            points=points,
            created_at=datetime.now(UTC).isoformat(),
            details=self.variant.details(session.target, answer),
        )
        session.history.insert(0, entry)
        del session.history[rules.history_cap :]
        session.streak += 1
        session.score += points
        session.rounds += 1
        if rules.time_refund:
            session.remaining_seconds = min(session.remaining_seconds + rules.time_refund, rules.duration)
        logger.debug("%s match worth %d points (score %d)", rules.module_key, points, session.score)

        if rules.completion_score is not None and session.score >= rules.completion_score:
            session.completed = True
        round_limit_hit = rules.max_rounds is not None and session.rounds >= rules.max_rounds
        if round_limit_hit:
            session.completed = True
        if round_limit_hit or (session.completed and rules.end_on_completion):
            self._finish()
        else:
            session.target = self.variant.generate_target(self.rng)
        return True

    def tick(self) -> None:
        """Advance the countdown by one second."""
        session = self._session
        if self._state is not EngineState.ACTIVE or session is None:
            return
        if session.remaining_seconds > 0:
            session.remaining_seconds -= 1
        if session.remaining_seconds <= 0:
            self._finish()

    def reset(self) -> None:
        """Stop the timer and discard any session."""
        self._cancel_timer()
        self._session = None
        self._state = EngineState.IDLE

    def exit(self) -> None:
        """Leave the challenge; same as `reset`."""
        self.reset()

    def snapshot(self) -> ChallengeSnapshot:
        """Return an immutable view of the current session."""
        session = self._session
        if session is None:
            return ChallengeSnapshot(
                state=self._state,
                target=None,
                remaining_seconds=0,
                score=0,
                streak=0,
                rounds=0,
                completed=False,
                history=(),
            )
        return ChallengeSnapshot(
            state=self._state,
            target=session.target,
            remaining_seconds=session.remaining_seconds,
            score=session.score,
            streak=session.streak,
            rounds=session.rounds,
            completed=session.completed,
            history=tuple(session.history),
        )

    def _finish(self) -> None:
        session = self._session
        self._cancel_timer()
        self._state = EngineState.GAME_OVER
        if session is None:
            return
        if self.variant.rules.completion_score is None:
            session.completed = True
        logger.debug("%s challenge over with score %d", self.variant.module_key, session.score)
        self._report(session)

    def _report(self, session: ChallengeSession) -> None:
        rules = self.variant.rules
        previous = self.progress.get(rules.module_key)
        score = session.score
        if rules.cumulative_progress and previous is not None:
            score += previous.score
        completed = session.completed or (previous is not None and previous.completed)
        self.progress.update(rules.module_key, completed, score)
        if self.achievements is not None:
            self.achievements.check_and_award(rules.module_key, score)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
