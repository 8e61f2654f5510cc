"""Adaptive difficulty recommendation from a rolling window of attempts."""

import logging
from collections import Counter

from practice_engine.models import (
    DIFFICULTY_ORDER,
    AttemptRecorded,
    Difficulty,
    DifficultyRecommendation,
    QuestionAttempt,
)

from .ports import AttemptLog

logger = logging.getLogger(__name__)


def current_streak(outcomes: list[bool]) -> int:
    """Signed run length of the most recent outcome (oldest first input)."""
    if not outcomes:
        return 0
    last = outcomes[-1]
    run = 0
    for outcome in reversed(outcomes):
        if outcome != last:
            break
        run += 1
    return run if last else -run


def majority_difficulty(levels: list[Difficulty]) -> Difficulty:
    """Most common level; any tie resolves to medium."""
    if not levels:
        return Difficulty.MEDIUM
    counts = Counter(levels).most_common()
    top = counts[0][1]
    leaders = [level for level, count in counts if count == top]
    if len(leaders) > 1:
        return Difficulty.MEDIUM
    return leaders[0]


def step(level: Difficulty, delta: int) -> Difficulty:
    position = DIFFICULTY_ORDER.index(level) + delta
    return DIFFICULTY_ORDER[max(0, min(position, len(DIFFICULTY_ORDER) - 1))]


def recommend(
    window: list[QuestionAttempt],
    window_size: int = 5,
    step_up_min_correct: int = 4,
    step_down_max_correct: int = 1,
) -> DifficultyRecommendation:
    """Deterministic recommendation for a window ordered oldest first."""
    window = window[-window_size:]
    outcomes = [a.is_correct for a in window]
    correct = sum(outcomes)
    streak = current_streak(outcomes)
    confidence = min(1.0, len(window) / window_size)

    if len(window) < window_size:
        return DifficultyRecommendation(
            recommended_difficulty=Difficulty.MEDIUM,
            current_streak=streak,
            last_n_correct=correct,
            window_size=len(window),
            confidence=confidence,
            reason=(
                f"Insufficient history ({len(window)} of {window_size} attempts); "
                "starting at medium"
            ),
        )

    base = majority_difficulty([a.difficulty_at_attempt for a in window])
    if correct >= step_up_min_correct:
        level = step(base, 1)
        reason = f"{correct} of last {window_size} correct; stepping up from {base.value}"
    elif correct <= step_down_max_correct:
        level = step(base, -1)
        reason = f"{correct} of last {window_size} correct; stepping down from {base.value}"
    else:
        level = base
        reason = f"{correct} of last {window_size} correct; staying at {base.value}"

    return DifficultyRecommendation(
        recommended_difficulty=level,
        current_streak=streak,
        last_n_correct=correct,
        window_size=len(window),
        confidence=confidence,
        reason=reason,
    )


class AdaptiveRecommender:
    """Recommends the next difficulty from an owner's most recent attempts."""

    def __init__(self, attempts: AttemptLog, window_size: int = 5):
        self.attempts = attempts
        self.window_size = window_size

    async def get_recommendation(self, owner: str) -> DifficultyRecommendation:
        recent = await self.attempts.recent(owner, self.window_size)
        # recent() is newest first
        return recommend(list(reversed(recent)), window_size=self.window_size)

    async def record_attempt(self, attempt: QuestionAttempt) -> AttemptRecorded:
        """Append a standalone attempt and return the updated recommendation."""
        stored = await self.attempts.append_attempt(attempt)
        logger.info(
            f"Recorded attempt {stored.id} for user {attempt.user_id} "
            f"(correct={attempt.is_correct}, difficulty={attempt.difficulty_at_attempt.value})"
        )
        try:
            recommendation = await self.get_recommendation(attempt.user_id)
        except Exception:
            logger.exception(f"Recommendation refresh failed for user {attempt.user_id}")
            recommendation = None
        return AttemptRecorded(attempt_id=stored.id, next_recommendation=recommendation)
