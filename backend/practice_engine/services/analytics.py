"""Attempt analytics: per-difficulty stats, daily trend and progress."""

from datetime import datetime, timedelta

from practice_engine.config import settings
from practice_engine.errors import ValidationError
from practice_engine.models import DIFFICULTY_ORDER
from practice_engine.models.attempt import (
    Analytics,
    AnalyticsSummary,
    DailyTrend,
    DifficultyProgress,
    DifficultyStats,
)

from .ports import AttemptLog


class AnalyticsService:
    """Service for summarizing a learner's attempt history."""

    def __init__(self, attempts: AttemptLog):
        self.attempts = attempts

    async def get_analytics(self, owner: str, days: int = 30, now: datetime | None = None) -> Analytics:
        """Analytics over the trailing ``days`` window."""
        if days < 1:
            raise ValidationError("days must be at least 1")
        start = (now or datetime.utcnow()) - timedelta(days=days)
        attempts = await self.attempts.since(owner, start)

        # Aggregate by difficulty
        by_difficulty = {d.value: DifficultyStats() for d in DIFFICULTY_ORDER}
        times: dict[str, list[float]] = {d.value: [] for d in DIFFICULTY_ORDER}
        for a in attempts:
            stats = by_difficulty[a.difficulty_at_attempt.value]
            stats.attempts += 1
            stats.correct += int(a.is_correct)
            if a.time_taken_seconds is not None:
                times[a.difficulty_at_attempt.value].append(a.time_taken_seconds)

        for level, stats in by_difficulty.items():
            if stats.attempts > 0:
                stats.accuracy = round(stats.correct / stats.attempts * 100, 2)
            if times[level]:
                stats.avg_time_seconds = round(sum(times[level]) / len(times[level]), 2)

        # Aggregate by day, in date order
        daily: dict[str, dict] = {}
        for a in attempts:
            day = daily.setdefault(a.created_at.date().isoformat(), {"attempts": 0, "correct": 0, "time": 0.0})
            day["attempts"] += 1
            day["correct"] += int(a.is_correct)
            day["time"] += a.time_taken_seconds or 0

        daily_trend = [
            DailyTrend(
                date=date,
                attempts=data["attempts"],
                accuracy=round(data["correct"] / data["attempts"] * 100),
                time_minutes=round(data["time"] / 60),
            )
            for date, data in sorted(daily.items())
        ]

        total = len(attempts)
        total_correct = sum(1 for a in attempts if a.is_correct)

        return Analytics(
            days=days,
            by_difficulty=by_difficulty,
            daily_trend=daily_trend,
            summary=AnalyticsSummary(
                total_attempts=total,
                total_correct=total_correct,
                overall_accuracy=round(total_correct / total * 100) if total > 0 else 0,
            ),
        )

    async def get_progress(self, owner: str) -> list[DifficultyProgress]:
        """All-time progress per difficulty level, easiest first.

        Every level is present; levels with no attempts are "Not Started".
        """
        attempts = await self.attempts.since(owner, datetime.min)

        progress = {d: DifficultyProgress(difficulty=d) for d in DIFFICULTY_ORDER}
        for a in attempts:
            entry = progress[a.difficulty_at_attempt]
            entry.questions_attempted += 1
            entry.questions_correct += int(a.is_correct)

        for entry in progress.values():
            if entry.questions_attempted == 0:
                continue
            ratio = entry.questions_correct / entry.questions_attempted
            entry.accuracy = round(ratio * 100, 2)
            entry.comfort_level = self._comfort_level(ratio, entry.questions_attempted)

        return list(progress.values())

    @staticmethod
    def _comfort_level(ratio: float, attempted: int) -> str:
        if ratio < settings.weak_topic_threshold:
            return "Needs Practice"
        if ratio >= settings.strong_topic_threshold and attempted >= settings.min_topic_attempts:
            return "Comfortable"
        return "Developing"
