"""Attempt, recommendation and analytics models."""

from datetime import datetime

from pydantic import BaseModel, Field

from .question import Difficulty, OptionFeedback, QuestionSource


class QuestionAttempt(BaseModel):
    """One answered question. Append-only once recorded."""

    id: int | None = None
    user_id: str
    question_id: str
    question_type: QuestionSource
    is_correct: bool
    difficulty_at_attempt: Difficulty = Difficulty.MEDIUM
    time_taken_seconds: float | None = None
    session_id: str | None = None
    question_index: int | None = None
    selected_option: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DifficultyRecommendation(BaseModel):
    recommended_difficulty: Difficulty
    current_streak: int = 0
    last_n_correct: int = 0
    window_size: int = 0
    confidence: float = Field(default=0.0, ge=0, le=1)
    reason: str


class AttemptRecorded(BaseModel):
    attempt_id: int | None
    next_recommendation: DifficultyRecommendation | None = None


class AttemptFeedback(BaseModel):
    """Server-judged outcome of a single option selection."""

    question_id: str
    question_source: QuestionSource
    selected_option: str
    is_correct: bool
    correct_answer: str
    correct_text: str
    explanation: str = ""
    all_options: list[OptionFeedback]
    next_recommendation: DifficultyRecommendation | None = None


class DifficultyStats(BaseModel):
    attempts: int = 0
    correct: int = 0
    accuracy: float = 0.0
    avg_time_seconds: float = 0.0


class DailyTrend(BaseModel):
    date: str
    attempts: int
    accuracy: float
    time_minutes: int


class AnalyticsSummary(BaseModel):
    total_attempts: int
    total_correct: int
    overall_accuracy: float


class Analytics(BaseModel):
    """Attempt analytics over a trailing window of days."""

    days: int
    by_difficulty: dict[str, DifficultyStats]
    daily_trend: list[DailyTrend]
    summary: AnalyticsSummary


class AttemptRecordingStatus(BaseModel):
    session_id: str
    recorded: int
    pending: int


class DifficultyPrediction(BaseModel):
    """Predicted difficulty of a question before anyone has attempted it."""

    difficulty: Difficulty = Difficulty.MEDIUM
    confidence: float = Field(default=0.5, ge=0, le=1)
    factors: list[str] = Field(default_factory=list)
    source: str = "default"


class DifficultyProgress(BaseModel):
    """All-time standing of a learner at one difficulty level."""

    difficulty: Difficulty
    comfort_level: str = "Not Started"
    accuracy: float = 0.0
    questions_attempted: int = 0
    questions_correct: int = 0
