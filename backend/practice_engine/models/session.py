"""Practice session models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from .attempt import DifficultyRecommendation
from .question import Difficulty, PresentedQuestion, QuestionSource, QuestionType


class SessionType(str, Enum):
    PYQ_ONLY = "pyq_only"
    GENERATED_ONLY = "generated_only"
    MIXED = "mixed"


class SourceSelection(str, Enum):
    """Which question pools a session draws from."""

    PYQ = "pyq"
    GENERATED = "generated"
    MIXED = "mixed"


SESSION_TYPE_SOURCES = {
    SessionType.PYQ_ONLY: SourceSelection.PYQ,
    SessionType.GENERATED_ONLY: SourceSelection.GENERATED,
    SessionType.MIXED: SourceSelection.MIXED,
}


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SessionConfig(BaseModel):
    """Configuration for starting a practice session.

    ``"all"`` (or omitting a field) disables that filter.
    """

    topic: str | None = None
    difficulty: Difficulty | None = None
    question_type: QuestionType | None = None
    count: int = 10
    source: SourceSelection | None = None

    @field_validator("difficulty", "question_type", "topic", mode="before")
    @classmethod
    def _all_means_unfiltered(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in ("", "all"):
            return None
        return value


class SessionQuestion(BaseModel):
    """A frozen question reference inside a session.

    ``permutation[i]`` is the original option index shown at position ``i``;
    it is fixed at session start and replayed on every fetch.
    """

    question_id: str
    source: QuestionSource
    permutation: list[int] | None = None


class TopicStats(BaseModel):
    attempted: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        if self.attempted == 0:
            return 0.0
        return self.correct / self.attempted


class QuestionResult(BaseModel):
    """Per-question outcome written when a session completes."""

    index: int
    question_id: str
    source: QuestionSource
    question_text: str | None = None
    topic: str | None = None
    difficulty: Difficulty = Difficulty.MEDIUM
    user_answer: str | None = None
    correct_answer: str = ""
    is_correct: bool = False
    answered: bool = False
    explanation: str = ""
    time_taken: float = 0


class PracticeSession(BaseModel):
    """A practice session and everything persisted with it."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    session_type: SessionType
    config: SessionConfig
    questions: list[SessionQuestion] = Field(default_factory=list)
    answers: dict[int, str] = Field(default_factory=dict)
    question_times: dict[int, float] = Field(default_factory=dict)
    current_index: int = 0
    elapsed_seconds: float = 0
    status: SessionStatus = SessionStatus.ACTIVE
    score: int | None = None
    accuracy: float | None = None
    net_score: float | None = None
    time_taken_seconds: float | None = None
    weak_topics: list[str] = Field(default_factory=list)
    strong_topics: list[str] = Field(default_factory=list)
    results: list[QuestionResult] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = 0

    @property
    def total_questions(self) -> int:
        return len(self.questions)


class SessionStart(BaseModel):
    """Response for a newly started session."""

    session_id: str
    session_type: SessionType
    questions: list[PresentedQuestion]
    config: SessionConfig
    total_count: int
    time_budget_seconds: int


class SessionResume(BaseModel):
    """Everything a client needs to pick a paused session back up."""

    session_id: str
    session_type: SessionType
    questions: list[PresentedQuestion]
    answers: dict[int, str]
    question_times: dict[int, float]
    current_index: int
    elapsed_seconds: float
    config: SessionConfig
    time_budget_seconds: int
    remaining_seconds: float


class SessionSummary(BaseModel):
    """Listing entry for paused sessions and history."""

    id: str
    session_type: SessionType
    status: SessionStatus
    config: SessionConfig
    total_questions: int
    answered_count: int
    current_index: int
    elapsed_seconds: float
    score: int | None = None
    accuracy: float | None = None
    weak_topics: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class SessionResult(BaseModel):
    """Scored outcome of a completed session."""

    session_id: str
    score: int
    total: int
    accuracy: float
    net_score: float
    time_taken: float
    results: list[QuestionResult]
    weak_topics: list[str]
    strong_topics: list[str]
    topic_performance: dict[str, TopicStats]
    difficulty_breakdown: dict[str, TopicStats]
    attempts_recorded: bool = False
    recommendation: DifficultyRecommendation | None = None
