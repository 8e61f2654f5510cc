"""Pydantic models for the practice engine."""

from .question import (
    DIFFICULTY_ORDER,
    OPTION_LETTERS,
    Difficulty,
    DistractorCandidate,
    DistractorOption,
    DistractorType,
    GeneratedOptionSet,
    OptionFeedback,
    OptionView,
    PresentationType,
    PresentedQuestion,
    QuestionFilter,
    QuestionRecord,
    QuestionSource,
    QuestionType,
    ShuffledOptions,
)
from .attempt import (
    Analytics,
    AttemptFeedback,
    AttemptRecorded,
    AttemptRecordingStatus,
    DifficultyPrediction,
    DifficultyProgress,
    DifficultyRecommendation,
    QuestionAttempt,
)
from .session import (
    PracticeSession,
    QuestionResult,
    SessionConfig,
    SessionQuestion,
    SessionResult,
    SessionResume,
    SessionStart,
    SessionStatus,
    SessionSummary,
    SessionType,
    SourceSelection,
    TopicStats,
)

__all__ = [
    "DIFFICULTY_ORDER",
    "OPTION_LETTERS",
    "Analytics",
    "AttemptFeedback",
    "AttemptRecorded",
    "AttemptRecordingStatus",
    "Difficulty",
    "DifficultyPrediction",
    "DifficultyProgress",
    "DifficultyRecommendation",
    "DistractorCandidate",
    "DistractorOption",
    "DistractorType",
    "GeneratedOptionSet",
    "OptionFeedback",
    "OptionView",
    "PracticeSession",
    "PresentationType",
    "PresentedQuestion",
    "QuestionAttempt",
    "QuestionFilter",
    "QuestionRecord",
    "QuestionResult",
    "QuestionSource",
    "QuestionType",
    "SessionConfig",
    "SessionQuestion",
    "SessionResult",
    "SessionResume",
    "SessionStart",
    "SessionStatus",
    "SessionSummary",
    "SessionType",
    "ShuffledOptions",
    "SourceSelection",
    "TopicStats",
]
