"""Database layer for the practice engine."""

from .database import async_session, engine, get_db, init_db
from .models import Base, PracticeSessionDB, QuestionAttemptDB, QuestionDB, QuestionOptionDB
from .repositories import SqlAttemptLog, SqlOptionStore, SqlQuestionStore, SqlSessionRepository

__all__ = [
    "get_db",
    "init_db",
    "async_session",
    "engine",
    "Base",
    "QuestionDB",
    "QuestionOptionDB",
    "PracticeSessionDB",
    "QuestionAttemptDB",
    "SqlQuestionStore",
    "SqlSessionRepository",
    "SqlAttemptLog",
    "SqlOptionStore",
]
