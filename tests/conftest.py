"""
Pytest Configuration and Fixtures.

Unit tests run against in-memory fakes of the collaborator ports;
integration tests run against an in-memory SQLite database.
"""
import random

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from practice_engine.db.models import Base
from practice_engine.models import (
    Difficulty,
    QuestionRecord,
    QuestionSource,
    QuestionType,
)
from practice_engine.services.recommender import AdaptiveRecommender
from practice_engine.services.session_manager import SessionLifecycleManager
from tests.fakes import (
    InMemoryAttemptLog,
    InMemoryOptionStore,
    InMemoryQuestionStore,
    InMemorySessionStore,
)

TOPICS = ["Polity", "Economy", "Geography"]
LEVELS = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def make_mcq(
    question_id: str,
    source: QuestionSource = QuestionSource.PYQ,
    topic: str = "Polity",
    difficulty: Difficulty = Difficulty.MEDIUM,
    correct: str = "A",
) -> QuestionRecord:
    return QuestionRecord(
        id=question_id,
        source=source,
        text=f"Question {question_id}?",
        question_type=QuestionType.MCQ,
        difficulty=difficulty,
        topic=topic,
        options=[f"{question_id} option {n}" for n in range(1, 5)],
        correct_answer=correct,
        explanation=f"Because of {question_id}.",
    )


def make_bank(pyq: int = 12, generated: int = 12) -> list[QuestionRecord]:
    """MCQs cycling through topics and difficulty levels, all answered ``A``."""
    records = []
    for n in range(pyq):
        records.append(make_mcq(f"pyq-{n:03d}", QuestionSource.PYQ, TOPICS[n % 3], LEVELS[n % 3]))
    for n in range(generated):
        records.append(make_mcq(f"gen-{n:03d}", QuestionSource.GENERATED, TOPICS[n % 3], LEVELS[n % 3]))
    return records


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def question_store():
    return InMemoryQuestionStore(make_bank())


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def attempt_log():
    return InMemoryAttemptLog()


@pytest.fixture
def option_store():
    return InMemoryOptionStore()


@pytest.fixture
def manager(question_store, session_store, attempt_log, rng):
    return SessionLifecycleManager(
        questions=question_store,
        sessions=session_store,
        attempts=attempt_log,
        rng=rng,
        recommender=AdaptiveRecommender(attempt_log, window_size=5),
    )


# ==================== SQLite ====================


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
