"""Distractor generation and option feedback API endpoints."""

from functools import lru_cache

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from practice_engine.api.identity import OwnerId
from practice_engine.config import settings
from practice_engine.db import SqlAttemptLog, SqlOptionStore, SqlQuestionStore, get_db
from practice_engine.models import (
    AttemptFeedback,
    Difficulty,
    GeneratedOptionSet,
    QuestionSource,
    ShuffledOptions,
)
from practice_engine.services.distractors import DistractorService
from practice_engine.services.llm_generator import LLMDistractorGenerator
from practice_engine.services.ports import GenerationService
from practice_engine.services.recommender import AdaptiveRecommender

router = APIRouter(prefix="/api/questions", tags=["questions"])


class GenerateDistractorsRequest(BaseModel):
    question_text: str
    correct_answer: str
    topic: str | None = None
    difficulty: Difficulty | None = None
    question_id: str | None = None
    question_source: QuestionSource = QuestionSource.GENERATED


class FeedbackRequest(BaseModel):
    """A learner's pick, in the letter space of the options they were shown."""

    selected_option: str
    question_source: QuestionSource = QuestionSource.GENERATED
    time_taken_seconds: float | None = None
    permutation: list[int] | None = None


@lru_cache
def get_generator() -> GenerationService:
    return LLMDistractorGenerator()


def get_distractor_service(
    db: AsyncSession = Depends(get_db),
    generator: GenerationService = Depends(get_generator),
) -> DistractorService:
    attempts = SqlAttemptLog(db)
    return DistractorService(
        options=SqlOptionStore(db),
        generator=generator,
        recommender=AdaptiveRecommender(attempts, window_size=settings.recommendation_window),
        questions=SqlQuestionStore(db),
    )


@router.post("/distractors", response_model=GeneratedOptionSet)
async def generate_distractors(
    request: GenerateDistractorsRequest,
    owner: OwnerId,
    service: DistractorService = Depends(get_distractor_service),
):
    """Generate, validate and shuffle three distractors for a question.

    With ``question_id`` the new option set replaces the stored one.
    """
    return await service.generate_distractors(
        question_text=request.question_text,
        correct_answer=request.correct_answer,
        topic=request.topic,
        difficulty=request.difficulty.value if request.difficulty else None,
        question_id=request.question_id,
        question_source=request.question_source,
    )


@router.get("/{question_id}/options", response_model=ShuffledOptions)
async def get_options(
    question_id: str,
    owner: OwnerId,
    source: QuestionSource = QuestionSource.GENERATED,
    shuffle: bool = True,
    service: DistractorService = Depends(get_distractor_service),
):
    """Stored options in a fresh order. The answer key is never included."""
    return await service.get_shuffled_options(question_id, source, shuffle=shuffle)


@router.post("/{question_id}/feedback", response_model=AttemptFeedback)
async def submit_feedback(
    question_id: str,
    request: FeedbackRequest,
    owner: OwnerId,
    service: DistractorService = Depends(get_distractor_service),
):
    """Judge a selection, record the attempt and explain every option."""
    return await service.record_attempt_feedback(
        owner,
        question_id,
        request.selected_option,
        question_source=request.question_source,
        time_taken_seconds=request.time_taken_seconds,
        permutation=request.permutation,
    )
