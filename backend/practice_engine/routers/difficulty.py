"""Adaptive difficulty API endpoints."""

from functools import lru_cache

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from practice_engine.api.identity import OwnerId
from practice_engine.config import settings
from practice_engine.db import SqlAttemptLog, get_db
from practice_engine.models import (
    Analytics,
    AttemptRecorded,
    Difficulty,
    DifficultyPrediction,
    DifficultyProgress,
    DifficultyRecommendation,
    QuestionAttempt,
    QuestionSource,
)
from practice_engine.services.analytics import AnalyticsService
from practice_engine.services.llm_generator import DifficultyPredictor
from practice_engine.services.recommender import AdaptiveRecommender

router = APIRouter(prefix="/api/difficulty", tags=["difficulty"])


class RecordAttemptRequest(BaseModel):
    """Request body for recording a standalone attempt."""

    question_id: str
    question_type: QuestionSource
    is_correct: bool
    difficulty_at_attempt: Difficulty = Difficulty.MEDIUM
    time_taken_seconds: float | None = None
    selected_option: str | None = None


class PredictDifficultyRequest(BaseModel):
    question_text: str
    topic: str | None = None
    cross_topic_refs: list[str] = Field(default_factory=list)


@lru_cache
def get_predictor() -> DifficultyPredictor:
    return DifficultyPredictor()


def get_recommender(db: AsyncSession = Depends(get_db)) -> AdaptiveRecommender:
    return AdaptiveRecommender(SqlAttemptLog(db), window_size=settings.recommendation_window)


@router.get("/recommendation", response_model=DifficultyRecommendation)
async def get_recommendation(
    owner: OwnerId,
    recommender: AdaptiveRecommender = Depends(get_recommender),
):
    """Recommended difficulty from the last few attempts across all topics."""
    return await recommender.get_recommendation(owner)


@router.post("/attempts", response_model=AttemptRecorded)
async def record_attempt(
    request: RecordAttemptRequest,
    owner: OwnerId,
    recommender: AdaptiveRecommender = Depends(get_recommender),
):
    return await recommender.record_attempt(QuestionAttempt(
        user_id=owner,
        question_id=request.question_id,
        question_type=request.question_type,
        is_correct=request.is_correct,
        difficulty_at_attempt=request.difficulty_at_attempt,
        time_taken_seconds=request.time_taken_seconds,
        selected_option=request.selected_option,
    ))


@router.get("/analytics", response_model=Analytics)
async def get_analytics(
    owner: OwnerId,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Per-difficulty stats and a daily trend over the last ``days`` days."""
    return await AnalyticsService(SqlAttemptLog(db)).get_analytics(owner, days=days)


@router.get("/progress", response_model=list[DifficultyProgress])
async def get_progress(
    owner: OwnerId,
    db: AsyncSession = Depends(get_db),
):
    """Comfort level and accuracy at each difficulty level."""
    return await AnalyticsService(SqlAttemptLog(db)).get_progress(owner)


@router.post("/predict", response_model=DifficultyPrediction)
async def predict_difficulty(
    request: PredictDifficultyRequest,
    owner: OwnerId,
    predictor: DifficultyPredictor = Depends(get_predictor),
):
    """Predict how hard a question is; falls back to medium."""
    return await predictor.predict_difficulty(
        request.question_text,
        topic=request.topic,
        cross_topic_refs=request.cross_topic_refs,
    )
