"""Practice session API endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from practice_engine.api.identity import OwnerId
from practice_engine.db import SqlAttemptLog, SqlQuestionStore, SqlSessionRepository, get_db
from practice_engine.models import (
    AttemptRecordingStatus,
    PracticeSession,
    QuestionResult,
    SessionConfig,
    SessionResult,
    SessionResume,
    SessionStart,
    SessionStatus,
    SessionSummary,
)
from practice_engine.services.session_manager import SessionLifecycleManager

router = APIRouter(prefix="/api/practice", tags=["practice"])


class StartSessionRequest(BaseModel):
    """Request body for starting a practice session."""

    session_type: str
    config: SessionConfig = Field(default_factory=SessionConfig)


class ProgressRequest(BaseModel):
    """Answers and per-question seconds keyed by question index."""

    current_index: int | None = None
    answers: dict[int, str] = Field(default_factory=dict)
    question_times: dict[int, float] = Field(default_factory=dict)


class CompleteSessionRequest(BaseModel):
    answers: dict[int, str] = Field(default_factory=dict)
    question_times: dict[int, float] = Field(default_factory=dict)
    total_time: float | None = None


def get_session_manager(db: AsyncSession = Depends(get_db)) -> SessionLifecycleManager:
    return SessionLifecycleManager(
        questions=SqlQuestionStore(db),
        sessions=SqlSessionRepository(db),
        attempts=SqlAttemptLog(db),
    )


Manager = Depends(get_session_manager)


@router.post("/sessions", response_model=SessionStart)
async def start_session(
    request: StartSessionRequest,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    """Start a new practice session.

    Questions and option orders are fixed for the lifetime of the session.
    """
    return await manager.start(owner, request.session_type, request.config)


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(
    owner: OwnerId,
    status: Literal["active", "paused", "completed"] = "paused",
    limit: int = Query(20, ge=1, le=100),
    manager: SessionLifecycleManager = Manager,
):
    """Paused sessions to resume, completed session history, or the newest
    active session (at most one entry).
    """
    if status == SessionStatus.ACTIVE.value:
        active = await manager.latest_active(owner)
        return [active] if active else []
    if status == SessionStatus.PAUSED.value:
        return await manager.list_paused(owner)
    return await manager.history(owner, limit=limit)


@router.get("/sessions/{session_id}", response_model=PracticeSession)
async def get_session(
    session_id: str,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    return await manager.get_session(session_id, owner)


@router.put("/sessions/{session_id}/progress", response_model=PracticeSession)
async def save_progress(
    session_id: str,
    request: ProgressRequest,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    """Merge answers and times into an active session (auto-save)."""
    return await manager.save_progress(
        session_id,
        owner,
        current_index=request.current_index,
        answers=request.answers,
        question_times=request.question_times,
    )


@router.post("/sessions/{session_id}/pause", response_model=PracticeSession)
async def pause_session(
    session_id: str,
    request: ProgressRequest,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    return await manager.pause(
        session_id,
        owner,
        current_index=request.current_index,
        answers=request.answers,
        question_times=request.question_times,
    )


@router.post("/sessions/{session_id}/resume", response_model=SessionResume)
async def resume_session(
    session_id: str,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    return await manager.resume(session_id, owner)


@router.post("/sessions/{session_id}/complete", response_model=SessionResult)
async def complete_session(
    session_id: str,
    request: CompleteSessionRequest,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    """Submit the session and get scored results."""
    return await manager.complete(
        session_id,
        owner,
        answers=request.answers,
        question_times=request.question_times,
        total_time=request.total_time,
    )


@router.get("/sessions/{session_id}/review", response_model=list[QuestionResult])
async def review_session(
    session_id: str,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    """Per-question answers and explanations of a completed session."""
    return await manager.review(session_id, owner)


@router.post("/sessions/{session_id}/attempts/retry", response_model=AttemptRecordingStatus)
async def retry_attempt_recording(
    session_id: str,
    owner: OwnerId,
    manager: SessionLifecycleManager = Manager,
):
    return await manager.retry_attempt_recording(session_id, owner)
